# nqs_distance/ansatz/functions.py
#
# Per-configuration RBM math, written once for both execution paths.
#
# Every function takes an array namespace `xp` (numpy for the host path,
# torch for the device path) and only uses operations both namespaces share:
# elementwise exp/log/tanh/where, matmul, broadcasting and .real. The
# schedulers decide how the resulting summands are reduced; the formulas
# themselves live only here.
#
# Shapes: spins (..., N), angles (..., M), W (N, M). Leading batch
# dimensions are one configuration each.

import numpy as np


LOG_2 = float(np.log(2.0))


# ============================================================
# logcosh
# ============================================================

def logcosh(x, xp=np):
    """
    Numerically stable log(cosh(x)) for complex x.

    Uses cosh(x) = cosh(-x) to move to the half plane Re(y) >= 0, then

        log cosh(y) = y + log(1 + exp(-2y)) - log 2

    where |exp(-2y)| <= 1, so nothing overflows for large |Re x|. The naive
    log(cosh(x)) overflows once Re(x) exceeds ~710, and the angles grow
    linearly with the number of visible spins.
    """
    y = xp.where(x.real < 0, -x, x)
    return y + xp.log(1.0 + xp.exp(-2.0 * y)) - LOG_2


# ============================================================
# Angles (hidden-unit pre-activations)
# ============================================================

def compute_angles(b, W, spins):
    """angle[..., j] = b[j] + sum_i W[i, j] * spins[..., i]."""
    return b + spins @ W


def flip_angles(angles, W, position: int, new_spins):
    """
    Angles after spin `position` was flipped, in O(M).

    new_spins is the configuration after the flip, so the spin changed by
    2 * new_spins[position] and every angle moves by that times W[position, j].
    """
    return angles + 2.0 * new_spins[..., position, None] * W[position]


# ============================================================
# Log-Derivatives (O_k blocks)
# ============================================================

def hidden_derivatives(tanh_angles):
    """d log psi / d b_j = tanh(angle_j)."""
    return tanh_angles


def weight_derivatives(spins, tanh_angles):
    """
    d log psi / d W_ij = tanh(angle_j) * s_i, flattened row-major by i.

    Returns shape (..., N*M).
    """
    outer = spins[..., :, None] * tanh_angles[..., None, :]
    return outer.reshape(tuple(outer.shape[:-2]) + (outer.shape[-2] * outer.shape[-1],))
