# nqs_distance/ansatz/base.py
#
# Capability interface shared by the wavefunction kernels.
#
# A kernel is the pure math of one RBM variant evaluated on parameter arrays
# it does not own (the Psi container owns and places them on host or device).
# Both variants share the hidden layer:
#
#   log psi(s) = visible(s) + sum_j logcosh(b_j + sum_i W_ij s_i)
#
# and differ only in the visible factor. Subclasses implement the visible
# block; everything hidden-layer related is here. Reductions over hidden units
# are not done here either: log_amplitude hands the per-worker summands to a
# `reduce` callable supplied by the scheduler (sequential sum or tree sum).

from abc import ABC, abstractmethod

from .functions import (
    compute_angles, flip_angles, logcosh,
    hidden_derivatives, weight_derivatives,
)


class PsiKernel(ABC):
    """
    Abstract RBM kernel.

    Attributes:
        b (M,):    hidden biases (complex)
        W (N, M):  visible-hidden weights (complex), row-major by visible index
        n (M,):    per-hidden scale, stored and exchanged but not used in the
                   amplitude or its derivatives
        xp:        array namespace of the parameter arrays (numpy or torch)
    """

    def __init__(self, b, W, n, log_prefactor: float, xp):
        self.b = b
        self.W = W
        self.n = n
        self.log_prefactor = log_prefactor
        self.xp = xp
        self.N = int(W.shape[0])
        self.M = int(W.shape[1])

    # --------------------------------------------------------
    # Visible block (variant specific)
    # --------------------------------------------------------

    @property
    @abstractmethod
    def num_visible_params(self) -> int:
        """Number of active parameters in the visible block."""

    @abstractmethod
    def visible_terms(self, spins):
        """Log contribution of each visible spin, shape (..., N)."""

    @abstractmethod
    def visible_derivatives(self, spins):
        """Log-derivatives w.r.t. the visible block, (..., num_visible_params)."""

    @abstractmethod
    def param_blocks(self) -> list:
        """Ordered (name, array) pairs that make up the flat parameter vector."""

    # --------------------------------------------------------
    # Sizes
    # --------------------------------------------------------

    @property
    def num_active_params(self) -> int:
        return self.num_visible_params + self.M + self.N * self.M

    @property
    def num_params(self) -> int:
        # n is exchanged with the rest but is not variational
        return self.num_active_params + self.M

    # --------------------------------------------------------
    # Angles
    # --------------------------------------------------------

    def angle(self, j: int, spins) -> complex:
        """Single angle b_j + sum_i W_ij s_i for one configuration."""
        return complex(self.b[j] + spins @ self.W[:, j])

    def angles(self, spins):
        return compute_angles(self.b, self.W, spins)

    def flip_spin_angle_update(self, angles, position: int, new_spins):
        """Angles of `new_spins`, which differs from the old configuration at `position`."""
        return flip_angles(angles, self.W, position, new_spins)

    # --------------------------------------------------------
    # Log amplitude
    # --------------------------------------------------------

    def hidden_terms(self, angles):
        return logcosh(angles, self.xp)

    def summands(self, spins, angles):
        """
        Per-worker summands of log psi: N visible terms followed by M hidden
        terms. Their sum over the last axis is the log amplitude.
        """
        return self.xp.concatenate(
            [self.visible_terms(spins), self.hidden_terms(angles)], axis=-1
        )

    def log_amplitude(self, spins, reduce, angles=None):
        """
        log psi(s) without the prefactor.

        Args:
            spins:  complex +/-1 array (..., N) in the kernel's namespace.
            reduce: callable summing over the last axis.
            angles: precomputed angles of `spins`, e.g. from an incremental
                    flip update. Computed from scratch when None.
        """
        if angles is None:
            angles = self.angles(spins)
        return reduce(self.summands(spins, angles))

    # --------------------------------------------------------
    # Log-derivatives
    # --------------------------------------------------------

    def derivative_vector(self, spins, tanh_angles, include_visible: bool = True):
        """
        O_k for all active parameters, shape (..., num_active_params).

        Order: visible block, hidden biases, weights. With
        include_visible=False the visible block is left out, for callers
        that handle it separately.
        """
        blocks = [
            hidden_derivatives(tanh_angles),
            weight_derivatives(spins, tanh_angles),
        ]
        if include_visible:
            blocks.insert(0, self.visible_derivatives(spins))
        return self.xp.concatenate(blocks, axis=-1)

    def derivative_element(self, k: int, spins, tanh_angles) -> complex:
        """
        O_k for a single parameter index and one configuration.

        Indices past the active parameters give 0 so that strided loops over
        a padded index range need no bounds check.
        """
        if k >= self.num_active_params:
            return 0j

        if k < self.num_visible_params:
            return complex(self.visible_derivatives(spins)[k])

        k -= self.num_visible_params
        if k < self.M:
            return complex(tanh_angles[k])

        i, j = divmod(k - self.M, self.M)
        return complex(tanh_angles[j] * spins[i])
