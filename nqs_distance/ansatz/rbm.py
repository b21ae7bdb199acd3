# nqs_distance/ansatz/rbm.py
#
# Restricted Boltzmann Machine kernel with a fixed visible bias.
#
# This is the Carleo & Troyer (2017) NQS: N visible units (physical spins) and
# M hidden units summed out analytically,
#
#   log psi(sigma) = sum_i a_i sigma_i + sum_j logcosh(b_j + W[:,j] . sigma)
#
# with all parameters complex, so both the modulus and the phase of psi are
# variational. Gradients are closed form:
#
#   d/d(a_i)   = sigma_i
#   d/d(b_j)   = tanh(theta_j)
#   d/d(W_ij)  = sigma_i * tanh(theta_j)

from .base import PsiKernel


class RBMKernel(PsiKernel):
    """
    RBM with visible bias a (N,).

    Flat parameter layout: [a | b | W.flatten() | n],
    active parameters N + M + N*M.
    """

    def __init__(self, a, b, W, n, log_prefactor: float, xp):
        super().__init__(b, W, n, log_prefactor, xp)
        self.a = a

    @property
    def num_visible_params(self) -> int:
        return self.N

    def visible_terms(self, spins):
        return self.a * spins

    def visible_derivatives(self, spins):
        return spins

    def param_blocks(self) -> list:
        return [('a', self.a), ('b', self.b), ('W', self.W), ('n', self.n)]
