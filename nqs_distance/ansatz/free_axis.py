# nqs_distance/ansatz/free_axis.py
#
# RBM kernel whose visible layer is a free quantum axis per spin.
#
# Instead of a complex bias a_i, every visible spin i is polarized along its
# own direction on the Bloch sphere, with polar angle alpha_i and azimuth
# beta_i (both real). The visible factor is the spin-1/2 coherent state
#
#   <up|n_i>   = cos(alpha_i / 2)
#   <down|n_i> = exp(i beta_i) sin(alpha_i / 2)
#
# so the product over spins is a mean-field state along the fitted axes, and
# the hidden layer adds correlations on top of it:
#
#   log psi(sigma) = sum_i log <sigma_i|n_i> + sum_j logcosh(theta_j)
#
# Visible log-derivatives:
#
#   d/d(alpha_i) = -tan(alpha_i/2)/2  (sigma_i = +1),  cot(alpha_i/2)/2  (sigma_i = -1)
#   d/d(beta_i)  = 0                  (sigma_i = +1),  i                 (sigma_i = -1)
#
# alpha = pi/2, beta = 0 is the x-polarized product state, the natural
# starting point (all basis states have equal weight).

from .base import PsiKernel


class FreeAxisKernel(PsiKernel):
    """
    RBM with per-spin axis angles alpha (N,) and beta (N,), both real.

    Flat parameter layout: [alpha | beta | b | W.flatten() | n],
    active parameters 2N + M + N*M.
    """

    def __init__(self, alpha, beta, b, W, n, log_prefactor: float, xp):
        super().__init__(b, W, n, log_prefactor, xp)
        self.alpha = alpha
        self.beta = beta

    @property
    def num_visible_params(self) -> int:
        return 2 * self.N

    def visible_terms(self, spins):
        xp = self.xp
        half = 0.5 * self.alpha
        # Complex log: outside 0 < alpha < pi a factor is negative and adds i pi
        up = xp.log(xp.cos(half) + 0j)
        down = xp.log(xp.sin(half) + 0j) + 1j * self.beta
        return xp.where(spins.real > 0, up, down)

    def visible_derivatives(self, spins):
        xp = self.xp
        half = 0.5 * self.alpha
        d_alpha = xp.where(
            spins.real > 0, -0.5 * xp.tan(half) + 0j, 0.5 / xp.tan(half) + 0j
        )
        d_beta = 0.5j * (1.0 - spins.real)
        return xp.concatenate([d_alpha, d_beta], axis=-1)

    def axis_derivatives(self):
        """
        Visible log-derivatives for spin up and spin down, per spin.

        Returns (alpha_up, alpha_down, beta_up, beta_down), each shape (N,).
        Because the visible factor of spin i depends only on sigma_i, these
        four values determine the whole visible block for any configuration.
        """
        xp = self.xp
        half = 0.5 * self.alpha
        alpha_up = -0.5 * xp.tan(half) + 0j
        alpha_down = 0.5 / xp.tan(half) + 0j
        beta_up = 0j * self.alpha
        beta_down = 1j + 0j * self.alpha
        return alpha_up, alpha_down, beta_up, beta_down

    def param_blocks(self) -> list:
        return [
            ('alpha', self.alpha), ('beta', self.beta),
            ('b', self.b), ('W', self.W), ('n', self.n),
        ]
