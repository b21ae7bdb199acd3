# nqs_distance/distance.py
#
# Hilbert-space distance between O|psi> and |psi'>, and its gradient with
# respect to the variational parameters of psi'.
#
# With samples s drawn from |psi|^2 (exact or Monte Carlo), define per sample
#
#   lambda(s) = log psi'(s) - log psi(s)                 (log-amplitude ratio)
#   L(s)      = (O psi)(s) / psi(s)                      (local value of O)
#   omega(s)  = exp(conj(lambda(s))) * L(s) = conj(psi'(s)) (O psi)(s) / |psi(s)|^2
#   r(s)      = exp(2 Re lambda(s))          = |psi'(s)|^2 / |psi(s)|^2
#   n(s)      = |L(s)|^2
#
# Their ensemble averages are ratios of Hilbert-space inner products:
#
#   <omega> = <psi'|O psi> / <psi|psi>
#   <r>     = <psi'|psi'>  / <psi|psi>
#   <n>     = <O psi|O psi> / <psi|psi>      (exactly 1 for unitary O)
#
# so the fidelity F = |<omega>|^2 / (<r> <n>) lies in [0, 1] (Cauchy-Schwarz),
# equals 1 iff psi' is proportional to O psi, and does not change when either
# wavefunction is multiplied by a constant. The distance is
#
#   D = sqrt(1 - F)
#
# GRADIENT. psi' is holomorphic in its complex parameters theta_k with
# d psi'/d theta_k = O_k psi'. Because omega depends on conj(psi') and r on
# |psi'|^2,
#
#   d<omega>/d conj(theta_k) = <omega conj(O_k)>,  d<r>/d conj(theta_k) = <r conj(O_k)>
#
# and, reporting the gradient of the real function D as
# dD/dRe(theta_k) + i dD/dIm(theta_k) = 2 dD/d conj(theta_k),
#
#   grad_k = ( F <r conj(O_k)> / <r>  -  conj(<omega>) <omega conj(O_k)> / (<r> <n>) ) / D
#
# For real parameters (the free-axis angles) the same expression's real part
# is dD/dtheta_k.
#
# FREE AXIS. When psi' has a free quantum axis, the visible log-derivative of
# spin i depends only on s_i. Its moments therefore follow from the split of
# <omega> and <r> into s_i = +1 and s_i = -1 parts, which only needs the
# per-spin moments
#
#   delta_alpha[i] = <omega s_i>,   delta_beta[i] = <r s_i>
#
# instead of 2N extra columns of O_k per sample.
#
# SCALE. lambda can be far outside the range of exp (a tiny or huge prefactor,
# or a large hidden bias). Every exponential is taken of lambda - c with
# c = max_s Re lambda(s), so the largest r(s) is 1. This scales <omega> by
# exp(-c) and <r> by exp(-2c), which cancels in F and in the gradient.

import warnings
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .ansatz import FreeAxisKernel
from .config import DEFAULT_CAPACITY
from .errors import ConfigurationError
from .schedulers import make_scheduler


# Normalizations at or below this are treated as vanishing.
_TINY = np.finfo(np.float64).tiny


@dataclass
class DistanceResult:
    """Outcome of one estimator pass."""
    distance: float
    gradient: Optional[np.ndarray]
    omega_avg: complex
    probability_ratio_avg: float
    next_state_norm_avg: float
    log_ratio_shift: float = 0.0
    sin_sum_alpha: float = 0.0
    cos_sum_alpha: float = 0.0


class HilbertSpaceDistance:
    """
    Estimator of the distance between O|psi> and |psi'>.

    The accumulators below hold the ensemble averages of the last pass.
    Every call starts with clear(), so nothing carries over between calls.

    omega_avg and probability_ratio_avg are stored relative to the largest
    sampled Re(lambda), log_ratio_shift: they carry factors exp(-shift) and
    exp(-2 shift). The fidelity and the gradient do not depend on the shift.

    sin_sum_alpha and cos_sum_alpha (free axis only) are diagnostics. They
    are reported in DistanceResult but enter neither the distance nor the
    gradient.

    Args:
        n_spins:    Number of spins shared by psi and psi'.
        num_params: Active parameters of psi' (length of the gradient).
        gpu:        Accumulate on a torch device with tree reductions.
        device:     torch device for gpu=True (default 'cuda').
        capacity:   Block capacity of the tree scheduler.
    """

    def __init__(self, n_spins: int, num_params: int, gpu: bool = False,
                 device=None, capacity: int = DEFAULT_CAPACITY):
        self.n_spins = n_spins
        self.num_params = num_params
        self.scheduler = make_scheduler(gpu, device, capacity)
        self.clear()

    @property
    def gpu(self) -> bool:
        return self.scheduler.gpu

    def clear(self) -> None:
        """Reset all accumulators to zero."""
        self.total_weight = 0.0
        self.log_ratio_shift = 0.0
        self.omega_avg = 0j
        self.omega_O_k_avg = np.zeros(self.num_params, dtype=np.complex128)
        self.probability_ratio_avg = 0.0
        self.probability_ratio_O_k_avg = np.zeros(self.num_params, dtype=np.complex128)
        self.next_state_norm_avg = 0.0

        self.delta_alpha = np.zeros(self.n_spins, dtype=np.complex128)
        self.delta_beta = np.zeros(self.n_spins)
        self.sin_sum_alpha = 0.0
        self.cos_sum_alpha = 0.0
        self._free_axis = False

    # ========================================================
    # Accumulation
    # ========================================================

    def _check_compatible(self, psi, psi_prime) -> None:
        for name, p in (("psi", psi), ("psi'", psi_prime)):
            if p.n_spins != self.n_spins:
                raise ConfigurationError(
                    f"{name} has {p.n_spins} spins, estimator expects {self.n_spins}"
                )
            if not self.scheduler.same_backend(p.scheduler):
                raise ConfigurationError(
                    f"{name} runs on {p.scheduler}, estimator on {self.scheduler}"
                )
        if psi_prime.num_active_params != self.num_params:
            raise ConfigurationError(
                f"psi' has {psi_prime.num_active_params} active parameters, "
                f"estimator expects {self.num_params}"
            )

    def compute_averages(self, psi, psi_prime, operator, is_unitary: bool,
                         ensemble, compute_gradient: bool = False) -> None:
        """
        One pass over the ensemble, filling the accumulators.

        Args:
            psi:              reference wavefunction; the ensemble samples |psi|^2.
            psi_prime:        candidate wavefunction.
            operator:         Operator applied to psi.
            is_unitary:       skip the norm of O psi (it is 1).
            ensemble:         SpinEnsemble providing (spins, weights).
            compute_gradient: also accumulate the O_k moments of psi'.
        """
        self._check_compatible(psi, psi_prime)
        self.clear()

        s = self.scheduler
        xp = s.xp

        spins, weights = ensemble.draw(psi)
        x = psi._backend(spins)
        # Every ensemble sum runs in complex arithmetic, so a plain weight sum and
        # a weighted sum of ones are added in the same order and agree exactly.
        w = s.asarray(weights)

        log_psi = psi._log_psi(x)
        log_psi_prime = psi_prime._log_psi(x)
        local = operator.local_values(psi, spins, log_psi)

        # The prefactors add one constant to every sample
        ratio = (log_psi_prime - log_psi) + (psi_prime.log_prefactor - psi.log_prefactor)
        self.log_ratio_shift = float(xp.max(ratio.real))
        omega = xp.exp(xp.conj(ratio) - self.log_ratio_shift) * local
        probability_ratio = xp.exp(2.0 * (ratio.real - self.log_ratio_shift))

        self.total_weight = float(s.accumulate(w).real)
        if not self.total_weight > 0:
            raise ConfigurationError("Ensemble weights sum to zero")
        total = self.total_weight

        self.omega_avg = complex(s.accumulate(w * omega)) / total
        self.probability_ratio_avg = float(s.accumulate(w * probability_ratio).real) / total
        if is_unitary:
            self.next_state_norm_avg = 1.0
        else:
            self.next_state_norm_avg = float(s.accumulate(w * xp.abs(local) ** 2).real) / total

        self._free_axis = isinstance(psi_prime.kernel, FreeAxisKernel)
        if self._free_axis:
            alpha = s.to_numpy(psi_prime.kernel.alpha)
            self.sin_sum_alpha = float(np.sum(np.sin(alpha)))
            self.cos_sum_alpha = float(np.sum(np.cos(alpha)))

        if not compute_gradient:
            return

        O_k = psi_prime._O_k(x, include_visible=not self._free_axis)
        w_omega = (w * omega)[:, None]
        w_ratio = (w * probability_ratio)[:, None]
        omega_O_k = s.to_numpy(s.accumulate(w_omega * xp.conj(O_k))) / total
        ratio_O_k = s.to_numpy(s.accumulate(w_ratio * xp.conj(O_k))) / total

        if self._free_axis:
            spin_values = x.real
            self.delta_alpha = s.to_numpy(s.accumulate(w_omega * spin_values)) / total
            self.delta_beta = s.to_numpy(s.accumulate(w_ratio * spin_values)).real / total
            axis_omega, axis_ratio = self._axis_moments(psi_prime)
            omega_O_k = np.concatenate([axis_omega, omega_O_k])
            ratio_O_k = np.concatenate([axis_ratio, ratio_O_k])

        self.omega_O_k_avg = omega_O_k
        self.probability_ratio_O_k_avg = ratio_O_k

    def _axis_moments(self, psi_prime):
        """
        <omega conj(O_k)> and <r conj(O_k)> for the alpha and beta blocks,
        from the spin-up / spin-down split of <omega> and <r>.
        """
        s = self.scheduler
        alpha_up, alpha_down, beta_up, beta_down = (
            s.to_numpy(v) for v in psi_prime.kernel.axis_derivatives()
        )

        omega_up = 0.5 * (self.omega_avg + self.delta_alpha)
        omega_down = 0.5 * (self.omega_avg - self.delta_alpha)
        ratio_up = 0.5 * (self.probability_ratio_avg + self.delta_beta)
        ratio_down = 0.5 * (self.probability_ratio_avg - self.delta_beta)

        def moments(d_up, d_down):
            return (
                omega_up * np.conj(d_up) + omega_down * np.conj(d_down),
                ratio_up * np.conj(d_up) + ratio_down * np.conj(d_down),
            )

        alpha_omega, alpha_ratio = moments(alpha_up, alpha_down)
        beta_omega, beta_ratio = moments(beta_up, beta_down)
        return (
            np.concatenate([alpha_omega, beta_omega]),
            np.concatenate([alpha_ratio, beta_ratio]),
        )

    # ========================================================
    # Distance and gradient
    # ========================================================

    def _fidelity(self) -> Optional[float]:
        """F = |<omega>|^2 / (<r> <n>), or None if the normalization vanished."""
        r = self.probability_ratio_avg
        n = self.next_state_norm_avg
        omega = self.omega_avg
        if not (np.isfinite(omega) and np.isfinite(r) and np.isfinite(n)) \
                or r <= _TINY or n <= _TINY:
            warnings.warn(
                f"Hilbert space distance is undefined: probability_ratio_avg={r:.3e}, "
                f"next_state_norm_avg={n:.3e}. Returning nan.",
                RuntimeWarning, stacklevel=3
            )
            return None
        return abs(omega) ** 2 / (r * n)

    @staticmethod
    def _distance_from(fidelity: float) -> float:
        # Rounding can push F slightly above 1
        return float(np.sqrt(max(0.0, 1.0 - fidelity)))

    def _assemble_gradient(self, fidelity: float, distance: float) -> np.ndarray:
        if distance == 0.0:
            return np.zeros(self.num_params, dtype=np.complex128)

        r = self.probability_ratio_avg
        n = self.next_state_norm_avg
        gradient = (
            fidelity * self.probability_ratio_O_k_avg / r
            - np.conj(self.omega_avg) * self.omega_O_k_avg / (r * n)
        ) / distance

        if self._free_axis:
            n_axis = 2 * self.n_spins
            gradient[:n_axis] = gradient[:n_axis].real
        return gradient

    def distance(self, psi, psi_prime, operator, is_unitary: bool, ensemble) -> float:
        """D = sqrt(1 - F) in [0, 1]; nan if the estimate is degenerate."""
        self.compute_averages(psi, psi_prime, operator, is_unitary, ensemble)
        fidelity = self._fidelity()
        if fidelity is None:
            return float('nan')
        return self._distance_from(fidelity)

    def gradient(self, psi, psi_prime, operator, is_unitary: bool, ensemble):
        """
        Gradient of the distance w.r.t. the active parameters of psi'.

        Returns:
            (gradient, distance): complex array of shape (num_params,) in the
            flat parameter order of psi', and the distance of the same pass.
            At distance 0 the gradient is the zero vector.
        """
        self.compute_averages(psi, psi_prime, operator, is_unitary, ensemble,
                              compute_gradient=True)
        fidelity = self._fidelity()
        if fidelity is None:
            return np.full(self.num_params, np.nan + 1j * np.nan), float('nan')
        distance = self._distance_from(fidelity)
        return self._assemble_gradient(fidelity, distance), distance

    def evaluate(self, psi, psi_prime, operator, is_unitary: bool, ensemble,
                 compute_gradient: bool = True) -> DistanceResult:
        """Distance, optional gradient and the averages behind them."""
        if compute_gradient:
            gradient, distance = self.gradient(psi, psi_prime, operator, is_unitary, ensemble)
        else:
            gradient = None
            distance = self.distance(psi, psi_prime, operator, is_unitary, ensemble)
        return DistanceResult(
            distance=distance,
            gradient=gradient,
            omega_avg=self.omega_avg,
            probability_ratio_avg=self.probability_ratio_avg,
            next_state_norm_avg=self.next_state_norm_avg,
            log_ratio_shift=self.log_ratio_shift,
            sin_sum_alpha=self.sin_sum_alpha,
            cos_sum_alpha=self.cos_sum_alpha,
        )

    def __repr__(self) -> str:
        return (
            f"HilbertSpaceDistance(n_spins={self.n_spins}, "
            f"num_params={self.num_params}, gpu={self.gpu})"
        )
