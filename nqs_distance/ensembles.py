# nqs_distance/ensembles.py
#
# Configuration ensembles: where the spin configurations (and their weights)
# of a distance estimate come from.
#
# Both providers describe the same measure, |psi(s)|^2 / <psi|psi>, and the
# distance estimator treats them identically through weighted sums:
#
#   ExactSummation  enumerates all 2^N configurations, weight = exact
#                   probability. Deterministic; only for small N.
#   MonteCarloLoop  Metropolis-Hastings chains on |psi|^2 with single spin
#                   flips, weight = 1/count. The flips reuse the angles of
#                   the current configuration (O(M) update instead of
#                   O(N*M) recomputation), which is what makes long chains
#                   affordable.
#
# enumerate() is the counting measure used by Psi.norm: an unweighted sum
# over configurations (exact) or its uniform-sampling estimate.

from abc import ABC, abstractmethod

import numpy as np

from .errors import ConfigurationError
from .spins import all_configurations, flip_spins


class SpinEnsemble(ABC):
    """A source of weighted spin configurations."""

    n_spins: int

    @abstractmethod
    def draw(self, psi):
        """
        Configurations distributed as |psi|^2.

        Returns:
            spins:   float array (K, N) of +/-1 values.
            weights: float array (K,), non-negative, summing to one.
        """

    @abstractmethod
    def enumerate(self):
        """
        Configurations with counting weights: sum_s weights * f(s)
        approximates sum over all 2^N configurations of f(s).
        """

    def _check_psi(self, psi) -> None:
        if psi.n_spins != self.n_spins:
            raise ConfigurationError(
                f"Ensemble over {self.n_spins} spins cannot draw for a "
                f"wavefunction with {psi.n_spins} spins"
            )


# ============================================================
# Exact Summation
# ============================================================

class ExactSummation(SpinEnsemble):
    """All 2^N configurations in canonical order."""

    def __init__(self, n_spins: int):
        self.n_spins = n_spins
        self._configurations = all_configurations(n_spins)

    @property
    def num_configurations(self) -> int:
        return len(self._configurations)

    def draw(self, psi):
        """
        Exact probabilities of psi, normalized in log space so that large
        log-amplitudes do not overflow.
        """
        self._check_psi(psi)
        log_prob = 2.0 * psi.log_psi(self._configurations).real
        log_prob -= np.max(log_prob)
        weights = np.exp(log_prob)
        weights /= np.sum(weights)
        return self._configurations, weights

    def enumerate(self):
        return self._configurations, np.ones(self.num_configurations)

    def __repr__(self) -> str:
        return f"ExactSummation(n_spins={self.n_spins})"


# ============================================================
# Monte Carlo Sampling
# ============================================================

class MonteCarloLoop(SpinEnsemble):
    """
    Metropolis-Hastings sampling of |psi(sigma)|^2.

    Runs n_chains independent chains side by side. Each step picks one site
    (shared by all chains), proposes flipping it in every chain, and accepts
    or rejects per chain. Acceptance ratio computed in log-space:
        log(A) = 2 * Re(log_psi(proposed) - log_psi(current)).
    Healthy acceptance rate: 0.3 - 0.7.
    """

    def __init__(self, n_spins: int, n_samples: int = 1000, n_chains: int = 16,
                 sweep_size: int = None, n_burn: int = 100, seed: int = 42):
        """
        Args:
            n_spins:    Number of spins N.
            n_samples:  Total configurations returned by draw(); rounded up
                        to a multiple of n_chains.
            n_chains:   Parallel Markov chains.
            sweep_size: Metropolis steps between recorded samples.
                        Default: n_spins (one sweep).
            n_burn:     Steps discarded before recording.
            seed:       Random seed for reproducibility.
        """
        if n_samples < 1 or n_chains < 1:
            raise ConfigurationError("n_samples and n_chains must be positive")
        self.n_spins = n_spins
        self.n_samples = n_samples
        self.n_chains = n_chains
        self.sweep_size = sweep_size if sweep_size is not None else n_spins
        self.n_burn = n_burn
        self.rng = np.random.default_rng(seed)

        self._n_proposed = 0
        self._n_accepted = 0

    def _random_state(self, n: int) -> np.ndarray:
        return self.rng.choice([-1.0, 1.0], size=(n, self.n_spins))

    def _metropolis_step(self, psi, spins, angles, log_psi):
        """
        One step of all chains. Returns the updated (spins, angles, log_psi).
        """
        position = int(self.rng.integers(0, self.n_spins))
        proposed = flip_spins(spins, position)
        proposed_angles = psi.flip_spin_angle_update(angles, position, proposed)
        proposed_log_psi = psi.log_psi_from_angles(proposed, proposed_angles)

        log_acceptance = 2.0 * np.real(proposed_log_psi - log_psi)
        # Accept if A >= 1, or with probability A otherwise.
        accept = (log_acceptance >= 0) | (
            np.log(self.rng.random(len(spins))) < log_acceptance
        )

        self._n_proposed += len(spins)
        self._n_accepted += int(np.count_nonzero(accept))

        spins = np.where(accept[:, None], proposed, spins)
        angles = np.where(accept[:, None], proposed_angles, angles)
        log_psi = np.where(accept, proposed_log_psi, log_psi)
        return spins, angles, log_psi

    def draw(self, psi):
        """
        Burn in fresh chains, then record one configuration per chain every
        sweep_size steps until n_samples are collected.
        """
        self._check_psi(psi)
        self.reset_acceptance_stats()

        spins = self._random_state(self.n_chains)
        angles = psi.angles(spins)
        log_psi = psi.log_psi_from_angles(spins, angles)

        for _ in range(self.n_burn):
            spins, angles, log_psi = self._metropolis_step(psi, spins, angles, log_psi)

        n_rounds = -(-self.n_samples // self.n_chains)
        samples = np.empty((n_rounds, self.n_chains, self.n_spins))
        for k in range(n_rounds):
            for _ in range(self.sweep_size):
                spins, angles, log_psi = self._metropolis_step(psi, spins, angles, log_psi)
            samples[k] = spins

        samples = samples.reshape(-1, self.n_spins)
        weights = np.full(len(samples), 1.0 / len(samples))
        return samples, weights

    def enumerate(self):
        """Uniformly random configurations, each standing for 2^N / count."""
        samples = self._random_state(self.n_samples)
        weights = np.full(self.n_samples, 2.0 ** self.n_spins / self.n_samples)
        return samples, weights

    @property
    def acceptance_rate(self) -> float:
        """Fraction of proposed moves accepted in the last draw()."""
        if self._n_proposed == 0:
            return 0.0
        return self._n_accepted / self._n_proposed

    def reset_acceptance_stats(self) -> None:
        self._n_proposed = 0
        self._n_accepted = 0

    def __repr__(self) -> str:
        return (
            f"MonteCarloLoop(n_spins={self.n_spins}, n_samples={self.n_samples}, "
            f"n_chains={self.n_chains})"
        )
