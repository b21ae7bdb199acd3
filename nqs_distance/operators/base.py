# nqs_distance/operators/base.py
#
# Abstract linear operator acting in the sigma^z basis.
#
# The distance estimator never needs a matrix. For each configuration s it
# needs the row of the operator: the configurations s_k with nonzero matrix
# element O[s, s_k] and those elements c_k, so that
#
#   (O psi)(s) = sum_k c_k psi(s_k)
#
# Operators return those rows for a whole batch at once (connections) with a
# fixed number T of entries per row; an entry with coefficient 0 simply
# contributes nothing.

from abc import ABC, abstractmethod

import numpy as np
import scipy.sparse as sp

from ..errors import ConfigurationError
from ..spins import Spins, spins_from_indices, indices_from_spins


class Operator(ABC):
    """Linear operator given by its rows in the computational basis."""

    @abstractmethod
    def connections(self, spins: np.ndarray):
        """
        Rows of the operator for a batch of configurations.

        Args:
            spins: float array (K, N) of +/-1 values.

        Returns:
            targets:      float array (K, T, N), the connected configurations.
            coefficients: complex array (K, T), matrix elements O[s, target].
        """

    def apply(self, spins: Spins) -> list:
        """
        Weighted list [(target, coefficient), ...] for one configuration,
        without zero coefficients.
        """
        targets, coefficients = self.connections(spins.to_array()[None, :])
        return [
            (Spins.from_array(target), complex(c))
            for target, c in zip(targets[0], coefficients[0])
            if c != 0
        ]

    def local_values(self, psi, spins: np.ndarray, log_psi):
        """
        (O psi)(s) / psi(s) for a batch, in psi's array namespace.

        Computed as sum_k c_k exp(log psi(s_k) - log psi(s)), so only
        amplitude ratios are ever formed.

        Args:
            psi:     the wavefunction O acts on.
            spins:   float array (K, N).
            log_psi: log psi(spins) in psi's namespace, shape (K,).
        """
        targets, coefficients = self.connections(spins)
        n_samples, n_targets = coefficients.shape
        if n_targets == 0:
            return psi.scheduler.asarray(np.zeros(n_samples))

        flat = targets.reshape(n_samples * n_targets, psi.n_spins)
        log_targets = psi._log_psi(psi._backend(flat)).reshape(n_samples, n_targets)
        ratios = psi.kernel.xp.exp(log_targets - log_psi[:, None])
        return (psi.scheduler.asarray(coefficients) * ratios).sum(-1)

    def to_sparse(self, n_spins: int) -> sp.csr_matrix:
        """
        Matrix of the operator in the canonical basis (basis state k has the
        bits of k as spins). Only feasible for small N.
        """
        dim = 1 << n_spins
        spins = spins_from_indices(np.arange(dim), n_spins)
        targets, coefficients = self.connections(spins)

        rows = np.repeat(np.arange(dim), coefficients.shape[1])
        cols = indices_from_spins(targets).ravel()
        data = coefficients.ravel()
        # COO sums duplicate (row, col) entries, as the operator sum requires
        return sp.coo_matrix((data, (rows, cols)), shape=(dim, dim)).tocsr()

    def _check_spins(self, spins: np.ndarray, n_sites: int) -> np.ndarray:
        spins = np.asarray(spins, dtype=np.float64)
        if spins.ndim != 2:
            raise ConfigurationError(
                f"connections expects a (K, N) batch, got shape {spins.shape}"
            )
        if spins.shape[1] < n_sites:
            raise ConfigurationError(
                f"Operator acts on site {n_sites - 1} but configurations "
                f"have only {spins.shape[1]} spins"
            )
        return spins
