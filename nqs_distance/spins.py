# nqs_distance/spins.py
#
# Spin configurations in the sigma^z basis.
#
# A configuration of N spins is bit-packed into one integer: bit i set means
# spin i is +1 (up), bit i clear means -1 (down). The same convention fixes
# the canonical basis order used by ExactSummation, Psi.as_vector and
# Operator.to_sparse: basis state k is the configuration whose bits are k.
#
# Kernels work on +/-1 arrays of shape (..., N); the Spins class is the
# scalar view used at the API boundary (operator application, single
# evaluations).

import numpy as np

from .config import MAX_SPINS
from .errors import ConfigurationError


# ============================================================
# Single Configuration
# ============================================================

class Spins:
    """
    One bit-packed spin configuration.

    Immutable: flip() returns a new object.
    """

    __slots__ = ('configuration', 'n_spins')

    def __init__(self, configuration: int, n_spins: int):
        if not 0 < n_spins <= MAX_SPINS:
            raise ConfigurationError(
                f"n_spins must be in [1, {MAX_SPINS}], got {n_spins}"
            )
        if not 0 <= configuration < (1 << n_spins):
            raise ConfigurationError(
                f"configuration {configuration} does not fit in {n_spins} spins"
            )
        self.configuration = int(configuration)
        self.n_spins = int(n_spins)

    @classmethod
    def from_array(cls, values) -> 'Spins':
        """Pack a +/-1 array into a Spins object."""
        values = np.asarray(values)
        if values.ndim != 1:
            raise ConfigurationError("Spins.from_array expects a 1D array")
        return cls(int(indices_from_spins(values)), len(values))

    def __getitem__(self, position: int) -> int:
        if not 0 <= position < self.n_spins:
            raise IndexError(f"spin index {position} out of range")
        return 1 if (self.configuration >> position) & 1 else -1

    def __len__(self) -> int:
        return self.n_spins

    def flip(self, position: int) -> 'Spins':
        """Return the configuration with spin `position` reversed."""
        if not 0 <= position < self.n_spins:
            raise IndexError(f"spin index {position} out of range")
        return Spins(self.configuration ^ (1 << position), self.n_spins)

    def to_array(self) -> np.ndarray:
        """+/-1 values as a float array of shape (n_spins,)."""
        return spins_from_indices(self.configuration, self.n_spins)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Spins):
            return NotImplemented
        return (self.configuration == other.configuration
                and self.n_spins == other.n_spins)

    def __hash__(self) -> int:
        return hash((self.configuration, self.n_spins))

    def __repr__(self) -> str:
        bits = ''.join('+' if self[i] > 0 else '-' for i in range(self.n_spins))
        return f"Spins({bits})"


# ============================================================
# Vectorized Conversions
# ============================================================

def spins_from_indices(indices, n_spins: int) -> np.ndarray:
    """
    Convert basis indices to +/-1 spin arrays.

    Args:
        indices: int or integer array of shape (K,).
        n_spins: number of spins N.

    Returns:
        float64 array of shape (N,) or (K, N).
    """
    indices = np.asarray(indices, dtype=np.int64)
    bits = (indices[..., None] >> np.arange(n_spins, dtype=np.int64)) & 1
    return (2 * bits - 1).astype(np.float64)


def indices_from_spins(spins) -> np.ndarray:
    """Inverse of spins_from_indices: (..., N) +/-1 array -> (...,) indices."""
    spins = np.asarray(spins)
    bits = (spins > 0).astype(np.int64)
    powers = np.int64(1) << np.arange(spins.shape[-1], dtype=np.int64)
    return bits @ powers


def all_configurations(n_spins: int) -> np.ndarray:
    """All 2^N configurations in canonical (binary counting) order."""
    if not 0 < n_spins <= MAX_SPINS:
        raise ConfigurationError(
            f"n_spins must be in [1, {MAX_SPINS}], got {n_spins}"
        )
    return spins_from_indices(np.arange(1 << n_spins, dtype=np.int64), n_spins)


def flip_spins(spins: np.ndarray, position: int) -> np.ndarray:
    """Copy of a (..., N) spin array with spin `position` reversed."""
    flipped = np.array(spins, copy=True)
    flipped[..., position] *= -1
    return flipped


def as_spin_array(spins) -> np.ndarray:
    """Accept a Spins object or a +/-1 array-like and return a float array."""
    if isinstance(spins, Spins):
        return spins.to_array()
    return np.asarray(spins, dtype=np.float64)
