# nqs_distance/operators/pauli.py
#
# Operators built from Pauli strings:
#
#   O = sum_t c_t * prod_{i in string_t} sigma_i^{p}     p in {x, y, z}
#
# Each string maps a basis state to exactly one basis state, so every term
# contributes one connection per configuration. With spin +1 = |up> and the
# standard Pauli matrices, the row of a string at configuration s is:
#
#   x on site i:  flips s_i, factor 1
#   y on site i:  flips s_i, factor -i * s_i
#   z on site i:  keeps s_i, factor s_i
#
# Single Pauli strings are unitary; sums of them in general are not (the
# transverse field Ising model below is an example).

import numpy as np

from .base import Operator
from ..errors import ConfigurationError


_PAULIS = ('x', 'y', 'z')

# sigma_a sigma_b = i eps_abc sigma_c for a != b
_PRODUCTS = {
    ('x', 'y'): (1j, 'z'), ('y', 'x'): (-1j, 'z'),
    ('y', 'z'): (1j, 'x'), ('z', 'y'): (-1j, 'x'),
    ('z', 'x'): (1j, 'y'), ('x', 'z'): (-1j, 'y'),
}


def _multiply_strings(left: dict, right: dict):
    """Product of two Pauli strings as (phase, string)."""
    phase = 1.0 + 0j
    result = dict(left)
    for site, p in right.items():
        q = result.pop(site, None)
        if q is None:
            result[site] = p
        elif q != p:
            factor, r = _PRODUCTS[(q, p)]
            phase *= factor
            result[site] = r
    return phase, result


class PauliOperator(Operator):
    """
    Linear combination of Pauli strings.

    Args:
        terms: iterable of (coefficient, {site: 'x' | 'y' | 'z'}); the empty
               string is the identity.
    """

    def __init__(self, terms=()):
        self.terms = []
        for coefficient, string in terms:
            string = {int(site): str(p).lower() for site, p in dict(string).items()}
            for site, p in string.items():
                if p not in _PAULIS:
                    raise ConfigurationError(f"Unknown Pauli matrix '{p}' on site {site}")
                if site < 0:
                    raise ConfigurationError(f"Negative site index {site}")
            self.terms.append((complex(coefficient), string))

    @classmethod
    def identity(cls, coefficient: complex = 1.0) -> 'PauliOperator':
        return cls([(coefficient, {})])

    @property
    def n_sites(self) -> int:
        """Smallest number of spins the operator can act on."""
        sites = [site for _, string in self.terms for site in string]
        return max(sites) + 1 if sites else 0

    # --------------------------------------------------------
    # Algebra
    # --------------------------------------------------------

    def __add__(self, other: 'PauliOperator') -> 'PauliOperator':
        if not isinstance(other, PauliOperator):
            return NotImplemented
        return PauliOperator(self.terms + other.terms)

    def __mul__(self, scalar) -> 'PauliOperator':
        if not np.isscalar(scalar):
            return NotImplemented
        return PauliOperator([(scalar * c, s) for c, s in self.terms])

    __rmul__ = __mul__

    def __neg__(self) -> 'PauliOperator':
        return -1.0 * self

    def __sub__(self, other: 'PauliOperator') -> 'PauliOperator':
        return self + (-other)

    def __matmul__(self, other: 'PauliOperator') -> 'PauliOperator':
        """Operator product: (A @ B) psi = A (B psi)."""
        if not isinstance(other, PauliOperator):
            return NotImplemented
        terms = []
        for c_left, s_left in self.terms:
            for c_right, s_right in other.terms:
                phase, string = _multiply_strings(s_left, s_right)
                terms.append((c_left * c_right * phase, string))
        return PauliOperator(terms)

    # --------------------------------------------------------
    # Rows
    # --------------------------------------------------------

    def connections(self, spins: np.ndarray):
        spins = self._check_spins(spins, self.n_sites)
        n_samples, n_spins = spins.shape
        n_terms = len(self.terms)

        targets = np.repeat(spins[:, None, :], n_terms, axis=1)
        coefficients = np.empty((n_samples, n_terms), dtype=np.complex128)

        for t, (c, string) in enumerate(self.terms):
            factor = np.full(n_samples, c, dtype=np.complex128)
            for site, p in string.items():
                if p == 'x':
                    targets[:, t, site] *= -1
                elif p == 'y':
                    factor *= -1j * spins[:, site]
                    targets[:, t, site] *= -1
                else:
                    factor *= spins[:, site]
            coefficients[:, t] = factor

        return targets, coefficients

    def __repr__(self) -> str:
        return f"PauliOperator(n_terms={len(self.terms)}, n_sites={self.n_sites})"


def sigma_x(site: int) -> PauliOperator:
    return PauliOperator([(1.0, {site: 'x'})])


def sigma_y(site: int) -> PauliOperator:
    return PauliOperator([(1.0, {site: 'y'})])


def sigma_z(site: int) -> PauliOperator:
    return PauliOperator([(1.0, {site: 'z'})])
