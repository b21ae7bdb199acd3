# tests/test_operators.py
#
# ============================================================
# UNIT TESTS: Pauli Operators and the Transverse Field Ising Model
# ============================================================
#
# WHAT WE'RE TESTING:
#   An operator is only ever used through its rows (connections). The dense
#   matrices built with scipy make those rows checkable against textbook
#   Pauli matrices and their algebra.
#
# TEST STRATEGY:
#   1. Single-site matrices against the standard Pauli matrices in the
#      canonical basis (bit set = spin up = |0>).
#   2. Algebra: products and sums of strings.
#   3. TFIM: Hermitian, diagonal part equals the classical Ising energy.
#   4. local_values against the dense matrix-vector product.
#
# ============================================================

import sys
import os
import unittest
import numpy as np

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from nqs_distance import Psi, Spins, ConfigurationError
from nqs_distance.operators import (
    PauliOperator, TransverseFieldIsing, sigma_x, sigma_y, sigma_z,
)
from nqs_distance.spins import all_configurations


# Standard matrices in the basis (|up>, |down>)
_X = np.array([[0, 1], [1, 0]], dtype=complex)
_Y = np.array([[0, -1j], [1j, 0]], dtype=complex)
_Z = np.array([[1, 0], [0, -1]], dtype=complex)


def _single_spin_matrix(op):
    """
    Dense matrix of a one-spin operator in (|up>, |down>) order. The
    canonical basis has index 1 = up and index 0 = down, hence the reversal.
    """
    dense = op.to_sparse(1).toarray()
    return dense[::-1, ::-1]


# ============================================================
# SECTION: Single-Site Pauli Matrices
# ============================================================

class TestPauliMatrices(unittest.TestCase):

    def test_sigma_x(self):
        np.testing.assert_allclose(_single_spin_matrix(sigma_x(0)), _X)

    def test_sigma_y(self):
        np.testing.assert_allclose(_single_spin_matrix(sigma_y(0)), _Y)

    def test_sigma_z(self):
        np.testing.assert_allclose(_single_spin_matrix(sigma_z(0)), _Z)

    def test_identity(self):
        np.testing.assert_allclose(PauliOperator.identity().to_sparse(3).toarray(), np.eye(8))

    def test_unknown_pauli_rejected(self):
        with self.assertRaises(ConfigurationError):
            PauliOperator([(1.0, {0: 'w'})])

    def test_site_outside_configuration(self):
        with self.assertRaises(ConfigurationError):
            sigma_x(4).connections(all_configurations(3))


# ============================================================
# SECTION: Algebra
# ============================================================

class TestPauliAlgebra(unittest.TestCase):

    def test_y_equals_i_x_z(self):
        """sigma_y = i sigma_x sigma_z."""
        product = 1j * (sigma_x(0) @ sigma_z(0))
        np.testing.assert_allclose(product.to_sparse(2).toarray(),
                                   sigma_y(0).to_sparse(2).toarray())

    def test_squares_are_identity(self):
        for op in (sigma_x(1), sigma_y(1), sigma_z(1)):
            np.testing.assert_allclose((op @ op).to_sparse(2).toarray(), np.eye(4))

    def test_product_matches_matrix_product(self):
        a = sigma_x(0) + 0.5 * sigma_z(1)
        b = sigma_y(1) - 2.0 * sigma_x(0)
        dense = (a @ b).to_sparse(2).toarray()
        expected = a.to_sparse(2).toarray() @ b.to_sparse(2).toarray()
        np.testing.assert_allclose(dense, expected, atol=1e-12)

    def test_different_sites_commute(self):
        ab = (sigma_x(0) @ sigma_z(1)).to_sparse(2).toarray()
        ba = (sigma_z(1) @ sigma_x(0)).to_sparse(2).toarray()
        np.testing.assert_allclose(ab, ba)

    def test_n_sites(self):
        self.assertEqual((sigma_x(0) + sigma_z(3)).n_sites, 4)
        self.assertEqual(PauliOperator.identity().n_sites, 0)


# ============================================================
# SECTION: Transverse Field Ising Model
# ============================================================

class TestTransverseFieldIsing(unittest.TestCase):

    def setUp(self):
        self.N = 4
        self.H = TransverseFieldIsing(n_spins=self.N, J=1.0, gamma=0.7)
        self.dense = self.H.to_sparse(self.N).toarray()

    def test_hermitian(self):
        np.testing.assert_allclose(self.dense, self.dense.conj().T)

    def test_diagonal_is_classical_energy(self):
        """<s|H|s> = -J sum_i s_i s_{i+1} (periodic); the field is off-diagonal."""
        configs = all_configurations(self.N)
        expected = -np.sum(configs * np.roll(configs, -1, axis=1), axis=1)
        np.testing.assert_allclose(np.diag(self.dense).real, expected)

    def test_transverse_field_elements(self):
        """Each single flip connects with amplitude -gamma."""
        s = Spins(0b0110, self.N)
        for position in range(self.N):
            t = s.flip(position)
            self.assertAlmostEqual(self.dense[s.configuration, t.configuration], -0.7)

    def test_apply_lists_connected_configurations(self):
        s = Spins(0b0000, self.N)
        entries = self.H.apply(s)
        flipped = {t for t, _ in entries if t != s}
        self.assertEqual(flipped, {s.flip(i) for i in range(self.N)})
        diagonal = sum(c for t, c in entries if t == s)
        self.assertAlmostEqual(diagonal, -self.N * 1.0)

    def test_not_unitary(self):
        product = self.dense.conj().T @ self.dense
        self.assertFalse(np.allclose(product, np.eye(2 ** self.N)))


# ============================================================
# SECTION: Local Values
# ============================================================

class TestLocalValues(unittest.TestCase):

    def test_local_values_match_dense_product(self):
        N = 4
        psi = Psi(n_spins=N, n_hidden=3, seed=6, noise=0.3)
        op = TransverseFieldIsing(n_spins=N, J=0.8, gamma=1.3) + 0.5j * sigma_y(2)
        configs = all_configurations(N)

        vector = psi.as_vector()
        expected = (op.to_sparse(N) @ vector) / vector

        log_psi = psi._log_psi(psi._backend(configs))
        local = op.local_values(psi, configs, log_psi)
        np.testing.assert_allclose(local, expected, rtol=1e-10)


if __name__ == '__main__':
    unittest.main(verbosity=2)
