# tests/test_kernel.py
#
# ============================================================
# UNIT TESTS: RBM Kernels (log amplitude, angles, log-derivatives)
# ============================================================
#
# WHAT WE'RE TESTING:
#   The kernels hold the only copy of the wavefunction math. Both execution
#   paths and the distance gradient are built on three things:
#     - logcosh, which must stay finite where log(cosh(x)) overflows
#     - the O(M) angle update after a single spin flip
#     - the log-derivatives O_k = d log psi / d theta_k
#
# TEST STRATEGY:
#   1. logcosh against the naive formula where the latter is valid, and
#      finiteness far outside that range.
#   2. Flip update against recomputing the angles from scratch.
#   3. FINITE-DIFFERENCE CHECK of O_k for every active parameter. psi is
#      holomorphic in its complex parameters, so a real step eps and an
#      imaginary step i*eps must give O_k and i*O_k respectively.
#
# ============================================================

import sys
import os
import unittest
import numpy as np

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from nqs_distance import Psi
from nqs_distance.ansatz import logcosh
from nqs_distance.spins import all_configurations, flip_spins


def _finite_difference_O_k(psi, spins, step):
    """
    Central differences of log psi along `step * e_k` for each active k,
    divided by |step|. Returns shape (K, num_active_params).
    """
    eps = abs(step)
    start = psi.parameters
    numerical = np.zeros((len(spins), psi.num_active_params), dtype=np.complex128)
    for k in range(psi.num_active_params):
        delta = np.zeros(psi.num_params, dtype=np.complex128)
        delta[k] = step
        psi.parameters = start + delta
        forward = psi.log_psi(spins)
        psi.parameters = start - delta
        backward = psi.log_psi(spins)
        numerical[:, k] = (forward - backward) / (2.0 * eps)
    psi.parameters = start
    return numerical


# ============================================================
# SECTION: logcosh
# ============================================================

class TestLogcosh(unittest.TestCase):

    def test_matches_naive_formula(self):
        """
        logcosh is a logarithm of cosh, not necessarily the principal one:
        its imaginary part may differ from np.log(np.cosh(x)) by 2 pi.
        """
        rng = np.random.default_rng(0)
        x = rng.normal(size=50) * 3 + 1j * rng.normal(size=50) * 3
        values = logcosh(x)
        np.testing.assert_allclose(np.exp(values), np.cosh(x), rtol=1e-10)
        np.testing.assert_allclose(values.real, np.log(np.abs(np.cosh(x))), atol=1e-10)
        phase = np.angle(np.exp(1j * (values.imag - np.log(np.cosh(x)).imag)))
        np.testing.assert_allclose(phase, 0.0, atol=1e-10)

    def test_even_function(self):
        x = np.array([0.3 + 0.7j, -2.0 + 0.1j, 5.0 - 3.0j])
        np.testing.assert_allclose(logcosh(x), logcosh(-x), atol=1e-12)

    def test_finite_for_large_arguments(self):
        """Naive log(cosh(x)) overflows past Re(x) ~ 710; logcosh does not."""
        x = np.array([1000.0 + 0.5j, -5000.0 + 0.0j, 1e5 - 2.0j])
        values = logcosh(x)
        self.assertTrue(np.all(np.isfinite(values)))
        # log cosh(x) -> |Re x| - log 2 for large |Re x|
        np.testing.assert_allclose(values.real, np.abs(x.real) - np.log(2.0), rtol=1e-12)

    def test_zero(self):
        self.assertAlmostEqual(complex(logcosh(np.array([0j]))[0]), 0j, places=14)


# ============================================================
# SECTION: Angles and Flip Updates
# ============================================================

class TestAngles(unittest.TestCase):

    def setUp(self):
        self.psi = Psi(n_spins=5, n_hidden=3, seed=11, noise=0.4)
        self.spins = all_configurations(5)

    def test_angles_definition(self):
        a = self.psi.kernel
        expected = a.b + self.spins @ a.W
        np.testing.assert_allclose(self.psi.angles(self.spins), expected, atol=1e-12)

    def test_single_angle(self):
        s = self.spins[13]
        angles = self.psi.angles(s)
        for j in range(self.psi.n_hidden):
            self.assertAlmostEqual(self.psi.kernel.angle(j, s), angles[j], places=12)

    def test_flip_update_matches_recomputation(self):
        angles = self.psi.angles(self.spins)
        for position in range(5):
            flipped = flip_spins(self.spins, position)
            updated = self.psi.flip_spin_angle_update(angles, position, flipped)
            np.testing.assert_allclose(updated, self.psi.angles(flipped), atol=1e-12)

    def test_log_psi_from_updated_angles(self):
        angles = self.psi.angles(self.spins)
        flipped = flip_spins(self.spins, 2)
        updated = self.psi.flip_spin_angle_update(angles, 2, flipped)
        np.testing.assert_allclose(
            self.psi.log_psi_from_angles(flipped, updated),
            self.psi.log_psi(flipped), atol=1e-12,
        )


# ============================================================
# SECTION: Log-Derivatives (fixed visible bias)
# ============================================================

class TestRBMDerivatives(unittest.TestCase):

    def setUp(self):
        self.psi = Psi(n_spins=3, n_hidden=2, seed=5, noise=0.3)
        self.spins = all_configurations(3)

    def test_num_params(self):
        N, M = 3, 2
        self.assertEqual(self.psi.num_active_params, N + M + N * M)
        self.assertEqual(self.psi.num_params, N + M + N * M + M)

    def test_block_layout(self):
        """O_k blocks: [s | tanh(angle) | tanh(angle_j) * s_i row-major]."""
        s = self.spins[5]
        O_k = self.psi.O_k_vector(s)
        t = np.tanh(self.psi.angles(s))
        np.testing.assert_allclose(O_k[:3], s)
        np.testing.assert_allclose(O_k[3:5], t)
        np.testing.assert_allclose(O_k[5:], np.outer(s, t).ravel())

    def test_finite_difference_real_step(self):
        numerical = _finite_difference_O_k(self.psi, self.spins, 1e-6)
        np.testing.assert_allclose(
            self.psi.O_k_matrix(self.spins), numerical, rtol=1e-5, atol=1e-8,
        )

    def test_finite_difference_imaginary_step(self):
        """d/d(Im theta) log psi = i * O_k for a holomorphic ansatz."""
        numerical = _finite_difference_O_k(self.psi, self.spins, 1e-6j)
        np.testing.assert_allclose(
            1j * self.psi.O_k_matrix(self.spins), numerical, rtol=1e-5, atol=1e-8,
        )

    def test_derivative_element_matches_vector(self):
        s = self.spins[6]
        kernel = self.psi.kernel
        O_k = self.psi.O_k_vector(s)
        t = np.tanh(kernel.angles(s))
        for k in range(self.psi.num_active_params):
            self.assertAlmostEqual(kernel.derivative_element(k, s, t), O_k[k], places=12)

    def test_derivative_element_out_of_range_is_zero(self):
        s = self.spins[0]
        t = np.tanh(self.psi.kernel.angles(s))
        self.assertEqual(self.psi.kernel.derivative_element(self.psi.num_active_params, s, t), 0j)
        self.assertEqual(self.psi.kernel.derivative_element(10 ** 6, s, t), 0j)


# ============================================================
# SECTION: Log-Derivatives (free quantum axis)
# ============================================================

class TestFreeAxisDerivatives(unittest.TestCase):

    def setUp(self):
        self.psi = Psi(n_spins=3, n_hidden=2, seed=8, noise=0.3, free_quaxis=True)
        self.spins = all_configurations(3)

    def test_num_params(self):
        N, M = 3, 2
        self.assertEqual(self.psi.num_active_params, 2 * N + M + N * M)

    def test_visible_factor(self):
        """psi at all spins down, zero hidden layer, is prod e^{i beta} sin(alpha/2)."""
        alpha = np.array([0.3, 1.2, 2.0])
        beta = np.array([0.1, -0.4, 0.7])
        psi = Psi.from_arrays(b=np.zeros(1), W=np.zeros((3, 1)), alpha=alpha, beta=beta)
        down = -np.ones(3)
        expected = np.prod(np.exp(1j * beta) * np.sin(alpha / 2))
        self.assertAlmostEqual(psi.psi_s(down), expected, places=12)
        up = np.ones(3)
        self.assertAlmostEqual(psi.psi_s(up), np.prod(np.cos(alpha / 2)), places=12)

    def test_visible_factor_outside_principal_range(self):
        """
        For alpha outside (0, pi) a visible factor is negative. Its log picks
        up i pi, so psi keeps its sign instead of turning into nan.
        """
        alpha = np.array([3.5, 1.0, -0.4])
        beta = np.array([0.0, 0.3, -0.2])
        psi = Psi.from_arrays(b=np.zeros(1), W=np.zeros((3, 1)), alpha=alpha, beta=beta)
        for s in all_configurations(3):
            factors = np.where(s > 0, np.cos(alpha / 2), np.exp(1j * beta) * np.sin(alpha / 2))
            self.assertTrue(np.isfinite(psi.log_psi_s(s)))
            self.assertAlmostEqual(psi.psi_s(s), np.prod(factors), places=12)

    def test_finite_difference_outside_principal_range(self):
        rng = np.random.default_rng(3)
        psi = Psi.from_arrays(
            b=0.3 * (rng.normal(size=2) + 1j * rng.normal(size=2)),
            W=0.3 * (rng.normal(size=(3, 2)) + 1j * rng.normal(size=(3, 2))),
            alpha=[3.5, 1.0, -0.4], beta=[0.0, 0.5, -0.1],
        )
        analytical = psi.O_k_matrix(self.spins)
        numerical = _finite_difference_O_k(psi, self.spins, 1e-6)
        np.testing.assert_allclose(analytical, numerical, rtol=1e-5, atol=1e-8)

    def test_finite_difference(self):
        """
        The axis angles are real, so they are stepped with a real step only;
        the hidden block is stepped with both.
        """
        analytical = self.psi.O_k_matrix(self.spins)
        numerical = _finite_difference_O_k(self.psi, self.spins, 1e-6)
        np.testing.assert_allclose(analytical, numerical, rtol=1e-5, atol=1e-8)

        hidden = slice(6, self.psi.num_active_params)
        start = self.psi.parameters
        numerical_imag = np.zeros_like(analytical)
        for k in range(hidden.start, hidden.stop):
            delta = np.zeros(self.psi.num_params, dtype=np.complex128)
            delta[k] = 1e-6j
            self.psi.parameters = start + delta
            forward = self.psi.log_psi(self.spins)
            self.psi.parameters = start - delta
            backward = self.psi.log_psi(self.spins)
            numerical_imag[:, k] = (forward - backward) / 2e-6
        self.psi.parameters = start
        np.testing.assert_allclose(
            1j * analytical[:, hidden], numerical_imag[:, hidden], rtol=1e-5, atol=1e-8,
        )

    def test_axis_derivatives_cover_visible_block(self):
        alpha_up, alpha_down, beta_up, beta_down = self.psi.kernel.axis_derivatives()
        for s in self.spins:
            O_k = self.psi.O_k_vector(s)
            np.testing.assert_allclose(O_k[:3], np.where(s > 0, alpha_up, alpha_down))
            np.testing.assert_allclose(O_k[3:6], np.where(s > 0, beta_up, beta_down))


if __name__ == '__main__':
    unittest.main(verbosity=2)
