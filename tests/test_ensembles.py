# tests/test_ensembles.py
#
# ============================================================
# UNIT TESTS: Exact Summation and Metropolis Sampling
# ============================================================
#
# WHAT WE'RE TESTING:
#   Both ensembles describe |psi(s)|^2 / <psi|psi>. Exact summation must
#   reproduce it exactly; the Monte Carlo loop only statistically.
#
# TEST STRATEGY:
#   1. ExactSummation: weights are the normalized probabilities, and stay
#      finite when log psi is huge.
#   2. MonteCarloLoop: shapes, +/-1 values, acceptance rate in [0, 1],
#      reproducibility from the seed, and a loose agreement of a sampled
#      average with its exact value.
#
# NOTE ON TESTING MCMC:
#   The statistical check uses a small system, many samples and a generous
#   tolerance, so it is stable while still catching a sampler that does not
#   sample |psi|^2 at all (e.g. a wrong acceptance ratio).
#
# ============================================================

import sys
import os
import unittest
import numpy as np

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from nqs_distance import Psi, ExactSummation, MonteCarloLoop, ConfigurationError


# ============================================================
# SECTION: Exact Summation
# ============================================================

class TestExactSummation(unittest.TestCase):

    def setUp(self):
        self.psi = Psi(n_spins=4, n_hidden=3, seed=1, noise=0.5)
        self.ensemble = ExactSummation(4)

    def test_weights_are_normalized_probabilities(self):
        spins, weights = self.ensemble.draw(self.psi)
        self.assertEqual(spins.shape, (16, 4))
        self.assertAlmostEqual(np.sum(weights), 1.0, places=12)
        probabilities = np.abs(self.psi.as_vector()) ** 2
        np.testing.assert_allclose(weights, probabilities / probabilities.sum(), rtol=1e-10)

    def test_enumerate_counts_configurations(self):
        spins, weights = self.ensemble.enumerate()
        self.assertEqual(self.ensemble.num_configurations, 16)
        np.testing.assert_array_equal(weights, np.ones(16))

    def test_large_log_amplitudes_do_not_overflow(self):
        """A visible bias of 300 per spin gives |psi|^2 ~ e^2400 at the peak."""
        psi = Psi.from_arrays(a=np.full(4, 300.0), b=np.zeros(1), W=np.zeros((4, 1)))
        _, weights = self.ensemble.draw(psi)
        self.assertTrue(np.all(np.isfinite(weights)))
        self.assertAlmostEqual(weights[-1], 1.0, places=12)

    def test_spin_count_mismatch(self):
        with self.assertRaises(ConfigurationError):
            ExactSummation(3).draw(self.psi)


# ============================================================
# SECTION: Monte Carlo Loop
# ============================================================

class TestMonteCarloLoop(unittest.TestCase):

    def setUp(self):
        self.psi = Psi(n_spins=4, n_hidden=3, seed=2, noise=0.3)

    def test_output_shape_and_values(self):
        mc = MonteCarloLoop(n_spins=4, n_samples=100, n_chains=8, n_burn=10, seed=0)
        spins, weights = mc.draw(self.psi)
        # rounded up to a multiple of n_chains
        self.assertEqual(spins.shape, (104, 4))
        self.assertTrue(np.all(np.abs(spins) == 1.0))
        self.assertAlmostEqual(np.sum(weights), 1.0, places=12)

    def test_acceptance_rate_in_range(self):
        mc = MonteCarloLoop(n_spins=4, n_samples=64, n_chains=8, n_burn=10, seed=0)
        self.assertEqual(mc.acceptance_rate, 0.0)
        mc.draw(self.psi)
        self.assertGreaterEqual(mc.acceptance_rate, 0.0)
        self.assertLessEqual(mc.acceptance_rate, 1.0)
        self.assertGreater(mc.acceptance_rate, 0.0)

        mc.reset_acceptance_stats()
        self.assertEqual(mc.acceptance_rate, 0.0)

    def test_reproducible_from_seed(self):
        a = MonteCarloLoop(n_spins=4, n_samples=32, n_chains=4, seed=7).draw(self.psi)[0]
        b = MonteCarloLoop(n_spins=4, n_samples=32, n_chains=4, seed=7).draw(self.psi)[0]
        np.testing.assert_array_equal(a, b)

    def test_magnetization_matches_exact(self):
        """Sampled <sum_i s_i> under |psi|^2 agrees with exact summation."""
        psi = Psi.from_arrays(a=np.array([0.4, -0.2, 0.3, 0.1]),
                              b=np.zeros(2), W=np.full((4, 2), 0.1))
        spins, weights = ExactSummation(4).draw(psi)
        exact = np.sum(weights * spins.sum(axis=1))

        mc = MonteCarloLoop(n_spins=4, n_samples=20000, n_chains=32, n_burn=200, seed=3)
        spins, weights = mc.draw(psi)
        sampled = np.sum(weights * spins.sum(axis=1))
        self.assertAlmostEqual(sampled, exact, delta=0.1)

    def test_enumerate_estimates_norm(self):
        """Uniform sampling: sum of weights * |psi|^2 estimates <psi|psi>."""
        mc = MonteCarloLoop(n_spins=4, n_samples=20000, seed=4)
        exact = self.psi.norm(ExactSummation(4))
        self.assertAlmostEqual(self.psi.norm(mc) / exact, 1.0, delta=0.05)

    def test_invalid_sizes(self):
        with self.assertRaises(ConfigurationError):
            MonteCarloLoop(n_spins=4, n_samples=0)


if __name__ == '__main__':
    unittest.main(verbosity=2)
