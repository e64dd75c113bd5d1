import unittest

import numpy as np

from mae_uncertainty.mae_engine import (
    FoldedNormalMAE,
    InvalidParameterError,
    SpreadComparison,
    ValidationConfig,
    ValidationResult,
    clean_mae,
    model_std_from_mae,
    run_validation,
    spread_comparison,
)


class TestCleanMAE(unittest.TestCase):

    def test_recovers_true_difference(self):
        sigma = np.hypot(0.18, 0.20)
        observed = FoldedNormalMAE().mean(0.25, sigma)
        self.assertAlmostEqual(clean_mae(observed, 0.18, 0.20), 0.25, places=4)

    def test_without_measurement_error(self):
        self.assertEqual(clean_mae(0.3, 0.0, 0.0), 0.3)

    def test_below_noise_floor_is_zero(self):
        self.assertEqual(clean_mae(0.1, 0.18, 0.20), 0.0)

    def test_large_difference_with_small_noise(self):
        observed = FoldedNormalMAE().mean(1.0, np.hypot(0.01, 0.01))
        self.assertAlmostEqual(clean_mae(observed, 0.01, 0.01), 1.0, places=3)

    def test_continuous_at_zero_noise(self):
        self.assertAlmostEqual(clean_mae(1.0, 1e-6, 0.0), clean_mae(1.0, 0.0, 0.0), places=5)

    def test_invalid_inputs(self):
        with self.assertRaises(InvalidParameterError):
            clean_mae(-0.2, 0.1, 0.1)
        with self.assertRaises(InvalidParameterError):
            clean_mae(0.2, -0.1, 0.1)
        with self.assertRaises(InvalidParameterError):
            clean_mae(0.2, 0.1, 0.1, n_grid=1)

    def test_model_std_from_mae(self):
        self.assertAlmostEqual(model_std_from_mae(0.5 * np.sqrt(2 / np.pi)), 0.5)
        self.assertAlmostEqual(model_std_from_mae(1.0), 1.2533141373155001)


class TestValidationExperiment(unittest.TestCase):

    def setUp(self):
        self.config = ValidationConfig(sampling_size=100_000)
        self.result = run_validation(self.config, np.random.default_rng(0))

    def test_real_mae_matches_model_error(self):
        expected = self.config.sigma_model * np.sqrt(2 / np.pi)
        self.assertAlmostEqual(self.result.real_mae, expected, delta=0.03 * expected)

    def test_wrong_mae_includes_measurement_noise(self):
        total = np.sqrt(self.config.sigma_model**2 + self.config.sigma_x**2
                        + self.config.sigma_y**2)
        expected = total * np.sqrt(2 / np.pi)
        self.assertAlmostEqual(self.result.wrong_mae, expected, delta=0.02 * expected)

    def test_clean_mae_is_closer_than_usual_mae(self):
        self.assertLess(abs(self.result.clean_mae - self.result.real_mae),
                        abs(self.result.wrong_mae - self.result.real_mae))
        self.assertGreater(self.result.improvement, 1.0)

    def test_model_std(self):
        self.assertAlmostEqual(self.result.model_std,
                               np.sqrt(np.pi / 2) * self.result.clean_mae)

    def test_reproducible(self):
        other = run_validation(self.config, np.random.default_rng(0))
        self.assertEqual(other, self.result)

    def test_invalid_config(self):
        rng = np.random.default_rng(0)
        with self.assertRaises(InvalidParameterError):
            run_validation(ValidationConfig(sampling_size=0), rng)
        with self.assertRaises(InvalidParameterError):
            run_validation(ValidationConfig(sigma_y=-0.2), rng)

    def test_improvement_when_exact(self):
        exact = ValidationResult(real_mae=0.1, wrong_mae=0.3, clean_mae=0.1, model_std=0.1)
        self.assertEqual(exact.improvement, float('inf'))


class TestSpreadComparison(unittest.TestCase):

    def test_observed_spread_change_differs(self):
        spread = spread_comparison(ValidationConfig(sampling_size=100_000),
                                   np.random.default_rng(1))
        self.assertAlmostEqual(spread.real_std[0], 4 / np.sqrt(12), delta=0.01)
        self.assertAlmostEqual(spread.real_std[1], 2 / np.sqrt(12), delta=0.01)
        self.assertGreater(spread.observed_std[0], spread.real_std[0])
        self.assertGreater(spread.observed_std[1], spread.real_std[1])
        self.assertLess(spread.observed_diff, spread.real_diff)

    def test_diffs(self):
        spread = SpreadComparison(real_std=(2.0, 1.5), observed_std=(2.1, 1.7))
        self.assertAlmostEqual(spread.real_diff, 0.5)
        self.assertAlmostEqual(spread.observed_diff, 0.4)


if __name__ == '__main__':
    unittest.main()
