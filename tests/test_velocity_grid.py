import math
import unittest

import numpy as np

from spectra_ccf.doppler import SPEED_OF_LIGHT_MPS, DopplerConvention, doppler_factor
from spectra_ccf.errors import PreconditionError
from spectra_ccf.velocity_grid import VelocityGrid


class TestVelocityGrid(unittest.TestCase):
    def test_from_center(self) -> None:
        grid = VelocityGrid.from_center(0.0, 100.0, 3)
        np.testing.assert_allclose(grid.values(), [-100.0, 0.0, 100.0])
        self.assertEqual(len(grid), 3)

    def test_from_center_even_length_is_centered(self) -> None:
        grid = VelocityGrid.from_center(1000.0, 250.0, 4)
        np.testing.assert_allclose(grid.values(), [625.0, 875.0, 1125.0, 1375.0])

    def test_from_range_includes_endpoint(self) -> None:
        grid = VelocityGrid.from_range(-100.0, 100.0, 50.0)
        np.testing.assert_allclose(grid.values(), [-100.0, -50.0, 0.0, 50.0, 100.0])
        self.assertEqual(grid.v_max, 100.0)

    def test_from_range_with_tenths(self) -> None:
        grid = VelocityGrid.from_range(-0.3, 0.3, 0.1)
        self.assertEqual(len(grid), 7)

    def test_from_range_stops_before_off_grid_max(self) -> None:
        grid = VelocityGrid.from_range(0.0, 130.0, 50.0)
        np.testing.assert_allclose(grid.values(), [0.0, 50.0, 100.0])

    def test_from_center_range_is_symmetric(self) -> None:
        grid = VelocityGrid.from_center_range(10.0, 100.0, 25.0)
        values = grid.values()
        self.assertEqual(len(grid), 9)
        self.assertAlmostEqual(values[0], -90.0)
        self.assertAlmostEqual(values[-1], 110.0)
        self.assertAlmostEqual(values[4], 10.0)

    def test_values_are_strictly_increasing_and_even(self) -> None:
        values = VelocityGrid.from_center(-3000.0, 410.0, 41).values()
        steps = np.diff(values)
        self.assertTrue(np.all(steps > 0))
        np.testing.assert_allclose(steps, 410.0)

    def test_values_are_restartable(self) -> None:
        grid = VelocityGrid.from_range(-500.0, 500.0, 100.0)
        np.testing.assert_array_equal(grid.values(), grid.values())

    def test_invalid_parameters_raise(self) -> None:
        with self.assertRaises(PreconditionError):
            VelocityGrid.from_center(0.0, 0.0, 5)
        with self.assertRaises(PreconditionError):
            VelocityGrid.from_center(0.0, 10.0, 0)
        with self.assertRaises(PreconditionError):
            VelocityGrid.from_range(100.0, -100.0, 10.0)
        with self.assertRaises(PreconditionError):
            VelocityGrid.from_center_range(0.0, -1.0, 10.0)

    def test_from_center_rejects_fractional_point_count(self) -> None:
        with self.assertRaises(PreconditionError):
            VelocityGrid.from_center(0.0, 10.0, 3.7)
        self.assertEqual(len(VelocityGrid.from_center(0.0, 10.0, 3.0)), 3)
        self.assertEqual(len(VelocityGrid.from_center(0.0, 10.0, np.int64(4))), 4)


class TestDopplerFactor(unittest.TestCase):
    def test_classical_is_default(self) -> None:
        self.assertEqual(doppler_factor(0.0), 1.0)
        self.assertAlmostEqual(doppler_factor(SPEED_OF_LIGHT_MPS * 1e-4), 1.0001)

    def test_custom_speed_of_light(self) -> None:
        self.assertAlmostEqual(doppler_factor(30.0, speed_of_light=300.0), 1.1)

    def test_relativistic(self) -> None:
        beta = 0.1
        expected = math.sqrt((1 + beta) / (1 - beta))
        got = doppler_factor(beta * SPEED_OF_LIGHT_MPS, convention=DopplerConvention.relativistic)
        self.assertAlmostEqual(got, expected)

    def test_relativistic_matches_classical_at_low_speed(self) -> None:
        v = 100.0
        rel = doppler_factor(v, convention=DopplerConvention.relativistic)
        self.assertAlmostEqual(rel, doppler_factor(v), places=12)

    def test_relativistic_rejects_superluminal(self) -> None:
        with self.assertRaises(PreconditionError):
            doppler_factor(SPEED_OF_LIGHT_MPS, convention=DopplerConvention.relativistic)


if __name__ == "__main__":
    unittest.main()
