import unittest

from spectra_ccf.doppler import SPEED_OF_LIGHT_MPS
from spectra_ccf.errors import PreconditionError
from spectra_ccf.masks import GaussianMask, MaskShapeKind, TopHatMask, make_mask_shape


class TestTopHatMask(unittest.TestCase):
    def test_bounds_are_symmetric_about_center(self) -> None:
        shape = TopHatMask(half_width=2500.0)
        for center in (3000.0, 5000.123, 8000.5, 15000.0):
            upper = shape.upper_bound(center) - center
            lower = center - shape.lower_bound(center)
            self.assertAlmostEqual(upper, lower, delta=1e-12 * center)
            self.assertLess(shape.lower_bound(center), center)
            self.assertGreater(shape.upper_bound(center), center)

    def test_bounds_scale_with_half_width(self) -> None:
        shape = TopHatMask(half_width=3000.0)
        self.assertAlmostEqual(shape.upper_bound(5000.0) - 5000.0, 5000.0 * 3000.0 / SPEED_OF_LIGHT_MPS)

    def test_integrate_full_support_is_one(self) -> None:
        shape = TopHatMask(half_width=400.0)
        self.assertAlmostEqual(shape.integrate(-400.0, 400.0), 1.0)
        self.assertAlmostEqual(shape.integrate(-1e6, 1e6), 1.0)

    def test_integrate_disjoint_is_zero(self) -> None:
        shape = TopHatMask(half_width=400.0)
        self.assertEqual(shape.integrate(500.0, 900.0), 0.0)
        self.assertEqual(shape.integrate(-900.0, -401.0), 0.0)
        self.assertEqual(shape.integrate(100.0, 100.0), 0.0)

    def test_integrate_is_linear_overlap_and_additive(self) -> None:
        shape = TopHatMask(half_width=400.0)
        self.assertAlmostEqual(shape.integrate(0.0, 200.0), 0.25)
        self.assertAlmostEqual(shape.integrate(-600.0, -200.0), 0.25)
        total = shape.integrate(-400.0, -50.0) + shape.integrate(-50.0, 130.0) + shape.integrate(130.0, 400.0)
        self.assertAlmostEqual(total, 1.0)

    def test_rejects_non_positive_width(self) -> None:
        with self.assertRaises(PreconditionError):
            TopHatMask(half_width=0.0)
        with self.assertRaises(PreconditionError):
            TopHatMask(half_width=2.0 * SPEED_OF_LIGHT_MPS)

    def test_from_full_width(self) -> None:
        self.assertAlmostEqual(TopHatMask.from_full_width(820.0).half_width, 410.0)


class TestGaussianMask(unittest.TestCase):
    def test_integrate_full_support_is_one(self) -> None:
        shape = GaussianMask(sigma=1000.0, n_sigma=2.5)
        self.assertAlmostEqual(shape.integrate(-2500.0, 2500.0), 1.0)
        self.assertAlmostEqual(shape.integrate(-1e9, 1e9), 1.0)

    def test_integrate_halves_are_equal(self) -> None:
        shape = GaussianMask(sigma=800.0)
        self.assertAlmostEqual(shape.integrate(-1e5, 0.0), 0.5)
        self.assertAlmostEqual(shape.integrate(0.0, 1e5), 0.5)

    def test_core_holds_more_mass_than_wings(self) -> None:
        shape = GaussianMask(sigma=800.0)
        self.assertGreater(shape.integrate(-400.0, 400.0), shape.integrate(1200.0, 2000.0))

    def test_support_is_truncated(self) -> None:
        shape = GaussianMask(sigma=100.0, n_sigma=3.0)
        self.assertEqual(shape.velocity_support(), (-300.0, 300.0))
        self.assertEqual(shape.integrate(300.0, 1000.0), 0.0)


class TestMakeMaskShape(unittest.TestCase):
    def test_builds_by_name_and_kind(self) -> None:
        tophat = make_mask_shape("tophat", half_width=500.0)
        self.assertIsInstance(tophat, TopHatMask)
        gaussian = make_mask_shape(MaskShapeKind.gaussian, sigma=300.0)
        self.assertIsInstance(gaussian, GaussianMask)
        self.assertIs(gaussian.kind, MaskShapeKind.gaussian)

    def test_unknown_kind_raises(self) -> None:
        with self.assertRaises(PreconditionError):
            make_mask_shape("supergaussian", width=1.0)


if __name__ == "__main__":
    unittest.main()
