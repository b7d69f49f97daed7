import threading
import unittest
from unittest.mock import patch

import numpy as np

from spectra_ccf.bulk import (
    _ccf_chunk_worker,
    _default_max_workers,
    calc_ccf_and_var_chunklist,
    calc_ccf_chunklist,
)
from spectra_ccf.ccf import compute_ccf, compute_ccf_with_variance
from spectra_ccf.errors import PreconditionError
from spectra_ccf.masks import TopHatMask
from spectra_ccf.models import CCFPlan, LineList, SpectrumChunk
from spectra_ccf.velocity_grid import VelocityGrid

GRID = VelocityGrid.from_center(0.0, 500.0, 11)


def _chunk(start: float, line_centers) -> SpectrumChunk:
    lam = start + 0.01 * np.arange(600)
    flux = np.ones_like(lam)
    for center in line_centers:
        flux -= 0.5 * np.exp(-0.5 * ((lam - center) / 0.04) ** 2)
    return SpectrumChunk(wavelength=lam, flux=flux, variance=np.full(lam.size, 0.02))


def _plan(centers, grid: VelocityGrid = GRID) -> CCFPlan:
    return CCFPlan(
        line_list=LineList(np.asarray(centers, dtype=float), np.ones(len(centers))),
        mask_shape=TopHatMask(half_width=2000.0),
        velocity_grid=grid,
    )


class TestChunkAggregation(unittest.TestCase):
    def setUp(self) -> None:
        self.chunks = [_chunk(5000.0, [5002.1]), _chunk(5010.0, [5012.4, 5014.0]), _chunk(5020.0, [])]
        self.plans = [_plan([5002.1]), _plan([5012.4, 5014.0]), _plan([])]

    def test_sum_of_chunk_ccfs(self) -> None:
        total = calc_ccf_chunklist(self.chunks, self.plans, max_workers=3)
        expected = sum(compute_ccf(c.wavelength, c.flux, p) for c, p in zip(self.chunks, self.plans))
        np.testing.assert_allclose(total, expected, rtol=1e-12)
        self.assertEqual(total.shape, (len(GRID),))

    def test_sum_of_chunk_ccfs_and_variances(self) -> None:
        total, total_var = calc_ccf_and_var_chunklist(self.chunks, self.plans, max_workers=2)
        expected = [compute_ccf_with_variance(c.wavelength, c.flux, c.variance, p) for c, p in zip(self.chunks, self.plans)]
        np.testing.assert_allclose(total, sum(e[0] for e in expected), rtol=1e-12)
        np.testing.assert_allclose(total_var, sum(e[1] for e in expected), rtol=1e-12)

    def test_result_does_not_depend_on_worker_count(self) -> None:
        serial = calc_ccf_chunklist(self.chunks, self.plans, max_workers=1)
        parallel = calc_ccf_chunklist(self.chunks, self.plans, max_workers=4)
        np.testing.assert_array_equal(serial, parallel)

    def test_on_result_called_per_chunk(self) -> None:
        calls: list[tuple[int, int, int]] = []
        lock = threading.Lock()

        def cb(idx: int, done: int, total: int) -> None:
            with lock:
                calls.append((idx, done, total))

        calc_ccf_chunklist(self.chunks, self.plans, max_workers=2, on_result=cb)
        self.assertEqual(sorted(c[0] for c in calls), [0, 1, 2])
        self.assertEqual(calls[-1][1:], (3, 3))

    def test_mismatched_plan_count_raises(self) -> None:
        with self.assertRaises(PreconditionError):
            calc_ccf_chunklist(self.chunks, self.plans[:2])

    def test_incompatible_velocity_grids_raise(self) -> None:
        plans = list(self.plans)
        plans[1] = _plan([5012.4], VelocityGrid.from_center(0.0, 500.0, 5))
        with self.assertRaises(PreconditionError):
            calc_ccf_chunklist(self.chunks, plans)

    def test_missing_variances_raise(self) -> None:
        chunks = list(self.chunks)
        chunks[0] = SpectrumChunk(wavelength=chunks[0].wavelength, flux=chunks[0].flux)
        with self.assertRaises(PreconditionError):
            calc_ccf_and_var_chunklist(chunks, self.plans)

    def test_failing_chunk_aborts_call(self) -> None:
        plans = list(self.plans)
        plans[1] = _plan([5014.0, 5012.4])
        with self.assertLogs("spectra_ccf.bulk", level="ERROR"):
            with self.assertRaises(PreconditionError):
                calc_ccf_chunklist(self.chunks, plans, max_workers=2)

    def test_process_pool_matches_serial_sum(self) -> None:
        serial_ccf, serial_var = calc_ccf_and_var_chunklist(self.chunks, self.plans, max_workers=1)
        pooled_ccf, pooled_var = calc_ccf_and_var_chunklist(self.chunks, self.plans, max_workers=3)
        np.testing.assert_array_equal(pooled_ccf, serial_ccf)
        np.testing.assert_array_equal(pooled_var, serial_var)

    def test_single_worker_runs_in_process(self) -> None:
        with patch("spectra_ccf.bulk.ProcessPoolExecutor", side_effect=AssertionError("pool created")):
            total = calc_ccf_chunklist(self.chunks, self.plans, max_workers=1)
        expected = sum(compute_ccf(c.wavelength, c.flux, p) for c, p in zip(self.chunks, self.plans))
        np.testing.assert_allclose(total, expected, rtol=1e-12)

    def test_chunk_worker_returns_its_index(self) -> None:
        idx, (ccf, ccf_var) = _ccf_chunk_worker(1, self.chunks[1], self.plans[1], True, False)
        self.assertEqual(idx, 1)
        expected_ccf, expected_var = compute_ccf_with_variance(
            self.chunks[1].wavelength, self.chunks[1].flux, self.chunks[1].variance, self.plans[1]
        )
        np.testing.assert_array_equal(ccf, expected_ccf)
        np.testing.assert_array_equal(ccf_var, expected_var)

    def test_failing_chunk_aborts_serial_call(self) -> None:
        plans = list(self.plans)
        plans[1] = _plan([5014.0, 5012.4])
        with self.assertLogs("spectra_ccf.bulk", level="ERROR"):
            with self.assertRaises(PreconditionError):
                calc_ccf_chunklist(self.chunks, plans, max_workers=1)


class TestDefaultMaxWorkers(unittest.TestCase):
    def test_honours_scheduler_environment(self) -> None:
        with patch.dict("os.environ", {"SLURM_CPUS_PER_TASK": "3"}):
            self.assertEqual(_default_max_workers(), 3)
        with patch.dict("os.environ", {"SLURM_CPUS_PER_TASK": "500"}):
            self.assertEqual(_default_max_workers(), 32)

    def test_ignores_garbage_values(self) -> None:
        env = {"SLURM_CPUS_PER_TASK": "many", "OMP_NUM_THREADS": "2"}
        with patch.dict("os.environ", env):
            self.assertEqual(_default_max_workers(), 2)


if __name__ == "__main__":
    unittest.main()
