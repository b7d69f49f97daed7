"""Chunk-level CCF orchestration for whole spectra."""

from __future__ import annotations

import logging
import os
from concurrent.futures import Future, ProcessPoolExecutor, as_completed
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np

from spectra_ccf.ccf import compute_ccf, compute_ccf_with_variance
from spectra_ccf.errors import PreconditionError
from spectra_ccf.models import CCFPlan, SpectrumChunk

logger = logging.getLogger(__name__)

_DEFAULT_MAX_WORKERS_CAP = 32

ChunkCCF = Tuple[np.ndarray, Optional[np.ndarray]]


def _default_max_workers() -> int:
    # HPC-friendly: honor common scheduler env vars when present.
    for key in ("SLURM_CPUS_PER_TASK", "OMP_NUM_THREADS", "NUMEXPR_MAX_THREADS"):
        val = os.environ.get(key)
        if val:
            try:
                n = int(val)
            except ValueError:
                logger.debug("Ignoring non-integer worker count", extra={"env": key, "value": val})
                continue
            if n > 0:
                return max(1, min(n, _DEFAULT_MAX_WORKERS_CAP))
    cpu = os.cpu_count() or 4
    return max(1, min(int(cpu), _DEFAULT_MAX_WORKERS_CAP))


def _check_chunk_plans(chunks: Sequence[SpectrumChunk], plans: Sequence[CCFPlan]) -> int:
    if len(chunks) != len(plans):
        raise PreconditionError(
            f"Got {len(chunks)} chunks but {len(plans)} plans", name="plans"
        )
    if not chunks:
        raise PreconditionError("At least one chunk is required", name="chunks")
    lengths = {plan.n_velocities() for plan in plans}
    if len(lengths) != 1:
        raise PreconditionError(
            f"All chunk plans must share a velocity grid length, got {sorted(lengths)}", name="plans"
        )
    return lengths.pop()


def _ccf_chunk_worker(
    idx: int, chunk: SpectrumChunk, plan: CCFPlan, with_variance: bool, assume_sorted: bool
) -> Tuple[int, ChunkCCF]:
    # Module level so worker processes can unpickle it.
    if with_variance:
        ccf, ccf_var = compute_ccf_with_variance(
            chunk.wavelength, chunk.flux, chunk.variance, plan, assume_sorted=assume_sorted
        )
        return idx, (ccf, ccf_var)
    return idx, (compute_ccf(chunk.wavelength, chunk.flux, plan, assume_sorted=assume_sorted), None)


def _notify(on_result: Optional[Callable[[int, int, int], None]], idx: int, done: int, total: int) -> None:
    if on_result is None:
        return
    try:
        on_result(idx, done, total)
    except Exception:
        logger.debug("on_result callback failed", exc_info=True)


def _run_chunks(
    chunks: Sequence[SpectrumChunk],
    plans: Sequence[CCFPlan],
    *,
    with_variance: bool,
    max_workers: Optional[int],
    assume_sorted: bool,
    on_result: Optional[Callable[[int, int, int], None]],
) -> List[ChunkCCF]:
    n_velocities = _check_chunk_plans(chunks, plans)
    if with_variance:
        missing = [idx for idx, chunk in enumerate(chunks) if chunk.variance is None]
        if missing:
            raise PreconditionError(f"Chunks {missing} have no variances", name="chunks")

    if max_workers is None:
        max_workers = _default_max_workers()
    max_workers = max(1, min(int(max_workers), len(chunks)))
    n_chunks = len(chunks)

    logger.info(
        "Chunk CCF start",
        extra={"n_chunks": n_chunks, "n_velocities": n_velocities, "max_workers": max_workers},
    )
    out_by_index: Dict[int, ChunkCCF] = {}

    if max_workers == 1:
        for idx in range(n_chunks):
            try:
                _, out_by_index[idx] = _ccf_chunk_worker(idx, chunks[idx], plans[idx], with_variance, assume_sorted)
            except Exception:
                logger.exception("Chunk CCF failed", extra={"chunk": idx, "n_lines": len(plans[idx].line_list)})
                raise
            _notify(on_result, idx, len(out_by_index), n_chunks)
    else:
        # The sweep is pure Python and holds the GIL, so chunks go to separate processes.
        futures: Dict[Future[Tuple[int, ChunkCCF]], int] = {}
        with ProcessPoolExecutor(max_workers=max_workers) as executor:
            for idx in range(n_chunks):
                fut = executor.submit(
                    _ccf_chunk_worker, idx, chunks[idx], plans[idx], with_variance, assume_sorted
                )
                futures[fut] = idx

            for fut in as_completed(futures):
                idx = futures[fut]
                try:
                    _, out_by_index[idx] = fut.result()
                except Exception:
                    logger.exception("Chunk CCF failed", extra={"chunk": idx, "n_lines": len(plans[idx].line_list)})
                    for pending in futures:
                        pending.cancel()
                    raise
                _notify(on_result, idx, len(out_by_index), n_chunks)

    logger.info("Chunk CCF done", extra={"n_chunks": n_chunks})
    return [out_by_index[i] for i in range(n_chunks)]


def calc_ccf_chunklist(
    chunks: Sequence[SpectrumChunk],
    plans: Sequence[CCFPlan],
    *,
    max_workers: Optional[int] = None,
    assume_sorted: bool = False,
    on_result: Optional[Callable[[int, int, int], None]] = None,
) -> np.ndarray:
    """Sum the CCFs of every chunk, each computed with its own plan.

    Chunks run concurrently in a process pool, or in-process when
    ``max_workers`` is 1. Summation happens in chunk order so results do
    not depend on completion order. A failing chunk aborts the whole call.
    """

    results = _run_chunks(
        chunks,
        plans,
        with_variance=False,
        max_workers=max_workers,
        assume_sorted=assume_sorted,
        on_result=on_result,
    )
    total = np.zeros_like(results[0][0])
    for ccf, _ in results:
        total += ccf
    return total


def calc_ccf_and_var_chunklist(
    chunks: Sequence[SpectrumChunk],
    plans: Sequence[CCFPlan],
    *,
    max_workers: Optional[int] = None,
    assume_sorted: bool = False,
    on_result: Optional[Callable[[int, int, int], None]] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """Like ``calc_ccf_chunklist`` but also sums per-chunk CCF variances."""

    results = _run_chunks(
        chunks,
        plans,
        with_variance=True,
        max_workers=max_workers,
        assume_sorted=assume_sorted,
        on_result=on_result,
    )
    total = np.zeros_like(results[0][0])
    total_var = np.zeros_like(results[0][0])
    for ccf, ccf_var in results:
        total += ccf
        total_var += ccf_var  # type: ignore[operator]
    return total, total_var
