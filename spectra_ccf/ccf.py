"""Cross-correlation of spectra against a projected line mask.

Every entry point loops over the plan's velocity grid, projects the shifted
mask onto the pixel grid and reduces the projection against the flux (and
optionally the pixel variances). The ``*_into`` variants write into
caller-owned arrays and accept a reusable projection workspace; a workspace
must not be shared between concurrently running calls.

Inputs are validated before any output is touched. A plan with an empty line
list is legal and yields an all-zero CCF.
"""

from __future__ import annotations

import logging
import warnings
from typing import Optional, Tuple

import numpy as np
from numpy.typing import ArrayLike

from spectra_ccf.errors import ExperimentalFeatureWarning, PreconditionError
from spectra_ccf.models import CCFPlan
from spectra_ccf.projection import pixel_edges, project_mask

logger = logging.getLogger(__name__)


def _as_1d(values: ArrayLike, name: str) -> np.ndarray:
    arr = np.asarray(values, dtype=np.float64)
    if arr.ndim != 1:
        raise PreconditionError(f"{name} must be 1-dimensional, got shape {arr.shape}", name=name)
    return arr


def _check_output(out: np.ndarray, n_velocities: int, name: str) -> None:
    if not isinstance(out, np.ndarray) or out.ndim != 1:
        raise PreconditionError(f"{name} must be a 1-dimensional numpy array", name=name)
    if out.shape[0] != n_velocities:
        raise PreconditionError(
            f"{name} has length {out.shape[0]} but the velocity grid has {n_velocities} points", name=name
        )
    if not out.flags.writeable:
        raise PreconditionError(f"{name} must be writeable", name=name)


def _prepare(
    wavelengths: ArrayLike,
    fluxes: ArrayLike,
    variances: Optional[ArrayLike],
    plan: CCFPlan,
    outputs: Tuple[Tuple[np.ndarray, str], ...],
    workspace: Optional[np.ndarray],
    assume_sorted: bool,
) -> Tuple[np.ndarray, np.ndarray, Optional[np.ndarray], Optional[np.ndarray]]:
    """Validate everything up front; return arrays ready for the velocity loop."""

    lam = _as_1d(wavelengths, "wavelengths")
    flux = _as_1d(fluxes, "fluxes")
    if lam.shape != flux.shape:
        raise PreconditionError(
            f"wavelengths and fluxes lengths differ ({lam.size} vs {flux.size})", name="fluxes"
        )
    var = None
    if variances is not None:
        var = _as_1d(variances, "variances")
        if var.shape != lam.shape:
            raise PreconditionError(
                f"wavelengths and variances lengths differ ({lam.size} vs {var.size})", name="variances"
            )
    n_velocities = plan.n_velocities()
    for out, name in outputs:
        _check_output(out, n_velocities, name)
    if not assume_sorted and not plan.line_list.is_sorted():
        raise PreconditionError("Line list wavelengths must be strictly increasing", name="plan")

    if len(plan.line_list) == 0:
        return lam, flux, var, None

    if lam.size < 2:
        raise PreconditionError("At least two pixels are needed to compute a CCF", name="wavelengths")
    if not np.all(np.diff(lam) > 0):
        raise PreconditionError("wavelengths must be strictly increasing", name="wavelengths")
    if workspace is None:
        workspace = np.zeros(lam.size, dtype=np.float64)
    elif not isinstance(workspace, np.ndarray) or workspace.shape != lam.shape or workspace.dtype != np.float64:
        raise PreconditionError(
            f"workspace must be a float64 array of shape {lam.shape}", name="workspace"
        )
    return lam, flux, var, workspace


def _shift_factors(plan: CCFPlan) -> np.ndarray:
    return np.array([plan.shift_factor(v) for v in plan.velocities()], dtype=np.float64)


def compute_ccf_into(
    ccf_out: np.ndarray,
    wavelengths: ArrayLike,
    fluxes: ArrayLike,
    plan: CCFPlan,
    *,
    workspace: Optional[np.ndarray] = None,
    assume_sorted: bool = False,
) -> np.ndarray:
    """Compute the CCF into ``ccf_out`` (length of the velocity grid) and return it."""

    lam, flux, _, workspace = _prepare(
        wavelengths, fluxes, None, plan, ((ccf_out, "ccf_out"),), workspace, assume_sorted
    )
    if workspace is None:
        logger.debug("Empty line list; CCF is zero", extra={"n_pixels": lam.size})
        ccf_out[:] = 0.0
        return ccf_out

    shifts = _shift_factors(plan)
    edges = pixel_edges(lam)
    logger.debug(
        "Computing CCF",
        extra={"n_pixels": lam.size, "n_lines": len(plan.line_list), "n_velocities": shifts.size},
    )
    for i, shift in enumerate(shifts):
        project_mask(workspace, lam, plan, shift, edges=edges)
        ccf_out[i] = np.dot(flux, workspace)
    return ccf_out


def compute_ccf_with_variance_into(
    ccf_out: np.ndarray,
    ccf_var_out: np.ndarray,
    wavelengths: ArrayLike,
    fluxes: ArrayLike,
    variances: ArrayLike,
    plan: CCFPlan,
    *,
    workspace: Optional[np.ndarray] = None,
    assume_sorted: bool = False,
) -> Tuple[np.ndarray, np.ndarray]:
    """Compute the CCF and its variance into caller-owned arrays."""

    lam, flux, var, workspace = _prepare(
        wavelengths,
        fluxes,
        variances,
        plan,
        ((ccf_out, "ccf_out"), (ccf_var_out, "ccf_var_out")),
        workspace,
        assume_sorted,
    )
    if workspace is None:
        logger.debug("Empty line list; CCF is zero", extra={"n_pixels": lam.size})
        ccf_out[:] = 0.0
        ccf_var_out[:] = 0.0
        return ccf_out, ccf_var_out

    shifts = _shift_factors(plan)
    edges = pixel_edges(lam)
    logger.debug(
        "Computing CCF with variance",
        extra={"n_pixels": lam.size, "n_lines": len(plan.line_list), "n_velocities": shifts.size},
    )
    for i, shift in enumerate(shifts):
        project_mask(workspace, lam, plan, shift, edges=edges)
        ccf_out[i] = np.dot(flux, workspace)
        ccf_var_out[i] = np.dot(var, workspace)
    return ccf_out, ccf_var_out


def compute_ccf(
    wavelengths: ArrayLike,
    fluxes: ArrayLike,
    plan: CCFPlan,
    *,
    assume_sorted: bool = False,
) -> np.ndarray:
    """Return the CCF of ``fluxes`` on the plan's velocity grid."""

    ccf_out = np.zeros(plan.n_velocities(), dtype=np.float64)
    return compute_ccf_into(ccf_out, wavelengths, fluxes, plan, assume_sorted=assume_sorted)


def compute_ccf_with_variance(
    wavelengths: ArrayLike,
    fluxes: ArrayLike,
    variances: ArrayLike,
    plan: CCFPlan,
    *,
    assume_sorted: bool = False,
) -> Tuple[np.ndarray, np.ndarray]:
    """Return ``(ccf, ccf_var)`` on the plan's velocity grid."""

    n = plan.n_velocities()
    ccf_out = np.zeros(n, dtype=np.float64)
    ccf_var_out = np.zeros(n, dtype=np.float64)
    return compute_ccf_with_variance_into(
        ccf_out, ccf_var_out, wavelengths, fluxes, variances, plan, assume_sorted=assume_sorted
    )


# ---------------------------------------------------------------------------
# Experimental: segment-averaged variances
# ---------------------------------------------------------------------------


def segment_mean_variance(
    projection: np.ndarray, variances: np.ndarray, out: Optional[np.ndarray] = None
) -> np.ndarray:
    """Replace each pixel's variance by the mean over its mask segment.

    A segment is a maximal run of pixels with a nonzero projection. Pixels
    outside every segment get 0, which is harmless since their projection
    is zero too.
    """

    if out is None:
        out = np.zeros_like(variances, dtype=np.float64)
    else:
        out[:] = 0.0
    on_mask = projection != 0.0
    if not on_mask.any():
        return out
    flags = np.concatenate(([0], on_mask.astype(np.int8), [0]))
    delta = np.diff(flags)
    starts = np.flatnonzero(delta == 1)
    stops = np.flatnonzero(delta == -1)
    lengths = stops - starts
    cumulative = np.concatenate(([0.0], np.cumsum(variances, dtype=np.float64)))
    sums = cumulative[stops] - cumulative[starts]
    means = np.divide(sums, lengths, out=np.zeros_like(sums), where=lengths > 0)
    out[on_mask] = np.repeat(means, lengths)
    return out


def compute_ccf_segment_variance_into(
    ccf_out: np.ndarray,
    ccf_var_out: np.ndarray,
    wavelengths: ArrayLike,
    fluxes: ArrayLike,
    variances: ArrayLike,
    plan: CCFPlan,
    *,
    workspace: Optional[np.ndarray] = None,
    assume_sorted: bool = False,
) -> Tuple[np.ndarray, np.ndarray]:
    """CCF whose variance uses segment-averaged pixel variances.

    Experimental and not a replacement for ``compute_ccf_with_variance_into``:
    variances inside each run of masked pixels are replaced by the run's mean
    before the weighted reduction. The CCF itself is unchanged.
    """

    warnings.warn(
        "Segment-averaged CCF variances are experimental and may change.",
        ExperimentalFeatureWarning,
        stacklevel=2,
    )
    lam, flux, var, workspace = _prepare(
        wavelengths,
        fluxes,
        variances,
        plan,
        ((ccf_out, "ccf_out"), (ccf_var_out, "ccf_var_out")),
        workspace,
        assume_sorted,
    )
    if workspace is None:
        ccf_out[:] = 0.0
        ccf_var_out[:] = 0.0
        return ccf_out, ccf_var_out

    shifts = _shift_factors(plan)
    edges = pixel_edges(lam)
    var_of_segment = np.zeros_like(var)
    for i, shift in enumerate(shifts):
        project_mask(workspace, lam, plan, shift, edges=edges)
        segment_mean_variance(workspace, var, out=var_of_segment)
        ccf_out[i] = np.dot(flux, workspace)
        ccf_var_out[i] = np.dot(var_of_segment, workspace)
    return ccf_out, ccf_var_out


def compute_ccf_segment_variance(
    wavelengths: ArrayLike,
    fluxes: ArrayLike,
    variances: ArrayLike,
    plan: CCFPlan,
    *,
    assume_sorted: bool = False,
) -> Tuple[np.ndarray, np.ndarray]:
    """Allocating form of ``compute_ccf_segment_variance_into`` (experimental)."""

    n = plan.n_velocities()
    ccf_out = np.zeros(n, dtype=np.float64)
    ccf_var_out = np.zeros(n, dtype=np.float64)
    return compute_ccf_segment_variance_into(
        ccf_out, ccf_var_out, wavelengths, fluxes, variances, plan, assume_sorted=assume_sorted
    )
