"""Projection of a Doppler-shifted line mask onto a wavelength pixel grid.

The sweep walks pixels and mask lines together, both in increasing
wavelength. For every pixel the mask contributes::

    weight * frac * (0.5 * (right + left) / (right - left)) / c

where ``frac`` is the fraction of the line's kernel mass (measured in
velocity offsets from the shifted line centre) that falls inside the pixel.
The middle factor is the pixel's inverse width in ``ln(lambda)``, so the
projection is a density per unit ``ln(lambda)`` and wider pixels receive
proportionally less per unit of mask mass.

Pixel edges are midpoints between neighbouring centres; the outer edges of
the first and last pixels are extrapolated from their single neighbour.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional, Tuple

import numpy as np
from numpy.typing import ArrayLike

from spectra_ccf.errors import PreconditionError
from spectra_ccf.models import CCFPlan

logger = logging.getLogger(__name__)

PixelEdges = Tuple[np.ndarray, np.ndarray]


class SweepStep(Enum):
    """What the sweep does with the current (pixel, line) pair."""

    seeking = "seeking"  # pixel still left of the line; next pixel
    straddling = "straddling"  # whole line inside this pixel; next line, same pixel
    entering = "entering"  # pixel holds the line's lower edge; next pixel
    inside = "inside"  # pixel fully covered by the line; next pixel
    exiting = "exiting"  # pixel holds the line's upper edge; next line


def classify_step(on_mask: bool, right_edge: float, mask_lo: float, mask_hi: float) -> SweepStep:
    """Decide the sweep step from the pixel's right edge and the line's support."""

    if not on_mask:
        if right_edge <= mask_lo:
            return SweepStep.seeking
        if right_edge > mask_hi:
            return SweepStep.straddling
        return SweepStep.entering
    if right_edge > mask_hi:
        return SweepStep.exiting
    return SweepStep.inside


def pixel_edges(wavelengths: ArrayLike) -> PixelEdges:
    """Return ``(left, right)`` edges for each pixel centre."""

    lam = np.asarray(wavelengths, dtype=np.float64)
    if lam.ndim != 1:
        raise PreconditionError(f"wavelengths must be 1-dimensional, got shape {lam.shape}", name="wavelengths")
    if lam.size < 2:
        raise PreconditionError("At least two pixels are needed to define pixel edges", name="wavelengths")
    mid = 0.5 * (lam[1:] + lam[:-1])
    left = np.empty_like(lam)
    right = np.empty_like(lam)
    left[0] = lam[0] - 0.5 * (lam[1] - lam[0])
    left[1:] = mid
    right[:-1] = mid
    right[-1] = lam[-1] + 0.5 * (lam[-1] - lam[-2])
    return left, right


def project_mask(
    workspace: np.ndarray,
    wavelengths: ArrayLike,
    plan: CCFPlan,
    shift_factor: float = 1.0,
    *,
    edges: Optional[PixelEdges] = None,
) -> np.ndarray:
    """Fill ``workspace`` with the projection of the shifted mask.

    ``workspace`` is zeroed first and returned. Line centres are multiplied
    by ``shift_factor``. The line list must be sorted and non-empty; callers
    check sortedness once rather than per velocity. Pass precomputed
    ``edges`` (from ``pixel_edges``) to avoid recomputing them per call.

    When shifted lines overlap, the sweep rewinds to the first pixel touched
    by the previous line so the next line is layered on top of it.
    """

    lines = plan.line_list
    n_lines = len(lines)
    if n_lines < 1:
        raise PreconditionError("project_mask needs at least one mask line", name="plan")
    if not shift_factor > 0:
        raise PreconditionError(f"shift_factor must be positive, got {shift_factor}", name="shift_factor")
    if edges is None:
        edges = pixel_edges(wavelengths)
    left, right = edges
    n_pixels = left.size
    if not isinstance(workspace, np.ndarray) or not np.issubdtype(workspace.dtype, np.floating):
        raise PreconditionError("workspace must be a floating-point numpy array", name="workspace")
    if workspace.shape != (n_pixels,):
        raise PreconditionError(
            f"workspace shape {workspace.shape} does not match {n_pixels} pixels", name="workspace"
        )
    workspace[:] = 0.0

    shape = plan.mask_shape
    c = shape.speed_of_light
    line_lambda = lines.wavelength
    line_weight = lines.weight
    # Bounds scale linearly with the line centre.
    lo_scale = shape.lower_bound(1.0) * shift_factor
    hi_scale = shape.upper_bound(1.0) * shift_factor

    # Skip lines whose shifted support ends at or before the grid's left edge.
    m = int(np.searchsorted(line_lambda, left[0] / hi_scale, side="right"))
    if m >= n_lines:
        logger.debug("No mask lines overlap pixel grid", extra={"n_lines": n_lines, "shift_factor": shift_factor})
        return workspace

    def _load(idx: int) -> Tuple[float, float, float, float]:
        center = float(line_lambda[idx])
        return center * shift_factor, center * lo_scale, center * hi_scale, float(line_weight[idx])

    mask_mid, mask_lo, mask_hi, mask_weight = _load(m)
    p = 0
    p_line_start = 0
    on_mask = False

    while m < n_lines and p < n_pixels:
        le = left[p]
        re = right[p]
        step = classify_step(on_mask, re, mask_lo, mask_hi)

        if step is SweepStep.seeking:
            p += 1
            continue

        one_over_delta_z_pixel = 0.5 * (re + le) / (re - le)
        if step is SweepStep.straddling:
            frac = shape.integrate((max(mask_lo, le) - mask_mid) / mask_mid * c, (mask_hi - mask_mid) / mask_mid * c)
            workspace[p] += frac * one_over_delta_z_pixel * mask_weight
            p_line_start = p
            m += 1
            if m < n_lines:
                mask_mid, mask_lo, mask_hi, mask_weight = _load(m)
        elif step is SweepStep.entering:
            frac = shape.integrate((max(mask_lo, le) - mask_mid) / mask_mid * c, (re - mask_mid) / mask_mid * c)
            workspace[p] += frac * one_over_delta_z_pixel * mask_weight
            on_mask = True
            p_line_start = p
            p += 1
        elif step is SweepStep.inside:
            frac = shape.integrate((le - mask_mid) / mask_mid * c, (re - mask_mid) / mask_mid * c)
            workspace[p] += frac * one_over_delta_z_pixel * mask_weight
            p += 1
        else:  # exiting
            frac = shape.integrate((le - mask_mid) / mask_mid * c, (mask_hi - mask_mid) / mask_mid * c)
            workspace[p] += frac * one_over_delta_z_pixel * mask_weight
            on_mask = False
            m += 1
            if m < n_lines:
                mask_mid, mask_lo, mask_hi, mask_weight = _load(m)
                if mask_lo < le:
                    p = p_line_start

    workspace /= c
    return workspace
