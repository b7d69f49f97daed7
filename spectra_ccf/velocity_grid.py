"""Trial velocity grids."""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

from spectra_ccf.errors import PreconditionError

# Relative slack when deciding whether an endpoint falls on the grid.
_GRID_RTOL = 1e-9


@dataclass(frozen=True)
class VelocityGrid:
    """Evenly spaced, strictly increasing velocities (m/s).

    Stored canonically as ``(v_start, v_step, n_points)``; use the
    ``from_*`` constructors to build one from the usual parameterisations.
    """

    v_start: float
    v_step: float
    n_points: int

    def __post_init__(self) -> None:
        if not (self.v_step > 0 and math.isfinite(self.v_step)):
            raise PreconditionError(f"v_step must be positive and finite, got {self.v_step}", name="v_step")
        if self.n_points < 1:
            raise PreconditionError(f"Velocity grid needs at least one point, got {self.n_points}", name="n_points")
        if not math.isfinite(self.v_start):
            raise PreconditionError(f"v_start must be finite, got {self.v_start}", name="v_start")

    @classmethod
    def from_center(cls, v_center: float, v_step: float, n_points: int) -> "VelocityGrid":
        """``n_points`` velocities spaced by ``v_step`` and centred on ``v_center``."""

        if int(n_points) != n_points:
            raise PreconditionError(f"n_points must be an integer, got {n_points}", name="n_points")
        n_points = int(n_points)
        return cls(v_start=float(v_center) - 0.5 * (n_points - 1) * float(v_step), v_step=float(v_step), n_points=n_points)

    @classmethod
    def from_range(cls, v_min: float, v_max: float, v_step: float) -> "VelocityGrid":
        """Velocities from ``v_min`` up to (and including, when on-grid) ``v_max``."""

        if v_max < v_min:
            raise PreconditionError(f"v_max ({v_max}) must not be below v_min ({v_min})", name="v_max")
        if not v_step > 0:
            raise PreconditionError(f"v_step must be positive, got {v_step}", name="v_step")
        n_steps = math.floor((v_max - v_min) / v_step * (1.0 + _GRID_RTOL) + _GRID_RTOL)
        return cls(v_start=float(v_min), v_step=float(v_step), n_points=int(n_steps) + 1)

    @classmethod
    def from_center_range(cls, v_center: float, v_range: float, v_step: float) -> "VelocityGrid":
        """Symmetric grid ``v_center + k*v_step`` with ``|k*v_step| <= v_range``."""

        if v_range < 0:
            raise PreconditionError(f"v_range must be non-negative, got {v_range}", name="v_range")
        if not v_step > 0:
            raise PreconditionError(f"v_step must be positive, got {v_step}", name="v_step")
        half = math.floor(v_range / v_step * (1.0 + _GRID_RTOL) + _GRID_RTOL)
        return cls(v_start=float(v_center) - half * float(v_step), v_step=float(v_step), n_points=2 * int(half) + 1)

    @property
    def v_min(self) -> float:
        return self.v_start

    @property
    def v_max(self) -> float:
        return self.v_start + (self.n_points - 1) * self.v_step

    def values(self) -> np.ndarray:
        return self.v_start + self.v_step * np.arange(self.n_points, dtype=np.float64)

    def __len__(self) -> int:
        return self.n_points
