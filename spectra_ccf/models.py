"""Shared data models for CCF computations."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import numpy as np
from numpy.typing import ArrayLike

from spectra_ccf.doppler import DopplerConvention, doppler_factor
from spectra_ccf.errors import PreconditionError
from spectra_ccf.masks.base import MaskShape
from spectra_ccf.velocity_grid import VelocityGrid


def _readonly_1d(values: ArrayLike, name: str) -> np.ndarray:
    arr = np.array(values, dtype=np.float64, copy=True)
    if arr.ndim != 1:
        raise PreconditionError(f"{name} must be 1-dimensional, got shape {arr.shape}", name=name)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, eq=False)
class LineList:
    """Mask line centres (vacuum wavelength) and their weights.

    Arrays are copied and frozen on construction. Sortedness is not enforced
    here; CCF entry points verify it unless told the list is pre-sorted.
    """

    wavelength: np.ndarray
    weight: np.ndarray

    def __post_init__(self) -> None:
        wavelength = _readonly_1d(self.wavelength, "wavelength")
        weight = _readonly_1d(self.weight, "weight")
        if wavelength.shape != weight.shape:
            raise PreconditionError(
                f"wavelength and weight lengths differ ({wavelength.size} vs {weight.size})", name="weight"
            )
        if not np.all(np.isfinite(wavelength)) or np.any(wavelength <= 0):
            raise PreconditionError("Line wavelengths must be finite and positive", name="wavelength")
        if not np.all(np.isfinite(weight)) or np.any(weight < 0):
            raise PreconditionError("Line weights must be finite and non-negative", name="weight")
        object.__setattr__(self, "wavelength", wavelength)
        object.__setattr__(self, "weight", weight)

    @classmethod
    def empty(cls) -> "LineList":
        return cls(np.empty(0), np.empty(0))

    def __len__(self) -> int:
        return int(self.wavelength.size)

    def is_sorted(self) -> bool:
        """Return True when wavelengths are strictly increasing."""

        return bool(np.all(np.diff(self.wavelength) > 0))

    def sorted(self) -> "LineList":
        order = np.argsort(self.wavelength, kind="stable")
        return LineList(self.wavelength[order], self.weight[order])

    def select(self, lambda_min: float, lambda_max: float) -> "LineList":
        """Lines whose centres fall inside ``[lambda_min, lambda_max]``."""

        keep = (self.wavelength >= lambda_min) & (self.wavelength <= lambda_max)
        return LineList(self.wavelength[keep], self.weight[keep])


@dataclass(frozen=True)
class CCFPlan:
    """Immutable recipe for a CCF: mask lines, line shape and velocity grid."""

    line_list: LineList
    mask_shape: MaskShape
    velocity_grid: VelocityGrid
    doppler_convention: DopplerConvention = DopplerConvention.classical

    def __post_init__(self) -> None:
        if not isinstance(self.line_list, LineList):
            raise PreconditionError("line_list must be a LineList", name="line_list")
        if not isinstance(self.mask_shape, MaskShape):
            raise PreconditionError("mask_shape must be a MaskShape", name="mask_shape")
        if not isinstance(self.velocity_grid, VelocityGrid):
            raise PreconditionError("velocity_grid must be a VelocityGrid", name="velocity_grid")

    @property
    def speed_of_light(self) -> float:
        return self.mask_shape.speed_of_light

    def velocities(self) -> np.ndarray:
        return self.velocity_grid.values()

    def n_velocities(self) -> int:
        return len(self.velocity_grid)

    def shift_factor(self, velocity: float) -> float:
        return doppler_factor(velocity, convention=self.doppler_convention, speed_of_light=self.speed_of_light)


@dataclass(frozen=True)
class SpectrumChunk:
    """One contiguous wavelength range of a spectrum."""

    wavelength: ArrayLike
    flux: ArrayLike
    variance: Optional[ArrayLike] = None


@dataclass
class CCFResult:
    """A CCF evaluated on a velocity grid, optionally with its variance."""

    velocity: np.ndarray
    ccf: np.ndarray
    ccf_var: Optional[np.ndarray] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_plan(
        cls,
        plan: CCFPlan,
        ccf: ArrayLike,
        ccf_var: Optional[ArrayLike] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> "CCFResult":
        velocity = plan.velocities()
        ccf_arr = np.asarray(ccf, dtype=np.float64)
        if ccf_arr.shape != velocity.shape:
            raise PreconditionError(
                f"CCF length {ccf_arr.size} does not match velocity grid length {velocity.size}", name="ccf"
            )
        var_arr = None
        if ccf_var is not None:
            var_arr = np.asarray(ccf_var, dtype=np.float64)
            if var_arr.shape != velocity.shape:
                raise PreconditionError("CCF variance length does not match velocity grid length", name="ccf_var")
        return cls(velocity=velocity, ccf=ccf_arr, ccf_var=var_arr, metadata=dict(metadata or {}))
