"""Rectangular (top-hat) mask line shape."""

from __future__ import annotations

import math
from typing import Tuple

from spectra_ccf.doppler import SPEED_OF_LIGHT_MPS
from spectra_ccf.errors import PreconditionError
from spectra_ccf.masks.base import MaskShape, MaskShapeKind


class TopHatMask(MaskShape):
    """Top-hat kernel of half-width ``half_width`` (m/s).

    ``integrate`` is the exact linear overlap fraction of ``[lo, hi]`` with
    ``[-half_width, half_width]``.
    """

    kind = MaskShapeKind.tophat

    def __init__(self, half_width: float, *, speed_of_light: float = SPEED_OF_LIGHT_MPS) -> None:
        super().__init__(speed_of_light=speed_of_light)
        if not (half_width > 0 and math.isfinite(half_width)):
            raise PreconditionError(f"half_width must be positive and finite, got {half_width}", name="half_width")
        if half_width >= self.speed_of_light:
            raise PreconditionError("half_width must be below the speed of light", name="half_width")
        self.half_width = float(half_width)

    @classmethod
    def from_full_width(cls, width: float, **kwargs) -> "TopHatMask":  # type: ignore[no-untyped-def]
        return cls(0.5 * width, **kwargs)

    def velocity_support(self) -> Tuple[float, float]:
        return -self.half_width, self.half_width

    def integrate(self, lo: float, hi: float) -> float:
        if hi <= lo:
            return 0.0
        return (self._clamp(hi) - self._clamp(lo)) / (2.0 * self.half_width)
