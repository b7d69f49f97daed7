"""Truncated Gaussian mask line shape."""

from __future__ import annotations

import math
from typing import Tuple

from spectra_ccf.doppler import SPEED_OF_LIGHT_MPS
from spectra_ccf.errors import PreconditionError
from spectra_ccf.masks.base import MaskShape, MaskShapeKind

_SQRT2 = math.sqrt(2.0)


class GaussianMask(MaskShape):
    """Gaussian kernel of width ``sigma`` (m/s) truncated at ``n_sigma``.

    The truncated profile is renormalised so its mass over the support is 1.
    """

    kind = MaskShapeKind.gaussian

    def __init__(self, sigma: float, *, n_sigma: float = 3.0, speed_of_light: float = SPEED_OF_LIGHT_MPS) -> None:
        super().__init__(speed_of_light=speed_of_light)
        if not (sigma > 0 and math.isfinite(sigma)):
            raise PreconditionError(f"sigma must be positive and finite, got {sigma}", name="sigma")
        if not n_sigma > 0:
            raise PreconditionError(f"n_sigma must be positive, got {n_sigma}", name="n_sigma")
        if sigma * n_sigma >= self.speed_of_light:
            raise PreconditionError("Gaussian support must be narrower than the speed of light", name="sigma")
        self.sigma = float(sigma)
        self.n_sigma = float(n_sigma)
        self._half_extent = self.sigma * self.n_sigma
        self._norm = math.erf(self.n_sigma / _SQRT2)

    def velocity_support(self) -> Tuple[float, float]:
        return -self._half_extent, self._half_extent

    def _cdf(self, v: float) -> float:
        return 0.5 * math.erf(v / (self.sigma * _SQRT2))

    def integrate(self, lo: float, hi: float) -> float:
        if hi <= lo:
            return 0.0
        return (self._cdf(self._clamp(hi)) - self._cdf(self._clamp(lo))) / self._norm
