"""Base class for CCF mask line shapes."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Tuple

from spectra_ccf.doppler import SPEED_OF_LIGHT_MPS


class MaskShapeKind(Enum):
    tophat = "tophat"
    gaussian = "gaussian"


class MaskShape(ABC):
    """Normalised line-profile kernel defined in velocity space.

    Subclasses describe their support as velocity offsets from the line
    centre (``velocity_support``) and the fraction of unit mass inside a
    velocity interval (``integrate``). Wavelength-domain bounds are derived
    here so every shape maps velocity to wavelength the same way.
    """

    kind: MaskShapeKind

    def __init__(self, *, speed_of_light: float = SPEED_OF_LIGHT_MPS) -> None:
        self.speed_of_light = float(speed_of_light)

    @abstractmethod
    def velocity_support(self) -> Tuple[float, float]:
        """Return ``(v_lo, v_hi)``, the kernel support relative to the line centre."""

    @abstractmethod
    def integrate(self, lo: float, hi: float) -> float:
        """Fraction of the kernel's mass inside velocity offsets ``[lo, hi]``."""

    def lower_bound(self, center: float) -> float:
        v_lo, _ = self.velocity_support()
        return center * (1.0 + v_lo / self.speed_of_light)

    def upper_bound(self, center: float) -> float:
        _, v_hi = self.velocity_support()
        return center * (1.0 + v_hi / self.speed_of_light)

    def _clamp(self, value: float) -> float:
        v_lo, v_hi = self.velocity_support()
        return min(max(value, v_lo), v_hi)

    def __repr__(self) -> str:
        v_lo, v_hi = self.velocity_support()
        return f"{type(self).__name__}(support=[{v_lo:g}, {v_hi:g}] m/s)"
