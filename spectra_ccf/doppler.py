"""Doppler shift factors for trial radial velocities."""

from __future__ import annotations

import math
from enum import Enum

from astropy import constants as const

from spectra_ccf.errors import PreconditionError

SPEED_OF_LIGHT_MPS: float = float(const.c.value)  # m/s


class DopplerConvention(Enum):
    classical = "classical"
    relativistic = "relativistic"


def doppler_factor(
    velocity: float,
    *,
    convention: DopplerConvention = DopplerConvention.classical,
    speed_of_light: float = SPEED_OF_LIGHT_MPS,
) -> float:
    """Return the multiplicative wavelength shift for ``velocity``.

    ``velocity`` and ``speed_of_light`` must share units (m/s by default).
    The classical form ``1 + v/c`` is the default; the relativistic form
    ``sqrt((1 + v/c) / (1 - v/c))`` must be requested explicitly.
    """

    beta = velocity / speed_of_light
    if convention is DopplerConvention.classical:
        return 1.0 + beta
    if convention is DopplerConvention.relativistic:
        if not -1.0 < beta < 1.0:
            raise PreconditionError(f"|v| must be below c, got v={velocity}", name="velocity")
        return math.sqrt((1.0 + beta) / (1.0 - beta))
    raise PreconditionError(f"Unknown Doppler convention: {convention!r}", name="convention")
