"""Readers for line-list masks.

Two plain-text layouts are supported, plus FITS tables:

* ESPRESSO text: whitespace separated ``lambda weight`` rows.
* VALD csv: ``lambda_lo,lambda_hi,depth`` rows; the line centre is the
  geometric mean of the bounds and the weight is the depth.
* FITS binary tables with ``lambda`` and ``contrast`` columns (ESPRESSO DRS
  masks), read with `astropy.io.fits`.

Wavelengths are in Angstrom. Masks tabulated in air are converted to vacuum
unless ``air_to_vac=False``.
"""

from __future__ import annotations

import logging
import os
from typing import Any

import numpy as np
from astropy.io import fits

from spectra_ccf.errors import PreconditionError
from spectra_ccf.models import LineList

logger = logging.getLogger(__name__)


def air_to_vacuum(wavelength: Any) -> np.ndarray:
    """Convert air wavelengths (Angstrom) to vacuum.

    Uses N. Piskunov's inversion of the Birch & Downs (1994) refractive index,
    as recommended by VALD.
    """

    wavelength = np.asarray(wavelength, dtype=np.float64)
    s2 = (1.0e4 / wavelength) ** 2
    n_air = 1.0 + 0.00008336624212083 + 0.02408926869968 / (130.1065924522 - s2) + 0.0001599740894897 / (38.92568793293 - s2)
    return wavelength * n_air


def _load_columns(path: str | os.PathLike[str], *, n_columns: int, delimiter: str | None) -> np.ndarray:
    table = np.loadtxt(path, delimiter=delimiter, comments="#", ndmin=2, dtype=np.float64)
    if table.size == 0:
        return np.empty((0, n_columns), dtype=np.float64)
    if table.shape[1] < n_columns:
        raise PreconditionError(
            f"Expected {n_columns} columns in line list {os.fspath(path)!s}, found {table.shape[1]}",
            name="path",
        )
    return table[:, :n_columns]


def _finish(wavelength: np.ndarray, weight: np.ndarray, *, path: Any, fmt: str) -> LineList:
    order = np.argsort(wavelength, kind="stable")
    line_list = LineList(wavelength[order], weight[order])
    logger.info("Loaded line list", extra={"path": str(path), "format": fmt, "n_lines": len(line_list)})
    return line_list


def read_linelist_espresso(path: str | os.PathLike[str], *, air_to_vac: bool = True) -> LineList:
    """Read a whitespace separated ``lambda weight`` mask."""

    table = _load_columns(path, n_columns=2, delimiter=None)
    wavelength = table[:, 0]
    if air_to_vac:
        wavelength = air_to_vacuum(wavelength)
    return _finish(wavelength, table[:, 1], path=path, fmt="espresso")


def read_linelist_vald(path: str | os.PathLike[str], *, air_to_vac: bool = True) -> LineList:
    """Read a ``lambda_lo,lambda_hi,depth`` csv mask."""

    table = _load_columns(path, n_columns=3, delimiter=",")
    lambda_lo, lambda_hi, depth = table[:, 0], table[:, 1], table[:, 2]
    if air_to_vac:
        lambda_lo = air_to_vacuum(lambda_lo)
        lambda_hi = air_to_vacuum(lambda_hi)
    if np.any(lambda_hi < lambda_lo):
        raise PreconditionError(f"lambda_hi below lambda_lo in {os.fspath(path)!s}", name="path")
    return _finish(np.sqrt(lambda_lo * lambda_hi), depth, path=path, fmt="vald")


def read_linelist_fits(
    path: str | os.PathLike[str],
    *,
    hdu: int | str = 1,
    wavelength_column: str = "lambda",
    weight_column: str = "contrast",
    air_to_vac: bool = True,
) -> LineList:
    """Read a mask stored as a FITS binary table."""

    with fits.open(os.fspath(path)) as hdul:
        data = hdul[hdu].data
        names = {name.lower(): name for name in data.columns.names}
        missing = [col for col in (wavelength_column, weight_column) if col.lower() not in names]
        if missing:
            raise PreconditionError(f"FITS mask {os.fspath(path)!s} lacks columns {missing}", name="path")
        wavelength = np.asarray(data[names[wavelength_column.lower()]], dtype=np.float64)
        weight = np.asarray(data[names[weight_column.lower()]], dtype=np.float64)

    if air_to_vac:
        wavelength = air_to_vacuum(wavelength)
    return _finish(wavelength, weight, path=path, fmt="fits")
