"""Mask line shapes and the factory over the supported kinds.

Line-list readers live in ``spectra_ccf.masks.io``.
"""

from __future__ import annotations

from typing import Any

from spectra_ccf.errors import PreconditionError
from spectra_ccf.masks.base import MaskShape, MaskShapeKind
from spectra_ccf.masks.gaussian import GaussianMask
from spectra_ccf.masks.tophat import TopHatMask

_SHAPES = {
    MaskShapeKind.tophat: TopHatMask,
    MaskShapeKind.gaussian: GaussianMask,
}


def make_mask_shape(kind: MaskShapeKind | str, **params: Any) -> MaskShape:
    """Build a mask shape from its kind (enum or name) and parameters."""

    try:
        kind = MaskShapeKind(kind)
    except ValueError as exc:
        raise PreconditionError(f"Unknown mask shape: {kind!r}", name="kind") from exc
    return _SHAPES[kind](**params)


__all__ = [
    "GaussianMask",
    "MaskShape",
    "MaskShapeKind",
    "TopHatMask",
    "make_mask_shape",
]
