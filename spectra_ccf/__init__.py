"""Cross-correlation of stellar spectra against weighted line masks."""

from spectra_ccf.bulk import calc_ccf_and_var_chunklist, calc_ccf_chunklist
from spectra_ccf.ccf import (
    compute_ccf,
    compute_ccf_into,
    compute_ccf_segment_variance,
    compute_ccf_segment_variance_into,
    compute_ccf_with_variance,
    compute_ccf_with_variance_into,
)
from spectra_ccf.doppler import SPEED_OF_LIGHT_MPS, DopplerConvention, doppler_factor
from spectra_ccf.errors import ExperimentalFeatureWarning, PreconditionError
from spectra_ccf.masks import GaussianMask, MaskShape, MaskShapeKind, TopHatMask, make_mask_shape
from spectra_ccf.masks.io import air_to_vacuum, read_linelist_espresso, read_linelist_fits, read_linelist_vald
from spectra_ccf.models import CCFPlan, CCFResult, LineList, SpectrumChunk
from spectra_ccf.projection import project_mask
from spectra_ccf.velocity_grid import VelocityGrid

__all__ = [
    "CCFPlan",
    "CCFResult",
    "DopplerConvention",
    "ExperimentalFeatureWarning",
    "GaussianMask",
    "LineList",
    "MaskShape",
    "MaskShapeKind",
    "PreconditionError",
    "SPEED_OF_LIGHT_MPS",
    "SpectrumChunk",
    "TopHatMask",
    "VelocityGrid",
    "air_to_vacuum",
    "calc_ccf_and_var_chunklist",
    "calc_ccf_chunklist",
    "compute_ccf",
    "compute_ccf_into",
    "compute_ccf_segment_variance",
    "compute_ccf_segment_variance_into",
    "compute_ccf_with_variance",
    "compute_ccf_with_variance_into",
    "doppler_factor",
    "make_mask_shape",
    "project_mask",
    "read_linelist_espresso",
    "read_linelist_fits",
    "read_linelist_vald",
]
