"""Reconstruction: multiplanar slicing and rigid-rotation resampling.

Exports the functions used by the pipeline and by interactive viewers.
"""
from __future__ import annotations

from ct_rotator.reconstruction.mpr import (
    axial_slice,
    coronal_slice,
    extract_plane,
    sagittal_slice,
)
from ct_rotator.reconstruction.resample import (
    AIR_HU,
    rotate_grid,
    rotate_slice,
    rotate_volume,
    sample_linear,
)
from ct_rotator.reconstruction.rotation import rotation_matrix, state_matrix

__all__ = [
    "AIR_HU",
    "axial_slice",
    "coronal_slice",
    "extract_plane",
    "rotate_grid",
    "rotate_slice",
    "rotate_volume",
    "rotation_matrix",
    "sagittal_slice",
    "sample_linear",
    "state_matrix",
]
