"""Multiplanar reconstruction along the three canonical planes.

Slices are grid-aligned, so extraction is a nearest-sample copy with no
interpolation.  Sagittal and coronal images reverse the stacking axis so
that the last slice (superior end) is the top row of the image.
"""
from __future__ import annotations

import numpy as np

from ct_rotator.domain.models import Plane, PlaneImage, Volume, plane_extent


def axial_slice(volume: Volume, z: int) -> PlaneImage:
    """Return slice *z* as a ``rows x columns`` image."""
    _check_index(volume, Plane.AXIAL, z)
    return PlaneImage(
        pixels=volume.pixel_data[z].copy(),
        spacing=(volume.spacing_x, volume.spacing_y),
        plane=Plane.AXIAL,
        index=z,
    )


def sagittal_slice(volume: Volume, x: int) -> PlaneImage:
    """Return the YZ plane at column *x* as a ``slice_count x rows`` image.

    ``pixels[slice_count - 1 - z, y] == volume.pixel_data[z, y, x]``.
    """
    _check_index(volume, Plane.SAGITTAL, x)
    return PlaneImage(
        pixels=np.ascontiguousarray(volume.pixel_data[::-1, :, x]),
        spacing=(volume.spacing_y, volume.slice_spacing),
        plane=Plane.SAGITTAL,
        index=x,
    )


def coronal_slice(volume: Volume, y: int) -> PlaneImage:
    """Return the XZ plane at row *y* as a ``slice_count x columns`` image.

    ``pixels[slice_count - 1 - z, x] == volume.pixel_data[z, y, x]``.
    """
    _check_index(volume, Plane.CORONAL, y)
    return PlaneImage(
        pixels=np.ascontiguousarray(volume.pixel_data[::-1, y, :]),
        spacing=(volume.spacing_x, volume.slice_spacing),
        plane=Plane.CORONAL,
        index=y,
    )


_EXTRACTORS = {
    Plane.AXIAL: axial_slice,
    Plane.SAGITTAL: sagittal_slice,
    Plane.CORONAL: coronal_slice,
}


def extract_plane(volume: Volume, plane: Plane | str, index: int) -> PlaneImage:
    """Dispatch to the extractor for *plane*.

    Raises
    ------
    ValueError
        If *plane* is not one of ``axial``, ``sagittal``, ``coronal``.
    IndexError
        If *index* is outside the plane's range.
    """
    return _EXTRACTORS[Plane(plane)](volume, index)


def _check_index(volume: Volume, plane: Plane, index: int) -> None:
    extent = plane_extent(volume, plane)
    if not 0 <= index < extent:
        raise IndexError(
            f"{plane.value} index {index} out of range [0, {extent})"
        )
