"""Synthetic CT phantoms written as DICOM slice stacks.

Produces a body-like volume in Hounsfield Units (air background, soft-tissue
ellipsoid, liver-like organ, bright spine) and writes it one slice per file
so that the loader, the viewers and the rotation pipeline can be exercised
without patient data.
"""
from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

import numpy as np
from pydicom.dataset import FileDataset, FileMetaDataset
from pydicom.uid import CTImageStorage, ImplicitVRLittleEndian, generate_uid

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

HU_AIR = -1000
HU_SOFT_TISSUE = 40
HU_LIVER = 60
HU_BONE_CORTICAL = 1000


# ---------------------------------------------------------------------------
# Volume generation
# ---------------------------------------------------------------------------

def make_phantom(shape: tuple[int, int, int] = (32, 64, 64)) -> np.ndarray:
    """Build an int16 ``(depth, rows, columns)`` body phantom.

    The phantom is deliberately asymmetric (liver offset to one side, spine
    posterior) so that rotations and plane reversals are visible.
    """
    depth, rows, columns = shape
    volume = np.full(shape, HU_AIR, dtype=np.int16)

    zz, yy, xx = np.meshgrid(
        np.arange(depth), np.arange(rows), np.arange(columns), indexing="ij"
    )
    cz, cy, cx = depth / 2.0, rows / 2.0, columns / 2.0

    # Body ellipsoid
    body = (
        ((xx - cx) / (columns * 0.40)) ** 2
        + ((yy - cy) / (rows * 0.35)) ** 2
        + ((zz - cz) / (depth * 0.45)) ** 2
    ) <= 1.0
    volume[body] = HU_SOFT_TISSUE

    # Liver: offset right and slightly inferior
    liver = (
        ((xx - (cx + columns * 0.12)) / (columns * 0.15)) ** 2
        + ((yy - (cy + rows * 0.05)) / (rows * 0.12)) ** 2
        + ((zz - (cz - depth * 0.08)) / (depth * 0.25)) ** 2
    ) <= 1.0
    volume[liver] = HU_LIVER

    # Spine: cylinder along z in the posterior region
    spine = (
        ((xx - cx) / max(columns * 0.05, 1.0)) ** 2
        + ((yy - (cy + rows * 0.25)) / max(rows * 0.05, 1.0)) ** 2
    ) <= 1.0
    volume[spine & body] = HU_BONE_CORTICAL

    return volume


# ---------------------------------------------------------------------------
# DICOM export
# ---------------------------------------------------------------------------

def write_phantom_series(
    directory: str | Path,
    pixel_data: np.ndarray,
    pixel_spacing: tuple[float, float] = (1.0, 1.0),
    slice_spacing: float = 2.5,
    positions: Sequence[float] | None = None,
    name_prefix: str = "CT.phantom",
) -> list[Path]:
    """Write *pixel_data* as one CT DICOM file per slice.

    Parameters
    ----------
    directory:
        Output directory (created if missing).
    pixel_data:
        ``(depth, rows, columns)`` array of HU values, stored as int16.
    pixel_spacing:
        DICOM ``PixelSpacing`` ``(row pitch, column pitch)`` in mm.
    slice_spacing:
        Distance between consecutive slice positions when *positions* is
        not given.
    positions:
        Explicit stacking-axis position per slice (mm).
    name_prefix:
        File names are ``<name_prefix>.<n>.dcm`` with ``n`` starting at 1.

    Returns
    -------
    list[Path]
        Written file paths in slice order.
    """
    if pixel_data.ndim != 3:
        raise ValueError(f"Expected a 3-D array, got {pixel_data.ndim}-D.")
    depth, rows, columns = pixel_data.shape
    if positions is None:
        positions = [i * slice_spacing for i in range(depth)]
    if len(positions) != depth:
        raise ValueError(f"Expected {depth} positions, got {len(positions)}.")

    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)

    study_uid = generate_uid()
    series_uid = generate_uid()
    frame_uid = generate_uid()

    written: list[Path] = []
    for i in range(depth):
        ds = _create_dataset(
            rows=rows,
            columns=columns,
            pixel_spacing=pixel_spacing,
            position_z=float(positions[i]),
            instance_number=i + 1,
            study_uid=study_uid,
            series_uid=series_uid,
            frame_uid=frame_uid,
        )
        ds.PixelData = np.ascontiguousarray(pixel_data[i], dtype="<i2").tobytes()
        path = directory / f"{name_prefix}.{i + 1}.dcm"
        ds.save_as(str(path))
        written.append(path)

    logger.info("Wrote %d phantom slices to %s", len(written), directory)
    return written


def _create_dataset(
    rows: int,
    columns: int,
    pixel_spacing: tuple[float, float],
    position_z: float,
    instance_number: int,
    study_uid: str,
    series_uid: str,
    frame_uid: str,
) -> FileDataset:
    """Create a DICOM dataset for a single signed 16-bit CT slice."""
    file_meta = FileMetaDataset()
    file_meta.MediaStorageSOPClassUID = CTImageStorage
    file_meta.MediaStorageSOPInstanceUID = generate_uid()
    file_meta.TransferSyntaxUID = ImplicitVRLittleEndian
    file_meta.ImplementationClassUID = generate_uid()

    ds = FileDataset(
        filename_or_obj="",
        dataset={},
        file_meta=file_meta,
        preamble=b"\x00" * 128,
    )

    ds.PatientName = "Phantom^Synthetic"
    ds.PatientID = "PHANTOM001"
    ds.StudyInstanceUID = study_uid
    ds.SeriesInstanceUID = series_uid
    ds.FrameOfReferenceUID = frame_uid
    ds.SeriesDescription = "Synthetic CT phantom"
    ds.Modality = "CT"

    ds.SamplesPerPixel = 1
    ds.PhotometricInterpretation = "MONOCHROME2"
    ds.Rows = rows
    ds.Columns = columns
    ds.BitsAllocated = 16
    ds.BitsStored = 16
    ds.HighBit = 15
    ds.PixelRepresentation = 1  # Signed, HU stored directly
    ds.RescaleSlope = "1"
    ds.RescaleIntercept = "0"

    # DS values are limited to 16 characters.
    ds.PixelSpacing = [round(float(pixel_spacing[0]), 6), round(float(pixel_spacing[1]), 6)]
    position_z = round(position_z, 6)
    ds.ImagePositionPatient = [0.0, 0.0, position_z]
    ds.ImageOrientationPatient = [1, 0, 0, 0, 1, 0]
    ds.SliceLocation = position_z
    ds.InstanceNumber = instance_number

    ds.SOPClassUID = CTImageStorage
    ds.SOPInstanceUID = file_meta.MediaStorageSOPInstanceUID
    return ds
