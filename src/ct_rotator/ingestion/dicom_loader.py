"""CT slice-stack loader.

Uses ``pydicom`` to read one file per axial slice, then assembles the
records into a :class:`Volume`.  Reading (:func:`read_slice_record`) and
assembly (:func:`assemble_volume`) are separate so that the geometry rules
can be exercised without touching the file system.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from pathlib import Path

import numpy as np
import pydicom
from pydicom.dataset import Dataset
from pydicom.errors import InvalidDicomError

from ct_rotator.domain.errors import FormatError, NotFoundError, SliceIOError
from ct_rotator.domain.models import SliceRecord, Volume

logger = logging.getLogger(__name__)

DEFAULT_PATTERN = "CT*.dcm"

# Attributes every slice must carry (keyword -> human readable name).
_REQUIRED_TAGS: dict[str, str] = {
    "Rows": "rows",
    "Columns": "columns",
    "PixelSpacing": "pixel spacing",
    "ImagePositionPatient": "image position",
    "PixelData": "pixel data",
}


# ---------------------------------------------------------------------------
# Attachment
# ---------------------------------------------------------------------------

class DicomAttachment:
    """A pydicom dataset carried alongside one slice.

    Satisfies :class:`~ct_rotator.domain.protocols.SliceAttachment`: only
    ``PixelData`` is ever replaced, every other element is written back
    exactly as it was read.
    """

    def __init__(self, dataset: Dataset) -> None:
        self.dataset = dataset

    def replace_pixel_data(self, data: bytes) -> None:
        self.dataset.PixelData = bytes(data)

    def save(self, path: str | Path) -> None:
        self.dataset.save_as(str(path))

    def __repr__(self) -> str:
        sop_uid = getattr(self.dataset, "SOPInstanceUID", "?")
        return f"DicomAttachment(SOPInstanceUID={sop_uid!s})"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def load_ct_series(
    directory: str | Path,
    pattern: str = DEFAULT_PATTERN,
    *,
    validate_geometry: bool = True,
    spacing_tolerance_mm: float = 1e-3,
    strict_slice_spacing: bool = False,
) -> Volume:
    """Read every file in *directory* matching *pattern* into a Volume.

    Parameters
    ----------
    directory:
        Directory holding one file per axial slice.
    pattern:
        Glob matched against file names (default ``"CT*.dcm"``).
    validate_geometry, spacing_tolerance_mm, strict_slice_spacing:
        Passed through to :func:`assemble_volume`.

    Returns
    -------
    Volume
        Slices ordered by increasing stacking position, with one
        :class:`DicomAttachment` and one source path per slice.

    Raises
    ------
    NotFoundError
        If *directory* does not exist or no file matches *pattern*.
    FormatError
        If a file is not a usable slice or the stack is inconsistent.
    SliceIOError
        If a file cannot be read.
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise NotFoundError(f"Input directory not found: {directory}")

    files = sorted(p for p in directory.glob(pattern) if p.is_file())
    if not files:
        raise NotFoundError(f"No {pattern} files found in {directory}")

    logger.info("Reading %d slice files from %s", len(files), directory)
    records = [read_slice_record(path) for path in files]

    volume = assemble_volume(
        records,
        validate_geometry=validate_geometry,
        spacing_tolerance_mm=spacing_tolerance_mm,
        strict_slice_spacing=strict_slice_spacing,
    )
    logger.info("Loaded %s", volume.describe())
    return volume


def read_slice_record(path: str | Path) -> SliceRecord:
    """Read a single DICOM slice file into a :class:`SliceRecord`.

    Raises
    ------
    FormatError
        If the file is not DICOM, is compressed, lacks a required
        attribute, or carries too few pixel bytes.
    SliceIOError
        If the file cannot be read from disk.
    """
    path = Path(path)
    try:
        ds = pydicom.dcmread(str(path))
    except InvalidDicomError as exc:
        raise FormatError(f"{path.name} is not a DICOM file: {exc}") from exc
    except OSError as exc:
        raise SliceIOError(f"Failed to read {path}: {exc}") from exc

    missing = [name for tag, name in _REQUIRED_TAGS.items() if tag not in ds]
    if missing:
        raise FormatError(f"{path.name} is missing {', '.join(missing)}")

    transfer_syntax = getattr(getattr(ds, "file_meta", None), "TransferSyntaxUID", None)
    if transfer_syntax is not None and transfer_syntax.is_compressed:
        raise FormatError(
            f"{path.name} uses compressed transfer syntax {transfer_syntax.name}; "
            "only native pixel data is supported"
        )

    bits = getattr(ds, "BitsAllocated", 16)
    if bits is not None and int(bits) != 16:
        raise FormatError(f"{path.name} has {bits}-bit pixels; expected 16-bit")

    try:
        rows = int(ds.Rows)
        columns = int(ds.Columns)
        spacing = tuple(float(v) for v in ds.PixelSpacing)
        position = tuple(float(v) for v in ds.ImagePositionPatient)
    except (TypeError, ValueError) as exc:
        raise FormatError(f"{path.name} has malformed geometry: {exc}") from exc

    if len(spacing) != 2 or len(position) != 3:
        raise FormatError(
            f"{path.name} has {len(spacing)} spacing and {len(position)} "
            "position components; expected 2 and 3"
        )

    pixel_bytes = bytes(ds.PixelData)
    expected = rows * columns * 2
    if len(pixel_bytes) < expected:
        raise FormatError(
            f"{path.name} has {len(pixel_bytes)} pixel bytes; "
            f"expected {expected} for {rows}x{columns} 16-bit samples"
        )

    return SliceRecord(
        rows=rows,
        columns=columns,
        pixel_spacing=(spacing[0], spacing[1]),
        position=(position[0], position[1], position[2]),
        pixel_bytes=pixel_bytes[:expected],
        attachment=DicomAttachment(ds),
        source_id=str(path),
    )


def assemble_volume(
    records: Iterable[SliceRecord],
    *,
    validate_geometry: bool = True,
    spacing_tolerance_mm: float = 1e-3,
    strict_slice_spacing: bool = False,
) -> Volume:
    """Sort *records* along the stacking axis and build a :class:`Volume`.

    ``rows``, ``columns`` and in-plane spacing come from the first sorted
    record.  ``slice_spacing`` is the distance between the first two sorted
    positions, or ``1.0`` for a single slice.

    Parameters
    ----------
    records:
        Slice records in any order.
    validate_geometry:
        Reject records whose in-plane spacing differs from the first by
        more than *spacing_tolerance_mm*.
    spacing_tolerance_mm:
        Tolerance for spacing comparisons.
    strict_slice_spacing:
        Raise instead of warning when the stacking positions are not evenly
        spaced.

    Raises
    ------
    NotFoundError
        If *records* is empty.
    FormatError
        On mismatched dimensions, duplicate stacking positions, or (when
        validating) mismatched spacing.
    """
    ordered = sorted(records, key=lambda r: r.stack_position)
    if not ordered:
        raise NotFoundError("No slice records to assemble")

    first = ordered[0]
    rows, columns = first.rows, first.columns

    for record in ordered[1:]:
        # A grid cannot be built from differently sized slices, so this
        # check does not depend on validate_geometry.
        if (record.rows, record.columns) != (rows, columns):
            raise FormatError(
                f"{_label(record)} is {record.columns}x{record.rows}; "
                f"expected {columns}x{rows}"
            )
        if validate_geometry and not np.allclose(
            record.pixel_spacing, first.pixel_spacing, rtol=0.0, atol=spacing_tolerance_mm
        ):
            raise FormatError(
                f"{_label(record)} has pixel spacing {record.pixel_spacing}; "
                f"expected {first.pixel_spacing}"
            )

    positions = [r.stack_position for r in ordered]
    slice_spacing = derive_slice_spacing(positions)
    _check_stacking(positions, spacing_tolerance_mm, strict_slice_spacing)

    pixel_data = np.stack(
        [
            np.frombuffer(r.pixel_bytes, dtype="<i2", count=rows * columns).reshape(rows, columns)
            for r in ordered
        ]
    )

    # DICOM PixelSpacing is [row pitch (Y), column pitch (X)].
    return Volume(
        pixel_data=pixel_data,
        spacing_x=float(first.pixel_spacing[1]),
        spacing_y=float(first.pixel_spacing[0]),
        slice_spacing=slice_spacing,
        attachments=tuple(r.attachment for r in ordered),
        source_ids=tuple(r.source_id for r in ordered),
    )


def derive_slice_spacing(positions: Sequence[float]) -> float:
    """Return ``|positions[1] - positions[0]|``, or ``1.0`` for one slice."""
    if len(positions) < 2:
        return 1.0
    return abs(float(positions[1]) - float(positions[0]))


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _check_stacking(
    positions: Sequence[float],
    tolerance_mm: float,
    strict: bool,
) -> None:
    """Reject duplicate positions; warn (or raise) on uneven spacing."""
    if len(positions) < 2:
        return
    gaps = np.diff(np.asarray(positions, dtype=np.float64))
    if np.any(gaps <= 0.0):
        dup = float(np.asarray(positions)[1:][gaps <= 0.0][0])
        raise FormatError(f"Two slices share stacking position {dup:g} mm")

    spread = float(gaps.max() - gaps.min())
    if spread > tolerance_mm:
        message = (
            f"Slice positions are unevenly spaced (gaps {gaps.min():g} to "
            f"{gaps.max():g} mm); using {gaps[0]:g} mm"
        )
        if strict:
            raise FormatError(message)
        logger.warning(message)


def _label(record: SliceRecord) -> str:
    return Path(record.source_id).name or "slice"
