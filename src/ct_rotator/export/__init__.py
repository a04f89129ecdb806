"""Export layer -- writes rotated volumes back out as slice stacks."""
from __future__ import annotations

from ct_rotator.export.dicom_writer import (
    DEFAULT_PREFIX,
    rotated_filename,
    slice_bytes,
    write_rotated_series,
)

__all__ = [
    "DEFAULT_PREFIX",
    "rotated_filename",
    "slice_bytes",
    "write_rotated_series",
]
