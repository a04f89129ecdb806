"""Ingestion layer -- reads a CT slice stack into a :class:`Volume`.

Public API::

    from ct_rotator.ingestion import load_ct_series, assemble_volume

Lazy imports are used so that ``pydicom`` is only imported when a loader
function is actually used, not at package import time.
"""
from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ct_rotator.ingestion.dicom_loader import DicomAttachment as DicomAttachment
    from ct_rotator.ingestion.dicom_loader import assemble_volume as assemble_volume
    from ct_rotator.ingestion.dicom_loader import load_ct_series as load_ct_series
    from ct_rotator.ingestion.dicom_loader import read_slice_record as read_slice_record

__all__ = [
    "DicomAttachment",
    "assemble_volume",
    "load_ct_series",
    "read_slice_record",
]


def __getattr__(name: str) -> object:
    """Lazy-load public symbols on first access."""
    if name in __all__:
        from ct_rotator.ingestion import dicom_loader

        return getattr(dicom_loader, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
