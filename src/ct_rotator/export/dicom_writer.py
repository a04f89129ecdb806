"""Write a rotated volume back out as a slice stack.

Each slice's attachment keeps every field it was loaded with; only the pixel
content is swapped for the rotated plane before the record is saved under a
``CT.ROT.`` file name.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

import numpy as np

from ct_rotator.domain.errors import FormatError, SliceIOError
from ct_rotator.domain.models import Volume

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "CT.ROT."

# Called after each slice is written with (index, output path).
SliceCallback = Callable[[int, Path], None]


def rotated_filename(source_id: str, prefix: str = DEFAULT_PREFIX) -> str:
    """Derive the output file name for *source_id*.

    A leading ``"CT."`` (any case) is replaced by *prefix*; any other name
    gets *prefix* prepended.

    >>> rotated_filename("CT.1.2.3.dcm")
    'CT.ROT.1.2.3.dcm'
    >>> rotated_filename("scan.dcm")
    'CT.ROT.scan.dcm'
    """
    name = Path(source_id).name
    if name[:3].upper() == "CT.":
        return prefix + name[3:]
    return prefix + name


def slice_bytes(volume: Volume, z: int) -> bytes:
    """Plane *z* of *volume* as little-endian signed 16-bit bytes."""
    return np.ascontiguousarray(volume.pixel_data[z], dtype="<i2").tobytes()


def write_rotated_series(
    volume: Volume,
    output_dir: str | Path,
    *,
    prefix: str = DEFAULT_PREFIX,
    create_output_dir: bool = True,
    on_slice: SliceCallback | None = None,
) -> list[Path]:
    """Persist every slice of *volume* into *output_dir*.

    Slices are written in stacking order.  Writing stops at the first
    failure; slices already written stay on disk.

    Parameters
    ----------
    volume:
        Rotated volume whose attachments and source ids come from the load.
    output_dir:
        Destination directory.
    prefix:
        Output file name prefix (see :func:`rotated_filename`).
    create_output_dir:
        Create *output_dir* (and parents) when missing.
    on_slice:
        Optional progress callback.

    Returns
    -------
    list[Path]
        Written paths, index-aligned with the volume's slices.

    Raises
    ------
    FormatError
        If the volume carries no attachments or source ids.
    SliceIOError
        If the output directory or any slice cannot be written.
    """
    if len(volume.attachments) != volume.slice_count or len(volume.source_ids) != volume.slice_count:
        raise FormatError(
            "Volume has no per-slice attachments to write; "
            "load it from a slice stack first"
        )

    output_dir = Path(output_dir)
    if create_output_dir:
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise SliceIOError(f"Cannot create output directory {output_dir}: {exc}") from exc
    elif not output_dir.is_dir():
        raise SliceIOError(f"Output directory does not exist: {output_dir}")

    written: list[Path] = []
    for z in range(volume.slice_count):
        attachment = volume.attachments[z]
        out_path = output_dir / rotated_filename(volume.source_ids[z], prefix)
        attachment.replace_pixel_data(slice_bytes(volume, z))
        try:
            attachment.save(out_path)
        except OSError as exc:
            raise SliceIOError(
                f"Failed to write slice {z} to {out_path} "
                f"({len(written)} of {volume.slice_count} written): {exc}"
            ) from exc
        logger.debug("Wrote slice %d -> %s", z, out_path.name)
        written.append(out_path)
        if on_slice is not None:
            on_slice(z, out_path)

    logger.info("Saved %d rotated files to %s", len(written), output_dir)
    return written
