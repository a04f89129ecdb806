"""Protocol interfaces for the CT volume rotation system.

Using :class:`typing.Protocol` enables structural subtyping -- the DICOM
attachment and the in-memory fakes used in tests do not need to inherit
from these classes.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable


@runtime_checkable
class SliceAttachment(Protocol):
    """Opaque per-slice record carried alongside the pixel grid.

    The core never inspects the record.  It only swaps the pixel content
    and asks the record to persist itself.
    """

    def replace_pixel_data(self, data: bytes) -> None:
        """Replace the pixel buffer with *data*, leaving every other field.

        Parameters
        ----------
        data:
            ``rows * columns`` little-endian signed 16-bit samples.
        """
        ...

    def save(self, path: str | Path) -> None:
        """Write the full record to *path*.

        Raises
        ------
        OSError
            If the record cannot be written.
        """
        ...
