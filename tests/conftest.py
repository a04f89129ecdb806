"""Shared pytest fixtures for the ct_rotator test suite."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from ct_rotator.data.phantom import make_phantom, write_phantom_series
from ct_rotator.domain.models import SliceRecord, Volume


# ---------------------------------------------------------------------------
# In-memory attachments
# ---------------------------------------------------------------------------


class FakeAttachment:
    """In-memory stand-in for a per-slice DICOM record."""

    def __init__(self, fail_on_save: bool = False) -> None:
        self.pixel_data: bytes | None = None
        self.saved: list[Path] = []
        self.fail_on_save = fail_on_save

    def replace_pixel_data(self, data: bytes) -> None:
        self.pixel_data = bytes(data)

    def save(self, path) -> None:
        if self.fail_on_save:
            raise OSError("No space left on device")
        Path(path).write_bytes(self.pixel_data or b"")
        self.saved.append(Path(path))


def make_record(
    z: float,
    pixels: np.ndarray,
    spacing: tuple[float, float] = (1.0, 1.0),
    source_id: str | None = None,
) -> SliceRecord:
    """Build a SliceRecord at stacking position *z* holding *pixels*."""
    rows, columns = pixels.shape
    return SliceRecord(
        rows=rows,
        columns=columns,
        pixel_spacing=spacing,
        position=(0.0, 0.0, float(z)),
        pixel_bytes=np.ascontiguousarray(pixels, dtype="<i2").tobytes(),
        attachment=FakeAttachment(),
        source_id=source_id or f"CT.slice.{z:g}.dcm",
    )


# ---------------------------------------------------------------------------
# Volume fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def ramp_grid() -> np.ndarray:
    """A (4, 5, 6) int16 grid where every voxel value is unique: 100z + 10y + x."""
    zz, yy, xx = np.meshgrid(np.arange(4), np.arange(5), np.arange(6), indexing="ij")
    return (100 * zz + 10 * yy + xx).astype(np.int16)


@pytest.fixture()
def ramp_volume(ramp_grid) -> Volume:
    """A Volume over ``ramp_grid`` with anisotropic spacing and fake attachments."""
    return Volume(
        pixel_data=ramp_grid,
        spacing_x=0.6,
        spacing_y=0.8,
        slice_spacing=2.5,
        attachments=tuple(FakeAttachment() for _ in range(ramp_grid.shape[0])),
        source_ids=tuple(f"/data/in/CT.1.2.{i}.dcm" for i in range(ramp_grid.shape[0])),
    )


@pytest.fixture()
def phantom_grid() -> np.ndarray:
    """A small (8, 24, 20) body phantom in HU."""
    return make_phantom((8, 24, 20))


@pytest.fixture()
def phantom_series(tmp_path, phantom_grid) -> Path:
    """Directory holding ``phantom_grid`` as a CT.*.dcm series."""
    directory = tmp_path / "series"
    write_phantom_series(
        directory, phantom_grid, pixel_spacing=(0.8, 0.6), slice_spacing=2.5
    )
    return directory
