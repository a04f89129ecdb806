"""Domain models for the CT volume rotation system.

Models are frozen dataclasses.  The voxel grid of a :class:`Volume` is
additionally marked read-only so that downstream consumers (the MPR slicer,
the rotation engine) can share it without copying.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import TYPE_CHECKING, Any

import numpy as np
import yaml

if TYPE_CHECKING:
    from ct_rotator.domain.protocols import SliceAttachment


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _empty_grid() -> np.ndarray:
    """Return an empty ``(0, 0, 0)`` int16 grid."""
    return np.empty((0, 0, 0), dtype=np.int16)


def _empty_dict() -> dict[str, Any]:
    """Return an empty dictionary."""
    return {}


def _is_frozen(pixel_data: np.ndarray) -> bool:
    """True for a read-only, C-contiguous int16 array that owns its buffer."""
    return (
        isinstance(pixel_data, np.ndarray)
        and pixel_data.dtype == np.int16
        and pixel_data.flags.c_contiguous
        and pixel_data.flags.owndata
        and not pixel_data.flags.writeable
    )


def _frozen_grid(pixel_data: np.ndarray) -> np.ndarray:
    """Return *pixel_data* as a read-only, C-contiguous int16 grid.

    Grids that are already frozen are shared; anything else is copied.
    """
    if _is_frozen(pixel_data):
        return pixel_data
    grid = np.array(pixel_data, dtype=np.int16, order="C", copy=True)
    grid.setflags(write=False)
    return grid


# ---------------------------------------------------------------------------
# Viewing planes
# ---------------------------------------------------------------------------

class Plane(str, enum.Enum):
    """The three canonical anatomical viewing planes."""

    AXIAL = "axial"
    SAGITTAL = "sagittal"
    CORONAL = "coronal"


# ---------------------------------------------------------------------------
# Slice records (format-library boundary)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SliceRecord:
    """One slice as exposed by the format library.

    ``pixel_spacing`` follows the DICOM order ``(row pitch, column pitch)``
    in millimetres.  Only the third component of ``position`` is used to
    order the stack.
    """

    rows: int
    columns: int
    pixel_spacing: tuple[float, float]
    position: tuple[float, float, float]
    pixel_bytes: bytes
    attachment: SliceAttachment
    source_id: str

    @property
    def stack_position(self) -> float:
        """Position along the stacking (z) axis in millimetres."""
        return float(self.position[2])


# ---------------------------------------------------------------------------
# Volume
# ---------------------------------------------------------------------------

@dataclass(frozen=True, eq=False)
class Volume:
    """A 3-D CT scalar grid with physical geometry.

    ``pixel_data`` has shape ``(slice_count, rows, columns)`` and holds
    signed 16-bit Hounsfield samples.  ``attachments[i]`` and
    ``source_ids[i]`` belong to ``pixel_data[i]``.
    """

    pixel_data: np.ndarray = field(default_factory=_empty_grid)
    spacing_x: float = 1.0
    spacing_y: float = 1.0
    slice_spacing: float = 1.0
    attachments: tuple[SliceAttachment, ...] = ()
    source_ids: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.pixel_data.ndim != 3:
            raise ValueError(
                f"Volume pixel data must be 3-D (z, y, x), got shape "
                f"{self.pixel_data.shape}."
            )
        object.__setattr__(self, "pixel_data", _frozen_grid(self.pixel_data))
        object.__setattr__(self, "attachments", tuple(self.attachments))
        object.__setattr__(self, "source_ids", tuple(self.source_ids))
        count = self.pixel_data.shape[0]
        if self.attachments and len(self.attachments) != count:
            raise ValueError(
                f"Expected {count} slice attachments, got {len(self.attachments)}."
            )
        if self.source_ids and len(self.source_ids) != count:
            raise ValueError(
                f"Expected {count} source ids, got {len(self.source_ids)}."
            )

    # -- geometry ----------------------------------------------------------

    @property
    def slice_count(self) -> int:
        return int(self.pixel_data.shape[0])

    @property
    def rows(self) -> int:
        return int(self.pixel_data.shape[1])

    @property
    def columns(self) -> int:
        return int(self.pixel_data.shape[2])

    @property
    def pitch(self) -> tuple[float, float, float]:
        """Physical voxel pitch ``(x, y, z)`` in millimetres."""
        return (self.spacing_x, self.spacing_y, self.slice_spacing)

    @property
    def slices(self) -> list[np.ndarray]:
        """Axial slices in stacking order (read-only views)."""
        return list(self.pixel_data)

    # -- derivation --------------------------------------------------------

    def with_pixel_data(self, pixel_data: np.ndarray, *, adopt: bool = False) -> Volume:
        """Return a new volume with the same geometry and *pixel_data*.

        Parameters
        ----------
        pixel_data:
            Replacement grid with this volume's shape.
        adopt:
            Take ownership of *pixel_data* instead of copying it.  The array
            is marked read-only in place; the caller must not keep writing
            to it.  Only C-contiguous int16 arrays that own their buffer can
            be adopted; anything else is still copied.

        Raises
        ------
        ValueError
            If *pixel_data* does not match this volume's shape.
        """
        if pixel_data.shape != self.pixel_data.shape:
            raise ValueError(
                f"Replacement pixel data has shape {pixel_data.shape}, "
                f"expected {self.pixel_data.shape}."
            )
        if (
            adopt
            and pixel_data.dtype == np.int16
            and pixel_data.flags.c_contiguous
            and pixel_data.flags.owndata
        ):
            pixel_data.setflags(write=False)
        return replace(self, pixel_data=pixel_data)

    def describe(self) -> str:
        """One-line status summary, e.g. ``"120 slices (512 x 512, ...)"``."""
        return (
            f"{self.slice_count} slices ({self.columns} x {self.rows}, "
            f"spacing {self.spacing_x:.2f} x {self.spacing_y:.2f} x "
            f"{self.slice_spacing:.2f} mm)"
        )


def plane_extent(volume: Volume, plane: Plane) -> int:
    """Return how many slices *volume* has along *plane*."""
    plane = Plane(plane)
    if plane is Plane.AXIAL:
        return volume.slice_count
    if plane is Plane.SAGITTAL:
        return volume.columns
    return volume.rows


def default_index(volume: Volume, plane: Plane) -> int:
    """Middle slice index along *plane*, where a viewer starts."""
    return plane_extent(volume, plane) // 2


@dataclass(frozen=True, eq=False)
class PlaneImage:
    """A 2-D image extracted along one plane.

    ``pixels`` is ``(height, width)``; ``spacing`` is
    ``(width pitch, height pitch)`` in millimetres.
    """

    pixels: np.ndarray
    spacing: tuple[float, float]
    plane: Plane
    index: int

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])


# ---------------------------------------------------------------------------
# Rotation state
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RotationState:
    """Per-view rotation angles in degrees, clockwise-positive on screen.

    Each angle is the rotation requested in one of the three viewers.  The
    three are composed into a single 3-D rotation only when the volume is
    finalized (see :func:`ct_rotator.reconstruction.rotation.rotation_matrix`).
    """

    axial: float = 0.0
    sagittal: float = 0.0
    coronal: float = 0.0

    @staticmethod
    def zero() -> RotationState:
        return RotationState()

    def for_plane(self, plane: Plane) -> float:
        return float(getattr(self, Plane(plane).value))

    def with_angle(self, plane: Plane, degrees: float) -> RotationState:
        """Return a copy with the angle of *plane* set to *degrees*."""
        return replace(self, **{Plane(plane).value: float(degrees)})

    @property
    def is_identity(self) -> bool:
        return self.axial == 0.0 and self.sagittal == 0.0 and self.coronal == 0.0

    def inverted(self) -> RotationState:
        """Angles negated, e.g. to undo a previous finalize."""
        return RotationState(-self.axial, -self.sagittal, -self.coronal)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AppConfig:
    """Application configuration loaded from YAML with environment overlays.

    Configuration is resolved in order:
      1. ``config/default.yaml``
      2. Optional overlay file (e.g. passed via ``--config``)
      3. Environment variables prefixed with ``CTR_``
    """

    data: dict[str, Any] = field(default_factory=_empty_dict)

    # -- factory -----------------------------------------------------------

    @staticmethod
    def load(
        default_path: str | Path = "config/default.yaml",
        overlay_path: str | Path | None = None,
        env_prefix: str = "CTR_",
    ) -> AppConfig:
        """Load configuration from YAML files and environment variables.

        Parameters
        ----------
        default_path:
            Path to the base configuration file.
        overlay_path:
            Optional path to an overlay file merged on top of the default.
        env_prefix:
            Prefix for environment variable overrides.  A variable named
            ``CTR_LOADER__PATTERN`` maps to ``config["loader"]["pattern"]``.

        Returns
        -------
        AppConfig
            Frozen configuration object exposing the merged dictionary via
            ``data`` and typed helpers.
        """
        import os

        merged: dict[str, Any] = {}

        # 1. Load default
        default = Path(default_path)
        if default.exists():
            with open(default, "r", encoding="utf-8") as fh:
                raw = yaml.safe_load(fh) or {}
            merged = _deep_merge(merged, raw)

        # 2. Load overlay
        if overlay_path is not None:
            overlay = Path(overlay_path)
            if overlay.exists():
                with open(overlay, "r", encoding="utf-8") as fh:
                    raw = yaml.safe_load(fh) or {}
                merged = _deep_merge(merged, raw)

        # 3. Apply environment variable overrides
        for key, value in os.environ.items():
            if key.startswith(env_prefix):
                parts = key[len(env_prefix):].lower().split("__")
                _set_nested(merged, parts, _coerce(value))

        return AppConfig(data=merged)

    # -- typed accessors ---------------------------------------------------

    def get(self, dotted_key: str, default: Any = None) -> Any:
        """Retrieve a value using dot-separated path, e.g. ``loader.pattern``."""
        node: Any = self.data
        for part in dotted_key.split("."):
            if isinstance(node, dict) and part in node:
                node = node[part]
            else:
                return default
        return node


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge *overlay* into *base* (non-destructive)."""
    merged = dict(base)
    for key, value in overlay.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _set_nested(d: dict[str, Any], parts: list[str], value: Any) -> None:
    """Set a value in a nested dict using a list of keys."""
    for part in parts[:-1]:
        d = d.setdefault(part, {})
    if parts:
        d[parts[-1]] = value


def _coerce(value: str) -> Any:
    """Best-effort coercion from string to bool / int / float / str."""
    if value.lower() in ("true", "yes"):
        return True
    if value.lower() in ("false", "no"):
        return False
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    return value
