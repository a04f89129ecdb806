"""Shell-facing operations: load a slice stack, finalize a rotation.

These are the only two entry points with file-system side effects.  Both
raise the typed errors from :mod:`ct_rotator.domain.errors` and never
modify a previously loaded :class:`Volume`, so a shell can report the
failure and let the user retry.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from ct_rotator.config import get_config
from ct_rotator.domain.events import (
    SERIES_WRITTEN,
    SLICE_WRITTEN,
    VOLUME_LOADED,
    VOLUME_ROTATED,
    EventBus,
)
from ct_rotator.domain.models import AppConfig, RotationState, Volume
from ct_rotator.export.dicom_writer import DEFAULT_PREFIX, write_rotated_series
from ct_rotator.ingestion.dicom_loader import DEFAULT_PATTERN, load_ct_series
from ct_rotator.reconstruction.resample import AIR_HU, rotate_volume

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FinalizeResult:
    """Outcome of :func:`finalize`."""

    output_dir: Path
    state: RotationState
    written: list[Path] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.written)

    def summary(self) -> str:
        return (
            f"Saved {self.count} rotated files to {self.output_dir} "
            f"(Axial: {self.state.axial:.1f}°, "
            f"Sagittal: {self.state.sagittal:.1f}°, "
            f"Coronal: {self.state.coronal:.1f}°)"
        )


def load(
    input_dir: str | Path,
    config: AppConfig | None = None,
    bus: EventBus | None = None,
) -> Volume:
    """Load the CT slice stack in *input_dir*.

    Raises
    ------
    NotFoundError
        If no matching slices exist.
    FormatError
        If a slice is unusable or the stack geometry is inconsistent.
    SliceIOError
        If a slice cannot be read.
    """
    cfg = config if config is not None else get_config()
    volume = load_ct_series(
        input_dir,
        pattern=cfg.get("loader.pattern", DEFAULT_PATTERN),
        validate_geometry=bool(cfg.get("loader.validate_geometry", True)),
        spacing_tolerance_mm=float(cfg.get("loader.spacing_tolerance_mm", 1e-3)),
        strict_slice_spacing=bool(cfg.get("loader.strict_slice_spacing", False)),
    )
    if bus is not None:
        bus.publish(
            VOLUME_LOADED,
            {
                "input_dir": str(input_dir),
                "slice_count": volume.slice_count,
                "rows": volume.rows,
                "columns": volume.columns,
                "pitch": volume.pitch,
            },
        )
    return volume


def finalize(
    volume: Volume,
    state: RotationState,
    output_dir: str | Path,
    config: AppConfig | None = None,
    bus: EventBus | None = None,
) -> FinalizeResult:
    """Rotate *volume* by *state* and write the result to *output_dir*.

    Raises
    ------
    FormatError
        If *volume* has no per-slice attachments.
    SliceIOError
        If any slice cannot be written.  Earlier slices remain on disk.
    """
    cfg = config if config is not None else get_config()
    rotated = rotate_volume(
        volume, state, fill_value=float(cfg.get("rotation.fill_value", AIR_HU))
    )
    if bus is not None:
        bus.publish(
            VOLUME_ROTATED,
            {"axial": state.axial, "sagittal": state.sagittal, "coronal": state.coronal},
        )

    def _on_slice(index: int, path: Path) -> None:
        if bus is not None:
            bus.publish(SLICE_WRITTEN, {"index": index, "path": str(path)})

    written = write_rotated_series(
        rotated,
        output_dir,
        prefix=str(cfg.get("writer.output_prefix", DEFAULT_PREFIX)),
        create_output_dir=bool(cfg.get("writer.create_output_dir", True)),
        on_slice=_on_slice,
    )
    result = FinalizeResult(output_dir=Path(output_dir), state=state, written=written)
    if bus is not None:
        bus.publish(SERIES_WRITTEN, {"output_dir": str(output_dir), "count": result.count})
    logger.info(result.summary())
    return result
