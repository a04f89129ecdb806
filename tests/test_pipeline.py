"""End-to-end tests for the load / finalize operations and the CLI."""

from __future__ import annotations

import numpy as np
import numpy.testing as npt
import pytest

from ct_rotator import pipeline
from ct_rotator.__main__ import build_parser, main
from ct_rotator.config import DEFAULT_CONFIG_PATH
from ct_rotator.domain.errors import FormatError, NotFoundError
from ct_rotator.domain.events import (
    SERIES_WRITTEN,
    SLICE_WRITTEN,
    VOLUME_LOADED,
    VOLUME_ROTATED,
    EventBus,
)
from ct_rotator.domain.models import AppConfig, RotationState


@pytest.fixture()
def config() -> AppConfig:
    return AppConfig.load(DEFAULT_CONFIG_PATH, env_prefix="CTRTEST_")


@pytest.fixture()
def recorded():
    bus = EventBus()
    events = []
    for event_type in (VOLUME_LOADED, VOLUME_ROTATED, SLICE_WRITTEN, SERIES_WRITTEN):
        bus.subscribe(event_type, events.append)
    return bus, events


class TestLoad:
    def test_loads_phantom(self, phantom_series, phantom_grid, config, recorded):
        bus, events = recorded
        volume = pipeline.load(phantom_series, config=config, bus=bus)
        npt.assert_array_equal(volume.pixel_data, phantom_grid)
        assert volume.pitch == pytest.approx((0.6, 0.8, 2.5))
        assert [e.type for e in events] == [VOLUME_LOADED]
        assert events[0].payload["slice_count"] == phantom_grid.shape[0]

    def test_empty_directory(self, tmp_path, config):
        with pytest.raises(NotFoundError):
            pipeline.load(tmp_path, config=config)

    def test_pattern_from_config(self, phantom_series, tmp_path):
        overlay = tmp_path / "overlay.yaml"
        overlay.write_text("loader:\n  pattern: 'MR*.dcm'\n")
        cfg = AppConfig.load(DEFAULT_CONFIG_PATH, overlay, env_prefix="CTRTEST_")
        with pytest.raises(NotFoundError, match="MR"):
            pipeline.load(phantom_series, config=cfg)


class TestFinalize:
    def test_rotates_and_writes(self, phantom_series, config, recorded, tmp_path):
        bus, events = recorded
        volume = pipeline.load(phantom_series, config=config)
        before = volume.pixel_data.copy()
        state = RotationState(axial=20.0, sagittal=-5.0)

        result = pipeline.finalize(volume, state, tmp_path / "out", config=config, bus=bus)

        assert result.count == volume.slice_count
        assert all(p.name.startswith("CT.ROT.phantom.") for p in result.written)
        npt.assert_array_equal(volume.pixel_data, before)
        types = [e.type for e in events]
        assert types[0] == VOLUME_ROTATED
        assert types[-1] == SERIES_WRITTEN
        assert types.count(SLICE_WRITTEN) == volume.slice_count
        assert "Axial: 20.0°" in result.summary()
        assert f"Saved {volume.slice_count} rotated files" in result.summary()

    def test_zero_rotation_writes_original_pixels(self, phantom_series, phantom_grid, config, tmp_path):
        volume = pipeline.load(phantom_series, config=config)
        pipeline.finalize(volume, RotationState.zero(), tmp_path / "out", config=config)
        reloaded = pipeline.load(tmp_path / "out", config=config)
        npt.assert_array_equal(reloaded.pixel_data, phantom_grid)

    def test_fill_value_from_config(self, phantom_series, tmp_path, monkeypatch):
        monkeypatch.setenv("CTRTEST_ROTATION__FILL_VALUE", "-2000")
        cfg = AppConfig.load(DEFAULT_CONFIG_PATH, env_prefix="CTRTEST_")
        volume = pipeline.load(phantom_series, config=cfg)
        pipeline.finalize(volume, RotationState(axial=45.0), tmp_path / "out", config=cfg)
        reloaded = pipeline.load(tmp_path / "out", config=cfg)
        assert reloaded.pixel_data[0, 0, 0] == -2000

    def test_in_memory_volume_rejected(self, phantom_grid, config, tmp_path):
        from ct_rotator.domain.models import Volume

        with pytest.raises(FormatError):
            pipeline.finalize(Volume(pixel_data=phantom_grid), RotationState(), tmp_path, config=config)


class TestCLI:
    def test_parser_defaults(self):
        args = build_parser().parse_args(["rotate", "in", "out", "--axial", "12.5"])
        assert args.axial == 12.5
        assert args.sagittal == 0.0
        assert args.coronal == 0.0

    def test_info(self, phantom_series, capsys):
        assert main(["info", str(phantom_series)]) == 0
        assert "8 slices (20 x 24" in capsys.readouterr().out

    def test_slice(self, phantom_series, phantom_grid, tmp_path):
        output = tmp_path / "sag.npy"
        code = main(["slice", str(phantom_series), "--plane", "sagittal", "--index", "3", "--output", str(output)])
        assert code == 0
        npt.assert_array_equal(np.load(output), phantom_grid[::-1, :, 3])

    def test_slice_out_of_range(self, phantom_series, tmp_path):
        code = main(["slice", str(phantom_series), "--index", "99", "--output", str(tmp_path / "x.npy")])
        assert code == 2

    def test_rotate(self, phantom_series, tmp_path, capsys):
        out_dir = tmp_path / "rotated"
        assert main(["rotate", str(phantom_series), str(out_dir), "--coronal", "10"]) == 0
        assert len(list(out_dir.glob("CT.ROT.*.dcm"))) == 8
        assert "Coronal: 10.0°" in capsys.readouterr().out

    def test_missing_input_exit_code(self, tmp_path):
        assert main(["info", str(tmp_path / "nope")]) == 1

    def test_missing_config_file(self, phantom_series, tmp_path, capsys):
        code = main(["--config", str(tmp_path / "typo.yaml"), "info", str(phantom_series)])
        assert code == 1
        assert "Loaded" not in capsys.readouterr().out

    def test_existing_config_file(self, phantom_series, tmp_path):
        overlay = tmp_path / "overlay.yaml"
        overlay.write_text("loader:\n  pattern: 'MR*.dcm'\n")
        assert main(["--config", str(overlay), "info", str(phantom_series)]) == 1

    def test_out_of_range_per_plane(self, phantom_series, tmp_path):
        # 20 columns: sagittal index 19 is valid, 20 is not.
        output = tmp_path / "sag.npy"
        args = ["slice", str(phantom_series), "--plane", "sagittal", "--output", str(output)]
        assert main(args + ["--index", "20"]) == 2
        assert not output.exists()
        assert main(args + ["--index", "19"]) == 0
        assert main(args + ["--index", "-1"]) == 2

    def test_internal_index_error_propagates(self, phantom_series, monkeypatch):
        def broken_load(*args, **kwargs):
            raise IndexError("list index out of range")

        monkeypatch.setattr(pipeline, "load", broken_load)
        with pytest.raises(IndexError):
            main(["info", str(phantom_series)])
