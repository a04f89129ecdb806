"""Generate a synthetic CT DICOM series for trying out the rotation tool.

Creates a body phantom in Hounsfield Units (soft tissue, liver, spine) and
writes it as one ``CT.phantom.<n>.dcm`` file per axial slice.

Usage:
    python scripts/generate_phantom_series.py [output_dir]

Output directory defaults to ``data/sample_images/phantom``.
"""
from __future__ import annotations

import logging
import sys
from pathlib import Path

from ct_rotator.data.phantom import make_phantom, write_phantom_series

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)

OUTPUT_DIR = Path(__file__).resolve().parent.parent / "data" / "sample_images" / "phantom"

# Volume geometry
VOLUME_SHAPE = (48, 128, 128)  # (D, H, W)
PIXEL_SPACING_MM = (0.9, 0.9)  # DICOM order: (row, column)
SLICE_SPACING_MM = 2.5


def main() -> None:
    output_dir = Path(sys.argv[1]) if len(sys.argv) > 1 else OUTPUT_DIR
    volume = make_phantom(VOLUME_SHAPE)
    paths = write_phantom_series(
        output_dir,
        volume,
        pixel_spacing=PIXEL_SPACING_MM,
        slice_spacing=SLICE_SPACING_MM,
    )
    logger.info("Generated %d slices in %s", len(paths), output_dir)


if __name__ == "__main__":
    main()
