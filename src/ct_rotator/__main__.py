"""Command-line shell for the CT volume rotation system.

Examples::

    python -m ct_rotator info ./series
    python -m ct_rotator slice ./series --plane sagittal --index 120 --output sag.npy
    python -m ct_rotator rotate ./series ./rotated --axial 12.5 --coronal -3
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import numpy as np

from ct_rotator.domain.errors import CTRotatorError, NotFoundError
from ct_rotator.domain.models import Plane, RotationState, default_index, plane_extent

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the command-line argument parser.

    Returns
    -------
    argparse.ArgumentParser
        Configured argument parser.
    """
    parser = argparse.ArgumentParser(
        prog="ct_rotator",
        description="Rotate a CT slice stack in 3-D and write it back out.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Enable debug logging.",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="YAML file merged on top of config/default.yaml.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    info = sub.add_parser("info", help="Load a slice stack and print its geometry.")
    info.add_argument("input_dir", help="Directory holding the CT slice files.")

    view = sub.add_parser("slice", help="Extract one plane and save it as .npy.")
    view.add_argument("input_dir", help="Directory holding the CT slice files.")
    view.add_argument(
        "--plane",
        choices=[p.value for p in Plane],
        default=Plane.AXIAL.value,
        help="Viewing plane (default: axial).",
    )
    view.add_argument(
        "--index",
        type=int,
        default=None,
        help="Slice index along the plane (default: middle slice).",
    )
    view.add_argument("--output", required=True, help="Destination .npy file.")

    rotate = sub.add_parser("rotate", help="Rotate the volume and write a new stack.")
    rotate.add_argument("input_dir", help="Directory holding the CT slice files.")
    rotate.add_argument("output_dir", help="Directory for the rotated files.")
    for plane in Plane:
        rotate.add_argument(
            f"--{plane.value}",
            type=float,
            default=0.0,
            help=f"Clockwise {plane.value} view angle in degrees (default: 0).",
        )
    return parser


def _configure_logging(debug: bool) -> None:
    """Set up root logger.

    Parameters
    ----------
    debug:
        If True, set log level to DEBUG; otherwise INFO.
    """
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def run(args: argparse.Namespace) -> int:
    """Execute the parsed command and return the process exit code."""
    from ct_rotator import pipeline
    from ct_rotator.config import get_config
    from ct_rotator.reconstruction.mpr import extract_plane

    if args.config is not None and not Path(args.config).is_file():
        raise NotFoundError(f"Config file not found: {args.config}")
    config = get_config(args.config)
    volume = pipeline.load(args.input_dir, config=config)

    if args.command == "info":
        print(f"Loaded {volume.describe()}")
        return 0

    if args.command == "slice":
        plane = Plane(args.plane)
        index = args.index if args.index is not None else default_index(volume, plane)
        extent = plane_extent(volume, plane)
        if not 0 <= index < extent:
            logger.error("%s index %d out of range [0, %d)", plane.value, index, extent)
            return 2
        image = extract_plane(volume, plane, index)
        np.save(args.output, image.pixels)
        logger.info(
            "Saved %s slice %d (%d x %d, spacing %.2f x %.2f mm) to %s",
            plane.value, index, image.width, image.height,
            image.spacing[0], image.spacing[1], args.output,
        )
        return 0

    state = RotationState(axial=args.axial, sagittal=args.sagittal, coronal=args.coronal)
    result = pipeline.finalize(volume, state, args.output_dir, config=config)
    print(result.summary())
    return 0


def main(argv: list[str] | None = None) -> int:
    """Parse arguments and run the requested command."""
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.debug)
    try:
        return run(args)
    except CTRotatorError as exc:
        logger.error("%s failed: %s", args.command, exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
