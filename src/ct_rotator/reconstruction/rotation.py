"""Rotation matrices built from the three per-view angles.

The viewers report angles clockwise-positive as dragged on screen.  They are
negated to the counter-clockwise-positive convention and mapped to axes:

- sagittal angle -> rotation about X
- coronal angle  -> rotation about Y
- axial angle    -> rotation about Z

and composed X first, then Y, then Z: ``R = Rz @ Ry @ Rx``.  The order is
a convention; changing it changes the result.
"""
from __future__ import annotations

import numpy as np

from ct_rotator.domain.models import RotationState


def axis_rotation(axis: str, radians: float) -> np.ndarray:
    """Counter-clockwise rotation by *radians* about ``"x"``, ``"y"`` or ``"z"``."""
    c, s = np.cos(radians), np.sin(radians)
    if axis == "x":
        return np.array([[1.0, 0.0, 0.0], [0.0, c, -s], [0.0, s, c]])
    if axis == "y":
        return np.array([[c, 0.0, s], [0.0, 1.0, 0.0], [-s, 0.0, c]])
    if axis == "z":
        return np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]])
    raise ValueError(f"Unknown rotation axis {axis!r}; expected 'x', 'y' or 'z'")


def rotation_matrix(axial: float, sagittal: float, coronal: float) -> np.ndarray:
    """Compose the three on-screen angles (degrees) into one 3x3 matrix.

    Parameters
    ----------
    axial, sagittal, coronal:
        Clockwise-positive angles in degrees, one per viewing plane.

    Returns
    -------
    np.ndarray
        ``(3, 3)`` float64 rotation acting on ``(x, y, z)`` column vectors.
    """
    rx = np.deg2rad(-sagittal)
    ry = np.deg2rad(-coronal)
    rz = np.deg2rad(-axial)
    return axis_rotation("z", rz) @ axis_rotation("y", ry) @ axis_rotation("x", rx)


def state_matrix(state: RotationState) -> np.ndarray:
    """:func:`rotation_matrix` for a :class:`RotationState`."""
    return rotation_matrix(state.axial, state.sagittal, state.coronal)


def in_plane_matrix(angle: float) -> np.ndarray:
    """2x2 rotation for a single clockwise-positive angle in degrees."""
    theta = np.deg2rad(-angle)
    c, s = np.cos(theta), np.sin(theta)
    return np.array([[c, -s], [s, c]])
