"""Tests for rotation-matrix construction from per-view angles."""

from __future__ import annotations

import numpy as np
import numpy.testing as npt
import pytest
from scipy.spatial.transform import Rotation

from ct_rotator.domain.models import RotationState
from ct_rotator.reconstruction.rotation import (
    axis_rotation,
    in_plane_matrix,
    rotation_matrix,
    state_matrix,
)


class TestRotationMatrix:
    def test_zero_angles_give_exact_identity(self):
        npt.assert_array_equal(rotation_matrix(0.0, 0.0, 0.0), np.eye(3))

    @pytest.mark.parametrize(
        "axial, sagittal, coronal",
        [(10.0, 0.0, 0.0), (0.0, 25.0, 0.0), (0.0, 0.0, -40.0), (12.0, -7.5, 33.0)],
    )
    def test_matches_extrinsic_xyz(self, axial, sagittal, coronal):
        # Extrinsic x, y, z rotations compose as Rz @ Ry @ Rx.
        expected = Rotation.from_euler(
            "xyz", [-sagittal, -coronal, -axial], degrees=True
        ).as_matrix()
        npt.assert_allclose(rotation_matrix(axial, sagittal, coronal), expected, atol=1e-12)

    def test_composition_order_matters(self):
        r = rotation_matrix(30.0, 20.0, 10.0)
        rx = axis_rotation("x", np.deg2rad(-20.0))
        ry = axis_rotation("y", np.deg2rad(-10.0))
        rz = axis_rotation("z", np.deg2rad(-30.0))
        npt.assert_allclose(r, rz @ ry @ rx, atol=1e-12)
        assert not np.allclose(r, rx @ ry @ rz)

    def test_orthonormal(self):
        r = rotation_matrix(17.0, -48.0, 91.0)
        npt.assert_allclose(r @ r.T, np.eye(3), atol=1e-12)
        assert np.linalg.det(r) == pytest.approx(1.0)

    def test_clockwise_axial_angle(self):
        # A positive on-screen axial angle maps +x towards -y.
        r = rotation_matrix(90.0, 0.0, 0.0)
        npt.assert_allclose(r @ np.array([1.0, 0.0, 0.0]), [0.0, -1.0, 0.0], atol=1e-12)

    def test_sagittal_rotates_about_x(self):
        r = rotation_matrix(0.0, 35.0, 0.0)
        npt.assert_allclose(r @ np.array([1.0, 0.0, 0.0]), [1.0, 0.0, 0.0], atol=1e-12)

    def test_coronal_rotates_about_y(self):
        r = rotation_matrix(0.0, 0.0, 35.0)
        npt.assert_allclose(r @ np.array([0.0, 1.0, 0.0]), [0.0, 1.0, 0.0], atol=1e-12)

    def test_state_matrix(self):
        state = RotationState(axial=5.0, sagittal=6.0, coronal=7.0)
        npt.assert_array_equal(state_matrix(state), rotation_matrix(5.0, 6.0, 7.0))

    def test_unknown_axis(self):
        with pytest.raises(ValueError, match="axis"):
            axis_rotation("w", 1.0)


class TestInPlaneMatrix:
    def test_matches_axial_block(self):
        npt.assert_allclose(
            in_plane_matrix(27.0), rotation_matrix(27.0, 0.0, 0.0)[:2, :2], atol=1e-15
        )
