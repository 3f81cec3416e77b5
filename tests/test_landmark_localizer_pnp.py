from __future__ import annotations

import math

import cv2
import numpy as np
import pytest

from landmark_localizer import (
    CameraIntrinsics,
    PnPResult,
    marker_object_points,
    reprojection_rmse_px,
    solve_marker_pnp,
)


def _rotation_angle(R: np.ndarray) -> float:
    R = np.asarray(R, dtype=np.float64).reshape(3, 3)
    tr = float(np.trace(R))
    v = (tr - 1.0) * 0.5
    v = min(1.0, max(-1.0, v))
    return float(math.acos(v))


def test_solve_marker_pnp_recovers_pose_on_synthetic_projection() -> None:
    K = np.array([[800.0, 0.0, 320.0], [0.0, 800.0, 240.0], [0.0, 0.0, 1.0]], dtype=np.float64)
    intr = CameraIntrinsics(K=K, dist=np.zeros(5, dtype=np.float64))

    marker_size_m = 0.6
    obj = marker_object_points(marker_size_m=marker_size_m)

    # 构造一个非退化的姿态（避免极端角度导致平面二义性变差）。
    rvec_gt = np.array([0.2, -0.1, 0.15], dtype=np.float64)
    R_gt, _ = cv2.Rodrigues(rvec_gt)
    t_gt = np.array([0.3, -0.1, 6.0], dtype=np.float64)

    img, _ = cv2.projectPoints(obj, rvec_gt, t_gt.reshape(3, 1), K, intr.dist)
    corners_px = np.asarray(img, dtype=np.float64).reshape(4, 2)

    out = solve_marker_pnp(corners_px=corners_px, intr=intr, marker_size_m=marker_size_m)

    T = out.T_sensor_from_marker
    R_err = T[:3, :3] @ np.asarray(R_gt, dtype=np.float64).T

    assert float(np.linalg.norm(T[:3, 3] - t_gt)) < 1e-3
    assert _rotation_angle(R_err) < 1e-3
    assert float(out.reproj_rmse_px) < 1e-6


def test_marker_object_points_order_and_size() -> None:
    obj = marker_object_points(marker_size_m=0.5)

    assert obj.shape == (4, 3)
    # TL, TR, BR, BL
    assert np.allclose(obj[0], [-0.25, -0.25, 0.0])
    assert np.allclose(obj[2], [0.25, 0.25, 0.0])
    assert np.allclose(obj[:, 2], 0.0)


def test_marker_object_points_rejects_non_positive_size() -> None:
    with pytest.raises(ValueError):
        marker_object_points(marker_size_m=0.0)


def test_reprojection_rmse_matches_uniform_pixel_offset() -> None:
    K = np.array([[800.0, 0.0, 320.0], [0.0, 800.0, 240.0], [0.0, 0.0, 1.0]], dtype=np.float64)
    intr = CameraIntrinsics(K=K, dist=np.zeros(5, dtype=np.float64))
    obj = marker_object_points(marker_size_m=0.6)
    rvec = np.array([0.0, 0.0, 0.0], dtype=np.float64)
    tvec = np.array([0.0, 0.0, 5.0], dtype=np.float64)

    img, _ = cv2.projectPoints(obj, rvec, tvec, K, intr.dist)
    shifted = np.asarray(img, dtype=np.float64).reshape(4, 2) + np.array([3.0, 4.0])

    rmse = reprojection_rmse_px(object_points=obj, image_points=shifted, rvec=rvec, tvec=tvec, intr=intr)
    assert rmse == pytest.approx(5.0)


def test_pnp_result_exceeds_bound() -> None:
    T = np.eye(4)
    T[:3, 3] = [0.0, 3.0, 4.0]

    assert PnPResult(T_sensor_from_marker=T, reproj_rmse_px=0.5).exceeds(1.0) is False
    assert PnPResult(T_sensor_from_marker=T, reproj_rmse_px=1.0).exceeds(1.0) is False
    assert PnPResult(T_sensor_from_marker=T, reproj_rmse_px=1.5).exceeds(1.0) is True
    assert PnPResult(T_sensor_from_marker=T, reproj_rmse_px=float("nan")).exceeds(1.0) is True
    assert PnPResult(T_sensor_from_marker=T, reproj_rmse_px=0.0).distance_m == pytest.approx(5.0)


def test_solve_marker_pnp_rejects_bad_corners() -> None:
    intr = CameraIntrinsics(K=np.eye(3) * 800.0, dist=np.zeros(5))

    with pytest.raises(ValueError):
        solve_marker_pnp(corners_px=np.full((4, 2), np.nan), intr=intr, marker_size_m=0.6)
    with pytest.raises(ValueError):
        solve_marker_pnp(corners_px=np.zeros((3, 2)), intr=intr, marker_size_m=0.6)
