from __future__ import annotations

import numpy as np
import pytest

from landmark_localizer.config import StaticTransformConfig
from landmark_localizer.frames import StaticFrameTransforms
from landmark_localizer.transforms import T_from_rvec_tvec, compose_T, invert_T


def _tree() -> tuple[StaticFrameTransforms, np.ndarray, np.ndarray]:
    T_base_from_mount = T_from_rvec_tvec(np.array([0.0, 0.0, 0.3]), np.array([1.0, 0.0, 1.2]))
    T_mount_from_camera = T_from_rvec_tvec(np.array([-1.57, 0.0, -1.57]), np.array([0.1, 0.0, 0.0]))
    tf = StaticFrameTransforms(
        [
            ("base_link", "mount", T_base_from_mount),
            ("mount", "camera", T_mount_from_camera),
        ]
    )
    return tf, T_base_from_mount, T_mount_from_camera


def test_chain_lookup_composes_edges() -> None:
    tf, A, B = _tree()

    res = tf.lookup_transform("base_link", "camera", None)

    assert res.ok
    assert res.T is not None
    assert np.allclose(res.T, compose_T(A, B), atol=1e-12)


def test_reverse_lookup_is_inverse() -> None:
    tf, A, B = _tree()

    res = tf.lookup_transform("camera", "base_link")

    assert res.ok
    assert res.T is not None
    assert np.allclose(res.T, invert_T(compose_T(A, B)), atol=1e-12)


def test_same_frame_is_identity() -> None:
    tf, _, _ = _tree()

    res = tf.lookup_transform("camera", "camera")

    assert res.ok
    assert np.array_equal(res.T, np.eye(4))


def test_unknown_frame_fails_without_raising() -> None:
    tf, _, _ = _tree()

    res = tf.lookup_transform("base_link", "lidar")

    assert not res.ok
    assert res.T is None
    assert "lidar" in res.error


def test_disconnected_frames_fail() -> None:
    tf, _, _ = _tree()
    tf.add("odom", "imu", np.eye(4))

    res = tf.lookup_transform("base_link", "imu")

    assert not res.ok


def test_from_config_uses_quaternion_rotation() -> None:
    s = float(np.sqrt(0.5))
    tf = StaticFrameTransforms.from_config(
        [StaticTransformConfig(parent="base_link", child="camera", translation=(1.0, 2.0, 3.0), rotation_xyzw=(0.0, 0.0, s, s))]
    )

    res = tf.lookup_transform("base_link", "camera")

    assert res.ok
    assert res.T is not None
    assert np.allclose(res.T[:3, 3], [1.0, 2.0, 3.0])
    # 绕 z 轴 90°：camera 的 x 轴对应 base 的 y 轴。
    assert np.allclose(res.T[:3, 0], [0.0, 1.0, 0.0], atol=1e-12)
    assert tf.frames() == ["base_link", "camera"]


def test_self_edge_rejected() -> None:
    tf = StaticFrameTransforms()
    with pytest.raises(ValueError):
        tf.add("camera", "camera", np.eye(4))
