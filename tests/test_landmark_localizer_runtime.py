from __future__ import annotations

import logging

import cv2
import numpy as np
import pytest

from landmark_localizer import (
    CameraIntrinsics,
    DiagnosticLevel,
    LandmarkLocalizer,
    LandmarkPose,
    LocalizerConfig,
    MarkerFrame,
    MarkerObservation,
    ReferencePoseEstimate,
    RejectReason,
    StaticFrameTransforms,
    T_from_rvec_tvec,
    compose_T,
    invert_T,
    make_T,
    marker_object_points,
)

_K = np.array([[800.0, 0.0, 320.0], [0.0, 800.0, 240.0], [0.0, 0.0, 1.0]], dtype=np.float64)
_INTR = CameraIntrinsics(K=_K, dist=np.zeros(5, dtype=np.float64))


class _ListSink:
    def __init__(self) -> None:
        self.items = []

    def publish(self, estimate) -> None:  # noqa: ANN001
        self.items.append(estimate)


def _cfg(**overrides) -> LocalizerConfig:  # noqa: ANN003
    kw = dict(
        target_tag_ids=("5", "6"),
        base_covariance=tuple(float(v) for v in np.diag([0.1, 0.1, 0.1, 0.05, 0.05, 0.05]).reshape(36)),
        distance_threshold_m=13.0,
        ekf_time_tolerance_s=0.5,
        ekf_position_tolerance_m=1.0,
        marker_size_m=0.6,
    )
    kw.update(overrides)
    return LocalizerConfig(**kw)


def _localizer(sink: _ListSink | None = None, cfg: LocalizerConfig | None = None) -> LandmarkLocalizer:
    frames = StaticFrameTransforms([("base_link", "camera", np.eye(4))])
    return LandmarkLocalizer(cfg=cfg or _cfg(), frames=frames, sink=sink, logger=logging.getLogger("test_runtime"))


def _corners(T_cam_from_marker: np.ndarray, marker_size_m: float = 0.6) -> np.ndarray:
    rvec, _ = cv2.Rodrigues(np.asarray(T_cam_from_marker[:3, :3], dtype=np.float64))
    img, _ = cv2.projectPoints(
        marker_object_points(marker_size_m=marker_size_m),
        rvec,
        np.asarray(T_cam_from_marker[:3, 3], dtype=np.float64).reshape(3, 1),
        _K,
        _INTR.dist,
    )
    return np.asarray(img, dtype=np.float64).reshape(4, 2)


def test_camera_info_is_accepted_once() -> None:
    loc = _localizer()
    other = CameraIntrinsics(K=_K * 2.0, dist=np.zeros(5))

    assert loc.on_camera_info(_INTR) is True
    assert loc.on_camera_info(other) is False


def test_frame_without_camera_info_is_skipped() -> None:
    loc = _localizer()
    frame = MarkerFrame(stamp_s=1.0, sensor_frame="camera", observations=())

    assert loc.detections_from_frame(frame) is None
    assert loc.on_marker_frame(frame) is None


def test_marker_frame_end_to_end() -> None:
    sink = _ListSink()
    loc = _localizer(sink)
    loc.on_camera_info(_INTR)

    T_map_from_landmark = make_T(R=np.eye(3), t=np.array([10.0, 2.0, 0.0]))
    loc.on_landmarks([LandmarkPose(landmark_id="5", T_map_from_landmark=T_map_from_landmark)])

    T_cam_from_marker = T_from_rvec_tvec(np.array([0.1, -0.2, 0.05]), np.array([0.2, -0.1, 4.0]))
    T_map_from_base_gt = compose_T(T_map_from_landmark, invert_T(T_cam_from_marker))
    loc.on_reference_pose(ReferencePoseEstimate(stamp_s=20.0, T_map_from_base=T_map_from_base_gt))

    frame = MarkerFrame(
        stamp_s=20.1,
        sensor_frame="camera",
        observations=(
            MarkerObservation(marker_id="5", corners_px=_corners(T_cam_from_marker)),
            MarkerObservation(marker_id="42", corners_px=_corners(T_cam_from_marker)),
        ),
    )
    report = loc.on_marker_frame(frame)

    assert report is not None
    assert report.n_detected == 2
    assert report.n_accepted == 1
    assert report.status.level is DiagnosticLevel.OK
    assert report.status.message == "AR tags detected. The number of tags: 2"
    assert report.status.values["Number of Detected AR Tags"] == "2"
    assert report.status.values["Number of Accepted Poses"] == "1"
    assert [o.rejection for o in report.outcomes] == [None, RejectReason.NOT_WHITELISTED]

    assert len(sink.items) == 1
    assert np.allclose(sink.items[0].position, T_map_from_base_gt[:3, 3], atol=1e-3)
    assert sink.items[0].frame_id == "map"


def test_empty_cycle_reports_warning() -> None:
    loc = _localizer()
    loc.on_camera_info(_INTR)

    report = loc.on_marker_frame(MarkerFrame(stamp_s=1.0, sensor_frame="camera"))

    assert report is not None
    assert report.n_detected == 0
    assert report.status.level is DiagnosticLevel.WARN
    assert report.status.message == "No AR tags detected."
    assert report.status.name.startswith("localization: ")


def test_landmark_reload_swaps_registry_and_keeps_old_on_error() -> None:
    loc = _localizer()
    assert len(loc.registry) == 0

    loc.on_landmarks([LandmarkPose(landmark_id="5", T_map_from_landmark=np.eye(4))])
    assert loc.lookup("5") is not None

    with pytest.raises(ValueError):
        loc.on_landmarks(
            [
                LandmarkPose(landmark_id="6", T_map_from_landmark=np.eye(4)),
                LandmarkPose(landmark_id="6", T_map_from_landmark=np.eye(4)),
            ]
        )
    assert loc.registry.ids() == ["5"]

    loc.on_landmarks([LandmarkPose(landmark_id="6", T_map_from_landmark=np.eye(4))])
    assert loc.lookup("5") is None
    assert loc.lookup("6") is not None


def test_invalid_config_fails_at_construction() -> None:
    with pytest.raises(ValueError, match="Invalid detection_mode"):
        _cfg(detection_mode="DM_SLOW")
    with pytest.raises(ValueError):
        _cfg(target_tag_ids=())


def test_frame_worker_runs_frames_in_background() -> None:
    loc = _localizer()
    loc.on_camera_info(_INTR)
    reports = []

    with loc.make_frame_worker(on_report=reports.append) as w:
        w.submit(MarkerFrame(stamp_s=1.0, sensor_frame="camera"))
        assert w.wait_idle(timeout_s=2.0)

    assert len(reports) == 1
    assert reports[0] is not None
    assert reports[0].status.level is DiagnosticLevel.WARN


def test_marker_with_large_reprojection_error_is_dropped(caplog: pytest.LogCaptureFixture) -> None:
    sink = _ListSink()
    loc = _localizer(sink, cfg=_cfg(max_reproj_rmse_px=0.05))
    loc.on_camera_info(_INTR)

    T_map_from_landmark = make_T(R=np.eye(3), t=np.array([10.0, 2.0, 0.0]))
    loc.on_landmarks(
        [
            LandmarkPose(landmark_id="5", T_map_from_landmark=T_map_from_landmark),
            LandmarkPose(landmark_id="6", T_map_from_landmark=T_map_from_landmark),
        ]
    )
    T_cam_from_marker = T_from_rvec_tvec(np.array([0.1, -0.2, 0.05]), np.array([0.2, -0.1, 4.0]))
    loc.on_reference_pose(
        ReferencePoseEstimate(
            stamp_s=20.0,
            T_map_from_base=compose_T(T_map_from_landmark, invert_T(T_cam_from_marker)),
        )
    )

    # 一个角点偏 6px：4 个点不再是同一个刚体正方形的投影。
    skewed = _corners(T_cam_from_marker)
    skewed[1] += np.array([6.0, -6.0])
    frame = MarkerFrame(
        stamp_s=20.1,
        sensor_frame="camera",
        observations=(
            MarkerObservation(marker_id="5", corners_px=_corners(T_cam_from_marker)),
            MarkerObservation(marker_id="6", corners_px=skewed),
        ),
    )

    with caplog.at_level(logging.WARNING, logger="test_runtime"):
        dets = loc.detections_from_frame(frame)
        report = loc.on_marker_frame(frame)

    assert dets is not None
    assert [d.landmark_id for d in dets] == ["5"]
    assert report is not None
    assert report.n_detected == 2
    assert report.n_accepted == 1
    assert len(report.outcomes) == 1
    assert len(sink.items) == 1
    assert any("marker 6 dropped: reprojection rmse" in r.getMessage() for r in caplog.records)


def test_unsolvable_corners_are_skipped_not_raised() -> None:
    sink = _ListSink()
    loc = _localizer(sink)
    loc.on_camera_info(_INTR)
    loc.on_landmarks([LandmarkPose(landmark_id="5", T_map_from_landmark=np.eye(4))])

    bad = np.full((4, 2), np.nan)
    report = loc.on_marker_frame(
        MarkerFrame(
            stamp_s=1.0,
            sensor_frame="camera",
            observations=(MarkerObservation(marker_id="5", corners_px=bad),),
        )
    )

    assert report is not None
    assert report.n_detected == 1
    assert report.n_accepted == 0
    assert report.outcomes == ()
    assert sink.items == []
