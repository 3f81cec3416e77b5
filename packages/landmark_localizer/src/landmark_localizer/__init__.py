"""landmark_localizer：用已知地图中的人工地标（AR tag）修正车辆位姿。

说明：
- 对外 API 仅从 `landmark_localizer.api` 暴露，避免下游耦合内部模块结构。
- IO 边界模块 `config_yaml` / `landmark_io` 的入口函数也在此重导出。
"""

from landmark_localizer.config_yaml import load_localizer_config_yaml, localizer_config_from_dict
from landmark_localizer.landmark_io import load_landmarks
from landmark_localizer.api import (
    CameraIntrinsics,
    CovarianceConfig,
    Detection,
    DetectionMode,
    DiagnosticLevel,
    DiagnosticStatus,
    FrameReport,
    FrameTransformLookup,
    FusedPoseEstimate,
    FusedPoseSink,
    FusionOutcome,
    GatingConfig,
    JsonlPoseSink,
    LandmarkLocalizer,
    LandmarkLookup,
    LandmarkPose,
    LandmarkRegistry,
    LatestOnlyWorker,
    LocalizerConfig,
    MarkerFrame,
    MarkerObservation,
    PnPResult,
    PoseFuser,
    R_from_quat_xyzw,
    ReferencePoseEstimate,
    ReferencePoseSource,
    RejectReason,
    ReplaySummary,
    SampleReplayFiles,
    SnapshotCell,
    StaticFrameTransforms,
    StaticTransformConfig,
    T_from_rvec_tvec,
    TransformLookupResult,
    compose_T,
    compose_map_from_base,
    covariance_scale,
    default_logger,
    ensure_sample_replay,
    fused_to_record,
    invert_T,
    make_T,
    marker_object_points,
    quat_xyzw_from_R,
    reprojection_rmse_px,
    rotation_matrix_from_rotvec,
    run_replay,
    scale_covariance,
    solve_marker_pnp,
    yaw_from_T,
)

__all__ = [
    "load_localizer_config_yaml",
    "localizer_config_from_dict",
    "load_landmarks",
    "CameraIntrinsics",
    "CovarianceConfig",
    "Detection",
    "DetectionMode",
    "DiagnosticLevel",
    "DiagnosticStatus",
    "FrameReport",
    "FrameTransformLookup",
    "FusedPoseEstimate",
    "FusedPoseSink",
    "FusionOutcome",
    "GatingConfig",
    "JsonlPoseSink",
    "LandmarkLocalizer",
    "LandmarkLookup",
    "LandmarkPose",
    "LandmarkRegistry",
    "LatestOnlyWorker",
    "LocalizerConfig",
    "MarkerFrame",
    "MarkerObservation",
    "PnPResult",
    "PoseFuser",
    "R_from_quat_xyzw",
    "ReferencePoseEstimate",
    "ReferencePoseSource",
    "RejectReason",
    "ReplaySummary",
    "SampleReplayFiles",
    "SnapshotCell",
    "StaticFrameTransforms",
    "StaticTransformConfig",
    "T_from_rvec_tvec",
    "TransformLookupResult",
    "compose_T",
    "compose_map_from_base",
    "covariance_scale",
    "default_logger",
    "ensure_sample_replay",
    "fused_to_record",
    "invert_T",
    "make_T",
    "marker_object_points",
    "quat_xyzw_from_R",
    "reprojection_rmse_px",
    "rotation_matrix_from_rotvec",
    "run_replay",
    "scale_covariance",
    "solve_marker_pnp",
    "yaw_from_T",
]
