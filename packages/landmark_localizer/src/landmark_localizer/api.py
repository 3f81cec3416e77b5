"""landmark_localizer 对外稳定入口（public API）。

本包目标：
- 输入：单次地标检测（landmark->sensor）+ 地图地标位姿 + 参考位姿 + 坐标系查询服务。
- 输出：通过门控时给出地图系车体位姿与按距离放大的协方差；否则给出拒绝原因。

说明：
- 本包不负责图像采集、marker 检测与消息传输；上游只需要把 detector 结果喂进来。
- 下游请只从本模块（或包顶层）导入，避免耦合内部模块结构。
"""

from __future__ import annotations

from landmark_localizer.config import (
    CovarianceConfig,
    DetectionMode,
    GatingConfig,
    LocalizerConfig,
    StaticTransformConfig,
)
from landmark_localizer.covariance import covariance_scale, scale_covariance
from landmark_localizer.frames import StaticFrameTransforms
from landmark_localizer.fuser import (
    FrameTransformLookup,
    FusedPoseSink,
    FusionOutcome,
    LandmarkLookup,
    PoseFuser,
    ReferencePoseSource,
    compose_map_from_base,
)
from landmark_localizer.gating import RejectReason, TransformLookupResult
from landmark_localizer.logging_utils import default_logger
from landmark_localizer.pnp import PnPResult, marker_object_points, reprojection_rmse_px, solve_marker_pnp
from landmark_localizer.registry import LandmarkRegistry, SnapshotCell
from landmark_localizer.replay import JsonlPoseSink, ReplaySummary, fused_to_record, run_replay
from landmark_localizer.runtime import (
    DiagnosticLevel,
    DiagnosticStatus,
    FrameReport,
    LandmarkLocalizer,
    MarkerFrame,
)
from landmark_localizer.sample_data import SampleReplayFiles, ensure_sample_replay
from landmark_localizer.transforms import (
    R_from_quat_xyzw,
    T_from_rvec_tvec,
    compose_T,
    invert_T,
    make_T,
    quat_xyzw_from_R,
    rotation_matrix_from_rotvec,
    yaw_from_T,
)
from landmark_localizer.types import (
    CameraIntrinsics,
    Detection,
    FusedPoseEstimate,
    LandmarkPose,
    MarkerObservation,
    ReferencePoseEstimate,
)
from landmark_localizer.worker import LatestOnlyWorker

__all__ = [
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
