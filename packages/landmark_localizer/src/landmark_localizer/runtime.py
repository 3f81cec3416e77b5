"""LandmarkLocalizer：把各输入通道接到 PoseFuser 上的组合根。

输入通道（彼此独立，可能来自不同线程）：
- on_landmarks：地图（重）加载，整体重建注册表后原子替换。
- on_reference_pose：参考位姿，最新值覆盖旧值。
- on_camera_info：相机内参，只接受第一次。
- on_marker_frame / process_detections：每个传感器帧一次处理周期；
  make_frame_worker 把 on_marker_frame 挂到 latest-only 后台线程上。

说明：
- 上游协作方的失败（PnP 失败、观测数据异常）在这里被捕获并记录，视为“本帧无该检测”。
- 配置错误在构造时直接抛出，不允许带着未定义行为运行。
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Sequence

from landmark_localizer.config import LocalizerConfig
from landmark_localizer.fuser import FrameTransformLookup, FusedPoseSink, FusionOutcome, PoseFuser
from landmark_localizer.logging_utils import default_logger
from landmark_localizer.pnp import solve_marker_pnp
from landmark_localizer.registry import LandmarkRegistry, SnapshotCell
from landmark_localizer.types import (
    CameraIntrinsics,
    Detection,
    LandmarkPose,
    MarkerObservation,
    ReferencePoseEstimate,
)
from landmark_localizer.worker import LatestOnlyWorker


class DiagnosticLevel(enum.IntEnum):
    OK = 0
    WARN = 1
    ERROR = 2


@dataclass(frozen=True)
class DiagnosticStatus:
    level: DiagnosticLevel
    name: str
    message: str
    values: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class MarkerFrame:
    """一个传感器帧内 detector 给出的全部 marker（像素角点）。"""

    stamp_s: float
    sensor_frame: str
    observations: tuple[MarkerObservation, ...] = ()


@dataclass(frozen=True)
class FrameReport:
    """一次处理周期的结果与诊断。"""

    stamp_s: float
    n_detected: int
    n_accepted: int
    outcomes: tuple[FusionOutcome, ...]
    status: DiagnosticStatus


def frame_diagnostics(*, name: str, n_detected: int, n_accepted: int) -> DiagnosticStatus:
    """按检测数生成健康状态：有检测为 OK，否则 WARN。"""

    if n_detected > 0:
        level = DiagnosticLevel.OK
        message = f"AR tags detected. The number of tags: {n_detected}"
    else:
        level = DiagnosticLevel.WARN
        message = "No AR tags detected."
    return DiagnosticStatus(
        level=level,
        name=f"localization: {name}",
        message=message,
        values={
            "Number of Detected AR Tags": str(int(n_detected)),
            "Number of Accepted Poses": str(int(n_accepted)),
        },
    )


class LandmarkLocalizer:
    """地标定位器：持有共享快照并驱动 PoseFuser。"""

    def __init__(
        self,
        *,
        cfg: LocalizerConfig,
        frames: FrameTransformLookup,
        sink: FusedPoseSink | None = None,
        name: str = "landmark_localizer",
        logger: logging.Logger | None = None,
    ) -> None:
        cfg.validate()
        self._cfg = cfg
        self._name = str(name)
        self._logger = logger or default_logger()

        self._registry: SnapshotCell[LandmarkRegistry] = SnapshotCell(LandmarkRegistry.empty())
        self._reference: SnapshotCell[ReferencePoseEstimate] = SnapshotCell()
        self._intrinsics: SnapshotCell[CameraIntrinsics] = SnapshotCell()

        self._fuser = PoseFuser(
            gating=cfg.gating_config(),
            covariance=cfg.covariance_config(),
            landmarks=self,
            frames=frames,
            reference=self,
            sink=sink,
            map_frame=cfg.map_frame,
            base_frame=cfg.base_frame,
            logger=self._logger,
        )

        self._logger.info("min_marker_size: %s", cfg.min_marker_size)
        self._logger.info("detection_mode: %s", cfg.detection_mode.value)
        self._logger.info("marker_size: %s", cfg.marker_size_m)
        self._logger.info("max_reproj_rmse_px: %s", cfg.max_reproj_rmse_px)
        self._logger.info("target_tag_ids: %s", ",".join(cfg.target_tag_ids))
        self._logger.info("Setup of %s is successful!", self._name)

    @property
    def config(self) -> LocalizerConfig:
        return self._cfg

    @property
    def fuser(self) -> PoseFuser:
        return self._fuser

    @property
    def registry(self) -> LandmarkRegistry:
        reg = self._registry.get()
        assert reg is not None
        return reg

    # LandmarkLookup
    def lookup(self, landmark_id: str) -> LandmarkPose | None:
        return self.registry.lookup(landmark_id)

    # ReferencePoseSource
    def latest_reference_pose(self) -> ReferencePoseEstimate | None:
        return self._reference.get()

    def on_landmarks(self, landmarks: Iterable[LandmarkPose]) -> LandmarkRegistry:
        """整体重建注册表并原子替换。重复 ID 抛 ValueError，旧注册表保持不变。"""

        reg = LandmarkRegistry.build(landmarks)
        self._registry.set(reg)
        self._logger.info("landmark map loaded: %d landmarks (%s)", len(reg), ",".join(reg.ids()))
        return reg

    def on_reference_pose(self, ref: ReferencePoseEstimate) -> None:
        self._reference.set(ref)

    def on_camera_info(self, intr: CameraIntrinsics) -> bool:
        """只接受第一次相机内参；之后的调用被忽略并返回 False。"""

        accepted = self._intrinsics.set_once(intr)
        if accepted:
            self._logger.info("camera info received")
        return accepted

    def detections_from_frame(self, frame: MarkerFrame) -> list[Detection] | None:
        """PnP 把像素角点转为 Detection；尚无相机内参时返回 None。

        解算失败或重投影 RMSE 超过 `max_reproj_rmse_px` 的 marker 记 WARNING 后跳过，
        不进入融合器（也不计入 outcomes）。"""

        intr = self._intrinsics.get()
        if intr is None:
            self._logger.debug("No cam_info has been received.")
            return None

        out: list[Detection] = []
        for obs in frame.observations:
            try:
                pnp = solve_marker_pnp(
                    corners_px=obs.corners_px,
                    intr=intr,
                    marker_size_m=float(self._cfg.marker_size_m),
                )
            except Exception as exc:  # noqa: BLE001
                self._logger.warning("marker %s pose estimation failed: %s", obs.marker_id, exc)
                continue
            if pnp.exceeds(self._cfg.max_reproj_rmse_px):
                self._logger.warning(
                    "marker %s dropped: reprojection rmse %.3f px > %.3f px",
                    obs.marker_id,
                    pnp.reproj_rmse_px,
                    self._cfg.max_reproj_rmse_px,
                )
                continue
            out.append(
                Detection(
                    landmark_id=str(obs.marker_id),
                    stamp_s=float(frame.stamp_s),
                    sensor_frame=str(frame.sensor_frame),
                    T_sensor_from_landmark=pnp.T_sensor_from_marker,
                )
            )
        return out

    def on_marker_frame(self, frame: MarkerFrame) -> FrameReport | None:
        dets = self.detections_from_frame(frame)
        if dets is None:
            return None
        return self.process_detections(frame.stamp_s, dets, n_detected=len(frame.observations))

    def process_detections(
        self,
        stamp_s: float,
        detections: Sequence[Detection],
        *,
        n_detected: int | None = None,
    ) -> FrameReport:
        """同步处理一个周期内的全部检测，返回诊断报告。"""

        outcomes = tuple(self._fuser.process(d) for d in detections)
        n_acc = sum(1 for o in outcomes if o.accepted)
        n_det = len(detections) if n_detected is None else int(n_detected)
        return FrameReport(
            stamp_s=float(stamp_s),
            n_detected=n_det,
            n_accepted=int(n_acc),
            outcomes=outcomes,
            status=frame_diagnostics(name=self._name, n_detected=n_det, n_accepted=n_acc),
        )

    def make_frame_worker(
        self,
        *,
        on_report: Callable[[FrameReport | None], None] | None = None,
    ) -> LatestOnlyWorker[MarkerFrame]:
        """构造 latest-only 帧处理 worker。

        说明：
        - 帧回调线程只做 `submit(frame)`；PnP 与融合在 worker 线程内串行执行。
        - 处理跟不上时只保留最新帧，与在线系统“只关心当前位姿”的语义一致。
        """

        return LatestOnlyWorker(
            handler=self.on_marker_frame,
            on_result=on_report,
            name=f"{self._name}_frame_worker",
        )
