"""PoseFuser：单次地标检测 -> 地图系车体位姿（或拒绝）。

坐标系链条：
- 注册表给出 landmark->map（T_map_from_landmark）。
- 坐标系查询服务给出 sensor->base（T_base_from_sensor）。
- 检测给出 landmark->sensor（T_sensor_from_landmark）。

目标：
    T_base_from_landmark = T_base_from_sensor @ T_sensor_from_landmark
    T_map_from_base      = T_map_from_landmark @ inv(T_base_from_landmark)

说明：
- 无记忆：每次检测独立求解，不做滤波/平滑。
- 依赖只通过窄接口注入（LandmarkLookup / FrameTransformLookup / ReferencePoseSource / FusedPoseSink），
  与任何传输框架解耦。
"""

from __future__ import annotations

import logging
import math
from collections import Counter
from dataclasses import dataclass
from typing import Iterable, Protocol

import numpy as np

from landmark_localizer.config import CovarianceConfig, GatingConfig
from landmark_localizer.covariance import scale_covariance
from landmark_localizer.gating import (
    GateResult,
    RejectReason,
    TransformLookupResult,
    check_range,
    check_spatial,
    check_temporal,
    check_transform,
    check_whitelist,
    translation_distance_sq,
)
from landmark_localizer.logging_utils import default_logger
from landmark_localizer.transforms import compose_T, invert_T
from landmark_localizer.types import Detection, FusedPoseEstimate, LandmarkPose, ReferencePoseEstimate


class LandmarkLookup(Protocol):
    def lookup(self, landmark_id: str) -> LandmarkPose | None: ...


class FrameTransformLookup(Protocol):
    def lookup_transform(self, target_frame: str, source_frame: str, stamp_s: float | None) -> TransformLookupResult:
        """返回 source->target（T_target_from_source）。stamp_s=None 表示“最新可用”。"""
        ...


class ReferencePoseSource(Protocol):
    def latest_reference_pose(self) -> ReferencePoseEstimate | None: ...


class FusedPoseSink(Protocol):
    def publish(self, estimate: FusedPoseEstimate) -> None: ...


@dataclass(frozen=True, slots=True)
class FusionOutcome:
    """一次处理的结果：fused 与 rejection 二选一。"""

    landmark_id: str
    fused: FusedPoseEstimate | None = None
    rejection: RejectReason | None = None
    detail: str = ""

    @property
    def accepted(self) -> bool:
        return self.fused is not None


def compose_map_from_base(
    *,
    T_map_from_landmark: np.ndarray,
    T_base_from_sensor: np.ndarray,
    T_sensor_from_landmark: np.ndarray,
) -> np.ndarray:
    """由地图地标位姿与本次观测计算 base->map。"""

    T_base_from_landmark = compose_T(T_base_from_sensor, T_sensor_from_landmark)
    return compose_T(T_map_from_landmark, invert_T(T_base_from_landmark))


class PoseFuser:
    """按固定门控顺序处理检测，并在通过时发布融合位姿。"""

    def __init__(
        self,
        *,
        gating: GatingConfig,
        covariance: CovarianceConfig,
        landmarks: LandmarkLookup,
        frames: FrameTransformLookup,
        reference: ReferencePoseSource,
        sink: FusedPoseSink | None = None,
        map_frame: str = "map",
        base_frame: str = "base_link",
        logger: logging.Logger | None = None,
    ) -> None:
        self._gating = gating
        self._covariance = covariance
        self._landmarks = landmarks
        self._frames = frames
        self._reference = reference
        self._sink = sink
        self._map_frame = str(map_frame)
        self._base_frame = str(base_frame)
        self._logger = logger or default_logger()
        self._rejections: Counter[RejectReason] = Counter()
        self._accepted_total = 0

    @property
    def stats(self) -> dict[str, int]:
        """累计计数：accepted + 各拒绝原因。"""

        out = {"accepted": int(self._accepted_total)}
        for reason in RejectReason:
            out[reason.value] = int(self._rejections.get(reason, 0))
        return out

    def _rejected(self, landmark_id: str, gate: GateResult) -> FusionOutcome:
        assert gate.reason is not None
        self._rejections[gate.reason] += 1
        self._logger.info("reject landmark %s (%s): %s", landmark_id, gate.reason.value, gate.detail)
        return FusionOutcome(landmark_id=landmark_id, rejection=gate.reason, detail=gate.detail)

    def _lookup_base_from_sensor(self, sensor_frame: str) -> TransformLookupResult:
        # 说明：查询“最新可用”外参，不按检测时间戳插值。
        try:
            return self._frames.lookup_transform(self._base_frame, sensor_frame, None)
        except Exception as exc:  # noqa: BLE001
            self._logger.warning("frame transform service failed (%s <- %s): %s", self._base_frame, sensor_frame, exc)
            return TransformLookupResult.failure(repr(exc))

    def process(self, det: Detection) -> FusionOutcome:
        """处理一次检测。拒绝不会抛异常，只体现在返回值里。"""

        lid = det.landmark_id

        gate = check_whitelist(lid, self._gating)
        if not gate.passed:
            return self._rejected(lid, gate)

        landmark = self._landmarks.lookup(lid)
        if landmark is None:
            return self._rejected(
                lid,
                GateResult(
                    passed=False,
                    reason=RejectReason.NOT_IN_REGISTRY,
                    detail=f"tag_id({lid}) is not in landmark map",
                ),
            )

        distance_sq = translation_distance_sq(det.T_sensor_from_landmark)
        gate = check_range(distance_sq, self._gating)
        if not gate.passed:
            return self._rejected(lid, gate)

        tf = self._lookup_base_from_sensor(det.sensor_frame)
        gate = check_transform(tf, base_frame=self._base_frame, sensor_frame=det.sensor_frame)
        if not gate.passed:
            return self._rejected(lid, gate)
        assert tf.T is not None

        T_map_from_base = compose_map_from_base(
            T_map_from_landmark=landmark.T_map_from_landmark,
            T_base_from_sensor=tf.T,
            T_sensor_from_landmark=det.T_sensor_from_landmark,
        )

        # 说明：参考位姿在门控执行时读取一次，之后的检查都用同一份快照。
        reference = self._reference.latest_reference_pose()
        gate = check_temporal(det.stamp_s, reference, self._gating)
        if not gate.passed:
            return self._rejected(lid, gate)
        assert reference is not None

        gate = check_spatial(T_map_from_base, reference, self._gating)
        if not gate.passed:
            return self._rejected(lid, gate)

        distance = math.sqrt(distance_sq)
        cov, scale = scale_covariance(distance, self._covariance)

        T_out = np.array(T_map_from_base, dtype=np.float64)
        T_out.setflags(write=False)
        cov.setflags(write=False)
        fused = FusedPoseEstimate(
            stamp_s=float(det.stamp_s),
            frame_id=self._map_frame,
            landmark_id=lid,
            T_map_from_base=T_out,
            covariance=cov,
            distance_m=float(distance),
            scale=float(scale),
        )

        self._accepted_total += 1
        if self._sink is not None:
            self._sink.publish(fused)
        return FusionOutcome(landmark_id=lid, fused=fused)

    def process_batch(self, detections: Iterable[Detection]) -> int:
        """处理同一周期内的一批检测，返回通过数（用于健康状态上报）。"""

        accepted = 0
        for det in detections:
            if self.process(det).accepted:
                accepted += 1
        return accepted
