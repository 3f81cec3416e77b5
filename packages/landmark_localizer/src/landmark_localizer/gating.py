"""门控：判定单次检测是否可信。

固定顺序（第一个失败即拒绝，不再执行后续检查）：
    1. 白名单
    2. 注册表（由 fuser 通过 LandmarkLookup 完成）
    3. 距离（平方距离 <= 门限平方，含边界）
    4. 坐标系变换查询（sensor -> base）
    5. 时间一致性（检测比参考位姿新出的时间 <= time_tolerance）
    6. 位置一致性（候选位姿与参考位姿的位置差 <= position_tolerance）

说明：拒绝是正常控制流，不是故障；这里的函数都不抛异常。
距离、时间差、位姿中出现非有限数值（NaN/inf）时对应检查直接判为不通过。
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass

import numpy as np

from landmark_localizer.config import GatingConfig
from landmark_localizer.types import ReferencePoseEstimate


class RejectReason(str, enum.Enum):
    NOT_WHITELISTED = "not_whitelisted"
    NOT_IN_REGISTRY = "not_in_registry"
    OUT_OF_RANGE = "out_of_range"
    TRANSFORM_UNAVAILABLE = "transform_unavailable"
    NO_REFERENCE_POSE = "no_reference_pose"
    STALE_REFERENCE = "stale_reference"
    INCONSISTENT_POSITION = "inconsistent_position"


@dataclass(frozen=True, slots=True)
class TransformLookupResult:
    """坐标系查询结果：成功时带 T，失败时带 error 文本。"""

    ok: bool
    T: np.ndarray | None = None
    error: str = ""

    @classmethod
    def success(cls, T: np.ndarray) -> "TransformLookupResult":
        return cls(ok=True, T=np.asarray(T, dtype=np.float64).reshape(4, 4))

    @classmethod
    def failure(cls, error: str) -> "TransformLookupResult":
        return cls(ok=False, T=None, error=str(error))


@dataclass(frozen=True, slots=True)
class GateResult:
    """单项检查结果；passed=False 时 reason/detail 给出拒绝原因。"""

    passed: bool
    reason: RejectReason | None = None
    detail: str = ""


_PASS = GateResult(passed=True)


def _reject(reason: RejectReason, detail: str) -> GateResult:
    return GateResult(passed=False, reason=reason, detail=detail)


def check_whitelist(landmark_id: str, cfg: GatingConfig) -> GateResult:
    if str(landmark_id) not in cfg.marker_whitelist:
        return _reject(RejectReason.NOT_WHITELISTED, f"tag_id({landmark_id}) is not in target_tag_ids")
    return _PASS


def translation_distance_sq(T_sensor_from_landmark: np.ndarray) -> float:
    t = np.asarray(T_sensor_from_landmark, dtype=np.float64)[:3, 3]
    return float(t[0] * t[0] + t[1] * t[1] + t[2] * t[2])


def check_range(distance_sq: float, cfg: GatingConfig) -> GateResult:
    """距离门限：distance_sq 恰好等于门限平方时放行；非有限值（NaN/inf）一律拒绝。"""

    d2 = float(distance_sq)
    if not math.isfinite(d2):
        return _reject(RejectReason.OUT_OF_RANGE, f"distance^2={d2} is not finite")
    if cfg.distance_threshold_sq < d2:
        return _reject(
            RejectReason.OUT_OF_RANGE,
            f"distance^2={float(distance_sq):.3f} exceeds threshold^2={cfg.distance_threshold_sq:.3f}",
        )
    return _PASS


def check_transform(result: TransformLookupResult, *, base_frame: str, sensor_frame: str) -> GateResult:
    if not result.ok or result.T is None:
        return _reject(
            RejectReason.TRANSFORM_UNAVAILABLE,
            f"Could not transform {base_frame} to {sensor_frame}: {result.error}",
        )
    return _PASS


def check_temporal(
    detection_stamp_s: float,
    reference: ReferencePoseEstimate | None,
    cfg: GatingConfig,
) -> GateResult:
    """只检查“参考位姿过旧”；参考位姿比检测更新时放行。"""

    if reference is None:
        return _reject(RejectReason.NO_REFERENCE_POSE, "no reference pose has been received")

    dt = float(detection_stamp_s) - float(reference.stamp_s)
    if not math.isfinite(dt) or dt > float(cfg.time_tolerance_s):
        return _reject(
            RejectReason.STALE_REFERENCE,
            (
                f"reference pose is older than {cfg.time_tolerance_s:f} seconds compared to current frame. "
                f"reference.stamp={reference.stamp_s:.6f}, detection.stamp={float(detection_stamp_s):.6f}"
            ),
        )
    return _PASS


def check_spatial(
    T_map_from_base: np.ndarray,
    reference: ReferencePoseEstimate,
    cfg: GatingConfig,
) -> GateResult:
    T = np.asarray(T_map_from_base, dtype=np.float64)
    curr = T[:3, 3]
    ref = reference.position
    if not np.isfinite(T).all():
        return _reject(RejectReason.INCONSISTENT_POSITION, "candidate pose contains non-finite values")
    diff = float(np.linalg.norm(curr - ref))
    if not math.isfinite(diff) or diff > float(cfg.position_tolerance_m):
        return _reject(
            RejectReason.INCONSISTENT_POSITION,
            (
                f"curr_pose differs from reference pose by more than {cfg.position_tolerance_m:f} m. "
                f"curr_pose: ({curr[0]:f}, {curr[1]:f}, {curr[2]:f}), "
                f"reference: ({ref[0]:f}, {ref[1]:f}, {ref[2]:f})"
            ),
        )
    return _PASS
