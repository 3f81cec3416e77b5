"""离线回放：从 JSONL 事件流驱动 LandmarkLocalizer，输出融合位姿 JSONL。

事件格式（每行一个 JSON 对象）：
    {"type": "reference_pose", "t": 12.30, "position": [x,y,z], "orientation_xyzw": [x,y,z,w]}
    {"type": "detections", "t": 12.34, "sensor_frame": "camera", "detections": [
        {"id": "5", "rvec": [rx,ry,rz], "tvec": [tx,ty,tz]}
    ]}
    {"type": "landmarks", "landmarks": [...]}        # 可选：运行中重载地图（格式同 landmark_io）

说明：
- 每条 detections 事件是一个处理周期。
- 输出记录只在检测通过门控时写出。
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Iterator, TextIO

import numpy as np

from landmark_localizer.config import LocalizerConfig
from landmark_localizer.fuser import FrameTransformLookup
from landmark_localizer.landmark_io import landmark_from_dict
from landmark_localizer.logging_utils import default_logger
from landmark_localizer.runtime import LandmarkLocalizer
from landmark_localizer.transforms import R_from_quat_xyzw, T_from_rvec_tvec, make_T, quat_xyzw_from_R, yaw_from_T
from landmark_localizer.types import Detection, FusedPoseEstimate, LandmarkPose, ReferencePoseEstimate


@dataclass(frozen=True)
class ReplaySummary:
    n_events: int
    n_cycles: int
    n_detections: int
    n_accepted: int
    stats: dict[str, int]


def fused_to_record(est: FusedPoseEstimate) -> dict[str, Any]:
    T = est.T_map_from_base
    return {
        "t": float(est.stamp_s),
        "frame_id": str(est.frame_id),
        "landmark_id": str(est.landmark_id),
        "position": [float(v) for v in T[:3, 3]],
        "orientation_xyzw": [float(v) for v in quat_xyzw_from_R(T[:3, :3])],
        "yaw_rad": yaw_from_T(T),
        "covariance": [float(v) for v in est.covariance],
        "distance_m": float(est.distance_m),
        "scale": float(est.scale),
    }


class JsonlPoseSink:
    """FusedPoseSink：把融合位姿写成 JSONL，支持按条数/按时间间隔 flush。"""

    def __init__(self, f: TextIO, *, flush_every_records: int = 1, flush_interval_s: float = 0.0) -> None:
        self._f = f
        self._flush_every_records = int(flush_every_records)
        self._flush_interval_s = float(flush_interval_s)
        self._records_since_flush = 0
        self._last_flush_t = time.monotonic()
        self.n_written = 0

    def publish(self, estimate: FusedPoseEstimate) -> None:
        self._f.write(json.dumps(fused_to_record(estimate), ensure_ascii=False, separators=(",", ":")))
        self._f.write("\n")
        self.n_written += 1
        self._records_since_flush += 1

        need_flush_by_count = (
            self._flush_every_records > 0
            and self._records_since_flush >= self._flush_every_records
        )
        need_flush_by_time = False
        if self._flush_interval_s > 0:
            need_flush_by_time = (time.monotonic() - self._last_flush_t) >= self._flush_interval_s

        if need_flush_by_count or need_flush_by_time:
            self.flush()

    def flush(self) -> None:
        self._f.flush()
        self._records_since_flush = 0
        self._last_flush_t = time.monotonic()


def iter_jsonl_events(path: Path) -> Iterator[dict[str, Any]]:
    """逐行读取事件；空行跳过，坏行报 RuntimeError（带行号）。"""

    p = Path(path)
    if not p.exists():
        raise RuntimeError(f"找不到事件文件: {p}")

    with p.open("r", encoding="utf-8") as f:
        for lineno, raw in enumerate(f, start=1):
            line = raw.strip()
            if not line:
                continue
            try:
                obj = json.loads(line)
            except json.JSONDecodeError as exc:
                raise RuntimeError(f"{p}:{lineno}: 非法 JSON") from exc
            if not isinstance(obj, dict):
                raise RuntimeError(f"{p}:{lineno}: 事件必须是对象（dict）")
            yield obj


def _vec(obj: dict[str, Any], key: str, n: int) -> np.ndarray:
    if key not in obj:
        raise RuntimeError(f"事件缺少字段 {key}")
    a = np.asarray(obj[key], dtype=np.float64).reshape(-1)
    if a.size != n:
        raise RuntimeError(f"{key} 长度应为 {n}，实际为 {a.size}")
    return a


def reference_pose_from_event(obj: dict[str, Any]) -> ReferencePoseEstimate:
    R = R_from_quat_xyzw(_vec(obj, "orientation_xyzw", 4)) if "orientation_xyzw" in obj else np.eye(3)
    return ReferencePoseEstimate(stamp_s=float(obj["t"]), T_map_from_base=make_T(R=R, t=_vec(obj, "position", 3)))


def detections_from_event(obj: dict[str, Any]) -> list[Detection]:
    stamp_s = float(obj["t"])
    sensor_frame = str(obj["sensor_frame"])
    out: list[Detection] = []
    for item in obj.get("detections") or []:
        out.append(
            Detection(
                landmark_id=str(item["id"]),
                stamp_s=stamp_s,
                sensor_frame=sensor_frame,
                T_sensor_from_landmark=T_from_rvec_tvec(_vec(item, "rvec", 3), _vec(item, "tvec", 3)),
            )
        )
    return out


def run_replay(
    *,
    cfg: LocalizerConfig,
    frames: FrameTransformLookup,
    landmarks: Iterable[LandmarkPose],
    events: Iterable[dict[str, Any]],
    sink: JsonlPoseSink | None = None,
    logger: logging.Logger | None = None,
) -> ReplaySummary:
    """按事件顺序回放。

    说明：
    - 单条事件解析失败（上游数据问题）记录 WARNING 并跳过，不中断回放。
    """

    log = logger or default_logger()
    loc = LandmarkLocalizer(cfg=cfg, frames=frames, sink=sink, name="landmark_localizer_replay", logger=log)
    loc.on_landmarks(landmarks)

    n_events = 0
    n_cycles = 0
    n_dets = 0
    n_acc = 0
    for obj in events:
        n_events += 1
        kind = str(obj.get("type", ""))
        try:
            if kind == "reference_pose":
                loc.on_reference_pose(reference_pose_from_event(obj))
            elif kind == "detections":
                dets = detections_from_event(obj)
                report = loc.process_detections(float(obj["t"]), dets)
                n_cycles += 1
                n_dets += report.n_detected
                n_acc += report.n_accepted
                log.debug("cycle t=%.6f %s", report.stamp_s, report.status.message)
            elif kind == "landmarks":
                items = obj.get("landmarks") or []
                loc.on_landmarks(landmark_from_dict(it, index=i) for i, it in enumerate(items))
            else:
                log.warning("unknown event type: %r", kind)
        except (KeyError, TypeError, ValueError, RuntimeError) as exc:
            log.warning("skip malformed %s event #%d: %s", kind or "?", n_events, exc)

    if sink is not None:
        sink.flush()

    return ReplaySummary(
        n_events=n_events,
        n_cycles=n_cycles,
        n_detections=n_dets,
        n_accepted=n_acc,
        stats=loc.fuser.stats,
    )
