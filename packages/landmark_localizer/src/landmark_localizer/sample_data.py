# -*- coding: utf-8 -*-

"""生成离线可跑通的回放样例（配置 + 地标地图 + events.jsonl）。

动机：
- 仓库不提交录制数据，但希望新用户在无相机、无车的环境下也能直接跑通
  `landmark-localizer-replay` 的默认路径。
- 因此把“生成样例数据”的核心逻辑放在库侧（src/），`tools/` 只做薄壳调用。

场景：
- 车辆沿地图 x 轴匀速前进，相机装在车体前上方（光轴朝前）。
- 地图中有若干地标；其中一个不在白名单里，用于演示白名单拒绝。
- 每个周期先给出参考位姿（带一点噪声），再给出该周期可见的全部检测。
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

import cv2
import numpy as np
import yaml

from landmark_localizer.transforms import R_from_quat_xyzw, compose_T, invert_T, make_T

# 相机光轴系（z 前、x 右、y 下）相对车体系（x 前、y 左、z 上）的旋转。
_CAMERA_ROTATION_XYZW = (-0.5, 0.5, -0.5, 0.5)
_CAMERA_TRANSLATION = (1.0, 0.0, 1.5)


@dataclass(frozen=True, slots=True)
class SampleReplayFiles:
    """样例文件路径。"""

    config: Path
    landmarks: Path
    events: Path


def _sample_landmarks() -> list[dict[str, object]]:
    return [
        {"id": "0", "position": [8.0, 1.0, 1.5]},
        {"id": "1", "position": [16.0, -1.0, 1.5]},
        {"id": "2", "position": [24.0, 0.5, 1.5], "rvec": [0.0, 0.0, 0.3]},
        # 不在白名单中
        {"id": "99", "position": [12.0, 0.0, 1.5]},
    ]


def _sample_config(*, tag_ids: list[str]) -> dict[str, object]:
    cov = np.diag([0.02, 0.02, 0.02, 0.01, 0.01, 0.01]).reshape(36)
    return {
        "target_tag_ids": tag_ids,
        "base_covariance": [float(v) for v in cov],
        "distance_threshold_m": 13.0,
        "ekf_time_tolerance_s": 0.5,
        "ekf_position_tolerance_m": 10.0,
        "marker_size_m": 0.6,
        "max_reproj_rmse_px": 2.0,
        "detection_mode": "DM_NORMAL",
        "min_marker_size": 0.02,
        "map_frame": "map",
        "base_frame": "base_link",
        "static_transforms": [
            {
                "parent": "base_link",
                "child": "camera",
                "translation": list(_CAMERA_TRANSLATION),
                "rotation_xyzw": list(_CAMERA_ROTATION_XYZW),
            }
        ],
    }


def ensure_sample_replay(
    *,
    out_dir: Path,
    cycles: int = 30,
    speed_mps: float = 1.0,
    period_s: float = 1.0,
    seed: int = 0,
    overwrite: bool = False,
) -> SampleReplayFiles:
    """确保回放样例存在；若缺失则生成。

    Args:
        out_dir: 输出目录。
        cycles: 处理周期数（每周期一个 reference_pose 事件 + 一个 detections 事件）。
        speed_mps: 车辆沿 x 轴的速度。
        period_s: 周期间隔（秒）。
        seed: 参考位姿噪声的随机种子（保证生成结果确定）。
        overwrite: 是否覆盖已存在的数据。

    Returns:
        三个文件的绝对路径。
    """

    out_dir = Path(out_dir).resolve()
    files = SampleReplayFiles(
        config=out_dir / "landmark_localizer.yaml",
        landmarks=out_dir / "landmarks.yaml",
        events=out_dir / "events.jsonl",
    )
    if not overwrite and files.config.exists() and files.landmarks.exists() and files.events.exists():
        return files

    out_dir.mkdir(parents=True, exist_ok=True)

    landmarks = _sample_landmarks()
    cfg = _sample_config(tag_ids=["0", "1", "2"])
    files.config.write_text(yaml.safe_dump(cfg, sort_keys=False), encoding="utf-8")
    files.landmarks.write_text(yaml.safe_dump({"landmarks": landmarks}, sort_keys=False), encoding="utf-8")

    T_base_from_camera = make_T(
        R=R_from_quat_xyzw(np.asarray(_CAMERA_ROTATION_XYZW, dtype=np.float64)),
        t=np.asarray(_CAMERA_TRANSLATION, dtype=np.float64),
    )
    T_camera_from_base = invert_T(T_base_from_camera)

    T_map_from_lm: dict[str, np.ndarray] = {}
    for item in landmarks:
        rvec = np.asarray(item.get("rvec", [0.0, 0.0, 0.0]), dtype=np.float64).reshape(3, 1)
        R, _ = cv2.Rodrigues(rvec)
        T_map_from_lm[str(item["id"])] = make_T(R=R, t=np.asarray(item["position"], dtype=np.float64))

    rng = np.random.default_rng(int(seed))
    records: list[dict[str, object]] = []
    for k in range(max(1, int(cycles))):
        t = float(k) * float(period_s)
        T_map_from_base = make_T(R=np.eye(3), t=np.array([float(speed_mps) * t, 0.0, 0.0]))

        noisy = T_map_from_base[:3, 3] + rng.normal(0.0, 0.3, size=3) * np.array([1.0, 1.0, 0.0])
        records.append(
            {
                "type": "reference_pose",
                "t": round(t - 0.05, 6),
                "position": [float(v) for v in noisy],
                "orientation_xyzw": [0.0, 0.0, 0.0, 1.0],
            }
        )

        T_camera_from_map = compose_T(T_camera_from_base, invert_T(T_map_from_base))
        dets: list[dict[str, object]] = []
        for lid, T_map_from_landmark in T_map_from_lm.items():
            T_camera_from_landmark = compose_T(T_camera_from_map, T_map_from_landmark)
            # 只保留相机前方的地标（光轴 z > 0）。
            if float(T_camera_from_landmark[2, 3]) <= 0.5:
                continue
            rvec, _ = cv2.Rodrigues(np.asarray(T_camera_from_landmark[:3, :3], dtype=np.float64))
            dets.append(
                {
                    "id": lid,
                    "rvec": [float(v) for v in np.asarray(rvec).reshape(3)],
                    "tvec": [float(v) for v in T_camera_from_landmark[:3, 3]],
                }
            )

        records.append({"type": "detections", "t": round(t, 6), "sensor_frame": "camera", "detections": dets})

    # 覆盖写出：保持生成结果确定。
    with files.events.open("w", encoding="utf-8") as f:
        for rec in records:
            f.write(json.dumps(rec, ensure_ascii=False) + "\n")

    return files
