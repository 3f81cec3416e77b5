"""读取地标地图文件（YAML/JSON）。

背景：
- 核心 API 只依赖 `LandmarkPose` 集合，不绑定任何地图格式。
- 为了减少“上游手动拆字段”的摩擦，本模块提供一个薄的读取工具。

文件格式：
    landmarks:
      - id: "5"
        position: [10.0, 0.0, 0.0]
        orientation_xyzw: [0.0, 0.0, 0.0, 1.0]   # 可选，缺省为单位旋转
      - id: "6"
        position: [0.0, 4.0, 1.0]
        rvec: [0.0, 0.0, 1.5708]                  # 也可用旋转向量
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import numpy as np
import yaml

from landmark_localizer.transforms import R_from_quat_xyzw, make_T, rotation_matrix_from_rotvec
from landmark_localizer.types import LandmarkPose


def _as_vec(x: Any, n: int, name: str) -> np.ndarray:
    try:
        a = np.asarray(x, dtype=np.float64).reshape(-1)
    except (TypeError, ValueError) as exc:
        raise RuntimeError(f"{name} 必须是数值数组，实际为 {x!r}") from exc
    if a.size != n:
        raise RuntimeError(f"{name} 长度应为 {n}，实际为 {a.size}")
    if not np.isfinite(a).all():
        raise RuntimeError(f"{name} 含非有限数值")
    return a.reshape(n)


def landmark_from_dict(item: Any, *, index: int = 0) -> LandmarkPose:
    """把单条地标记录解析为 LandmarkPose。"""

    if not isinstance(item, dict):
        raise RuntimeError(f"landmarks[{index}] 必须是对象（dict）")

    raw_id = item.get("id")
    if raw_id is None or not str(raw_id).strip():
        raise RuntimeError(f"landmarks[{index}] 缺少 id")
    lid = str(raw_id).strip()

    t = _as_vec(item.get("position"), 3, f"landmarks[{lid}].position")

    if "orientation_xyzw" in item and "rvec" in item:
        raise RuntimeError(f"landmarks[{lid}] 不能同时给出 orientation_xyzw 与 rvec")
    if "rvec" in item:
        R = rotation_matrix_from_rotvec(_as_vec(item["rvec"], 3, f"landmarks[{lid}].rvec"))
    else:
        q = item.get("orientation_xyzw", [0.0, 0.0, 0.0, 1.0])
        try:
            R = R_from_quat_xyzw(_as_vec(q, 4, f"landmarks[{lid}].orientation_xyzw"))
        except ValueError as exc:
            raise RuntimeError(str(exc)) from exc

    return LandmarkPose(landmark_id=lid, T_map_from_landmark=make_T(R=R, t=t))


def load_landmarks(path: Path) -> list[LandmarkPose]:
    """从 YAML/JSON 文件读取地标列表。

    Raises:
        RuntimeError: 文件缺失、格式不支持或 schema 不符合预期。
    """

    p = Path(path)
    if not p.exists():
        raise RuntimeError(f"找不到地标地图文件: {p}")

    suf = p.suffix.lower()
    try:
        text = p.read_text(encoding="utf-8")
        if suf == ".json":
            data = json.loads(text)
        elif suf in {".yaml", ".yml"}:
            data = yaml.safe_load(text)
        else:
            raise RuntimeError(f"不支持的地图文件类型: {p}（仅支持 .json/.yaml/.yml）")
    except RuntimeError:
        raise
    except Exception as exc:  # noqa: BLE001
        raise RuntimeError(f"无法读取地标地图: {p}") from exc

    if not isinstance(data, dict):
        raise RuntimeError("地标地图顶层必须是对象（dict）")

    items = data.get("landmarks")
    if not isinstance(items, list):
        raise RuntimeError("地标地图缺少 landmarks 列表")

    return [landmark_from_dict(it, index=i) for i, it in enumerate(items)]
