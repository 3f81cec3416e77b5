"""坐标系查询服务的内存实现：静态外参树。

说明：
- 在线系统里该服务通常由 tf 之类的外部组件提供；本模块用于离线回放与单测。
- 边按 (parent, child, T_parent_from_child) 给出；查询时在无向图上 BFS，
  反向经过的边取逆。
- 未知坐标系/不连通时返回失败结果，不抛异常。
"""

from __future__ import annotations

from collections import deque
from typing import Iterable

import numpy as np

from landmark_localizer.config import StaticTransformConfig
from landmark_localizer.gating import TransformLookupResult
from landmark_localizer.transforms import R_from_quat_xyzw, compose_T, invert_T, make_T


class StaticFrameTransforms:
    """静态外参树。实现 `FrameTransformLookup`。"""

    def __init__(self, edges: Iterable[tuple[str, str, np.ndarray]] = ()) -> None:
        # frame -> [(neighbor, T_frame_from_neighbor)]
        self._adj: dict[str, list[tuple[str, np.ndarray]]] = {}
        for parent, child, T_parent_from_child in edges:
            self.add(parent, child, T_parent_from_child)

    @classmethod
    def from_config(cls, items: Iterable[StaticTransformConfig]) -> "StaticFrameTransforms":
        out = cls()
        for it in items:
            T = make_T(R=R_from_quat_xyzw(np.asarray(it.rotation_xyzw)), t=np.asarray(it.translation))
            out.add(it.parent, it.child, T)
        return out

    def add(self, parent: str, child: str, T_parent_from_child: np.ndarray) -> None:
        p = str(parent)
        c = str(child)
        if p == c:
            raise ValueError(f"static transform parent and child must differ, got {p!r}")
        T = np.asarray(T_parent_from_child, dtype=np.float64)
        if T.shape != (4, 4):
            raise ValueError(f"T_parent_from_child must be (4,4), got {T.shape}")
        self._adj.setdefault(p, []).append((c, T))
        self._adj.setdefault(c, []).append((p, invert_T(T)))

    def frames(self) -> list[str]:
        return sorted(self._adj.keys())

    def lookup_transform(
        self, target_frame: str, source_frame: str, stamp_s: float | None = None
    ) -> TransformLookupResult:
        """返回 T_target_from_source。静态树与时间无关，stamp_s 仅为接口兼容。"""

        target = str(target_frame)
        source = str(source_frame)
        if target == source:
            return TransformLookupResult.success(np.eye(4, dtype=np.float64))
        if target not in self._adj:
            return TransformLookupResult.failure(f'"{target}" passed to lookupTransform argument target_frame does not exist')
        if source not in self._adj:
            return TransformLookupResult.failure(f'"{source}" passed to lookupTransform argument source_frame does not exist')

        # BFS：从 target 出发，累积 T_target_from_frame。
        seen = {target}
        q: deque[tuple[str, np.ndarray]] = deque([(target, np.eye(4, dtype=np.float64))])
        while q:
            frame, T_target_from_frame = q.popleft()
            for nb, T_frame_from_nb in self._adj.get(frame, []):
                if nb in seen:
                    continue
                T_target_from_nb = compose_T(T_target_from_frame, T_frame_from_nb)
                if nb == source:
                    return TransformLookupResult.success(T_target_from_nb)
                seen.add(nb)
                q.append((nb, T_target_from_nb))

        return TransformLookupResult.failure(f"{target} and {source} are not part of the same tree")
