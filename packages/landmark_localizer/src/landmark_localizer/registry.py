"""地标注册表与原子快照句柄。

说明：
- `LandmarkRegistry` 构建后不可变；地图重载时整体重建，再通过 `SnapshotCell` 原子替换。
- `SnapshotCell` 同样用于参考位姿与相机标定：写入方只替换引用，读取方总是拿到完整快照。
"""

from __future__ import annotations

import threading
from types import MappingProxyType
from typing import Generic, Iterable, Iterator, TypeVar

from landmark_localizer.types import LandmarkPose

_T = TypeVar("_T")


class LandmarkRegistry:
    """landmark_id -> LandmarkPose 的只读映射。"""

    __slots__ = ("_by_id",)

    def __init__(self, by_id: dict[str, LandmarkPose]) -> None:
        self._by_id = MappingProxyType(dict(by_id))

    @classmethod
    def build(cls, landmarks: Iterable[LandmarkPose]) -> "LandmarkRegistry":
        """由地标集合构建注册表。

        Raises:
            ValueError: landmark_id 重复（地图数据错误，视为配置错误）。
        """

        by_id: dict[str, LandmarkPose] = {}
        for lm in landmarks:
            key = str(lm.landmark_id)
            if key in by_id:
                raise ValueError(f"duplicate landmark id in map: {key!r}")
            by_id[key] = lm
        return cls(by_id)

    @classmethod
    def empty(cls) -> "LandmarkRegistry":
        return cls({})

    def lookup(self, landmark_id: str) -> LandmarkPose | None:
        """查找地标；未注册返回 None（正常结果，不是错误）。"""

        return self._by_id.get(str(landmark_id))

    def ids(self) -> list[str]:
        return sorted(self._by_id.keys())

    def __contains__(self, landmark_id: object) -> bool:
        return str(landmark_id) in self._by_id

    def __len__(self) -> int:
        return len(self._by_id)

    def __iter__(self) -> Iterator[LandmarkPose]:
        return iter(self._by_id.values())


class SnapshotCell(Generic[_T]):
    """可原子替换的不可变快照句柄。

    约定：
    - set() 整体替换引用；get() 返回当前引用。两者在同一把锁下完成，
      读取方不会看到“写了一半”的值。
    - 存入的值本身必须是不可变的（frozen dataclass / 只读注册表）。
    """

    def __init__(self, initial: _T | None = None) -> None:
        self._lock = threading.Lock()
        self._value: _T | None = initial
        self._version = 0 if initial is None else 1

    def get(self) -> _T | None:
        with self._lock:
            return self._value

    def set(self, value: _T) -> None:
        with self._lock:
            self._value = value
            self._version += 1

    def set_once(self, value: _T) -> bool:
        """仅在尚未写入时写入；返回是否写入成功。"""

        with self._lock:
            if self._value is not None:
                return False
            self._value = value
            self._version += 1
            return True

    @property
    def version(self) -> int:
        with self._lock:
            return self._version
