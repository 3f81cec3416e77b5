"""数据结构：地标、检测、参考位姿与融合输出。

说明：
- 本包只负责“单次地标检测 -> 地图系车体位姿修正”的核心算法，不依赖图像采集/传输链路。
- 刚体变换统一用 4x4 齐次矩阵表示，命名为 T_<dst>_from_<src>（见 `transforms.py`）。
- 所有值类型均为 frozen dataclass；注册表/参考位姿的“替换”通过整体换快照完成，
  不会原地修改字段。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

import numpy as np


def as_np_f64(x: np.ndarray | Iterable[float], shape: tuple[int, ...]) -> np.ndarray:
    """把输入转为 float64 ndarray 并校验形状。"""

    a = np.asarray(x, dtype=np.float64)
    a = a.reshape(shape)
    return a


def _frozen_T(T: np.ndarray | Iterable[float], name: str) -> np.ndarray:
    a = np.array(T, dtype=np.float64)
    if a.shape != (4, 4):
        raise ValueError(f"{name} must be (4,4), got {a.shape}")
    a.setflags(write=False)
    return a


@dataclass(frozen=True, slots=True)
class CameraIntrinsics:
    """相机内参（OpenCV 口径）。

    Attributes:
        K: 相机内参矩阵 (3,3)。
        dist: 畸变参数 (N,)；若未知可传空或全 0。
    """

    K: np.ndarray
    dist: np.ndarray


@dataclass(frozen=True, slots=True)
class MarkerObservation:
    """外部 detector 的单个 marker 输出（只保留 PnP 所需的最小信息）。

    说明：
    - corners_px 必须是 4 个角点，顺序需要与 `pnp.marker_object_points` 一致。
    """

    marker_id: str
    corners_px: np.ndarray  # (4,2)


@dataclass(frozen=True, slots=True)
class LandmarkPose:
    """地标在地图坐标系下的位姿。构造后矩阵只读。"""

    landmark_id: str
    T_map_from_landmark: np.ndarray  # (4,4)

    def __post_init__(self) -> None:
        object.__setattr__(self, "landmark_id", str(self.landmark_id))
        object.__setattr__(
            self, "T_map_from_landmark", _frozen_T(self.T_map_from_landmark, "T_map_from_landmark")
        )


@dataclass(frozen=True, slots=True)
class Detection:
    """一次地标观测：地标相对某个传感器坐标系的位姿。

    Attributes:
        landmark_id: 地标 ID（字符串）。
        stamp_s: 观测时间戳（秒）。
        sensor_frame: 传感器坐标系名称（例如 camera_optical_frame）。
        T_sensor_from_landmark: landmark -> sensor 的刚体变换。
    """

    landmark_id: str
    stamp_s: float
    sensor_frame: str
    T_sensor_from_landmark: np.ndarray  # (4,4)

    def __post_init__(self) -> None:
        object.__setattr__(self, "landmark_id", str(self.landmark_id))
        object.__setattr__(self, "stamp_s", float(self.stamp_s))
        object.__setattr__(
            self,
            "T_sensor_from_landmark",
            _frozen_T(self.T_sensor_from_landmark, "T_sensor_from_landmark"),
        )

    @property
    def translation(self) -> np.ndarray:
        return self.T_sensor_from_landmark[:3, 3]


@dataclass(frozen=True, slots=True)
class ReferencePoseEstimate:
    """外部状态估计器（例如 EKF）给出的参考位姿，仅用于一致性校验。"""

    stamp_s: float
    T_map_from_base: np.ndarray  # (4,4)

    def __post_init__(self) -> None:
        object.__setattr__(self, "stamp_s", float(self.stamp_s))
        object.__setattr__(self, "T_map_from_base", _frozen_T(self.T_map_from_base, "T_map_from_base"))

    @property
    def position(self) -> np.ndarray:
        return self.T_map_from_base[:3, 3]


@dataclass(frozen=True, slots=True)
class FusedPoseEstimate:
    """一次融合输出（地图系车体位姿 + 放大后的协方差）。

    Attributes:
        stamp_s: 时间戳，直接拷贝自 Detection。
        frame_id: 输出位姿所在坐标系（通常为 map）。
        landmark_id: 产生该输出的地标 ID（诊断用）。
        T_map_from_base: base -> map 的刚体变换。
        covariance: (36,) 行主序展开的 6x6 协方差（x,y,z,roll,pitch,yaw）。
        distance_m: 传感器到地标的欧氏距离（米）。
        scale: 协方差放大系数。
    """

    stamp_s: float
    frame_id: str
    landmark_id: str
    T_map_from_base: np.ndarray  # (4,4)
    covariance: np.ndarray  # (36,)
    distance_m: float
    scale: float

    @property
    def position(self) -> np.ndarray:
        return self.T_map_from_base[:3, 3]

    @property
    def covariance_6x6(self) -> np.ndarray:
        return np.asarray(self.covariance, dtype=np.float64).reshape(6, 6)
