"""地标定位器的配置。

约定：
    - 坐标系：输出位姿位于 map_frame；检测先变换到 base_frame（车体）再与地图地标复合。
    - 协方差为 6x6 行主序展开的 36 个数（x,y,z,roll,pitch,yaw）。
    - 配置错误（例如未知 detection_mode、协方差长度不是 36）在启动时直接报错，
      不允许带着未定义行为运行。
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass, field


class DetectionMode(str, enum.Enum):
    """外部 marker detector 的检测模式（仅做校验与透传，本包不实现检测）。"""

    DM_NORMAL = "DM_NORMAL"
    DM_FAST = "DM_FAST"
    DM_VIDEO_FAST = "DM_VIDEO_FAST"

    @classmethod
    def parse(cls, value: "str | DetectionMode") -> "DetectionMode":
        if isinstance(value, DetectionMode):
            return value
        try:
            return cls(str(value).strip())
        except ValueError:
            allowed = ",".join(m.value for m in cls)
            raise ValueError(f"Invalid detection_mode: {value!r}（可选：{allowed}）") from None


@dataclass(frozen=True)
class GatingConfig:
    """门控配置。

    属性说明：
        marker_whitelist: 允许参与融合的地标 ID。
        distance_threshold_m: 传感器到地标的最大距离（米，含边界）。
        time_tolerance_s: 检测时间戳最多比参考位姿新多少秒。
        position_tolerance_m: 候选位姿与参考位姿的最大位置偏差（米）。
    """

    marker_whitelist: frozenset[str]
    distance_threshold_m: float
    time_tolerance_s: float
    position_tolerance_m: float

    @property
    def distance_threshold_sq(self) -> float:
        return float(self.distance_threshold_m) ** 2


@dataclass(frozen=True)
class CovarianceConfig:
    """协方差放大配置。

    只有 base_covariance 可配；放大规律（参考距离 5m、三次方、下限 1）固定在
    `covariance` 模块里，不随配置变化。
    """

    base_covariance: tuple[float, ...]

    def __post_init__(self) -> None:
        if len(self.base_covariance) != 36:
            raise ValueError(f"base_covariance must have 36 elements, got {len(self.base_covariance)}")


@dataclass(frozen=True)
class StaticTransformConfig:
    """静态外参：child -> parent。旋转用四元数 (x,y,z,w)。"""

    parent: str
    child: str
    translation: tuple[float, float, float] = (0.0, 0.0, 0.0)
    rotation_xyzw: tuple[float, float, float, float] = (0.0, 0.0, 0.0, 1.0)


@dataclass(frozen=True)
class LocalizerConfig:
    """地标定位器配置（字段名与在线节点参数名一致）。

    属性说明：
        marker_size_m: marker 边长（米），仅 PnP 适配层使用。
        max_reproj_rmse_px: PnP 解的重投影 RMSE 上限（像素）；超过的 marker 视为本帧未检测到。
        target_tag_ids: 白名单。
        base_covariance: 基础协方差（36 个数）。
        distance_threshold_m: 距离门限（米）。
        ekf_time_tolerance_s: 时间一致性容差（秒）。
        ekf_position_tolerance_m: 位置一致性容差（米）。
        detection_mode: 外部 detector 的模式。
        min_marker_size: 外部 detector 的最小 marker 尺寸（透传）。
        map_frame / base_frame: 输出坐标系与车体坐标系名称。
        static_transforms: 静态外参（用于离线回放的坐标系查询服务）。
    """

    target_tag_ids: tuple[str, ...]
    base_covariance: tuple[float, ...]
    distance_threshold_m: float
    ekf_time_tolerance_s: float
    ekf_position_tolerance_m: float

    marker_size_m: float = 0.6
    max_reproj_rmse_px: float = 2.0
    detection_mode: DetectionMode = DetectionMode.DM_NORMAL
    min_marker_size: float = 0.02

    map_frame: str = "map"
    base_frame: str = "base_link"

    static_transforms: tuple[StaticTransformConfig, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        # 统一类型：YAML 里常见 list / int。
        object.__setattr__(self, "target_tag_ids", tuple(str(x) for x in self.target_tag_ids))
        object.__setattr__(self, "base_covariance", tuple(float(x) for x in self.base_covariance))
        object.__setattr__(self, "detection_mode", DetectionMode.parse(self.detection_mode))
        object.__setattr__(
            self,
            "static_transforms",
            tuple(
                x if isinstance(x, StaticTransformConfig) else StaticTransformConfig(**dict(x))
                for x in self.static_transforms
            ),
        )
        self.validate()

    def validate(self) -> None:
        """校验配置；任何错误都抛 ValueError。"""

        if not self.target_tag_ids:
            raise ValueError("target_tag_ids must not be empty")

        if len(self.base_covariance) != 36:
            raise ValueError(f"base_covariance must have 36 elements, got {len(self.base_covariance)}")
        if not all(math.isfinite(v) for v in self.base_covariance):
            raise ValueError("base_covariance must be finite")

        for name in (
            "marker_size_m",
            "max_reproj_rmse_px",
            "distance_threshold_m",
            "ekf_time_tolerance_s",
            "ekf_position_tolerance_m",
        ):
            v = float(getattr(self, name))
            if not math.isfinite(v) or v <= 0:
                raise ValueError(f"{name} must be positive, got {v}")

        if float(self.min_marker_size) < 0:
            raise ValueError(f"min_marker_size must be >= 0, got {self.min_marker_size}")

        if not str(self.map_frame).strip() or not str(self.base_frame).strip():
            raise ValueError("map_frame/base_frame must not be empty")

    def gating_config(self) -> GatingConfig:
        return GatingConfig(
            marker_whitelist=frozenset(self.target_tag_ids),
            distance_threshold_m=float(self.distance_threshold_m),
            time_tolerance_s=float(self.ekf_time_tolerance_s),
            position_tolerance_m=float(self.ekf_position_tolerance_m),
        )

    def covariance_config(self) -> CovarianceConfig:
        return CovarianceConfig(base_covariance=tuple(self.base_covariance))
