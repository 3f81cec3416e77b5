"""按观测距离放大协方差。

~5[m]: 直接使用 base_covariance。
5~[m]: base_covariance 乘以 (distance / 5) ** 3。

说明：距离越远，角度误差被放大得越明显，因此超过参考距离后按三次方放大，且永不缩小。
放大规律是固定常数，不随配置变化；可配的只有 base_covariance。
"""

from __future__ import annotations

import math

import numpy as np

from landmark_localizer.config import CovarianceConfig

REFERENCE_DISTANCE_M = 5.0
SCALE_EXPONENT = 3.0
SCALE_FLOOR = 1.0


def covariance_scale(distance_m: float) -> float:
    """距离 -> 放大系数：max(SCALE_FLOOR, (d / REFERENCE_DISTANCE_M) ** SCALE_EXPONENT)。"""

    d = float(distance_m)
    if not math.isfinite(d) or d < 0:
        raise ValueError(f"distance_m must be a finite non-negative number, got {distance_m}")
    return max(SCALE_FLOOR, (d / REFERENCE_DISTANCE_M) ** SCALE_EXPONENT)


def scale_covariance(distance_m: float, cfg: CovarianceConfig) -> tuple[np.ndarray, float]:
    """返回 (放大后的 36 元协方差, 放大系数)。逐元素相乘，非对角结构保持不变。"""

    scale = covariance_scale(distance_m)
    base = np.asarray(cfg.base_covariance, dtype=np.float64).reshape(36)
    return scale * base, float(scale)
