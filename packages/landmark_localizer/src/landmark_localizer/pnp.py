"""marker 像素角点 -> 传感器系下的地标位姿（PnP 适配层）。

本模块位于 detector 与融合器之间：
- 上游 detector 只给出每个 marker 的 4 个像素角点；
- 这里用相机内参与 marker 边长解出 T_sensor_from_marker，并给出重投影 RMSE，
  供 `runtime.LandmarkLocalizer` 判断解是否可信（超过 `max_reproj_rmse_px` 的解丢弃）。

坐标约定（OpenCV 光轴系）：x 右、y 下、z 前；marker 平面为其自身 z=0 平面，
原点在中心。角点顺序 TL, TR, BR, BL，与 `marker_object_points` 的输出一一对应。
"""

from __future__ import annotations

from dataclasses import dataclass

import cv2
import numpy as np

from landmark_localizer.transforms import T_from_rvec_tvec
from landmark_localizer.types import CameraIntrinsics, as_np_f64

# 单位边长 marker 的角点（TL, TR, BR, BL；y 朝下与像素 v 同向）。
_UNIT_SQUARE = np.array(
    [
        [-0.5, -0.5, 0.0],
        [0.5, -0.5, 0.0],
        [0.5, 0.5, 0.0],
        [-0.5, 0.5, 0.0],
    ],
    dtype=np.float64,
)


@dataclass(frozen=True, slots=True)
class PnPResult:
    """单个 marker 的 PnP 解。

    属性说明：
        T_sensor_from_marker: (4,4) marker -> 传感器。
        reproj_rmse_px: 4 个角点重投影误差的均方根（像素，按点的欧氏距离计算）。
    """

    T_sensor_from_marker: np.ndarray
    reproj_rmse_px: float

    @property
    def distance_m(self) -> float:
        return float(np.linalg.norm(self.T_sensor_from_marker[:3, 3]))

    def exceeds(self, max_reproj_rmse_px: float) -> bool:
        """重投影 RMSE 是否超过上限（NaN 视为超过）。"""

        return not (self.reproj_rmse_px <= float(max_reproj_rmse_px))


def marker_object_points(*, marker_size_m: float) -> np.ndarray:
    """marker 4 个角点在 marker 坐标系下的 3D 坐标（米），形状 (4,3)。"""

    s = float(marker_size_m)
    if not np.isfinite(s) or s <= 0:
        raise ValueError(f"marker_size_m must be positive, got {marker_size_m}")
    return _UNIT_SQUARE * s


def reprojection_rmse_px(
    *,
    object_points: np.ndarray,
    image_points: np.ndarray,
    rvec: np.ndarray,
    tvec: np.ndarray,
    intr: CameraIntrinsics,
) -> float:
    """把 object_points 按 (rvec, tvec) 投影回图像，返回与 image_points 的 RMSE（像素）。"""

    K = as_np_f64(intr.K, (3, 3))
    dist = np.asarray(intr.dist, dtype=np.float64).reshape(-1)
    img = np.asarray(image_points, dtype=np.float64).reshape(-1, 2)
    proj, _ = cv2.projectPoints(np.asarray(object_points, dtype=np.float64), rvec, tvec, K, dist)
    residual = np.asarray(proj, dtype=np.float64).reshape(-1, 2) - img
    return float(np.sqrt(np.mean(np.sum(residual * residual, axis=1))))


def solve_marker_pnp(
    *,
    corners_px: np.ndarray,
    intr: CameraIntrinsics,
    marker_size_m: float,
) -> PnPResult:
    """由 4 个像素角点解 marker 在传感器系下的位姿。

    Raises:
        ValueError: 角点形状不对或含非有限值。
        RuntimeError: solvePnP 不收敛，或解出的 marker 不在相机前方。
    """

    img_pts = as_np_f64(corners_px, (4, 2))
    if not np.isfinite(img_pts).all():
        raise ValueError("corners_px contains non-finite values")
    obj_pts = marker_object_points(marker_size_m=marker_size_m)

    # 说明：用 ITERATIVE；IPPE_SQUARE 对点序的隐含约定更严格。
    ok, rvec, tvec = cv2.solvePnP(
        obj_pts,
        img_pts,
        as_np_f64(intr.K, (3, 3)),
        np.asarray(intr.dist, dtype=np.float64).reshape(-1),
        flags=int(cv2.SOLVEPNP_ITERATIVE),
    )
    if not bool(ok):
        raise RuntimeError("solvePnP did not converge")

    T = T_from_rvec_tvec(np.asarray(rvec, dtype=np.float64), np.asarray(tvec, dtype=np.float64))
    if not np.isfinite(T).all() or float(T[2, 3]) <= 0.0:
        raise RuntimeError(f"implausible marker pose: t={T[:3, 3].tolist()}")

    rmse = reprojection_rmse_px(object_points=obj_pts, image_points=img_pts, rvec=rvec, tvec=tvec, intr=intr)
    return PnPResult(T_sensor_from_marker=T, reproj_rmse_px=rmse)
