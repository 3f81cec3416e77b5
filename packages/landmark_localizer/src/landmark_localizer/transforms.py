"""坐标变换工具：4x4 齐次矩阵。

约定：
- 用 4x4 矩阵表示刚体变换，记作 T_dst_from_src。
- 点从 src 坐标系变换到 dst：X_dst = T_dst_from_src @ X_src（X 为齐次坐标 (4,)）。
- 复合：T_a_from_c = compose_T(T_a_from_b, T_b_from_c)，即“先 B 再 A”。

注意：
- 旋转向量（axis-angle）到旋转矩阵使用 Rodrigues 公式，与 OpenCV `cv2.Rodrigues` 口径一致；
  θ=0 对应单位阵。
- 四元数统一使用 (x, y, z, w) 顺序（与 ROS geometry_msgs、scipy `Rotation` 一致）。
"""

from __future__ import annotations

import cv2
import numpy as np
from scipy.spatial.transform import Rotation


def make_T(*, R: np.ndarray, t: np.ndarray) -> np.ndarray:
    """由 R,t 构造 4x4 齐次矩阵。"""

    R = np.asarray(R, dtype=np.float64).reshape(3, 3)
    t = np.asarray(t, dtype=np.float64).reshape(3)
    T = np.eye(4, dtype=np.float64)
    T[:3, :3] = R
    T[:3, 3] = t
    return T


def invert_T(T: np.ndarray) -> np.ndarray:
    """求刚体变换的逆。"""

    T = np.asarray(T, dtype=np.float64)
    if T.shape != (4, 4):
        raise ValueError(f"T must be (4,4), got {T.shape}")

    R = T[:3, :3]
    t = T[:3, 3]
    R_inv = R.T
    t_inv = -R_inv @ t
    out = np.eye(4, dtype=np.float64)
    out[:3, :3] = R_inv
    out[:3, 3] = t_inv
    return out


def compose_T(A: np.ndarray, B: np.ndarray) -> np.ndarray:
    """复合变换：先 B 再 A（即 A @ B）。"""

    A = np.asarray(A, dtype=np.float64)
    B = np.asarray(B, dtype=np.float64)
    if A.shape != (4, 4) or B.shape != (4, 4):
        raise ValueError(f"A,B must be (4,4), got {A.shape} and {B.shape}")
    return (A @ B).astype(np.float64)


def rotation_matrix_from_rotvec(rvec: np.ndarray) -> np.ndarray:
    """旋转向量 -> 旋转矩阵（Rodrigues）。

    R = I cosθ + (1 - cosθ) k k^T + sinθ [k]_x，θ=|r|，k=r/θ。
    """

    r = np.asarray(rvec, dtype=np.float64).reshape(3, 1)
    R, _ = cv2.Rodrigues(r)
    return np.asarray(R, dtype=np.float64).reshape(3, 3)


def T_from_rvec_tvec(rvec: np.ndarray, tvec: np.ndarray) -> np.ndarray:
    """由 detector 常见输出 (rvec, tvec) 构造刚体变换。"""

    return make_T(R=rotation_matrix_from_rotvec(rvec), t=np.asarray(tvec, dtype=np.float64).reshape(3))


def R_from_quat_xyzw(q: np.ndarray) -> np.ndarray:
    """单位四元数 (x,y,z,w) -> 旋转矩阵。输入会先归一化。"""

    q = np.asarray(q, dtype=np.float64).reshape(4)
    n = float(np.linalg.norm(q))
    if not np.isfinite(n) or n < 1e-12:
        raise ValueError(f"quaternion must be non-zero and finite, got {tuple(float(v) for v in q)}")
    return np.asarray(Rotation.from_quat(q / n).as_matrix(), dtype=np.float64).reshape(3, 3)


def quat_xyzw_from_R(R: np.ndarray) -> np.ndarray:
    """旋转矩阵 -> 单位四元数 (x,y,z,w)，w >= 0。"""

    q = np.asarray(Rotation.from_matrix(np.asarray(R, dtype=np.float64).reshape(3, 3)).as_quat(), dtype=np.float64)
    # 说明：q 与 -q 表示同一旋转；统一取 w >= 0，输出记录才可直接比较。
    if q[3] < 0.0:
        q = -q
    return q.reshape(4)


def yaw_from_T(T_map_from_base: np.ndarray) -> float:
    """从 base->map 变换提取航向角 yaw（绕地图 Z 轴，ZYX 欧拉角的第一个分量）。"""

    R = np.asarray(T_map_from_base, dtype=np.float64)[:3, :3]
    return float(Rotation.from_matrix(R).as_euler("ZYX")[0])
