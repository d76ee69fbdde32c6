# tracking/motion_model.py
from __future__ import annotations
import numpy as np

# Below this |yaw_rate| the straight-line limit is used
YAW_RATE_EPS = 1e-6


def ctrv_predict(Xsig_aug: np.ndarray, dt: float) -> np.ndarray:
    """
    Constant turn rate and velocity (CTRV) propagation of augmented sigma points.

    Xsig_aug rows:
      [px, py, v, yaw, yaw_rate, nu_a, nu_yawdd]
    Returns the (5, N) predicted sigma points:
      [px, py, v, yaw, yaw_rate]
    """
    Xsig_aug = np.asarray(Xsig_aug, dtype=float)
    dt = float(dt)

    px, py, v, yaw, yawd, nu_a, nu_yawdd = Xsig_aug

    curved = np.abs(yawd) > YAW_RATE_EPS
    safe_yawd = np.where(curved, yawd, 1.0)
    yaw_end = yaw + yawd * dt

    px_p = np.where(
        curved,
        px + v / safe_yawd * (np.sin(yaw_end) - np.sin(yaw)),
        px + v * np.cos(yaw) * dt,
    )
    py_p = np.where(
        curved,
        py + v / safe_yawd * (np.cos(yaw) - np.cos(yaw_end)),
        py + v * np.sin(yaw) * dt,
    )

    # Process noise: quadratic in dt for position/yaw, linear for v/yaw_rate
    half_dt2 = 0.5 * dt * dt
    Xsig_pred = np.empty((5, Xsig_aug.shape[1]), dtype=float)
    Xsig_pred[0] = px_p + half_dt2 * nu_a * np.cos(yaw)
    Xsig_pred[1] = py_p + half_dt2 * nu_a * np.sin(yaw)
    Xsig_pred[2] = v + nu_a * dt
    Xsig_pred[3] = yaw_end + half_dt2 * nu_yawdd
    Xsig_pred[4] = yawd + nu_yawdd * dt
    return Xsig_pred
