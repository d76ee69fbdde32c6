# tracking/measurement_models.py
from __future__ import annotations
import numpy as np

# Below this range the range-rate is reported as 0
RANGE_EPS = 1e-6

# Position sensor sees [px, py] directly
POSITION_H = np.array(
    [[1, 0, 0, 0, 0],
     [0, 1, 0, 0, 0]],
    dtype=float
)


def position_noise(std_px: float, std_py: float) -> np.ndarray:
    return np.diag([std_px ** 2, std_py ** 2]).astype(float)


def range_bearing_noise(std_rho: float, std_phi: float, std_rho_dot: float) -> np.ndarray:
    return np.diag([std_rho ** 2, std_phi ** 2, std_rho_dot ** 2]).astype(float)


def state_to_range_bearing(X: np.ndarray) -> np.ndarray:
    """
    Map CTRV states to range/bearing/range-rate space.

    X: (5,) or (5, N) states [px, py, v, yaw, yaw_rate]
    Returns (3,) or (3, N): [rho, phi, rho_dot]
    """
    X = np.asarray(X, dtype=float)
    px, py, v, yaw = X[0], X[1], X[2], X[3]

    vx = v * np.cos(yaw)
    vy = v * np.sin(yaw)

    rho = np.hypot(px, py)
    phi = np.arctan2(py, px)
    far = rho > RANGE_EPS
    rho_dot = np.where(far, (px * vx + py * vy) / np.where(far, rho, 1.0), 0.0)

    return np.stack([rho, phi, rho_dot])


def range_bearing_to_position(rho: float, phi: float) -> np.ndarray:
    return np.array([rho * np.cos(phi), rho * np.sin(phi)], dtype=float)
