# tracking/sigma_points.py
from __future__ import annotations
import numpy as np


def normalize_angle(angle):
    """
    Wrap an angle (scalar or array, radians) into (-pi, pi].

    Same as atan2(sin(a), cos(a)), except that -pi is reported as +pi.
    """
    wrapped = np.arctan2(np.sin(angle), np.cos(angle))
    wrapped = np.where(wrapped <= -np.pi, wrapped + 2.0 * np.pi, wrapped)
    if np.ndim(wrapped) == 0:
        return float(wrapped)
    return wrapped


def sigma_weights(n_aug: int, lam: float) -> np.ndarray:
    """
    Weights for the 2*n_aug + 1 sigma points:
      w0 = lam / (lam + n_aug)
      wi = 1 / (2 (lam + n_aug))
    """
    weights = np.full(2 * n_aug + 1, 0.5 / (lam + n_aug), dtype=float)
    weights[0] = lam / (lam + n_aug)
    return weights


def augment(x: np.ndarray, P: np.ndarray, std_a: float, std_yawdd: float) -> tuple[np.ndarray, np.ndarray]:
    """
    Append the two process-noise terms (longitudinal accel, yaw accel).

    Returns:
      x_aug: [x, 0, 0]
      P_aug: blockdiag(P, std_a^2, std_yawdd^2)
    """
    n_x = x.shape[0]
    x_aug = np.zeros(n_x + 2, dtype=float)
    x_aug[:n_x] = x

    P_aug = np.zeros((n_x + 2, n_x + 2), dtype=float)
    P_aug[:n_x, :n_x] = P
    P_aug[n_x, n_x] = std_a * std_a
    P_aug[n_x + 1, n_x + 1] = std_yawdd * std_yawdd
    return x_aug, P_aug


def augmented_sigma_points(
    x: np.ndarray,
    P: np.ndarray,
    std_a: float,
    std_yawdd: float,
    lam: float,
) -> np.ndarray:
    """
    Build the (n_aug, 2*n_aug + 1) augmented sigma point matrix.

    Column 0 is the augmented mean, columns 1..n_aug are mean + sqrt(lam + n_aug) * L[:, i]
    and columns n_aug+1..2*n_aug are mean - sqrt(lam + n_aug) * L[:, i], with L the
    lower Cholesky factor of the augmented covariance.

    Raises numpy.linalg.LinAlgError if the augmented covariance is not positive definite.
    """
    x_aug, P_aug = augment(x, P, std_a, std_yawdd)
    n_aug = x_aug.shape[0]

    L = np.linalg.cholesky(P_aug)
    spread = np.sqrt(lam + n_aug) * L

    Xsig_aug = np.empty((n_aug, 2 * n_aug + 1), dtype=float)
    Xsig_aug[:, 0] = x_aug
    Xsig_aug[:, 1:n_aug + 1] = x_aug[:, None] + spread
    Xsig_aug[:, n_aug + 1:] = x_aug[:, None] - spread
    return Xsig_aug
