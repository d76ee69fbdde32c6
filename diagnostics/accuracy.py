# diagnostics/accuracy.py
from __future__ import annotations

import logging
from typing import Sequence

import numpy as np

logger = logging.getLogger(__name__)

# [px, py, vx, vy]
CARTESIAN_DIM = 4


def rmse(estimates: Sequence[np.ndarray], ground_truth: Sequence[np.ndarray]) -> np.ndarray:
    """
    Per-dimension root-mean-square error between two equal-length sequences
    of [px, py, vx, vy] vectors.

    Empty or mismatched inputs are reported and give a zero vector.
    """
    if len(estimates) == 0 or len(estimates) != len(ground_truth):
        logger.warning(
            "rmse: estimates and ground truth must be non-empty and equal length (got %d and %d)",
            len(estimates), len(ground_truth),
        )
        return np.zeros(CARTESIAN_DIM, dtype=float)

    est = np.asarray(estimates, dtype=float)
    gt = np.asarray(ground_truth, dtype=float)
    residual = est - gt
    return np.sqrt(np.mean(residual * residual, axis=0))


def state_to_cartesian(x: np.ndarray) -> np.ndarray:
    """Project a CTRV state [px, py, v, yaw, yaw_rate] onto [px, py, vx, vy]."""
    px, py, v, yaw = np.asarray(x, dtype=float)[:4]
    return np.array([px, py, v * np.cos(yaw), v * np.sin(yaw)], dtype=float)
