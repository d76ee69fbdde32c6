# visualization/trajectory_plot.py

from __future__ import annotations

import numpy as np
import matplotlib.pyplot as plt

from processing.pipeline import FusionResult
from tracking.measurement import SensorType
from tracking.measurement_models import range_bearing_to_position


def plot_trajectory(result: FusionResult, measurements=None, title: str = "UKF Sensor Fusion", ax=None):
    """
    Estimated path vs ground truth (when present) in the x/y plane.

    measurements: optional list of Measurement; drawn as dots, range/bearing
    readings converted to Cartesian.
    """
    if ax is None:
        _, ax = plt.subplots(figsize=(8, 8))

    if result.ground_truth is not None and len(result.ground_truth):
        ax.plot(result.ground_truth[:, 0], result.ground_truth[:, 1], "k-", lw=1.5, label="ground truth")

    if measurements:
        pos = np.array([m.values for m in measurements if m.sensor_type is SensorType.POSITION]).reshape(-1, 2)
        rb = np.array([
            range_bearing_to_position(m.values[0], m.values[1])
            for m in measurements if m.sensor_type is SensorType.RANGE_BEARING
        ]).reshape(-1, 2)
        ax.scatter(pos[:, 0], pos[:, 1], s=8, c="tab:blue", alpha=0.6, label="position")
        ax.scatter(rb[:, 0], rb[:, 1], s=8, c="tab:orange", alpha=0.6, label="range/bearing")

    ax.plot(result.estimates[:, 0], result.estimates[:, 1], "r-", lw=1.0, label="UKF estimate")

    ax.set_title(title)
    ax.set_xlabel("x (m)")
    ax.set_ylabel("y (m)")
    ax.set_aspect("equal", adjustable="datalim")
    ax.legend(loc="best")
    return ax


def plot_nis(result: FusionResult, thresholds: dict[SensorType, float] | None = None, ax=None):
    """
    NIS per correction, split by sensor, with optional chi-square bounds
    (e.g. ConsistencyMonitor.thresholds).
    """
    if ax is None:
        _, ax = plt.subplots(figsize=(10, 4))

    colors = {SensorType.POSITION: "tab:blue", SensorType.RANGE_BEARING: "tab:orange"}
    for sensor, color in colors.items():
        idx = [i for i, (s, n) in enumerate(zip(result.sensor_types, result.nis)) if s is sensor and n is not None]
        if not idx:
            continue
        ax.plot(idx, [result.nis[i] for i in idx], ".-", c=color, lw=0.8, label=f"NIS {sensor.name.lower()}")
        if thresholds is not None and sensor in thresholds:
            ax.axhline(thresholds[sensor], c=color, ls="--", lw=1.0)

    ax.set_xlabel("step")
    ax.set_ylabel("NIS")
    ax.legend(loc="upper right")
    return ax
