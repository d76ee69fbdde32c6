# processing/pipeline.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List

import numpy as np

from processing.measurement_file import MeasurementRecord
from tracking.measurement import SensorType
from tracking.ukf import UnscentedKalmanFilterCTRV
from diagnostics.accuracy import rmse, state_to_cartesian
from diagnostics.consistency_monitor import ConsistencyMonitor
from diagnostics.metrics import MetricsRegistry, Timer, UPDATE_LATENCY


@dataclass
class FusionResult:
    states: np.ndarray                 # (N, 5) belief mean after each record
    estimates: np.ndarray              # (N, 4) [px, py, vx, vy]
    ground_truth: np.ndarray | None    # (N, 4), None unless every record carries it
    sensor_types: List[SensorType] = field(default_factory=list)
    nis: List[float | None] = field(default_factory=list)
    consistency: List[str] = field(default_factory=list)

    @property
    def rmse(self) -> np.ndarray:
        if self.ground_truth is None:
            return rmse([], [])
        return rmse(self.estimates, self.ground_truth)


def run_fusion(
    records: Iterable[MeasurementRecord],
    ukf: UnscentedKalmanFilterCTRV | None = None,
    *,
    metrics: MetricsRegistry | None = None,
    monitor: ConsistencyMonitor | None = None,
) -> FusionResult:
    """
    Drive the filter over a measurement stream.

    Steps per record:
        1. ukf.process(measurement) (timed into UPDATE_LATENCY when metrics are given)
        2. Project the belief onto [px, py, vx, vy]
        3. Feed the correction's NIS to the consistency monitor

    A filter is built (sharing `metrics`) when none is passed.
    """
    if ukf is None:
        ukf = UnscentedKalmanFilterCTRV(metrics=metrics)

    states, estimates, truths = [], [], []
    sensor_types, nis_values, consistency = [], [], []
    have_truth = True

    for record in records:
        m = record.measurement

        if metrics is None:
            ukf.process(m)
        else:
            with Timer(metrics, UPDATE_LATENCY):
                ukf.process(m)

        states.append(ukf.x.copy())
        estimates.append(state_to_cartesian(ukf.x))
        sensor_types.append(m.sensor_type)
        nis_values.append(ukf.last_nis)

        if monitor is not None:
            if ukf.last_nis is not None:
                state, _ = monitor.update(ukf.last_nis, m.sensor_type)
            else:
                state = monitor.state
            consistency.append(state)

        if record.ground_truth is None:
            have_truth = False
        else:
            truths.append(np.asarray(record.ground_truth, dtype=float))

    return FusionResult(
        states=np.array(states, dtype=float).reshape(-1, 5),
        estimates=np.array(estimates, dtype=float).reshape(-1, 4),
        ground_truth=np.array(truths, dtype=float).reshape(-1, 4) if have_truth else None,
        sensor_types=sensor_types,
        nis=nis_values,
        consistency=consistency,
    )
