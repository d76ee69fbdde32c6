# simulation/scenario.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np

from processing.measurement_file import MeasurementRecord
from tracking.measurement import Measurement, SensorType
from tracking.measurement_models import state_to_range_bearing
from tracking.motion_model import ctrv_predict


@dataclass
class SensorNoise:
    std_px: float = 0.15      # m
    std_py: float = 0.15      # m
    std_rho: float = 0.3      # m
    std_phi: float = 0.03     # rad
    std_rho_dot: float = 0.3  # m/s


@dataclass
class Scenario:
    initial_state: np.ndarray   # [px, py, v, yaw, yaw_rate]
    duration: float             # seconds
    time_step_us: int           # microseconds between measurements
    start_time_us: int
    sensor_pattern: List[SensorType]
    noise: SensorNoise
    rng_seed: Optional[int] = None


_SENSOR_NAMES = {
    "position": SensorType.POSITION,
    "range_bearing": SensorType.RANGE_BEARING,
}


def generate_scenario(config: Dict) -> Scenario:
    """
    Builds a single-object scenario from a configuration dictionary.

    Keys:
      initial_state   [px, py, v, yaw, yaw_rate]
      duration        seconds
      time_step_us    measurement period
      start_time_us   optional, default 0
      sensors         cycled sensor names, default ["position", "range_bearing"]
      noise           optional SensorNoise fields
      rng_seed        optional
    """
    sensors = config.get("sensors", ["position", "range_bearing"])
    try:
        pattern = [_SENSOR_NAMES[name] for name in sensors]
    except KeyError as err:
        raise ValueError(f"unknown sensor {err.args[0]!r}; expected one of {sorted(_SENSOR_NAMES)}") from err
    if not pattern:
        raise ValueError("scenario needs at least one sensor")

    initial_state = np.array(config["initial_state"], dtype=float).reshape(5,)

    return Scenario(
        initial_state=initial_state,
        duration=float(config["duration"]),
        time_step_us=int(config["time_step_us"]),
        start_time_us=int(config.get("start_time_us", 0)),
        sensor_pattern=pattern,
        noise=SensorNoise(**config.get("noise", {})),
        rng_seed=config.get("rng_seed"),
    )


def ctrv_step(state: np.ndarray, dt: float) -> np.ndarray:
    """Noise-free CTRV motion of a single state over dt seconds."""
    column = np.concatenate([np.asarray(state, dtype=float), [0.0, 0.0]])[:, None]
    return ctrv_predict(column, dt)[:, 0]


class ScenarioGenerator:
    def __init__(self, scenario: Scenario):
        self.scenario = scenario
        n_steps = int(round(scenario.duration * 1e6 / scenario.time_step_us))
        self.timestamps = scenario.start_time_us + scenario.time_step_us * np.arange(n_steps, dtype=np.int64)
        self.rng = np.random.default_rng(scenario.rng_seed)

    def generate_ground_truth(self) -> np.ndarray:
        """
        Returns:
            np.ndarray: shape (num_steps, 5), CTRV states at each timestamp
        """
        dt = self.scenario.time_step_us / 1e6
        states = np.zeros((len(self.timestamps), 5))
        state = self.scenario.initial_state.copy()
        for i in range(len(self.timestamps)):
            states[i] = state
            state = ctrv_step(state, dt)
        return states

    def generate_records(self) -> List[MeasurementRecord]:
        """
        Noisy measurements, cycling through the configured sensors, with
        [px, py, vx, vy] ground truth attached.
        """
        truth = self.generate_ground_truth()
        noise = self.scenario.noise
        pattern = self.scenario.sensor_pattern

        records = []
        for i, (t, state) in enumerate(zip(self.timestamps, truth)):
            sensor = pattern[i % len(pattern)]
            if sensor is SensorType.POSITION:
                z = state[:2] + self.rng.normal(0.0, [noise.std_px, noise.std_py])
            else:
                z = state_to_range_bearing(state) + self.rng.normal(
                    0.0, [noise.std_rho, noise.std_phi, noise.std_rho_dot]
                )
            px, py, v, yaw, _ = state
            gt = np.array([px, py, v * np.cos(yaw), v * np.sin(yaw)], dtype=float)
            records.append(MeasurementRecord(Measurement(sensor, z, int(t)), gt))

        return records
