# tracking/measurement.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import numpy as np


class SensorType(Enum):
    POSITION = "position"
    RANGE_BEARING = "range_bearing"


# Expected width of `values` per sensor
MEASUREMENT_WIDTH = {
    SensorType.POSITION: 2,        # [x, y]
    SensorType.RANGE_BEARING: 3,   # [rho, phi, rho_dot]
}


@dataclass(frozen=True, eq=False)
class Measurement:
    """
    A single timestamped sensor reading.

    sensor_type:
      SensorType.POSITION       -> values = [x, y]
      SensorType.RANGE_BEARING  -> values = [rho, phi, rho_dot]
    timestamp:
      integer microseconds

    Anything that is not a SensorType is kept as-is so the estimator can
    recognize and ignore it.
    """

    sensor_type: SensorType | str
    values: np.ndarray
    timestamp: int

    def __post_init__(self):
        sensor_type = self.sensor_type
        if isinstance(sensor_type, str):
            try:
                sensor_type = SensorType(sensor_type)
            except ValueError:
                pass
        object.__setattr__(self, "sensor_type", sensor_type)

        values = np.array(self.values, dtype=float).reshape(-1)
        values.setflags(write=False)
        object.__setattr__(self, "values", values)
        object.__setattr__(self, "timestamp", int(self.timestamp))

        width = MEASUREMENT_WIDTH.get(sensor_type)
        if width is not None and values.shape[0] != width:
            raise ValueError(
                f"{sensor_type.name} measurement needs {width} values, got {values.shape[0]}"
            )

    @classmethod
    def position(cls, x: float, y: float, timestamp: int) -> "Measurement":
        return cls(SensorType.POSITION, np.array([x, y], dtype=float), timestamp)

    @classmethod
    def range_bearing(cls, rho: float, phi: float, rho_dot: float, timestamp: int) -> "Measurement":
        return cls(SensorType.RANGE_BEARING, np.array([rho, phi, rho_dot], dtype=float), timestamp)

    @property
    def is_recognized(self) -> bool:
        return isinstance(self.sensor_type, SensorType)
