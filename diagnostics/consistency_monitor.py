# diagnostics/consistency_monitor.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Tuple

from scipy.stats import chi2

from tracking.measurement import SensorType, MEASUREMENT_WIDTH

CONSISTENT = "CONSISTENT"
INCONSISTENT = "INCONSISTENT"


@dataclass
class ConsistencyConfig:
    # Quantile of the chi-square distribution a NIS sample is compared against
    confidence: float = 0.95

    enter_count_required: int = 5
    exit_count_required: int = 10


class ConsistencyMonitor:
    """
    Hysteresis state machine over the Normalized Innovation Squared:
      CONSISTENT -> INCONSISTENT after N consecutive NIS samples above the chi-square bound
      INCONSISTENT -> CONSISTENT after M consecutive samples back under it

    The bound depends on the sensor's measurement dimension (2 or 3 degrees of freedom).
    """

    def __init__(self, cfg: ConsistencyConfig | None = None):
        self.cfg = ConsistencyConfig() if cfg is None else cfg
        self.state = CONSISTENT
        self._enter_streak = 0
        self._exit_streak = 0
        self.thresholds = {
            sensor: float(chi2.ppf(self.cfg.confidence, df=dof))
            for sensor, dof in MEASUREMENT_WIDTH.items()
        }

    def update(self, nis: float, sensor_type: SensorType) -> Tuple[str, str]:
        bound = self.thresholds[sensor_type]
        exceeded = float(nis) > bound
        reason = f"{sensor_type.name} nis={nis:.2f} > {bound:.2f}" if exceeded else ""

        if self.state == CONSISTENT:
            if exceeded:
                self._enter_streak += 1
                if self._enter_streak >= self.cfg.enter_count_required:
                    self.state = INCONSISTENT
                    self._exit_streak = 0
            else:
                self._enter_streak = 0
        else:
            if not exceeded:
                self._exit_streak += 1
                if self._exit_streak >= self.cfg.exit_count_required:
                    self.state = CONSISTENT
                    self._enter_streak = 0
            else:
                self._exit_streak = 0

        return self.state, reason
