# diagnostics/metrics.py
from __future__ import annotations

from dataclasses import dataclass, field
from collections import deque
import time
from typing import Dict, Any

import numpy as np


# -----------------------------
# Metric keys
# -----------------------------
MEASUREMENTS_PROCESSED = "measurements_processed_total"
MEASUREMENTS_IGNORED = "measurements_ignored_total"
CORRECTIONS_SKIPPED = "corrections_skipped_total"
UPDATE_LATENCY = "update_latency_s"

# Normalized Innovation Squared, one window per sensor
NIS_POSITION = "nis_position"
NIS_RANGE_BEARING = "nis_range_bearing"

# Gauge: NIS of the most recent correction (any sensor)
NIS_LAST = "nis_last"


@dataclass
class _Window:
    maxlen: int
    samples: deque = field(default_factory=deque)

    def add(self, x: float) -> None:
        self.samples.append(float(x))
        while len(self.samples) > self.maxlen:
            self.samples.popleft()

    def summary(self) -> Dict[str, float]:
        if not self.samples:
            return {"count": 0, "mean": 0.0, "p95": 0.0, "max": 0.0}
        arr = np.fromiter(self.samples, dtype=float)
        return {
            "count": int(arr.size),
            "mean": float(arr.mean()),
            "p95": float(np.percentile(arr, 95)),
            "max": float(arr.max()),
        }


class MetricsRegistry:
    """
    Small in-process registry for filter observability:
      - counters: monotonically increasing
      - gauges: last value (overwrite)
      - windows: sliding window of samples (latencies in seconds, NIS values)
    """

    def __init__(self, window_size: int = 200):
        self.window_size = int(window_size)
        self._counters: Dict[str, int] = {}
        self._gauges: Dict[str, float] = {}
        self._windows: Dict[str, _Window] = {}

    def inc(self, key: str, amount: int = 1) -> None:
        self._counters[key] = self._counters.get(key, 0) + int(amount)

    def set_gauge(self, key: str, value: float) -> None:
        self._gauges[key] = float(value)

    def observe(self, key: str, value: float) -> None:
        window = self._windows.get(key)
        if window is None:
            window = self._windows[key] = _Window(maxlen=self.window_size)
        window.add(value)

    def counter(self, key: str) -> int:
        return self._counters.get(key, 0)

    def snapshot(self) -> Dict[str, Any]:
        return {
            "counters": dict(self._counters),
            "gauges": dict(self._gauges),
            "windows": {k: w.summary() for k, w in self._windows.items()},
        }


class Timer:
    """Context manager that observes the elapsed wall time (seconds) under `key`."""

    def __init__(self, metrics: MetricsRegistry, key: str):
        self.metrics = metrics
        self.key = key
        self._t0 = 0.0

    def __enter__(self):
        self._t0 = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.metrics.observe(self.key, time.perf_counter() - self._t0)
        return False
