# processing/measurement_file.py
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, List, TextIO

import numpy as np

from tracking.measurement import Measurement, SensorType


# Sensor tag -> sensor type; "L" (lidar) reports position, "R" (radar) range/bearing
SENSOR_TAGS = {
    "L": SensorType.POSITION,
    "R": SensorType.RANGE_BEARING,
}


@dataclass(eq=False)
class MeasurementRecord:
    measurement: Measurement
    ground_truth: np.ndarray | None = None   # [px, py, vx, vy]


def parse_line(line: str, line_no: int = 0) -> MeasurementRecord | None:
    """
    Parse one whitespace-separated record:

      L  x    y    timestamp  [gt_px gt_py gt_vx gt_vy ...]
      R  rho  phi  rho_dot    timestamp  [gt_px gt_py gt_vx gt_vy ...]

    Returns None for blank lines and '#' comments. Fields after the four
    ground-truth values (e.g. yaw, yaw rate) are ignored.
    """
    stripped = line.strip()
    if not stripped or stripped.startswith("#"):
        return None

    tokens = stripped.split()
    tag = tokens[0].upper()
    sensor_type = SENSOR_TAGS.get(tag)
    if sensor_type is None:
        raise ValueError(f"line {line_no}: unknown sensor tag {tokens[0]!r}")

    n_values = 2 if sensor_type is SensorType.POSITION else 3
    if len(tokens) < n_values + 2:
        raise ValueError(f"line {line_no}: expected at least {n_values + 2} fields, got {len(tokens)}")

    try:
        values = np.array([float(t) for t in tokens[1:n_values + 1]], dtype=float)
        timestamp = int(tokens[n_values + 1])
        rest = [float(t) for t in tokens[n_values + 2:]]
    except ValueError as err:
        raise ValueError(f"line {line_no}: {err}") from err

    ground_truth = None
    if len(rest) >= 4:
        ground_truth = np.array(rest[:4], dtype=float)
    elif rest:
        raise ValueError(f"line {line_no}: incomplete ground truth ({len(rest)} of 4 values)")

    return MeasurementRecord(Measurement(sensor_type, values, timestamp), ground_truth)


def iter_records(lines: Iterable[str]) -> Iterator[MeasurementRecord]:
    for line_no, line in enumerate(lines, start=1):
        record = parse_line(line, line_no)
        if record is not None:
            yield record


def read_measurement_file(path: str | Path) -> List[MeasurementRecord]:
    with open(path, "r", encoding="utf-8") as fh:
        return list(iter_records(fh))


def write_estimates(out: TextIO, estimates: np.ndarray, ground_truth: np.ndarray | None = None) -> None:
    """
    One tab-separated line per step:
      px py vx vy [gt_px gt_py gt_vx gt_vy]
    """
    estimates = np.asarray(estimates, dtype=float)
    for i, est in enumerate(estimates):
        fields = list(est)
        if ground_truth is not None:
            fields.extend(ground_truth[i])
        out.write("\t".join(f"{v:.6f}" for v in fields) + "\n")
