# tracking/ukf.py
from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Dict, Any

import numpy as np

from tracking.measurement import Measurement, SensorType
from tracking.measurement_models import (
    POSITION_H,
    position_noise,
    range_bearing_noise,
    range_bearing_to_position,
    state_to_range_bearing,
)
from tracking.motion_model import ctrv_predict
from tracking.sigma_points import augmented_sigma_points, normalize_angle, sigma_weights
from diagnostics.metrics import (
    MetricsRegistry,
    MEASUREMENTS_PROCESSED,
    MEASUREMENTS_IGNORED,
    CORRECTIONS_SKIPPED,
    NIS_POSITION,
    NIS_RANGE_BEARING,
    NIS_LAST,
)

logger = logging.getLogger(__name__)

N_X = 5                   # [px, py, v, yaw, yaw_rate]
N_AUG = 7                 # + [nu_a, nu_yawdd]
N_SIGMA = 2 * N_AUG + 1
LAMBDA = 3 - N_AUG

YAW = 3                   # index of the circular state component
BEARING = 1               # index of the circular measurement component


class FilterNumericalError(RuntimeError):
    """A covariance factorization or inversion failed; the belief can't be trusted."""


@dataclass(frozen=True)
class UKFConfig:
    # Process noise
    std_a: float = 1.5        # longitudinal acceleration (m/s^2)
    std_yawdd: float = 0.5    # yaw acceleration (rad/s^2)

    # Position sensor noise (m)
    std_px: float = 0.15
    std_py: float = 0.15

    # Range/bearing sensor noise
    std_rho: float = 0.3      # m
    std_phi: float = 0.03     # rad
    std_rho_dot: float = 0.3  # m/s

    # Sensor switches; a disabled sensor still drives prediction
    use_position: bool = True
    use_range_bearing: bool = True


class UnscentedKalmanFilterCTRV:
    """
    Unscented Kalman Filter with a constant turn rate and velocity motion model.

    State:
      x = [px, py, v, yaw, yaw_rate]^T
    Measurements:
      POSITION       z = [px, py]^T              (linear KF update)
      RANGE_BEARING  z = [rho, phi, rho_dot]^T   (unscented update)

    Feed measurements in non-decreasing timestamp order through `process`.
    """

    def __init__(
        self,
        config: UKFConfig | Dict[str, Any] | None = None,
        metrics: MetricsRegistry | None = None,
    ):
        if config is None:
            config = UKFConfig()
        if isinstance(config, dict):
            config = UKFConfig(**config)
        self.cfg: UKFConfig = config
        self.metrics = metrics

        self.n_x = N_X
        self.n_aug = N_AUG
        self.lam = float(LAMBDA)
        self.weights = sigma_weights(self.n_aug, self.lam)

        self.H = POSITION_H
        self.R_position = position_noise(config.std_px, config.std_py)
        self.R_range_bearing = range_bearing_noise(config.std_rho, config.std_phi, config.std_rho_dot)

        self.x = np.zeros(self.n_x, dtype=float)
        self.P = np.eye(self.n_x, dtype=float)
        self.Xsig_pred = np.zeros((self.n_x, N_SIGMA), dtype=float)
        self._sigma_fresh = False

        self.is_initialized = False
        self.time_us = 0
        self.last_nis: float | None = None

    @property
    def mean(self) -> np.ndarray:
        return self.x

    @property
    def covariance(self) -> np.ndarray:
        return self.P

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------
    def process(self, measurement: Measurement) -> None:
        self.last_nis = None
        if not measurement.is_recognized:
            logger.warning("ignoring measurement with unrecognized sensor type %r", measurement.sensor_type)
            if self.metrics is not None:
                self.metrics.inc(MEASUREMENTS_IGNORED)
            return

        if not self.is_initialized:
            self._initialize(measurement)
            if self.metrics is not None:
                self.metrics.inc(MEASUREMENTS_PROCESSED)
            return

        dt = (measurement.timestamp - self.time_us) / 1e6
        if dt < 0:
            logger.warning("out-of-order measurement: dt=%.6f s (t=%d, previous t=%d)",
                           dt, measurement.timestamp, self.time_us)

        self.predict(dt)
        # Advance even when the correction below is skipped, so the next dt stays right
        self.time_us = measurement.timestamp

        if measurement.sensor_type is SensorType.POSITION and self.cfg.use_position:
            self.update_position(measurement.values)
        elif measurement.sensor_type is SensorType.RANGE_BEARING and self.cfg.use_range_bearing:
            self.update_range_bearing(measurement.values)
        else:
            logger.debug("%s sensor disabled; prediction only", measurement.sensor_type.name)
            if self.metrics is not None:
                self.metrics.inc(CORRECTIONS_SKIPPED)

        if self.metrics is not None:
            self.metrics.inc(MEASUREMENTS_PROCESSED)

    def _initialize(self, measurement: Measurement) -> None:
        z = measurement.values
        if measurement.sensor_type is SensorType.POSITION:
            self.x = np.array([z[0], z[1], 0.0, 0.0, 0.0], dtype=float)
        else:
            rho, phi, rho_dot = z
            px, py = range_bearing_to_position(rho, phi)
            # Magnitude of the radial velocity vector; heading is unknown
            self.x = np.array([px, py, abs(rho_dot), 0.0, 0.0], dtype=float)

        self.P = np.eye(self.n_x, dtype=float)
        self.time_us = measurement.timestamp
        self.is_initialized = True
        self._sigma_fresh = False
        logger.debug("initialized from %s at t=%d: x=%s", measurement.sensor_type.name, self.time_us, self.x)

    # ------------------------------------------------------------------
    # Prediction
    # ------------------------------------------------------------------
    def predict(self, dt: float) -> None:
        """Propagate the belief `dt` seconds through the CTRV model."""
        Xsig_pred = self._propagate_sigma_points(dt)

        x = Xsig_pred @ self.weights
        dX = Xsig_pred - x[:, None]
        dX[YAW] = normalize_angle(dX[YAW])
        P = (dX * self.weights) @ dX.T

        x[YAW] = normalize_angle(x[YAW])

        self.Xsig_pred = Xsig_pred
        self.x = x
        self.P = _symmetrize(P)
        self._sigma_fresh = True
        logger.debug("predict dt=%.6f s: x=%s", dt, self.x)

    def _propagate_sigma_points(self, dt: float) -> np.ndarray:
        try:
            Xsig_aug = augmented_sigma_points(self.x, self.P, self.cfg.std_a, self.cfg.std_yawdd, self.lam)
        except np.linalg.LinAlgError as err:
            logger.error("Cholesky factorization failed; P=%s", self.P)
            raise FilterNumericalError("augmented covariance is not positive definite") from err
        return ctrv_predict(Xsig_aug, dt)

    # ------------------------------------------------------------------
    # Corrections
    # ------------------------------------------------------------------
    def update_position(self, z: np.ndarray) -> None:
        z = np.array(z, dtype=float).reshape(2,)

        y = z - (self.H @ self.x)
        S = self.H @ self.P @ self.H.T + self.R_position
        S_inv = _invert(S, "position")
        K = self.P @ self.H.T @ S_inv

        x = self.x + K @ y
        x[YAW] = normalize_angle(x[YAW])
        P = (np.eye(self.n_x) - K @ self.H) @ self.P

        self.x = x
        self.P = _symmetrize(P)
        self._sigma_fresh = False
        self._record_nis(float(y @ S_inv @ y), NIS_POSITION)

    def update_range_bearing(self, z: np.ndarray) -> None:
        z = np.array(z, dtype=float).reshape(3,)
        if not self._sigma_fresh:
            # No prediction since the last change of belief: take sigma points of the current one
            self.Xsig_pred = self._propagate_sigma_points(0.0)

        w = self.weights
        Zsig = state_to_range_bearing(self.Xsig_pred)
        # Average bearings as offsets from the centre point so the +-pi seam doesn't split them
        Zsig[BEARING] = Zsig[BEARING, 0] + normalize_angle(Zsig[BEARING] - Zsig[BEARING, 0])

        z_pred = Zsig @ w
        dZ = Zsig - z_pred[:, None]
        dZ[BEARING] = normalize_angle(dZ[BEARING])
        S = (dZ * w) @ dZ.T + self.R_range_bearing

        dX = self.Xsig_pred - self.x[:, None]
        dX[YAW] = normalize_angle(dX[YAW])
        Tc = (dX * w) @ dZ.T

        S_inv = _invert(S, "range/bearing")
        K = Tc @ S_inv

        y = z - z_pred
        y[BEARING] = normalize_angle(y[BEARING])

        x = self.x + K @ y
        x[YAW] = normalize_angle(x[YAW])
        P = self.P - K @ S @ K.T

        self.x = x
        self.P = _symmetrize(P)
        self._sigma_fresh = False
        self._record_nis(float(y @ S_inv @ y), NIS_RANGE_BEARING)

    def _record_nis(self, nis: float, key: str) -> None:
        self.last_nis = nis
        logger.debug("%s=%.3f", key, nis)
        if self.metrics is not None:
            self.metrics.observe(key, nis)
            self.metrics.set_gauge(NIS_LAST, nis)


def _invert(S: np.ndarray, label: str) -> np.ndarray:
    try:
        S_inv = np.linalg.inv(S)
    except np.linalg.LinAlgError as err:
        logger.error("%s innovation covariance is singular; S=%s", label, S)
        raise FilterNumericalError(f"{label} innovation covariance is singular") from err
    if not np.all(np.isfinite(S_inv)):
        logger.error("%s innovation covariance inverse is not finite; S=%s", label, S)
        raise FilterNumericalError(f"{label} innovation covariance is ill-conditioned")
    return S_inv


def _symmetrize(P: np.ndarray) -> np.ndarray:
    return 0.5 * (P + P.T)
