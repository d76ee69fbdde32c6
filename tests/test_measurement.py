# tests/test_measurement.py

import numpy as np
import pytest

from tracking.measurement import Measurement, SensorType
from tracking.measurement_models import (
    POSITION_H,
    position_noise,
    range_bearing_noise,
    range_bearing_to_position,
    state_to_range_bearing,
)


def test_measurement_constructors():
    m = Measurement.position(1.0, 2.0, 10)
    assert m.sensor_type is SensorType.POSITION
    np.testing.assert_allclose(m.values, [1.0, 2.0])
    assert m.timestamp == 10

    r = Measurement.range_bearing(3.0, 0.1, -0.5, 20)
    assert r.sensor_type is SensorType.RANGE_BEARING
    assert r.values.shape == (3,)


def test_measurement_width_is_checked():
    with pytest.raises(ValueError):
        Measurement(SensorType.POSITION, [1.0, 2.0, 3.0], 0)
    with pytest.raises(ValueError):
        Measurement(SensorType.RANGE_BEARING, [1.0, 2.0], 0)


def test_measurement_is_immutable():
    m = Measurement.position(1.0, 2.0, 0)
    with pytest.raises(ValueError):
        m.values[0] = 5.0


def test_sensor_type_from_name_and_unknown():
    assert Measurement("position", [1.0, 2.0], 0).is_recognized
    unknown = Measurement("ultrasound", [1.0], 0)
    assert not unknown.is_recognized
    assert unknown.sensor_type == "ultrasound"


def test_state_to_range_bearing():
    yaw = np.arctan2(4.0, 3.0)
    z = state_to_range_bearing(np.array([3.0, 4.0, 5.0, yaw, 0.0]))

    np.testing.assert_allclose(z, [5.0, yaw, 5.0], atol=1e-12)


def test_range_rate_guard_near_origin():
    X = np.array([[0.0, 1e-8], [0.0, 0.0], [3.0, 3.0], [0.0, 0.0], [0.0, 0.0]])
    Z = state_to_range_bearing(X)

    assert Z.shape == (3, 2)
    np.testing.assert_allclose(Z[2], [0.0, 0.0])
    assert np.all(np.isfinite(Z))


def test_noise_and_observation_matrices():
    np.testing.assert_allclose(POSITION_H @ np.arange(5.0), [0.0, 1.0])
    np.testing.assert_allclose(position_noise(0.15, 0.2), np.diag([0.0225, 0.04]))
    np.testing.assert_allclose(range_bearing_noise(0.3, 0.03, 0.3), np.diag([0.09, 0.0009, 0.09]))


def test_range_bearing_to_position():
    np.testing.assert_allclose(range_bearing_to_position(2.0, np.pi / 2), [0.0, 2.0], atol=1e-12)
