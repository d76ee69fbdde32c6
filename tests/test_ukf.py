# tests/test_ukf.py

import numpy as np
import pytest

from diagnostics.accuracy import rmse
from diagnostics.metrics import MetricsRegistry, MEASUREMENTS_IGNORED, MEASUREMENTS_PROCESSED, CORRECTIONS_SKIPPED
from processing.pipeline import run_fusion
from simulation.scenario import generate_scenario, ScenarioGenerator
from tracking.measurement import Measurement
from tracking.ukf import UnscentedKalmanFilterCTRV, UKFConfig, FilterNumericalError


def test_init_from_position_measurement():
    ukf = UnscentedKalmanFilterCTRV()
    ukf.process(Measurement.position(1.0, 2.0, timestamp=1_000_000))

    assert ukf.is_initialized
    assert ukf.time_us == 1_000_000
    np.testing.assert_allclose(ukf.mean, [1.0, 2.0, 0.0, 0.0, 0.0])
    np.testing.assert_allclose(ukf.covariance, np.eye(5))


def test_init_from_range_bearing_measurement():
    ukf = UnscentedKalmanFilterCTRV()
    ukf.process(Measurement.range_bearing(5.0, 0.0, 0.0, timestamp=0))

    np.testing.assert_allclose(ukf.mean, [5.0, 0.0, 0.0, 0.0, 0.0], atol=1e-12)
    np.testing.assert_allclose(ukf.covariance, np.eye(5))


def test_init_from_range_bearing_uses_radial_speed_magnitude():
    ukf = UnscentedKalmanFilterCTRV()
    ukf.process(Measurement.range_bearing(2.0, np.pi / 2, -3.0, timestamp=0))

    np.testing.assert_allclose(ukf.x[:3], [0.0, 2.0, 3.0], atol=1e-12)


def test_unrecognized_sensor_is_ignored_without_mutation():
    metrics = MetricsRegistry()
    ukf = UnscentedKalmanFilterCTRV(metrics=metrics)

    ukf.process(Measurement("sonar", [1.0, 2.0], 0))
    assert not ukf.is_initialized

    ukf.process(Measurement.position(1.0, 2.0, 0))
    x_before, P_before = ukf.x.copy(), ukf.P.copy()

    ukf.process(Measurement("sonar", [9.0, 9.0, 9.0], 500_000))

    np.testing.assert_array_equal(ukf.x, x_before)
    np.testing.assert_array_equal(ukf.P, P_before)
    assert ukf.time_us == 0
    assert metrics.counter(MEASUREMENTS_IGNORED) == 2
    assert metrics.counter(MEASUREMENTS_PROCESSED) == 1


def test_config_accepts_dict():
    ukf = UnscentedKalmanFilterCTRV({"std_a": 2.0, "use_range_bearing": False})
    assert ukf.cfg.std_a == 2.0
    assert ukf.cfg.use_range_bearing is False

    with pytest.raises(TypeError):
        UnscentedKalmanFilterCTRV({"std_unknown": 1.0})


def test_covariance_stays_symmetric_and_psd_every_cycle():
    scenario = generate_scenario({
        "initial_state": [2.0, 1.0, 3.0, 0.3, 0.2],
        "duration": 10.0,
        "time_step_us": 50_000,
        "rng_seed": 1,
    })
    ukf = UnscentedKalmanFilterCTRV()

    for record in ScenarioGenerator(scenario).generate_records():
        ukf.process(record.measurement)
        np.testing.assert_allclose(ukf.P, ukf.P.T, atol=1e-9, rtol=0)
        assert np.min(np.linalg.eigvalsh(ukf.P)) > -1e-9
        assert -np.pi < ukf.x[3] <= np.pi


def test_converges_on_noisy_constant_velocity_position_stream():
    scenario = generate_scenario({
        "initial_state": [1.0, 2.0, np.hypot(1.0, 0.5), np.arctan2(0.5, 1.0), 0.0],
        "duration": 10.0,
        "time_step_us": 100_000,
        "sensors": ["position"],
        "rng_seed": 0,
    })
    records = ScenarioGenerator(scenario).generate_records()

    result = run_fusion(records)

    # Past the ~10 measurement transient the position error stays small
    tail = rmse(result.estimates[10:], result.ground_truth[10:])
    assert tail[0] < 0.5 and tail[1] < 0.5

    vel_err = np.linalg.norm(result.estimates[:, 2:] - result.ground_truth[:, 2:], axis=1)
    assert vel_err[-50:].mean() < vel_err[:10].mean()
    assert vel_err[-50:].mean() < 0.75


def test_converges_with_both_sensors_on_turning_target():
    scenario = generate_scenario({
        "initial_state": [0.6, 0.6, 5.2, 0.0, 0.1],
        "duration": 25.0,
        "time_step_us": 50_000,
        "sensors": ["position", "range_bearing"],
        "rng_seed": 3,
    })
    records = ScenarioGenerator(scenario).generate_records()

    result = run_fusion(records)
    tail = rmse(result.estimates[100:], result.ground_truth[100:])

    assert np.all(tail[:2] < 0.3)
    assert np.all(tail[2:] < 1.0)


def test_range_bearing_update_across_bearing_seam():
    ukf = UnscentedKalmanFilterCTRV()
    ukf.process(Measurement.position(-10.0, 0.05, timestamp=0))

    # Target sits on the negative x axis: bearing ~ +-pi
    ukf.process(Measurement.range_bearing(10.0, -np.pi + 0.004, 0.0, timestamp=50_000))

    assert abs(ukf.x[0] + 10.0) < 0.5
    assert abs(ukf.x[1]) < 0.5
    assert ukf.last_nis is not None and ukf.last_nis < 10.0


def test_disabled_sensor_predicts_and_advances_time():
    metrics = MetricsRegistry()
    ukf = UnscentedKalmanFilterCTRV(UKFConfig(use_range_bearing=False), metrics=metrics)
    ukf.process(Measurement.position(1.0, 1.0, timestamp=0))
    trace_before = np.trace(ukf.P)

    ukf.process(Measurement.range_bearing(50.0, 1.0, 0.0, timestamp=100_000))

    assert ukf.time_us == 100_000
    assert np.trace(ukf.P) > trace_before
    np.testing.assert_allclose(ukf.x[:2], [1.0, 1.0], atol=1e-9)
    assert ukf.last_nis is None
    assert metrics.counter(CORRECTIONS_SKIPPED) == 1
    assert metrics.counter(MEASUREMENTS_PROCESSED) == 2


def test_position_update_pulls_mean_toward_measurement():
    ukf = UnscentedKalmanFilterCTRV()
    ukf.process(Measurement.position(0.0, 0.0, timestamp=0))
    ukf.process(Measurement.position(1.0, 0.0, timestamp=100_000))

    assert 0.0 < ukf.x[0] < 1.0
    assert ukf.P[0, 0] < 1.0
    assert ukf.last_nis is not None


def test_range_bearing_update_without_prior_prediction_uses_current_belief():
    ukf = UnscentedKalmanFilterCTRV()
    ukf.process(Measurement.position(3.0, 4.0, timestamp=0))

    ukf.update_range_bearing([5.0, np.arctan2(4.0, 3.0), 0.0])

    np.testing.assert_allclose(ukf.x[:2], [3.0, 4.0], atol=0.3)
    np.testing.assert_allclose(ukf.P, ukf.P.T, atol=1e-12)


def test_non_positive_definite_covariance_fails_loudly():
    ukf = UnscentedKalmanFilterCTRV()
    ukf.process(Measurement.position(1.0, 1.0, timestamp=0))
    ukf.P = -np.eye(5)

    with pytest.raises(FilterNumericalError):
        ukf.process(Measurement.position(1.0, 1.0, timestamp=100_000))

    np.testing.assert_array_equal(ukf.x, [1.0, 1.0, 0.0, 0.0, 0.0])


def test_singular_innovation_covariance_fails_loudly():
    ukf = UnscentedKalmanFilterCTRV(UKFConfig(std_px=0.0, std_py=0.0))
    ukf.process(Measurement.position(1.0, 1.0, timestamp=0))
    ukf.P = np.zeros((5, 5))

    with pytest.raises(FilterNumericalError):
        ukf.update_position([1.5, 1.0])
