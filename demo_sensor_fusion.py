# demo_sensor_fusion.py
import argparse
import logging

import matplotlib.pyplot as plt

from processing.measurement_file import read_measurement_file, write_estimates
from processing.pipeline import run_fusion
from simulation.scenario import generate_scenario, ScenarioGenerator
from tracking.ukf import UnscentedKalmanFilterCTRV, UKFConfig
from visualization.trajectory_plot import plot_trajectory, plot_nis

from diagnostics.consistency_monitor import ConsistencyMonitor, ConsistencyConfig, INCONSISTENT
from diagnostics.metrics import (
    MetricsRegistry,
    MEASUREMENTS_PROCESSED,
    MEASUREMENTS_IGNORED,
    UPDATE_LATENCY,
    NIS_POSITION,
    NIS_RANGE_BEARING,
)


# -----------------------------
# Default simulated scenario: a slow left turn, alternating sensors
# -----------------------------
DEFAULT_SCENARIO = {
    "initial_state": [0.6, 0.6, 5.2, 0.0, 0.1],
    "duration": 25.0,
    "time_step_us": 50_000,
    "start_time_us": 1_477_010_443_000_000,
    "sensors": ["position", "range_bearing"],
    "rng_seed": 7,
}


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="CTRV Unscented Kalman Filter sensor fusion")
    parser.add_argument("input", nargs="?", help="measurement file (L/R records); simulated if omitted")
    parser.add_argument("-o", "--output", help="write [px py vx vy (+ ground truth)] per step")
    parser.add_argument("--std-a", type=float, default=UKFConfig.std_a)
    parser.add_argument("--std-yawdd", type=float, default=UKFConfig.std_yawdd)
    parser.add_argument("--no-position", action="store_true", help="prediction only for position readings")
    parser.add_argument("--no-range-bearing", action="store_true", help="prediction only for range/bearing readings")
    parser.add_argument("--plot", action="store_true")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.input:
        records = read_measurement_file(args.input)
    else:
        records = ScenarioGenerator(generate_scenario(DEFAULT_SCENARIO)).generate_records()

    metrics = MetricsRegistry(window_size=500)
    monitor = ConsistencyMonitor(ConsistencyConfig())
    ukf = UnscentedKalmanFilterCTRV(
        UKFConfig(
            std_a=args.std_a,
            std_yawdd=args.std_yawdd,
            use_position=not args.no_position,
            use_range_bearing=not args.no_range_bearing,
        ),
        metrics=metrics,
    )

    result = run_fusion(records, ukf, metrics=metrics, monitor=monitor)

    snap = metrics.snapshot()
    lat = snap["windows"].get(UPDATE_LATENCY, {})
    print(
        f"processed={snap['counters'].get(MEASUREMENTS_PROCESSED, 0)} "
        f"ignored={snap['counters'].get(MEASUREMENTS_IGNORED, 0)} "
        f"lat_mean={1e6 * lat.get('mean', 0.0):.1f}us lat_p95={1e6 * lat.get('p95', 0.0):.1f}us"
    )
    for key in (NIS_POSITION, NIS_RANGE_BEARING):
        nis = snap["windows"].get(key)
        if nis:
            print(f"{key}: mean={nis['mean']:.2f} p95={nis['p95']:.2f} max={nis['max']:.2f}")

    n_bad = sum(1 for s in result.consistency if s == INCONSISTENT)
    print(f"inconsistent steps: {n_bad}/{len(result.consistency)}")

    if result.ground_truth is not None:
        px, py, vx, vy = result.rmse
        print(f"RMSE px={px:.4f} py={py:.4f} vx={vx:.4f} vy={vy:.4f}")

    if args.output:
        with open(args.output, "w", encoding="utf-8") as fh:
            write_estimates(fh, result.estimates, result.ground_truth)

    if args.plot:
        plot_trajectory(result, measurements=[r.measurement for r in records])
        plot_nis(result, thresholds=monitor.thresholds)
        plt.show()

    return result


if __name__ == "__main__":
    main()
