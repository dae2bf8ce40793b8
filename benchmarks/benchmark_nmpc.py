#!/usr/bin/env python3
"""
robonmpc NMPC Benchmark: two-link arm closed loop
"""

import sys
sys.path.insert(0, '../python')

import argparse
import logging

import numpy as np

import robonmpc
from robonmpc.mpc import RobotScenario

print(f"robonmpc version: {robonmpc.__version__}")
print()


def benchmark_horizons(Tsim):
    """Solve time across prediction horizons with fixed dt = 0.1 s."""
    print("=" * 70)
    print("Horizon Scaling")
    print("=" * 70)

    rows = []
    for horizon in (6, 11, 21):
        scenario = RobotScenario(horizon=horizon, Tf=0.1 * (horizon - 1), Tsim=Tsim)
        print(f"\n  N={horizon}, {scenario.n_steps} steps")
        log = scenario.run()
        rows.append((horizon, log))

    print("\n" + "=" * 70)
    print("Summary")
    print("=" * 70)
    print(f"{'N':>6} {'solve (ms)':>12} {'fevals (ms)':>12} {'iters':>8} {'cost':>12}")
    print("-" * 70)

    for horizon, log in rows:
        print(f"{horizon:>6} {np.mean(log.solve_time)*1000:>12.1f} "
              f"{np.mean(log.fevals_time)*1000:>12.1f} "
              f"{np.mean(log.iterations):>8.1f} {log.total_cost:>12.4g}")


def benchmark_full(verbose):
    """The full 20 s tracking run."""
    print("\n" + "=" * 70)
    print("Two-Link Arm Tracking (Tsim = 20 s)")
    print("=" * 70)

    log = RobotScenario().run(verbose=verbose)
    print(log.summary())


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--full", action="store_true", help="run the 20 s scenario")
    parser.add_argument("--tsim", type=float, default=2.0, help="simulated time per horizon")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING,
                        format="%(asctime)s %(name)s %(levelname)s %(message)s")

    benchmark_horizons(args.tsim)
    if args.full:
        benchmark_full(args.verbose)
