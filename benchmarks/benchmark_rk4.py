#!/usr/bin/env python3
"""
robonmpc RK4 Benchmark: fixed-step RK4 vs adaptive RK45
"""

import sys
sys.path.insert(0, '../python')

import time
import numpy as np

import robonmpc
from robonmpc import advance, simulate_ode
from robonmpc.mpc import TwoLinkArm, harmonic_oscillator

print(f"robonmpc version: {robonmpc.__version__}")
print()


def time_call(fn, repeats=20):
    """Best wall clock time of ``repeats`` calls."""
    best = np.inf
    for _ in range(repeats):
        start = time.perf_counter()
        fn()
        best = min(best, time.perf_counter() - start)
    return best


def benchmark_accuracy():
    """Error of one oscillator period against the exact solution."""
    print("=" * 70)
    print("RK4 Accuracy (harmonic oscillator, one period)")
    print("=" * 70)

    osc = harmonic_oscillator(1.0)
    x0 = np.array([0.0, 1.0])
    u = np.zeros(1)
    T = 2 * np.pi

    print(f"{'n':>8} {'h':>10} {'error':>12} {'ratio':>8}")
    print("-" * 70)

    prev = None
    for n in (8, 16, 32, 64, 128):
        err = np.linalg.norm(advance(x0, u, osc, T, n) - x0)
        ratio = prev / err if prev else float('nan')
        print(f"{n:>8} {T/n:>10.4f} {err:>12.3e} {ratio:>8.1f}")
        prev = err


def benchmark_arm():
    """Cost of one sampling period of the two-link arm."""
    print("\n" + "=" * 70)
    print("Two-Link Arm Step (dt = 0.1 s)")
    print("=" * 70)

    arm = TwoLinkArm()
    x0 = np.array([-0.4, 0.0, 0.4, 0.0, 5.0, -5.0])
    u = np.array([50.0, -20.0])
    dt = 0.1

    reference = simulate_ode(arm, x0, u, np.linspace(0.0, dt, 2), rtol=1e-10, atol=1e-12)[-1]

    for n in (1, 2, 4, 8):
        elapsed = time_call(lambda: advance(x0, u, arm, dt, n))
        err = np.linalg.norm(advance(x0, u, arm, dt, n) - reference)
        print(f"  RK4 n={n}:   {elapsed*1e6:8.1f} us, error={err:.3e}")

    elapsed = time_call(lambda: simulate_ode(arm, x0, u, np.linspace(0.0, dt, 10)))
    print(f"  RK45 (10 samples): {elapsed*1e6:8.1f} us")


if __name__ == "__main__":
    benchmark_accuracy()
    benchmark_arm()
