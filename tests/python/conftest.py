"""
pytest configuration and fixtures for robonmpc tests.
"""

import pytest
import numpy as np


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def oscillator():
    """
    Harmonic oscillator f(x, u) = [x1, -x0].

    From x0 = [0, 1] the exact solution is [sin t, cos t].
    """
    def f(x, u):
        return np.array([x[1], -x[0]])

    return f


@pytest.fixture
def damped_linear():
    """
    Forced damped oscillator dx/dt = A x + B u with closed-form solution.
    """
    from robonmpc.mpc import LinearDynamics

    A = np.array([
        [0.0, 1.0],
        [-2.0, -0.3],
    ])
    B = np.array([[0.0], [1.0]])
    return LinearDynamics(A, B)


@pytest.fixture
def double_integrator():
    """Continuous double integrator (position, velocity)."""
    from robonmpc.mpc import LinearDynamics

    return LinearDynamics(np.array([[0.0, 1.0], [0.0, 0.0]]), np.array([[0.0], [1.0]]))


@pytest.fixture
def arm():
    """Two-link arm with default parameters."""
    from robonmpc.mpc import TwoLinkArm

    return TwoLinkArm()


@pytest.fixture
def scalar_nlp():
    """
    Two-stage scalar NLP with closed-form solution.

    stage z = [u, x], x_{k+1} = x_k + 0.1 u_k, cost u^2 + x^2, x_0 = 1

    minimize: u0^2 + 1 + u1^2 + (1 + 0.1 u0)^2
    Optimal: u0 = -0.2 / 2.02, u1 = 0
    """
    from robonmpc import NLPModel

    model = NLPModel(
        N=2,
        nvar=2,
        neq=1,
        objective=lambda z, p: z[0] ** 2 + z[1] ** 2,
        eq=lambda z: z[1] + 0.1 * z[0],
        lb=np.array([-10.0, -10.0]),
        ub=np.array([10.0, 10.0]),
        xinitidx=[1],
    )
    return {
        "model": model,
        "xinit": np.array([1.0]),
        "expected_u0": -0.2 / 2.02,
    }


# ============================================================================
# Markers
# ============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow")
    config.addinivalue_line("markers", "integration: marks integration tests")
