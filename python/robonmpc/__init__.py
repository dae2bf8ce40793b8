"""
robonmpc: Nonlinear MPC for Robotic Manipulators
================================================

robonmpc discretizes continuous-time dynamics with a fixed-step RK4
integrator and solves the resulting multi-stage nonlinear programs in a
receding-horizon loop.

Quick Start
-----------
>>> import numpy as np
>>> import robonmpc
>>> f = lambda x, u: np.array([x[1], -x[0]])
>>> robonmpc.advance(np.array([0.0, 1.0]), np.zeros(1), f, h=0.1, n=2)
array([0.09983341, 0.99500417])

Closed-loop control of a two-link arm:

>>> from robonmpc.mpc import run_robot_scenario
>>> log = run_robot_scenario(Tsim=2.0)
>>> print(log.summary())
"""

import logging

__version__ = "0.1.0"
__author__ = "robonmpc Contributors"

logging.getLogger(__name__).addHandler(logging.NullHandler())

# Import public API
from .integrators import advance, rk4_step, simulate_ode, Dynamics
from .symbolic import advance_expression, discrete_map
from .model import NLPModel, NLPProblem
from .solver import solve_nlp, SolverOptions
from .result import NLPSolution, Status
from .exceptions import (
    RobonmpcError,
    InvalidArgumentError,
    DimensionMismatchError,
    SolverError,
    IntegrationError,
)

__all__ = [
    # Version
    "__version__",

    # Integration
    "advance",
    "rk4_step",
    "simulate_ode",
    "Dynamics",
    "advance_expression",
    "discrete_map",

    # NLP
    "NLPModel",
    "NLPProblem",
    "solve_nlp",
    "SolverOptions",

    # Results
    "NLPSolution",
    "Status",

    # Exceptions
    "RobonmpcError",
    "InvalidArgumentError",
    "DimensionMismatchError",
    "SolverError",
    "IntegrationError",
]


def info() -> str:
    """Return information about the robonmpc installation."""
    import platform

    import casadi
    import numpy
    import scipy

    lines = [
        f"robonmpc version: {__version__}",
        f"Python version: {platform.python_version()}",
        f"Platform: {platform.platform()}",
        f"NumPy version: {numpy.__version__}",
        f"SciPy version: {scipy.__version__}",
        f"CasADi version: {casadi.__version__}",
    ]
    return "\n".join(lines)
