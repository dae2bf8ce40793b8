"""
Integrators
===========

Fixed-step explicit Runge-Kutta integration of continuous-time dynamics
``dx/dt = f(x, u)`` with the input held constant over the step.

- :func:`rk4_step` advances one classical RK4 step.
- :func:`advance` splits a step into equal sub-steps and chains RK4
  updates. This is the map used to build the discrete dynamics
  constraints of the NMPC problem.
- :func:`simulate_ode` rolls the plant forward with SciPy's adaptive
  RK45 for closed-loop simulation.

Dynamics may be given as a plain callable ``f(x, u)`` or as any object
with an ``evaluate(x, u)`` method.
"""

from __future__ import annotations

from typing import Callable, Protocol, Union, runtime_checkable

import numpy as np
from scipy.integrate import solve_ivp

from .exceptions import DimensionMismatchError, IntegrationError, InvalidArgumentError
from .utils.validation import as_vector, check_step


@runtime_checkable
class Dynamics(Protocol):
    """Continuous-time model exposing ``evaluate(x, u) -> dx/dt``."""

    def evaluate(self, x: np.ndarray, u: np.ndarray) -> np.ndarray:
        ...


DynamicsFn = Union[Callable[[np.ndarray, np.ndarray], np.ndarray], Dynamics]


def resolve_dynamics(f: DynamicsFn) -> Callable[[np.ndarray, np.ndarray], np.ndarray]:
    """Return a plain ``f(x, u)`` callable for ``f``."""
    if isinstance(f, Dynamics):
        return f.evaluate
    if callable(f):
        return f
    raise InvalidArgumentError(
        f"dynamics must be callable or define evaluate(x, u), got {type(f).__name__}"
    )


def _derivative(f, x: np.ndarray, u: np.ndarray) -> np.ndarray:
    dx = np.asarray(f(x, u), dtype=np.float64)
    if dx.shape != x.shape:
        raise DimensionMismatchError(
            f"dynamics returned shape {dx.shape} for state of shape {x.shape}"
        )
    return dx


def rk4_step(x: np.ndarray, u: np.ndarray, f: DynamicsFn, dt: float) -> np.ndarray:
    """
    One classical RK4 step of size ``dt``.

    Arguments follow the order of :func:`advance`.

    Args:
        x: State (n_x,)
        u: Input (n_u,), held constant over the step
        f: Dynamics ``f(x, u)``
        dt: Step size

    Returns:
        State after ``dt`` (n_x,)
    """
    fn = resolve_dynamics(f)
    x = as_vector(x, "x")
    u = as_vector(u, "u")
    dt, _ = check_step(dt, 1)
    return _rk4(fn, x, u, dt)


def _rk4(fn, x: np.ndarray, u: np.ndarray, dt: float) -> np.ndarray:
    k1 = _derivative(fn, x, u)
    k2 = _derivative(fn, x + 0.5 * dt * k1, u)
    k3 = _derivative(fn, x + 0.5 * dt * k2, u)
    k4 = _derivative(fn, x + dt * k3, u)
    return x + (dt / 6.0) * (k1 + 2 * k2 + 2 * k3 + k4)


def advance(
    x0: np.ndarray,
    u: np.ndarray,
    f: DynamicsFn,
    h: float,
    n: int = 1,
) -> np.ndarray:
    """
    Advance ``x0`` by ``h`` using ``n`` equal RK4 sub-steps.

    The input ``u`` is held fixed across all sub-steps. Neither ``x0`` nor
    ``u`` is modified; a new array is returned.

    Args:
        x0: Current state (n_x,)
        u: Control input (n_u,)
        f: Dynamics ``f(x, u) -> dx/dt`` or object with ``evaluate``
        h: Total step size (> 0)
        n: Number of sub-steps (>= 1)

    Returns:
        State after ``h`` (n_x,)

    Raises:
        InvalidArgumentError: ``h <= 0``, ``n < 1``, or NaN in ``x0`` or ``u``
        DimensionMismatchError: ``f`` returns a vector of the wrong length

    Example:
        >>> f = lambda x, u: np.array([x[1], -x[0]])
        >>> advance(np.array([0.0, 1.0]), np.zeros(1), f, 0.1)
        array([0.09983333, 0.99500417])
    """
    h, n = check_step(h, n)
    fn = resolve_dynamics(f)
    x = as_vector(x0, "x0")
    u = as_vector(u, "u")

    delta = h / n
    for _ in range(n):
        x = _rk4(fn, x, u, delta)
    return x


def simulate_ode(
    f: DynamicsFn,
    x0: np.ndarray,
    u: np.ndarray,
    t_eval: np.ndarray,
    rtol: float = 1e-6,
    atol: float = 1e-8,
) -> np.ndarray:
    """
    Integrate ``dx/dt = f(x, u)`` with adaptive RK45 and a constant input.

    Args:
        f: Dynamics
        x0: Initial state at ``t_eval[0]``
        u: Constant input
        t_eval: Increasing output times; the span is ``[t_eval[0], t_eval[-1]]``

    Returns:
        States at ``t_eval`` (len(t_eval), n_x)
    """
    fn = resolve_dynamics(f)
    x0 = as_vector(x0, "x0")
    u = as_vector(u, "u")
    t_eval = np.asarray(t_eval, dtype=np.float64)

    if t_eval.ndim != 1 or len(t_eval) < 2:
        raise InvalidArgumentError("t_eval needs at least two time points")
    if np.any(np.diff(t_eval) <= 0):
        raise InvalidArgumentError("t_eval must be strictly increasing")

    sol = solve_ivp(
        lambda t, x: _derivative(fn, x, u),
        (t_eval[0], t_eval[-1]),
        x0,
        method="RK45",
        t_eval=t_eval,
        rtol=rtol,
        atol=atol,
    )
    if not sol.success:
        raise IntegrationError(sol.message)

    return sol.y.T
