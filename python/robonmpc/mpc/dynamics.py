"""
System Dynamics Models
======================

Continuous-time models ``dx/dt = f(x, u)`` used by the NMPC controller.

Supported models:
- Linear Time-Invariant: dx/dt = A x + B u
- Two-link planar manipulator driven by torque rates

Every model exposes ``evaluate(x, u)`` and can be passed directly to
:func:`robonmpc.integrators.advance`. ``expression(x, u)`` builds the same
derivative from CasADi symbols for exact NLP derivatives.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Tuple

import casadi as ca
import numpy as np

from ..exceptions import DimensionMismatchError, InvalidArgumentError
from ..integrators import advance
from ..utils.validation import as_vector, check_step


@dataclass
class LinearDynamics:
    """
    Continuous Linear Time-Invariant system.

    Dynamics: dx/dt = A @ x + B @ u

    Args:
        A: State matrix (n_x, n_x)
        B: Input matrix (n_x, n_u)

    Example:
        >>> # Double integrator (position, velocity)
        >>> sys = LinearDynamics(np.array([[0, 1], [0, 0]]), np.array([[0], [1]]))
        >>> x_next = advance(np.array([0, 1]), np.array([0.5]), sys, 0.1)
    """
    A: np.ndarray
    B: np.ndarray

    def __post_init__(self):
        """Validate dimensions."""
        self.A = np.asarray(self.A, dtype=np.float64)
        self.B = np.asarray(self.B, dtype=np.float64)

        if self.A.ndim != 2:
            raise DimensionMismatchError(f"A must be 2D, got shape {self.A.shape}")
        if self.B.ndim != 2:
            raise DimensionMismatchError(f"B must be 2D, got shape {self.B.shape}")

        n_x = self.A.shape[0]
        if self.A.shape != (n_x, n_x):
            raise DimensionMismatchError(f"A must be square, got shape {self.A.shape}")
        if self.B.shape[0] != n_x:
            raise DimensionMismatchError(
                f"B rows ({self.B.shape[0]}) must match A ({n_x})"
            )

    @property
    def n_states(self) -> int:
        """Number of states."""
        return self.A.shape[0]

    @property
    def n_inputs(self) -> int:
        """Number of inputs."""
        return self.B.shape[1]

    def evaluate(self, x: np.ndarray, u: np.ndarray) -> np.ndarray:
        """State derivative A x + B u."""
        return self.A @ x + self.B @ u

    __call__ = evaluate

    def expression(self, x: ca.SX, u: ca.SX) -> ca.SX:
        """State derivative on CasADi symbols."""
        return ca.mtimes(ca.DM(self.A), x) + ca.mtimes(ca.DM(self.B), u)

    def discretize(self, dt: float) -> Tuple[np.ndarray, np.ndarray]:
        """
        Exact zero-order-hold discretization.

        Returns:
            (Ad, Bd) with x_{k+1} = Ad @ x_k + Bd @ u_k
        """
        from scipy.linalg import expm

        n = self.n_states
        m = self.n_inputs

        # Build augmented matrix [A, B; 0, 0]
        M = np.zeros((n + m, n + m))
        M[:n, :n] = self.A * dt
        M[:n, n:] = self.B * dt

        eM = expm(M)
        return eM[:n, :n], eM[:n, n:]

    def exact_step(self, x: np.ndarray, u: np.ndarray, dt: float) -> np.ndarray:
        """State after ``dt`` under constant ``u`` (matrix exponential)."""
        Ad, Bd = self.discretize(dt)
        return Ad @ np.asarray(x, dtype=np.float64) + Bd @ np.asarray(u, dtype=np.float64)


def harmonic_oscillator(omega: float = 1.0) -> LinearDynamics:
    """
    Undamped oscillator x0'' = -omega^2 x0 with a single unused input.

    States: [position, velocity]
    """
    A = np.array([
        [0.0, 1.0],
        [-omega**2, 0.0],
    ])
    B = np.zeros((2, 1))
    return LinearDynamics(A, B)


@dataclass
class TwoLinkArm:
    """
    Planar two-joint manipulator with torque-rate inputs.

    States: [theta1, dtheta1, theta2, dtheta2, tau1, tau2]
    Inputs: [dtau1, dtau2]

    Joint dynamics:

        M(q) q'' + C(q, q') q' + D q' = tau
        tau' = u

    with

        M = [[a1 + 2 a3 cos(theta2), a2 + a3 cos(theta2)],
             [a2 + a3 cos(theta2),   a2                 ]]
        C = a3 sin(theta2) [[-dtheta2, -(dtheta1 + dtheta2)],
                            [ dtheta1,  0                 ]]

    Args:
        a1, a2, a3: Lumped inertial parameters (kg m^2)
        d1, d2: Viscous joint friction (N m s/rad)
        dt: Sampling time used by :meth:`step`
        n_substeps: RK4 sub-steps per :meth:`step`
    """
    a1: float = 3.34
    a2: float = 0.97
    a3: float = 1.04
    d1: float = 0.5
    d2: float = 0.5
    dt: float = 0.1
    n_substeps: int = 1

    n_states = 6
    n_inputs = 2

    def __post_init__(self):
        """Validate parameters."""
        for name in ("a1", "a2", "a3"):
            if getattr(self, name) <= 0:
                raise InvalidArgumentError(f"{name} must be positive")
        for name in ("d1", "d2"):
            if getattr(self, name) < 0:
                raise InvalidArgumentError(f"{name} must be non-negative")
        # M(q) must stay positive definite for every elbow angle
        if self.a1 * self.a2 - self.a2**2 - self.a3**2 <= 0:
            raise InvalidArgumentError(
                "inertial parameters give a singular mass matrix"
            )
        check_step(self.dt, self.n_substeps)

    def mass_matrix(self, theta2: float) -> np.ndarray:
        """Joint-space inertia matrix M(q) (2, 2)."""
        c2 = np.cos(theta2)
        return np.array([
            [self.a1 + 2 * self.a3 * c2, self.a2 + self.a3 * c2],
            [self.a2 + self.a3 * c2, self.a2],
        ])

    def coriolis(self, theta2: float, dtheta1: float, dtheta2: float) -> np.ndarray:
        """Coriolis/centrifugal matrix C(q, q') (2, 2)."""
        h = self.a3 * np.sin(theta2)
        return h * np.array([
            [-dtheta2, -(dtheta1 + dtheta2)],
            [dtheta1, 0.0],
        ])

    def evaluate(self, x: np.ndarray, u: np.ndarray) -> np.ndarray:
        """
        State derivative.

        Args:
            x: State (6,)
            u: Torque rates (2,)

        Returns:
            dx/dt (6,)
        """
        x = np.asarray(x, dtype=np.float64)
        u = np.asarray(u, dtype=np.float64)
        if x.shape != (self.n_states,):
            raise DimensionMismatchError(f"x must have shape (6,), got {x.shape}")
        if u.shape != (self.n_inputs,):
            raise DimensionMismatchError(f"u must have shape (2,), got {u.shape}")

        theta1, dtheta1, theta2, dtheta2, tau1, tau2 = x
        dq = np.array([dtheta1, dtheta2])
        tau = np.array([tau1, tau2])

        rhs = (
            tau
            - self.coriolis(theta2, dtheta1, dtheta2) @ dq
            - np.array([self.d1, self.d2]) * dq
        )
        ddq = np.linalg.solve(self.mass_matrix(theta2), rhs)

        return np.array([dtheta1, ddq[0], dtheta2, ddq[1], u[0], u[1]])

    __call__ = evaluate

    def expression(self, x: ca.SX, u: ca.SX) -> ca.SX:
        """
        State derivative on CasADi symbols.

        Uses the closed-form inverse of the 2x2 mass matrix so the result
        can be differentiated by CasADi.
        """
        theta1, dtheta1, theta2, dtheta2, tau1, tau2 = ca.vertsplit(x)
        c2 = ca.cos(theta2)
        h = self.a3 * ca.sin(theta2)

        m11 = self.a1 + 2 * self.a3 * c2
        m12 = self.a2 + self.a3 * c2
        m22 = self.a2

        r1 = tau1 - h * (-dtheta2 * dtheta1 - (dtheta1 + dtheta2) * dtheta2) - self.d1 * dtheta1
        r2 = tau2 - h * dtheta1**2 - self.d2 * dtheta2
        det = m11 * m22 - m12**2

        ddq1 = (m22 * r1 - m12 * r2) / det
        ddq2 = (m11 * r2 - m12 * r1) / det
        return ca.vertcat(dtheta1, ddq1, dtheta2, ddq2, u[0], u[1])

    def discretize(
        self,
        dt: float,
        n_substeps: int = 1,
    ) -> Callable[[np.ndarray, np.ndarray], np.ndarray]:
        """
        Discrete map x_{k+1} = F(x_k, u_k) by RK4 with ``n_substeps``.
        """
        dt, n_substeps = check_step(dt, n_substeps)

        def step(x, u):
            return advance(x, u, self, dt, n_substeps)

        return step

    def step(self, x: np.ndarray, u: np.ndarray) -> np.ndarray:
        """Advance one sampling period ``dt``."""
        return advance(x, u, self, self.dt, self.n_substeps)

    def simulate(
        self,
        x0: np.ndarray,
        u_sequence: np.ndarray,
    ) -> np.ndarray:
        """
        Simulate the discretized arm over a sequence of inputs.

        Args:
            x0: Initial state (6,)
            u_sequence: Control sequence (N, 2)

        Returns:
            State trajectory (N+1, 6) including initial state
        """
        x0 = as_vector(x0, "x0", self.n_states)
        u_sequence = np.asarray(u_sequence, dtype=np.float64)

        N = len(u_sequence)
        trajectory = np.zeros((N + 1, self.n_states))
        trajectory[0] = x0

        for k in range(N):
            trajectory[k + 1] = self.step(trajectory[k], u_sequence[k])

        return trajectory

    def kinetic_energy(self, x: np.ndarray) -> float:
        """Kinetic energy 0.5 q'^T M(q) q'."""
        dq = np.array([x[1], x[3]])
        return float(0.5 * dq @ self.mass_matrix(x[2]) @ dq)
