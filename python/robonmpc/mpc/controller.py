"""
MPC Controllers
===============

Nonlinear Model Predictive Control with RK4 multiple shooting.

Classes:
- NonlinearMPC: receding-horizon NMPC over a continuous-time model
- MPCResult: solution of one NMPC solve
- ClosedLoopResult: logged closed-loop simulation
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

from ..exceptions import InvalidArgumentError, SolverError
from ..integrators import DynamicsFn, advance, simulate_ode
from ..model import NLPModel, NLPProblem
from ..result import NLPSolution, Status
from ..solver import SolverOptions, solve_nlp
from ..symbolic import advance_expression
from ..utils.validation import as_vector, check_step
from .constraints import BoxConstraints, StageLayout
from .trajectory import Trajectory

logger = logging.getLogger(__name__)

# Closed-loop performance weights of the two-link arm
ROBOT_Q = np.diag([1000, 0.1, 1000, 0.1, 0.01, 0.01])
ROBOT_R = np.diag([0.01, 0.01])


def robot_tracking_cost(z: np.ndarray, p: np.ndarray) -> float:
    """
    Stage cost of the two-link arm.

    Tracks ``theta1 -> 1.2 p`` and ``theta2 -> -1.2 p`` while penalizing
    joint velocities, torques and torque rates.

    Args:
        z: Stage vector [dtau1, dtau2, theta1, dtheta1, theta2, dtheta2, tau1, tau2]
        p: Reference parameter (1,)
    """
    return (
        1000 * (z[2] - p[0] * 1.2) ** 2 + 0.1 * z[3] ** 2
        + 1000 * (z[4] + p[0] * 1.2) ** 2 + 0.1 * z[5] ** 2
        + 0.01 * z[6] ** 2 + 0.01 * z[7] ** 2
        + 0.01 * z[0] ** 2 + 0.01 * z[1] ** 2
    )


def closed_loop_cost(
    x_samples: np.ndarray,
    u: np.ndarray,
    Q: np.ndarray,
    R: np.ndarray,
    step: float,
) -> float:
    """
    Rectangle-rule cost of one sampling period.

    sum_j step * (x_j' Q x_j + u' R u)

    Args:
        x_samples: States sampled over the period (M, n_x)
        u: Input held over the period (n_u,)
        Q: State weight (n_x, n_x)
        R: Input weight (n_u, n_u)
        step: Weight of each sample
    """
    x_samples = np.atleast_2d(x_samples)
    u = np.asarray(u, dtype=np.float64)
    state_terms = np.einsum('ij,jk,ik->i', x_samples, Q, x_samples)
    return float(step * np.sum(state_terms + u @ R @ u))


@dataclass
class MPCResult:
    """
    NMPC solution result.

    Attributes:
        x: Predicted state trajectory (N, n_x), x[0] is the measured state
        u: Optimal control sequence (N, n_u)
        cost: Optimal cost value
        status: Solver status
        solve_time: Computation time (seconds)
        fevals_time: Time spent evaluating model functions (seconds)
        iterations: Solver iterations
    """
    x: np.ndarray
    u: np.ndarray
    cost: float
    status: Status
    solve_time: float
    fevals_time: float
    iterations: int
    solution: Optional[NLPSolution] = None

    @property
    def optimal_control(self) -> np.ndarray:
        """First control action to apply (n_u,)."""
        return self.u[0]

    @property
    def predicted_trajectory(self) -> np.ndarray:
        """Predicted state trajectory (N, n_x)."""
        return self.x

    @property
    def is_optimal(self) -> bool:
        """Whether solution is optimal."""
        return self.status == Status.OPTIMAL

    def __repr__(self) -> str:
        return (
            f"MPCResult(\n"
            f"  status={self.status},\n"
            f"  cost={self.cost:.4f},\n"
            f"  solve_time={self.solve_time*1000:.2f}ms,\n"
            f"  horizon={len(self.u)}\n"
            f")"
        )


@dataclass
class ClosedLoopResult:
    """
    Closed-loop simulation log.

    Attributes:
        x: States (n_steps+1, n_x)
        u: Applied inputs (n_steps, n_u)
        iterations: Solver iterations per step (n_steps,)
        solve_time: Best solve time per step (n_steps,)
        fevals_time: Best function-evaluation time per step (n_steps,)
        cost: Integrated closed-loop cost per step (n_steps,)
        parameters: Reference parameter used per step (n_steps, n_p)
        dt: Sampling time
    """
    x: np.ndarray
    u: np.ndarray
    iterations: np.ndarray
    solve_time: np.ndarray
    fevals_time: np.ndarray
    cost: np.ndarray
    parameters: np.ndarray
    dt: float

    @property
    def n_steps(self) -> int:
        return len(self.u)

    @property
    def time(self) -> np.ndarray:
        """Sample times of the applied inputs (n_steps,)."""
        return np.arange(self.n_steps) * self.dt

    @property
    def total_cost(self) -> float:
        return float(np.sum(self.cost))

    def summary(self) -> str:
        """Return a formatted summary of the run."""
        lines = [
            "=" * 50,
            "robonmpc Closed-Loop Summary",
            "=" * 50,
            f"Steps:            {self.n_steps}",
            f"Sampling time:    {self.dt:.4f} s",
            f"Total cost:       {self.total_cost:.6g}",
            f"Iterations:       mean {np.mean(self.iterations):.1f}, "
            f"max {np.max(self.iterations)}",
            f"Solve time:       mean {np.mean(self.solve_time)*1000:.2f} ms, "
            f"max {np.max(self.solve_time)*1000:.2f} ms",
            f"Fevals time:      mean {np.mean(self.fevals_time)*1000:.2f} ms",
            "=" * 50,
        ]
        return "\n".join(lines)


class NonlinearMPC:
    """
    Nonlinear Model Predictive Controller.

    Solves at each time step:

        minimize    sum_{k=0}^{N-1} l(z_k, p_k)
        subject to  x_{k+1} = RK4(x_k, u_k, f, dt, n)
                    lb <= z_k <= ub
                    x_0 = x_current

    with stage vectors ``z_k = [u_k, x_k]`` and ``dt = Tf / (N - 1)``.

    Args:
        dynamics: Continuous model ``f(x, u)``; must expose ``n_states``
            and ``n_inputs`` unless both are given explicitly
        objective: Stage cost ``l(z, p)``
        horizon: Number of stages N
        Tf: Prediction horizon length in seconds
        bounds: Stage bounds (nvar,)
        n_substeps: RK4 sub-steps per stage
        n_params: Runtime parameters per stage
        options: NLP solver settings
        warm_start: Start each solve from the shifted previous solution
        accept_max_iterations: Use iterates of solves that hit ``maxit``

    Example:
        >>> arm = TwoLinkArm()
        >>> mpc = NonlinearMPC(arm, robot_tracking_cost, horizon=21, Tf=2.0,
        ...                    bounds=robot_stage_bounds())
        >>> result = mpc.solve(np.array([-0.4, 0, 0.4, 0, 0, 0]), parameter=1.0)
        >>> u_apply = result.optimal_control
    """

    def __init__(
        self,
        dynamics: DynamicsFn,
        objective: Callable[[np.ndarray, np.ndarray], float],
        horizon: int = 21,
        Tf: float = 2.0,
        bounds: Optional[BoxConstraints] = None,
        n_substeps: int = 1,
        n_params: int = 1,
        options: Optional[SolverOptions] = None,
        warm_start: bool = True,
        accept_max_iterations: bool = False,
        n_states: Optional[int] = None,
        n_inputs: Optional[int] = None,
    ) -> None:
        if horizon < 2:
            raise InvalidArgumentError(f"horizon must be >= 2, got {horizon}")

        n_states = n_states if n_states is not None else getattr(dynamics, "n_states", None)
        n_inputs = n_inputs if n_inputs is not None else getattr(dynamics, "n_inputs", None)
        if n_states is None or n_inputs is None:
            raise InvalidArgumentError(
                "n_states and n_inputs are required for dynamics without them"
            )

        self.dynamics = dynamics
        self.objective = objective
        self.horizon = horizon
        self.Tf = float(Tf)
        self.dt, self.n_substeps = check_step(self.Tf / (horizon - 1), n_substeps)
        self.layout = StageLayout(n_inputs, n_states)
        self.n_x = n_states
        self.n_u = n_inputs
        self.n_params = n_params
        self.options = options or SolverOptions()
        self.warm_start = warm_start
        self.accept_max_iterations = accept_max_iterations

        if bounds is None:
            bounds = BoxConstraints.unbounded(self.layout.nvar)
        if bounds.dim != self.layout.nvar:
            raise InvalidArgumentError(
                f"bounds must cover {self.layout.nvar} stage variables, got {bounds.dim}"
            )
        self.bounds = bounds

        self.model = self._build_model()
        self._guess: Optional[np.ndarray] = None

    def _build_model(self) -> NLPModel:
        """Multiple-shooting NLP with RK4 equality constraints."""
        layout = self.layout
        f, dt, n = self.dynamics, self.dt, self.n_substeps

        if self.options.derivatives == "casadi":
            def eq(z):
                return advance_expression(z[layout.x_slice], z[layout.u_slice], f, dt, n)
        else:
            def eq(z):
                return advance(z[layout.x_slice], z[layout.u_slice], f, dt, n)

        return NLPModel(
            N=self.horizon,
            nvar=layout.nvar,
            neq=layout.n_states,
            objective=self.objective,
            eq=eq,
            lb=self.bounds.lb,
            ub=self.bounds.ub,
            xinitidx=layout.x_indices,
            npar=self.n_params,
        )

    def reset(self) -> None:
        """Forget the warm start."""
        self._guess = None

    def _initial_guess(self, x0: np.ndarray) -> np.ndarray:
        if self.warm_start and self._guess is not None:
            guess = self._guess.copy()
        else:
            guess = self.model.default_guess()
        guess[self.layout.x_slice] = self.bounds.project(
            self.layout.join(np.zeros(self.n_u), x0)
        )[self.layout.x_slice]
        return guess

    def _stage_parameters(self, parameter) -> np.ndarray:
        if self.n_params == 0:
            return np.zeros(0)
        p = np.atleast_1d(np.asarray(parameter, dtype=np.float64)).ravel()
        if p.size == self.n_params:
            return np.tile(p, self.horizon)
        return as_vector(p, "parameter", self.horizon * self.n_params)

    def solve(
        self,
        x0: np.ndarray,
        parameter=None,
        timing_iter: int = 1,
    ) -> MPCResult:
        """
        Solve the NMPC problem from the current state.

        Args:
            x0: Current state (n_x,)
            parameter: Stage parameter (n_p,), applied to every stage, or
                a stacked sequence (N * n_p,)
            timing_iter: Repeat the solve and keep the fastest timings

        Returns:
            MPCResult with predicted states and controls

        Raises:
            SolverError: the solver did not report success
        """
        x0 = as_vector(x0, "x0", self.n_x)
        if self.n_params and parameter is None:
            raise InvalidArgumentError("parameter is required")
        if timing_iter < 1:
            raise InvalidArgumentError(f"timing_iter must be >= 1, got {timing_iter}")

        problem = NLPProblem(
            xinit=x0,
            x0=self._initial_guess(x0),
            all_parameters=self._stage_parameters(parameter),
        )

        solve_time = np.inf
        fevals_time = np.inf
        for _ in range(timing_iter):
            solution = solve_nlp(self.model, problem, self.options)
            solve_time = min(solve_time, solution.solve_time)
            fevals_time = min(fevals_time, solution.fevals_time)

        self._check(solution)

        u_seq, x_traj = self.layout.split(solution.stages)
        if self.warm_start:
            self._guess = np.concatenate([solution.stages[1:], solution.stages[-1:]]).ravel()

        return MPCResult(
            x=x_traj.copy(),
            u=u_seq.copy(),
            cost=solution.objective,
            status=solution.status,
            solve_time=solve_time,
            fevals_time=fevals_time,
            iterations=solution.iterations,
            solution=solution,
        )

    def _check(self, solution: NLPSolution) -> None:
        if solution.exitflag == 1:
            return
        if self.accept_max_iterations and solution.status == Status.MAX_ITERATIONS:
            logger.warning(
                "NLP solver hit %d iterations, applying suboptimal iterate",
                solution.iterations,
            )
            return
        raise SolverError(
            f"Some problem in NLP solver: {solution.status} ({solution.message})",
            exitflag=solution.exitflag,
            solution=solution,
        )

    def simulate(
        self,
        x0: np.ndarray,
        reference: Trajectory,
        n_steps: Optional[int] = None,
        plant: Optional[DynamicsFn] = None,
        ode_intermediate_steps: int = 10,
        timing_iter: int = 1,
        Q: Optional[np.ndarray] = None,
        R: Optional[np.ndarray] = None,
        preview: bool = False,
        verbose: bool = False,
    ) -> ClosedLoopResult:
        """
        Simulate closed-loop NMPC control.

        At every step the controller is solved from the measured state, the
        first input is held for one sampling period while the plant is
        integrated with adaptive RK45, and the closed-loop cost of the
        period is accumulated.

        Args:
            x0: Initial state
            reference: Parameter sequence, one sample per step
            n_steps: Number of steps (default: reference length)
            plant: Model used for the rollout (default: controller model)
            ode_intermediate_steps: Samples per period for rollout and cost
            timing_iter: Solves per step used for timing
            Q: State weight of the closed-loop cost (default: identity)
            R: Input weight of the closed-loop cost (default: identity)
            preview: Give the controller the upcoming reference window
                instead of holding the current sample over the horizon
            verbose: Log progress at INFO level

        Returns:
            ClosedLoopResult
        """
        if n_steps is None:
            n_steps = reference.horizon
        if n_steps < 1:
            raise InvalidArgumentError(f"n_steps must be >= 1, got {n_steps}")
        if ode_intermediate_steps < 2:
            raise InvalidArgumentError("ode_intermediate_steps must be >= 2")

        plant = plant if plant is not None else self.dynamics
        Q = np.eye(self.n_x) if Q is None else np.asarray(Q, dtype=np.float64)
        R = np.eye(self.n_u) if R is None else np.asarray(R, dtype=np.float64)
        level = logging.INFO if verbose else logging.DEBUG

        x = np.zeros((n_steps + 1, self.n_x))
        u = np.zeros((n_steps, self.n_u))
        iterations = np.zeros(n_steps, dtype=int)
        solve_time = np.zeros(n_steps)
        fevals_time = np.zeros(n_steps)
        cost = np.zeros(n_steps)
        parameters = np.zeros((n_steps, reference.n_params))

        x[0] = as_vector(x0, "x0", self.n_x)
        grid = np.linspace(0.0, self.dt, ode_intermediate_steps)
        cost_step = self.dt / ode_intermediate_steps

        for i in range(n_steps):
            parameters[i] = reference.get(i)
            p = reference.stacked(i, self.horizon) if preview else parameters[i]

            result = self.solve(x[i], parameter=p, timing_iter=timing_iter)
            u[i] = result.optimal_control
            iterations[i] = result.iterations
            solve_time[i] = result.solve_time
            fevals_time[i] = result.fevals_time

            samples = simulate_ode(plant, x[i], u[i], grid)
            cost[i] = closed_loop_cost(samples, u[i], Q, R, cost_step)
            x[i + 1] = samples[-1]

            logger.log(level, "step %d/%d  p=%s  it=%d  cost=%.4g",
                       i + 1, n_steps, parameters[i], iterations[i], cost[i])

        return ClosedLoopResult(
            x=x,
            u=u,
            iterations=iterations,
            solve_time=solve_time,
            fevals_time=fevals_time,
            cost=cost,
            parameters=parameters,
            dt=self.dt,
        )
