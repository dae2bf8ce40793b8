"""
Two-link arm tracking scenario.

The arm starts at ``theta = (-0.4, 0.4)`` rad, is driven to
``(1.2, -1.2)`` rad for the first half of the run and to ``(-1.2, 1.2)``
rad for the second half.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Optional

import numpy as np

from ..exceptions import InvalidArgumentError
from ..solver import SolverOptions
from .constraints import robot_stage_bounds
from .controller import (
    ROBOT_Q,
    ROBOT_R,
    ClosedLoopResult,
    NonlinearMPC,
    robot_tracking_cost,
)
from .dynamics import TwoLinkArm
from .trajectory import alternating_reference


@dataclass
class RobotScenario:
    """
    Configuration of the closed-loop two-link arm run.

    Args:
        horizon: Stages per NMPC problem
        Tf: Prediction horizon in seconds
        Tsim: Simulated time in seconds
        xinit: Initial state
        n_substeps: RK4 sub-steps per stage
        ode_intermediate_steps: Rollout samples per sampling period
        timing_iter: Solves per step used for timing
        maxit: Solver iteration limit
        tolerance: Solver convergence tolerance
    """
    horizon: int = 21
    Tf: float = 2.0
    Tsim: float = 20.0
    xinit: np.ndarray = field(
        default_factory=lambda: np.array([-0.4, 0.0, 0.4, 0.0, 0.0, 0.0])
    )
    n_substeps: int = 1
    ode_intermediate_steps: int = 10
    timing_iter: int = 1
    maxit: int = 200
    tolerance: float = 1e-4
    arm: TwoLinkArm = field(default_factory=TwoLinkArm)

    def __post_init__(self):
        if self.horizon < 2:
            raise InvalidArgumentError(f"horizon must be >= 2, got {self.horizon}")
        if self.Tsim < self.dt:
            raise InvalidArgumentError("Tsim must cover at least one sampling period")

    @property
    def dt(self) -> float:
        """Sampling time Tf / (N - 1)."""
        return self.Tf / (self.horizon - 1)

    @property
    def n_steps(self) -> int:
        """Closed-loop steps in Tsim."""
        return int(round(self.Tsim / self.dt))

    def build_controller(self, **kwargs) -> NonlinearMPC:
        """NMPC controller for this scenario."""
        options = kwargs.pop("options", None) or SolverOptions(
            maxit=self.maxit, tolerance=self.tolerance
        )
        return NonlinearMPC(
            self.arm,
            robot_tracking_cost,
            horizon=self.horizon,
            Tf=self.Tf,
            bounds=robot_stage_bounds(),
            n_substeps=self.n_substeps,
            n_params=1,
            options=options,
            **kwargs,
        )

    def run(self, n_steps: Optional[int] = None, verbose: bool = False) -> ClosedLoopResult:
        """Run the closed loop for ``n_steps`` (default: whole Tsim)."""
        n_steps = self.n_steps if n_steps is None else n_steps
        mpc = self.build_controller()
        reference = alternating_reference(self.n_steps)
        return mpc.simulate(
            self.xinit,
            reference,
            n_steps=n_steps,
            ode_intermediate_steps=self.ode_intermediate_steps,
            timing_iter=self.timing_iter,
            Q=ROBOT_Q,
            R=ROBOT_R,
            verbose=verbose,
        )


def run_robot_scenario(
    n_steps: Optional[int] = None,
    verbose: bool = False,
    **overrides,
) -> ClosedLoopResult:
    """
    Run :class:`RobotScenario` with field overrides.

    Example:
        >>> result = run_robot_scenario(Tsim=4.0)
        >>> print(result.summary())
    """
    scenario = replace(RobotScenario(), **overrides)
    return scenario.run(n_steps=n_steps, verbose=verbose)
