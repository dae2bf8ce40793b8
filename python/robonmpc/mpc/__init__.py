"""
robonmpc Nonlinear Model Predictive Control (NMPC)
==================================================

Receding-horizon control of continuous-time nonlinear systems. The
dynamics are discretized with a fixed-step RK4 integrator into the
equality constraints of a multi-stage NLP that is solved at every
sampling instant.

Quick Start
-----------
>>> from robonmpc.mpc import NonlinearMPC, TwoLinkArm
>>> from robonmpc.mpc import robot_stage_bounds, robot_tracking_cost
>>>
>>> arm = TwoLinkArm()
>>> mpc = NonlinearMPC(
...     arm,
...     robot_tracking_cost,
...     horizon=21,
...     Tf=2.0,
...     bounds=robot_stage_bounds(),
... )
>>>
>>> x0 = np.array([-0.4, 0, 0.4, 0, 0, 0])
>>> result = mpc.solve(x0, parameter=1.0)
>>> u_apply = result.optimal_control

Closed Loop
-----------
>>> from robonmpc.mpc import alternating_reference, ROBOT_Q, ROBOT_R
>>>
>>> log = mpc.simulate(x0, alternating_reference(200), Q=ROBOT_Q, R=ROBOT_R)
>>> print(log.summary())

Classes
-------
NonlinearMPC
    NMPC with RK4 multiple shooting
TwoLinkArm
    Planar two-joint manipulator driven by torque rates
LinearDynamics
    Continuous linear time-invariant dynamics
MPCResult, ClosedLoopResult
    Single-solve and closed-loop results

Theory
------
At each timestep:

    minimize    sum_{k=0}^{N-1} l(z_k, p_k)
    subject to  x_{k+1} = RK4(x_k, u_k, f, dt)
                lb <= z_k <= ub
                x_0 = x_current

See Also
--------
- Rawlings & Mayne (2009): "Model Predictive Control: Theory and Design"
- Diehl, Bock & Schloeder (2005): "A real-time iteration scheme for
  nonlinear optimization in optimal feedback control"
"""

from .dynamics import LinearDynamics, TwoLinkArm, harmonic_oscillator
from .controller import (
    NonlinearMPC,
    MPCResult,
    ClosedLoopResult,
    closed_loop_cost,
    robot_tracking_cost,
    ROBOT_Q,
    ROBOT_R,
)
from .constraints import BoxConstraints, StageLayout, robot_stage_bounds
from .trajectory import (
    Trajectory,
    constant_reference,
    step_reference,
    alternating_reference,
)
from .scenarios import RobotScenario, run_robot_scenario

__all__ = [
    # Controllers
    "NonlinearMPC",
    "MPCResult",
    "ClosedLoopResult",
    "closed_loop_cost",
    "robot_tracking_cost",
    "ROBOT_Q",
    "ROBOT_R",
    # Dynamics
    "LinearDynamics",
    "TwoLinkArm",
    "harmonic_oscillator",
    # Constraints
    "BoxConstraints",
    "StageLayout",
    "robot_stage_bounds",
    # Trajectories
    "Trajectory",
    "constant_reference",
    "step_reference",
    "alternating_reference",
    # Scenarios
    "RobotScenario",
    "run_robot_scenario",
]
