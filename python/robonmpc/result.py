"""
robonmpc Result Classes
=======================

Data classes for NLP solver results and status.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict

import numpy as np


class Status(Enum):
    """
    Solver status codes.

    Attributes:
        OPTIMAL: KKT conditions satisfied within tolerance
        MAX_ITERATIONS: Iteration limit reached before convergence
        INFEASIBLE: Constraints could not be satisfied
        NUMERICAL_ERROR: Line search or linear algebra failure
        UNSOLVED: Problem not yet solved
    """
    OPTIMAL = "optimal"
    MAX_ITERATIONS = "max_iterations"
    INFEASIBLE = "infeasible"
    NUMERICAL_ERROR = "numerical_error"
    UNSOLVED = "unsolved"

    def __str__(self) -> str:
        return self.value

    @property
    def exitflag(self) -> int:
        """Integer exit flag (1 optimal, 0 iteration limit, negative on failure)."""
        return _EXITFLAGS[self]

    @property
    def has_solution(self) -> bool:
        """True if a (possibly suboptimal) iterate is available."""
        return self in (Status.OPTIMAL, Status.MAX_ITERATIONS)


_EXITFLAGS = {
    Status.OPTIMAL: 1,
    Status.MAX_ITERATIONS: 0,
    Status.INFEASIBLE: -6,
    Status.NUMERICAL_ERROR: -7,
    Status.UNSOLVED: -100,
}


@dataclass
class NLPSolution:
    """
    Result of solving a multi-stage NLP.

    Attributes:
        status: Solver status
        z: Stacked decision vector (N * nvar,)
        stages: Decision vector reshaped per stage (N, nvar)
        objective: Objective value at ``z``
        iterations: Number of major iterations
        solve_time: Wall clock time of the whole solve in seconds
        fevals_time: Time spent in objective/constraint evaluations
        max_eq_violation: Largest equality constraint residual

    Example:
        >>> sol = solve_nlp(model, problem)
        >>> if sol.exitflag == 1:
        ...     u0 = sol.x01[:2]
    """

    status: Status
    z: np.ndarray
    stages: np.ndarray
    objective: float
    iterations: int
    solve_time: float = 0.0
    fevals_time: float = 0.0
    max_eq_violation: float = 0.0
    message: str = ""
    info: Dict[str, Any] = field(default_factory=dict)

    @property
    def exitflag(self) -> int:
        """Integer exit flag, 1 on success."""
        return self.status.exitflag

    @property
    def x01(self) -> np.ndarray:
        """Stage vector of the first stage (nvar,)."""
        return self.stages[0]

    def stage(self, k: int) -> np.ndarray:
        """Stage vector of stage ``k`` (nvar,)."""
        return self.stages[k]

    def __repr__(self) -> str:
        return (
            f"NLPSolution(status={self.status}, "
            f"objective={self.objective:.6g}, "
            f"iterations={self.iterations}, "
            f"time={self.solve_time:.4f}s)"
        )

    def summary(self) -> str:
        """Return a formatted summary of the solve."""
        lines = [
            "=" * 50,
            "robonmpc NLP Solve Summary",
            "=" * 50,
            f"Status:           {self.status} (exitflag {self.exitflag})",
            f"Objective:        {self.objective:.10g}",
            f"Iterations:       {self.iterations}",
            f"Solve time:       {self.solve_time:.4f} s",
            f"Fevals time:      {self.fevals_time:.4f} s",
            "-" * 50,
            f"Eq. violation:    {self.max_eq_violation:.6e}",
            "=" * 50,
        ]
        return "\n".join(lines)
