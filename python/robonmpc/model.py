"""
robonmpc NLP Model
==================

Description of a multi-stage nonlinear program in the classic
multiple-shooting layout.

Each of the ``N`` stages owns a stage vector ``z_k`` of length ``nvar``.
The problem is

    minimize    sum_k objective(z_k, p_k)
    subject to  E @ z_{k+1} = eq(z_k)        k = 0 .. N-2
                z_0[xinitidx] = xinit
                lb <= z_k <= ub

where ``p_k`` is the runtime parameter vector of stage ``k`` and ``E``
selects the next-stage variables (usually ``[0 I]``).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence, Union

import numpy as np

from .exceptions import DimensionMismatchError, InvalidArgumentError
from .utils.validation import as_vector, validate_bounds


@dataclass
class NLPModel:
    """
    Multi-stage NLP definition.

    Attributes:
        N: Horizon length (number of stages)
        nvar: Variables per stage
        neq: Equality constraints linking consecutive stages
        objective: Stage cost ``objective(z_k, p_k) -> float``
        eq: Discrete dynamics ``eq(z_k) -> (neq,)``

            With the default CasADi derivatives both are called once
            with ``SX`` symbols and must use CasADi-compatible operations.
        lb: Stage lower bounds (nvar,)
        ub: Stage upper bounds (nvar,)
        xinitidx: Stage-0 indices fixed by ``xinit``
        npar: Runtime parameters per stage
        E: Selection matrix (neq, nvar); defaults to ``[0 I]``

    Example:
        >>> model = NLPModel(
        ...     N=21, nvar=8, neq=6,
        ...     objective=robot_tracking_cost,
        ...     eq=lambda z: advance_expression(z[2:], z[:2], arm, 0.1),
        ...     lb=bounds.lower, ub=bounds.upper,
        ...     xinitidx=np.arange(2, 8), npar=1,
        ... )
    """

    N: int
    nvar: int
    neq: int
    objective: Callable[[np.ndarray, np.ndarray], float]
    eq: Callable[[np.ndarray], np.ndarray]
    lb: np.ndarray
    ub: np.ndarray
    xinitidx: Union[Sequence[int], np.ndarray] = field(default_factory=list)
    npar: int = 0
    E: Optional[np.ndarray] = None

    def __post_init__(self):
        """Validate dimensions."""
        if self.N < 1:
            raise InvalidArgumentError(f"N must be >= 1, got {self.N}")
        if self.nvar < 1:
            raise InvalidArgumentError(f"nvar must be >= 1, got {self.nvar}")
        if not 0 <= self.neq <= self.nvar:
            raise InvalidArgumentError(
                f"neq must lie in [0, nvar={self.nvar}], got {self.neq}"
            )
        if self.npar < 0:
            raise InvalidArgumentError(f"npar must be >= 0, got {self.npar}")

        self.lb = as_vector(self.lb, "lb", self.nvar)
        self.ub = as_vector(self.ub, "ub", self.nvar)
        ok, msg = validate_bounds(self.lb, self.ub, self.nvar)
        if not ok:
            raise InvalidArgumentError(msg)

        if self.E is None:
            self.E = np.hstack([
                np.zeros((self.neq, self.nvar - self.neq)),
                np.eye(self.neq),
            ])
        else:
            self.E = np.asarray(self.E, dtype=np.float64)
            if self.E.shape != (self.neq, self.nvar):
                raise DimensionMismatchError(
                    f"E must be ({self.neq}, {self.nvar}), got {self.E.shape}"
                )

        self.xinitidx = np.asarray(self.xinitidx, dtype=np.intp).ravel()
        if self.xinitidx.size and (
            self.xinitidx.min() < 0 or self.xinitidx.max() >= self.nvar
        ):
            raise InvalidArgumentError(
                f"xinitidx must index a stage of length {self.nvar}"
            )

    @property
    def n_vars(self) -> int:
        """Total number of decision variables."""
        return self.N * self.nvar

    @property
    def n_params(self) -> int:
        """Total number of runtime parameters."""
        return self.N * self.npar

    def stage_midpoint(self) -> np.ndarray:
        """Middle of the stage bounds, with 0 where a bound is infinite."""
        mid = self.lb + (self.ub - self.lb) / 2
        return np.where(np.isfinite(mid), mid, 0.0)

    def default_guess(self) -> np.ndarray:
        """Bound midpoint repeated over the horizon (N * nvar,)."""
        return np.tile(self.stage_midpoint(), self.N)


@dataclass
class NLPProblem:
    """
    Runtime data for one solver call.

    Attributes:
        xinit: Values for the stage-0 variables in ``model.xinitidx``
        x0: Initial guess (N * nvar,); defaults to the bound midpoint
        all_parameters: Stacked stage parameters (N * npar,)
    """

    xinit: np.ndarray
    x0: Optional[np.ndarray] = None
    all_parameters: Optional[np.ndarray] = None

    def resolve(self, model: NLPModel):
        """Return validated ``(xinit, x0, params)`` arrays for ``model``."""
        xinit = as_vector(self.xinit, "xinit", len(model.xinitidx))

        if self.x0 is None:
            x0 = model.default_guess()
        else:
            x0 = as_vector(self.x0, "x0", model.n_vars)

        if model.npar == 0:
            params = np.zeros((model.N, 0))
        elif self.all_parameters is None:
            raise InvalidArgumentError(
                f"model expects {model.npar} parameter(s) per stage"
            )
        else:
            params = as_vector(
                self.all_parameters, "all_parameters", model.n_params
            ).reshape(model.N, model.npar)

        return xinit, x0, params
