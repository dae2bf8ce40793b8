"""robonmpc NLP Solver Interface."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import casadi as ca
import numpy as np
from scipy.optimize import Bounds, minimize

from .exceptions import DimensionMismatchError, InvalidArgumentError
from .model import NLPModel, NLPProblem
from .result import NLPSolution, Status
from .symbolic import as_column, as_scalar

logger = logging.getLogger(__name__)

_METHODS = ("SLSQP", "trust-constr")
_DERIVATIVES = ("casadi", "finite-difference")


@dataclass
class SolverOptions:
    """
    Solver settings.

    Attributes:
        maxit: Maximum number of iterations
        tolerance: Convergence tolerance
        printlevel: 0 silent, 1 summary per solve, 2 progress per iteration
        method: ``"SLSQP"`` or ``"trust-constr"``
        derivatives: ``"casadi"`` for exact derivatives of traced stage
            functions, ``"finite-difference"`` for black-box numeric models
        fd_step: Relative step of SciPy's finite differences
        feasibility_tol: Equality residual above which a converged
            solve is reported as infeasible
    """
    maxit: int = 200
    tolerance: float = 1e-6
    printlevel: int = 0
    method: str = "SLSQP"
    derivatives: str = "casadi"
    fd_step: float = 1e-6
    feasibility_tol: float = 1e-4

    def __post_init__(self):
        if self.maxit < 1:
            raise InvalidArgumentError(f"maxit must be >= 1, got {self.maxit}")
        if self.tolerance <= 0:
            raise InvalidArgumentError(f"tolerance must be positive, got {self.tolerance}")
        if self.method not in _METHODS:
            raise InvalidArgumentError(
                f"Unknown method '{self.method}', expected one of {_METHODS}"
            )
        if self.derivatives not in _DERIVATIVES:
            raise InvalidArgumentError(
                f"Unknown derivatives '{self.derivatives}', expected one of {_DERIVATIVES}"
            )

    @classmethod
    def from_params(cls, params: Optional[Dict[str, Any]] = None) -> "SolverOptions":
        """Build options from a params dict, accepting common aliases."""
        params = params or {}
        printlevel = params.get('printlevel', 2 if params.get('verbose', False) else 0)
        return cls(
            maxit=params.get('maxit', params.get('max_iterations', params.get('max_iters', 200))),
            tolerance=params.get('tolerance', params.get('tol', 1e-6)),
            printlevel=printlevel,
            method=params.get('method', "SLSQP"),
            derivatives=params.get('derivatives', "casadi"),
            fd_step=params.get('fd_step', 1e-6),
            feasibility_tol=params.get('feasibility_tol', 1e-4),
        )


class _StagedNLP:
    """
    Objective and constraint callbacks for a stacked multi-stage NLP.

    Evaluates the model callables on numbers only; derivatives are left
    to SciPy's finite differences.
    """

    exact_derivatives = False

    def __init__(self, model: NLPModel, xinit: np.ndarray, params: np.ndarray):
        self.model = model
        self.xinit = xinit
        self.params = params
        self.fevals_time = 0.0

    def _stages(self, z: np.ndarray) -> np.ndarray:
        return z.reshape(self.model.N, self.model.nvar)

    def _eq(self, zk: np.ndarray) -> np.ndarray:
        out = np.asarray(self.model.eq(zk), dtype=np.float64).ravel()
        if out.shape != (self.model.neq,):
            raise DimensionMismatchError(
                f"eq returned {out.size} values, expected neq={self.model.neq}"
            )
        return out

    def _stage_costs(self, stages: np.ndarray) -> float:
        return sum(
            float(self.model.objective(stages[k], self.params[k]))
            for k in range(self.model.N)
        )

    def _next_states(self, stages: np.ndarray) -> np.ndarray:
        m = self.model
        if m.neq == 0:
            return np.zeros((m.N - 1, 0))
        return np.array([self._eq(stages[k]) for k in range(m.N - 1)]).reshape(m.N - 1, m.neq)

    def objective(self, z: np.ndarray) -> float:
        start = time.perf_counter()
        total = self._stage_costs(self._stages(z))
        self.fevals_time += time.perf_counter() - start
        return total

    def constraints(self, z: np.ndarray) -> np.ndarray:
        start = time.perf_counter()
        m = self.model
        stages = self._stages(z)
        dyn = stages[1:] @ m.E.T - self._next_states(stages)
        res = np.concatenate([dyn.ravel(), stages[0][m.xinitidx] - self.xinit])
        self.fevals_time += time.perf_counter() - start
        return res


class _SymbolicNLP(_StagedNLP):
    """
    Multi-stage NLP with exact derivatives from CasADi.

    The stage cost and dynamics are traced once with SX symbols and
    mapped over the horizon, so every callback is a single compiled call.
    """

    exact_derivatives = True

    def __init__(self, model: NLPModel, xinit: np.ndarray, params: np.ndarray):
        super().__init__(model, xinit, params)
        z = ca.SX.sym("z", model.nvar)
        p = ca.SX.sym("p", model.npar)

        cost = as_scalar(model.objective(z, p))
        self._cost = ca.Function("cost", [z, p], [cost]).map(model.N)
        self._grad = ca.Function("grad", [z, p], [ca.gradient(cost, z)]).map(model.N)
        self._P = ca.DM(params.T) if params.size else ca.DM(model.npar, model.N)

        self._dyn = None
        if model.N > 1 and model.neq > 0:
            nxt = as_column(model.eq(z))
            if nxt.numel() != model.neq:
                raise DimensionMismatchError(
                    f"eq returned {nxt.numel()} values, expected neq={model.neq}"
                )
            self._dyn = ca.Function("dyn", [z], [nxt]).map(model.N - 1)
            self._dyn_jac = ca.Function("dyn_jac", [z], [ca.jacobian(nxt, z)]).map(model.N - 1)

    def _stage_costs(self, stages: np.ndarray) -> float:
        return float(np.sum(self._cost(stages.T, self._P).full()))

    def _next_states(self, stages: np.ndarray) -> np.ndarray:
        if self._dyn is None:
            return np.zeros((self.model.N - 1, self.model.neq))
        return self._dyn(stages[:-1].T).full().T

    def gradient(self, z: np.ndarray) -> np.ndarray:
        start = time.perf_counter()
        grad = self._grad(self._stages(z).T, self._P).full().T.ravel()
        self.fevals_time += time.perf_counter() - start
        return grad

    def constraints_jac(self, z: np.ndarray) -> np.ndarray:
        start = time.perf_counter()
        m = self.model
        n_dyn = (m.N - 1) * m.neq
        jac = np.zeros((n_dyn + len(m.xinitidx), m.n_vars))

        if self._dyn is not None:
            # (neq, nvar) blocks side by side, one per stage
            blocks = self._dyn_jac(self._stages(z)[:-1].T).full()
            for k in range(m.N - 1):
                rows = slice(k * m.neq, (k + 1) * m.neq)
                jac[rows, k * m.nvar:(k + 1) * m.nvar] = -blocks[:, k * m.nvar:(k + 1) * m.nvar]
                jac[rows, (k + 1) * m.nvar:(k + 2) * m.nvar] = m.E

        for row, idx in enumerate(m.xinitidx):
            jac[n_dyn + row, idx] = 1.0

        self.fevals_time += time.perf_counter() - start
        return jac


def _status_from_scipy(result, method: str) -> Status:
    code = result.status
    if method == "SLSQP":
        if code == 0:
            return Status.OPTIMAL
        if code == 9:
            return Status.MAX_ITERATIONS
        if code == 4:
            return Status.INFEASIBLE
        return Status.NUMERICAL_ERROR

    # trust-constr
    if code in (1, 2):
        return Status.OPTIMAL
    if code == 0:
        return Status.MAX_ITERATIONS
    return Status.NUMERICAL_ERROR


def _progress_callback(nlp: _StagedNLP, method: str):
    """Per-iteration INFO logging for ``minimize``."""
    if method == "trust-constr":
        def callback(zk, state):
            logger.info("it %3d  obj %.6e  eq %.3e",
                        state.nit, state.fun, state.constr_violation)
        return callback

    counter = {'it': 0}

    def callback(zk):
        counter['it'] += 1
        res = nlp.constraints(zk)
        logger.info("it %3d  obj %.6e  eq %.3e", counter['it'],
                    nlp.objective(zk), np.abs(res).max() if res.size else 0.0)
    return callback


def solve_nlp(
    model: NLPModel,
    problem: NLPProblem,
    options: Optional[SolverOptions] = None,
    params: Optional[Dict[str, Any]] = None,
) -> NLPSolution:
    """
    Solve a multi-stage NLP.

    Args:
        model: Problem structure
        problem: Initial condition, initial guess and stage parameters
        options: Solver settings (takes precedence over ``params``)
        params: Settings as a dict, see :meth:`SolverOptions.from_params`

    Returns:
        NLPSolution; check ``exitflag == 1`` before using the iterate
    """
    start_time = time.perf_counter()
    if options is None:
        options = SolverOptions.from_params(params)

    xinit, x0, stage_params = problem.resolve(model)
    if options.derivatives == "casadi":
        nlp = _SymbolicNLP(model, xinit, stage_params)
    else:
        nlp = _StagedNLP(model, xinit, stage_params)

    lb = np.tile(model.lb, model.N)
    ub = np.tile(model.ub, model.N)
    # Start inside the box; the initial condition is enforced by the constraints
    x0 = np.clip(x0, lb, ub)

    constraints = []
    if (model.N - 1) * model.neq + len(model.xinitidx) > 0:
        eq_constraint = {'type': 'eq', 'fun': nlp.constraints}
        if nlp.exact_derivatives:
            eq_constraint['jac'] = nlp.constraints_jac
        constraints.append(eq_constraint)

    if options.method == "SLSQP":
        solver_options = {'maxiter': options.maxit, 'ftol': options.tolerance}
    else:
        solver_options = {'maxiter': options.maxit, 'gtol': options.tolerance,
                          'xtol': options.tolerance}
    if not nlp.exact_derivatives:
        solver_options['finite_diff_rel_step'] = options.fd_step

    callback = None
    if options.printlevel >= 2:
        callback = _progress_callback(nlp, options.method)

    result = minimize(
        nlp.objective,
        x0,
        jac=nlp.gradient if nlp.exact_derivatives else '3-point',
        method=options.method,
        bounds=Bounds(lb, ub),
        constraints=constraints,
        options=solver_options,
        callback=callback,
    )

    z = np.asarray(result.x, dtype=np.float64)
    residual = nlp.constraints(z)
    violation = float(np.abs(residual).max()) if residual.size else 0.0
    status = _status_from_scipy(result, options.method)
    if status == Status.OPTIMAL and violation > options.feasibility_tol:
        status = Status.INFEASIBLE

    solution = NLPSolution(
        status=status,
        z=z,
        stages=z.reshape(model.N, model.nvar).copy(),
        objective=float(nlp.objective(z)),
        iterations=int(getattr(result, 'nit', 0)),
        solve_time=time.perf_counter() - start_time,
        fevals_time=nlp.fevals_time,
        max_eq_violation=violation,
        message=str(getattr(result, 'message', "")),
        info={
            'method': options.method,
            'derivatives': options.derivatives,
            'scipy_status': int(result.status),
            'nfev': int(getattr(result, 'nfev', 0)),
            'njev': int(getattr(result, 'njev', 0)),
        },
    )

    if options.printlevel >= 1:
        logger.info("%s: %s", solution, solution.message)
    else:
        logger.debug("%s: %s", solution, solution.message)

    return solution
