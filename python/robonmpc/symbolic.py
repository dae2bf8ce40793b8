"""
Symbolic Expressions
====================

CasADi helpers used to generate exact derivatives of the NLP.

Stage costs and dynamics are traced once with ``casadi.SX`` symbols; the
solver then evaluates gradients and Jacobians through compiled
``casadi.Function`` objects instead of differencing.
"""

from __future__ import annotations

from typing import Any, Callable

import casadi as ca
import numpy as np

from .exceptions import DimensionMismatchError, InvalidArgumentError
from .utils.validation import check_step


def as_column(value: Any) -> ca.SX:
    """Convert an expression, scalar or sequence of expressions to an SX column."""
    if isinstance(value, ca.SX):
        return ca.vec(value)
    if isinstance(value, ca.DM):
        return ca.SX(ca.vec(value))
    if isinstance(value, (list, tuple)):
        items = list(value)
    elif isinstance(value, np.ndarray):
        items = list(value.ravel())
    else:
        items = [value]
    if not items:
        return ca.SX(0, 1)
    return ca.SX(ca.vertcat(*items))


def as_scalar(value: Any, name: str = "objective") -> ca.SX:
    """Convert a scalar expression to a 1x1 SX."""
    expr = as_column(value)
    if expr.numel() != 1:
        raise DimensionMismatchError(f"{name} must be scalar, got {expr.numel()} values")
    return expr


def symbolic_dynamics(f) -> Callable[[ca.SX, ca.SX], ca.SX]:
    """
    Return ``f`` as a function of CasADi symbols.

    Objects with an ``expression(x, u)`` method are used through it. Other
    dynamics are called directly and must build their output from CasADi
    operations (for example ``ca.vertcat``).
    """
    expression = getattr(f, "expression", None)
    if callable(expression):
        return expression
    evaluate = getattr(f, "evaluate", None)
    if callable(evaluate):
        return evaluate
    if callable(f):
        return f
    raise InvalidArgumentError(
        f"dynamics must be callable or define expression(x, u), got {type(f).__name__}"
    )


def advance_expression(x0: ca.SX, u: ca.SX, f, h: float, n: int = 1) -> ca.SX:
    """
    Symbolic RK4 with ``n`` equal sub-steps.

    Same arithmetic as :func:`robonmpc.integrators.advance`, applied to
    CasADi expressions so the result can be differentiated.

    Args:
        x0: State expression (n_x, 1)
        u: Input expression (n_u, 1), held constant
        f: Dynamics accepting CasADi symbols
        h: Total step size (> 0)
        n: Number of sub-steps (>= 1)

    Returns:
        State expression after ``h`` (n_x, 1)
    """
    h, n = check_step(h, n)
    fn = symbolic_dynamics(f)
    x = as_column(x0)
    u = as_column(u)

    def derivative(xk):
        dx = as_column(fn(xk, u))
        if dx.numel() != x.numel():
            raise DimensionMismatchError(
                f"dynamics returned {dx.numel()} values for a state of length {x.numel()}"
            )
        return dx

    delta = h / n
    for _ in range(n):
        k1 = derivative(x)
        k2 = derivative(x + 0.5 * delta * k1)
        k3 = derivative(x + 0.5 * delta * k2)
        k4 = derivative(x + delta * k3)
        x = x + (delta / 6.0) * (k1 + 2 * k2 + 2 * k3 + k4)
    return x


def discrete_map(f, n_states: int, n_inputs: int, h: float, n: int = 1) -> ca.Function:
    """
    ``casadi.Function`` ``F(x, u) -> x_next`` of the RK4 discretization.

    Example:
        >>> F = discrete_map(TwoLinkArm(), 6, 2, 0.1)
        >>> x1 = np.asarray(F(x0, u)).ravel()
    """
    x = ca.SX.sym("x", n_states)
    u = ca.SX.sym("u", n_inputs)
    return ca.Function("F", [x, u], [advance_expression(x, u, f, h, n)], ["x", "u"], ["x_next"])
