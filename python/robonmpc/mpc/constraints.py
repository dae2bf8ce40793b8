"""
MPC Constraints
===============

Stage layout and variable bounds for the multi-stage NMPC problem.

A stage vector stacks inputs first, then states:

    z_k = [u_k, x_k]

so the equality constraint ``E z_{k+1} = F(x_k, u_k)`` uses ``E = [0 I]``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple, Union

import numpy as np

from ..exceptions import DimensionMismatchError, InvalidArgumentError


@dataclass(frozen=True)
class StageLayout:
    """
    Index bookkeeping for ``z = [u, x]``.

    Args:
        n_inputs: Number of inputs per stage
        n_states: Number of states per stage
    """
    n_inputs: int
    n_states: int

    @property
    def nvar(self) -> int:
        """Variables per stage."""
        return self.n_inputs + self.n_states

    @property
    def u_slice(self) -> slice:
        return slice(0, self.n_inputs)

    @property
    def x_slice(self) -> slice:
        return slice(self.n_inputs, self.nvar)

    @property
    def x_indices(self) -> np.ndarray:
        """Stage indices of the states (used as ``xinitidx``)."""
        return np.arange(self.n_inputs, self.nvar)

    def split(self, z: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Split a stage vector into ``(u, x)``."""
        z = np.asarray(z)
        if z.shape[-1] != self.nvar:
            raise DimensionMismatchError(
                f"stage vector has {z.shape[-1]} entries, expected {self.nvar}"
            )
        return z[..., self.u_slice], z[..., self.x_slice]

    def join(self, u: np.ndarray, x: np.ndarray) -> np.ndarray:
        """Build a stage vector from ``u`` and ``x``."""
        u = np.asarray(u, dtype=np.float64)
        x = np.asarray(x, dtype=np.float64)
        if u.shape[-1] != self.n_inputs or x.shape[-1] != self.n_states:
            raise DimensionMismatchError(
                f"expected u ({self.n_inputs},) and x ({self.n_states},), "
                f"got {u.shape} and {x.shape}"
            )
        return np.concatenate([u, x], axis=-1)


@dataclass
class BoxConstraints:
    """
    Box (bound) constraints.

    Represents: lb <= z <= ub

    Args:
        lower: Lower bound (scalar or vector)
        upper: Upper bound (scalar or vector)
        dim: Dimension (required if bounds are scalar)

    Example:
        >>> # Scalar bounds for 3D
        >>> box = BoxConstraints(-1.0, 1.0, dim=3)
        >>>
        >>> # Per-dimension bounds
        >>> box = BoxConstraints(
        ...     lower=np.array([-1, -2, -3]),
        ...     upper=np.array([1, 2, 3])
        ... )
    """
    lower: Union[float, np.ndarray]
    upper: Union[float, np.ndarray]
    dim: Optional[int] = None

    def __post_init__(self):
        """Process bounds."""
        if np.isscalar(self.lower):
            if self.dim is None:
                raise InvalidArgumentError("dim required when bounds are scalar")
            self.lower = np.full(self.dim, float(self.lower))
        else:
            self.lower = np.asarray(self.lower, dtype=np.float64)
            if self.dim is None:
                self.dim = len(self.lower)

        if np.isscalar(self.upper):
            self.upper = np.full(self.dim, float(self.upper))
        else:
            self.upper = np.asarray(self.upper, dtype=np.float64)

        if len(self.lower) != len(self.upper):
            raise DimensionMismatchError("lower and upper must have same length")
        if len(self.lower) != self.dim:
            raise DimensionMismatchError(f"bounds must have length dim={self.dim}")
        if np.any(self.lower > self.upper):
            raise InvalidArgumentError("lower bound exceeds upper bound")

    @property
    def lb(self) -> np.ndarray:
        """Lower bounds."""
        return self.lower

    @property
    def ub(self) -> np.ndarray:
        """Upper bounds."""
        return self.upper

    def is_satisfied(self, z: np.ndarray, tol: float = 1e-6) -> bool:
        """Check if z satisfies constraints."""
        return bool((z >= self.lower - tol).all() and (z <= self.upper + tol).all())

    def project(self, z: np.ndarray) -> np.ndarray:
        """Project z onto feasible set."""
        return np.clip(z, self.lower, self.upper)

    def violation(self, z: np.ndarray) -> float:
        """Compute maximum constraint violation."""
        lower_viol = np.maximum(self.lower - z, 0).max()
        upper_viol = np.maximum(z - self.upper, 0).max()
        return float(max(lower_viol, upper_viol))

    def midpoint(self) -> np.ndarray:
        """lb + (ub - lb)/2, with 0 where a bound is infinite."""
        mid = self.lower + (self.upper - self.lower) / 2
        return np.where(np.isfinite(mid), mid, 0.0)

    @classmethod
    def unbounded(cls, dim: int) -> "BoxConstraints":
        """Create unbounded constraints."""
        return cls(
            lower=np.full(dim, -np.inf),
            upper=np.full(dim, np.inf),
            dim=dim
        )

    @classmethod
    def from_stage(
        cls,
        layout: StageLayout,
        u_min: Union[float, np.ndarray],
        u_max: Union[float, np.ndarray],
        x_min: Union[float, np.ndarray],
        x_max: Union[float, np.ndarray],
    ) -> "BoxConstraints":
        """Stage bounds from separate input and state bounds."""
        lower = layout.join(
            np.broadcast_to(u_min, (layout.n_inputs,)),
            np.broadcast_to(x_min, (layout.n_states,)),
        )
        upper = layout.join(
            np.broadcast_to(u_max, (layout.n_inputs,)),
            np.broadcast_to(x_max, (layout.n_states,)),
        )
        return cls(lower, upper)


def robot_stage_bounds() -> BoxConstraints:
    """
    Bounds of the two-link arm stage ``[dtau1, dtau2, x]``.

    ========  ===========
    dtau      [-200, 200]
    theta     [-pi, pi]
    dtheta    [-100, 100]
    tau       [-100, 70]
    ========  ===========
    """
    lower = np.array([-200, -200, -np.pi, -100, -np.pi, -100, -100, -100])
    upper = np.array([200, 200, np.pi, 100, np.pi, 100, 70, 70])
    return BoxConstraints(lower, upper)
