"""
Reference Trajectories
======================

Runtime parameter sequences for NMPC tracking. Each simulation step ``k``
owns a parameter vector ``p_k`` (for the two-link arm a single scalar that
scales the joint-angle targets).
"""

from __future__ import annotations

from dataclasses import dataclass
import numpy as np

from ..exceptions import InvalidArgumentError


@dataclass
class Trajectory:
    """
    Reference parameter sequence.

    Args:
        values: Parameters per step (K, n_p)

    Example:
        >>> traj = alternating_reference(200)
        >>> traj.get(0), traj.get(150)
        (array([1.]), array([-1.]))
    """
    values: np.ndarray

    def __post_init__(self):
        """Validate trajectory."""
        self.values = np.asarray(self.values, dtype=np.float64)
        if self.values.ndim == 1:
            self.values = self.values.reshape(-1, 1)
        if self.values.ndim != 2 or len(self.values) == 0:
            raise InvalidArgumentError("trajectory needs at least one 1D sample")

    @property
    def horizon(self) -> int:
        """Trajectory length."""
        return len(self.values)

    @property
    def n_params(self) -> int:
        """Parameters per step."""
        return self.values.shape[1]

    def get(self, k: int) -> np.ndarray:
        """Get reference at step k (clamped to bounds)."""
        k = min(max(k, 0), len(self.values) - 1)
        return self.values[k]

    def get_window(self, start: int, length: int) -> "Trajectory":
        """
        Get trajectory window starting at 'start' with given length.

        If window extends beyond trajectory, the last value is repeated.
        """
        idx = np.clip(np.arange(start, start + length), 0, len(self.values) - 1)
        return Trajectory(values=self.values[idx])

    def stacked(self, start: int, length: int) -> np.ndarray:
        """Window flattened stage-wise (length * n_p,)."""
        return self.get_window(start, length).values.ravel()


def constant_reference(value, horizon: int) -> Trajectory:
    """
    Create constant (setpoint) reference.

    Args:
        value: Parameter vector (n_p,) or scalar
        horizon: Trajectory length
    """
    value = np.atleast_1d(np.asarray(value, dtype=np.float64))
    return Trajectory(values=np.tile(value, (horizon, 1)))


def step_reference(initial, final, horizon: int, step_time: int = 0) -> Trajectory:
    """
    Create step reference.

    Args:
        initial: Value before the step
        final: Value from ``step_time`` on
        horizon: Total trajectory length
        step_time: Step index of the change
    """
    initial = np.atleast_1d(np.asarray(initial, dtype=np.float64))
    final = np.atleast_1d(np.asarray(final, dtype=np.float64))

    values = np.zeros((horizon, len(initial)))
    values[:step_time] = initial
    values[step_time:] = final

    return Trajectory(values=values)


def alternating_reference(n_steps: int, amplitude: float = 1.0) -> Trajectory:
    """
    ``+amplitude`` for the first half of the run, ``-amplitude`` after.

    With the two-link arm tracking cost this moves the joints to
    ``(1.2, -1.2)`` rad and then swaps them to ``(-1.2, 1.2)`` rad.
    """
    if n_steps < 1:
        raise InvalidArgumentError(f"n_steps must be >= 1, got {n_steps}")
    return step_reference(amplitude, -amplitude, n_steps, step_time=n_steps // 2)
