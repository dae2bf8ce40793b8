"""Input validation utilities."""

from numbers import Integral
from typing import Any, Optional, Tuple

import numpy as np

from ..exceptions import DimensionMismatchError, InvalidArgumentError


def as_vector(value: Any, name: str, size: Optional[int] = None) -> np.ndarray:
    """
    Convert ``value`` to a fresh 1D float array.

    Raises:
        DimensionMismatchError: if the result is not 1D or has the wrong size
        InvalidArgumentError: if the result contains NaN
    """
    arr = np.array(value, dtype=np.float64)
    if arr.ndim == 0:
        arr = arr.reshape(1)
    if arr.ndim != 1:
        raise DimensionMismatchError(f"{name} must be 1D, got shape {arr.shape}")
    if size is not None and arr.shape[0] != size:
        raise DimensionMismatchError(
            f"{name} has {arr.shape[0]} elements, expected {size}"
        )
    if np.any(np.isnan(arr)):
        raise InvalidArgumentError(f"{name} contains NaN values")
    return arr


def check_step(h: float, n: int) -> Tuple[float, int]:
    """Validate an integration step size and sub-step count."""
    if isinstance(n, bool) or not isinstance(n, Integral):
        raise InvalidArgumentError(f"sub-step count must be an integer, got {n!r}")
    if n < 1:
        raise InvalidArgumentError(f"sub-step count must be >= 1, got {n}")
    try:
        h = float(h)
    except (TypeError, ValueError):
        raise InvalidArgumentError(f"step size must be a real number, got {h!r}")
    if not np.isfinite(h) or h <= 0:
        raise InvalidArgumentError(f"step size must be positive and finite, got {h}")
    return h, int(n)


def validate_bounds(
    lb: np.ndarray,
    ub: np.ndarray,
    size: Optional[int] = None,
) -> Tuple[bool, str]:
    """
    Validate a pair of bound vectors.

    Returns:
        (is_valid, error_message) tuple
    """
    lb = np.asarray(lb, dtype=np.float64)
    ub = np.asarray(ub, dtype=np.float64)

    if lb.shape != ub.shape:
        return False, f"lb has shape {lb.shape} but ub has shape {ub.shape}"

    if size is not None and lb.shape != (size,):
        return False, f"bounds have {lb.size} elements, expected {size}"

    if np.any(np.isnan(lb)) or np.any(np.isnan(ub)):
        return False, "bounds contain NaN values"

    bad = np.flatnonzero(lb > ub)
    if bad.size:
        return False, f"lb > ub at indices {bad.tolist()}"

    return True, ""
