"""Internal helpers."""

from .validation import as_vector, check_step, validate_bounds

__all__ = ["as_vector", "check_step", "validate_bounds"]
