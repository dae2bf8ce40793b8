"""
robonmpc Exception Classes
==========================

Custom exceptions for robonmpc error handling.
"""

from typing import Any, Optional


class RobonmpcError(Exception):
    """Base exception for all robonmpc errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InvalidArgumentError(RobonmpcError):
    """
    Raised when an argument is outside its admissible range.

    Examples: non-positive step size, zero sub-steps, NaN in a state.
    """

    def __init__(self, message: str) -> None:
        super().__init__(f"Invalid argument: {message}")


class DimensionMismatchError(RobonmpcError):
    """
    Raised when vector dimensions are incompatible.

    Typically a dynamics function whose output length differs from the
    state it was evaluated at.
    """

    def __init__(self, message: str) -> None:
        super().__init__(f"Dimension mismatch: {message}")


class SolverError(RobonmpcError):
    """
    Raised when the NLP solver does not return a usable solution.

    The (possibly partial) solution is attached for inspection.
    """

    def __init__(
        self,
        message: str = "Some problem in NLP solver",
        exitflag: Optional[int] = None,
        solution: Optional[Any] = None,
    ) -> None:
        self.exitflag = exitflag
        self.solution = solution
        super().__init__(message)


class IntegrationError(RobonmpcError):
    """
    Raised when the closed-loop plant simulation fails.
    """

    def __init__(self, message: str) -> None:
        super().__init__(f"Integration failed: {message}")
