"""
Test that robonmpc can be imported and exposes its public API.
"""

import pytest


def test_import_robonmpc():
    """Verify robonmpc package can be imported."""
    import robonmpc
    assert hasattr(robonmpc, "__version__")


def test_version_format():
    """Verify version string is properly formatted."""
    import robonmpc
    version = robonmpc.__version__

    # Should be semver format
    parts = version.split(".")
    assert len(parts) >= 2
    assert all(p.isdigit() or "-" in p for p in parts)


def test_import_integrators():
    """Verify integrator functions can be imported."""
    from robonmpc import advance, rk4_step, simulate_ode
    assert callable(advance)
    assert callable(rk4_step)
    assert callable(simulate_ode)


def test_import_solver():
    """Verify NLP interface can be imported."""
    from robonmpc import NLPModel, NLPProblem, SolverOptions, solve_nlp
    assert callable(solve_nlp)
    assert NLPModel is not None
    assert NLPProblem is not None
    assert SolverOptions is not None


def test_import_mpc():
    """Verify MPC subpackage can be imported."""
    from robonmpc.mpc import NonlinearMPC, TwoLinkArm
    assert NonlinearMPC is not None
    assert TwoLinkArm is not None


def test_import_exceptions():
    """Verify exception classes can be imported."""
    from robonmpc import (
        RobonmpcError,
        InvalidArgumentError,
        DimensionMismatchError,
        SolverError,
        IntegrationError,
    )

    # Verify inheritance
    assert issubclass(InvalidArgumentError, RobonmpcError)
    assert issubclass(DimensionMismatchError, RobonmpcError)
    assert issubclass(SolverError, RobonmpcError)
    assert issubclass(IntegrationError, RobonmpcError)


def test_exception_messages():
    """Exceptions prefix their messages."""
    from robonmpc import DimensionMismatchError, InvalidArgumentError, SolverError

    assert str(InvalidArgumentError("h")) == "Invalid argument: h"
    assert str(DimensionMismatchError("x")) == "Dimension mismatch: x"

    err = SolverError(exitflag=-7)
    assert err.exitflag == -7
    assert err.solution is None


def test_info_function():
    """Verify info() function works."""
    import robonmpc
    info = robonmpc.info()

    assert isinstance(info, str)
    assert "robonmpc version" in info
    assert "SciPy version" in info
    assert "CasADi version" in info
