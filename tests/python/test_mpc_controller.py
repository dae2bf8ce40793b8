"""
Tests for MPC Controllers.

Tests covering:
1. NonlinearMPC - regulation of a linear plant
2. Constraint handling
3. Solver failure handling
4. Closed-loop simulation and cost accounting
"""

import logging

import numpy as np
import pytest


def quadratic_cost(z, p):
    """Stage cost for z = [u, position, velocity]."""
    return 0.1 * z[0] ** 2 + z[1] ** 2 + 0.1 * z[2] ** 2


@pytest.fixture
def mpc_params():
    """Standard MPC parameters."""
    return {
        "horizon": 6,
        "Tf": 1.0,
    }


@pytest.fixture
def regulator(double_integrator, mpc_params):
    from robonmpc.mpc import NonlinearMPC

    return NonlinearMPC(
        double_integrator,
        quadratic_cost,
        horizon=mpc_params["horizon"],
        Tf=mpc_params["Tf"],
        n_params=0,
    )


class TestNonlinearMPC:
    """Test NonlinearMPC controller."""

    def test_basic_creation(self, regulator):
        assert regulator.horizon == 6
        assert regulator.n_x == 2
        assert regulator.n_u == 1
        assert regulator.dt == pytest.approx(0.2)
        assert regulator.model.nvar == 3
        np.testing.assert_array_equal(regulator.model.xinitidx, [1, 2])

    def test_solve_from_origin(self, regulator):
        """At the origin the optimal control is zero."""
        result = regulator.solve(np.array([0.0, 0.0]))

        assert result.is_optimal
        np.testing.assert_allclose(result.optimal_control, [0.0], atol=1e-3)

    def test_solve_regulation(self, regulator):
        """Regulate to origin from non-zero initial state."""
        x0 = np.array([1.0, 0.0])
        result = regulator.solve(x0)

        assert result.is_optimal
        assert result.x.shape == (6, 2)
        assert result.u.shape == (6, 1)
        np.testing.assert_allclose(result.x[0], x0, atol=1e-6)
        # Push back towards the origin
        assert result.optimal_control[0] < 0

    def test_prediction_follows_rk4(self, regulator):
        """Predicted states satisfy the discretized dynamics."""
        from robonmpc import advance

        result = regulator.solve(np.array([1.0, -0.5]))

        for k in range(regulator.horizon - 1):
            x_next = advance(result.x[k], result.u[k], regulator.dynamics, regulator.dt)
            np.testing.assert_allclose(result.x[k + 1], x_next, atol=1e-5)

    def test_finite_difference_controller(self, double_integrator, regulator):
        """Numeric dynamics with SciPy derivatives reach the same control."""
        from robonmpc import SolverOptions
        from robonmpc.mpc import NonlinearMPC

        mpc = NonlinearMPC(
            double_integrator, quadratic_cost, horizon=6, Tf=1.0, n_params=0,
            options=SolverOptions(derivatives="finite-difference"),
        )
        x0 = np.array([1.0, 0.0])

        result = mpc.solve(x0)

        assert result.is_optimal
        np.testing.assert_allclose(
            result.optimal_control, regulator.solve(x0).optimal_control, atol=1e-3
        )

    def test_input_constraints(self, double_integrator):
        """Input constraints are respected."""
        from robonmpc.mpc import BoxConstraints, NonlinearMPC, StageLayout

        bounds = BoxConstraints.from_stage(
            StageLayout(1, 2), u_min=-0.2, u_max=0.2, x_min=-10, x_max=10
        )
        mpc = NonlinearMPC(
            double_integrator, quadratic_cost, horizon=6, Tf=1.0, bounds=bounds, n_params=0
        )

        result = mpc.solve(np.array([3.0, 1.0]))

        assert (result.u >= -0.2 - 1e-6).all()
        assert (result.u <= 0.2 + 1e-6).all()
        assert result.optimal_control[0] == pytest.approx(-0.2, abs=1e-4)

    def test_stage_parameters(self, double_integrator):
        """Parameters shift the regulation target."""
        from robonmpc.mpc import NonlinearMPC

        def cost(z, p):
            return 0.01 * z[0] ** 2 + (z[1] - p[0]) ** 2 + 0.1 * z[2] ** 2

        mpc = NonlinearMPC(double_integrator, cost, horizon=6, Tf=1.0, n_params=1)

        result = mpc.solve(np.array([0.0, 0.0]), parameter=1.0)

        assert result.optimal_control[0] > 0

    def test_stacked_parameters(self, double_integrator):
        from robonmpc import DimensionMismatchError
        from robonmpc.mpc import NonlinearMPC

        def cost(z, p):
            return 0.01 * z[0] ** 2 + (z[1] - p[0]) ** 2

        mpc = NonlinearMPC(double_integrator, cost, horizon=6, Tf=1.0, n_params=1)

        result = mpc.solve(np.zeros(2), parameter=np.linspace(0, 1, 6))
        assert result.u.shape == (6, 1)

        with pytest.raises(DimensionMismatchError, match="parameter"):
            mpc.solve(np.zeros(2), parameter=np.ones(4))

    def test_missing_parameter(self, double_integrator):
        from robonmpc import InvalidArgumentError
        from robonmpc.mpc import NonlinearMPC

        mpc = NonlinearMPC(double_integrator, quadratic_cost, horizon=4, n_params=1)

        with pytest.raises(InvalidArgumentError, match="parameter"):
            mpc.solve(np.zeros(2))

    def test_warm_start(self, regulator):
        assert regulator._guess is None

        regulator.solve(np.array([1.0, 0.0]))
        assert regulator._guess.shape == (regulator.model.n_vars,)

        regulator.reset()
        assert regulator._guess is None

    def test_timing_iterations(self, regulator):
        result = regulator.solve(np.array([1.0, 0.0]), timing_iter=2)

        assert result.solve_time > 0
        assert result.fevals_time <= result.solve_time

    def test_wrong_state_dimension(self, regulator):
        from robonmpc import DimensionMismatchError

        with pytest.raises(DimensionMismatchError, match="x0"):
            regulator.solve(np.zeros(3))

    def test_invalid_horizon(self, double_integrator):
        from robonmpc import InvalidArgumentError
        from robonmpc.mpc import NonlinearMPC

        with pytest.raises(InvalidArgumentError, match="horizon"):
            NonlinearMPC(double_integrator, quadratic_cost, horizon=1)

    def test_dimensions_required(self):
        from robonmpc import InvalidArgumentError
        from robonmpc.mpc import NonlinearMPC

        def f(x, u):
            return np.array([x[1], u[0]])

        with pytest.raises(InvalidArgumentError, match="n_states"):
            NonlinearMPC(f, quadratic_cost, horizon=4)

        mpc = NonlinearMPC(f, quadratic_cost, horizon=4, n_params=0, n_states=2, n_inputs=1)
        assert mpc.layout.nvar == 3

    def test_bounds_dimension(self, double_integrator):
        from robonmpc import InvalidArgumentError
        from robonmpc.mpc import BoxConstraints, NonlinearMPC

        with pytest.raises(InvalidArgumentError, match="bounds"):
            NonlinearMPC(
                double_integrator, quadratic_cost, horizon=4,
                bounds=BoxConstraints(-1.0, 1.0, dim=2),
            )

    def test_repr(self, regulator):
        result = regulator.solve(np.array([1.0, 0.0]))

        assert "MPCResult" in repr(result)
        assert "horizon=6" in repr(result)


class TestSolverFailures:
    """Failed solves surface as SolverError."""

    def _failed(self, model, status):
        from robonmpc import NLPSolution

        z = model.default_guess()
        return NLPSolution(
            status=status,
            z=z,
            stages=z.reshape(model.N, model.nvar),
            objective=1.0,
            iterations=200,
            message="forced",
        )

    def test_failure_raises(self, regulator, monkeypatch):
        from robonmpc import SolverError, Status
        import robonmpc.mpc.controller as controller

        monkeypatch.setattr(
            controller, "solve_nlp",
            lambda model, problem, options: self._failed(model, Status.NUMERICAL_ERROR),
        )

        with pytest.raises(SolverError, match="Some problem in NLP solver") as exc:
            regulator.solve(np.array([1.0, 0.0]))

        assert exc.value.exitflag == Status.NUMERICAL_ERROR.exitflag
        assert exc.value.solution.status == Status.NUMERICAL_ERROR

    def test_max_iterations_raises_by_default(self, regulator, monkeypatch):
        from robonmpc import SolverError, Status
        import robonmpc.mpc.controller as controller

        monkeypatch.setattr(
            controller, "solve_nlp",
            lambda model, problem, options: self._failed(model, Status.MAX_ITERATIONS),
        )

        with pytest.raises(SolverError):
            regulator.solve(np.array([1.0, 0.0]))

    def test_accept_max_iterations(self, double_integrator, monkeypatch, caplog):
        from robonmpc import Status
        from robonmpc.mpc import NonlinearMPC
        import robonmpc.mpc.controller as controller

        mpc = NonlinearMPC(
            double_integrator, quadratic_cost, horizon=4, n_params=0,
            accept_max_iterations=True,
        )
        monkeypatch.setattr(
            controller, "solve_nlp",
            lambda model, problem, options: self._failed(model, Status.MAX_ITERATIONS),
        )

        with caplog.at_level(logging.WARNING, logger="robonmpc.mpc.controller"):
            result = mpc.solve(np.array([1.0, 0.0]))

        assert result.status == Status.MAX_ITERATIONS
        assert not result.is_optimal
        assert any("suboptimal" in r.getMessage() for r in caplog.records)


class TestCosts:
    """Test cost functions."""

    def test_closed_loop_cost(self):
        from robonmpc.mpc import closed_loop_cost

        x_samples = np.array([[1.0, 0.0], [0.0, 1.0]])
        cost = closed_loop_cost(x_samples, np.array([2.0]), np.eye(2), np.eye(1), 0.5)

        # 0.5 * ((1 + 4) + (1 + 4))
        assert cost == pytest.approx(5.0)

    def test_closed_loop_cost_weights(self):
        from robonmpc.mpc import ROBOT_Q, ROBOT_R, closed_loop_cost

        x = np.array([[1.0, 0, 0, 0, 0, 0]])
        cost = closed_loop_cost(x, np.zeros(2), ROBOT_Q, ROBOT_R, 0.01)

        assert cost == pytest.approx(10.0)

    def test_robot_tracking_cost_at_reference(self):
        from robonmpc.mpc import robot_tracking_cost

        z = np.array([0, 0, 1.2, 0, -1.2, 0, 0, 0])

        assert robot_tracking_cost(z, np.array([1.0])) == pytest.approx(0.0)
        assert robot_tracking_cost(-z, np.array([-1.0])) == pytest.approx(0.0)

    def test_robot_tracking_cost_weights(self):
        from robonmpc.mpc import robot_tracking_cost

        z = np.array([1.0, 1.0, 0, 1.0, 0, 1.0, 1.0, 1.0])

        # 1000 * 1.44 * 2 + 0.1 * 2 + 0.01 * 4
        assert robot_tracking_cost(z, np.array([1.0])) == pytest.approx(2880.24)


class TestClosedLoop:
    """Closed-loop simulation."""

    def test_regulation_converges(self, regulator):
        from robonmpc.mpc import constant_reference

        log = regulator.simulate(np.array([1.0, 0.0]), constant_reference(0.0, 10))

        assert log.x.shape == (11, 2)
        assert log.u.shape == (10, 1)
        assert log.n_steps == 10
        assert np.linalg.norm(log.x[-1]) < np.linalg.norm(log.x[0])
        assert log.total_cost == pytest.approx(np.sum(log.cost))
        assert (log.iterations > 0).all()

    def test_time_grid(self, regulator):
        from robonmpc.mpc import constant_reference

        log = regulator.simulate(np.array([0.5, 0.0]), constant_reference(0.0, 3))

        np.testing.assert_allclose(log.time, [0.0, 0.2, 0.4])

    def test_rollout_matches_model(self, regulator):
        """With the controller model as plant, the first prediction is realized."""
        from robonmpc.mpc import constant_reference

        x0 = np.array([1.0, 0.0])
        first = regulator.solve(x0)
        regulator.reset()

        log = regulator.simulate(x0, constant_reference(0.0, 1))

        np.testing.assert_allclose(log.x[1], first.x[1], atol=1e-4)

    def test_plant_mismatch(self, regulator):
        """A different plant can be used for the rollout."""
        from robonmpc.mpc import LinearDynamics, constant_reference

        damped = LinearDynamics(np.array([[0.0, 1.0], [0.0, -1.0]]), np.array([[0.0], [1.0]]))

        log = regulator.simulate(
            np.array([1.0, 0.0]), constant_reference(0.0, 3), plant=damped
        )

        assert np.all(np.isfinite(log.x))

    def test_preview(self, double_integrator):
        from robonmpc.mpc import NonlinearMPC, step_reference

        def cost(z, p):
            return 0.01 * z[0] ** 2 + (z[1] - p[0]) ** 2 + 0.1 * z[2] ** 2

        mpc = NonlinearMPC(double_integrator, cost, horizon=6, Tf=1.0)
        log = mpc.simulate(
            np.zeros(2), step_reference(0.0, 1.0, 4, step_time=2), preview=True
        )

        # The upcoming step is visible from the first sample
        assert log.u[0, 0] > 0
        np.testing.assert_allclose(log.parameters[:, 0], [0, 0, 1, 1])

    def test_invalid_arguments(self, regulator):
        from robonmpc import InvalidArgumentError
        from robonmpc.mpc import constant_reference

        with pytest.raises(InvalidArgumentError):
            regulator.simulate(np.zeros(2), constant_reference(0.0, 3), n_steps=0)

        with pytest.raises(InvalidArgumentError):
            regulator.simulate(
                np.zeros(2), constant_reference(0.0, 3), ode_intermediate_steps=1
            )

    def test_summary(self, regulator):
        from robonmpc.mpc import constant_reference

        log = regulator.simulate(np.array([1.0, 0.0]), constant_reference(0.0, 2))
        summary = log.summary()

        assert "Closed-Loop" in summary
        assert "Total cost" in summary
