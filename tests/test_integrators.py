from __future__ import annotations

import numpy as np
import pytest

import jax64  # noqa: F401
import jax.numpy as jnp

from DYNAX.Errors import SizeMismatchError
from DYNAX.Integrators import (
    dde_euler,
    ode_dopri5,
    ode_euler,
    ode_heun,
    ode_rk4,
    ode_tsit5,
    sde_euler,
    sde_heun,
)
from DYNAX.Utils import build_dt_sequence, build_sample_grid, build_time_grid


def growth(t, Y, k):
    return k * Y


def delayed_decay(t, Y, Z, a):
    return a * Z[:, 0]


def no_drift(t, Y, sigma):
    return jnp.zeros_like(Y)


def unit_noise(t, Y, sigma):
    return sigma * jnp.eye(Y.shape[0])


class TestTimeGrid:
    def test_step_is_rounded_to_fit_span(self):
        grid = build_time_grid((0.0, 1.0), 0.3)
        np.testing.assert_allclose(grid, np.linspace(0.0, 1.0, 4))

    def test_default_step(self):
        assert build_time_grid((0.0, 2.0)).shape == (101,)

    def test_degenerate_span(self):
        np.testing.assert_allclose(build_time_grid((1.0, 1.0), 0.1), [1.0])
        np.testing.assert_allclose(build_sample_grid((1.0, 1.0)), [1.0])

    @pytest.mark.parametrize("step", [0.0, -0.5, float("nan")])
    def test_step_must_be_positive(self, step):
        with pytest.raises(ValueError):
            build_time_grid((0.0, 1.0), step)

    def test_dt_sequence(self):
        np.testing.assert_allclose(build_dt_sequence(jnp.array([0.0, 0.5, 2.0])), [0.5, 1.5])


class TestODE:
    @pytest.mark.parametrize("solver, rtol", [(ode_rk4, 1e-8), (ode_heun, 1e-4), (ode_euler, 2e-2)])
    def test_fixed_step_growth(self, solver, rtol):
        sol = solver(growth, (0.0, 2.0), jnp.array([1.0]), {"initial_step": 0.01}, jnp.asarray(1.0))
        assert sol.y.shape == (1, 201)
        np.testing.assert_allclose(sol.x[[0, -1]], [0.0, 2.0])
        np.testing.assert_allclose(sol.y[0, -1], np.exp(2.0), rtol=rtol)
        assert sol.stats["n_steps"] == 200

    @pytest.mark.parametrize("solver", [ode_tsit5, ode_dopri5])
    def test_adaptive_growth(self, solver):
        sol = solver(growth, (0.0, 2.0), jnp.array([1.0, 2.0]), {"rtol": 1e-8, "atol": 1e-10}, jnp.asarray(1.0))
        assert sol.y.shape == (2, 201)
        np.testing.assert_allclose(sol.y[:, -1], [np.exp(2.0), 2.0 * np.exp(2.0)], rtol=1e-6)
        assert sol.stats["num_steps"] > 0

    def test_n_points(self):
        sol = ode_tsit5(growth, (0.0, 1.0), jnp.array([1.0]), {"n_points": 11}, jnp.asarray(-1.0))
        np.testing.assert_allclose(sol.x, np.linspace(0.0, 1.0, 11))
        np.testing.assert_allclose(sol.y[0], np.exp(-sol.x), rtol=1e-5)

    def test_single_point_span(self):
        sol = ode_rk4(growth, (1.0, 1.0), jnp.array([3.0]), {}, jnp.asarray(1.0))
        np.testing.assert_allclose(sol.x, [1.0])
        np.testing.assert_allclose(sol.y, [[3.0]])


class TestDDE:
    def test_constant_history_before_t0(self):
        sol = dde_euler(delayed_decay, jnp.array([1.0]), jnp.array([1.0]), (0.0, 2.0), {"initial_step": 0.01}, -1.0)
        # y(t) = 1 - t on [0, 1] since y(t - 1) = 1 there
        np.testing.assert_allclose(sol.y[0, :101], 1.0 - np.asarray(sol.x[:101]), atol=1e-12)
        # y(2) = -1/2 for the exact solution
        np.testing.assert_allclose(sol.y[0, -1], -0.5, atol=2e-2)

    def test_zero_lag_matches_ode_euler(self):
        dde = dde_euler(delayed_decay, jnp.array([0.0]), jnp.array([1.0]), (0.0, 1.0), {"initial_step": 0.1}, -1.0)
        ode = ode_euler(growth, (0.0, 1.0), jnp.array([1.0]), {"initial_step": 0.1}, -1.0)
        np.testing.assert_allclose(dde.y, ode.y, rtol=1e-12)

    def test_negative_lag(self):
        with pytest.raises(ValueError):
            dde_euler(delayed_decay, jnp.array([-1.0]), jnp.array([1.0]), (0.0, 1.0), {}, -1.0)


class TestSDE:
    def test_supplied_samples(self):
        randn = np.random.default_rng(1).standard_normal((2, 10))
        options = {"initial_step": 0.1, "noise_sources": 2, "randn": randn}
        sol = sde_euler(no_drift, unit_noise, (0.0, 1.0), jnp.zeros(2), options, 1.0)
        assert sol.dW.shape == (2, 10)
        np.testing.assert_allclose(sol.dW, randn * np.sqrt(0.1), rtol=1e-12)
        np.testing.assert_allclose(sol.y[:, -1], randn.sum(axis=1) * np.sqrt(0.1), rtol=1e-10)

    def test_extra_samples_are_ignored(self):
        randn = np.ones((1, 50))
        options = {"initial_step": 0.1, "noise_sources": 1, "randn": randn}
        sol = sde_euler(no_drift, unit_noise, (0.0, 1.0), jnp.zeros(1), options, 1.0)
        assert sol.dW.shape == (1, 10)

    def test_too_few_samples(self):
        options = {"initial_step": 0.1, "noise_sources": 1, "randn": np.ones((1, 5))}
        with pytest.raises(SizeMismatchError):
            sde_euler(no_drift, unit_noise, (0.0, 1.0), jnp.zeros(1), options, 1.0)

    def test_seed_is_reproducible(self):
        options = {"initial_step": 0.1, "noise_sources": 2, "seed": 42}
        first = sde_euler(no_drift, unit_noise, (0.0, 1.0), jnp.zeros(2), options, 1.0)
        second = sde_euler(no_drift, unit_noise, (0.0, 1.0), jnp.zeros(2), options, 1.0)
        np.testing.assert_allclose(first.y, second.y)

    def test_heun_matches_euler_for_additive_noise(self):
        randn = np.random.default_rng(2).standard_normal((2, 10))
        options = {"initial_step": 0.1, "noise_sources": 2, "randn": randn}
        euler = sde_euler(no_drift, unit_noise, (0.0, 1.0), jnp.zeros(2), options, 0.5)
        heun = sde_heun(no_drift, unit_noise, (0.0, 1.0), jnp.zeros(2), options, 0.5)
        np.testing.assert_allclose(heun.y, euler.y, rtol=1e-10, atol=1e-12)
