"""Reference solvers honouring the family calling conventions.

ode: solver(odefun, tspan, Y0, options, *pars)
dde: solver(ddefun, lags, Y0, tspan, options, *pars)
sde: solver(odefun, sdefun, tspan, Y0, options, *pars)

Each returns a `Solution`. Right-hand sides must be JAX-traceable since the
fixed-step solvers run inside `lax.scan` and the adaptive ones inside diffrax.
"""

from __future__ import annotations

import numpy as np

import diffrax
import equinox as eqx
import jax
import jax64  # noqa: F401
import jax.numpy as jnp
from jax import lax

from DYNAX.Errors import SizeMismatchError
from DYNAX.Options import option_value
from DYNAX.Solution import Solution
from DYNAX.Utils import as_column, build_dt_sequence, build_sample_grid, build_time_grid

DEFAULT_RTOL = 1e-6
DEFAULT_ATOL = 1e-9
DEFAULT_MAX_STEPS = 16384


# ---------- Step functions ----------

def euler_step(rhs, t, state, dt):
    """Perform an explicit Euler step."""
    return state + dt * rhs(t, state)


def heun_step(rhs, t, state, dt):
    """Perform a Runge–Kutta 2 step (Heun's method)."""
    k1 = rhs(t, state)
    k2 = rhs(t + dt, state + dt * k1)
    return state + 0.5 * dt * (k1 + k2)


def rk4_step(rhs, t, state, dt):
    """Perform a Runge–Kutta 4 step."""
    half = 0.5 * dt
    k1 = rhs(t, state)
    k2 = rhs(t + half, state + half * k1)
    k3 = rhs(t + half, state + half * k2)
    k4 = rhs(t + dt, state + dt * k3)
    return state + (dt / 6.0) * (k1 + 2.0 * k2 + 2.0 * k3 + k4)


def _stack_trajectory(y0, states):
    return jnp.concatenate([y0[None, :], states], axis=0).T


def _grid_stats(t_grid):
    n_steps = int(t_grid.shape[0]) - 1
    step = float(t_grid[1] - t_grid[0]) if n_steps > 0 else 0.0
    return {"n_steps": n_steps, "step": step}


# ---------- ODE ----------

@eqx.filter_jit
def _run_ode(step, odefun, y0, t_grid, pars):
    """Jitted fixed-step ODE core."""
    n = y0.shape[0]

    def rhs(t, y):
        return as_column(odefun(t, y, *pars), n)

    def scan_step(state, data):
        t, dt = data
        nxt = step(rhs, t, state, dt)
        return nxt, nxt

    _, states = lax.scan(scan_step, y0, (t_grid[:-1], build_dt_sequence(t_grid)))
    return _stack_trajectory(y0, states)


def _fixed_step_ode(step, name, odefun, tspan, Y0, options, *pars):
    y0 = jnp.ravel(jnp.asarray(Y0, dtype=jnp.float64))
    t_grid = build_time_grid(tspan, option_value(options, "initial_step"))
    y = _run_ode(step, odefun, y0, t_grid, pars)
    return Solution(x=t_grid, y=y, solver=name, stats=_grid_stats(t_grid))


def ode_euler(odefun, tspan, Y0, options, *pars):
    """Explicit Euler on a uniform grid (step `initial_step`)."""
    return _fixed_step_ode(euler_step, "ode_euler", odefun, tspan, Y0, options, *pars)


def ode_heun(odefun, tspan, Y0, options, *pars):
    return _fixed_step_ode(heun_step, "ode_heun", odefun, tspan, Y0, options, *pars)


def ode_rk4(odefun, tspan, Y0, options, *pars):
    """Classical Runge–Kutta 4 on a uniform grid (step `initial_step`)."""
    return _fixed_step_ode(rk4_step, "ode_rk4", odefun, tspan, Y0, options, *pars)


def _adaptive_ode(method, name, odefun, tspan, Y0, options, *pars):
    y0 = jnp.ravel(jnp.asarray(Y0, dtype=jnp.float64))
    n = y0.shape[0]
    ts = build_sample_grid(tspan, option_value(options, "n_points"))
    if ts.shape[0] == 1:
        return Solution(x=ts, y=y0[:, None], solver=name, stats={"num_steps": 0})

    def vector_field(t, y, args):
        return as_column(odefun(t, y, *args), n)

    controller = diffrax.PIDController(
        rtol=option_value(options, "rtol", DEFAULT_RTOL),
        atol=option_value(options, "atol", DEFAULT_ATOL),
    )
    sol = diffrax.diffeqsolve(
        diffrax.ODETerm(vector_field),
        method,
        t0=ts[0],
        t1=ts[-1],
        dt0=option_value(options, "initial_step"),
        y0=y0,
        args=pars,
        saveat=diffrax.SaveAt(ts=ts),
        stepsize_controller=controller,
        max_steps=option_value(options, "max_steps", DEFAULT_MAX_STEPS),
    )
    stats = {
        key: int(sol.stats[key])
        for key in ("num_steps", "num_accepted_steps", "num_rejected_steps")
        if key in sol.stats
    }
    return Solution(x=ts, y=jnp.asarray(sol.ys).T, solver=name, stats=stats)


def ode_tsit5(odefun, tspan, Y0, options, *pars):
    """Adaptive Tsitouras 5(4) (diffrax) sampled at `n_points` times."""
    return _adaptive_ode(diffrax.Tsit5(), "ode_tsit5", odefun, tspan, Y0, options, *pars)


def ode_dopri5(odefun, tspan, Y0, options, *pars):
    """Adaptive Dormand–Prince 5(4) (diffrax) sampled at `n_points` times."""
    return _adaptive_ode(diffrax.Dopri5(), "ode_dopri5", odefun, tspan, Y0, options, *pars)


# ---------- DDE ----------

@eqx.filter_jit
def _run_dde(ddefun, y0, lags, t_grid, pars):
    """Jitted Euler DDE core.

    The trajectory buffer doubles as history: the lagged state at t_k - tau is
    interpolated linearly between stored samples, and is the initial state
    for any time before t0.
    """
    n = y0.shape[0]
    n_steps = t_grid.shape[0] - 1
    dt = t_grid[1] - t_grid[0]
    buf0 = jnp.zeros((n_steps + 1, n), dtype=y0.dtype).at[0].set(y0)

    def scan_step(carry, k):
        buf, state = carry
        pos = jnp.maximum(k - lags / dt, 0.0)
        lo = jnp.floor(pos).astype(jnp.int32)
        hi = jnp.minimum(lo + 1, k)
        w = (pos - lo)[:, None]
        Z = (buf[lo] * (1.0 - w) + buf[hi] * w).T
        dy = as_column(ddefun(t_grid[k], state, Z, *pars), n)
        nxt = state + dt * dy
        return (buf.at[k + 1].set(nxt), nxt), nxt

    _, states = lax.scan(scan_step, (buf0, y0), jnp.arange(n_steps, dtype=jnp.int32))
    return _stack_trajectory(y0, states)


def dde_euler(ddefun, lags, Y0, tspan, options, *pars):
    """Explicit Euler for constant-lag DDEs with constant history before t0.

    `ddefun(t, Y, Z, *pars)` receives Z of shape (n, len(lags)), column j being
    the state at t - lags[j].
    """
    y0 = jnp.ravel(jnp.asarray(Y0, dtype=jnp.float64))
    lag_arr = jnp.ravel(jnp.asarray(lags, dtype=jnp.float64))
    if bool(jnp.any(lag_arr < 0.0)):
        raise ValueError("DDE lags must be non-negative.")
    t_grid = build_time_grid(tspan, option_value(options, "initial_step"))
    if t_grid.shape[0] == 1:
        return Solution(x=t_grid, y=y0[:, None], solver="dde_euler", stats=_grid_stats(t_grid))
    y = _run_dde(ddefun, y0, lag_arr, t_grid, pars)
    return Solution(x=t_grid, y=y, solver="dde_euler", stats=_grid_stats(t_grid))


# ---------- SDE ----------

def _noise_increments(options, m, dt_seq):
    """Wiener increments (m, T-1), from `randn` samples or a seeded stream."""
    n_steps = int(dt_seq.shape[0])
    randn = option_value(options, "randn")
    if randn is not None:
        z = jnp.asarray(randn, dtype=jnp.float64)
        if z.ndim != 2 or z.shape[0] != m or z.shape[1] < n_steps:
            raise SizeMismatchError(
                f"sdeoption['randn'] must have shape ({m}, >={n_steps}), got {tuple(z.shape)}",
                field="sdeoption",
            )
        z = z[:, :n_steps]
    else:
        seed = option_value(options, "seed")
        if seed is None:
            seed = int(np.random.default_rng().integers(2**31 - 1))
        z = jax.random.normal(jax.random.PRNGKey(int(seed)), (m, n_steps), dtype=jnp.float64)
    return z * jnp.sqrt(dt_seq)[None, :]


def euler_maruyama_step(drift, diffusion, t, state, dt, dw):
    return state + dt * drift(t, state) + diffusion(t, state) @ dw


def stratonovich_heun_step(drift, diffusion, t, state, dt, dw):
    f0 = drift(t, state)
    g0 = diffusion(t, state)
    guess = state + dt * f0 + g0 @ dw
    f1 = drift(t + dt, guess)
    g1 = diffusion(t + dt, guess)
    return state + 0.5 * dt * (f0 + f1) + 0.5 * (g0 + g1) @ dw


@eqx.filter_jit
def _run_sde(step, odefun, sdefun, y0, t_grid, dW, pars):
    """Jitted fixed-step SDE core."""
    n = y0.shape[0]
    m = dW.shape[0]

    def drift(t, y):
        return as_column(odefun(t, y, *pars), n)

    def diffusion(t, y):
        return jnp.reshape(jnp.asarray(sdefun(t, y, *pars), dtype=jnp.float64), (n, m))

    def scan_step(state, data):
        t, dt, dw = data
        nxt = step(drift, diffusion, t, state, dt, dw)
        return nxt, nxt

    _, states = lax.scan(scan_step, y0, (t_grid[:-1], build_dt_sequence(t_grid), dW.T))
    return _stack_trajectory(y0, states)


def _fixed_step_sde(step, name, odefun, sdefun, tspan, Y0, options, *pars):
    y0 = jnp.ravel(jnp.asarray(Y0, dtype=jnp.float64))
    m = int(option_value(options, "noise_sources", 1))
    t_grid = build_time_grid(tspan, option_value(options, "initial_step"))
    dW = _noise_increments(options, m, build_dt_sequence(t_grid))
    if t_grid.shape[0] == 1:
        y = y0[:, None]
    else:
        y = _run_sde(step, odefun, sdefun, y0, t_grid, dW, pars)
    return Solution(x=t_grid, y=y, solver=name, stats=_grid_stats(t_grid), dW=dW)


def sde_euler(odefun, sdefun, tspan, Y0, options, *pars):
    """Euler–Maruyama (Itô) with noise_sources Wiener processes."""
    return _fixed_step_sde(euler_maruyama_step, "sde_euler", odefun, sdefun, tspan, Y0, options, *pars)


def sde_heun(odefun, sdefun, tspan, Y0, options, *pars):
    """Stochastic Heun (Stratonovich) with noise_sources Wiener processes."""
    return _fixed_step_sde(stratonovich_heun_step, "sde_heun", odefun, sdefun, tspan, Y0, options, *pars)


__all__ = [
    "euler_step",
    "heun_step",
    "rk4_step",
    "ode_euler",
    "ode_heun",
    "ode_rk4",
    "ode_tsit5",
    "ode_dopri5",
    "dde_euler",
    "sde_euler",
    "sde_heun",
]
