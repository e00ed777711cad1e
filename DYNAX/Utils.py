from __future__ import annotations

import math

import jax64  # noqa: F401
import jax.numpy as jnp

from DYNAX.Options import DEFAULT_N_POINTS, DEFAULT_STEP_FRACTION


def build_time_grid(tspan, step=None):
    """Uniform grid over `tspan` whose spacing is as close as possible to `step`.

    The number of steps is `round((tf - t0) / step)` (at least one), so both
    end points are always on the grid. A degenerate span gives a single point.
    """
    t0, tf = float(tspan[0]), float(tspan[1])
    span = tf - t0
    if span <= 0.0:
        return jnp.asarray([t0], dtype=jnp.float64)
    dt = float(step) if step is not None else span * DEFAULT_STEP_FRACTION
    if not math.isfinite(dt) or dt <= 0.0:
        raise ValueError(f"The step size must be a positive scalar (got {step}).")
    n_steps = max(1, int(round(span / dt)))
    return jnp.linspace(t0, tf, n_steps + 1, dtype=jnp.float64)


def build_sample_grid(tspan, n_points=None):
    """Output times of the adaptive solvers: `n_points` evenly spaced samples."""
    t0, tf = float(tspan[0]), float(tspan[1])
    if tf <= t0:
        return jnp.asarray([t0], dtype=jnp.float64)
    n = int(n_points) if n_points is not None else DEFAULT_N_POINTS
    return jnp.linspace(t0, tf, max(n, 2), dtype=jnp.float64)


def build_dt_sequence(time_grid):
    """Step sizes between consecutive grid points (length T-1, never negative)."""
    grid = jnp.asarray(time_grid, dtype=jnp.float64)
    return jnp.maximum(jnp.diff(grid), 0.0)


def as_column(values, n):
    """Reshape a right-hand-side result to a flat vector of length `n`."""
    return jnp.reshape(jnp.asarray(values, dtype=jnp.float64), (n,))


__all__ = ["build_time_grid", "build_sample_grid", "build_dt_sequence", "as_column"]
