from __future__ import annotations

import math

import jax64  # noqa: F401

# Time span used when a system does not declare one.
DEFAULT_TSPAN = (0.0, 1.0)

# Fixed-step solvers use (tf - t0) * DEFAULT_STEP_FRACTION when no initial_step is given.
DEFAULT_STEP_FRACTION = 0.01

# Samples returned by the adaptive solvers when n_points is not given.
DEFAULT_N_POINTS = 201

ODE_OPTIONS = frozenset({"initial_step", "rtol", "atol", "max_steps", "n_points"})
DDE_OPTIONS = frozenset({"initial_step"})
SDE_OPTIONS = frozenset({"initial_step", "noise_sources", "randn", "seed"})


def _positive_scalar(name, value):
    try:
        val = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} must be a positive scalar.") from exc
    if not math.isfinite(val) or val <= 0.0:
        raise ValueError(f"{name} must be a positive scalar.")
    return val


def _build(allowed, overrides):
    options = {}
    for name, value in overrides.items():
        if name not in allowed:
            raise ValueError(f"Unrecognized property name '{name}'.")
        if value is None:
            continue
        if name in ("initial_step", "rtol", "atol"):
            value = _positive_scalar(name, value)
        elif name in ("max_steps", "n_points", "noise_sources"):
            if isinstance(value, bool) or int(value) != value or int(value) < 1:
                raise ValueError(f"{name} must be a positive integer.")
            value = int(value)
        options[name] = value
    return options


def odeset(**overrides):
    """-> dict. Options for ODE solvers (initial_step, rtol, atol, max_steps, n_points)."""
    return _build(ODE_OPTIONS, overrides)


def ddeset(**overrides):
    """-> dict. Options for DDE solvers (initial_step)."""
    return _build(DDE_OPTIONS, overrides)


def sdeset(**overrides):
    """-> dict. Options for SDE solvers (initial_step, noise_sources, randn, seed)."""
    return _build(SDE_OPTIONS, overrides)


# Builder that checks each option field of a system description.
OPTION_BUILDERS = {"odeoption": odeset, "ddeoption": ddeset, "sdeoption": sdeset}


def option_value(options, name, default=None):
    """Read an option, treating a stored None like a missing key."""
    value = options.get(name) if options else None
    return default if value is None else value


__all__ = [
    "DEFAULT_TSPAN",
    "DEFAULT_STEP_FRACTION",
    "DEFAULT_N_POINTS",
    "ODE_OPTIONS",
    "DDE_OPTIONS",
    "SDE_OPTIONS",
    "odeset",
    "ddeset",
    "sdeset",
    "OPTION_BUILDERS",
    "option_value",
]
