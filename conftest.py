"""Root conftest.py: puts the project root on sys.path and provides small systems."""

import os
import sys

_PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
if _PROJECT_ROOT not in sys.path:
    sys.path.insert(0, _PROJECT_ROOT)

import jax64  # noqa: F401,E402
import jax.numpy as jnp  # noqa: E402
import pytest  # noqa: E402

from DYNAX.Integrators import dde_euler, ode_euler, ode_rk4, sde_euler  # noqa: E402


def growth_odefun(t, Y, k):
    return k * Y


def decay_ddefun(t, Y, Z, a):
    return a * Z[:, 0]


def zero_drift(t, Y, sigma):
    return jnp.zeros_like(Y)


def additive_noise(t, Y, sigma):
    return sigma * jnp.eye(Y.shape[0])


@pytest.fixture
def growth_raw():
    """dy/dt = k*y with k=1, y(0)=1 on [0, 2]."""
    return {
        "pardef": [{"name": "k", "value": 1.0}],
        "vardef": [{"name": "y", "value": 1.0}],
        "tspan": (0.0, 2.0),
        "odefun": growth_odefun,
        "odesolver": [ode_rk4, ode_euler],
        "odeoption": {"initial_step": 0.01},
    }


@pytest.fixture
def dde_raw():
    return {
        "pardef": [{"name": "a", "value": -1.0}],
        "vardef": [{"name": "y", "value": 1.0}],
        "lagdef": [{"name": "tau", "value": 1.0}],
        "tspan": (0.0, 2.0),
        "ddefun": decay_ddefun,
        "ddesolver": [dde_euler],
        "ddeoption": {"initial_step": 0.01},
    }


@pytest.fixture
def sde_raw():
    return {
        "pardef": [{"name": "sigma", "value": 1.0}],
        "vardef": [{"name": "Y", "value": [0.0, 0.0]}],
        "tspan": (0.0, 1.0),
        "odefun": zero_drift,
        "sdefun": additive_noise,
        "sdesolver": [sde_euler],
        "sdeoption": {"initial_step": 0.1, "noise_sources": 2, "seed": 0},
    }
