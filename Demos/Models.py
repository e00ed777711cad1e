from __future__ import annotations

import numpy as np

import jax64  # noqa: F401
import jax.numpy as jnp

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
from DYNAX.Options import odeset, sdeset


def _rng(rng):
    return rng if rng is not None else np.random.default_rng()


#1 - Linear ODE

def linear_odefun(t, Y, a, b, c, d):
    """dY/dt = [[a, b], [c, d]] @ Y."""
    A = jnp.array([[a, b], [c, d]])
    return A @ Y


def LinearODE(rng=None):
    """Two coupled linear ODEs with random initial conditions in [-1, 1]."""
    rng = _rng(rng)
    return {
        "odefun": linear_odefun,
        "pardef": [
            {"name": "a", "value": 1.0},
            {"name": "b", "value": -1.0},
            {"name": "c", "value": 10.0},
            {"name": "d", "value": -2.0},
        ],
        "vardef": [
            {"name": "x", "value": 2.0 * rng.random() - 1.0},
            {"name": "y", "value": 2.0 * rng.random() - 1.0},
        ],
        "tspan": (0.0, 20.0),
        "odesolver": [ode_tsit5, ode_rk4, ode_euler],
        "odeoption": odeset(rtol=1e-6, initial_step=0.01),
        "panels": {"equations": ["dx/dt = a x + b y", "dy/dt = c x + d y"]},
    }


#2 - Lorenz

def lorenz_odefun(t, Y, sigma, r, b):
    x, y, z = Y[0], Y[1], Y[2]
    dx = sigma * (y - x)
    dy = r * x - y - x * z
    dz = x * y - b * z
    return jnp.stack([dx, dy, dz])


def Lorenz(rng=None):
    """The Lorenz equations; chaotic for sigma=10, r=28, b=8/3."""
    rng = _rng(rng)
    return {
        "odefun": lorenz_odefun,
        "pardef": [
            {"name": "sigma", "value": 10.0},
            {"name": "r", "value": 28.0},
            {"name": "b", "value": 8.0 / 3.0},
        ],
        "vardef": [
            {"name": "x", "value": 40.0 * rng.random() - 20.0, "lim": (-20.0, 20.0)},
            {"name": "y", "value": 60.0 * rng.random() - 30.0, "lim": (-30.0, 30.0)},
            {"name": "z", "value": 50.0 * rng.random(), "lim": (0.0, 50.0)},
        ],
        "tspan": (0.0, 20.0),
        "odesolver": [ode_dopri5, ode_tsit5, ode_rk4, ode_heun],
        "odeoption": odeset(rtol=1e-6, initial_step=0.01, n_points=2001),
        "panels": {"equations": ["dx/dt = sigma (y - x)", "dy/dt = r x - y - x z", "dz/dt = x y - b z"]},
    }


#3 - DDE with two constant delays

def ddedemo1_ddefun(t, Y, Z, a, b, c, d):
    """Wille and Baker equations; Z[:, j] is Y(t - lag_j)."""
    ylag1 = Z[:, 0]
    ylag2 = Z[:, 1]
    dy1 = a * ylag1[0]
    dy2 = b * ylag1[0] + c * ylag2[1]
    dy3 = d * Y[1]
    return jnp.stack([dy1, dy2, dy3])


def DDEdemo1():
    return {
        "ddefun": ddedemo1_ddefun,
        "pardef": [
            {"name": "a", "value": -1.0},
            {"name": "b", "value": 1.0},
            {"name": "c", "value": -1.0},
            {"name": "d", "value": 1.0},
        ],
        "lagdef": [
            {"name": "tau1", "value": 1.0},
            {"name": "tau2", "value": 0.2},
        ],
        "vardef": [
            {"name": "y1", "value": 1.0},
            {"name": "y2", "value": 1.0},
            {"name": "y3", "value": 1.0},
        ],
        "tspan": (0.0, 20.0),
        "ddesolver": [dde_euler],
        "ddeoption": {"initial_step": 0.01},
    }


#4 - Ornstein-Uhlenbeck processes

def ou_drift(t, Y, theta, mu, sigma):
    return theta * (mu - Y)


def ou_diffusion(t, Y, theta, mu, sigma):
    return sigma * jnp.eye(Y.shape[0])


def ou_mean(sol, theta, mu, sigma):
    """Auxiliary output: the mean over all processes."""
    return jnp.mean(sol.y, axis=0)[None, :]


def OrnsteinUhlenbeck(n=20, seed=None):
    """n independent Ornstein-Uhlenbeck processes dY = theta (mu - Y) dt + sigma dW."""
    return {
        "odefun": ou_drift,
        "sdefun": ou_diffusion,
        "auxfun": ou_mean,
        "pardef": [
            {"name": "theta", "value": 1.0},
            {"name": "mu", "value": 0.5},
            {"name": "sigma", "value": 0.5},
        ],
        "vardef": [{"name": "Y", "value": 5.0 * np.ones(n)}],
        "auxdef": [{"name": "Ymean", "value": 0.0}],
        "tspan": (0.0, 10.0),
        "sdesolver": [sde_euler, sde_heun],
        "sdeoption": sdeset(initial_step=0.01, noise_sources=n, seed=seed),
    }


#5 - Geometric Brownian motion

def gbm_drift(t, Y, mu, sigma):
    return mu * Y


def gbm_diffusion(t, Y, mu, sigma):
    return jnp.reshape(sigma * Y, (1, 1))


def BrownianMotion(seed=None):
    """Ito SDE of geometric Brownian motion dY = mu Y dt + sigma Y dW."""
    return {
        "odefun": gbm_drift,
        "sdefun": gbm_diffusion,
        "pardef": [
            {"name": "mu", "value": -0.1},
            {"name": "sigma", "value": 0.1},
        ],
        "vardef": [{"name": "Y", "value": 5.0}],
        "tspan": (0.0, 10.0),
        "sdesolver": [sde_euler],
        "sdeoption": sdeset(initial_step=0.01, noise_sources=1, seed=seed),
    }


DEMOS = {
    "LinearODE": LinearODE,
    "Lorenz": Lorenz,
    "DDEdemo1": DDEdemo1,
    "OrnsteinUhlenbeck": OrnsteinUhlenbeck,
    "BrownianMotion": BrownianMotion,
}

__all__ = list(DEMOS) + ["DEMOS"]
