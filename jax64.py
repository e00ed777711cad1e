from __future__ import annotations

# State vectors, parameters and time grids are all float64.
from jax import config as _jax_config

_jax_config.update("jax_enable_x64", True)
