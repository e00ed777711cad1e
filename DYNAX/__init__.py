from __future__ import annotations

"""DYNAX: JAX runtime for declaratively described dynamical systems.

Concrete modules are organized by role:
- `DYNAX.Values`      : named definitions (parameters, variables, lags) and bounds;
- `DYNAX.Codec`       : flat solver vectors <-> named definitions;
- `DYNAX.Models`      : validated system record and its accessors;
- `DYNAX.SysCheck`    : validation and diagnosis of system descriptions;
- `DYNAX.Solvers`     : solver families and declared solvers;
- `DYNAX.Solve`       : solve orchestration, auxiliary outputs, evolve;
- `DYNAX.Integrators` : reference ODE/DDE/SDE solvers;
- `DYNAX.Session`     : live edits with the halt flag.

Example systems and scripts live in `Demos`.
"""

import jax64  # noqa: F401

__all__: list[str] = []
