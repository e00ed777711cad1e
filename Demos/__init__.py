from __future__ import annotations

"""Example systems (`Demos.Models`) and the script that runs them (`Demos.Main`)."""

import jax64  # noqa: F401

__all__: list[str] = []
