from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any

import numpy as np
import pandas as pd

import jax64  # noqa: F401
import jax.numpy as jnp

from DYNAX.Codec import element_labels
from DYNAX.Errors import SizeMismatchError


@dataclass(frozen=True, eq=False)
class Solution:
    """Trajectory returned by a solver.

    Attributes
    ---------
    x : jnp.ndarray
        Sample times (T,), ascending.
    y : jnp.ndarray
        States (n, T); row i is element i of the flat state vector.
    solver : str
        Name of the solver that produced the trajectory.
    stats : dict[str, Any]
        Solver statistics (number of steps, step size, ...).
    dW : jnp.ndarray | None
        Noise increments (m, T-1) used by SDE solvers.
    aux : Solution | None
        Auxiliary trajectory on the same `x`, when the system declares one.
    aux_error : str | None
        Message of the auxiliary function failure, if any.
    """

    x: jnp.ndarray
    y: jnp.ndarray
    solver: str = ""
    stats: dict[str, Any] = field(default_factory=dict)
    dW: jnp.ndarray | None = None
    aux: "Solution | None" = None
    aux_error: str | None = None

    def copy(self, **overrides):
        """Create an immutable copy with some fields overridden."""
        return replace(self, **overrides)

    @property
    def n_states(self):
        return int(self.y.shape[0])

    @property
    def n_samples(self):
        return int(self.x.shape[0])

    def final_state(self):
        """-> jnp.ndarray (n,). State at the last sample time."""
        return self.y[:, -1]

    def eval(self, t, rows=None):
        """Linearly interpolate the trajectory at time(s) `t`.

        Parameters
        ----------
        t : float | array-like
            Query time(s); values outside `x` take the end samples.
        rows : Sequence[int] | range | None, optional
            Rows of `y` to interpolate (all rows by default).

        Returns
        ------
        jnp.ndarray
            (len(rows),) for a scalar `t`, (len(rows), len(t)) otherwise.
        """
        t_arr = jnp.asarray(t, dtype=jnp.float64)
        y = self.y if rows is None else self.y[jnp.asarray(list(rows), dtype=jnp.int32)]
        if self.n_samples == 1:
            return y[:, 0] if t_arr.ndim == 0 else jnp.tile(y[:, :1], (1, t_arr.size))
        flat_t = jnp.ravel(t_arr)
        out = jnp.stack([jnp.interp(flat_t, self.x, row) for row in y])
        return out[:, 0] if t_arr.ndim == 0 else out

    def transient(self, tval):
        """-> bool mask (T,). Samples at or after the transient cutoff `tval`."""
        return self.x >= float(tval)

    def to_frame(self, defs=None):
        """Export to a pandas DataFrame indexed by time.

        Columns are the element labels of `defs` (the vardef or auxdef the
        rows belong to), or `y0`, `y1`, ... when no collection is given.
        """
        if defs is None:
            columns = [f"y{i}" for i in range(self.n_states)]
        else:
            columns = element_labels(defs)
            if len(columns) != self.n_states:
                raise SizeMismatchError(
                    f"Solution has {self.n_states} rows but {defs.kind or 'definitions'} has {len(columns)} elements",
                    field=defs.kind or None,
                )
        frame = pd.DataFrame(np.asarray(self.y).T, columns=columns)
        frame.index = pd.Index(np.asarray(self.x), name="t")
        return frame


def as_solution(result, *, solver="", n=None):
    """Normalise whatever a solver returned into a Solution.

    Accepted shapes: a Solution, a mapping with `x` and `y` (plus the optional
    Solution fields), or a `(times, states)` pair. States stored as (T, n) are
    transposed when that is the only reading consistent with `n`.
    """
    if isinstance(result, Solution):
        sol = result
    elif isinstance(result, Mapping):
        if "x" not in result or "y" not in result:
            raise ValueError("Solver result mapping must contain 'x' and 'y'.")
        extras = {k: result[k] for k in ("stats", "dW") if result.get(k) is not None}
        sol = Solution(x=result["x"], y=result["y"], solver=str(result.get("solver") or solver), **extras)
    elif isinstance(result, (tuple, list)) and len(result) == 2:
        sol = Solution(x=result[0], y=result[1], solver=solver)
    else:
        raise ValueError(f"Unrecognised solver result of type {type(result).__name__}.")

    x = jnp.ravel(jnp.asarray(sol.x, dtype=jnp.float64))
    y = jnp.asarray(sol.y, dtype=jnp.float64)
    if y.ndim == 1:
        y = y[None, :] if y.shape[0] == x.shape[0] else y[:, None]
    if n is not None and y.shape[0] != n and y.shape[1] == n and y.shape[0] == x.shape[0]:
        y = y.T
    if y.shape[1] != x.shape[0]:
        raise SizeMismatchError(
            f"Solver returned {y.shape[1]} state samples for {x.shape[0]} time points", field="y"
        )
    if n is not None and y.shape[0] != n:
        raise SizeMismatchError(
            f"Solver returned {y.shape[0]} state rows but the system has {n} state variables", field="vardef"
        )
    return sol.copy(x=x, y=y, solver=sol.solver or solver)


__all__ = ["Solution", "as_solution"]
