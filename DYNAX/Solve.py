from __future__ import annotations

from collections.abc import Mapping

import jax64  # noqa: F401
import jax.numpy as jnp

from DYNAX.Codec import flatten, unflatten
from DYNAX.Errors import SchemaError
from DYNAX.Models import System
from DYNAX.Solution import Solution, as_solution
from DYNAX.Solvers import resolve_solver, solver_name
from DYNAX.SysCheck import validate


def _as_system(sys):
    if isinstance(sys, System):
        return sys
    if isinstance(sys, Mapping):
        return validate(sys)
    raise SchemaError("sys must be a mapping or a validated System", field=None)


def _as_tspan(sys, tspan):
    if tspan is None:
        return sys.tspan
    t0, tf = (float(v) for v in tspan)
    if not t0 <= tf:
        raise SchemaError(f"tspan must satisfy t0 <= tf (got [{t0}, {tf}])", field="tspan")
    return (t0, tf)


def solve(sys, tspan=None, solver=None, family=None, *, n_outputs=1):
    """Solve a system with one of its declared solvers.

    Parameters
    ----------
    sys : System | Mapping
        System description; a raw mapping is validated first.
    tspan : tuple[float, float] | None, optional
        Integration interval; defaults to `sys.tspan`.
    solver : Callable | None, optional
        Solver to use; defaults to the first enumerated solver (or the first
        solver of `family`).
    family : str | None, optional
        Force the family ('odesolver', 'ddesolver' or 'sdesolver') instead of
        classifying `solver`.
    n_outputs : int, optional
        Number of requested outputs. Only 1 is supported: the secondary
        output (noise samples) now lives in `Solution.dW`.

    Returns
    ------
    Solution
        Trajectory, with `aux`/`aux_error` set when the system declares an
        auxiliary function. `sys` is never modified.
    """
    if n_outputs > 1:
        raise ValueError("The second output of solve is obsolete. Use sol.dW for the noise increments.")
    sys = _as_system(sys)
    solver, family = resolve_solver(sys, solver, family)
    tspan = _as_tspan(sys, tspan)

    Y0 = flatten(sys.vardef)
    pars = sys.parameters
    if family == "odesolver":
        result = solver(sys.odefun, tspan, Y0, sys.odeoption, *pars)
    elif family == "ddesolver":
        lags = flatten(sys.lagdef)
        result = solver(sys.ddefun, lags, Y0, tspan, sys.ddeoption, *pars)
    else:
        result = solver(sys.odefun, sys.sdefun, tspan, Y0, sys.sdeoption, *pars)

    sol = as_solution(result, solver=solver_name(solver), n=int(Y0.size))
    if sys.auxfun is not None:
        sol = auxiliary(sys, sol)
    return sol


def auxiliary(sys, sol):
    """Attach `auxfun(sol, *pars)` to `sol` as `sol.aux`.

    A failing auxiliary function is reported through `sol.aux_error`; the
    primary trajectory is returned unchanged either way.
    """
    if sys.auxfun is None:
        return sol
    try:
        Yaux = jnp.asarray(sys.auxfun(sol, *sys.parameters), dtype=jnp.float64)
        if Yaux.ndim == 1:
            Yaux = Yaux[None, :]
        naux = sys.auxdef.numel if sys.auxdef is not None else Yaux.shape[0]
        if Yaux.shape != (naux, sol.n_samples):
            raise ValueError(
                f"sys.auxfun returned shape {tuple(Yaux.shape)}, expected ({naux}, {sol.n_samples})"
            )
    except Exception as exc:  # reported on the Solution, not raised
        return sol.copy(aux=None, aux_error=f"{type(exc).__name__}: {exc}")
    aux = Solution(x=sol.x, y=Yaux, solver=sol.solver)
    return sol.copy(aux=aux, aux_error=None)


def evolve(sys, reps=1, tspan=None, solver=None, family=None):
    """Solve `reps` times, restarting each run from the final state of the previous one.

    Returns `(sys, sol)`: the system whose vardef holds the last final state,
    and the last Solution.
    """
    if int(reps) < 1:
        raise ValueError("reps must be a positive integer.")
    sys = _as_system(sys)
    sol = None
    for _ in range(int(reps)):
        sol = solve(sys, tspan, solver, family)
        sys = sys.copy(vardef=unflatten(sys.vardef, sol.final_state()))
    return sys, sol


def print_report(sol, header="Solve"):
    """Print a short text report of a Solution.

    Parameters
    ----------
    sol : Solution
        Result of `solve`.
    header : str, optional
        Title printed at the top of the report.
    """
    lines = [header + ":"]
    lines.append(f"- solver: {sol.solver}")
    lines.append(f"- samples: {sol.n_samples} over [{float(sol.x[0])}, {float(sol.x[-1])}]")
    for key, value in (sol.stats or {}).items():
        lines.append(f"- {key}: {value}")
    if sol.aux_error is not None:
        lines.append(f"- auxfun failed: {sol.aux_error}")
    print("\n".join(lines))


__all__ = ["solve", "auxiliary", "evolve", "print_report"]
