"""Solver families and the solvers a system declares for them."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import jax64  # noqa: F401

from DYNAX.Errors import SchemaError, UnsupportedSolverError

FAMILIES = ("odesolver", "ddesolver", "sdesolver")
UNSUPPORTED = "unsupported"

# Right-hand sides a family is invoked with.
FAMILY_FUNCTIONS = {
    "odesolver": ("odefun",),
    "ddesolver": ("ddefun",),
    "sdesolver": ("odefun", "sdefun"),
}


@dataclass(frozen=True)
class SolverInfo:
    name: str
    solver: Callable
    family: str


def solver_name(solver):
    return getattr(solver, "__name__", None) or repr(solver)


def classify(sys, solver):
    """Family of `solver` in `sys`, by identity; 'unsupported' when not declared."""
    for family in FAMILIES:
        if any(candidate is solver for candidate in getattr(sys, family)):
            return family
    return UNSUPPORTED


def enumerate_solvers(sys):
    """All declared solvers: ode first, then dde, then sde, each in declaration order."""
    return [
        SolverInfo(name=solver_name(solver), solver=solver, family=family)
        for family in FAMILIES
        for solver in getattr(sys, family)
    ]


def default_solver(sys):
    """-> SolverInfo | None. First enumerated solver."""
    solvers = enumerate_solvers(sys)
    return solvers[0] if solvers else None


def resolve_solver(sys, solver=None, family=None):
    """Pick the solver and family for a solve call.

    Parameters
    ----------
    sys : System
        Validated system description.
    solver : Callable | None, optional
        Requested solver; defaults to the first solver of `family`, or to
        `default_solver(sys)` when no family is forced either.
    family : str | None, optional
        One of FAMILIES. When omitted it is derived with `classify`.

    Returns
    ------
    tuple[Callable, str]
        `(solver, family)`.

    Raises
    ------
    ValueError
        `family` is not a known family name.
    UnsupportedSolverError
        The solver cannot be classified, or no solver is available.
    SchemaError
        The family needs a right-hand side that the system does not declare.
    """
    if family is not None and family not in FAMILIES:
        raise ValueError(f"Unknown solver family '{family}'. Expected one of {FAMILIES}.")

    if solver is None:
        if family is not None:
            declared = getattr(sys, family)
            if not declared:
                raise UnsupportedSolverError(f"sys.{family} declares no solvers", field=family)
            solver = declared[0]
        else:
            info = default_solver(sys)
            if info is None:
                raise UnsupportedSolverError("sys declares no solvers", field="solver")
            solver, family = info.solver, info.family

    if family is None:
        family = classify(sys, solver)
        if family == UNSUPPORTED:
            raise UnsupportedSolverError(
                f"Unsupported solver '{solver_name(solver)}': it is not declared in "
                "sys.odesolver, sys.ddesolver or sys.sdesolver",
                field="solver",
            )

    for name in FAMILY_FUNCTIONS[family]:
        if getattr(sys, name) is None:
            raise SchemaError(f"A {family} requires sys.{name}, which is undefined", field=name)
    return solver, family


__all__ = [
    "FAMILIES",
    "UNSUPPORTED",
    "SolverInfo",
    "solver_name",
    "classify",
    "enumerate_solvers",
    "default_solver",
    "resolve_solver",
]
