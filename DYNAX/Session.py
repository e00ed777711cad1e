"""Live editing of a system.

A Session owns the current System, the selected solver and the latest
Solution. Every edit builds a new System and, unless the session is halted,
solves it before anything is committed, so a failing edit leaves the session
exactly as it was.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable

import numpy as np

import jax64  # noqa: F401

from DYNAX import Models
from DYNAX.Errors import UserInputError
from DYNAX.Models import System
from DYNAX.Solution import Solution
from DYNAX.Solve import evolve, print_report, solve
from DYNAX.Solvers import resolve_solver
from DYNAX.SysCheck import validate
from DYNAX.Values import set_bounds

EDITABLE_DEFINITIONS = ("pardef", "vardef", "lagdef")


def parse_number(text):
    """Parse numeric text typed by a user.

    Accepts a scalar ("0.5"), a vector ("1 2 3", "[1, 2, 3]") or a matrix with
    rows separated by ';' ("1 2; 3 4"). Raises UserInputError otherwise.
    """
    if not isinstance(text, str):
        raise UserInputError(f"Expected text, got {type(text).__name__}")
    body = text.strip().strip("[]").strip()
    if not body:
        raise UserInputError(f"Invalid number '{text}'")
    rows = [row for row in body.split(";") if row.strip()]
    try:
        values = [[float(tok) for tok in re.split(r"[,\s]+", row.strip()) if tok] for row in rows]
    except ValueError as exc:
        raise UserInputError(f"Invalid number '{text}'") from exc
    if any(len(row) != len(values[0]) for row in values):
        raise UserInputError(f"Rows of '{text}' have different lengths")
    arr = np.asarray(values, dtype=np.float64)
    if arr.size == 1:
        return float(arr.ravel()[0])
    return arr.ravel() if arr.shape[0] == 1 else arr


@dataclass
class Session:
    sys: System
    solver: Callable | None = None
    family: str | None = None
    halt: bool = False
    verbose: bool = False
    sol: Solution | None = None
    stale: bool = True

    @classmethod
    def open(cls, raw, *, solver=None, family=None, halt=False, verbose=False):
        """Validate `raw`, select a solver and solve unless `halt` is set."""
        sys = validate(raw)
        solver, family = resolve_solver(sys, solver, family)
        session = cls(sys=sys, solver=solver, family=family, halt=halt, verbose=verbose)
        if not halt:
            session.recompute()
        return session

    # ---------- Solving ----------

    def _commit(self, sys, solver=None, family=None):
        solver = solver or self.solver
        family = family or self.family
        if self.halt:
            self.sys, self.solver, self.family = sys, solver, family
            self.stale = True
            return self.sol
        sol = solve(sys, solver=solver, family=family)
        self.sys, self.solver, self.family, self.sol = sys, solver, family, sol
        self.stale = False
        if self.verbose:
            print_report(sol, header="Session")
        return sol

    def recompute(self):
        """Solve the current System now, regardless of `halt`."""
        sol = solve(self.sys, solver=self.solver, family=self.family)
        self.sol = sol
        self.stale = False
        if self.verbose:
            print_report(sol, header="Session")
        return sol

    def pause(self):
        self.halt = True

    def resume(self):
        """Clear the halt flag and bring the Solution up to date."""
        self.halt = False
        return self.recompute()

    def evolve(self, reps=1):
        """Restart from the final state `reps` times and keep the result."""
        sys, sol = evolve(self.sys, reps, solver=self.solver, family=self.family)
        self.sys, self.sol = sys, sol
        self.stale = False
        if self.verbose:
            print_report(sol, header="Session (evolve)")
        return sol

    # ---------- Edits ----------

    def set_par(self, name, value):
        return self._commit(Models.set_par(self.sys, name, value))

    def set_var(self, name, value):
        return self._commit(Models.set_var(self.sys, name, value))

    def set_lag(self, name, value):
        return self._commit(Models.set_lag(self.sys, name, value))

    def enter(self, field, name, text):
        """Apply numeric text typed for `field` ('pardef', 'vardef' or 'lagdef')."""
        if field not in EDITABLE_DEFINITIONS:
            raise ValueError(f"Field '{field}' is not editable. Expected one of {EDITABLE_DEFINITIONS}.")
        value = parse_number(text)
        setter = {"pardef": self.set_par, "vardef": self.set_var, "lagdef": self.set_lag}[field]
        return setter(name, value)

    def set_bounds(self, field, name, lo=None, hi=None):
        if field not in Models.DEFINITION_FIELDS or getattr(self.sys, field) is None:
            raise ValueError(f"sys.{field} is not a defined collection.")
        defs = set_bounds(getattr(self.sys, field), name, lo, hi)
        return self._commit(self.sys.copy(**{field: defs}))

    def set_tspan(self, t0, tf):
        return self._commit(Models.set_tspan(self.sys, t0, tf))

    def set_tval(self, tval):
        return self._commit(Models.set_tval(self.sys, tval))

    def select_solver(self, solver, family=None):
        solver, family = resolve_solver(self.sys, solver, family)
        return self._commit(self.sys, solver, family)

    def set_option(self, option_field, name, value):
        sys = validate(Models.set_option(self.sys, option_field, name, value))
        return self._commit(sys)

    # ---------- Views ----------

    def transient(self):
        """Mask of the current Solution samples at or after `sys.tval`."""
        if self.sol is None:
            return None
        return self.sol.transient(self.sys.tval)


__all__ = ["Session", "parse_number", "EDITABLE_DEFINITIONS"]
