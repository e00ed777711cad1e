from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Callable

import jax64  # noqa: F401
import jax.numpy as jnp

from DYNAX.Codec import rows_of
from DYNAX.Errors import SchemaError
from DYNAX.Options import DEFAULT_TSPAN
from DYNAX.Values import Definitions, get_value, set_value

DEFINITION_FIELDS = ("pardef", "vardef", "lagdef", "auxdef")
FUNCTION_FIELDS = ("odefun", "ddefun", "sdefun", "auxfun")
SOLVER_FIELDS = ("odesolver", "ddesolver", "sdesolver")
OPTION_FIELDS = ("odeoption", "ddeoption", "sdeoption")


@dataclass(frozen=True, eq=False)
class System:
    """Validated system description.

    This container gathers:
    - the definition collections (parameters, variables, lags, auxiliary outputs),
    - the right-hand-side functions `odefun(t, Y, *pars)`,
      `ddefun(t, Y, Z, *pars)` and the diffusion `sdefun(t, Y, *pars)`,
    - the auxiliary function `auxfun(sol, *pars)`,
    - the declared solvers per family and their option mappings,
    - the time span and the transient cutoff `tval`.

    Instances are produced by `SysCheck.validate` and edited with `copy` or the
    accessors below; nothing mutates a System in place.
    """

    pardef: Definitions
    vardef: Definitions
    tspan: tuple[float, float] = DEFAULT_TSPAN
    tval: float = DEFAULT_TSPAN[0]
    lagdef: Definitions | None = None
    auxdef: Definitions | None = None
    odefun: Callable | None = None
    ddefun: Callable | None = None
    sdefun: Callable | None = None
    auxfun: Callable | None = None
    odesolver: tuple[Callable, ...] = ()
    ddesolver: tuple[Callable, ...] = ()
    sdesolver: tuple[Callable, ...] = ()
    odeoption: dict[str, Any] = field(default_factory=dict)
    ddeoption: dict[str, Any] = field(default_factory=dict)
    sdeoption: dict[str, Any] = field(default_factory=dict)
    panels: dict[str, Any] = field(default_factory=dict)

    def copy(self, **overrides):
        """Create an immutable copy with some fields overridden."""
        return replace(self, **overrides)

    @property
    def kind(self):
        """'dde', 'sde' or 'ode' depending on the declared right-hand sides."""
        if self.ddefun is not None:
            return "dde"
        if self.sdefun is not None:
            return "sde"
        return "ode"

    @property
    def parameters(self):
        """Parameter values in declaration order, as passed to the rhs functions."""
        return tuple(entry.value for entry in self.pardef)

    def as_dict(self):
        """-> dict. Raw mapping form; `validate(sys.as_dict())` rebuilds an equal System."""
        raw: dict[str, Any] = {
            "pardef": self.pardef.as_records(),
            "vardef": self.vardef.as_records(),
            "tspan": self.tspan,
            "tval": self.tval,
            "odeoption": dict(self.odeoption),
            "ddeoption": dict(self.ddeoption),
            "sdeoption": dict(self.sdeoption),
            "panels": dict(self.panels),
        }
        for name in ("lagdef", "auxdef"):
            defs = getattr(self, name)
            if defs is not None:
                raw[name] = defs.as_records()
        for name in FUNCTION_FIELDS:
            fun = getattr(self, name)
            if fun is not None:
                raw[name] = fun
        for name in SOLVER_FIELDS:
            solvers = getattr(self, name)
            if solvers:
                raw[name] = list(solvers)
        return raw


# ------------------------------------------------------------------ #
# Named accessors
# ------------------------------------------------------------------ #

def get_par(sys, name):
    """sys (System), name (str) -> (value, index). (None, None) when unknown."""
    return get_value(sys.pardef, name)


def set_par(sys, name, value):
    """sys (System), name (str), value -> System. Raises NotFoundError when unknown."""
    return sys.copy(pardef=set_value(sys.pardef, name, value))


def get_var(sys, name):
    """Return `(value, index, rows)` of a state variable.

    `rows` is the range of rows of the variable in the solver vector (and in
    `Solution.y`). All three are None when the name is unknown.
    """
    value, idx = get_value(sys.vardef, name)
    if idx is None:
        return None, None, None
    return value, idx, rows_of(sys.vardef, name)


def set_var(sys, name, value):
    """Set the initial condition of a state variable."""
    return sys.copy(vardef=set_value(sys.vardef, name, value))


def _lagdef(sys):
    if sys.lagdef is None:
        raise SchemaError("No lag parameters are defined in sys", field="lagdef")
    return sys.lagdef


def get_lag(sys, name):
    return get_value(_lagdef(sys), name)


def set_lag(sys, name, value):
    return sys.copy(lagdef=set_value(_lagdef(sys), name, value))


def set_tspan(sys, t0, tf):
    """Change the time span; the transient cutoff `tval` is pulled inside it."""
    t0 = float(t0)
    tf = float(tf)
    if not t0 <= tf:
        raise SchemaError(f"sys.tspan must satisfy t0 <= tf (got [{t0}, {tf}])", field="tspan")
    tval = min(max(sys.tval, t0), tf)
    return sys.copy(tspan=(t0, tf), tval=tval)


def set_tval(sys, tval):
    """Move the transient cutoff, clamped to the time span."""
    t0, tf = sys.tspan
    return sys.copy(tval=float(jnp.clip(float(tval), t0, tf)))


def set_option(sys, option_field, name, value):
    """Return a copy of `sys` with `sys.<option_field>[name] = value`."""
    if option_field not in OPTION_FIELDS:
        raise SchemaError(f"Unknown option field '{option_field}'", field=option_field)
    options = dict(getattr(sys, option_field))
    options[name] = value
    return sys.copy(**{option_field: options})


__all__ = [
    "DEFINITION_FIELDS",
    "FUNCTION_FIELDS",
    "SOLVER_FIELDS",
    "OPTION_FIELDS",
    "System",
    "get_par",
    "set_par",
    "get_var",
    "set_var",
    "get_lag",
    "set_lag",
    "set_tspan",
    "set_tval",
    "set_option",
]
