"""Validation of user-supplied system descriptions.

`validate` turns a raw mapping (the "sys" description written by a user) into
a `System`, filling defaults and rejecting anything malformed or obsolete with
a `SchemaError` that names the offending field. `check_functions` is the
optional diagnostic pass that calls every declared function once with the
default initial conditions.
"""

from __future__ import annotations

import numbers
from collections.abc import Mapping

import numpy as np

import jax64  # noqa: F401
import jax.numpy as jnp

from DYNAX.Codec import flatten
from DYNAX.Errors import SchemaError
from DYNAX.Models import (
    DEFINITION_FIELDS,
    FUNCTION_FIELDS,
    OPTION_FIELDS,
    SOLVER_FIELDS,
    System,
)
from DYNAX.Options import DEFAULT_TSPAN, OPTION_BUILDERS
from DYNAX.Solution import Solution
from DYNAX.Values import Definitions, Entry

OBSOLETE_FIELDS = {
    "gui": "sys.gui is obsolete. It was renamed sys.panels",
    "solver": "sys.solver is obsolete. It was split into sys.odesolver, sys.ddesolver and sys.sdesolver",
    "odeopt": "sys.odeopt is obsolete. It was renamed sys.odeoption",
    "ddeopt": "sys.ddeopt is obsolete. It was renamed sys.ddeoption",
    "sdeopt": "sys.sdeopt is obsolete. It was renamed sys.sdeoption",
}

KNOWN_FIELDS = frozenset(
    DEFINITION_FIELDS + FUNCTION_FIELDS + SOLVER_FIELDS + OPTION_FIELDS + ("tspan", "tval", "panels")
)

ENTRY_KEYS = frozenset({"name", "value", "lim"})

# Number of faux time samples handed to auxfun during diagnosis.
AUX_TRIAL_SAMPLES = 11


# ------------------------------------------------------------------ #
# Structural checks
# ------------------------------------------------------------------ #

def _check_obsolete(raw):
    for name, message in OBSOLETE_FIELDS.items():
        if name in raw:
            raise SchemaError(f"{message} and is no longer supported", field=name)
    for name in DEFINITION_FIELDS:
        defs = raw.get(name)
        if isinstance(defs, (list, tuple)) and any(isinstance(rec, (list, tuple)) for rec in defs):
            raise SchemaError(
                f"sys.{name} as a list of [name, value] pairs is obsolete and is no longer supported. "
                f"Use a list of {{'name': ..., 'value': ...}} mappings",
                field=name,
            )
    if raw.get("auxfun") is not None and raw.get("auxdef") is None:
        raise SchemaError(
            "sys.auxfun without sys.auxdef follows the obsolete auxfun(t, Y, *pars) contract and is no "
            "longer supported. Declare sys.auxdef and write auxfun(sol, *pars)",
            field="auxfun",
        )


def _check_fields(raw):
    for name in raw:
        if name not in KNOWN_FIELDS:
            raise SchemaError(f"Unknown field sys.{name}", field=name)


def _is_real_numeric(arr):
    return arr.dtype.kind in "iuf"


def _check_entry(field_name, idx, rec):
    where = f"sys.{field_name}[{idx}]"
    if isinstance(rec, Entry):
        rec = rec.as_record()
    if not isinstance(rec, Mapping):
        raise SchemaError(f"{where} must be a mapping with 'name' and 'value'", field=field_name)
    unknown = sorted(set(rec) - ENTRY_KEYS)
    if unknown:
        raise SchemaError(f"{where} has unknown keys {unknown}", field=field_name)
    if "name" not in rec:
        raise SchemaError(f"{where}.name is undefined", field=field_name)
    if not isinstance(rec["name"], str):
        raise SchemaError(f"{where}.name must be a string", field=field_name)
    if "value" not in rec:
        raise SchemaError(f"{where}.value is undefined", field=rec["name"])
    try:
        arr = np.asarray(rec["value"])
    except (TypeError, ValueError) as exc:
        raise SchemaError(f"{where}.value must be numeric", field=rec["name"]) from exc
    if arr.size == 0 or not _is_real_numeric(arr):
        raise SchemaError(f"{where}.value must be numeric", field=rec["name"])
    lim = rec.get("lim")
    if lim is not None:
        try:
            lim_arr = np.asarray(lim, dtype=np.float64)
        except (TypeError, ValueError) as exc:
            raise SchemaError(f"{where}.lim must be a numeric [min, max] pair", field=rec["name"]) from exc
        if lim_arr.shape != (2,):
            raise SchemaError(f"{where}.lim must be a numeric [min, max] pair", field=rec["name"])
        if not lim_arr[0] <= lim_arr[1]:
            raise SchemaError(f"{where}.lim must satisfy min <= max", field=rec["name"])
        lim = (float(lim_arr[0]), float(lim_arr[1]))
    return {"name": rec["name"], "value": arr, "lim": lim}


def _check_definitions(raw, field_name, required):
    defs = raw.get(field_name)
    if defs is None:
        if required:
            raise SchemaError(f"sys.{field_name} is undefined", field=field_name)
        return None
    if isinstance(defs, Definitions):
        records = defs.as_records()
    elif isinstance(defs, (list, tuple)):
        records = list(defs)
    else:
        raise SchemaError(f"sys.{field_name} must be a sequence of entries", field=field_name)

    clean = []
    seen = set()
    for idx, rec in enumerate(records):
        rec = _check_entry(field_name, idx, rec)
        if rec["name"] in seen:
            raise SchemaError(f"sys.{field_name} contains duplicate name '{rec['name']}'", field=rec["name"])
        seen.add(rec["name"])
        clean.append(rec)
    return Definitions.from_records(clean, kind=field_name)


def _check_tspan(raw):
    tspan = raw.get("tspan")
    if tspan is None:
        tspan = DEFAULT_TSPAN
    try:
        arr = np.asarray(tspan, dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise SchemaError("sys.tspan must be numeric", field="tspan") from exc
    if arr.shape != (2,):
        raise SchemaError("sys.tspan must hold exactly two values [t0, tf]", field="tspan")
    t0, tf = float(arr[0]), float(arr[1])
    if not t0 <= tf:
        raise SchemaError(f"sys.tspan must satisfy t0 <= tf (got [{t0}, {tf}])", field="tspan")

    tval = raw.get("tval")
    if tval is None:
        tval = t0
    try:
        tval = float(tval)
    except (TypeError, ValueError) as exc:
        raise SchemaError("sys.tval must be a numeric scalar", field="tval") from exc
    if not t0 <= tval <= tf:
        raise SchemaError(f"sys.tval must lie within sys.tspan [{t0}, {tf}]", field="tval")
    return (t0, tf), tval


def _check_function(raw, name):
    fun = raw.get(name)
    if fun is not None and not callable(fun):
        raise SchemaError(f"sys.{name} must be a function", field=name)
    return fun


def _check_solvers(raw, name):
    solvers = raw.get(name)
    if solvers is None:
        return ()
    if callable(solvers) or not isinstance(solvers, (list, tuple)):
        raise SchemaError(f"sys.{name} must be a sequence of solver functions", field=name)
    for idx, solver in enumerate(solvers):
        if not callable(solver):
            raise SchemaError(f"sys.{name}[{idx}] must be a function", field=name)
    return tuple(solvers)


def _check_mapping(raw, name, hint=""):
    value = raw.get(name)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise SchemaError(f"sys.{name} must be a mapping{hint}", field=name)
    return dict(value)


def _check_options(raw, name):
    options = _check_mapping(raw, name, f" (see {name[:3]}set)")
    try:
        return OPTION_BUILDERS[name](**options)
    except (TypeError, ValueError) as exc:
        raise SchemaError(f"sys.{name} is invalid: {exc}", field=name) from exc


# ------------------------------------------------------------------ #
# Semantic checks
# ------------------------------------------------------------------ #

def _noise_sources(sdeoption):
    m = sdeoption.get("noise_sources")
    if m is None:
        raise SchemaError("sys.sdeoption['noise_sources'] is undefined (required for SDEs)", field="sdeoption")
    if isinstance(m, bool) or not isinstance(m, numbers.Real) or int(m) != m or int(m) < 1:
        raise SchemaError("sys.sdeoption['noise_sources'] must be a positive integer", field="sdeoption")
    return int(m)


def _cross_check(sys):
    odefun, ddefun, sdefun = sys.odefun, sys.ddefun, sys.sdefun
    if odefun is None and ddefun is None and sdefun is None:
        raise SchemaError("No functions found for sys.odefun, sys.ddefun or sys.sdefun", field="odefun")
    if ddefun is not None and (odefun is not None or sdefun is not None):
        raise SchemaError("sys.ddefun cannot co-exist with sys.odefun or sys.sdefun", field="ddefun")
    if sdefun is not None and odefun is None:
        raise SchemaError("sys.sdefun requires the drift function sys.odefun", field="odefun")

    if ddefun is not None:
        if sys.lagdef is None or len(sys.lagdef) == 0:
            raise SchemaError("sys.lagdef is undefined (required by sys.ddefun)", field="lagdef")
        if not sys.ddesolver:
            raise SchemaError("sys.ddesolver is undefined (required by sys.ddefun)", field="ddesolver")

    if sdefun is not None:
        if not sys.sdesolver:
            raise SchemaError("sys.sdesolver is undefined (required by sys.sdefun)", field="sdesolver")
        m = _noise_sources(sys.sdeoption)
        randn = sys.sdeoption.get("randn")
        if randn is not None:
            randn = np.asarray(randn)
            if randn.ndim != 2 or randn.shape[0] != m:
                raise SchemaError(
                    "Number of rows in sys.sdeoption['randn'] must equal sys.sdeoption['noise_sources']",
                    field="sdeoption",
                )
    elif odefun is not None and not sys.odesolver:
        raise SchemaError("sys.odesolver is undefined (required by sys.odefun)", field="odesolver")

    if sys.odesolver and odefun is None:
        raise SchemaError("sys.odesolver requires sys.odefun", field="odefun")
    if sys.ddesolver and ddefun is None:
        raise SchemaError("sys.ddesolver requires sys.ddefun", field="ddefun")
    if sys.sdesolver and sdefun is None:
        raise SchemaError("sys.sdesolver requires sys.sdefun", field="sdefun")

    if sys.auxdef is not None and sys.auxfun is None:
        raise SchemaError("sys.auxdef requires sys.auxfun", field="auxfun")


def validate(raw, *, diagnose=False, verbose=False):
    """Validate a system description and fill in its defaults.

    Parameters
    ----------
    raw : Mapping | System
        User description. An already validated System is accepted and
        re-validated from its mapping form, so validation is idempotent.
    diagnose : bool, optional
        If True, also call every declared function once (see `check_functions`).
    verbose : bool, optional
        If True, print the diagnostic report.

    Returns
    ------
    System
        Validated description with defaults filled in.

    Raises
    ------
    SchemaError
        On any structural, semantic or obsolete-schema violation.
    """
    if isinstance(raw, System):
        raw = raw.as_dict()
    if not isinstance(raw, Mapping):
        raise SchemaError("sys must be a mapping", field=None)

    _check_obsolete(raw)
    _check_fields(raw)

    tspan, tval = _check_tspan(raw)
    sys = System(
        pardef=_check_definitions(raw, "pardef", required=True),
        vardef=_check_definitions(raw, "vardef", required=True),
        lagdef=_check_definitions(raw, "lagdef", required=False),
        auxdef=_check_definitions(raw, "auxdef", required=False),
        tspan=tspan,
        tval=tval,
        odefun=_check_function(raw, "odefun"),
        ddefun=_check_function(raw, "ddefun"),
        sdefun=_check_function(raw, "sdefun"),
        auxfun=_check_function(raw, "auxfun"),
        odesolver=_check_solvers(raw, "odesolver"),
        ddesolver=_check_solvers(raw, "ddesolver"),
        sdesolver=_check_solvers(raw, "sdesolver"),
        odeoption=_check_options(raw, "odeoption"),
        ddeoption=_check_options(raw, "ddeoption"),
        sdeoption=_check_options(raw, "sdeoption"),
        panels=_check_mapping(raw, "panels"),
    )
    if len(sys.vardef) == 0:
        raise SchemaError("sys.vardef must define at least one variable", field="vardef")
    _cross_check(sys)

    if diagnose:
        check_functions(sys, verbose=verbose)
    return sys


# ------------------------------------------------------------------ #
# Diagnostic calls
# ------------------------------------------------------------------ #

def _call(label, fun, *args):
    try:
        out = fun(*args)
    except Exception as exc:
        raise SchemaError(f"Calling sys.{label} failed: {exc}", field=label) from exc
    try:
        return jnp.asarray(out, dtype=jnp.float64)
    except (TypeError, ValueError) as exc:
        raise SchemaError(f"sys.{label} must return a numeric array", field=label) from exc


def _is_column(arr, n):
    return arr.shape == (n,) or arr.shape == (n, 1)


def _describe(verbose, header, sys, **arrays):
    if not verbose:
        return
    names = ",".join(arrays) + "".join("," + name for name in sys.pardef.names)
    print(f"Calling {header}({names}) where")
    for name, arr in arrays.items():
        print(f"  {name} is size {tuple(jnp.shape(arr))}")
    for entry in sys.pardef:
        print(f"  {entry.name} is size {entry.shape}")


def check_functions(sys, *, verbose=True):
    """Call each declared function once and check the shape of its result.

    ode/dde right-hand sides must return a column of length n (the length of
    the flattened vardef); the diffusion function must return an (n, m) matrix
    with m = sdeoption['noise_sources']; auxfun, given a faux solution of
    `AUX_TRIAL_SAMPLES` samples, must return (len(auxdef), samples).
    """
    t = jnp.asarray(sys.tspan[0], dtype=jnp.float64)
    Y0 = flatten(sys.vardef)
    n = int(Y0.size)
    pars = sys.parameters

    if sys.odefun is not None:
        _describe(verbose, "Y = sys.odefun", sys, t=t, Y0=Y0)
        Y = _call("odefun", sys.odefun, t, Y0, *pars)
        if verbose:
            print(f"  returns Y as size {tuple(Y.shape)}")
        if not _is_column(Y, n):
            raise SchemaError(f"sys.odefun must return Y as a column of length {n}", field="odefun")
        if verbose:
            print("sys.odefun format is OK")

    if sys.ddefun is not None:
        lags = flatten(sys.lagdef)
        Z = jnp.tile(Y0[:, None], (1, int(lags.size)))
        _describe(verbose, "Y = sys.ddefun", sys, t=t, Y0=Y0, Z=Z)
        Y = _call("ddefun", sys.ddefun, t, Y0, Z, *pars)
        if verbose:
            print(f"  returns Y as size {tuple(Y.shape)}")
        if not _is_column(Y, n):
            raise SchemaError(f"sys.ddefun must return Y as a column of length {n}", field="ddefun")
        if verbose:
            print("sys.ddefun format is OK")

    if sys.sdefun is not None:
        m = _noise_sources(sys.sdeoption)
        _describe(verbose, "G = sys.sdefun", sys, t=t, Y0=Y0)
        G = _call("sdefun", sys.sdefun, t, Y0, *pars)
        if verbose:
            print(f"  returns G as size {tuple(G.shape)}")
        if G.ndim == 1 and m == 1:
            G = G[:, None]
        if G.ndim != 2 or G.shape[0] != n:
            raise SchemaError(f"sys.sdefun must return an (n x m) matrix where n={n}", field="sdefun")
        if G.shape[1] != m:
            raise SchemaError(
                f"sys.sdefun must return an (n x m) matrix where m=sys.sdeoption['noise_sources']={m}",
                field="sdefun",
            )
        if verbose:
            print("sys.sdefun format is OK")

    if sys.auxfun is not None:
        tcount = AUX_TRIAL_SAMPLES
        x = jnp.linspace(sys.tspan[0], sys.tspan[1], tcount)
        faux = Solution(x=x, y=jnp.tile(Y0[:, None], (1, tcount)), solver="faux")
        naux = sys.auxdef.numel
        if verbose:
            print(f"Calling Yaux = sys.auxfun(sol,{','.join(sys.pardef.names)}) where")
            print(f"  sol.x is size {tuple(faux.x.shape)}")
            print(f"  sol.y is size {tuple(faux.y.shape)}")
        Yaux = _call("auxfun", sys.auxfun, faux, *pars)
        if verbose:
            print(f"  returns Yaux as size {tuple(Yaux.shape)}")
        if Yaux.ndim == 1 and naux == 1:
            Yaux = Yaux[None, :]
        if Yaux.ndim != 2 or Yaux.shape[1] != tcount:
            raise SchemaError("sys.auxfun must return Yaux with the same number of columns as sol.x", field="auxfun")
        if Yaux.shape[0] != naux:
            raise SchemaError(f"sys.auxfun must return Yaux with {naux} rows (one per auxdef element)", field="auxfun")
        if verbose:
            print("sys.auxfun format is OK")

    if verbose:
        print("ALL TESTS PASSED OK")
    return sys


__all__ = [
    "OBSOLETE_FIELDS",
    "KNOWN_FIELDS",
    "validate",
    "check_functions",
]
