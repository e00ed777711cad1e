from __future__ import annotations

from dataclasses import replace

import equinox as eqx
import jax64  # noqa: F401
import jax.numpy as jnp

from DYNAX.Errors import NotFoundError, SizeMismatchError


def _as_value(value):
    return jnp.asarray(value, dtype=jnp.float64)


def _as_lim(lim):
    if lim is None:
        return None
    lo, hi = lim
    return (float(lo), float(hi))


class Entry(eqx.Module):
    """One named definition (parameter, variable, lag or auxiliary output).

    `value` is a float64 array of any rank; `lim` is an optional (min, max)
    pair used by sliders. A value outside `lim` is legal.
    """

    name: str = eqx.field(static=True)
    value: jnp.ndarray = eqx.field(converter=_as_value)
    lim: tuple[float, float] | None = eqx.field(static=True, default=None, converter=_as_lim)

    @property
    def shape(self):
        return tuple(self.value.shape)

    @property
    def numel(self):
        return int(self.value.size)

    def as_record(self):
        """-> dict. Plain mapping form accepted back by `SysCheck.validate`."""
        record = {"name": self.name, "value": self.value}
        if self.lim is not None:
            record["lim"] = self.lim
        return record


class Definitions(eqx.Module):
    """Ordered, immutable collection of entries of a single kind.

    The order of `entries` is the order in which values are concatenated into
    a solver vector; no operation reorders it.
    """

    entries: tuple[Entry, ...] = eqx.field(converter=tuple)
    kind: str = eqx.field(static=True, default="")

    @classmethod
    def from_records(cls, records, kind=""):
        """records (Sequence[Mapping]) -> Definitions. Builds entries from name/value/lim mappings."""
        return cls(
            entries=[Entry(r["name"], r["value"], r.get("lim")) for r in records],
            kind=kind,
        )

    def as_records(self):
        return [entry.as_record() for entry in self.entries]

    @property
    def names(self):
        return tuple(entry.name for entry in self.entries)

    @property
    def numel(self):
        return sum(entry.numel for entry in self.entries)

    def index(self, name):
        """name (str) -> int | None. Position of the first entry called `name`."""
        for idx, entry in enumerate(self.entries):
            if entry.name == name:
                return idx
        return None

    def __len__(self):
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    def __getitem__(self, idx):
        return self.entries[idx]


# ------------------------------------------------------------------ #
# Value access
# ------------------------------------------------------------------ #

def get_value(defs, name):
    """Look up an entry value by name.

    Parameters
    ----------
    defs : Definitions
        Collection to scan (linearly, in order).
    name : str
        Entry name.

    Returns
    ------
    tuple[jnp.ndarray | None, int | None]
        `(value, index)` of the first match, or `(None, None)` when the name is
        unknown. A miss is a normal outcome here, not an error.
    """
    idx = defs.index(name)
    if idx is None:
        return None, None
    return defs.entries[idx].value, idx


def _kind_label(defs):
    return defs.kind or "definitions"


def require_value(defs, name):
    """Like `get_value` but raises NotFoundError when `name` is absent."""
    value, idx = get_value(defs, name)
    if idx is None:
        raise NotFoundError(f"Name '{name}' not found in {_kind_label(defs)}", field=name)
    return value, idx


def set_value(defs, name, value):
    """Return a copy of `defs` where entry `name` holds `value`.

    The entry keeps its shape: a single number is broadcast onto it and a
    value with the same number of elements is reshaped to it. Any other value
    raises SizeMismatchError. Raises NotFoundError when `name` is absent; the
    input is never modified.
    """
    old, idx = require_value(defs, name)
    new = _as_value(value)
    if new.shape != old.shape:
        if new.size == 1:
            new = jnp.full(old.shape, jnp.ravel(new)[0], dtype=jnp.float64)
        elif new.size == old.size:
            new = jnp.reshape(new, old.shape)
        else:
            raise SizeMismatchError(
                f"New value of '{name}' has {new.size} elements but {_kind_label(defs)} "
                f"declares shape {tuple(old.shape)}",
                field=name,
            )
    return eqx.tree_at(lambda d: d.entries[idx].value, defs, new)


def get_values(defs):
    """defs (Definitions) -> jnp.ndarray. All values as one flat vector."""
    from DYNAX.Codec import flatten

    return flatten(defs)


def set_values(defs, vec):
    """defs (Definitions), vec (array) -> Definitions. Inverse of `get_values`."""
    from DYNAX.Codec import unflatten

    return unflatten(defs, vec)


# ------------------------------------------------------------------ #
# Bounds
# ------------------------------------------------------------------ #

def get_bounds(defs, name):
    """defs (Definitions), name (str) -> tuple[float, float] | None. Slider limits of an entry."""
    _, idx = require_value(defs, name)
    return defs.entries[idx].lim


def _seed_lim(entry):
    if entry.lim is not None:
        return entry.lim
    lo = float(jnp.min(entry.value))
    hi = float(jnp.max(entry.value))
    return (lo, hi)


def _with_entry(defs, idx, entry):
    entries = defs.entries[:idx] + (entry,) + defs.entries[idx + 1:]
    return Definitions(entries=entries, kind=defs.kind)


def set_min(defs, name, lo):
    """Set the lower limit; the upper limit follows when it would be crossed."""
    _, idx = require_value(defs, name)
    entry = defs.entries[idx]
    _, hi = _seed_lim(entry)
    lo = float(lo)
    hi = max(hi, lo)
    return _with_entry(defs, idx, replace(entry, lim=(lo, hi)))


def set_max(defs, name, hi):
    """Set the upper limit; the lower limit follows when it would be crossed."""
    _, idx = require_value(defs, name)
    entry = defs.entries[idx]
    lo, _ = _seed_lim(entry)
    hi = float(hi)
    lo = min(lo, hi)
    return _with_entry(defs, idx, replace(entry, lim=(lo, hi)))


def set_bounds(defs, name, lo=None, hi=None):
    """Update either or both limits of entry `name`.

    The minimum is applied first, then the maximum, each one dragging the
    opposite limit along instead of rejecting the edit. Afterwards
    `lim[0] <= lim[1]` always holds.
    """
    out = defs
    if lo is not None:
        out = set_min(out, name, lo)
    if hi is not None:
        out = set_max(out, name, hi)
    if lo is None and hi is None:
        require_value(out, name)
    return out


__all__ = [
    "Entry",
    "Definitions",
    "get_value",
    "require_value",
    "set_value",
    "get_values",
    "set_values",
    "get_bounds",
    "set_bounds",
    "set_min",
    "set_max",
]
