"""Mapping between definition collections and flat solver vectors.

Values are concatenated in collection order, each one raveled row-major, so
the vector rows of an entry are always a contiguous block.
"""

from __future__ import annotations

from dataclasses import dataclass

import jax64  # noqa: F401
import jax.numpy as jnp
from jax.flatten_util import ravel_pytree

from DYNAX.Errors import NotFoundError, SizeMismatchError


@dataclass(frozen=True)
class IndexEntry:
    """Rows of the flat vector owned by one entry."""

    name: str
    index: int
    rows: range


@dataclass(frozen=True)
class ElementEntry:
    """Owner of one row of the flat vector."""

    label: str
    index: int
    offset: int
    row: int


def flatten(defs):
    """Concatenate all entry values into one 1-D vector.

    Each value is raveled row-major (numpy/JAX order), not column-major, so
    the element `m_2` of a 2x2 matrix `m` is `m[0, 1]`. `element_map` and the
    `name_i` labels follow the same order.
    """
    if len(defs) == 0:
        return jnp.zeros((0,), dtype=jnp.float64)
    flat, _ = ravel_pytree(defs)
    return jnp.asarray(flat, dtype=jnp.float64)


def unflatten(defs, vec):
    """Write a flat vector back into the entries of `defs`.

    Parameters
    ----------
    defs : Definitions
        Template collection; provides names, order and shapes.
    vec : array-like
        Values to distribute, `defs.numel` of them.

    Returns
    ------
    Definitions
        New collection with the same shapes as `defs` (row, column or matrix
        values keep their shape).
    """
    arr = jnp.ravel(jnp.asarray(vec, dtype=jnp.float64))
    expected = defs.numel
    if arr.size != expected:
        raise SizeMismatchError(
            f"Number of new values ({arr.size}) must match the number of values in "
            f"{defs.kind or 'definitions'} ({expected})",
            field=defs.kind or None,
        )
    if expected == 0:
        return defs
    _, unravel = ravel_pytree(defs)
    return unravel(arr)


def index_map(defs):
    """defs (Definitions) -> list[IndexEntry]. Global row range of every entry."""
    out = []
    row = 0
    for idx, entry in enumerate(defs.entries):
        n = entry.numel
        out.append(IndexEntry(name=entry.name, index=idx, rows=range(row, row + n)))
        row += n
    return out


def element_map(defs):
    """One ElementEntry per row of the flat vector.

    Single-element entries are labelled by their bare name; the elements of
    larger entries are labelled `name_1`, `name_2`, ... in raveled order.
    """
    out = []
    row = 0
    for idx, entry in enumerate(defs.entries):
        n = entry.numel
        for offset in range(n):
            label = entry.name if n == 1 else f"{entry.name}_{offset + 1}"
            out.append(ElementEntry(label=label, index=idx, offset=offset, row=row))
            row += 1
    return out


def element_labels(defs):
    return [item.label for item in element_map(defs)]


def rows_of(defs, name):
    """defs (Definitions), name (str) -> range. Global rows spanned by entry `name`."""
    for item in index_map(defs):
        if item.name == name:
            return item.rows
    raise NotFoundError(f"Name '{name}' not found in {defs.kind or 'definitions'}", field=name)


def label_of(defs, row):
    """defs (Definitions), row (int) -> str. Label of a global row."""
    elements = element_map(defs)
    if not 0 <= row < len(elements):
        raise IndexError(f"Row {row} is outside the {len(elements)} rows of {defs.kind or 'definitions'}.")
    return elements[row].label


__all__ = [
    "IndexEntry",
    "ElementEntry",
    "flatten",
    "unflatten",
    "index_map",
    "element_map",
    "element_labels",
    "rows_of",
    "label_of",
]
