"""Error taxonomy shared by the DYNAX core.

Every error carries a short `kind`, the human readable `message` and the
offending `field` (entry name, sys field or solver name) so that a GUI layer
can present it without parsing the message.
"""

from __future__ import annotations


class DynaxError(Exception):
    """Base class for the structured errors raised by DYNAX."""

    kind = "error"

    def __init__(self, message, *, field=None):
        super().__init__(message)
        self.message = message
        self.field = field

    def as_dict(self):
        """-> dict[str, str | None]. Structured view (kind, message, field)."""
        return {"kind": self.kind, "message": self.message, "field": self.field}


class SchemaError(DynaxError, ValueError):
    """Invalid or obsolete system description."""

    kind = "schema"


class NotFoundError(DynaxError, LookupError):
    """A named entry does not exist in the collection."""

    kind = "not_found"

    def __str__(self):
        # LookupError subclasses such as KeyError repr their message; keep it plain.
        return self.message


class SizeMismatchError(DynaxError, ValueError):
    """A flat vector does not match the element count of a collection."""

    kind = "size_mismatch"


class UnsupportedSolverError(DynaxError, ValueError):
    """A solver cannot be matched to any family declared by the system."""

    kind = "unsupported_solver"


class UserInputError(DynaxError, ValueError):
    """Malformed numeric text typed by a user."""

    kind = "user_input"


__all__ = [
    "DynaxError",
    "SchemaError",
    "NotFoundError",
    "SizeMismatchError",
    "UnsupportedSolverError",
    "UserInputError",
]
