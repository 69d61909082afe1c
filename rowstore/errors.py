"""
Error taxonomy for the rowstore persistence engine.

Every failure raised by the engine derives from DaoError so callers can catch
the whole family in one place. Driver errors (psycopg, sqlite3) are not
wrapped and propagate unchanged.
"""

from __future__ import annotations


class DaoError(Exception):
    """Base class for all persistence engine errors."""


class ConfigurationError(DaoError):
    """A record type's configuration cannot support the requested operation."""


class ArgumentError(DaoError, ValueError):
    """A caller passed a malformed identifier, field name or argument list."""


class CardinalityError(DaoError):
    """A single-result query matched more than one row."""


class MissingRecordError(DaoError):
    """
    The row an operation expected to find was not there.

    Raised when an update affects zero rows or a reload finds nothing. With
    optimistic locking on, this usually means another writer advanced the
    version first; with it off, the row was deleted.
    """

    def __init__(self, locking: bool, message: str | None = None) -> None:
        self.locking = locking
        if message is None:
            if locking:
                message = "Row is missing or its version has changed (optimistic lock conflict)."
            else:
                message = "Row is missing."
        super().__init__(message)


class StructuralError(DaoError):
    """The operation needs a single-part primary key and the type has none."""


__all__ = [
    "DaoError",
    "ConfigurationError",
    "ArgumentError",
    "CardinalityError",
    "MissingRecordError",
    "StructuralError",
]
