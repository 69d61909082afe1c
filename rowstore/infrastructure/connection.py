"""
Connection capability consumed by the persistence engine.

The engine never talks to a driver directly. It hands `Statement` objects to
something implementing the `Connection` protocol and reads back rows, the
affected-row count and the last generated id. Concrete adapters live next to
this module (PostgreSQL via psycopg, SQLite via the standard library).

Lock modes are a property of the connection, not of the record: a caller
enters `exclusive_read_lock()` or `shared_read_lock()` and every SELECT the
engine builds while the mode is active carries the matching lock clause.
"""

from __future__ import annotations

import abc
import contextlib
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Protocol, Tuple, runtime_checkable

from rowstore.errors import ArgumentError

Row = Dict[str, Any]

DIALECT_POSTGRESQL = "postgresql"
DIALECT_SQLITE = "sqlite"


@dataclass(frozen=True)
class Statement:
    """
    A parameterized SQL statement.

    `sql` uses `%s` placeholders; `params` holds the bound values in order.
    `returning` names the column whose value an INSERT hands back as the
    generated id, for dialects that report ids through RETURNING.
    """

    sql: str
    params: Tuple[Any, ...] = field(default_factory=tuple)
    returning: Optional[str] = None


@runtime_checkable
class Connection(Protocol):
    """
    Interface the engine requires from a database connection.

    Attributes
    ----------
    dialect : str
        Either "postgresql" or "sqlite"; selects statement rendering.
    """

    dialect: str

    def query(self, statement: Statement) -> List[Row]:
        """Execute the statement and return result rows (empty for writes)."""
        ...

    def affected_rows(self) -> int:
        """Rows touched by the most recent statement."""
        ...

    def last_insert_id(self) -> Any:
        """Identifier generated by the most recent INSERT."""
        ...

    def is_exclusive_read_locking(self) -> bool:
        ...

    def is_shared_read_locking(self) -> bool:
        ...


class AbstractConnection(abc.ABC):
    """
    Shared bookkeeping for connection adapters.

    Subclasses set `dialect` and implement `_execute`. Lock modes nest: each
    context manager increments a depth counter on entry and decrements it on
    exit, so inner code can re-enter the mode it is already in.
    """

    dialect: str

    def __init__(self) -> None:
        self._exclusive_depth = 0
        self._shared_depth = 0
        self._affected_rows = 0
        self._last_insert_id: Any = None

    @abc.abstractmethod
    def _execute(self, statement: Statement) -> List[Row]:  # pragma: no cover - interface only
        """Run the statement against the driver and update counters."""
        raise NotImplementedError

    def query(self, statement: Statement) -> List[Row]:
        return self._execute(statement)

    def affected_rows(self) -> int:
        return self._affected_rows

    def last_insert_id(self) -> Any:
        return self._last_insert_id

    def is_exclusive_read_locking(self) -> bool:
        return self._exclusive_depth > 0

    def is_shared_read_locking(self) -> bool:
        return self._shared_depth > 0

    @contextlib.contextmanager
    def exclusive_read_lock(self) -> Iterator["AbstractConnection"]:
        """
        Make SELECTs issued inside the block lock matched rows for update.

        Cannot be entered while a shared read lock is active.
        """
        if self._shared_depth:
            raise ArgumentError("Cannot enter exclusive read locking while shared read locking.")
        self._exclusive_depth += 1
        try:
            yield self
        finally:
            self._exclusive_depth -= 1

    @contextlib.contextmanager
    def shared_read_lock(self) -> Iterator["AbstractConnection"]:
        """
        Make SELECTs issued inside the block take a shared row lock.

        Cannot be entered while an exclusive read lock is active.
        """
        if self._exclusive_depth:
            raise ArgumentError("Cannot enter shared read locking while exclusive read locking.")
        self._shared_depth += 1
        try:
            yield self
        finally:
            self._shared_depth -= 1

    @contextlib.contextmanager
    def transaction(self) -> Iterator["AbstractConnection"]:
        """Group several statements into one transaction."""
        yield self

    def close(self) -> None:
        """Release the underlying driver connection."""


__all__ = [
    "AbstractConnection",
    "Connection",
    "DIALECT_POSTGRESQL",
    "DIALECT_SQLITE",
    "Row",
    "Statement",
]
