"""
SQLite adapter for the connection capability, built on the standard library.

Statements are rendered with `%s` placeholders; this adapter rewrites them to
the `?` style sqlite3 expects. SQLite locks the whole database for writes, so
SELECT lock clauses are never rendered for this dialect.
"""

from __future__ import annotations

import contextlib
import re
import sqlite3
from typing import Iterator, List

from rowstore.infrastructure.connection import DIALECT_SQLITE, AbstractConnection, Row, Statement

_PLACEHOLDER = re.compile(r"%([%s])")


def to_qmark(sql: str) -> str:
    """Rewrite `%s` placeholders to `?` and `%%` to a literal percent."""
    return _PLACEHOLDER.sub(lambda m: "?" if m.group(1) == "s" else "%", sql)


class SqliteConnection(AbstractConnection):
    """
    Connection capability backed by a `sqlite3.Connection`.

    Each statement is committed immediately unless it runs inside
    `transaction()`.
    """

    dialect = DIALECT_SQLITE

    def __init__(self, conn: sqlite3.Connection) -> None:
        super().__init__()
        self._conn = conn
        self._transaction_depth = 0

    @property
    def raw(self) -> sqlite3.Connection:
        return self._conn

    def _execute(self, statement: Statement) -> List[Row]:
        cur = self._conn.execute(to_qmark(statement.sql), statement.params)
        try:
            rows: List[Row] = []
            if cur.description is not None:
                columns = [d[0] for d in cur.description]
                rows = [dict(zip(columns, values)) for values in cur.fetchall()]
            self._affected_rows = cur.rowcount
            if cur.lastrowid is not None:
                self._last_insert_id = cur.lastrowid
        finally:
            cur.close()
        if not self._transaction_depth:
            self._conn.commit()
        return rows

    @contextlib.contextmanager
    def transaction(self) -> Iterator["SqliteConnection"]:
        self._transaction_depth += 1
        try:
            yield self
        except BaseException:
            self._transaction_depth -= 1
            if not self._transaction_depth:
                self._conn.rollback()
            raise
        self._transaction_depth -= 1
        if not self._transaction_depth:
            self._conn.commit()

    def close(self) -> None:
        self._conn.close()


def connect_sqlite(database: str = ":memory:") -> SqliteConnection:
    """Open a SQLite database and wrap it as a connection capability."""
    return SqliteConnection(sqlite3.connect(database))


__all__ = ["SqliteConnection", "connect_sqlite", "to_qmark"]
