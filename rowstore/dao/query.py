"""
Statement construction for the persistence engine.

Builds the four statement shapes the engine needs (SELECT, INSERT/REPLACE,
UPDATE, DELETE) as parameterized `Statement` objects. Table and column names
come from record type declarations and are validated and quoted here; values
are always bound parameters.

Caller-supplied WHERE fragments use `%s` placeholders, matching the rest of
the generated SQL.
"""

from __future__ import annotations

import re
from typing import Any, Mapping, Optional, Sequence

from rowstore.dao.schema import VERSION_FIELD
from rowstore.errors import ArgumentError, StructuralError
from rowstore.infrastructure.connection import DIALECT_POSTGRESQL, DIALECT_SQLITE, Connection, Statement

INSERT = "INSERT"
REPLACE = "REPLACE"

LOCK_EXCLUSIVE = "exclusive"
LOCK_SHARED = "shared"

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_LOCK_CLAUSES = {
    DIALECT_POSTGRESQL: {LOCK_EXCLUSIVE: "FOR UPDATE", LOCK_SHARED: "FOR SHARE"},
    DIALECT_SQLITE: {},
}


def quote_identifier(name: str) -> str:
    """Validate and double-quote a table or column name."""
    if not isinstance(name, str) or not _IDENTIFIER.match(name):
        raise ArgumentError(f"Invalid SQL identifier: {name!r}")
    return f'"{name}"'


def lock_mode(connection: Connection) -> Optional[str]:
    """Lock clause requested by the connection's current read mode, if any."""
    if connection.is_exclusive_read_locking():
        return LOCK_EXCLUSIVE
    if connection.is_shared_read_locking():
        return LOCK_SHARED
    return None


class QueryBuilder:
    """
    Render statements against one table in one SQL dialect.

    Parameters
    ----------
    table : str
        Backing table name.
    dialect : str
        "postgresql" or "sqlite".
    """

    def __init__(self, table: str, dialect: str) -> None:
        if dialect not in _LOCK_CLAUSES:
            raise ArgumentError(f"Unsupported SQL dialect '{dialect}'.")
        self.table = table
        self.dialect = dialect
        self._table_sql = quote_identifier(table)

    def key_clause(self, id_key: str, with_version: bool = False) -> str:
        """WHERE fragment pinning the primary key, and the version when asked."""
        clause = f"{quote_identifier(id_key)} = %s"
        if with_version:
            clause += f" AND {quote_identifier(VERSION_FIELD)} = %s"
        return clause

    def select(self, where: str, args: Sequence[Any] = (), lock: Optional[str] = None) -> Statement:
        sql = f"SELECT * FROM {self._table_sql} WHERE {where}"
        clause = _LOCK_CLAUSES[self.dialect].get(lock) if lock else None
        if clause:
            sql += f" {clause}"
        return Statement(sql=sql, params=tuple(args))

    def insert(
        self,
        data: Mapping[str, Any],
        mode: str = INSERT,
        id_key: Optional[str] = None,
        returning: Optional[str] = None,
    ) -> Statement:
        """
        Render an INSERT or REPLACE of `data`.

        PostgreSQL has no REPLACE; it becomes an upsert on the primary key.
        `returning` is only rendered for PostgreSQL, where it is how the
        generated id comes back. SQLite reports it through the cursor instead.
        """
        if mode not in (INSERT, REPLACE):
            raise ArgumentError(f"Unknown insert mode '{mode}'.")

        columns = [quote_identifier(column) for column in data]
        params = tuple(data.values())

        verb = "REPLACE" if mode == REPLACE and self.dialect == DIALECT_SQLITE else "INSERT"
        if columns:
            placeholders = ", ".join(["%s"] * len(columns))
            sql = f"{verb} INTO {self._table_sql} ({', '.join(columns)}) VALUES ({placeholders})"
        else:
            sql = f"{verb} INTO {self._table_sql} DEFAULT VALUES"

        if mode == REPLACE and self.dialect == DIALECT_POSTGRESQL and columns:
            if not id_key:
                raise StructuralError("REPLACE requires a single-part primary key.")
            key_sql = quote_identifier(id_key)
            updates = [f"{column} = EXCLUDED.{column}" for column in columns if column != key_sql]
            if updates:
                sql += f" ON CONFLICT ({key_sql}) DO UPDATE SET {', '.join(updates)}"
            else:
                sql += f" ON CONFLICT ({key_sql}) DO NOTHING"

        statement_returning: Optional[str] = None
        if returning and self.dialect == DIALECT_POSTGRESQL:
            sql += f" RETURNING {quote_identifier(returning)}"
            statement_returning = returning
        return Statement(sql=sql, params=params, returning=statement_returning)

    def update(
        self,
        data: Mapping[str, Any],
        id_key: str,
        id_value: Any,
        version: Optional[int] = None,
        locking: bool = False,
    ) -> Statement:
        """
        Render an UPDATE of `data` for one row.

        With `locking`, the version column is advanced in SQL and the row is
        matched on both its key and the version the caller last saw.
        """
        assignments = [f"{quote_identifier(column)} = %s" for column in data]
        params = list(data.values())
        if locking:
            version_sql = quote_identifier(VERSION_FIELD)
            assignments.append(f"{version_sql} = {version_sql} + 1")
        sql = (
            f"UPDATE {self._table_sql} SET {', '.join(assignments)} "
            f"WHERE {self.key_clause(id_key, with_version=locking)}"
        )
        params.append(id_value)
        if locking:
            params.append(version)
        return Statement(sql=sql, params=tuple(params))

    def delete(self, id_key: str, id_value: Any) -> Statement:
        sql = f"DELETE FROM {self._table_sql} WHERE {self.key_clause(id_key)}"
        return Statement(sql=sql, params=(id_value,))


__all__ = [
    "INSERT",
    "LOCK_EXCLUSIVE",
    "LOCK_SHARED",
    "QueryBuilder",
    "REPLACE",
    "lock_mode",
    "quote_identifier",
]
