"""
PostgreSQL adapter for the connection capability, built on psycopg 3.

`connect_postgres()` opens a dedicated connection (no pooling) with retry on
transient failures, using tenacity. Rows come back as dicts so the engine can
map column names straight onto record fields.
"""

from __future__ import annotations

import contextlib
from typing import Iterator, List, Optional

import psycopg
from psycopg.rows import dict_row
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from rowstore.config import get_settings
from rowstore.infrastructure.connection import (
    DIALECT_POSTGRESQL,
    AbstractConnection,
    Row,
    Statement,
)
from rowstore.utils.logging import get_logger

log = get_logger(__name__)


class PsycopgConnection(AbstractConnection):
    """
    Connection capability backed by a `psycopg.Connection`.

    The wrapped connection should use `dict_row` as its row factory; the
    adapter passes it through `connect_postgres()` already configured that way.
    Generated ids are read from the RETURNING column named by the statement.
    """

    dialect = DIALECT_POSTGRESQL

    def __init__(self, conn: psycopg.Connection) -> None:
        super().__init__()
        self._conn = conn

    @property
    def raw(self) -> psycopg.Connection:
        return self._conn

    def _execute(self, statement: Statement) -> List[Row]:
        with self._conn.cursor(row_factory=dict_row) as cur:
            cur.execute(statement.sql, statement.params)
            self._affected_rows = cur.rowcount
            rows: List[Row] = cur.fetchall() if cur.description is not None else []
        if statement.returning is not None and rows:
            self._last_insert_id = rows[0][statement.returning]
        return rows

    @contextlib.contextmanager
    def transaction(self) -> Iterator["PsycopgConnection"]:
        with self._conn.transaction():
            yield self

    def close(self) -> None:
        self._conn.close()


def connect_postgres(dsn: Optional[str] = None, autocommit: bool = True) -> PsycopgConnection:
    """
    Open a PostgreSQL connection wrapped as a connection capability.

    Retries up to `Settings.db_connect_attempts` times with exponential backoff
    for transient connection errors. Statements themselves are never retried.

    Parameters
    ----------
    dsn : str, optional
        Connection string. Defaults to the DSN composed from settings.
    autocommit : bool
        Whether each statement commits on its own. Use `transaction()` on the
        returned adapter to group statements either way.

    Returns
    -------
    PsycopgConnection
        Adapter around a fresh psycopg connection.

    Raises
    ------
    psycopg.OperationalError
        If connection fails after all retry attempts.
    """
    settings = get_settings()
    conninfo = dsn or settings.dsn
    options = f"-c statement_timeout={int(settings.db_statement_timeout_ms)}"

    retrying = Retrying(
        stop=stop_after_attempt(settings.db_connect_attempts),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((psycopg.OperationalError, psycopg.InterfaceError)),
        reraise=True,
    )
    for attempt in retrying:
        with attempt:
            conn = psycopg.connect(
                conninfo,
                autocommit=autocommit,
                row_factory=dict_row,
                options=options,
            )
    log.debug(
        "PostgreSQL connection established",
        extra={"host": settings.db_host, "database": settings.db_name},
    )
    return PsycopgConnection(conn)


__all__ = ["PsycopgConnection", "connect_postgres"]
