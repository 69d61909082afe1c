"""
Pytest configuration for rowstore.

Provides fixtures for:
- An in-memory SQLite database with the tables the sample record types use
- Sample record types covering each id mechanism and configuration option
- PostgreSQL settings/connection for integration tests (skipped when the
  database is not reachable)
"""

from __future__ import annotations

import os
import sqlite3
from types import SimpleNamespace
from typing import ClassVar, Generator, Optional

import psycopg
import pytest

from rowstore import Column, Record, generate_phid
from rowstore.config import Settings
from rowstore.infrastructure.connection import Connection
from rowstore.infrastructure.sqlite import SqliteConnection

SQLITE_SCHEMA = """
CREATE TABLE note (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT,
    body TEXT,
    dateCreated INTEGER,
    dateModified INTEGER
);
CREATE TABLE locked_note (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT,
    body TEXT,
    version INTEGER,
    dateCreated INTEGER,
    dateModified INTEGER
);
CREATE TABLE document (
    phid TEXT PRIMARY KEY,
    title TEXT,
    metadata TEXT,
    dateCreated INTEGER,
    dateModified INTEGER
);
CREATE TABLE transcript (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    phid TEXT,
    payload BLOB,
    host TEXT
);
CREATE TABLE slug (
    id INTEGER PRIMARY KEY,
    name TEXT
);
CREATE TABLE manual_locked (
    id INTEGER PRIMARY KEY,
    name TEXT,
    version INTEGER
);
CREATE TABLE edge (
    src INTEGER,
    dst INTEGER
);
"""


class _SqliteRecord(Record):
    """Base for sample record types; all share the connection set by the fixture."""

    connection: ClassVar[Optional[Connection]] = None
    connections_established: ClassVar[int] = 0

    def establish_connection(self, mode: str) -> Connection:
        if _SqliteRecord.connection is None:
            raise RuntimeError("sqlite fixture not active")
        _SqliteRecord.connections_established += 1
        return _SqliteRecord.connection


class Note(_SqliteRecord):
    table_name = "note"

    title = Column()
    body = Column(default="")


class LockedNote(_SqliteRecord):
    table_name = "locked_note"

    title = Column()
    body = Column(default="")

    @classmethod
    def configuration(cls):
        return {**super().configuration(), "optimistic_locks": True}


class Document(_SqliteRecord):
    table_name = "document"

    title = Column()
    metadata = Column(default_factory=dict)

    @classmethod
    def configuration(cls):
        return {
            **super().configuration(),
            "id_mechanism": "phid",
            "serialization": {"metadata": "json"},
        }

    def generate_phid(self) -> str:
        return generate_phid("DOCU")


class Transcript(_SqliteRecord):
    table_name = "transcript"

    payload = Column(default_factory=list)
    host = Column(default="localhost")
    scratch = Column()

    @classmethod
    def configuration(cls):
        return {
            **super().configuration(),
            "aux_phid": True,
            "timestamps": False,
            "serialization": {"payload": "pickle"},
        }

    @classmethod
    def transient_fields(cls):
        return ("scratch",)

    def generate_phid(self) -> str:
        return generate_phid("XSCR")


class Slug(_SqliteRecord):
    table_name = "slug"

    name = Column()

    @classmethod
    def configuration(cls):
        return {**super().configuration(), "id_mechanism": "manual", "timestamps": False}


class DecidedSlug(Slug):
    """Manual ids without locks, with the insert decision supplied by the type."""

    def should_insert_when_saved(self) -> bool:
        return not self.load_raw_data_where('"id" = %s', self.get_id())


class ManualLocked(_SqliteRecord):
    table_name = "manual_locked"

    name = Column()

    @classmethod
    def configuration(cls):
        return {
            **super().configuration(),
            "id_mechanism": "manual",
            "optimistic_locks": True,
            "timestamps": False,
        }


class Edge(_SqliteRecord):
    table_name = "edge"

    src = Column()
    dst = Column()

    @classmethod
    def configuration(cls):
        return {**super().configuration(), "id_mechanism": "manual", "timestamps": False}

    @classmethod
    def id_key(cls):
        return None

    def should_insert_when_saved(self) -> bool:
        return True


@pytest.fixture()
def sqlite_connection() -> Generator[SqliteConnection, None, None]:
    """
    In-memory SQLite database with the sample tables, bound to the sample types.
    """
    raw = sqlite3.connect(":memory:")
    raw.executescript(SQLITE_SCHEMA)
    conn = SqliteConnection(raw)
    _SqliteRecord.connection = conn
    _SqliteRecord.connections_established = 0
    try:
        yield conn
    finally:
        _SqliteRecord.connection = None
        conn.close()


@pytest.fixture()
def models(sqlite_connection: SqliteConnection) -> SimpleNamespace:
    """Sample record types, bound to the in-memory database."""
    return SimpleNamespace(
        Base=_SqliteRecord,
        Note=Note,
        LockedNote=LockedNote,
        Document=Document,
        Transcript=Transcript,
        Slug=Slug,
        DecidedSlug=DecidedSlug,
        ManualLocked=ManualLocked,
        Edge=Edge,
    )


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "rowstore"),
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    """
    Database connection string for tests.
    """
    return test_settings.dsn


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True
    except psycopg.Error:
        return False
