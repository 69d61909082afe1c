from __future__ import annotations

from typing import Any, List

import pytest

from rowstore import Column, Record
from rowstore.dao.query import REPLACE, QueryBuilder, lock_mode, quote_identifier
from rowstore.errors import ArgumentError, MissingRecordError, StructuralError
from rowstore.infrastructure.connection import AbstractConnection, Connection, Row, Statement
from rowstore.infrastructure.sqlite import to_qmark

ROW_ID = 7


class _FakeConnection(AbstractConnection):
    """Records statements and answers with canned rows."""

    dialect = "postgresql"

    def __init__(self, rows: List[Row] | None = None, affected: int = 1) -> None:
        super().__init__()
        self.statements: List[Statement] = []
        self._rows = rows or []
        self._affected = affected

    def _execute(self, statement: Statement) -> List[Row]:
        self.statements.append(statement)
        self._affected_rows = self._affected
        if statement.returning:
            self._last_insert_id = ROW_ID
        return list(self._rows) if statement.sql.startswith("SELECT") else []


class _Ticket(Record):
    table_name = "ticket"

    title = Column()
    fake: _FakeConnection

    @classmethod
    def configuration(cls):
        return {**super().configuration(), "optimistic_locks": True, "timestamps": False}

    def establish_connection(self, mode: str) -> Connection:
        return self.fake


def _ticket(conn: _FakeConnection, **values: Any) -> _Ticket:
    ticket = _Ticket(**values)
    ticket.fake = conn
    return ticket


class TestQueryBuilder:
    def test_select_plain(self):
        statement = QueryBuilder("note", "postgresql").select("title = %s", ["x"])

        assert statement.sql == 'SELECT * FROM "note" WHERE title = %s'
        assert statement.params == ("x",)

    def test_select_lock_clauses(self):
        builder = QueryBuilder("note", "postgresql")

        assert builder.select("1 = 1", lock="exclusive").sql.endswith(" FOR UPDATE")
        assert builder.select("1 = 1", lock="shared").sql.endswith(" FOR SHARE")

    def test_sqlite_has_no_lock_clauses(self):
        statement = QueryBuilder("note", "sqlite").select("1 = 1", lock="exclusive")
        assert statement.sql == 'SELECT * FROM "note" WHERE 1 = 1'

    def test_insert_with_returning(self):
        statement = QueryBuilder("note", "postgresql").insert(
            {"title": "t", "body": None}, returning="id"
        )

        assert statement.sql == (
            'INSERT INTO "note" ("title", "body") VALUES (%s, %s) RETURNING "id"'
        )
        assert statement.params == ("t", None)
        assert statement.returning == "id"

    def test_sqlite_insert_has_no_returning(self):
        statement = QueryBuilder("note", "sqlite").insert({"title": "t"}, returning="id")

        assert "RETURNING" not in statement.sql
        assert statement.returning is None

    def test_insert_without_columns(self):
        statement = QueryBuilder("note", "sqlite").insert({})
        assert statement.sql == 'INSERT INTO "note" DEFAULT VALUES'

    def test_replace_per_dialect(self):
        data = {"id": 3, "name": "three"}

        sqlite_sql = QueryBuilder("slug", "sqlite").insert(data, mode=REPLACE, id_key="id").sql
        pg_sql = QueryBuilder("slug", "postgresql").insert(data, mode=REPLACE, id_key="id").sql

        assert sqlite_sql == 'REPLACE INTO "slug" ("id", "name") VALUES (%s, %s)'
        assert pg_sql == (
            'INSERT INTO "slug" ("id", "name") VALUES (%s, %s) '
            'ON CONFLICT ("id") DO UPDATE SET "name" = EXCLUDED."name"'
        )

    def test_postgres_replace_needs_key(self):
        with pytest.raises(StructuralError):
            QueryBuilder("edge", "postgresql").insert({"src": 1}, mode=REPLACE, id_key=None)

    def test_update_with_locking(self):
        statement = QueryBuilder("note", "postgresql").update(
            {"title": "t"}, "id", ROW_ID, version=2, locking=True
        )

        assert statement.sql == (
            'UPDATE "note" SET "title" = %s, "version" = "version" + 1 '
            'WHERE "id" = %s AND "version" = %s'
        )
        assert statement.params == ("t", ROW_ID, 2)

    def test_update_without_locking(self):
        statement = QueryBuilder("note", "postgresql").update({"title": "t"}, "id", ROW_ID)

        assert statement.sql == 'UPDATE "note" SET "title" = %s WHERE "id" = %s'
        assert statement.params == ("t", ROW_ID)

    def test_delete(self):
        statement = QueryBuilder("note", "postgresql").delete("id", ROW_ID)

        assert statement.sql == 'DELETE FROM "note" WHERE "id" = %s'
        assert statement.params == (ROW_ID,)

    def test_identifiers_are_validated(self):
        assert quote_identifier("dateCreated") == '"dateCreated"'
        for bad in ('note"; DROP TABLE x; --', "1abc", "a b", ""):
            with pytest.raises(ArgumentError):
                quote_identifier(bad)
        with pytest.raises(ArgumentError):
            QueryBuilder("note", "oracle")
        with pytest.raises(ArgumentError):
            QueryBuilder("note", "sqlite").insert({"bad column": 1})

    def test_to_qmark(self):
        assert to_qmark("a = %s AND b LIKE '%%x'") == "a = ? AND b LIKE '%x'"


class TestLockModes:
    def test_lock_modes_are_exclusive(self):
        conn = _FakeConnection()
        assert lock_mode(conn) is None

        with conn.exclusive_read_lock():
            assert lock_mode(conn) == "exclusive"
            with conn.exclusive_read_lock():
                assert conn.is_exclusive_read_locking()
            assert conn.is_exclusive_read_locking()
            with pytest.raises(ArgumentError):
                with conn.shared_read_lock():
                    pass
        assert not conn.is_exclusive_read_locking()

        with conn.shared_read_lock():
            assert lock_mode(conn) == "shared"
            with pytest.raises(ArgumentError):
                with conn.exclusive_read_lock():
                    pass
        assert lock_mode(conn) is None

    def test_fake_connection_satisfies_protocol(self):
        assert isinstance(_FakeConnection(), Connection)

    def test_engine_selects_carry_lock_clause(self):
        conn = _FakeConnection(rows=[{"id": ROW_ID, "title": "t", "version": 0}])
        ticket = _ticket(conn)

        with conn.exclusive_read_lock():
            ticket.load(ROW_ID)
        ticket.reload()

        assert conn.statements[0].sql.endswith("FOR UPDATE")
        assert conn.statements[1].sql == (
            'SELECT * FROM "ticket" WHERE "id" = %s AND "version" = %s'
        )
        assert conn.statements[1].params == (ROW_ID, 0)


class TestEngineStatements:
    def test_insert_uses_returned_id_and_initial_version(self):
        conn = _FakeConnection()
        ticket = _ticket(conn, title="t")
        ticket.save()

        statement = conn.statements[-1]
        assert statement.sql == (
            'INSERT INTO "ticket" ("title", "version") VALUES (%s, %s) RETURNING "id"'
        )
        assert statement.params == ("t", 0)
        assert ticket.get_id() == ROW_ID
        assert ticket.version == 0

    def test_update_excludes_version_from_set_list(self):
        conn = _FakeConnection()
        ticket = _ticket(conn, title="t")
        ticket.save()
        ticket.title = "u"
        ticket.save()

        statement = conn.statements[-1]
        assert statement.sql == (
            'UPDATE "ticket" SET "title" = %s, "id" = %s, "version" = "version" + 1 '
            'WHERE "id" = %s AND "version" = %s'
        )
        assert statement.params == ("u", ROW_ID, ROW_ID, 0)
        assert ticket.version == 1

    def test_update_requires_exactly_one_affected_row(self):
        conn = _FakeConnection(affected=2)
        ticket = _ticket(conn, title="t")
        ticket.set_id(ROW_ID)
        ticket.version = 0

        with pytest.raises(MissingRecordError):
            ticket.update()
        assert ticket.version == 0
