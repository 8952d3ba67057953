"""Tests for ``activesql.core.adapters.sqlite`` — SQLite adapter."""

from __future__ import annotations

import sqlite3
import threading
from unittest.mock import patch

import pytest

from activesql.core.adapters.sqlite import SqliteConnection, SqliteProvider
from activesql.core.errors import IntegrityViolation, TransportFailure
from activesql.core.protocols import Connection, ConnectionProvider


@pytest.fixture
def conn():
    c = SqliteConnection.open(":memory:")
    c.raw.execute("CREATE TABLE t (id INTEGER PRIMARY KEY, name TEXT UNIQUE)")
    yield c
    c.close()


class TestSqliteConnection:
    def test_satisfies_protocol(self, conn):
        assert isinstance(conn, Connection)

    def test_foreign_keys_enabled(self, conn):
        assert conn.query("PRAGMA foreign_keys")[0]["foreign_keys"] == 1

    def test_execute_reports_key_and_rowcount(self, conn):
        result = conn.execute("INSERT INTO t (name) VALUES (?)", ("a",))
        assert result.rowcount == 1
        assert result.generated_key == 1

    def test_update_has_no_key(self, conn):
        conn.execute("INSERT INTO t (name) VALUES (?)", ("a",))
        result = conn.execute("UPDATE t SET name = ? WHERE id = ?", ("b", 1))
        assert result.rowcount == 1
        assert result.generated_key is None

    def test_execute_many(self, conn):
        assert conn.execute_many("INSERT INTO t (name) VALUES (?)", [("a",), ("b",), ("c",)]) == 3

    def test_query_returns_dicts(self, conn):
        conn.execute("INSERT INTO t (name) VALUES (?)", ("a",))
        assert conn.query("SELECT * FROM t") == [{"id": 1, "name": "a"}]

    def test_rollback(self, conn):
        conn.begin()
        conn.execute("INSERT INTO t (name) VALUES (?)", ("a",))
        conn.rollback()
        assert conn.query("SELECT * FROM t") == []

    def test_commit(self, conn):
        conn.begin()
        conn.execute("INSERT INTO t (name) VALUES (?)", ("a",))
        conn.commit()
        assert not conn.raw.in_transaction
        assert len(conn.query("SELECT * FROM t")) == 1

    def test_begin_twice_is_harmless(self, conn):
        conn.begin()
        conn.begin()
        conn.rollback()

    def test_integrity_error_mapped(self, conn):
        conn.execute("INSERT INTO t (name) VALUES (?)", ("a",))
        with pytest.raises(IntegrityViolation) as exc:
            conn.execute("INSERT INTO t (name) VALUES (?)", ("a",))
        assert isinstance(exc.value.cause, sqlite3.IntegrityError)

    def test_driver_error_mapped(self, conn):
        with pytest.raises(TransportFailure) as exc:
            conn.query("SELECT * FROM missing")
        assert isinstance(exc.value.__cause__, sqlite3.OperationalError)

    @patch("sqlite3.connect", side_effect=sqlite3.OperationalError("unable to open database"))
    def test_open_failure(self, mock_connect):
        with pytest.raises(TransportFailure):
            SqliteConnection.open("/nonexistent/path.db")


class TestSqliteProvider:
    def test_satisfies_protocol(self):
        assert isinstance(SqliteProvider(), ConnectionProvider)

    def test_memory_shares_one_connection(self):
        provider = SqliteProvider(":memory:")
        first = provider.acquire()
        provider.release(first)
        second = provider.acquire()
        provider.release(second)
        assert first is second
        provider.close()

    def test_memory_serializes_scopes(self):
        provider = SqliteProvider(":memory:")
        conn = provider.acquire()
        acquired = threading.Event()

        def other():
            c = provider.acquire()
            acquired.set()
            provider.release(c)

        thread = threading.Thread(target=other)
        thread.start()
        assert not acquired.wait(0.1)
        provider.release(conn)
        thread.join(timeout=5)
        assert acquired.is_set()
        provider.close()

    def test_file_opens_connection_per_acquire(self, tmp_db_path):
        provider = SqliteProvider(tmp_db_path)
        a = provider.acquire()
        a.execute("CREATE TABLE t (id INTEGER PRIMARY KEY)")
        b = provider.acquire()
        assert a is not b
        assert b.query("SELECT name FROM sqlite_master WHERE type = 'table'") == [{"name": "t"}]
        provider.release(a)
        provider.release(b)
