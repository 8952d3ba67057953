"""
Shared pytest fixtures for activesql tests.

This module provides:
- An in-memory SQLite ``Db`` with a small declared schema
- A recording fake connection for asserting statement counts
- Settings cache isolation

Usage:
    def test_something(db):
        db.insert(Record("users", name="ada"))
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping, Sequence
from pathlib import Path
from typing import Any

import pytest

from activesql.core.adapters.sqlite import SqliteProvider
from activesql.core.db import Db
from activesql.core.dialect import SQLiteDialect
from activesql.core.errors import TransportFailure
from activesql.core.protocols import ExecuteResult
from activesql.core.schema import LogicalDeleteSpec, StaticSchema, TableSchema
from activesql.core.settings import clear_settings_cache

DDL = """
CREATE TABLE users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT,
    email TEXT,
    age INTEGER,
    deleted INTEGER NOT NULL DEFAULT 0
);
CREATE TABLE memberships (
    user_id INTEGER NOT NULL,
    group_id INTEGER NOT NULL,
    role TEXT,
    PRIMARY KEY (user_id, group_id)
);
CREATE TABLE notes (
    id INTEGER PRIMARY KEY,
    body TEXT NOT NULL UNIQUE
);
"""


def make_schema() -> StaticSchema:
    return StaticSchema(
        [
            TableSchema(
                "users",
                ("id",),
                ("id", "name", "email", "age", "deleted"),
                generated_key=True,
                logical_delete=LogicalDeleteSpec(),
            ),
            TableSchema(
                "memberships",
                ("user_id", "group_id"),
                ("user_id", "group_id", "role"),
            ),
            TableSchema("notes", ("id",), ("id", "body"), generated_key=True),
        ],
        strict=True,
    )


# =============================================================================
# Recording fake connection
# =============================================================================


class RecordingConnection:
    """Connection double that records every call.

    ``query_results`` are returned by successive ``query`` calls (``[]``
    once exhausted).  ``fail_when(method, sql)`` returning True makes that
    call raise ``TransportFailure``.
    """

    def __init__(
        self,
        query_results: Sequence[list[Mapping[str, Any]]] = (),
        *,
        fail_when: Callable[[str, str], bool] | None = None,
        generated_key: Any = 1,
    ) -> None:
        self.calls: list[tuple[str, str, Any]] = []
        self.events: list[str] = []
        self._results = list(query_results)
        self._fail_when = fail_when
        self._key = generated_key

    def _maybe_fail(self, method: str, sql: str) -> None:
        if self._fail_when is not None and self._fail_when(method, sql):
            raise TransportFailure(f"{method} failed")

    @property
    def statements(self) -> list[tuple[str, str, Any]]:
        """Calls that reached the database (execute, execute_many, query)."""
        return [c for c in self.calls if c[0] in ("execute", "execute_many", "query")]

    def execute(self, sql: str, params: Sequence[Any] = ()) -> ExecuteResult:
        self.calls.append(("execute", sql, tuple(params)))
        self._maybe_fail("execute", sql)
        return ExecuteResult(1, self._key)

    def execute_many(self, sql: str, rows: Sequence[Sequence[Any]]) -> int:
        self.calls.append(("execute_many", sql, [tuple(r) for r in rows]))
        self._maybe_fail("execute_many", sql)
        return len(rows)

    def query(self, sql: str, params: Sequence[Any] = ()) -> list[Mapping[str, Any]]:
        self.calls.append(("query", sql, tuple(params)))
        self._maybe_fail("query", sql)
        return self._results.pop(0) if self._results else []

    def begin(self) -> None:
        self.events.append("begin")

    def commit(self) -> None:
        self.events.append("commit")

    def rollback(self) -> None:
        self.events.append("rollback")


class RecordingProvider:
    """Hands out one ``RecordingConnection`` and counts acquire/release."""

    def __init__(self, conn: RecordingConnection | None = None) -> None:
        self.conn = conn or RecordingConnection()
        self.acquired = 0
        self.released = 0

    def acquire(self) -> RecordingConnection:
        self.acquired += 1
        return self.conn

    def release(self, conn: RecordingConnection) -> None:
        self.released += 1


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def schema() -> StaticSchema:
    return make_schema()


@pytest.fixture
def provider() -> Iterator[SqliteProvider]:
    provider = SqliteProvider(":memory:")
    conn = provider.acquire()
    try:
        conn.raw.executescript(DDL)
    finally:
        provider.release(conn)
    yield provider
    provider.close()


@pytest.fixture
def db(provider: SqliteProvider, schema: StaticSchema) -> Db:
    return Db(provider, SQLiteDialect(), schema)


@pytest.fixture
def recording() -> RecordingProvider:
    return RecordingProvider()


@pytest.fixture
def fake_db(recording: RecordingProvider, schema: StaticSchema) -> Db:
    return Db(recording, SQLiteDialect(), schema)


@pytest.fixture
def tmp_db_path(tmp_path: Path) -> str:
    return str(tmp_path / "activesql.db")


@pytest.fixture(autouse=True)
def _clean_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Keep ``get_settings()`` and ACTIVESQL_* variables from leaking between tests."""
    import os

    for key in list(os.environ):
        if key.startswith("ACTIVESQL_"):
            monkeypatch.delenv(key)
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def make_recording() -> Callable[..., RecordingProvider]:
    """Build a ``RecordingProvider`` whose connection takes the given options."""

    def factory(**kwargs: Any) -> RecordingProvider:
        return RecordingProvider(RecordingConnection(**kwargs))

    return factory
