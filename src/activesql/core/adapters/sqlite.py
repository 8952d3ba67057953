"""SQLite connection adapter and provider.

Uses the built-in sqlite3 module.  Suitable for:
- Development and testing
- Single-process applications
- The CLI against a local database file

``sqlite3`` is opened in autocommit mode (``isolation_level=None``) so the
adapter alone decides where transactions start: :meth:`SqliteConnection.begin`
issues ``BEGIN`` and the scope's commit/rollback ends it.
"""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Mapping, Sequence
from typing import Any

from activesql.core.errors import IntegrityViolation, TransportFailure
from activesql.core.logging import get_logger
from activesql.core.protocols import ExecuteResult

logger = get_logger(__name__)

MEMORY = ":memory:"


def _wrap(e: sqlite3.Error, action: str) -> TransportFailure:
    if isinstance(e, sqlite3.IntegrityError):
        return IntegrityViolation(f"SQLite {action} rejected: {e}", cause=e)
    return TransportFailure(f"SQLite {action} failed: {e}", cause=e)


class SqliteConnection:
    """Adapter: ``sqlite3.Connection`` → ``Connection`` protocol."""

    def __init__(self, raw: sqlite3.Connection) -> None:
        self._conn = raw
        self._conn.row_factory = sqlite3.Row

    @classmethod
    def open(cls, path: str = MEMORY, *, timeout: float = 5.0) -> SqliteConnection:
        uri = path.startswith("file:")
        try:
            raw = sqlite3.connect(
                path,
                timeout=timeout,
                isolation_level=None,
                check_same_thread=False,
                uri=uri,
            )
            raw.execute("PRAGMA foreign_keys = ON")
        except sqlite3.Error as e:
            raise _wrap(e, "connect") from e
        return cls(raw)

    # -- Connection protocol -----------------------------------------------

    def execute(self, sql: str, params: Sequence[Any] = ()) -> ExecuteResult:
        try:
            cursor = self._conn.execute(sql, tuple(params))
            key = None
            if cursor.description:
                # INSERT ... RETURNING
                row = cursor.fetchone()
                key = row[0] if row is not None else None
                cursor.fetchall()
            elif sql.lstrip()[:6].upper() == "INSERT":
                key = cursor.lastrowid
            return ExecuteResult(max(cursor.rowcount, 0), key)
        except sqlite3.Error as e:
            raise _wrap(e, "execute") from e

    def execute_many(self, sql: str, rows: Sequence[Sequence[Any]]) -> int:
        try:
            cursor = self._conn.executemany(sql, [tuple(r) for r in rows])
            return max(cursor.rowcount, 0)
        except sqlite3.Error as e:
            raise _wrap(e, "execute_many") from e

    def query(self, sql: str, params: Sequence[Any] = ()) -> list[Mapping[str, Any]]:
        try:
            cursor = self._conn.execute(sql, tuple(params))
            return [dict(row) for row in cursor.fetchall()]
        except sqlite3.Error as e:
            raise _wrap(e, "query") from e

    def begin(self) -> None:
        if not self._conn.in_transaction:
            try:
                self._conn.execute("BEGIN")
            except sqlite3.Error as e:
                raise _wrap(e, "begin") from e

    def commit(self) -> None:
        if self._conn.in_transaction:
            try:
                self._conn.execute("COMMIT")
            except sqlite3.Error as e:
                raise _wrap(e, "commit") from e

    def rollback(self) -> None:
        if self._conn.in_transaction:
            try:
                self._conn.execute("ROLLBACK")
            except sqlite3.Error as e:
                raise _wrap(e, "rollback") from e

    def close(self) -> None:
        self._conn.close()

    # -- convenience -------------------------------------------------------

    @property
    def raw(self) -> sqlite3.Connection:
        """Access the underlying ``sqlite3.Connection`` (e.g. for pragmas)."""
        return self._conn

    def __repr__(self) -> str:
        return f"SqliteConnection({self._conn!r})"


class SqliteProvider:
    """Connections to one SQLite database.

    ``":memory:"`` databases live and die with their connection, so the
    provider keeps a single one and hands it to one scope at a time
    (``acquire`` blocks until the previous scope releases it).  File
    databases get a fresh connection per ``acquire``, closed on release.
    """

    def __init__(self, path: str = MEMORY, *, timeout: float = 5.0) -> None:
        self.path = path
        self._timeout = timeout
        self._shared: SqliteConnection | None = None
        self._lock = threading.Lock()

    @property
    def is_memory(self) -> bool:
        return self.path == MEMORY or self.path == ""

    def acquire(self) -> SqliteConnection:
        if self.is_memory:
            self._lock.acquire()
            try:
                if self._shared is None:
                    self._shared = SqliteConnection.open(MEMORY, timeout=self._timeout)
            except BaseException:
                self._lock.release()
                raise
            return self._shared
        return SqliteConnection.open(self.path, timeout=self._timeout)

    def release(self, conn: SqliteConnection) -> None:
        if self.is_memory:
            self._lock.release()
        else:
            conn.close()

    def close(self) -> None:
        if self._shared is not None:
            self._shared.close()
            self._shared = None
        logger.debug("sqlite_provider_closed", path=self.path)

    def __repr__(self) -> str:
        return f"SqliteProvider({self.path!r})"


__all__ = [
    "SqliteConnection",
    "SqliteProvider",
]
