"""SQLAlchemy engine adapter and provider.

Makes any SQLAlchemy engine usable as a :class:`ConnectionProvider`.
Pooling, driver loading and reconnects stay with the engine; the adapter
only translates the compiled positional statements into ``text()``
statements with named binds.

This module provides:

* ``create_engine``         -- Engine from a URL with per-backend defaults.
* ``SQLAlchemyConnection``  -- Wraps a SA ``Connection`` to satisfy the
  ``activesql.core.protocols.Connection`` protocol.
* ``SQLAlchemyProvider``    -- ``engine.connect()`` per scope, closed on release.

Tags:
    sqlalchemy, engine, bridge, connection, activesql
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from sqlalchemy import create_engine as _sa_create_engine
from sqlalchemy import event, text
from sqlalchemy.engine import Connection as SAConnection
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from activesql.core.errors import IntegrityViolation, TransportFailure
from activesql.core.logging import get_logger
from activesql.core.protocols import ExecuteResult

logger = get_logger(__name__)


def create_engine(
    url: str = "sqlite://",
    *,
    echo: bool = False,
    pool_size: int | None = None,
    max_overflow: int | None = None,
    pool_timeout: int | None = None,
    **kwargs: Any,
) -> Engine:
    """Create a SQLAlchemy engine with sane defaults.

    Parameters
    ----------
    url:
        Database URL (``sqlite:///…``, ``postgresql+psycopg2://…``, etc.)
    echo:
        If ``True``, log all SQL through SQLAlchemy's logger.
    pool_size, max_overflow, pool_timeout:
        Connection pool parameters (ignored for SQLite).
    **kwargs:
        Extra arguments forwarded to ``sqlalchemy.create_engine``.
    """
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        if url in ("sqlite://", "sqlite:///:memory:"):
            # one connection, or every scope would see its own empty database
            kwargs.setdefault("poolclass", StaticPool)

        engine = _sa_create_engine(url, echo=echo, **kwargs)

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_connection: Any, _rec: Any) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    pool_kwargs: dict[str, Any] = {}
    if pool_size is not None:
        pool_kwargs["pool_size"] = pool_size
    if max_overflow is not None:
        pool_kwargs["max_overflow"] = max_overflow
    if pool_timeout is not None:
        pool_kwargs["pool_timeout"] = pool_timeout

    return _sa_create_engine(url, echo=echo, **pool_kwargs, **kwargs)


def to_named_binds(sql: str, paramstyle: str = "qmark") -> str:
    """Rewrite positional placeholders as ``:p0, :p1, …`` for ``text()``.

    Quoted literals and comments are copied through with their colons
    escaped so ``text()`` does not mistake them for binds.
    """
    out: list[str] = []
    index = 0
    i, n = 0, len(sql)
    while i < n:
        ch = sql[i]
        end = -1
        if ch in ("'", '"'):
            end = sql.find(ch, i + 1)
            end = n if end == -1 else end + 1
        elif sql.startswith("--", i):
            end = sql.find("\n", i)
            end = n if end == -1 else end
        elif sql.startswith("/*", i):
            end = sql.find("*/", i + 2)
            end = n if end == -1 else end + 2
        if end != -1:
            literal = sql[i:end].replace(":", "\\:")
            if paramstyle == "format":
                literal = literal.replace("%%", "%")
            out.append(literal)
            i = end
            continue
        if paramstyle == "qmark" and ch == "?":
            out.append(f":p{index}")
            index += 1
            i += 1
            continue
        if paramstyle == "format" and ch == "%":
            if sql.startswith("%s", i):
                out.append(f":p{index}")
                index += 1
                i += 2
                continue
            if sql.startswith("%%", i):
                out.append("%")
                i += 2
                continue
        if paramstyle == "numeric" and ch == ":" and i + 1 < n and sql[i + 1].isdigit():
            j = i + 1
            while j < n and sql[j].isdigit():
                j += 1
            out.append(f":p{int(sql[i + 1 : j]) - 1}")
            i = j
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def _binds(params: Sequence[Any]) -> dict[str, Any]:
    return {f"p{i}": v for i, v in enumerate(params)}


def _wrap(e: SQLAlchemyError, action: str) -> TransportFailure:
    if isinstance(e, IntegrityError):
        return IntegrityViolation(f"{action} rejected: {e.orig or e}", cause=e)
    return TransportFailure(f"{action} failed: {e}", cause=e)


class SQLAlchemyConnection:
    """Adapter that makes a SQLAlchemy ``Connection`` look like
    ``activesql.core.protocols.Connection``.

    ``paramstyle`` is that of the dialect the statements were compiled for.
    """

    def __init__(self, conn: SAConnection, paramstyle: str = "qmark") -> None:
        self._conn = conn
        self._paramstyle = paramstyle

    def _text(self, sql: str) -> Any:
        return text(to_named_binds(sql, self._paramstyle))

    # --- Connection protocol ---

    def execute(self, sql: str, params: Sequence[Any] = ()) -> ExecuteResult:
        try:
            result = self._conn.execute(self._text(sql), _binds(params))
            key = None
            if result.returns_rows:
                # INSERT ... RETURNING
                row = result.fetchone()
                key = row[0] if row is not None else None
                result.fetchall()
            elif sql.lstrip()[:6].upper() == "INSERT":
                key = result.lastrowid
            rowcount = result.rowcount if result.rowcount >= 0 else int(key is not None)
            return ExecuteResult(rowcount, key)
        except SQLAlchemyError as e:
            raise _wrap(e, "execute") from e

    def execute_many(self, sql: str, rows: Sequence[Sequence[Any]]) -> int:
        try:
            result = self._conn.execute(self._text(sql), [_binds(r) for r in rows])
            # some drivers do not report executemany row counts
            return result.rowcount if result.rowcount >= 0 else len(rows)
        except SQLAlchemyError as e:
            raise _wrap(e, "execute_many") from e

    def query(self, sql: str, params: Sequence[Any] = ()) -> list[Mapping[str, Any]]:
        try:
            result = self._conn.execute(self._text(sql), _binds(params))
            return [dict(row) for row in result.mappings().all()]
        except SQLAlchemyError as e:
            raise _wrap(e, "query") from e

    def begin(self) -> None:
        if not self._conn.in_transaction():
            try:
                self._conn.begin()
            except SQLAlchemyError as e:
                raise _wrap(e, "begin") from e

    def commit(self) -> None:
        try:
            self._conn.commit()
        except SQLAlchemyError as e:
            raise _wrap(e, "commit") from e

    def rollback(self) -> None:
        try:
            self._conn.rollback()
        except SQLAlchemyError as e:
            raise _wrap(e, "rollback") from e

    def close(self) -> None:
        self._conn.close()

    # --- properties ---

    @property
    def connection(self) -> SAConnection:
        """Access the underlying SA connection."""
        return self._conn


class SQLAlchemyProvider:
    """One ``engine.connect()`` per scope; the engine's pool does the rest."""

    def __init__(self, engine: Engine, paramstyle: str = "qmark") -> None:
        self.engine = engine
        self.paramstyle = paramstyle

    @classmethod
    def from_url(cls, url: str, paramstyle: str = "qmark", **kwargs: Any) -> SQLAlchemyProvider:
        return cls(create_engine(url, **kwargs), paramstyle)

    def acquire(self) -> SQLAlchemyConnection:
        try:
            return SQLAlchemyConnection(self.engine.connect(), self.paramstyle)
        except SQLAlchemyError as e:
            raise _wrap(e, "connect") from e

    def release(self, conn: SQLAlchemyConnection) -> None:
        conn.close()

    def close(self) -> None:
        self.engine.dispose()
        logger.debug("engine_disposed", url=self.engine.url.render_as_string(hide_password=True))

    def __repr__(self) -> str:
        return f"SQLAlchemyProvider({self.engine.url.render_as_string(hide_password=True)!r})"


__all__ = [
    "create_engine",
    "to_named_binds",
    "SQLAlchemyConnection",
    "SQLAlchemyProvider",
]
