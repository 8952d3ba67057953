"""Executor — runs compiled statements on a borrowed connection.

One call, one round-trip.  The executor never retries and never opens or
closes transactions; both belong to the caller's scope.  Connections are
expected to raise :class:`~activesql.core.errors.TransportFailure`; any
other exception escaping a connection is wrapped into one so callers see
a single failure type for everything that happened on the wire.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from typing import Any, TypeVar

from activesql.core.batch import BatchGroup
from activesql.core.compiler import CompiledStatement
from activesql.core.errors import ActiveSqlError, NoGeneratedKey, TransportFailure
from activesql.core.logging import get_logger
from activesql.core.protocols import Connection, ExecuteResult
from activesql.core.record import Record

logger = get_logger(__name__)

R = TypeVar("R")


class Executor:
    """Statement runner shared by every scope of one :class:`~activesql.core.db.Db`."""

    def execute(self, conn: Connection, stmt: CompiledStatement) -> int:
        """Run a mutating statement; return the affected row count."""
        result: ExecuteResult = self._call(
            lambda: conn.execute(stmt.sql, stmt.params), stmt.sql, stmt.table, len(stmt.params)
        )
        return result.rowcount

    def execute_returning_key(self, conn: Connection, stmt: CompiledStatement) -> Any:
        """Run an INSERT and return the key the database generated for it."""
        result: ExecuteResult = self._call(
            lambda: conn.execute(stmt.sql, stmt.params), stmt.sql, stmt.table, len(stmt.params)
        )
        if result.generated_key is None:
            raise NoGeneratedKey(
                "Driver reported no generated key",
                table=stmt.table,
                operation=stmt.kind.value,
            )
        return result.generated_key

    def query(self, conn: Connection, stmt: CompiledStatement) -> list[Record]:
        """Run a SELECT; every row becomes a Record tagged with the statement's table."""
        rows = self._call(
            lambda: conn.query(stmt.sql, stmt.params), stmt.sql, stmt.table, len(stmt.params)
        )
        return [Record(stmt.table, row) for row in rows]

    def scalar(self, conn: Connection, stmt: CompiledStatement) -> Any:
        """First column of the first row, or ``None`` for an empty result."""
        rows = self._call(
            lambda: conn.query(stmt.sql, stmt.params), stmt.sql, stmt.table, len(stmt.params)
        )
        if not rows:
            return None
        return next(iter(rows[0].values()), None)

    def execute_group(self, conn: Connection, group: BatchGroup) -> int:
        """Send one planned chunk in a single ``execute_many`` round-trip."""
        return self._call(
            lambda: conn.execute_many(group.sql, group.rows),
            group.sql,
            group.table,
            len(group.rows),
            batch=True,
        )

    def execute_batch(self, conn: Connection, groups: Sequence[BatchGroup]) -> int:
        """Send every group in order; return the summed affected rows."""
        return sum(self.execute_group(conn, group) for group in groups)

    def _call(
        self,
        fn: Callable[[], R],
        sql: str,
        table: str | None,
        size: int,
        batch: bool = False,
    ) -> R:
        start = time.perf_counter()
        try:
            result = fn()
        except ActiveSqlError as e:
            if e.context.sql is None:
                e.with_context(sql=sql)
            if e.context.table is None and table is not None:
                e.with_context(table=table)
            raise
        except Exception as e:
            raise TransportFailure(
                f"Statement failed: {e}",
                cause=e,
                table=table,
            ).with_context(sql=sql) from e

        logger.debug(
            "batch_executed" if batch else "statement_executed",
            table=table,
            rows=size if batch else None,
            params=None if batch else size,
            duration_ms=round((time.perf_counter() - start) * 1000, 3),
        )
        return result


__all__ = [
    "Executor",
]
