"""Transaction coordinator.

A scope owns one borrowed connection from entry to exit.  The active
scope is held in a :class:`contextvars.ContextVar`, so a nested call made
while a scope is open (from the same thread or asyncio task) reuses it
instead of borrowing a second connection; other threads and tasks never
see it.  There are no savepoints: an inner failure that is caught and
swallowed by the caller still leaves the outer scope to commit.

Lifecycle::

    acquire → begin → work → commit ─┐
                        └→ rollback ─┴→ release (always)
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

from activesql.core.logging import get_logger
from activesql.core.protocols import Connection, ConnectionProvider

logger = get_logger(__name__)


class TransactionCoordinator:
    """Opens, reuses and closes scopes on one connection provider."""

    def __init__(self, provider: ConnectionProvider) -> None:
        self.provider = provider
        self._active: ContextVar[Connection | None] = ContextVar(
            f"activesql_scope_{id(self):x}", default=None
        )

    @property
    def in_transaction(self) -> bool:
        return self._active.get() is not None

    def current(self) -> Connection | None:
        """Connection of the scope open in this context, if any."""
        return self._active.get()

    @contextmanager
    def scope(self) -> Iterator[Connection]:
        """Enter a scope, or join the one already open in this context.

        Only the outermost scope commits, rolls back and releases.
        """
        active = self._active.get()
        if active is not None:
            yield active
            return

        conn = self.provider.acquire()
        token = None
        try:
            conn.begin()
            token = self._active.set(conn)
            try:
                yield conn
            except BaseException as e:
                self._rollback(conn, e)
                raise
            try:
                conn.commit()
            except BaseException as e:
                self._rollback(conn, e)
                raise
            logger.debug("transaction_committed")
        finally:
            if token is not None:
                self._active.reset(token)
            self.provider.release(conn)

    def _rollback(self, conn: Connection, error: BaseException) -> None:
        try:
            conn.rollback()
        except Exception:
            # the original error is re-raised by the caller
            logger.exception("rollback_failed", error=type(error).__name__)
            return
        logger.warning("transaction_rolled_back", error=type(error).__name__)


__all__ = [
    "TransactionCoordinator",
]
