"""
Canonical protocol definitions for activesql.

The access layer never imports a database driver.  It talks to the
outside world through the structural protocols defined here; concrete
implementations live in :mod:`activesql.core.adapters` (``sqlite3`` and
SQLAlchemy) or are supplied by the caller (test doubles, other drivers).

Architecture:
    ::

        protocols.py (YOU ARE HERE)
        ├── ExecuteResult       — rowcount + generated key of one statement
        ├── Connection          — one borrowed DB connection
        └── ConnectionProvider  — acquire / release (pooling is its business)

    Related protocols live next to their consumers:
        dialect.py  → Dialect
        schema.py   → SchemaProvider

Guardrails:
    ❌ DON'T: Let a Connection retry statements on its own
    ✅ DO: Raise TransportFailure and let the caller decide

    ❌ DON'T: Share one Connection between concurrent scopes
    ✅ DO: acquire() per scope, release() in ``finally``

Tags:
    protocol, connection, database, contracts, activesql
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class ExecuteResult:
    """Outcome of one mutating statement."""

    rowcount: int
    """Rows affected (``0`` when the driver reports ``-1``)."""

    generated_key: Any = None
    """Database-generated key of the inserted row, when the driver knows it."""


@runtime_checkable
class Connection(Protocol):
    """
    Minimal synchronous connection used by the executor.

    Placeholders in ``sql`` follow the dialect the connection was paired
    with; ``params`` are positional and already ordered to match.

    Architecture:
        ::

            Connection Protocol:
            ┌────────────────────────────────────────────────────────┐
            │ execute(sql, params)      → ExecuteResult              │
            │ execute_many(sql, rows)   → affected rows              │
            │ query(sql, params)        → list of column mappings    │
            │ begin()                   → start transaction          │
            │ commit()                  → commit transaction         │
            │ rollback()                → rollback transaction       │
            └────────────────────────────────────────────────────────┘

            Implementations:
            ┌────────────────────────────────────────────────────────┐
            │ SqliteConnection       → sqlite3 (stdlib)              │
            │ SQLAlchemyConnection   → any SQLAlchemy engine         │
            └────────────────────────────────────────────────────────┘
    """

    def execute(self, sql: str, params: Sequence[Any] = ()) -> ExecuteResult:
        """Run one statement; one round-trip."""
        ...

    def execute_many(self, sql: str, rows: Sequence[Sequence[Any]]) -> int:
        """Run one statement for many parameter rows; one round-trip."""
        ...

    def query(self, sql: str, params: Sequence[Any] = ()) -> list[Mapping[str, Any]]:
        """Run a SELECT and return every row as a column mapping."""
        ...

    def begin(self) -> None:
        """Start a transaction (no-op if one is already open)."""
        ...

    def commit(self) -> None:
        """Commit current transaction."""
        ...

    def rollback(self) -> None:
        """Rollback current transaction."""
        ...


@runtime_checkable
class ConnectionProvider(Protocol):
    """
    Source of connections.

    ``acquire`` may block (pool exhaustion, single in-memory connection);
    every acquired connection is handed back through ``release`` exactly
    once, on every exit path.
    """

    def acquire(self) -> Connection:
        """Borrow a connection."""
        ...

    def release(self, conn: Connection) -> None:
        """Return a borrowed connection."""
        ...


__all__ = [
    "ExecuteResult",
    "Connection",
    "ConnectionProvider",
]
