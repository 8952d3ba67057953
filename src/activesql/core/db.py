"""Data access API.

:class:`Db` is the one object callers use.  It compiles each request,
borrows a connection for the shortest scope that covers it and turns the
result back into Records (or mapped objects).

Every call made outside :meth:`Db.transaction` / :meth:`Db.run_in_transaction`
runs in its own auto-commit scope.  Calls made inside one join it.

Usage::

    schema = StaticSchema(default_generated_key=True)
    db = Db(SqliteProvider(":memory:"), SQLiteDialect(), schema)

    key = db.insert_returning_key(Record("users", name="ada"))
    db.update(Record("users", id=key, email="ada@example.org"))

    def transfer(tx: Db) -> None:
        tx.update(Record("accounts", id=1, balance=90))
        tx.update(Record("accounts", id=2, balance=110))

    db.run_in_transaction(transfer)

    page = db.select_page_result(
        "SELECT * FROM users WHERE deleted = :deleted",
        Page(2, 10, order_by="id"),
        {"deleted": 0},
    )

Batches compile every statement before the first one is sent, so a bad
record fails the whole call with nothing applied.  A batch runs in one
scope unless ``transactional=False`` is passed, in which case each
round-trip commits on its own and a failure part way through raises
:class:`~activesql.core.errors.PartialBatchFailure`.

Upserts are check-then-act (``SELECT COUNT(*)`` then ``INSERT`` or
``UPDATE``).  Two writers upserting the same new key at the same time can
both see a count of zero; the loser gets the unique-constraint
:class:`~activesql.core.errors.IntegrityViolation`.

Tags:
    data-access, active-record, transaction, batch, pagination, activesql
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, TypeVar

from activesql.core.batch import DEFAULT_CHUNK_SIZE, plan_batch
from activesql.core.compiler import CompiledStatement, StatementCompiler, UpsertPlan
from activesql.core.dialect import Dialect
from activesql.core.errors import NoGeneratedKey, PartialBatchFailure
from activesql.core.executor import Executor
from activesql.core.logging import get_logger
from activesql.core.operations import OperationKind
from activesql.core.pagination import Page, PageResult
from activesql.core.protocols import Connection, ConnectionProvider
from activesql.core.record import MappingRegistry, Record, normalize_identifier
from activesql.core.schema import SchemaProvider, StaticSchema
from activesql.core.transaction import TransactionCoordinator

logger = get_logger(__name__)

R = TypeVar("R")

# named values: a mapping, a Record or a mapped object
Params = Any


@dataclass(frozen=True)
class _Step:
    """One unit of a batch: how many records it carries and how to run it."""

    size: int
    indexes: tuple[int, ...]
    run: Callable[[Connection], int]


class Db:
    """Active-record and mapped-object access over one connection provider.

    Parameters:
        provider: Source of connections.
        dialect: SQL dialect of the provider's database.
        schema: Table descriptions; defaults to a :class:`StaticSchema`
                with conventional ``id`` keys.
        registry: Declared class-to-table mappings for structured records.
        batch_size: Maximum rows per batch round-trip and identifiers per
                    ``IN`` list.
    """

    def __init__(
        self,
        provider: ConnectionProvider,
        dialect: Dialect,
        schema: SchemaProvider | None = None,
        *,
        registry: MappingRegistry | None = None,
        batch_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self.provider = provider
        self.dialect = dialect
        self.schema = schema if schema is not None else StaticSchema()
        self.registry = registry if registry is not None else MappingRegistry()
        self.batch_size = batch_size
        self.compiler = StatementCompiler(self.schema, dialect)
        self.executor = Executor()
        self.transactions = TransactionCoordinator(provider)

    def __repr__(self) -> str:
        return f"Db(dialect={self.dialect.name!r}, batch_size={self.batch_size})"

    # =====================================================================
    # Insert
    # =====================================================================

    def insert(self, record: Any, *, all_fields: bool = False) -> int:
        """Insert one row; only non-null fields unless ``all_fields``."""
        stmt = self.compiler.insert(self._record(record), all_fields=all_fields)
        with self.transactions.scope() as conn:
            return self.executor.execute(conn, stmt)

    def insert_returning_key(self, record: Any, *, all_fields: bool = False) -> Any:
        """Insert one row and return its database-generated key."""
        stmt = self.compiler.insert(self._record(record), all_fields=all_fields, returning_key=True)
        with self.transactions.scope() as conn:
            return self.executor.execute_returning_key(conn, stmt)

    def insert_batch(
        self,
        records: Sequence[Any],
        *,
        all_fields: bool = False,
        transactional: bool = True,
    ) -> int:
        """Insert many rows, one ``execute_many`` per SQL shape and chunk."""
        stmts = [self.compiler.insert(self._record(r), all_fields=all_fields) for r in records]
        return self._run_batch(stmts, OperationKind.INSERT, transactional)

    def insert_batch_returning_keys(
        self,
        records: Sequence[Any],
        *,
        all_fields: bool = False,
    ) -> list[Any]:
        """Insert many rows in one scope; keys are returned in input order.

        Drivers only report a generated key per statement, so this sends
        one statement per record.
        """
        stmts = [
            self.compiler.insert(self._record(r), all_fields=all_fields, returning_key=True)
            for r in records
        ]
        if not stmts:
            return []
        with self.transactions.scope() as conn:
            return [self.executor.execute_returning_key(conn, s) for s in stmts]

    # =====================================================================
    # Upsert
    # =====================================================================

    def upsert(self, record: Any) -> int:
        """Insert the record, or update it selectively if its key exists."""
        plan = self.compiler.upsert(self._record(record))
        with self.transactions.scope() as conn:
            return self._resolve_upsert(conn, plan)

    def upsert_returning_key(self, record: Any) -> Any:
        """Upsert and return the row's key.

        An updated row returns the record's own key; an inserted row returns
        the generated key when the table has one, else the record's key.
        """
        plan = self._keyed_upsert(record)
        with self.transactions.scope() as conn:
            return self._resolve_upsert_key(conn, plan)

    def upsert_batch(self, records: Sequence[Any], *, transactional: bool = True) -> int:
        """Upsert each record in order.

        With ``transactional=False`` every record commits on its own; a
        failure on record *k* (1-based) of *n* raises
        ``PartialBatchFailure(applied=k-1, failed=1, not_attempted=n-k)``.
        """
        plans = [self.compiler.upsert(self._record(r)) for r in records]
        steps = [
            _Step(1, (i,), lambda conn, plan=plan: self._resolve_upsert(conn, plan))
            for i, plan in enumerate(plans)
        ]
        table = plans[0].insert.table if plans else None
        return self._apply(steps, OperationKind.UPSERT, transactional, table)

    def upsert_batch_returning_keys(
        self,
        records: Sequence[Any],
        *,
        transactional: bool = True,
    ) -> list[Any]:
        """Upsert each record in order and return their keys in input order.

        Failures are reported as for :meth:`upsert_batch`; the keys of the
        records applied before a failure are lost with the exception.
        """
        plans = [self._keyed_upsert(r) for r in records]
        keys: list[Any] = []

        def step(conn: Connection, plan: UpsertPlan) -> int:
            keys.append(self._resolve_upsert_key(conn, plan))
            return 1

        steps = [
            _Step(1, (i,), lambda conn, plan=plan: step(conn, plan))
            for i, plan in enumerate(plans)
        ]
        table = plans[0].insert.table if plans else None
        self._apply(steps, OperationKind.UPSERT, transactional, table)
        return keys

    def _exists(self, conn: Connection, plan: UpsertPlan) -> bool:
        count = self.executor.scalar(conn, plan.exists)  # type: ignore[arg-type]
        return bool(count) and int(count) > 0

    def _resolve_upsert(self, conn: Connection, plan: UpsertPlan) -> int:
        if plan.exists is not None and self._exists(conn, plan):
            logger.debug("upsert_resolved", table=plan.insert.table, branch="update")
            if plan.update is None:
                return 0
            return self.executor.execute(conn, plan.update)
        logger.debug("upsert_resolved", table=plan.insert.table, branch="insert")
        return self.executor.execute(conn, plan.insert)

    def _resolve_upsert_key(self, conn: Connection, plan: UpsertPlan) -> Any:
        rec = plan.record
        desc = self.schema.table(plan.insert.table or "")
        if plan.exists is not None and self._exists(conn, plan):
            if plan.update is not None:
                self.executor.execute(conn, plan.update)
            logger.debug("upsert_resolved", table=desc.name, branch="update")
            return self._own_key(rec, desc.primary_key)

        logger.debug("upsert_resolved", table=desc.name, branch="insert")
        if desc.generated_key:
            insert = self.compiler.insert(rec, returning_key=True)
            return self.executor.execute_returning_key(conn, insert)
        self.executor.execute(conn, plan.insert)
        return self._own_key(rec, desc.primary_key)

    def _keyed_upsert(self, record: Any) -> UpsertPlan:
        """Plan an upsert whose key is known once it has run."""
        plan = self.compiler.upsert(self._record(record))
        if plan.exists is None:
            desc = self.schema.table(plan.insert.table or "")
            if not desc.generated_key:
                raise NoGeneratedKey(
                    f"Table {desc.name!r} generates no key and the record carries none",
                    table=desc.name,
                    operation=OperationKind.UPSERT.value,
                )
        return plan

    @staticmethod
    def _own_key(record: Record, key_columns: Sequence[str]) -> Any:
        values = normalize_identifier(record, key_columns, table=record.table)
        return values[0] if len(values) == 1 else values

    # =====================================================================
    # Update
    # =====================================================================

    def update(self, record: Any) -> int:
        """Update the non-null, non-key fields of the row the record's key names."""
        stmt = self.compiler.update_selective(self._record(record))
        with self.transactions.scope() as conn:
            return self.executor.execute(conn, stmt)

    def update_all_fields(self, record: Any) -> int:
        """Update every non-key column, writing NULL for null or absent fields."""
        stmt = self.compiler.update_all_fields(self._record(record))
        with self.transactions.scope() as conn:
            return self.executor.execute(conn, stmt)

    def update_batch(self, records: Sequence[Any], *, transactional: bool = True) -> int:
        stmts = [self.compiler.update_selective(self._record(r)) for r in records]
        return self._run_batch(stmts, OperationKind.UPDATE_SELECTIVE, transactional)

    def update_all_fields_batch(self, records: Sequence[Any], *, transactional: bool = True) -> int:
        stmts = [self.compiler.update_all_fields(self._record(r)) for r in records]
        return self._run_batch(stmts, OperationKind.UPDATE_ALL_FIELDS, transactional)

    # =====================================================================
    # Delete
    # =====================================================================

    def delete_by_id(self, table: Any, id: Any) -> int:
        stmt = self.compiler.delete(self._table(table), [id])
        with self.transactions.scope() as conn:
            return self.executor.execute(conn, stmt)

    def delete_by_ids(self, table: Any, ids: Sequence[Any], *, transactional: bool = True) -> int:
        """Delete rows by identifier, ``batch_size`` identifiers per statement."""
        name = self._table(table)
        stmts = [self.compiler.delete(name, chunk) for chunk in self._chunks(ids)]
        return self._run_each(stmts, len(ids), OperationKind.DELETE, transactional, name)

    def logical_delete_by_id(self, table: Any, id: Any) -> int:
        """Set the table's deleted flag on one row; the row stays in place."""
        stmt = self.compiler.logical_delete(self._table(table), [id])
        with self.transactions.scope() as conn:
            return self.executor.execute(conn, stmt)

    def logical_delete_by_ids(
        self,
        table: Any,
        ids: Sequence[Any],
        *,
        transactional: bool = True,
    ) -> int:
        name = self._table(table)
        stmts = [self.compiler.logical_delete(name, chunk) for chunk in self._chunks(ids)]
        return self._run_each(stmts, len(ids), OperationKind.LOGICAL_DELETE, transactional, name)

    # =====================================================================
    # Select
    # =====================================================================

    def select_by_id(self, table: Any, id: Any, *, into: type | None = None) -> Any:
        """The row with identifier ``id``, or ``None``."""
        name, into = self._target(table, into)
        stmt = self.compiler.select_by_id(name, [id])
        with self.transactions.scope() as conn:
            rows = self.executor.query(conn, stmt)
        return self._convert(rows, into)[0] if rows else None

    def select_by_ids(self, table: Any, ids: Sequence[Any], *, into: type | None = None) -> list[Any]:
        """Rows for ``ids``; order follows the database, not ``ids``."""
        name, into = self._target(table, into)
        stmts = [self.compiler.select_by_id(name, chunk) for chunk in self._chunks(ids)]
        if not stmts:
            return []
        rows: list[Record] = []
        with self.transactions.scope() as conn:
            for stmt in stmts:
                rows.extend(self.executor.query(conn, stmt))
        return self._convert(rows, into)

    def select_all(self, table: Any, *, into: type | None = None) -> list[Any]:
        name, into = self._target(table, into)
        stmt = self.compiler.select_by_id(name)
        with self.transactions.scope() as conn:
            return self._convert(self.executor.query(conn, stmt), into)

    def select(
        self,
        sql: str,
        params: Params = None,
        *,
        table: str | None = None,
        into: type | None = None,
        page: Page | None = None,
    ) -> list[Any]:
        """Run a named-parameter query.

        ``table`` tags the resulting Records; with ``into`` it defaults to
        the mapped class's table.
        """
        if into is not None and table is None:
            table = self.registry.get(into).table
        params = self._params(params)
        stmt = self.compiler.select(sql, params, page=page, table=table)
        with self.transactions.scope() as conn:
            return self._convert(self.executor.query(conn, stmt), into)

    def select_one(
        self,
        sql: str,
        params: Params = None,
        *,
        table: str | None = None,
        into: type | None = None,
    ) -> Any:
        """First row of the query, or ``None``."""
        rows = self.select(sql, params, table=table, into=into)
        return rows[0] if rows else None

    def select_count(self, sql: str, params: Params = None) -> int:
        stmt = self.compiler.select_count(sql, self._params(params))
        with self.transactions.scope() as conn:
            return self._count(conn, stmt)

    def select_page(
        self,
        sql: str,
        page: Page,
        params: Params = None,
        *,
        table: str | None = None,
        into: type | None = None,
    ) -> list[Any]:
        """Rows of one page of the query."""
        return self.select(sql, params, table=table, into=into, page=page)

    def select_page_result(
        self,
        sql: str,
        page: Page,
        params: Params = None,
        *,
        table: str | None = None,
        into: type | None = None,
    ) -> PageResult[Any]:
        """One page plus the total row count, read in a single scope."""
        if into is not None and table is None:
            table = self.registry.get(into).table
        params = self._params(params)
        count = self.compiler.select_count(sql, params)
        stmt = self.compiler.select(sql, params, page=page, table=table)
        with self.transactions.scope() as conn:
            total = self._count(conn, count)
            rows = self.executor.query(conn, stmt) if total > page.offset else []
        return PageResult(self._convert(rows, into), page, total)

    def _count(self, conn: Connection, stmt: CompiledStatement) -> int:
        value = self.executor.scalar(conn, stmt)
        return int(value) if value is not None else 0

    # =====================================================================
    # Raw SQL
    # =====================================================================

    def execute_sql(self, sql: str, params: Params = None) -> int:
        """Run SQL verbatim.

        Named parameters are bound from a mapping or a mapped object; a
        plain sequence is passed through as positional parameters.
        """
        stmt = self.compiler.raw(sql, self._params(params))
        with self.transactions.scope() as conn:
            return self.executor.execute(conn, stmt)

    # =====================================================================
    # Transactions
    # =====================================================================

    def run_in_transaction(self, unit_of_work: Callable[[Db], R]) -> R:
        """Call ``unit_of_work(db)`` in one scope.

        Commits and returns its result on normal return; rolls back and
        re-raises on any exception.  Calls nested inside an open scope
        join it.
        """
        with self.transactions.scope():
            return unit_of_work(self)

    @contextmanager
    def transaction(self) -> Iterator[Db]:
        """``with db.transaction() as tx:`` form of :meth:`run_in_transaction`."""
        with self.transactions.scope():
            yield self

    @property
    def in_transaction(self) -> bool:
        return self.transactions.in_transaction

    def close(self) -> None:
        """Close the provider, if it holds resources."""
        close = getattr(self.provider, "close", None)
        if close is not None:
            close()

    # =====================================================================
    # Helpers
    # =====================================================================

    def _record(self, obj: Any) -> Record:
        return self.registry.to_record(obj)

    def _params(self, params: Any) -> Any:
        if params is None or isinstance(params, Mapping):
            return params
        if isinstance(params, Sequence) and not isinstance(params, (str, bytes)):
            return params
        return self._record(params)

    def _table(self, table: Any) -> str:
        if isinstance(table, str):
            return table
        return self.registry.get(table).table

    def _target(self, table: Any, into: type | None) -> tuple[str, type | None]:
        if isinstance(table, str):
            return table, into
        return self.registry.get(table).table, into or table

    def _convert(self, rows: list[Record], into: type | None) -> list[Any]:
        if into is None:
            return rows
        mapping = self.registry.get(into)
        return [mapping.from_record(row) for row in rows]

    def _chunks(self, ids: Sequence[Any]) -> list[Sequence[Any]]:
        ids = list(ids)
        return [ids[i : i + self.batch_size] for i in range(0, len(ids), self.batch_size)]

    def _run_batch(
        self,
        stmts: Sequence[CompiledStatement],
        kind: OperationKind,
        transactional: bool,
    ) -> int:
        groups = plan_batch(stmts, self.batch_size)
        steps = [
            _Step(len(g), g.indexes, lambda conn, g=g: self.executor.execute_group(conn, g))
            for g in groups
        ]
        table = stmts[0].table if stmts else None
        return self._apply(steps, kind, transactional, table)

    def _run_each(
        self,
        stmts: Sequence[CompiledStatement],
        total: int,
        kind: OperationKind,
        transactional: bool,
        table: str,
    ) -> int:
        steps = []
        offset = 0
        for stmt in stmts:
            size = min(self.batch_size, total - offset)
            steps.append(
                _Step(
                    size,
                    tuple(range(offset, offset + size)),
                    lambda conn, stmt=stmt: self.executor.execute(conn, stmt),
                )
            )
            offset += size
        return self._apply(steps, kind, transactional, table)

    def _apply(
        self,
        steps: Sequence[_Step],
        kind: OperationKind,
        transactional: bool,
        table: str | None,
    ) -> int:
        if not steps:
            return 0

        if transactional or self.transactions.in_transaction:
            with self.transactions.scope() as conn:
                return sum(step.run(conn) for step in steps)

        total = sum(step.size for step in steps)
        applied = affected = 0
        for step in steps:
            try:
                with self.transactions.scope() as conn:
                    affected += step.run(conn)
            except Exception as e:
                error = PartialBatchFailure(
                    f"{kind.value} batch failed after {applied} of {total} records: {e}",
                    applied=applied,
                    failed=step.size,
                    not_attempted=total - applied - step.size,
                    cause=e,
                    table=table,
                    operation=kind.value,
                ).with_context(failed_indexes=list(step.indexes))
                logger.error(
                    "partial_batch_failure",
                    table=table,
                    operation=kind.value,
                    applied=error.applied,
                    failed=error.failed,
                    not_attempted=error.not_attempted,
                )
                raise error from e
            applied += step.size
        return affected


__all__ = [
    "Db",
]
