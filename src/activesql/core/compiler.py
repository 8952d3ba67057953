"""Statement compiler — operation descriptors to parameterized SQL.

The compiler is pure: it reads the schema provider and the dialect, never
a connection.  The same descriptor always yields the same SQL shape;
only parameter values vary.  Every validation error is raised here,
before anything reaches the database.

Architecture::

    ┌──────────────┐    ┌────────────────────┐    ┌─────────────────────┐
    │ Operation    │ →  │ StatementCompiler  │ →  │ CompiledStatement   │
    │ (+ Record)   │    │  schema + dialect  │    │ sql + ordered params│
    └──────────────┘    └────────────────────┘    └─────────────────────┘

Selective vs. full-field semantics::

    Record("users", id=7, name="ada", email=None)

    UpdateSelective  → UPDATE users SET name = ? WHERE id = ?
    UpdateAllFields  → UPDATE users SET name = ?, email = ? WHERE id = ?

Named parameters::

    "SELECT * FROM users WHERE name = :name AND id IN (:ids)"
    {"name": "ada", "ids": [1, 2]}
    → "SELECT * FROM users WHERE name = ? AND id IN (?, ?)", ("ada", 1, 2)

Tags:
    compiler, sql, active-record, named-parameters, activesql
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from activesql.core.dialect import Dialect
from activesql.core.errors import (
    MissingIdentifier,
    NoGeneratedKey,
    SchemaMismatch,
    UnboundParameter,
)
from activesql.core.logging import get_logger
from activesql.core.operations import (
    Delete,
    Insert,
    InsertReturningKey,
    LogicalDelete,
    Operation,
    OperationKind,
    RawSql,
    Select,
    SelectById,
    SelectCount,
    UpdateAllFields,
    UpdateSelective,
    Upsert,
)
from activesql.core.pagination import Page, resolve_page
from activesql.core.record import Record, is_supported_value, normalize_identifier
from activesql.core.schema import SchemaProvider, TableSchema

logger = get_logger(__name__)

_NAME_START = re.compile(r"[A-Za-z_]")
_NAME = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_COUNT_QUERY = re.compile(r"^\s*select\s+count\s*\(", re.IGNORECASE)
_GROUP_BY = re.compile(r"\bgroup\s+by\b", re.IGNORECASE)


@dataclass(frozen=True)
class CompiledStatement:
    """SQL text plus its positional parameters, ready for one execution."""

    sql: str
    params: tuple[Any, ...] = ()
    kind: OperationKind = OperationKind.RAW_SQL
    table: str | None = None
    returns_key: bool = False
    key_columns: tuple[str, ...] = ()

    def __repr__(self) -> str:
        # parameters may carry user data; show only how many there are
        return f"CompiledStatement({self.kind.value}, {self.sql!r}, params={len(self.params)})"


@dataclass(frozen=True)
class UpsertPlan:
    """Sub-statements of one upsert.

    ``exists`` is ``None`` when the record carries no key at all (it can
    only be inserted); ``update`` is ``None`` when the record has nothing
    besides its key to write.
    """

    record: Record
    exists: CompiledStatement | None
    insert: CompiledStatement
    update: CompiledStatement | None


def bind_named(
    sql: str,
    params: Mapping[str, Any] | None,
    dialect: Dialect,
    start: int = 0,
) -> tuple[str, tuple[Any, ...]]:
    """Replace ``:name`` parameters with positional placeholders.

    Names are bound in first-occurrence order; a name used twice is bound
    twice.  Text inside quotes and comments, and ``::`` casts, is left
    alone.  Sequence values (list, tuple, set) expand to one placeholder
    per element, for ``IN (:ids)``.

    Raises:
        UnboundParameter: a name in ``sql`` is absent from ``params``.
    """
    params = params or {}
    out: list[str] = []
    values: list[Any] = []
    i, n = 0, len(sql)

    while i < n:
        ch = sql[i]

        if ch in ("'", '"'):
            end = sql.find(ch, i + 1)
            end = n if end == -1 else end + 1
            out.append(sql[i:end])
            i = end
            continue

        if sql.startswith("--", i):
            end = sql.find("\n", i)
            end = n if end == -1 else end
            out.append(sql[i:end])
            i = end
            continue

        if sql.startswith("/*", i):
            end = sql.find("*/", i + 2)
            end = n if end == -1 else end + 2
            out.append(sql[i:end])
            i = end
            continue

        if ch == ":":
            if sql.startswith("::", i):
                out.append("::")
                i += 2
                continue
            if i + 1 < n and _NAME_START.match(sql[i + 1]):
                name = _NAME.match(sql, i + 1).group(0)  # type: ignore[union-attr]
                if name not in params:
                    raise UnboundParameter(name)
                value = params[name]
                if isinstance(value, (list, tuple, set, frozenset)):
                    items = list(value)
                    if items:
                        out.append(dialect.placeholders(len(items), start + len(values)))
                        values.extend(items)
                    else:
                        out.append("NULL")
                else:
                    out.append(dialect.placeholder(start + len(values)))
                    values.append(value)
                i += 1 + len(name)
                continue

        out.append(ch)
        i += 1

    return "".join(out), tuple(values)


class StatementCompiler:
    """Compile operation descriptors for one dialect and schema provider.

    Parameters:
        schema: Source of primary keys, declared columns, generated-key
                and logical-delete facts.
        dialect: Placeholder style, quoting, pagination and key retrieval.
    """

    def __init__(self, schema: SchemaProvider, dialect: Dialect) -> None:
        self.schema = schema
        self.dialect = dialect

    # -- Dispatch ----------------------------------------------------------

    def compile(self, op: Operation) -> CompiledStatement | UpsertPlan:
        """Compile any descriptor.  ``Upsert`` yields an :class:`UpsertPlan`."""
        match op:
            case Insert(record=record, all_fields=all_fields):
                return self.insert(record, all_fields=all_fields)
            case InsertReturningKey(record=record, all_fields=all_fields):
                return self.insert(record, all_fields=all_fields, returning_key=True)
            case Upsert(record=record):
                return self.upsert(record)
            case UpdateSelective(record=record):
                return self.update_selective(record)
            case UpdateAllFields(record=record):
                return self.update_all_fields(record)
            case Delete(table=table, ids=ids):
                return self.delete(table, ids)
            case LogicalDelete(table=table, ids=ids):
                return self.logical_delete(table, ids)
            case SelectById(table=table, ids=ids):
                return self.select_by_id(table, ids)
            case Select(sql=sql, params=params, page=page, table=table):
                return self.select(sql, params, page=page, table=table)
            case SelectCount(sql=sql, params=params):
                return self.select_count(sql, params)
            case RawSql(sql=sql, params=params):
                return self.raw(sql, params)
        raise TypeError(f"Not an operation descriptor: {op!r}")

    # -- Insert ------------------------------------------------------------

    def insert(
        self,
        record: Record,
        *,
        all_fields: bool = False,
        returning_key: bool = False,
    ) -> CompiledStatement:
        table = self._table_of(record)
        desc = self.schema.table(table)
        self._check_fields(record, desc)

        if all_fields:
            columns = list(desc.columns or record.keys())
            values = [record.get(c) for c in columns]
        else:
            fields = record.non_null()
            columns, values = list(fields), list(fields.values())

        if not columns:
            raise SchemaMismatch("Record has no fields to insert", table=table, operation="insert")

        key_columns: tuple[str, ...] = ()
        if returning_key:
            if not desc.generated_key:
                raise NoGeneratedKey(
                    f"Table {table!r} has no database-generated key",
                    table=table,
                    operation=OperationKind.INSERT_RETURNING_KEY.value,
                )
            key_columns = desc.primary_key

        q = self.dialect.quote
        sql = (
            f"INSERT INTO {q(table)} ({', '.join(q(c) for c in columns)}) "
            f"VALUES ({self.dialect.placeholders(len(columns))})"
        )
        if returning_key:
            sql += self.dialect.returning(key_columns)

        return self._done(
            CompiledStatement(
                sql,
                tuple(values),
                OperationKind.INSERT_RETURNING_KEY if returning_key else OperationKind.INSERT,
                table,
                returns_key=returning_key,
                key_columns=key_columns,
            )
        )

    # -- Update ------------------------------------------------------------

    def update_selective(self, record: Record) -> CompiledStatement:
        """SET only the non-null, non-key fields; WHERE on the record's key."""
        table = self._table_of(record)
        desc = self.schema.table(table)
        self._check_fields(record, desc)
        key_values = self._record_key(record, desc, OperationKind.UPDATE_SELECTIVE)

        assignments = {
            k: v for k, v in record.items() if v is not None and k not in desc.primary_key
        }
        return self._update(desc, assignments, key_values, OperationKind.UPDATE_SELECTIVE)

    def update_all_fields(self, record: Record) -> CompiledStatement:
        """SET every non-key column, writing NULL for null or absent fields."""
        table = self._table_of(record)
        desc = self.schema.table(table)
        self._check_fields(record, desc)
        key_values = self._record_key(record, desc, OperationKind.UPDATE_ALL_FIELDS)

        columns = desc.non_key_columns or tuple(k for k in record if k not in desc.primary_key)
        assignments = {c: record.get(c) for c in columns}
        return self._update(desc, assignments, key_values, OperationKind.UPDATE_ALL_FIELDS)

    def _update(
        self,
        desc: TableSchema,
        assignments: Mapping[str, Any],
        key_values: tuple[Any, ...],
        kind: OperationKind,
    ) -> CompiledStatement:
        if not assignments:
            raise SchemaMismatch("Record has no fields to update", table=desc.name, operation=kind.value)

        q = self.dialect.quote
        set_clause = ", ".join(
            f"{q(c)} = {self.dialect.placeholder(i)}" for i, c in enumerate(assignments)
        )
        where, where_params = self._where_ids(desc, [key_values], start=len(assignments))
        sql = f"UPDATE {q(desc.name)} SET {set_clause} WHERE {where}"
        return self._done(
            CompiledStatement(sql, tuple(assignments.values()) + where_params, kind, desc.name)
        )

    # -- Upsert ------------------------------------------------------------

    def exists(self, record: Record) -> CompiledStatement:
        """``SELECT COUNT(*)`` keyed by the record's primary key."""
        table = self._table_of(record)
        desc = self.schema.table(table)
        key_values = self._record_key(record, desc, OperationKind.UPSERT)
        where, params = self._where_ids(desc, [key_values])
        sql = f"SELECT COUNT(*) FROM {self.dialect.quote(table)} WHERE {where}"
        return self._done(CompiledStatement(sql, params, OperationKind.SELECT_COUNT, table))

    def upsert(self, record: Record) -> UpsertPlan:
        """Existence check plus both branches; the caller sequences them."""
        table = self._table_of(record)
        desc = self.schema.table(table)
        insert = self.insert(record)

        if all(record.get(c) is None for c in desc.primary_key):
            return UpsertPlan(record, None, insert, None)

        exists = self.exists(record)
        has_fields = any(v is not None and k not in desc.primary_key for k, v in record.items())
        update = self.update_selective(record) if has_fields else None
        return UpsertPlan(record, exists, insert, update)

    # -- Delete ------------------------------------------------------------

    def delete(self, table: str, ids: Sequence[Any]) -> CompiledStatement:
        desc = self.schema.table(table)
        where, params = self._where_ids(desc, self._identifiers(desc, ids, OperationKind.DELETE))
        sql = f"DELETE FROM {self.dialect.quote(table)} WHERE {where}"
        return self._done(CompiledStatement(sql, params, OperationKind.DELETE, table))

    def logical_delete(self, table: str, ids: Sequence[Any]) -> CompiledStatement:
        """Set the table's deleted flag; no other column is touched."""
        desc = self.schema.table(table)
        flag = desc.require_logical_delete()
        where, params = self._where_ids(
            desc, self._identifiers(desc, ids, OperationKind.LOGICAL_DELETE), start=1
        )
        q = self.dialect.quote
        sql = f"UPDATE {q(table)} SET {q(flag.field)} = {self.dialect.placeholder(0)} WHERE {where}"
        return self._done(
            CompiledStatement(sql, (flag.deleted_value,) + params, OperationKind.LOGICAL_DELETE, table)
        )

    # -- Select ------------------------------------------------------------

    def select_by_id(self, table: str, ids: Sequence[Any] | None = None) -> CompiledStatement:
        """Rows by identifier, or the whole table when ``ids`` is None."""
        sql = f"SELECT * FROM {self.dialect.quote(table)}"
        if ids is None:
            return self._done(CompiledStatement(sql, (), OperationKind.SELECT, table))

        desc = self.schema.table(table)
        where, params = self._where_ids(desc, self._identifiers(desc, ids, OperationKind.SELECT))
        return self._done(
            CompiledStatement(f"{sql} WHERE {where}", params, OperationKind.SELECT, table)
        )

    def select(
        self,
        sql: str,
        params: Mapping[str, Any] | None = None,
        *,
        page: Page | None = None,
        table: str | None = None,
    ) -> CompiledStatement:
        bound, values = bind_named(sql, params, self.dialect)
        if page is not None:
            bound, extra = resolve_page(bound, page, self.dialect, start=len(values))
            values += extra
        return self._done(CompiledStatement(bound, values, OperationKind.SELECT, table))

    def select_count(self, sql: str, params: Mapping[str, Any] | None = None) -> CompiledStatement:
        """Count rows of ``sql``; count queries pass through unchanged."""
        base = sql.strip().rstrip(";").rstrip()
        if not (_COUNT_QUERY.match(base) and not _GROUP_BY.search(base)):
            base = f"SELECT COUNT(*) FROM ({base}) count_base"
        bound, values = bind_named(base, params, self.dialect)
        return self._done(CompiledStatement(bound, values, OperationKind.SELECT_COUNT))

    def raw(
        self,
        sql: str,
        params: Mapping[str, Any] | Sequence[Any] | None = None,
    ) -> CompiledStatement:
        if params is None:
            return self._done(CompiledStatement(sql, (), OperationKind.RAW_SQL))
        if isinstance(params, Mapping):
            bound, values = bind_named(sql, params, self.dialect)
            return self._done(CompiledStatement(bound, values, OperationKind.RAW_SQL))
        return self._done(CompiledStatement(sql, tuple(params), OperationKind.RAW_SQL))

    # -- Helpers -----------------------------------------------------------

    def _table_of(self, record: Record) -> str:
        if not isinstance(record, Record):
            raise SchemaMismatch(f"Expected a Record, got {type(record).__name__}")
        if not record.table:
            raise SchemaMismatch("Record has no table name")
        return record.table

    def _check_fields(self, record: Record, desc: TableSchema) -> None:
        for name, value in record.items():
            if not is_supported_value(value):
                raise SchemaMismatch(
                    f"Field {name!r} has unsupported value type {type(value).__name__}",
                    table=desc.name,
                ).with_context(field=name)
        if desc.columns:
            unknown = [name for name in record if name not in desc.columns]
            if unknown:
                raise SchemaMismatch(
                    f"Fields {unknown} are not columns of {desc.name!r}",
                    table=desc.name,
                )

    def _record_key(self, record: Record, desc: TableSchema, kind: OperationKind) -> tuple[Any, ...]:
        try:
            return normalize_identifier(record, desc.primary_key, table=desc.name)
        except MissingIdentifier as e:
            raise e.with_context(operation=kind.value)

    def _identifiers(
        self,
        desc: TableSchema,
        ids: Sequence[Any],
        kind: OperationKind,
    ) -> list[tuple[Any, ...]]:
        if isinstance(ids, (str, bytes)) or not isinstance(ids, Sequence):
            raise MissingIdentifier(
                "Identifiers must be passed as a sequence", table=desc.name, operation=kind.value
            )
        if not ids:
            raise MissingIdentifier("No identifiers given", table=desc.name, operation=kind.value)
        return [normalize_identifier(i, desc.primary_key, table=desc.name) for i in ids]

    def _where_ids(
        self,
        desc: TableSchema,
        ids: Sequence[tuple[Any, ...]],
        start: int = 0,
    ) -> tuple[str, tuple[Any, ...]]:
        q = self.dialect.quote
        key = desc.primary_key
        params = tuple(v for values in ids for v in values)

        if len(key) == 1:
            column = q(key[0])
            if len(ids) == 1:
                return f"{column} = {self.dialect.placeholder(start)}", params
            return f"{column} IN ({self.dialect.placeholders(len(ids), start)})", params

        terms = []
        index = start
        for _ in ids:
            conj = " AND ".join(
                f"{q(c)} = {self.dialect.placeholder(index + j)}" for j, c in enumerate(key)
            )
            index += len(key)
            terms.append(conj if len(ids) == 1 else f"({conj})")
        return " OR ".join(terms), params

    def _done(self, stmt: CompiledStatement) -> CompiledStatement:
        logger.debug(
            "statement_compiled",
            kind=stmt.kind.value,
            table=stmt.table,
            sql=stmt.sql,
            params=len(stmt.params),
        )
        return stmt


__all__ = [
    "CompiledStatement",
    "UpsertPlan",
    "bind_named",
    "StatementCompiler",
]
