"""Schema provider — what the compiler needs to know about a table.

The compiler needs four facts per table: the primary-key column(s), the
declared column list (for full-field statements), whether the key is
generated by the database, and the logical-delete flag.  Where those
facts come from is not the compiler's business; it asks a
:class:`SchemaProvider`.

Two providers ship with activesql:

==================  ====================================================
``StaticSchema``    Tables declared in code (``TableSchema`` values),
                    with conventional defaults for undeclared tables.
``InspectedSchema`` Reads keys and columns once per table through
                    ``sqlalchemy.inspect(engine)`` and caches them.
==================  ====================================================

The logical-delete flag is configured per table; a table without one
raises :class:`~activesql.core.errors.LogicalDeleteNotConfigured` when a
logical delete is compiled against it.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from activesql.core.errors import LogicalDeleteNotConfigured, UnknownTable
from activesql.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class LogicalDeleteSpec:
    """Flag column marking a row as deleted."""

    field: str = "deleted"
    deleted_value: Any = 1
    active_value: Any = 0


@dataclass(frozen=True)
class TableSchema:
    """Description of one table.

    ``columns`` may be empty when the provider does not know them; full
    field statements then fall back to the fields of the record itself.
    """

    name: str
    primary_key: tuple[str, ...] = ("id",)
    columns: tuple[str, ...] = ()
    generated_key: bool = False
    logical_delete: LogicalDeleteSpec | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "primary_key", tuple(self.primary_key))
        object.__setattr__(self, "columns", tuple(self.columns))

    @property
    def non_key_columns(self) -> tuple[str, ...]:
        return tuple(c for c in self.columns if c not in self.primary_key)

    def require_logical_delete(self) -> LogicalDeleteSpec:
        if self.logical_delete is None:
            raise LogicalDeleteNotConfigured(
                f"Table {self.name!r} has no logical-delete flag column",
                table=self.name,
            )
        return self.logical_delete


@runtime_checkable
class SchemaProvider(Protocol):
    """Source of :class:`TableSchema` descriptions."""

    def table(self, name: str) -> TableSchema:
        """Describe ``name``; raise :class:`UnknownTable` if it cannot."""
        ...


class StaticSchema:
    """Schema declared in code.

    Undeclared tables get the conventional defaults (``default_primary_key``,
    ``default_generated_key`` and the default logical-delete flag) unless
    ``strict`` is set, in which case they raise ``UnknownTable``.  Keys of
    undeclared tables are not assumed to be database-generated; pass
    ``default_generated_key=True`` when every such table uses one.

    Example::

        schema = StaticSchema(
            [
                TableSchema("users", ("id",), ("id", "name", "deleted"),
                            generated_key=True,
                            logical_delete=LogicalDeleteSpec()),
                TableSchema("memberships", ("user_id", "group_id")),
            ],
            strict=True,
        )
    """

    def __init__(
        self,
        tables: Iterable[TableSchema] = (),
        *,
        default_primary_key: Sequence[str] = ("id",),
        default_generated_key: bool = False,
        default_logical_delete: LogicalDeleteSpec | None = LogicalDeleteSpec(),
        strict: bool = False,
    ) -> None:
        self._tables: dict[str, TableSchema] = {t.name: t for t in tables}
        self._default_primary_key = tuple(default_primary_key)
        self._default_generated_key = default_generated_key and len(self._default_primary_key) == 1
        self._default_logical_delete = default_logical_delete
        self._strict = strict

    def add(self, table: TableSchema) -> None:
        self._tables[table.name] = table

    def table(self, name: str) -> TableSchema:
        try:
            return self._tables[name]
        except KeyError:
            if self._strict:
                raise UnknownTable(f"Table {name!r} is not declared", table=name) from None
        return TableSchema(
            name,
            primary_key=self._default_primary_key,
            generated_key=self._default_generated_key,
            logical_delete=self._default_logical_delete,
        )


class InspectedSchema:
    """Schema read from the live database through SQLAlchemy reflection.

    Each table is inspected once; results are cached for the lifetime of
    the provider.  ``overrides`` replaces (field by field) whatever was
    reflected, for keys the database cannot tell us about (views, tables
    without a declared primary key).
    """

    def __init__(
        self,
        engine: Any,
        *,
        logical_delete: LogicalDeleteSpec | None = LogicalDeleteSpec(),
        overrides: Mapping[str, Mapping[str, Any]] | None = None,
    ) -> None:
        self._engine = engine
        self._logical_delete = logical_delete
        self._overrides = {k: dict(v) for k, v in (overrides or {}).items()}
        self._cache: dict[str, TableSchema] = {}
        self._lock = threading.Lock()

    def table(self, name: str) -> TableSchema:
        with self._lock:
            cached = self._cache.get(name)
            if cached is None:
                cached = self._cache[name] = self._inspect(name)
            return cached

    def invalidate(self, name: str | None = None) -> None:
        """Drop cached descriptions (all tables when ``name`` is None)."""
        with self._lock:
            if name is None:
                self._cache.clear()
            else:
                self._cache.pop(name, None)

    def _inspect(self, name: str) -> TableSchema:
        from sqlalchemy import Integer, inspect

        schema, _, table = name.rpartition(".")
        inspector = inspect(self._engine)
        if not inspector.has_table(table, schema=schema or None):
            raise UnknownTable(f"Table {name!r} does not exist", table=name)

        reflected = inspector.get_columns(table, schema=schema or None)
        columns = tuple(c["name"] for c in reflected)
        pk = tuple(
            inspector.get_pk_constraint(table, schema=schema or None).get("constrained_columns") or ()
        )

        generated = False
        if len(pk) == 1:
            key_col = next(c for c in reflected if c["name"] == pk[0])
            generated = isinstance(key_col["type"], Integer) and key_col.get("autoincrement", "auto") is not False

        logical_delete = None
        if self._logical_delete is not None and self._logical_delete.field in columns:
            logical_delete = self._logical_delete

        values: dict[str, Any] = {
            "name": name,
            "primary_key": pk,
            "columns": columns,
            "generated_key": generated,
            "logical_delete": logical_delete,
        }
        values.update(self._overrides.get(name, {}))
        described = TableSchema(**values)
        logger.debug(
            "table_inspected",
            table=name,
            primary_key=described.primary_key,
            columns=len(described.columns),
            generated_key=described.generated_key,
        )
        return described


__all__ = [
    "LogicalDeleteSpec",
    "TableSchema",
    "SchemaProvider",
    "StaticSchema",
    "InspectedSchema",
]
