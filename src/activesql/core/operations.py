"""Operation descriptors.

Each logical operation the data-access API can perform is described by
one frozen dataclass.  Descriptors carry everything needed to compile
the statement and nothing else: no connection, no dialect.

==========================  =============================================
Descriptor                  Compiles to
==========================  =============================================
``Insert``                  ``INSERT`` of the non-null (or all) fields
``InsertReturningKey``      ``INSERT`` + generated-key retrieval
``Upsert``                  existence check, then insert or update
``UpdateSelective``         ``UPDATE`` of the non-null, non-key fields
``UpdateAllFields``         ``UPDATE`` of every non-key column
``Delete``                  ``DELETE`` by identifier(s)
``LogicalDelete``           ``UPDATE`` of the deleted flag by identifier(s)
``SelectById``              ``SELECT *`` by identifier(s), or all rows
``Select``                  named-parameter SQL, optionally paged
``SelectCount``             ``COUNT(*)`` over named-parameter SQL
``RawSql``                  verbatim SQL
==========================  =============================================
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from activesql.core.pagination import Page
from activesql.core.record import Record


class OperationKind(str, Enum):
    INSERT = "insert"
    INSERT_RETURNING_KEY = "insert_returning_key"
    UPSERT = "upsert"
    UPDATE_SELECTIVE = "update_selective"
    UPDATE_ALL_FIELDS = "update_all_fields"
    DELETE = "delete"
    LOGICAL_DELETE = "logical_delete"
    SELECT = "select"
    SELECT_COUNT = "select_count"
    RAW_SQL = "raw_sql"


@dataclass(frozen=True)
class Insert:
    record: Record
    all_fields: bool = False

    kind = OperationKind.INSERT


@dataclass(frozen=True)
class InsertReturningKey:
    record: Record
    all_fields: bool = False

    kind = OperationKind.INSERT_RETURNING_KEY


@dataclass(frozen=True)
class Upsert:
    record: Record

    kind = OperationKind.UPSERT


@dataclass(frozen=True)
class UpdateSelective:
    record: Record

    kind = OperationKind.UPDATE_SELECTIVE


@dataclass(frozen=True)
class UpdateAllFields:
    record: Record

    kind = OperationKind.UPDATE_ALL_FIELDS


@dataclass(frozen=True)
class Delete:
    """Physical delete.  ``ids`` holds one identifier per row."""

    table: str
    ids: Sequence[Any]

    kind = OperationKind.DELETE


@dataclass(frozen=True)
class LogicalDelete:
    table: str
    ids: Sequence[Any]

    kind = OperationKind.LOGICAL_DELETE


@dataclass(frozen=True)
class SelectById:
    """Rows by identifier; ``ids=None`` selects the whole table."""

    table: str
    ids: Sequence[Any] | None = None

    kind = OperationKind.SELECT


@dataclass(frozen=True)
class Select:
    """Named-parameter query.  ``table`` only tags the resulting Records."""

    sql: str
    params: Mapping[str, Any] | None = None
    page: Page | None = None
    table: str | None = None

    kind = OperationKind.SELECT


@dataclass(frozen=True)
class SelectCount:
    sql: str
    params: Mapping[str, Any] | None = None

    kind = OperationKind.SELECT_COUNT


@dataclass(frozen=True)
class RawSql:
    """Verbatim SQL.

    ``params`` may be a mapping (named parameters are bound as for
    :class:`Select`) or a positional sequence passed through untouched.
    """

    sql: str
    params: Mapping[str, Any] | Sequence[Any] | None = None

    kind = OperationKind.RAW_SQL


Operation = (
    Insert
    | InsertReturningKey
    | Upsert
    | UpdateSelective
    | UpdateAllFields
    | Delete
    | LogicalDelete
    | SelectById
    | Select
    | SelectCount
    | RawSql
)


__all__ = [
    "OperationKind",
    "Insert",
    "InsertReturningKey",
    "Upsert",
    "UpdateSelective",
    "UpdateAllFields",
    "Delete",
    "LogicalDelete",
    "SelectById",
    "Select",
    "SelectCount",
    "RawSql",
    "Operation",
]
