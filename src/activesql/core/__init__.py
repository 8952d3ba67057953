"""activesql core -- active-record data access over parameterized SQL.

Manifesto:
    Callers think in rows and objects; databases speak SQL with vendor
    quirks.  ``activesql.core`` compiles row-level operations into
    parameterized statements, runs each exactly once on a borrowed
    connection and hands rows back as Records or declared objects.

    - **Protocol-first:** Connection, ConnectionProvider, Dialect and
      SchemaProvider are protocols, not base classes
    - **Compile before the wire:** every validation error is raised
      before a statement is sent
    - **No reflection:** objects map to tables through declared mappings

Architecture::

    Layer 1 -- Types & Errors
        errors.py          Structured error hierarchy (ActiveSqlError)
        logging.py         structlog configuration
        protocols.py       Connection, ConnectionProvider, ExecuteResult
        record.py          Record, identifiers, TableMapping, MappingRegistry

    Layer 2 -- Compilation
        dialect.py         Placeholders, quoting, pagination bound (5 backends)
        schema.py          TableSchema, StaticSchema, InspectedSchema
        pagination.py      Page, Order, PageResult, resolve_page
        operations.py      Operation descriptors
        compiler.py        StatementCompiler, CompiledStatement, bind_named
        batch.py           Batch planner (group by SQL shape, chunk)

    Layer 3 -- Execution
        executor.py        Executor (one round-trip per call)
        transaction.py     TransactionCoordinator (ContextVar scopes)
        db.py              Db -- the data access API
        adapters/          sqlite3 and SQLAlchemy providers

    Layer 4 -- Configuration
        settings.py        ActiveSqlSettings (pydantic-settings)
        factory.py         create_db(settings)
"""

from activesql.core.db import Db
from activesql.core.dialect import Dialect, dialect_for_url, get_dialect, register_dialect
from activesql.core.errors import (
    ActiveSqlError,
    CompileError,
    ConfigError,
    DatabaseError,
    IntegrityViolation,
    InvalidPage,
    LogicalDeleteNotConfigured,
    MissingIdentifier,
    NoGeneratedKey,
    PartialBatchFailure,
    SchemaMismatch,
    TransportFailure,
    UnboundParameter,
    UnknownDialect,
    UnknownTable,
    UnmappedType,
)
from activesql.core.operations import (
    Delete,
    Insert,
    InsertReturningKey,
    LogicalDelete,
    RawSql,
    Select,
    SelectById,
    SelectCount,
    UpdateAllFields,
    UpdateSelective,
    Upsert,
)
from activesql.core.pagination import Direction, Order, Page, PageResult
from activesql.core.protocols import Connection, ConnectionProvider, ExecuteResult
from activesql.core.record import MappingRegistry, Record, TableMapping
from activesql.core.schema import (
    InspectedSchema,
    LogicalDeleteSpec,
    SchemaProvider,
    StaticSchema,
    TableSchema,
)

__all__ = [
    # API
    "Db",
    # Records
    "Record",
    "TableMapping",
    "MappingRegistry",
    # Pagination
    "Page",
    "PageResult",
    "Order",
    "Direction",
    # Operations
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
    # Protocols
    "Connection",
    "ConnectionProvider",
    "ExecuteResult",
    "Dialect",
    "SchemaProvider",
    # Dialects
    "get_dialect",
    "dialect_for_url",
    "register_dialect",
    # Schema
    "TableSchema",
    "LogicalDeleteSpec",
    "StaticSchema",
    "InspectedSchema",
    # Errors
    "ActiveSqlError",
    "CompileError",
    "ConfigError",
    "DatabaseError",
    "SchemaMismatch",
    "MissingIdentifier",
    "NoGeneratedKey",
    "UnboundParameter",
    "InvalidPage",
    "LogicalDeleteNotConfigured",
    "UnknownTable",
    "UnmappedType",
    "UnknownDialect",
    "TransportFailure",
    "IntegrityViolation",
    "PartialBatchFailure",
]
