"""
Structured error types for activesql.

Every failure the access layer can report is a typed error carrying a
category, a retry hint, structured context and (when wrapping a driver
exception) the chained cause.  Callers branch on the type; log pipelines
consume ``to_dict()``.

Manifesto:
    - **Fail before the wire:** Compilation errors are raised before any
      statement reaches a connection, so they never leave side effects
    - **Opaque transport:** Driver exceptions are wrapped, never parsed
    - **Explicit retry semantics:** Each error knows if it's retryable
    - **Error chaining:** The driver error is kept as ``cause``

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                       ActiveSqlError                             │
        │  (category, retryable, context, cause)                           │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  CompileError        ConfigError              DatabaseError      │
        │  (VALIDATION)        (CONFIG)                 (DATABASE)         │
        │       │                   │                        │             │
        │  SchemaMismatch      LogicalDeleteNotConfigured  TransportFailure│
        │  MissingIdentifier   UnknownTable                IntegrityViolation
        │  UnboundParameter    UnmappedType                PartialBatchFailure
        │  NoGeneratedKey      UnknownDialect                              │
        │  InvalidPage                                                     │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> error = MissingIdentifier("no primary key value", table="users")
    >>> error.category
    <ErrorCategory.VALIDATION: 'VALIDATION'>
    >>> error.context.table
    'users'

    >>> try:
    ...     raise sqlite3.OperationalError("disk I/O error")
    ... except sqlite3.Error as e:
    ...     raise TransportFailure("execute failed", cause=e)
    Traceback (most recent call last):
    ...
    TransportFailure: execute failed

Tags:
    error-handling, exception-hierarchy, activesql, database
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    VALIDATION = "VALIDATION"     # Bad record shape, missing key, unbound name
    CONFIG = "CONFIG"             # Schema / mapping / dialect configuration
    DATABASE = "DATABASE"         # Driver, transport, constraint errors
    INTERNAL = "INTERNAL"         # Bugs, unexpected state


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Only non-None fields are emitted by ``to_dict()``.  Anything that does
    not have a dedicated field goes into ``metadata``.

    Attributes:
        table: Target table of the failing operation
        operation: Operation kind (``insert``, ``update_selective``, ...)
        sql: SQL text of the failing statement (never its parameters)
        metadata: Additional key-value pairs
    """

    table: str | None = None
    operation: str | None = None
    sql: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["table", "operation", "sql"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class ActiveSqlError(Exception):
    """
    Base exception for all activesql errors.

    Subclasses set ``default_category`` and ``default_retryable``; callers
    may override both per instance.  ``table`` and ``operation`` are
    shortcuts for the matching :class:`ErrorContext` fields.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
        table: str | None = None,
        operation: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause
        if table is not None:
            self.context.table = table
        if operation is not None:
            self.context.operation = operation

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> ActiveSqlError:
        """
        Add context to this error (fluent API).

        Usage:
            raise SchemaMismatch("empty record").with_context(table="users")
        """
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# COMPILE ERRORS (raised before any statement is sent)
# =============================================================================


class CompileError(ActiveSqlError):
    """
    A logical operation could not be turned into SQL.

    Never retryable: the record, identifier or SQL text must be fixed.
    """

    default_category = ErrorCategory.VALIDATION
    default_retryable = False


class SchemaMismatch(CompileError):
    """The record has no usable fields for the requested statement."""

    pass


class MissingIdentifier(CompileError):
    """No usable primary-key value for an update, delete or key lookup."""

    pass


class NoGeneratedKey(CompileError):
    """A generated key was requested but the table does not produce one."""

    pass


class UnboundParameter(CompileError):
    """The SQL text references a named parameter absent from the record."""

    def __init__(self, name: str, message: str | None = None, **kwargs: Any):
        super().__init__(message or f"Named parameter ':{name}' is not bound", **kwargs)
        self.name = name


class InvalidPage(CompileError):
    """Page number or page size out of range."""

    pass


# =============================================================================
# CONFIG ERRORS
# =============================================================================


class ConfigError(ActiveSqlError):
    """Schema, mapping or dialect configuration error."""

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class LogicalDeleteNotConfigured(ConfigError):
    """The table declares no logical-delete flag column."""

    pass


class UnknownTable(ConfigError):
    """The schema provider has no description of the table."""

    pass


class UnmappedType(ConfigError):
    """An object of a class with no registered ``TableMapping`` was passed."""

    pass


class UnknownDialect(ConfigError):
    """No dialect is registered under the requested name."""

    pass


# =============================================================================
# DATABASE ERRORS
# =============================================================================


class DatabaseError(ActiveSqlError):
    """Database query or transaction error."""

    default_category = ErrorCategory.DATABASE
    default_retryable = False


class TransportFailure(DatabaseError):
    """
    The connection or driver failed while running a statement.

    The driver exception is kept as ``cause``; activesql never inspects it.
    The executor does not retry: whether a retry is safe depends on the
    statement, which only the caller knows.
    """

    pass


class IntegrityViolation(TransportFailure):
    """The database rejected a statement on a constraint (unique, FK, ...)."""

    pass


class PartialBatchFailure(DatabaseError):
    """
    A non-transactional batch stopped part way through.

    Statements before the failure stay applied.  ``applied`` counts the
    records that were committed, ``failed`` the records in the failing
    round-trip and ``not_attempted`` the records never sent.
    """

    def __init__(
        self,
        message: str,
        *,
        applied: int,
        failed: int,
        not_attempted: int,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.applied = applied
        self.failed = failed
        self.not_attempted = not_attempted

    @property
    def total(self) -> int:
        return self.applied + self.failed + self.not_attempted

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["applied"] = self.applied
        result["failed"] = self.failed
        result["not_attempted"] = self.not_attempted
        return result


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(error: Exception) -> bool:
    """Check if an error is retryable."""
    if isinstance(error, ActiveSqlError):
        return error.retryable
    return False


def categorize_error(error: Exception) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, ActiveSqlError):
        return error.category
    return ErrorCategory.INTERNAL


__all__ = [
    # Category enum
    "ErrorCategory",
    # Context
    "ErrorContext",
    # Base
    "ActiveSqlError",
    # Compile
    "CompileError",
    "SchemaMismatch",
    "MissingIdentifier",
    "NoGeneratedKey",
    "UnboundParameter",
    "InvalidPage",
    # Config
    "ConfigError",
    "LogicalDeleteNotConfigured",
    "UnknownTable",
    "UnmappedType",
    "UnknownDialect",
    # Database
    "DatabaseError",
    "TransportFailure",
    "IntegrityViolation",
    "PartialBatchFailure",
    # Utilities
    "is_retryable",
    "categorize_error",
]
