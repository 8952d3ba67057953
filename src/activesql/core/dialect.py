"""SQL dialect abstraction for database-agnostic statement compilation.

Provides a ``Dialect`` protocol and concrete implementations for every
supported database backend.  The statement compiler asks the dialect for
the few fragments that differ between vendors (placeholders, identifier
quoting, the pagination bound, generated-key retrieval) and keeps
everything else vendor-neutral.

Manifesto:
    The compiler must stay pure and portable.  Without a dialect layer,
    placeholder styles and ``LIMIT``/``FETCH`` syntax leak into every
    statement template and break when switching backends.

    - **One interface:** Dialect protocol for every vendor fragment
    - **Zero coupling:** The compiler never imports database drivers
    - **Bound, not inlined:** Page limits and offsets are parameters

Architecture::

    ┌──────────┐ ┌──────────────┐ ┌────────┐ ┌────────┐ ┌──────────┐
    │ SQLite   │ │ PostgreSQL   │ │  DB2   │ │ MySQL  │ │  Oracle  │
    │ ?, ?, ?  │ │ %s, %s, %s   │ │ ?, ?, ?│ │ %s,%s  │ │ :1, :2   │
    │ LIMIT    │ │ LIMIT        │ │ FETCH  │ │ LIMIT  │ │ FETCH    │
    │ lastrowid│ │ RETURNING    │ │lastrow │ │lastrow │ │ lastrow  │
    └──────────┘ └──────────────┘ └────────┘ └────────┘ └──────────┘

Examples:
    >>> from activesql.core.dialect import get_dialect, SQLiteDialect
    >>> d = SQLiteDialect()
    >>> d.placeholders(3)
    '?, ?, ?'
    >>> d.limit_offset(0)
    ('LIMIT ? OFFSET ?', ('limit', 'offset'))
    >>> get_dialect("oracle").placeholders(2, start=3)
    ':4, :5'

Tags:
    dialect, sql, abstraction, portability, database, activesql
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from activesql.core.errors import UnknownDialect

_PLAIN_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@runtime_checkable
class Dialect(Protocol):
    """SQL dialect contract.

    Every method returns a **SQL fragment** (string) valid for the target
    database.  Placeholder indexes are 0-based positions in the final
    parameter list of the statement.
    """

    @property
    def name(self) -> str:
        """Human-readable dialect name (e.g. ``'sqlite'``)."""
        ...

    @property
    def paramstyle(self) -> str:
        """DB-API paramstyle of the placeholders (``qmark``, ``format``, ``numeric``)."""
        ...

    def placeholder(self, index: int) -> str:
        """Single positional placeholder (0-based index).

        ``index`` is ignored by dialects that use anonymous placeholders
        (SQLite ``?``, MySQL ``%s``) but required by numbered styles
        (Oracle ``:1``).
        """
        ...

    def placeholders(self, count: int, start: int = 0) -> str:
        """Comma-separated placeholder list starting at ``start``."""
        ...

    def quote(self, identifier: str) -> str:
        """Quote a table or column name when it is not a plain identifier.

        Dotted names (``schema.table``) are quoted part by part.
        """
        ...

    def limit_offset(self, start: int) -> tuple[str, tuple[str, ...]]:
        """Pagination bound with placeholders starting at ``start``.

        Returns the fragment and the names of the bound values in
        placeholder order (``'limit'`` / ``'offset'``).
        """
        ...

    def returning(self, key_columns: Sequence[str]) -> str:
        """Suffix that makes an INSERT return its generated key.

        Empty for dialects whose drivers expose ``lastrowid`` instead.
        """
        ...

    def boolean_true(self) -> str:
        """Literal SQL value for boolean ``True``."""
        ...

    def boolean_false(self) -> str:
        """Literal SQL value for boolean ``False``."""
        ...


class _BaseDialect:
    """Shared behaviour; subclasses override the vendor-specific bits."""

    _name = "ansi"
    _paramstyle = "qmark"
    _quote_char = '"'

    @property
    def name(self) -> str:
        return self._name

    @property
    def paramstyle(self) -> str:
        return self._paramstyle

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return "?"

    def placeholders(self, count: int, start: int = 0) -> str:
        return ", ".join(self.placeholder(start + i) for i in range(count))

    def quote(self, identifier: str) -> str:
        parts = identifier.split(".")
        return ".".join(
            part if _PLAIN_IDENTIFIER.match(part) else self._quote_part(part)
            for part in parts
        )

    def _quote_part(self, part: str) -> str:
        q = self._quote_char
        return f"{q}{part.replace(q, q + q)}{q}"

    def limit_offset(self, start: int) -> tuple[str, tuple[str, ...]]:
        return (
            f"LIMIT {self.placeholder(start)} OFFSET {self.placeholder(start + 1)}",
            ("limit", "offset"),
        )

    def returning(self, key_columns: Sequence[str]) -> str:  # noqa: ARG002
        return ""

    def boolean_true(self) -> str:
        return "1"

    def boolean_false(self) -> str:
        return "0"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class SQLiteDialect(_BaseDialect):
    """SQLite dialect — ``?`` placeholders, ``LIMIT/OFFSET``, ``lastrowid`` keys."""

    _name = "sqlite"


class PostgreSQLDialect(_BaseDialect):
    """PostgreSQL dialect — ``%s`` placeholders (psycopg2), ``RETURNING`` keys."""

    _name = "postgresql"
    _paramstyle = "format"

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return "%s"

    def returning(self, key_columns: Sequence[str]) -> str:
        if not key_columns:
            return ""
        return " RETURNING " + ", ".join(self.quote(c) for c in key_columns)

    def boolean_true(self) -> str:
        return "TRUE"

    def boolean_false(self) -> str:
        return "FALSE"


class MySQLDialect(_BaseDialect):
    """MySQL dialect — ``%s`` placeholders, backtick quoting.

    Compatible with ``mysql.connector`` and ``PyMySQL`` (both use
    ``%s`` format paramstyle); keys come from ``lastrowid``.
    """

    _name = "mysql"
    _paramstyle = "format"
    _quote_char = "`"

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return "%s"

    def boolean_true(self) -> str:
        return "TRUE"

    def boolean_false(self) -> str:
        return "FALSE"


class DB2Dialect(_BaseDialect):
    """IBM DB2 dialect — ``?`` placeholders, ``OFFSET … FETCH NEXT``."""

    _name = "db2"

    def limit_offset(self, start: int) -> tuple[str, tuple[str, ...]]:
        return (
            f"OFFSET {self.placeholder(start)} ROWS "
            f"FETCH NEXT {self.placeholder(start + 1)} ROWS ONLY",
            ("offset", "limit"),
        )


class OracleDialect(DB2Dialect):
    """Oracle dialect — ``:1, :2`` numbered placeholders, ``OFFSET … FETCH NEXT``.

    Compatible with ``oracledb`` (python-oracledb) numeric bind variables.
    """

    _name = "oracle"
    _paramstyle = "numeric"

    def placeholder(self, index: int) -> str:
        return f":{index + 1}"


# =========================================================================
# Registry / Factory
# =========================================================================

# Pre-instantiated singletons (dialects are stateless)
_DIALECTS: dict[str, Dialect] = {
    "sqlite": SQLiteDialect(),
    "postgresql": PostgreSQLDialect(),
    "postgres": PostgreSQLDialect(),  # alias
    "db2": DB2Dialect(),
    "ibm_db_sa": DB2Dialect(),  # SQLAlchemy driver name
    "mysql": MySQLDialect(),
    "mariadb": MySQLDialect(),
    "oracle": OracleDialect(),
}


def get_dialect(db_type: str) -> Dialect:
    """Get a dialect by database type name.

    Raises:
        UnknownDialect: If ``db_type`` is not registered.

    Example:
        >>> get_dialect("postgresql").placeholders(2)
        '%s, %s'
    """
    key = db_type.lower()
    if key not in _DIALECTS:
        raise UnknownDialect(
            f"Unknown dialect '{db_type}'. "
            f"Supported: {sorted(_DIALECTS)}"
        )
    return _DIALECTS[key]


def dialect_for_url(url: str) -> Dialect:
    """Infer the dialect from a SQLAlchemy-style URL.

    ``postgresql+psycopg2://…`` → PostgreSQL, ``sqlite:///x.db`` → SQLite.
    """
    scheme = url.split("://", 1)[0].split("+", 1)[0]
    return get_dialect(scheme)


def register_dialect(name: str, dialect: Dialect) -> None:
    """Register a custom dialect implementation (third-party driver, test double)."""
    _DIALECTS[name.lower()] = dialect


__all__ = [
    # Protocol
    "Dialect",
    # Implementations
    "SQLiteDialect",
    "PostgreSQLDialect",
    "DB2Dialect",
    "MySQLDialect",
    "OracleDialect",
    # Factory
    "get_dialect",
    "dialect_for_url",
    "register_dialect",
]
