"""Tests for the Dialect abstraction layer."""

from __future__ import annotations

import pytest

from activesql.core.dialect import (
    DB2Dialect,
    Dialect,
    MySQLDialect,
    OracleDialect,
    PostgreSQLDialect,
    SQLiteDialect,
    dialect_for_url,
    get_dialect,
    register_dialect,
)
from activesql.core.errors import UnknownDialect


@pytest.fixture(params=["sqlite", "postgresql", "db2", "mysql", "oracle"])
def dialect(request: pytest.FixtureRequest) -> Dialect:
    """Parametric fixture: run each test against every dialect."""
    return get_dialect(request.param)


class TestProtocol:
    def test_satisfies_protocol(self, dialect):
        assert isinstance(dialect, Dialect)

    def test_placeholder_count(self, dialect):
        assert len(dialect.placeholders(3).split(", ")) == 3

    def test_limit_offset_names_both_values(self, dialect):
        fragment, names = dialect.limit_offset(0)
        assert sorted(names) == ["limit", "offset"]
        assert fragment


class TestPlaceholders:
    def test_sqlite(self):
        assert SQLiteDialect().placeholders(3) == "?, ?, ?"

    def test_postgresql(self):
        assert PostgreSQLDialect().placeholders(2) == "%s, %s"

    def test_mysql(self):
        assert MySQLDialect().placeholder(5) == "%s"

    def test_oracle_numbered_from_start(self):
        assert OracleDialect().placeholders(2, start=3) == ":4, :5"


class TestQuote:
    def test_plain_names_untouched(self):
        assert SQLiteDialect().quote("user_name") == "user_name"

    def test_reserved_characters_quoted(self):
        assert SQLiteDialect().quote("order date") == '"order date"'

    def test_dotted_quoted_per_part(self):
        assert PostgreSQLDialect().quote("sales.line item") == 'sales."line item"'

    def test_embedded_quote_doubled(self):
        assert SQLiteDialect().quote('a"b') == '"a""b"'

    def test_mysql_backticks(self):
        assert MySQLDialect().quote("my col") == "`my col`"


class TestPagination:
    def test_limit_offset(self):
        assert SQLiteDialect().limit_offset(2) == ("LIMIT ? OFFSET ?", ("limit", "offset"))

    def test_db2_fetch(self):
        fragment, names = DB2Dialect().limit_offset(0)
        assert fragment == "OFFSET ? ROWS FETCH NEXT ? ROWS ONLY"
        assert names == ("offset", "limit")

    def test_oracle_numbers_continue(self):
        fragment, _ = OracleDialect().limit_offset(2)
        assert fragment == "OFFSET :3 ROWS FETCH NEXT :4 ROWS ONLY"


class TestReturning:
    def test_postgresql_returning(self):
        assert PostgreSQLDialect().returning(["id"]) == " RETURNING id"

    def test_sqlite_uses_lastrowid(self):
        assert SQLiteDialect().returning(["id"]) == ""


class TestRegistry:
    def test_unknown(self):
        with pytest.raises(UnknownDialect):
            get_dialect("informix")

    def test_aliases(self):
        assert get_dialect("postgres").name == "postgresql"
        assert get_dialect("MariaDB").name == "mysql"

    @pytest.mark.parametrize(
        "url, name",
        [
            ("sqlite:///app.db", "sqlite"),
            ("postgresql+psycopg2://u@h/db", "postgresql"),
            ("mysql+pymysql://u@h/db", "mysql"),
            ("oracle+oracledb://u@h/db", "oracle"),
        ],
    )
    def test_dialect_for_url(self, url, name):
        assert dialect_for_url(url).name == name

    def test_register_custom(self):
        class Custom(SQLiteDialect):
            _name = "custom"

        register_dialect("Custom", Custom())
        assert get_dialect("custom").name == "custom"
