"""Tests for activesql.core.schema — static and inspected providers."""

from __future__ import annotations

import pytest
from sqlalchemy import create_engine

from activesql.core.errors import LogicalDeleteNotConfigured, UnknownTable
from activesql.core.schema import (
    InspectedSchema,
    LogicalDeleteSpec,
    SchemaProvider,
    StaticSchema,
    TableSchema,
)


class TestTableSchema:
    def test_non_key_columns(self):
        t = TableSchema("users", ("id",), ("id", "name", "email"))
        assert t.non_key_columns == ("name", "email")

    def test_lists_become_tuples(self):
        t = TableSchema("users", ["id"], ["id", "name"])
        assert t.primary_key == ("id",)
        assert t.columns == ("id", "name")

    def test_require_logical_delete(self):
        with pytest.raises(LogicalDeleteNotConfigured):
            TableSchema("users").require_logical_delete()
        spec = LogicalDeleteSpec("is_deleted", True, False)
        assert TableSchema("users", logical_delete=spec).require_logical_delete() is spec


class TestStaticSchema:
    def test_satisfies_protocol(self):
        assert isinstance(StaticSchema(), SchemaProvider)

    def test_declared_table(self):
        t = TableSchema("memberships", ("user_id", "group_id"))
        assert StaticSchema([t]).table("memberships") is t

    def test_defaults_for_undeclared(self):
        t = StaticSchema().table("things")
        assert t.primary_key == ("id",)
        assert not t.generated_key
        assert t.logical_delete == LogicalDeleteSpec()

    def test_default_generated_key_opt_in(self):
        assert StaticSchema(default_generated_key=True).table("things").generated_key

    def test_composite_default_key_is_not_generated(self):
        t = StaticSchema(default_primary_key=("a", "b"), default_generated_key=True).table("things")
        assert not t.generated_key

    def test_strict(self):
        with pytest.raises(UnknownTable):
            StaticSchema(strict=True).table("things")

    def test_add(self):
        schema = StaticSchema(strict=True)
        schema.add(TableSchema("things"))
        assert schema.table("things").name == "things"


@pytest.fixture
def engine():
    engine = create_engine("sqlite://")
    with engine.begin() as conn:
        conn.exec_driver_sql(
            "CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT, deleted INTEGER DEFAULT 0)"
        )
        conn.exec_driver_sql(
            "CREATE TABLE memberships (user_id INTEGER, group_id INTEGER, role TEXT, "
            "PRIMARY KEY (user_id, group_id))"
        )
        conn.exec_driver_sql("CREATE TABLE tags (code TEXT PRIMARY KEY, label TEXT)")
    yield engine
    engine.dispose()


class TestInspectedSchema:
    def test_reflects_keys_and_columns(self, engine):
        t = InspectedSchema(engine).table("users")
        assert t.primary_key == ("id",)
        assert t.columns == ("id", "name", "deleted")
        assert t.generated_key
        assert t.logical_delete == LogicalDeleteSpec()

    def test_composite_key(self, engine):
        t = InspectedSchema(engine).table("memberships")
        assert t.primary_key == ("user_id", "group_id")
        assert not t.generated_key
        assert t.logical_delete is None

    def test_text_key_not_generated(self, engine):
        assert not InspectedSchema(engine).table("tags").generated_key

    def test_unknown_table(self, engine):
        with pytest.raises(UnknownTable):
            InspectedSchema(engine).table("ghosts")

    def test_overrides(self, engine):
        schema = InspectedSchema(engine, overrides={"tags": {"generated_key": True}})
        assert schema.table("tags").generated_key

    def test_cached_until_invalidated(self, engine):
        schema = InspectedSchema(engine)
        first = schema.table("users")
        assert schema.table("users") is first
        schema.invalidate("users")
        assert schema.table("users") is not first
        schema.invalidate()

    def test_custom_logical_delete_flag(self, engine):
        with engine.begin() as conn:
            conn.exec_driver_sql("CREATE TABLE posts (id INTEGER PRIMARY KEY, removed INTEGER)")
        spec = LogicalDeleteSpec("removed", 1, 0)
        assert InspectedSchema(engine, logical_delete=spec).table("posts").logical_delete is spec
