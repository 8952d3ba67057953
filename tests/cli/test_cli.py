"""Tests for the activesql CLI (typer ``CliRunner`` against a SQLite file)."""

from __future__ import annotations

import json
import logging
import sqlite3

import pytest
import structlog
from typer.testing import CliRunner

from activesql import __version__
from activesql.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def _reset_logging(monkeypatch):
    # keep INFO logs off the captured output
    monkeypatch.setenv("ACTIVESQL_LOG_LEVEL", "WARNING")
    yield
    structlog.reset_defaults()
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)


@pytest.fixture
def url(tmp_db_path: str) -> str:
    conn = sqlite3.connect(tmp_db_path)
    conn.executescript(
        """
        CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT, age INTEGER);
        INSERT INTO users (name, age) VALUES ('ada', 36), ('grace', 45), ('linus', 21);
        """
    )
    conn.commit()
    conn.close()
    return f"sqlite:///{tmp_db_path}"


class TestVersion:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout


class TestQuery:
    def test_json_rows(self, url):
        result = runner.invoke(
            app,
            ["query", "SELECT name FROM users WHERE age > :age ORDER BY name", "-p", "age=30", "-d", url, "--json"],
        )
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == [{"name": "ada"}, {"name": "grace"}]

    def test_in_list_parameter(self, url):
        result = runner.invoke(
            app,
            ["query", "SELECT id FROM users WHERE id IN (:ids) ORDER BY id", "-p", "ids=[1,3]", "-d", url, "--json"],
        )
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == [{"id": 1}, {"id": 3}]

    def test_page(self, url):
        result = runner.invoke(
            app,
            ["query", "SELECT name FROM users", "--page", "2", "--size", "2", "--order-by", "name", "-d", url, "--json"],
        )
        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert payload["items"] == [{"name": "linus"}]
        assert payload["total"] == 3
        assert payload["page"] == 2
        assert payload["has_next"] is False

    def test_table_output(self, url):
        result = runner.invoke(app, ["query", "SELECT name FROM users ORDER BY name", "-d", url])
        assert result.exit_code == 0, result.output
        assert "grace" in result.stdout

    def test_env_url(self, url, monkeypatch):
        monkeypatch.setenv("ACTIVESQL_DATABASE_URL", url)
        result = runner.invoke(app, ["query", "SELECT COUNT(*) AS n FROM users", "--json"])
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == [{"n": 3}]

    def test_unbound_parameter_fails(self, url):
        result = runner.invoke(app, ["query", "SELECT * FROM users WHERE id = :id", "-d", url])
        assert result.exit_code == 1
        assert "UnboundParameter" in result.output

    def test_bad_param(self, url):
        result = runner.invoke(app, ["query", "SELECT 1", "-p", "oops", "-d", url])
        assert result.exit_code != 0


class TestCount:
    def test_count(self, url):
        result = runner.invoke(app, ["count", "SELECT * FROM users WHERE age < :age", "-p", "age=40", "-d", url, "--json"])
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == {"count": 2}


class TestExec:
    def test_exec_commits(self, url, tmp_db_path):
        result = runner.invoke(
            app, ["exec", "UPDATE users SET age = :age WHERE name = :name", "-p", "age=37", "-p", "name=ada", "-d", url]
        )
        assert result.exit_code == 0, result.output
        assert "1 row(s) affected" in result.stdout

        conn = sqlite3.connect(tmp_db_path)
        try:
            assert conn.execute("SELECT age FROM users WHERE name = 'ada'").fetchone() == (37,)
        finally:
            conn.close()

    def test_exec_failure(self, url):
        result = runner.invoke(app, ["exec", "INSERT INTO ghosts (id) VALUES (1)", "-d", url])
        assert result.exit_code == 1
        assert "TransportFailure" in result.output


class TestConnectionErrors:
    @pytest.mark.parametrize("command", ["query", "count", "exec"])
    def test_unknown_dialect_fails_cleanly(self, command):
        result = runner.invoke(app, [command, "SELECT 1", "-d", "foo://x"])
        assert result.exit_code == 1
        assert "UnknownDialect" in result.output
        assert result.exception is None or isinstance(result.exception, SystemExit)
