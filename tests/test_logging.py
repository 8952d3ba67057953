"""Tests for activesql.core.logging."""

from __future__ import annotations

import io
import json
import logging

import pytest
import structlog

from activesql.core.logging import (
    LogContext,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
)


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    clear_context()
    structlog.reset_defaults()
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)


def _lines(stream: io.StringIO) -> list[dict]:
    return [json.loads(line) for line in stream.getvalue().splitlines() if line.strip()]


class TestConfigureLogging:
    def test_json_output(self):
        stream = io.StringIO()
        configure_logging(json_format=True, stream=stream)
        get_logger("activesql.test").info("statement_executed", table="users", rows=2)

        (entry,) = _lines(stream)
        assert entry["event"] == "statement_executed"
        assert entry["table"] == "users"
        assert entry["rows"] == 2
        assert entry["log.level"] == "info"
        assert entry["service.name"] == "activesql"
        assert entry["logger"] == "activesql.test"
        assert "@timestamp" in entry

    def test_level_filters(self):
        stream = io.StringIO()
        configure_logging(level="WARNING", json_format=True, stream=stream)
        log = get_logger("activesql.test")
        log.debug("statement_compiled")
        log.info("statement_executed")
        log.warning("transaction_rolled_back")
        assert [e["event"] for e in _lines(stream)] == ["transaction_rolled_back"]

    def test_non_tty_defaults_to_json(self):
        stream = io.StringIO()
        configure_logging(stream=stream, service="orders", add_timestamp=False)
        get_logger("activesql.test").info("db_created")
        (entry,) = _lines(stream)
        assert entry["service.name"] == "orders"
        assert "@timestamp" not in entry

    def test_console_output(self):
        stream = io.StringIO()
        configure_logging(json_format=False, stream=stream)
        get_logger("activesql.test").info("db_created", dialect="sqlite")
        out = stream.getvalue()
        assert "db_created" in out
        assert "sqlite" in out


class TestContext:
    def test_bound_context_is_merged(self):
        stream = io.StringIO()
        configure_logging(json_format=True, stream=stream)
        bind_context(request_id="abc123")
        get_logger("activesql.test").info("statement_executed")
        assert _lines(stream)[0]["request_id"] == "abc123"

    def test_log_context_unbinds_on_exit(self):
        stream = io.StringIO()
        configure_logging(json_format=True, stream=stream)
        log = get_logger("activesql.test")
        with LogContext(unit_of_work="transfer"):
            log.info("inside")
        log.info("outside")
        inside, outside = _lines(stream)
        assert inside["unit_of_work"] == "transfer"
        assert "unit_of_work" not in outside
