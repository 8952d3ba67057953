"""
CLI utility helpers — parameter parsing, output formatting and Db creation.
"""

from __future__ import annotations

import json
import sys
from collections.abc import Mapping, Sequence
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from activesql.core.db import Db
from activesql.core.errors import ActiveSqlError
from activesql.core.factory import create_db
from activesql.core.logging import configure_logging
from activesql.core.pagination import PageResult
from activesql.core.settings import ActiveSqlSettings, get_settings

console = Console()
err_console = Console(stderr=True)


# ── Db helper ────────────────────────────────────────────────────────────


def make_db(database: str | None = None) -> Db:
    """Create a ``Db`` from settings; ``--database`` overrides the URL."""
    settings = get_settings()
    if database:
        settings = ActiveSqlSettings(**{**settings.model_dump(), "database_url": database, "dialect": ""})
    configure_logging(
        level=settings.log_level,
        json_format=settings.log_format == "json",
        stream=sys.stderr,
    )
    return create_db(settings)


def parse_params(values: Sequence[str] | None) -> dict[str, Any]:
    """``["id=7", "name=ada"]`` → ``{"id": 7, "name": "ada"}``.

    Values that parse as JSON (numbers, ``true``, ``null``, lists) are
    bound as such; anything else is bound as text.
    """
    params: dict[str, Any] = {}
    for item in values or ():
        name, sep, raw = item.partition("=")
        if not sep or not name.strip():
            raise typer.BadParameter(f"Expected name=value, got {item!r}", param_hint="--param")
        try:
            params[name.strip()] = json.loads(raw)
        except ValueError:
            params[name.strip()] = raw
    return params


def fail(error: ActiveSqlError) -> None:
    """Print an activesql error and exit with status 1."""
    err_console.print(f"[bold red]Error[/bold red] ({type(error).__name__}): {error.message}")
    raise typer.Exit(code=1)


# ── Output helpers ───────────────────────────────────────────────────────


def output_rows(rows: Sequence[Mapping[str, Any]], *, as_json: bool = False, title: str = "") -> None:
    """Render query rows as a Rich table or JSON."""
    if as_json:
        console.print_json(json.dumps([dict(r) for r in rows], default=str))
        return
    if not rows:
        console.print("[dim]No rows.[/dim]")
        return
    _print_table(rows, title=title)


def output_page(result: PageResult[Any], *, as_json: bool = False, title: str = "") -> None:
    """Render one page with its position in the full result."""
    if as_json:
        payload = {
            "items": [dict(r) for r in result.items],
            "total": result.total,
            "page": result.page.page_number,
            "size": result.page.page_size,
            "has_next": result.has_next,
        }
        console.print_json(json.dumps(payload, default=str))
        return

    if not result.items:
        console.print("[dim]No rows.[/dim]")
    else:
        _print_table(result.items, title=title)
    console.print(
        f"\n[dim]Page {result.page.page_number} of {result.total_pages}"
        f" ({result.total} rows)[/dim]"
    )


# ── Private helpers ──────────────────────────────────────────────────────


def _print_table(rows: Sequence[Mapping[str, Any]], *, title: str = "") -> None:
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in rows[0]:
        table.add_column(str(col), overflow="fold")
    for row in rows:
        table.add_row(*("NULL" if v is None else str(v) for v in row.values()))
    console.print(table)
