"""
Root Typer application for the activesql CLI.

Every command reads its connection settings from ``ACTIVESQL_*``
environment variables (or ``.env``); ``--database`` overrides the URL.
"""

from __future__ import annotations

import typer
from typer import Typer

from activesql.cli.utils import console, fail, make_db, output_page, output_rows, parse_params
from activesql.core.errors import ActiveSqlError
from activesql.core.pagination import Page

app = Typer(
    name="activesql",
    help="activesql — run SQL through the active-record access layer.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        from activesql import __version__

        typer.echo(f"activesql {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """activesql CLI — query, count and execute SQL with named parameters."""


@app.command()
def query(
    sql: str = typer.Argument(..., help="SELECT statement; use :name for parameters"),
    param: list[str] | None = typer.Option(None, "--param", "-p", help="Parameter as name=value"),
    page: int | None = typer.Option(None, "--page", min=1, help="1-based page number"),
    size: int = typer.Option(20, "--size", min=1, help="Rows per page"),
    order_by: list[str] | None = typer.Option(None, "--order-by", help="Column, optionally 'col desc'"),
    database: str | None = typer.Option(None, "--database", "-d", help="Database URL"),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Run a query and print its rows."""
    params = parse_params(param)
    db = None
    try:
        db = make_db(database)
        if page is not None:
            result = db.select_page_result(sql, Page(page, size, tuple(order_by or ())), params)
            output_page(result, as_json=json_out)
        else:
            output_rows(db.select(sql, params), as_json=json_out)
    except ActiveSqlError as e:
        fail(e)
    finally:
        if db is not None:
            db.close()


@app.command()
def count(
    sql: str = typer.Argument(..., help="Query whose rows are counted"),
    param: list[str] | None = typer.Option(None, "--param", "-p", help="Parameter as name=value"),
    database: str | None = typer.Option(None, "--database", "-d", help="Database URL"),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Print the number of rows a query returns."""
    params = parse_params(param)
    db = None
    try:
        db = make_db(database)
        total = db.select_count(sql, params)
    except ActiveSqlError as e:
        fail(e)
    finally:
        if db is not None:
            db.close()
    if json_out:
        console.print_json(data={"count": total})
    else:
        console.print(total)


@app.command("exec")
def exec_(
    sql: str = typer.Argument(..., help="Statement to execute"),
    param: list[str] | None = typer.Option(None, "--param", "-p", help="Parameter as name=value"),
    database: str | None = typer.Option(None, "--database", "-d", help="Database URL"),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Execute a statement and print the affected row count."""
    params = parse_params(param)
    db = None
    try:
        db = make_db(database)
        affected = db.execute_sql(sql, params or None)
    except ActiveSqlError as e:
        fail(e)
    finally:
        if db is not None:
            db.close()
    if json_out:
        console.print_json(data={"affected": affected})
    else:
        console.print(f"{affected} row(s) affected")
