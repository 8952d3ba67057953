"""
CLI layer for activesql.

Provides a Typer application that runs ad-hoc SQL through the data-access
API.  All statement handling lives in ``activesql.core`` — this package
handles only terminal transport: argument parsing, coloured output, and
table formatting.

Entry point::

    activesql --help
"""

from activesql.cli.app import app

__all__ = ["app"]
