"""
QueryLens CLI - SQL analysis toolkit.

Usage:
    querylens analyze "SELECT * FROM orders WHERE id = 1"
    querylens risk "DELETE FROM orders"
    querylens anonymize - < query.sql
    querylens chunk docs/innodb.md --smart
    querylens --help
"""

from __future__ import annotations

import logging
from typing import Annotated, Optional

import typer

from querylens import __version__
from querylens.cli.commands import analyze, docs, query
from querylens.cli.common import console

app = typer.Typer(
    name="querylens",
    help="SQL analysis toolkit: classify, anonymize, rate risk, ground AI advice",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"QueryLens version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Log debug output to stderr."),
    ] = False,
) -> None:
    """QueryLens - SQL analysis toolkit."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


analyze.register(app)
query.register(app)
docs.register(app)


if __name__ == "__main__":
    app()
