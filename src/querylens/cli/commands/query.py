"""Query text commands: anonymize, fingerprint, explain-params."""

from __future__ import annotations

import json
from typing import Annotated

import typer

from querylens.analyzer.deanonymizer import QueryDeanonymizer
from querylens.analyzer.service import QueryService
from querylens.cli.common import SQL_HELP, console, error_console, read_sql
from querylens.config import get_config


def register(app: typer.Typer) -> None:
    """Register query text commands on the given Typer app."""

    @app.command()
    def anonymize(
        sql: Annotated[str, typer.Argument(help=SQL_HELP)],
        json_output: Annotated[
            bool,
            typer.Option("--json", "-j", help="Output the templated query as JSON"),
        ] = False,
    ) -> None:
        """
        Replace every literal with a '?' placeholder.

        Examples:

            $ querylens anonymize "SELECT * FROM users WHERE email = 'a@b.com'"
            SELECT * FROM users WHERE email = ?
        """
        templated = QueryService(get_config()).template_query(read_sql(sql))

        if json_output:
            console.print_json(json.dumps({
                "templated": templated.templated,
                "fingerprint": templated.fingerprint,
                "hasSensitiveData": templated.has_sensitive_data,
            }))
            return

        # Plain print: the output is meant to be piped
        typer.echo(templated.templated)
        if templated.has_sensitive_data:
            error_console.print("[yellow]Warning:[/yellow] query references sensitive columns")

    @app.command()
    def fingerprint(
        sql: Annotated[str, typer.Argument(help=SQL_HELP)],
    ) -> None:
        """Print the normalized fingerprint used to group equivalent queries."""
        service = QueryService(get_config())
        typer.echo(service.anonymizer.fingerprint(read_sql(sql)))

    @app.command("explain-params")
    def explain_params(
        sql: Annotated[str, typer.Argument(help=SQL_HELP)],
    ) -> None:
        """
        Fill '?' placeholders with sample values so the query can be EXPLAINed.

        Examples:

            $ querylens explain-params "SELECT * FROM users WHERE id IN (?, ?)"
            SELECT * FROM users WHERE id IN (1, 1)
        """
        query = read_sql(sql)
        count = QueryDeanonymizer.count_parameters(query)
        if count:
            error_console.print(f"[dim]Replaced {count} placeholder(s)[/dim]")
        typer.echo(QueryDeanonymizer.replace_parameters_for_explain(query))
