"""Analysis commands: analyze, risk, validate."""

from __future__ import annotations

import asyncio
import json
from typing import Annotated, Optional

import typer
from rich.panel import Panel
from rich.table import Table

from querylens.ai.models import AnalysisOutcome, AnalysisReport, DatabaseType
from querylens.analyzer.models import ParseResult, RiskAnalysisResult
from querylens.analyzer.service import QueryService
from querylens.cli.common import (
    RISK_STYLES,
    SEVERITY_STYLES,
    SQL_HELP,
    console,
    error_console,
    fail,
    read_sql,
)
from querylens.config import Config, ProviderName, get_config
from querylens.exceptions import QueryLensError


def register(app: typer.Typer) -> None:
    """Register analysis commands on the given Typer app."""

    @app.command()
    def analyze(
        sql: Annotated[str, typer.Argument(help=SQL_HELP)],
        json_output: Annotated[
            bool,
            typer.Option("--json", "-j", help="Output results as JSON"),
        ] = False,
        ai: Annotated[
            bool,
            typer.Option("--ai/--static", help="Enhance static analysis with the configured AI provider"),
        ] = False,
        provider: Annotated[
            Optional[ProviderName],
            typer.Option("--provider", "-p", help="AI provider (overrides configuration)"),
        ] = None,
        db_type: Annotated[
            DatabaseType,
            typer.Option("--db-type", "-d", help="Database flavour for documentation lookup"),
        ] = DatabaseType.MYSQL,
    ) -> None:
        """
        Classify a query, score its complexity and rate its risk.

        Examples:

            $ querylens analyze "SELECT * FROM orders WHERE id = 42"
            $ cat slow.sql | querylens analyze - --json
            $ querylens analyze --ai --provider ollama "SELECT ..."
        """
        query = read_sql(sql)
        config = get_config()
        if provider is not None:
            config = config.model_copy(update={"ai_provider": provider})

        service = QueryService(config)
        parse = service.parse(query)
        risk = service.analyze_risk(query)

        report = None
        if ai:
            try:
                report = asyncio.run(_run_ai(query, config, db_type))
            except QueryLensError as e:
                fail(e)

        if json_output:
            output = {"parse": parse.to_dict(), "risk": risk.to_dict()}
            if report is not None:
                output["ai"] = report.to_dict()
            console.print_json(json.dumps(output))
            return

        _print_parse(parse, risk)
        if report is not None:
            _print_report(report)

    @app.command()
    def risk(
        sql: Annotated[str, typer.Argument(help=SQL_HELP)],
        json_output: Annotated[
            bool,
            typer.Option("--json", "-j", help="Output results as JSON"),
        ] = False,
    ) -> None:
        """
        Rate how dangerous a statement is to run.

        Exits with code 2 when the statement needs confirmation
        (HIGH or CRITICAL risk), so scripts can gate on it.
        """
        result = QueryService(get_config()).analyze_risk(read_sql(sql))

        if json_output:
            console.print_json(json.dumps(result.to_dict()))
        else:
            _print_risk(result)

        if result.requires_confirmation:
            raise typer.Exit(code=2)

    @app.command()
    def validate(
        sql: Annotated[str, typer.Argument(help=SQL_HELP)],
        json_output: Annotated[
            bool,
            typer.Option("--json", "-j", help="Output results as JSON"),
        ] = False,
    ) -> None:
        """Combined classifier and risk verdict; exits 1 when invalid."""
        result = QueryService(get_config()).validate(read_sql(sql))

        if json_output:
            console.print_json(json.dumps(result.to_dict()))
        else:
            style = "green" if result.valid else "red"
            console.print(
                f"[{style}]{'Valid' if result.valid else 'Invalid'}[/{style}] "
                f"(risk: {result.risk_level.value})"
            )
            for error in result.errors:
                console.print(f"  [red]error:[/red] {error}")
            for warning in result.warnings:
                console.print(f"  [yellow]warning:[/yellow] {warning}")

        if not result.valid:
            raise typer.Exit(code=1)


async def _run_ai(query: str, config: Config, db_type: DatabaseType) -> AnalysisReport:
    from querylens.ai.coordinator import AIAnalysisCoordinator

    coordinator = await AIAnalysisCoordinator.create(
        config,
        confirm=lambda message: typer.confirm(message, default=False),
    )
    try:
        return await coordinator.analyze_query(query, db_type=db_type)
    finally:
        await coordinator.aclose()


def _print_parse(parse: ParseResult, risk: RiskAnalysisResult) -> None:
    table = Table(title="Query Analysis", show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Type", parse.query_type.value)
    table.add_row("Complexity", str(parse.complexity))
    risk_style = RISK_STYLES[risk.level]
    table.add_row("Risk", f"[{risk_style}]{risk.level.value.upper()}[/{risk_style}]")
    if not parse.valid:
        table.add_row("Parse error", f"[red]{parse.error}[/red]")
    console.print(table)

    if not parse.anti_patterns:
        console.print("\n[green]No anti-patterns found.[/green]")
    else:
        console.print(f"\n[bold]Found {len(parse.anti_patterns)} anti-pattern(s):[/bold]\n")
        for pattern in parse.anti_patterns:
            style = SEVERITY_STYLES[pattern.severity]
            console.print(
                f"[{style}]\\[{pattern.severity.value.upper()}][/{style}] "
                f"{pattern.type}: {pattern.message}"
            )
            if pattern.suggestion:
                console.print(f"   [dim]{pattern.suggestion}[/dim]")

    if risk.issues:
        console.print()
        _print_risk(risk)


def _print_risk(result: RiskAnalysisResult) -> None:
    style = RISK_STYLES[result.level]
    lines = [f"[{style}]Risk level: {result.level.value.upper()}[/{style}]"]
    lines.extend(f"- {issue}" for issue in result.issues)
    if result.requires_confirmation:
        lines.append("\n[bold]Requires confirmation before execution.[/bold]")
    console.print(Panel("\n".join(lines), title="Risk", border_style=style.split()[0]))


def _print_report(report: AnalysisReport) -> None:
    result = report.result
    if report.outcome == AnalysisOutcome.AI_FAILED:
        error_console.print(f"[yellow]AI analysis failed:[/yellow] {report.error}")
    elif report.outcome == AnalysisOutcome.STATIC_ONLY:
        console.print("\n[dim]No AI provider available; static analysis only.[/dim]")

    title = f"AI Analysis ({report.provider})" if report.provider else "Analysis"
    console.print()
    console.print(Panel(result.summary, title=title, border_style="cyan"))

    for suggestion in result.optimization_suggestions:
        console.print(
            f"[bold]{suggestion.title}[/bold] "
            f"[dim](impact: {suggestion.impact.value}, difficulty: {suggestion.difficulty.value})[/dim]"
        )
        if suggestion.description:
            console.print(f"   {suggestion.description}")
        if suggestion.after:
            console.print(f"   [green]{suggestion.after}[/green]")

    if result.citations:
        console.print("\n[bold]Sources:[/bold]")
        for index, citation in enumerate(result.citations, start=1):
            console.print(f"  \\[{index}] {citation.title} [dim]{citation.source}[/dim]")
