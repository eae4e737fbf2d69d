"""Shared CLI helpers: consoles, SQL input, error exit."""

from __future__ import annotations

import sys
from pathlib import Path

import typer
from rich.console import Console

from querylens.analyzer.models import RiskLevel, Severity
from querylens.exceptions import QueryLensError

console = Console()
error_console = Console(stderr=True)

SQL_HELP = "SQL text, or '-' to read from stdin"

SEVERITY_STYLES = {
    Severity.CRITICAL: "red bold",
    Severity.WARNING: "yellow",
    Severity.INFO: "blue",
}

RISK_STYLES = {
    RiskLevel.CRITICAL: "red bold",
    RiskLevel.HIGH: "red",
    RiskLevel.MEDIUM: "yellow",
    RiskLevel.LOW: "green",
}


def read_sql(value: str) -> str:
    """Inline SQL, or stdin when ``value`` is ``-``."""
    if value == "-":
        return sys.stdin.read()
    return value


def read_text(path: Path) -> str:
    if str(path) == "-":
        return sys.stdin.read()
    return path.read_text(encoding="utf-8")


def fail(error: QueryLensError) -> None:
    """Print a QueryLens error and exit with status 1."""
    error_console.print(f"[red]Error:[/red] {error.message}")
    raise typer.Exit(code=1)
