"""
Data models for the AI analysis path.

Inputs (schema, performance, retrieved docs) and outputs (suggestions,
citations, the merged result) of an analysis. Providers return loosely
structured JSON, so the output models coerce what they can and default
the rest: an AIAnalysisResult always has its full shape.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from querylens.analyzer.models import AntiPattern, Severity
from querylens.exceptions import ConfigurationError


# ── Inputs ───────────────────────────────────────────────────────────────


class DatabaseType(str, Enum):
    """Database flavour; selects the documentation corpus."""

    MYSQL = "mysql"
    MARIADB = "mariadb"

    @classmethod
    def parse(cls, value: "str | DatabaseType") -> "DatabaseType":
        """
        Parse a flavour name (case-insensitive).

        Raises:
            ConfigurationError: If the name is not mysql or mariadb.
        """
        try:
            return cls(value.lower() if isinstance(value, str) else value)
        except ValueError as e:
            raise ConfigurationError(
                f"Unknown database type: {value!r} (expected 'mysql' or 'mariadb')",
                config_key="db_type",
            ) from e

    @property
    def docs_filename(self) -> str:
        return f"{self.value}-docs.json"


class ColumnInfo(BaseModel):
    """A table column as reported by information_schema."""

    model_config = ConfigDict(frozen=True)

    name: str
    type: str = ""
    nullable: bool = True
    key: str | None = None
    default: Any = None
    extra: str | None = None


class IndexInfo(BaseModel):
    """An index; ``columns`` may be plain names or {name, position} dicts."""

    model_config = ConfigDict(frozen=True)

    name: str
    columns: tuple[str, ...] = ()
    type: str = "BTREE"
    unique: bool = False

    @field_validator("columns", mode="before")
    @classmethod
    def _column_names(cls, value: Any) -> Any:
        if not isinstance(value, (list, tuple)):
            return value
        items = list(value)
        if items and all(isinstance(item, dict) for item in items):
            items = sorted(items, key=lambda item: item.get("position", 0))
            return tuple(str(item.get("name", "")) for item in items)
        return tuple(items)


class TableInfo(BaseModel):
    """Schema of one table."""

    model_config = ConfigDict(frozen=True)

    name: str | None = None
    columns: tuple[ColumnInfo, ...] = ()
    indexes: tuple[IndexInfo, ...] = ()
    row_count: int | None = None


class StageTiming(BaseModel):
    """One execution stage from profiling."""

    model_config = ConfigDict(frozen=True)

    name: str
    duration: float


class PerformanceContext(BaseModel):
    """Profiling metrics for the analyzed query (durations in µs)."""

    model_config = ConfigDict(frozen=True)

    total_duration: float | None = None
    rows_examined: int | None = None
    rows_sent: int | None = None
    efficiency: float | None = None
    lock_time: float | None = None
    stages: tuple[StageTiming, ...] = ()


class SchemaContext(BaseModel):
    """
    Schema information sent alongside a query.

    ``tables`` accepts a list of TableInfo or a mapping of table name to
    TableInfo; mappings are normalized to a list with names filled in.
    """

    model_config = ConfigDict(frozen=True)

    database: str | None = None
    tables: tuple[TableInfo, ...] = ()
    performance: PerformanceContext | None = None

    @field_validator("tables", mode="before")
    @classmethod
    def _normalize_tables(cls, value: Any) -> Any:
        if isinstance(value, dict):
            tables = []
            for name, info in value.items():
                data = info.model_dump() if isinstance(info, TableInfo) else dict(info)
                if data.get("name") is None:
                    data["name"] = name
                tables.append(data)
            return tables
        return value


class RAGDocument(BaseModel):
    """A documentation snippet available for retrieval."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    keywords: tuple[str, ...] = ()
    content: str = ""
    source: str = ""
    version: str = ""

    @field_validator("keywords", mode="before")
    @classmethod
    def _lowercase_keywords(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            return tuple(str(kw).lower() for kw in value)
        return value


class QueryContext(BaseModel):
    """
    Everything a provider receives for one analysis.

    Built fresh per call and never retained by the coordinator.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    query: str
    anonymized_query: str | None = None
    schema_context: SchemaContext | None = Field(default=None, alias="schema")
    rag_docs: tuple[RAGDocument, ...] = ()

    @property
    def prompt_query(self) -> str:
        """The text that may leave the process."""
        return self.anonymized_query or self.query


# ── Outputs ──────────────────────────────────────────────────────────────


class Impact(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class OptimizationSuggestion(BaseModel):
    """An actionable optimization."""

    model_config = ConfigDict(frozen=True)

    title: str
    description: str = ""
    impact: Impact = Impact.MEDIUM
    difficulty: Difficulty = Difficulty.MEDIUM
    before: str | None = None
    after: str | None = None

    @field_validator("impact", "difficulty", mode="before")
    @classmethod
    def _lowercase(cls, value: Any) -> Any:
        return value.lower() if isinstance(value, str) else value

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "title": self.title,
            "description": self.description,
            "impact": self.impact.value,
            "difficulty": self.difficulty.value,
        }
        if self.before is not None:
            data["before"] = self.before
        if self.after is not None:
            data["after"] = self.after
        return data


class Citation(BaseModel):
    """A documentation source an AI answer relies on."""

    model_config = ConfigDict(frozen=True)

    title: str
    source: str = ""
    relevance: str = ""
    id: str | None = None
    url: str | None = None

    @field_validator("relevance", mode="before")
    @classmethod
    def _relevance_text(cls, value: Any) -> Any:
        if value is None:
            return ""
        return str(value) if isinstance(value, (int, float)) else value

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "title": self.title,
            "source": self.source,
            "relevance": self.relevance,
        }
        if self.id is not None:
            data["id"] = self.id
        if self.url is not None:
            data["url"] = self.url
        return data


class AIAnalysisResult(BaseModel):
    """
    Full analysis of one query.

    Attributes:
        summary: Non-empty human-readable assessment.
        anti_patterns: Static findings followed by AI findings.
        optimization_suggestions: Empty for static-only analysis.
        estimated_complexity: AI estimate, or the static score.
        citations: Documentation the AI cited.
    """

    model_config = ConfigDict(frozen=True)

    summary: str
    anti_patterns: tuple[AntiPattern, ...] = ()
    optimization_suggestions: tuple[OptimizationSuggestion, ...] = ()
    estimated_complexity: float | None = None
    citations: tuple[Citation, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "summary": self.summary,
            "antiPatterns": [p.to_dict() for p in self.anti_patterns],
            "optimizationSuggestions": [s.to_dict() for s in self.optimization_suggestions],
            "citations": [c.to_dict() for c in self.citations],
        }
        if self.estimated_complexity is not None:
            data["estimatedComplexity"] = self.estimated_complexity
        return data


class AnalysisOutcome(str, Enum):
    """Which path produced an analysis."""

    STATIC_ONLY = "static_only"
    AI_ENHANCED = "ai_enhanced"
    AI_FAILED = "ai_failed"


class AnalysisReport(BaseModel):
    """
    Coordinator output: the result plus how it was produced.

    Attributes:
        result: Always a complete AIAnalysisResult.
        outcome: STATIC_ONLY (no provider), AI_ENHANCED, or AI_FAILED
            (provider failed, result is the static fallback).
        provider: Name of the provider used, if any.
        error: Provider failure text when outcome is AI_FAILED.
        docs_retrieved: Number of documentation snippets sent.
    """

    model_config = ConfigDict(frozen=True)

    result: AIAnalysisResult
    outcome: AnalysisOutcome
    provider: str | None = None
    error: str | None = None
    docs_retrieved: int = 0

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "result": self.result.to_dict(),
            "outcome": self.outcome.value,
            "docsRetrieved": self.docs_retrieved,
        }
        if self.provider is not None:
            data["provider"] = self.provider
        if self.error is not None:
            data["error"] = self.error
        return data


def coerce_anti_pattern(raw: Any) -> AntiPattern | None:
    """Build an AntiPattern from loose provider JSON; None if unusable."""
    if isinstance(raw, AntiPattern):
        return raw
    if not isinstance(raw, dict):
        return None
    severity = str(raw.get("severity", "warning")).lower()
    if severity not in {s.value for s in Severity}:
        severity = Severity.WARNING.value
    try:
        return AntiPattern(
            type=str(raw.get("type") or "ai_finding"),
            severity=Severity(severity),
            message=str(raw.get("message", "")),
            suggestion=raw.get("suggestion"),
        )
    except ValueError:
        return None
