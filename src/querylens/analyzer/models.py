"""
Data models for the SQL analysis primitives.

These models are the output of the classifier, risk analyzer and
validator. They're designed to be:
- Immutable (frozen=True): results are never mutated after creation
- Serializable: to_dict() emits the camelCase shape consumers expect
- Ephemeral: created per call, never cached here (callers cache by fingerprint)
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class QueryType(str, Enum):
    """Classification of a statement by its leading keyword."""

    SELECT = "select"
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
    UNKNOWN = "unknown"


class Severity(str, Enum):
    """
    Severity levels for anti-patterns.

    CRITICAL: Statement can destroy data or explode in cost
    WARNING: Significant inefficiency that should be addressed
    INFO: Optimization opportunity
    """
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"

    def __lt__(self, other: object) -> bool:
        """Enable sorting by severity (CRITICAL > WARNING > INFO)."""
        if not isinstance(other, Severity):
            return NotImplemented
        order = {Severity.CRITICAL: 0, Severity.WARNING: 1, Severity.INFO: 2}
        return order[self] < order[other]


class RiskLevel(str, Enum):
    """
    Ordered risk levels: LOW < MEDIUM < HIGH < CRITICAL.

    Comparison operators follow the rank, not the string value.
    """

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return _RISK_RANK[self]

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank >= other.rank

    @classmethod
    def max(cls, *levels: "RiskLevel") -> "RiskLevel":
        """Highest of the given levels (used to raise, never lower)."""
        return max(levels, key=lambda level: level.rank)


_RISK_RANK = {
    RiskLevel.LOW: 0,
    RiskLevel.MEDIUM: 1,
    RiskLevel.HIGH: 2,
    RiskLevel.CRITICAL: 3,
}


class Location(BaseModel):
    """Position of an anti-pattern in the source text, when known."""

    model_config = ConfigDict(frozen=True)

    line: int | None = None
    column: int | None = None


class AntiPattern(BaseModel):
    """
    A risky or inefficient SQL construct.

    Produced by the classifier and by AI providers. Uniqueness is not
    enforced; static and AI lists are simply concatenated.

    Attributes:
        type: Machine-readable identifier (e.g. "select_star", "missing_where").
        severity: How serious the issue is.
        message: Human-readable description.
        suggestion: Actionable fix, if any.
        location: Optional line/column in the source text.
    """

    model_config = ConfigDict(frozen=True)

    type: str = Field(..., min_length=1)
    severity: Severity = Field(default=Severity.WARNING)
    message: str = Field(default="")
    suggestion: str | None = None
    location: Location | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": self.type,
            "severity": self.severity.value,
            "message": self.message,
        }
        if self.suggestion is not None:
            data["suggestion"] = self.suggestion
        if self.location is not None:
            data["location"] = self.location.model_dump(exclude_none=True)
        return data


class ParseResult(BaseModel):
    """
    Static analysis of a single SQL text.

    Attributes:
        sql: The analyzed text, unchanged.
        query_type: Type of the first statement.
        complexity: Non-negative weighted complexity score.
        anti_patterns: Detected anti-patterns across all statements.
        valid: False when the text could not be recognised as SQL.
        error: Short reason when valid is False.
    """

    model_config = ConfigDict(frozen=True)

    sql: str
    query_type: QueryType = QueryType.UNKNOWN
    complexity: int = Field(default=0, ge=0)
    anti_patterns: tuple[AntiPattern, ...] = ()
    valid: bool = True
    error: str | None = None

    def has_anti_pattern(self, pattern_type: str) -> bool:
        return any(p.type == pattern_type for p in self.anti_patterns)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "sql": self.sql,
            "queryType": self.query_type.value,
            "complexity": self.complexity,
            "antiPatterns": [p.to_dict() for p in self.anti_patterns],
            "valid": self.valid,
        }
        if self.error is not None:
            data["error"] = self.error
        return data


class RiskAnalysisResult(BaseModel):
    """Risk classification of a statement."""

    model_config = ConfigDict(frozen=True)

    level: RiskLevel = RiskLevel.LOW
    issues: tuple[str, ...] = ()
    is_destructive: bool = False
    requires_confirmation: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "level": self.level.value,
            "issues": list(self.issues),
            "isDestructive": self.is_destructive,
            "requiresConfirmation": self.requires_confirmation,
        }


class ValidationResult(BaseModel):
    """Combined classifier + risk verdict for a statement."""

    model_config = ConfigDict(frozen=True)

    valid: bool
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    risk_level: RiskLevel = RiskLevel.LOW

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "riskLevel": self.risk_level.value,
        }


class TemplatedQuery(BaseModel):
    """A query with its literals replaced, ready to be shared or grouped."""

    model_config = ConfigDict(frozen=True)

    original: str
    templated: str
    fingerprint: str
    has_sensitive_data: bool = False
