"""
Risk classification for SQL statements.

Single-pass, rule-table classification by statement prefix, in strict
precedence order (first match wins):

    DROP ...                      CRITICAL  confirm
    TRUNCATE ...                  CRITICAL  confirm
    DELETE without WHERE          HIGH      confirm
    UPDATE without WHERE          HIGH      confirm
    ALTER TABLE ...               HIGH      confirm
    DELETE / UPDATE with WHERE    MEDIUM
    INSERT / REPLACE ...          MEDIUM
    anything else                 LOW

Classifier findings are then folded in. Folding only ever raises the
level: a critical anti-pattern lifts it to at least MEDIUM, and a
complexity score above the threshold lifts LOW to MEDIUM.
"""

from __future__ import annotations

import logging
import re

from querylens.analyzer.classifier import QueryClassifier, statement_type
from querylens.analyzer.models import (
    ParseResult,
    QueryType,
    RiskAnalysisResult,
    RiskLevel,
    Severity,
)
from querylens.analyzer.sql_text import StatementText, split_statements, top_level_index
from querylens.config import Config

logger = logging.getLogger(__name__)

_WHERE = re.compile(r"\bWHERE\b", re.IGNORECASE)
_ALTER_TABLE = re.compile(r"^ALTER\s+(?:ONLINE\s+|IGNORE\s+)*TABLE\b", re.IGNORECASE)
_DESTRUCTIVE = ("DROP", "TRUNCATE", "DELETE", "UPDATE", "ALTER", "RENAME")

ISSUE_DROP = "DROP operation detected - irreversible data loss possible"
ISSUE_TRUNCATE = "TRUNCATE operation detected - all table data will be deleted"
ISSUE_ALTER = "ALTER TABLE operation - schema change may lock the table or break dependent code"
ISSUE_WITH_WHERE = "Destructive operation with WHERE clause"
ISSUE_INSERT = "Data modification - INSERT adds new rows"


def _no_where_issue(keyword: str) -> str:
    return f"{keyword} without WHERE clause - will affect all rows"


class RiskAnalyzer:
    """
    Classifies statements into LOW / MEDIUM / HIGH / CRITICAL risk.

    Multi-statement input is rated by its riskiest statement.

    Example:
        analyzer = RiskAnalyzer()
        analyzer.analyze_risk("DROP TABLE users").level  # RiskLevel.CRITICAL
        analyzer.analyze_risk("SELECT 1").level          # RiskLevel.LOW
    """

    def __init__(
        self,
        config: Config | None = None,
        classifier: QueryClassifier | None = None,
    ) -> None:
        """
        Initialize the analyzer.

        Args:
            config: Supplies complexity_threshold (defaults to Config()).
            classifier: Classifier used for anti-pattern folding.
        """
        self._config = config or Config()
        self._classifier = classifier or QueryClassifier()

    @property
    def complexity_threshold(self) -> int:
        return self._config.complexity_threshold

    def analyze_risk(self, sql: str) -> RiskAnalysisResult:
        """
        Rate the risk of executing ``sql``.

        Never raises for any string input.
        """
        statements = split_statements(sql if isinstance(sql, str) else "")

        level = RiskLevel.LOW
        issues: list[str] = []
        destructive = False
        confirm = False

        for stmt in statements:
            stmt_level, stmt_issues, stmt_confirm = self._classify_prefix(stmt)
            level = RiskLevel.max(level, stmt_level)
            issues.extend(stmt_issues)
            confirm = confirm or stmt_confirm
            destructive = destructive or stmt.leading_keyword in _DESTRUCTIVE

        level = self._fold_classifier(sql, level, issues)

        if level >= RiskLevel.HIGH:
            logger.warning(
                "Risk escalated to %s: %s",
                level.value,
                "; ".join(issues) or "no details",
            )

        return RiskAnalysisResult(
            level=level,
            issues=tuple(issues),
            is_destructive=destructive,
            requires_confirmation=confirm,
        )

    def _classify_prefix(self, stmt: StatementText) -> tuple[RiskLevel, list[str], bool]:
        """Prefix rule table. Returns (level, issues, requires_confirmation)."""
        keyword = stmt.leading_keyword
        code = stmt.code.lstrip(" \t\r\n(")

        if keyword == "DROP":
            return RiskLevel.CRITICAL, [ISSUE_DROP], True
        if keyword == "TRUNCATE":
            return RiskLevel.CRITICAL, [ISSUE_TRUNCATE], True

        # WITH ... resolves to the statement it wraps
        if keyword == "WITH":
            keyword = {
                QueryType.DELETE: "DELETE",
                QueryType.UPDATE: "UPDATE",
                QueryType.INSERT: "INSERT",
            }.get(statement_type(stmt), keyword)

        if keyword in ("DELETE", "UPDATE"):
            if top_level_index(stmt.masked, _WHERE) < 0:
                return RiskLevel.HIGH, [_no_where_issue(keyword)], True
        if _ALTER_TABLE.match(code):
            return RiskLevel.HIGH, [ISSUE_ALTER], True
        if keyword in ("DELETE", "UPDATE"):
            return RiskLevel.MEDIUM, [ISSUE_WITH_WHERE], False
        if keyword in ("INSERT", "REPLACE"):
            return RiskLevel.MEDIUM, [ISSUE_INSERT], False
        return RiskLevel.LOW, [], False

    def _fold_classifier(
        self,
        sql: str,
        level: RiskLevel,
        issues: list[str],
    ) -> RiskLevel:
        """Raise (never lower) the level from classifier findings."""
        try:
            result: ParseResult = self._classifier.analyze(sql)
        except Exception as e:
            # Prefix rules alone still decide the level
            logger.debug("Classifier failed during risk folding: %s", e)
            return level

        for pattern in result.anti_patterns:
            issues.append(f"{pattern.severity.value.title()}: {pattern.message}")
            if pattern.severity == Severity.CRITICAL:
                level = RiskLevel.max(level, RiskLevel.MEDIUM)

        if result.complexity > self.complexity_threshold:
            issues.append(
                f"High query complexity (score {result.complexity}, "
                f"threshold {self.complexity_threshold})"
            )
            level = RiskLevel.max(level, RiskLevel.MEDIUM)

        return level
