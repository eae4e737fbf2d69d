"""
Query service: single entry point over the analysis primitives.

Wraps the classifier, anonymizer and risk analyzer behind the four
operations callers use (parse, template, risk, validate), sharing one
classifier instance so every view of a query agrees.
"""

from __future__ import annotations

import logging
from typing import Any

from querylens.analyzer.anonymizer import QueryAnonymizer
from querylens.analyzer.classifier import QueryClassifier
from querylens.analyzer.models import (
    ParseResult,
    QueryType,
    RiskAnalysisResult,
    RiskLevel,
    Severity,
    TemplatedQuery,
    ValidationResult,
)
from querylens.analyzer.risk import RiskAnalyzer
from querylens.config import Config

logger = logging.getLogger(__name__)

_PREVIEW = 50

UNRECOGNIZED_WARNING = "parse_error: statement type not recognized, only basic checks applied"


def _preview(sql: str) -> str:
    return sql[:_PREVIEW] + ("..." if len(sql) > _PREVIEW else "")


class QueryService:
    """
    Facade over classifier, anonymizer and risk analyzer.

    Example:
        service = QueryService()

        service.parse("SELECT * FROM users").query_type    # QueryType.SELECT
        service.template_query("... WHERE id = 5").templated  # "... WHERE id = ?"
        service.validate("DELETE FROM users").valid          # False
    """

    def __init__(self, config: Config | None = None) -> None:
        self._config = config or Config()
        self._classifier = QueryClassifier()
        self._anonymizer = QueryAnonymizer()
        self._risk = RiskAnalyzer(config=self._config, classifier=self._classifier)

    @property
    def classifier(self) -> QueryClassifier:
        return self._classifier

    @property
    def anonymizer(self) -> QueryAnonymizer:
        return self._anonymizer

    def parse(self, sql: str) -> ParseResult:
        """Classify ``sql`` and detect anti-patterns."""
        logger.debug("Parsing SQL: %s", _preview(sql or ""))
        return self._classifier.analyze(sql)

    def template_query(self, sql: str) -> TemplatedQuery:
        """Anonymize ``sql`` and compute its fingerprint."""
        logger.debug("Templating query: %s", _preview(sql or ""))
        text = sql or ""
        return TemplatedQuery(
            original=text,
            templated=self._anonymizer.anonymize(text),
            fingerprint=self._anonymizer.fingerprint(text),
            has_sensitive_data=self._anonymizer.has_sensitive_data(text),
        )

    def analyze_risk(self, sql: str) -> RiskAnalysisResult:
        """Rate the risk of executing ``sql``."""
        logger.debug("Analyzing risk: %s", _preview(sql or ""))
        return self._risk.analyze_risk(sql)

    def validate(self, sql: str, schema: Any | None = None) -> ValidationResult:
        """
        Combined classifier and risk verdict.

        Errors are: classifier invalidity, every risk issue when the
        level is HIGH or CRITICAL, and critical anti-patterns. Everything
        else is a warning. ``valid`` means no errors.

        Args:
            sql: Statement(s) to validate.
            schema: Accepted for forward compatibility; table and column
                existence are not checked.
        """
        logger.debug("Validating query: %s", _preview(sql or ""))
        if schema is not None:
            logger.debug("Schema-aware validation not supported, ignoring schema")

        parse = self._classifier.analyze(sql)
        risk = self._risk.analyze_risk(sql)

        errors: list[str] = []
        warnings: list[str] = []

        if not parse.valid and parse.error:
            errors.append(parse.error)
        elif parse.query_type == QueryType.UNKNOWN:
            warnings.append(UNRECOGNIZED_WARNING)

        # Risk issues already include one entry per anti-pattern
        critical_issues = {
            f"{p.severity.value.title()}: {p.message}"
            for p in parse.anti_patterns
            if p.severity == Severity.CRITICAL
        }
        for issue in risk.issues:
            if risk.level >= RiskLevel.HIGH or issue in critical_issues:
                errors.append(issue)
            else:
                warnings.append(issue)

        return ValidationResult(
            valid=not errors,
            errors=tuple(errors),
            warnings=tuple(warnings),
            risk_level=risk.level,
        )
