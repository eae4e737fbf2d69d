"""
Static SQL analysis primitives.

Module responsibilities (one concept, one module):
- sql_text.py: sqlparse statement splitter (comment-free and string-masked views)
- classifier.py: QueryClassifier (query type, complexity, anti-patterns)
- anonymizer.py: QueryAnonymizer (literal replacement, fingerprint, sensitive terms)
- deanonymizer.py: QueryDeanonymizer (placeholder sample values for EXPLAIN)
- risk.py: RiskAnalyzer (prefix rule table plus anti-pattern folding)
- service.py: QueryService facade (parse, template, risk, validate)
- models.py: Immutable result models

None of these raise for malformed SQL.
"""

from querylens.analyzer.anonymizer import QueryAnonymizer
from querylens.analyzer.classifier import QueryClassifier
from querylens.analyzer.deanonymizer import QueryDeanonymizer
from querylens.analyzer.models import (
    AntiPattern,
    Location,
    ParseResult,
    QueryType,
    RiskAnalysisResult,
    RiskLevel,
    Severity,
    TemplatedQuery,
    ValidationResult,
)
from querylens.analyzer.risk import RiskAnalyzer
from querylens.analyzer.service import QueryService

__all__ = [
    "AntiPattern",
    "Location",
    "ParseResult",
    "QueryAnonymizer",
    "QueryClassifier",
    "QueryDeanonymizer",
    "QueryService",
    "QueryType",
    "RiskAnalysisResult",
    "RiskAnalyzer",
    "RiskLevel",
    "Severity",
    "TemplatedQuery",
    "ValidationResult",
]
