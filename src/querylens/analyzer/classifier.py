"""
Static query classifier.

Classifies arbitrary SQL text, scores its complexity and detects
structural anti-patterns. This is the guaranteed baseline every other
component builds on, so it has one hard rule: it never raises. Garbage
input degrades to ``unknown`` type, zero complexity and no anti-patterns.

Detection is heuristic (regex over comment-free, string-masked text),
not dialect-correct parsing.

Complexity weights (per recognised statement):

    base statement     1
    each JOIN          2
    each extra table   2   (comma-separated FROM list)
    each subquery      3
    GROUP BY           2
    HAVING             2
    ORDER BY           1
    each UNION         1
    each 500 chars     1
"""

from __future__ import annotations

import logging
import re

from querylens.analyzer.models import (
    AntiPattern,
    ParseResult,
    QueryType,
    Severity,
)
from querylens.analyzer.sql_text import StatementText, split_statements, top_level_index

logger = logging.getLogger(__name__)


_KEYWORD_TYPES: dict[str, QueryType] = {
    "SELECT": QueryType.SELECT,
    "INSERT": QueryType.INSERT,
    "REPLACE": QueryType.INSERT,
    "UPDATE": QueryType.UPDATE,
    "DELETE": QueryType.DELETE,
}

_DML_KEYWORD = re.compile(r"\b(SELECT|INSERT|REPLACE|UPDATE|DELETE)\b", re.IGNORECASE)

_SELECT_STAR = re.compile(
    r"\bSELECT\s+(?:(?:DISTINCT|ALL|SQL_NO_CACHE|SQL_CALC_FOUND_ROWS)\s+)*"
    r"(?:[`\w]+\.)?\*",
    re.IGNORECASE,
)
_WHERE = re.compile(r"\bWHERE\b", re.IGNORECASE)
_FROM = re.compile(r"\bFROM\b", re.IGNORECASE)
_JOIN = re.compile(r"\bJOIN\b", re.IGNORECASE)
_JOIN_CONDITION = re.compile(r"\b(?:ON|USING)\b", re.IGNORECASE)
_SUBQUERY = re.compile(r"\(\s*SELECT\b", re.IGNORECASE)
_GROUP_BY = re.compile(r"\bGROUP\s+BY\b", re.IGNORECASE)
_HAVING = re.compile(r"\bHAVING\b", re.IGNORECASE)
_ORDER_BY = re.compile(r"\bORDER\s+BY\b", re.IGNORECASE)
_UNION = re.compile(r"\bUNION\b", re.IGNORECASE)
_CLAUSE_END = re.compile(
    r"\b(?:WHERE|GROUP\s+BY|ORDER\s+BY|HAVING|LIMIT|UNION|WINDOW|FOR\s+UPDATE)\b",
    re.IGNORECASE,
)
_WHERE_END = re.compile(
    r"\b(?:GROUP\s+BY|ORDER\s+BY|HAVING|LIMIT|UNION|WINDOW|FOR\s+UPDATE)\b",
    re.IGNORECASE,
)
_COLUMN_EQUALS_COLUMN = re.compile(
    r"[`\w]+\.[`\w]+\s*=\s*[`\w]+\.[`\w]+",
)
_FUNCTION_ON_COLUMN = re.compile(
    r"\b([A-Za-z_]\w*)\s*\(\s*[`\w.]+(?:\s*,\s*[^()]*)?\)\s*"
    r"(?:=|<>|!=|<=|>=|<|>|\bLIKE\b|\bIN\b|\bBETWEEN\b)",
    re.IGNORECASE,
)
_NOT_FUNCTIONS = frozenset({
    "IN", "EXISTS", "NOT", "AND", "OR", "ANY", "ALL", "SOME", "VALUES",
    "WHERE", "ON", "AS", "SELECT", "USING",
})
_LEADING_WILDCARD_LIKE = re.compile(r"\bLIKE\s+(['\"])%", re.IGNORECASE)
_OR = re.compile(r"\bOR\b", re.IGNORECASE)
_IN_SUBQUERY = re.compile(r"\bIN\s*\(\s*SELECT\b", re.IGNORECASE)


class QueryClassifier:
    """
    Classifies SQL text and detects anti-patterns.

    Stateless: a single instance may be shared and called concurrently.

    Example:
        classifier = QueryClassifier()

        result = classifier.analyze("SELECT * FROM users")
        assert result.query_type == QueryType.SELECT
        assert result.has_anti_pattern("select_star")
    """

    LENGTH_STEP = 500

    def analyze(self, sql: str) -> ParseResult:
        """
        Analyze SQL text.

        Args:
            sql: Any string (empty, multi-statement, commented, garbage).

        Returns:
            ParseResult with query type of the first statement, complexity
            and anti-patterns accumulated over all statements.
        """
        text = sql if isinstance(sql, str) else ""
        try:
            return self._analyze(text)
        except Exception as e:
            # Detection must never break callers
            logger.debug("Classifier failed on input, degrading: %s", e)
            return ParseResult(sql=text, valid=False, error="Unable to analyze query")

    def classify(self, sql: str) -> QueryType:
        """Query type of the first statement only."""
        return self.analyze(sql).query_type

    def _analyze(self, sql: str) -> ParseResult:
        statements = split_statements(sql)
        if not statements:
            return ParseResult(sql=sql, valid=False, error="Empty query")

        anti_patterns: list[AntiPattern] = []
        complexity = 0
        query_type = statement_type(statements[0])
        error: str | None = None

        for stmt in statements:
            stmt_type = statement_type(stmt)
            if stmt_type == QueryType.UNKNOWN:
                continue
            anti_patterns.extend(self.detect_anti_patterns(stmt, stmt_type))
            complexity += self.score_complexity(stmt)

        for stmt in statements:
            if stmt.unterminated_string:
                error = "Unterminated string literal"
                break
            if stmt.paren_balance != 0:
                error = "Unbalanced parentheses"
                break

        return ParseResult(
            sql=sql,
            query_type=query_type,
            complexity=complexity,
            anti_patterns=tuple(anti_patterns),
            valid=error is None,
            error=error,
        )

    # ── Complexity ───────────────────────────────────────────────────────

    def score_complexity(self, stmt: StatementText) -> int:
        """Weighted complexity of a single recognised statement."""
        masked = stmt.masked
        score = 1
        score += 2 * len(_JOIN.findall(masked))
        score += 2 * _top_level_commas(_from_clause(masked))
        score += 3 * len(_SUBQUERY.findall(masked))
        if _GROUP_BY.search(masked):
            score += 2
        if _HAVING.search(masked):
            score += 2
        if _ORDER_BY.search(masked):
            score += 1
        score += len(_UNION.findall(masked))
        score += len(stmt.code) // self.LENGTH_STEP
        return score

    # ── Anti-patterns ────────────────────────────────────────────────────

    def detect_anti_patterns(
        self,
        stmt: StatementText,
        query_type: QueryType,
    ) -> list[AntiPattern]:
        """Run every detector; each one is independent."""
        patterns: list[AntiPattern] = []
        for detector in (
            self._detect_select_star,
            self._detect_missing_where,
            self._detect_cartesian_join,
            self._detect_function_on_column,
            self._detect_subquery_in_select,
            self._detect_leading_wildcard_like,
            self._detect_or_in_where,
            self._detect_in_subquery,
        ):
            try:
                pattern = detector(stmt, query_type)
            except Exception as e:
                logger.debug("Detector %s failed: %s", detector.__name__, e)
                continue
            if pattern is not None:
                patterns.append(pattern)
        return patterns

    def _detect_select_star(
        self, stmt: StatementText, query_type: QueryType
    ) -> AntiPattern | None:
        if query_type != QueryType.SELECT or not _SELECT_STAR.search(stmt.masked):
            return None
        return AntiPattern(
            type="select_star",
            severity=Severity.WARNING,
            message="Using SELECT * retrieves all columns, which may be inefficient",
            suggestion="Specify only the columns you need: SELECT col1, col2, col3 FROM table",
        )

    def _detect_missing_where(
        self, stmt: StatementText, query_type: QueryType
    ) -> AntiPattern | None:
        if query_type not in (QueryType.UPDATE, QueryType.DELETE):
            return None
        if top_level_index(stmt.masked, _WHERE) >= 0:
            return None
        return AntiPattern(
            type="missing_where",
            severity=Severity.CRITICAL,
            message=f"{query_type.value.upper()} without WHERE clause will affect all rows",
            suggestion="Add a WHERE clause to limit the affected rows",
        )

    def _detect_cartesian_join(
        self, stmt: StatementText, query_type: QueryType
    ) -> AntiPattern | None:
        if query_type != QueryType.SELECT:
            return None
        tables = _comma_tables(stmt.masked)
        if len(tables) < 2:
            return None
        where = where_clause(stmt.masked)
        if where and _COLUMN_EQUALS_COLUMN.search(where):
            return None
        return AntiPattern(
            type="cartesian_join",
            severity=Severity.CRITICAL,
            message="Potential Cartesian product detected - missing join conditions",
            suggestion="Add JOIN ... ON conditions or WHERE clause to relate the tables",
        )

    def _detect_function_on_column(
        self, stmt: StatementText, query_type: QueryType
    ) -> AntiPattern | None:
        if query_type != QueryType.SELECT:
            return None
        where = where_clause(stmt.masked)
        if not where:
            return None
        functions: list[str] = []
        for match in _FUNCTION_ON_COLUMN.finditer(where):
            name = match.group(1).upper()
            if name not in _NOT_FUNCTIONS and name not in functions:
                functions.append(name)
        if not functions:
            return None
        return AntiPattern(
            type="function_on_column",
            severity=Severity.WARNING,
            message="Using functions on columns in WHERE clause may prevent index usage",
            suggestion=(
                f"Found functions: {', '.join(functions)}. "
                "Consider computed columns or functional indexes"
            ),
        )

    def _detect_subquery_in_select(
        self, stmt: StatementText, query_type: QueryType
    ) -> AntiPattern | None:
        if query_type != QueryType.SELECT:
            return None
        select_list = _select_list(stmt.masked)
        if not _SUBQUERY.search(select_list):
            return None
        return AntiPattern(
            type="subquery_in_select",
            severity=Severity.INFO,
            message="Subquery in SELECT list executes once per row",
            suggestion="Consider using JOINs or moving subquery to FROM clause",
        )

    def _detect_leading_wildcard_like(
        self, stmt: StatementText, query_type: QueryType
    ) -> AntiPattern | None:
        if not _LEADING_WILDCARD_LIKE.search(stmt.code):
            return None
        return AntiPattern(
            type="leading_wildcard_like",
            severity=Severity.WARNING,
            message="LIKE pattern starting with a wildcard cannot use an index",
            suggestion="Use a prefix match (LIKE 'abc%') or a FULLTEXT index",
        )

    def _detect_or_in_where(
        self, stmt: StatementText, query_type: QueryType
    ) -> AntiPattern | None:
        where = where_clause(stmt.masked)
        if not where or not _OR.search(where):
            return None
        return AntiPattern(
            type="or_in_where",
            severity=Severity.INFO,
            message="OR conditions in WHERE clause can prevent efficient index usage",
            suggestion="Consider rewriting with UNION or IN (...) if the columns are indexed",
        )

    def _detect_in_subquery(
        self, stmt: StatementText, query_type: QueryType
    ) -> AntiPattern | None:
        if not _IN_SUBQUERY.search(stmt.masked):
            return None
        return AntiPattern(
            type="in_subquery",
            severity=Severity.INFO,
            message="IN (SELECT ...) subquery may be evaluated repeatedly",
            suggestion="Consider rewriting as a JOIN or EXISTS",
        )


# ── Helpers ──────────────────────────────────────────────────────────────


def statement_type(stmt: StatementText) -> QueryType:
    """Query type from the leading keyword (CTEs resolve to their body)."""
    keyword = stmt.leading_keyword
    if keyword == "WITH":
        index = top_level_index(stmt.masked, _DML_KEYWORD)
        if index < 0:
            return QueryType.UNKNOWN
        keyword = _DML_KEYWORD.match(stmt.masked, index).group(1).upper()
    return _KEYWORD_TYPES.get(keyword, QueryType.UNKNOWN)


def where_clause(masked: str) -> str:
    """Text of the top-level WHERE clause ('' if absent)."""
    start = top_level_index(masked, _WHERE)
    if start < 0:
        return ""
    body_start = start + len("WHERE")
    end = top_level_index(masked, _WHERE_END, body_start)
    return masked[body_start:end if end >= 0 else len(masked)]


def _from_clause(masked: str) -> str:
    start = top_level_index(masked, _FROM)
    if start < 0:
        return ""
    body_start = start + len("FROM")
    end = top_level_index(masked, _CLAUSE_END, body_start)
    return masked[body_start:end if end >= 0 else len(masked)]


def _comma_tables(masked: str) -> list[str]:
    """
    Tables listed with commas in the top-level FROM clause.

    Returns [] when the FROM clause uses JOIN syntax or derived tables,
    where a comma list is not a reliable signal.
    """
    from_clause = _from_clause(masked)
    if not from_clause or "(" in from_clause:
        return []
    if _JOIN.search(from_clause) or _JOIN_CONDITION.search(from_clause):
        return []
    return [part.strip() for part in from_clause.split(",") if part.strip()]


def _top_level_commas(text: str) -> int:
    depth = 0
    commas = 0
    for ch in text:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth = max(depth - 1, 0)
        elif ch == "," and depth == 0:
            commas += 1
    return commas


def _select_list(masked: str) -> str:
    match = re.search(r"\bSELECT\b", masked, re.IGNORECASE)
    if match is None:
        return ""
    end = top_level_index(masked, _FROM, match.end())
    return masked[match.end():end if end >= 0 else len(masked)]
