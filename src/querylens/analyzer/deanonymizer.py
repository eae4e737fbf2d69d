"""
Query deanonymization for EXPLAIN.

Parameterized queries (``?`` placeholders, e.g. from a digest or an
anonymized query) cannot be passed to EXPLAIN as-is. This module swaps
each true placeholder for a representative sample value chosen from its
syntactic context, leaving every other character untouched.

A ``?`` inside a string literal, quoted identifier or comment is content,
not a placeholder, and is preserved verbatim.

Sample values by context:

    IN (?, ?)                    1, 1
    col BETWEEN ? AND ?          '2024-01-01', '2024-12-31' (1, 100 for numeric columns)
    col LIKE ?                   '%sample%'
    email-like col = ?           'sample@example.com'
    date-like col = ?            '2024-01-01'
    status-like col = ?          'active'
    name-like col = ?            'sample'
    anything else                1
"""

from __future__ import annotations

import logging
import re

logger = logging.getLogger(__name__)

NUMERIC_SAMPLE = "1"
NUMERIC_UPPER_SAMPLE = "100"
STRING_SAMPLE = "'sample'"
EMAIL_SAMPLE = "'sample@example.com'"
LIKE_SAMPLE = "'%sample%'"
DATE_SAMPLE = "'2024-01-01'"
DATE_UPPER_SAMPLE = "'2024-12-31'"
STATUS_SAMPLE = "'active'"

_IN_LIST = re.compile(r"\bIN\s*\((?:[^()]*,)?\s*$", re.IGNORECASE)
_BETWEEN_LOWER = re.compile(r"([`\w.]+)?\s*\bBETWEEN\s*$", re.IGNORECASE)
_BETWEEN_UPPER = re.compile(
    r"([`\w.]+)?\s*\bBETWEEN\s+\S+\s+AND\s*$",
    re.IGNORECASE,
)
_LIKE = re.compile(r"\bLIKE\s*$", re.IGNORECASE)
_COMPARISON = re.compile(r"([`\w.]+)\s*(?:<=>|<=|>=|<>|!=|=|<|>)\s*$")

_EMAIL_COLUMN = re.compile(r"e[-_]?mail", re.IGNORECASE)
_DATE_COLUMN = re.compile(
    r"date|time|created|updated|modified|_at$|^at$|day|month",
    re.IGNORECASE,
)
_NUMERIC_WORDS = (
    r"id|count|num|qty|quantity|amount|price|total|age|value|year"
    r"|size|level|limit|score|rank|balance|active|enabled|deleted|verified|confirmed"
)
# Whole underscore-separated words only: "message" and "language" are not "age"
_NUMERIC_COLUMN = re.compile(rf"(?:^|_)(?:{_NUMERIC_WORDS})(?:_|$)", re.IGNORECASE)
_NUMERIC_SUFFIX = re.compile(rf"(?:^|_)(?:{_NUMERIC_WORDS})$", re.IGNORECASE)
_STATUS_COLUMN = re.compile(r"status|state|type", re.IGNORECASE)
_STRING_COLUMN = re.compile(
    r"name|title|description|comment|text|code|slug|label|city|country|address"
    r"|username|login|word|message|note|language|locale|url",
    re.IGNORECASE,
)


class QueryDeanonymizer:
    """
    Replaces ``?`` placeholders with sample values for EXPLAIN/profiling.

    All methods are static and never raise.

    Example:
        QueryDeanonymizer.replace_parameters_for_explain(
            "SELECT * FROM users WHERE email = ? AND id IN (?, ?)"
        )
        # "SELECT * FROM users WHERE email = 'sample@example.com' AND id IN (1, 1)"
    """

    @staticmethod
    def has_parameters(sql: str) -> bool:
        """True if the query contains at least one true placeholder."""
        return bool(find_placeholders(sql))

    @staticmethod
    def count_parameters(sql: str) -> int:
        """Number of true placeholders (``?`` outside strings and comments)."""
        return len(find_placeholders(sql))

    @staticmethod
    def replace_parameters_for_explain(sql: str) -> str:
        """
        Substitute every true placeholder with a context-appropriate sample.

        A query without placeholders (including "") is returned unchanged.
        """
        if not sql:
            return sql if isinstance(sql, str) else ""

        positions, masked = _scan(sql)
        if not positions:
            return sql

        parts: list[str] = []
        last = 0
        for position in positions:
            parts.append(sql[last:position])
            parts.append(sample_value(_statement_prefix(masked, position)))
            last = position + 1
        parts.append(sql[last:])
        return "".join(parts)


def find_placeholders(sql: str) -> list[int]:
    """Offsets of true placeholders in ``sql``."""
    if not sql or not isinstance(sql, str):
        return []
    positions, _ = _scan(sql)
    return positions


def sample_value(prefix: str) -> str:
    """
    Choose a sample value from the text preceding a placeholder.

    ``prefix`` should have string literals masked. Falls back to a
    numeric sample whenever the context is unclear.
    """
    try:
        if _IN_LIST.search(prefix):
            return NUMERIC_SAMPLE

        upper = _BETWEEN_UPPER.search(prefix)
        if upper is not None:
            if _is_numeric_column(upper.group(1)):
                return NUMERIC_UPPER_SAMPLE
            return DATE_UPPER_SAMPLE

        lower = _BETWEEN_LOWER.search(prefix)
        if lower is not None:
            if _is_numeric_column(lower.group(1)):
                return NUMERIC_SAMPLE
            return DATE_SAMPLE

        if _LIKE.search(prefix):
            return LIKE_SAMPLE

        comparison = _COMPARISON.search(prefix)
        if comparison is not None:
            return _sample_for_column(comparison.group(1))
    except Exception as e:
        logger.debug("Placeholder context detection failed: %s", e)

    return NUMERIC_SAMPLE


def _sample_for_column(column: str) -> str:
    name = _bare_column(column)
    if _EMAIL_COLUMN.search(name):
        return EMAIL_SAMPLE
    if _NUMERIC_SUFFIX.search(name):
        return NUMERIC_SAMPLE
    if _DATE_COLUMN.search(name):
        return DATE_SAMPLE
    if _STATUS_COLUMN.search(name):
        return STATUS_SAMPLE
    if _STRING_COLUMN.search(name):
        return STRING_SAMPLE
    return NUMERIC_SAMPLE


def _is_numeric_column(column: str | None) -> bool:
    if not column:
        return False
    name = _bare_column(column)
    return bool(_NUMERIC_COLUMN.search(name)) and not _DATE_COLUMN.search(name)


def _bare_column(column: str) -> str:
    """``t.`user_id``` -> ``user_id``."""
    return column.split(".")[-1].strip("`").lower()


def _statement_prefix(masked: str, position: int) -> str:
    prefix = masked[:position]
    return prefix[prefix.rfind(";") + 1:]


def _scan(sql: str) -> tuple[list[int], str]:
    """
    Find placeholders and build a same-length masked copy of ``sql``.

    In the masked copy, string literal contents become '0' so that
    context regexes can treat a literal as a single opaque word.
    """
    positions: list[int] = []
    masked = list(sql)
    length = len(sql)
    i = 0

    while i < length:
        ch = sql[i]

        if ch in ("'", '"', "`"):
            end = _closing_quote(sql, i, ch)
            if ch != "`":
                # Identifiers keep their text for column-name hints
                for j in range(i + 1, min(end, length)):
                    masked[j] = "0"
            i = end + 1
            continue

        if ch == "-" and sql.startswith("--", i) or ch == "#":
            end = sql.find("\n", i)
            end = length if end < 0 else end
            for j in range(i, end):
                masked[j] = " "
            i = end
            continue

        if ch == "/" and sql.startswith("/*", i):
            end = sql.find("*/", i + 2)
            end = length if end < 0 else end + 2
            for j in range(i, end):
                masked[j] = " "
            i = end
            continue

        if ch == "?":
            positions.append(i)

        i += 1

    return positions, "".join(masked)


def _closing_quote(sql: str, start: int, quote: str) -> int:
    """Index of the quote closing the literal opened at ``start``."""
    i = start + 1
    length = len(sql)
    while i < length:
        ch = sql[i]
        if ch == "\\" and quote != "`":
            i += 2
            continue
        if ch == quote:
            # Doubled quote is an escaped quote inside the literal
            if i + 1 < length and sql[i + 1] == quote:
                i += 2
                continue
            return i
        i += 1
    return length
