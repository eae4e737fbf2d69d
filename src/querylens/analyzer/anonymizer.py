"""
Query anonymization for privacy-preserving analysis.

Replaces literal values (strings, numbers, hex) with ``?`` while leaving
keywords, identifiers and structure untouched, so the result is still
useful to an AI provider or as a grouping key but never leaks data.

Two-stage pipeline:
1. Token pass over sqlparse's lexer output (structured, preferred)
2. Regex scan (fallback when stage 1 raises)

Both stages implement the same contract; stage 2 defines it.
"""

from __future__ import annotations

import logging
import re

import sqlparse
from sqlparse import tokens as T

from querylens.analyzer.sql_text import strip_comments

logger = logging.getLogger(__name__)

PLACEHOLDER = "?"

_LITERAL_TYPES = (T.String.Single, T.String.Symbol, T.Number)
_STRING_PREFIXES = frozenset("xXbBnN")

# Order matters: comments and quoted identifiers are consumed whole so
# that quotes or digits inside them are never treated as literals.
_REGEX_LITERAL = re.compile(
    r"""
    (?P<comment>--[^\n]*|\#[^\n]*|/\*.*?(?:\*/|\Z))
    |(?P<ident>`[^`]*`)
    |(?P<prefixed>(?<![\w$])[xXbBnN]'(?:''|\\.|[^'\\])*')
    |(?P<single>'(?:''|\\.|[^'\\])*')
    |(?P<double>"(?:""|\\.|[^"\\])*")
    |(?P<unterminated>['"].*\Z)
    |(?P<hex>(?<![\w$])0[xX][0-9a-fA-F]+(?![\w$]))
    |(?P<number>(?<![\w$.])(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][-+]?\d+)?(?![\w$]))
    """,
    re.VERBOSE | re.DOTALL,
)

_KEEP_GROUPS = ("comment", "ident")

_OPERATORS = re.compile(r"\s*(<=>|<=|>=|<>|!=|=|<|>|,|\(|\))\s*")
_WHITESPACE = re.compile(r"\s+")

SENSITIVE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"passw(?:or)?d", re.IGNORECASE),
    re.compile(r"(?<![a-z])(?:credit[_\s-]?)?card(?![a-z])", re.IGNORECASE),
    re.compile(r"(?<![a-z])ssn(?![a-z])|social[_\s-]?security", re.IGNORECASE),
    re.compile(r"api[_\s-]?key", re.IGNORECASE),
    re.compile(r"token", re.IGNORECASE),
    re.compile(r"secret", re.IGNORECASE),
    re.compile(r"phone", re.IGNORECASE),
    re.compile(r"e[-_]?mail", re.IGNORECASE),
)


class QueryAnonymizer:
    """
    Anonymizes SQL queries and computes fingerprints.

    Stateless and safe to share. None of the methods raise.

    Example:
        anonymizer = QueryAnonymizer()

        anonymizer.anonymize("SELECT * FROM t WHERE name = 'Bob' AND id = 5")
        # "SELECT * FROM t WHERE name = ? AND id = ?"

        anonymizer.fingerprint("select * from t where id=1")
        # "select * from t where id = ?"
    """

    def anonymize(self, sql: str) -> str:
        """Replace every literal value with a placeholder."""
        if not sql:
            return ""
        try:
            return self._anonymize_tokens(sql)
        except Exception as e:
            logger.debug("Token anonymization failed (%s), using regex", e)
            return self.anonymize_with_regex(sql)

    def anonymize_with_regex(self, sql: str) -> str:
        """Regex-only anonymization (the fallback stage)."""
        if not sql:
            return ""
        return _REGEX_LITERAL.sub(_replace_literal, sql)

    def fingerprint(self, sql: str) -> str:
        """
        Normalized, literal-free form of a query for grouping.

        Queries that differ only in literal values, comments, whitespace
        or keyword case produce the same fingerprint.
        """
        anonymized = self.anonymize(strip_comments(sql or ""))
        spaced = _OPERATORS.sub(r" \1 ", anonymized)
        normalized = _WHITESPACE.sub(" ", spaced).strip().rstrip(";").strip()
        return normalized.lower()

    def has_sensitive_data(self, sql: str) -> bool:
        """
        Heuristic check for sensitive terms (password, card, ssn, ...).

        A True result is an early warning, and False is not a guarantee.
        """
        if not sql:
            return False
        return any(pattern.search(sql) for pattern in SENSITIVE_PATTERNS)

    def sensitive_terms(self, sql: str) -> list[str]:
        """The sensitive terms that matched, in pattern order."""
        if not sql:
            return []
        found: list[str] = []
        for pattern in SENSITIVE_PATTERNS:
            match = pattern.search(sql)
            if match is not None:
                found.append(match.group(0).lower())
        return found

    def _anonymize_tokens(self, sql: str) -> str:
        parts: list[str] = []
        for statement in sqlparse.parse(sql):
            for token in statement.flatten():
                if any(token.ttype in ttype for ttype in _LITERAL_TYPES):
                    if token.ttype in T.String.Single and parts and parts[-1] in _STRING_PREFIXES:
                        # x'..', b'..' and N'..' lex as a name followed by a string
                        parts.pop()
                    parts.append(PLACEHOLDER)
                elif token.ttype in T.Error and token.value in ("'", '"'):
                    # Unterminated literal: the rest of the text is data
                    raise ValueError("unterminated string literal")
                else:
                    parts.append(token.value)
        return "".join(parts)


def _replace_literal(match: re.Match[str]) -> str:
    if match.lastgroup in _KEEP_GROUPS:
        return match.group(0)
    return PLACEHOLDER
