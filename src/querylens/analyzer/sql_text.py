"""
Internal sqlparse-based statement splitter.

Turns arbitrary SQL text into per-statement views the heuristic
analyzers can run regular expressions over safely:

- ``code``: the statement with comments removed, literals intact
- ``masked``: like ``code`` but every string literal replaced by ``''``
  so keywords inside strings never match a pattern

sqlparse is a tokenizer, not a validating parser, so it accepts anything.
If it raises anyway (pathological nesting), a regex scan produces the
same views for the whole text as one statement.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

import sqlparse
from sqlparse import tokens as T

logger = logging.getLogger(__name__)

_QUOTE_CHARS = ("'", '"', "`")

# Fallback scanner: strings, comments, everything else
_FALLBACK_TOKEN = re.compile(
    r"""
    (?P<string>'(?:[^'\\]|\\.|'')*'|"(?:[^"\\]|\\.|"")*")
    |(?P<comment>--[^\n]*|\#[^\n]*|/\*.*?(?:\*/|\Z))
    |(?P<other>[^'"\-#/]+|.)
    """,
    re.VERBOSE | re.DOTALL,
)

_LEADING_WORD = re.compile(r"[A-Za-z_]+")


@dataclass(frozen=True)
class StatementText:
    """
    One SQL statement in analyzable form.

    Attributes:
        raw: Original statement text (comments included).
        code: Comments removed, whitespace trimmed, literals intact.
        masked: Same as code with string literals replaced by ''.
        unterminated_string: A quote was opened but never closed.
    """

    raw: str
    code: str
    masked: str
    unterminated_string: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.code.strip(" \t\r\n;")

    @property
    def leading_keyword(self) -> str:
        """First word of the statement, upper-cased ('' if none)."""
        match = _LEADING_WORD.search(self.code.lstrip(" \t\r\n("))
        if match is None or match.start() != 0:
            return ""
        return match.group(0).upper()

    @property
    def paren_balance(self) -> int:
        """
        Net parenthesis depth after scanning masked text.

        Returns -1 as soon as a closing paren has no opener.
        """
        depth = 0
        for ch in self.masked:
            if ch == "(":
                depth += 1
            elif ch == ")":
                depth -= 1
                if depth < 0:
                    return -1
        return depth


def split_statements(sql: str) -> list[StatementText]:
    """
    Split SQL text into non-empty statements.

    Never raises. Comment-only and whitespace-only statements are dropped.
    """
    if not sql or not sql.strip():
        return []

    try:
        statements = [_from_sqlparse(stmt) for stmt in sqlparse.parse(sql)]
    except Exception as e:
        logger.debug("sqlparse failed (%s), using regex statement scan", e)
        statements = [_from_regex(sql)]

    return [s for s in statements if not s.is_empty]


def strip_comments(sql: str) -> str:
    """Remove comments from the whole text, keeping literals intact."""
    return "\n".join(s.code for s in split_statements(sql))


def _from_sqlparse(stmt: sqlparse.sql.Statement) -> StatementText:
    code_parts: list[str] = []
    masked_parts: list[str] = []
    unterminated = False

    for token in stmt.flatten():
        ttype = token.ttype
        if ttype in T.Comment:
            # Keep token boundaries: "a/*x*/b" must not become "ab"
            code_parts.append(" ")
            masked_parts.append(" ")
        elif ttype in T.String:
            code_parts.append(token.value)
            masked_parts.append("''")
        elif ttype in T.Error and token.value in _QUOTE_CHARS:
            unterminated = True
            code_parts.append(token.value)
            masked_parts.append(" ")
        else:
            code_parts.append(token.value)
            masked_parts.append(token.value)

    return StatementText(
        raw=str(stmt),
        code="".join(code_parts).strip(),
        masked="".join(masked_parts).strip(),
        unterminated_string=unterminated,
    )


def _from_regex(sql: str) -> StatementText:
    code_parts: list[str] = []
    masked_parts: list[str] = []
    unterminated = False

    for match in _FALLBACK_TOKEN.finditer(sql):
        kind = match.lastgroup
        value = match.group(0)
        if kind == "comment":
            code_parts.append(" ")
            masked_parts.append(" ")
        elif kind == "string":
            code_parts.append(value)
            masked_parts.append("''")
        else:
            if value in _QUOTE_CHARS[:2]:
                unterminated = True
            code_parts.append(value)
            masked_parts.append(value)

    return StatementText(
        raw=sql,
        code="".join(code_parts).strip(),
        masked="".join(masked_parts).strip(),
        unterminated_string=unterminated,
    )


def top_level_index(text: str, pattern: re.Pattern[str], start: int = 0) -> int:
    """
    Index of the first match of ``pattern`` at parenthesis depth 0.

    Returns -1 when there is no top-level match. ``text`` should be
    masked so that parentheses inside strings are not counted.
    """
    for match in pattern.finditer(text, start):
        if _depth_at(text, match.start()) == 0:
            return match.start()
    return -1


def _depth_at(text: str, index: int) -> int:
    depth = 0
    for ch in text[:index]:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth = max(depth - 1, 0)
    return depth
