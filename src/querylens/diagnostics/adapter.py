"""
Database adapter seam for diagnostics.

QueryLens never opens connections itself. Hosts pass in anything with an
async ``query`` method; drivers disagree on the result shape, so
``rows_of`` accepts both a plain row list and a ``{"rows": [...]}``
envelope.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any, Protocol

from querylens.exceptions import InvalidIdentifierError

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class DatabaseAdapter(Protocol):
    """Protocol for async database connections used by diagnostics."""

    async def query(self, sql: str, params: Sequence[Any] | None = None) -> Any: ...


def rows_of(result: Any) -> list[dict[str, Any]]:
    """Rows from a driver result, whatever its envelope."""
    if result is None:
        return []
    if isinstance(result, Mapping):
        return list(result.get("rows") or [])
    if isinstance(result, (list, tuple)):
        return list(result)
    return list(getattr(result, "rows", None) or [])


def column(row: Mapping[str, Any], name: str, default: Any = None) -> Any:
    """Column value by lower- or upper-case name (drivers differ)."""
    for key in (name, name.upper()):
        value = row.get(key)
        if value is not None and value != "":
            return value
    return default


def as_int(value: Any) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def as_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def validate_identifier(name: str) -> str:
    """
    Reject names that are unsafe to use as a schema or table identifier.

    Raises:
        InvalidIdentifierError: If ``name`` is not ``[A-Za-z_][A-Za-z0-9_]*``.
    """
    if not isinstance(name, str) or not _IDENTIFIER.match(name):
        raise InvalidIdentifierError(str(name))
    return name


def timestamp(value: Any) -> datetime | None:
    """Parse a driver timestamp (datetime or ISO string); None if absent."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return None
    return None
