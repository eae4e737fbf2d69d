"""
Slow query ranking from performance_schema statement digests.

Timer columns are in picoseconds. The impact score blends total time
(40%), frequency (30%), average time (20%) and rows examined per
thousand (10%) so that a cheap query run a million times can outrank
an expensive one run twice.
"""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict

from querylens.diagnostics.adapter import (
    DatabaseAdapter,
    as_float,
    as_int,
    column,
    rows_of,
    timestamp,
)

logger = logging.getLogger(__name__)

PICOSECONDS_PER_MS = 1_000_000_000


class SlowQuerySortBy(str, Enum):
    IMPACT = "impact"
    TOTAL_TIME = "total_time"
    AVG_TIME = "avg_time"
    COUNT = "count"
    ROWS_EXAMINED = "rows_examined"


class SlowQueryDigestInfo(BaseModel):
    """Timing totals for one statement digest."""

    model_config = ConfigDict(frozen=True)

    digest: str
    digest_text: str
    schema_name: str
    count: int
    avg_ms: float
    total_ms: float
    rows_examined: int
    rows_sent: int
    first_seen: datetime | None = None
    last_seen: datetime | None = None
    impact_score: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "digest": self.digest,
            "digestText": self.digest_text,
            "schema": self.schema_name,
            "count": self.count,
            "avgMs": self.avg_ms,
            "totalMs": self.total_ms,
            "rowsExamined": self.rows_examined,
            "rowsSent": self.rows_sent,
            "firstSeen": self.first_seen.isoformat() if self.first_seen else None,
            "lastSeen": self.last_seen.isoformat() if self.last_seen else None,
            "impactScore": self.impact_score,
        }


_SORT_KEYS = {
    SlowQuerySortBy.IMPACT: lambda q: q.impact_score,
    SlowQuerySortBy.TOTAL_TIME: lambda q: q.total_ms,
    SlowQuerySortBy.AVG_TIME: lambda q: q.avg_ms,
    SlowQuerySortBy.COUNT: lambda q: q.count,
    SlowQuerySortBy.ROWS_EXAMINED: lambda q: q.rows_examined,
}


def ps_to_ms(picoseconds: Any) -> float:
    """Picoseconds to milliseconds, rounded to 2 decimals."""
    return round(as_float(picoseconds) / PICOSECONDS_PER_MS, 2)


def impact_score(total_ms: float, count: int, avg_ms: float, rows_examined: int) -> int:
    return round(
        total_ms * 0.4
        + count * 0.3
        + avg_ms * 0.2
        + (rows_examined / 1000) * 0.1
    )


def sort_key(sort_by: str | SlowQuerySortBy):
    """Key function for a sort name; unknown names sort by impact."""
    try:
        return _SORT_KEYS[SlowQuerySortBy(sort_by)]
    except ValueError:
        return _SORT_KEYS[SlowQuerySortBy.IMPACT]


class SlowQueriesService:
    """Rank digests by their cost to the server."""

    async def detect_slow_queries(
        self,
        adapter: DatabaseAdapter,
        limit: int = 100,
        sort_by: str | SlowQuerySortBy = SlowQuerySortBy.IMPACT,
    ) -> list[SlowQueryDigestInfo]:
        """
        Top ``limit`` digests, highest first by ``sort_by``.

        Fetches twice ``limit`` rows so the in-memory sort has room to
        reorder what the server returned.
        """
        limit = max(int(limit), 0)
        sql = f"""
            SELECT
                DIGEST AS digest,
                DIGEST_TEXT AS digest_text,
                SCHEMA_NAME AS schema_name,
                COUNT_STAR AS count_star,
                SUM_TIMER_WAIT AS sum_timer_wait,
                AVG_TIMER_WAIT AS avg_timer_wait,
                SUM_ROWS_EXAMINED AS sum_rows_examined,
                SUM_ROWS_SENT AS sum_rows_sent,
                FIRST_SEEN AS first_seen,
                LAST_SEEN AS last_seen
            FROM performance_schema.events_statements_summary_by_digest
            WHERE SCHEMA_NAME IS NOT NULL
            LIMIT {limit * 2}
        """

        logger.info("Detecting slow queries (sort by: %s)...", getattr(sort_by, "value", sort_by))
        rows = rows_of(await adapter.query(sql))
        queries = [self._digest(row) for row in rows]
        queries.sort(key=sort_key(sort_by), reverse=True)
        return queries[:limit]

    @staticmethod
    def _digest(row: dict[str, Any]) -> SlowQueryDigestInfo:
        avg_ms = ps_to_ms(column(row, "avg_timer_wait", 0))
        total_ms = ps_to_ms(column(row, "sum_timer_wait", 0))
        count = as_int(column(row, "count_star", 0))
        rows_examined = as_int(column(row, "sum_rows_examined", 0))
        return SlowQueryDigestInfo(
            digest=str(column(row, "digest", "")),
            digest_text=str(column(row, "digest_text", "")),
            schema_name=str(column(row, "schema_name", "")),
            count=count,
            avg_ms=avg_ms,
            total_ms=total_ms,
            rows_examined=rows_examined,
            rows_sent=as_int(column(row, "sum_rows_sent", 0)),
            first_seen=timestamp(column(row, "first_seen")),
            last_seen=timestamp(column(row, "last_seen")),
            impact_score=impact_score(total_ms, count, avg_ms, rows_examined),
        )
