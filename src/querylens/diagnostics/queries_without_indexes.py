"""
Detect statements that run without a usable index.

Reads performance_schema statement digests and reports the ones that
either used no index, used a poor index, or examine far more rows than
they return. Each digest is rated and gets regex-based index hints.

Severity, with ``min_avg`` and ``max_eff`` from Config:

    critical   avg rows examined > 10 * min_avg, or efficiency < min(1, max_eff / 10)
    warning    avg rows examined > min_avg, or efficiency < max_eff
    info       otherwise
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict

from querylens.analyzer.models import Severity
from querylens.config import Config
from querylens.diagnostics.adapter import (
    DatabaseAdapter,
    as_int,
    column,
    rows_of,
    timestamp,
    validate_identifier,
)
from querylens.exceptions import (
    PerformanceSchemaConfigurationError,
    PerformanceSchemaDisabledError,
)

logger = logging.getLogger(__name__)

DIGEST_LIMIT = 100
GENERIC_SUGGESTION = "Run EXPLAIN to identify which columns need indexing"

_WHERE = re.compile(r"\bWHERE\s+(.+?)(?:GROUP BY|ORDER BY|LIMIT|$)", re.IGNORECASE)
_WHERE_COLUMN = re.compile(r"`?(\w+)`?\s*[=<>]")
_ORDER_BY = re.compile(r"\bORDER BY\s+(.+?)(?:LIMIT|$)", re.IGNORECASE)
_DIRECTION = re.compile(r"\s+(ASC|DESC)$", re.IGNORECASE)
_JOIN_ON = re.compile(
    r"\bON\s+`?\w+`?\.`?(\w+)`?\s*=\s*`?\w+`?\.`?(\w+)`?",
    re.IGNORECASE,
)

CHECK_ENABLED_SQL = "SHOW VARIABLES LIKE 'performance_schema'"

CHECK_INSTRUMENTS_SQL = """
    SELECT COUNT(*) AS disabled_count
    FROM performance_schema.setup_instruments
    WHERE NAME LIKE 'statement/%' AND (ENABLED = 'NO' OR TIMED = 'NO')
"""

CHECK_CONSUMERS_SQL = """
    SELECT COUNT(*) AS disabled_count
    FROM performance_schema.setup_consumers
    WHERE NAME LIKE '%statements%' AND ENABLED = 'NO'
"""

ENABLE_INSTRUMENTS_SQL = """
    UPDATE performance_schema.setup_instruments
    SET ENABLED = 'YES', TIMED = 'YES'
    WHERE NAME LIKE 'statement/%'
"""

ENABLE_CONSUMERS_SQL = """
    UPDATE performance_schema.setup_consumers
    SET ENABLED = 'YES'
    WHERE NAME LIKE '%statements%'
"""

INDEX_USAGE_SQL = """
    SELECT
        t.TABLE_SCHEMA AS schema_name,
        t.TABLE_NAME AS table_name,
        t.INDEX_NAME AS index_name,
        t.COLUMN_NAME AS column_name,
        t.SEQ_IN_INDEX AS seq_in_index,
        t.NON_UNIQUE AS non_unique,
        s.rows_examined
    FROM information_schema.STATISTICS t
    LEFT JOIN (
        SELECT
            object_schema,
            object_name,
            index_name,
            SUM(count_read) + SUM(count_write) + SUM(count_fetch) AS rows_examined
        FROM performance_schema.table_io_waits_summary_by_index_usage
        WHERE object_schema = ?
        GROUP BY object_schema, object_name, index_name
    ) s ON t.TABLE_SCHEMA = s.object_schema
        AND t.TABLE_NAME = s.object_name
        AND t.INDEX_NAME = s.index_name
    WHERE t.TABLE_SCHEMA = ?
        AND t.INDEX_NAME != 'PRIMARY'
    ORDER BY t.TABLE_NAME, t.INDEX_NAME, t.SEQ_IN_INDEX
"""

DUPLICATE_INDEXES_SQL = """
    SELECT
        TABLE_NAME AS table_name,
        INDEX_NAME AS index_name,
        GROUP_CONCAT(COLUMN_NAME ORDER BY SEQ_IN_INDEX) AS columns,
        COUNT(*) AS column_count
    FROM information_schema.STATISTICS
    WHERE TABLE_SCHEMA = ?
        AND INDEX_NAME != 'PRIMARY'
    GROUP BY TABLE_NAME, INDEX_NAME
    HAVING columns IN (
        SELECT GROUP_CONCAT(COLUMN_NAME ORDER BY SEQ_IN_INDEX)
        FROM information_schema.STATISTICS
        WHERE TABLE_SCHEMA = ?
            AND INDEX_NAME != 'PRIMARY'
        GROUP BY TABLE_NAME, INDEX_NAME
        HAVING COUNT(*) > 1
    )
    ORDER BY TABLE_NAME, columns
"""

UNUSED_INDEXES_SQL = """
    SELECT
        s.TABLE_NAME AS table_name,
        s.INDEX_NAME AS index_name,
        GROUP_CONCAT(s.COLUMN_NAME ORDER BY s.SEQ_IN_INDEX) AS columns,
        COUNT(*) AS column_count,
        s.INDEX_TYPE AS index_type,
        s.CARDINALITY AS cardinality
    FROM information_schema.STATISTICS s
    LEFT JOIN performance_schema.table_io_waits_summary_by_index_usage i
        ON s.TABLE_SCHEMA = i.object_schema
        AND s.TABLE_NAME = i.object_name
        AND s.INDEX_NAME = i.index_name
    WHERE s.TABLE_SCHEMA = ?
        AND s.INDEX_NAME != 'PRIMARY'
        AND (i.count_read IS NULL OR i.count_read = 0)
    GROUP BY s.TABLE_NAME, s.INDEX_NAME
    HAVING COUNT(*) > 0
    ORDER BY s.TABLE_NAME, s.INDEX_NAME
"""


class QueryWithoutIndexInfo(BaseModel):
    """One statement digest that scans more than it should."""

    model_config = ConfigDict(frozen=True)

    digest: str
    digest_text: str
    schema_name: str
    count_star: int
    sum_rows_examined: int
    sum_rows_sent: int
    first_seen: datetime | None = None
    last_seen: datetime | None = None
    avg_rows_examined: float
    avg_rows_sent: float
    efficiency: float
    severity: Severity
    suggested_indexes: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "digest": self.digest,
            "digestText": self.digest_text,
            "schema": self.schema_name,
            "countStar": self.count_star,
            "sumRowsExamined": self.sum_rows_examined,
            "sumRowsSent": self.sum_rows_sent,
            "firstSeen": self.first_seen.isoformat() if self.first_seen else None,
            "lastSeen": self.last_seen.isoformat() if self.last_seen else None,
            "avgRowsExamined": self.avg_rows_examined,
            "avgRowsSent": self.avg_rows_sent,
            "efficiency": self.efficiency,
            "severity": self.severity.value,
            "suggestedIndexes": list(self.suggested_indexes),
        }


def digest_query(config: Config) -> str:
    """The digest query with the configured thresholds filled in."""
    return f"""
        SELECT
            digest,
            digest_text,
            schema_name,
            count_star,
            sum_rows_examined,
            sum_rows_sent,
            first_seen,
            last_seen,
            sum_no_index_used,
            sum_no_good_index_used
        FROM performance_schema.events_statements_summary_by_digest
        WHERE schema_name IS NOT NULL
            AND schema_name NOT IN ('performance_schema', 'information_schema', 'mysql', 'sys')
            AND digest_text NOT LIKE 'SHOW%'
            AND digest_text NOT LIKE 'SELECT @@%'
            AND (
                sum_no_index_used > 0
                OR sum_no_good_index_used > 0
                OR (sum_rows_examined / GREATEST(count_star, 1)) > {int(config.min_avg_rows_examined)}
            )
            AND count_star >= {int(config.min_executions)}
            AND ((sum_rows_sent / NULLIF(sum_rows_examined, 0)) * 100) <= {float(config.max_efficiency_percent):g}
        ORDER BY sum_rows_examined DESC
        LIMIT {DIGEST_LIMIT}
    """


def rate_digest(avg_rows_examined: float, efficiency: float, config: Config) -> Severity:
    min_avg = config.min_avg_rows_examined
    max_eff = config.max_efficiency_percent
    if avg_rows_examined > min_avg * 10 or efficiency < min(1.0, max_eff / 10):
        return Severity.CRITICAL
    if avg_rows_examined > min_avg or efficiency < max_eff:
        return Severity.WARNING
    return Severity.INFO


def suggest_indexes(digest_text: str) -> list[str]:
    """
    Index hints read off a digest's WHERE, ORDER BY and JOIN ... ON.

    Always returns at least one line; falls back to suggesting EXPLAIN.
    """
    suggestions: list[str] = []

    where = _WHERE.search(digest_text)
    if where:
        columns = list(dict.fromkeys(_WHERE_COLUMN.findall(where.group(1))))
        if columns:
            suggestions.append(f"Consider adding index on: ({', '.join(columns)})")

    order_by = _ORDER_BY.search(digest_text)
    if order_by:
        columns = [
            _DIRECTION.sub("", part.strip().replace("`", ""))
            for part in order_by.group(1).split(",")
        ]
        columns = [c for c in columns if c]
        if columns:
            suggestions.append(f"Consider adding index for ORDER BY: ({', '.join(columns)})")

    for left, right in _JOIN_ON.findall(digest_text):
        suggestions.append(f"Consider adding index for JOIN: {left}")
        suggestions.append(f"Consider adding index for JOIN: {right}")

    if not suggestions:
        suggestions.append(GENERIC_SUGGESTION)
    return list(dict.fromkeys(suggestions))


class QueriesWithoutIndexesService:
    """
    Find statements that examine many rows per row returned.

    Example:
        service = QueriesWithoutIndexesService(get_config())
        try:
            findings = await service.detect_queries_without_indexes(adapter)
        except PerformanceSchemaConfigurationError:
            if user_agrees():
                await service.apply_performance_schema_configuration(adapter)
    """

    def __init__(self, config: Config | None = None) -> None:
        self._config = config or Config()

    async def detect_queries_without_indexes(
        self,
        adapter: DatabaseAdapter,
    ) -> list[QueryWithoutIndexInfo]:
        """
        Rated digests, worst offenders (most rows examined) first.

        Raises:
            PerformanceSchemaDisabledError: performance_schema is OFF.
            PerformanceSchemaConfigurationError: Statement instruments or
                consumers are disabled.
        """
        logger.info("Detecting queries without indexes...")
        try:
            await self.ensure_performance_schema_enabled(adapter)
            rows = rows_of(await adapter.query(digest_query(self._config)))
        except Exception as e:
            logger.error("Failed to detect queries without indexes: %s", e)
            raise

        logger.info("Found %d queries without optimal indexes", len(rows))
        return [self._analyze_row(row) for row in rows]

    async def ensure_performance_schema_enabled(self, adapter: DatabaseAdapter) -> None:
        rows = rows_of(await adapter.query(CHECK_ENABLED_SQL))
        if not rows or str(column(rows[0], "Value", "")).upper() != "ON":
            raise PerformanceSchemaDisabledError()

        instruments = as_int(column(_first(await adapter.query(CHECK_INSTRUMENTS_SQL)), "disabled_count", 0))
        consumers = as_int(column(_first(await adapter.query(CHECK_CONSUMERS_SQL)), "disabled_count", 0))

        if instruments > 0 or consumers > 0:
            raise PerformanceSchemaConfigurationError(
                "Performance Schema is not fully configured",
                needs_instruments=instruments > 0,
                needs_consumers=consumers > 0,
                instrument_count=instruments,
                consumer_count=consumers,
            )

    async def apply_performance_schema_configuration(self, adapter: DatabaseAdapter) -> None:
        """
        Enable statement instruments and consumers.

        Changes server state; call only after the user agreed to it.
        """
        logger.info("Applying Performance Schema configuration...")
        await adapter.query(ENABLE_INSTRUMENTS_SQL)
        await adapter.query(ENABLE_CONSUMERS_SQL)
        logger.info("Performance Schema configuration applied successfully")

    async def get_index_usage_stats(
        self,
        adapter: DatabaseAdapter,
        schema_name: str,
    ) -> list[dict[str, Any]]:
        schema_name = validate_identifier(schema_name)
        return rows_of(await adapter.query(INDEX_USAGE_SQL, [schema_name, schema_name]))

    async def find_duplicate_indexes(
        self,
        adapter: DatabaseAdapter,
        schema_name: str,
    ) -> list[dict[str, Any]]:
        """Indexes whose column list is shared with another index."""
        schema_name = validate_identifier(schema_name)
        return rows_of(await adapter.query(DUPLICATE_INDEXES_SQL, [schema_name, schema_name]))

    async def find_unused_indexes(
        self,
        adapter: DatabaseAdapter,
        schema_name: str,
    ) -> list[dict[str, Any]]:
        """Indexes with no reads recorded by performance_schema."""
        schema_name = validate_identifier(schema_name)
        return rows_of(await adapter.query(UNUSED_INDEXES_SQL, [schema_name]))

    def _analyze_row(self, row: dict[str, Any]) -> QueryWithoutIndexInfo:
        count_star = as_int(column(row, "count_star", 0))
        rows_examined = as_int(column(row, "sum_rows_examined", 0))
        rows_sent = as_int(column(row, "sum_rows_sent", 0))

        avg_examined = rows_examined / count_star if count_star > 0 else 0.0
        avg_sent = rows_sent / count_star if count_star > 0 else 0.0
        efficiency = rows_sent / rows_examined * 100 if rows_examined > 0 else 100.0

        digest_text = str(column(row, "digest_text", ""))
        return QueryWithoutIndexInfo(
            digest=str(column(row, "digest", "")),
            digest_text=digest_text,
            schema_name=str(column(row, "schema_name", "")),
            count_star=count_star,
            sum_rows_examined=rows_examined,
            sum_rows_sent=rows_sent,
            first_seen=timestamp(column(row, "first_seen")),
            last_seen=timestamp(column(row, "last_seen")),
            avg_rows_examined=avg_examined,
            avg_rows_sent=avg_sent,
            efficiency=efficiency,
            severity=rate_digest(avg_examined, efficiency, self._config),
            suggested_indexes=tuple(suggest_indexes(digest_text)),
        )


def _first(result: Any) -> dict[str, Any]:
    rows = rows_of(result)
    return rows[0] if rows else {}
