"""
Server-side diagnostics over performance_schema and InnoDB status.

These services take a host-provided DatabaseAdapter; QueryLens never
connects to a database on its own.
"""

from querylens.diagnostics.adapter import DatabaseAdapter, rows_of, validate_identifier
from querylens.diagnostics.innodb_health import HealthAlert, InnoDBHealthChecker, InnoDBStatus
from querylens.diagnostics.queries_without_indexes import (
    QueriesWithoutIndexesService,
    QueryWithoutIndexInfo,
    suggest_indexes,
)
from querylens.diagnostics.slow_queries import (
    SlowQueriesService,
    SlowQueryDigestInfo,
    SlowQuerySortBy,
)

__all__ = [
    "DatabaseAdapter",
    "HealthAlert",
    "InnoDBHealthChecker",
    "InnoDBStatus",
    "QueriesWithoutIndexesService",
    "QueryWithoutIndexInfo",
    "SlowQueriesService",
    "SlowQueryDigestInfo",
    "SlowQuerySortBy",
    "rows_of",
    "suggest_indexes",
    "validate_identifier",
]
