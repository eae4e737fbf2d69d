"""
Rule-based InnoDB health checks.

Works on an already-parsed InnoDBStatus snapshot (the host parses
SHOW ENGINE INNODB STATUS). Status models accept snake_case or the
camelCase keys the host tooling emits.

    metric                         warning      critical
    transaction_history_length     > 100000     > 1000000
    buffer_pool_hit_rate           < 95         < 90
    checkpoint_age (% of log)      > 70         > 85
    pending_io_operations          > 100
    semaphore_wait_time (s)                     > 240
    purge_lag                      > 1000000
    dirty_page_ratio (%)           > 75
    active_transactions            > 1000
    mutex_contention (OS waits)    > 1000000
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from querylens.analyzer.models import Severity

HEALTHY = "healthy"


class _Section(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class TransactionSection(_Section):
    history_list_length: int = 0
    purge_lag: int = 0
    active_transactions: int = 0


class BufferPoolSection(_Section):
    hit_rate: float = 100.0
    dirty_pages: int = 0
    database_pages: int = 0


class IOSection(_Section):
    pending_reads: int = 0
    pending_writes: int = 0


class LogSection(_Section):
    checkpoint_age_percent: float = 0.0


class SemaphoreWait(_Section):
    wait_time: float
    thread_id: str | None = None
    location: str | None = None


class SemaphoreSection(_Section):
    long_semaphore_waits: tuple[SemaphoreWait, ...] = ()
    mutex_os_waits: int = 0
    rw_lock_os_waits: int = 0


class InnoDBStatus(_Section):
    """The parts of an InnoDB status snapshot the health rules read."""

    version: str = ""
    uptime: int = 0
    transactions: TransactionSection = TransactionSection()
    buffer_pool: BufferPoolSection = BufferPoolSection()
    io: IOSection = IOSection()
    log: LogSection = LogSection()
    semaphores: SemaphoreSection = SemaphoreSection()


class HealthAlert(BaseModel):
    """One threshold breach with a remediation hint."""

    model_config = ConfigDict(frozen=True)

    severity: Severity
    metric: str
    message: str
    threshold: float | None = None
    current_value: float | None = None
    recommendation: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "severity": self.severity.value,
            "metric": self.metric,
            "message": self.message,
        }
        if self.threshold is not None:
            data["threshold"] = self.threshold
        if self.current_value is not None:
            data["currentValue"] = self.current_value
        if self.recommendation is not None:
            data["recommendation"] = self.recommendation
        return data


class InnoDBHealthChecker:
    """
    Check an InnoDB status snapshot against fixed thresholds.

    Example:
        checker = InnoDBHealthChecker()
        alerts = checker.check_health(status)
        print(checker.highest_severity(alerts), checker.alert_summary(alerts))
    """

    def check_health(self, status: InnoDBStatus | dict[str, Any]) -> list[HealthAlert]:
        """Alerts for every breached threshold, in rule order."""
        if not isinstance(status, InnoDBStatus):
            status = InnoDBStatus.model_validate(status)

        alerts: list[HealthAlert] = []
        trx = status.transactions
        pool = status.buffer_pool
        sem = status.semaphores

        # Transaction history list
        if trx.history_list_length > 1_000_000:
            alerts.append(HealthAlert(
                severity=Severity.CRITICAL,
                metric="transaction_history_length",
                message="Transaction history list is critically high - purge operations are blocked",
                threshold=1_000_000,
                current_value=trx.history_list_length,
                recommendation=(
                    "Identify and commit/rollback long-running transactions immediately. "
                    "Check for idle transactions in `SHOW PROCESSLIST`. Consider increasing "
                    "innodb_purge_threads if purge is the bottleneck."
                ),
            ))
        elif trx.history_list_length > 100_000:
            alerts.append(HealthAlert(
                severity=Severity.WARNING,
                metric="transaction_history_length",
                message="Transaction history list is elevated",
                threshold=100_000,
                current_value=trx.history_list_length,
                recommendation=(
                    "Monitor for long-running transactions. Review application transaction "
                    "patterns and ensure proper commit/rollback handling."
                ),
            ))

        # Buffer pool hit rate
        if pool.hit_rate < 90:
            alerts.append(HealthAlert(
                severity=Severity.CRITICAL,
                metric="buffer_pool_hit_rate",
                message="Buffer pool hit rate is critically low - causing excessive disk I/O",
                threshold=95,
                current_value=pool.hit_rate,
                recommendation=(
                    "Increase innodb_buffer_pool_size to 70-80% of available RAM. Current "
                    "buffer pool may be severely undersized for workload."
                ),
            ))
        elif pool.hit_rate < 95:
            alerts.append(HealthAlert(
                severity=Severity.WARNING,
                metric="buffer_pool_hit_rate",
                message="Buffer pool hit rate is below optimal threshold",
                threshold=95,
                current_value=pool.hit_rate,
                recommendation=(
                    "Consider increasing innodb_buffer_pool_size to reduce disk I/O. "
                    "Monitor trend over time to determine if increase is warranted."
                ),
            ))

        # Checkpoint age
        checkpoint = status.log.checkpoint_age_percent
        if checkpoint > 85:
            alerts.append(HealthAlert(
                severity=Severity.CRITICAL,
                metric="checkpoint_age",
                message="Checkpoint age is critically high - risk of write stalls imminent",
                threshold=85,
                current_value=checkpoint,
                recommendation=(
                    "URGENT: Increase innodb_log_file_size (requires restart) or tune "
                    "innodb_io_capacity and innodb_io_capacity_max for faster flushing. "
                    "Reduce write workload if possible."
                ),
            ))
        elif checkpoint > 70:
            alerts.append(HealthAlert(
                severity=Severity.WARNING,
                metric="checkpoint_age",
                message="Checkpoint age is elevated",
                threshold=70,
                current_value=checkpoint,
                recommendation=(
                    "Monitor checkpoint age trend. May need to increase innodb_log_file_size "
                    "if consistently high. Plan for maintenance window as change requires "
                    "server restart."
                ),
            ))

        # Pending I/O
        pending_io = status.io.pending_reads + status.io.pending_writes
        if pending_io > 100:
            alerts.append(HealthAlert(
                severity=Severity.WARNING,
                metric="pending_io_operations",
                message="High number of pending I/O operations detected",
                threshold=100,
                current_value=pending_io,
                recommendation=(
                    "Check disk I/O performance and system load. May need faster storage "
                    "(SSD/NVMe) or increased innodb_io_capacity to match disk capabilities."
                ),
            ))

        # Semaphore waits
        if sem.long_semaphore_waits:
            max_wait = max(w.wait_time for w in sem.long_semaphore_waits)
            if max_wait > 240:
                alerts.append(HealthAlert(
                    severity=Severity.CRITICAL,
                    metric="semaphore_wait_time",
                    message="Long semaphore wait detected - severe internal contention",
                    threshold=240,
                    current_value=max_wait,
                    recommendation=(
                        "URGENT: Check for disk I/O bottlenecks or buffer pool contention. "
                        "Consider: disabling innodb_adaptive_hash_index, increasing "
                        "innodb_buffer_pool_instances, or upgrading storage."
                    ),
                ))

        # Purge lag
        if trx.purge_lag > 1_000_000:
            alerts.append(HealthAlert(
                severity=Severity.WARNING,
                metric="purge_lag",
                message="Purge lag is high - purge threads cannot keep pace with write rate",
                threshold=1_000_000,
                current_value=trx.purge_lag,
                recommendation=(
                    "Increase innodb_purge_threads (default is 4, can increase to 32). "
                    "Verify no extremely long-running transactions blocking purge. Review "
                    "innodb_max_purge_lag setting."
                ),
            ))

        # Dirty pages
        if pool.database_pages > 0:
            dirty_ratio = pool.dirty_pages / pool.database_pages * 100
            if dirty_ratio > 75:
                alerts.append(HealthAlert(
                    severity=Severity.WARNING,
                    metric="dirty_page_ratio",
                    message="High dirty page ratio in buffer pool",
                    threshold=75,
                    current_value=dirty_ratio,
                    recommendation=(
                        "Increase innodb_io_capacity and innodb_io_capacity_max to speed up "
                        "flushing. Check innodb_max_dirty_pages_pct setting (default 90%)."
                    ),
                ))

        # Active transactions
        if trx.active_transactions > 1000:
            alerts.append(HealthAlert(
                severity=Severity.WARNING,
                metric="active_transactions",
                message="High number of active transactions",
                threshold=1000,
                current_value=trx.active_transactions,
                recommendation=(
                    "Review application transaction patterns. High concurrency may indicate "
                    "need for connection pooling optimization or application-level batching."
                ),
            ))

        # Mutex / rw-lock contention
        if sem.mutex_os_waits > 1_000_000 or sem.rw_lock_os_waits > 1_000_000:
            alerts.append(HealthAlert(
                severity=Severity.WARNING,
                metric="mutex_contention",
                message="High mutex/rw-lock contention detected",
                current_value=max(sem.mutex_os_waits, sem.rw_lock_os_waits),
                recommendation=(
                    "High internal contention. Consider: increasing "
                    "innodb_buffer_pool_instances, disabling innodb_adaptive_hash_index, "
                    "or reviewing query patterns for hotspot tables."
                ),
            ))

        return alerts

    @staticmethod
    def alert_summary(alerts: list[HealthAlert]) -> dict[str, int]:
        """Alert counts per severity."""
        return {
            severity.value: sum(1 for a in alerts if a.severity is severity)
            for severity in (Severity.CRITICAL, Severity.WARNING, Severity.INFO)
        }

    @staticmethod
    def highest_severity(alerts: list[HealthAlert]) -> str:
        """'critical', 'warning', 'info', or 'healthy' when there are no alerts."""
        for severity in (Severity.CRITICAL, Severity.WARNING, Severity.INFO):
            if any(a.severity is severity for a in alerts):
                return severity.value
        return HEALTHY
