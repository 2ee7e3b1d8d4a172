"""Audit logger — persisted trail of queue, worker and task events.

Every entry is also echoed to the Python logger. Persistence is best effort:
a failed write is reported on the console and swallowed, so auditing never
fails the operation being audited.
"""

import logging
import traceback
from datetime import datetime, timedelta, timezone
from typing import Any

from app.application.interfaces import AuditLogRepository
from app.domain.entities import (
    AuditLogEntry,
    AuditLogFilters,
    AuditLogStatistics,
    EmbeddingTask,
    LogCategory,
    LogLevel,
)

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 90

_PYTHON_LEVELS = {
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARN: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}


class AuditLogger:
    """Records structured pipeline events.

    Usage:
        audit = AuditLogger(audit_repository)
        await audit.log_task_event(task, "completed", duration_ms=412)
        await audit.log_worker_event("started", metadata={"interval_ms": 5000})
    """

    def __init__(
        self,
        repository: AuditLogRepository,
        *,
        retention_days: int = DEFAULT_RETENTION_DAYS,
    ):
        self._repo = repository
        self._retention_days = retention_days

    async def log(
        self,
        level: LogLevel,
        category: LogCategory,
        message: str,
        *,
        task_id: str | None = None,
        article_id: int | None = None,
        operation_id: str | None = None,
        metadata: dict[str, Any] | None = None,
        duration_ms: int | None = None,
        error: BaseException | str | None = None,
    ) -> None:
        """Echo the event to the console and persist it, never raising."""
        entry = AuditLogEntry(
            level=level,
            category=category,
            message=message,
            task_id=task_id,
            article_id=article_id,
            operation_id=operation_id,
            metadata=metadata or {},
            duration_ms=duration_ms,
        )
        if isinstance(error, BaseException):
            entry.error = f"{type(error).__name__}: {error}"
            entry.stack_trace = "".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            )
        elif error:
            entry.error = error

        suffix = f" — {entry.error}" if entry.error else ""
        logger.log(_PYTHON_LEVELS[level], "[%s] %s%s", category.value, message, suffix)

        try:
            await self._repo.create(entry)
        except Exception as exc:
            logger.warning("Failed to persist audit log entry: %s", exc)

    async def log_task_event(
        self,
        task: EmbeddingTask,
        event: str,
        *,
        level: LogLevel = LogLevel.INFO,
        duration_ms: int | None = None,
        error: BaseException | str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        details = {
            "operation": task.operation.value,
            "priority": task.priority.value,
            "attempts": task.attempts,
            "max_attempts": task.max_attempts,
            **(metadata or {}),
        }
        await self.log(
            level,
            LogCategory.TASK_LIFECYCLE,
            f"Task {event}: {task.operation.value} '{task.slug}'",
            task_id=task.id,
            article_id=task.article_id,
            metadata=details,
            duration_ms=duration_ms,
            error=error,
        )

    async def log_worker_event(
        self,
        event: str,
        *,
        level: LogLevel = LogLevel.INFO,
        metadata: dict[str, Any] | None = None,
        error: BaseException | str | None = None,
    ) -> None:
        await self.log(
            level,
            LogCategory.WORKER_STATUS,
            f"Worker {event}",
            metadata=metadata,
            error=error,
        )

    async def log_queue_operation(
        self,
        operation: str,
        *,
        count: int | None = None,
        task_id: str | None = None,
        article_id: int | None = None,
        level: LogLevel = LogLevel.INFO,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        details = dict(metadata or {})
        if count is not None:
            details["count"] = count
        message = f"Queue {operation}" if count is None else f"Queue {operation}: {count} task(s)"
        await self.log(
            level,
            LogCategory.QUEUE_OPERATIONS,
            message,
            task_id=task_id,
            article_id=article_id,
            metadata=details,
        )

    async def log_bulk_operation(
        self,
        operation_id: str,
        message: str,
        *,
        level: LogLevel = LogLevel.INFO,
        duration_ms: int | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        await self.log(
            level,
            LogCategory.BULK_OPERATIONS,
            message,
            operation_id=operation_id,
            duration_ms=duration_ms,
            metadata=metadata,
        )

    async def log_performance_metric(
        self,
        name: str,
        value: float,
        unit: str,
        *,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        await self.log(
            LogLevel.DEBUG,
            LogCategory.PERFORMANCE,
            f"{name}: {value:.2f} {unit}",
            metadata={"metric": name, "value": value, "unit": unit, **(metadata or {})},
        )

    async def log_error(
        self,
        message: str,
        error: BaseException | str,
        *,
        task_id: str | None = None,
        article_id: int | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Convenience method for failures outside a task's lifecycle."""
        await self.log(
            LogLevel.ERROR,
            LogCategory.ERROR_HANDLING,
            message,
            task_id=task_id,
            article_id=article_id,
            metadata=metadata,
            error=error,
        )

    async def query_logs(self, filters: AuditLogFilters | None = None) -> list[AuditLogEntry]:
        return await self._repo.query(filters or AuditLogFilters())

    async def get_log_statistics(self) -> AuditLogStatistics:
        """Entry counts by level and category, plus errors in the last 24 hours."""
        since = datetime.now(timezone.utc) - timedelta(hours=24)
        return await self._repo.get_statistics(errors_since=since)

    async def cleanup_old_logs(self, retention_days: int | None = None) -> int:
        days = retention_days if retention_days is not None else self._retention_days
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        deleted = await self._repo.delete_before(cutoff)
        logger.info("Removed %d audit log entries older than %d days", deleted, days)
        return deleted
