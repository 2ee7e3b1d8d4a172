"""Embedding queue service — the durable, prioritized work list of embedding operations.

State machine of a task::

    pending ──dequeue──▶ processing ──▶ completed
       ▲                     │
       ├──── retry ◀─────────┤
       └──── stuck sweep ◀───┘──▶ failed (attempts exhausted / permanent error)
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from app.application.interfaces import EmbeddingTaskRepository
from app.application.services.audit_logger import AuditLogger
from app.domain.entities import (
    DetailedQueueStats,
    EmbeddingTask,
    QueueHealth,
    QueueStats,
    RecentActivity,
    TaskOperation,
    TaskPriority,
    TaskStatus,
)
from app.domain.exceptions import ServiceError

logger = logging.getLogger(__name__)

# ── Health thresholds ───────────────────────────────────────────────
MAX_HEALTHY_PENDING = 100
MAX_HEALTHY_PROCESSING = 10
MAX_HEALTHY_FAILURES_24H = 10
MAX_PENDING_AGE = timedelta(hours=24)

RETRY_FAILED_DELAY = timedelta(minutes=1)
DEFAULT_COMPLETED_RETENTION = timedelta(days=30)
DEFAULT_STUCK_TIMEOUT_MINUTES = 30
STUCK_TASK_MESSAGE = "Task was stuck in processing state and has been reset"
RECENT_ERRORS_LIMIT = 10


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EmbeddingQueueService:
    """Enqueue, claim and administer embedding tasks.

    The service owns validation and policy (health thresholds, retention
    defaults); the repository owns atomicity.
    """

    def __init__(
        self,
        repository: EmbeddingTaskRepository,
        *,
        default_max_attempts: int = 3,
        audit: AuditLogger | None = None,
    ):
        self._repo = repository
        self._default_max_attempts = default_max_attempts
        self._audit = audit

    # ── Producing ───────────────────────────────────────────────────

    async def enqueue_task(
        self,
        article_id: int,
        slug: str,
        operation: TaskOperation | str,
        priority: TaskPriority | str = TaskPriority.NORMAL,
        *,
        max_attempts: int | None = None,
        scheduled_at: datetime | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Insert a pending task and return its ID.

        Does not deduplicate: see ``enqueue_unless_active`` for that.
        """
        task = self._build_task(
            article_id, slug, operation, priority, max_attempts, scheduled_at, metadata
        )
        created = await self._repo.create(task)
        logger.info(
            "Enqueued %s task %s for '%s' (priority=%s)",
            created.operation.value,
            created.id,
            created.slug,
            created.priority.value,
        )
        if self._audit:
            await self._audit.log_queue_operation(
                "enqueue",
                task_id=created.id,
                article_id=created.article_id,
                metadata={
                    "slug": created.slug,
                    "operation": created.operation.value,
                    "priority": created.priority.value,
                },
            )
        return created.id

    async def enqueue_unless_active(
        self,
        article_id: int,
        slug: str,
        operation: TaskOperation | str,
        priority: TaskPriority | str = TaskPriority.NORMAL,
        *,
        max_attempts: int | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> str | None:
        """Enqueue only when the article has no pending or processing task.

        Best effort: the check and the insert are separate statements, so two
        concurrent callers can still both enqueue.
        """
        if await self._repo.has_active_task(article_id):
            logger.info("Skipping enqueue for '%s': a task is already active", slug)
            return None
        return await self.enqueue_task(
            article_id,
            slug,
            operation,
            priority,
            max_attempts=max_attempts,
            metadata=metadata,
        )

    def _build_task(
        self,
        article_id: int,
        slug: str,
        operation: TaskOperation | str,
        priority: TaskPriority | str,
        max_attempts: int | None,
        scheduled_at: datetime | None,
        metadata: dict[str, Any] | None,
    ) -> EmbeddingTask:
        try:
            operation = TaskOperation(operation)
        except ValueError:
            raise ServiceError.validation(
                f"Invalid task operation: {operation!r}",
                "Operation must be one of create, update, delete.",
            ) from None
        try:
            priority = TaskPriority(priority)
        except ValueError:
            raise ServiceError.validation(
                f"Invalid task priority: {priority!r}",
                "Priority must be one of high, normal, low.",
            ) from None

        if not slug or not slug.strip():
            raise ServiceError.validation("Task slug must not be empty")
        attempts = self._default_max_attempts if max_attempts is None else max_attempts
        if attempts < 1:
            raise ServiceError.validation(f"max_attempts must be at least 1, got {attempts}")
        if scheduled_at is not None and scheduled_at.tzinfo is None:
            raise ServiceError.validation("scheduled_at must be timezone-aware")

        now = _utcnow()
        return EmbeddingTask(
            article_id=article_id,
            slug=slug,
            operation=operation,
            priority=priority,
            status=TaskStatus.PENDING,
            attempts=0,
            max_attempts=attempts,
            created_at=now,
            scheduled_at=scheduled_at or now,
            metadata=dict(metadata or {}),
        )

    # ── Consuming ───────────────────────────────────────────────────

    async def dequeue_task(self) -> EmbeddingTask | None:
        """Claim the next eligible task, or None when the queue has no due work."""
        task = await self._repo.dequeue(_utcnow())
        if task is not None:
            logger.debug(
                "Dequeued task %s (%s '%s', attempt %d/%d)",
                task.id,
                task.operation.value,
                task.slug,
                task.attempts,
                task.max_attempts,
            )
        return task

    async def update_task_status(
        self,
        task_id: str,
        status: TaskStatus | str,
        error_message: str | None = None,
    ) -> None:
        status = TaskStatus(status)
        updated = await self._repo.update_status(task_id, status, error_message, _utcnow())
        if not updated:
            raise ServiceError.not_found("EmbeddingTask", task_id)

    async def schedule_retry(
        self, task_id: str, scheduled_at: datetime, error_message: str
    ) -> None:
        """Put a processing task back to pending, eligible again at ``scheduled_at``."""
        updated = await self._repo.schedule_retry(task_id, scheduled_at, error_message)
        if not updated:
            raise ServiceError.not_found("EmbeddingTask", task_id)

    # ── Inspection ──────────────────────────────────────────────────

    async def get_task_status(self, task_id: str) -> EmbeddingTask | None:
        return await self._repo.get_by_id(task_id)

    async def get_tasks_by_status(
        self, status: TaskStatus | str, limit: int = 50, offset: int = 0
    ) -> list[EmbeddingTask]:
        return await self._repo.get_by_status(TaskStatus(status), limit=limit, offset=offset)

    async def get_tasks_for_article(self, article_id: int) -> list[EmbeddingTask]:
        return await self._repo.get_for_article(article_id)

    async def get_queue_stats(self) -> QueueStats:
        return await self._repo.count_by_status()

    async def get_average_processing_time(self, window: timedelta = timedelta(hours=24)) -> float | None:
        """Mean seconds from pickup to completion over recent completions."""
        return await self._repo.average_processing_seconds(_utcnow() - window)

    async def get_queue_health(self) -> QueueHealth:
        """Healthy iff none of the backlog, stuck-work, failure or age thresholds trip."""
        now = _utcnow()
        day_ago = now - timedelta(hours=24)

        stats = await self._repo.count_by_status()
        failed_last_24h = await self._repo.count_in_status_since(TaskStatus.FAILED, day_ago)
        oldest_pending = await self._repo.oldest_pending_created_at()
        average_processing = await self._repo.average_processing_seconds(day_ago)

        issues: list[str] = []
        if stats.pending > MAX_HEALTHY_PENDING:
            issues.append(f"High number of pending tasks: {stats.pending}")
        if stats.processing > MAX_HEALTHY_PROCESSING:
            issues.append(
                f"High number of processing tasks: {stats.processing} (possible stuck tasks)"
            )
        if failed_last_24h > MAX_HEALTHY_FAILURES_24H:
            issues.append(f"High failure rate: {failed_last_24h} failed tasks in last 24 hours")
        if oldest_pending is not None and now - oldest_pending > MAX_PENDING_AGE:
            age_hours = round((now - oldest_pending).total_seconds() / 3600)
            issues.append(f"Old pending tasks: oldest task is {age_hours} hours old")

        return QueueHealth(
            is_healthy=not issues,
            total_tasks=stats.total,
            failed_tasks_last_24h=failed_last_24h,
            oldest_pending_task=oldest_pending,
            average_processing_time=average_processing,
            issues=issues,
        )

    async def get_detailed_queue_stats(self) -> DetailedQueueStats:
        day_ago = _utcnow() - timedelta(hours=24)
        return DetailedQueueStats(
            stats=await self._repo.count_by_status(),
            tasks_by_priority=await self._repo.count_active_by("priority"),
            tasks_by_operation=await self._repo.count_active_by("operation"),
            recent_activity=RecentActivity(
                tasks_completed_last_24h=await self._repo.count_in_status_since(
                    TaskStatus.COMPLETED, day_ago
                ),
                tasks_failed_last_24h=await self._repo.count_in_status_since(
                    TaskStatus.FAILED, day_ago
                ),
                average_processing_time=await self._repo.average_processing_seconds(day_ago),
            ),
            recent_errors=await self._repo.recent_errors(RECENT_ERRORS_LIMIT),
        )

    # ── Administration ──────────────────────────────────────────────

    async def retry_failed_tasks(self) -> int:
        """Requeue failed tasks that still have attempts left, one minute from now."""
        count = await self._repo.retry_failed(_utcnow() + RETRY_FAILED_DELAY)
        logger.info("Requeued %d failed task(s)", count)
        await self._audit_count("retry_failed", count)
        return count

    async def clear_completed_tasks(self, older_than: datetime | None = None) -> int:
        cutoff = older_than or _utcnow() - DEFAULT_COMPLETED_RETENTION
        count = await self._repo.delete_completed_before(cutoff)
        logger.info("Cleared %d completed task(s) older than %s", count, cutoff.isoformat())
        await self._audit_count("clear_completed", count, {"cutoff": cutoff.isoformat()})
        return count

    async def clear_failed_tasks(self) -> int:
        count = await self._repo.delete_failed()
        logger.info("Cleared %d failed task(s)", count)
        await self._audit_count("clear_failed", count)
        return count

    async def delete_task(self, task_id: str) -> bool:
        deleted = await self._repo.delete(task_id)
        if deleted and self._audit:
            await self._audit.log_queue_operation("delete", task_id=task_id)
        return deleted

    async def cleanup_stuck_tasks(self, timeout_minutes: float = DEFAULT_STUCK_TIMEOUT_MINUTES) -> int:
        """Reset tasks stuck in processing longer than ``timeout_minutes`` to pending."""
        cutoff = _utcnow() - timedelta(minutes=timeout_minutes)
        count = await self._repo.reset_stuck(cutoff, STUCK_TASK_MESSAGE)
        if count:
            logger.warning("Reset %d stuck task(s) (timeout %s min)", count, timeout_minutes)
        await self._audit_count("cleanup_stuck", count, {"timeout_minutes": timeout_minutes})
        return count

    async def _audit_count(
        self, operation: str, count: int, metadata: dict[str, Any] | None = None
    ) -> None:
        if self._audit and count:
            await self._audit.log_queue_operation(operation, count=count, metadata=metadata)
