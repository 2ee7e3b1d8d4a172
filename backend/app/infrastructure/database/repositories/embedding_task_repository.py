"""SQLAlchemy implementation of the EmbeddingTaskRepository — the durable queue."""

import logging
import uuid
from datetime import datetime

from sqlalchemy import case, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.application.interfaces.embedding_task_repository import EmbeddingTaskRepository
from app.domain.entities import (
    EmbeddingTask,
    QueueStats,
    TaskError,
    TaskOperation,
    TaskPriority,
    TaskStatus,
)
from app.infrastructure.database.base import ensure_utc
from app.infrastructure.database.errors import database_errors
from app.infrastructure.database.models.embedding_task_models import EmbeddingTaskModel

logger = logging.getLogger(__name__)

_PRIORITY_ORDER = case(
    (EmbeddingTaskModel.priority == TaskPriority.HIGH.value, TaskPriority.HIGH.rank),
    (EmbeddingTaskModel.priority == TaskPriority.NORMAL.value, TaskPriority.NORMAL.rank),
    else_=TaskPriority.LOW.rank,
)

_MAX_CLAIM_ATTEMPTS = 5
_ACTIVE_STATUSES = (TaskStatus.PENDING.value, TaskStatus.PROCESSING.value)
_GROUPABLE_COLUMNS = {
    "priority": EmbeddingTaskModel.priority,
    "operation": EmbeddingTaskModel.operation,
}


class SQLAlchemyEmbeddingTaskRepository(EmbeddingTaskRepository):
    """Concrete task queue backed by PostgreSQL (or SQLite in tests) via SQLAlchemy.

    Each public method opens its own session and transaction from the
    factory, so a dequeue's select-and-claim commits as one unit.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def create(self, task: EmbeddingTask) -> EmbeddingTask:
        if not task.id:
            task.id = str(uuid.uuid4())

        model = EmbeddingTaskModel(
            id=task.id,
            article_id=task.article_id,
            slug=task.slug,
            operation=task.operation.value,
            priority=task.priority.value,
            status=task.status.value,
            attempts=task.attempts,
            max_attempts=task.max_attempts,
            created_at=task.created_at,
            scheduled_at=task.scheduled_at,
            processed_at=task.processed_at,
            completed_at=task.completed_at,
            error_message=task.error_message,
            metadata_=dict(task.metadata),
        )
        with database_errors("Enqueue embedding task"):
            async with self._session_factory() as session, session.begin():
                session.add(model)
        return task

    async def dequeue(self, now: datetime) -> EmbeddingTask | None:
        """Claim the next eligible task, or None when nothing is due.

        A candidate claimed by another worker between the select and the
        guarded update is skipped in favour of the next one, up to
        ``_MAX_CLAIM_ATTEMPTS`` candidates per call.
        """
        candidate = (
            select(EmbeddingTaskModel.id)
            .where(EmbeddingTaskModel.status == TaskStatus.PENDING.value)
            .where(EmbeddingTaskModel.scheduled_at <= now)
            .order_by(_PRIORITY_ORDER, EmbeddingTaskModel.created_at.asc())
            .limit(1)
            # Renders FOR UPDATE SKIP LOCKED on PostgreSQL, nothing on SQLite.
            .with_for_update(skip_locked=True)
        )
        with database_errors("Dequeue embedding task"):
            async with self._session_factory() as session, session.begin():
                for _ in range(_MAX_CLAIM_ATTEMPTS):
                    task_id = (await session.execute(candidate)).scalar_one_or_none()
                    if task_id is None:
                        return None

                    claimed = await session.execute(
                        update(EmbeddingTaskModel)
                        .where(EmbeddingTaskModel.id == task_id)
                        .where(EmbeddingTaskModel.status == TaskStatus.PENDING.value)
                        .values(
                            status=TaskStatus.PROCESSING.value,
                            attempts=EmbeddingTaskModel.attempts + 1,
                            processed_at=now,
                        )
                    )
                    if claimed.rowcount == 1:
                        model = await session.get(EmbeddingTaskModel, task_id, populate_existing=True)
                        return self._to_domain(model) if model else None
                    logger.debug("Task %s claimed concurrently, trying next candidate", task_id)

                logger.warning("No task claimed after %d contended candidates", _MAX_CLAIM_ATTEMPTS)
                return None

    async def get_by_id(self, task_id: str) -> EmbeddingTask | None:
        with database_errors("Get embedding task"):
            async with self._session_factory() as session:
                model = await session.get(EmbeddingTaskModel, task_id)
                return self._to_domain(model) if model else None

    async def get_by_status(
        self, status: TaskStatus, limit: int = 50, offset: int = 0
    ) -> list[EmbeddingTask]:
        stmt = (
            select(EmbeddingTaskModel)
            .where(EmbeddingTaskModel.status == status.value)
            .order_by(EmbeddingTaskModel.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        with database_errors("Get tasks by status"):
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return [self._to_domain(m) for m in result.scalars().all()]

    async def get_for_article(self, article_id: int) -> list[EmbeddingTask]:
        stmt = (
            select(EmbeddingTaskModel)
            .where(EmbeddingTaskModel.article_id == article_id)
            .order_by(EmbeddingTaskModel.created_at.desc())
        )
        with database_errors("Get tasks for article"):
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return [self._to_domain(m) for m in result.scalars().all()]

    async def has_active_task(self, article_id: int) -> bool:
        stmt = (
            select(func.count())
            .select_from(EmbeddingTaskModel)
            .where(EmbeddingTaskModel.article_id == article_id)
            .where(EmbeddingTaskModel.status.in_(_ACTIVE_STATUSES))
        )
        with database_errors("Check active tasks"):
            async with self._session_factory() as session:
                return (await session.execute(stmt)).scalar_one() > 0

    async def update_status(
        self,
        task_id: str,
        status: TaskStatus,
        error_message: str | None,
        now: datetime,
    ) -> bool:
        values: dict = {"status": status.value, "error_message": error_message}
        if status in (TaskStatus.COMPLETED, TaskStatus.FAILED):
            values["completed_at"] = now

        with database_errors("Update task status"):
            async with self._session_factory() as session, session.begin():
                result = await session.execute(
                    update(EmbeddingTaskModel)
                    .where(EmbeddingTaskModel.id == task_id)
                    .values(**values)
                )
                return result.rowcount > 0

    async def schedule_retry(
        self, task_id: str, scheduled_at: datetime, error_message: str
    ) -> bool:
        with database_errors("Schedule task retry"):
            async with self._session_factory() as session, session.begin():
                result = await session.execute(
                    update(EmbeddingTaskModel)
                    .where(EmbeddingTaskModel.id == task_id)
                    .values(
                        status=TaskStatus.PENDING.value,
                        scheduled_at=scheduled_at,
                        processed_at=None,
                        error_message=error_message,
                    )
                )
                return result.rowcount > 0

    async def count_by_status(self) -> QueueStats:
        stmt = select(EmbeddingTaskModel.status, func.count()).group_by(EmbeddingTaskModel.status)
        with database_errors("Get queue stats"):
            async with self._session_factory() as session:
                rows = (await session.execute(stmt)).all()

        stats = QueueStats()
        for status, count in rows:
            setattr(stats, TaskStatus(status).value, int(count))
        return stats

    async def count_active_by(self, column: str) -> dict[str, int]:
        group_column = _GROUPABLE_COLUMNS.get(column)
        if group_column is None:
            raise ValueError(f"Cannot group tasks by '{column}'")

        stmt = (
            select(group_column, func.count())
            .where(EmbeddingTaskModel.status.in_(_ACTIVE_STATUSES))
            .group_by(group_column)
        )
        with database_errors(f"Count active tasks by {column}"):
            async with self._session_factory() as session:
                rows = (await session.execute(stmt)).all()
        return {value: int(count) for value, count in rows}

    async def count_in_status_since(self, status: TaskStatus, since: datetime) -> int:
        stmt = (
            select(func.count())
            .select_from(EmbeddingTaskModel)
            .where(EmbeddingTaskModel.status == status.value)
            .where(EmbeddingTaskModel.completed_at >= since)
        )
        with database_errors("Count recent tasks"):
            async with self._session_factory() as session:
                return int((await session.execute(stmt)).scalar_one())

    async def oldest_pending_created_at(self) -> datetime | None:
        stmt = select(func.min(EmbeddingTaskModel.created_at)).where(
            EmbeddingTaskModel.status == TaskStatus.PENDING.value
        )
        with database_errors("Get oldest pending task"):
            async with self._session_factory() as session:
                return ensure_utc((await session.execute(stmt)).scalar_one_or_none())

    async def average_processing_seconds(self, since: datetime) -> float | None:
        # Averaged in Python: interval arithmetic is not portable across dialects.
        stmt = (
            select(EmbeddingTaskModel.processed_at, EmbeddingTaskModel.completed_at)
            .where(EmbeddingTaskModel.status == TaskStatus.COMPLETED.value)
            .where(EmbeddingTaskModel.completed_at >= since)
            .where(EmbeddingTaskModel.processed_at.is_not(None))
        )
        with database_errors("Get average processing time"):
            async with self._session_factory() as session:
                rows = (await session.execute(stmt)).all()

        durations = [
            (ensure_utc(completed) - ensure_utc(processed)).total_seconds()
            for processed, completed in rows
        ]
        if not durations:
            return None
        return sum(durations) / len(durations)

    async def recent_errors(self, limit: int = 10) -> list[TaskError]:
        stmt = (
            select(EmbeddingTaskModel)
            .where(EmbeddingTaskModel.error_message.is_not(None))
            .where(
                EmbeddingTaskModel.status.in_(
                    (TaskStatus.FAILED.value, TaskStatus.PENDING.value)
                )
            )
            .order_by(
                func.coalesce(
                    EmbeddingTaskModel.completed_at, EmbeddingTaskModel.created_at
                ).desc()
            )
            .limit(limit)
        )
        with database_errors("Get recent task errors"):
            async with self._session_factory() as session:
                models = (await session.execute(stmt)).scalars().all()

        return [
            TaskError(
                task_id=m.id,
                slug=m.slug,
                operation=TaskOperation(m.operation),
                status=TaskStatus(m.status),
                attempts=m.attempts,
                error_message=m.error_message or "",
                occurred_at=ensure_utc(m.completed_at),
            )
            for m in models
        ]

    async def retry_failed(self, scheduled_at: datetime) -> int:
        with database_errors("Retry failed tasks"):
            async with self._session_factory() as session, session.begin():
                result = await session.execute(
                    update(EmbeddingTaskModel)
                    .where(EmbeddingTaskModel.status == TaskStatus.FAILED.value)
                    .where(EmbeddingTaskModel.attempts < EmbeddingTaskModel.max_attempts)
                    .values(
                        status=TaskStatus.PENDING.value,
                        scheduled_at=scheduled_at,
                        completed_at=None,
                        error_message=None,
                    )
                )
                return result.rowcount

    async def delete_completed_before(self, cutoff: datetime) -> int:
        with database_errors("Clear completed tasks"):
            async with self._session_factory() as session, session.begin():
                result = await session.execute(
                    delete(EmbeddingTaskModel)
                    .where(EmbeddingTaskModel.status == TaskStatus.COMPLETED.value)
                    .where(EmbeddingTaskModel.completed_at < cutoff)
                )
                return result.rowcount

    async def delete_failed(self) -> int:
        with database_errors("Clear failed tasks"):
            async with self._session_factory() as session, session.begin():
                result = await session.execute(
                    delete(EmbeddingTaskModel).where(
                        EmbeddingTaskModel.status == TaskStatus.FAILED.value
                    )
                )
                return result.rowcount

    async def delete(self, task_id: str) -> bool:
        with database_errors("Delete task"):
            async with self._session_factory() as session, session.begin():
                result = await session.execute(
                    delete(EmbeddingTaskModel).where(EmbeddingTaskModel.id == task_id)
                )
                return result.rowcount > 0

    async def reset_stuck(self, started_before: datetime, error_message: str) -> int:
        with database_errors("Reset stuck tasks"):
            async with self._session_factory() as session, session.begin():
                result = await session.execute(
                    update(EmbeddingTaskModel)
                    .where(EmbeddingTaskModel.status == TaskStatus.PROCESSING.value)
                    .where(EmbeddingTaskModel.processed_at < started_before)
                    .values(
                        status=TaskStatus.PENDING.value,
                        processed_at=None,
                        error_message=error_message,
                    )
                )
                return result.rowcount

    # ── Mapping ──────────────────────────────────────────────────────

    @staticmethod
    def _to_domain(model: EmbeddingTaskModel) -> EmbeddingTask:
        return EmbeddingTask(
            id=model.id,
            article_id=model.article_id,
            slug=model.slug,
            operation=TaskOperation(model.operation),
            priority=TaskPriority(model.priority),
            status=TaskStatus(model.status),
            attempts=model.attempts,
            max_attempts=model.max_attempts,
            created_at=ensure_utc(model.created_at),
            scheduled_at=ensure_utc(model.scheduled_at),
            processed_at=ensure_utc(model.processed_at),
            completed_at=ensure_utc(model.completed_at),
            error_message=model.error_message,
            metadata=dict(model.metadata_ or {}),
        )
