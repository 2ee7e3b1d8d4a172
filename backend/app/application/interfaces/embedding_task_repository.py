"""Abstract repository interface (port) for the embedding task queue."""

from abc import ABC, abstractmethod
from datetime import datetime

from app.domain.entities import EmbeddingTask, QueueStats, TaskError, TaskStatus


class EmbeddingTaskRepository(ABC):
    """Port for queue persistence — implemented in the infrastructure layer.

    Every method is its own unit of work: implementations commit before
    returning, so callers never hold a transaction across two calls.
    """

    @abstractmethod
    async def create(self, task: EmbeddingTask) -> EmbeddingTask:
        """Persist a new task and return it with the generated ID."""
        ...

    @abstractmethod
    async def dequeue(self, now: datetime) -> EmbeddingTask | None:
        """Atomically claim the next eligible pending task.

        Eligible means ``status = pending`` and ``scheduled_at <= now``.
        Candidates are ordered by priority rank, then ``created_at``. The
        claimed task is flipped to ``processing`` with ``attempts`` incremented
        and ``processed_at = now``. Rows locked by a concurrent dequeuer are
        skipped rather than waited on.
        """
        ...

    @abstractmethod
    async def get_by_id(self, task_id: str) -> EmbeddingTask | None:
        ...

    @abstractmethod
    async def get_by_status(
        self, status: TaskStatus, limit: int = 50, offset: int = 0
    ) -> list[EmbeddingTask]:
        """Tasks in ``status``, newest first."""
        ...

    @abstractmethod
    async def get_for_article(self, article_id: int) -> list[EmbeddingTask]:
        """All tasks for an article, newest first."""
        ...

    @abstractmethod
    async def has_active_task(self, article_id: int) -> bool:
        """Whether the article has a pending or processing task."""
        ...

    @abstractmethod
    async def update_status(
        self,
        task_id: str,
        status: TaskStatus,
        error_message: str | None,
        now: datetime,
    ) -> bool:
        """Set the status; ``completed``/``failed`` also stamp ``completed_at``.

        Returns False when no task has this ID.
        """
        ...

    @abstractmethod
    async def schedule_retry(
        self, task_id: str, scheduled_at: datetime, error_message: str
    ) -> bool:
        """Return a task to ``pending`` with a delayed ``scheduled_at``."""
        ...

    @abstractmethod
    async def count_by_status(self) -> QueueStats:
        ...

    @abstractmethod
    async def count_active_by(self, column: str) -> dict[str, int]:
        """Pending + processing task counts grouped by ``priority`` or ``operation``."""
        ...

    @abstractmethod
    async def count_in_status_since(self, status: TaskStatus, since: datetime) -> int:
        """Tasks that reached a terminal ``status`` at or after ``since``."""
        ...

    @abstractmethod
    async def oldest_pending_created_at(self) -> datetime | None:
        ...

    @abstractmethod
    async def average_processing_seconds(self, since: datetime) -> float | None:
        """Mean ``completed_at - processed_at`` of tasks completed since ``since``."""
        ...

    @abstractmethod
    async def recent_errors(self, limit: int = 10) -> list[TaskError]:
        """Latest failed or retrying tasks that carry an error message."""
        ...

    @abstractmethod
    async def retry_failed(self, scheduled_at: datetime) -> int:
        """Move failed tasks with attempts left back to pending. Returns count."""
        ...

    @abstractmethod
    async def delete_completed_before(self, cutoff: datetime) -> int:
        ...

    @abstractmethod
    async def delete_failed(self) -> int:
        ...

    @abstractmethod
    async def delete(self, task_id: str) -> bool:
        ...

    @abstractmethod
    async def reset_stuck(self, started_before: datetime, error_message: str) -> int:
        """Return processing tasks picked up before ``started_before`` to pending."""
        ...
