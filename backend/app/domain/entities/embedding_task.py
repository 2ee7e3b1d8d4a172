"""Domain entity for embedding tasks — database-backed priority queue."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any


class TaskOperation(str, Enum):
    """What the worker should do with an article's embeddings."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class TaskPriority(str, Enum):
    """Dequeue tiers; a lower rank is served first."""

    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    TaskPriority.HIGH: 1,
    TaskPriority.NORMAL: 2,
    TaskPriority.LOW: 3,
}


class TaskStatus(str, Enum):
    """Lifecycle states of an embedding task."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class EmbeddingTask:
    """A single unit of work in the embedding queue.

    ``attempts`` is only ever incremented by a dequeue, so it counts how many
    times a worker has picked the task up. ``metadata`` is carried for audit
    purposes and never interpreted by the queue.
    """

    article_id: int
    slug: str
    operation: TaskOperation
    priority: TaskPriority = TaskPriority.NORMAL
    id: str | None = None
    status: TaskStatus = TaskStatus.PENDING
    attempts: int = 0
    max_attempts: int = 3
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    scheduled_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    processed_at: datetime | None = None
    completed_at: datetime | None = None
    error_message: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def attempts_exhausted(self) -> bool:
        return self.attempts >= self.max_attempts

    @property
    def processing_seconds(self) -> float | None:
        """Wall-clock time between pickup and completion, when both are known."""
        if self.processed_at is None or self.completed_at is None:
            return None
        return (self.completed_at - self.processed_at).total_seconds()


def compute_retry_delay_ms(attempts: int, base_delay_ms: int) -> int:
    """Exponential backoff before a failed task becomes eligible again.

    ``attempts`` is the number of pickups so far (>= 1 after a failure), so the
    first retry waits ``base_delay_ms``, the second twice that, and so on.
    With the default 1000 ms base, attempts 1 to 4 wait 1000, 2000, 4000 and
    8000 ms. That schedule is the intended contract.
    """
    exponent = max(attempts - 1, 0)
    return base_delay_ms * (2 ** exponent)


def compute_retry_time(
    attempts: int, base_delay_ms: int, now: datetime | None = None
) -> datetime:
    """Absolute ``scheduled_at`` for the next retry."""
    now = now or datetime.now(timezone.utc)
    return now + timedelta(milliseconds=compute_retry_delay_ms(attempts, base_delay_ms))


@dataclass
class QueueStats:
    """Task counts grouped by status."""

    pending: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.pending + self.processing + self.completed + self.failed

    def to_dict(self) -> dict[str, int]:
        return {
            "pending": self.pending,
            "processing": self.processing,
            "completed": self.completed,
            "failed": self.failed,
            "total": self.total,
        }


@dataclass
class QueueHealth:
    """Health verdict derived from queue thresholds."""

    is_healthy: bool
    total_tasks: int
    failed_tasks_last_24h: int
    oldest_pending_task: datetime | None = None
    average_processing_time: float | None = None  # seconds
    issues: list[str] = field(default_factory=list)


@dataclass
class RecentActivity:
    """Throughput over the last 24 hours."""

    tasks_completed_last_24h: int = 0
    tasks_failed_last_24h: int = 0
    average_processing_time: float | None = None  # seconds


@dataclass
class TaskError:
    """A recent task failure surfaced to operators."""

    task_id: str
    slug: str
    operation: TaskOperation
    status: TaskStatus
    attempts: int
    error_message: str
    occurred_at: datetime | None = None


@dataclass
class DetailedQueueStats:
    """Queue stats plus breakdowns of active work and recent errors."""

    stats: QueueStats
    tasks_by_priority: dict[str, int]
    tasks_by_operation: dict[str, int]
    recent_activity: RecentActivity
    recent_errors: list[TaskError] = field(default_factory=list)
