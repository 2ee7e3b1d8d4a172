"""Unit tests for the EmbeddingQueueService."""

from datetime import datetime, timedelta, timezone

import pytest

from app.application.services import AuditLogger, EmbeddingQueueService
from app.application.services.embedding_queue_service import STUCK_TASK_MESSAGE
from app.domain.entities import LogCategory, TaskOperation, TaskPriority, TaskStatus
from app.domain.exceptions import ErrorKind, ServiceError

from fakes import FakeAuditLogRepository, FakeTaskRepository


@pytest.fixture
def repo() -> FakeTaskRepository:
    return FakeTaskRepository()


@pytest.fixture
def queue(repo: FakeTaskRepository) -> EmbeddingQueueService:
    return EmbeddingQueueService(repo)


def _age(repo: FakeTaskRepository, task_id: str, **delta) -> None:
    """Move a task's creation and schedule into the past."""
    task = repo.tasks[task_id]
    task.created_at -= timedelta(**delta)
    task.scheduled_at -= timedelta(**delta)


@pytest.mark.asyncio
async def test_enqueue_creates_pending_task(queue: EmbeddingQueueService):
    task_id = await queue.enqueue_task(1, "intro", "create")

    task = await queue.get_task_status(task_id)
    assert task.status == TaskStatus.PENDING
    assert task.operation == TaskOperation.CREATE
    assert task.priority == TaskPriority.NORMAL
    assert task.attempts == 0
    assert task.max_attempts == 3


@pytest.mark.asyncio
async def test_enqueue_does_not_deduplicate(queue: EmbeddingQueueService):
    first = await queue.enqueue_task(1, "intro", "update")
    second = await queue.enqueue_task(1, "intro", "update")

    assert first != second
    assert (await queue.get_queue_stats()).pending == 2


@pytest.mark.asyncio
async def test_enqueue_unless_active_skips_when_task_pending(queue: EmbeddingQueueService):
    await queue.enqueue_task(1, "intro", "update")
    assert await queue.enqueue_unless_active(1, "intro", "update") is None
    assert await queue.enqueue_unless_active(2, "other", "update") is not None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "kwargs",
    [
        {"operation": "rebuild"},
        {"priority": "urgent"},
        {"slug": "  "},
        {"max_attempts": 0},
        {"scheduled_at": datetime(2030, 1, 1)},
    ],
)
async def test_enqueue_validates_input(queue: EmbeddingQueueService, kwargs: dict):
    args = {"article_id": 1, "slug": "intro", "operation": "create", **kwargs}
    article_id, slug, operation = args.pop("article_id"), args.pop("slug"), args.pop("operation")
    with pytest.raises(ServiceError) as exc_info:
        await queue.enqueue_task(article_id, slug, operation, **args)
    assert exc_info.value.kind == ErrorKind.VALIDATION


@pytest.mark.asyncio
async def test_dequeue_orders_by_priority_then_age(queue: EmbeddingQueueService, repo):
    low = await queue.enqueue_task(1, "low", "create", "low")
    normal_old = await queue.enqueue_task(2, "normal-old", "create", "normal")
    normal_new = await queue.enqueue_task(3, "normal-new", "create", "normal")
    high = await queue.enqueue_task(4, "high", "create", "high")
    _age(repo, normal_old, minutes=5)
    _age(repo, low, minutes=10)

    order = []
    while (task := await queue.dequeue_task()) is not None:
        order.append(task.id)

    assert order == [high, normal_old, normal_new, low]


@pytest.mark.asyncio
async def test_dequeue_claims_task_and_increments_attempts(queue: EmbeddingQueueService):
    task_id = await queue.enqueue_task(1, "intro", "create")

    claimed = await queue.dequeue_task()

    assert claimed.id == task_id
    assert claimed.status == TaskStatus.PROCESSING
    assert claimed.attempts == 1
    assert claimed.processed_at is not None
    assert await queue.dequeue_task() is None


@pytest.mark.asyncio
async def test_dequeue_skips_tasks_scheduled_in_the_future(queue: EmbeddingQueueService):
    later = datetime.now(timezone.utc) + timedelta(hours=1)
    await queue.enqueue_task(1, "later", "create", scheduled_at=later)
    assert await queue.dequeue_task() is None


@pytest.mark.asyncio
async def test_update_status_of_unknown_task_is_not_found(queue: EmbeddingQueueService):
    with pytest.raises(ServiceError) as exc_info:
        await queue.update_task_status("missing", TaskStatus.COMPLETED)
    assert exc_info.value.kind == ErrorKind.NOT_FOUND


@pytest.mark.asyncio
async def test_schedule_retry_returns_task_to_pending(queue: EmbeddingQueueService):
    await queue.enqueue_task(1, "intro", "create")
    task = await queue.dequeue_task()
    retry_at = datetime.now(timezone.utc) + timedelta(seconds=2)

    await queue.schedule_retry(task.id, retry_at, "boom")

    stored = await queue.get_task_status(task.id)
    assert stored.status == TaskStatus.PENDING
    assert stored.scheduled_at == retry_at
    assert stored.error_message == "boom"
    assert stored.attempts == 1


@pytest.mark.asyncio
async def test_cleanup_stuck_tasks_resets_old_processing(queue: EmbeddingQueueService, repo):
    await queue.enqueue_task(1, "stuck", "create")
    await queue.enqueue_task(2, "fresh", "create")
    stuck = await queue.dequeue_task()
    fresh = await queue.dequeue_task()
    repo.tasks[stuck.id].processed_at -= timedelta(minutes=45)

    reset = await queue.cleanup_stuck_tasks(timeout_minutes=30)

    assert reset == 1
    stuck_now = await queue.get_task_status(stuck.id)
    assert stuck_now.status == TaskStatus.PENDING
    assert stuck_now.processed_at is None
    assert stuck_now.error_message == STUCK_TASK_MESSAGE
    assert (await queue.get_task_status(fresh.id)).status == TaskStatus.PROCESSING


@pytest.mark.asyncio
async def test_retry_failed_tasks_only_requeues_tasks_with_attempts_left(queue, repo):
    retryable = await queue.enqueue_task(1, "a", "create", max_attempts=3)
    exhausted = await queue.enqueue_task(2, "b", "create", max_attempts=1)
    for _ in range(2):
        task = await queue.dequeue_task()
        await queue.update_task_status(task.id, TaskStatus.FAILED, "nope")

    assert await queue.retry_failed_tasks() == 1

    requeued = await queue.get_task_status(retryable)
    assert requeued.status == TaskStatus.PENDING
    assert requeued.error_message is None
    assert requeued.scheduled_at > datetime.now(timezone.utc)
    assert (await queue.get_task_status(exhausted)).status == TaskStatus.FAILED


@pytest.mark.asyncio
async def test_clear_completed_and_failed_tasks(queue: EmbeddingQueueService, repo):
    done = await queue.enqueue_task(1, "done", "create")
    failed = await queue.enqueue_task(2, "failed", "create")
    for task_id, status in ((done, TaskStatus.COMPLETED), (failed, TaskStatus.FAILED)):
        await queue.update_task_status(task_id, status)
    repo.tasks[done].completed_at -= timedelta(days=40)

    assert await queue.clear_completed_tasks() == 1
    assert await queue.clear_failed_tasks() == 1
    assert (await queue.get_queue_stats()).total == 0


@pytest.mark.asyncio
async def test_delete_task(queue: EmbeddingQueueService):
    task_id = await queue.enqueue_task(1, "intro", "create")
    assert await queue.delete_task(task_id) is True
    assert await queue.delete_task(task_id) is False


@pytest.mark.asyncio
async def test_queue_health_is_healthy_for_small_queue(queue: EmbeddingQueueService):
    await queue.enqueue_task(1, "intro", "create")

    health = await queue.get_queue_health()

    assert health.is_healthy is True
    assert health.issues == []
    assert health.total_tasks == 1


@pytest.mark.asyncio
async def test_queue_health_reports_backlog_and_old_tasks(queue: EmbeddingQueueService, repo):
    for i in range(101):
        await queue.enqueue_task(i, f"a{i}", "create")
    oldest = next(iter(repo.tasks))
    _age(repo, oldest, hours=30)

    health = await queue.get_queue_health()

    assert health.is_healthy is False
    assert "High number of pending tasks: 101" in health.issues
    assert "Old pending tasks: oldest task is 30 hours old" in health.issues


@pytest.mark.asyncio
async def test_detailed_stats_break_down_active_tasks(queue: EmbeddingQueueService):
    await queue.enqueue_task(1, "a", "create", "high")
    await queue.enqueue_task(2, "b", "delete", "high")
    await queue.enqueue_task(3, "c", "update", "low")

    detailed = await queue.get_detailed_queue_stats()

    assert detailed.stats.pending == 3
    assert detailed.tasks_by_priority == {"high": 2, "low": 1}
    assert detailed.tasks_by_operation == {"create": 1, "delete": 1, "update": 1}
    assert detailed.recent_errors == []


@pytest.mark.asyncio
async def test_queue_operations_are_audited(repo: FakeTaskRepository):
    audit_repo = FakeAuditLogRepository()
    queue = EmbeddingQueueService(repo, audit=AuditLogger(audit_repo))

    await queue.enqueue_task(1, "intro", "create")

    assert [e.category for e in audit_repo.entries] == [LogCategory.QUEUE_OPERATIONS]
    assert audit_repo.entries[0].metadata["slug"] == "intro"
