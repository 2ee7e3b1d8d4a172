"""Background worker — asyncio daemon that drains the embedding queue.

Runs as a set of asyncio tasks inside FastAPI's lifespan:

    processing   every ``worker_interval`` ms, claim and run at most one task
    heartbeat    every ``heartbeat_interval`` ms, stamp the persisted status
    metrics      every ``metrics_interval`` ms, sample throughput/depth/errors
    maintenance  every ``cleanup_interval_hours``, retention cleanup + stuck sweep

A timer sleeps only after its tick finished, so ticks of one timer never
overlap. Exceptions raised by a tick are logged and never stop its timer.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone

from pydantic import ValidationError

from app.application.interfaces import ArticleRepository, WorkerStatusRepository
from app.application.services.audit_logger import AuditLogger
from app.application.services.embedding_index_service import EmbeddingIndexService
from app.application.services.embedding_queue_service import EmbeddingQueueService
from app.application.services.performance_metrics_service import PerformanceMetricsService
from app.config import EmbeddingQueueConfig, get_config_status
from app.domain.entities import (
    EmbeddingTask,
    LogLevel,
    TaskOperation,
    TaskStatus,
    WorkerStats,
    compute_retry_time,
)
from app.domain.exceptions import ErrorKind, ServiceError
from app.infrastructure.logging.colored_logger import PipelineLogger, PipelineStage

logger = logging.getLogger(__name__)
plog = PipelineLogger("EmbeddingWorker")

ConfigLoader = Callable[[], EmbeddingQueueConfig]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BackgroundWorker:
    """Single-process consumer of the embedding queue.

    ``start``/``stop`` are idempotent. ``process_next_task`` is one tick of
    the processing timer and can also be driven directly (tests, admin
    endpoints) without starting the timers.
    """

    def __init__(
        self,
        queue: EmbeddingQueueService,
        index: EmbeddingIndexService,
        articles: ArticleRepository,
        status_repository: WorkerStatusRepository,
        config_loader: ConfigLoader,
        *,
        metrics: PerformanceMetricsService | None = None,
        audit: AuditLogger | None = None,
    ) -> None:
        self._queue = queue
        self._index = index
        self._articles = articles
        self._status = status_repository
        self._config_loader = config_loader
        self._metrics = metrics
        self._audit = audit

        self._config: EmbeddingQueueConfig | None = None
        self._running = False
        self._timers: list[asyncio.Task] = []

        # Window counters for the metrics timer
        self._window_started = time.monotonic()
        self._window_processed = 0
        self._window_failed = 0
        self._window_busy_seconds = 0.0

    # ── Lifecycle ───────────────────────────────────────────────────

    def is_running(self) -> bool:
        return self._running

    @property
    def config(self) -> EmbeddingQueueConfig:
        if self._config is None:
            self._config = self._load_config()
        return self._config

    def _load_config(self) -> EmbeddingQueueConfig:
        try:
            return self._config_loader()
        except ValidationError as exc:
            raise ServiceError(
                ErrorKind.CONFIGURATION,
                f"Invalid embedding queue configuration: {exc}",
                "The embedding queue configuration is invalid.",
                cause=exc,
            ) from exc

    async def start(self) -> None:
        """Start the timers; a no-op when already running or disabled by config."""
        if self._running:
            logger.info("Background worker is already running")
            if self._audit:
                await self._audit.log_worker_event("start skipped: already running")
            return

        config = self._load_config()
        self._config = config
        if not config.enabled:
            logger.info("Background embedding is disabled; worker not started")
            return

        for warning in get_config_status(config).warnings:
            logger.warning("Embedding queue config: %s", warning)

        await self._status.mark_started(_utcnow())
        self._running = True
        self._reset_window()

        if config.stuck_task_cleanup_enabled:
            try:
                await self._queue.cleanup_stuck_tasks(config.stuck_timeout_minutes)
            except Exception:
                logger.exception("Startup stuck-task sweep failed")

        self._timers = [
            asyncio.create_task(
                self._run_every("processing", config.worker_interval / 1000, self._processing_tick, immediate=True)
            ),
            asyncio.create_task(
                self._run_every("heartbeat", config.heartbeat_interval / 1000, self._heartbeat_tick)
            ),
            asyncio.create_task(
                self._run_every("metrics", config.metrics_interval / 1000, self._metrics_tick)
            ),
            asyncio.create_task(
                self._run_every("maintenance", config.cleanup_interval_hours * 3600, self._maintenance_tick)
            ),
        ]

        logger.info(
            "Background worker started (interval=%dms, max_retries=%d, backoff_base=%dms)",
            config.worker_interval,
            config.max_retries,
            config.retry_backoff_base,
        )
        if self._audit:
            await self._audit.log_worker_event(
                "started",
                metadata={
                    "worker_interval": config.worker_interval,
                    "heartbeat_interval": config.heartbeat_interval,
                    "max_retries": config.max_retries,
                },
            )

    async def stop(self) -> None:
        """Cancel the timers and mark the worker stopped; a no-op when stopped."""
        if not self._running:
            return
        self._running = False

        timers, self._timers = self._timers, []
        for timer in timers:
            timer.cancel()
        await asyncio.gather(*timers, return_exceptions=True)

        try:
            await self._status.mark_stopped()
        except Exception:
            logger.exception("Failed to persist stopped worker status")

        logger.info("Background worker stopped")
        if self._audit:
            await self._audit.log_worker_event("stopped")

    async def _run_every(
        self,
        name: str,
        interval_seconds: float,
        tick: Callable[[], Awaitable[object]],
        *,
        immediate: bool = False,
    ) -> None:
        if not immediate:
            await asyncio.sleep(interval_seconds)
        while self._running:
            try:
                await tick()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Background worker %s tick failed", name)
            await asyncio.sleep(interval_seconds)

    # ── Processing ──────────────────────────────────────────────────

    async def _processing_tick(self) -> None:
        await self.process_next_task()

    async def process_next_task(self) -> bool:
        """Claim and run at most one task. Returns whether a task was picked up."""
        task = await self._queue.dequeue_task()
        if task is None:
            return False

        plog.step_start(
            PipelineStage.DEQUEUE,
            f"Picked up {task.operation.value} '{task.slug}'",
            task=task.id,
            attempt=f"{task.attempts}/{task.max_attempts}",
            priority=task.priority.value,
        )

        start = time.perf_counter()
        try:
            await self.process_task(task)
        except Exception as exc:
            duration_ms = (time.perf_counter() - start) * 1000
            await self._after_task(task, duration_ms, success=False)
            await self.handle_task_failure(task, exc)
            return True

        duration_ms = (time.perf_counter() - start) * 1000
        await self._queue.update_task_status(task.id, TaskStatus.COMPLETED)
        await self._status.increment(succeeded=1)
        await self._after_task(task, duration_ms, success=True)
        plog.step_complete(PipelineStage.COMPLETE, f"'{task.slug}' done", ms=f"{duration_ms:.0f}")
        if self._audit:
            await self._audit.log_task_event(task, "completed", duration_ms=int(duration_ms))
        return True

    async def process_task(self, task: EmbeddingTask) -> None:
        """Run a single task's operation; failures are audited and re-raised."""
        if self._audit:
            await self._audit.log_task_event(task, "started", level=LogLevel.DEBUG)
        try:
            if task.operation in (TaskOperation.CREATE, TaskOperation.UPDATE):
                await self._embed_article(task)
            elif task.operation == TaskOperation.DELETE:
                await self._delete_embeddings(task)
            else:
                raise ServiceError.validation(f"Unknown task operation: {task.operation!r}")
        except Exception as exc:
            if self._audit:
                await self._audit.log_task_event(task, "failed", level=LogLevel.ERROR, error=exc)
            raise

    async def _embed_article(self, task: EmbeddingTask) -> None:
        with plog.timed_step(PipelineStage.FETCH, f"Loading article '{task.slug}'"):
            start = time.perf_counter()
            article = await self._articles.get_by_id(task.article_id)
            fetch_ms = (time.perf_counter() - start) * 1000
        if self._metrics:
            await self._metrics.record_database_query_time(fetch_ms, "article_fetch")
        if article is None:
            raise ServiceError.not_found("Article", task.article_id)

        with plog.timed_step(PipelineStage.CHUNK, f"Chunking '{article.slug}'"):
            chunks = self._index.chunk_article(article)
        plog.detail(f"{len(chunks)} chunk(s)")

        with plog.timed_step(PipelineStage.EMBED, f"Embedding {len(chunks)} chunk(s)"):
            stored = await self._index.upsert_article_embeddings(task.article_id, chunks)
        plog.step_complete(PipelineStage.STORE, f"Stored {stored} embedding(s)", article=task.article_id)

    async def _delete_embeddings(self, task: EmbeddingTask) -> None:
        with plog.timed_step(PipelineStage.DELETE, f"Removing embeddings of '{task.slug}'"):
            removed = await self._index.delete_article_embeddings(task.article_id)
        plog.detail(f"{removed} embedding(s) removed")

    async def handle_task_failure(self, task: EmbeddingTask, error: BaseException) -> None:
        """Fail the task permanently or schedule a retry with exponential backoff.

        Never raises: errors while recording the failure are only logged.
        """
        message = str(error) or type(error).__name__
        permanent = isinstance(error, ServiceError) and error.is_permanent
        try:
            if task.attempts_exhausted or permanent:
                plog.step_error(
                    PipelineStage.ERROR,
                    f"'{task.slug}' failed permanently after {task.attempts} attempt(s)",
                    error=error,
                )
                await self._queue.update_task_status(task.id, TaskStatus.FAILED, message)
                if self._audit:
                    await self._audit.log_task_event(
                        task, "failed permanently", level=LogLevel.ERROR, error=error
                    )
            else:
                retry_at = compute_retry_time(task.attempts, self.config.retry_backoff_base)
                plog.step_start(
                    PipelineStage.RETRY,
                    f"Retrying '{task.slug}' at {retry_at.isoformat()}",
                    attempt=f"{task.attempts}/{task.max_attempts}",
                    error=message,
                )
                await self._queue.schedule_retry(task.id, retry_at, message)
                if self._audit:
                    await self._audit.log_task_event(
                        task,
                        "scheduled for retry",
                        level=LogLevel.WARN,
                        error=error,
                        metadata={"retry_at": retry_at.isoformat()},
                    )
            await self._status.increment(failed=1)
        except Exception:
            logger.exception("Failed to record failure of task %s", task.id)

    async def _after_task(self, task: EmbeddingTask, duration_ms: float, *, success: bool) -> None:
        self._window_processed += 1
        self._window_busy_seconds += duration_ms / 1000
        if not success:
            self._window_failed += 1

        if self._metrics:
            wait_ms = None
            if task.processed_at is not None:
                wait_ms = max((task.processed_at - task.created_at).total_seconds() * 1000, 0.0)
            await self._metrics.record_task_processing_time(
                task.id,
                task.article_id,
                duration_ms,
                task.operation.value,
                success=success,
                wait_time_ms=wait_ms,
            )

    # ── Heartbeat, metrics, maintenance ─────────────────────────────

    async def _heartbeat_tick(self) -> None:
        await self._status.heartbeat(_utcnow())

    def _reset_window(self) -> None:
        self._window_started = time.monotonic()
        self._window_processed = 0
        self._window_failed = 0
        self._window_busy_seconds = 0.0

    async def _metrics_tick(self) -> None:
        elapsed = max(time.monotonic() - self._window_started, 1e-6)
        processed = self._window_processed
        failed = self._window_failed
        busy = self._window_busy_seconds
        self._reset_window()

        if not self._metrics and not self._audit:
            return
        stats = await self._queue.get_queue_stats()
        throughput = processed / (elapsed / 3600)
        depth = stats.pending + stats.processing
        utilization = min(busy / elapsed * 100, 100.0)
        error_rate = (failed / processed * 100) if processed else 0.0

        if self._metrics:
            await self._metrics.record_queue_throughput(throughput, elapsed * 1000)
            await self._metrics.record_queue_depth(depth)
            await self._metrics.record_worker_utilization(utilization)
            await self._metrics.record_error_rate(error_rate, processed)
        if self._audit:
            for name, value, unit in (
                ("queue_throughput", throughput, "tasks/hour"),
                ("queue_depth", depth, "tasks"),
                ("worker_utilization", utilization, "%"),
                ("error_rate", error_rate, "%"),
            ):
                await self._audit.log_performance_metric(name, value, unit)

    async def _maintenance_tick(self) -> None:
        config = self.config
        cutoff = _utcnow() - timedelta(days=config.cleanup_retention_days)
        cleared = await self._queue.clear_completed_tasks(older_than=cutoff)
        logger.info("Maintenance: cleared %d completed task(s)", cleared)

        if self._metrics:
            await self._metrics.cleanup_old_metrics()
        if self._audit:
            await self._audit.cleanup_old_logs()
        if config.stuck_task_cleanup_enabled:
            await self._queue.cleanup_stuck_tasks(config.stuck_timeout_minutes)

    # ── Reporting ───────────────────────────────────────────────────

    async def get_worker_stats(self) -> WorkerStats:
        status = await self._status.get()
        average = await self._queue.get_average_processing_time()
        return WorkerStats(
            is_running=self._running,
            tasks_processed=status.tasks_processed,
            tasks_succeeded=status.tasks_succeeded,
            tasks_failed=status.tasks_failed,
            average_processing_time=average or 0.0,
            started_at=status.started_at,
            last_heartbeat=status.last_heartbeat,
        )
