"""In-memory fakes of the pipeline ports, shared by the unit tests."""

import copy
import math
import uuid
from datetime import datetime, timezone

from app.application.interfaces import (
    ArticleRepository,
    AuditLogRepository,
    EmbeddingProvider,
    EmbeddingRepository,
    EmbeddingTaskRepository,
    MetricsRepository,
    WorkerStatusRepository,
)
from app.domain.entities import (
    Article,
    ArticleMetadata,
    AuditLogEntry,
    AuditLogFilters,
    AuditLogStatistics,
    Embedding,
    EmbeddingTask,
    IndexedChunk,
    IndexStats,
    MetricFilters,
    MetricSample,
    MetricType,
    QueueStats,
    TaskError,
    TaskStatus,
    WorkerStatus,
)
from app.application.services import (
    AuditLogger,
    BackgroundWorker,
    EmbeddingIndexService,
    EmbeddingQueueService,
    PerformanceMetricsService,
)
from app.config import EmbeddingQueueConfig
from app.domain.exceptions import ServiceError
from app.infrastructure.search import InMemoryCosineSimilarity


def _metadata(article: Article) -> ArticleMetadata:
    return ArticleMetadata(
        slug=article.slug,
        title=article.title,
        folder=article.folder,
        created_at=article.created_at,
        updated_at=article.updated_at,
        is_public=article.is_public,
    )


def _in_folder(article_folder: str, folder: str | None) -> bool:
    if not folder:
        return True
    if folder == "/":
        return article_folder == ""
    wanted = folder.strip("/").lower()
    current = article_folder.lower()
    return current == wanted or current.startswith(wanted + "/")


class FakeArticleRepository(ArticleRepository):
    def __init__(self):
        self._articles: dict[int, Article] = {}
        self._next_id = 1

    async def get_by_id(self, article_id: int) -> Article | None:
        return self._articles.get(article_id)

    async def get_by_slug(self, slug: str) -> Article | None:
        return next((a for a in self._articles.values() if a.slug == slug), None)

    async def get_article_id(self, slug: str) -> int | None:
        article = await self.get_by_slug(slug)
        return article.id if article else None

    async def list_articles(self) -> list[ArticleMetadata]:
        return [_metadata(a) for a in self._articles.values()]

    async def search_titles(self, query: str, folder: str | None = None, limit: int = 20) -> list[str]:
        needle = query.lower()
        ranked = []
        for article in self._articles.values():
            title = article.title.lower()
            if needle not in title or not _in_folder(article.folder, folder):
                continue
            rank = 0 if title == needle else 1 if title.startswith(needle) else 2
            ranked.append((rank, article.slug))
        return [slug for _, slug in sorted(ranked)][:limit]

    async def create(self, article: Article) -> Article:
        if await self.get_by_slug(article.slug) is not None:
            raise ServiceError.validation(f"duplicate slug {article.slug}")
        article.id = self._next_id
        self._next_id += 1
        self._articles[article.id] = article
        return article

    async def update(self, article: Article) -> Article:
        if article.id not in self._articles:
            raise ServiceError.not_found("Article", article.id)
        self._articles[article.id] = article
        return article

    async def delete(self, article_id: int) -> bool:
        return self._articles.pop(article_id, None) is not None

    def metadata_for(self, article_id: int) -> ArticleMetadata:
        return _metadata(self._articles[article_id])

    def folder_of(self, article_id: int) -> str:
        return self._articles[article_id].folder


class FakeTaskRepository(EmbeddingTaskRepository):
    """Dict-backed queue with the same ordering and claim rules as the SQL one."""

    def __init__(self):
        self.tasks: dict[str, EmbeddingTask] = {}

    async def create(self, task: EmbeddingTask) -> EmbeddingTask:
        task = copy.deepcopy(task)
        task.id = str(uuid.uuid4())
        self.tasks[task.id] = task
        return copy.deepcopy(task)

    async def dequeue(self, now: datetime) -> EmbeddingTask | None:
        eligible = [
            t for t in self.tasks.values()
            if t.status == TaskStatus.PENDING and t.scheduled_at <= now
        ]
        if not eligible:
            return None
        task = min(eligible, key=lambda t: (t.priority.rank, t.created_at))
        task.status = TaskStatus.PROCESSING
        task.attempts += 1
        task.processed_at = now
        return copy.deepcopy(task)

    async def get_by_id(self, task_id: str) -> EmbeddingTask | None:
        task = self.tasks.get(task_id)
        return copy.deepcopy(task) if task else None

    async def get_by_status(self, status: TaskStatus, limit: int = 50, offset: int = 0) -> list[EmbeddingTask]:
        matching = sorted(
            (t for t in self.tasks.values() if t.status == status),
            key=lambda t: t.created_at,
            reverse=True,
        )
        return [copy.deepcopy(t) for t in matching[offset : offset + limit]]

    async def get_for_article(self, article_id: int) -> list[EmbeddingTask]:
        matching = [t for t in self.tasks.values() if t.article_id == article_id]
        return [copy.deepcopy(t) for t in sorted(matching, key=lambda t: t.created_at, reverse=True)]

    async def has_active_task(self, article_id: int) -> bool:
        return any(
            t.article_id == article_id and t.status in (TaskStatus.PENDING, TaskStatus.PROCESSING)
            for t in self.tasks.values()
        )

    async def update_status(self, task_id, status, error_message, now) -> bool:
        task = self.tasks.get(task_id)
        if task is None:
            return False
        task.status = status
        task.error_message = error_message
        if status in (TaskStatus.COMPLETED, TaskStatus.FAILED):
            task.completed_at = now
        return True

    async def schedule_retry(self, task_id, scheduled_at, error_message) -> bool:
        task = self.tasks.get(task_id)
        if task is None:
            return False
        task.status = TaskStatus.PENDING
        task.scheduled_at = scheduled_at
        task.processed_at = None
        task.error_message = error_message
        return True

    async def count_by_status(self) -> QueueStats:
        stats = QueueStats()
        for task in self.tasks.values():
            setattr(stats, task.status.value, getattr(stats, task.status.value) + 1)
        return stats

    async def count_active_by(self, column: str) -> dict[str, int]:
        counts: dict[str, int] = {}
        for task in self.tasks.values():
            if task.status in (TaskStatus.PENDING, TaskStatus.PROCESSING):
                key = getattr(task, column).value
                counts[key] = counts.get(key, 0) + 1
        return counts

    async def count_in_status_since(self, status, since) -> int:
        return sum(
            1 for t in self.tasks.values()
            if t.status == status and t.completed_at is not None and t.completed_at >= since
        )

    async def oldest_pending_created_at(self) -> datetime | None:
        pending = [t.created_at for t in self.tasks.values() if t.status == TaskStatus.PENDING]
        return min(pending, default=None)

    async def average_processing_seconds(self, since) -> float | None:
        durations = [
            t.processing_seconds for t in self.tasks.values()
            if t.status == TaskStatus.COMPLETED
            and t.completed_at is not None
            and t.completed_at >= since
            and t.processing_seconds is not None
        ]
        return sum(durations) / len(durations) if durations else None

    async def recent_errors(self, limit: int = 10) -> list[TaskError]:
        with_errors = [t for t in self.tasks.values() if t.error_message]
        with_errors.sort(key=lambda t: t.completed_at or t.processed_at or t.created_at, reverse=True)
        return [
            TaskError(
                task_id=t.id,
                slug=t.slug,
                operation=t.operation,
                status=t.status,
                attempts=t.attempts,
                error_message=t.error_message,
                occurred_at=t.completed_at or t.processed_at,
            )
            for t in with_errors[:limit]
        ]

    async def retry_failed(self, scheduled_at) -> int:
        count = 0
        for task in self.tasks.values():
            if task.status == TaskStatus.FAILED and task.attempts < task.max_attempts:
                task.status = TaskStatus.PENDING
                task.scheduled_at = scheduled_at
                task.completed_at = None
                task.error_message = None
                count += 1
        return count

    async def delete_completed_before(self, cutoff) -> int:
        doomed = [
            tid for tid, t in self.tasks.items()
            if t.status == TaskStatus.COMPLETED and t.completed_at is not None and t.completed_at < cutoff
        ]
        for tid in doomed:
            del self.tasks[tid]
        return len(doomed)

    async def delete_failed(self) -> int:
        doomed = [tid for tid, t in self.tasks.items() if t.status == TaskStatus.FAILED]
        for tid in doomed:
            del self.tasks[tid]
        return len(doomed)

    async def delete(self, task_id: str) -> bool:
        return self.tasks.pop(task_id, None) is not None

    async def reset_stuck(self, started_before, error_message) -> int:
        count = 0
        for task in self.tasks.values():
            if (
                task.status == TaskStatus.PROCESSING
                and task.processed_at is not None
                and task.processed_at < started_before
            ):
                task.status = TaskStatus.PENDING
                task.processed_at = None
                task.error_message = error_message
                count += 1
        return count


class FakeEmbeddingRepository(EmbeddingRepository):
    def __init__(self, articles: FakeArticleRepository):
        self._articles = articles
        self.rows: dict[int, list[Embedding]] = {}
        self.replace_calls = 0

    async def replace_for_article(self, article_id: int, embeddings: list[Embedding]) -> int:
        self.replace_calls += 1
        self.rows[article_id] = list(embeddings)
        return len(embeddings)

    async def delete_for_article(self, article_id: int) -> int:
        return len(self.rows.pop(article_id, []))

    async def get_vectors_by_hash(self, article_id: int) -> dict[str, list[float]]:
        return {e.content_hash: list(e.vector) for e in self.rows.get(article_id, [])}

    async def load_all(self, folder: str | None = None) -> list[tuple[IndexedChunk, list[float]]]:
        loaded = []
        for article_id, embeddings in self.rows.items():
            if await self._articles.get_by_id(article_id) is None:
                continue
            if not _in_folder(self._articles.folder_of(article_id), folder):
                continue
            meta = self._articles.metadata_for(article_id)
            for e in embeddings:
                chunk = IndexedChunk(
                    chunk_id=e.chunk_id,
                    chunk_index=e.chunk_index,
                    heading_path=list(e.heading_path),
                    text=e.text,
                    article=meta,
                )
                loaded.append((chunk, list(e.vector)))
        return loaded

    async def get_index_stats(self) -> IndexStats:
        articles = await self._articles.list_articles()
        return IndexStats(
            total_chunks=sum(len(v) for v in self.rows.values()),
            total_articles=len(articles),
            indexed_articles=sum(1 for v in self.rows.values() if v),
        )

    async def get_unindexed_slugs(self) -> list[str]:
        result = []
        for meta in await self._articles.list_articles():
            article_id = await self._articles.get_article_id(meta.slug)
            if not self.rows.get(article_id):
                result.append(meta.slug)
        return sorted(result)


class FakeWorkerStatusRepository(WorkerStatusRepository):
    def __init__(self):
        self.status = WorkerStatus()

    async def get(self) -> WorkerStatus:
        return copy.copy(self.status)

    async def mark_started(self, now: datetime) -> None:
        self.status = WorkerStatus(is_running=True, started_at=now, last_heartbeat=now)

    async def mark_stopped(self) -> None:
        self.status.is_running = False

    async def heartbeat(self, now: datetime) -> None:
        self.status.last_heartbeat = now

    async def increment(self, *, succeeded: int = 0, failed: int = 0) -> None:
        self.status.tasks_processed += succeeded + failed
        self.status.tasks_succeeded += succeeded
        self.status.tasks_failed += failed


class FakeMetricsRepository(MetricsRepository):
    def __init__(self):
        self.samples: list[MetricSample] = []

    async def add(self, sample: MetricSample) -> None:
        self.samples.append(sample)

    async def get_samples(self, metric_type: MetricType, start, end) -> list[MetricSample]:
        matching = [
            s for s in self.samples
            if s.metric_type == metric_type and start <= s.timestamp <= end
        ]
        return sorted(matching, key=lambda s: s.timestamp)

    async def query(self, filters: MetricFilters) -> list[MetricSample]:
        matching = [
            s for s in self.samples
            if filters.metric_type is None or s.metric_type == filters.metric_type
        ]
        matching.sort(key=lambda s: s.timestamp, reverse=True)
        return matching[filters.offset : filters.offset + filters.limit]

    async def delete_before(self, cutoff) -> int:
        before = len(self.samples)
        self.samples = [s for s in self.samples if s.timestamp >= cutoff]
        return before - len(self.samples)

    def of_type(self, metric_type: MetricType) -> list[MetricSample]:
        return [s for s in self.samples if s.metric_type == metric_type]


class FakeAuditLogRepository(AuditLogRepository):
    def __init__(self):
        self.entries: list[AuditLogEntry] = []

    async def create(self, entry: AuditLogEntry) -> AuditLogEntry:
        entry.id = len(self.entries) + 1
        self.entries.append(entry)
        return entry

    async def query(self, filters: AuditLogFilters) -> list[AuditLogEntry]:
        matching = [
            e for e in self.entries
            if (filters.category is None or e.category == filters.category)
            and (filters.level is None or e.level == filters.level)
            and (filters.task_id is None or e.task_id == filters.task_id)
        ]
        return list(reversed(matching))[filters.offset : filters.offset + filters.limit]

    async def get_statistics(self, errors_since) -> AuditLogStatistics:
        by_level: dict[str, int] = {}
        by_category: dict[str, int] = {}
        for e in self.entries:
            by_level[e.level.value] = by_level.get(e.level.value, 0) + 1
            by_category[e.category.value] = by_category.get(e.category.value, 0) + 1
        return AuditLogStatistics(
            total_entries=len(self.entries),
            entries_by_level=by_level,
            entries_by_category=by_category,
            recent_errors=sum(
                1 for e in self.entries if e.level.value == "error" and e.timestamp >= errors_since
            ),
        )

    async def delete_before(self, cutoff) -> int:
        before = len(self.entries)
        self.entries = [e for e in self.entries if e.timestamp >= cutoff]
        return before - len(self.entries)


class FakeEmbeddingProvider(EmbeddingProvider):
    """Bag-of-words vectors: each new word gets the next free dimension.

    Deterministic per instance, and collision-free until the vocabulary
    outgrows the dimension count.
    """

    def __init__(self, dimensions: int = 8, *, fail_with: Exception | None = None):
        self._dimensions = dimensions
        self.fail_with = fail_with
        self.calls: list[list[str]] = []
        self.overrides: dict[str, list[float]] = {}
        self._vocabulary: dict[str, int] = {}

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def vector_for(self, text: str) -> list[float]:
        if text in self.overrides:
            return self.overrides[text]
        vector = [0.0] * self._dimensions
        for word in text.lower().split():
            bucket = self._vocabulary.setdefault(word.strip(".,"), len(self._vocabulary)) % self._dimensions
            vector[bucket] += 1.0
        norm = math.sqrt(sum(v * v for v in vector)) or 1.0
        return [v / norm for v in vector]

    async def generate_embeddings(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        if self.fail_with is not None:
            raise self.fail_with
        return [self.vector_for(t) for t in texts]


def utc(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


class Pipeline:
    """A worker wired to in-memory fakes, with handles on every fake."""

    def __init__(self, config: EmbeddingQueueConfig | None = None, *, dimensions: int = 32, **config_overrides):
        self.config = config or EmbeddingQueueConfig(**config_overrides)
        self.articles = FakeArticleRepository()
        self.embeddings = FakeEmbeddingRepository(self.articles)
        self.tasks = FakeTaskRepository()
        self.status = FakeWorkerStatusRepository()
        self.metrics_repo = FakeMetricsRepository()
        self.audit_repo = FakeAuditLogRepository()
        self.provider = FakeEmbeddingProvider(dimensions)

        audit = AuditLogger(self.audit_repo)
        metrics = PerformanceMetricsService(self.metrics_repo)
        self.queue = EmbeddingQueueService(
            self.tasks, default_max_attempts=self.config.max_attempts, audit=audit
        )
        self.index = EmbeddingIndexService(
            self.provider,
            self.embeddings,
            self.articles,
            InMemoryCosineSimilarity(self.embeddings),
            dimensions=dimensions,
            metrics=metrics,
        )
        self.worker = BackgroundWorker(
            self.queue,
            self.index,
            self.articles,
            self.status,
            lambda: self.config,
            metrics=metrics,
            audit=audit,
        )

    async def add_article(self, slug: str = "intro", content: str = "Hello embedding world.") -> Article:
        return await self.articles.create(Article(slug=slug, title=slug.title(), content=content))
