from .article import Article, ArticleMetadata
from .audit_log import AuditLogEntry, AuditLogFilters, AuditLogStatistics, LogCategory, LogLevel
from .chunk import Chunk, Embedding
from .embedding_task import (
    DetailedQueueStats,
    EmbeddingTask,
    QueueHealth,
    QueueStats,
    RecentActivity,
    TaskError,
    TaskOperation,
    TaskPriority,
    TaskStatus,
    compute_retry_delay_ms,
    compute_retry_time,
)
from .metric import (
    MetricFilters,
    MetricSample,
    MetricStatistics,
    MetricType,
    PerformanceSummary,
    QueueMetrics,
    SystemMetrics,
    TaskMetrics,
    WorkerMetrics,
)
from .search import (
    IndexedChunk,
    IndexingResult,
    IndexStats,
    RebuildResult,
    ScoredChunk,
    SearchResult,
)
from .worker_status import WorkerStats, WorkerStatus

__all__ = [
    "Article",
    "ArticleMetadata",
    "AuditLogEntry",
    "AuditLogFilters",
    "AuditLogStatistics",
    "LogCategory",
    "LogLevel",
    "Chunk",
    "Embedding",
    "DetailedQueueStats",
    "EmbeddingTask",
    "QueueHealth",
    "QueueStats",
    "RecentActivity",
    "TaskError",
    "TaskOperation",
    "TaskPriority",
    "TaskStatus",
    "compute_retry_delay_ms",
    "compute_retry_time",
    "MetricFilters",
    "MetricSample",
    "MetricStatistics",
    "MetricType",
    "PerformanceSummary",
    "QueueMetrics",
    "SystemMetrics",
    "TaskMetrics",
    "WorkerMetrics",
    "IndexedChunk",
    "IndexingResult",
    "IndexStats",
    "RebuildResult",
    "ScoredChunk",
    "SearchResult",
    "WorkerStats",
    "WorkerStatus",
]
