"""Domain entities for performance metric samples and their aggregates."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class MetricType(str, Enum):
    TASK_PROCESSING_TIME = "task_processing_time"
    QUEUE_THROUGHPUT = "queue_throughput"
    WORKER_UTILIZATION = "worker_utilization"
    ERROR_RATE = "error_rate"
    QUEUE_DEPTH = "queue_depth"
    EMBEDDING_GENERATION_TIME = "embedding_generation_time"
    DATABASE_QUERY_TIME = "database_query_time"
    BULK_OPERATION_TIME = "bulk_operation_time"
    SEARCH_TIME = "search_time"


@dataclass
class MetricSample:
    """One timestamped measurement. Samples are append-only."""

    metric_type: MetricType
    value: float
    unit: str
    task_id: str | None = None
    article_id: int | None = None
    operation_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    id: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class MetricFilters:
    metric_type: MetricType | None = None
    start: datetime | None = None
    end: datetime | None = None
    task_id: str | None = None
    article_id: int | None = None
    operation_id: str | None = None
    limit: int = 100
    offset: int = 0


@dataclass
class MetricStatistics:
    metric_type: MetricType
    count: int
    min: float
    max: float
    average: float
    median: float
    p95: float
    p99: float
    unit: str
    start: datetime
    end: datetime


@dataclass
class TaskMetrics:
    total_processed: int = 0
    average_processing_time: float = 0.0
    success_rate: float = 0.0  # percent
    throughput_per_hour: float = 0.0


@dataclass
class QueueMetrics:
    average_depth: float = 0.0
    max_depth: float = 0.0
    average_wait_time: float = 0.0  # ms between enqueue and pickup


@dataclass
class WorkerMetrics:
    utilization: float = 0.0
    average_tasks_per_hour: float = 0.0
    error_rate: float = 0.0


@dataclass
class SystemMetrics:
    average_database_query_time: float = 0.0
    average_embedding_time: float = 0.0
    average_search_time: float = 0.0


@dataclass
class PerformanceSummary:
    start: datetime
    end: datetime
    task_metrics: TaskMetrics
    queue_metrics: QueueMetrics
    worker_metrics: WorkerMetrics
    system_metrics: SystemMetrics
