"""Performance metrics collector — append-only samples and their aggregates.

Recording is best effort: ``record_metric`` logs and swallows its own
failures so that measuring an operation can never abort it.
"""

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Any

from app.application.interfaces import MetricsRepository
from app.domain.entities import (
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

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 30


def percentile(sorted_values: list[float], fraction: float) -> float:
    """Continuous percentile with linear interpolation (like ``PERCENTILE_CONT``).

    ``sorted_values`` must be non-empty and ascending; ``fraction`` is in [0, 1].
    """
    if len(sorted_values) == 1:
        return sorted_values[0]
    position = (len(sorted_values) - 1) * fraction
    lower = math.floor(position)
    upper = math.ceil(position)
    if lower == upper:
        return sorted_values[lower]
    weight = position - lower
    return sorted_values[lower] + (sorted_values[upper] - sorted_values[lower]) * weight


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


class PerformanceMetricsService:
    """Records typed samples and reports statistics over time windows."""

    def __init__(
        self,
        repository: MetricsRepository,
        *,
        retention_days: int = DEFAULT_RETENTION_DAYS,
    ):
        self._repo = repository
        self._retention_days = retention_days

    # ── Recording ───────────────────────────────────────────────────

    async def record_metric(
        self,
        metric_type: MetricType,
        value: float,
        unit: str,
        *,
        task_id: str | None = None,
        article_id: int | None = None,
        operation_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        sample = MetricSample(
            metric_type=metric_type,
            value=float(value),
            unit=unit,
            task_id=task_id,
            article_id=article_id,
            operation_id=operation_id,
            metadata=metadata or {},
        )
        try:
            await self._repo.add(sample)
        except Exception as exc:
            logger.warning("Failed to record %s metric: %s", metric_type.value, exc)

    async def record_task_processing_time(
        self,
        task_id: str,
        article_id: int,
        duration_ms: float,
        operation: str,
        *,
        success: bool,
        wait_time_ms: float | None = None,
    ) -> None:
        metadata: dict[str, Any] = {"operation": operation, "success": success}
        if wait_time_ms is not None:
            metadata["wait_time_ms"] = wait_time_ms
        await self.record_metric(
            MetricType.TASK_PROCESSING_TIME,
            duration_ms,
            "ms",
            task_id=task_id,
            article_id=article_id,
            metadata=metadata,
        )

    async def record_queue_throughput(self, tasks_per_hour: float, window_ms: float) -> None:
        await self.record_metric(
            MetricType.QUEUE_THROUGHPUT,
            tasks_per_hour,
            "tasks/hour",
            metadata={"window_ms": window_ms},
        )

    async def record_worker_utilization(self, utilization_percent: float) -> None:
        await self.record_metric(MetricType.WORKER_UTILIZATION, utilization_percent, "percent")

    async def record_error_rate(self, error_rate_percent: float, total_tasks: int) -> None:
        await self.record_metric(
            MetricType.ERROR_RATE,
            error_rate_percent,
            "percent",
            metadata={"total_tasks": total_tasks},
        )

    async def record_queue_depth(self, depth: int) -> None:
        await self.record_metric(MetricType.QUEUE_DEPTH, depth, "count")

    async def record_embedding_generation_time(
        self, duration_ms: float, *, article_id: int | None = None, chunk_count: int = 0
    ) -> None:
        await self.record_metric(
            MetricType.EMBEDDING_GENERATION_TIME,
            duration_ms,
            "ms",
            article_id=article_id,
            metadata={"chunk_count": chunk_count},
        )

    async def record_database_query_time(self, duration_ms: float, query_type: str) -> None:
        await self.record_metric(
            MetricType.DATABASE_QUERY_TIME,
            duration_ms,
            "ms",
            metadata={"query_type": query_type},
        )

    async def record_bulk_operation_time(
        self, duration_ms: float, operation_id: str, *, processed: int, failed: int
    ) -> None:
        await self.record_metric(
            MetricType.BULK_OPERATION_TIME,
            duration_ms,
            "ms",
            operation_id=operation_id,
            metadata={"processed": processed, "failed": failed},
        )

    async def record_search_time(
        self, duration_ms: float, search_type: str, result_count: int
    ) -> None:
        await self.record_metric(
            MetricType.SEARCH_TIME,
            duration_ms,
            "ms",
            metadata={"search_type": search_type, "result_count": result_count},
        )

    # ── Reporting ───────────────────────────────────────────────────

    async def get_metric_statistics(
        self, metric_type: MetricType, start: datetime, end: datetime
    ) -> MetricStatistics | None:
        """Count, min, max, mean, median, p95 and p99 of one metric; None when empty."""
        samples = await self._repo.get_samples(metric_type, start, end)
        if not samples:
            return None

        values = sorted(s.value for s in samples)
        return MetricStatistics(
            metric_type=metric_type,
            count=len(values),
            min=values[0],
            max=values[-1],
            average=_mean(values),
            median=percentile(values, 0.5),
            p95=percentile(values, 0.95),
            p99=percentile(values, 0.99),
            unit=samples[0].unit,
            start=start,
            end=end,
        )

    async def get_performance_summary(
        self, start: datetime | None = None, end: datetime | None = None
    ) -> PerformanceSummary:
        """Composite report over ``[start, end]``; defaults to the last 24 hours."""
        end = end or datetime.now(timezone.utc)
        start = start or end - timedelta(hours=24)
        window_hours = max((end - start).total_seconds() / 3600, 1e-9)

        async def values_of(metric_type: MetricType) -> list[MetricSample]:
            return await self._repo.get_samples(metric_type, start, end)

        processing = await values_of(MetricType.TASK_PROCESSING_TIME)
        depth = [s.value for s in await values_of(MetricType.QUEUE_DEPTH)]
        throughput = [s.value for s in await values_of(MetricType.QUEUE_THROUGHPUT)]
        utilization = [s.value for s in await values_of(MetricType.WORKER_UTILIZATION)]
        error_rate = [s.value for s in await values_of(MetricType.ERROR_RATE)]
        db_time = [s.value for s in await values_of(MetricType.DATABASE_QUERY_TIME)]
        embed_time = [s.value for s in await values_of(MetricType.EMBEDDING_GENERATION_TIME)]
        search_time = [s.value for s in await values_of(MetricType.SEARCH_TIME)]

        succeeded = sum(1 for s in processing if s.metadata.get("success", True))
        waits = [
            float(s.metadata["wait_time_ms"])
            for s in processing
            if s.metadata.get("wait_time_ms") is not None
        ]

        return PerformanceSummary(
            start=start,
            end=end,
            task_metrics=TaskMetrics(
                total_processed=len(processing),
                average_processing_time=_mean([s.value for s in processing]),
                success_rate=(succeeded / len(processing) * 100) if processing else 0.0,
                throughput_per_hour=len(processing) / window_hours,
            ),
            queue_metrics=QueueMetrics(
                average_depth=_mean(depth),
                max_depth=max(depth) if depth else 0.0,
                average_wait_time=_mean(waits),
            ),
            worker_metrics=WorkerMetrics(
                utilization=_mean(utilization),
                average_tasks_per_hour=_mean(throughput),
                error_rate=_mean(error_rate),
            ),
            system_metrics=SystemMetrics(
                average_database_query_time=_mean(db_time),
                average_embedding_time=_mean(embed_time),
                average_search_time=_mean(search_time),
            ),
        )

    async def query_metrics(self, filters: MetricFilters | None = None) -> list[MetricSample]:
        return await self._repo.query(filters or MetricFilters())

    async def cleanup_old_metrics(self, retention_days: int | None = None) -> int:
        days = retention_days if retention_days is not None else self._retention_days
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        deleted = await self._repo.delete_before(cutoff)
        logger.info("Removed %d metric samples older than %d days", deleted, days)
        return deleted
