"""Unit tests for the PerformanceMetricsService."""

from datetime import datetime, timedelta, timezone

import pytest

from app.application.services import PerformanceMetricsService
from app.application.services.performance_metrics_service import percentile
from app.domain.entities import MetricFilters, MetricType

from fakes import FakeMetricsRepository


class BrokenMetricsRepository(FakeMetricsRepository):
    async def add(self, sample) -> None:
        raise RuntimeError("database is gone")


@pytest.fixture
def repo() -> FakeMetricsRepository:
    return FakeMetricsRepository()


@pytest.fixture
def service(repo: FakeMetricsRepository) -> PerformanceMetricsService:
    return PerformanceMetricsService(repo)


def _window() -> tuple[datetime, datetime]:
    now = datetime.now(timezone.utc)
    return now - timedelta(hours=1), now + timedelta(seconds=1)


def test_percentile_interpolates_linearly():
    values = [1.0, 2.0, 3.0, 4.0]
    assert percentile(values, 0.5) == pytest.approx(2.5)
    assert percentile(values, 0.95) == pytest.approx(3.85)
    assert percentile(values, 0.0) == 1.0
    assert percentile(values, 1.0) == 4.0
    assert percentile([7.0], 0.99) == 7.0


@pytest.mark.asyncio
async def test_metric_statistics(service: PerformanceMetricsService):
    for value in (10, 20, 30, 40, 50):
        await service.record_search_time(value, "semantic", 3)

    stats = await service.get_metric_statistics(MetricType.SEARCH_TIME, *_window())

    assert stats.count == 5
    assert stats.min == 10
    assert stats.max == 50
    assert stats.average == pytest.approx(30)
    assert stats.median == pytest.approx(30)
    assert stats.p95 == pytest.approx(48)
    assert stats.p99 == pytest.approx(49.6)
    assert stats.unit == "ms"


@pytest.mark.asyncio
async def test_metric_statistics_empty_window_is_none(service: PerformanceMetricsService):
    assert await service.get_metric_statistics(MetricType.QUEUE_DEPTH, *_window()) is None


@pytest.mark.asyncio
async def test_recording_failures_are_swallowed():
    service = PerformanceMetricsService(BrokenMetricsRepository())
    await service.record_queue_depth(5)


@pytest.mark.asyncio
async def test_performance_summary(service: PerformanceMetricsService):
    await service.record_task_processing_time("t1", 1, 100, "create", success=True, wait_time_ms=50)
    await service.record_task_processing_time("t2", 2, 300, "update", success=False, wait_time_ms=150)
    await service.record_queue_depth(4)
    await service.record_queue_depth(10)
    await service.record_worker_utilization(25)
    await service.record_error_rate(50, total_tasks=2)
    await service.record_embedding_generation_time(80, article_id=1, chunk_count=2)

    summary = await service.get_performance_summary()

    assert summary.task_metrics.total_processed == 2
    assert summary.task_metrics.average_processing_time == pytest.approx(200)
    assert summary.task_metrics.success_rate == pytest.approx(50)
    assert summary.queue_metrics.average_depth == pytest.approx(7)
    assert summary.queue_metrics.max_depth == 10
    assert summary.queue_metrics.average_wait_time == pytest.approx(100)
    assert summary.worker_metrics.utilization == pytest.approx(25)
    assert summary.worker_metrics.error_rate == pytest.approx(50)
    assert summary.system_metrics.average_embedding_time == pytest.approx(80)
    assert summary.end - summary.start == timedelta(hours=24)


@pytest.mark.asyncio
async def test_query_and_cleanup(service: PerformanceMetricsService, repo: FakeMetricsRepository):
    await service.record_queue_depth(1)
    await service.record_queue_depth(2)
    repo.samples[0].timestamp -= timedelta(days=45)

    newest = await service.query_metrics(MetricFilters(metric_type=MetricType.QUEUE_DEPTH, limit=1))
    assert [s.value for s in newest] == [2.0]

    assert await service.cleanup_old_metrics() == 1
    assert len(repo.samples) == 1
