"""SQLAlchemy implementation of the MetricsRepository — append-only samples."""

import uuid
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.application.interfaces.metrics_repository import MetricsRepository
from app.domain.entities import MetricFilters, MetricSample, MetricType
from app.infrastructure.database.base import ensure_utc
from app.infrastructure.database.errors import database_errors
from app.infrastructure.database.models import PerformanceMetricModel


class SQLAlchemyMetricsRepository(MetricsRepository):
    """Concrete metric store backed by the 'performance_metrics' table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def add(self, sample: MetricSample) -> None:
        if not sample.id:
            sample.id = str(uuid.uuid4())
        model = PerformanceMetricModel(
            id=sample.id,
            timestamp=sample.timestamp,
            metric_type=sample.metric_type.value,
            value=sample.value,
            unit=sample.unit,
            task_id=sample.task_id,
            article_id=sample.article_id,
            operation_id=sample.operation_id,
            metadata_=dict(sample.metadata),
        )
        with database_errors("Record metric"):
            async with self._session_factory() as session, session.begin():
                session.add(model)

    async def get_samples(
        self, metric_type: MetricType, start: datetime, end: datetime
    ) -> list[MetricSample]:
        stmt = (
            select(PerformanceMetricModel)
            .where(PerformanceMetricModel.metric_type == metric_type.value)
            .where(PerformanceMetricModel.timestamp >= start)
            .where(PerformanceMetricModel.timestamp <= end)
            .order_by(PerformanceMetricModel.timestamp.asc())
        )
        with database_errors("Load metric samples"):
            async with self._session_factory() as session:
                models = (await session.execute(stmt)).scalars().all()
        return [self._to_domain(m) for m in models]

    async def query(self, filters: MetricFilters) -> list[MetricSample]:
        stmt = select(PerformanceMetricModel)
        if filters.metric_type is not None:
            stmt = stmt.where(PerformanceMetricModel.metric_type == filters.metric_type.value)
        if filters.start is not None:
            stmt = stmt.where(PerformanceMetricModel.timestamp >= filters.start)
        if filters.end is not None:
            stmt = stmt.where(PerformanceMetricModel.timestamp <= filters.end)
        if filters.task_id is not None:
            stmt = stmt.where(PerformanceMetricModel.task_id == filters.task_id)
        if filters.article_id is not None:
            stmt = stmt.where(PerformanceMetricModel.article_id == filters.article_id)
        if filters.operation_id is not None:
            stmt = stmt.where(PerformanceMetricModel.operation_id == filters.operation_id)
        stmt = (
            stmt.order_by(PerformanceMetricModel.timestamp.desc())
            .limit(filters.limit)
            .offset(filters.offset)
        )
        with database_errors("Query metrics"):
            async with self._session_factory() as session:
                models = (await session.execute(stmt)).scalars().all()
        return [self._to_domain(m) for m in models]

    async def delete_before(self, cutoff: datetime) -> int:
        with database_errors("Clean up metrics"):
            async with self._session_factory() as session, session.begin():
                result = await session.execute(
                    delete(PerformanceMetricModel).where(PerformanceMetricModel.timestamp < cutoff)
                )
                return result.rowcount

    @staticmethod
    def _to_domain(model: PerformanceMetricModel) -> MetricSample:
        return MetricSample(
            id=model.id,
            timestamp=ensure_utc(model.timestamp),
            metric_type=MetricType(model.metric_type),
            value=float(model.value),
            unit=model.unit,
            task_id=model.task_id,
            article_id=model.article_id,
            operation_id=model.operation_id,
            metadata=dict(model.metadata_ or {}),
        )
