"""Concrete repository for the audit trail backed by SQLAlchemy."""

from datetime import datetime

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.application.interfaces import AuditLogRepository
from app.domain.entities import (
    AuditLogEntry,
    AuditLogFilters,
    AuditLogStatistics,
    LogCategory,
    LogLevel,
)
from app.infrastructure.database.base import ensure_utc
from app.infrastructure.database.errors import database_errors
from app.infrastructure.database.models import AuditLogModel


class SQLAlchemyAuditLogRepository(AuditLogRepository):
    """Implements the AuditLogRepository port using SQLAlchemy."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    def _to_entity(self, model: AuditLogModel) -> AuditLogEntry:
        """Map ORM model → domain entity."""
        return AuditLogEntry(
            id=model.id,
            timestamp=ensure_utc(model.timestamp),
            level=LogLevel(model.level),
            category=LogCategory(model.category),
            message=model.message,
            task_id=model.task_id,
            article_id=model.article_id,
            operation_id=model.operation_id,
            metadata=dict(model.metadata_ or {}),
            duration_ms=model.duration_ms,
            error=model.error,
            stack_trace=model.stack_trace,
        )

    def _to_model(self, entity: AuditLogEntry) -> AuditLogModel:
        """Map domain entity → ORM model."""
        return AuditLogModel(
            timestamp=entity.timestamp,
            level=entity.level.value,
            category=entity.category.value,
            message=entity.message,
            task_id=entity.task_id,
            article_id=entity.article_id,
            operation_id=entity.operation_id,
            metadata_=dict(entity.metadata),
            duration_ms=entity.duration_ms,
            error=entity.error,
            stack_trace=entity.stack_trace,
        )

    async def create(self, entry: AuditLogEntry) -> AuditLogEntry:
        with database_errors("Write audit log"):
            async with self._session_factory() as session, session.begin():
                model = self._to_model(entry)
                session.add(model)
                await session.flush()
                return self._to_entity(model)

    async def query(self, filters: AuditLogFilters) -> list[AuditLogEntry]:
        stmt = select(AuditLogModel)
        if filters.level is not None:
            stmt = stmt.where(AuditLogModel.level == filters.level.value)
        if filters.category is not None:
            stmt = stmt.where(AuditLogModel.category == filters.category.value)
        if filters.task_id is not None:
            stmt = stmt.where(AuditLogModel.task_id == filters.task_id)
        if filters.article_id is not None:
            stmt = stmt.where(AuditLogModel.article_id == filters.article_id)
        if filters.operation_id is not None:
            stmt = stmt.where(AuditLogModel.operation_id == filters.operation_id)
        if filters.start is not None:
            stmt = stmt.where(AuditLogModel.timestamp >= filters.start)
        if filters.end is not None:
            stmt = stmt.where(AuditLogModel.timestamp <= filters.end)
        stmt = (
            stmt.order_by(AuditLogModel.timestamp.desc())
            .offset(filters.offset)
            .limit(filters.limit)
        )
        with database_errors("Query audit logs"):
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return [self._to_entity(row) for row in result.scalars().all()]

    async def get_statistics(self, errors_since: datetime) -> AuditLogStatistics:
        with database_errors("Get audit log statistics"):
            async with self._session_factory() as session:
                total, oldest, newest = (
                    await session.execute(
                        select(
                            func.count(),
                            func.min(AuditLogModel.timestamp),
                            func.max(AuditLogModel.timestamp),
                        ).select_from(AuditLogModel)
                    )
                ).one()
                by_level = (
                    await session.execute(
                        select(AuditLogModel.level, func.count()).group_by(AuditLogModel.level)
                    )
                ).all()
                by_category = (
                    await session.execute(
                        select(AuditLogModel.category, func.count()).group_by(
                            AuditLogModel.category
                        )
                    )
                ).all()
                recent_errors = (
                    await session.execute(
                        select(func.count())
                        .select_from(AuditLogModel)
                        .where(AuditLogModel.level == LogLevel.ERROR.value)
                        .where(AuditLogModel.timestamp >= errors_since)
                    )
                ).scalar_one()

        return AuditLogStatistics(
            total_entries=int(total),
            entries_by_level={level: int(count) for level, count in by_level},
            entries_by_category={category: int(count) for category, count in by_category},
            recent_errors=int(recent_errors),
            oldest_entry=ensure_utc(oldest),
            newest_entry=ensure_utc(newest),
        )

    async def delete_before(self, cutoff: datetime) -> int:
        with database_errors("Clean up audit logs"):
            async with self._session_factory() as session, session.begin():
                result = await session.execute(
                    delete(AuditLogModel).where(AuditLogModel.timestamp < cutoff)
                )
                return result.rowcount
