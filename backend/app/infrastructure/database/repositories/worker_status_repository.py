"""SQLAlchemy implementation of the WorkerStatusRepository (singleton row)."""

from datetime import datetime

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.application.interfaces.worker_status_repository import WorkerStatusRepository
from app.domain.entities import WorkerStatus
from app.infrastructure.database.base import ensure_utc
from app.infrastructure.database.errors import database_errors
from app.infrastructure.database.models import WORKER_STATUS_ID, WorkerStatusModel


class SQLAlchemyWorkerStatusRepository(WorkerStatusRepository):
    """Persists the worker's status so it survives restarts and is visible to health checks."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get(self) -> WorkerStatus:
        with database_errors("Get worker status"):
            async with self._session_factory() as session:
                model = await session.get(WorkerStatusModel, WORKER_STATUS_ID)
                return self._to_domain(model) if model else WorkerStatus()

    async def mark_started(self, now: datetime) -> None:
        with database_errors("Mark worker started"):
            async with self._session_factory() as session, session.begin():
                model = await self._get_or_create(session)
                model.is_running = True
                model.tasks_processed = 0
                model.tasks_succeeded = 0
                model.tasks_failed = 0
                model.started_at = now
                model.last_heartbeat = now

    async def mark_stopped(self) -> None:
        with database_errors("Mark worker stopped"):
            async with self._session_factory() as session, session.begin():
                model = await self._get_or_create(session)
                model.is_running = False

    async def heartbeat(self, now: datetime) -> None:
        with database_errors("Update worker heartbeat"):
            async with self._session_factory() as session, session.begin():
                model = await self._get_or_create(session)
                model.last_heartbeat = now

    async def increment(self, *, succeeded: int = 0, failed: int = 0) -> None:
        with database_errors("Update worker counters"):
            async with self._session_factory() as session, session.begin():
                await self._get_or_create(session)
                await session.execute(
                    update(WorkerStatusModel)
                    .where(WorkerStatusModel.id == WORKER_STATUS_ID)
                    .values(
                        tasks_processed=WorkerStatusModel.tasks_processed + succeeded + failed,
                        tasks_succeeded=WorkerStatusModel.tasks_succeeded + succeeded,
                        tasks_failed=WorkerStatusModel.tasks_failed + failed,
                    )
                )

    @staticmethod
    async def _get_or_create(session: AsyncSession) -> WorkerStatusModel:
        model = await session.get(WorkerStatusModel, WORKER_STATUS_ID)
        if model is None:
            model = WorkerStatusModel(id=WORKER_STATUS_ID)
            session.add(model)
            await session.flush()
        return model

    @staticmethod
    def _to_domain(model: WorkerStatusModel) -> WorkerStatus:
        return WorkerStatus(
            is_running=model.is_running,
            tasks_processed=model.tasks_processed,
            tasks_succeeded=model.tasks_succeeded,
            tasks_failed=model.tasks_failed,
            started_at=ensure_utc(model.started_at),
            last_heartbeat=ensure_utc(model.last_heartbeat),
        )
