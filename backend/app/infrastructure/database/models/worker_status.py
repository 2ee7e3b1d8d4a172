"""SQLAlchemy ORM model for the background worker's singleton status row."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer
from sqlalchemy.orm import Mapped, mapped_column

from app.infrastructure.database.base import Base

WORKER_STATUS_ID = 1


class WorkerStatusModel(Base):
    """ORM model — maps to the 'embedding_worker_status' table (one row, id=1)."""

    __tablename__ = "embedding_worker_status"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=WORKER_STATUS_ID)
    is_running: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    tasks_processed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tasks_succeeded: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tasks_failed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_heartbeat: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<WorkerStatusModel(running={self.is_running}, "
            f"processed={self.tasks_processed}, failed={self.tasks_failed})>"
        )
