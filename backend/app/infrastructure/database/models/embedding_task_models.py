"""SQLAlchemy ORM model for the embedding task queue."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    DateTime,
    Index,
    Integer,
    String,
    Text,
)

from app.infrastructure.database.base import Base, JSONDocument


def _generate_uuid() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EmbeddingTaskModel(Base):
    """A single unit of work in the embedding queue.

    ``article_id`` deliberately has no foreign key: a delete task must outlive
    the article it cleans up after.
    """

    __tablename__ = "embedding_tasks"

    id = Column(String(36), primary_key=True, default=_generate_uuid)
    article_id = Column(Integer, nullable=False, index=True)
    slug = Column(String(255), nullable=False)
    operation = Column(String(10), nullable=False)  # "create" | "update" | "delete"
    priority = Column(String(10), nullable=False, default="normal")
    status = Column(String(20), nullable=False, default="pending", index=True)
    attempts = Column(Integer, nullable=False, default=0)
    max_attempts = Column(Integer, nullable=False, default=3)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    scheduled_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    error_message = Column(Text, nullable=True)
    metadata_ = Column("metadata", JSONDocument, nullable=False, default=dict)

    __table_args__ = (
        Index("idx_embedding_tasks_dequeue", "status", "priority", "scheduled_at", "created_at"),
        Index("idx_embedding_tasks_processed_at", "processed_at"),
    )
