"""SQLAlchemy ORM model for append-only performance metric samples."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    Index,
    Integer,
    String,
)

from app.infrastructure.database.base import Base, JSONDocument


def _generate_uuid() -> str:
    return str(uuid.uuid4())


class PerformanceMetricModel(Base):
    """A single timestamped measurement."""

    __tablename__ = "performance_metrics"

    id = Column(String(36), primary_key=True, default=_generate_uuid)
    timestamp = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    metric_type = Column(String(50), nullable=False)
    value = Column(Float, nullable=False)
    unit = Column(String(20), nullable=False)
    task_id = Column(String(36), nullable=True, index=True)
    article_id = Column(Integer, nullable=True, index=True)
    operation_id = Column(String(100), nullable=True)
    metadata_ = Column("metadata", JSONDocument, nullable=False, default=dict)

    __table_args__ = (
        Index("idx_performance_metrics_type_timestamp", "metric_type", "timestamp"),
    )
