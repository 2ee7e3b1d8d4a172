from .base import Base, JSONDocument
from .session import configure_sqlite_transactions, create_engine, create_session_factory
from .models import (
    ArticleModel,
    AuditLogModel,
    EmbeddingModel,
    EmbeddingTaskModel,
    PerformanceMetricModel,
    WorkerStatusModel,
)

__all__ = [
    "Base",
    "JSONDocument",
    "configure_sqlite_transactions",
    "create_engine",
    "create_session_factory",
    "ArticleModel",
    "AuditLogModel",
    "EmbeddingModel",
    "EmbeddingTaskModel",
    "PerformanceMetricModel",
    "WorkerStatusModel",
]
