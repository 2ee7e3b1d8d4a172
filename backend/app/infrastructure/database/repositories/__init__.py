from .article_repository import SQLAlchemyArticleRepository
from .audit_log_repository import SQLAlchemyAuditLogRepository
from .embedding_repository import SQLAlchemyEmbeddingRepository
from .embedding_task_repository import SQLAlchemyEmbeddingTaskRepository
from .metrics_repository import SQLAlchemyMetricsRepository
from .worker_status_repository import SQLAlchemyWorkerStatusRepository

__all__ = [
    "SQLAlchemyArticleRepository",
    "SQLAlchemyAuditLogRepository",
    "SQLAlchemyEmbeddingRepository",
    "SQLAlchemyEmbeddingTaskRepository",
    "SQLAlchemyMetricsRepository",
    "SQLAlchemyWorkerStatusRepository",
]
