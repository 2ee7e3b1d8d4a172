from .article_repository import ArticleRepository
from .audit_log_repository import AuditLogRepository
from .embedding_provider import EmbeddingProvider
from .embedding_repository import EmbeddingRepository
from .embedding_task_repository import EmbeddingTaskRepository
from .metrics_repository import MetricsRepository
from .similarity_strategy import SimilarityStrategy
from .worker_status_repository import WorkerStatusRepository

__all__ = [
    "ArticleRepository",
    "AuditLogRepository",
    "EmbeddingProvider",
    "EmbeddingRepository",
    "EmbeddingTaskRepository",
    "MetricsRepository",
    "SimilarityStrategy",
    "WorkerStatusRepository",
]
