from .article_service import ArticleService
from .audit_logger import AuditLogger
from .background_worker import BackgroundWorker
from .embedding_index_service import EmbeddingIndexService
from .embedding_queue_service import EmbeddingQueueService
from .performance_metrics_service import PerformanceMetricsService

__all__ = [
    "ArticleService",
    "AuditLogger",
    "BackgroundWorker",
    "EmbeddingIndexService",
    "EmbeddingQueueService",
    "PerformanceMetricsService",
]
