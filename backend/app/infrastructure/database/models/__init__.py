from .article import ArticleModel
from .audit_log import AuditLogModel
from .embedding_models import EmbeddingModel
from .embedding_task_models import EmbeddingTaskModel
from .performance_metric_models import PerformanceMetricModel
from .worker_status import WORKER_STATUS_ID, WorkerStatusModel

__all__ = [
    "ArticleModel",
    "AuditLogModel",
    "EmbeddingModel",
    "EmbeddingTaskModel",
    "PerformanceMetricModel",
    "WORKER_STATUS_ID",
    "WorkerStatusModel",
]
