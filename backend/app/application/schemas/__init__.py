from .article import ArticleCreate, ArticleUpdate, ArticleResponse
from .embeddings import (
    ArticleEmbeddingStatusResponse,
    DetailedQueueStatsResponse,
    EmbeddingTaskResponse,
    IndexStatsResponse,
    QueueStatsResponse,
    RebuildResponse,
    RecentActivityResponse,
    SearchResultResponse,
    TaskErrorResponse,
    WorkerStatsResponse,
)

__all__ = [
    "ArticleCreate",
    "ArticleUpdate",
    "ArticleResponse",
    "ArticleEmbeddingStatusResponse",
    "DetailedQueueStatsResponse",
    "EmbeddingTaskResponse",
    "IndexStatsResponse",
    "QueueStatsResponse",
    "RebuildResponse",
    "RecentActivityResponse",
    "SearchResultResponse",
    "TaskErrorResponse",
    "WorkerStatsResponse",
]
