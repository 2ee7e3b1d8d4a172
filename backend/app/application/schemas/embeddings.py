"""Pydantic response schemas for the embedding queue, worker and search endpoints."""

from datetime import datetime

from pydantic import BaseModel


class QueueStatsResponse(BaseModel):
    pending: int
    processing: int
    completed: int
    failed: int
    total: int


class TaskErrorResponse(BaseModel):
    task_id: str
    slug: str
    operation: str
    status: str
    attempts: int
    error_message: str
    occurred_at: datetime | None = None

    model_config = {"from_attributes": True}


class RecentActivityResponse(BaseModel):
    tasks_completed_last_24h: int
    tasks_failed_last_24h: int
    average_processing_time: float | None = None

    model_config = {"from_attributes": True}


class DetailedQueueStatsResponse(BaseModel):
    """Queue counters plus breakdowns of active work and recent failures."""

    stats: QueueStatsResponse
    tasks_by_priority: dict[str, int]
    tasks_by_operation: dict[str, int]
    recent_activity: RecentActivityResponse
    recent_errors: list[TaskErrorResponse]


class WorkerStatsResponse(BaseModel):
    is_running: bool
    tasks_processed: int
    tasks_succeeded: int
    tasks_failed: int
    average_processing_time: float
    started_at: datetime | None = None
    last_heartbeat: datetime | None = None

    model_config = {"from_attributes": True}


class EmbeddingTaskResponse(BaseModel):
    id: str
    article_id: int
    slug: str
    operation: str
    priority: str
    status: str
    attempts: int
    max_attempts: int
    created_at: datetime
    scheduled_at: datetime
    processed_at: datetime | None = None
    completed_at: datetime | None = None
    error_message: str | None = None

    model_config = {"from_attributes": True}


class ArticleEmbeddingStatusResponse(BaseModel):
    """Latest embedding task of an article, if it ever had one."""

    slug: str
    article_id: int
    latest_task: EmbeddingTaskResponse | None = None
    task_count: int = 0


class SearchResultResponse(BaseModel):
    slug: str
    title: str
    folder: str
    score: float
    snippet: str
    heading_path: list[str]
    chunk_index: int


class IndexStatsResponse(BaseModel):
    total_chunks: int
    total_articles: int
    indexed_articles: int
    unindexed_articles: int
    similarity_strategy: str


class RebuildResponse(BaseModel):
    processed: int
    failed: int
    failed_slugs: list[str]
