"""Embedding queue, worker and search endpoints."""

from dataclasses import asdict

from fastapi import APIRouter, Depends, Query

from app.application.schemas import (
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
from app.application.services import BackgroundWorker, EmbeddingIndexService, EmbeddingQueueService
from app.domain.entities import SearchResult, TaskStatus
from app.domain.exceptions import ServiceError
from app.infrastructure.dependencies import get_index_service, get_queue_service, get_worker
from app.presentation.api.v1.errors import to_http_exception

router = APIRouter(prefix="/embeddings", tags=["Embeddings"])


def _to_search_response(result: SearchResult) -> SearchResultResponse:
    meta = result.article_metadata
    return SearchResultResponse(
        slug=meta.slug,
        title=meta.title,
        folder=meta.folder,
        score=result.score,
        snippet=result.snippet,
        heading_path=result.chunk.heading_path,
        chunk_index=result.chunk.chunk_index,
    )


@router.get("/queue", response_model=DetailedQueueStatsResponse)
async def get_queue_stats(
    queue: EmbeddingQueueService = Depends(get_queue_service),
) -> DetailedQueueStatsResponse:
    """Queue counters, active work by priority/operation and recent errors."""
    try:
        detailed = await queue.get_detailed_queue_stats()
    except ServiceError as e:
        raise to_http_exception(e)
    return DetailedQueueStatsResponse(
        stats=QueueStatsResponse(**detailed.stats.to_dict()),
        tasks_by_priority=detailed.tasks_by_priority,
        tasks_by_operation=detailed.tasks_by_operation,
        recent_activity=RecentActivityResponse.model_validate(detailed.recent_activity),
        recent_errors=[TaskErrorResponse.model_validate(e) for e in detailed.recent_errors],
    )


@router.get("/queue/tasks", response_model=list[EmbeddingTaskResponse])
async def list_tasks(
    status: TaskStatus = TaskStatus.PENDING,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    queue: EmbeddingQueueService = Depends(get_queue_service),
) -> list[EmbeddingTaskResponse]:
    """Tasks in one status, newest first."""
    try:
        tasks = await queue.get_tasks_by_status(status, limit=limit, offset=offset)
    except ServiceError as e:
        raise to_http_exception(e)
    return [EmbeddingTaskResponse.model_validate(t, from_attributes=True) for t in tasks]


@router.post("/queue/retry-failed")
async def retry_failed_tasks(
    queue: EmbeddingQueueService = Depends(get_queue_service),
) -> dict:
    try:
        return {"requeued": await queue.retry_failed_tasks()}
    except ServiceError as e:
        raise to_http_exception(e)


@router.get("/worker", response_model=WorkerStatsResponse)
async def get_worker_stats(
    worker: BackgroundWorker = Depends(get_worker),
) -> WorkerStatsResponse:
    try:
        stats = await worker.get_worker_stats()
    except ServiceError as e:
        raise to_http_exception(e)
    return WorkerStatsResponse(**asdict(stats))


@router.get("/search", response_model=list[SearchResultResponse])
async def search(
    q: str = Query(..., min_length=1),
    k: int = Query(5, ge=1, le=50),
    folder: str | None = None,
    hybrid: bool = True,
    index: EmbeddingIndexService = Depends(get_index_service),
) -> list[SearchResultResponse]:
    """Semantic (or hybrid, the default) search over indexed articles."""
    try:
        if hybrid:
            results = await index.hybrid_search(q, k, folder)
        else:
            results = await index.semantic_search(q, k, folder)
    except ServiceError as e:
        raise to_http_exception(e)
    return [_to_search_response(r) for r in results]


@router.get("/index", response_model=IndexStatsResponse)
async def get_index_stats(
    index: EmbeddingIndexService = Depends(get_index_service),
) -> IndexStatsResponse:
    try:
        stats = await index.get_index_stats()
    except ServiceError as e:
        raise to_http_exception(e)
    return IndexStatsResponse(
        total_chunks=stats.total_chunks,
        total_articles=stats.total_articles,
        indexed_articles=stats.indexed_articles,
        unindexed_articles=stats.unindexed_articles,
        similarity_strategy=index.similarity_strategy,
    )


@router.post("/index/rebuild", response_model=RebuildResponse)
async def rebuild_index(
    index: EmbeddingIndexService = Depends(get_index_service),
) -> RebuildResponse:
    """Re-embed every article synchronously."""
    try:
        result = await index.rebuild_index()
    except ServiceError as e:
        raise to_http_exception(e)
    return RebuildResponse(**asdict(result))
