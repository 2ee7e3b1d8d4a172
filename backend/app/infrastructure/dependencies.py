"""FastAPI dependency injection — hands out components of the app's container."""

from fastapi import Depends, Request

from app.application.services import (
    ArticleService,
    BackgroundWorker,
    EmbeddingIndexService,
    EmbeddingQueueService,
)
from app.infrastructure.container import Container


def get_container(request: Request) -> Container:
    """The container built by the lifespan and stored on ``app.state``."""
    return request.app.state.container


def get_article_service(container: Container = Depends(get_container)) -> ArticleService:
    return container.article_service


def get_queue_service(container: Container = Depends(get_container)) -> EmbeddingQueueService:
    return container.queue


def get_index_service(container: Container = Depends(get_container)) -> EmbeddingIndexService:
    return container.index


def get_worker(container: Container = Depends(get_container)) -> BackgroundWorker:
    return container.worker
