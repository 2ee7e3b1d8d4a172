"""Composition root — builds every pipeline component with explicit wiring."""

import logging
from dataclasses import dataclass

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.application.interfaces import ArticleRepository, SimilarityStrategy
from app.application.services import (
    ArticleService,
    AuditLogger,
    BackgroundWorker,
    EmbeddingIndexService,
    EmbeddingQueueService,
    PerformanceMetricsService,
)
from app.config import EmbeddingQueueConfig, Settings
from app.infrastructure.database.repositories import (
    SQLAlchemyArticleRepository,
    SQLAlchemyAuditLogRepository,
    SQLAlchemyEmbeddingRepository,
    SQLAlchemyEmbeddingTaskRepository,
    SQLAlchemyMetricsRepository,
    SQLAlchemyWorkerStatusRepository,
)
from app.infrastructure.embeddings import build_embedding_provider
from app.infrastructure.search import InMemoryCosineSimilarity, NativeVectorSimilarity

logger = logging.getLogger(__name__)


@dataclass
class Container:
    """Everything the API layer and the lifespan need, built once per app."""

    settings: Settings
    queue_config: EmbeddingQueueConfig
    articles: ArticleRepository
    article_service: ArticleService
    queue: EmbeddingQueueService
    index: EmbeddingIndexService
    worker: BackgroundWorker
    metrics: PerformanceMetricsService
    audit: AuditLogger
    http_client: httpx.AsyncClient

    async def aclose(self) -> None:
        await self.worker.stop()
        await self.http_client.aclose()


def build_container(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    native_vectors: bool,
    *,
    http_client: httpx.AsyncClient | None = None,
) -> Container:
    """Wire repositories, services and the worker.

    Raises:
        ServiceError: CONFIGURATION when the embedding provider is misconfigured.
        pydantic.ValidationError: when the queue settings are out of range.
    """
    queue_config = settings.embedding_queue_config()
    http_client = http_client or httpx.AsyncClient(timeout=settings.embedding_request_timeout)

    articles = SQLAlchemyArticleRepository(session_factory)
    embeddings = SQLAlchemyEmbeddingRepository(session_factory, native_vectors=native_vectors)

    audit = AuditLogger(
        SQLAlchemyAuditLogRepository(session_factory),
        retention_days=settings.audit_log_retention_days,
    )
    metrics = PerformanceMetricsService(
        SQLAlchemyMetricsRepository(session_factory),
        retention_days=settings.metrics_retention_days,
    )
    queue = EmbeddingQueueService(
        SQLAlchemyEmbeddingTaskRepository(session_factory),
        default_max_attempts=queue_config.max_attempts,
        audit=audit,
    )

    similarity: SimilarityStrategy
    if native_vectors:
        similarity = NativeVectorSimilarity(session_factory, settings.embedding_dimensions)
    else:
        similarity = InMemoryCosineSimilarity(embeddings)
    logger.info("Similarity strategy: %s", similarity.name)

    index = EmbeddingIndexService(
        build_embedding_provider(settings, http_client),
        embeddings,
        articles,
        similarity,
        dimensions=settings.embedding_dimensions,
        chunk_size=settings.chunk_size,
        chunk_overlap=settings.chunk_overlap,
        metrics=metrics,
        audit=audit,
    )
    worker = BackgroundWorker(
        queue,
        index,
        articles,
        SQLAlchemyWorkerStatusRepository(session_factory),
        settings.embedding_queue_config,
        metrics=metrics,
        audit=audit,
    )

    return Container(
        settings=settings,
        queue_config=queue_config,
        articles=articles,
        article_service=ArticleService(articles, queue, queue_config),
        queue=queue,
        index=index,
        worker=worker,
        metrics=metrics,
        audit=audit,
        http_client=http_client,
    )
