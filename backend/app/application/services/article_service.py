"""Application service (use case) for Article operations.

Article writes are the producers of the embedding queue: every create,
update and delete enqueues the matching embedding task when background
embedding is enabled.
"""

import logging

from app.application.interfaces import ArticleRepository
from app.application.schemas import ArticleCreate, ArticleUpdate
from app.application.services.embedding_queue_service import EmbeddingQueueService
from app.config import EmbeddingQueueConfig
from app.domain.entities import (
    Article,
    ArticleMetadata,
    EmbeddingTask,
    TaskOperation,
    TaskPriority,
)
from app.domain.exceptions import ServiceError

logger = logging.getLogger(__name__)


class ArticleService:
    """Orchestrates article business logic. Depends on the repository port (DI)."""

    def __init__(
        self,
        repository: ArticleRepository,
        queue: EmbeddingQueueService,
        config: EmbeddingQueueConfig,
    ):
        self._repository = repository
        self._queue = queue
        self._config = config

    async def get_article(self, slug: str) -> Article:
        article = await self._repository.get_by_slug(slug)
        if article is None:
            raise ServiceError.not_found("Article", slug)
        return article

    async def list_articles(self) -> list[ArticleMetadata]:
        return await self._repository.list_articles()

    async def create_article(self, data: ArticleCreate) -> Article:
        article = Article(
            slug=data.slug,
            title=data.title,
            content=data.content,
            folder=data.folder.strip("/"),
            is_public=data.is_public,
        )
        created = await self._repository.create(article)
        await self._enqueue(created.id, created.slug, TaskOperation.CREATE)
        return created

    async def update_article(self, slug: str, data: ArticleUpdate) -> Article:
        article = await self.get_article(slug)
        folder = data.folder.strip("/") if data.folder is not None else None
        article.update(title=data.title, content=data.content, folder=folder)
        updated = await self._repository.update(article)
        await self._enqueue(updated.id, updated.slug, TaskOperation.UPDATE)
        return updated

    async def delete_article(self, slug: str) -> bool:
        article = await self.get_article(slug)
        deleted = await self._repository.delete(article.id)
        if deleted:
            await self._enqueue(article.id, article.slug, TaskOperation.DELETE)
        return deleted

    async def _enqueue(self, article_id: int, slug: str, operation: TaskOperation) -> None:
        """Queue an embedding task; the article write stands even if this fails."""
        if not self._config.enabled:
            return
        try:
            await self._queue.enqueue_task(
                article_id,
                slug,
                operation,
                TaskPriority.NORMAL,
                max_attempts=self._config.max_attempts,
            )
        except ServiceError as exc:
            logger.error("Failed to queue %s embedding for '%s': %s", operation.value, slug, exc)

    # ── Embedding status ────────────────────────────────────────────

    async def get_article_embedding_status(self, slug: str) -> tuple[Article, list[EmbeddingTask]]:
        """The article and its embedding tasks, newest first."""
        article = await self.get_article(slug)
        return article, await self._queue.get_tasks_for_article(article.id)

    async def retry_article_embedding(
        self, slug: str, priority: TaskPriority | str = TaskPriority.HIGH
    ) -> str:
        """Queue a fresh update task for the article, regardless of its history."""
        article = await self.get_article(slug)
        return await self._queue.enqueue_task(
            article.id,
            article.slug,
            TaskOperation.UPDATE,
            priority,
            max_attempts=self._config.max_attempts,
            metadata={"reason": "manual_retry"},
        )
