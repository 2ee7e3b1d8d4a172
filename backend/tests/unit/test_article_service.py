"""Unit tests for the ArticleService."""

import pytest

from app.application.schemas import ArticleCreate, ArticleUpdate
from app.application.services import ArticleService, EmbeddingQueueService
from app.config import EmbeddingQueueConfig
from app.domain.entities import TaskOperation, TaskPriority, TaskStatus
from app.domain.exceptions import ErrorKind, ServiceError

from fakes import FakeArticleRepository, FakeTaskRepository


@pytest.fixture
def tasks() -> FakeTaskRepository:
    return FakeTaskRepository()


@pytest.fixture
def service(tasks: FakeTaskRepository) -> ArticleService:
    return ArticleService(FakeArticleRepository(), EmbeddingQueueService(tasks), EmbeddingQueueConfig())


def _create(slug: str = "intro", **kwargs) -> ArticleCreate:
    return ArticleCreate(slug=slug, title=kwargs.pop("title", "Intro"), content=kwargs.pop("content", "Body"), **kwargs)


def _operations(tasks: FakeTaskRepository) -> list[TaskOperation]:
    ordered = sorted(tasks.tasks.values(), key=lambda t: t.created_at)
    return [t.operation for t in ordered]


@pytest.mark.asyncio
async def test_create_article_enqueues_create_task(service: ArticleService, tasks):
    article = await service.create_article(_create(folder="/guides/"))

    assert article.id is not None
    assert article.folder == "guides"
    assert _operations(tasks) == [TaskOperation.CREATE]
    task = next(iter(tasks.tasks.values()))
    assert task.article_id == article.id
    assert task.priority == TaskPriority.NORMAL


@pytest.mark.asyncio
async def test_update_and_delete_enqueue_tasks(service: ArticleService, tasks):
    await service.create_article(_create())
    updated = await service.update_article("intro", ArticleUpdate(title="New"))
    assert updated.title == "New"
    assert updated.content == "Body"

    assert await service.delete_article("intro") is True
    assert _operations(tasks) == [TaskOperation.CREATE, TaskOperation.UPDATE, TaskOperation.DELETE]

    with pytest.raises(ServiceError) as exc_info:
        await service.get_article("intro")
    assert exc_info.value.kind == ErrorKind.NOT_FOUND


@pytest.mark.asyncio
async def test_disabled_queue_enqueues_nothing(tasks: FakeTaskRepository):
    service = ArticleService(
        FakeArticleRepository(), EmbeddingQueueService(tasks), EmbeddingQueueConfig(enabled=False)
    )
    await service.create_article(_create())
    assert tasks.tasks == {}


@pytest.mark.asyncio
async def test_embedding_status_and_retry(service: ArticleService, tasks):
    await service.create_article(_create())

    task_id = await service.retry_article_embedding("intro")

    article, article_tasks = await service.get_article_embedding_status("intro")
    assert article.slug == "intro"
    assert len(article_tasks) == 2
    retry = tasks.tasks[task_id]
    assert retry.priority == TaskPriority.HIGH
    assert retry.operation == TaskOperation.UPDATE
    assert retry.status == TaskStatus.PENDING


@pytest.mark.asyncio
async def test_list_articles(service: ArticleService):
    await service.create_article(_create("a1"))
    await service.create_article(_create("a2"))
    assert [a.slug for a in await service.list_articles()] == ["a1", "a2"]
