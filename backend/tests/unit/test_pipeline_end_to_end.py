"""End-to-end flow over in-memory fakes: article writes → queue → worker → search."""

import pytest

from app.application.schemas import ArticleCreate, ArticleUpdate
from app.application.services import ArticleService
from app.domain.entities import TaskStatus
from app.domain.exceptions import ErrorKind, ServiceError

from fakes import Pipeline


async def _drain(pipeline: Pipeline) -> int:
    processed = 0
    while await pipeline.worker.process_next_task():
        processed += 1
    return processed


@pytest.mark.asyncio
async def test_article_lifecycle_is_reflected_in_search():
    pipeline = Pipeline()
    articles = ArticleService(pipeline.articles, pipeline.queue, pipeline.config)

    await articles.create_article(
        ArticleCreate(slug="cats", title="Cats", content="# Cats\nCats purr softly on warm laps.")
    )
    await articles.create_article(
        ArticleCreate(slug="compilers", title="Compilers", content="Parsers build syntax trees.")
    )
    assert await _drain(pipeline) == 2

    results = await pipeline.index.semantic_search("cats purr", k=1)
    assert [r.article_metadata.slug for r in results] == ["cats"]
    assert results[0].chunk.heading_path == ["# Cats"]

    await articles.update_article("cats", ArticleUpdate(content="Dogs bark loudly at night."))
    assert await _drain(pipeline) == 1
    hits = await pipeline.index.semantic_search("dogs bark", k=2)
    assert hits[0].article_metadata.slug == "cats"
    assert "Dogs bark" in hits[0].snippet

    await articles.delete_article("cats")
    assert await _drain(pipeline) == 1
    remaining = await pipeline.index.semantic_search("dogs bark", k=5)
    assert [r.article_metadata.slug for r in remaining] == ["compilers"]

    stats = await pipeline.queue.get_queue_stats()
    assert stats.completed == 4
    assert stats.pending == stats.processing == stats.failed == 0
    worker_stats = await pipeline.worker.get_worker_stats()
    assert worker_stats.tasks_succeeded == 4


@pytest.mark.asyncio
async def test_failed_embedding_can_be_retried_after_provider_recovers():
    pipeline = Pipeline(max_retries=1)
    articles = ArticleService(pipeline.articles, pipeline.queue, pipeline.config)
    pipeline.provider.fail_with = ServiceError(ErrorKind.PROVIDER, "offline")

    await articles.create_article(ArticleCreate(slug="intro", title="Intro", content="Hello there."))
    await _drain(pipeline)
    assert (await pipeline.queue.get_queue_stats()).failed == 1

    pipeline.provider.fail_with = None
    await articles.retry_article_embedding("intro")
    await _drain(pipeline)

    _, tasks = await articles.get_article_embedding_status("intro")
    assert tasks[0].status == TaskStatus.COMPLETED
    assert (await pipeline.index.get_index_stats()).indexed_articles == 1
