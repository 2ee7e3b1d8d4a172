"""Article CRUD endpoints, plus per-article embedding status."""

from fastapi import APIRouter, Depends, status

from app.application.schemas import (
    ArticleCreate,
    ArticleEmbeddingStatusResponse,
    ArticleResponse,
    ArticleUpdate,
    EmbeddingTaskResponse,
)
from app.application.services import ArticleService
from app.domain.entities import ArticleMetadata, TaskPriority
from app.domain.exceptions import ServiceError
from app.infrastructure.dependencies import get_article_service
from app.presentation.api.v1.errors import to_http_exception

router = APIRouter(prefix="/articles", tags=["Articles"])


@router.get("")
async def list_articles(
    service: ArticleService = Depends(get_article_service),
) -> list[dict]:
    """List metadata of every article."""
    articles: list[ArticleMetadata] = await service.list_articles()
    return [
        {
            "slug": a.slug,
            "title": a.title,
            "folder": a.folder,
            "is_public": a.is_public,
            "created_at": a.created_at,
            "updated_at": a.updated_at,
        }
        for a in articles
    ]


@router.get("/{slug:path}/embedding-status", response_model=ArticleEmbeddingStatusResponse)
async def get_embedding_status(
    slug: str,
    service: ArticleService = Depends(get_article_service),
) -> ArticleEmbeddingStatusResponse:
    """Latest embedding task of an article."""
    try:
        article, tasks = await service.get_article_embedding_status(slug)
    except ServiceError as e:
        raise to_http_exception(e)
    latest = tasks[0] if tasks else None
    return ArticleEmbeddingStatusResponse(
        slug=article.slug,
        article_id=article.id,
        latest_task=EmbeddingTaskResponse.model_validate(latest, from_attributes=True) if latest else None,
        task_count=len(tasks),
    )


@router.post("/{slug:path}/embedding-retry", status_code=status.HTTP_202_ACCEPTED)
async def retry_embedding(
    slug: str,
    priority: TaskPriority = TaskPriority.HIGH,
    service: ArticleService = Depends(get_article_service),
) -> dict:
    """Queue a fresh embedding update for the article."""
    try:
        task_id = await service.retry_article_embedding(slug, priority)
    except ServiceError as e:
        raise to_http_exception(e)
    return {"task_id": task_id}


@router.get("/{slug:path}", response_model=ArticleResponse)
async def get_article(
    slug: str,
    service: ArticleService = Depends(get_article_service),
) -> ArticleResponse:
    """Retrieve a single article by slug."""
    try:
        article = await service.get_article(slug)
    except ServiceError as e:
        raise to_http_exception(e)
    return ArticleResponse.model_validate(article, from_attributes=True)


@router.post("", response_model=ArticleResponse, status_code=status.HTTP_201_CREATED)
async def create_article(
    data: ArticleCreate,
    service: ArticleService = Depends(get_article_service),
) -> ArticleResponse:
    """Create a new article and queue its embedding."""
    try:
        article = await service.create_article(data)
    except ServiceError as e:
        raise to_http_exception(e)
    return ArticleResponse.model_validate(article, from_attributes=True)


@router.put("/{slug:path}", response_model=ArticleResponse)
async def update_article(
    slug: str,
    data: ArticleUpdate,
    service: ArticleService = Depends(get_article_service),
) -> ArticleResponse:
    """Update an existing article and queue re-embedding."""
    try:
        article = await service.update_article(slug, data)
    except ServiceError as e:
        raise to_http_exception(e)
    return ArticleResponse.model_validate(article, from_attributes=True)


@router.delete("/{slug:path}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_article(
    slug: str,
    service: ArticleService = Depends(get_article_service),
) -> None:
    """Delete an article; its embeddings are removed by the worker."""
    try:
        await service.delete_article(slug)
    except ServiceError as e:
        raise to_http_exception(e)
