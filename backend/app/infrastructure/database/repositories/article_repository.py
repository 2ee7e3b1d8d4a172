"""Concrete repository implementation backed by SQLAlchemy."""

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.application.interfaces import ArticleRepository
from app.domain.entities import Article, ArticleMetadata
from app.domain.exceptions import ServiceError
from app.infrastructure.database.base import ensure_utc
from app.infrastructure.database.errors import database_errors
from app.infrastructure.database.filters import folder_clause
from app.infrastructure.database.models import ArticleModel


def to_article_metadata(model) -> ArticleMetadata:
    """Build metadata from an ``ArticleModel`` or a row carrying the same columns."""
    return ArticleMetadata(
        slug=model.slug,
        title=model.title,
        folder=model.folder,
        created_at=ensure_utc(model.created_at),
        updated_at=ensure_utc(model.updated_at),
        is_public=model.is_public,
    )


class SQLAlchemyArticleRepository(ArticleRepository):
    """Implements the ArticleRepository port using SQLAlchemy async sessions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    def _to_entity(self, model: ArticleModel) -> Article:
        """Map ORM model → domain entity."""
        return Article(
            id=model.id,
            slug=model.slug,
            title=model.title,
            content=model.content,
            folder=model.folder,
            is_public=model.is_public,
            created_at=ensure_utc(model.created_at),
            updated_at=ensure_utc(model.updated_at),
        )

    def _to_model(self, entity: Article) -> ArticleModel:
        """Map domain entity → ORM model (for creation)."""
        return ArticleModel(
            slug=entity.slug,
            title=entity.title,
            content=entity.content,
            folder=entity.folder,
            is_public=entity.is_public,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )

    async def get_by_id(self, article_id: int) -> Article | None:
        with database_errors("Get article"):
            async with self._session_factory() as session:
                result = await session.get(ArticleModel, article_id)
                return self._to_entity(result) if result else None

    async def get_by_slug(self, slug: str) -> Article | None:
        with database_errors("Get article by slug"):
            async with self._session_factory() as session:
                result = await session.execute(
                    select(ArticleModel).where(ArticleModel.slug == slug)
                )
                model = result.scalar_one_or_none()
                return self._to_entity(model) if model else None

    async def get_article_id(self, slug: str) -> int | None:
        with database_errors("Resolve article id"):
            async with self._session_factory() as session:
                result = await session.execute(
                    select(ArticleModel.id).where(ArticleModel.slug == slug)
                )
                return result.scalar_one_or_none()

    async def list_articles(self) -> list[ArticleMetadata]:
        stmt = select(
            ArticleModel.slug,
            ArticleModel.title,
            ArticleModel.folder,
            ArticleModel.is_public,
            ArticleModel.created_at,
            ArticleModel.updated_at,
        ).order_by(ArticleModel.updated_at.desc())
        with database_errors("List articles"):
            async with self._session_factory() as session:
                rows = (await session.execute(stmt)).all()
        return [to_article_metadata(row) for row in rows]

    async def search_titles(
        self, query: str, folder: str | None = None, limit: int = 20
    ) -> list[str]:
        needle = query.strip().lower()
        if not needle:
            return []

        title = func.lower(ArticleModel.title)
        match_rank = case(
            (title == needle, 0),
            (title.like(f"{needle}%"), 1),
            else_=2,
        )
        stmt = (
            select(ArticleModel.slug)
            .where(title.like(f"%{needle}%"))
            .where(folder_clause(ArticleModel.folder, folder))
            .order_by(match_rank, ArticleModel.title)
            .limit(limit)
        )
        with database_errors("Search article titles"):
            async with self._session_factory() as session:
                return list((await session.execute(stmt)).scalars().all())

    async def create(self, article: Article) -> Article:
        with database_errors("Create article"):
            async with self._session_factory() as session, session.begin():
                model = self._to_model(article)
                session.add(model)
                await session.flush()
                return self._to_entity(model)

    async def update(self, article: Article) -> Article:
        with database_errors("Update article"):
            async with self._session_factory() as session, session.begin():
                model = await session.get(ArticleModel, article.id)
                if model is None:
                    raise ServiceError.not_found("Article", article.id)
                model.title = article.title
                model.content = article.content
                model.folder = article.folder
                model.is_public = article.is_public
                await session.flush()
                return self._to_entity(model)

    async def delete(self, article_id: int) -> bool:
        with database_errors("Delete article"):
            async with self._session_factory() as session, session.begin():
                model = await session.get(ArticleModel, article_id)
                if model is None:
                    return False
                await session.delete(model)
                await session.flush()
                return True
