"""SQLAlchemy implementation of EmbeddingRepository — chunk vectors per article."""

import logging

from sqlalchemy import delete, distinct, exists, func, select, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.application.interfaces.embedding_repository import EmbeddingRepository
from app.domain.entities import Embedding, IndexedChunk, IndexStats
from app.infrastructure.database.errors import database_errors
from app.infrastructure.database.filters import folder_clause
from app.infrastructure.database.models import ArticleModel, EmbeddingModel
from app.infrastructure.database.repositories.article_repository import to_article_metadata

logger = logging.getLogger(__name__)

# Columns needed to rebuild an IndexedChunk from an embeddings ⨝ articles row.
INDEXED_CHUNK_COLUMNS = (
    EmbeddingModel.chunk_id,
    EmbeddingModel.chunk_index,
    EmbeddingModel.heading_path,
    EmbeddingModel.text_content,
    ArticleModel.slug,
    ArticleModel.title,
    ArticleModel.folder,
    ArticleModel.is_public,
    ArticleModel.created_at,
    ArticleModel.updated_at,
)

_SYNC_NATIVE_VECTOR = text(
    "UPDATE embeddings SET vector = CAST(CAST(vector_data AS TEXT) AS vector) "
    "WHERE article_id = :article_id"
)


def to_indexed_chunk(row) -> IndexedChunk:
    return IndexedChunk(
        chunk_id=row.chunk_id,
        chunk_index=row.chunk_index,
        heading_path=list(row.heading_path or []),
        text=row.text_content,
        article=to_article_metadata(row),
    )


class SQLAlchemyEmbeddingRepository(EmbeddingRepository):
    """Concrete embedding store.

    Vectors always land in the portable ``vector_data`` JSON column. With
    ``native_vectors`` the pgvector ``vector`` column is filled from it inside
    the same transaction so the native similarity strategy can order by it.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        native_vectors: bool = False,
    ):
        self._session_factory = session_factory
        self._native_vectors = native_vectors

    async def replace_for_article(self, article_id: int, embeddings: list[Embedding]) -> int:
        models = [
            EmbeddingModel(
                article_id=article_id,
                chunk_id=embedding.chunk_id,
                chunk_index=embedding.chunk_index,
                heading_path=list(embedding.heading_path),
                text_content=embedding.text,
                content_hash=embedding.content_hash,
                vector_data=[float(v) for v in embedding.vector],
            )
            for embedding in embeddings
        ]

        with database_errors("Replace article embeddings"):
            async with self._session_factory() as session, session.begin():
                removed = await session.execute(
                    delete(EmbeddingModel).where(EmbeddingModel.article_id == article_id)
                )
                session.add_all(models)
                await session.flush()
                if self._native_vectors and models:
                    await session.execute(_SYNC_NATIVE_VECTOR, {"article_id": article_id})

        logger.info(
            "Replaced embeddings for article %s: %d removed, %d stored",
            article_id,
            removed.rowcount,
            len(models),
        )
        return len(models)

    async def delete_for_article(self, article_id: int) -> int:
        with database_errors("Delete article embeddings"):
            async with self._session_factory() as session, session.begin():
                result = await session.execute(
                    delete(EmbeddingModel).where(EmbeddingModel.article_id == article_id)
                )
        count = result.rowcount
        if count > 0:
            logger.info("Deleted %d embeddings for article %s", count, article_id)
        return count

    async def get_vectors_by_hash(self, article_id: int) -> dict[str, list[float]]:
        stmt = select(EmbeddingModel.content_hash, EmbeddingModel.vector_data).where(
            EmbeddingModel.article_id == article_id
        )
        with database_errors("Load existing vectors"):
            async with self._session_factory() as session:
                rows = (await session.execute(stmt)).all()
        return {content_hash: list(vector) for content_hash, vector in rows if vector}

    async def load_all(self, folder: str | None = None) -> list[tuple[IndexedChunk, list[float]]]:
        stmt = (
            select(*INDEXED_CHUNK_COLUMNS, EmbeddingModel.vector_data)
            .join(ArticleModel, ArticleModel.id == EmbeddingModel.article_id)
            .where(folder_clause(ArticleModel.folder, folder))
        )
        with database_errors("Load stored vectors"):
            async with self._session_factory() as session:
                rows = (await session.execute(stmt)).all()
        return [(to_indexed_chunk(row), list(row.vector_data)) for row in rows]

    async def get_index_stats(self) -> IndexStats:
        with database_errors("Get index stats"):
            async with self._session_factory() as session:
                total_chunks = (
                    await session.execute(select(func.count()).select_from(EmbeddingModel))
                ).scalar_one()
                total_articles = (
                    await session.execute(select(func.count()).select_from(ArticleModel))
                ).scalar_one()
                indexed_articles = (
                    await session.execute(select(func.count(distinct(EmbeddingModel.article_id))))
                ).scalar_one()
        return IndexStats(
            total_chunks=int(total_chunks),
            total_articles=int(total_articles),
            indexed_articles=int(indexed_articles),
        )

    async def get_unindexed_slugs(self) -> list[str]:
        has_embeddings = exists().where(EmbeddingModel.article_id == ArticleModel.id)
        stmt = select(ArticleModel.slug).where(~has_embeddings).order_by(ArticleModel.slug)
        with database_errors("Find unindexed articles"):
            async with self._session_factory() as session:
                return list((await session.execute(stmt)).scalars().all())
