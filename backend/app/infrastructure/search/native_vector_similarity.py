"""Similarity strategy backed by pgvector's cosine distance operator."""

from pgvector.sqlalchemy import Vector
from sqlalchemy import literal_column, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.application.interfaces.similarity_strategy import SimilarityStrategy
from app.domain.entities import ScoredChunk
from app.infrastructure.database.errors import database_errors
from app.infrastructure.database.filters import folder_clause
from app.infrastructure.database.models import ArticleModel, EmbeddingModel
from app.infrastructure.database.repositories.embedding_repository import (
    INDEXED_CHUNK_COLUMNS,
    to_indexed_chunk,
)


def to_vector_literal(vector: list[float]) -> str:
    return f"[{','.join(str(float(v)) for v in vector)}]"


class NativeVectorSimilarity(SimilarityStrategy):
    """Orders chunks by ``embeddings.vector <=> query`` inside PostgreSQL.

    The ``vector`` column is not mapped on ``EmbeddingModel``; it exists only
    when pgvector is installed, which is what selects this strategy.
    """

    name = "native_pgvector"

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], dimensions: int):
        self._session_factory = session_factory
        self._vector_column = literal_column("embeddings.vector", type_=Vector(dimensions))

    async def find_similar(
        self, query_vector: list[float], limit: int, folder: str | None = None
    ) -> list[ScoredChunk]:
        # Inlined as a literal: the vector type has no asyncpg codec registered.
        query_literal = literal_column(f"'{to_vector_literal(query_vector)}'::vector")
        distance = self._vector_column.cosine_distance(query_literal).label("distance")

        stmt = (
            select(*INDEXED_CHUNK_COLUMNS, distance)
            .select_from(EmbeddingModel)
            .join(ArticleModel, ArticleModel.id == EmbeddingModel.article_id)
            .where(self._vector_column.is_not(None))
            .where(folder_clause(ArticleModel.folder, folder))
            .order_by(distance.asc())
            .limit(limit)
        )
        with database_errors("Vector similarity search"):
            async with self._session_factory() as session:
                rows = (await session.execute(stmt)).all()

        return [
            ScoredChunk(chunk=to_indexed_chunk(row), score=max(0.0, 1.0 - float(row.distance)))
            for row in rows
        ]
