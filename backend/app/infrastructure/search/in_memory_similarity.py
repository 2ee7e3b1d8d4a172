"""Similarity strategy that scores stored vectors in process.

Used when the database has no native vector type (SQLite, or PostgreSQL
without pgvector). Cost is linear in the number of stored chunks.
"""

import heapq
import logging
import math

from app.application.interfaces.embedding_repository import EmbeddingRepository
from app.application.interfaces.similarity_strategy import SimilarityStrategy
from app.domain.entities import ScoredChunk
from app.domain.exceptions import ServiceError

logger = logging.getLogger(__name__)


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Cosine of the angle between ``a`` and ``b``; 0.0 when either is all zeros."""
    if len(a) != len(b):
        raise ServiceError.validation(
            f"Vector length mismatch: {len(a)} != {len(b)}",
            "Stored embeddings do not match the configured embedding model.",
        )
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


class InMemoryCosineSimilarity(SimilarityStrategy):
    """Loads every candidate vector and ranks them with ``cosine_similarity``."""

    name = "in_memory_cosine"

    def __init__(self, embedding_repository: EmbeddingRepository):
        self._embeddings = embedding_repository

    async def find_similar(
        self, query_vector: list[float], limit: int, folder: str | None = None
    ) -> list[ScoredChunk]:
        stored = await self._embeddings.load_all(folder)

        scored: list[ScoredChunk] = []
        for chunk, vector in stored:
            if len(vector) != len(query_vector):
                logger.warning(
                    "Skipping chunk %s: stored dimension %d != query dimension %d",
                    chunk.chunk_id,
                    len(vector),
                    len(query_vector),
                )
                continue
            scored.append(ScoredChunk(chunk=chunk, score=cosine_similarity(query_vector, vector)))

        return heapq.nlargest(limit, scored, key=lambda item: item.score)
