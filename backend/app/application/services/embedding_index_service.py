"""Embedding index service — chunk vectors per article, semantic and hybrid search.

Coordinates:
1. Chunking article content (``app.application.chunking``)
2. Generating vectors via the EmbeddingProvider, reusing unchanged chunks
3. Replacing an article's embeddings wholesale via the EmbeddingRepository
4. Ranking stored chunks through a SimilarityStrategy
"""

import logging
import math
import time
import uuid

from app.application.chunking import (
    DEFAULT_CHUNK_OVERLAP,
    DEFAULT_CHUNK_SIZE,
    chunk_markdown,
)
from app.application.interfaces import (
    ArticleRepository,
    EmbeddingProvider,
    EmbeddingRepository,
    SimilarityStrategy,
)
from app.application.services.audit_logger import AuditLogger
from app.application.services.performance_metrics_service import PerformanceMetricsService
from app.domain.entities import (
    Article,
    Chunk,
    Embedding,
    IndexingResult,
    IndexStats,
    RebuildResult,
    ScoredChunk,
    SearchResult,
)
from app.domain.entities.audit_log import LogLevel
from app.domain.exceptions import ServiceError

logger = logging.getLogger(__name__)

_MAX_BATCH_SIZE = 50  # Max texts per embedding API call
_SNIPPET_LENGTH = 200
_TITLE_BOOST = 0.3
_MAX_SCORE = 1.0


def make_snippet(text: str, max_length: int = _SNIPPET_LENGTH) -> str:
    """First ``max_length`` characters, cut back to a word boundary when one is near."""
    if len(text) <= max_length:
        return text
    snippet = text[:max_length]
    last_space = snippet.rfind(" ")
    if last_space > max_length * 0.8:
        return snippet[:last_space] + "..."
    return snippet + "..."


def best_chunk_per_article(scored: list[ScoredChunk]) -> list[ScoredChunk]:
    """Keep the highest-scoring chunk of each article, ordered by descending score."""
    best: dict[str, ScoredChunk] = {}
    for item in scored:
        slug = item.chunk.article.slug
        current = best.get(slug)
        if current is None or item.score > current.score:
            best[slug] = item
    return sorted(best.values(), key=lambda item: item.score, reverse=True)


def title_boosts(slugs: list[str]) -> dict[str, float]:
    """Rank-weighted bonus for title matches: 0.3 for the best, shrinking linearly."""
    total = len(slugs)
    boosts: dict[str, float] = {}
    for rank, slug in enumerate(slugs):
        boosts.setdefault(slug, _TITLE_BOOST * (1 - rank / total))
    return boosts


class EmbeddingIndexService:
    """Application service for maintaining and querying the embedding index."""

    def __init__(
        self,
        embedding_provider: EmbeddingProvider,
        embedding_repository: EmbeddingRepository,
        article_repository: ArticleRepository,
        similarity: SimilarityStrategy,
        *,
        dimensions: int,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
        metrics: PerformanceMetricsService | None = None,
        audit: AuditLogger | None = None,
    ):
        self._provider = embedding_provider
        self._embeddings = embedding_repository
        self._articles = article_repository
        self._similarity = similarity
        self._dimensions = dimensions
        self._chunk_size = chunk_size
        self._chunk_overlap = chunk_overlap
        self._metrics = metrics
        self._audit = audit

    @property
    def similarity_strategy(self) -> str:
        return self._similarity.name

    # ── Writing ─────────────────────────────────────────────────────

    def chunk_article(self, article: Article) -> list[Chunk]:
        return chunk_markdown(
            article.slug,
            article.title,
            article.content,
            article.created_at,
            article.updated_at,
            chunk_size=self._chunk_size,
            chunk_overlap=self._chunk_overlap,
        )

    async def upsert_article_embeddings(self, article_id: int, chunks: list[Chunk]) -> int:
        """Replace all embeddings of an article with vectors for ``chunks``.

        Chunks with empty text or non-finite vectors are skipped and logged.
        A vector of the wrong dimension aborts the whole batch before anything
        is written. Vectors of chunks whose content hash is unchanged are
        reused instead of being regenerated.

        Returns:
            Number of embeddings stored.
        """
        embeddable: list[Chunk] = []
        for chunk in chunks:
            if not chunk.text.strip():
                logger.error("Skipping chunk %s: empty text", chunk.id)
                continue
            embeddable.append(chunk)

        existing = await self._embeddings.get_vectors_by_hash(article_id) if embeddable else {}
        reusable = {
            content_hash: vector
            for content_hash, vector in existing.items()
            if len(vector) == self._dimensions
        }
        to_generate = [c for c in embeddable if c.content_hash not in reusable]

        generated = await self._generate_vectors(article_id, to_generate)

        embeddings: list[Embedding] = []
        for chunk in embeddable:
            vector = reusable.get(chunk.content_hash) or generated.get(chunk.id)
            if vector is None or not self._is_valid_vector(chunk, vector):
                continue
            embeddings.append(
                Embedding(
                    article_id=article_id,
                    chunk_id=chunk.id,
                    chunk_index=chunk.chunk_index,
                    text=chunk.text,
                    content_hash=chunk.content_hash,
                    vector=vector,
                    heading_path=list(chunk.heading_path),
                )
            )

        start = time.perf_counter()
        stored = await self._embeddings.replace_for_article(article_id, embeddings)
        await self._record_query_time("embedding_store", start)
        logger.info(
            "Indexed article %s: %d stored, %d reused, %d generated, %d skipped",
            article_id,
            stored,
            len(embeddable) - len(to_generate),
            len(generated),
            len(chunks) - stored,
        )
        return stored

    async def _generate_vectors(
        self, article_id: int, chunks: list[Chunk]
    ) -> dict[str, list[float]]:
        if not chunks:
            return {}

        start = time.perf_counter()
        vectors: list[list[float]] = []
        for batch_start in range(0, len(chunks), _MAX_BATCH_SIZE):
            batch = chunks[batch_start : batch_start + _MAX_BATCH_SIZE]
            vectors.extend(await self._provider.generate_embeddings([c.text for c in batch]))

        if len(vectors) != len(chunks):
            raise ServiceError.validation(
                f"Provider returned {len(vectors)} vectors for {len(chunks)} chunks"
            )

        # Dimension mismatch means provider/config drift: fail before any write.
        for chunk, vector in zip(chunks, vectors):
            if vector and len(vector) != self._dimensions:
                raise ServiceError.validation(
                    f"Embedding dimension mismatch for chunk {chunk.id}: "
                    f"expected {self._dimensions}, got {len(vector)}",
                    "The embedding model does not match the configured vector dimension.",
                )

        if self._metrics:
            await self._metrics.record_embedding_generation_time(
                (time.perf_counter() - start) * 1000,
                article_id=article_id,
                chunk_count=len(chunks),
            )
        return {chunk.id: vector for chunk, vector in zip(chunks, vectors)}

    @staticmethod
    def _is_valid_vector(chunk: Chunk, vector: list[float]) -> bool:
        if not vector:
            logger.error("Skipping chunk %s: provider returned an empty vector", chunk.id)
            return False
        for value in vector:
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
                logger.error("Skipping chunk %s: vector contains %r", chunk.id, value)
                return False
        return True

    async def upsert_article_embeddings_by_slug(self, slug: str, chunks: list[Chunk]) -> int:
        article_id = await self._require_article_id(slug)
        return await self.upsert_article_embeddings(article_id, chunks)

    async def delete_article_embeddings(self, article_id: int) -> int:
        start = time.perf_counter()
        removed = await self._embeddings.delete_for_article(article_id)
        await self._record_query_time("embedding_delete", start)
        return removed

    async def delete_article_embeddings_by_slug(self, slug: str) -> int:
        article_id = await self._require_article_id(slug)
        return await self.delete_article_embeddings(article_id)

    async def update_article_embeddings(self, slug: str) -> int:
        """Re-chunk the article's current content and replace its embeddings."""
        article = await self._articles.get_by_slug(slug)
        if article is None or article.id is None:
            raise ServiceError.not_found("Article", slug)
        return await self.upsert_article_embeddings(article.id, self.chunk_article(article))

    async def _require_article_id(self, slug: str) -> int:
        article_id = await self._articles.get_article_id(slug)
        if article_id is None:
            raise ServiceError.not_found("Article", slug)
        return article_id

    # ── Searching ───────────────────────────────────────────────────

    async def semantic_search(
        self, query: str, k: int = 5, folder: str | None = None
    ) -> list[SearchResult]:
        """Top ``k`` articles by meaning, each represented by its best chunk."""
        self._validate_search(query, k)
        start = time.perf_counter()
        results = await self._semantic(query, k, folder)
        await self._record_search("semantic", start, len(results))
        return results

    async def hybrid_search(
        self, query: str, k: int = 5, folder: str | None = None
    ) -> list[SearchResult]:
        """Semantic search whose scores are boosted for title matches, capped at 1.0."""
        self._validate_search(query, k)
        start = time.perf_counter()

        semantic = await self._semantic(query, 2 * k, folder)
        boosts = title_boosts(await self._articles.search_titles(query, folder))

        boosted = [
            SearchResult(
                chunk=result.chunk,
                score=min(_MAX_SCORE, result.score + boosts.get(result.article_metadata.slug, 0.0)),
                snippet=result.snippet,
            )
            for result in semantic
        ]
        boosted.sort(key=lambda result: result.score, reverse=True)
        results = boosted[:k]

        await self._record_search("hybrid", start, len(results))
        return results

    async def _semantic(self, query: str, k: int, folder: str | None) -> list[SearchResult]:
        query_vector = await self._provider.embed_query(query)
        candidates = await self._similarity.find_similar(query_vector, 2 * k, folder)
        return [
            SearchResult(chunk=item.chunk, score=item.score, snippet=make_snippet(item.chunk.text))
            for item in best_chunk_per_article(candidates)[:k]
        ]

    @staticmethod
    def _validate_search(query: str, k: int) -> None:
        if not query or not query.strip():
            raise ServiceError.validation("Search query must not be empty")
        if k < 1:
            raise ServiceError.validation(f"k must be at least 1, got {k}")

    async def _record_search(self, search_type: str, start: float, result_count: int) -> None:
        if self._metrics:
            await self._metrics.record_search_time(
                (time.perf_counter() - start) * 1000, search_type, result_count
            )

    async def _record_query_time(self, query_type: str, start: float) -> None:
        if self._metrics:
            await self._metrics.record_database_query_time(
                (time.perf_counter() - start) * 1000, query_type
            )

    # ── Maintenance ─────────────────────────────────────────────────

    async def rebuild_index(self) -> RebuildResult:
        """Re-chunk and re-embed every article, continuing past failures."""
        articles = await self._articles.list_articles()
        return await self._index_slugs([a.slug for a in articles], "rebuild_index")

    async def index_unindexed_articles(self) -> IndexingResult:
        """Index only the articles that have no embeddings yet."""
        slugs = await self._embeddings.get_unindexed_slugs()
        outcome = await self._index_slugs(slugs, "index_unindexed")
        return IndexingResult(indexed=outcome.processed, failed=outcome.failed_slugs)

    async def _index_slugs(self, slugs: list[str], operation: str) -> RebuildResult:
        operation_id = f"{operation}-{uuid.uuid4().hex[:8]}"
        start = time.perf_counter()
        result = RebuildResult()
        logger.info("%s: indexing %d article(s)", operation_id, len(slugs))

        for slug in slugs:
            try:
                await self.update_article_embeddings(slug)
                result.processed += 1
            except Exception as exc:
                logger.error("%s: failed to index '%s': %s", operation_id, slug, exc)
                result.failed += 1
                result.failed_slugs.append(slug)

        duration_ms = (time.perf_counter() - start) * 1000
        if self._metrics:
            await self._metrics.record_bulk_operation_time(
                duration_ms, operation_id, processed=result.processed, failed=result.failed
            )
        if self._audit:
            await self._audit.log_bulk_operation(
                operation_id,
                f"{operation} finished: {result.processed} processed, {result.failed} failed",
                level=LogLevel.WARN if result.failed else LogLevel.INFO,
                duration_ms=int(duration_ms),
                metadata={"failed_slugs": result.failed_slugs},
            )
        return result

    async def get_index_stats(self) -> IndexStats:
        return await self._embeddings.get_index_stats()

    async def get_unindexed_slugs(self) -> list[str]:
        return await self._embeddings.get_unindexed_slugs()
