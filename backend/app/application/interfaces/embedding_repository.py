"""Abstract repository interface (port) for stored chunk embeddings."""

from abc import ABC, abstractmethod

from app.domain.entities import Embedding, IndexedChunk, IndexStats


class EmbeddingRepository(ABC):
    """Port for embedding persistence — implemented in the infrastructure layer."""

    @abstractmethod
    async def replace_for_article(self, article_id: int, embeddings: list[Embedding]) -> int:
        """Delete every embedding of the article, then insert ``embeddings``.

        Both steps run in one transaction. Returns the number inserted.
        """
        ...

    @abstractmethod
    async def delete_for_article(self, article_id: int) -> int:
        """Delete all embeddings for an article. Returns count of deleted rows."""
        ...

    @abstractmethod
    async def get_vectors_by_hash(self, article_id: int) -> dict[str, list[float]]:
        """Existing vectors of an article keyed by chunk content hash."""
        ...

    @abstractmethod
    async def load_all(self, folder: str | None = None) -> list[tuple[IndexedChunk, list[float]]]:
        """Every stored chunk with its vector, optionally restricted to a folder subtree."""
        ...

    @abstractmethod
    async def get_index_stats(self) -> IndexStats:
        ...

    @abstractmethod
    async def get_unindexed_slugs(self) -> list[str]:
        """Slugs of articles that have no embeddings at all."""
        ...
