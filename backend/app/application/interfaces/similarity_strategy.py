"""Abstract interface (port) for ranking stored chunks against a query vector."""

from abc import ABC, abstractmethod

from app.domain.entities import ScoredChunk


class SimilarityStrategy(ABC):
    """Port for nearest-neighbour lookup over the embedding store.

    One implementation delegates ordering to the database's native vector
    operator, another loads vectors and scores them in process. The search
    algorithm is written against this interface only.
    """

    name: str = "unknown"

    @abstractmethod
    async def find_similar(
        self, query_vector: list[float], limit: int, folder: str | None = None
    ) -> list[ScoredChunk]:
        """Return up to ``limit`` chunks ordered by descending score.

        Args:
            query_vector: The embedded query.
            limit: Maximum number of chunks.
            folder: ``"/"`` restricts to root-level articles, any other value
                to that folder and its subfolders (case-insensitive).
        """
        ...
