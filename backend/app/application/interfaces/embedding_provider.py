"""Abstract interface (port) for embedding generation."""

from abc import ABC, abstractmethod


class EmbeddingProvider(ABC):
    """Port for generating text embeddings — implemented in the infrastructure layer.

    Providers must be idempotent: the same input text yields the same vector.
    Transport and HTTP failures surface as ``ServiceError`` (kind PROVIDER).
    """

    @abstractmethod
    async def generate_embeddings(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Args:
            texts: List of text strings to embed.

        Returns:
            List of embedding vectors, one per input text.
            Each vector has the same dimensionality (determined by the model).
        """
        ...

    async def embed(self, text: str) -> list[float]:
        """Embed a single document text."""
        vectors = await self.generate_embeddings([text])
        return vectors[0]

    async def embed_query(self, text: str) -> list[float]:
        """Embed a search query. Models with asymmetric prefixes override this."""
        return await self.embed(text)

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Return the dimensionality of the embedding vectors produced by this provider."""
        ...
