"""Shared httpx plumbing for HTTP embedding providers."""

import logging
from abc import abstractmethod
from typing import Any

import httpx

from app.application.interfaces.embedding_provider import EmbeddingProvider
from app.domain.exceptions import ErrorKind, ServiceError

logger = logging.getLogger(__name__)

# nomic-embed-text models require a task prefix; other models do not.
_NOMIC_DOCUMENT_PREFIX = "search_document: "
_NOMIC_QUERY_PREFIX = "search_query: "


class HttpEmbeddingProvider(EmbeddingProvider):
    """Base adapter: JSON POST over httpx, errors surfaced as ``ServiceError``.

    An injected ``http_client`` is reused and never closed here; otherwise a
    short-lived client is created per request.
    """

    provider_name = "http"

    def __init__(
        self,
        base_url: str,
        model: str,
        model_dimensions: int,
        *,
        timeout: float = 60.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._dimensions = model_dimensions
        self._timeout = timeout
        self._http_client = http_client

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def model(self) -> str:
        return self._model

    @property
    def _is_nomic(self) -> bool:
        """Whether the configured model is a nomic model requiring task prefixes."""
        return "nomic" in self._model.lower()

    def _get_headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json"}

    @abstractmethod
    def _endpoint(self) -> str:
        ...

    @abstractmethod
    def _build_payload(self, texts: list[str]) -> dict[str, Any]:
        ...

    @abstractmethod
    def _parse_vectors(self, data: dict[str, Any]) -> list[list[float]]:
        ...

    async def generate_embeddings(self, texts: list[str]) -> list[list[float]]:
        return await self._embed_batch(texts, query_mode=False)

    async def embed_query(self, text: str) -> list[float]:
        vectors = await self._embed_batch([text], query_mode=True)
        return vectors[0]

    async def _embed_batch(self, texts: list[str], *, query_mode: bool) -> list[list[float]]:
        if not texts:
            return []

        if self._is_nomic:
            prefix = _NOMIC_QUERY_PREFIX if query_mode else _NOMIC_DOCUMENT_PREFIX
            texts = [f"{prefix}{t}" for t in texts]

        data = await self._post(self._build_payload(texts))
        vectors = self._parse_vectors(data)
        if len(vectors) != len(texts):
            raise ServiceError(
                ErrorKind.PROVIDER,
                f"{self.provider_name} returned {len(vectors)} vectors for {len(texts)} inputs",
                "The embedding service returned an incomplete response.",
            )

        logger.debug(
            "Generated %d embeddings (provider=%s, model=%s, dims=%d)",
            len(vectors),
            self.provider_name,
            self._model,
            len(vectors[0]) if vectors else 0,
        )
        return vectors

    async def _post(self, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self._base_url}{self._endpoint()}"
        client = self._http_client or httpx.AsyncClient(timeout=self._timeout)
        should_close = self._http_client is None

        try:
            response = await client.post(url, headers=self._get_headers(), json=payload)
        except httpx.TimeoutException as exc:
            raise ServiceError(
                ErrorKind.TIMEOUT,
                f"{self.provider_name} embedding request timed out: {exc}",
                "The embedding service did not respond in time.",
                cause=exc,
            ) from exc
        except httpx.HTTPError as exc:
            raise ServiceError(
                ErrorKind.PROVIDER,
                f"{self.provider_name} embedding request failed: {exc}",
                "The embedding service is unreachable.",
                cause=exc,
            ) from exc
        finally:
            if should_close:
                await client.aclose()

        if response.status_code != 200:
            error_text = response.text[:500]
            logger.error(
                "Embedding API error %d from %s: %s",
                response.status_code,
                self.provider_name,
                error_text,
            )
            raise ServiceError(
                ErrorKind.PROVIDER,
                f"Embedding API returned {response.status_code}: {error_text}",
                "The embedding service returned an error.",
            )

        try:
            return response.json()
        except ValueError as exc:
            raise ServiceError(
                ErrorKind.PROVIDER,
                f"{self.provider_name} returned a non-JSON body",
                "The embedding service returned an invalid response.",
                cause=exc,
            ) from exc
