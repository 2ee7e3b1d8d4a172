"""OpenAI-compatible embedding provider — calls the /embeddings endpoint.

Works with OpenAI itself and with any gateway exposing the same contract.
"""

from typing import Any

import httpx

from app.infrastructure.embeddings.http_embedding_provider import HttpEmbeddingProvider


class OpenAICompatibleEmbeddingProvider(HttpEmbeddingProvider):
    """Infrastructure adapter — generates embeddings via a POST to ``{base}/embeddings``."""

    provider_name = "openai"

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
        model: str = "text-embedding-3-small",
        model_dimensions: int = 768,
        *,
        timeout: float = 60.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        super().__init__(
            base_url,
            model,
            model_dimensions,
            timeout=timeout,
            http_client=http_client,
        )
        self._api_key = api_key

    def _get_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    def _endpoint(self) -> str:
        return "/embeddings"

    def _build_payload(self, texts: list[str]) -> dict[str, Any]:
        return {
            "model": self._model,
            "input": texts,
            "dimensions": self._dimensions,
        }

    def _parse_vectors(self, data: dict[str, Any]) -> list[list[float]]:
        items = list(data.get("data", []))
        # Sort by index to ensure correct ordering
        items.sort(key=lambda x: x.get("index", 0))
        return [item["embedding"] for item in items]
