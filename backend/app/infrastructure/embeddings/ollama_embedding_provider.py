"""Ollama embedding provider — calls a local model server's /api/embed endpoint."""

from typing import Any

from app.infrastructure.embeddings.http_embedding_provider import HttpEmbeddingProvider


class OllamaEmbeddingProvider(HttpEmbeddingProvider):
    """Infrastructure adapter — batch embeddings from ``{base}/api/embed``."""

    provider_name = "ollama"

    def _endpoint(self) -> str:
        return "/api/embed"

    def _build_payload(self, texts: list[str]) -> dict[str, Any]:
        return {"model": self._model, "input": texts}

    def _parse_vectors(self, data: dict[str, Any]) -> list[list[float]]:
        return list(data.get("embeddings", []))
