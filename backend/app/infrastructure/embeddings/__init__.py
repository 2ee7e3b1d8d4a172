"""Embedding provider adapters."""

import httpx

from app.application.interfaces.embedding_provider import EmbeddingProvider
from app.config import Settings
from app.domain.exceptions import ErrorKind, ServiceError

from .http_embedding_provider import HttpEmbeddingProvider
from .ollama_embedding_provider import OllamaEmbeddingProvider
from .openai_embedding_provider import OpenAICompatibleEmbeddingProvider


def build_embedding_provider(
    settings: Settings, http_client: httpx.AsyncClient | None = None
) -> EmbeddingProvider:
    """Select the provider named by ``settings.embedding_provider``."""
    name = settings.embedding_provider.strip().lower()
    if name == "ollama":
        return OllamaEmbeddingProvider(
            base_url=settings.ollama_base_url,
            model=settings.embedding_model,
            model_dimensions=settings.embedding_dimensions,
            timeout=settings.embedding_request_timeout,
            http_client=http_client,
        )
    if name == "openai":
        if not settings.openai_api_key.strip():
            raise ServiceError(
                ErrorKind.CONFIGURATION,
                "EMBEDDING_PROVIDER=openai requires OPENAI_API_KEY",
                "The embedding provider is not configured.",
            )
        return OpenAICompatibleEmbeddingProvider(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            model=settings.embedding_model,
            model_dimensions=settings.embedding_dimensions,
            timeout=settings.embedding_request_timeout,
            http_client=http_client,
        )
    raise ServiceError(
        ErrorKind.CONFIGURATION,
        f"Unknown embedding provider '{settings.embedding_provider}'",
        "The embedding provider is not configured.",
    )


__all__ = [
    "HttpEmbeddingProvider",
    "OllamaEmbeddingProvider",
    "OpenAICompatibleEmbeddingProvider",
    "build_embedding_provider",
]
