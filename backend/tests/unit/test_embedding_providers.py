"""Unit tests for the HTTP embedding provider adapters."""

import json

import httpx
import pytest

from app.config import Settings
from app.domain.exceptions import ErrorKind, ServiceError
from app.infrastructure.embeddings import (
    OllamaEmbeddingProvider,
    OpenAICompatibleEmbeddingProvider,
    build_embedding_provider,
)


# ── Helpers ──


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _recording_handler(response_json: dict, captured: list, status_code: int = 200):
    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(status_code, json=response_json)

    return handler


# ── Ollama ──


@pytest.mark.asyncio
async def test_ollama_posts_batch_to_api_embed():
    captured: list[httpx.Request] = []
    handler = _recording_handler({"embeddings": [[0.1, 0.2], [0.3, 0.4]]}, captured)
    async with _client(handler) as client:
        provider = OllamaEmbeddingProvider(
            "http://ollama:11434/", "all-minilm", 2, http_client=client
        )
        vectors = await provider.generate_embeddings(["a", "b"])

    assert vectors == [[0.1, 0.2], [0.3, 0.4]]
    assert str(captured[0].url) == "http://ollama:11434/api/embed"
    assert json.loads(captured[0].content) == {"model": "all-minilm", "input": ["a", "b"]}


@pytest.mark.asyncio
async def test_nomic_models_get_document_and_query_prefixes():
    captured: list[httpx.Request] = []
    handler = _recording_handler({"embeddings": [[1.0]]}, captured)
    async with _client(handler) as client:
        provider = OllamaEmbeddingProvider("http://ollama", "nomic-embed-text", 1, http_client=client)
        await provider.embed("doc text")
        await provider.embed_query("query text")

    inputs = [json.loads(r.content)["input"] for r in captured]
    assert inputs == [["search_document: doc text"], ["search_query: query text"]]


@pytest.mark.asyncio
async def test_non_200_response_is_provider_error():
    async with _client(_recording_handler({"error": "model not found"}, [], 404)) as client:
        provider = OllamaEmbeddingProvider("http://ollama", "missing", 4, http_client=client)
        with pytest.raises(ServiceError) as exc_info:
            await provider.generate_embeddings(["x"])

    assert exc_info.value.kind == ErrorKind.PROVIDER
    assert "404" in exc_info.value.message


@pytest.mark.asyncio
async def test_transport_error_is_provider_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler) as client:
        provider = OllamaEmbeddingProvider("http://ollama", "m", 4, http_client=client)
        with pytest.raises(ServiceError) as exc_info:
            await provider.generate_embeddings(["x"])

    assert exc_info.value.kind == ErrorKind.PROVIDER
    assert exc_info.value.is_permanent is False


@pytest.mark.asyncio
async def test_timeout_is_timeout_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    async with _client(handler) as client:
        provider = OllamaEmbeddingProvider("http://ollama", "m", 4, http_client=client)
        with pytest.raises(ServiceError) as exc_info:
            await provider.generate_embeddings(["x"])

    assert exc_info.value.kind == ErrorKind.TIMEOUT


@pytest.mark.asyncio
async def test_vector_count_mismatch_is_provider_error():
    async with _client(_recording_handler({"embeddings": [[1.0]]}, [])) as client:
        provider = OllamaEmbeddingProvider("http://ollama", "m", 1, http_client=client)
        with pytest.raises(ServiceError) as exc_info:
            await provider.generate_embeddings(["a", "b"])

    assert exc_info.value.kind == ErrorKind.PROVIDER


# ── OpenAI-compatible ──


@pytest.mark.asyncio
async def test_openai_provider_sorts_by_index_and_sends_auth():
    captured: list[httpx.Request] = []
    payload = {
        "data": [
            {"index": 1, "embedding": [0.0, 1.0]},
            {"index": 0, "embedding": [1.0, 0.0]},
        ]
    }
    async with _client(_recording_handler(payload, captured)) as client:
        provider = OpenAICompatibleEmbeddingProvider(
            "sk-test", "https://api.example.com/v1", "text-embedding-3-small", 2, http_client=client
        )
        vectors = await provider.generate_embeddings(["first", "second"])

    assert vectors == [[1.0, 0.0], [0.0, 1.0]]
    request = captured[0]
    assert str(request.url) == "https://api.example.com/v1/embeddings"
    assert request.headers["Authorization"] == "Bearer sk-test"
    assert json.loads(request.content)["dimensions"] == 2


# ── Factory ──


def test_build_embedding_provider_selects_ollama_by_default():
    provider = build_embedding_provider(Settings(_env_file=None))
    assert isinstance(provider, OllamaEmbeddingProvider)
    assert provider.dimensions == 768


def test_build_openai_provider_requires_api_key():
    settings = Settings(_env_file=None, embedding_provider="openai", openai_api_key="")
    with pytest.raises(ServiceError) as exc_info:
        build_embedding_provider(settings)
    assert exc_info.value.kind == ErrorKind.CONFIGURATION


def test_unknown_provider_is_configuration_error():
    with pytest.raises(ServiceError) as exc_info:
        build_embedding_provider(Settings(_env_file=None, embedding_provider="carrier-pigeon"))
    assert exc_info.value.kind == ErrorKind.CONFIGURATION
