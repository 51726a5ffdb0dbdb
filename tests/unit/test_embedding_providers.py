"""Unit tests for embedding provider adapters — OpenAI, Nomic."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest

from src.config.settings import Settings
from src.providers.embedding.nomic_embedding_provider import NomicEmbeddingProvider
from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from src.utils.errors import EmbeddingError


def _settings(**overrides) -> Settings:
    defaults = {
        "openai_api_key": "sk-test",
        "openai_base_url": "",
        "openai_embedding_model": "",
        "ollama_base_url": "http://localhost:11434",
        "embedding_dimension": 1536,
    }
    defaults.update(overrides)
    return Settings(_env_file=None, **defaults)


def _mock_client(*vectors: list[float]) -> AsyncMock:
    mock_response = MagicMock()
    mock_response.data = [MagicMock(embedding=vector) for vector in vectors]
    mock_response.usage = MagicMock(total_tokens=10 * len(vectors))
    mock_client = AsyncMock()
    mock_client.embeddings.create = AsyncMock(return_value=mock_response)
    return mock_client


# ======================================================================
# OpenAI Embedding Provider
# ======================================================================


class TestOpenAIEmbeddingProvider:
    @pytest.fixture()
    def settings(self) -> Settings:
        return _settings()

    def test_get_provider_name(self, settings: Settings) -> None:
        provider = OpenAIEmbeddingProvider(settings)
        assert provider.get_provider_name() == "openai_embedding"

    def test_compatible_endpoint_label(self) -> None:
        provider = OpenAIEmbeddingProvider(
            _settings(openai_base_url="https://api.together.xyz/v1", openai_embedding_model="BAAI/bge-base-en-v1.5")
        )
        assert provider.get_provider_name() == "openai-compatible_embedding"
        assert provider.get_dimension() == 768

    def test_is_available_with_key(self, settings: Settings) -> None:
        assert OpenAIEmbeddingProvider(settings).is_available() is True

    def test_is_available_without_key(self) -> None:
        assert OpenAIEmbeddingProvider(_settings(openai_api_key="")).is_available() is False

    def test_dimension_follows_settings_for_v3_models(self) -> None:
        provider = OpenAIEmbeddingProvider(_settings(embedding_dimension=512))
        assert provider.get_dimension() == 512

    @pytest.mark.asyncio
    async def test_embed_success_requests_fixed_dimensions(self, settings: Settings) -> None:
        dim = 1536
        mock_client = _mock_client([0.1] * dim, [0.2] * dim)

        with patch(
            "src.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OpenAIEmbeddingProvider(settings)
            result = await provider.embed(["hello", "world"])

        assert len(result) == 2
        assert len(result[0]) == dim
        kwargs = mock_client.embeddings.create.call_args.kwargs
        assert kwargs["model"] == "text-embedding-3-small"
        assert kwargs["dimensions"] == dim

    @pytest.mark.asyncio
    async def test_embed_single(self, settings: Settings) -> None:
        mock_client = _mock_client([0.5] * 1536)

        with patch(
            "src.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OpenAIEmbeddingProvider(settings)
            result = await provider.embed_single("hello")

        assert len(result) == 1536

    @pytest.mark.asyncio
    async def test_embed_empty_skips_api(self, settings: Settings) -> None:
        mock_client = _mock_client()
        with patch(
            "src.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OpenAIEmbeddingProvider(settings)
            assert await provider.embed([]) == []
        mock_client.embeddings.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_embed_error(self, settings: Settings) -> None:
        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(
            side_effect=openai.APIError(
                message="Rate limit",
                request=MagicMock(),
                body=None,
            )
        )

        with patch(
            "src.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OpenAIEmbeddingProvider(settings)
            with pytest.raises(EmbeddingError, match="Rate limit"):
                await provider.embed(["test"])


# ======================================================================
# Nomic Embedding Provider
# ======================================================================


class TestNomicEmbeddingProvider:
    @pytest.fixture()
    def settings(self) -> Settings:
        return _settings()

    def test_get_provider_name(self, settings: Settings) -> None:
        assert NomicEmbeddingProvider(settings).get_provider_name() == "nomic_embedding"

    def test_get_dimension(self, settings: Settings) -> None:
        assert NomicEmbeddingProvider(settings).get_dimension() == 768

    def test_is_available_success(self, settings: Settings) -> None:
        mock_response = MagicMock()
        mock_response.status_code = 200

        with patch("src.providers.embedding.nomic_embedding_provider.httpx.get", return_value=mock_response):
            provider = NomicEmbeddingProvider(settings)
            assert provider.is_available() is True

    def test_is_available_failure(self, settings: Settings) -> None:
        with patch(
            "src.providers.embedding.nomic_embedding_provider.httpx.get",
            side_effect=httpx.ConnectError("refused"),
        ):
            provider = NomicEmbeddingProvider(settings)
            assert provider.is_available() is False

    @pytest.mark.asyncio
    async def test_embed_success(self, settings: Settings) -> None:
        mock_client = _mock_client([0.3] * 768)

        with patch(
            "src.providers.embedding.nomic_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = NomicEmbeddingProvider(settings)
            result = await provider.embed(["test text"])

        assert len(result) == 1
        assert len(result[0]) == 768
        assert mock_client.embeddings.create.call_args.kwargs["model"] == "nomic-embed-text"
