"""Unit tests for the OpenAI-compatible embedding provider adapter."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import openai
import pytest

from src.config.settings import Settings
from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from src.utils.errors import RAGError


def _settings(**overrides) -> Settings:
    defaults = {"openai_api_key": "sk-test", "openai_base_url": "", "openai_embedding_model": ""}
    defaults.update(overrides)
    return Settings(**defaults)


def _embedding_response(vectors: list[list[float]]) -> MagicMock:
    response = MagicMock()
    response.data = [MagicMock(embedding=v) for v in vectors]
    response.usage = MagicMock(total_tokens=10)
    return response


class TestOpenAIEmbeddingProvider:
    def test_dimension_by_model(self) -> None:
        assert OpenAIEmbeddingProvider(_settings(), client=AsyncMock()).get_dimension() == 1536
        large = OpenAIEmbeddingProvider(
            _settings(openai_embedding_model="text-embedding-3-large"), client=AsyncMock(),
        )
        assert large.get_dimension() == 3072
        unknown = OpenAIEmbeddingProvider(
            _settings(openai_embedding_model="my-local-model"), client=AsyncMock(),
        )
        assert unknown.get_dimension() == 768

    def test_provider_name_and_availability(self) -> None:
        provider = OpenAIEmbeddingProvider(_settings(), client=AsyncMock())
        assert provider.get_provider_name() == "openai_embedding"
        assert provider.is_available() is True

        compatible = OpenAIEmbeddingProvider(
            _settings(openai_api_key="", openai_base_url="http://localhost:8001/v1"),
            client=AsyncMock(),
        )
        assert compatible.get_provider_name() == "openai-compatible_embedding"
        assert compatible.is_available() is False

    @pytest.mark.asyncio
    async def test_embed_returns_vectors_in_order(self) -> None:
        client = AsyncMock()
        client.embeddings.create = AsyncMock(
            return_value=_embedding_response([[0.1] * 1536, [0.2] * 1536])
        )
        provider = OpenAIEmbeddingProvider(_settings(), client=client)

        vectors = await provider.embed(["first", "second"])

        assert [v[0] for v in vectors] == [0.1, 0.2]
        client.embeddings.create.assert_awaited_once_with(
            input=["first", "second"], model="text-embedding-3-small",
        )

    @pytest.mark.asyncio
    async def test_embed_empty_skips_api(self) -> None:
        client = AsyncMock()
        assert await OpenAIEmbeddingProvider(_settings(), client=client).embed([]) == []
        client.embeddings.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_large_input_split(self) -> None:
        client = AsyncMock()
        client.embeddings.create = AsyncMock(
            side_effect=lambda input, model: _embedding_response([[0.0] * 1536] * len(input))
        )
        provider = OpenAIEmbeddingProvider(_settings(), client=client)

        with patch("src.providers.embedding.openai_embedding_provider._OPENAI_BATCH_LIMIT", 2):
            vectors = await provider.embed(["a", "b", "c", "d", "e"])

        assert len(vectors) == 5
        assert client.embeddings.create.await_count == 3

    @pytest.mark.asyncio
    async def test_wrong_dimension_rejected(self) -> None:
        client = AsyncMock()
        client.embeddings.create = AsyncMock(return_value=_embedding_response([[0.1] * 10]))
        provider = OpenAIEmbeddingProvider(_settings(), client=client)

        with pytest.raises(RAGError, match="10-dim"):
            await provider.embed(["text"])

    @pytest.mark.asyncio
    async def test_api_error_wrapped(self) -> None:
        client = AsyncMock()
        client.embeddings.create = AsyncMock(
            side_effect=openai.APIError(message="boom", request=MagicMock(), body=None)
        )
        provider = OpenAIEmbeddingProvider(_settings(), client=client)

        with pytest.raises(RAGError, match="API error"):
            await provider.embed(["text"])

    @pytest.mark.asyncio
    async def test_embed_single(self) -> None:
        client = AsyncMock()
        client.embeddings.create = AsyncMock(return_value=_embedding_response([[0.3] * 1536]))
        vector = await OpenAIEmbeddingProvider(_settings(), client=client).embed_single("hello")
        assert len(vector) == 1536
