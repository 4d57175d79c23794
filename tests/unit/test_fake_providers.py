"""Unit tests for the offline providers and the provider factories."""

import math

import pytest

from quickrag.config.schema import EmbeddingConfig, LLMConfig
from quickrag.providers import create_embedding_provider, create_llm_provider
from quickrag.providers.base import ProviderConfig, ProviderError
from quickrag.providers.fake import FakeEmbeddingProvider, FakeLLMProvider
from quickrag.storage.memory import cosine_similarity


@pytest.mark.asyncio
class TestFakeEmbeddingProvider:
    """Test FakeEmbeddingProvider."""

    async def test_deterministic_unit_vectors(self, embedding_provider):
        first = await embedding_provider.embed_text("Task decomposition")
        second = await embedding_provider.embed_text("Task decomposition")

        assert first == second
        assert len(first) == embedding_provider.get_dimension()
        assert math.isclose(sum(v * v for v in first), 1.0)

    async def test_shared_words_are_closer(self, embedding_provider):
        query, related, unrelated = await embedding_provider.embed_batch(
            ["what is task decomposition", "task decomposition splits work", "memory stores vectors"]
        )
        assert cosine_similarity(query, related) > cosine_similarity(query, unrelated)

    async def test_custom_dimension(self):
        provider = FakeEmbeddingProvider(
            ProviderConfig(provider_type="mock", model_name="fake", extra_params={"dimension": 8})
        )
        assert len(await provider.embed_text("hello")) == 8

    async def test_empty_text(self, embedding_provider):
        with pytest.raises(ProviderError):
            await embedding_provider.embed_text("")
        with pytest.raises(ProviderError, match="index 0"):
            await embedding_provider.embed_batch([" "])

    async def test_punctuation_only(self, embedding_provider):
        vector = await embedding_provider.embed_text("?!")
        assert vector[0] == 1.0


@pytest.mark.asyncio
class TestFakeLLMProvider:
    """Test FakeLLMProvider."""

    async def test_echo_question(self, llm_provider):
        answer = await llm_provider.generate("Question: What is memory? \nContext: x \nAnswer:")
        assert answer == "This is a fake answer to: What is memory?"
        assert llm_provider.prompts == ["Question: What is memory? \nContext: x \nAnswer:"]

    async def test_scripted_responses(self):
        provider = FakeLLMProvider(responses=["one", "two"])
        assert [await provider.generate("p") for _ in range(3)] == ["one", "two", "one"]

    async def test_stream_concatenates_to_answer(self):
        provider = FakeLLMProvider(responses=["Agents plan, act and reflect."])
        deltas = [d async for d in provider.stream("p")]

        assert len(deltas) == 5
        assert "".join(deltas) == "Agents plan, act and reflect."

    async def test_count_tokens(self, llm_provider):
        assert llm_provider.count_tokens("three little words") == 3


class TestFactories:
    """Test create_embedding_provider and create_llm_provider."""

    def test_mock_embedding(self):
        provider = create_embedding_provider(EmbeddingConfig(provider="mock", model_name="fake"))
        assert isinstance(provider, FakeEmbeddingProvider)

    def test_mock_llm(self):
        provider = create_llm_provider(LLMConfig(provider="mock", model_name="fake"))
        assert isinstance(provider, FakeLLMProvider)

    def test_unknown_embedding_provider(self):
        config = EmbeddingConfig.model_construct(provider="bogus", model_name="x", api_key=None, batch_size=8, extra_params={})
        with pytest.raises(ValueError, match="Unknown embedding provider"):
            create_embedding_provider(config)

    def test_unknown_llm_provider(self):
        config = LLMConfig.model_construct(provider="bogus", model_name="x", api_key=None, extra_params={})
        with pytest.raises(ValueError, match="Unknown LLM provider"):
            create_llm_provider(config)

    def test_openai_without_key(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        with pytest.raises(ProviderError):
            create_llm_provider(LLMConfig(provider="openai"))
