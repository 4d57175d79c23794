"""Unit tests for the OpenAI embedding and chat providers."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest
import tiktoken

from quickrag.config.schema import EmbeddingConfig
from quickrag.providers import create_embedding_provider
from quickrag.providers.base import ProviderConfig, ProviderError
from quickrag.providers.openai import OpenAIEmbeddingProvider, resolve_api_key, wrap_openai_error
from quickrag.providers.openai_llm import OpenAILLMProvider


def embedding_response(vectors: list[list[float]], tokens: int = 10) -> SimpleNamespace:
    return SimpleNamespace(
        data=[SimpleNamespace(embedding=v, index=i) for i, v in enumerate(vectors)],
        usage=SimpleNamespace(total_tokens=tokens),
    )


def embedding_config(**extra) -> ProviderConfig:
    return ProviderConfig(
        provider_type="openai",
        model_name="text-embedding-3-small",
        api_key="sk-test",
        extra_params=extra,
    )


class TestResolveApiKey:
    """Test resolve_api_key."""

    def test_direct_value(self, monkeypatch):
        monkeypatch.delenv("sk-direct", raising=False)
        assert resolve_api_key("sk-direct") == "sk-direct"

    def test_env_var_name(self, monkeypatch):
        monkeypatch.setenv("MY_OPENAI_KEY", "sk-from-env")
        assert resolve_api_key("MY_OPENAI_KEY") == "sk-from-env"

    def test_default_env(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-default")
        assert resolve_api_key(None) == "sk-default"

    def test_missing(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        with pytest.raises(ProviderError, match="API key is required"):
            resolve_api_key(None)

    def test_unset_env_var_name(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        with pytest.raises(ProviderError, match="OPENAI_API_KEY"):
            resolve_api_key("OPENAI_API_KEY")

    @patch("quickrag.providers.openai.AsyncOpenAI")
    def test_factory_with_unset_env_var_name(self, mock_openai_class, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        with pytest.raises(ProviderError):
            create_embedding_provider(EmbeddingConfig(provider="openai", api_key="OPENAI_API_KEY"))
        mock_openai_class.assert_not_called()


class TestWrapOpenAIError:
    """Test error classification."""

    def test_rate_limit(self):
        request = httpx.Request("POST", "https://api.openai.com/v1/embeddings")
        response = httpx.Response(429, request=request)
        error = openai.RateLimitError("slow down", response=response, body=None)

        wrapped = wrap_openai_error(error, "generate embedding")

        assert "rate limit" in wrapped.message
        assert wrapped.original_error is error

    def test_connection(self):
        request = httpx.Request("POST", "https://api.openai.com/v1/embeddings")
        wrapped = wrap_openai_error(openai.APIConnectionError(request=request), "generate embedding")
        assert "Network error" in wrapped.message


@pytest.mark.asyncio
class TestOpenAIEmbeddingProvider:
    """Test OpenAIEmbeddingProvider functionality."""

    @patch("quickrag.providers.openai.AsyncOpenAI")
    async def test_initialization(self, mock_openai_class):
        provider = OpenAIEmbeddingProvider(embedding_config(base_url="http://localhost:1234/v1"))

        assert provider.model_name == "text-embedding-3-small"
        assert provider.get_dimension() == 1536
        assert provider.get_max_tokens() == 8191
        mock_openai_class.assert_called_once_with(api_key="sk-test", base_url="http://localhost:1234/v1")

    @patch("quickrag.providers.openai.AsyncOpenAI")
    async def test_embed_text(self, mock_openai_class):
        mock_client = MagicMock()
        mock_client.embeddings.create = AsyncMock(return_value=embedding_response([[0.1] * 1536]))
        mock_openai_class.return_value = mock_client

        provider = OpenAIEmbeddingProvider(embedding_config())
        vector = await provider.embed_text("This is a test sentence.")

        assert len(vector) == 1536
        mock_client.embeddings.create.assert_awaited_once_with(
            input="This is a test sentence.",
            model="text-embedding-3-small",
        )

    @patch("quickrag.providers.openai.AsyncOpenAI")
    async def test_embed_batch_splits_requests(self, mock_openai_class):
        """Test that batches larger than batch_size use several requests, in order."""
        mock_client = MagicMock()
        mock_client.embeddings.create = AsyncMock(
            side_effect=[
                embedding_response([[1.0], [2.0]]),
                embedding_response([[3.0]]),
            ]
        )
        mock_openai_class.return_value = mock_client

        provider = OpenAIEmbeddingProvider(embedding_config(batch_size=2))
        vectors = await provider.embed_batch(["a", "b", "c"])

        assert vectors == [[1.0], [2.0], [3.0]]
        assert mock_client.embeddings.create.await_count == 2

    @patch("quickrag.providers.openai.AsyncOpenAI")
    async def test_embed_batch_restores_order(self, mock_openai_class):
        response = SimpleNamespace(
            data=[SimpleNamespace(embedding=[2.0], index=1), SimpleNamespace(embedding=[1.0], index=0)],
            usage=None,
        )
        mock_client = MagicMock()
        mock_client.embeddings.create = AsyncMock(return_value=response)
        mock_openai_class.return_value = mock_client

        provider = OpenAIEmbeddingProvider(embedding_config())
        assert await provider.embed_batch(["a", "b"]) == [[1.0], [2.0]]

    @patch("quickrag.providers.openai.AsyncOpenAI")
    async def test_empty_text_rejected(self, mock_openai_class):
        provider = OpenAIEmbeddingProvider(embedding_config())
        with pytest.raises(ProviderError):
            await provider.embed_text("  ")
        with pytest.raises(ProviderError, match="index 1"):
            await provider.embed_batch(["ok", ""])
        assert await provider.embed_batch([]) == []

    @patch("quickrag.providers.openai.AsyncOpenAI")
    async def test_api_error_wrapped(self, mock_openai_class):
        request = httpx.Request("POST", "https://api.openai.com/v1/embeddings")
        mock_client = MagicMock()
        mock_client.embeddings.create = AsyncMock(side_effect=openai.APIConnectionError(request=request))
        mock_openai_class.return_value = mock_client

        provider = OpenAIEmbeddingProvider(embedding_config())
        with pytest.raises(ProviderError, match="Network error") as exc_info:
            await provider.embed_text("hello")
        assert isinstance(exc_info.value.original_error, openai.APIConnectionError)

    @patch("quickrag.providers.openai.AsyncOpenAI")
    async def test_close(self, mock_openai_class):
        mock_client = MagicMock()
        mock_client.close = AsyncMock()
        mock_openai_class.return_value = mock_client

        async with OpenAIEmbeddingProvider(embedding_config()):
            pass

        mock_client.close.assert_awaited_once()


async def _stream(*deltas):
    for delta in deltas:
        yield SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=delta))])
    yield SimpleNamespace(choices=[])


@pytest.mark.asyncio
class TestOpenAILLMProvider:
    """Test OpenAILLMProvider functionality."""

    def config(self) -> ProviderConfig:
        return ProviderConfig(provider_type="openai", model_name="gpt-3.5-turbo-0125", api_key="sk-test")

    @patch("quickrag.providers.openai_llm.AsyncOpenAI")
    async def test_generate(self, mock_openai_class):
        mock_client = MagicMock()
        mock_client.chat.completions.create = AsyncMock(
            return_value=SimpleNamespace(
                choices=[SimpleNamespace(message=SimpleNamespace(content="Task decomposition splits tasks."))],
                usage=None,
            )
        )
        mock_openai_class.return_value = mock_client

        provider = OpenAILLMProvider(self.config())
        answer = await provider.generate("prompt text", system_prompt="be brief", max_tokens=50)

        assert answer == "Task decomposition splits tasks."
        mock_client.chat.completions.create.assert_awaited_once_with(
            model="gpt-3.5-turbo-0125",
            messages=[
                {"role": "system", "content": "be brief"},
                {"role": "user", "content": "prompt text"},
            ],
            temperature=0.0,
            max_tokens=50,
        )

    @patch("quickrag.providers.openai_llm.AsyncOpenAI")
    async def test_stream(self, mock_openai_class):
        mock_client = MagicMock()
        mock_client.chat.completions.create = AsyncMock(return_value=_stream("Task ", None, "decomposition."))
        mock_openai_class.return_value = mock_client

        provider = OpenAILLMProvider(self.config())
        deltas = [d async for d in provider.stream("prompt text")]

        assert deltas == ["Task ", "decomposition."]
        assert mock_client.chat.completions.create.await_args.kwargs["stream"] is True

    @patch("quickrag.providers.openai_llm.AsyncOpenAI")
    async def test_generate_error_wrapped(self, mock_openai_class):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        response = httpx.Response(401, request=request)
        mock_client = MagicMock()
        mock_client.chat.completions.create = AsyncMock(
            side_effect=openai.AuthenticationError("bad key", response=response, body=None)
        )
        mock_openai_class.return_value = mock_client

        provider = OpenAILLMProvider(self.config())
        with pytest.raises(ProviderError, match="authentication failed"):
            await provider.generate("prompt")

    @patch("quickrag.providers.openai_llm.AsyncOpenAI")
    async def test_count_tokens(self, mock_openai_class):
        provider = OpenAILLMProvider(self.config())
        text = "Task decomposition can be done by LLM with simple prompting."

        expected = len(tiktoken.encoding_for_model("gpt-3.5-turbo-0125").encode(text))
        assert provider.count_tokens(text) == expected
        assert provider.count_tokens("") == 0

    @patch("quickrag.providers.openai_llm.AsyncOpenAI")
    async def test_count_tokens_unknown_model(self, mock_openai_class):
        config = ProviderConfig(provider_type="openai", model_name="llama3", api_key="ollama")
        provider = OpenAILLMProvider(config)

        expected = len(tiktoken.get_encoding("cl100k_base").encode("hello world"))
        assert provider.count_tokens("hello world") == expected
