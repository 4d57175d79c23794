"""OpenAI embedding provider using official API.

This provider uses OpenAI's embedding API for high-quality embeddings.
It requires an API key and internet connection.

Trade-offs:
- API costs per token
- Data sent to third-party service
- Rate limits apply
"""

import os
import re
from typing import Any, Optional

import openai
from openai import AsyncOpenAI

from quickrag.observability.logging import get_logger
from quickrag.providers.base import EmbeddingProvider, ProviderConfig, ProviderError

logger = get_logger(__name__)


# Model metadata for OpenAI embedding models
MODEL_METADATA = {
    "text-embedding-ada-002": {"dimension": 1536, "max_tokens": 8191},
    "text-embedding-3-small": {"dimension": 1536, "max_tokens": 8191},
    "text-embedding-3-large": {"dimension": 3072, "max_tokens": 8191},
}

DEFAULT_MODEL = "text-embedding-3-small"

# Maximum number of inputs per embeddings request
MAX_BATCH_SIZE = 2048

# api_key values shaped like this name an environment variable.
_ENV_NAME_RE = re.compile(r"^[A-Z][A-Z0-9_]*$")


def resolve_api_key(api_key: Optional[str], provider: str = "openai") -> str:
    """Resolve the API key for an OpenAI client.

    The configured value may be the key itself or the name of an environment
    variable holding it. Without a configured value OPENAI_API_KEY is used.

    Raises:
        ProviderError: If no key can be found
    """
    if api_key:
        env_value = os.getenv(api_key)
        if env_value:
            return env_value
        if _ENV_NAME_RE.match(api_key):
            raise ProviderError(
                message=f"Environment variable '{api_key}' named by api_key is not set",
                provider=provider,
            )
        return api_key

    env_key = os.getenv("OPENAI_API_KEY")
    if not env_key:
        raise ProviderError(
            message="OpenAI API key is required. Set OPENAI_API_KEY or configure api_key",
            provider=provider,
        )
    return env_key


def client_kwargs(config: ProviderConfig, api_key: str) -> dict[str, Any]:
    """Build AsyncOpenAI keyword arguments from provider config."""
    kwargs: dict[str, Any] = {"api_key": api_key}
    for name in ("base_url", "organization", "timeout", "max_retries"):
        if name in config.extra_params:
            kwargs[name] = config.extra_params[name]
    return kwargs


def wrap_openai_error(e: Exception, action: str, provider: str = "openai") -> ProviderError:
    """Classify an OpenAI SDK exception into a ProviderError."""
    if isinstance(e, openai.AuthenticationError):
        message = f"OpenAI authentication failed: {e}"
    elif isinstance(e, openai.RateLimitError):
        message = f"OpenAI rate limit exceeded: {e}"
    elif isinstance(e, openai.APIConnectionError):
        message = f"Network error connecting to OpenAI: {e}"
    elif isinstance(e, openai.APIStatusError):
        message = f"OpenAI API error {e.status_code}: {e.message}"
    else:
        message = f"Failed to {action}: {e}"
    return ProviderError(message=message, provider=provider, original_error=e)


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """OpenAI embedding provider.

    Example:
        config = ProviderConfig(
            provider_type="openai",
            model_name="text-embedding-3-small",
            api_key="OPENAI_API_KEY",
        )
        async with OpenAIEmbeddingProvider(config) as provider:
            vector = await provider.embed_text("Hello world")
    """

    def __init__(self, config: ProviderConfig) -> None:
        """Initialize OpenAI embedding provider.

        Raises:
            ProviderError: If the API key is missing or client initialization fails
        """
        super().__init__(config)
        api_key = resolve_api_key(config.api_key)

        self.model_name = config.model_name or DEFAULT_MODEL
        self.batch_size = min(int(config.extra_params.get("batch_size", MAX_BATCH_SIZE)), MAX_BATCH_SIZE)

        if self.model_name in MODEL_METADATA:
            metadata = MODEL_METADATA[self.model_name]
            self._dimension = metadata["dimension"]
            self._max_tokens = metadata["max_tokens"]
        else:
            logger.warning(
                "unknown_openai_model",
                model_name=self.model_name,
                known_models=list(MODEL_METADATA.keys()),
            )
            self._dimension = 1536
            self._max_tokens = 8191

        try:
            self.client = AsyncOpenAI(**client_kwargs(config, api_key))
        except openai.OpenAIError as e:
            raise ProviderError(
                message=f"Failed to initialize OpenAI client: {e}",
                provider="openai",
                original_error=e,
            ) from e

        logger.info(
            "openai_embedding_provider_initialized",
            model_name=self.model_name,
            dimension=self._dimension,
            max_tokens=self._max_tokens,
        )

    async def embed_text(self, text: str) -> list[float]:
        if not text or not text.strip():
            raise ProviderError(message="Cannot embed empty text", provider="openai")

        try:
            response = await self.client.embeddings.create(input=text, model=self.model_name)
        except openai.OpenAIError as e:
            raise wrap_openai_error(e, "generate embedding") from e

        if response.usage:
            logger.debug(
                "openai_embedding_generated",
                tokens_used=response.usage.total_tokens,
                model=self.model_name,
            )
        return response.data[0].embedding

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed texts, splitting into requests of at most batch_size inputs."""
        if not texts:
            return []

        for i, text in enumerate(texts):
            if not text or not text.strip():
                raise ProviderError(message=f"Cannot embed empty text at index {i}", provider="openai")

        all_embeddings: list[list[float]] = []
        total_tokens = 0
        num_calls = 0
        for start in range(0, len(texts), self.batch_size):
            batch = texts[start : start + self.batch_size]
            logger.debug(
                "calling_openai_embeddings_api_batch",
                batch_size=len(batch),
                batch_index=start // self.batch_size,
                model=self.model_name,
            )
            try:
                response = await self.client.embeddings.create(input=batch, model=self.model_name)
            except openai.OpenAIError as e:
                raise wrap_openai_error(e, "generate batch embeddings") from e

            # The API may return items out of order; index restores input order.
            ordered = sorted(response.data, key=lambda item: item.index)
            all_embeddings.extend(item.embedding for item in ordered)
            if response.usage:
                total_tokens += response.usage.total_tokens
            num_calls += 1

        logger.info(
            "openai_batch_embeddings_generated",
            total_texts=len(texts),
            total_tokens=total_tokens,
            model=self.model_name,
            num_api_calls=num_calls,
        )
        return all_embeddings

    def get_dimension(self) -> int:
        return self._dimension

    def get_max_tokens(self) -> int:
        return self._max_tokens

    async def close(self) -> None:
        """Close the OpenAI client connection."""
        logger.debug("closing_openai_embedding_provider", model_name=self.model_name)
        await self.client.close()
