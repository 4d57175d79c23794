"""Abstract base classes for embedding and chat model providers.

Why this exists:
- Allows swapping between embedding models (OpenAI, local sentence-transformers)
- Enables offline runs and tests with the deterministic fake providers
- Gives the pipelines one async interface for embedding, generation and streaming

How to extend:
1. Subclass EmbeddingProvider or LLMProvider
2. Implement all abstract methods
3. Register the provider type in quickrag.providers
4. Add optional dependencies to pyproject.toml
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Any, Optional

from pydantic import BaseModel, Field


class ProviderConfig(BaseModel):
    """Base configuration for all providers."""

    provider_type: str
    model_name: str
    api_key: Optional[str] = None
    extra_params: dict[str, Any] = Field(default_factory=dict)


class EmbeddingProvider(ABC):
    """Abstract interface for embedding providers.

    Implementations must handle:
    - Single text embedding
    - Batch text embedding, preserving input order
    - Model metadata (dimension, max tokens)
    """

    def __init__(self, config: ProviderConfig) -> None:
        """Initialize provider with configuration."""
        self.config = config

    @abstractmethod
    async def embed_text(self, text: str) -> list[float]:
        """Generate embedding for a single text.

        Raises:
            ProviderError: If the text is empty or embedding generation fails
        """

    @abstractmethod
    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts, one vector per text in order.

        Raises:
            ProviderError: If any text is empty or embedding generation fails
        """

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the embedding dimension for this model."""

    @abstractmethod
    def get_max_tokens(self) -> int:
        """Return the maximum token length for this model."""

    async def close(self) -> None:
        """Release client resources."""

    async def __aenter__(self) -> "EmbeddingProvider":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


class LLMProvider(ABC):
    """Abstract interface for chat model providers.

    Implementations must handle:
    - Text generation from a single user prompt
    - Streaming the answer as text fragments
    - Token counting
    """

    def __init__(self, config: ProviderConfig) -> None:
        """Initialize provider with configuration."""
        self.config = config

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: float = 0.0,
    ) -> str:
        """Generate a completion for the prompt.

        Raises:
            ProviderError: If generation fails
        """

    @abstractmethod
    def stream(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: float = 0.0,
    ) -> AsyncIterator[str]:
        """Yield the completion as it is produced.

        Concatenating the yielded fragments gives the full answer.

        Raises:
            ProviderError: If generation fails
        """

    @abstractmethod
    def count_tokens(self, text: str) -> int:
        """Count tokens in text for this model."""

    async def close(self) -> None:
        """Release client resources."""

    async def __aenter__(self) -> "LLMProvider":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


class ProviderError(Exception):
    """Base exception for provider errors."""

    def __init__(self, message: str, provider: str, original_error: Optional[Exception] = None):
        self.message = message
        self.provider = provider
        self.original_error = original_error
        super().__init__(self.message)
