"""Provider abstractions: embeddings and chat model backends."""

from quickrag.config.schema import EmbeddingConfig, LLMConfig
from quickrag.providers.base import EmbeddingProvider, LLMProvider, ProviderConfig, ProviderError


def create_embedding_provider(config: EmbeddingConfig) -> EmbeddingProvider:
    """Factory function to create embedding providers based on configuration.

    Raises:
        ValueError: If the provider type is unknown
        ProviderError: If provider initialization fails or dependencies are missing

    Example:
        provider = create_embedding_provider(EmbeddingConfig(provider="local", model_name="all-MiniLM-L6-v2"))
    """
    provider_type = str(getattr(config.provider, "value", config.provider)).lower()
    provider_config = ProviderConfig(
        provider_type=provider_type,
        model_name=config.model_name,
        api_key=config.api_key,
        extra_params={"batch_size": config.batch_size, **config.extra_params},
    )

    if provider_type == "openai":
        from quickrag.providers.openai import OpenAIEmbeddingProvider

        return OpenAIEmbeddingProvider(provider_config)

    if provider_type == "local":
        try:
            from quickrag.providers.local import LocalEmbeddingProvider

            return LocalEmbeddingProvider(provider_config)
        except ImportError as e:
            raise ProviderError(
                message=(
                    "Local embedding provider requires sentence-transformers. "
                    "Install with: pip install 'quickrag[local]'"
                ),
                provider="local",
                original_error=e,
            ) from e

    if provider_type == "mock":
        from quickrag.providers.fake import FakeEmbeddingProvider

        return FakeEmbeddingProvider(provider_config)

    raise ValueError(
        f"Unknown embedding provider type: '{provider_type}'. Supported types: openai, local, mock"
    )


def create_llm_provider(config: LLMConfig) -> LLMProvider:
    """Factory function to create chat model providers based on configuration.

    Raises:
        ValueError: If the provider type is unknown
        ProviderError: If provider initialization fails
    """
    provider_type = str(getattr(config.provider, "value", config.provider)).lower()
    provider_config = ProviderConfig(
        provider_type=provider_type,
        model_name=config.model_name,
        api_key=config.api_key,
        extra_params=dict(config.extra_params),
    )

    if provider_type == "openai":
        from quickrag.providers.openai_llm import OpenAILLMProvider

        return OpenAILLMProvider(provider_config)

    if provider_type == "mock":
        from quickrag.providers.fake import FakeLLMProvider

        return FakeLLMProvider(provider_config)

    raise ValueError(f"Unknown LLM provider type: '{provider_type}'. Supported types: openai, mock")


__all__ = [
    "EmbeddingProvider",
    "LLMProvider",
    "ProviderConfig",
    "ProviderError",
    "create_embedding_provider",
    "create_llm_provider",
]
