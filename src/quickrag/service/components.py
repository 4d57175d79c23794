"""Component wiring.

Builds the providers and the vector store described by an AppConfig.
"""

from dataclasses import dataclass
from typing import Optional

from quickrag.config.schema import AppConfig
from quickrag.observability.logging import get_logger
from quickrag.providers import create_embedding_provider, create_llm_provider
from quickrag.providers.base import EmbeddingProvider, LLMProvider
from quickrag.storage import create_vector_store
from quickrag.storage.base import VectorStore

logger = get_logger(__name__)


@dataclass
class Components:
    """Initialized runtime components."""

    embedding_provider: EmbeddingProvider
    vector_store: VectorStore
    llm_provider: Optional[LLMProvider] = None

    async def close(self) -> None:
        """Release providers and the vector store.

        Every component is closed even when an earlier close fails; the first
        failure is raised.
        """
        try:
            await self.embedding_provider.close()
        finally:
            try:
                if self.llm_provider is not None:
                    await self.llm_provider.close()
            finally:
                await self.vector_store.close()


async def _close_after_failure(*providers: Optional[EmbeddingProvider | LLMProvider]) -> None:
    for provider in providers:
        if provider is None:
            continue
        try:
            await provider.close()
        except Exception as e:
            logger.warning("provider_close_failed", provider=type(provider).__name__, error=str(e))


async def create_components(config: AppConfig, with_llm: bool = True) -> Components:
    """Create and initialize the embedding provider, chat model and vector store.

    Args:
        config: Application configuration
        with_llm: Build the chat model too; indexing and search do not need it

    Raises:
        ProviderError: If a provider cannot be created
        StorageError: If the vector store cannot be initialized
    """
    embedding_provider = create_embedding_provider(config.embedding)
    llm_provider: Optional[LLMProvider] = None
    try:
        if with_llm:
            llm_provider = create_llm_provider(config.llm)
        vector_store = create_vector_store(config.vector_store)
        await vector_store.initialize()
    except Exception:
        # The original error is raised; close failures are only logged.
        await _close_after_failure(embedding_provider, llm_provider)
        raise

    logger.debug(
        "components_created",
        embedding_provider=config.embedding.provider.value,
        llm_provider=config.llm.provider.value if with_llm else None,
        vector_store=config.vector_store.store_type.value,
    )
    return Components(
        embedding_provider=embedding_provider,
        vector_store=vector_store,
        llm_provider=llm_provider,
    )
