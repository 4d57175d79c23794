"""Local embedding provider using sentence-transformers.

Runs embedding models locally without API calls. Installed with the
`local` extra.

Trade-offs:
- Requires local compute resources (CPU/GPU)
- Model download required on first use
"""

import asyncio
from typing import Any, Optional

from quickrag.observability.logging import get_logger
from quickrag.providers.base import EmbeddingProvider, ProviderConfig, ProviderError

logger = get_logger(__name__)


# Model metadata: dimension and max tokens for common models
MODEL_METADATA = {
    "all-MiniLM-L6-v2": {"dimension": 384, "max_tokens": 256},
    "all-MiniLM-L12-v2": {"dimension": 384, "max_tokens": 256},
    "all-mpnet-base-v2": {"dimension": 768, "max_tokens": 384},
    "multi-qa-MiniLM-L6-cos-v1": {"dimension": 384, "max_tokens": 512},
}


class LocalEmbeddingProvider(EmbeddingProvider):
    """sentence-transformers embedding provider.

    Example:
        config = ProviderConfig(provider_type="local", model_name="all-MiniLM-L6-v2")
        provider = LocalEmbeddingProvider(config)
        vector = await provider.embed_text("Hello world")
    """

    def __init__(self, config: ProviderConfig) -> None:
        """Load the model.

        Raises:
            ImportError: If sentence-transformers is not installed
            ProviderError: If model loading fails
        """
        super().__init__(config)
        from sentence_transformers import SentenceTransformer

        self.model_name = config.model_name
        self.batch_size = int(config.extra_params.get("batch_size", 32))
        self._model: Optional[Any] = None

        logger.info("loading_local_embedding_model", model_name=self.model_name)
        try:
            self._model = SentenceTransformer(self.model_name, device=config.extra_params.get("device"))
        except (OSError, ValueError, RuntimeError) as e:
            raise ProviderError(
                message=f"Failed to load model '{self.model_name}': {e}",
                provider="local",
                original_error=e,
            ) from e

        if self.model_name in MODEL_METADATA:
            self._dimension = MODEL_METADATA[self.model_name]["dimension"]
            self._max_tokens = MODEL_METADATA[self.model_name]["max_tokens"]
        else:
            self._dimension = self._model.get_sentence_embedding_dimension()
            self._max_tokens = getattr(self._model, "max_seq_length", None) or 512
            logger.warning(
                "model_metadata_not_found",
                model_name=self.model_name,
                inferred_dimension=self._dimension,
                max_tokens=self._max_tokens,
            )

        logger.info(
            "local_embedding_model_loaded",
            model_name=self.model_name,
            dimension=self._dimension,
        )

    def _require_model(self) -> Any:
        if self._model is None:
            raise ProviderError(message="Model has been closed", provider="local")
        return self._model

    async def embed_text(self, text: str) -> list[float]:
        if not text or not text.strip():
            raise ProviderError(message="Cannot embed empty text", provider="local")
        return (await self.embed_batch([text]))[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        for i, text in enumerate(texts):
            if not text or not text.strip():
                raise ProviderError(message=f"Cannot embed empty text at index {i}", provider="local")

        model = self._require_model()
        try:
            # encode() blocks, so it runs in a worker thread.
            embeddings = await asyncio.to_thread(
                model.encode,
                texts,
                batch_size=self.batch_size,
                convert_to_numpy=True,
                show_progress_bar=False,
            )
        except (RuntimeError, ValueError) as e:
            raise ProviderError(
                message=f"Failed to generate batch embeddings: {e}",
                provider="local",
                original_error=e,
            ) from e

        logger.debug("generated_batch_embeddings", batch_size=len(texts))
        return embeddings.tolist()

    def get_dimension(self) -> int:
        return self._dimension

    def get_max_tokens(self) -> int:
        return self._max_tokens

    async def close(self) -> None:
        """Release the model reference."""
        if self._model is not None:
            logger.debug("closing_local_embedding_provider", model_name=self.model_name)
            self._model = None
