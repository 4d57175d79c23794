"""Vector storage backends."""

from quickrag.config.schema import VectorStoreConfig
from quickrag.storage.base import StorageError, VectorStore


def create_vector_store(config: VectorStoreConfig) -> VectorStore:
    """Factory function to create a vector store from configuration.

    The store still needs `await store.initialize()`.

    Raises:
        ValueError: If the store type is unknown
    """
    store_type = str(getattr(config.store_type, "value", config.store_type)).lower()

    if store_type == "chroma":
        from quickrag.storage.chroma import ChromaVectorStore

        return ChromaVectorStore(config)

    if store_type == "memory":
        from quickrag.storage.memory import InMemoryVectorStore

        return InMemoryVectorStore(config)

    raise ValueError(f"Unknown vector store type: '{store_type}'. Supported types: chroma, memory")


__all__ = ["StorageError", "VectorStore", "create_vector_store"]
