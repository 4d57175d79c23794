"""Abstract base class for vector storage backends.

Why this exists:
- Allows swapping between vector databases (Chroma, in-memory)
- Keeps chunk text and metadata next to its vector, so a search result is
  self-contained
- Enables testing with the in-memory implementation

How to extend:
1. Subclass VectorStore
2. Implement all abstract methods
3. Register the store type in quickrag.storage
"""

from abc import ABC, abstractmethod
from typing import Any, Optional
from uuid import UUID

from quickrag.config.schema import VectorStoreConfig
from quickrag.entities import Chunk, Embedding, SearchResult


class VectorStore(ABC):
    """Abstract interface for vector storage backends.

    Scores returned by search are relevance scores in [0, 1], higher meaning
    more similar. Filters are equality matches on chunk metadata keys
    (source, document_id, title, ...).
    """

    def __init__(self, config: VectorStoreConfig) -> None:
        """Initialize storage with configuration."""
        self.config = config

    @abstractmethod
    async def initialize(self) -> None:
        """Create clients and collections. Must be called before use."""

    @abstractmethod
    async def add_embeddings_batch(self, embeddings: list[Embedding], chunks: list[Chunk]) -> None:
        """Store embeddings with their chunks.

        Raises:
            StorageError: If the lists differ in length or the write fails
        """

    @abstractmethod
    async def search(
        self,
        query_vector: list[float],
        top_k: int = 10,
        filters: Optional[dict[str, Any]] = None,
        include_embeddings: bool = False,
    ) -> list[SearchResult]:
        """Return up to top_k chunks ordered by descending relevance.

        Args:
            query_vector: Query embedding vector
            top_k: Number of results to return
            filters: Optional metadata equality filters
            include_embeddings: Attach stored vectors to the results
        """

    @abstractmethod
    async def get_by_source(self, source: str) -> list[Chunk]:
        """Return the stored chunks of one source, ordered by chunk_index."""

    @abstractmethod
    async def delete_by_source(self, source: str) -> int:
        """Delete all chunks of a source. Returns the number deleted."""

    @abstractmethod
    async def delete_by_document_id(self, document_id: UUID) -> int:
        """Delete all chunks of a document. Returns the number deleted."""

    @abstractmethod
    async def list_sources(self) -> list[dict[str, Any]]:
        """Summarize stored sources.

        Returns:
            One dict per source with source, title, chunk_count and
            content_md5, sorted by source
        """

    @abstractmethod
    async def count(self) -> int:
        """Return total number of chunks stored."""

    @abstractmethod
    async def reset(self) -> None:
        """Delete everything in the collection."""

    @abstractmethod
    async def close(self) -> None:
        """Close connections and cleanup resources."""

    async def __aenter__(self) -> "VectorStore":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


def summarize_sources(chunks: list[Chunk]) -> list[dict[str, Any]]:
    """Group chunks by source into list_sources() rows."""
    summary: dict[str, dict[str, Any]] = {}
    for chunk in chunks:
        row = summary.setdefault(
            chunk.source,
            {
                "source": chunk.source,
                "title": chunk.metadata.get("title"),
                "chunk_count": 0,
                "content_md5": chunk.metadata.get("content_md5"),
            },
        )
        row["chunk_count"] += 1
    return [summary[source] for source in sorted(summary)]


class StorageError(Exception):
    """Base exception for storage errors."""

    def __init__(self, message: str, storage_type: str, original_error: Optional[Exception] = None):
        self.message = message
        self.storage_type = storage_type
        self.original_error = original_error
        super().__init__(self.message)
