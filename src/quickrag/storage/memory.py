"""In-memory vector store for testing and development.

Nothing is persisted; the store lives as long as the process.
"""

import math
from typing import Any, Optional
from uuid import UUID

from quickrag.entities import Chunk, Embedding, SearchResult
from quickrag.observability.logging import get_logger
from quickrag.storage.base import StorageError, VectorStore, summarize_sources

logger = get_logger(__name__)


def cosine_similarity(vec1: list[float], vec2: list[float]) -> float:
    """Cosine similarity of two vectors; 0.0 if either is all zeros."""
    if len(vec1) != len(vec2):
        raise ValueError(f"Vector dimensions differ: {len(vec1)} vs {len(vec2)}")
    dot = sum(a * b for a, b in zip(vec1, vec2))
    norm1 = math.sqrt(sum(a * a for a in vec1))
    norm2 = math.sqrt(sum(b * b for b in vec2))
    if norm1 == 0 or norm2 == 0:
        return 0.0
    return dot / (norm1 * norm2)


def _matches(chunk: Chunk, filters: Optional[dict[str, Any]]) -> bool:
    if not filters:
        return True
    for key, expected in filters.items():
        if key == "source":
            actual: Any = chunk.source
        elif key == "document_id":
            actual = str(chunk.document_id)
            expected = str(expected)
        else:
            actual = chunk.metadata.get(key)
        if actual != expected:
            return False
    return True


class InMemoryVectorStore(VectorStore):
    """Vector store backed by a dict of chunk id -> (vector, chunk).

    Relevance is cosine similarity clamped to [0, 1].
    """

    def __init__(self, config) -> None:
        super().__init__(config)
        self._items: dict[UUID, tuple[list[float], Chunk]] = {}

    async def initialize(self) -> None:
        logger.debug("memory_vector_store_initialized", collection_name=self.config.collection_name)

    async def add_embeddings_batch(self, embeddings: list[Embedding], chunks: list[Chunk]) -> None:
        if len(embeddings) != len(chunks):
            raise StorageError(
                message=f"Embeddings and chunks length mismatch: {len(embeddings)} vs {len(chunks)}",
                storage_type="memory",
            )
        for embedding, chunk in zip(embeddings, chunks):
            self._items[chunk.id] = (list(embedding.vector), chunk)

    async def search(
        self,
        query_vector: list[float],
        top_k: int = 10,
        filters: Optional[dict[str, Any]] = None,
        include_embeddings: bool = False,
    ) -> list[SearchResult]:
        scored = []
        for vector, chunk in self._items.values():
            if not _matches(chunk, filters):
                continue
            try:
                similarity = cosine_similarity(query_vector, vector)
            except ValueError as e:
                raise StorageError(message=str(e), storage_type="memory", original_error=e) from e
            scored.append((min(max(similarity, 0.0), 1.0), vector, chunk))

        scored.sort(key=lambda item: item[0], reverse=True)
        return [
            SearchResult(
                chunk=chunk,
                score=score,
                embedding=list(vector) if include_embeddings else None,
                metadata=dict(chunk.metadata),
            )
            for score, vector, chunk in scored[:top_k]
        ]

    async def get_by_source(self, source: str) -> list[Chunk]:
        chunks = [chunk for _, chunk in self._items.values() if chunk.source == source]
        return sorted(chunks, key=lambda c: c.chunk_index)

    async def delete_by_source(self, source: str) -> int:
        doomed = [cid for cid, (_, chunk) in self._items.items() if chunk.source == source]
        for cid in doomed:
            del self._items[cid]
        return len(doomed)

    async def delete_by_document_id(self, document_id: UUID) -> int:
        doomed = [cid for cid, (_, chunk) in self._items.items() if chunk.document_id == document_id]
        for cid in doomed:
            del self._items[cid]
        return len(doomed)

    async def list_sources(self) -> list[dict[str, Any]]:
        chunks = sorted((chunk for _, chunk in self._items.values()), key=lambda c: c.chunk_index)
        return summarize_sources(chunks)

    async def count(self) -> int:
        return len(self._items)

    async def reset(self) -> None:
        self._items.clear()

    async def close(self) -> None:
        pass
