"""Chroma vector store implementation.

Persistent vector storage backed by an embedded ChromaDB client. All chunks
live in one collection named after the configured collection_name. The
collection uses cosine space, so relevance is 1 - distance.

Trade-offs:
- Not suitable for very large datasets (millions of vectors)
- Single-node, file-based storage
"""

import re
from typing import Any, Optional
from uuid import UUID

import chromadb

from quickrag.entities import Chunk, Embedding, SearchResult
from quickrag.observability.logging import get_logger
from quickrag.storage.base import StorageError, VectorStore

logger = get_logger(__name__)

# Metadata keys rebuilt into Chunk fields rather than left in chunk.metadata.
_CHUNK_FIELDS = ("chunk_id", "document_id", "chunk_index", "start_char", "end_char")


def sanitize_collection_name(name: str) -> str:
    """Sanitize collection name for Chroma compatibility.

    Chroma collection names must:
    - Be 3-63 characters long
    - Start and end with alphanumeric
    - Contain only alphanumeric, underscores, or hyphens
    """
    sanitized = re.sub(r"[^a-zA-Z0-9_-]", "_", name)

    if sanitized and not sanitized[0].isalnum():
        sanitized = "c" + sanitized
    if sanitized and not sanitized[-1].isalnum():
        sanitized = sanitized + "0"

    if len(sanitized) < 3:
        sanitized = sanitized + "_default"
    if len(sanitized) > 63:
        sanitized = sanitized[:63]
    return sanitized


def chunk_to_metadata(chunk: Chunk) -> dict[str, Any]:
    """Flatten a chunk into Chroma metadata.

    Chroma accepts only str, int, float and bool values, so None values and
    nested structures from chunk.metadata are dropped.
    """
    metadata: dict[str, Any] = {
        key: value
        for key, value in chunk.metadata.items()
        if isinstance(value, (str, int, float, bool)) and key not in _CHUNK_FIELDS
    }
    metadata.update(
        {
            "chunk_id": str(chunk.id),
            "document_id": str(chunk.document_id),
            "source": chunk.source,
            "chunk_index": chunk.chunk_index,
            "start_char": chunk.start_char,
            "end_char": chunk.end_char,
        }
    )
    return metadata


def metadata_to_chunk(chunk_id: str, content: str, metadata: dict[str, Any]) -> Chunk:
    """Rebuild a Chunk from a stored Chroma record."""
    return Chunk(
        id=UUID(chunk_id),
        document_id=UUID(metadata["document_id"]),
        source=metadata["source"],
        content=content,
        chunk_index=metadata["chunk_index"],
        start_char=metadata["start_char"],
        end_char=metadata["end_char"],
        metadata={k: v for k, v in metadata.items() if k not in _CHUNK_FIELDS},
    )


def build_where(filters: Optional[dict[str, Any]]) -> Optional[dict[str, Any]]:
    """Translate equality filters into a Chroma where clause."""
    if not filters:
        return None
    clauses = [{key: str(value) if isinstance(value, UUID) else value} for key, value in filters.items()]
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


class ChromaVectorStore(VectorStore):
    """Chroma vector store.

    Example:
        config = VectorStoreConfig(collection_name="quickrag", persist_directory=Path("./chroma"))
        store = ChromaVectorStore(config)
        await store.initialize()
    """

    def __init__(self, config, client: Optional[Any] = None) -> None:
        """Initialize the store.

        Args:
            config: Vector store configuration
            client: Optional pre-built Chroma client (e.g. an EphemeralClient)
        """
        super().__init__(config)
        self.collection_name = sanitize_collection_name(config.collection_name)
        self.persist_directory = config.persist_directory
        self._client = client
        self._collection = None

    @property
    def collection(self):
        if self._collection is None:
            raise StorageError(
                message="Chroma vector store is not initialized; call initialize() first",
                storage_type="chroma",
            )
        return self._collection

    async def initialize(self) -> None:
        """Create the persistent client and the collection.

        Raises:
            StorageError: If initialization fails
        """
        if self._collection is not None:
            return
        try:
            if self._client is None:
                if self.persist_directory is None:
                    self._client = chromadb.EphemeralClient()
                else:
                    self.persist_directory.mkdir(parents=True, exist_ok=True)
                    self._client = chromadb.PersistentClient(path=str(self.persist_directory))
            self._collection = self._get_or_create_collection()
        except Exception as e:
            raise StorageError(
                message=f"Failed to initialize Chroma: {e}",
                storage_type="chroma",
                original_error=e,
            ) from e

        logger.info(
            "chroma_vector_store_initialized",
            persist_directory=str(self.persist_directory) if self.persist_directory else None,
            collection_name=self.collection_name,
        )

    def _get_or_create_collection(self):
        # Vectors always come from our own providers, so no embedding function.
        return self._client.get_or_create_collection(
            name=self.collection_name,
            metadata={"hnsw:space": "cosine"},
            embedding_function=None,
        )

    async def add_embeddings_batch(self, embeddings: list[Embedding], chunks: list[Chunk]) -> None:
        if not embeddings and not chunks:
            return
        if len(embeddings) != len(chunks):
            raise StorageError(
                message=f"Embeddings and chunks length mismatch: {len(embeddings)} vs {len(chunks)}",
                storage_type="chroma",
            )

        try:
            self.collection.upsert(
                ids=[str(chunk.id) for chunk in chunks],
                embeddings=[list(emb.vector) for emb in embeddings],
                metadatas=[chunk_to_metadata(chunk) for chunk in chunks],
                documents=[chunk.content for chunk in chunks],
            )
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(
                message=f"Failed to add embeddings batch: {e}",
                storage_type="chroma",
                original_error=e,
            ) from e

        logger.debug("embeddings_batch_added", count=len(chunks), collection_name=self.collection_name)

    async def search(
        self,
        query_vector: list[float],
        top_k: int = 10,
        filters: Optional[dict[str, Any]] = None,
        include_embeddings: bool = False,
    ) -> list[SearchResult]:
        collection = self.collection
        include = ["documents", "metadatas", "distances"]
        if include_embeddings:
            include.append("embeddings")

        try:
            total = collection.count()
            if total == 0:
                return []
            query_results = collection.query(
                query_embeddings=[list(query_vector)],
                n_results=min(top_k, total),
                where=build_where(filters),
                include=include,
            )
        except Exception as e:
            raise StorageError(
                message=f"Search failed: {e}",
                storage_type="chroma",
                original_error=e,
            ) from e

        results = []
        ids = query_results["ids"][0] if query_results["ids"] else []
        vectors = query_results.get("embeddings") if include_embeddings else None
        for i, chunk_id in enumerate(ids):
            distance = query_results["distances"][0][i]
            chunk = metadata_to_chunk(
                chunk_id,
                query_results["documents"][0][i],
                query_results["metadatas"][0][i],
            )
            results.append(
                SearchResult(
                    chunk=chunk,
                    score=min(max(1.0 - distance, 0.0), 1.0),
                    embedding=[float(x) for x in vectors[0][i]] if vectors is not None else None,
                    metadata=dict(chunk.metadata),
                )
            )

        logger.debug("search_completed", top_k=top_k, result_count=len(results), filters=filters)
        return results

    def _get(self, where: Optional[dict[str, Any]], include: list[str]) -> dict[str, Any]:
        try:
            return self.collection.get(where=where, include=include)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(
                message=f"Failed to read from Chroma: {e}",
                storage_type="chroma",
                original_error=e,
            ) from e

    async def get_by_source(self, source: str) -> list[Chunk]:
        records = self._get({"source": source}, ["documents", "metadatas"])
        chunks = [
            metadata_to_chunk(chunk_id, content, metadata)
            for chunk_id, content, metadata in zip(records["ids"], records["documents"], records["metadatas"])
        ]
        return sorted(chunks, key=lambda c: c.chunk_index)

    def _delete_where(self, where: dict[str, Any]) -> int:
        ids = self._get(where, ["metadatas"])["ids"]
        if not ids:
            return 0
        try:
            self.collection.delete(ids=ids)
        except Exception as e:
            raise StorageError(
                message=f"Failed to delete chunks: {e}",
                storage_type="chroma",
                original_error=e,
            ) from e
        return len(ids)

    async def delete_by_source(self, source: str) -> int:
        deleted = self._delete_where({"source": source})
        logger.info("chunks_deleted", source=source, count=deleted)
        return deleted

    async def delete_by_document_id(self, document_id: UUID) -> int:
        deleted = self._delete_where({"document_id": str(document_id)})
        logger.info("chunks_deleted", document_id=str(document_id), count=deleted)
        return deleted

    async def list_sources(self) -> list[dict[str, Any]]:
        records = self._get(None, ["metadatas"])
        summary: dict[str, dict[str, Any]] = {}
        for metadata in records["metadatas"]:
            row = summary.setdefault(
                metadata["source"],
                {
                    "source": metadata["source"],
                    "title": metadata.get("title"),
                    "chunk_count": 0,
                    "content_md5": metadata.get("content_md5"),
                },
            )
            row["chunk_count"] += 1
        return [summary[source] for source in sorted(summary)]

    async def count(self) -> int:
        try:
            return self.collection.count()
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(message=f"Failed to count: {e}", storage_type="chroma", original_error=e) from e

    async def reset(self) -> None:
        """Drop and recreate the collection."""
        try:
            self._client.delete_collection(self.collection_name)
            self._collection = self._get_or_create_collection()
        except Exception as e:
            raise StorageError(
                message=f"Failed to reset collection '{self.collection_name}': {e}",
                storage_type="chroma",
                original_error=e,
            ) from e
        logger.info("collection_reset", collection_name=self.collection_name)

    async def close(self) -> None:
        """Drop client references; the persistent client flushes on its own."""
        self._collection = None
        self._client = None
