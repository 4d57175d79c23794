"""Unit tests for InMemoryVectorStore."""

from uuid import uuid4

import pytest

from quickrag.entities import Chunk, Embedding
from quickrag.storage.base import StorageError
from quickrag.storage.memory import cosine_similarity


def make_chunk(source: str, index: int, content: str, document_id=None) -> Chunk:
    return Chunk(
        document_id=document_id or uuid4(),
        source=source,
        content=content,
        chunk_index=index,
        start_char=0,
        end_char=len(content),
        metadata={"source": source, "title": source.upper(), "content_md5": f"md5-{source}"},
    )


def make_embedding(chunk: Chunk, vector: list[float]) -> Embedding:
    return Embedding(chunk_id=chunk.id, vector=vector, model="test", dimension=len(vector))


@pytest.mark.asyncio
class TestInMemoryVectorStore:
    """Test InMemoryVectorStore functionality."""

    async def test_search_orders_by_similarity(self, memory_store):
        a = make_chunk("a", 0, "alpha")
        b = make_chunk("b", 0, "beta")
        c = make_chunk("c", 0, "gamma")
        await memory_store.add_embeddings_batch(
            [make_embedding(a, [1.0, 0.0]), make_embedding(b, [0.6, 0.8]), make_embedding(c, [-1.0, 0.0])],
            [a, b, c],
        )

        results = await memory_store.search([1.0, 0.0], top_k=3)

        assert [r.chunk.source for r in results] == ["a", "b", "c"]
        assert results[0].score == pytest.approx(1.0)
        assert results[1].score == pytest.approx(0.6)
        assert results[2].score == 0.0
        assert results[0].embedding is None

    async def test_top_k_filters_and_embeddings(self, memory_store):
        a0 = make_chunk("a", 0, "alpha zero")
        a1 = make_chunk("a", 1, "alpha one")
        b0 = make_chunk("b", 0, "beta zero")
        await memory_store.add_embeddings_batch(
            [make_embedding(a0, [1.0, 0.0]), make_embedding(a1, [0.9, 0.1]), make_embedding(b0, [1.0, 0.0])],
            [a0, a1, b0],
        )

        results = await memory_store.search([1.0, 0.0], top_k=5, filters={"source": "a"}, include_embeddings=True)

        assert {r.chunk.id for r in results} == {a0.id, a1.id}
        assert results[0].embedding == [1.0, 0.0]
        assert len(await memory_store.search([1.0, 0.0], top_k=1)) == 1

    async def test_source_operations(self, memory_store):
        doc_id = uuid4()
        a1 = make_chunk("a", 1, "second", document_id=doc_id)
        a0 = make_chunk("a", 0, "first", document_id=doc_id)
        b0 = make_chunk("b", 0, "other")
        await memory_store.add_embeddings_batch(
            [make_embedding(a1, [1.0]), make_embedding(a0, [1.0]), make_embedding(b0, [1.0])],
            [a1, a0, b0],
        )

        assert [c.content for c in await memory_store.get_by_source("a")] == ["first", "second"]
        assert await memory_store.list_sources() == [
            {"source": "a", "title": "A", "chunk_count": 2, "content_md5": "md5-a"},
            {"source": "b", "title": "B", "chunk_count": 1, "content_md5": "md5-b"},
        ]

        assert await memory_store.delete_by_document_id(doc_id) == 2
        assert await memory_store.delete_by_source("b") == 1
        assert await memory_store.count() == 0

    async def test_reset(self, memory_store):
        chunk = make_chunk("a", 0, "alpha")
        await memory_store.add_embeddings_batch([make_embedding(chunk, [1.0])], [chunk])
        await memory_store.reset()
        assert await memory_store.count() == 0

    async def test_length_mismatch(self, memory_store):
        chunk = make_chunk("a", 0, "alpha")
        with pytest.raises(StorageError):
            await memory_store.add_embeddings_batch([], [chunk])


class TestCosineSimilarity:
    """Test cosine_similarity."""

    def test_values(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == 0.0
        assert cosine_similarity([1.0, 1.0], [2.0, 2.0]) == pytest.approx(1.0)
        assert cosine_similarity([0.0, 0.0], [1.0, 0.0]) == 0.0

    def test_dimension_mismatch(self):
        with pytest.raises(ValueError):
            cosine_similarity([1.0], [1.0, 0.0])
