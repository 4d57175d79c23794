"""Unit tests for Retriever and maximal marginal relevance."""

from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from quickrag.config.schema import RetrieverConfig
from quickrag.core.retrieval import RetrievalError, Retriever, maximal_marginal_relevance
from quickrag.entities import Chunk, Embedding


def make_chunk(content: str, index: int = 0) -> Chunk:
    return Chunk(
        document_id=uuid4(),
        source="https://example.com",
        content=content,
        chunk_index=index,
        start_char=0,
        end_char=len(content),
    )


async def populate(store, items: list[tuple[str, list[float]]]) -> list[Chunk]:
    chunks = [make_chunk(text, i) for i, (text, _) in enumerate(items)]
    embeddings = [
        Embedding(chunk_id=c.id, vector=v, model="test", dimension=len(v)) for c, (_, v) in zip(chunks, items)
    ]
    await store.add_embeddings_batch(embeddings, chunks)
    return chunks


def provider_returning(vector: list[float]) -> AsyncMock:
    provider = AsyncMock()
    provider.embed_text.return_value = vector
    return provider


class TestMaximalMarginalRelevance:
    """Test maximal_marginal_relevance."""

    def test_pure_relevance(self):
        candidates = [[1.0, 0.0], [0.99, 0.01], [0.0, 1.0]]
        assert maximal_marginal_relevance([1.0, 0.0], candidates, k=2, lambda_mult=1.0) == [0, 1]

    def test_diversity_skips_near_duplicate(self):
        """Test that a near-duplicate of the first pick loses to a different vector."""
        candidates = [[1.0, 0.0], [0.99, 0.01], [0.6, 0.8]]
        assert maximal_marginal_relevance([1.0, 0.0], candidates, k=2, lambda_mult=0.25) == [0, 2]

    def test_k_larger_than_candidates(self):
        assert sorted(maximal_marginal_relevance([1.0], [[1.0], [0.5]], k=5)) == [0, 1]

    def test_empty(self):
        assert maximal_marginal_relevance([1.0], [], k=3) == []


@pytest.mark.asyncio
class TestRetriever:
    """Test Retriever functionality."""

    async def test_similarity(self, memory_store):
        chunks = await populate(memory_store, [("a", [1.0, 0.0]), ("b", [0.8, 0.6]), ("c", [0.0, 1.0])])
        retriever = Retriever(provider_returning([1.0, 0.0]), memory_store, RetrieverConfig(k=2))

        results = await retriever.retrieve("question")

        assert [r.chunk.id for r in results] == [chunks[0].id, chunks[1].id]

    async def test_k_override(self, memory_store):
        await populate(memory_store, [("a", [1.0, 0.0]), ("b", [0.8, 0.6]), ("c", [0.0, 1.0])])
        retriever = Retriever(provider_returning([1.0, 0.0]), memory_store, RetrieverConfig(k=2))
        assert len(await retriever.retrieve("question", k=3)) == 3

    async def test_score_threshold(self, memory_store):
        chunks = await populate(memory_store, [("a", [1.0, 0.0]), ("b", [0.8, 0.6]), ("c", [0.0, 1.0])])
        config = RetrieverConfig(search_type="similarity_score_threshold", score_threshold=0.7, k=3)
        retriever = Retriever(provider_returning([1.0, 0.0]), memory_store, config)

        results = await retriever.retrieve("question")

        assert [r.chunk.id for r in results] == [chunks[0].id, chunks[1].id]

    async def test_mmr(self, memory_store):
        chunks = await populate(
            memory_store,
            [("a", [1.0, 0.0]), ("a copy", [0.99, 0.01]), ("different", [0.6, 0.8])],
        )
        config = RetrieverConfig(search_type="mmr", k=2, fetch_k=3, lambda_mult=0.25)
        retriever = Retriever(provider_returning([1.0, 0.0]), memory_store, config)

        results = await retriever.retrieve("question")

        assert [r.chunk.id for r in results] == [chunks[0].id, chunks[2].id]
        assert all(r.embedding is None for r in results)

    @pytest.mark.parametrize("k", [0, -1])
    async def test_non_positive_k_rejected(self, memory_store, k):
        await populate(memory_store, [("a", [1.0, 0.0]), ("b", [0.8, 0.6]), ("c", [0.0, 1.0])])
        retriever = Retriever(provider_returning([1.0, 0.0]), memory_store, RetrieverConfig(k=2))

        with pytest.raises(RetrievalError, match="positive"):
            await retriever.retrieve("question", k=k)

    async def test_empty_query(self, memory_store):
        retriever = Retriever(provider_returning([1.0]), memory_store)
        with pytest.raises(RetrievalError):
            await retriever.retrieve("   ")

    async def test_threshold_requires_value(self):
        with pytest.raises(ValueError):
            RetrieverConfig(search_type="similarity_score_threshold")
