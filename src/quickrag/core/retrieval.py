"""Retriever: turn a question into the most relevant stored chunks.

Three strategies:
- similarity: top k by relevance score
- mmr: maximal marginal relevance over fetch_k candidates, trading relevance
  against redundancy with lambda_mult (1.0 = pure relevance)
- similarity_score_threshold: top k, dropping results below score_threshold
"""

import math
from typing import Any, Optional

from quickrag.config.schema import RetrieverConfig, SearchType
from quickrag.entities import SearchResult
from quickrag.observability.logging import get_logger
from quickrag.providers.base import EmbeddingProvider
from quickrag.storage.base import VectorStore

logger = get_logger(__name__)


class RetrievalError(Exception):
    """Raised when a query cannot be served."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.message = message
        self.original_error = original_error
        super().__init__(self.message)


def _cosine(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


def maximal_marginal_relevance(
    query_vector: list[float],
    candidates: list[list[float]],
    k: int,
    lambda_mult: float = 0.5,
) -> list[int]:
    """Pick k candidate indices balancing query similarity against diversity.

    The first pick is the candidate most similar to the query. Each later
    pick maximizes lambda_mult * sim(query, c) - (1 - lambda_mult) * max sim(c, picked).
    """
    if not candidates or k <= 0:
        return []

    query_sims = [_cosine(query_vector, c) for c in candidates]
    selected = [max(range(len(candidates)), key=lambda i: query_sims[i])]

    while len(selected) < min(k, len(candidates)):
        best_index = -1
        best_score = -math.inf
        for i, candidate in enumerate(candidates):
            if i in selected:
                continue
            redundancy = max(_cosine(candidate, candidates[j]) for j in selected)
            score = lambda_mult * query_sims[i] - (1 - lambda_mult) * redundancy
            if score > best_score:
                best_score = score
                best_index = i
        selected.append(best_index)
    return selected


class Retriever:
    """Embed a query and search the vector store with the configured strategy.

    Example:
        retriever = Retriever(embedding_provider, vector_store, RetrieverConfig(search_type="mmr"))
        results = await retriever.retrieve("What is task decomposition?")
    """

    def __init__(
        self,
        embedding_provider: EmbeddingProvider,
        vector_store: VectorStore,
        config: Optional[RetrieverConfig] = None,
    ) -> None:
        self.embedding_provider = embedding_provider
        self.vector_store = vector_store
        self.config = config or RetrieverConfig()

    async def retrieve(
        self,
        query: str,
        k: Optional[int] = None,
        filters: Optional[dict[str, Any]] = None,
    ) -> list[SearchResult]:
        """Return up to k chunks for the query.

        Raises:
            RetrievalError: If the query is empty or k is not positive
        """
        if not query or not query.strip():
            raise RetrievalError("Query cannot be empty")
        if k is not None and k <= 0:
            raise RetrievalError(f"k must be a positive integer, got {k}")

        k = self.config.k if k is None else k
        query_vector = await self.embedding_provider.embed_text(query)
        search_type = self.config.search_type

        if search_type == SearchType.MMR:
            results = await self._mmr(query_vector, k, filters)
        else:
            results = await self.vector_store.search(query_vector, top_k=k, filters=filters)
            if search_type == SearchType.SIMILARITY_SCORE_THRESHOLD:
                results = [r for r in results if r.score >= self.config.score_threshold]

        logger.info(
            "retrieval_completed",
            search_type=search_type.value,
            k=k,
            result_count=len(results),
            top_score=results[0].score if results else None,
        )
        return results

    async def _mmr(
        self,
        query_vector: list[float],
        k: int,
        filters: Optional[dict[str, Any]],
    ) -> list[SearchResult]:
        fetch_k = max(self.config.fetch_k, k)
        candidates = await self.vector_store.search(
            query_vector, top_k=fetch_k, filters=filters, include_embeddings=True
        )
        usable = [c for c in candidates if c.embedding is not None]
        picked = maximal_marginal_relevance(
            query_vector,
            [c.embedding for c in usable],
            k=k,
            lambda_mult=self.config.lambda_mult,
        )
        return [usable[i].model_copy(update={"embedding": None}) for i in picked]
