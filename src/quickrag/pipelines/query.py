"""Query pipeline: retrieval-augmented question answering.

Why this exists:
- Orchestrates retrieve -> format context -> fill prompt -> chat model -> text
- Provides search-only, single answer, streaming and batch modes

How to use:
    from quickrag.pipelines.query import QueryPipeline

    pipeline = QueryPipeline(config, embedding_provider, llm_provider, vector_store)
    result = await pipeline.answer("What is Task Decomposition?")
    async for delta in pipeline.stream("What is Task Decomposition?"):
        print(delta, end="")
"""

import asyncio
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any, Optional

from quickrag.config.schema import AppConfig
from quickrag.core.prompts import CITED_PROMPTS, PromptError, PromptTemplate, format_documents, load_prompt
from quickrag.core.retrieval import RetrievalError, Retriever
from quickrag.entities import SearchResult
from quickrag.observability.logging import get_logger
from quickrag.providers.base import EmbeddingProvider, LLMProvider, ProviderError
from quickrag.storage.base import StorageError, VectorStore

logger = get_logger(__name__)


@dataclass
class RAGAnswer:
    """An answer together with the chunks it was grounded on."""

    question: str
    answer: str
    sources: list[SearchResult] = field(default_factory=list)
    context: str = ""


class QueryPipeline:
    """Pipeline for answering questions over the indexed documents."""

    def __init__(
        self,
        config: AppConfig,
        embedding_provider: EmbeddingProvider,
        llm_provider: LLMProvider,
        vector_store: VectorStore,
        retriever: Optional[Retriever] = None,
        prompt: Optional[PromptTemplate] = None,
    ):
        """Initialize the query pipeline.

        Args:
            config: Application configuration
            embedding_provider: Provider for query embeddings
            llm_provider: Chat model used to write answers
            vector_store: Storage holding the indexed chunks
            retriever: Retriever; built from config.retriever when omitted
            prompt: Prompt template; loaded from config.prompt when omitted
        """
        self.config = config
        self.embedding_provider = embedding_provider
        self.llm_provider = llm_provider
        self.vector_store = vector_store
        self.retriever = retriever or Retriever(embedding_provider, vector_store, config.retriever)
        self.prompt = prompt or load_prompt(name=config.prompt.name, path=config.prompt.template_path)

    async def search(
        self,
        query: str,
        k: Optional[int] = None,
        filters: Optional[dict[str, Any]] = None,
    ) -> list[SearchResult]:
        """Retrieve the chunks most relevant to the query.

        Raises:
            QueryError: If retrieval fails
        """
        logger.info("search_started", query=query, k=k)
        try:
            return await self.retriever.retrieve(query, k=k, filters=filters)
        except (RetrievalError, ProviderError, StorageError) as e:
            raise QueryError(f"Search failed: {e.message}", original_error=e) from e

    def build_context(self, results: list[SearchResult]) -> tuple[str, list[SearchResult]]:
        """Format retrieved chunks into prompt context.

        Whole chunks are added in rank order until max_context_length would be
        exceeded. The first chunk is always kept.

        Returns:
            The context string and the results it contains
        """
        budget = self.config.query.max_context_length
        used: list[SearchResult] = []
        total = 0
        for result in results:
            length = len(result.chunk.content)
            if used and total + length > budget:
                break
            used.append(result)
            total += length
        with_sources = self.prompt.name in CITED_PROMPTS
        return format_documents(used, with_sources=with_sources), used

    async def _prepare(self, question: str, k: Optional[int]) -> tuple[Optional[str], str, list[SearchResult]]:
        results = await self.search(question, k=k)
        if not results:
            logger.warning("no_results_found", question=question)
            return None, "", []

        context, used = self.build_context(results)
        try:
            prompt_text = self.prompt.format(context=context, question=question)
        except PromptError as e:
            raise QueryError(f"Failed to build prompt: {e.message}", original_error=e) from e
        return prompt_text, context, used

    async def answer(self, question: str, k: Optional[int] = None) -> RAGAnswer:
        """Answer a question from retrieved context.

        Without any retrieved context the configured no-context answer is
        returned and the chat model is not called.

        Raises:
            QueryError: If retrieval or generation fails
        """
        logger.info("answer_started", question=question)
        prompt_text, context, used = await self._prepare(question, k)
        if prompt_text is None:
            return RAGAnswer(question=question, answer=self.config.query.no_context_answer)

        try:
            text = await self.llm_provider.generate(
                prompt=prompt_text,
                system_prompt=self.config.llm.system_prompt,
                max_tokens=self.config.llm.max_tokens,
                temperature=self.config.llm.temperature,
            )
        except ProviderError as e:
            raise QueryError(f"Answer generation failed: {e.message}", original_error=e) from e

        logger.info("answer_completed", question=question, source_count=len(used))
        return RAGAnswer(question=question, answer=text.strip(), sources=used, context=context)

    async def stream(self, question: str, k: Optional[int] = None) -> AsyncIterator[str]:
        """Yield the answer as text fragments arrive from the chat model.

        Raises:
            QueryError: If retrieval or generation fails
        """
        logger.info("stream_started", question=question)
        prompt_text, _, used = await self._prepare(question, k)
        if prompt_text is None:
            yield self.config.query.no_context_answer
            return

        try:
            async for delta in self.llm_provider.stream(
                prompt=prompt_text,
                system_prompt=self.config.llm.system_prompt,
                max_tokens=self.config.llm.max_tokens,
                temperature=self.config.llm.temperature,
            ):
                yield delta
        except ProviderError as e:
            raise QueryError(f"Answer streaming failed: {e.message}", original_error=e) from e

        logger.info("stream_completed", question=question, source_count=len(used))

    async def batch(
        self,
        questions: list[str],
        k: Optional[int] = None,
        max_concurrency: Optional[int] = None,
    ) -> list[RAGAnswer]:
        """Answer several questions concurrently; results keep input order."""
        semaphore = asyncio.Semaphore(max_concurrency or self.config.query.max_concurrency)

        async def run(question: str) -> RAGAnswer:
            async with semaphore:
                return await self.answer(question, k=k)

        return list(await asyncio.gather(*(run(q) for q in questions)))


class QueryError(Exception):
    """Exception raised during query processing."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.message = message
        self.original_error = original_error
        super().__init__(self.message)
