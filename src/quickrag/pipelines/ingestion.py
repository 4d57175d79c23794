"""Ingestion pipeline: load, split, embed and store documents.

Why this exists:
- Orchestrates the indexing half of the question-answering flow
- Embeds chunks in batches
- Skips sources whose content did not change since the last run

How to use:
    from quickrag.pipelines.ingestion import IngestionPipeline

    pipeline = IngestionPipeline(config, embedding_provider, vector_store)
    report = await pipeline.ingest_sources(["https://lilianweng.github.io/posts/2023-06-23-agent/"])
"""

from dataclasses import dataclass, field
from typing import Optional
from uuid import UUID

from quickrag.config.schema import AppConfig
from quickrag.core.splitting import RecursiveCharacterTextSplitter
from quickrag.entities import Chunk, Document, Embedding
from quickrag.loaders import LoaderError, load_sources
from quickrag.observability.logging import get_logger
from quickrag.providers.base import EmbeddingProvider, ProviderError
from quickrag.storage.base import StorageError, VectorStore

logger = get_logger(__name__)


@dataclass
class IngestionResult:
    """Result of document ingestion."""

    chunk_count: int
    updated: bool
    reason: str | None = None
    document_id: UUID | None = None
    source: str | None = None


@dataclass
class IngestionReport:
    """Outcome of ingesting a list of sources."""

    results: list[IngestionResult] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)

    @property
    def documents_updated(self) -> int:
        return sum(1 for r in self.results if r.updated)

    @property
    def chunks_indexed(self) -> int:
        return sum(r.chunk_count for r in self.results if r.updated)


class IngestionPipeline:
    """Pipeline for indexing documents into the vector store."""

    def __init__(
        self,
        config: AppConfig,
        embedding_provider: EmbeddingProvider,
        vector_store: VectorStore,
        splitter: Optional[RecursiveCharacterTextSplitter] = None,
    ):
        """Initialize the ingestion pipeline.

        Args:
            config: Application configuration
            embedding_provider: Provider for generating embeddings
            vector_store: Storage for chunks and their embeddings
            splitter: Text splitter; built from config.splitter when omitted
        """
        self.config = config
        self.embedding_provider = embedding_provider
        self.vector_store = vector_store
        self.splitter = splitter or RecursiveCharacterTextSplitter.from_config(config.splitter)

    async def ingest_document(self, document: Document, force: bool = False) -> IngestionResult:
        """Split, embed and store one document, replacing its source's old chunks.

        Args:
            document: Document to ingest
            force: Re-index even if the content hash is unchanged

        Raises:
            IngestionError: If embedding or storage fails
        """
        logger.info("ingestion_started", document_id=str(document.id), source=document.source, force=force)

        try:
            existing = await self.vector_store.get_by_source(document.source)
            reason = "new_document"
            if existing:
                existing_md5 = existing[0].metadata.get("content_md5")
                if existing_md5 == document.content_md5 and not force:
                    logger.info("content_unchanged", source=document.source, chunk_count=len(existing))
                    return IngestionResult(
                        chunk_count=len(existing),
                        updated=False,
                        reason="content_unchanged",
                        document_id=existing[0].document_id,
                        source=document.source,
                    )
                reason = "forced" if existing_md5 == document.content_md5 else "content_changed"

            chunks = self.splitter.split_documents([document])
            if not chunks:
                logger.warning("no_chunks_created", source=document.source)
                return IngestionResult(
                    chunk_count=0,
                    updated=False,
                    reason="no_chunks_created",
                    document_id=document.id,
                    source=document.source,
                )
            for chunk in chunks:
                chunk.metadata["content_md5"] = document.content_md5

            embeddings = await self._embed_chunks(chunks)

            # The old version stays searchable until the new vectors exist.
            if existing:
                deleted = await self.vector_store.delete_by_source(document.source)
                logger.info("previous_version_removed", source=document.source, chunk_count=deleted)

            await self.vector_store.add_embeddings_batch(embeddings, chunks)

        except (ProviderError, StorageError) as e:
            logger.error("ingestion_failed", source=document.source, error=e.message)
            raise IngestionError(
                message=f"Failed to ingest {document.source}: {e.message}",
                source=document.source,
                original_error=e,
            ) from e

        logger.info(
            "ingestion_completed",
            document_id=str(document.id),
            source=document.source,
            chunk_count=len(chunks),
            reason=reason,
        )
        return IngestionResult(
            chunk_count=len(chunks),
            updated=True,
            reason=reason,
            document_id=document.id,
            source=document.source,
        )

    async def _embed_chunks(self, chunks: list[Chunk]) -> list[Embedding]:
        batch_size = self.config.embedding.batch_size
        model = self.config.embedding.model_name
        embeddings: list[Embedding] = []

        for i in range(0, len(chunks), batch_size):
            batch = chunks[i : i + batch_size]
            logger.debug(
                "generating_embeddings_batch",
                batch_index=i // batch_size,
                batch_size=len(batch),
                total_chunks=len(chunks),
            )
            vectors = await self.embedding_provider.embed_batch([c.content for c in batch])
            if len(vectors) != len(batch):
                raise ProviderError(
                    message=f"Expected {len(batch)} embeddings, got {len(vectors)}",
                    provider=model,
                )
            embeddings.extend(
                Embedding(chunk_id=chunk.id, vector=vector, model=model, dimension=len(vector))
                for chunk, vector in zip(batch, vectors)
            )
        return embeddings

    async def ingest_documents(self, documents: list[Document], force: bool = False) -> IngestionReport:
        """Ingest documents one by one, collecting failures instead of stopping."""
        report = IngestionReport()
        for document in documents:
            try:
                report.results.append(await self.ingest_document(document, force=force))
            except IngestionError as e:
                report.failures[document.source] = e.message
        return report

    async def ingest_sources(
        self,
        sources: list[str],
        force: bool = False,
        recursive: bool = False,
    ) -> IngestionReport:
        """Load URLs and paths, then ingest every resulting document.

        Raises:
            IngestionError: If loading fails (see LoaderConfig.continue_on_failure)
        """
        try:
            documents = await load_sources(sources, self.config.loader, recursive=recursive)
        except LoaderError as e:
            raise IngestionError(
                message=e.message,
                source=e.source,
                original_error=e,
            ) from e

        report = await self.ingest_documents(documents, force=force)
        logger.info(
            "sources_ingested",
            source_count=len(sources),
            document_count=len(documents),
            documents_updated=report.documents_updated,
            chunks_indexed=report.chunks_indexed,
            failures=len(report.failures),
        )
        return report


class IngestionError(Exception):
    """Exception raised during ingestion."""

    def __init__(self, message: str, source: Optional[str] = None, original_error: Optional[Exception] = None):
        self.message = message
        self.source = source
        self.original_error = original_error
        super().__init__(self.message)
