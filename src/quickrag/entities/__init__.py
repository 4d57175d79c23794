"""Entities - Domain models for the question-answering pipeline.

This module contains pure domain entities without business logic:
- Document: A loaded source (web page, file)
- Chunk: A segment of a document suitable for embedding
- Embedding: A vector representation of a chunk
- SearchResult: A retrieved chunk with relevance score
"""

from quickrag.entities.chunk import Chunk
from quickrag.entities.document import Document, DocumentType, compute_md5
from quickrag.entities.embedding import Embedding
from quickrag.entities.search_result import SearchResult

__all__ = [
    "Chunk",
    "Document",
    "DocumentType",
    "Embedding",
    "SearchResult",
    "compute_md5",
]
