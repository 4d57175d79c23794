"""SearchResult entity - represents a retrieved chunk with relevance score."""

from typing import Any

from pydantic import BaseModel, Field

from quickrag.entities.chunk import Chunk


class SearchResult(BaseModel):
    """A retrieved chunk with relevance score.

    embedding is only populated when the caller asks the vector store for
    stored vectors (maximal marginal relevance needs them).
    """

    chunk: Chunk
    score: float = Field(..., ge=0.0, le=1.0, description="Relevance score (0-1)")
    embedding: list[float] | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
