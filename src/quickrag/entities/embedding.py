"""Embedding entity - vector representation of a chunk."""

from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class Embedding(BaseModel):
    """A vector produced by an embedding model for one chunk."""

    chunk_id: UUID
    vector: list[float]
    model: str
    dimension: int = Field(..., gt=0)

    @field_validator("dimension")
    @classmethod
    def dimension_matches_vector(cls, v: int, info: Any) -> int:
        vector = info.data.get("vector")
        if vector is not None and len(vector) != v:
            raise ValueError(f"dimension {v} does not match vector length {len(vector)}")
        return v
