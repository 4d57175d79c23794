"""Document entity - represents a loaded source (web page or file)."""

import hashlib
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator, model_validator


class DocumentType(str, Enum):
    """Supported document types."""

    HTML = "html"
    MARKDOWN = "markdown"
    TEXT = "text"
    UNKNOWN = "unknown"


def compute_md5(content: str) -> str:
    """MD5 hex digest of UTF-8 encoded content."""
    return hashlib.md5(content.encode("utf-8")).hexdigest()


class Document(BaseModel):
    """A source document: uniform text plus metadata, as produced by a loader.

    Documents are split into chunks for embedding and retrieval. The
    content hash lets re-ingestion skip sources that did not change.
    """

    id: UUID = Field(default_factory=uuid4)
    source: str = Field(..., description="URL or filesystem path of the document")
    doc_type: DocumentType = Field(default=DocumentType.UNKNOWN)
    title: str | None = None
    content: str = Field(..., description="Full text content of the document")
    content_md5: str | None = Field(None, description="MD5 hash of the document content")
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("content")
    @classmethod
    def content_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Document content cannot be empty")
        return v

    @model_validator(mode="after")
    def fill_content_md5(self) -> "Document":
        if self.content_md5 is None:
            self.content_md5 = compute_md5(self.content)
        return self
