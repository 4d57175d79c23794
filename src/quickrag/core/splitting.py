"""Recursive character text splitting.

Why this exists:
- Splits documents into embedding-sized chunks
- Maintains context with overlapping windows
- Prefers the coarsest boundary available: paragraphs, then lines, then words,
  then characters

How it works:
1. Pick the first separator that occurs in the text
2. Split on it; pieces shorter than chunk_size are merged greedily into chunks,
   carrying up to chunk_overlap worth of trailing pieces into the next chunk
3. Pieces that are still too long are split again with the remaining separators
"""

import re
from collections.abc import Callable, Iterable

from quickrag.config.schema import LengthUnit, SplitterConfig
from quickrag.entities import Chunk, Document
from quickrag.observability.logging import get_logger

logger = get_logger(__name__)

DEFAULT_SEPARATORS = ["\n\n", "\n", " ", ""]


def _split_with_separator(text: str, separator: str, keep_separator: bool) -> list[str]:
    """Split text on a literal separator.

    With keep_separator the separator stays attached to the start of the
    piece that follows it. An empty separator splits into characters.
    """
    if not separator:
        return list(text)

    escaped = re.escape(separator)
    if keep_separator:
        parts = re.split(f"({escaped})", text)
        splits = [parts[i] + parts[i + 1] for i in range(1, len(parts) - 1, 2)]
        if len(parts) % 2 == 0:
            splits += parts[-1:]
        splits = [parts[0]] + splits
    else:
        splits = re.split(escaped, text)
    return [s for s in splits if s != ""]


class RecursiveCharacterTextSplitter:
    """Split text recursively on a list of separators.

    Example:
        splitter = RecursiveCharacterTextSplitter(chunk_size=1000, chunk_overlap=200)
        chunks = splitter.split_documents(docs)
    """

    def __init__(
        self,
        chunk_size: int = 1000,
        chunk_overlap: int = 200,
        separators: list[str] | None = None,
        keep_separator: bool = True,
        strip_whitespace: bool = True,
        add_start_index: bool = True,
        length_function: Callable[[str], int] = len,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        if chunk_overlap < 0:
            raise ValueError(f"chunk_overlap must not be negative, got {chunk_overlap}")
        if chunk_overlap >= chunk_size:
            raise ValueError(
                f"chunk_overlap ({chunk_overlap}) must be smaller than chunk_size ({chunk_size})"
            )

        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.separators = list(separators) if separators is not None else list(DEFAULT_SEPARATORS)
        self.keep_separator = keep_separator
        self.strip_whitespace = strip_whitespace
        self.add_start_index = add_start_index
        self.length_function = length_function

    @classmethod
    def from_tiktoken_encoder(cls, encoding_name: str = "cl100k_base", **kwargs) -> "RecursiveCharacterTextSplitter":
        """Build a splitter that measures length in tiktoken tokens."""
        import tiktoken

        encoding = tiktoken.get_encoding(encoding_name)

        def token_length(text: str) -> int:
            return len(encoding.encode(text, disallowed_special=()))

        return cls(length_function=token_length, **kwargs)

    @classmethod
    def from_config(cls, config: SplitterConfig) -> "RecursiveCharacterTextSplitter":
        """Build a splitter from SplitterConfig."""
        kwargs = dict(
            chunk_size=config.chunk_size,
            chunk_overlap=config.chunk_overlap,
            separators=config.separators,
            keep_separator=config.keep_separator,
            strip_whitespace=config.strip_whitespace,
            add_start_index=config.add_start_index,
        )
        if config.length_unit == LengthUnit.TOKENS:
            return cls.from_tiktoken_encoder(encoding_name=config.encoding_name, **kwargs)
        return cls(**kwargs)

    def split_text(self, text: str) -> list[str]:
        """Split text into chunks no longer than chunk_size where possible."""
        if not text or not text.strip():
            return []
        return self._split_text(text, self.separators)

    def _split_text(self, text: str, separators: list[str]) -> list[str]:
        final_chunks: list[str] = []

        separator = separators[-1] if separators else ""
        remaining: list[str] = []
        for i, candidate in enumerate(separators):
            if candidate == "":
                separator = candidate
                break
            if candidate in text:
                separator = candidate
                remaining = separators[i + 1:]
                break

        splits = _split_with_separator(text, separator, self.keep_separator)
        merge_separator = "" if self.keep_separator else separator

        good_splits: list[str] = []
        for piece in splits:
            if self.length_function(piece) < self.chunk_size:
                good_splits.append(piece)
                continue

            if good_splits:
                final_chunks.extend(self._merge_splits(good_splits, merge_separator))
                good_splits = []
            if not remaining:
                final_chunks.append(piece)
            else:
                final_chunks.extend(self._split_text(piece, remaining))

        if good_splits:
            final_chunks.extend(self._merge_splits(good_splits, merge_separator))
        return final_chunks

    def _join(self, pieces: list[str], separator: str) -> str | None:
        text = separator.join(pieces)
        if self.strip_whitespace:
            text = text.strip()
        return text or None

    def _merge_splits(self, splits: Iterable[str], separator: str) -> list[str]:
        """Greedily combine small pieces into chunks with overlap."""
        separator_len = self.length_function(separator)

        chunks: list[str] = []
        current: list[str] = []
        total = 0
        for piece in splits:
            piece_len = self.length_function(piece)
            joiner_len = separator_len if current else 0

            if total + piece_len + joiner_len > self.chunk_size:
                if total > self.chunk_size:
                    logger.warning(
                        "chunk_exceeds_size",
                        length=total,
                        chunk_size=self.chunk_size,
                    )
                if current:
                    chunk = self._join(current, separator)
                    if chunk is not None:
                        chunks.append(chunk)
                    # Drop leading pieces until the carried-over tail fits the
                    # overlap budget and leaves room for the incoming piece.
                    while total > self.chunk_overlap or (
                        total + piece_len + (separator_len if current else 0) > self.chunk_size
                        and total > 0
                    ):
                        total -= self.length_function(current[0]) + (separator_len if len(current) > 1 else 0)
                        current = current[1:]

            current.append(piece)
            total += piece_len + (separator_len if len(current) > 1 else 0)

        chunk = self._join(current, separator)
        if chunk is not None:
            chunks.append(chunk)
        return chunks

    def split_documents(self, documents: Iterable[Document]) -> list[Chunk]:
        """Split documents into Chunk entities.

        Each chunk inherits its document's metadata. With add_start_index the
        chunk's offset is searched forward from the previous chunk so repeated
        passages map to the right occurrence.
        """
        chunks: list[Chunk] = []
        for document in documents:
            chunks.extend(self._split_document(document))
        return chunks

    def _split_document(self, document: Document) -> list[Chunk]:
        text = document.content
        chunks: list[Chunk] = []
        index = 0

        for piece in self.split_text(text):
            if not piece.strip():
                continue
            if self.add_start_index:
                # chunk_overlap may count tokens, so search past the previous start.
                found = text.find(piece, index + 1 if chunks else 0)
                if found == -1:
                    found = text.find(piece)
                index = max(found, 0)
            else:
                index = 0

            metadata = dict(document.metadata)
            metadata.setdefault("source", document.source)
            if document.title:
                metadata.setdefault("title", document.title)
            if self.add_start_index:
                metadata["start_index"] = index

            chunks.append(
                Chunk(
                    document_id=document.id,
                    source=document.source,
                    content=piece,
                    chunk_index=len(chunks),
                    start_char=index,
                    end_char=index + len(piece),
                    metadata=metadata,
                )
            )

        logger.info(
            "document_split",
            document_id=str(document.id),
            source=document.source,
            chunk_count=len(chunks),
            avg_chunk_size=sum(len(c.content) for c in chunks) // len(chunks) if chunks else 0,
        )
        return chunks
