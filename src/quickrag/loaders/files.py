"""Local file loader for text, Markdown and HTML files."""

from pathlib import Path
from typing import Optional

from quickrag.config.schema import LoaderConfig
from quickrag.entities import Document, DocumentType
from quickrag.loaders.base import DocumentLoader, LoaderError
from quickrag.loaders.html import extract_html
from quickrag.observability.logging import get_logger

logger = get_logger(__name__)

SUFFIX_TYPES = {
    ".md": DocumentType.MARKDOWN,
    ".markdown": DocumentType.MARKDOWN,
    ".txt": DocumentType.TEXT,
    ".html": DocumentType.HTML,
    ".htm": DocumentType.HTML,
}


def detect_document_type(file_path: Path) -> DocumentType:
    """Detect document type from file extension."""
    return SUFFIX_TYPES.get(file_path.suffix.lower(), DocumentType.UNKNOWN)


class FileLoader(DocumentLoader):
    """Load Documents from files and directories."""

    def __init__(
        self,
        paths: list[Path],
        config: Optional[LoaderConfig] = None,
        recursive: bool = False,
    ) -> None:
        self.paths = [Path(p) for p in paths]
        self.config = config or LoaderConfig()
        self.recursive = recursive

    def collect_files(self) -> list[Path]:
        """Expand directories into the supported files they contain.

        Raises:
            LoaderError: If a path does not exist
        """
        files: list[Path] = []
        for path in self.paths:
            if path.is_file():
                files.append(path)
            elif path.is_dir():
                candidates = path.rglob("*") if self.recursive else path.iterdir()
                for candidate in sorted(candidates):
                    if not candidate.is_file():
                        continue
                    if detect_document_type(candidate) == DocumentType.UNKNOWN:
                        logger.debug("file_skipped_unsupported", path=str(candidate))
                        continue
                    files.append(candidate)
            else:
                raise LoaderError(message=f"Path not found: {path}", source=str(path))
        return files

    async def load(self) -> list[Document]:
        documents = []
        for file_path in self.collect_files():
            try:
                document = self.load_file(file_path)
            except LoaderError as e:
                if not self.config.continue_on_failure:
                    raise
                logger.error("file_skipped", path=str(file_path), error=e.message)
                continue
            if document is not None:
                documents.append(document)

        logger.info("file_load_completed", path_count=len(self.paths), document_count=len(documents))
        return documents

    def load_file(self, file_path: Path) -> Optional[Document]:
        """Load a single file.

        Returns:
            The Document, or None when the file holds no text

        Raises:
            LoaderError: If the file type is unsupported or the file is not UTF-8 text
        """
        doc_type = detect_document_type(file_path)
        if doc_type == DocumentType.UNKNOWN:
            raise LoaderError(message=f"Unsupported file type: {file_path.suffix or file_path.name}", source=str(file_path))

        try:
            raw = file_path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise LoaderError(message=f"Not a UTF-8 text file: {file_path}", source=str(file_path), original_error=e) from e
        except OSError as e:
            raise LoaderError(message=f"Failed to read file: {e}", source=str(file_path), original_error=e) from e

        title = file_path.stem
        language = None
        if doc_type == DocumentType.HTML:
            page = extract_html(raw, self.config.css_classes or None)
            text = page.text
            title = page.title or title
            language = page.language
        else:
            text = raw.strip()

        if not text:
            logger.warning("file_empty", path=str(file_path))
            return None

        metadata = {
            "source": str(file_path),
            "title": title,
            "file_size": file_path.stat().st_size,
        }
        if language:
            metadata["language"] = language

        return Document(
            source=str(file_path),
            doc_type=doc_type,
            title=title,
            content=text,
            metadata=metadata,
        )
