"""Abstract base class for document loaders.

A loader turns raw sources (URLs, files) into Document entities with
uniform text content and metadata.
"""

from abc import ABC, abstractmethod
from typing import Optional

from quickrag.entities import Document


class DocumentLoader(ABC):
    """Abstract interface for document loaders."""

    @abstractmethod
    async def load(self) -> list[Document]:
        """Load all configured sources.

        Returns:
            Loaded documents (sources without extractable text are omitted)

        Raises:
            LoaderError: If a source cannot be loaded and failures are not tolerated
        """
        pass


class LoaderError(Exception):
    """Raised when a source cannot be fetched or parsed."""

    def __init__(self, message: str, source: str, original_error: Optional[Exception] = None):
        self.message = message
        self.source = source
        self.original_error = original_error
        super().__init__(self.message)
