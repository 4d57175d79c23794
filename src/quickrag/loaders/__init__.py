"""Document loaders: web pages and local files."""

from pathlib import Path
from typing import Optional

from quickrag.config.schema import LoaderConfig
from quickrag.entities import Document
from quickrag.loaders.base import DocumentLoader, LoaderError
from quickrag.loaders.files import FileLoader
from quickrag.loaders.web import WebPageLoader


def is_url(source: str) -> bool:
    """Return True for http(s) URLs."""
    return source.startswith(("http://", "https://"))


async def load_sources(
    sources: list[str],
    config: Optional[LoaderConfig] = None,
    recursive: bool = False,
) -> list[Document]:
    """Load a mix of URLs and filesystem paths.

    URLs go through WebPageLoader, everything else through FileLoader.
    Documents come back URLs first, then files, each group in input order.

    Raises:
        LoaderError: If a source fails and config.continue_on_failure is False
    """
    config = config or LoaderConfig()
    urls = [s for s in sources if is_url(s)]
    paths = [Path(s) for s in sources if not is_url(s)]

    documents: list[Document] = []
    if urls:
        documents.extend(await WebPageLoader(urls, config).load())
    if paths:
        documents.extend(await FileLoader(paths, config, recursive=recursive).load())
    return documents


__all__ = [
    "DocumentLoader",
    "FileLoader",
    "LoaderError",
    "WebPageLoader",
    "is_url",
    "load_sources",
]
