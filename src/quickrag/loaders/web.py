"""Web page loader.

Fetches pages over HTTP and turns them into Documents. Pages are fetched
concurrently (bounded by a semaphore) and retried on connection errors and
timeouts with a linear back-off. HTTP status errors are not retried.
"""

import asyncio
from typing import Optional

import httpx

from quickrag.config.schema import LoaderConfig
from quickrag.entities import Document, DocumentType
from quickrag.loaders.base import DocumentLoader, LoaderError
from quickrag.loaders.html import extract_html
from quickrag.observability.logging import get_logger

logger = get_logger(__name__)


class WebPageLoader(DocumentLoader):
    """Load one Document per URL.

    Example:
        loader = WebPageLoader(
            ["https://lilianweng.github.io/posts/2023-06-23-agent/"],
            LoaderConfig(css_classes=["post-content", "post-title", "post-header"]),
        )
        docs = await loader.load()
    """

    def __init__(
        self,
        urls: list[str],
        config: Optional[LoaderConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
        retry_delay: float = 2.0,
    ) -> None:
        """Initialize the loader.

        Args:
            urls: Pages to load
            config: Loader configuration (timeouts, CSS filter, concurrency)
            client: Optional pre-built HTTP client; the loader does not close it
            retry_delay: Base delay in seconds between retries (multiplied by attempt)
        """
        self.urls = list(urls)
        self.config = config or LoaderConfig()
        self._client = client
        self.retry_delay = retry_delay
        self._semaphore = asyncio.Semaphore(self.config.max_parallel)

    async def load(self) -> list[Document]:
        """Fetch and parse all URLs, preserving input order."""
        if not self.urls:
            return []

        logger.info("web_load_started", url_count=len(self.urls), css_classes=self.config.css_classes)

        if self._client is not None:
            documents = await self._load_all(self._client)
        else:
            async with httpx.AsyncClient(
                timeout=self.config.timeout,
                headers={"User-Agent": self.config.user_agent},
                follow_redirects=True,
            ) as client:
                documents = await self._load_all(client)

        loaded = [doc for doc in documents if doc is not None]
        logger.info("web_load_completed", url_count=len(self.urls), document_count=len(loaded))
        return loaded

    async def _load_all(self, client: httpx.AsyncClient) -> list[Optional[Document]]:
        tasks = [asyncio.create_task(self._safe_load(client, url)) for url in self.urls]
        try:
            return await asyncio.gather(*tasks)
        except LoaderError:
            # Remaining fetches must finish before the client is closed.
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def _safe_load(self, client: httpx.AsyncClient, url: str) -> Optional[Document]:
        try:
            return await self._load_with_retries(client, url)
        except LoaderError as e:
            if not self.config.continue_on_failure:
                raise
            logger.error("web_page_skipped", url=url, error=e.message)
            return None

    async def _load_with_retries(self, client: httpx.AsyncClient, url: str) -> Optional[Document]:
        async with self._semaphore:
            for attempt in range(1, self.config.max_retries + 1):
                try:
                    return await self._fetch_and_parse(client, url)
                except (httpx.ConnectError, httpx.TimeoutException) as e:
                    if attempt == self.config.max_retries:
                        raise LoaderError(
                            message=f"Failed to fetch {url} after {attempt} attempts: {e}",
                            source=url,
                            original_error=e,
                        ) from e
                    wait_time = attempt * self.retry_delay
                    logger.warning(
                        "web_fetch_retry",
                        url=url,
                        attempt=attempt,
                        max_retries=self.config.max_retries,
                        wait_seconds=wait_time,
                    )
                    await asyncio.sleep(wait_time)
                except httpx.HTTPStatusError as e:
                    raise LoaderError(
                        message=f"HTTP {e.response.status_code} for {url}",
                        source=url,
                        original_error=e,
                    ) from e
                except httpx.HTTPError as e:
                    raise LoaderError(
                        message=f"Failed to fetch {url}: {e}",
                        source=url,
                        original_error=e,
                    ) from e
        return None

    async def _fetch_and_parse(self, client: httpx.AsyncClient, url: str) -> Optional[Document]:
        response = await client.get(url)
        response.raise_for_status()

        content_type = response.headers.get("content-type", "")
        if "html" in content_type or not content_type:
            page = extract_html(response.text, self.config.css_classes or None)
            text, title, language = page.text, page.title, page.language
            doc_type = DocumentType.HTML
        else:
            text, title, language = response.text.strip(), None, None
            doc_type = DocumentType.TEXT

        if not text:
            logger.warning("web_page_empty", url=url, css_classes=self.config.css_classes)
            return None

        metadata = {
            "source": url,
            "title": title or url,
            "content_type": content_type.split(";")[0].strip() or "text/html",
        }
        if language:
            metadata["language"] = language

        logger.debug("web_page_loaded", url=url, status=response.status_code, text_length=len(text))

        return Document(
            source=url,
            doc_type=doc_type,
            title=title or url,
            content=text,
            metadata=metadata,
        )
