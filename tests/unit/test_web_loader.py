"""Unit tests for WebPageLoader."""

import asyncio

import httpx
import pytest

from quickrag.config.schema import LoaderConfig
from quickrag.entities import DocumentType
from quickrag.loaders.base import LoaderError
from quickrag.loaders.web import WebPageLoader

PAGE = """<html lang="en"><head><title>Agents</title></head>
<body><div class="post-content"><p>Agents plan and act.</p></div><p>Sidebar</p></body></html>"""


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
class TestWebPageLoader:
    """Test WebPageLoader functionality."""

    async def test_load_html_page(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text=PAGE, headers={"content-type": "text/html; charset=utf-8"})

        async with _client(handler) as client:
            loader = WebPageLoader(["https://example.com/post"], LoaderConfig(css_classes=["post-content"]), client=client)
            docs = await loader.load()

        assert len(docs) == 1
        doc = docs[0]
        assert doc.source == "https://example.com/post"
        assert doc.doc_type == DocumentType.HTML
        assert doc.title == "Agents"
        assert doc.content == "Agents plan and act."
        assert doc.metadata == {
            "source": "https://example.com/post",
            "title": "Agents",
            "content_type": "text/html",
            "language": "en",
        }

    async def test_order_preserved(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text=f"page {request.url.path}", headers={"content-type": "text/plain"})

        urls = [f"https://example.com/{i}" for i in range(5)]
        async with _client(handler) as client:
            docs = await WebPageLoader(urls, LoaderConfig(max_parallel=2), client=client).load()

        assert [d.source for d in docs] == urls
        assert docs[0].doc_type == DocumentType.TEXT
        assert docs[3].content == "page /3"

    async def test_http_error_not_retried(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.url)
            return httpx.Response(404, text="missing")

        async with _client(handler) as client:
            loader = WebPageLoader(["https://example.com/missing"], client=client, retry_delay=0)
            with pytest.raises(LoaderError) as exc_info:
                await loader.load()

        assert "HTTP 404" in exc_info.value.message
        assert exc_info.value.source == "https://example.com/missing"
        assert len(calls) == 1

    async def test_failure_cancels_pending_fetches(self):
        """Test that a failing page stops the other in-flight fetches before returning."""
        cancelled = asyncio.Event()

        async def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/missing":
                return httpx.Response(404, text="missing")
            try:
                await asyncio.sleep(60)
            except asyncio.CancelledError:
                cancelled.set()
                raise
            return httpx.Response(200, text=PAGE)

        async with _client(handler) as client:
            loader = WebPageLoader(
                ["https://example.com/slow", "https://example.com/missing"],
                client=client,
                retry_delay=0,
            )
            with pytest.raises(LoaderError, match="HTTP 404"):
                await loader.load()

            assert cancelled.is_set()

    async def test_connection_error_retried(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.url)
            if len(calls) < 3:
                raise httpx.ConnectError("refused", request=request)
            return httpx.Response(200, text="<p>finally</p>", headers={"content-type": "text/html"})

        async with _client(handler) as client:
            loader = WebPageLoader(["https://example.com/flaky"], LoaderConfig(max_retries=3), client=client, retry_delay=0)
            docs = await loader.load()

        assert len(calls) == 3
        assert docs[0].content == "finally"

    async def test_retries_exhausted(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        async with _client(handler) as client:
            loader = WebPageLoader(["https://example.com/slow"], LoaderConfig(max_retries=2), client=client, retry_delay=0)
            with pytest.raises(LoaderError, match="after 2 attempts"):
                await loader.load()

    async def test_continue_on_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/bad":
                return httpx.Response(500)
            return httpx.Response(200, text="<p>ok</p>", headers={"content-type": "text/html"})

        async with _client(handler) as client:
            loader = WebPageLoader(
                ["https://example.com/bad", "https://example.com/good"],
                LoaderConfig(continue_on_failure=True),
                client=client,
            )
            docs = await loader.load()

        assert [d.source for d in docs] == ["https://example.com/good"]

    async def test_empty_page_skipped(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html><body></body></html>", headers={"content-type": "text/html"})

        async with _client(handler) as client:
            docs = await WebPageLoader(["https://example.com/empty"], client=client).load()

        assert docs == []

    async def test_no_urls(self):
        assert await WebPageLoader([]).load() == []
