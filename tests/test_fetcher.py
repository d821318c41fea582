"""Tests for the async fetcher (httpx.MockTransport, no network access)."""

import asyncio
from datetime import datetime

import httpx
import pytest

from pglist_miner.errors import TransportError
from pglist_miner.fetcher import ArchiveFetcher


def make_fetcher(handler, **kwargs):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    kwargs.setdefault("initial_backoff", 0)
    return ArchiveFetcher(client=client, **kwargs)


async def fetch(fetcher, url):
    async with fetcher:
        return await fetcher.fetch(url)


class TestUrls:
    def test_listing_url_minute_precision(self):
        fetcher = ArchiveFetcher()
        assert fetcher.listing_url(datetime(2025, 2, 12, 13, 58, 42)) == (
            "https://www.postgresql.org/list/pgsql-hackers/since/202502121358"
        )

    def test_message_url(self):
        fetcher = ArchiveFetcher(site="http://localhost:8000/", list_name="pgsql-bugs")
        assert fetcher.message_url("abc@example.org") == "http://localhost:8000/message-id/abc@example.org"
        assert fetcher.listing_url(datetime(2025, 1, 1)) == (
            "http://localhost:8000/list/pgsql-bugs/since/202501010000"
        )


class TestFetchWithRetry:
    def test_success(self):
        fetcher = make_fetcher(lambda request: httpx.Response(200, text="<html>ok</html>"))
        assert asyncio.run(fetch(fetcher, "https://www.postgresql.org/")) == "<html>ok</html>"

    def test_retries_server_errors_then_succeeds(self):
        responses = [httpx.Response(503), httpx.Response(429), httpx.Response(200, text="ok")]
        calls = []

        def handler(request):
            calls.append(request.url)
            return responses[len(calls) - 1]

        fetcher = make_fetcher(handler)
        assert asyncio.run(fetch(fetcher, "https://www.postgresql.org/")) == "ok"
        assert len(calls) == 3

    def test_not_found_is_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request.url)
            return httpx.Response(404)

        fetcher = make_fetcher(handler)
        with pytest.raises(TransportError) as exc_info:
            asyncio.run(fetch(fetcher, "https://www.postgresql.org/message-id/missing"))
        assert len(calls) == 1
        assert exc_info.value.url.endswith("/message-id/missing")
        assert "404" in exc_info.value.reason

    def test_retries_exhausted(self):
        calls = []

        def handler(request):
            calls.append(request.url)
            return httpx.Response(500)

        fetcher = make_fetcher(handler, max_retries=3)
        with pytest.raises(TransportError):
            asyncio.run(fetch(fetcher, "https://www.postgresql.org/"))
        assert len(calls) == 3

    def test_timeouts_are_retried(self):
        calls = []

        def handler(request):
            calls.append(request.url)
            if len(calls) == 1:
                raise httpx.ReadTimeout("too slow", request=request)
            return httpx.Response(200, text="ok")

        fetcher = make_fetcher(handler)
        assert asyncio.run(fetch(fetcher, "https://www.postgresql.org/")) == "ok"
        assert len(calls) == 2

    def test_connection_errors_exhausted(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        fetcher = make_fetcher(handler, max_retries=2)
        with pytest.raises(TransportError) as exc_info:
            asyncio.run(fetch(fetcher, "https://www.postgresql.org/"))
        assert "ConnectError" in exc_info.value.reason

    def test_requires_context(self):
        fetcher = ArchiveFetcher()
        with pytest.raises(RuntimeError):
            asyncio.run(fetcher.fetch("https://www.postgresql.org/"))


class TestFetchSoup:
    def test_parses(self):
        fetcher = make_fetcher(lambda request: httpx.Response(200, text="<h2>Jan. 6, 2025</h2>"))

        async def go():
            async with fetcher:
                return await fetcher.fetch_soup("https://www.postgresql.org/")

        soup = asyncio.run(go())
        assert soup.find("h2").get_text() == "Jan. 6, 2025"
