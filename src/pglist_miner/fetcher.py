"""
Async document fetcher for the PostgreSQL mailing-list archive.

Wraps a single httpx.AsyncClient with:
- Concurrency control with a semaphore
- Exponential backoff on transport errors, timeouts and 429/5xx responses
- URL builders for the two page shapes the crawler reads

Pages are returned as BeautifulSoup trees parsed with lxml.
"""

import asyncio
import logging
import time
from datetime import datetime
from typing import Optional

import httpx
from bs4 import BeautifulSoup

from .errors import TransportError
from .models import MESSAGE_PATH, SITE_URL

logger = logging.getLogger(__name__)

# Mailing list whose archive we crawl
LIST_NAME = "pgsql-hackers"

# Concurrency and timeout settings
MAX_CONCURRENT_REQUESTS = 8
REQUEST_TIMEOUT = 30.0

# Exponential backoff settings
MAX_RETRIES = 5
INITIAL_BACKOFF = 2

# HTTP status codes that are safe to retry
RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}

# Cursor format of listing window URLs (minute granularity)
WINDOW_FORMAT = "%Y%m%d%H%M"

DEFAULT_HEADERS = {
    'User-Agent': 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
    'Accept-Language': 'en-US,en;q=0.9',
}


class ArchiveFetcher:
    """
    Fetches archive pages over one shared async HTTP client.

    Use as an async context manager. When no client is passed in, one is
    created on entry and closed on exit; a client passed in (for example
    one built on httpx.MockTransport in tests) is left open.

    Usage:
        async with ArchiveFetcher() as fetcher:
            soup = await fetcher.fetch_soup(fetcher.message_url(message_id))
    """

    def __init__(
        self,
        site: str = SITE_URL,
        list_name: str = LIST_NAME,
        max_concurrent: int = MAX_CONCURRENT_REQUESTS,
        timeout: float = REQUEST_TIMEOUT,
        max_retries: int = MAX_RETRIES,
        initial_backoff: float = INITIAL_BACKOFF,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.site = site.rstrip("/")
        self.list_name = list_name
        self.timeout = timeout
        self.max_retries = max_retries
        self.initial_backoff = initial_backoff
        self.semaphore = asyncio.Semaphore(max_concurrent)
        self.client = client
        self._own_client = client is None

    async def __aenter__(self):
        if self._own_client:
            self.client = httpx.AsyncClient(
                http2=True,
                timeout=self.timeout,
                follow_redirects=True,
                headers=DEFAULT_HEADERS,
            )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._own_client and self.client:
            await self.client.aclose()
            self.client = None

    def listing_url(self, since: datetime) -> str:
        """URL of the listing window starting at ``since`` (minute precision)."""
        return f"{self.site}/list/{self.list_name}/since/{since.strftime(WINDOW_FORMAT)}"

    def message_url(self, message_id: str) -> str:
        return f"{self.site}{MESSAGE_PATH}{message_id}"

    async def fetch(self, url: str) -> str:
        """Fetch a URL with exponential backoff retry logic.

        Retries on rate limiting (429), server errors (5xx), timeouts and
        network errors. Backoff sleep happens outside the semaphore so a
        waiting retry does not hold a slot.

        Raises:
            TransportError: on a non-retryable status, or once retries
                are exhausted.
        """
        if self.client is None:
            raise RuntimeError("ArchiveFetcher must be used as an async context manager")

        backoff = self.initial_backoff
        reason = "no attempt made"

        for attempt in range(1, self.max_retries + 1):
            started = time.monotonic()
            try:
                async with self.semaphore:
                    logger.debug("GET %s (attempt %d)", url, attempt)
                    response = await self.client.get(url, timeout=self.timeout)
            except httpx.RequestError as e:
                reason = f"{type(e).__name__}: {e}"
                logger.warning("Request error for %s: %s", url, reason)
            else:
                if response.status_code in RETRYABLE_STATUS_CODES:
                    reason = f"HTTP {response.status_code}"
                    logger.warning("HTTP %d for %s", response.status_code, url)
                else:
                    try:
                        response.raise_for_status()
                    except httpx.HTTPStatusError as e:
                        raise TransportError(url, f"HTTP {response.status_code}") from e
                    logger.debug("GET %s done, elapsed: %d ms",
                                 url, (time.monotonic() - started) * 1000)
                    return response.text

            if attempt < self.max_retries:
                logger.info("Retrying %s in %.1fs...", url, backoff)
                await asyncio.sleep(backoff)
                backoff *= 2

        logger.error("Failed to fetch %s after %d attempts", url, self.max_retries)
        raise TransportError(url, reason)

    async def fetch_soup(self, url: str) -> BeautifulSoup:
        """Fetch a page and parse it. Malformed markup gives a partial tree."""
        return BeautifulSoup(await self.fetch(url), "lxml")
