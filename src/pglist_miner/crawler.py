"""
Paginated crawling of the mailing-list archive.

The archive lists messages in windows: "/list/<list>/since/<YYYYMMDDHHMM>"
shows the messages posted from that minute onwards, one page at a time.
To cover a date range we fetch a window, move a cursor to the newest
timestamp seen, and fetch the window starting there, until the cursor
passes the end of the range or stops moving.

Because windows start at minute precision, consecutive windows overlap:
every message posted in the cursor's minute shows up again at the top of
the next page. Ids processed recently are remembered so those repeats are
skipped.

Two operations are built on the engine:
- list_new_threads: summaries of thread-starting messages in the range
- list_active_threads: full detail of every thread touched in the range

Listing pages are fetched strictly one after another. The per-summary work
of one page (classifier checks, detail pages) runs concurrently, bounded by
the fetcher's semaphore.
"""

import asyncio
import logging
from collections import deque
from datetime import datetime, timedelta
from enum import Enum, auto
from typing import Awaitable, Callable, List, Optional, Set, TypeVar

from tqdm import tqdm

from .classifier import is_thread_starter
from .errors import CrawlCancelled, ParseError, StructuralError
from .fetcher import ArchiveFetcher
from .listing import iter_listing
from .models import ThreadDetail, ThreadSummary
from .resolver import parse_thread_page, resolve_thread, thread_ids
from .utils import DateLike, range_bounds

logger = logging.getLogger(__name__)

T = TypeVar("T")

# How many processed ids are remembered for overlap detection. Repeats
# only happen between adjacent windows, so this just needs to exceed the
# number of messages one listing page can show.
RECENT_ID_WINDOW = 500


class Verdict(Enum):
    """What the cursor makes of one listing row."""
    DUPLICATE = auto()      # already processed, skip and keep scanning
    IN_RANGE = auto()       # new and inside the range, hand to the handler
    OUT_OF_RANGE = auto()   # past the end of the range, stop scanning the page


class RecentIds:
    """Set of the last ``capacity`` ids added, oldest evicted first."""

    def __init__(self, capacity: int = RECENT_ID_WINDOW):
        self.capacity = capacity
        self._order: deque = deque()
        self._ids: Set[str] = set()

    def __contains__(self, message_id: str) -> bool:
        return message_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def add(self, message_id: str):
        if message_id in self._ids:
            return
        if len(self._order) >= self.capacity:
            self._ids.discard(self._order.popleft())
        self._order.append(message_id)
        self._ids.add(message_id)


class CrawlCursor:
    """
    Progress of one crawl call.

    Attributes:
        window_start: Where the next listing window begins. Never decreases.
        range_end: Inclusive upper bound of the crawl
        previous_window_start: Start of the window fetched last
        processed: Number of distinct in-range summaries seen so far
        recent: Recently processed ids, for overlap detection
    """

    def __init__(self, start: datetime, end: datetime, recent_window: int = RECENT_ID_WINDOW):
        self.window_start = start
        self.range_end = end
        self.previous_window_start = start - timedelta(seconds=1)
        self.processed = 0
        self.recent = RecentIds(recent_window)

    @property
    def exhausted(self) -> bool:
        return self.window_start > self.range_end

    def begin_window(self) -> bool:
        """Mark the start of a new window. False if the cursor has not moved."""
        if self.window_start == self.previous_window_start:
            return False
        self.previous_window_start = self.window_start
        return True

    def admit(self, summary: ThreadSummary) -> Verdict:
        if summary.id in self.recent:
            return Verdict.DUPLICATE

        # Degraded (epoch) timestamps must not rewind the cursor
        self.window_start = max(self.window_start, summary.timestamp)
        if self.window_start > self.range_end:
            return Verdict.OUT_OF_RANGE

        self.recent.add(summary.id)
        self.processed += 1
        return Verdict.IN_RANGE


async def _run_handlers(
    handler: Callable[[ThreadSummary], Awaitable[Optional[T]]],
    batch: List[ThreadSummary],
) -> List[Optional[T]]:
    tasks = [asyncio.ensure_future(handler(summary)) for summary in batch]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        raise


async def crawl(
    fetcher: ArchiveFetcher,
    start: DateLike,
    end: DateLike,
    handler: Callable[[ThreadSummary], Awaitable[Optional[T]]],
    *,
    recent_window: int = RECENT_ID_WINDOW,
    cancel_event: Optional[asyncio.Event] = None,
    progress: Optional[tqdm] = None,
) -> List[T]:
    """
    Walk the listing windows covering [start, end] and collect handler results.

    Args:
        fetcher: Open ArchiveFetcher
        start: First day (from midnight) or exact datetime
        end: Last day (through 23:59:59) or exact datetime
        handler: Called once per distinct in-range summary; returns the
                 value to keep, or None to discard the summary
        recent_window: How many processed ids to remember for overlap dedup
        cancel_event: When set, the crawl raises CrawlCancelled before
                      fetching the next window
        progress: Optional tqdm bar, advanced once per fetched window

    Returns:
        Handler results in listing order

    Raises:
        TransportError: a listing or detail page could not be fetched.
            Nothing is returned for the part already crawled.
        CrawlCancelled: cancel_event was set
    """
    lower, upper = range_bounds(start, end)
    cursor = CrawlCursor(lower, upper, recent_window)
    results: List[T] = []
    window = 0

    while not cursor.exhausted:
        if cancel_event is not None and cancel_event.is_set():
            raise CrawlCancelled(f"crawl cancelled at {cursor.window_start}")

        if not cursor.begin_window():
            logger.debug("Cursor stuck at %s, stopping", cursor.window_start)
            break

        window += 1
        url = fetcher.listing_url(cursor.window_start)
        logger.info("Window %d: since %s (range end %s)", window, cursor.window_start, upper)
        soup = await fetcher.fetch_soup(url)

        processed_before = cursor.processed
        batch: List[ThreadSummary] = []
        for summary in iter_listing(soup):
            verdict = cursor.admit(summary)
            if verdict is Verdict.OUT_OF_RANGE:
                break
            if verdict is Verdict.IN_RANGE:
                batch.append(summary)

        outcomes = await _run_handlers(handler, batch)
        kept = [outcome for outcome in outcomes if outcome is not None]
        results.extend(kept)

        if progress is not None:
            progress.update(1)
        logger.info("Window %d: %d new summaries, %d kept", window, len(batch), len(kept))

        if cursor.processed == processed_before:
            break

    return results


class ArchiveCrawler:
    """
    The two read operations over the archive.

    Owns an ArchiveFetcher and opens/closes it with its own async context.

    Usage:
        async with ArchiveCrawler() as crawler:
            threads = await crawler.list_new_threads(date(2025, 1, 6), date(2025, 1, 6))
    """

    def __init__(
        self,
        fetcher: Optional[ArchiveFetcher] = None,
        recent_window: int = RECENT_ID_WINDOW,
        show_progress: bool = False,
    ):
        self.fetcher = fetcher or ArchiveFetcher()
        self.recent_window = recent_window
        self.show_progress = show_progress

    async def __aenter__(self):
        await self.fetcher.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.fetcher.__aexit__(exc_type, exc_val, exc_tb)

    async def _crawl(self, start, end, handler, cancel_event):
        with tqdm(desc="Listing windows", unit="page", disable=not self.show_progress) as pbar:
            return await crawl(
                self.fetcher, start, end, handler,
                recent_window=self.recent_window,
                cancel_event=cancel_event,
                progress=pbar,
            )

    async def list_new_threads(
        self,
        start: DateLike,
        end: DateLike,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> List[ThreadSummary]:
        """Summaries of the threads started in [start, end], oldest first."""

        async def keep_starters(summary: ThreadSummary) -> Optional[ThreadSummary]:
            try:
                starter = await is_thread_starter(self.fetcher, summary)
            except StructuralError as e:
                logger.warning("Could not classify %s (%s), treating it as a reply", summary.id, e)
                return None
            return summary if starter else None

        threads = await self._crawl(start, end, keep_starters, cancel_event)
        logger.info("Found %d new threads", len(threads))
        return threads

    async def list_active_threads(
        self,
        start: DateLike,
        end: DateLike,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> List[ThreadDetail]:
        """
        Full detail of every thread with at least one message in [start, end].

        Each message is mapped to the first message of its thread and every
        thread is resolved once. Threads whose pages cannot be read are
        logged and left out.
        """
        seen: Set[str] = set()

        async def resolve_once(summary: ThreadSummary) -> Optional[ThreadDetail]:
            if summary.id in seen:
                return None

            soup = await self.fetcher.fetch_soup(self.fetcher.message_url(summary.id))
            try:
                ids = thread_ids(soup)
            except StructuralError as e:
                logger.warning("Skipping %s: %s", summary.id, e)
                return None
            starter_id = ids[0] if ids and ids[0] else summary.id

            # No await between the check and the add
            if starter_id in seen:
                return None
            seen.add(starter_id)

            try:
                if starter_id == summary.id:
                    return parse_thread_page(soup, starter_id)
                return await resolve_thread(self.fetcher, starter_id)
            except (StructuralError, ParseError) as e:
                logger.warning("Skipping thread %s: %s", starter_id, e)
                return None

        threads = await self._crawl(start, end, resolve_once, cancel_event)
        logger.info("Resolved %d active threads", len(threads))
        return threads
