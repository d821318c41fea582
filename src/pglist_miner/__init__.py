"""
pglist-miner - thread extraction for the PostgreSQL mailing-list archive

This package crawls the date-indexed web archive of a mailing list
(pgsql-hackers by default) and extracts discussion threads.

Main components:
- ArchiveCrawler: list_new_threads / list_active_threads over a date range
- ArchiveFetcher: async HTTP fetching with retry and backoff
- ThreadSummary / ThreadDetail: data models for listing rows and message pages
- Listing, classifier and resolver helpers used by the crawler

Usage:
    from datetime import date
    from pglist_miner import ArchiveCrawler
    import asyncio

    async def main():
        async with ArchiveCrawler() as crawler:
            return await crawler.list_new_threads(date(2025, 1, 6), date(2025, 1, 6))

    threads = asyncio.run(main())
"""

__version__ = '1.0.0'

from .crawler import ArchiveCrawler, crawl
from .errors import ArchiveError, CrawlCancelled, ParseError, StructuralError, TransportError
from .fetcher import ArchiveFetcher
from .models import Attachment, ThreadDetail, ThreadSummary

__all__ = [
    'ArchiveCrawler',
    'ArchiveFetcher',
    'crawl',
    'ThreadSummary',
    'ThreadDetail',
    'Attachment',
    'ArchiveError',
    'TransportError',
    'StructuralError',
    'ParseError',
    'CrawlCancelled',
]
