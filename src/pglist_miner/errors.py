"""
Exception types raised while crawling the mailing-list archive.

Every error derives from ArchiveError so callers can catch the whole
family in one place. Only TransportError is worth retrying; the other
two describe pages we cannot make sense of, and fetching them again
will not change that.
"""


class ArchiveError(Exception):
    """Base class for all archive crawling errors."""


class TransportError(ArchiveError):
    """
    A page could not be fetched.

    Raised after the fetcher has exhausted its retries, or straight away
    for a non-retryable HTTP status (e.g. 404).

    Attributes:
        url: The URL that failed
        reason: Short description of the last failure
    """

    def __init__(self, url: str, reason: str):
        super().__init__(f"Failed to fetch {url}: {reason}")
        self.url = url
        self.reason = reason


class StructuralError(ArchiveError):
    """An expected element is missing, or the page layout is unrecognized."""


class ParseError(ArchiveError, ValueError):
    """A date or time string did not match the archive's format."""


class CrawlCancelled(ArchiveError):
    """The caller asked the crawl to stop before the range was exhausted."""
