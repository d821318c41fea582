"""
Listing page parsing.

A listing page ("/list/<list>/since/<YYYYMMDDHHMM>") is a run of date
headings, each followed by a table with one row per message:

    <h2>Jan. 6, 2025</h2>
    <table>
      <tr><th>Subject</th><th>Author</th><th>Time</th></tr>   <- header row
      <tr>
        <th><a href="/message-id/abc@example.com">Subject text</a></th>
        <td>Author</td>
        <td>13:58</td>
      </tr>
    </table>

Everything here is a generator so the crawler can stop mid-page: rows past
the end of the requested range are never parsed.
"""

import logging
from datetime import date
from typing import Iterator, Optional, Tuple

from bs4 import BeautifulSoup, Tag

from .models import MESSAGE_PATH, ThreadSummary
from .utils import clean_subject, listing_timestamp, parse_heading_date

logger = logging.getLogger(__name__)


def iter_date_tables(soup: BeautifulSoup) -> Iterator[Tuple[date, Tag]]:
    """
    Yield (date, table) for every dated heading followed by a table.

    Headings without a recognizable date are skipped, as are headings
    whose next sibling element is not a table.
    """
    for heading in soup.find_all("h2"):
        day = parse_heading_date(heading.get_text())
        if day is None:
            continue

        table = heading.find_next_sibling()
        if table is None or table.name != "table":
            logger.debug("Heading %r is not followed by a table", heading.get_text(strip=True))
            continue

        yield day, table


def message_id_from_href(href: str) -> str:
    """Strip everything up to the /message-id/ prefix from a link target."""
    return href.split(MESSAGE_PATH, 1)[-1]


def parse_row(row: Tag, day: date) -> Optional[ThreadSummary]:
    """
    Turn one table row into a summary.

    Returns None for header rows (no td cells) and for rows without a
    linked subject or without both author and time cells.
    """
    cells = row.find_all("td")
    if not cells:
        return None

    subject_cell = row.find("th")
    if subject_cell is None or len(cells) < 2:
        return None

    link = subject_cell.find("a")
    if link is None:
        return None

    return ThreadSummary(
        id=message_id_from_href(link.get("href", "")),
        subject=clean_subject(link.get_text()),
        timestamp=listing_timestamp(day, cells[1].get_text(strip=True)),
        author=cells[0].get_text(strip=True),
    )


def iter_listing(soup: BeautifulSoup) -> Iterator[ThreadSummary]:
    """Yield the summaries of a listing page in page order."""
    for day, table in iter_date_tables(soup):
        for row in table.find_all("tr"):
            summary = parse_row(row, day)
            if summary is not None:
                yield summary


def parse_listing(markup: str) -> Iterator[ThreadSummary]:
    """Same as iter_listing, starting from raw markup."""
    return iter_listing(BeautifulSoup(markup, "lxml"))
