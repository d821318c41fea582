"""
Thread detail resolution.

Reads a single message page ("/message-id/<id>") into a ThreadDetail.
The page carries:

- a header table (From, To, Cc, Subject, Date, ...) whose row count
  depends on the message: 8 rows normally, 9 when an extra header such as
  In-Reply-To is shown
- the message body in div.message-content
- an optional attachments table
- the thread navigation <select id="thread_select">, whose options list
  every message of the thread, starter first
"""

import logging
from enum import Enum
from typing import List

from bs4 import BeautifulSoup, Tag

from .errors import StructuralError
from .fetcher import ArchiveFetcher
from .models import Attachment, ThreadDetail
from .utils import parse_message_time, split_author

logger = logging.getLogger(__name__)

HEADER_TABLE = "#pgContentWrap table"
MESSAGE_CONTENT = "#pgContentWrap div.message-content"
ATTACHMENTS_TABLE = "#pgContentWrap table.message-attachments"
THREAD_SELECT = "select#thread_select"


class HeaderLayout(Enum):
    """
    Known header table layouts: total row count, then the indices of the
    From, Subject and Date rows.
    """
    EIGHT_ROW = (8, 0, 2, 3)
    NINE_ROW = (9, 0, 3, 4)

    def __init__(self, row_count: int, from_row: int, subject_row: int, date_row: int):
        self.row_count = row_count
        self.from_row = from_row
        self.subject_row = subject_row
        self.date_row = date_row

    @classmethod
    def for_row_count(cls, row_count: int) -> "HeaderLayout":
        for layout in cls:
            if layout.row_count == row_count:
                return layout
        raise StructuralError(f"unrecognized header table layout with {row_count} rows")


def _header_value(rows: List[Tag], index: int) -> str:
    cell = rows[index].find("td")
    if cell is None:
        raise StructuralError(f"header row {index} has no value cell")
    return cell.get_text().strip()


def thread_ids(soup: BeautifulSoup) -> List[str]:
    """Ids of every message in the thread, as the navigation control lists them."""
    select = soup.select_one(THREAD_SELECT)
    if select is None:
        raise StructuralError(f"no '{THREAD_SELECT}' found in the page")
    return [option.get("value", "") for option in select.find_all("option")]


def extract_attachments(soup: BeautifulSoup) -> List[Attachment]:
    table = soup.select_one(ATTACHMENTS_TABLE)
    if table is None:
        return []

    attachments = []
    for cell in table.find_all("th"):
        link = cell.find("a")
        if link is not None:
            attachments.append(Attachment(
                url=link.get("href", ""),
                label=link.get_text(strip=True),
            ))
    return attachments


def parse_thread_page(soup: BeautifulSoup, message_id: str) -> ThreadDetail:
    """
    Extract the full detail of a message page.

    Args:
        soup: Parsed message page
        message_id: Id the page was fetched for

    Returns:
        ThreadDetail for the message

    Raises:
        StructuralError: a required element is missing, or the header
            table has a row count other than 8 or 9
        ParseError: the Date header is not "YYYY-MM-DD HH:MM:SS"
    """
    content_elem = soup.select_one(MESSAGE_CONTENT)
    if content_elem is None:
        raise StructuralError(f"no '{MESSAGE_CONTENT}' found in the page")

    header_table = soup.select_one(HEADER_TABLE)
    if header_table is None:
        raise StructuralError(f"no '{HEADER_TABLE}' found in the page")

    rows = header_table.find_all("tr")
    layout = HeaderLayout.for_row_count(len(rows))

    author_name, author_email = split_author(_header_value(rows, layout.from_row))

    return ThreadDetail(
        id=message_id,
        subject=_header_value(rows, layout.subject_row),
        timestamp=parse_message_time(_header_value(rows, layout.date_row)),
        author_name=author_name,
        author_email=author_email,
        content=content_elem.get_text().strip(),
        attachments=extract_attachments(soup),
        reply_ids=thread_ids(soup),
    )


async def resolve_thread(fetcher: ArchiveFetcher, message_id: str) -> ThreadDetail:
    """Fetch a message page and read its full detail."""
    soup = await fetcher.fetch_soup(fetcher.message_url(message_id))
    return parse_thread_page(soup, message_id)


async def thread_starter_id(fetcher: ArchiveFetcher, message_id: str) -> str:
    """Id of the first message in the thread ``message_id`` belongs to."""
    soup = await fetcher.fetch_soup(fetcher.message_url(message_id))
    ids = thread_ids(soup)
    if not ids or not ids[0]:
        raise StructuralError(f"thread navigation of {message_id} lists no messages")
    return ids[0]
