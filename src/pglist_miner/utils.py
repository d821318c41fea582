"""
Utility functions for pglist-miner.

This module provides the small text and date helpers shared by the listing
parser, the detail resolver and the crawler: month-name normalization,
subject cleaning, author de-obfuscation and date-range handling.
"""

import logging
import re
from datetime import date, datetime, time
from types import MappingProxyType
from typing import Optional, Tuple, Union

from .errors import ParseError

logger = logging.getLogger(__name__)

# Month names as the archive prints them in date headings, mapped to the
# full names strptime's %B understands. Built once, read-only.
MONTHS = MappingProxyType({
    "Jan.": "January",
    "Feb.": "February",
    "March": "March",
    "April": "April",
    "May": "May",
    "June": "June",
    "July": "July",
    "Aug.": "August",
    "Sept.": "September",
    "Oct.": "October",
    "Nov.": "November",
    "Dec.": "December",
})

# Marks subjects of messages carrying attachments (U+1F4CE PAPERCLIP)
ATTACHMENT_MARKER = "\U0001F4CE"

# Used when a listing row's time cell cannot be read
EPOCH = datetime(1970, 1, 1)

HEADING_DATE_FORMAT = "%B %d, %Y"
DAY_FORMAT = "%Y%m%d"

_WHITESPACE_RUN = re.compile(r"\s+")

DateLike = Union[date, datetime]


def parse_heading_date(text: str) -> Optional[date]:
    """
    Parse a listing date heading such as "Jan. 6, 2025".

    Args:
        text: Raw heading text

    Returns:
        The date, or None when the heading does not carry one

    Example:
        parse_heading_date("Sept. 30, 2024")
        # Returns: date(2024, 9, 30)
    """
    words = [MONTHS.get(word, word) for word in text.split()]
    try:
        return datetime.strptime(" ".join(words), HEADING_DATE_FORMAT).date()
    except ValueError:
        return None


def clean_subject(title: str) -> str:
    """
    Normalize a subject line taken from a listing link.

    How it works:
        1. Trim surrounding whitespace
        2. Drop everything from the first attachment marker onwards
        3. Collapse any whitespace run (newlines included) to one space

    Example:
        clean_subject("  Fix\\n   typo \U0001F4CE patch.diff ")
        # Returns: "Fix typo"
    """
    title = title.strip()
    title = title.split(ATTACHMENT_MARKER, 1)[0]
    return _WHITESPACE_RUN.sub(" ", title).strip()


def listing_timestamp(day: date, time_text: str) -> datetime:
    """
    Combine a heading date with a row's "HH:MM" time.

    An unreadable time yields EPOCH instead of failing the row.
    """
    try:
        parsed = datetime.strptime(time_text.strip(), "%H:%M").time()
    except ValueError:
        logger.debug("Unreadable listing time %r on %s, using epoch", time_text, day)
        return EPOCH
    return datetime.combine(day, parsed)


def deobfuscate_email(text: str) -> str:
    """Undo the archive's address masking: "jane(at)example(dot)com" -> "jane@example.com"."""
    return text.replace("(dot)", ".").replace("(at)", "@")


def split_author(from_text: str) -> Tuple[str, str]:
    """
    Split a From header into name and email.

    Example:
        split_author("Jane Doe <jane(at)example(dot)com>")
        # Returns: ("Jane Doe", "jane@example.com")
    """
    parts = from_text.strip().split("<")
    name = parts[0].strip()
    email = parts[1].strip().rstrip(">") if len(parts) > 1 else ""
    return name, deobfuscate_email(email)


def parse_message_time(text: str) -> datetime:
    """Parse a message header date ("YYYY-MM-DD HH:MM:SS"). Raises ParseError."""
    try:
        return datetime.strptime(text.strip(), "%Y-%m-%d %H:%M:%S")
    except ValueError as e:
        raise ParseError(f"invalid message date {text!r}") from e


def parse_day(text: str) -> date:
    """Parse a "YYYYMMDD" day argument. Raises ParseError."""
    try:
        return datetime.strptime(text, DAY_FORMAT).date()
    except ValueError as e:
        raise ParseError(f"invalid day {text!r}, expected YYYYMMDD") from e


def range_bounds(start: DateLike, end: DateLike) -> Tuple[datetime, datetime]:
    """
    Turn a crawl range into inclusive datetime bounds.

    A plain date as start means the beginning of that day; a plain date as
    end means its last second (23:59:59). Datetimes are used as given.
    """
    if isinstance(start, datetime):
        lower = start
    else:
        lower = datetime.combine(start, time.min)

    if isinstance(end, datetime):
        upper = end
    else:
        upper = datetime.combine(end, time(23, 59, 59))

    return lower, upper
