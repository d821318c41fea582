"""
Data models for pglist-miner.

This module defines typed data structures for the two things we extract
from the archive: a one-row thread summary from a listing page, and the
full detail of a single message page. Using dataclasses provides clear
structure, type hints, and easy JSON serialization.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List

# Archive site and the message page prefix used when rendering URLs.
# fetcher.py builds request URLs from the same constants.
SITE_URL = "https://www.postgresql.org"
MESSAGE_PATH = "/message-id/"

# Display format shared by the text renderings below
DISPLAY_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def message_url(message_id: str, site: str = SITE_URL) -> str:
    """Return the archive URL of a single message."""
    return f"{site}{MESSAGE_PATH}{message_id}"


@dataclass(frozen=True)
class ThreadSummary:
    """
    One row of a listing page: a message as the archive lists it.

    Attributes:
        id: The archive's opaque message identifier (the trailing part of
            the subject link, with the /message-id/ prefix stripped)
        subject: Cleaned subject line
        timestamp: Listing date combined with the row's HH:MM time.
                   Falls back to the epoch when the time cell is unreadable.
        author: Author name as shown in the listing

    Example:
        summary = ThreadSummary(
            id="CAFj8pRD=abc@mail.gmail.com",
            subject="Proposal: new GUC for foo",
            timestamp=datetime(2025, 1, 6, 13, 58),
            author="Jane Doe",
        )
    """
    id: str
    subject: str
    timestamp: datetime
    author: str

    @property
    def url(self) -> str:
        return message_url(self.id)

    def to_dict(self) -> dict:
        """Convert the summary to a dictionary for JSON serialization."""
        return {
            "id": self.id,
            "subject": self.subject,
            "datetime": self.timestamp.isoformat(),
            "author": self.author,
        }

    def __str__(self) -> str:
        return (
            f"Thread: {self.subject}\n"
            f"Author: {self.author}\n"
            f"Time: {self.timestamp.strftime(DISPLAY_TIME_FORMAT)}\n"
            f"URL: {self.url}"
        )


@dataclass(frozen=True)
class Attachment:
    """A file attached to a message: its download URL and link label."""
    url: str
    label: str

    def to_dict(self) -> dict:
        return {"url": self.url, "label": self.label}


@dataclass
class ThreadDetail:
    """
    Full detail of a thread-starting message, read from its own page.

    Attributes:
        id: Message identifier of the thread starter
        subject: Subject from the message header table
        timestamp: Send time from the header table (second precision)
        author_name: Name part of the From header
        author_email: Email part of the From header, de-obfuscated
        content: Message body text
        attachments: Attachments in page order
        reply_ids: Ids of every message in the thread, in the order the
                   archive's thread navigation lists them. The starter
                   itself is normally the first entry.
    """
    id: str
    subject: str
    timestamp: datetime
    author_name: str
    author_email: str
    content: str
    attachments: List[Attachment] = field(default_factory=list)
    reply_ids: List[str] = field(default_factory=list)

    @property
    def url(self) -> str:
        return message_url(self.id)

    def to_dict(self) -> dict:
        """Convert the detail to a dictionary for JSON serialization."""
        return {
            "id": self.id,
            "subject": self.subject,
            "datetime": self.timestamp.isoformat(),
            "author_name": self.author_name,
            "author_email": self.author_email,
            "content": self.content,
            "attachments": [a.to_dict() for a in self.attachments],
            "reply_ids": list(self.reply_ids),
        }

    def __str__(self) -> str:
        return (
            f"Thread: {self.subject}\n"
            f"Author Name: {self.author_name}\n"
            f"Author Email: {self.author_email}\n"
            f"Time: {self.timestamp.strftime(DISPLAY_TIME_FORMAT)}\n"
            f"URL: {self.url}\n"
            f"Content Size: {len(self.content)}\n"
            f"Total Attachments: {len(self.attachments)}\n"
            f"Total replies: {len(self.reply_ids)}"
        )
