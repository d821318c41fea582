"""Configure test paths and provide an offline archive simulation."""
import asyncio
import sys
from dataclasses import dataclass
from datetime import datetime
from html import escape
from pathlib import Path
from typing import List, Optional

import httpx
import pytest

# Add src/ to path so tests can import the package
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from pglist_miner.crawler import ArchiveCrawler  # noqa: E402
from pglist_miner.fetcher import ArchiveFetcher  # noqa: E402

# Month spellings the archive uses in its date headings
ARCHIVE_MONTHS = {
    1: "Jan.", 2: "Feb.", 3: "March", 4: "April", 5: "May", 6: "June",
    7: "July", 8: "Aug.", 9: "Sept.", 10: "Oct.", 11: "Nov.", 12: "Dec.",
}


@dataclass
class Message:
    id: str
    subject: str
    timestamp: datetime
    author: str = "Jane Doe"
    starter: Optional[str] = None  # None: the message starts its own thread
    body: str = "Message body"


class FakeArchive:
    """
    In-memory stand-in for www.postgresql.org.

    Serves listing windows (at most ``page_size`` rows from the window start,
    minute precision) and message pages, and records every requested URL.
    """

    def __init__(self, messages: List[Message], page_size: int = 4):
        self.messages = sorted(messages, key=lambda m: m.timestamp)
        self.by_id = {m.id: m for m in self.messages}
        self.page_size = page_size
        self.requests: List[str] = []
        self.nine_row_ids = set()
        self.broken_ids = set()

    def starter_of(self, message: Message) -> str:
        return message.starter or message.id

    def thread(self, starter_id: str) -> List[str]:
        return [m.id for m in self.messages if self.starter_of(m) == starter_id]

    @property
    def listing_requests(self) -> List[str]:
        return [url for url in self.requests if "/list/" in url]

    @property
    def message_requests(self) -> List[str]:
        return [url for url in self.requests if "/message-id/" in url]

    def listing_html(self, since: datetime) -> str:
        page = [m for m in self.messages if m.timestamp >= since][:self.page_size]
        parts = ["<html><body><div id='pgContentWrap'><h2>Messages</h2>"]
        current_day = None
        for m in page:
            day = m.timestamp.date()
            if day != current_day:
                if current_day is not None:
                    parts.append("</table>")
                parts.append(f"<h2>{ARCHIVE_MONTHS[day.month]} {day.day}, {day.year}</h2>")
                parts.append("<table><tr><th>Subject</th><th>Author</th><th>Time</th></tr>")
                current_day = day
            parts.append(
                f"<tr><th><a href='/message-id/{m.id}'>{escape(m.subject)}</a></th>"
                f"<td>{escape(m.author)}</td><td>{m.timestamp:%H:%M}</td></tr>"
            )
        if current_day is not None:
            parts.append("</table>")
        parts.append("</div></body></html>")
        return "\n".join(parts)

    def message_html(self, message: Message) -> str:
        headers = [
            ("From", f"{message.author} <jane(at)example(dot)com>"),
            ("To", "pgsql-hackers(at)postgresql(dot)org"),
            ("Subject", message.subject),
            ("Date", f"{message.timestamp:%Y-%m-%d %H:%M:%S}"),
            ("Message-ID", message.id),
            ("Views", "Raw Message | Whole Thread"),
            ("Thread", ""),
            ("Lists", "pgsql-hackers"),
        ]
        if message.id in self.nine_row_ids:
            headers.insert(2, ("Cc", "someone(at)example(dot)com"))
        if message.id in self.broken_ids:
            headers = headers[:7]

        rows = "".join(f"<tr><th>{k}:</th><td>{escape(v)}</td></tr>" for k, v in headers)
        options = "".join(
            f"<option value='{mid}'>{mid}</option>"
            for mid in self.thread(self.starter_of(message))
        )
        return (
            "<html><body><div id='pgContentWrap'>"
            f"<table class='message-header'>{rows}</table>"
            f"<select id='thread_select'>{options}</select>"
            f"<div class='message-content'><p>{escape(message.body)}</p></div>"
            "</div></body></html>"
        )

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(str(request.url))
        path = request.url.path
        if path.startswith("/list/pgsql-hackers/since/"):
            since = datetime.strptime(path.rsplit("/", 1)[1], "%Y%m%d%H%M")
            return httpx.Response(200, text=self.listing_html(since))
        if path.startswith("/message-id/"):
            message = self.by_id.get(path[len("/message-id/"):])
            if message is None:
                return httpx.Response(404, text="not found")
            return httpx.Response(200, text=self.message_html(message))
        return httpx.Response(404, text="not found")

    def fetcher(self, **kwargs) -> ArchiveFetcher:
        client = httpx.AsyncClient(transport=httpx.MockTransport(self.handler))
        kwargs.setdefault("initial_backoff", 0)
        return ArchiveFetcher(client=client, **kwargs)

    def crawler(self, **kwargs) -> ArchiveCrawler:
        return ArchiveCrawler(self.fetcher(), **kwargs)

    def new_threads(self, start, end, **kwargs):
        async def go():
            async with self.crawler() as crawler:
                return await crawler.list_new_threads(start, end, **kwargs)
        return asyncio.run(go())

    def active_threads(self, start, end, **kwargs):
        async def go():
            async with self.crawler() as crawler:
                return await crawler.list_active_threads(start, end, **kwargs)
        return asyncio.run(go())


def sample_messages() -> List[Message]:
    """Three days of traffic (Jan 4-6, 2024) plus one message after them.

    Several messages share a minute so consecutive windows overlap.
    """
    d = datetime
    return [
        Message("m1@example.org", "Proposal: faster COPY", d(2024, 1, 4, 9, 0, 5)),
        Message("m2@example.org", "Re: Proposal: faster COPY", d(2024, 1, 4, 9, 0, 20), starter="m1@example.org"),
        Message("m3@example.org", "Bug in vacuum", d(2024, 1, 4, 9, 0, 40)),
        Message("m4@example.org", "Re: Bug in vacuum", d(2024, 1, 4, 14, 30, 1), starter="m3@example.org"),
        Message("m5@example.org", "Fwd: Re: A new look at NFS readdir", d(2024, 1, 4, 14, 30, 30)),
        Message("m6@example.org", "Re: Proposal: faster COPY", d(2024, 1, 4, 23, 59, 0), starter="m1@example.org"),
        Message("m7@example.org", "RE：Bug in vacuum", d(2024, 1, 5, 0, 0, 10), starter="m3@example.org"),
        Message("m8@example.org", "Docs typo \U0001F4CE fix.patch", d(2024, 1, 5, 8, 15, 0)),
        Message("m9@example.org", "Fwd: Re: faster COPY numbers", d(2024, 1, 5, 8, 15, 10), starter="m1@example.org"),
        Message("m10@example.org", "Add pg_foo\n   extension", d(2024, 1, 5, 8, 15, 50)),
        Message("m11@example.org", "Re: Add pg_foo extension", d(2024, 1, 5, 20, 0, 0), starter="m10@example.org"),
        Message("m12@example.org", "Planner hook", d(2024, 1, 6, 11, 11, 0)),
        Message("m13@example.org", "Re: Planner hook", d(2024, 1, 6, 11, 11, 30), starter="m12@example.org"),
        Message("m14@example.org", "re: Docs typo", d(2024, 1, 6, 11, 12, 0), starter="m8@example.org"),
        Message("m15@example.org", "Outside the range", d(2024, 1, 7, 10, 0, 0)),
    ]


@pytest.fixture()
def archive():
    return FakeArchive(sample_messages())
