"""
Thread starter classification.

Most subjects settle the question on their own: "Re: ..." is a reply, and a
subject with no "re:" anywhere starts a thread. What is left, typically
forwarded replies such as "Fwd: Re: ...", is settled by asking the archive
which message heads the thread.
"""

import logging
from typing import Optional

from .fetcher import ArchiveFetcher
from .models import ThreadSummary
from .resolver import thread_starter_id

logger = logging.getLogger(__name__)

# ASCII and full-width colon
REPLY_PREFIXES = ("re:", "re：")


def classify_subject(subject: str) -> Optional[bool]:
    """
    Decide from the subject alone whether a message starts a thread.

    Returns:
        False for replies, True for starters, None when the subject is
        ambiguous and the archive has to be asked
    """
    folded = subject.lower()
    if folded.startswith(REPLY_PREFIXES):
        return False
    if "re:" not in folded:
        return True
    return None


async def is_thread_starter(fetcher: ArchiveFetcher, summary: ThreadSummary) -> bool:
    """Whether ``summary`` is the first message of its thread."""
    verdict = classify_subject(summary.subject)
    if verdict is not None:
        return verdict

    logger.debug("Ambiguous subject %r, checking thread of %s", summary.subject, summary.id)
    return await thread_starter_id(fetcher, summary.id) == summary.id
