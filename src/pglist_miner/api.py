"""
JSON API over the two crawl operations.

Routes
------
GET /api/new-subjects?start_date=...&end_date=...
GET /api/active-subjects?start_date=...&end_date=...

Both dates use "YYYY-MM-DD HH:MM:SS". ``start_date`` is required;
``end_date`` defaults to the current local time when missing or unreadable.
Every request runs its own crawl; nothing is cached between requests.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .crawler import ArchiveCrawler
from .errors import TransportError
from .models import ThreadDetail

logger = logging.getLogger(__name__)

API_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

router = APIRouter()


def _query_range(start_date: str, end_date: Optional[str]) -> Tuple[datetime, datetime]:
    try:
        start = datetime.strptime(start_date, API_TIME_FORMAT)
    except ValueError:
        raise HTTPException(
            status_code=422,
            detail=f"start_date must look like 'YYYY-MM-DD HH:MM:SS', got {start_date!r}",
        )

    try:
        end = datetime.strptime(end_date, API_TIME_FORMAT) if end_date else datetime.now()
    except ValueError:
        logger.info("Unreadable end_date %r, using now", end_date)
        end = datetime.now()

    return start, end


def _detail_response(detail: ThreadDetail) -> Dict[str, Any]:
    return {
        "id": detail.id,
        "subject": detail.subject,
        "datetime": detail.timestamp.isoformat(),
        "author_name": detail.author_name,
        "author_email": detail.author_email,
        "content": detail.content,
    }


@router.get("/new-subjects")
async def new_subjects(
    request: Request,
    start_date: str,
    end_date: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Threads started in the range, oldest first."""
    start, end = _query_range(start_date, end_date)
    try:
        async with request.app.state.crawler_factory() as crawler:
            threads = await crawler.list_new_threads(start, end)
    except TransportError as e:
        logger.error("New subjects crawl failed: %s", e)
        raise HTTPException(status_code=502, detail=str(e)) from e
    return [thread.to_dict() for thread in threads]


@router.get("/active-subjects")
async def active_subjects(
    request: Request,
    start_date: str,
    end_date: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Threads with any message in the range, with full detail."""
    start, end = _query_range(start_date, end_date)
    try:
        async with request.app.state.crawler_factory() as crawler:
            threads = await crawler.list_active_threads(start, end)
    except TransportError as e:
        logger.error("Active subjects crawl failed: %s", e)
        raise HTTPException(status_code=502, detail=str(e)) from e
    return [_detail_response(thread) for thread in threads]


def create_app(crawler_factory: Callable[[], ArchiveCrawler] = ArchiveCrawler) -> FastAPI:
    """Return a configured FastAPI application.

    Args:
        crawler_factory: Builds a fresh crawler per request
    """
    app = FastAPI(
        title="pglist-miner API",
        description="New and active pgsql-hackers threads by date range.",
        version=__version__,
    )
    app.state.crawler_factory = crawler_factory

    # Browser frontends on any origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router, prefix="/api", tags=["threads"])
    return app


# Module-level instance used by uvicorn:
#   uvicorn pglist_miner.api:app
app = create_app()
