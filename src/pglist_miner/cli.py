"""CLI interface for pglist-miner."""

import asyncio
import logging
from datetime import date, timedelta

import click
import orjson
import uvicorn

from .crawler import ArchiveCrawler
from .errors import ArchiveError, ParseError
from .fetcher import LIST_NAME, MAX_CONCURRENT_REQUESTS, ArchiveFetcher
from .models import SITE_URL
from .utils import DAY_FORMAT, parse_day

# Default look-back of each command, in days before today
NEW_THREADS_DAYS = 7
ACTIVE_THREADS_DAYS = 1


def _day_callback(ctx, param, value):
    if value is None:
        return None
    try:
        return parse_day(value)
    except ParseError as e:
        raise click.BadParameter(str(e)) from e


def crawl_options(func):
    """Options shared by the ``new`` and ``active`` commands."""
    options = [
        click.option('--start', callback=_day_callback,
                     help='First day to crawl (YYYYMMDD)'),
        click.option('--end', callback=_day_callback,
                     help='Last day to crawl, inclusive (YYYYMMDD, default: today)'),
        click.option('--json', 'as_json', is_flag=True, help='Print results as JSON'),
        click.option('--site', default=SITE_URL, show_default=True, help='Archive site'),
        click.option('--list-name', default=LIST_NAME, show_default=True, help='Mailing list'),
        click.option('--concurrency', default=MAX_CONCURRENT_REQUESTS, type=int,
                     show_default=True, help='Maximum simultaneous requests'),
        click.option('--progress/--no-progress', default=True, help='Show a progress bar'),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _resolve_days(start, end, days_back):
    end = end or date.today()
    start = start or end - timedelta(days=days_back)
    if start > end:
        raise click.BadParameter(
            f"start {start.strftime(DAY_FORMAT)} is after end {end.strftime(DAY_FORMAT)}",
            param_hint="--start",
        )
    return start, end


def _run(operation, start, end, site, list_name, concurrency, progress):
    fetcher = ArchiveFetcher(site=site, list_name=list_name, max_concurrent=concurrency)

    async def go():
        async with ArchiveCrawler(fetcher, show_progress=progress) as crawler:
            return await getattr(crawler, operation)(start, end)

    try:
        return asyncio.run(go())
    except ArchiveError as e:
        raise click.ClickException(str(e)) from e


def _print_results(threads, as_json):
    if as_json:
        data = [thread.to_dict() for thread in threads]
        click.echo(orjson.dumps(data, option=orjson.OPT_INDENT_2).decode())
        return

    click.echo("----------------------------")
    for thread in threads:
        click.echo(str(thread))
        click.echo()


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
def main(verbose):
    """pglist-miner - new and active threads of the pgsql-hackers archive."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@main.command()
@crawl_options
def new(start, end, as_json, site, list_name, concurrency, progress):
    """List threads started in a date range (default: the last week)."""
    start, end = _resolve_days(start, end, NEW_THREADS_DAYS)
    if not as_json:
        click.echo(f"Fetching new topics from: {start.strftime(DAY_FORMAT)} ~ {end.strftime(DAY_FORMAT)}")
    threads = _run("list_new_threads", start, end, site, list_name, concurrency, progress)
    _print_results(threads, as_json)


@main.command()
@crawl_options
def active(start, end, as_json, site, list_name, concurrency, progress):
    """List threads under discussion in a date range (default: since yesterday)."""
    start, end = _resolve_days(start, end, ACTIVE_THREADS_DAYS)
    if not as_json:
        click.echo(
            f"Fetching all subjects under discussion for "
            f"{start.strftime(DAY_FORMAT)} ~ {end.strftime(DAY_FORMAT)}"
        )
    threads = _run("list_active_threads", start, end, site, list_name, concurrency, progress)
    _print_results(threads, as_json)


@main.command()
@click.option('--host', default='127.0.0.1', show_default=True, help='Interface to bind')
@click.option('--port', default=3000, type=int, show_default=True, help='Port to listen on')
def serve(host, port):
    """Serve the JSON API."""
    uvicorn.run("pglist_miner.api:app", host=host, port=port)


if __name__ == '__main__':
    main()
