"""
Concurrent rumour ingestion from every configured feed.

All feeds are requested at once with httpx.AsyncClient. Each request is
bounded by its own timeout and a failing feed (HTTP error, transport
error, timeout, malformed XML) only loses that feed's items; the failure
is logged and the rest of the cycle carries on.

After fetching, items are:
1. Flattened in feed configuration order
2. De-duplicated by link (first seen wins)
3. Filtered by age (settings.news_max_age_hours, None disables)
4. Sorted by pub_date, newest first

Nothing is written anywhere, so cancelling a fetch has no side effects.

Usage:
    items = await fetch_all_rumors()
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

import httpx

from soylenti.config import settings
from soylenti.errors import FeedFetchError, FeedParseError
from soylenti.feeds.base import FEED_CONFIGS, FeedConfig, RumorItem
from soylenti.feeds.parser import parse_feed

logger = logging.getLogger(__name__)

# Sentinel so callers can pass max_age_hours=None to disable the age filter
_USE_SETTINGS = object()

ACCEPT_HEADER = "application/rss+xml, application/atom+xml, application/xml, text/xml"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


async def fetch_feed(
    client: httpx.AsyncClient,
    feed: FeedConfig,
    fetched_at: Optional[datetime] = None,
) -> list[RumorItem]:
    """
    Fetch and parse a single feed.

    Raises:
        FeedFetchError: on a non-2xx status or a transport failure
        FeedParseError: if the body is not an RSS/Atom document
    """
    try:
        response = await client.get(feed.url)
    except httpx.HTTPError as exc:
        raise FeedFetchError(feed.source.value, f"request failed: {exc!r}") from exc

    if response.status_code >= 400:
        raise FeedFetchError(
            feed.source.value,
            f"HTTP {response.status_code}",
            status_code=response.status_code,
        )

    return parse_feed(response.text, feed.source, fetched_at=fetched_at)


async def _fetch_isolated(
    client: httpx.AsyncClient,
    feed: FeedConfig,
    timeout_seconds: float,
    fetched_at: datetime,
) -> list[RumorItem]:
    """fetch_feed() that never raises: failures are logged and yield no items."""
    try:
        items = await asyncio.wait_for(fetch_feed(client, feed, fetched_at), timeout_seconds)
    except asyncio.TimeoutError:
        _log_feed_failure(feed, f"timed out after {timeout_seconds:.0f}s")
        return []
    except (FeedFetchError, FeedParseError) as exc:
        _log_feed_failure(feed, str(exc))
        return []
    except Exception as exc:
        # Anything unexpected from one feed still must not sink the others
        logger.exception("Unexpected error fetching %s (%s)", feed.source.value, feed.url)
        _log_feed_failure(feed, repr(exc))
        return []

    logger.debug("Fetched %d items from %s", len(items), feed.source.value)
    return items


def _log_feed_failure(feed: FeedConfig, reason: str) -> None:
    if feed.type == "telegram":
        logger.warning(
            "Telegram bridge feed %s unavailable (%s): %s",
            feed.source.value, feed.url, reason,
        )
    else:
        logger.error(
            "RSS feed %s failed (%s): %s",
            feed.source.value, feed.url, reason,
        )


def merge_feed_items(
    batches: Sequence[list[RumorItem]],
    max_age_hours: Optional[int],
    now: datetime,
) -> list[RumorItem]:
    """
    Combine per-feed results into one list.

    Args:
        batches: Items per feed, in feed configuration order
        max_age_hours: Drop items published earlier than this many hours
            before now; None keeps everything
        now: Reference time (naive UTC)
    """
    seen_links: set[str] = set()
    merged: list[RumorItem] = []
    for batch in batches:
        for item in batch:
            if item.link in seen_links:
                continue
            seen_links.add(item.link)
            merged.append(item)

    if max_age_hours is not None:
        cutoff = now - timedelta(hours=max_age_hours)
        merged = [item for item in merged if item.pub_date >= cutoff]

    merged.sort(key=lambda item: item.source.value)
    merged.sort(key=lambda item: item.pub_date, reverse=True)
    return merged


async def fetch_all_rumors(
    feeds: Optional[Sequence[FeedConfig]] = None,
    *,
    client: Optional[httpx.AsyncClient] = None,
    timeout_seconds: Optional[float] = None,
    max_age_hours=_USE_SETTINGS,
    now: Optional[datetime] = None,
) -> list[RumorItem]:
    """
    Fetch every feed concurrently and return the combined rumour list.

    Args:
        feeds: Feeds to fetch (defaults to FEED_CONFIGS)
        client: httpx client to use; one is created (and closed) if omitted
        timeout_seconds: Per-feed timeout (defaults to settings.feed_timeout_seconds)
        max_age_hours: Age filter in hours, None to disable (defaults to
            settings.news_max_age_hours)
        now: Reference time for the age filter and for items without a
            date (defaults to the current time, naive UTC)

    Returns:
        Rumour items sorted by pub_date, newest first, unique by link.
        Empty when every feed failed.
    """
    if feeds is None:
        feeds = FEED_CONFIGS
    if timeout_seconds is None:
        timeout_seconds = settings.feed_timeout_seconds
    if max_age_hours is _USE_SETTINGS:
        max_age_hours = settings.news_max_age_hours
    if now is None:
        now = _utcnow()

    if not feeds:
        return []

    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient(
            headers={"User-Agent": settings.feed_user_agent, "Accept": ACCEPT_HEADER},
            timeout=timeout_seconds,
            follow_redirects=True,
        )

    try:
        batches = await asyncio.gather(
            *(_fetch_isolated(client, feed, timeout_seconds, now) for feed in feeds)
        )
    finally:
        if owns_client:
            await client.aclose()

    items = merge_feed_items(batches, max_age_hours, now)
    failed = sum(1 for batch in batches if not batch)
    logger.info(
        "Fetched %d rumours from %d feeds (%d returned nothing)",
        len(items), len(feeds), failed,
    )
    return items
