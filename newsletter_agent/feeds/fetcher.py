"""
RSS feed fetching and refresh.

Fetches a feed's upstream document over HTTP (httpx, with retries),
parses it with feedparser, and stores every item against the feed.
Items are keyed by guid, so an item already delivered by another feed
only gains one more source id.
"""

from __future__ import annotations

import asyncio
import calendar
from dataclasses import dataclass
from datetime import datetime, timezone
import hashlib
import logging

import feedparser
import httpx

from ..config import FetchConfig
from ..core.types import Article, utcnow
from ..logging_utils import log_event
from ..store.base import Store

logger = logging.getLogger(__name__)


class FeedRefreshError(Exception):
    """Raised when a single feed cannot be fetched or parsed."""


@dataclass
class FetchResult:
    """Result of an HTTP fetch operation.

    Either text will be populated (success) or error will be populated (failure),
    but never both. status_code may be None for network-level failures.

    Attributes:
        url: The URL that was fetched
        status_code: HTTP status code, or None if request failed before getting response
        text: The response body text, or None on error
        error: Error message if fetch failed, None on success
    """

    url: str
    status_code: int | None
    text: str | None
    error: str | None


@dataclass
class RefreshResult:
    feed_id: str
    url: str
    articles_seen: int
    fetched_at: datetime


async def fetch_feed_text(
    url: str,
    cfg: FetchConfig,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FetchResult:
    """Fetch a feed document with retry logic.

    Non-2xx responses count as failures and are retried like network errors.

    Args:
        url: The feed URL to fetch
        cfg: Fetch settings (timeout, retries, user agent, proxy handling)
        transport: Optional httpx transport, used by tests

    Returns:
        FetchResult with text on success or error message on failure
    """
    headers = {"User-Agent": cfg.user_agent}
    last_error: str | None = None
    last_status: int | None = None

    for attempt in range(cfg.retries + 1):
        try:
            async with httpx.AsyncClient(
                timeout=cfg.timeout_seconds,
                headers=headers,
                follow_redirects=True,
                trust_env=cfg.trust_env,
                transport=transport,
            ) as client:
                resp = await client.get(url)
                resp.raise_for_status()
                return FetchResult(url=url, status_code=resp.status_code, text=resp.text, error=None)
        except httpx.HTTPStatusError as exc:
            last_status = exc.response.status_code
            last_error = f"HTTP {last_status}"
        except httpx.HTTPError as exc:
            last_error = f"{type(exc).__name__}: {exc}"
        if attempt < cfg.retries:
            # Linear backoff: 0.5s, 1.0s, 1.5s...
            await asyncio.sleep(0.5 * (attempt + 1))

    return FetchResult(url=url, status_code=last_status, text=None, error=last_error)


def parse_feed(text: str, feed_id: str) -> list[Article]:
    """Parse an RSS/Atom document into articles owned by ``feed_id``.

    Entries without a title or link are skipped. The guid falls back to the
    link when the feed provides no id; the publication date falls back to
    the updated date, then to the time of parsing.

    Raises:
        FeedRefreshError: If the document is not a feed at all
    """
    parsed = feedparser.parse(text)
    if parsed.bozo and not parsed.entries:
        raise FeedRefreshError(f"Unparseable feed document: {parsed.get('bozo_exception')}")

    articles: list[Article] = []
    for entry in parsed.entries:
        title = (entry.get("title") or "").strip()
        link = (entry.get("link") or "").strip()
        if not title or not link:
            logger.debug("Skipping entry without title or link in feed %s", feed_id)
            continue

        guid = entry.get("id") or link
        articles.append(
            Article(
                id=hashlib.sha256(guid.encode("utf-8")).hexdigest()[:24],
                feed_id=feed_id,
                guid=guid,
                title=title,
                link=link,
                pub_date=_entry_date(entry),
                summary=(entry.get("summary") or None),
                content=_entry_content(entry),
                author=entry.get("author") or None,
                categories=[tag.get("term") for tag in entry.get("tags", []) if tag.get("term")],
                image_url=_entry_image(entry),
                source_feed_ids=[feed_id],
            )
        )
    return articles


async def refresh_feed(
    store: Store,
    feed_id: str,
    cfg: FetchConfig,
    now: datetime | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> RefreshResult:
    """Fetch one feed, store its items and stamp its fetch time.

    Raises:
        FeedRefreshError: If the feed is unknown, unreachable or unparseable
    """
    try:
        feed = await store.get_feed(feed_id)
    except LookupError as exc:
        raise FeedRefreshError(str(exc)) from exc

    result = await fetch_feed_text(feed.url, cfg, transport=transport)
    if result.text is None:
        log_event(
            logger,
            "Feed fetch failed",
            level=logging.WARNING,
            event="feed_fetch_failed",
            feed_id=feed_id,
            url=feed.url,
            status_code=result.status_code,
            error=result.error,
        )
        raise FeedRefreshError(f"Failed to fetch {feed.url}: {result.error}")

    articles = parse_feed(result.text, feed_id)
    for article in articles:
        await store.upsert_article(article)

    fetched_at = now or utcnow()
    await store.mark_fetched(feed_id, fetched_at)
    log_event(
        logger,
        "Feed refreshed",
        event="feed_refreshed",
        feed_id=feed_id,
        url=feed.url,
        articles=len(articles),
    )
    return RefreshResult(feed_id=feed_id, url=feed.url, articles_seen=len(articles), fetched_at=fetched_at)


def _entry_date(entry) -> datetime:
    for key in ("published_parsed", "updated_parsed"):
        value = entry.get(key)
        if value:
            # feedparser normalizes these struct_times to UTC
            return datetime.fromtimestamp(calendar.timegm(value), tz=timezone.utc)
    return utcnow()


def _entry_content(entry) -> str | None:
    content = entry.get("content")
    if content:
        value = content[0].get("value")
        if value:
            return value
    return None


def _entry_image(entry) -> str | None:
    for media in entry.get("media_content", []) or entry.get("media_thumbnail", []):
        if media.get("url"):
            return media["url"]
    for link in entry.get("links", []):
        if link.get("rel") == "enclosure" and str(link.get("type", "")).startswith("image/"):
            return link.get("href")
    return None
