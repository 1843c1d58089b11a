"""
In-memory implementation of the storage interfaces.

Suitable for development servers and tests. A single asyncio lock
serializes writers; readers copy records out so callers never mutate
stored state.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import datetime
import json
import logging
from pathlib import Path
from typing import Any
import uuid

from ..core.types import Article, Feed, NewsletterSettings, parse_timestamp
from .base import FeedNotFound, Store

logger = logging.getLogger(__name__)


def normalize_rss_url(url: str) -> str:
    """Trim the URL and prepend https:// when no http(s) scheme is given."""
    trimmed = url.strip()
    if trimmed.startswith(("http://", "https://")):
        return trimmed
    return f"https://{trimmed}"


class MemoryStore(Store):
    def __init__(self) -> None:
        self._feeds: dict[str, Feed] = {}
        self._articles: dict[str, Article] = {}  # keyed by guid
        self._settings: dict[str, NewsletterSettings] = {}
        self._lock = asyncio.Lock()

    # feeds

    async def create_feed(
        self,
        user_id: str,
        url: str,
        title: str | None = None,
        description: str | None = None,
        feed_id: str | None = None,
        last_fetched: datetime | None = None,
    ) -> Feed:
        feed = Feed(
            id=feed_id or uuid.uuid4().hex,
            user_id=user_id,
            url=normalize_rss_url(url),
            title=title,
            description=description,
            last_fetched=last_fetched,
        )
        async with self._lock:
            self._feeds[feed.id] = feed
        return replace(feed)

    async def get_feed(self, feed_id: str) -> Feed:
        feed = self._feeds.get(feed_id)
        if feed is None:
            raise FeedNotFound(f"RSS feed with ID {feed_id} not found")
        return replace(feed)

    async def list_feeds(self, user_id: str, active_only: bool = True) -> list[Feed]:
        feeds = [
            replace(feed)
            for feed in self._feeds.values()
            if feed.user_id == user_id and (feed.is_active or not active_only)
        ]
        feeds.sort(key=lambda feed: feed.created_at, reverse=True)
        return feeds

    async def most_recent_fetch(self, url: str) -> datetime | None:
        fetched = [
            feed.last_fetched
            for feed in self._feeds.values()
            if feed.url == url and feed.last_fetched is not None
        ]
        return max(fetched, default=None)

    async def mark_fetched(self, feed_id: str, when: datetime) -> None:
        async with self._lock:
            feed = self._feeds.get(feed_id)
            if feed is None:
                raise FeedNotFound(f"RSS feed with ID {feed_id} not found")
            feed.last_fetched = when

    # articles

    async def upsert_article(self, article: Article) -> Article:
        async with self._lock:
            existing = self._articles.get(article.guid)
            if existing is None:
                stored = replace(
                    article,
                    source_feed_ids=list(article.source_feed_ids or [article.feed_id]),
                    categories=list(article.categories),
                    feed_title=None,
                )
                self._articles[article.guid] = stored
                return replace(stored)
            if article.feed_id not in existing.source_feed_ids:
                existing.source_feed_ids.append(article.feed_id)
            return replace(existing, source_feed_ids=list(existing.source_feed_ids))

    async def articles_in_window(
        self,
        feed_ids: list[str],
        start: datetime,
        end: datetime,
        limit: int = 100,
    ) -> list[Article]:
        wanted = set(feed_ids)
        matches = [
            article
            for article in self._articles.values()
            if (article.feed_id in wanted or wanted.intersection(article.source_feed_ids))
            and start <= article.pub_date <= end
        ]
        matches.sort(key=lambda article: article.pub_date, reverse=True)
        results = []
        for article in matches[:limit]:
            feed = self._feeds.get(article.feed_id)
            results.append(
                replace(
                    article,
                    source_feed_ids=list(article.source_feed_ids),
                    feed_title=(feed.title or feed.url) if feed else None,
                )
            )
        return results

    # settings

    async def get_settings(self, user_id: str) -> NewsletterSettings | None:
        settings = self._settings.get(user_id)
        return replace(settings) if settings else None

    async def save_settings(self, user_id: str, settings: NewsletterSettings) -> None:
        async with self._lock:
            self._settings[user_id] = settings

    # seeding

    async def load_feeds_file(self, path: Path) -> int:
        """Seed feeds (and optional per-user settings) from a JSON export.

        The export format::

            {
                "feeds": [
                    {"id": "tech", "userId": "u1", "url": "example.com/rss",
                     "title": "Example", "lastFetched": "2026-01-01T00:00:00Z"}
                ],
                "settings": {"u1": {"newsletter_name": "Weekly"}}
            }

        Returns:
            Number of feeds loaded

        Raises:
            ValueError: If the document has no 'feeds' list
        """
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        return await self.load_feeds(data)

    async def load_feeds(self, data: dict[str, Any]) -> int:
        feeds = data.get("feeds")
        if not isinstance(feeds, list):
            raise ValueError("Invalid feeds file: missing 'feeds' list")

        loaded = 0
        for item in feeds:
            url = item.get("url")
            if not url:
                logger.warning("Skipping feed %s: missing url", item.get("id", "unknown"))
                continue
            last_fetched = item.get("lastFetched")
            await self.create_feed(
                user_id=item.get("userId", "default"),
                url=url,
                title=item.get("title"),
                description=item.get("description"),
                feed_id=item.get("id"),
                last_fetched=parse_timestamp(last_fetched, "lastFetched") if last_fetched else None,
            )
            loaded += 1

        for user_id, raw in (data.get("settings") or {}).items():
            await self.save_settings(user_id, NewsletterSettings.from_dict(raw))
        return loaded
