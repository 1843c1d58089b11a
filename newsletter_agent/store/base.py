"""Abstract storage interfaces used by the generation pipeline."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from ..core.types import Article, Feed, NewsletterSettings


class FeedNotFound(LookupError):
    """Raised when a feed id has no stored record."""


class FeedStore(ABC):
    """Feed subscriptions and their fetch timestamps."""

    @abstractmethod
    async def create_feed(
        self,
        user_id: str,
        url: str,
        title: str | None = None,
        description: str | None = None,
    ) -> Feed:
        raise NotImplementedError

    @abstractmethod
    async def get_feed(self, feed_id: str) -> Feed:
        """Return the feed, raising FeedNotFound for unknown ids."""
        raise NotImplementedError

    @abstractmethod
    async def list_feeds(self, user_id: str, active_only: bool = True) -> list[Feed]:
        raise NotImplementedError

    @abstractmethod
    async def most_recent_fetch(self, url: str) -> datetime | None:
        """Latest ``last_fetched`` across every feed record with this exact URL."""
        raise NotImplementedError

    @abstractmethod
    async def mark_fetched(self, feed_id: str, when: datetime) -> None:
        raise NotImplementedError


class ArticleStore(ABC):
    """Stored feed items."""

    @abstractmethod
    async def upsert_article(self, article: Article) -> Article:
        """Store an article, or record another source feed for a known guid."""
        raise NotImplementedError

    @abstractmethod
    async def articles_in_window(
        self,
        feed_ids: list[str],
        start: datetime,
        end: datetime,
        limit: int = 100,
    ) -> list[Article]:
        """Articles from the given feeds published within [start, end], newest first."""
        raise NotImplementedError


class SettingsStore(ABC):
    """Per-user newsletter settings."""

    @abstractmethod
    async def get_settings(self, user_id: str) -> NewsletterSettings | None:
        raise NotImplementedError


class Store(FeedStore, ArticleStore, SettingsStore, ABC):
    """Everything the pipeline and HTTP app need from persistence."""
