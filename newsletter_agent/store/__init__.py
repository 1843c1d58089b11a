"""Persistence interfaces and the in-memory store."""

from .base import ArticleStore, FeedNotFound, FeedStore, SettingsStore, Store
from .memory import MemoryStore, normalize_rss_url

__all__ = [
    "ArticleStore",
    "FeedNotFound",
    "FeedStore",
    "SettingsStore",
    "Store",
    "MemoryStore",
    "normalize_rss_url",
]
