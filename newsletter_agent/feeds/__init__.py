"""Feed staleness evaluation and refresh."""

from .fetcher import FeedRefreshError, FetchResult, RefreshResult, fetch_feed_text, parse_feed, refresh_feed
from .staleness import STALENESS_WINDOW, is_stale, stale_feeds

__all__ = [
    "FeedRefreshError",
    "FetchResult",
    "RefreshResult",
    "fetch_feed_text",
    "parse_feed",
    "refresh_feed",
    "STALENESS_WINDOW",
    "is_stale",
    "stale_feeds",
]
