"""
Feed staleness evaluation.

A feed needs refreshing when nobody has fetched its upstream URL within
the staleness window. The check looks at every stored feed sharing the
URL, so a source refreshed recently on behalf of one user is not fetched
again for another.

Policy for feeds whose staleness cannot be established (the id is unknown
or the store lookup fails): they are treated as stale. The failure is
logged and the rest of the batch is evaluated normally; the subsequent
refresh attempt fails in isolation if the feed really does not exist.
"""

from __future__ import annotations

from datetime import datetime, timedelta
import logging
from typing import Iterable

from ..core.types import utcnow
from ..logging_utils import log_event
from ..store.base import FeedStore

logger = logging.getLogger(__name__)

STALENESS_WINDOW = timedelta(hours=3)


def is_stale(last_fetched: datetime | None, now: datetime) -> bool:
    """True if ``last_fetched`` is missing or older than the staleness window."""
    if last_fetched is None:
        return True
    return now - last_fetched > STALENESS_WINDOW


async def stale_feeds(
    store: FeedStore,
    feed_ids: Iterable[str],
    now: datetime | None = None,
) -> list[str]:
    """Return the subset of ``feed_ids`` that should be re-fetched.

    Args:
        store: Feed store to consult
        feed_ids: Requested feed ids; order is preserved in the result
        now: Reference time (defaults to the current UTC time)

    Returns:
        Feed ids whose source URL has no fetch within the staleness window
    """
    now = now or utcnow()
    stale: list[str] = []
    checked: dict[str, bool] = {}

    for feed_id in dict.fromkeys(feed_ids):
        try:
            feed = await store.get_feed(feed_id)
            if feed.url not in checked:
                last_fetched = await store.most_recent_fetch(feed.url)
                checked[feed.url] = is_stale(last_fetched, now)
            needs_refresh = checked[feed.url]
        except Exception as exc:  # noqa: BLE001
            log_event(
                logger,
                "Staleness lookup failed, treating feed as stale",
                level=logging.WARNING,
                event="staleness_lookup_failed",
                feed_id=feed_id,
                error=f"{type(exc).__name__}: {exc}",
            )
            needs_refresh = True

        if needs_refresh:
            stale.append(feed_id)

    return stale
