"""
Streaming newsletter generation pipeline.

One request flows through these stages, each emitting at most one
protocol event before the next begins:

1. Evaluate which requested feeds are stale
2. Refresh stale feeds concurrently (``refreshing``), tolerating failures
3. Announce the analysis (``analyzing``)
4. Load articles in the requested window, newest first
5. Fix the article count (``metadata``)
6. Stream cumulative snapshots from the model (``partial`` each)
7. Finish with ``complete``

Any failure in stages 1-6 ends the stream with a single ``error`` event
carrying the failure message. Cancellation (the client went away) is not
a failure: it propagates and closes the model stream.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, TypeVar

from .config import FetchConfig, GenerationConfig
from .core.types import GenerationRequest, RequestContext, utcnow
from .feeds.fetcher import refresh_feed
from .feeds.staleness import stale_feeds
from .llm.prompts import build_newsletter_prompt
from .llm.providers.base import NewsletterProvider
from .llm.tracing import record_span_error, set_span_output, start_span
from .logging_utils import log_event
from .store.base import Store
from .streaming.events import (
    AnalyzingEvent,
    CompleteEvent,
    ErrorEvent,
    MetadataEvent,
    PartialEvent,
    RefreshingEvent,
    StreamEvent,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

Refresher = Callable[[str], Awaitable[Any]]
Clock = Callable[[], datetime]


class NoArticlesError(Exception):
    """Raised when the requested window holds no articles."""

    def __init__(self) -> None:
        super().__init__("No articles found for the selected feeds and date range")


class GenerationTimeout(Exception):
    """Raised when a request exceeds its overall deadline."""

    def __init__(self, seconds: float):
        super().__init__(f"Newsletter generation timed out after {seconds:g} seconds")


class GenerationPipeline:
    """Runs one generation request and yields its protocol events.

    Args:
        context: Caller identity and settings
        store: Feed, article and settings storage
        provider: Model producing cumulative snapshots
        cfg: Generation limits and deadline
        fetch_cfg: Settings for the default feed refresher
        refresher: Coroutine function refreshing one feed id; defaults to
            ``refresh_feed`` against ``store``
        clock: Returns the current time, for staleness checks
    """

    def __init__(
        self,
        context: RequestContext,
        store: Store,
        provider: NewsletterProvider,
        cfg: GenerationConfig | None = None,
        fetch_cfg: FetchConfig | None = None,
        refresher: Refresher | None = None,
        clock: Clock | None = None,
    ):
        self.context = context
        self.store = store
        self.provider = provider
        self.cfg = cfg or GenerationConfig()
        self.fetch_cfg = fetch_cfg or FetchConfig()
        self.refresher = refresher or self._refresh_one
        self.clock = clock or utcnow
        self._deadline: float | None = None

    async def run(self, request: GenerationRequest) -> AsyncIterator[StreamEvent]:
        """Yield the protocol events for ``request``.

        Always ends with exactly one ``complete`` or ``error`` event unless
        the consumer stops iterating first.
        """
        loop = asyncio.get_running_loop()
        self._deadline = loop.time() + self.cfg.timeout_seconds
        log_event(
            logger,
            "Generation start",
            event="generation_start",
            request_id=self.context.request_id,
            user_id=self.context.user_id,
            feeds=len(request.feed_ids),
        )

        with start_span(
            "newsletter.generate",
            kind="chain",
            input_value={
                "feed_ids": list(request.feed_ids),
                "start_date": request.start_date.isoformat(),
                "end_date": request.end_date.isoformat(),
            },
            attributes={"request_id": self.context.request_id, "user_id": self.context.user_id},
        ) as span:
            partials = 0
            stages = self._stages(request)
            try:
                async for event in stages:
                    if isinstance(event, PartialEvent):
                        partials += 1
                    yield event
            except (asyncio.CancelledError, GeneratorExit):
                log_event(
                    logger,
                    "Generation cancelled",
                    level=logging.WARNING,
                    event="generation_cancelled",
                    request_id=self.context.request_id,
                    partials=partials,
                )
                # closes the model stream now rather than at garbage collection
                await stages.aclose()
                raise
            except Exception as exc:  # noqa: BLE001
                message = str(exc) or type(exc).__name__
                record_span_error(span, exc)
                log_event(
                    logger,
                    "Generation failed",
                    level=logging.ERROR,
                    event="generation_failed",
                    request_id=self.context.request_id,
                    error=message,
                    error_type=type(exc).__name__,
                    partials=partials,
                )
                yield ErrorEvent(error=message)
                return

            set_span_output(span, {"partials": partials})
            log_event(
                logger,
                "Generation complete",
                event="generation_complete",
                request_id=self.context.request_id,
                partials=partials,
            )
            yield CompleteEvent()

    async def _stages(self, request: GenerationRequest) -> AsyncIterator[StreamEvent]:
        feed_ids = request.distinct_feed_ids

        stale = await self._bounded(stale_feeds(self.store, feed_ids, now=self.clock()))
        if stale:
            yield RefreshingEvent(feed_count=len(stale))
            await self._bounded(self._refresh_all(stale, total=len(feed_ids)))
        else:
            log_event(
                logger,
                "All feeds fresh, skipping refresh",
                event="refresh_skipped",
                request_id=self.context.request_id,
                feeds=len(feed_ids),
            )

        yield AnalyzingEvent(feed_count=len(request.feed_ids))

        articles = await self._bounded(
            self.store.articles_in_window(
                feed_ids, request.start_date, request.end_date, limit=self.cfg.article_limit
            )
        )
        if not articles:
            raise NoArticlesError()

        yield MetadataEvent(articles_analyzed=len(articles))

        prompt = build_newsletter_prompt(
            articles,
            request.start_date,
            request.end_date,
            user_input=request.user_input,
            settings=self.context.settings,
            summary_chars=self.cfg.summary_chars,
        )
        snapshots = self.provider.stream_newsletter(prompt)
        try:
            while True:
                try:
                    snapshot = await self._bounded(snapshots.__anext__())
                except StopAsyncIteration:
                    break
                yield PartialEvent(data=snapshot)
        finally:
            await snapshots.aclose()

    async def _refresh_all(self, feed_ids: list[str], total: int) -> None:
        log_event(
            logger,
            "Refreshing stale feeds",
            event="refresh_start",
            request_id=self.context.request_id,
            stale=len(feed_ids),
            total=total,
        )
        results = await asyncio.gather(
            *(self.refresher(feed_id) for feed_id in feed_ids),
            return_exceptions=True,
        )
        failed = 0
        for feed_id, result in zip(feed_ids, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                failed += 1
                log_event(
                    logger,
                    "Feed refresh failed",
                    level=logging.WARNING,
                    event="refresh_failed",
                    request_id=self.context.request_id,
                    feed_id=feed_id,
                    error=f"{type(result).__name__}: {result}",
                )
        log_event(
            logger,
            "Feed refresh complete",
            event="refresh_complete",
            request_id=self.context.request_id,
            successful=len(feed_ids) - failed,
            failed=failed,
        )

    async def _refresh_one(self, feed_id: str) -> Any:
        return await refresh_feed(self.store, feed_id, self.fetch_cfg, now=self.clock())

    async def _bounded(self, awaitable: Awaitable[T]) -> T:
        """Await under the request's remaining time budget."""
        remaining = self._deadline - asyncio.get_running_loop().time()
        if remaining <= 0:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise GenerationTimeout(self.cfg.timeout_seconds)
        try:
            return await asyncio.wait_for(awaitable, timeout=remaining)
        except asyncio.TimeoutError as exc:
            raise GenerationTimeout(self.cfg.timeout_seconds) from exc
