"""Tests for the generation pipeline's event sequence."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

from newsletter_agent.config import GenerationConfig
from newsletter_agent.core.types import Article, GenerationRequest, NewsletterSettings, RequestContext
from newsletter_agent.llm.providers.base import ProviderError
from newsletter_agent.pipeline import GenerationPipeline
from newsletter_agent.store.memory import MemoryStore
from newsletter_agent.streaming.events import (
    AnalyzingEvent,
    CompleteEvent,
    ErrorEvent,
    MetadataEvent,
    PartialEvent,
    RefreshingEvent,
)
from newsletter_agent.streaming.reducer import fold_events

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
START = NOW - timedelta(days=7)

SNAPSHOTS = [
    {"suggestedTitles": ["Weekly"]},
    {"suggestedTitles": ["Weekly"], "body": "## News"},
    {"suggestedTitles": ["Weekly"], "body": "## News\n\nMore"},
]


class FakeProvider:
    """Yields canned snapshots, optionally failing or stalling."""

    def __init__(self, snapshots=SNAPSHOTS, error: Exception | None = None, delay: float = 0.0):
        self.snapshots = snapshots
        self.error = error
        self.delay = delay
        self.prompts: list[str] = []
        self.closed = False

    async def stream_newsletter(self, prompt):
        self.prompts.append(prompt)
        try:
            for snapshot in self.snapshots:
                if self.delay:
                    await asyncio.sleep(self.delay)
                yield snapshot
            if self.error is not None:
                raise self.error
        finally:
            self.closed = True


class RecordingRefresher:
    def __init__(self, failing: set[str] = frozenset()):
        self.calls: list[str] = []
        self.failing = failing

    async def __call__(self, feed_id):
        self.calls.append(feed_id)
        if feed_id in self.failing:
            raise RuntimeError(f"{feed_id} unreachable")
        return feed_id


def _seed(stale: int = 2, fresh: int = 10, articles: int = 7) -> tuple[MemoryStore, list[str]]:
    store = MemoryStore()
    feed_ids: list[str] = []

    async def seed():
        for index in range(stale + fresh):
            feed_id = f"feed-{index}"
            last_fetched = None if index < stale else NOW - timedelta(hours=1)
            await store.create_feed(
                "u1", f"https://feed{index}.example/rss", title=f"Feed {index}", feed_id=feed_id, last_fetched=last_fetched
            )
            feed_ids.append(feed_id)
        for index in range(articles):
            await store.upsert_article(
                Article(
                    id=f"a{index}",
                    feed_id=feed_ids[index % len(feed_ids)],
                    guid=f"guid-{index}",
                    title=f"Story {index}",
                    link=f"https://news.example/{index}",
                    pub_date=NOW - timedelta(days=1, hours=index),
                    summary=f"Summary {index}",
                )
            )

    asyncio.run(seed())
    return store, feed_ids


def _run(pipeline: GenerationPipeline, request: GenerationRequest):
    async def collect():
        return [event async for event in pipeline.run(request)]

    return asyncio.run(collect())


def _pipeline(store, provider, refresher=None, cfg=None, settings=None):
    return GenerationPipeline(
        RequestContext(user_id="u1", settings=settings),
        store,
        provider,
        cfg=cfg or GenerationConfig(),
        refresher=refresher or RecordingRefresher(),
        clock=lambda: NOW,
    )


def test_full_sequence_with_two_stale_feeds():
    store, feed_ids = _seed(stale=2, fresh=10, articles=7)
    refresher = RecordingRefresher()
    provider = FakeProvider()

    events = _run(
        _pipeline(store, provider, refresher=refresher),
        GenerationRequest(tuple(feed_ids), START, NOW),
    )

    assert events == [
        RefreshingEvent(feed_count=2),
        AnalyzingEvent(feed_count=12),
        MetadataEvent(articles_analyzed=7),
        *[PartialEvent(data=snapshot) for snapshot in SNAPSHOTS],
        CompleteEvent(),
    ]
    assert sorted(refresher.calls) == ["feed-0", "feed-1"]
    assert "ARTICLES (7 total)" in provider.prompts[0]
    assert fold_events(events).content == SNAPSHOTS[-1]


def test_all_fresh_skips_refreshing_event():
    store, feed_ids = _seed(stale=0, fresh=3, articles=2)
    refresher = RecordingRefresher()

    events = _run(_pipeline(store, FakeProvider(), refresher=refresher), GenerationRequest(tuple(feed_ids), START, NOW))

    assert events[:2] == [AnalyzingEvent(feed_count=3), MetadataEvent(articles_analyzed=2)]
    assert refresher.calls == []


def test_duplicate_ids_count_as_sent_but_refresh_once():
    store, feed_ids = _seed(stale=1, fresh=1, articles=2)
    refresher = RecordingRefresher()
    request = GenerationRequest((feed_ids[0], feed_ids[1], feed_ids[0]), START, NOW)

    events = _run(_pipeline(store, FakeProvider(), refresher=refresher), request)

    assert events[:3] == [
        RefreshingEvent(feed_count=1),
        AnalyzingEvent(feed_count=3),
        MetadataEvent(articles_analyzed=2),
    ]
    assert refresher.calls == ["feed-0"]


def test_refresh_failures_are_isolated():
    store, feed_ids = _seed(stale=3, fresh=0, articles=3)
    refresher = RecordingRefresher(failing={"feed-1"})

    events = _run(_pipeline(store, FakeProvider(), refresher=refresher), GenerationRequest(tuple(feed_ids), START, NOW))

    assert events[0] == RefreshingEvent(feed_count=3)
    assert events[-1] == CompleteEvent()
    assert len(refresher.calls) == 3


def test_empty_window_ends_with_single_error():
    store, feed_ids = _seed(stale=0, fresh=2, articles=0)
    provider = FakeProvider()

    events = _run(_pipeline(store, provider), GenerationRequest(tuple(feed_ids), START, NOW))

    assert events == [
        AnalyzingEvent(feed_count=2),
        ErrorEvent(error="No articles found for the selected feeds and date range"),
    ]
    assert provider.prompts == []


def test_article_limit_caps_metadata_count():
    store, feed_ids = _seed(stale=0, fresh=2, articles=12)

    events = _run(
        _pipeline(store, FakeProvider(), cfg=GenerationConfig(article_limit=5)),
        GenerationRequest(tuple(feed_ids), NOW - timedelta(days=30), NOW),
    )

    assert MetadataEvent(articles_analyzed=5) in events


def test_provider_failure_after_partials_ends_with_error():
    store, feed_ids = _seed(stale=0, fresh=1, articles=1)
    provider = FakeProvider(
        snapshots=SNAPSHOTS[:1],
        error=ProviderError("Provider error: HTTP 503 from gemini"),
    )

    events = _run(_pipeline(store, provider), GenerationRequest(tuple(feed_ids), START, NOW))

    assert events[-2:] == [
        PartialEvent(data=SNAPSHOTS[0]),
        ErrorEvent(error="Provider error: HTTP 503 from gemini"),
    ]
    assert sum(isinstance(event, (CompleteEvent, ErrorEvent)) for event in events) == 1
    assert provider.closed


def test_deadline_produces_timeout_error():
    store, feed_ids = _seed(stale=0, fresh=1, articles=1)
    provider = FakeProvider(delay=1.0)

    events = _run(
        _pipeline(store, provider, cfg=GenerationConfig(timeout_seconds=0.05)),
        GenerationRequest(tuple(feed_ids), START, NOW),
    )

    assert events[-1] == ErrorEvent(error="Newsletter generation timed out after 0.05 seconds")
    assert not any(isinstance(event, PartialEvent) for event in events)
    assert provider.closed


def test_consumer_closing_early_closes_provider_stream():
    store, feed_ids = _seed(stale=0, fresh=1, articles=1)
    provider = FakeProvider()

    async def first_partial_then_close():
        stream = _pipeline(store, provider).run(GenerationRequest(tuple(feed_ids), START, NOW))
        async for event in stream:
            if isinstance(event, PartialEvent):
                break
        await stream.aclose()

    asyncio.run(first_partial_then_close())

    assert provider.closed


def test_settings_and_instructions_reach_prompt():
    store, feed_ids = _seed(stale=0, fresh=1, articles=1)
    provider = FakeProvider()
    settings = NewsletterSettings(newsletter_name="Chip Weekly", custom_footer="Unsubscribe anytime")

    _run(
        _pipeline(store, provider, settings=settings),
        GenerationRequest(tuple(feed_ids), START, NOW, user_input="Focus on semiconductors"),
    )

    prompt = provider.prompts[0]
    assert "Newsletter Name: Chip Weekly" in prompt
    assert "Focus on semiconductors" in prompt
    assert "Unsubscribe anytime" in prompt
