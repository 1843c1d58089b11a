"""Tests for the HTTP app."""

from __future__ import annotations

import asyncio
from datetime import timedelta
import json

from fastapi.testclient import TestClient

from newsletter_agent.config import AppConfig
from newsletter_agent.core.types import Article, NewsletterSettings, utcnow
from newsletter_agent.store.memory import MemoryStore
from newsletter_agent.server import create_app
from newsletter_agent.streaming.events import AnalyzingEvent, CompleteEvent, ErrorEvent, MetadataEvent
from newsletter_agent.streaming.parser import parse_chunk
from newsletter_agent.streaming.reducer import fold_events

NOW = utcnow()

SNAPSHOTS = [{"suggestedTitles": ["Weekly"]}, {"suggestedTitles": ["Weekly"], "body": "Done"}]


class FakeProvider:
    def __init__(self):
        self.prompts: list[str] = []

    async def stream_newsletter(self, prompt):
        self.prompts.append(prompt)
        for snapshot in SNAPSHOTS:
            yield snapshot


def _store(articles: int = 3) -> MemoryStore:
    store = MemoryStore()

    async def seed():
        # fetched recently so the server never reaches the network
        await store.create_feed("u1", "tech.example/rss", title="Tech", feed_id="tech", last_fetched=NOW)
        await store.create_feed("u1", "science.example/rss", feed_id="science", last_fetched=NOW)
        for index in range(articles):
            await store.upsert_article(
                Article(
                    id=f"a{index}",
                    feed_id="tech",
                    guid=f"g{index}",
                    title=f"Story {index}",
                    link=f"https://tech.example/{index}",
                    pub_date=NOW - timedelta(hours=index + 1),
                )
            )
        await store.save_settings("u1", NewsletterSettings(newsletter_name="Tech Weekly"))

    asyncio.run(seed())
    return store


def _body(**overrides):
    body = {
        "feedIds": ["tech", "science"],
        "startDate": (NOW - timedelta(days=7)).isoformat(),
        "endDate": NOW.isoformat(),
    }
    body.update(overrides)
    return body


def _client(store=None, provider=None):
    app = create_app(AppConfig(), store or _store(), provider or FakeProvider())
    return TestClient(app)


def test_generate_stream_sends_sse_events():
    provider = FakeProvider()
    client = _client(provider=provider)

    resp = client.post("/api/newsletter/generate-stream", json=_body(), headers={"X-User-Id": "u1"})

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/event-stream")
    assert resp.headers["cache-control"] == "no-cache"
    events = parse_chunk(resp.text)
    assert events[1] == MetadataEvent(articles_analyzed=3)
    assert events[-1] == CompleteEvent()
    assert fold_events(events).content == SNAPSHOTS[-1]
    assert "Newsletter Name: Tech Weekly" in provider.prompts[0]


def test_generate_stream_without_user_header_has_no_settings():
    provider = FakeProvider()

    _client(provider=provider).post("/api/newsletter/generate-stream", json=_body())

    assert "NEWSLETTER SETTINGS" not in provider.prompts[0]


def test_generate_stream_empty_window_reports_error_event():
    resp = _client(store=_store(articles=0)).post("/api/newsletter/generate-stream", json=_body())

    assert resp.status_code == 200
    assert parse_chunk(resp.text)[-1] == ErrorEvent(error="No articles found for the selected feeds and date range")


def test_analyzing_count_is_the_number_of_ids_sent():
    resp = _client().post(
        "/api/newsletter/generate-stream", json=_body(feedIds=["tech", "tech", "science"])
    )

    events = parse_chunk(resp.text)
    assert events[0] == AnalyzingEvent(feed_count=3)
    assert events[1] == MetadataEvent(articles_analyzed=3)


def test_generate_stream_rejects_missing_feed_ids():
    resp = _client().post("/api/newsletter/generate-stream", json=_body(feedIds=[]))

    assert resp.status_code == 400
    assert resp.json() == {"error": "feedIds is required and must be a non-empty array"}


def test_generate_stream_rejects_missing_dates():
    body = _body()
    del body["endDate"]

    resp = _client().post("/api/newsletter/generate-stream", json=body)

    assert resp.status_code == 400
    assert resp.json() == {"error": "startDate and endDate are required"}


def test_generate_stream_rejects_invalid_json():
    resp = _client().post(
        "/api/newsletter/generate-stream",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )

    assert resp.status_code == 400
    assert resp.json() == {"error": "Request body must be valid JSON"}


def test_generate_stream_internal_failure_is_500():
    class BrokenStore(MemoryStore):
        async def get_settings(self, user_id):
            raise RuntimeError("settings table missing")

    resp = _client(store=BrokenStore()).post("/api/newsletter/generate-stream", json=_body())

    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to generate newsletter: settings table missing"}


def test_preview_lists_articles_newest_first():
    resp = _client().post("/api/newsletter/preview", json=_body())

    assert resp.status_code == 200
    data = resp.json()
    assert data["articleCount"] == 3
    assert [a["title"] for a in data["articles"]] == ["Story 0", "Story 1", "Story 2"]
    assert data["articles"][0]["feedTitle"] == "Tech"
    assert data["articles"][0]["sourceCount"] == 1


def test_preview_validates_request():
    resp = _client().post("/api/newsletter/preview", json={"feedIds": ["tech"]})

    assert resp.status_code == 400
    assert resp.json() == {"error": "startDate and endDate are required"}


def test_preview_store_failure_is_500():
    class BrokenStore(MemoryStore):
        async def articles_in_window(self, feed_ids, start, end, limit=100):
            raise RuntimeError("articles table missing")

    resp = _client(store=BrokenStore()).post("/api/newsletter/preview", json=_body())

    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to get newsletter preview: articles table missing"}


def test_openapi_documents_request_and_response_bodies():
    schema = create_app(AppConfig(), MemoryStore(), FakeProvider()).openapi()

    generate = schema["paths"]["/api/newsletter/generate-stream"]["post"]
    preview = schema["paths"]["/api/newsletter/preview"]["post"]
    assert "GenerateStreamBody" in json.dumps(generate["requestBody"]["content"]["application/json"])
    assert "text/event-stream" in generate["responses"]["200"]["content"]
    assert "PreviewResponse" in json.dumps(preview["responses"]["200"]["content"]["application/json"])
    components = schema["components"]["schemas"]
    assert set(components["GenerateStreamBody"]["required"]) == {"feedIds", "startDate", "endDate"}
    assert "articleCount" in components["PreviewResponse"]["properties"]


def test_healthz():
    resp = _client().get("/healthz")

    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
