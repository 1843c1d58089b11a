"""
Core data types for the Newsletter Agent.

This module defines the fundamental data structures used throughout the pipeline:
- Feed: A user's subscription to an upstream RSS source
- Article: A stored feed item, shared across feeds through its guid
- NewsletterSettings: Per-user prompt context
- GenerationRequest: One validated request to generate a newsletter
- RequestContext: Caller identity and settings handed to the pipeline
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
import uuid

from pydantic import TypeAdapter, ValidationError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Feed:
    """An RSS feed subscription.

    Several feeds may point at the same upstream URL when different users
    subscribe to the same source independently.

    Attributes:
        id: Unique feed identifier
        user_id: Owner of the subscription
        url: Normalized feed URL
        title: Optional display title
        description: Optional description
        last_fetched: When this record was last refreshed, or None if never
        is_active: Whether the subscription is active
        created_at: Creation timestamp
    """

    id: str
    user_id: str
    url: str
    title: str | None = None
    description: str | None = None
    last_fetched: datetime | None = None
    is_active: bool = True
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class Article:
    """A stored feed item.

    Attributes:
        id: Unique article identifier
        feed_id: The feed that first stored this article
        guid: Globally unique item identifier from the feed
        title: The article headline
        link: URL of the original article
        pub_date: Publication timestamp (timezone aware)
        summary: Optional summary from the feed
        content: Optional full content from the feed
        author: Optional author name
        categories: Feed categories/tags
        image_url: Optional lead image
        source_feed_ids: Every feed that has delivered this guid
        feed_title: Title of the owning feed, filled in on query
    """

    id: str
    feed_id: str
    guid: str
    title: str
    link: str
    pub_date: datetime
    summary: str | None = None
    content: str | None = None
    author: str | None = None
    categories: list[str] = field(default_factory=list)
    image_url: str | None = None
    source_feed_ids: list[str] = field(default_factory=list)
    feed_title: str | None = None

    @property
    def source_count(self) -> int:
        return len(self.source_feed_ids)


@dataclass
class NewsletterSettings:
    """Per-user preferences woven into the generation prompt."""

    newsletter_name: str | None = None
    description: str | None = None
    target_audience: str | None = None
    default_tone: str | None = None
    brand_voice: str | None = None
    company_name: str | None = None
    industry: str | None = None
    default_tags: list[str] = field(default_factory=list)
    sender_name: str | None = None
    sender_email: str | None = None
    disclaimer_text: str | None = None
    custom_footer: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NewsletterSettings:
        known = {key: value for key, value in data.items() if key in cls.__dataclass_fields__}
        return cls(**known)


@dataclass(frozen=True)
class GenerationRequest:
    """A validated request to generate one newsletter.

    Attributes:
        feed_ids: Requested feeds as sent, duplicates included
        start_date: Start of the article inclusion window
        end_date: End of the article inclusion window
        user_input: Optional free-text instructions
    """

    feed_ids: tuple[str, ...]
    start_date: datetime
    end_date: datetime
    user_input: str | None = None

    @property
    def distinct_feed_ids(self) -> list[str]:
        return list(dict.fromkeys(self.feed_ids))


@dataclass(frozen=True)
class RequestContext:
    """Who is asking, passed explicitly into the pipeline.

    Attributes:
        user_id: Authenticated user identifier
        settings: The user's newsletter settings, if any
        request_id: Correlation id used in logs and traces
    """

    user_id: str
    settings: NewsletterSettings | None = None
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes; aware values pass through."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


_TIMESTAMP = TypeAdapter(datetime)


def parse_timestamp(value: Any, name: str = "timestamp") -> datetime:
    """Parse an ISO-8601 value into an aware datetime (naive values are UTC).

    Raises:
        ValueError: If the value is not a timestamp
    """
    try:
        parsed = _TIMESTAMP.validate_python(value)
    except ValidationError as exc:
        raise ValueError(f"{name} is not a valid ISO-8601 timestamp: {value}") from exc
    return as_utc(parsed)
