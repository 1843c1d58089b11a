"""
Server-Sent Events codec for newsletter generation.

Every event travels as a single ``data:`` line carrying one JSON object,
terminated by a blank line::

    data: {"type":"metadata","articlesAnalyzed":42}\\n\\n

The ``type`` field selects one of six event kinds. Events are pydantic
models with camelCase aliases; decoding goes through a discriminated union
on ``type``. Lines that do not carry the ``data: `` prefix (comments,
``event:`` lines, blank separators) are not events and decode to ``None``;
so do payloads that fail validation, since a line cut short by chunking is
expected traffic rather than a protocol violation.
"""

from __future__ import annotations

import logging
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, Strict, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "

# JSON booleans are not counts
Count = Annotated[int, Strict(), Field(ge=0)]


class _Event(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class RefreshingEvent(_Event):
    """Stale feeds are about to be re-fetched."""

    type: Literal["refreshing"] = "refreshing"
    feed_count: Count


class AnalyzingEvent(_Event):
    """Requested feeds are being scanned for articles.

    ``feed_count`` is the length of the request's ``feedIds`` as sent,
    duplicates included.
    """

    type: Literal["analyzing"] = "analyzing"
    feed_count: Count


class MetadataEvent(_Event):
    """Article count, fixed before generation starts."""

    type: Literal["metadata"] = "metadata"
    articles_analyzed: Count


class PartialEvent(_Event):
    """Latest cumulative snapshot of the generated newsletter."""

    type: Literal["partial"] = "partial"
    data: Any


class CompleteEvent(_Event):
    """Generation finished successfully."""

    type: Literal["complete"] = "complete"


class ErrorEvent(_Event):
    """Generation failed; ``error`` is shown to the user."""

    type: Literal["error"] = "error"
    error: Annotated[str, Strict()]


StreamEvent = Union[
    RefreshingEvent,
    AnalyzingEvent,
    MetadataEvent,
    PartialEvent,
    CompleteEvent,
    ErrorEvent,
]

_EVENTS: TypeAdapter[StreamEvent] = TypeAdapter(
    Annotated[StreamEvent, Field(discriminator="type")]
)

TERMINAL_TYPES = frozenset({"complete", "error"})


def event_to_dict(event: StreamEvent) -> dict[str, Any]:
    """Convert an event to its wire dictionary (camelCase keys)."""
    if not isinstance(event, _Event):
        raise TypeError(f"Not a stream event: {event!r}")
    return event.model_dump(mode="json", by_alias=True)


def event_from_dict(payload: Any) -> StreamEvent | None:
    """Build an event from a decoded wire dictionary, or None if it does not validate."""
    try:
        return _EVENTS.validate_python(payload)
    except ValidationError:
        return None


def encode(event: StreamEvent) -> bytes:
    """Serialize one event to its SSE wire form."""
    body = event.model_dump_json(by_alias=True)
    return f"{DATA_PREFIX}{body}\n\n".encode("utf-8")


def decode_line(line: str) -> StreamEvent | None:
    """Decode a single SSE line (without its trailing newline).

    Non-data lines and payloads that fail validation yield None.
    """
    if not line.startswith(DATA_PREFIX):
        return None
    raw = line[len(DATA_PREFIX):]
    try:
        return _EVENTS.validate_json(raw)
    except ValidationError as exc:
        logger.debug("Dropping undecodable SSE payload %.120s: %s", raw, exc.errors()[0]["type"])
        return None
