"""
Client-side state reduction for the generation stream.

``apply_event`` is a pure fold step: the same event sequence from the same
starting state always produces the same final state. ``StreamConsumer``
pairs it with a ``ChunkParser`` for callers that read raw text fragments.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Iterable

from .events import (
    AnalyzingEvent,
    CompleteEvent,
    ErrorEvent,
    MetadataEvent,
    PartialEvent,
    RefreshingEvent,
    StreamEvent,
)
from .parser import ChunkParser

PHASES = ("idle", "refreshing", "analyzing", "generating", "complete")


class StreamFailed(Exception):
    """The server reported a terminal ``error`` event."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class StreamIncomplete(Exception):
    """The stream ended without a ``complete`` or ``error`` event."""


@dataclass(frozen=True)
class StreamState:
    """What the UI shows while a newsletter is generated.

    Attributes:
        phase: One of PHASES
        feed_count: Feeds being refreshed or analyzed
        articles_analyzed: Article count latched from the metadata event
        content: Latest partial newsletter snapshot
    """

    phase: str = "idle"
    feed_count: int = 0
    articles_analyzed: int = 0
    content: Any = None

    @property
    def is_terminal(self) -> bool:
        return self.phase == "complete"


INITIAL_STATE = StreamState()


def apply_event(state: StreamState, event: StreamEvent) -> StreamState:
    """Fold one event into the state.

    Raises:
        StreamFailed: On an ``error`` event
    """
    if isinstance(event, RefreshingEvent):
        return replace(state, phase="refreshing", feed_count=event.feed_count)
    if isinstance(event, AnalyzingEvent):
        return replace(state, phase="analyzing", feed_count=event.feed_count)
    if isinstance(event, MetadataEvent):
        return replace(state, phase="generating", articles_analyzed=event.articles_analyzed)
    if isinstance(event, PartialEvent):
        # snapshots replace, never merge
        return replace(state, phase="generating", content=event.data)
    if isinstance(event, CompleteEvent):
        return replace(state, phase="complete")
    if isinstance(event, ErrorEvent):
        raise StreamFailed(event.error)
    raise TypeError(f"Not a stream event: {event!r}")


def fold_events(events: Iterable[StreamEvent], initial: StreamState | None = None) -> StreamState:
    state = INITIAL_STATE if initial is None else initial
    for event in events:
        state = apply_event(state, event)
    return state


class StreamConsumer:
    """Feeds raw text fragments through the parser and reducer.

    On failure the state is reset to idle with no content, and the
    exception is re-raised for the caller to report.
    """

    def __init__(self) -> None:
        self._parser = ChunkParser()
        self.state = INITIAL_STATE
        self.finished = False

    def feed(self, text: str) -> list[StreamState]:
        return self._apply(self._parser.feed(text))

    def close(self) -> StreamState:
        """Finish the stream.

        Raises:
            StreamFailed: If the trailing data carried an ``error`` event
            StreamIncomplete: If no terminal event was received
        """
        self._apply(self._parser.flush())
        if not self.finished:
            self.state = INITIAL_STATE
            raise StreamIncomplete("Stream ended before generation completed")
        return self.state

    def _apply(self, events: list[StreamEvent]) -> list[StreamState]:
        states: list[StreamState] = []
        for event in events:
            try:
                self.state = apply_event(self.state, event)
            except StreamFailed:
                self.state = INITIAL_STATE
                self.finished = True
                raise
            if self.state.is_terminal:
                self.finished = True
            states.append(self.state)
        return states
