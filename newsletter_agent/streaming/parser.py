"""
Incremental parsing of SSE text delivered in arbitrary fragments.

Transports hand over the response body in chunks whose boundaries have
nothing to do with line boundaries. ``parse_chunk`` is the stateless
per-chunk split: any line cut by a chunk boundary is lost because neither
half decodes. ``ChunkParser`` keeps the unterminated tail of each chunk and
prepends it to the next one, so every event is recovered regardless of
how the stream was fragmented.
"""

from __future__ import annotations

from .events import StreamEvent, decode_line


def parse_chunk(text: str) -> list[StreamEvent]:
    """Decode every complete line in a single chunk, without carry-over."""
    events: list[StreamEvent] = []
    for line in text.split("\n"):
        event = decode_line(line.rstrip("\r"))
        if event is not None:
            events.append(event)
    return events


class LineBuffer:
    """Splits a text stream into lines, carrying partial lines across chunks."""

    def __init__(self) -> None:
        self._pending = ""

    @property
    def pending(self) -> str:
        return self._pending

    def feed(self, text: str) -> list[str]:
        """Return the lines completed by ``text``, without line terminators."""
        if not text:
            return []
        # split on "\n" only: str.splitlines() would also break on U+2028
        # and friends, which may legally appear inside JSON strings
        parts = (self._pending + text).split("\n")
        self._pending = parts.pop()
        return [part[:-1] if part.endswith("\r") else part for part in parts]

    def flush(self) -> list[str]:
        """Return the unterminated trailing line, if any, and clear it."""
        pending, self._pending = self._pending, ""
        if not pending:
            return []
        return [pending[:-1] if pending.endswith("\r") else pending]

    def reset(self) -> None:
        self._pending = ""


class ChunkParser:
    """Reconstructs stream events from fragments, in order.

    Reset (or create a new parser) at the start of each stream.
    """

    def __init__(self) -> None:
        self._lines = LineBuffer()

    def feed(self, text: str) -> list[StreamEvent]:
        return self._decode(self._lines.feed(text))

    def flush(self) -> list[StreamEvent]:
        """Decode whatever is left once the transport reports end of stream."""
        return self._decode(self._lines.flush())

    def reset(self) -> None:
        self._lines.reset()

    @staticmethod
    def _decode(lines: list[str]) -> list[StreamEvent]:
        events: list[StreamEvent] = []
        for line in lines:
            event = decode_line(line)
            if event is not None:
                events.append(event)
        return events
