"""SSE protocol: event codec, chunk parser and client-side reducer."""

from .events import (
    AnalyzingEvent,
    CompleteEvent,
    ErrorEvent,
    MetadataEvent,
    PartialEvent,
    RefreshingEvent,
    StreamEvent,
    decode_line,
    encode,
    event_from_dict,
    event_to_dict,
)
from .parser import ChunkParser, LineBuffer, parse_chunk
from .reducer import (
    INITIAL_STATE,
    StreamConsumer,
    StreamFailed,
    StreamIncomplete,
    StreamState,
    apply_event,
    fold_events,
)

__all__ = [
    "AnalyzingEvent",
    "CompleteEvent",
    "ErrorEvent",
    "MetadataEvent",
    "PartialEvent",
    "RefreshingEvent",
    "StreamEvent",
    "decode_line",
    "encode",
    "event_from_dict",
    "event_to_dict",
    "ChunkParser",
    "LineBuffer",
    "parse_chunk",
    "INITIAL_STATE",
    "StreamConsumer",
    "StreamFailed",
    "StreamIncomplete",
    "StreamState",
    "apply_event",
    "fold_events",
]
