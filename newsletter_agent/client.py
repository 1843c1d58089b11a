"""Async client for the streaming generation endpoint."""

from __future__ import annotations

import logging
from typing import Any, Callable

import httpx

from .streaming.reducer import StreamConsumer, StreamState

logger = logging.getLogger(__name__)

GENERATE_PATH = "/api/newsletter/generate-stream"

StateCallback = Callable[[StreamState], None]


class GenerationFailed(Exception):
    """The server refused the request before streaming began."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


async def stream_generation(
    base_url: str,
    params: dict[str, Any],
    on_state: StateCallback | None = None,
    user_id: str | None = None,
    timeout_seconds: float = 330.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> StreamState:
    """Request a newsletter and follow the stream to its end.

    Args:
        base_url: Server root, e.g. ``http://127.0.0.1:8000``
        params: Request body (feedIds, startDate, endDate, userInput)
        on_state: Called with every intermediate state, in order
        user_id: Sent as the ``X-User-Id`` header when given
        timeout_seconds: Read timeout between stream fragments
        transport: Optional httpx transport (tests)

    Returns:
        The final state, with phase ``complete`` and the last snapshot as content

    Raises:
        GenerationFailed: On a non-2xx response
        StreamFailed: When the server sent an ``error`` event
        StreamIncomplete: When the connection ended without a terminal event
    """
    headers = {"Accept": "text/event-stream"}
    if user_id:
        headers["X-User-Id"] = user_id

    consumer = StreamConsumer()
    timeout = httpx.Timeout(timeout_seconds, connect=10.0)
    async with httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport) as client:
        async with client.stream("POST", GENERATE_PATH, json=params, headers=headers) as resp:
            if resp.status_code >= 400:
                await resp.aread()
                raise GenerationFailed(resp.status_code, _error_message(resp))
            async for chunk in resp.aiter_text():
                for state in consumer.feed(chunk):
                    if on_state is not None:
                        on_state(state)
                if consumer.finished:
                    break
    return consumer.close()


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and isinstance(body.get("error"), str):
        return body["error"]
    return f"HTTP {resp.status_code}"
