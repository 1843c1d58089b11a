"""Google Gemini provider streaming newsletter JSON over SSE."""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator

from ...streaming.parser import LineBuffer
from .base import NewsletterProvider

logger = logging.getLogger(__name__)


class GeminiProvider(NewsletterProvider):
    """Gemini-backed provider using ``streamGenerateContent``."""

    async def stream_text(self, prompt: str) -> AsyncIterator[str]:
        url = f"{self.cfg.base_url}/v1beta/models/{self.cfg.model}:streamGenerateContent"
        params = {"alt": "sse", "key": self.api_key}
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self.cfg.temperature,
                "maxOutputTokens": self.cfg.max_output_tokens,
                "responseMimeType": "application/json",
            },
        }
        lines = LineBuffer()
        async with self._client() as client:
            async with client.stream("POST", url, params=params, json=payload) as resp:
                resp.raise_for_status()
                async for chunk in resp.aiter_text():
                    for line in lines.feed(chunk):
                        text = _decode_sse_line(line)
                        if text:
                            yield text
                for line in lines.flush():
                    text = _decode_sse_line(line)
                    if text:
                        yield text


def _decode_sse_line(line: str) -> str:
    if not line.startswith("data:"):
        return ""
    raw = line[len("data:"):].strip()
    if not raw:
        return ""
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.debug("Skipping undecodable Gemini stream line: %.120s", raw)
        return ""
    return _extract_text(data)


def _extract_text(data: dict[str, Any]) -> str:
    """Join the answer text of one streamed candidate, skipping thought parts."""
    try:
        parts = data["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError):
        return ""

    if not isinstance(parts, list):
        return ""

    chunks: list[str] = []
    for part in parts:
        if not isinstance(part, dict) or part.get("thought"):
            continue
        text = part.get("text")
        if text:
            chunks.append(str(text))
    return "".join(chunks)
