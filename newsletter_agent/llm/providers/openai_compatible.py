"""OpenAI-compatible chat completions provider with streamed JSON output."""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator

from ...streaming.parser import LineBuffer
from .base import NewsletterProvider

logger = logging.getLogger(__name__)

_DONE = "[DONE]"


class OpenAICompatibleProvider(NewsletterProvider):
    """Provider for OpenAI and any server speaking its chat completions API."""

    async def stream_text(self, prompt: str) -> AsyncIterator[str]:
        url = f"{self.cfg.base_url.rstrip('/')}/chat/completions"
        headers = {"Authorization": f"Bearer {self.api_key}"}
        payload = {
            "model": self.cfg.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self.cfg.temperature,
            "max_tokens": self.cfg.max_output_tokens,
            "response_format": {"type": "json_object"},
            "stream": True,
        }
        lines = LineBuffer()
        async with self._client() as client:
            async with client.stream("POST", url, headers=headers, json=payload) as resp:
                resp.raise_for_status()
                async for chunk in resp.aiter_text():
                    for line in lines.feed(chunk):
                        if _is_done(line):
                            return
                        text = _decode_sse_line(line)
                        if text:
                            yield text
                for line in lines.flush():
                    text = _decode_sse_line(line)
                    if text:
                        yield text


def _is_done(line: str) -> bool:
    return line.startswith("data:") and line[len("data:"):].strip() == _DONE


def _decode_sse_line(line: str) -> str:
    if not line.startswith("data:"):
        return ""
    raw = line[len("data:"):].strip()
    if not raw or raw == _DONE:
        return ""
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.debug("Skipping undecodable completion stream line: %.120s", raw)
        return ""
    return _extract_delta(data)


def _extract_delta(data: dict[str, Any]) -> str:
    try:
        content = data["choices"][0]["delta"].get("content")
    except (KeyError, IndexError, TypeError, AttributeError):
        return ""
    return content or ""
