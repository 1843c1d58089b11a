"""Abstract interface for streaming newsletter generation."""

from __future__ import annotations

from abc import ABC, abstractmethod
import json
import logging
from typing import Any, AsyncIterator

import httpx

from ...config import ProviderConfig
from ...logging_utils import log_event
from ..partial_json import parse_complete_json, parse_partial_json
from ..prompts import NEWSLETTER_FIELDS
from ..tracing import record_span_error, set_span_output, start_generation

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """Raised when the model call fails or returns an unusable answer."""


class NewsletterProvider(ABC):
    """Turns a prompt into a stream of cumulative newsletter snapshots.

    Subclasses implement ``stream_text``, yielding raw text deltas as the
    model produces them. ``stream_newsletter`` accumulates the deltas and
    yields a new snapshot every time the parsed object changes, finishing
    with the strictly parsed final object.
    """

    def __init__(
        self,
        cfg: ProviderConfig,
        api_key: str | None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not api_key:
            raise ValueError(f"Missing API key for provider {cfg.name} (set {cfg.api_key_env})")
        self.cfg = cfg
        self.api_key = api_key
        self.transport = transport

    @abstractmethod
    def stream_text(self, prompt: str) -> AsyncIterator[str]:
        """Yield text deltas of the model's answer."""
        raise NotImplementedError

    async def stream_newsletter(self, prompt: str) -> AsyncIterator[dict[str, Any]]:
        """Yield cumulative snapshots of the generated newsletter object.

        Raises:
            ProviderError: On transport failure or a final answer that is not a JSON object
        """
        with start_generation(
            "newsletter.provider",
            model=self.cfg.model,
            input_value=prompt,
            attributes={"provider": self.cfg.name, "model": self.cfg.model},
            model_parameters={
                "temperature": self.cfg.temperature,
                "max_output_tokens": self.cfg.max_output_tokens,
            },
        ) as span:
            text = ""
            last: dict[str, Any] | None = None
            try:
                deltas = self.stream_text(prompt)
                try:
                    async for delta in deltas:
                        if not delta:
                            continue
                        text += delta
                        snapshot = parse_partial_json(text)
                        if isinstance(snapshot, dict) and snapshot != last:
                            last = snapshot
                            yield snapshot
                except httpx.HTTPStatusError as exc:
                    raise ProviderError(
                        f"Provider error: HTTP {exc.response.status_code} from {self.cfg.name}"
                    ) from exc
                except httpx.HTTPError as exc:
                    raise ProviderError(f"Provider error: {type(exc).__name__}: {exc}") from exc
                finally:
                    await deltas.aclose()
                final = self._final_newsletter(text)
            except ProviderError as exc:
                record_span_error(span, exc)
                raise

            set_span_output(span, final)
            if final != last:
                yield final

    def _final_newsletter(self, text: str) -> dict[str, Any]:
        try:
            final = parse_complete_json(text)
        except json.JSONDecodeError as exc:
            raise ProviderError("Model returned an incomplete or invalid newsletter") from exc
        if not isinstance(final, dict):
            raise ProviderError("Model returned an incomplete or invalid newsletter")

        missing = [key for key in NEWSLETTER_FIELDS if key != "additionalInfo" and key not in final]
        if missing:
            log_event(
                logger,
                "Newsletter is missing fields",
                level=logging.WARNING,
                event="newsletter_missing_fields",
                provider=self.cfg.name,
                missing=missing,
            )
        return final

    def _client(self) -> httpx.AsyncClient:
        timeout = httpx.Timeout(self.cfg.timeout_seconds, connect=10.0)
        return httpx.AsyncClient(timeout=timeout, trust_env=self.cfg.trust_env, transport=self.transport)
