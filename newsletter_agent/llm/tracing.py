"""
Langfuse tracing for newsletter generation.

Two observations are recorded per request:
- ``newsletter.generate``: a span over the whole pipeline run
- ``newsletter.provider``: a generation over the model call, tagged with
  provider and model

Helpers are no-ops until ``setup_langfuse`` installs a client, so callers
never check whether tracing is on. Prompts and outputs are redacted and
truncated per ``LangfuseConfig`` before they leave the process.
"""

from __future__ import annotations

from contextlib import contextmanager
import json
import logging
import os
import re
from typing import Any, Iterator

from ..config import LangfuseConfig

logger = logging.getLogger(__name__)

_URL_RE = re.compile(r"https?://\S+")

_TRACER = None
_CFG: LangfuseConfig | None = None


def setup_langfuse(cfg: LangfuseConfig) -> None:
    """Initialize Langfuse tracing if enabled and keys are available."""
    global _TRACER, _CFG  # noqa: PLW0603
    _CFG = cfg
    _TRACER = None
    if not cfg.enabled:
        return

    public_key = _coalesce(cfg.public_key, "LANGFUSE_PUBLIC_KEY")
    secret_key = _coalesce(cfg.secret_key, "LANGFUSE_SECRET_KEY")
    if not public_key or not secret_key:
        logger.warning("Langfuse enabled but keys are missing; tracing disabled")
        return

    from langfuse import Langfuse

    _TRACER = Langfuse(
        public_key=public_key,
        secret_key=secret_key,
        host=_coalesce(cfg.host, "LANGFUSE_HOST"),
        environment=_coalesce(cfg.environment, "LANGFUSE_ENVIRONMENT"),
        release=_coalesce(cfg.release, "LANGFUSE_RELEASE"),
    )


def get_tracer():
    return _TRACER


def start_span(
    name: str,
    kind: str,
    input_value: Any | None = None,
    attributes: dict[str, Any] | None = None,
):
    """Open a Langfuse span around a pipeline stage; yields None when disabled."""
    metadata = _clean_attributes(attributes or {})
    if kind:
        metadata.setdefault("span.kind", kind)
    return _observe("start_as_current_span", name, input_value, metadata)


def start_generation(
    name: str,
    model: str,
    input_value: Any | None = None,
    attributes: dict[str, Any] | None = None,
    model_parameters: dict[str, Any] | None = None,
):
    """Open a Langfuse generation around one model call; yields None when disabled."""
    return _observe(
        "start_as_current_generation",
        name,
        input_value,
        _clean_attributes(attributes or {}),
        model=model,
        model_parameters=_clean_attributes(model_parameters or {}),
    )


def set_span_output(span: Any | None, output_value: Any) -> None:
    if span is None:
        return
    payload = _payload(output_value)
    if payload is None:
        return
    _safe_update(span, output=payload)


def record_span_error(span: Any | None, exc: BaseException) -> None:
    if span is None:
        return
    _safe_update(span, level="ERROR", status_message=str(exc))


def flush() -> None:
    """Send buffered observations; call before the server exits."""
    tracer = _TRACER
    if tracer is None:
        return
    try:
        tracer.flush()
    except Exception as exc:  # noqa: BLE001
        logger.debug("Langfuse flush failed: %s", exc)


@contextmanager
def _observe(
    method: str,
    name: str,
    input_value: Any | None,
    metadata: dict[str, Any],
    **extra: Any,
) -> Iterator[Any | None]:
    tracer = _TRACER
    if tracer is None:
        yield None
        return

    try:
        cm = getattr(tracer, method)(
            name=name,
            input=_payload(input_value),
            metadata=metadata,
            **extra,
        )
        observation = cm.__enter__()
    except Exception as exc:  # noqa: BLE001
        logger.debug("Langfuse observation %s could not start: %s", name, exc)
        yield None
        return

    try:
        yield observation
    finally:
        try:
            cm.__exit__(None, None, None)
        except Exception as exc:  # noqa: BLE001
            logger.debug("Langfuse observation %s could not end: %s", name, exc)


def _coalesce(value: str | None, env_key: str) -> str | None:
    if value:
        return value
    return os.getenv(env_key)


def _payload(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        text = value
    else:
        text = json.dumps(value, ensure_ascii=True, default=str)
    cfg = _CFG
    if cfg is None:
        return text
    text = _redact(text, cfg.redaction)
    if len(text) > cfg.max_text_chars:
        text = text[: cfg.max_text_chars] + "...(truncated)"
    return text


def _redact(text: str, mode: str) -> str:
    if mode == "redact_content":
        return ""
    if mode == "redact_urls_authors":
        return _URL_RE.sub("[REDACTED_URL]", text)
    return text


def _clean_attributes(attrs: dict[str, Any]) -> dict[str, Any]:
    cleaned: dict[str, Any] = {}
    for key, value in attrs.items():
        if value is None:
            continue
        if isinstance(value, (str, int, float, bool)):
            cleaned[key] = value
        else:
            cleaned[key] = str(value)
    return cleaned


def _safe_update(span: Any, **kwargs: Any) -> None:
    try:
        span.update(**kwargs)
    except Exception as exc:  # noqa: BLE001
        logger.debug("Langfuse span update failed: %s", exc)
