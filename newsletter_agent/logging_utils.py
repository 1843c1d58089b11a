"""
Logging setup for the server and CLI.

Records go to a Rich console handler and, optionally, a file. Structured
fields passed through ``log_event`` land as top-level keys in the JSONL
file so a request can be followed by its ``request_id``. Uvicorn's own
loggers share the same handlers.
"""

from __future__ import annotations

from datetime import datetime, timezone
import json
import logging
from pathlib import Path
from typing import Any

from rich.logging import RichHandler

from .config import LoggingConfig

ROOT_LOGGER = "newsletter_agent"
SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")

_RESERVED_ATTRS = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


def setup_logging(cfg: LoggingConfig, log_dir: Path | None = None) -> logging.Logger:
    level = _level_from_string(cfg.level)
    handlers: list[logging.Handler] = []

    if cfg.console:
        console_handler = RichHandler(rich_tracebacks=True, show_time=False, show_level=True)
        console_handler.setFormatter(logging.Formatter("%(message)s"))
        handlers.append(console_handler)

    if cfg.file:
        target_dir = log_dir if log_dir is not None else Path(cfg.log_dir)
        target_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(target_dir / cfg.filename, encoding="utf-8")
        file_handler.setFormatter(_build_file_formatter(cfg.format))
        handlers.append(file_handler)

    for handler in handlers:
        handler.setLevel(level)

    logger = logging.getLogger(ROOT_LOGGER)
    for name in (ROOT_LOGGER, *SERVER_LOGGERS):
        target = logging.getLogger(name)
        target.setLevel(level)
        target.handlers = list(handlers)
        target.propagate = False
    return logger


def log_event(logger: logging.Logger | None, message: str, level: int = logging.INFO, **fields: Any) -> None:
    """Log ``message`` with ``fields`` attached as structured extras."""
    if logger is None:
        return
    logger.log(level, message, extra=fields)


class JsonlFormatter(logging.Formatter):
    """One JSON object per line: timestamp, level, logger, message, extras."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(_extract_extras(record))
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True, default=str)


def _extract_extras(record: logging.LogRecord) -> dict[str, Any]:
    return {key: value for key, value in record.__dict__.items() if key not in _RESERVED_ATTRS}


def _build_file_formatter(fmt: str) -> logging.Formatter:
    if fmt == "jsonl":
        return JsonlFormatter()
    return logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")


def _level_from_string(level: str) -> int:
    return getattr(logging, level.upper(), logging.INFO)
