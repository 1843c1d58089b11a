"""
Command-line interface for the Newsletter Agent.

Uses Typer to provide two commands:
- serve: run the HTTP server backed by an in-memory store
- generate: stream a newsletter from a running server and render it

Supports loading .env files for API key configuration.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

from dotenv import load_dotenv
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
import typer
import uvicorn

from .client import GenerationFailed, stream_generation
from .config import load_config
from .llm.providers.factory import create_provider
from .llm.tracing import flush, setup_langfuse
from .logging_utils import setup_logging
from .server import create_app
from .store.memory import MemoryStore
from .streaming.reducer import StreamFailed, StreamIncomplete, StreamState

app = typer.Typer(add_completion=False)
console = Console()


@app.command()
def serve(
    config: Path | None = typer.Option(None, "--config", "-c", exists=True),
    feeds: Path | None = typer.Option(
        None, "--feeds", "-f", exists=True, readable=True, help="JSON export used to seed feeds."
    ),
    host: str | None = typer.Option(None, "--host"),
    port: int | None = typer.Option(None, "--port"),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level."),
    log_file: bool | None = typer.Option(
        None, "--log-file/--no-log-file", help="Enable or disable file logging."
    ),
    api_key: str | None = typer.Option(
        None, "--api-key", help="Override provider API key (or set it in the environment / .env)."
    ),
):
    """Run the newsletter generation server.

    Args:
        config: Optional path to YAML config file
        feeds: Feeds export overriding server.feeds_file
        host: Interface to bind
        port: Port to listen on
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_file: Enable/disable file logging
        api_key: Override LLM provider API key
    """
    load_dotenv()

    cfg = load_config(str(config) if config else None)
    if api_key:
        cfg.provider.api_key = api_key
    if host:
        cfg.server.host = host
    if port is not None:
        cfg.server.port = port
    if log_level:
        cfg.logging.level = log_level
    if log_file is not None:
        cfg.logging.file = log_file

    logger = setup_logging(cfg.logging)
    setup_langfuse(cfg.langfuse)

    try:
        provider = create_provider(cfg.provider)
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=2) from exc

    store = MemoryStore()
    feeds_file = feeds or (Path(cfg.server.feeds_file) if cfg.server.feeds_file else None)
    if feeds_file is not None:
        loaded = asyncio.run(store.load_feeds_file(feeds_file))
        logger.info("Loaded %d feeds from %s", loaded, feeds_file)

    try:
        uvicorn.run(
            create_app(cfg, store, provider),
            host=cfg.server.host,
            port=cfg.server.port,
            log_config=None,
        )
    finally:
        flush()


@app.command()
def generate(
    feed: list[str] = typer.Option(..., "--feed", help="Feed id to include (repeatable)."),
    start: str = typer.Option(..., "--start", help="Window start, ISO-8601."),
    end: str = typer.Option(..., "--end", help="Window end, ISO-8601."),
    instructions: str | None = typer.Option(None, "--instructions", "-m", help="Extra instructions."),
    server: str = typer.Option("http://127.0.0.1:8000", "--server", "-s"),
    user: str | None = typer.Option(None, "--user", help="Sent as X-User-Id."),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write the newsletter JSON here."),
):
    """Stream a newsletter from a running server and print it."""
    params = {"feedIds": feed, "startDate": start, "endDate": end}
    if instructions:
        params["userInput"] = instructions

    progress = _ProgressPrinter()
    try:
        state = asyncio.run(stream_generation(server, params, on_state=progress, user_id=user))
    except GenerationFailed as exc:
        console.print(f"[red]Request rejected ({exc.status_code}): {exc.message}[/red]")
        raise typer.Exit(code=1) from exc
    except StreamFailed as exc:
        console.print(f"[red]Generation failed: {exc.message}[/red]")
        raise typer.Exit(code=1) from exc
    except StreamIncomplete as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc

    newsletter = state.content if isinstance(state.content, dict) else {}
    _render(newsletter, state.articles_analyzed)
    if output is not None:
        output.write_text(json.dumps(newsletter, indent=2, ensure_ascii=False), encoding="utf-8")
        console.print(f"Newsletter written: {output}")


class _ProgressPrinter:
    """Prints one line per phase change."""

    def __init__(self) -> None:
        self.phase = "idle"

    def __call__(self, state: StreamState) -> None:
        if state.phase == self.phase:
            return
        self.phase = state.phase
        if state.phase == "refreshing":
            console.print(f"Refreshing {state.feed_count} stale feeds...")
        elif state.phase == "analyzing":
            console.print(f"Analyzing {state.feed_count} feeds...")
        elif state.phase == "generating":
            console.print(f"Generating from {state.articles_analyzed} articles...")


def _bullets(items) -> str:
    if not isinstance(items, list):
        return ""
    return "\n".join(f"- {item}" for item in items)


def _render(newsletter: dict, articles_analyzed: int) -> None:
    titles = newsletter.get("suggestedTitles") or []
    heading = str(titles[0]) if isinstance(titles, list) and titles else "Newsletter"
    console.print(
        Panel(
            _bullets(newsletter.get("suggestedSubjectLines")) or "(no subject lines)",
            title=heading,
            subtitle=f"{articles_analyzed} articles analyzed",
        )
    )
    body = newsletter.get("body")
    if body:
        console.print(Markdown(str(body)))
    announcements = _bullets(newsletter.get("topAnnouncements"))
    if announcements:
        console.print(Markdown("## Top announcements\n\n" + announcements))
    extra = newsletter.get("additionalInfo")
    if extra:
        console.print(Markdown(str(extra)))


if __name__ == "__main__":
    app()
