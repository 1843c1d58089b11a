"""
HTTP surface of the Newsletter Agent.

Routes:
- POST /api/newsletter/generate-stream: SSE stream of generation events
- POST /api/newsletter/preview: articles that a generation would analyze
- GET /healthz: liveness check
"""

from __future__ import annotations

import logging
from typing import Annotated, AsyncIterator

from fastapi import APIRouter, Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, StreamingResponse

from . import __version__
from .config import AppConfig
from .core.types import RequestContext
from .llm.providers.base import NewsletterProvider
from .logging_utils import log_event
from .pipeline import GenerationPipeline
from .schemas import (
    ErrorResponse,
    GenerateStreamBody,
    PreviewArticle,
    PreviewResponse,
    validation_message,
)
from .store.base import Store
from .streaming.events import encode

logger = logging.getLogger(__name__)

DEFAULT_USER = "default"

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

router = APIRouter(prefix="/api/newsletter", tags=["newsletter"])


def get_store(request: Request) -> Store:
    return request.app.state.store


def get_provider(request: Request) -> NewsletterProvider:
    return request.app.state.provider


def get_config(request: Request) -> AppConfig:
    return request.app.state.config


async def build_context(store: Store, user_header: str | None) -> RequestContext:
    """Caller context from the user header and that user's stored settings."""
    user_id = (user_header or "").strip() or DEFAULT_USER
    settings = await store.get_settings(user_id)
    return RequestContext(user_id=user_id, settings=settings)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid request body"},
    500: {"model": ErrorResponse, "description": "Failure before streaming started"},
}


@router.post(
    "/generate-stream",
    responses={200: {"content": {"text/event-stream": {}}}, **ERROR_RESPONSES},
)
async def generate_stream(
    body: GenerateStreamBody,
    store: Annotated[Store, Depends(get_store)],
    provider: Annotated[NewsletterProvider, Depends(get_provider)],
    config: Annotated[AppConfig, Depends(get_config)],
    x_user_id: Annotated[str | None, Header()] = None,
):
    """Stream newsletter generation as ``data: <json>`` events.

    Validation failures are answered with 400 before any event is sent.
    Once the stream has started, failures arrive as a single ``error`` event.
    """
    generation = body.to_request()
    try:
        context = await build_context(store, x_user_id)
        pipeline = GenerationPipeline(
            context,
            store,
            provider,
            cfg=config.generation,
            fetch_cfg=config.fetch,
        )
    except Exception as exc:
        logger.exception("Failed to start generation")
        return _error(500, f"Failed to generate newsletter: {exc}")

    async def events() -> AsyncIterator[bytes]:
        async for event in pipeline.run(generation):
            yield encode(event)

    return StreamingResponse(events(), media_type="text/event-stream", headers=SSE_HEADERS)


@router.post("/preview", response_model=PreviewResponse, responses=ERROR_RESPONSES)
async def preview(
    body: GenerateStreamBody,
    store: Annotated[Store, Depends(get_store)],
    config: Annotated[AppConfig, Depends(get_config)],
):
    """List the newest articles in the requested window without generating."""
    generation = body.to_request()
    try:
        articles = await store.articles_in_window(
            generation.distinct_feed_ids,
            generation.start_date,
            generation.end_date,
            limit=config.generation.preview_limit,
        )
    except Exception as exc:
        logger.exception("Failed to get newsletter preview")
        return _error(500, f"Failed to get newsletter preview: {exc}")

    return PreviewResponse(
        article_count=len(articles),
        articles=[PreviewArticle.from_article(article) for article in articles],
    )


async def reject_invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Answer body validation failures with 400 and a single ``error`` message."""
    message = validation_message(exc.errors())
    log_event(
        logger,
        "Rejected request",
        level=logging.WARNING,
        event="request_invalid",
        path=request.url.path,
        error=message,
    )
    return _error(400, message)


def create_app(config: AppConfig, store: Store, provider: NewsletterProvider) -> FastAPI:
    """Build the FastAPI application around a store and a model provider."""
    app = FastAPI(title="Newsletter Agent", version=__version__)
    app.state.config = config
    app.state.store = store
    app.state.provider = provider
    app.add_exception_handler(RequestValidationError, reject_invalid_request)
    app.include_router(router)

    @app.get("/healthz")
    async def healthz():
        return {"status": "ok", "provider": config.provider.name, "model": config.provider.model}

    return app
