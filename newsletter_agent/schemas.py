"""
Request and response bodies of the HTTP API.

FastAPI validates incoming bodies against these models and publishes them
in the OpenAPI document. ``validation_message`` turns pydantic's error list
into the single ``error`` string that clients display.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Sequence

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .core.types import Article, GenerationRequest, as_utc

FeedId = Annotated[str, Field(min_length=1)]


class CamelModel(BaseModel):
    """Snake-case fields, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GenerateStreamBody(CamelModel):
    """Body of ``generate-stream`` and ``preview``."""

    feed_ids: list[FeedId] = Field(min_length=1, description="Feeds to draw articles from")
    start_date: datetime = Field(description="Start of the article window, ISO-8601")
    end_date: datetime = Field(description="End of the article window, ISO-8601")
    user_input: str | None = Field(default=None, description="Extra instructions for the model")

    def to_request(self) -> GenerationRequest:
        return GenerationRequest(
            feed_ids=tuple(self.feed_ids),
            start_date=as_utc(self.start_date),
            end_date=as_utc(self.end_date),
            user_input=self.user_input or None,
        )


class PreviewArticle(CamelModel):
    title: str
    feed_title: str | None = None
    pub_date: datetime
    source_count: int

    @classmethod
    def from_article(cls, article: Article) -> PreviewArticle:
        return cls(
            title=article.title,
            feed_title=article.feed_title,
            pub_date=article.pub_date,
            source_count=article.source_count,
        )


class PreviewResponse(CamelModel):
    """Articles a generation over the same window would analyze."""

    article_count: int
    articles: list[PreviewArticle]


class ErrorResponse(BaseModel):
    error: str


def validation_message(errors: Sequence[dict[str, Any]]) -> str:
    """Describe the first validation error the way clients expect.

    Accepts the error list of a pydantic ``ValidationError`` or of FastAPI's
    ``RequestValidationError``, whose locations start with ``"body"``.
    """
    if not errors:
        return "Invalid request"
    error = errors[0]
    kind = error.get("type")
    loc = tuple(error.get("loc") or ())
    if loc[:1] == ("body",):
        loc = loc[1:]

    if kind == "json_invalid":
        return "Request body must be valid JSON"
    if not loc or not isinstance(loc[0], str):
        return "Request body must be a JSON object"

    field = loc[0]
    if field == "feedIds":
        if len(loc) > 1:
            return "feedIds must contain only non-empty strings"
        return "feedIds is required and must be a non-empty array"
    if field in ("startDate", "endDate"):
        if kind == "missing" or error.get("input") in ("", None):
            return "startDate and endDate are required"
        return f"{field} is not a valid ISO-8601 timestamp"
    if field == "userInput":
        return "userInput must be a string"
    return f"{field}: {error.get('msg', 'invalid value')}"
