"""
Core domain models.

This package contains data types that are independent of any specific
pipeline stage.
"""

from .types import (
    Article,
    Feed,
    GenerationRequest,
    NewsletterSettings,
    RequestContext,
    as_utc,
    parse_timestamp,
    utcnow,
)

__all__ = [
    "Article",
    "Feed",
    "GenerationRequest",
    "NewsletterSettings",
    "RequestContext",
    "as_utc",
    "parse_timestamp",
    "utcnow",
]
