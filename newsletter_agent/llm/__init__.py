"""LLM generation, prompts and observability."""

from .partial_json import parse_complete_json, parse_partial_json
from .prompts import NEWSLETTER_FIELDS, build_article_summaries, build_newsletter_prompt
from .providers.base import NewsletterProvider, ProviderError
from .providers.factory import available_providers, create_provider
from .providers.gemini import GeminiProvider
from .providers.openai_compatible import OpenAICompatibleProvider
from .tracing import (
    flush,
    record_span_error,
    set_span_output,
    setup_langfuse,
    start_generation,
    start_span,
)

__all__ = [
    "parse_complete_json",
    "parse_partial_json",
    "NEWSLETTER_FIELDS",
    "build_article_summaries",
    "build_newsletter_prompt",
    "NewsletterProvider",
    "ProviderError",
    "GeminiProvider",
    "OpenAICompatibleProvider",
    "create_provider",
    "available_providers",
    "setup_langfuse",
    "flush",
    "start_span",
    "start_generation",
    "set_span_output",
    "record_span_error",
]
