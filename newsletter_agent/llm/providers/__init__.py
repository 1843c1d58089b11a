"""LLM providers producing cumulative newsletter snapshots."""

from .base import NewsletterProvider, ProviderError
from .factory import available_providers, create_provider
from .gemini import GeminiProvider
from .openai_compatible import OpenAICompatibleProvider

__all__ = [
    "NewsletterProvider",
    "ProviderError",
    "GeminiProvider",
    "OpenAICompatibleProvider",
    "available_providers",
    "create_provider",
]
