"""
Newsletter Agent - streaming AI newsletter generation over RSS feeds.

This package refreshes stale feed subscriptions, selects articles in a date
window and streams a model-generated newsletter to the client as
server-sent events.

Main entry point is the CLI via `newsletter-agent serve`.

Example:
    $ newsletter-agent serve --config config.yaml
    $ newsletter-agent generate --feed tech --start 2026-01-01 --end 2026-01-07
"""

__all__ = ["__version__", "GenerationRequest", "RequestContext", "StreamState"]
__version__ = "0.1.0"

from .core.types import GenerationRequest, RequestContext
from .streaming.reducer import StreamState
