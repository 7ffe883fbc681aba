"""Utility modules for corpuschat.

- **errors** -- Domain-specific exception hierarchy rooted at CorpusChatError;
  each pipeline stage raises its own subclass so callers apply the right
  policy (skip, retry, report, or abort).
- **concurrency** -- asyncio semaphore throttling for ingestion fan-out.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
"""

from corpuschat.utils.concurrency import throttled_gather
from corpuschat.utils.errors import (
    ConfigurationError,
    CorpusChatError,
    EmbeddingError,
    IndexConnectionError,
    ItemFetchError,
    LanguageModelError,
)
from corpuschat.utils.logging import configure_logging

__all__ = [
    "ConfigurationError",
    "CorpusChatError",
    "EmbeddingError",
    "IndexConnectionError",
    "ItemFetchError",
    "LanguageModelError",
    "configure_logging",
    "throttled_gather",
]
