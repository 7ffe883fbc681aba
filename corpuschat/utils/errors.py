"""Custom exception hierarchy for corpuschat.

All application exceptions inherit from :class:`CorpusChatError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "openai", "chromadb", "youtube") caused the failure.

The hierarchy is organized by pipeline stage:

    CorpusChatError  (base -- catch-all for any corpuschat error)
    +-- ItemFetchError        (ingestion: one source item unreachable or unparsable)
    +-- EmbeddingError        (embedding service call failed)
    +-- IndexConnectionError  (vector index unreachable or write failed)
    +-- LanguageModelError    (generation failed or returned malformed output)
    +-- ConfigurationError    (startup / invalid parameters)

Each error has a fixed handling policy:

* ``ItemFetchError`` -- skip the item, log it, keep ingesting.
* ``EmbeddingError`` -- omit the chunk during indexing; surfaced per question
  at query time.
* ``IndexConnectionError`` -- fatal at startup; retried with backoff during
  a session, then reported as "temporarily unavailable".
* ``LanguageModelError`` -- reported for that question only; the session
  continues.
* ``ConfigurationError`` -- fatal at startup with a clear message.
"""


class CorpusChatError(Exception):
    """Base exception for all corpuschat errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  The ``__str__`` method prefixes the provider name in brackets
    for structured log output, e.g. ``[openai] Request timed out``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Ingestion errors
# ---------------------------------------------------------------------------

class ItemFetchError(CorpusChatError):
    """Raised when a single source item cannot be fetched or parsed.

    Carries the item's ``locator`` (URL, path, or page reference) so the
    batch report can name exactly which item was skipped.
    """

    def __init__(
        self,
        message: str = "Source item could not be fetched",
        provider_name: str | None = None,
        locator: str | None = None,
    ) -> None:
        self._locator = locator
        super().__init__(message=message, provider_name=provider_name)

    @property
    def locator(self) -> str | None:
        return self._locator


# ---------------------------------------------------------------------------
# External service / provider errors
# ---------------------------------------------------------------------------

class EmbeddingError(CorpusChatError):
    """Raised when the embedding service fails to embed one or more texts."""

    def __init__(
        self,
        message: str = "Embedding request failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class IndexConnectionError(CorpusChatError):
    """Raised when the vector index cannot be reached, read, or written."""

    def __init__(
        self,
        message: str = "Vector index is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class LanguageModelError(CorpusChatError):
    """Raised when a language-model call fails or returns an unusable response."""

    def __init__(
        self,
        message: str = "Language model call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Configuration errors
# ---------------------------------------------------------------------------

class ConfigurationError(CorpusChatError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
