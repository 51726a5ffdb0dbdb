"""Custom exception hierarchy for the knowledge ingestion service.

All application exceptions inherit from :class:`KnowledgeIngestError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "openai", "gdrive", "website") caused the failure.

The hierarchy is organized by where the failure happens:

    KnowledgeIngestError  (base -- catch-all for any ingestion error)
    +-- AuthenticationError      (connector credentials missing / expired)
    +-- FetchError               (network / HTTP failure for one resource)
    +-- ParseError               (unsupported or malformed content)
    +-- EmbeddingError           (embedding provider failure)
    +-- LLMError                 (chat completion failure, used by tagging)
    +-- SyncError                (sync-level failure, aborts the whole sync)
    +-- UnsupportedSourceError   (no connector for a source type)
    +-- SourceNotFoundError      (unknown tenant/source pair)
    +-- SourceValidationError    (invalid registration request)
    +-- KnowledgeStoreError      (storage invariant violated)
    +-- ConfigurationError       (startup / missing config)

FetchError and ParseError are recovered per resource by the connectors.
Everything else that escapes ``connector.sync()`` is recorded by the
sync orchestrator as a failed sync.
"""


class KnowledgeIngestError(Exception):
    """Base exception for all knowledge ingestion errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  The ``__str__`` method prefixes the provider name in brackets
    for structured log output, e.g. ``[gdrive] Access token expired``.
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
# Connector errors
# ---------------------------------------------------------------------------

class AuthenticationError(KnowledgeIngestError):
    """Raised when connector credentials are missing or expired.

    Never retried automatically: the source stays in ``Error`` until
    credentials are attached again and a new sync is triggered.
    """

    def __init__(
        self,
        message: str = "Connector credentials are missing or expired",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class FetchError(KnowledgeIngestError):
    """Raised when a single resource or page cannot be retrieved."""

    def __init__(
        self,
        message: str = "Resource fetch failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ParseError(KnowledgeIngestError):
    """Raised when content is unsupported or cannot be parsed into text."""

    def __init__(
        self,
        message: str = "Content could not be parsed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class SyncError(KnowledgeIngestError):
    """Raised for failures that abort a whole sync (e.g. enumeration failed)."""

    def __init__(
        self,
        message: str = "Sync failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class UnsupportedSourceError(KnowledgeIngestError):
    """Raised when no connector is registered for a source type."""

    def __init__(
        self,
        message: str = "Source type is not supported",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Enrichment errors
# ---------------------------------------------------------------------------

class EmbeddingError(KnowledgeIngestError):
    """Raised when an embedding provider call fails."""

    def __init__(
        self,
        message: str = "Embedding generation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class LLMError(KnowledgeIngestError):
    """Raised when an LLM API call fails or returns an unparseable response."""

    def __init__(
        self,
        message: str = "LLM API call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Repository / request errors
# ---------------------------------------------------------------------------

class SourceNotFoundError(KnowledgeIngestError):
    """Raised when a data source does not exist for the given tenant."""

    def __init__(
        self,
        message: str = "Data source not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class SourceValidationError(KnowledgeIngestError):
    """Raised when a registration request is invalid (bad URL, bad config)."""

    def __init__(
        self,
        message: str = "Invalid data source definition",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class KnowledgeStoreError(KnowledgeIngestError):
    """Raised when a write would break a storage invariant.

    Examples: changing a source's ``type`` after creation, or writing a
    chunk into a tenant partition it does not belong to.
    """

    def __init__(
        self,
        message: str = "Knowledge store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(KnowledgeIngestError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
