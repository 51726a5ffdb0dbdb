"""Utility modules for the knowledge ingestion service.

- **errors** -- Domain-specific exception hierarchy rooted at
  KnowledgeIngestError; connectors, the pipeline and the store each raise
  their own subclass so callers can handle failures granularly.
- **concurrency** -- semaphore-throttled gather used to fan out per-chunk
  embedding and tagging calls.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
"""

from src.utils.errors import (
    AuthenticationError,
    ConfigurationError,
    EmbeddingError,
    FetchError,
    KnowledgeIngestError,
    KnowledgeStoreError,
    LLMError,
    ParseError,
    SourceNotFoundError,
    SourceValidationError,
    SyncError,
    UnsupportedSourceError,
)
from src.utils.logging import configure_logging, get_logger

__all__ = [
    "AuthenticationError",
    "ConfigurationError",
    "EmbeddingError",
    "FetchError",
    "KnowledgeIngestError",
    "KnowledgeStoreError",
    "LLMError",
    "ParseError",
    "SourceNotFoundError",
    "SourceValidationError",
    "SyncError",
    "UnsupportedSourceError",
    "configure_logging",
    "get_logger",
]
