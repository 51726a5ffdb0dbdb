"""Knowledge base domain models -- re-exports all public model classes.

Import from ``src.models`` rather than the submodule, e.g.
``from src.models import DataSource``.
"""

from __future__ import annotations

from src.models.knowledge import (
    NEVER_SYNCED_LABEL,
    SYNC_FAILED_LABEL,
    ChunkMetadata,
    DataSource,
    DataSourceType,
    DocumentChunk,
    ParsedResource,
    RawResource,
    ResourceRef,
    ScoredChunk,
    SourceConfig,
    SourceCredentials,
    SourceStatus,
    SyncLog,
    SyncLogStatus,
    SyncResult,
)

__all__ = [
    "NEVER_SYNCED_LABEL",
    "SYNC_FAILED_LABEL",
    # sources
    "DataSource",
    "DataSourceType",
    "SourceConfig",
    "SourceCredentials",
    "SourceStatus",
    # chunks
    "ChunkMetadata",
    "DocumentChunk",
    "ScoredChunk",
    # sync
    "SyncLog",
    "SyncLogStatus",
    "SyncResult",
    # connector intermediates
    "ParsedResource",
    "RawResource",
    "ResourceRef",
]
