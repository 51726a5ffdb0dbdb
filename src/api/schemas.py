"""Pydantic request/response schemas for the knowledge ingestion API.

# ─── HOW SCHEMAS WORK ─────────────────────────────────────────────────
#
# These models define the *shape* of every HTTP request and response
# body.  FastAPI uses them to validate incoming JSON (invalid requests
# get a 422), to serialize outgoing objects (response_model=...), and to
# generate the OpenAPI docs at /docs.
#
# Convention: request schemas end with "Request", response schemas end
# with "Response".  Domain models never go over the wire directly, so a
# DataSource's credentials can never leak into a response.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from src.models.knowledge import (
    DataSource,
    DataSourceType,
    ScoredChunk,
    SourceConfig,
    SourceCredentials,
    SourceStatus,
    SyncLog,
    SyncLogStatus,
)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class CredentialsRequest(BaseModel):
    """OAuth-style credential bundle supplied by a client."""

    access_token: str | None = None
    refresh_token: str | None = None
    api_key: str | None = None
    username: str | None = None
    scope: str | None = None
    token_type: str = "Bearer"
    expires_at: datetime | None = None

    def to_credentials(self) -> SourceCredentials:
        return SourceCredentials(**self.model_dump())


class RegisterSourceRequest(BaseModel):
    """Register a new data source for a tenant.

    ``config`` accepts the camelCase keys used by clients
    (``maxDepth``, ``maxPages``, ``scopePath``, ``excludePaths``,
    ``filterKeywords``, ``useSitemap``, ``folderId``, ...).
    """

    type: DataSourceType
    name: str = Field(..., min_length=1, max_length=2048, description="Root URL for websites")
    config: SourceConfig = Field(default_factory=SourceConfig)
    credentials: CredentialsRequest | None = None
    sync: bool | None = Field(default=None, description="Override the sync-on-create default")


class SearchRequest(BaseModel):
    query: str = Field(..., min_length=1, max_length=2000)
    top_k: int = Field(default=5, ge=1, le=50)
    source_types: list[DataSourceType] | None = None


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class SourceResponse(BaseModel):
    """Public view of a DataSource (credentials are never included)."""

    id: str
    tenant_id: str
    type: DataSourceType
    name: str
    status: SourceStatus
    last_synced: str
    last_synced_at: datetime | None = None
    item_count: int | None = None
    config: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime

    @classmethod
    def from_source(cls, source: DataSource) -> SourceResponse:
        return cls(
            id=source.id,
            tenant_id=source.tenant_id,
            type=source.type,
            name=source.name,
            status=source.status,
            last_synced=source.last_synced,
            last_synced_at=source.last_synced_at,
            item_count=source.item_count,
            config=source.config.model_dump(by_alias=True, exclude_defaults=True),
            created_at=source.created_at,
        )


class SourceListResponse(BaseModel):
    sources: list[SourceResponse]
    total: int


class DeleteSourceResponse(BaseModel):
    source_id: str
    deleted: bool


class SyncLogResponse(BaseModel):
    id: str
    source_id: str
    timestamp: datetime
    status: SyncLogStatus
    message: str
    items_processed: int

    @classmethod
    def from_log(cls, log: SyncLog) -> SyncLogResponse:
        return cls(
            id=log.id,
            source_id=log.source_id,
            timestamp=log.timestamp,
            status=log.status,
            message=log.message,
            items_processed=log.items_processed,
        )


class SyncLogListResponse(BaseModel):
    logs: list[SyncLogResponse]
    total: int


class SyncAllResponse(BaseModel):
    started: int
    sources: list[SourceResponse]


class SearchHit(BaseModel):
    """A single search result with its cosine similarity score."""

    chunk_id: str
    source_id: str
    source_type: DataSourceType
    title: str
    content: str
    tags: list[str] = Field(default_factory=list)
    url: str | None = None
    section: str | None = None
    score: float = Field(ge=-1.0, le=1.0)

    @classmethod
    def from_scored(cls, scored: ScoredChunk) -> SearchHit:
        chunk = scored.chunk
        return cls(
            chunk_id=chunk.id,
            source_id=chunk.source_id,
            source_type=chunk.metadata.source_type,
            title=chunk.title,
            content=chunk.content,
            tags=chunk.tags,
            url=chunk.metadata.url,
            section=chunk.metadata.section,
            score=scored.score,
        )


class SearchResponse(BaseModel):
    query: str
    results: list[SearchHit]
    total: int


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    providers: dict[str, Any]


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None
