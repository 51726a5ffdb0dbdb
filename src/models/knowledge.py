"""Knowledge base data models.

Defines Pydantic v2 models for data sources, document chunks, sync logs and
the intermediate values connectors pass around while syncing.  All models
use frozen config to enforce immutability -- state transitions produce new
instances via ``model_copy(update={...})``.

Ownership:
    A tenant owns its DataSources; a DataSource exclusively owns its
    DocumentChunks and SyncLogs.  ``tenant_id`` is carried on every model
    so that each storage read and write can be partitioned by it.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def _new_id() -> str:
    return str(uuid.uuid4())


def _utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class DataSourceType(str, Enum):  # noqa: UP042 (StrEnum requires Python 3.11+)
    """Closed set of source types; each maps to exactly one connector."""

    DOCUMENT = "document"
    WEBSITE = "website"
    # File storage
    GDRIVE = "gdrive"
    DROPBOX = "dropbox"
    SHAREPOINT = "sharepoint"
    # Wiki
    CONFLUENCE = "confluence"
    NOTION = "notion"
    # Code host
    GITHUB = "github"
    # Sales enablement
    HIGHSPOT = "highspot"
    SHOWPAD = "showpad"
    SEISMIC = "seismic"
    MINDTICKLE = "mindtickle"
    ENABLEUS = "enableus"


class SourceStatus(str, Enum):  # noqa: UP042
    """Lifecycle states of a DataSource.

    ``Pending → Syncing → {Synced, Error}``; a re-sync from Synced or Error
    re-enters Syncing.  Only the sync orchestrator writes this field.
    """

    PENDING = "Pending"
    SYNCING = "Syncing"
    SYNCED = "Synced"
    ERROR = "Error"


class SyncLogStatus(str, Enum):  # noqa: UP042
    IN_PROGRESS = "InProgress"
    SUCCESS = "Success"
    FAILURE = "Failure"


NEVER_SYNCED_LABEL = "Never"
SYNC_FAILED_LABEL = "Failed to sync"


# ---------------------------------------------------------------------------
# Source configuration & credentials
# ---------------------------------------------------------------------------
class SourceConfig(BaseModel):
    """Connector-specific configuration.

    Accepts both snake_case and the camelCase names used by API clients
    (``maxDepth``, ``filterKeywords``, ...).  Crawl fields apply to website
    sources; the scoping fields apply to the platform connectors that
    understand them and are ignored by the others.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    # --- Website crawler ---
    max_depth: int | None = Field(default=None, ge=0)
    max_pages: int | None = Field(default=None, ge=1)
    scope_path: str = ""
    exclude_paths: list[str] = Field(default_factory=list)
    filter_keywords: list[str] = Field(default_factory=list)
    use_sitemap: bool = False

    # --- Platform scoping ---
    folder_id: str | None = None
    folder_path: str | None = None
    drive_name: str | None = None
    site_id: str | None = None
    url: str | None = None
    space_key: str | None = None
    repository: str | None = None
    branch: str | None = None


class SourceCredentials(BaseModel):
    """Opaque OAuth-style credential bundle for a connector.

    Secret fields are hidden from ``repr`` so a logged model never leaks
    them.  Persistent storage keeps credentials in the secret store only.
    """

    model_config = ConfigDict(frozen=True)

    access_token: str | None = Field(default=None, repr=False)
    refresh_token: str | None = Field(default=None, repr=False)
    api_key: str | None = Field(default=None, repr=False)
    username: str | None = None
    scope: str | None = None
    token_type: str = "Bearer"
    expires_at: datetime | None = None

    def is_expired(self, now: datetime | None = None) -> bool:
        """Return ``True`` when ``expires_at`` has passed."""
        if self.expires_at is None:
            return False
        now = now or _utc_now()
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)  # noqa: UP017
        return expires_at <= now


# ---------------------------------------------------------------------------
# DataSource
# ---------------------------------------------------------------------------
class DataSource(BaseModel):
    """A registered connection to a body of content owned by one tenant.

    ``type`` is immutable after creation (enforced by the store).  For
    website sources ``name`` is the root URL.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    tenant_id: str = Field(min_length=1)
    type: DataSourceType
    name: str = Field(min_length=1)
    status: SourceStatus = SourceStatus.PENDING
    # Human-readable label: "Never", an ISO timestamp, or "Failed to sync".
    last_synced: str = NEVER_SYNCED_LABEL
    last_synced_at: datetime | None = None
    item_count: int | None = Field(default=None, ge=0)
    config: SourceConfig = Field(default_factory=SourceConfig)
    auth: SourceCredentials | None = Field(default=None, exclude=True, repr=False)
    created_at: datetime = Field(default_factory=_utc_now)


# ---------------------------------------------------------------------------
# DocumentChunk
# ---------------------------------------------------------------------------
class ChunkMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    source_type: DataSourceType
    url: str | None = None
    # Breadcrumb-derived label for crawled pages.
    section: str | None = None
    extras: dict[str, str] = Field(default_factory=dict)


class DocumentChunk(BaseModel):
    """A bounded slice of extracted text, the unit of embedding and retrieval.

    A chunk whose ``embedding`` is empty is stored but never returned by
    search.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    tenant_id: str = Field(min_length=1)
    source_id: str
    title: str = ""
    content: str
    embedding: list[float] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    metadata: ChunkMetadata

    @field_validator("tags")
    @classmethod
    def _normalise_tags(cls, value: list[str]) -> list[str]:
        # Tags behave as a set: lowercase, trimmed, unique, sorted.
        return sorted({tag.strip().lower() for tag in value if tag and tag.strip()})

    @property
    def has_embedding(self) -> bool:
        return len(self.embedding) > 0


class ScoredChunk(BaseModel):
    model_config = ConfigDict(frozen=True)

    chunk: DocumentChunk
    score: float = Field(ge=-1.0, le=1.0)


# ---------------------------------------------------------------------------
# SyncLog
# ---------------------------------------------------------------------------
class SyncLog(BaseModel):
    """Append-only audit record of one sync attempt."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    tenant_id: str
    source_id: str
    timestamp: datetime = Field(default_factory=_utc_now)
    status: SyncLogStatus
    message: str = ""
    items_processed: int = Field(default=0, ge=0)


# ---------------------------------------------------------------------------
# Connector intermediates
# ---------------------------------------------------------------------------
class ResourceRef(BaseModel):
    """A resource a connector enumerated and may fetch."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    url: str | None = None
    mime_type: str | None = None
    extras: dict[str, Any] = Field(default_factory=dict)


class RawResource(BaseModel):
    """Fetched, still-unparsed content of one resource."""

    model_config = ConfigDict(frozen=True)

    ref: ResourceRef
    data: bytes
    mime_type: str


class ParsedResource(BaseModel):
    """Output of ``parse_content``: either whole text or pre-split chunks."""

    model_config = ConfigDict(frozen=True)

    title: str
    text: str = ""
    chunks: list[str] | None = None
    url: str | None = None
    section: str | None = None


class SyncResult(BaseModel):
    """What a connector reports back to the orchestrator after ``sync``."""

    model_config = ConfigDict(frozen=True)

    source: DataSource
    item_count: int = Field(ge=0)
    resources_processed: int = Field(default=0, ge=0)
    resources_skipped: int = Field(default=0, ge=0)
