"""Abstract storage interface for the tenant-partitioned knowledge base.

The store persists three kinds of records: DataSources, DocumentChunks and
SyncLogs.  Every method takes ``tenant_id`` and must scope all reads and
writes by it; no call may ever return or touch another tenant's rows.

The store is deliberately dumb about lifecycle: it does not know about
sync states or connectors.  The one invariant it enforces itself is that
a DataSource's ``type`` can never change after creation.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from src.models.knowledge import DataSource, DataSourceType, DocumentChunk, SyncLog
from src.utils.errors import KnowledgeStoreError


# Concrete implementations:
#   MemoryKnowledgeStore  — dict-backed, for tests and development
#   SQLiteKnowledgeStore  — aiosqlite-backed, for production
# Located in: src/providers/store/
class IKnowledgeStore(ABC):
    """Contract for knowledge base persistence backends."""

    async def initialize(self) -> None:
        """Prepare the backend (create tables, directories).  Optional."""

    # ------------------------------------------------------------------
    # Data sources
    # ------------------------------------------------------------------

    @abstractmethod
    async def create_source(self, source: DataSource) -> DataSource:
        """Insert a new DataSource and return it as stored."""

    @abstractmethod
    async def get_source(self, tenant_id: str, source_id: str) -> DataSource | None:
        """Return the source, or ``None`` when it does not exist for *tenant_id*."""

    @abstractmethod
    async def list_sources(self, tenant_id: str | None = None) -> list[DataSource]:
        """List sources for one tenant, or for every tenant when ``None``.

        The all-tenants form exists solely for the scheduled sync-all job.
        """

    @abstractmethod
    async def update_source(
        self, tenant_id: str, source_id: str, updates: dict[str, Any]
    ) -> DataSource:
        """Apply field *updates* to a source and return the new version.

        Raises
        ------
        src.utils.errors.SourceNotFoundError
            If the source does not exist for *tenant_id*.
        src.utils.errors.KnowledgeStoreError
            If *updates* tries to change ``type``, ``id`` or ``tenant_id``.
        """

    @abstractmethod
    async def delete_source(self, tenant_id: str, source_id: str) -> bool:
        """Delete a source together with all of its chunks and logs.

        Returns ``False`` when nothing was deleted.
        """

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    @abstractmethod
    async def add_chunks(self, tenant_id: str, chunks: list[DocumentChunk]) -> int:
        """Append *chunks* in order and return how many were written.

        Raises :class:`~src.utils.errors.KnowledgeStoreError` if any chunk
        belongs to a different tenant.
        """

    @abstractmethod
    async def delete_chunks_by_source(self, tenant_id: str, source_id: str) -> int:
        """Remove every chunk owned by a source; return the number removed."""

    @abstractmethod
    async def list_chunks(
        self,
        tenant_id: str,
        source_id: str | None = None,
        source_types: list[DataSourceType] | None = None,
        embedded_only: bool = False,
    ) -> list[DocumentChunk]:
        """Return chunks for a tenant in insertion order.

        Parameters
        ----------
        source_id:
            Restrict to one source.
        source_types:
            Restrict to chunks whose ``metadata.source_type`` is listed.
        embedded_only:
            Drop chunks with an empty embedding (search candidates).
        """

    @abstractmethod
    async def count_chunks(self, tenant_id: str, source_id: str | None = None) -> int:
        """Return the number of chunks for a tenant or one of its sources."""

    # ------------------------------------------------------------------
    # Sync logs
    # ------------------------------------------------------------------

    @abstractmethod
    async def append_log(self, log: SyncLog) -> SyncLog:
        """Append an immutable sync log entry."""

    @abstractmethod
    async def list_logs(self, tenant_id: str, source_id: str) -> list[SyncLog]:
        """Return a source's sync logs, oldest first."""

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short backend identifier (e.g. ``"sqlite"``)."""


# Fields fixed at creation; every backend rejects updates to them.
IMMUTABLE_SOURCE_FIELDS = frozenset({"id", "tenant_id", "type", "created_at"})


def apply_source_updates(source: DataSource, updates: dict[str, Any]) -> DataSource:
    """Return *source* with *updates* applied, validating immutable fields.

    Shared by all backends so the ``type`` invariant is enforced the same
    way everywhere.  Re-stating an immutable field with its current value
    is allowed.
    """
    for field_name in IMMUTABLE_SOURCE_FIELDS & updates.keys():
        if updates[field_name] != getattr(source, field_name):
            raise KnowledgeStoreError(
                message=f"DataSource field '{field_name}' cannot change after creation",
            )
    unknown = updates.keys() - DataSource.model_fields.keys()
    if unknown:
        raise KnowledgeStoreError(message=f"Unknown DataSource fields: {sorted(unknown)}")
    merged = {**source.model_dump(), "auth": source.auth, **updates}
    return DataSource.model_validate(merged)
