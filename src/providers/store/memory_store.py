"""In-memory knowledge store.

Dict-backed implementation of :class:`IKnowledgeStore`, partitioned by
tenant id at the top level.  Fast and dependency-free; contents are lost
when the process exits, so it is meant for tests and local development.
Swap in :class:`~src.providers.store.sqlite_store.SQLiteKnowledgeStore`
for anything that must survive a restart.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Any

import structlog

from src.interfaces.knowledge_store import IKnowledgeStore, apply_source_updates
from src.models.knowledge import DataSource, DataSourceType, DocumentChunk, SyncLog
from src.utils.errors import KnowledgeStoreError, SourceNotFoundError

logger = structlog.get_logger(logger_name=__name__)


class MemoryKnowledgeStore(IKnowledgeStore):
    """Tenant-partitioned in-memory store.

    Each tenant gets its own source map, chunk list and log list, so a
    lookup can only ever see rows from the partition it was asked for.
    """

    def __init__(self) -> None:
        self._sources: dict[str, dict[str, DataSource]] = defaultdict(dict)
        self._chunks: dict[str, list[DocumentChunk]] = defaultdict(list)
        self._logs: dict[str, list[SyncLog]] = defaultdict(list)

    # ------------------------------------------------------------------
    # Data sources
    # ------------------------------------------------------------------

    async def create_source(self, source: DataSource) -> DataSource:
        partition = self._sources[source.tenant_id]
        if source.id in partition:
            raise KnowledgeStoreError(message=f"DataSource {source.id} already exists")
        partition[source.id] = source
        logger.debug("source_created", tenant_id=source.tenant_id, source_id=source.id)
        return source

    async def get_source(self, tenant_id: str, source_id: str) -> DataSource | None:
        return self._sources.get(tenant_id, {}).get(source_id)

    async def list_sources(self, tenant_id: str | None = None) -> list[DataSource]:
        if tenant_id is not None:
            return list(self._sources.get(tenant_id, {}).values())
        return [source for partition in self._sources.values() for source in partition.values()]

    async def update_source(
        self, tenant_id: str, source_id: str, updates: dict[str, Any]
    ) -> DataSource:
        current = await self.get_source(tenant_id, source_id)
        if current is None:
            raise SourceNotFoundError(message=f"No data source {source_id} for tenant {tenant_id}")
        updated = apply_source_updates(current, updates)
        self._sources[tenant_id][source_id] = updated
        return updated

    async def delete_source(self, tenant_id: str, source_id: str) -> bool:
        partition = self._sources.get(tenant_id, {})
        if source_id not in partition:
            return False
        del partition[source_id]
        removed_chunks = await self.delete_chunks_by_source(tenant_id, source_id)
        self._logs[tenant_id] = [log for log in self._logs[tenant_id] if log.source_id != source_id]
        logger.info(
            "source_deleted",
            tenant_id=tenant_id,
            source_id=source_id,
            chunks_removed=removed_chunks,
        )
        return True

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    async def add_chunks(self, tenant_id: str, chunks: list[DocumentChunk]) -> int:
        foreign = [chunk.id for chunk in chunks if chunk.tenant_id != tenant_id]
        if foreign:
            raise KnowledgeStoreError(
                message=f"{len(foreign)} chunk(s) do not belong to tenant {tenant_id}",
            )
        self._chunks[tenant_id].extend(chunks)
        return len(chunks)

    async def delete_chunks_by_source(self, tenant_id: str, source_id: str) -> int:
        existing = self._chunks.get(tenant_id, [])
        kept = [chunk for chunk in existing if chunk.source_id != source_id]
        removed = len(existing) - len(kept)
        self._chunks[tenant_id] = kept
        return removed

    async def list_chunks(
        self,
        tenant_id: str,
        source_id: str | None = None,
        source_types: list[DataSourceType] | None = None,
        embedded_only: bool = False,
    ) -> list[DocumentChunk]:
        allowed_types = set(source_types) if source_types else None
        return [
            chunk
            for chunk in self._chunks.get(tenant_id, [])
            if (source_id is None or chunk.source_id == source_id)
            and (allowed_types is None or chunk.metadata.source_type in allowed_types)
            and (not embedded_only or chunk.has_embedding)
        ]

    async def count_chunks(self, tenant_id: str, source_id: str | None = None) -> int:
        return len(await self.list_chunks(tenant_id, source_id=source_id))

    # ------------------------------------------------------------------
    # Sync logs
    # ------------------------------------------------------------------

    async def append_log(self, log: SyncLog) -> SyncLog:
        self._logs[log.tenant_id].append(log)
        return log

    async def list_logs(self, tenant_id: str, source_id: str) -> list[SyncLog]:
        return [log for log in self._logs.get(tenant_id, []) if log.source_id == source_id]

    def get_provider_name(self) -> str:
        return "memory"
