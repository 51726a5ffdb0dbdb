"""Connector for directly uploaded documents.

An upload is staged in memory under ``(tenant_id, source_id)`` and
consumed by the next sync, which parses it and replaces the source's
chunks.  The bytes are not retained afterwards, so a plain re-sync of a
document source has nothing to fetch: it is a no-op that keeps the
existing chunks and reports their count.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from src.models.knowledge import (
    DataSource,
    DataSourceType,
    RawResource,
    ResourceRef,
    SyncResult,
)
from src.providers.connectors.base import BaseConnector, ConnectorContext
from src.utils.errors import FetchError

logger = structlog.get_logger(logger_name=__name__)


@dataclass(frozen=True)
class StagedUpload:
    filename: str
    data: bytes
    mime_type: str


class DocumentConnector(BaseConnector):
    source_type = DataSourceType.DOCUMENT

    def __init__(self, context: ConnectorContext) -> None:
        super().__init__(context)
        self._staged: dict[tuple[str, str], StagedUpload] = {}

    def stage(
        self, tenant_id: str, source_id: str, filename: str, data: bytes, mime_type: str
    ) -> None:
        """Hold an uploaded payload until the source's next sync."""
        self._staged[(tenant_id, source_id)] = StagedUpload(filename, data, mime_type)

    def discard(self, tenant_id: str, source_id: str) -> bool:
        return self._staged.pop((tenant_id, source_id), None) is not None

    def has_staged(self, tenant_id: str, source_id: str) -> bool:
        return (tenant_id, source_id) in self._staged

    async def list_resources(self, source: DataSource) -> list[ResourceRef]:
        staged = self._staged.get((source.tenant_id, source.id))
        if staged is None:
            return []
        return [ResourceRef(id=source.id, name=staged.filename, mime_type=staged.mime_type)]

    async def fetch_resource(self, source: DataSource, ref: ResourceRef) -> RawResource:
        staged = self._staged.get((source.tenant_id, source.id))
        if staged is None:
            raise FetchError(
                message=f"No staged upload for document source {source.id}",
                provider_name=self.get_provider_name(),
            )
        return RawResource(ref=ref, data=staged.data, mime_type=staged.mime_type)

    async def sync(self, source: DataSource) -> SyncResult:
        refs = await self.list_resources(source)
        if not refs:
            existing = await self._ctx.store.count_chunks(source.tenant_id, source.id)
            logger.info("document_resync_noop", chunks=existing)
            return SyncResult(source=source, item_count=existing)

        # Parse before deleting so a malformed upload fails the sync and
        # leaves the previous chunks in place.
        try:
            raw = await self.fetch_resource(source, refs[0])
            parsed = await self.parse_content(raw)
        finally:
            self.discard(source.tenant_id, source.id)

        await self._ctx.store.delete_chunks_by_source(source.tenant_id, source.id)
        item_count = await self.ingest(source, parsed)
        return SyncResult(source=source, item_count=item_count, resources_processed=1)
