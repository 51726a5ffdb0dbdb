"""Deterministic sync for platforms without a real integration.

Sales-enablement platforms (Highspot, Showpad, Seismic, Mindtickle,
Enable.us) have no public content API wired up yet.  Their connector
still honours the sync contract: the source's chunks are cleared, zero
resources are listed, and the sync completes so the source never stays
in ``Syncing``.
"""

from __future__ import annotations

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

SIMULATED_TYPES = (
    DataSourceType.HIGHSPOT,
    DataSourceType.SHOWPAD,
    DataSourceType.SEISMIC,
    DataSourceType.MINDTICKLE,
    DataSourceType.ENABLEUS,
)


class SimulatedConnector(BaseConnector):
    """Connector that lists nothing and always completes."""

    def __init__(self, context: ConnectorContext, source_type: DataSourceType) -> None:
        super().__init__(context)
        self.source_type = source_type

    async def list_resources(self, source: DataSource) -> list[ResourceRef]:
        return []

    async def fetch_resource(self, source: DataSource, ref: ResourceRef) -> RawResource:
        raise FetchError(
            message=f"{self.source_type.value} has no content API; cannot fetch {ref.id}",
            provider_name=self.get_provider_name(),
        )

    async def sync(self, source: DataSource) -> SyncResult:
        logger.info("connector_simulated", connector=self.get_provider_name(), source_name=source.name)
        return await super().sync(source)
