"""Source-type → connector dispatch.

The registry is closed over :class:`DataSourceType`: every enum member
maps to exactly one connector instance.  A type with no mapping resolves
to :class:`UnsupportedConnector`, whose every operation raises
:class:`UnsupportedSourceError` so the failure is immediate and visible
(the source lands in ``Error``) instead of a silent no-op.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

import structlog

from src.interfaces.connector import IConnector
from src.models.knowledge import (
    DataSource,
    DataSourceType,
    ParsedResource,
    RawResource,
    ResourceRef,
    SyncResult,
)
from src.providers.connectors.base import ConnectorContext
from src.providers.connectors.confluence import ConfluenceConnector
from src.providers.connectors.document_connector import DocumentConnector
from src.providers.connectors.dropbox import DropboxConnector
from src.providers.connectors.github import GitHubConnector
from src.providers.connectors.google_drive import GoogleDriveConnector
from src.providers.connectors.notion import NotionConnector
from src.providers.connectors.sharepoint import SharePointConnector
from src.providers.connectors.simulated import SIMULATED_TYPES, SimulatedConnector
from src.providers.connectors.website_crawler import WebsiteCrawlerConnector
from src.utils.errors import UnsupportedSourceError

logger = structlog.get_logger(logger_name=__name__)


class UnsupportedConnector(IConnector):
    """Stand-in for a source type with no connector; fails fast."""

    def __init__(self, source_type: DataSourceType) -> None:
        self.source_type = source_type

    def _fail(self) -> UnsupportedSourceError:
        return UnsupportedSourceError(
            message=f"No connector is available for source type '{self.source_type.value}'",
            provider_name=self.source_type.value,
        )

    async def list_resources(self, source: DataSource) -> list[ResourceRef]:
        raise self._fail()

    async def fetch_resource(self, source: DataSource, ref: ResourceRef) -> RawResource:
        raise self._fail()

    async def parse_content(self, raw: RawResource) -> ParsedResource:
        raise self._fail()

    async def sync(self, source: DataSource) -> SyncResult:
        raise self._fail()


class ConnectorRegistry:
    """Maps each :class:`DataSourceType` to its connector."""

    def __init__(self, connectors: Mapping[DataSourceType, IConnector] | Iterable[IConnector]) -> None:
        if isinstance(connectors, Mapping):
            self._connectors = dict(connectors)
        else:
            self._connectors = {connector.source_type: connector for connector in connectors}

    @classmethod
    def build_default(cls, context: ConnectorContext) -> ConnectorRegistry:
        """Register a connector for every known source type."""
        connectors: list[IConnector] = [
            DocumentConnector(context),
            WebsiteCrawlerConnector(context),
            GoogleDriveConnector(context),
            DropboxConnector(context),
            SharePointConnector(context),
            ConfluenceConnector(context),
            NotionConnector(context),
            GitHubConnector(context),
        ]
        connectors.extend(SimulatedConnector(context, source_type) for source_type in SIMULATED_TYPES)
        registry = cls(connectors)
        missing = [t.value for t in DataSourceType if not registry.supports(t)]
        if missing:
            logger.warning("connectors_missing", source_types=missing)
        return registry

    def get(self, source_type: DataSourceType) -> IConnector:
        return self._connectors.get(source_type) or UnsupportedConnector(source_type)

    def supports(self, source_type: DataSourceType) -> bool:
        return source_type in self._connectors

    def supported_types(self) -> list[DataSourceType]:
        return [source_type for source_type in DataSourceType if source_type in self._connectors]

    @property
    def document_connector(self) -> DocumentConnector:
        connector = self._connectors.get(DataSourceType.DOCUMENT)
        if not isinstance(connector, DocumentConnector):
            raise UnsupportedSourceError(
                message="Document uploads are not enabled", provider_name="document"
            )
        return connector
