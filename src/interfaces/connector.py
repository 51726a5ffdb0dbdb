"""Abstract base class for content-platform connectors.

A connector knows how to enumerate, fetch and parse content from one
external platform or protocol.  ``sync`` is the only operation the sync
orchestrator calls; ``list_resources``, ``fetch_resource`` and
``parse_content`` are the building blocks a connector composes to
implement it.

Every ``sync`` implementation must:

    1. delete all existing chunks owned by the source (full replace),
    2. enumerate resources,
    3. fetch and parse each resource, chunk it and run it through the
       embedding & tagging pipeline,
    4. persist the chunks,
    5. report the item count back in a :class:`SyncResult`.

A resource that fails to fetch or parse is skipped and logged; it never
aborts the rest of the sync.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.knowledge import (
    DataSource,
    DataSourceType,
    ParsedResource,
    RawResource,
    ResourceRef,
    SyncResult,
)


# Concrete implementations: see src/providers/connectors/
class IConnector(ABC):
    """Contract for per-platform connectors."""

    source_type: DataSourceType

    @abstractmethod
    async def list_resources(self, source: DataSource) -> list[ResourceRef]:
        """Enumerate the resources currently available for *source*.

        Raises
        ------
        src.utils.errors.AuthenticationError
            If the source's credentials are missing or expired.
        src.utils.errors.SyncError
            If enumeration itself fails.
        """

    @abstractmethod
    async def fetch_resource(self, source: DataSource, ref: ResourceRef) -> RawResource:
        """Download the raw content of one resource.

        Raises :class:`~src.utils.errors.FetchError` on network or HTTP
        failure.
        """

    @abstractmethod
    async def parse_content(self, raw: RawResource) -> ParsedResource:
        """Turn raw content into text or pre-split chunks.

        Raises :class:`~src.utils.errors.ParseError` for unsupported or
        malformed content.
        """

    @abstractmethod
    async def sync(self, source: DataSource) -> SyncResult:
        """Fully replace the chunk set of *source* from its origin."""

    def get_provider_name(self) -> str:
        return self.source_type.value
