"""Knowledge base facade: the operations exposed to callers.

Registration, sync triggering, status polling, deletion and semantic
search for tenant-scoped data sources, plus document upload and
credential attachment.  Every method takes ``tenant_id`` and scopes all
reads and writes by it.

Components are injected by main.py; this class never builds its own
store, connectors or providers.
"""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from src.interfaces.document_parser import IDocumentParser
from src.interfaces.knowledge_store import IKnowledgeStore
from src.interfaces.secret_store import ISecretStore
from src.models.knowledge import (
    DataSource,
    DataSourceType,
    DocumentChunk,
    ScoredChunk,
    SourceConfig,
    SourceCredentials,
    SyncLog,
)
from src.pipeline.sync_orchestrator import SyncOrchestrator
from src.providers.connectors.registry import ConnectorRegistry
from src.providers.connectors.website_crawler import normalize_url
from src.providers.parser.document_parser import guess_mime_type
from src.services.ingestion.embedding_pipeline import EmbeddingPipeline
from src.services.search.vector_index import DEFAULT_TOP_K, VectorIndex
from src.utils.errors import (
    SourceNotFoundError,
    SourceValidationError,
    UnsupportedSourceError,
)
from src.utils.logging import get_logger

logger = get_logger(__name__)

# Sources on these platforms cannot sync until credentials are attached.
CREDENTIALED_TYPES = frozenset(
    {
        DataSourceType.GDRIVE,
        DataSourceType.DROPBOX,
        DataSourceType.SHAREPOINT,
        DataSourceType.CONFLUENCE,
        DataSourceType.NOTION,
        DataSourceType.GITHUB,
    }
)


class KnowledgeBase:
    """Tenant-scoped knowledge ingestion and retrieval.

    Parameters
    ----------
    store:
        Persistence for sources, chunks and logs.
    orchestrator:
        Runs syncs in the background and owns source status.
    registry:
        Connector dispatch; also supplies the document connector used to
        stage uploads.
    pipeline:
        Embeds search queries with the same model used for chunks.
    secret_store:
        Holds connector credentials outside the knowledge store.
    parser:
        Used to reject unsupported upload types before a source is created.
    vector_index:
        Ranking engine for search.
    sync_on_create:
        Start a sync as soon as a source is registered, when it can run.
    """

    def __init__(
        self,
        store: IKnowledgeStore,
        orchestrator: SyncOrchestrator,
        registry: ConnectorRegistry,
        pipeline: EmbeddingPipeline,
        secret_store: ISecretStore,
        parser: IDocumentParser,
        vector_index: VectorIndex | None = None,
        sync_on_create: bool = True,
    ) -> None:
        self._store = store
        self._orchestrator = orchestrator
        self._registry = registry
        self._pipeline = pipeline
        self._secret_store = secret_store
        self._parser = parser
        self._index = vector_index or VectorIndex()
        self._sync_on_create = sync_on_create

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------

    async def register_source(
        self,
        tenant_id: str,
        source_type: DataSourceType | str,
        name: str,
        config: SourceConfig | dict[str, Any] | None = None,
        auth: SourceCredentials | None = None,
        sync: bool | None = None,
    ) -> DataSource:
        """Create a data source and, when possible, start its first sync.

        The returned source is ``Syncing`` if a sync was started and
        ``Pending`` otherwise.  Credential-backed platforms stay
        ``Pending`` until credentials are supplied.

        Raises
        ------
        SourceValidationError
            Unknown type, empty name, invalid config or a website name that
            is not an http(s) URL.
        UnsupportedSourceError
            No connector is registered for the type.
        """
        if not tenant_id or not tenant_id.strip():
            raise SourceValidationError(message="tenant_id is required")
        try:
            source_type = DataSourceType(source_type)
        except ValueError as exc:
            raise SourceValidationError(message=f"Unknown source type: {source_type}") from exc
        if not self._registry.supports(source_type):
            raise UnsupportedSourceError(
                message=f"No connector is available for source type '{source_type.value}'",
                provider_name=source_type.value,
            )

        name = (name or "").strip()
        if not name:
            raise SourceValidationError(message="Source name is required")
        if source_type is DataSourceType.WEBSITE and normalize_url(name) is None:
            raise SourceValidationError(message=f"Website source name must be an http(s) URL: {name}")

        try:
            source_config = SourceConfig.model_validate(config or {})
        except ValidationError as exc:
            raise SourceValidationError(message=f"Invalid source config: {exc}") from exc

        source = await self._store.create_source(
            DataSource(tenant_id=tenant_id, type=source_type, name=name, config=source_config)
        )
        if auth is not None:
            await self._secret_store.put(tenant_id, source.id, auth)
        logger.info(
            "source_registered",
            tenant_id=tenant_id,
            source_id=source.id,
            source_type=source_type.value,
        )

        should_sync = self._sync_on_create if sync is None else sync
        if should_sync and self._can_sync_now(source_type, has_auth=auth is not None):
            await self._orchestrator.start_sync(source)
            return await self.get_source(tenant_id, source.id)
        return source

    async def get_source(self, tenant_id: str, source_id: str) -> DataSource:
        """Return a source; used for polling sync status."""
        source = await self._store.get_source(tenant_id, source_id)
        if source is None:
            raise SourceNotFoundError(message=f"No data source {source_id} for tenant {tenant_id}")
        return source

    async def list_sources(self, tenant_id: str) -> list[DataSource]:
        return await self._store.list_sources(tenant_id)

    async def delete_source(self, tenant_id: str, source_id: str) -> bool:
        """Delete a source with its chunks, logs, credentials and staged upload.

        A running sync is cancelled first.  Returns ``False`` if the source
        did not exist.
        """
        await self._orchestrator.cancel(tenant_id, source_id)
        deleted = await self._store.delete_source(tenant_id, source_id)
        await self._secret_store.delete(tenant_id, source_id)
        if self._registry.supports(DataSourceType.DOCUMENT):
            self._registry.document_connector.discard(tenant_id, source_id)
        return deleted

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    async def start_sync(self, tenant_id: str, source_id: str) -> DataSource:
        """Trigger a sync; joins the running one if already syncing."""
        source = await self.get_source(tenant_id, source_id)
        await self._orchestrator.start_sync(source)
        return await self.get_source(tenant_id, source_id)

    async def wait_for_sync(self, tenant_id: str, source_id: str) -> DataSource:
        """Wait until no sync is running for the source and return it."""
        await self._orchestrator.wait(tenant_id, source_id)
        return await self.get_source(tenant_id, source_id)

    async def sync_all(self) -> list[DataSource]:
        """Start a sync for every syncable source of every tenant."""
        started: list[DataSource] = []
        for source in await self._store.list_sources():
            if source.type is DataSourceType.DOCUMENT:
                continue
            await self._orchestrator.start_sync(source)
            started.append(await self.get_source(source.tenant_id, source.id))
        logger.info("sync_all_started", sources=len(started))
        return started

    async def list_sync_logs(self, tenant_id: str, source_id: str) -> list[SyncLog]:
        await self.get_source(tenant_id, source_id)
        return await self._store.list_logs(tenant_id, source_id)

    async def connect_credentials(
        self, tenant_id: str, source_id: str, credentials: SourceCredentials
    ) -> DataSource:
        """Attach credentials to a source and start a sync with them."""
        source = await self.get_source(tenant_id, source_id)
        await self._secret_store.put(tenant_id, source_id, credentials)
        logger.info("credentials_connected", tenant_id=tenant_id, source_id=source_id)
        await self._orchestrator.start_sync(source)
        return await self.get_source(tenant_id, source_id)

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def upload_document(
        self,
        tenant_id: str,
        filename: str,
        data: bytes,
        mime_type: str | None = None,
        wait: bool = False,
    ) -> DataSource:
        """Register a document source for an upload and ingest it.

        With ``wait=True`` the call returns after the sync finishes;
        otherwise it returns the ``Syncing`` source immediately.
        """
        if not data:
            raise SourceValidationError(message="Uploaded document is empty")
        resolved_mime = guess_mime_type(filename, mime_type)
        if not self._parser.supports(resolved_mime):
            raise SourceValidationError(message=f"Unsupported document type: {resolved_mime}")

        source = await self.register_source(tenant_id, DataSourceType.DOCUMENT, filename, sync=False)
        self._registry.document_connector.stage(tenant_id, source.id, filename, data, resolved_mime)
        task = await self._orchestrator.start_sync(source)
        if wait:
            await task
        return await self.get_source(tenant_id, source.id)

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def search(
        self,
        tenant_id: str,
        query: str,
        top_k: int = DEFAULT_TOP_K,
        source_types: list[DataSourceType] | None = None,
    ) -> list[DocumentChunk]:
        """Return the tenant's chunks most similar to *query*, best first."""
        scored = await self.search_scored(tenant_id, query, top_k=top_k, source_types=source_types)
        return [item.chunk for item in scored]

    async def search_scored(
        self,
        tenant_id: str,
        query: str,
        top_k: int = DEFAULT_TOP_K,
        source_types: list[DataSourceType] | None = None,
    ) -> list[ScoredChunk]:
        """Like :meth:`search` but keeps the cosine score of each hit."""
        if not query or not query.strip() or top_k <= 0:
            return []

        # Cheap filters run in the store before any vector math.
        candidates = await self._store.list_chunks(
            tenant_id, source_types=source_types or None, embedded_only=True
        )
        if not candidates:
            return []

        query_embedding = await self._pipeline.embed(query)
        if not query_embedding:
            logger.warning("search_query_not_embedded", tenant_id=tenant_id)
            return []

        results = self._index.rank(query_embedding, candidates, top_k=top_k)
        logger.info(
            "search_complete",
            tenant_id=tenant_id,
            candidates=len(candidates),
            returned=len(results),
        )
        return results

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _can_sync_now(self, source_type: DataSourceType, has_auth: bool) -> bool:
        if source_type is DataSourceType.DOCUMENT:
            return False
        return has_auth or source_type not in CREDENTIALED_TYPES
