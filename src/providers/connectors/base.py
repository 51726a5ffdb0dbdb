"""Shared connector plumbing.

# ─── DESIGN ────────────────────────────────────────────────────────────
#
# Every connector receives one ConnectorContext carrying the collaborators
# it needs (store, chunker, pipeline, parser, HTTP client, secret store,
# settings).  BaseConnector implements the sync template once:
#
#   delete chunks → list resources → for each resource:
#       fetch (with timeout) → parse → chunk → embed & tag → persist
#
# A FetchError, ParseError, HTTP error or timeout on one resource skips
# that resource and the loop continues.  Anything raised by
# list_resources (auth, enumeration) propagates to the orchestrator.
#
# Pattern: Template Method (sync), with connectors overriding the three
# building blocks.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from src.config.settings import Settings
from src.interfaces.connector import IConnector
from src.interfaces.document_parser import IDocumentParser
from src.interfaces.knowledge_store import IKnowledgeStore
from src.interfaces.secret_store import ISecretStore
from src.models.knowledge import (
    ChunkMetadata,
    DataSource,
    DocumentChunk,
    ParsedResource,
    RawResource,
    SourceCredentials,
    SyncResult,
)
from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.embedding_pipeline import EmbeddingPipeline
from src.utils.errors import AuthenticationError, FetchError, ParseError, SyncError

logger = structlog.get_logger(logger_name=__name__)

# Failures that skip one resource without failing the sync.
RESOURCE_ERRORS: tuple[type[BaseException], ...] = (
    FetchError,
    ParseError,
    httpx.HTTPError,
    asyncio.TimeoutError,
)


@dataclass
class ConnectorContext:
    """Collaborators shared by every connector instance."""

    store: IKnowledgeStore
    chunker: TextChunker
    pipeline: EmbeddingPipeline
    parser: IDocumentParser
    http_client: httpx.AsyncClient
    secret_store: ISecretStore
    settings: Settings


class BaseConnector(IConnector):
    """Template-method base for connectors that enumerate discrete resources.

    Subclasses set ``source_type`` and implement :meth:`list_resources`
    and :meth:`fetch_resource`.  The default :meth:`parse_content` hands
    the raw bytes to the document parser.
    """

    def __init__(self, context: ConnectorContext) -> None:
        self._ctx = context

    # ------------------------------------------------------------------
    # Sync template
    # ------------------------------------------------------------------

    async def sync(self, source: DataSource) -> SyncResult:
        removed = await self._ctx.store.delete_chunks_by_source(source.tenant_id, source.id)
        refs = await self.list_resources(source)
        logger.info(
            "connector_sync_started",
            connector=self.get_provider_name(),
            resources=len(refs),
            chunks_removed=removed,
        )

        item_count = 0
        processed = 0
        skipped = 0
        for ref in refs:
            try:
                raw = await asyncio.wait_for(
                    self.fetch_resource(source, ref),
                    timeout=self._ctx.settings.resource_fetch_timeout,
                )
                parsed = await self.parse_content(raw)
            except RESOURCE_ERRORS as exc:
                skipped += 1
                logger.warning(
                    "resource_skipped",
                    connector=self.get_provider_name(),
                    resource_id=ref.id,
                    resource_name=ref.name,
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
                continue
            item_count += await self.ingest(source, parsed)
            processed += 1

        return SyncResult(
            source=source,
            item_count=item_count,
            resources_processed=processed,
            resources_skipped=skipped,
        )

    async def parse_content(self, raw: RawResource) -> ParsedResource:
        document = await self._ctx.parser.parse(raw.data, raw.mime_type)
        return ParsedResource(
            title=raw.ref.name or document.title or "Untitled",
            text=document.text,
            chunks=document.chunks,
            url=raw.ref.url,
        )

    async def ingest(self, source: DataSource, parsed: ParsedResource) -> int:
        """Chunk, annotate and persist one parsed resource.

        Pre-split chunks from the parser are used as-is; otherwise the text
        is split with the fixed-size policy.  Returns the number of chunks
        written.
        """
        texts = parsed.chunks if parsed.chunks is not None else self._ctx.chunker.chunk(parsed.text)
        texts = [text for text in texts if text.strip()]
        if not texts:
            return 0

        annotations = await self._ctx.pipeline.annotate(texts)
        metadata = ChunkMetadata(
            source_type=source.type,
            url=parsed.url,
            section=parsed.section or None,
        )
        chunks = [
            DocumentChunk(
                tenant_id=source.tenant_id,
                source_id=source.id,
                title=parsed.title,
                content=text,
                embedding=embedding,
                tags=tags,
                metadata=metadata,
            )
            for text, (embedding, tags) in zip(texts, annotations)
        ]
        return await self._ctx.store.add_chunks(source.tenant_id, chunks)

    # ------------------------------------------------------------------
    # Helpers for HTTP-backed connectors
    # ------------------------------------------------------------------

    async def credentials(self, source: DataSource) -> SourceCredentials:
        """Resolve credentials from the source or the secret store.

        Raises
        ------
        AuthenticationError
            If no credentials exist or they have expired.
        """
        creds = source.auth or await self._ctx.secret_store.get(source.tenant_id, source.id)
        if creds is None:
            raise AuthenticationError(
                message=f"{self.get_provider_name()} source is not authenticated",
                provider_name=self.get_provider_name(),
            )
        if creds.is_expired():
            raise AuthenticationError(
                message=f"{self.get_provider_name()} credentials expired at {creds.expires_at}",
                provider_name=self.get_provider_name(),
            )
        return creds

    def require_token(self, creds: SourceCredentials, *fields: str) -> str:
        """Return the first non-empty credential field among *fields*."""
        for field_name in fields:
            value = getattr(creds, field_name, None)
            if value:
                return value
        raise AuthenticationError(
            message=f"{self.get_provider_name()} credentials lack {' or '.join(fields)}",
            provider_name=self.get_provider_name(),
        )

    async def request(
        self,
        method: str,
        url: str,
        *,
        listing: bool = False,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send an HTTP request and translate failures into the error taxonomy.

        401 becomes :class:`AuthenticationError`, as does 403 while *listing*.
        A 403 on a single resource is a per-item denial and becomes
        :class:`FetchError`.  Other failures become :class:`SyncError` when
        *listing* (enumeration is sync-level) and :class:`FetchError`
        otherwise (the resource is skipped).
        """
        error_cls = SyncError if listing else FetchError
        try:
            response = await self._ctx.http_client.request(method, url, **kwargs)
        except httpx.TransportError as exc:
            raise error_cls(
                message=f"Request to {url} failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if response.status_code == 401 or (listing and response.status_code == 403):
            raise AuthenticationError(
                message=f"{self.get_provider_name()} rejected credentials ({response.status_code})",
                provider_name=self.get_provider_name(),
            )
        if not response.is_success:
            raise error_cls(
                message=f"{method} {url} returned HTTP {response.status_code}",
                provider_name=self.get_provider_name(),
            )
        return response

    def decode_json(self, response: httpx.Response, resource: str) -> Any:
        """Decode a resource response body, raising :class:`ParseError` if it is not JSON."""
        try:
            return response.json()
        except ValueError as exc:
            raise ParseError(
                message=f"Non-JSON response for {resource}",
                provider_name=self.get_provider_name(),
            ) from exc
