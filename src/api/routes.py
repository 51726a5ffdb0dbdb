"""FastAPI API routes for the knowledge ingestion service.

Provides REST endpoints for data source registration, sync triggering,
status polling, credential attachment, document upload and semantic
search.  The KnowledgeBase is resolved from ``app.state`` via FastAPI's
``Depends`` using the ``Annotated`` pattern.

# ─── API ROUTE MAP ────────────────────────────────────────────────────
#
# Endpoint                                        Method  Description
# ─────────────────────────────────────────────────────────────────────
# /api/v1/tenants/{t}/sources                     POST    Register a source
# /api/v1/tenants/{t}/sources                     GET     List sources
# /api/v1/tenants/{t}/sources/{sid}               GET     Poll source status
# /api/v1/tenants/{t}/sources/{sid}               DELETE  Delete source + chunks
# /api/v1/tenants/{t}/sources/{sid}/sync          POST    Trigger a (re-)sync
# /api/v1/tenants/{t}/sources/{sid}/credentials   PUT     Attach credentials
# /api/v1/tenants/{t}/sources/{sid}/logs          GET     Sync audit trail
# /api/v1/tenants/{t}/documents                   POST    Upload a document
# /api/v1/tenants/{t}/search                      POST    Semantic search
# /api/v1/cron/sync-all                           POST    Re-sync everything
# /api/v1/health                                  GET     Health check
#
# Errors: KnowledgeIngestError subclasses raised by the KnowledgeBase are
# turned into JSON by ErrorHandlingMiddleware (404 / 400 / 500).
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import hmac
from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Request, UploadFile

from src.api.schemas import (
    CredentialsRequest,
    DeleteSourceResponse,
    ErrorResponse,
    HealthResponse,
    RegisterSourceRequest,
    SearchHit,
    SearchRequest,
    SearchResponse,
    SourceListResponse,
    SourceResponse,
    SyncAllResponse,
    SyncLogListResponse,
    SyncLogResponse,
)
from src.config.settings import Settings
from src.services.knowledge_base import KnowledgeBase
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

# All routes in this file are prefixed with /api/v1.
router = APIRouter(prefix="/api/v1")

_MAX_UPLOAD_SIZE = 25 * 1024 * 1024  # 25 MB
_UPLOAD_CHUNK_SIZE = 64 * 1024


# ---------------------------------------------------------------------------
# Dependency injection helpers — resolve components from app.state
# ---------------------------------------------------------------------------


def _get_knowledge_base(request: Request) -> KnowledgeBase:
    """Return the knowledge base facade from application state."""
    return request.app.state.knowledge_base


def _get_settings(request: Request) -> Settings:
    return request.app.state.settings


KnowledgeBaseDep = Annotated[KnowledgeBase, Depends(_get_knowledge_base)]
SettingsDep = Annotated[Settings, Depends(_get_settings)]

_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
}


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------


@router.post(
    "/tenants/{tenant_id}/sources",
    response_model=SourceResponse,
    status_code=201,
    responses=_ERROR_RESPONSES,
    summary="Register a data source",
)
async def register_source(
    tenant_id: str,
    body: RegisterSourceRequest,
    kb: KnowledgeBaseDep,
) -> SourceResponse:
    """Create a source; returns immediately with status Pending or Syncing."""
    source = await kb.register_source(
        tenant_id,
        body.type,
        body.name,
        config=body.config,
        auth=body.credentials.to_credentials() if body.credentials else None,
        sync=body.sync,
    )
    return SourceResponse.from_source(source)


@router.get(
    "/tenants/{tenant_id}/sources",
    response_model=SourceListResponse,
    summary="List a tenant's data sources",
)
async def list_sources(tenant_id: str, kb: KnowledgeBaseDep) -> SourceListResponse:
    sources = await kb.list_sources(tenant_id)
    return SourceListResponse(
        sources=[SourceResponse.from_source(s) for s in sources],
        total=len(sources),
    )


@router.get(
    "/tenants/{tenant_id}/sources/{source_id}",
    response_model=SourceResponse,
    responses=_ERROR_RESPONSES,
    summary="Get a data source (poll sync status)",
)
async def get_source(tenant_id: str, source_id: str, kb: KnowledgeBaseDep) -> SourceResponse:
    return SourceResponse.from_source(await kb.get_source(tenant_id, source_id))


@router.delete(
    "/tenants/{tenant_id}/sources/{source_id}",
    response_model=DeleteSourceResponse,
    responses=_ERROR_RESPONSES,
    summary="Delete a data source with its chunks and logs",
)
async def delete_source(
    tenant_id: str, source_id: str, kb: KnowledgeBaseDep
) -> DeleteSourceResponse:
    deleted = await kb.delete_source(tenant_id, source_id)
    if not deleted:
        raise HTTPException(status_code=404, detail=f"No data source {source_id}")
    return DeleteSourceResponse(source_id=source_id, deleted=True)


@router.post(
    "/tenants/{tenant_id}/sources/{source_id}/sync",
    response_model=SourceResponse,
    status_code=202,
    responses=_ERROR_RESPONSES,
    summary="Trigger a sync (no-op if one is already running)",
)
async def start_sync(tenant_id: str, source_id: str, kb: KnowledgeBaseDep) -> SourceResponse:
    return SourceResponse.from_source(await kb.start_sync(tenant_id, source_id))


@router.put(
    "/tenants/{tenant_id}/sources/{source_id}/credentials",
    response_model=SourceResponse,
    status_code=202,
    responses=_ERROR_RESPONSES,
    summary="Attach connector credentials and start a sync",
)
async def connect_credentials(
    tenant_id: str,
    source_id: str,
    body: CredentialsRequest,
    kb: KnowledgeBaseDep,
) -> SourceResponse:
    source = await kb.connect_credentials(tenant_id, source_id, body.to_credentials())
    return SourceResponse.from_source(source)


@router.get(
    "/tenants/{tenant_id}/sources/{source_id}/logs",
    response_model=SyncLogListResponse,
    responses=_ERROR_RESPONSES,
    summary="List a source's sync logs",
)
async def list_sync_logs(
    tenant_id: str, source_id: str, kb: KnowledgeBaseDep
) -> SyncLogListResponse:
    logs = await kb.list_sync_logs(tenant_id, source_id)
    return SyncLogListResponse(logs=[SyncLogResponse.from_log(log) for log in logs], total=len(logs))


# ---------------------------------------------------------------------------
# Documents & search
# ---------------------------------------------------------------------------


@router.post(
    "/tenants/{tenant_id}/documents",
    response_model=SourceResponse,
    status_code=202,
    responses={**_ERROR_RESPONSES, 413: {"model": ErrorResponse}},
    summary="Upload a document (PDF, DOCX, XLSX, HTML, Markdown, text, CSV)",
)
async def upload_document(
    tenant_id: str,
    file: UploadFile,
    kb: KnowledgeBaseDep,
    wait: bool = False,
) -> SourceResponse:
    # Read in chunks so an oversized upload is rejected early.
    chunks: list[bytes] = []
    total_size = 0
    while True:
        chunk = await file.read(_UPLOAD_CHUNK_SIZE)
        if not chunk:
            break
        total_size += len(chunk)
        if total_size > _MAX_UPLOAD_SIZE:
            raise HTTPException(
                status_code=413,
                detail=f"File too large: maximum is {_MAX_UPLOAD_SIZE // (1024 * 1024)} MB",
            )
        chunks.append(chunk)
    data = b"".join(chunks)

    source = await kb.upload_document(
        tenant_id,
        file.filename or "upload",
        data,
        mime_type=file.content_type,
        wait=wait,
    )
    return SourceResponse.from_source(source)


@router.post(
    "/tenants/{tenant_id}/search",
    response_model=SearchResponse,
    summary="Semantic search over a tenant's chunks",
)
async def search(tenant_id: str, body: SearchRequest, kb: KnowledgeBaseDep) -> SearchResponse:
    scored = await kb.search_scored(
        tenant_id,
        body.query,
        top_k=body.top_k,
        source_types=body.source_types,
    )
    return SearchResponse(
        query=body.query,
        results=[SearchHit.from_scored(item) for item in scored],
        total=len(scored),
    )


# ---------------------------------------------------------------------------
# Cron & health
# ---------------------------------------------------------------------------


@router.post(
    "/cron/sync-all",
    response_model=SyncAllResponse,
    status_code=202,
    responses={401: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    summary="Start a sync for every source of every tenant",
)
async def cron_sync_all(
    kb: KnowledgeBaseDep,
    settings: SettingsDep,
    authorization: Annotated[str | None, Header()] = None,
) -> SyncAllResponse:
    if not settings.cron_secret:
        raise HTTPException(status_code=503, detail="Cron sync is not configured")
    expected = f"Bearer {settings.cron_secret}"
    if authorization is None or not hmac.compare_digest(authorization, expected):
        _logger.warning("cron_unauthorized")
        raise HTTPException(status_code=401, detail="Unauthorized")

    sources = await kb.sync_all()
    return SyncAllResponse(
        started=len(sources),
        sources=[SourceResponse.from_source(s) for s in sources],
    )


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health_check(request: Request) -> HealthResponse:
    """Return application health, version, and provider configuration."""
    providers: dict[str, Any] = {}
    if hasattr(request.app.state, "provider_registry"):
        providers = dict(request.app.state.provider_registry)
    return HealthResponse(status="healthy", version="0.1.0", providers=providers)
