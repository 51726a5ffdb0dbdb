"""Knowledge ingestion FastAPI application entry point.

Wires together the knowledge store, providers, connectors, sync
orchestrator and routes via dependency injection.  Loads configuration
from ``.env`` and ``config/config.yaml`` and configures structured
logging.

Also exposes :func:`build_knowledge_base` for CLI or scripting usage
outside the web server.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
import uvicorn
from fastapi import FastAPI

from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from src.api.routes import router as api_router
from src.config.loader import load_config
from src.config.settings import Settings
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.knowledge_store import IKnowledgeStore
from src.interfaces.llm_provider import ILLMProvider
from src.pipeline.sync_orchestrator import SyncOrchestrator
from src.providers.connectors.base import ConnectorContext
from src.providers.connectors.registry import ConnectorRegistry
from src.providers.embedding.nomic_embedding_provider import NomicEmbeddingProvider
from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from src.providers.llm.ollama_provider import OllamaLLMProvider
from src.providers.llm.openai_provider import OpenAILLMProvider
from src.providers.parser.document_parser import DocumentParser
from src.providers.secrets.memory_secret_store import MemorySecretStore
from src.providers.store.memory_store import MemoryKnowledgeStore
from src.providers.store.sqlite_store import SQLiteKnowledgeStore
from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.content_tagger import ContentTagger
from src.services.ingestion.embedding_pipeline import EmbeddingPipeline
from src.services.knowledge_base import KnowledgeBase
from src.services.search.vector_index import VectorIndex
from src.utils.logging import configure_logging, get_logger

_APP_VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()
config = load_config(settings=settings)

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def _build_llm_provider(app_settings: Settings) -> ILLMProvider:
    """Select the LLM used for chunk tagging.

    Priority order: OpenAI -> Ollama (always available).
    """
    if app_settings.openai_api_key:
        return OpenAILLMProvider(settings=app_settings)
    return OllamaLLMProvider(settings=app_settings)


def _build_embedding_provider(app_settings: Settings) -> IEmbeddingProvider:
    """Select the embedding provider.

    Priority: OpenAI/OpenAI-compatible (if API key set) -> Nomic/Ollama.
    Nomic is returned even when Ollama is unreachable; chunks are then
    stored without embeddings and the next sync fills them in.
    """
    if app_settings.openai_api_key:
        provider: IEmbeddingProvider = OpenAIEmbeddingProvider(settings=app_settings)
        if provider.is_available():
            return provider
    return NomicEmbeddingProvider(settings=app_settings)


def _build_store(app_settings: Settings) -> IKnowledgeStore:
    if app_settings.knowledge_store_backend == "memory":
        return MemoryKnowledgeStore()
    return SQLiteKnowledgeStore(db_path=app_settings.knowledge_db_path)


# ---------------------------------------------------------------------------
# Full DI assembly
# ---------------------------------------------------------------------------


def _build_all(app_settings: Settings) -> dict[str, Any]:
    """Construct every provider and service instance for the application.

    Returns a flat dict of named components to be stored on ``app.state``.
    """
    # -- Shared resources --
    http_client = httpx.AsyncClient(
        timeout=app_settings.resource_fetch_timeout,
        headers={"User-Agent": app_settings.crawler_user_agent},
    )
    store = _build_store(app_settings)
    secret_store = MemorySecretStore()

    # -- Chunking, embedding & tagging --
    chunker = TextChunker(
        chunk_size=app_settings.chunk_size,
        overlap=app_settings.chunk_overlap,
    )
    embedding_provider = _build_embedding_provider(app_settings)
    tagger: ContentTagger | None = None
    llm_name = "none"
    if app_settings.tagging_enabled:
        llm = _build_llm_provider(app_settings)
        tagger = ContentTagger(llm=llm)
        llm_name = llm.get_provider_name()
    pipeline = EmbeddingPipeline(
        embedding_provider=embedding_provider,
        tagger=tagger,
        max_concurrent=app_settings.enrichment_concurrency,
    )
    parser = DocumentParser(chunker=chunker)

    # -- Connectors & sync --
    context = ConnectorContext(
        store=store,
        chunker=chunker,
        pipeline=pipeline,
        parser=parser,
        http_client=http_client,
        secret_store=secret_store,
        settings=app_settings,
    )
    registry = ConnectorRegistry.build_default(context)
    orchestrator = SyncOrchestrator(
        store=store,
        registry=registry,
        max_concurrent_syncs=app_settings.max_concurrent_syncs,
    )

    knowledge_base = KnowledgeBase(
        store=store,
        orchestrator=orchestrator,
        registry=registry,
        pipeline=pipeline,
        secret_store=secret_store,
        parser=parser,
        vector_index=VectorIndex(),
        sync_on_create=app_settings.sync_on_create,
    )

    provider_registry: dict[str, Any] = {
        "store": store.get_provider_name(),
        "embedding": embedding_provider.get_provider_name(),
        "llm": llm_name,
        "connectors": [t.value for t in registry.supported_types()],
    }

    return {
        "settings": app_settings,
        "http_client": http_client,
        "store": store,
        "secret_store": secret_store,
        "pipeline": pipeline,
        "registry": registry,
        "orchestrator": orchestrator,
        "knowledge_base": knowledge_base,
        "provider_registry": provider_registry,
    }


async def build_knowledge_base(custom_settings: Settings | None = None) -> dict[str, Any]:
    """Build and initialise all components outside the web server.

    The caller owns shutdown: ``await components["orchestrator"].shutdown()``
    then ``await components["http_client"].aclose()``.
    """
    components = _build_all(custom_settings or settings)
    await components["store"].initialize()
    return components


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Initialise all providers and services on startup, clean up on shutdown."""
    components = await build_knowledge_base(settings)

    for key, value in components.items():
        setattr(application.state, key, value)

    _logger.info(
        "app_startup",
        version=_APP_VERSION,
        environment=settings.app_env,
        providers=components["provider_registry"],
    )

    yield

    # -- Shutdown: stop running syncs, then close the shared httpx client --
    orchestrator: SyncOrchestrator = components["orchestrator"]
    await orchestrator.shutdown()
    http_client: httpx.AsyncClient = components["http_client"]
    await http_client.aclose()
    _logger.info("app_shutdown", message="Syncs stopped, HTTP client closed")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title="Knowledge Ingest API",
        version=_APP_VERSION,
        description=(
            "Connect websites, cloud drives and collaboration tools, sync their "
            "content into a tenant-isolated knowledge base of embedded chunks, "
            "and run semantic search over it."
        ),
        lifespan=_lifespan,
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application)

    # -- API routes --
    application.include_router(api_router)

    return application


app = create_app()

# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def main() -> None:
    uvicorn.run(
        "src.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )


if __name__ == "__main__":
    main()
