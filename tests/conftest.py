"""Shared pytest fixtures for the knowledge ingestion test suite."""

from __future__ import annotations

import hashlib
import re
from collections.abc import Callable

import httpx
import pytest

from src.config.settings import Settings
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.pipeline.sync_orchestrator import SyncOrchestrator
from src.providers.connectors.base import ConnectorContext
from src.providers.connectors.registry import ConnectorRegistry
from src.providers.parser.document_parser import DocumentParser
from src.providers.secrets.memory_secret_store import MemorySecretStore
from src.providers.store.memory_store import MemoryKnowledgeStore
from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.content_tagger import ContentTagger
from src.services.ingestion.embedding_pipeline import EmbeddingPipeline
from src.services.knowledge_base import KnowledgeBase
from src.utils.errors import EmbeddingError

# ---------------------------------------------------------------------------
# Fake providers
# ---------------------------------------------------------------------------

_WORD_RE = re.compile(r"[a-z0-9]+")


class HashingEmbeddingProvider(IEmbeddingProvider):
    """Deterministic bag-of-words embeddings.

    Each word is hashed into one of ``dimension`` buckets, so texts that
    share words have a high cosine similarity.  Any text containing
    ``fail_marker`` raises :class:`EmbeddingError`.
    """

    def __init__(self, dimension: int = 64, fail_marker: str | None = None) -> None:
        self._dimension = dimension
        self._fail_marker = fail_marker
        self.calls = 0

    async def embed(self, texts: list[str]) -> list[list[float]]:
        return [await self.embed_single(text) for text in texts]

    async def embed_single(self, text: str) -> list[float]:
        self.calls += 1
        if self._fail_marker and self._fail_marker in text:
            raise EmbeddingError(message="simulated outage", provider_name="hashing")
        vector = [0.0] * self._dimension
        for word in _WORD_RE.findall(text.lower()):
            bucket = int(hashlib.md5(word.encode()).hexdigest(), 16) % self._dimension  # noqa: S324
            vector[bucket] += 1.0
        return vector

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return "hashing"

    def is_available(self) -> bool:
        return True


# ---------------------------------------------------------------------------
# HTTP mocking
# ---------------------------------------------------------------------------

Route = httpx.Response | Callable[[httpx.Request], httpx.Response]


def html_page(title: str, body: str, links: tuple[str, ...] = ()) -> httpx.Response:
    """Build a 200 text/html response with a title, main content and links."""
    anchors = "".join(f'<a href="{link}">{link}</a>' for link in links)
    html = (
        f"<html><head><title>{title}</title></head>"
        f"<body><nav>{anchors}</nav><main><h1>{title}</h1><p>{body}</p></main></body></html>"
    )
    return httpx.Response(200, text=html, headers={"content-type": "text/html; charset=utf-8"})


class MockWeb:
    """Route table for an ``httpx.MockTransport``; unknown URLs return 404.

    Routes are keyed by ``scheme://host/path`` (query strings ignored).
    Every request is recorded in :attr:`requests`.
    """

    def __init__(self) -> None:
        self.routes: dict[str, Route] = {}
        self.requests: list[httpx.Request] = []

    def add(self, url: str, route: Route) -> None:
        self.routes[url] = route

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = f"{request.url.scheme}://{request.url.host}{request.url.path}"
        route = self.routes.get(key)
        if route is None:
            return httpx.Response(404, text="not found")
        if callable(route):
            return route(request)
        # Fresh response per request; a route may be served many times.
        return httpx.Response(route.status_code, headers=route.headers, content=route.content)

    def paths_requested(self) -> list[str]:
        return [request.url.path for request in self.requests]


# ---------------------------------------------------------------------------
# Component fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    """Settings with no crawl delay and no .env influence."""
    return Settings(
        _env_file=None,
        knowledge_store_backend="memory",
        crawler_rate_limit_seconds=0.0,
        crawler_default_max_depth=2,
        crawler_default_max_pages=10,
        resource_fetch_timeout=5.0,
        tagging_enabled=False,
        max_concurrent_syncs=4,
    )


@pytest.fixture
def store() -> MemoryKnowledgeStore:
    return MemoryKnowledgeStore()


@pytest.fixture
def secret_store() -> MemorySecretStore:
    return MemorySecretStore()


@pytest.fixture
def chunker() -> TextChunker:
    return TextChunker(chunk_size=200, overlap=20)


@pytest.fixture
def embedding_provider() -> HashingEmbeddingProvider:
    return HashingEmbeddingProvider()


@pytest.fixture
def pipeline(embedding_provider: HashingEmbeddingProvider) -> EmbeddingPipeline:
    return EmbeddingPipeline(embedding_provider=embedding_provider, tagger=ContentTagger())


@pytest.fixture
def parser(chunker: TextChunker) -> DocumentParser:
    return DocumentParser(chunker=chunker)


@pytest.fixture
def web() -> MockWeb:
    return MockWeb()


@pytest.fixture
def http_client(web: MockWeb) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(web.handler))


@pytest.fixture
def context(
    store: MemoryKnowledgeStore,
    chunker: TextChunker,
    pipeline: EmbeddingPipeline,
    parser: DocumentParser,
    http_client: httpx.AsyncClient,
    secret_store: MemorySecretStore,
    settings: Settings,
) -> ConnectorContext:
    return ConnectorContext(
        store=store,
        chunker=chunker,
        pipeline=pipeline,
        parser=parser,
        http_client=http_client,
        secret_store=secret_store,
        settings=settings,
    )


@pytest.fixture
def registry(context: ConnectorContext) -> ConnectorRegistry:
    return ConnectorRegistry.build_default(context)


@pytest.fixture
def orchestrator(store: MemoryKnowledgeStore, registry: ConnectorRegistry) -> SyncOrchestrator:
    return SyncOrchestrator(store=store, registry=registry, max_concurrent_syncs=4)


@pytest.fixture
def knowledge_base(
    store: MemoryKnowledgeStore,
    orchestrator: SyncOrchestrator,
    registry: ConnectorRegistry,
    pipeline: EmbeddingPipeline,
    secret_store: MemorySecretStore,
    parser: DocumentParser,
) -> KnowledgeBase:
    return KnowledgeBase(
        store=store,
        orchestrator=orchestrator,
        registry=registry,
        pipeline=pipeline,
        secret_store=secret_store,
        parser=parser,
    )


@pytest.fixture
def sample_text() -> str:
    """Multi-paragraph plain text used across chunking and parsing tests."""
    paragraphs = [
        "Our platform encrypts customer data at rest with AES-256 and in transit with TLS 1.2.",
        "Single sign-on is available through SAML and OAuth providers for every plan.",
        "Support tickets are answered within four business hours under the standard SLA.",
        "Pricing is per seat with annual subscription discounts for larger teams.",
        "Audit logs are retained for one year and can be exported for compliance reviews.",
    ]
    return "\n\n".join(paragraphs)
