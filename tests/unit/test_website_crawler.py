"""Unit tests for the breadth-first website crawler connector.

HTTP is served by an ``httpx.MockTransport`` route table (see conftest),
so every test controls exactly which pages exist and can assert which
URLs were requested.
"""

from __future__ import annotations

import httpx
import pytest

from src.models.knowledge import DataSource, DataSourceType, RawResource, ResourceRef, SourceConfig
from src.providers.connectors.base import ConnectorContext
from src.providers.connectors.website_crawler import (
    CrawlScope,
    OriginRateLimiter,
    WebsiteCrawlerConnector,
    matches_keywords,
    normalize_url,
    origin_of,
)
from src.providers.store.memory_store import MemoryKnowledgeStore
from src.utils.errors import ParseError, SyncError
from tests.conftest import MockWeb, html_page

SITE = "https://site.test"


def _website(name: str = SITE, **config: object) -> DataSource:
    return DataSource(
        tenant_id="t1",
        type=DataSourceType.WEBSITE,
        name=name,
        config=SourceConfig(**config),
    )


def _page_requests(web: MockWeb) -> list[str]:
    """Paths fetched, excluding robots.txt and sitemap.xml."""
    return [p for p in web.paths_requested() if p not in ("/robots.txt", "/sitemap.xml")]


# ---------------------------------------------------------------------------
# URL helpers
# ---------------------------------------------------------------------------


class TestUrlHelpers:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("HTTPS://Site.Test", "https://site.test/"),
            ("https://site.test/a?b=1#frag", "https://site.test/a"),
            ("http://site.test/docs/", "http://site.test/docs/"),
            ("ftp://site.test/file", None),
            ("not a url", None),
            ("mailto:someone@site.test", None),
        ],
    )
    def test_normalize_url(self, raw: str, expected: str | None) -> None:
        assert normalize_url(raw) == expected

    def test_origin_of(self) -> None:
        assert origin_of("https://site.test/a/b") == "https://site.test"

    def test_matches_keywords_case_insensitive(self) -> None:
        assert matches_keywords(["Security"], "https://x/a", "Our SECURITY page")
        assert not matches_keywords(["security"], "https://x/pricing", "Pricing")

    def test_no_keywords_matches_everything(self) -> None:
        assert matches_keywords([], "anything")

    def test_scope_allows(self) -> None:
        scope = CrawlScope(origin=SITE, prefix=f"{SITE}/docs", exclude_paths=["/docs/internal"])

        assert scope.allows(f"{SITE}/docs/guide")
        assert scope.allows(f"{SITE}/docs")
        assert not scope.allows(f"{SITE}/docs-archive/2019")
        assert not scope.allows(f"{SITE}/blog")
        assert not scope.allows(f"{SITE}/docs/internal/secrets")
        assert not scope.allows("https://other.test/docs/guide")


# ---------------------------------------------------------------------------
# Rate limiter
# ---------------------------------------------------------------------------


class _FakeClock:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class TestOriginRateLimiter:
    @pytest.mark.asyncio
    async def test_first_request_immediate_then_spaced(self) -> None:
        clock = _FakeClock()
        limiter = OriginRateLimiter(1.0, clock=clock, sleep=clock.sleep)

        await limiter.wait(SITE)
        await limiter.wait(SITE)
        await limiter.wait(SITE)

        assert clock.sleeps == [1.0, 1.0]

    @pytest.mark.asyncio
    async def test_origins_are_independent(self) -> None:
        clock = _FakeClock()
        limiter = OriginRateLimiter(1.0, clock=clock, sleep=clock.sleep)

        await limiter.wait(SITE)
        await limiter.wait("https://other.test")

        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_no_wait_once_interval_elapsed(self) -> None:
        clock = _FakeClock()
        limiter = OriginRateLimiter(1.0, clock=clock, sleep=clock.sleep)

        await limiter.wait(SITE)
        clock.now += 5.0
        await limiter.wait(SITE)

        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_zero_interval_never_sleeps(self) -> None:
        clock = _FakeClock()
        limiter = OriginRateLimiter(0.0, clock=clock, sleep=clock.sleep)
        for _ in range(5):
            await limiter.wait(SITE)
        assert clock.sleeps == []


# ---------------------------------------------------------------------------
# Crawl behaviour
# ---------------------------------------------------------------------------


class TestCrawl:
    @pytest.mark.asyncio
    async def test_page_budget_caps_fetches(
        self, context: ConnectorContext, web: MockWeb, store: MemoryKnowledgeStore
    ) -> None:
        links = tuple(f"{SITE}/p{i}" for i in range(1, 100))
        web.add(f"{SITE}/", html_page("Home", "Welcome to the site.", links))
        for i in range(1, 100):
            web.add(f"{SITE}/p{i}", html_page(f"Page {i}", f"Body of page {i}."))
        source = _website(max_pages=10, max_depth=2)
        await store.create_source(source)

        result = await WebsiteCrawlerConnector(context).sync(source)

        assert len(_page_requests(web)) == 10
        assert result.resources_processed == 10
        assert result.item_count == 10
        assert await store.count_chunks("t1", source.id) == 10

    @pytest.mark.asyncio
    async def test_breadth_first_order(self, context: ConnectorContext, web: MockWeb) -> None:
        web.add(f"{SITE}/", html_page("Home", "root", (f"{SITE}/a", f"{SITE}/b")))
        web.add(f"{SITE}/a", html_page("A", "a", (f"{SITE}/a/deep",)))
        web.add(f"{SITE}/b", html_page("B", "b"))
        web.add(f"{SITE}/a/deep", html_page("Deep", "deep"))

        await WebsiteCrawlerConnector(context).sync(_website(max_depth=3))

        assert _page_requests(web) == ["/", "/a", "/b", "/a/deep"]

    @pytest.mark.asyncio
    async def test_max_depth_limits_link_following(
        self, context: ConnectorContext, web: MockWeb
    ) -> None:
        web.add(f"{SITE}/", html_page("Home", "root", (f"{SITE}/one",)))
        web.add(f"{SITE}/one", html_page("One", "one", (f"{SITE}/two",)))
        web.add(f"{SITE}/two", html_page("Two", "two"))

        await WebsiteCrawlerConnector(context).sync(_website(max_depth=1))

        assert _page_requests(web) == ["/", "/one"]

    @pytest.mark.asyncio
    async def test_cycles_terminate_without_refetch(
        self, context: ConnectorContext, web: MockWeb
    ) -> None:
        web.add(f"{SITE}/", html_page("Home", "root", (f"{SITE}/a", f"{SITE}/a?ref=1#top")))
        web.add(f"{SITE}/a", html_page("A", "a", (f"{SITE}/", f"{SITE}/a")))

        await WebsiteCrawlerConnector(context).sync(_website(max_depth=5, max_pages=50))

        assert _page_requests(web) == ["/", "/a"]

    @pytest.mark.asyncio
    async def test_external_links_not_followed(self, context: ConnectorContext, web: MockWeb) -> None:
        web.add(f"{SITE}/", html_page("Home", "root", ("https://elsewhere.test/page", f"{SITE}/in")))
        web.add(f"{SITE}/in", html_page("In", "inside"))

        await WebsiteCrawlerConnector(context).sync(_website())

        assert all(r.url.host == "site.test" for r in web.requests)

    @pytest.mark.asyncio
    async def test_robots_disallowed_paths_never_fetched(
        self, context: ConnectorContext, web: MockWeb
    ) -> None:
        web.add(f"{SITE}/robots.txt", httpx.Response(200, text="User-agent: *\nDisallow: /private\n"))
        web.add(f"{SITE}/", html_page("Home", "root", (f"{SITE}/public", f"{SITE}/private/secret")))
        web.add(f"{SITE}/public", html_page("Public", "open"))
        web.add(f"{SITE}/private/secret", html_page("Secret", "hidden"))

        result = await WebsiteCrawlerConnector(context).sync(_website())

        assert "/private/secret" not in web.paths_requested()
        assert _page_requests(web) == ["/", "/public"]
        assert result.resources_processed == 2

    @pytest.mark.asyncio
    async def test_disallowed_pages_do_not_consume_budget(
        self, context: ConnectorContext, web: MockWeb
    ) -> None:
        web.add(f"{SITE}/robots.txt", httpx.Response(200, text="User-agent: *\nDisallow: /x\n"))
        web.add(
            f"{SITE}/",
            html_page("Home", "root", (f"{SITE}/x1", f"{SITE}/x2", f"{SITE}/ok")),
        )
        web.add(f"{SITE}/ok", html_page("Ok", "fine"))

        result = await WebsiteCrawlerConnector(context).sync(_website(max_pages=2))

        assert _page_requests(web) == ["/", "/ok"]
        assert result.resources_processed == 2

    @pytest.mark.asyncio
    async def test_unreachable_origin_fails_sync(
        self, context: ConnectorContext, web: MockWeb
    ) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        web.add(f"{SITE}/robots.txt", refuse)

        with pytest.raises(SyncError, match="robots.txt"):
            await WebsiteCrawlerConnector(context).sync(_website())

    @pytest.mark.asyncio
    async def test_invalid_root_url_fails_sync(self, context: ConnectorContext) -> None:
        with pytest.raises(SyncError, match="not an http"):
            await WebsiteCrawlerConnector(context).sync(_website(name="ftp://site.test"))

    @pytest.mark.asyncio
    async def test_keyword_filter_prunes_links(
        self, context: ConnectorContext, web: MockWeb, store: MemoryKnowledgeStore
    ) -> None:
        web.add(
            f"{SITE}/",
            html_page("Security Center", "overview", (f"{SITE}/security/encryption", f"{SITE}/pricing")),
        )
        web.add(
            f"{SITE}/security/encryption",
            html_page("Encryption", "AES-256 everywhere", (f"{SITE}/careers",)),
        )
        web.add(f"{SITE}/pricing", html_page("Pricing", "per seat"))
        web.add(f"{SITE}/careers", html_page("Careers", "join us"))
        source = _website(filter_keywords=["security"], max_depth=3)
        await store.create_source(source)

        result = await WebsiteCrawlerConnector(context).sync(source)

        assert _page_requests(web) == ["/", "/security/encryption"]
        assert result.resources_processed == 2
        titles = {c.title for c in await store.list_chunks("t1")}
        assert titles == {"Security Center", "Encryption"}

    @pytest.mark.asyncio
    async def test_non_matching_page_neither_ingested_nor_expanded(
        self, context: ConnectorContext, web: MockWeb, store: MemoryKnowledgeStore
    ) -> None:
        web.add(f"{SITE}/", html_page("Home", "welcome", (f"{SITE}/security",)))
        web.add(f"{SITE}/security", html_page("Security", "details"))
        source = _website(filter_keywords=["security"])
        await store.create_source(source)

        result = await WebsiteCrawlerConnector(context).sync(source)

        assert _page_requests(web) == ["/"]
        assert result.item_count == 0
        assert result.resources_processed == 0

    @pytest.mark.asyncio
    async def test_scope_path_and_exclusions(self, context: ConnectorContext, web: MockWeb) -> None:
        web.add(
            f"{SITE}/docs",
            html_page(
                "Docs",
                "index",
                (
                    f"{SITE}/docs/guide",
                    f"{SITE}/docs/internal/notes",
                    f"{SITE}/docs-archive/old",
                    f"{SITE}/blog",
                ),
            ),
        )
        web.add(f"{SITE}/docs/guide", html_page("Guide", "guide"))
        web.add(f"{SITE}/docs-archive/old", html_page("Old", "archived"))

        await WebsiteCrawlerConnector(context).sync(
            _website(name=f"{SITE}/docs", scope_path="docs", exclude_paths=["/docs/internal"])
        )

        assert _page_requests(web) == ["/docs", "/docs/guide"]

    @pytest.mark.asyncio
    async def test_failed_pages_skipped_and_counted(
        self, context: ConnectorContext, web: MockWeb
    ) -> None:
        web.add(
            f"{SITE}/",
            html_page("Home", "root", (f"{SITE}/broken", f"{SITE}/file", f"{SITE}/good")),
        )
        web.add(f"{SITE}/broken", httpx.Response(500, text="oops"))
        web.add(
            f"{SITE}/file",
            httpx.Response(200, content=b"%PDF", headers={"content-type": "application/pdf"}),
        )
        web.add(f"{SITE}/good", html_page("Good", "fine"))

        result = await WebsiteCrawlerConnector(context).sync(_website())

        assert result.resources_processed == 2
        assert result.resources_skipped == 2
        assert result.item_count == 2

    @pytest.mark.asyncio
    async def test_resync_replaces_previous_chunks(
        self, context: ConnectorContext, web: MockWeb, store: MemoryKnowledgeStore
    ) -> None:
        web.add(f"{SITE}/", html_page("Home", "root", (f"{SITE}/a",)))
        web.add(f"{SITE}/a", html_page("A", "a"))
        source = _website()
        await store.create_source(source)
        connector = WebsiteCrawlerConnector(context)

        await connector.sync(source)
        first_ids = {c.id for c in await store.list_chunks("t1")}
        await connector.sync(source)
        second = await store.list_chunks("t1")

        assert len(second) == len(first_ids) == 2
        assert first_ids.isdisjoint({c.id for c in second})

    @pytest.mark.asyncio
    async def test_sitemap_seeds_frontier(self, context: ConnectorContext, web: MockWeb) -> None:
        web.add(
            f"{SITE}/sitemap.xml",
            httpx.Response(
                200,
                text=(
                    "<urlset><url><loc>https://site.test/orphan</loc></url>"
                    "<url><loc>https://elsewhere.test/x</loc></url></urlset>"
                ),
                headers={"content-type": "application/xml"},
            ),
        )
        web.add(f"{SITE}/", html_page("Home", "root"))
        web.add(f"{SITE}/orphan", html_page("Orphan", "only in the sitemap"))

        result = await WebsiteCrawlerConnector(context).sync(_website(use_sitemap=True))

        assert _page_requests(web) == ["/", "/orphan"]
        assert result.resources_processed == 2

    @pytest.mark.asyncio
    async def test_fetches_spaced_by_rate_limiter(
        self, context: ConnectorContext, web: MockWeb
    ) -> None:
        web.add(f"{SITE}/", html_page("Home", "root", (f"{SITE}/a", f"{SITE}/b")))
        web.add(f"{SITE}/a", html_page("A", "a"))
        web.add(f"{SITE}/b", html_page("B", "b"))
        clock = _FakeClock()
        limiter = OriginRateLimiter(0.5, clock=clock, sleep=clock.sleep)

        await WebsiteCrawlerConnector(context, rate_limiter=limiter).sync(_website())

        assert clock.sleeps == [0.5, 0.5]

    @pytest.mark.asyncio
    async def test_shared_limiter_spans_syncs(self, context: ConnectorContext, web: MockWeb) -> None:
        web.add(f"{SITE}/", html_page("Home", "root"))
        clock = _FakeClock()
        limiter = OriginRateLimiter(2.0, clock=clock, sleep=clock.sleep)
        connector = WebsiteCrawlerConnector(context, rate_limiter=limiter)

        await connector.sync(_website())
        await connector.sync(_website())

        assert clock.sleeps == [2.0]

    @pytest.mark.asyncio
    async def test_sends_user_agent(self, context: ConnectorContext, web: MockWeb) -> None:
        web.add(f"{SITE}/", html_page("Home", "root"))

        await WebsiteCrawlerConnector(context).sync(_website())

        agent = context.settings.crawler_user_agent
        assert all(r.headers["user-agent"] == agent for r in web.requests)


# ---------------------------------------------------------------------------
# Page extraction
# ---------------------------------------------------------------------------


class TestExtractPage:
    def _raw(self, html: str, url: str = f"{SITE}/page", mime: str = "text/html") -> RawResource:
        return RawResource(ref=ResourceRef(id=url, name=url, url=url), data=html.encode(), mime_type=mime)

    def test_title_section_links_and_chunks(self, context: ConnectorContext) -> None:
        html = """
        <html><head><title>Encryption Guide</title></head><body>
          <header>Site header</header>
          <nav aria-label="breadcrumb"><ol><li>Home</li><li>Security</li><li>Encryption</li></ol></nav>
          <main>
            <h2>At rest</h2><p>AES-256 for all stored data.</p>
            <h2>In transit</h2><p>TLS 1.2 or newer.</p>
            <a href="/security/keys">Keys</a>
            <a href="mailto:sec@site.test">Mail</a>
            <a href="/logo.png">Logo</a>
            <a href="https://elsewhere.test/">Away</a>
          </main>
          <footer>Footer text</footer>
        </body></html>
        """
        page = WebsiteCrawlerConnector(context).extract_page(self._raw(html))

        assert page.title == "Encryption Guide"
        assert page.section == "Security / Encryption"
        assert page.links == [f"{SITE}/security/keys"]
        assert page.chunks[0].startswith("## At rest\n\nAES-256")
        assert any(c.startswith("## In transit") for c in page.chunks)
        assert not any("Footer text" in c or "Site header" in c for c in page.chunks)

    def test_title_falls_back_to_h1_then_url(self, context: ConnectorContext) -> None:
        connector = WebsiteCrawlerConnector(context)

        with_h1 = connector.extract_page(self._raw("<body><h1>Heading</h1><p>x</p></body>"))
        bare = connector.extract_page(self._raw("<body><p>x</p></body>"))

        assert with_h1.title == "Heading"
        assert bare.title == f"{SITE}/page"

    def test_non_html_rejected(self, context: ConnectorContext) -> None:
        with pytest.raises(ParseError):
            WebsiteCrawlerConnector(context).extract_page(self._raw("{}", mime="application/json"))
