"""Breadth-first website crawler connector.

# ─── DESIGN ────────────────────────────────────────────────────────────
#
# A crawl is bounded by two budgets from the source config:
#
#   max_pages  -- total fetch attempts (every fetch counts, failed or not)
#   max_depth  -- link-following depth from the seed (seed = depth 0)
#
# State is a FIFO queue of (url, depth), a set of URLs ever enqueued and
# a set of URLs popped.  URLs are normalized (scheme and host lowercased,
# query and fragment stripped, empty path → "/") before any set lookup,
# so a site with cycles terminates: nothing is enqueued twice and the
# page budget caps the total work.
#
# Politeness:
#   - robots.txt for the root origin is read once per sync; disallowed
#     URLs are never fetched.  A transport failure reaching robots.txt
#     fails the sync (origin unreachable); a non-2xx response means no
#     restrictions.
#   - OriginRateLimiter spaces fetches to the same origin.  By default
#     one limiter is shared by every crawl this connector runs, so two
#     sources crawling the same site together still respect one delay.
#
# Keyword filters prune early: a page whose URL, title and breadcrumb
# section all miss every keyword is neither ingested nor expanded, and
# links whose URL misses every keyword are never enqueued.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from urllib.parse import urljoin, urlsplit, urlunsplit
from urllib.robotparser import RobotFileParser

import httpx
import structlog
from bs4 import BeautifulSoup, Tag

from src.models.knowledge import (
    DataSource,
    DataSourceType,
    ParsedResource,
    RawResource,
    ResourceRef,
    SyncResult,
)
from src.providers.connectors.base import RESOURCE_ERRORS, BaseConnector, ConnectorContext
from src.utils.errors import FetchError, ParseError, SyncError

logger = structlog.get_logger(logger_name=__name__)

_CONTENT_ROOT_SELECTOR = "main, article, #content, #main, .main-content"
_BREADCRUMB_SELECTOR = 'nav[aria-label="breadcrumb"], .breadcrumb, [class*="breadcrumbs"]'
_BOILERPLATE_SELECTOR = (
    "script, style, nav, footer, header, aside, form, .navbar, .footer, #sidebar, "
    '[role="navigation"], [role="banner"], [role="contentinfo"], [role="complementary"]'
)
_SKIPPED_LINK_SCHEMES = ("mailto:", "tel:", "javascript:")
_SKIPPED_EXTENSIONS = (
    ".jpg", ".jpeg", ".png", ".gif", ".pdf", ".zip", ".css", ".js", ".svg", ".ico",
)
_HTML_CONTENT_TYPES = ("text/html", "application/xhtml+xml")


# ---------------------------------------------------------------------------
# URL helpers
# ---------------------------------------------------------------------------

def normalize_url(url: str) -> str | None:
    """Return the canonical form used for visited-set lookups.

    Scheme and host are lowercased, query and fragment are dropped and an
    empty path becomes ``/``.  Returns ``None`` for non-HTTP(S) URLs.
    """
    parts = urlsplit(url.strip())
    scheme = parts.scheme.lower()
    if scheme not in ("http", "https") or not parts.netloc:
        return None
    return urlunsplit((scheme, parts.netloc.lower(), parts.path or "/", "", ""))


def origin_of(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}"


def matches_keywords(keywords: list[str], *texts: str | None) -> bool:
    """Case-insensitive substring match of any keyword in any text.

    An empty keyword list matches everything.
    """
    if not keywords:
        return True
    haystacks = [text.lower() for text in texts if text]
    return any(keyword.lower() in haystack for keyword in keywords for haystack in haystacks)


# ---------------------------------------------------------------------------
# Rate limiting
# ---------------------------------------------------------------------------

class OriginRateLimiter:
    """Spaces successive requests to one origin at least ``interval`` apart.

    The first request to an origin goes through immediately.  Waiters on
    the same origin are serialised by a per-origin lock.
    """

    def __init__(
        self,
        interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._interval = max(0.0, interval)
        self._clock = clock
        self._sleep = sleep
        self._next_slot: dict[str, float] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def interval(self) -> float:
        return self._interval

    async def wait(self, origin: str) -> None:
        lock = self._locks.setdefault(origin, asyncio.Lock())
        async with lock:
            now = self._clock()
            ready_at = self._next_slot.get(origin, now)
            if ready_at > now:
                await self._sleep(ready_at - now)
            self._next_slot[origin] = max(now, ready_at) + self._interval


# ---------------------------------------------------------------------------
# Crawl state
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CrawledPage:
    url: str
    title: str
    section: str
    chunks: list[str]
    links: list[str]


@dataclass
class CrawlScope:
    """Where a crawl may go: one origin, an optional path prefix and exclusions."""

    origin: str
    prefix: str
    exclude_paths: list[str] = field(default_factory=list)

    def allows(self, url: str) -> bool:
        if origin_of(url) != self.origin:
            return False
        path = urlsplit(url).path or "/"
        # Scope matches whole path segments: "/docs" admits "/docs/a", not "/docs-old".
        scope_path = urlsplit(self.prefix).path.rstrip("/")
        if scope_path and path != scope_path and not path.startswith(f"{scope_path}/"):
            return False
        return not any(path.startswith(excluded) for excluded in self.exclude_paths if excluded)


# ---------------------------------------------------------------------------
# Connector
# ---------------------------------------------------------------------------

class WebsiteCrawlerConnector(BaseConnector):
    """Crawls a website breadth-first and ingests pages as semantic chunks.

    Parameters
    ----------
    context:
        Shared connector collaborators.
    rate_limiter:
        Limiter shared across crawls.  When omitted, one is created if
        ``crawler_share_origin_rate_limit`` is on; otherwise every sync
        gets a fresh limiter of its own.
    """

    source_type = DataSourceType.WEBSITE

    def __init__(
        self,
        context: ConnectorContext,
        rate_limiter: OriginRateLimiter | None = None,
    ) -> None:
        super().__init__(context)
        settings = context.settings
        self._user_agent = settings.crawler_user_agent
        self._rate_limit = settings.crawler_rate_limit_seconds
        if rate_limiter is None and settings.crawler_share_origin_rate_limit:
            rate_limiter = OriginRateLimiter(self._rate_limit)
        self._shared_limiter = rate_limiter

    # ------------------------------------------------------------------
    # IConnector building blocks
    # ------------------------------------------------------------------

    async def list_resources(self, source: DataSource) -> list[ResourceRef]:
        """Return the crawl frontier: the seed URL plus sitemap URLs if enabled.

        Further pages are discovered during :meth:`sync`.
        """
        root, scope = self._scope_for(source)
        urls = [root]
        if source.config.use_sitemap:
            for url in await self._sitemap_urls(scope.origin):
                if url not in urls and scope.allows(url) and matches_keywords(
                    source.config.filter_keywords, url
                ):
                    urls.append(url)
        return [ResourceRef(id=url, name=url, url=url) for url in urls]

    async def fetch_resource(self, source: DataSource, ref: ResourceRef) -> RawResource:
        url = ref.url or ref.id
        try:
            response = await self._ctx.http_client.get(
                url, headers={"User-Agent": self._user_agent}, follow_redirects=True
            )
        except httpx.TransportError as exc:
            raise FetchError(message=f"Failed to fetch {url}: {exc}", provider_name="website") from exc
        if response.status_code != 200:
            raise FetchError(
                message=f"{url} returned HTTP {response.status_code}", provider_name="website"
            )
        content_type = response.headers.get("content-type", "").split(";", 1)[0].strip().lower()
        final = ref.model_copy(update={"extras": {**ref.extras, "final_url": str(response.url)}})
        return RawResource(ref=final, data=response.content, mime_type=content_type or "text/html")

    async def parse_content(self, raw: RawResource) -> ParsedResource:
        page = self.extract_page(raw)
        return ParsedResource(
            title=page.title,
            chunks=page.chunks,
            url=page.url,
            section=page.section or None,
        )

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    async def sync(self, source: DataSource) -> SyncResult:
        settings = self._ctx.settings
        config = source.config
        max_depth = config.max_depth if config.max_depth is not None else settings.crawler_default_max_depth
        max_pages = config.max_pages if config.max_pages is not None else settings.crawler_default_max_pages
        keywords = [keyword for keyword in config.filter_keywords if keyword.strip()]

        _, scope = self._scope_for(source)
        limiter = self._shared_limiter or OriginRateLimiter(self._rate_limit)
        robots = await self._load_robots(scope.origin)

        removed = await self._ctx.store.delete_chunks_by_source(source.tenant_id, source.id)
        frontier = await self.list_resources(source)

        queue: deque[tuple[str, int]] = deque()
        enqueued: set[str] = set()
        for ref in frontier:
            enqueued.add(ref.id)
            queue.append((ref.id, 0))

        visited: set[str] = set()
        fetched = 0
        processed = 0
        skipped = 0
        item_count = 0

        logger.info(
            "crawl_started",
            root=frontier[0].id,
            max_depth=max_depth,
            max_pages=max_pages,
            seeds=len(frontier),
            chunks_removed=removed,
            robots=robots is not None,
        )

        while queue and fetched < max_pages:
            url, depth = queue.popleft()
            if url in visited:
                continue
            visited.add(url)

            if robots is not None and not robots.can_fetch(self._user_agent, url):
                logger.info("crawl_disallowed", url=url)
                continue

            await limiter.wait(scope.origin)
            fetched += 1
            try:
                raw = await asyncio.wait_for(
                    self.fetch_resource(source, ResourceRef(id=url, name=url, url=url)),
                    timeout=settings.resource_fetch_timeout,
                )
                page = self.extract_page(raw)
            except RESOURCE_ERRORS as exc:
                skipped += 1
                logger.warning(
                    "resource_skipped",
                    connector="website",
                    url=url,
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
                continue

            if not matches_keywords(keywords, page.url, page.title, page.section):
                logger.info("crawl_page_filtered", url=url)
                continue

            processed += 1
            if page.chunks:
                item_count += await self.ingest(
                    source,
                    ParsedResource(
                        title=page.title,
                        chunks=page.chunks,
                        url=page.url,
                        section=page.section or None,
                    ),
                )
            logger.info(
                "crawl_page_fetched",
                url=url,
                depth=depth,
                chunks=len(page.chunks),
                links=len(page.links),
                pages_fetched=fetched,
            )

            if depth >= max_depth:
                continue
            for link in page.links:
                if link in enqueued or not scope.allows(link):
                    continue
                enqueued.add(link)
                if matches_keywords(keywords, link):
                    queue.append((link, depth + 1))

        logger.info(
            "crawl_complete",
            pages_fetched=fetched,
            pages_processed=processed,
            pages_skipped=skipped,
            items=item_count,
        )
        return SyncResult(
            source=source,
            item_count=item_count,
            resources_processed=processed,
            resources_skipped=skipped,
        )

    # ------------------------------------------------------------------
    # Page extraction
    # ------------------------------------------------------------------

    def extract_page(self, raw: RawResource) -> CrawledPage:
        """Extract title, section, semantic chunks and links from an HTML page.

        Raises :class:`ParseError` for non-HTML content.
        """
        if raw.mime_type not in _HTML_CONTENT_TYPES:
            raise ParseError(
                message=f"Skipping non-HTML page ({raw.mime_type})", provider_name="website"
            )
        url = raw.ref.url or raw.ref.id
        base_url = raw.ref.extras.get("final_url", url)
        soup = BeautifulSoup(raw.data, "html.parser")

        title = ""
        if soup.title is not None:
            title = soup.title.get_text(strip=True)
        if not title:
            first_h1 = soup.find("h1")
            title = first_h1.get_text(" ", strip=True) if first_h1 else ""
        title = title or url

        section = self._breadcrumb_section(soup)
        links = self._extract_links(soup, base_url)

        content_root = soup.select_one(_CONTENT_ROOT_SELECTOR) or soup.body or soup
        for element in content_root.select(_BOILERPLATE_SELECTOR):
            element.decompose()
        chunks = self._ctx.chunker.semantic_chunk(content_root, fallback_title=title)

        return CrawledPage(url=url, title=title, section=section, chunks=chunks, links=links)

    @staticmethod
    def _breadcrumb_section(soup: BeautifulSoup) -> str:
        items: list[str] = []
        for container in soup.select(_BREADCRUMB_SELECTOR):
            for element in container.find_all(["li", "a", "span"]):
                if not isinstance(element, Tag):
                    continue
                text = element.get_text(" ", strip=True).replace(">", "").strip()
                if text and text.lower() != "home" and text not in items:
                    items.append(text)
        return " / ".join(items)

    @staticmethod
    def _extract_links(soup: BeautifulSoup, base_url: str) -> list[str]:
        base_origin = origin_of(normalize_url(base_url) or base_url)
        links: list[str] = []
        seen: set[str] = set()
        for anchor in soup.find_all("a", href=True):
            href = str(anchor["href"]).strip()
            if not href or href.startswith("#") or href.lower().startswith(_SKIPPED_LINK_SCHEMES):
                continue
            normalized = normalize_url(urljoin(base_url, href))
            if normalized is None or normalized in seen:
                continue
            if origin_of(normalized) != base_origin:
                continue
            if urlsplit(normalized).path.lower().endswith(_SKIPPED_EXTENSIONS):
                continue
            seen.add(normalized)
            links.append(normalized)
        return links

    # ------------------------------------------------------------------
    # Setup helpers
    # ------------------------------------------------------------------

    def _scope_for(self, source: DataSource) -> tuple[str, CrawlScope]:
        root = normalize_url(source.name)
        if root is None:
            raise SyncError(
                message=f"Website source name is not an http(s) URL: {source.name}",
                provider_name="website",
            )
        origin = origin_of(root)
        scope_path = source.config.scope_path.strip().strip("/")
        prefix = f"{origin}/{scope_path}" if scope_path else origin
        scope = CrawlScope(
            origin=origin,
            prefix=prefix,
            exclude_paths=list(source.config.exclude_paths),
        )
        if not scope.allows(root):
            # The root sits outside the scope path; start from the scope itself.
            root = normalize_url(prefix) or root
        return root, scope

    async def _load_robots(self, origin: str) -> RobotFileParser | None:
        robots_url = f"{origin}/robots.txt"
        try:
            response = await self._ctx.http_client.get(
                robots_url, headers={"User-Agent": self._user_agent}, follow_redirects=True
            )
        except httpx.TransportError as exc:
            raise SyncError(
                message=f"Could not reach {origin} to read robots.txt: {exc}",
                provider_name="website",
            ) from exc

        if not response.is_success:
            logger.info("robots_txt_missing", origin=origin, status=response.status_code)
            return None

        parser = RobotFileParser(robots_url)
        parser.parse(response.text.splitlines())
        logger.info("robots_txt_loaded", origin=origin)
        return parser

    async def _sitemap_urls(self, origin: str) -> list[str]:
        sitemap_url = f"{origin}/sitemap.xml"
        try:
            response = await self._ctx.http_client.get(
                sitemap_url, headers={"User-Agent": self._user_agent}, follow_redirects=True
            )
        except httpx.HTTPError as exc:
            logger.info("sitemap_unavailable", origin=origin, error=str(exc))
            return []
        if not response.is_success:
            logger.info("sitemap_unavailable", origin=origin, status=response.status_code)
            return []

        soup = BeautifulSoup(response.content, "html.parser")
        urls: list[str] = []
        for loc in soup.find_all("loc"):
            normalized = normalize_url(loc.get_text(strip=True))
            if normalized is not None and normalized not in urls:
                urls.append(normalized)
        logger.info("sitemap_loaded", origin=origin, urls=len(urls))
        return urls
