"""Confluence Cloud connector (REST API over httpx).

Pages are fetched with their storage-format body, which is XHTML, so they
go through the semantic chunker just like crawled web pages: headings in
the page become ``## <heading>`` prefixes on its chunks.
"""

from __future__ import annotations

import json

import httpx
import structlog
from bs4 import BeautifulSoup

from src.models.knowledge import (
    DataSource,
    DataSourceType,
    ParsedResource,
    RawResource,
    ResourceRef,
)
from src.providers.connectors.base import BaseConnector
from src.utils.errors import ParseError, SyncError

logger = structlog.get_logger(logger_name=__name__)

_PAGE_LIMIT = 50


class ConfluenceConnector(BaseConnector):
    """Syncs pages from a Confluence site, optionally one space (``config.space_key``)."""

    source_type = DataSourceType.CONFLUENCE

    async def list_resources(self, source: DataSource) -> list[ResourceRef]:
        base_url = self._base_url(source)
        auth = await self._auth(source)

        query: dict[str, str | int] = {"type": "page", "limit": _PAGE_LIMIT, "expand": "space"}
        if source.config.space_key:
            query["spaceKey"] = source.config.space_key
        params: dict[str, str | int] | None = query

        refs: list[ResourceRef] = []
        next_url: str | None = f"{base_url}/wiki/rest/api/content"
        while next_url:
            response = await self.request(
                "GET",
                next_url,
                auth=auth,
                headers={"Accept": "application/json"},
                params=params,
                listing=True,
            )
            payload = response.json()
            for page in payload.get("results", []):
                webui = page.get("_links", {}).get("webui")
                refs.append(
                    ResourceRef(
                        id=str(page["id"]),
                        name=page.get("title") or f"Confluence page {page['id']}",
                        url=f"{base_url}/wiki{webui}" if webui else None,
                        extras={"space": page.get("space", {}).get("key")},
                    )
                )
            next_url = self._next_url(base_url, payload.get("_links", {}))
            # The next link already carries the query string.
            params = None

        logger.debug("confluence_listed", pages=len(refs), space=source.config.space_key)
        return refs

    async def fetch_resource(self, source: DataSource, ref: ResourceRef) -> RawResource:
        base_url = self._base_url(source)
        response = await self.request(
            "GET",
            f"{base_url}/wiki/rest/api/content/{ref.id}",
            auth=await self._auth(source),
            headers={"Accept": "application/json"},
            params={"expand": "body.storage"},
        )
        return RawResource(ref=ref, data=response.content, mime_type="application/json")

    async def parse_content(self, raw: RawResource) -> ParsedResource:
        try:
            payload = json.loads(raw.data)
        except ValueError as exc:
            raise ParseError(message=f"Malformed Confluence payload for page {raw.ref.id}") from exc

        storage = payload.get("body", {}).get("storage", {}).get("value", "")
        title = payload.get("title") or raw.ref.name
        soup = BeautifulSoup(storage, "html.parser")
        return ParsedResource(
            title=title,
            chunks=self._ctx.chunker.semantic_chunk(soup, fallback_title=title),
            url=raw.ref.url,
        )

    @staticmethod
    def _next_url(base_url: str, links: dict) -> str | None:
        next_link = links.get("next")
        if not next_link:
            return None
        if next_link.startswith("/wiki/"):
            return f"{base_url}{next_link}"
        return f"{links.get('base') or base_url + '/wiki'}{next_link}"

    @staticmethod
    def _base_url(source: DataSource) -> str:
        if not source.config.url:
            raise SyncError(message="Confluence source has no url configured", provider_name="confluence")
        return source.config.url.rstrip("/")

    async def _auth(self, source: DataSource) -> httpx.BasicAuth:
        creds = await self.credentials(source)
        token = self.require_token(creds, "api_key", "access_token")
        if not creds.username:
            raise SyncError(message="Confluence credentials need a username", provider_name="confluence")
        return httpx.BasicAuth(creds.username, token)
