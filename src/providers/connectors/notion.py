"""Notion connector (public API over httpx).

Lists every page shared with the integration, fetches each page's block
children (all pages of them) and flattens the rich text into paragraphs.
"""

from __future__ import annotations

import json
from typing import Any

import structlog

from src.models.knowledge import (
    DataSource,
    DataSourceType,
    ParsedResource,
    RawResource,
    ResourceRef,
)
from src.providers.connectors.base import BaseConnector
from src.utils.errors import ParseError

logger = structlog.get_logger(logger_name=__name__)

_API_BASE = "https://api.notion.com/v1"
_NOTION_VERSION = "2022-06-28"
_UNTITLED = "Untitled Notion Page"


def page_title(page: dict[str, Any]) -> str:
    """Return the plain text of a page's title property."""
    for prop in page.get("properties", {}).values():
        if isinstance(prop, dict) and prop.get("type") == "title":
            text = "".join(part.get("plain_text", "") for part in prop.get("title", []))
            if text.strip():
                return text.strip()
    return _UNTITLED


def blocks_to_text(blocks: list[dict[str, Any]]) -> str:
    paragraphs: list[str] = []
    for block in blocks:
        body = block.get(block.get("type", ""), {})
        if not isinstance(body, dict):
            continue
        text = "".join(part.get("plain_text", "") for part in body.get("rich_text", []))
        if text.strip():
            paragraphs.append(text.strip())
    return "\n\n".join(paragraphs)


class NotionConnector(BaseConnector):
    source_type = DataSourceType.NOTION

    async def list_resources(self, source: DataSource) -> list[ResourceRef]:
        headers = await self._headers(source)
        refs: list[ResourceRef] = []
        body: dict[str, Any] = {"filter": {"value": "page", "property": "object"}, "page_size": 100}
        while True:
            response = await self.request(
                "POST", f"{_API_BASE}/search", headers=headers, json=body, listing=True
            )
            payload = response.json()
            for page in payload.get("results", []):
                refs.append(ResourceRef(id=page["id"], name=page_title(page), url=page.get("url")))
            if not payload.get("has_more") or not payload.get("next_cursor"):
                break
            body = {**body, "start_cursor": payload["next_cursor"]}

        logger.debug("notion_listed", pages=len(refs))
        return refs

    async def fetch_resource(self, source: DataSource, ref: ResourceRef) -> RawResource:
        headers = await self._headers(source)
        blocks: list[dict[str, Any]] = []
        params: dict[str, Any] = {"page_size": 100}
        while True:
            response = await self.request(
                "GET", f"{_API_BASE}/blocks/{ref.id}/children", headers=headers, params=params
            )
            payload = self.decode_json(response, f"page {ref.id}")
            blocks.extend(payload.get("results", []))
            if not payload.get("has_more") or not payload.get("next_cursor"):
                break
            params = {**params, "start_cursor": payload["next_cursor"]}

        return RawResource(ref=ref, data=json.dumps(blocks).encode(), mime_type="application/json")

    async def parse_content(self, raw: RawResource) -> ParsedResource:
        try:
            blocks = json.loads(raw.data)
        except ValueError as exc:
            raise ParseError(message=f"Malformed Notion blocks for page {raw.ref.id}") from exc
        return ParsedResource(title=raw.ref.name, text=blocks_to_text(blocks), url=raw.ref.url)

    async def _headers(self, source: DataSource) -> dict[str, str]:
        creds = await self.credentials(source)
        token = self.require_token(creds, "api_key", "access_token")
        return {"Authorization": f"Bearer {token}", "Notion-Version": _NOTION_VERSION}
