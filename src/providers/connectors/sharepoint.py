"""SharePoint connector (Microsoft Graph over httpx).

Walks the document libraries of one site (``config.site_id``), optionally
restricted to the library named ``config.drive_name``, descending into
folders breadth-first and following ``@odata.nextLink`` pagination.
"""

from __future__ import annotations

from collections import deque

import structlog

from src.models.knowledge import DataSource, DataSourceType, RawResource, ResourceRef
from src.providers.connectors.base import BaseConnector
from src.providers.parser.document_parser import guess_mime_type
from src.utils.errors import SyncError

logger = structlog.get_logger(logger_name=__name__)

_GRAPH_BASE = "https://graph.microsoft.com/v1.0"


class SharePointConnector(BaseConnector):
    source_type = DataSourceType.SHAREPOINT

    async def list_resources(self, source: DataSource) -> list[ResourceRef]:
        site_id = source.config.site_id
        if not site_id:
            raise SyncError(message="SharePoint source has no siteId configured", provider_name="sharepoint")
        headers = await self._headers(source)

        drives = await self._paged(f"{_GRAPH_BASE}/sites/{site_id}/drives", headers)
        if source.config.drive_name:
            wanted = source.config.drive_name.lower()
            drives = [drive for drive in drives if drive.get("name", "").lower() == wanted]
            if not drives:
                raise SyncError(
                    message=f"SharePoint drive '{source.config.drive_name}' not found on site {site_id}",
                    provider_name="sharepoint",
                )

        refs: list[ResourceRef] = []
        for drive in drives:
            pending: deque[str] = deque([f"{_GRAPH_BASE}/drives/{drive['id']}/root/children"])
            while pending:
                for item in await self._paged(pending.popleft(), headers):
                    if "folder" in item:
                        pending.append(f"{_GRAPH_BASE}/drives/{drive['id']}/items/{item['id']}/children")
                    elif "file" in item:
                        refs.append(
                            ResourceRef(
                                id=item["id"],
                                name=item.get("name", item["id"]),
                                url=item.get("webUrl"),
                                mime_type=item["file"].get("mimeType"),
                                extras={"drive_id": drive["id"]},
                            )
                        )

        logger.debug("sharepoint_listed", files=len(refs), drives=len(drives))
        return refs

    async def fetch_resource(self, source: DataSource, ref: ResourceRef) -> RawResource:
        headers = await self._headers(source)
        response = await self.request(
            "GET",
            f"{_GRAPH_BASE}/drives/{ref.extras['drive_id']}/items/{ref.id}/content",
            headers=headers,
            follow_redirects=True,
        )
        return RawResource(
            ref=ref,
            data=response.content,
            mime_type=guess_mime_type(ref.name, ref.mime_type),
        )

    async def _paged(self, url: str, headers: dict[str, str]) -> list[dict]:
        items: list[dict] = []
        next_url: str | None = url
        while next_url:
            response = await self.request("GET", next_url, headers=headers, listing=True)
            payload = response.json()
            items.extend(payload.get("value", []))
            next_url = payload.get("@odata.nextLink")
        return items

    async def _headers(self, source: DataSource) -> dict[str, str]:
        creds = await self.credentials(source)
        return {"Authorization": f"Bearer {self.require_token(creds, 'access_token')}"}
