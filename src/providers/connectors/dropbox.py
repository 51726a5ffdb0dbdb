"""Dropbox connector (API v2 over httpx)."""

from __future__ import annotations

import json

import structlog

from src.models.knowledge import DataSource, DataSourceType, RawResource, ResourceRef
from src.providers.connectors.base import BaseConnector
from src.providers.parser.document_parser import guess_mime_type

logger = structlog.get_logger(logger_name=__name__)

_API_BASE = "https://api.dropboxapi.com/2"
_CONTENT_BASE = "https://content.dropboxapi.com/2"


class DropboxConnector(BaseConnector):
    """Syncs every file under ``config.folder_path`` (the whole account if unset)."""

    source_type = DataSourceType.DROPBOX

    async def list_resources(self, source: DataSource) -> list[ResourceRef]:
        headers = await self._headers(source)
        folder = (source.config.folder_path or "").rstrip("/")
        if folder and not folder.startswith("/"):
            folder = f"/{folder}"

        response = await self.request(
            "POST",
            f"{_API_BASE}/files/list_folder",
            headers=headers,
            json={"path": folder, "recursive": True},
            listing=True,
        )
        payload = response.json()
        entries = list(payload.get("entries", []))
        while payload.get("has_more"):
            response = await self.request(
                "POST",
                f"{_API_BASE}/files/list_folder/continue",
                headers=headers,
                json={"cursor": payload["cursor"]},
                listing=True,
            )
            payload = response.json()
            entries.extend(payload.get("entries", []))

        refs = [
            ResourceRef(
                id=entry["id"],
                name=entry.get("name", entry["id"]),
                url=f"https://www.dropbox.com/home{entry.get('path_display', '')}",
                extras={"path": entry.get("path_lower") or entry.get("path_display")},
            )
            for entry in entries
            if entry.get(".tag") == "file"
        ]
        logger.debug("dropbox_listed", files=len(refs), folder=folder or "/")
        return refs

    async def fetch_resource(self, source: DataSource, ref: ResourceRef) -> RawResource:
        headers = await self._headers(source)
        headers["Dropbox-API-Arg"] = json.dumps({"path": ref.id})
        response = await self.request("POST", f"{_CONTENT_BASE}/files/download", headers=headers)
        return RawResource(ref=ref, data=response.content, mime_type=guess_mime_type(ref.name))

    async def _headers(self, source: DataSource) -> dict[str, str]:
        creds = await self.credentials(source)
        return {"Authorization": f"Bearer {self.require_token(creds, 'access_token')}"}
