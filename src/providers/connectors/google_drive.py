"""Google Drive connector (Drive API v3 over httpx).

Lists the files of one folder (``config.folder_id``) or the whole drive,
exports Google-native documents to a parseable format, downloads other
files as-is and hands the bytes to the document parser.  Folders and
shortcuts are not descended into.
"""

from __future__ import annotations

from typing import Any

import structlog

from src.models.knowledge import DataSource, DataSourceType, RawResource, ResourceRef
from src.providers.connectors.base import BaseConnector
from src.providers.parser.document_parser import guess_mime_type

logger = structlog.get_logger(logger_name=__name__)

_API_BASE = "https://www.googleapis.com/drive/v3"
_FOLDER_MIME = "application/vnd.google-apps.folder"
_SHORTCUT_MIME = "application/vnd.google-apps.shortcut"

# Google-native types are exported; everything else is downloaded.
_EXPORT_FORMATS: dict[str, str] = {
    "application/vnd.google-apps.document": (
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
    ),
    "application/vnd.google-apps.spreadsheet": "text/csv",
    "application/vnd.google-apps.presentation": "text/plain",
}


class GoogleDriveConnector(BaseConnector):
    source_type = DataSourceType.GDRIVE

    async def list_resources(self, source: DataSource) -> list[ResourceRef]:
        headers = await self._headers(source)
        query = "trashed = false"
        if source.config.folder_id:
            query = f"'{source.config.folder_id}' in parents and {query}"

        refs: list[ResourceRef] = []
        page_token: str | None = None
        while True:
            params: dict[str, Any] = {
                "q": query,
                "pageSize": 100,
                "fields": "nextPageToken, files(id, name, mimeType, webViewLink)",
            }
            if page_token:
                params["pageToken"] = page_token
            response = await self.request(
                "GET", f"{_API_BASE}/files", headers=headers, params=params, listing=True
            )
            payload = response.json()
            for item in payload.get("files", []):
                if item.get("mimeType") in (_FOLDER_MIME, _SHORTCUT_MIME):
                    continue
                refs.append(
                    ResourceRef(
                        id=item["id"],
                        name=item.get("name", item["id"]),
                        url=item.get("webViewLink"),
                        mime_type=item.get("mimeType"),
                    )
                )
            page_token = payload.get("nextPageToken")
            if not page_token:
                break

        logger.debug("gdrive_listed", files=len(refs), folder_id=source.config.folder_id)
        return refs

    async def fetch_resource(self, source: DataSource, ref: ResourceRef) -> RawResource:
        headers = await self._headers(source)
        export_mime = _EXPORT_FORMATS.get(ref.mime_type or "")
        if export_mime is not None:
            response = await self.request(
                "GET",
                f"{_API_BASE}/files/{ref.id}/export",
                headers=headers,
                params={"mimeType": export_mime},
            )
            return RawResource(ref=ref, data=response.content, mime_type=export_mime)

        response = await self.request(
            "GET",
            f"{_API_BASE}/files/{ref.id}",
            headers=headers,
            params={"alt": "media"},
            follow_redirects=True,
        )
        return RawResource(
            ref=ref,
            data=response.content,
            mime_type=guess_mime_type(ref.name, ref.mime_type),
        )

    async def _headers(self, source: DataSource) -> dict[str, str]:
        creds = await self.credentials(source)
        token = self.require_token(creds, "access_token")
        return {"Authorization": f"{creds.token_type} {token}"}
