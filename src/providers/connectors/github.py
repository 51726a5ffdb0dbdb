"""GitHub connector (REST API over httpx).

Indexes the Markdown files of one repository (``config.repository`` as
``owner/repo``), optionally restricted to ``config.folder_path`` and
read from ``config.branch``.
"""

from __future__ import annotations

import base64
import binascii

import structlog

from src.models.knowledge import DataSource, DataSourceType, RawResource, ResourceRef
from src.providers.connectors.base import BaseConnector
from src.providers.parser.document_parser import MARKDOWN_MIME
from src.utils.errors import ParseError, SyncError

logger = structlog.get_logger(logger_name=__name__)

_API_BASE = "https://api.github.com"
_MARKDOWN_SUFFIXES = (".md", ".markdown", ".mdx")


class GitHubConnector(BaseConnector):
    source_type = DataSourceType.GITHUB

    async def list_resources(self, source: DataSource) -> list[ResourceRef]:
        repository = self._repository(source)
        ref_name = source.config.branch or "HEAD"
        folder = (source.config.folder_path or "").strip("/")

        response = await self.request(
            "GET",
            f"{_API_BASE}/repos/{repository}/git/trees/{ref_name}",
            headers=await self._headers(source),
            params={"recursive": "1"},
            listing=True,
        )
        payload = response.json()
        if payload.get("truncated"):
            logger.warning("github_tree_truncated", repository=repository)

        blob_branch = source.config.branch or "main"
        refs = [
            ResourceRef(
                id=item["path"],
                name=item["path"],
                url=f"https://github.com/{repository}/blob/{blob_branch}/{item['path']}",
            )
            for item in payload.get("tree", [])
            if item.get("type") == "blob"
            and item.get("path", "").lower().endswith(_MARKDOWN_SUFFIXES)
            and (not folder or item["path"].startswith(f"{folder}/"))
        ]
        logger.debug("github_listed", repository=repository, files=len(refs))
        return refs

    async def fetch_resource(self, source: DataSource, ref: ResourceRef) -> RawResource:
        repository = self._repository(source)
        params = {"ref": source.config.branch} if source.config.branch else None
        response = await self.request(
            "GET",
            f"{_API_BASE}/repos/{repository}/contents/{ref.id}",
            headers=await self._headers(source),
            params=params,
        )
        payload = self.decode_json(response, ref.id)
        if not isinstance(payload, dict) or "content" not in payload:
            raise ParseError(message=f"No file content returned for {ref.id}", provider_name="github")
        try:
            data = base64.b64decode(payload["content"])
        except (binascii.Error, ValueError) as exc:
            raise ParseError(message=f"Undecodable content for {ref.id}", provider_name="github") from exc
        return RawResource(ref=ref, data=data, mime_type=MARKDOWN_MIME)

    @staticmethod
    def _repository(source: DataSource) -> str:
        repository = (source.config.repository or source.config.url or "").strip().strip("/")
        repository = repository.removeprefix("https://github.com/")
        owner, _, repo = repository.partition("/")
        if not owner or not repo or "/" in repo:
            raise SyncError(
                message="Invalid GitHub repository format. Expected 'owner/repo'.",
                provider_name="github",
            )
        return repository

    async def _headers(self, source: DataSource) -> dict[str, str]:
        creds = await self.credentials(source)
        token = self.require_token(creds, "api_key", "access_token")
        return {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
        }
