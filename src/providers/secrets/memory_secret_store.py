"""In-memory credential store.

Keeps connector credentials keyed by ``(tenant_id, source_id)`` for the
lifetime of the process.  A vault-backed adapter implementing
:class:`ISecretStore` can replace it without touching any connector.
"""

from __future__ import annotations

import structlog

from src.interfaces.secret_store import ISecretStore
from src.models.knowledge import SourceCredentials

logger = structlog.get_logger(logger_name=__name__)


class MemorySecretStore(ISecretStore):
    """Dict-backed secret store."""

    def __init__(self) -> None:
        self._secrets: dict[tuple[str, str], SourceCredentials] = {}

    async def put(self, tenant_id: str, source_id: str, credentials: SourceCredentials) -> None:
        self._secrets[(tenant_id, source_id)] = credentials
        # Never log the credentials themselves.
        logger.info("credentials_stored", tenant_id=tenant_id, source_id=source_id)

    async def get(self, tenant_id: str, source_id: str) -> SourceCredentials | None:
        return self._secrets.get((tenant_id, source_id))

    async def delete(self, tenant_id: str, source_id: str) -> bool:
        return self._secrets.pop((tenant_id, source_id), None) is not None
