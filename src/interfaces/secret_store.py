"""Abstract base class for connector credential storage.

Credentials are addressed by ``(tenant_id, source_id)`` and kept out of
the knowledge store, so a persisted DataSource never carries tokens.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.knowledge import SourceCredentials


# Concrete implementation: MemorySecretStore (src/providers/secrets/)
class ISecretStore(ABC):
    """Contract for credential storage backends."""

    @abstractmethod
    async def put(self, tenant_id: str, source_id: str, credentials: SourceCredentials) -> None:
        """Store or replace the credentials for a source."""

    @abstractmethod
    async def get(self, tenant_id: str, source_id: str) -> SourceCredentials | None:
        """Return the stored credentials, or ``None``."""

    @abstractmethod
    async def delete(self, tenant_id: str, source_id: str) -> bool:
        """Remove stored credentials; return ``False`` if there were none."""
