"""Connector credential storage providers."""

from src.providers.secrets.memory_secret_store import MemorySecretStore

__all__ = ["MemorySecretStore"]
