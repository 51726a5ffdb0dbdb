"""Knowledge store backends.

Two implementations of IKnowledgeStore:
    - MemoryKnowledgeStore  — dict-backed, tenant-partitioned; tests and dev.
    - SQLiteKnowledgeStore  — aiosqlite-backed; data persists at
      KNOWLEDGE_DB_PATH (default: data/knowledge.db).

main.py picks one from KNOWLEDGE_STORE_BACKEND and injects it into every
service that needs it; nothing holds a module-level store.
"""

from src.providers.store.memory_store import MemoryKnowledgeStore
from src.providers.store.sqlite_store import SQLiteKnowledgeStore

__all__ = ["MemoryKnowledgeStore", "SQLiteKnowledgeStore"]
