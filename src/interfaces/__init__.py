"""Public interface definitions for storage and external services.

Every external API, storage backend and content platform is accessed
through the abstract base classes defined in this package.  Concrete
adapters implement these interfaces and are injected at runtime, so
swapping a backend (memory store for SQLite, OpenAI for Ollama) changes
one constructor call in main.py and nothing else.

CONCRETE PROVIDER MAP:
    Interface            →  Concrete implementations (in src/providers/)
    ─────────────────────────────────────────────────────────────────
    IKnowledgeStore      →  MemoryKnowledgeStore, SQLiteKnowledgeStore
    IConnector           →  DocumentConnector, WebsiteCrawlerConnector,
                            GoogleDriveConnector, DropboxConnector,
                            SharePointConnector, ConfluenceConnector,
                            NotionConnector, GitHubConnector,
                            SimulatedConnector, UnsupportedConnector
    IEmbeddingProvider   →  OpenAIEmbeddingProvider, NomicEmbeddingProvider
    ILLMProvider         →  OpenAILLMProvider, OllamaLLMProvider
    IDocumentParser      →  DocumentParser
    ISecretStore         →  MemorySecretStore
"""

from src.interfaces.connector import IConnector
from src.interfaces.document_parser import IDocumentParser, ParsedDocument
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.knowledge_store import IKnowledgeStore
from src.interfaces.llm_provider import ILLMProvider
from src.interfaces.secret_store import ISecretStore

__all__ = [
    "IConnector",
    "IDocumentParser",
    "IEmbeddingProvider",
    "IKnowledgeStore",
    "ILLMProvider",
    "ISecretStore",
    "ParsedDocument",
]
