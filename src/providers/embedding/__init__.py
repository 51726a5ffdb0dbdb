"""Embedding provider implementations.

Embeddings convert text into numeric vectors that capture semantic meaning.
Chunk embeddings and query embeddings must come from the same provider, so
main.py selects exactly one at startup and shares it between ingestion and
search.

Two implementations of IEmbeddingProvider (listed in priority order):
    1. OpenAIEmbeddingProvider -- text-embedding-3-small, or any model served
       by an OpenAI-compatible endpoint.  Requires OPENAI_API_KEY.
    2. NomicEmbeddingProvider  -- nomic-embed-text via Ollama (768 dims).
       Free and local, but requires a running Ollama server.
"""

from src.providers.embedding.nomic_embedding_provider import NomicEmbeddingProvider
from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = ["OpenAIEmbeddingProvider", "NomicEmbeddingProvider"]
