"""Ingestion building blocks: **chunk -> tag -> embed**.

1. **Chunk** (chunker.py / TextChunker) -- fixed-size overlapping windows
   for unstructured text, heading-aware semantic chunks for HTML.

2. **Tag** (content_tagger.py / ContentTagger) -- LLM-derived topical tags,
   with a keyword vocabulary as the offline fallback.

3. **Embed** (embedding_pipeline.py / EmbeddingPipeline) -- runs the embed
   and tag calls for every chunk of a batch concurrently; failures degrade
   to an empty vector or an empty tag list.

Connectors (src/providers/connectors/) compose these stages and persist
the results through the knowledge store.
"""

from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.content_tagger import ContentTagger
from src.services.ingestion.embedding_pipeline import EmbeddingPipeline

__all__ = [
    "ContentTagger",
    "EmbeddingPipeline",
    "TextChunker",
]
