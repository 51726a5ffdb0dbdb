"""Embedding & tagging pipeline.

Annotates every chunk of an ingestion batch with an embedding vector and a
tag set.  Both calls for every chunk are dispatched concurrently and joined
before the batch is persisted, so batch latency tracks the slowest chunk
rather than the sum of all chunks.

Failure semantics: a failed embedding becomes an empty vector (the chunk
is stored but excluded from search) and a failed tagging call becomes an
empty tag list.  Neither aborts the batch.
"""

from __future__ import annotations

import asyncio

import structlog

from src.interfaces.embedding_provider import IEmbeddingProvider
from src.services.ingestion.content_tagger import ContentTagger
from src.utils.concurrency import throttled_gather

logger = structlog.get_logger(logger_name=__name__)


class EmbeddingPipeline:
    """Per-chunk embedding and tagging with bounded concurrency.

    Parameters
    ----------
    embedding_provider:
        Provider used for both chunks and search queries.
    tagger:
        Topical tagger; ``None`` disables tagging (tags stay empty).
    max_concurrent:
        Upper bound on in-flight embed/tag calls across one batch.
    """

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        tagger: ContentTagger | None = None,
        max_concurrent: int = 8,
    ) -> None:
        self._embedding_provider = embedding_provider
        self._tagger = tagger
        self._semaphore = asyncio.Semaphore(max_concurrent)

    @property
    def dimension(self) -> int:
        return self._embedding_provider.get_dimension()

    async def embed(self, text: str) -> list[float]:
        """Embed *text*; returns ``[]`` instead of raising on failure."""
        try:
            vector = await self._embedding_provider.embed_single(text)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "embedding_failed",
                provider=self._embedding_provider.get_provider_name(),
                error=str(exc),
                text_preview=text[:80],
            )
            return []
        return [float(v) for v in vector]

    async def tag(self, text: str) -> list[str]:
        """Tag *text*; returns ``[]`` when tagging is disabled or fails."""
        if self._tagger is None:
            return []
        try:
            return await self._tagger.tag(text)
        except Exception as exc:  # noqa: BLE001
            logger.warning("tagging_failed", error=str(exc), text_preview=text[:80])
            return []

    async def annotate(self, texts: list[str]) -> list[tuple[list[float], list[str]]]:
        """Embed and tag every text concurrently.

        Returns
        -------
        list[tuple[list[float], list[str]]]
            ``(embedding, tags)`` pairs aligned with *texts*.
        """
        if not texts:
            return []

        embed_calls = [self.embed(text) for text in texts]
        tag_calls = [self.tag(text) for text in texts]
        results = await throttled_gather(
            [*embed_calls, *tag_calls],
            semaphore=self._semaphore,
            return_exceptions=False,
        )
        embeddings = results[: len(texts)]
        tags = results[len(texts) :]

        logger.info(
            "batch_annotation_complete",
            total=len(texts),
            embedded=sum(1 for e in embeddings if e),
            tagged=sum(1 for t in tags if t),
        )
        return list(zip(embeddings, tags))
