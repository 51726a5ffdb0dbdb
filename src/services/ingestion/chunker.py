"""Text chunking: fixed-size sliding windows and heading-aware semantic chunks.

Two policies are provided:

1. **Fixed-size** (:meth:`TextChunker.chunk`) -- a window of ``chunk_size``
   characters slides over the text, advancing by ``chunk_size - overlap``
   each step, so every chunk after the first repeats the last ``overlap``
   characters of its predecessor.  Used whenever the content has no
   structure (PDF text, plain files, API payloads).

2. **Semantic** (:meth:`TextChunker.semantic_chunk`) -- walks the block
   elements of a parsed HTML tree in document order.  Headings open a new
   section; paragraphs, list items, code and serialized tables accumulate
   into the current section.  Each section is emitted with a
   ``"## <heading>\\n\\n"`` prefix, and a section longer than the window is
   split with the fixed-size policy with the prefix repeated on every
   slice.  Prefix plus body never exceeds ``chunk_size``.
"""

from __future__ import annotations

from collections.abc import Iterator

import structlog
from bs4 import NavigableString, Tag

logger = structlog.get_logger(logger_name=__name__)

_HEADING_TAGS = frozenset({"h1", "h2", "h3", "h4", "h5", "h6"})

# Leaf text blocks: their whole text is one buffer entry.
_TEXT_BLOCK_TAGS = frozenset(
    {"p", "li", "pre", "blockquote", "dd", "dt", "figcaption", "caption", "summary"}
)

_SKIPPED_TAGS = frozenset({"script", "style", "noscript", "template", "svg"})

_BLOCK_TAGS = sorted(_HEADING_TAGS | _TEXT_BLOCK_TAGS | {"table", "div", "section", "article", "ul", "ol"})

_KIND_HEADING = "heading"
_KIND_TEXT = "text"


class TextChunker:
    """Splits text into bounded chunks.

    Parameters
    ----------
    chunk_size:
        Maximum characters per chunk (default 500).
    overlap:
        Characters shared by consecutive fixed-size chunks (default 50).
        Must be smaller than ``chunk_size``.
    """

    def __init__(self, chunk_size: int = 500, overlap: int = 50) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        if overlap < 0 or overlap >= chunk_size:
            raise ValueError(
                f"overlap must satisfy 0 <= overlap < chunk_size, got {overlap} (chunk_size={chunk_size})"
            )
        self._chunk_size = chunk_size
        self._overlap = overlap
        # Long headings are truncated so the body window stays wider than the overlap.
        self._max_heading_len = max(1, (chunk_size - overlap) // 4)

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def overlap(self) -> int:
        return self._overlap

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def chunk(self, text: str) -> list[str]:
        """Split *text* with the fixed-size policy.

        A 1200-character input with the defaults yields chunks starting at
        offsets 0, 450 and 900.  Empty or whitespace-only input returns an
        empty list.
        """
        if not text or not text.strip():
            return []
        chunks = self._windows(text, self._chunk_size, self._overlap)
        logger.debug("chunking_complete", num_chunks=len(chunks), text_length=len(text))
        return chunks

    def semantic_chunk(self, root: Tag, fallback_title: str = "") -> list[str]:
        """Split an HTML content root into heading-prefixed chunks.

        Parameters
        ----------
        root:
            The main-content element of a parsed page.
        fallback_title:
            Heading used for content that appears before the first heading
            (typically the page title).

        Returns
        -------
        list[str]
            Chunks in document order.  A document without any heading is
            chunked with the plain fixed-size policy instead.
        """
        sections: list[tuple[str, list[str]]] = []
        heading = fallback_title.strip()
        buffer: list[str] = []
        all_text: list[str] = []
        saw_heading = False

        for kind, text in self._iter_blocks(root):
            if kind == _KIND_HEADING:
                if buffer:
                    sections.append((heading, buffer))
                heading = text
                buffer = []
                saw_heading = True
            else:
                buffer.append(text)
                all_text.append(text)
        if buffer:
            sections.append((heading, buffer))

        if not saw_heading:
            return self.chunk("\n\n".join(all_text))

        chunks: list[str] = []
        for section_heading, parts in sections:
            body = "\n\n".join(parts).strip()
            if body:
                chunks.extend(self._prefixed_chunks(section_heading, body))

        logger.debug(
            "semantic_chunking_complete",
            num_sections=len(sections),
            num_chunks=len(chunks),
        )
        return chunks

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _windows(text: str, size: int, overlap: int) -> list[str]:
        step = size - overlap
        windows: list[str] = []
        start = 0
        while True:
            windows.append(text[start : start + size])
            if start + size >= len(text):
                break
            start += step
        return windows

    def _prefixed_chunks(self, heading: str, body: str) -> list[str]:
        if not heading:
            return self.chunk(body)

        label = heading[: self._max_heading_len].rstrip()
        prefix = f"## {label}\n\n"
        window = self._chunk_size - len(prefix)
        if window < 1:
            return self.chunk(body)
        if len(body) <= window:
            return [prefix + body]

        overlap = min(self._overlap, window - 1)
        return [prefix + piece for piece in self._windows(body, window, overlap)]

    def _iter_blocks(self, element: Tag) -> Iterator[tuple[str, str]]:
        """Yield ``(kind, text)`` for every content block under *element*."""
        for child in element.children:
            if isinstance(child, Tag):
                yield from self._classify(child)
            elif type(child) is NavigableString:
                # Bare text sitting directly inside a container.
                text = str(child).strip()
                if text:
                    yield _KIND_TEXT, text

    def _classify(self, tag: Tag) -> Iterator[tuple[str, str]]:
        name = tag.name
        if name in _SKIPPED_TAGS:
            return
        if name in _HEADING_TAGS:
            text = tag.get_text(" ", strip=True)
            if text:
                yield _KIND_HEADING, text
            return
        if name == "table":
            text = self._serialize_table(tag)
            if text:
                yield _KIND_TEXT, text
            return
        if name == "pre":
            text = tag.get_text().strip()
            if text:
                yield _KIND_TEXT, text
            return
        if name in _TEXT_BLOCK_TAGS or tag.find(_BLOCK_TAGS) is None:
            text = tag.get_text(" ", strip=True)
            if text:
                yield _KIND_TEXT, text
            return
        yield from self._iter_blocks(tag)

    @staticmethod
    def _serialize_table(table: Tag) -> str:
        """Render a table row by row as ``cell | cell | cell`` lines."""
        lines: list[str] = []
        for row in table.find_all("tr"):
            cells = [cell.get_text(" ", strip=True) for cell in row.find_all(["th", "td"])]
            if any(cells):
                lines.append(" | ".join(cells))
        return "\n".join(lines)
