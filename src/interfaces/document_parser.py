"""Abstract base class for document text-extraction services.

Turns uploaded or downloaded file bytes (PDF, Word, Markdown, HTML,
plain text) into plain text.  Callers treat it as a black box that either
returns text or raises :class:`~src.utils.errors.ParseError`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class ParsedDocument:
    """Text extracted from a document.

    Attributes
    ----------
    text:
        The full extracted text.
    chunks:
        ``text`` split with the fixed-size chunking policy.
    title:
        A title found inside the document (PDF metadata, HTML ``<title>``,
        first Markdown heading), if any.
    """

    text: str
    chunks: list[str] = field(default_factory=list)
    title: str | None = None


# Concrete implementation: DocumentParser (src/providers/parser/)
class IDocumentParser(ABC):
    """Contract for document text extraction."""

    @abstractmethod
    async def parse(self, data: bytes, mime_type: str) -> ParsedDocument:
        """Extract text from *data*.

        Raises
        ------
        src.utils.errors.ParseError
            If the MIME type is unsupported or the payload is malformed.
        """

    @abstractmethod
    def supports(self, mime_type: str) -> bool:
        """Return ``True`` if *mime_type* can be parsed."""
