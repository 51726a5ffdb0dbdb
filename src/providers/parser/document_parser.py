"""Document text extraction for uploads and downloaded connector files.

Dispatches on MIME type:

    application/pdf    → PyMuPDF (fitz), page by page
    DOCX               → python-docx paragraphs and tables
    XLSX               → openpyxl, one "Sheet: <name>" block per worksheet
    text/html          → BeautifulSoup, boilerplate removed
    text/markdown      → Markdown syntax stripped to plain text
    text/plain, CSV    → decoded as-is

Library work is synchronous, so each parse runs in a worker thread to keep
the event loop free for concurrent syncs.  Any library failure is wrapped
in :class:`ParseError`.
"""

from __future__ import annotations

import asyncio
import io
import mimetypes
import re
from collections.abc import Callable

import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention
import structlog
from bs4 import BeautifulSoup
from docx import Document
from openpyxl import load_workbook

from src.interfaces.document_parser import IDocumentParser, ParsedDocument
from src.services.ingestion.chunker import TextChunker
from src.utils.errors import ParseError

logger = structlog.get_logger(logger_name=__name__)

PDF_MIME = "application/pdf"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
HTML_MIME = "text/html"
MARKDOWN_MIME = "text/markdown"
PLAIN_MIME = "text/plain"
CSV_MIME = "text/csv"

# Extensions the stdlib mimetypes table does not reliably know.
_EXTRA_EXTENSIONS: dict[str, str] = {
    ".md": MARKDOWN_MIME,
    ".markdown": MARKDOWN_MIME,
    ".mdx": MARKDOWN_MIME,
    ".docx": DOCX_MIME,
    ".xlsx": XLSX_MIME,
}

_MIME_ALIASES: dict[str, str] = {
    "application/xhtml+xml": HTML_MIME,
    "text/x-markdown": MARKDOWN_MIME,
    "application/csv": CSV_MIME,
}

_HTML_BOILERPLATE = ["script", "style", "nav", "footer", "header", "aside", "form", "noscript"]

_MD_FENCE = re.compile(r"^[ \t]*(```|~~~).*$", re.MULTILINE)
_MD_HEADING = re.compile(r"^[ \t]{0,3}#{1,6}[ \t]*", re.MULTILINE)
_MD_IMAGE = re.compile(r"!\[([^\]]*)\]\([^)]*\)")
_MD_LINK = re.compile(r"\[([^\]]+)\]\([^)]*\)")
_MD_EMPHASIS = re.compile(r"(\*\*|__|\*|_|~~)(?=\S)(.+?)(?<=\S)\1")
_MD_INLINE_CODE = re.compile(r"`([^`]*)`")
_MD_BLOCKQUOTE = re.compile(r"^[ \t]{0,3}>\s?", re.MULTILINE)
_MD_LIST_MARKER = re.compile(r"^[ \t]*(?:[-*+]|\d+[.)])\s+", re.MULTILINE)
_MD_RULE = re.compile(r"^[ \t]*(?:-{3,}|\*{3,}|_{3,})[ \t]*$", re.MULTILINE)
_MD_TITLE = re.compile(r"^[ \t]{0,3}#[ \t]+(.+?)\s*#*[ \t]*$", re.MULTILINE)
_BLANK_RUNS = re.compile(r"\n{3,}")


def guess_mime_type(filename: str, declared: str | None = None) -> str:
    """Resolve a usable MIME type from a declared type and/or a filename."""
    if declared:
        base = declared.split(";", 1)[0].strip().lower()
        if base and base != "application/octet-stream":
            return _MIME_ALIASES.get(base, base)
    lowered = filename.lower()
    for extension, mime in _EXTRA_EXTENSIONS.items():
        if lowered.endswith(extension):
            return mime
    guessed, _ = mimetypes.guess_type(lowered)
    return _MIME_ALIASES.get(guessed or "", guessed or "application/octet-stream")


class DocumentParser(IDocumentParser):
    """Extracts plain text from common document formats.

    Parameters
    ----------
    chunker:
        Chunker used to pre-split the extracted text with the fixed-size
        policy.
    """

    def __init__(self, chunker: TextChunker | None = None) -> None:
        self._chunker = chunker or TextChunker()
        self._handlers: dict[str, Callable[[bytes], tuple[str, str | None]]] = {
            PDF_MIME: self._parse_pdf,
            DOCX_MIME: self._parse_docx,
            XLSX_MIME: self._parse_xlsx,
            HTML_MIME: self._parse_html,
            MARKDOWN_MIME: self._parse_markdown,
            PLAIN_MIME: self._parse_plain,
            CSV_MIME: self._parse_plain,
        }

    def supports(self, mime_type: str) -> bool:
        return self._normalise(mime_type) in self._handlers

    async def parse(self, data: bytes, mime_type: str) -> ParsedDocument:
        normalised = self._normalise(mime_type)
        handler = self._handlers.get(normalised)
        if handler is None:
            raise ParseError(message=f"Unsupported document type: {mime_type}")
        if not data:
            raise ParseError(message="Document is empty")

        try:
            text, title = await asyncio.to_thread(handler, data)
        except ParseError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise ParseError(message=f"Failed to parse {normalised} document: {exc}") from exc

        text = text.strip()
        if not text:
            raise ParseError(message=f"No extractable text in {normalised} document")

        chunks = self._chunker.chunk(text)
        logger.info(
            "document_parsed",
            mime_type=normalised,
            characters=len(text),
            chunks=len(chunks),
        )
        return ParsedDocument(text=text, chunks=chunks, title=title)

    # ------------------------------------------------------------------
    # Format handlers
    # ------------------------------------------------------------------

    @staticmethod
    def _normalise(mime_type: str) -> str:
        base = (mime_type or "").split(";", 1)[0].strip().lower()
        return _MIME_ALIASES.get(base, base)

    @staticmethod
    def _parse_pdf(data: bytes) -> tuple[str, str | None]:
        with fitz.open(stream=data, filetype="pdf") as doc:
            pages = [page.get_text() for page in doc]
            title = (doc.metadata or {}).get("title") or None
        return "\n\n".join(p.strip() for p in pages if p.strip()), title

    @staticmethod
    def _parse_docx(data: bytes) -> tuple[str, str | None]:
        doc = Document(io.BytesIO(data))
        parts = [p.text.strip() for p in doc.paragraphs if p.text.strip()]
        for table in doc.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells]
                if any(cells):
                    parts.append(" | ".join(cells))
        title = doc.core_properties.title or None
        return "\n\n".join(parts), title

    @staticmethod
    def _parse_xlsx(data: bytes) -> tuple[str, str | None]:
        workbook = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
        try:
            blocks = []
            for sheet in workbook.worksheets:
                rows = []
                for row in sheet.iter_rows(values_only=True):
                    cells = ["" if value is None else str(value).strip() for value in row]
                    if any(cells):
                        rows.append(" | ".join(cells))
                if rows:
                    blocks.append(f"Sheet: {sheet.title}\n" + "\n".join(rows))
            title = workbook.properties.title or None
        finally:
            workbook.close()
        return "\n\n".join(blocks), title

    @staticmethod
    def _parse_html(data: bytes) -> tuple[str, str | None]:
        soup = BeautifulSoup(data, "html.parser")
        title_tag = soup.find("title")
        title = title_tag.get_text(strip=True) if title_tag else None
        for tag in soup(_HTML_BOILERPLATE):
            tag.decompose()
        body = soup.body or soup
        text = body.get_text("\n", strip=True)
        return text, title

    @staticmethod
    def _parse_markdown(data: bytes) -> tuple[str, str | None]:
        source = _decode(data)
        title_match = _MD_TITLE.search(source)
        text = _MD_FENCE.sub("", source)
        text = _MD_IMAGE.sub(r"\1", text)
        text = _MD_LINK.sub(r"\1", text)
        text = _MD_RULE.sub("", text)
        text = _MD_HEADING.sub("", text)
        text = _MD_BLOCKQUOTE.sub("", text)
        text = _MD_LIST_MARKER.sub("", text)
        text = _MD_INLINE_CODE.sub(r"\1", text)
        text = _MD_EMPHASIS.sub(r"\2", text)
        text = _BLANK_RUNS.sub("\n\n", text)
        return text, title_match.group(1) if title_match else None

    @staticmethod
    def _parse_plain(data: bytes) -> tuple[str, str | None]:
        return _decode(data), None


def _decode(data: bytes) -> str:
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        return data.decode("latin-1")
