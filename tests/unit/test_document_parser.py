"""Unit tests for DocumentParser and MIME type resolution."""

from __future__ import annotations

import io

import fitz
import pytest
from docx import Document
from openpyxl import Workbook

from src.providers.parser.document_parser import (
    CSV_MIME,
    DOCX_MIME,
    HTML_MIME,
    MARKDOWN_MIME,
    PDF_MIME,
    PLAIN_MIME,
    XLSX_MIME,
    DocumentParser,
    guess_mime_type,
)
from src.services.ingestion.chunker import TextChunker
from src.utils.errors import ParseError


@pytest.fixture
def doc_parser() -> DocumentParser:
    return DocumentParser(chunker=TextChunker(chunk_size=100, overlap=10))


def _docx_bytes() -> bytes:
    document = Document()
    document.core_properties.title = "Security Whitepaper"
    document.add_paragraph("All data is encrypted at rest.")
    document.add_paragraph("Access requires MFA.")
    table = document.add_table(rows=2, cols=2)
    table.cell(0, 0).text = "Control"
    table.cell(0, 1).text = "Status"
    table.cell(1, 0).text = "SOC 2"
    table.cell(1, 1).text = "Certified"
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def _xlsx_bytes() -> bytes:
    workbook = Workbook()
    workbook.properties.title = "Price List"
    pricing = workbook.active
    pricing.title = "Pricing"
    pricing.append(["Plan", "Seats", "Price"])
    pricing.append(["Basic", 5, 10])
    pricing.append([None, None, None])
    pricing.append(["Enterprise", None, "Contact us"])
    workbook.create_sheet("Blank")
    workbook.create_sheet("Regions").append(["EU", "Frankfurt"])
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def _pdf_bytes() -> bytes:
    pdf = fitz.open()
    page = pdf.new_page()
    page.insert_text((72, 72), "Quarterly uptime was 99.95 percent.")
    pdf.set_metadata({"title": "Uptime Report"})
    data = pdf.tobytes()
    pdf.close()
    return data


# ---------------------------------------------------------------------------
# MIME resolution
# ---------------------------------------------------------------------------


class TestGuessMimeType:
    @pytest.mark.parametrize(
        ("filename", "expected"),
        [
            ("report.pdf", PDF_MIME),
            ("notes.md", MARKDOWN_MIME),
            ("README.markdown", MARKDOWN_MIME),
            ("policy.docx", DOCX_MIME),
            ("prices.xlsx", XLSX_MIME),
            ("page.html", HTML_MIME),
            ("data.csv", CSV_MIME),
            ("plain.txt", PLAIN_MIME),
            ("mystery", "application/octet-stream"),
        ],
    )
    def test_from_filename(self, filename: str, expected: str) -> None:
        assert guess_mime_type(filename) == expected

    def test_declared_type_wins(self) -> None:
        assert guess_mime_type("file.txt", "text/html; charset=utf-8") == HTML_MIME

    def test_octet_stream_falls_back_to_filename(self) -> None:
        assert guess_mime_type("file.md", "application/octet-stream") == MARKDOWN_MIME

    def test_aliases_normalised(self) -> None:
        assert guess_mime_type("x", "text/x-markdown") == MARKDOWN_MIME


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


class TestDocumentParser:
    @pytest.mark.asyncio
    async def test_plain_text(self, doc_parser: DocumentParser, sample_text: str) -> None:
        result = await doc_parser.parse(sample_text.encode(), PLAIN_MIME)

        assert result.text == sample_text
        assert result.title is None
        assert len(result.chunks) > 1
        assert all(len(c) <= 100 for c in result.chunks)

    @pytest.mark.asyncio
    async def test_plain_text_latin1_fallback(self, doc_parser: DocumentParser) -> None:
        result = await doc_parser.parse("Café menu".encode("latin-1"), PLAIN_MIME)
        assert result.text == "Café menu"

    @pytest.mark.asyncio
    async def test_markdown_stripped(self, doc_parser: DocumentParser) -> None:
        source = (
            "# Security Guide\n\n"
            "We use **TLS** and [single sign-on](https://example.com/sso).\n\n"
            "- first item\n"
            "- second item\n\n"
            "```python\nprint('hi')\n```\n"
        )
        result = await doc_parser.parse(source.encode(), MARKDOWN_MIME)

        assert result.title == "Security Guide"
        assert "Security Guide" in result.text
        assert "We use TLS and single sign-on." in result.text
        assert "first item" in result.text
        assert "**" not in result.text
        assert "https://example.com" not in result.text
        assert "```" not in result.text

    @pytest.mark.asyncio
    async def test_html_boilerplate_removed(self, doc_parser: DocumentParser) -> None:
        html = (
            "<html><head><title>Pricing</title><style>.x{}</style></head>"
            "<body><nav>Menu Links</nav><h1>Plans</h1><p>Per seat pricing.</p>"
            "<footer>Copyright</footer><script>track()</script></body></html>"
        )
        result = await doc_parser.parse(html.encode(), HTML_MIME)

        assert result.title == "Pricing"
        assert "Per seat pricing." in result.text
        assert "Menu Links" not in result.text
        assert "Copyright" not in result.text
        assert "track()" not in result.text

    @pytest.mark.asyncio
    async def test_csv_parsed_as_text(self, doc_parser: DocumentParser) -> None:
        result = await doc_parser.parse(b"plan,price\nbasic,10\n", f"{CSV_MIME}; charset=utf-8")
        assert "basic,10" in result.text

    @pytest.mark.asyncio
    async def test_docx_paragraphs_and_tables(self, doc_parser: DocumentParser) -> None:
        result = await doc_parser.parse(_docx_bytes(), DOCX_MIME)

        assert result.title == "Security Whitepaper"
        assert "All data is encrypted at rest." in result.text
        assert "SOC 2 | Certified" in result.text

    @pytest.mark.asyncio
    async def test_xlsx_one_block_per_sheet(self, doc_parser: DocumentParser) -> None:
        result = await doc_parser.parse(_xlsx_bytes(), XLSX_MIME)

        assert result.title == "Price List"
        assert result.text == (
            "Sheet: Pricing\n"
            "Plan | Seats | Price\n"
            "Basic | 5 | 10\n"
            "Enterprise |  | Contact us\n\n"
            "Sheet: Regions\n"
            "EU | Frankfurt"
        )
        assert "Blank" not in result.text

    @pytest.mark.asyncio
    async def test_corrupt_xlsx_wrapped_in_parse_error(self, doc_parser: DocumentParser) -> None:
        with pytest.raises(ParseError, match="Failed to parse"):
            await doc_parser.parse(b"PK\x03\x04 not a workbook", XLSX_MIME)

    @pytest.mark.asyncio
    async def test_pdf_text_and_title(self, doc_parser: DocumentParser) -> None:
        result = await doc_parser.parse(_pdf_bytes(), PDF_MIME)

        assert result.title == "Uptime Report"
        assert "99.95" in result.text

    @pytest.mark.asyncio
    async def test_unsupported_type_raises(self, doc_parser: DocumentParser) -> None:
        assert not doc_parser.supports("image/png")
        with pytest.raises(ParseError, match="Unsupported document type"):
            await doc_parser.parse(b"\x89PNG\r\n", "image/png")

    @pytest.mark.asyncio
    async def test_empty_document_raises(self, doc_parser: DocumentParser) -> None:
        with pytest.raises(ParseError, match="empty"):
            await doc_parser.parse(b"", PLAIN_MIME)

    @pytest.mark.asyncio
    async def test_whitespace_document_raises(self, doc_parser: DocumentParser) -> None:
        with pytest.raises(ParseError, match="No extractable text"):
            await doc_parser.parse(b"   \n\n  ", PLAIN_MIME)

    @pytest.mark.asyncio
    async def test_corrupt_pdf_wrapped_in_parse_error(self, doc_parser: DocumentParser) -> None:
        with pytest.raises(ParseError, match="Failed to parse"):
            await doc_parser.parse(b"not really a pdf", PDF_MIME)

    def test_supports_ignores_parameters(self, doc_parser: DocumentParser) -> None:
        assert doc_parser.supports("text/plain; charset=utf-8")
        assert doc_parser.supports("application/xhtml+xml")
