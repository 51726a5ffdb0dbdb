from src.providers.parser.document_parser import DocumentParser, guess_mime_type

__all__ = ["DocumentParser", "guess_mime_type"]
