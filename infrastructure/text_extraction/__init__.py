"""Extractors for the document-ingestion boundary, keyed by file extension."""
from __future__ import annotations

from domain.errors import UnsupportedDocumentError
from domain.interfaces import TextExtractor
from infrastructure.text_extraction.docx_extractor import DocxExtractor
from infrastructure.text_extraction.html_extractor import HtmlExtractor
from infrastructure.text_extraction.pdf_extractor import PdfExtractor
from infrastructure.text_extraction.plain_text_extractor import PlainTextExtractor


def default_extractors() -> dict[str, TextExtractor]:
    return {
        ".pdf": PdfExtractor(),
        ".docx": DocxExtractor(),
        ".txt": PlainTextExtractor(),
        ".md": PlainTextExtractor(),
        ".html": HtmlExtractor(),
        ".htm": HtmlExtractor(),
    }


def extractor_for(extension: str, extractors: dict[str, TextExtractor]) -> TextExtractor:
    try:
        return extractors[extension.lower()]
    except KeyError:
        raise UnsupportedDocumentError(extension, sorted(extractors)) from None


__all__ = ["default_extractors", "extractor_for"]
