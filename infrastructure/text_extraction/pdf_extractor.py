"""PDF extractor built on pypdf."""
from __future__ import annotations

from io import BytesIO
from pathlib import Path

from pypdf import PdfReader

from domain.interfaces import TextExtractor


class PdfExtractor(TextExtractor):
    """Concatenates the text layer of every page."""

    def extract(self, source: bytes | str) -> str:
        if isinstance(source, bytes):
            reader = PdfReader(BytesIO(source))
        else:
            reader = PdfReader(Path(source))
        pages = (page.extract_text() or "" for page in reader.pages)
        return "\n".join(text for text in pages if text.strip())


__all__ = ["PdfExtractor"]
