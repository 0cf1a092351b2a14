"""Text extractor for plain UTF-8 files."""
from __future__ import annotations

from pathlib import Path

from domain.interfaces import TextExtractor


class PlainTextExtractor(TextExtractor):
    """Decodes bytes as UTF-8; a string is read as a path when it exists."""

    def extract(self, source: bytes | str) -> str:
        if isinstance(source, bytes):
            return source.decode("utf-8", errors="ignore")
        path = Path(source)
        if path.is_file():
            return path.read_text(encoding="utf-8", errors="ignore")
        return source


__all__ = ["PlainTextExtractor"]
