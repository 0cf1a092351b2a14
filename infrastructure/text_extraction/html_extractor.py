"""HTML extractor that keeps visible text only."""
from __future__ import annotations

from html.parser import HTMLParser

from domain.interfaces import TextExtractor

_SKIPPED_TAGS = {"script", "style", "noscript", "template"}
_BLOCK_TAGS = {"p", "div", "br", "li", "tr", "h1", "h2", "h3", "h4", "h5", "h6", "section", "article"}


class _VisibleTextParser(HTMLParser):
    def __init__(self) -> None:
        super().__init__()
        self._parts: list[str] = []
        self._skip_depth = 0

    def handle_starttag(self, tag: str, attrs) -> None:
        if tag in _SKIPPED_TAGS:
            self._skip_depth += 1
        elif tag in _BLOCK_TAGS:
            self._parts.append("\n")

    def handle_endtag(self, tag: str) -> None:
        if tag in _SKIPPED_TAGS and self._skip_depth:
            self._skip_depth -= 1

    def handle_data(self, data: str) -> None:
        if not self._skip_depth and data.strip():
            self._parts.append(data.strip())

    def text(self) -> str:
        return " ".join(self._parts).replace(" \n ", "\n").strip()


class HtmlExtractor(TextExtractor):
    """Strips markup with the standard-library parser."""

    def extract(self, source: bytes | str) -> str:
        raw = source.decode("utf-8", errors="ignore") if isinstance(source, bytes) else source
        parser = _VisibleTextParser()
        parser.feed(raw)
        parser.close()
        return parser.text()


__all__ = ["HtmlExtractor"]
