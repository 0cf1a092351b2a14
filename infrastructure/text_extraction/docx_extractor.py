"""DOCX extractor built on python-docx."""
from __future__ import annotations

from io import BytesIO
from pathlib import Path

from docx import Document as DocxDocument

from domain.interfaces import TextExtractor


class DocxExtractor(TextExtractor):
    """Collects paragraph text, then table rows as tab-separated lines."""

    def extract(self, source: bytes | str) -> str:
        if isinstance(source, bytes):
            return _docx_text(DocxDocument(BytesIO(source)))
        return _docx_text(DocxDocument(Path(source)))


def _docx_text(doc: DocxDocument) -> str:
    lines = [paragraph.text.strip() for paragraph in doc.paragraphs if paragraph.text.strip()]
    for table in doc.tables:
        for row in table.rows:
            cells: list[str] = []
            for cell in row.cells:
                # merged cells are repeated once per spanned column
                text = cell.text.strip()
                if text and (not cells or cells[-1] != text):
                    cells.append(text)
            if cells:
                lines.append("\t".join(cells))
    return "\n".join(lines)


__all__ = ["DocxExtractor"]
