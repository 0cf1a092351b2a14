"""Chunker that slides a token window with a fixed overlap."""
from __future__ import annotations

import math
import re
from datetime import datetime, timezone
from typing import Any

from domain.entities import ChunkMetadata, DocumentChunk
from domain.errors import ConfigurationError, EmptyContentError
from domain.interfaces import Chunker

_INLINE_WHITESPACE = re.compile(r"[^\S\n]+")
_BLANK_LINES = re.compile(r"\n\s*\n+")


def normalize_text(text: str) -> str:
    """Collapse runs of whitespace and blank lines. Idempotent."""
    collapsed = _INLINE_WHITESPACE.sub(" ", text)
    lines = (line.strip() for line in collapsed.split("\n"))
    joined = "\n".join(lines)
    return _BLANK_LINES.sub("\n", joined).strip()


class SlidingWindowChunker(Chunker):
    """Split text on whitespace tokens using window ``W`` and overlap ``V``.

    Chunk ``k`` covers tokens ``[max(0, k*W - V), k*W + W)``, so a document of
    ``N`` tokens yields ``ceil(N / W)`` candidates. Candidates shorter than
    ``min_chars`` are dropped and ``chunk_index`` is assigned densely to the
    chunks that survive.
    """

    def __init__(self, window_size: int = 1000, overlap: int = 200, min_chars: int = 50) -> None:
        if window_size <= 0:
            raise ConfigurationError("window_size must be positive", {"window_size": window_size})
        if not 0 <= overlap < window_size:
            raise ConfigurationError(
                "overlap must satisfy 0 <= overlap < window_size",
                {"window_size": window_size, "overlap": overlap},
            )
        self.window_size = window_size
        self.overlap = overlap
        self.min_chars = min_chars

    def chunk(
        self,
        text: str,
        source_name: str,
        source_type: str,
        metadata: dict[str, Any] | None = None,
    ) -> list[DocumentChunk]:
        extra = metadata or {}
        tokens = normalize_text(text).split()
        if not tokens:
            raise EmptyContentError(source_name)

        ingested_at = extra.get("ingested_at") or datetime.now(timezone.utc)
        chunks: list[DocumentChunk] = []
        for k in range(math.ceil(len(tokens) / self.window_size)):
            start = max(0, k * self.window_size - self.overlap)
            content = " ".join(tokens[start : k * self.window_size + self.window_size]).strip()
            if len(content) < self.min_chars:
                continue
            index = len(chunks)
            chunks.append(
                DocumentChunk(
                    id=f"{source_name}_chunk_{index}",
                    content=content,
                    metadata=ChunkMetadata(
                        source_name=source_name,
                        source_type=source_type,
                        chunk_index=index,
                        ingested_at=ingested_at,
                        subject=extra.get("subject"),
                        grade=extra.get("grade"),
                    ),
                )
            )

        if not chunks:
            raise EmptyContentError(
                source_name,
                {"reason": f"every chunk shorter than {self.min_chars} characters"},
            )
        return chunks


__all__ = ["SlidingWindowChunker", "normalize_text"]
