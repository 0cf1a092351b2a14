"""Domain entities for the educational retrieval core."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class IndexingState(str, Enum):
    """Lifecycle of a single source document inside the index."""

    UNINDEXED = "unindexed"
    CHUNKING = "chunking"
    EMBEDDING = "embedding"
    INDEXED = "indexed"


class StoreMode(str, Enum):
    """Operating mode of a vector store."""

    LIVE = "live"
    DEGRADED = "degraded"


@dataclass(slots=True)
class ChunkMetadata:
    """Metadata attached to every chunk of a source document."""

    source_name: str
    source_type: str
    chunk_index: int
    ingested_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    subject: str | None = None
    grade: int | None = None

    def to_record(self) -> dict[str, Any]:
        """Flatten into scalar values accepted by vector backends.

        Backends reject ``None`` so missing subject/grade become ``""``/``0``.
        """
        return {
            "source_name": self.source_name,
            "source_type": self.source_type,
            "subject": self.subject or "",
            "grade": int(self.grade or 0),
            "chunk_index": int(self.chunk_index),
            "ingested_at": self.ingested_at.isoformat(),
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "ChunkMetadata":
        raw_time = record.get("ingested_at")
        ingested_at = datetime.fromisoformat(raw_time) if raw_time else datetime.now(timezone.utc)
        return cls(
            source_name=str(record.get("source_name", "")),
            source_type=str(record.get("source_type", "")),
            chunk_index=int(record.get("chunk_index", 0)),
            ingested_at=ingested_at,
            subject=record.get("subject") or None,
            grade=int(record["grade"]) if record.get("grade") else None,
        )


@dataclass(slots=True)
class DocumentChunk:
    """A bounded window of source text, the atomic retrievable unit."""

    id: str
    content: str
    metadata: ChunkMetadata


@dataclass(slots=True)
class RetrievalResult:
    """A single nearest-neighbour hit computed for one query."""

    content: str
    metadata: dict[str, Any]
    distance: float
    relevance_score: float = 0.0

    @property
    def source_name(self) -> str:
        return str(self.metadata.get("source_name", "unknown"))


@dataclass(slots=True)
class StoreStats:
    """Aggregate numbers shown on the document-management surface."""

    count: int = 0
    distinct_subjects: list[str] = field(default_factory=list)


@dataclass(slots=True)
class SourceAttribution:
    """A source that contributed context, with its relevance as a percentage."""

    source_name: str
    relevance_percent: int


@dataclass(slots=True)
class ContextAssembly:
    """Context handed to the generation call together with UI attribution."""

    contexts: list[str] = field(default_factory=list)
    confidence: float = 0.0
    sources: list[SourceAttribution] = field(default_factory=list)

    @property
    def context_used(self) -> bool:
        return bool(self.contexts)


@dataclass(slots=True)
class IndexedDocument:
    """Outcome of a successful ingestion."""

    source_name: str
    source_type: str
    chunks_count: int
    subject: str | None = None
    grade: int | None = None
    preview: str = ""
    searchable: bool = True


__all__ = [
    "ChunkMetadata",
    "ContextAssembly",
    "DocumentChunk",
    "IndexedDocument",
    "IndexingState",
    "RetrievalResult",
    "SourceAttribution",
    "StoreMode",
    "StoreStats",
]
