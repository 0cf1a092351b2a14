"""Abstract interfaces for the retrieval core."""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Collection, Sequence

from domain.entities import DocumentChunk, RetrievalResult, StoreMode, StoreStats


class TextExtractor(ABC):
    """Extracts text from uploaded sources (files, raw bytes)."""

    @abstractmethod
    def extract(self, source: bytes | str) -> str:
        """Return the textual representation of a source."""


class Chunker(ABC):
    """Splits cleaned document text into overlapping chunks."""

    @abstractmethod
    def chunk(
        self,
        text: str,
        source_name: str,
        source_type: str,
        metadata: dict[str, Any] | None = None,
    ) -> list[DocumentChunk]:
        """Return the ordered chunks for a single source."""


class EmbeddingProvider(ABC):
    """Turns text (chunks or queries) into fixed-length vectors."""

    @property
    @abstractmethod
    def model_id(self) -> str:
        """Return the stable identifier for the embedding model."""

    @abstractmethod
    def ensure_ready(self) -> None:
        """Make sure the model is available; memoized per model id."""

    @abstractmethod
    def embed(self, text: str, *, timeout: float | None = None) -> list[float]:
        """Embed a single text."""

    @abstractmethod
    def embed_batch(self, texts: Sequence[str], *, timeout: float | None = None) -> list[list[float]]:
        """Embed several texts; output order matches input order."""


class VectorStore(ABC):
    """Persists chunk vectors and answers nearest-neighbour queries."""

    @property
    @abstractmethod
    def mode(self) -> StoreMode:
        """Return whether the store is backed by a live index."""

    @abstractmethod
    def initialize(self) -> None:
        """Establish or confirm the backing index. Idempotent."""

    @abstractmethod
    def insert(self, chunks: Sequence[DocumentChunk], embeddings: Sequence[Sequence[float]]) -> None:
        """Write chunk tuples into the index."""

    @abstractmethod
    def query(
        self,
        query_embedding: Sequence[float],
        k: int,
        metadata_filter: dict[str, Any] | None = None,
    ) -> list[RetrievalResult]:
        """Return up to ``k`` results ordered by ascending distance."""

    @abstractmethod
    def delete_by_source(self, source_name: str, keep_ids: Collection[str] | None = None) -> int:
        """Remove the entries of a source, except ``keep_ids``, and return how many were removed."""

    @abstractmethod
    def stats(self) -> StoreStats:
        """Return the entry count and the distinct subjects."""


__all__ = [
    "Chunker",
    "EmbeddingProvider",
    "TextExtractor",
    "VectorStore",
]
