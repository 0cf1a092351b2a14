"""Vector store used while no index backend is reachable."""
from __future__ import annotations

import logging
from typing import Any, Collection, Sequence

from domain.entities import DocumentChunk, RetrievalResult, StoreMode, StoreStats
from domain.interfaces import VectorStore

logger = logging.getLogger(__name__)


class DegradedVectorStore(VectorStore):
    """Accepts every call and answers with empty results."""

    @property
    def mode(self) -> StoreMode:
        return StoreMode.DEGRADED

    def initialize(self) -> None:
        return None

    def insert(self, chunks: Sequence[DocumentChunk], embeddings: Sequence[Sequence[float]]) -> None:
        logger.info("Vector store degraded, skipping indexing of %d chunks", len(chunks))

    def query(
        self,
        query_embedding: Sequence[float],
        k: int,
        metadata_filter: dict[str, Any] | None = None,
    ) -> list[RetrievalResult]:
        logger.debug("Vector store degraded, returning empty results")
        return []

    def delete_by_source(self, source_name: str, keep_ids: Collection[str] | None = None) -> int:
        return 0

    def stats(self) -> StoreStats:
        return StoreStats(count=0, distinct_subjects=[])


__all__ = ["DegradedVectorStore"]
