"""Vector store that switches between a live backend and degraded mode."""
from __future__ import annotations

import logging
import threading
from typing import Any, Collection, Sequence

from domain.entities import DocumentChunk, RetrievalResult, StoreMode, StoreStats
from domain.errors import VectorStoreUnavailableError
from domain.interfaces import VectorStore
from infrastructure.storage.degraded_vector_store import DegradedVectorStore

logger = logging.getLogger(__name__)


class ManagedVectorStore(VectorStore):
    """Delegates to ``live`` until it fails, then to a degraded store.

    ``initialize()`` demotes instead of raising when the backend is
    unreachable; calling it again later retries the live backend. A backend
    failure during a mutation demotes and re-raises. A failure during a read
    demotes and answers empty.
    """

    def __init__(self, live: VectorStore) -> None:
        self._live = live
        self._degraded = DegradedVectorStore()
        self._active: VectorStore = live
        self._switch_lock = threading.Lock()

    @property
    def mode(self) -> StoreMode:
        return self._active.mode

    def initialize(self) -> None:
        try:
            self._live.initialize()
        except VectorStoreUnavailableError as exc:
            self._demote(exc)
            return
        with self._switch_lock:
            if self._active is not self._live:
                logger.info("Vector store back in live mode")
            self._active = self._live

    def _demote(self, exc: Exception) -> None:
        with self._switch_lock:
            if self._active is not self._degraded:
                logger.warning("Vector store unavailable, switching to degraded mode: %s", exc)
            self._active = self._degraded

    def insert(self, chunks: Sequence[DocumentChunk], embeddings: Sequence[Sequence[float]]) -> None:
        try:
            self._active.insert(chunks, embeddings)
        except VectorStoreUnavailableError as exc:
            self._demote(exc)
            raise

    def query(
        self,
        query_embedding: Sequence[float],
        k: int,
        metadata_filter: dict[str, Any] | None = None,
    ) -> list[RetrievalResult]:
        try:
            return self._active.query(query_embedding, k, metadata_filter)
        except VectorStoreUnavailableError as exc:
            self._demote(exc)
            return []

    def delete_by_source(self, source_name: str, keep_ids: Collection[str] | None = None) -> int:
        try:
            return self._active.delete_by_source(source_name, keep_ids)
        except VectorStoreUnavailableError as exc:
            self._demote(exc)
            raise

    def stats(self) -> StoreStats:
        try:
            return self._active.stats()
        except VectorStoreUnavailableError as exc:
            self._demote(exc)
            return StoreStats()


__all__ = ["ManagedVectorStore"]
