"""Vector store kept in process memory, searched by brute force."""
from __future__ import annotations

import threading
from typing import Any, Collection, Sequence

import numpy as np

from domain.entities import DocumentChunk, RetrievalResult, StoreMode, StoreStats
from domain.errors import NotInitializedError
from domain.interfaces import VectorStore


def metadata_matches(metadata: dict[str, Any], metadata_filter: dict[str, Any] | None) -> bool:
    """Return True when every filter key equals the metadata value."""
    if not metadata_filter:
        return True
    return all(metadata.get(key) == value for key, value in metadata_filter.items())


class InMemoryVectorStore(VectorStore):
    """Holds ``(id, embedding, content, metadata)`` tuples in a dict.

    Distances are cosine distances, ``1 - cos``. Entries keep insertion order,
    so equal distances come back in the order they were written.
    """

    def __init__(self) -> None:
        self._entries: dict[str, tuple[np.ndarray, str, dict[str, Any]]] = {}
        self._initialized = False
        self._lock = threading.RLock()

    @property
    def mode(self) -> StoreMode:
        return StoreMode.LIVE

    def initialize(self) -> None:
        self._initialized = True

    def _require_initialized(self, operation: str) -> None:
        if not self._initialized:
            raise NotInitializedError(operation)

    def insert(self, chunks: Sequence[DocumentChunk], embeddings: Sequence[Sequence[float]]) -> None:
        self._require_initialized("insert")
        if len(chunks) != len(embeddings):
            raise ValueError(f"Got {len(chunks)} chunks but {len(embeddings)} embeddings.")
        with self._lock:
            for chunk, embedding in zip(chunks, embeddings):
                vector = np.asarray(embedding, dtype="float32")
                self._entries[chunk.id] = (vector, chunk.content, chunk.metadata.to_record())

    def query(
        self,
        query_embedding: Sequence[float],
        k: int,
        metadata_filter: dict[str, Any] | None = None,
    ) -> list[RetrievalResult]:
        self._require_initialized("query")
        if k <= 0:
            return []
        query_vector = np.asarray(query_embedding, dtype="float32")
        with self._lock:
            candidates = [
                (vector, content, metadata)
                for vector, content, metadata in self._entries.values()
                if metadata_matches(metadata, metadata_filter)
            ]
        scored = [
            RetrievalResult(
                content=content,
                metadata=dict(metadata),
                distance=self._cosine_distance(query_vector, vector),
            )
            for vector, content, metadata in candidates
        ]
        scored.sort(key=lambda result: result.distance)
        return scored[:k]

    def delete_by_source(self, source_name: str, keep_ids: Collection[str] | None = None) -> int:
        self._require_initialized("delete_by_source")
        kept = set(keep_ids or ())
        with self._lock:
            doomed = [
                entry_id
                for entry_id, (_vector, _content, metadata) in self._entries.items()
                if metadata.get("source_name") == source_name and entry_id not in kept
            ]
            for entry_id in doomed:
                del self._entries[entry_id]
        return len(doomed)

    def stats(self) -> StoreStats:
        self._require_initialized("stats")
        with self._lock:
            subjects = {metadata.get("subject") for _v, _c, metadata in self._entries.values()}
            count = len(self._entries)
        return StoreStats(count=count, distinct_subjects=sorted(s for s in subjects if s))

    @staticmethod
    def _cosine_distance(a: np.ndarray, b: np.ndarray) -> float:
        if a.shape != b.shape:
            return 1.0
        norm_a = float(np.linalg.norm(a))
        norm_b = float(np.linalg.norm(b))
        if norm_a == 0.0 or norm_b == 0.0:
            return 1.0
        similarity = float(np.dot(a, b)) / (norm_a * norm_b)
        return 1.0 - max(min(similarity, 1.0), -1.0)


__all__ = ["InMemoryVectorStore", "metadata_matches"]
