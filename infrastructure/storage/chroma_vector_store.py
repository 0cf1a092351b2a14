"""ChromaDB-backed vector store."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Collection, Sequence

from domain.entities import DocumentChunk, RetrievalResult, StoreMode, StoreStats
from domain.errors import NotInitializedError, VectorStoreUnavailableError
from domain.interfaces import VectorStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ChromaStoreConfig:
    collection_name: str = "edu_ai_documents"
    host: str | None = None
    port: int = 8000
    persist_dir: str | None = None


class ChromaVectorStore(VectorStore):
    """Stores chunks in a Chroma collection using cosine distance.

    The client is created on ``initialize()``. Any backend exception is
    re-raised as :class:`VectorStoreUnavailableError`.
    """

    def __init__(
        self,
        config: ChromaStoreConfig | None = None,
        *,
        client_factory: Callable[[], Any] | None = None,
    ) -> None:
        self._config = config or ChromaStoreConfig()
        self._client_factory = client_factory or self._create_client
        self._client: Any = None
        self._collection: Any = None

    @property
    def mode(self) -> StoreMode:
        return StoreMode.LIVE

    def _create_client(self) -> Any:
        import chromadb

        if self._config.host:
            return chromadb.HttpClient(host=self._config.host, port=self._config.port)
        if self._config.persist_dir:
            return chromadb.PersistentClient(path=self._config.persist_dir)
        return chromadb.EphemeralClient()

    def initialize(self) -> None:
        try:
            if self._client is None:
                self._client = self._client_factory()
            self._client.heartbeat()
            self._collection = self._client.get_or_create_collection(
                name=self._config.collection_name,
                metadata={"hnsw:space": "cosine", "description": "Educational documents and materials"},
            )
        except Exception as exc:
            self._client = None
            self._collection = None
            raise VectorStoreUnavailableError(f"Chroma backend unavailable: {exc}") from exc
        logger.info(
            "Chroma collection '%s' ready (%d entries)",
            self._config.collection_name,
            self._collection.count(),
        )

    def _require_collection(self, operation: str) -> Any:
        if self._collection is None:
            raise NotInitializedError(operation)
        return self._collection

    def insert(self, chunks: Sequence[DocumentChunk], embeddings: Sequence[Sequence[float]]) -> None:
        collection = self._require_collection("insert")
        if not chunks:
            return
        if len(chunks) != len(embeddings):
            raise ValueError(f"Got {len(chunks)} chunks but {len(embeddings)} embeddings.")
        try:
            collection.upsert(
                ids=[chunk.id for chunk in chunks],
                embeddings=[list(vector) for vector in embeddings],
                documents=[chunk.content for chunk in chunks],
                metadatas=[chunk.metadata.to_record() for chunk in chunks],
            )
        except Exception as exc:
            raise VectorStoreUnavailableError(f"Chroma insert failed: {exc}") from exc
        logger.info("Added %d document chunks to vector database", len(chunks))

    def query(
        self,
        query_embedding: Sequence[float],
        k: int,
        metadata_filter: dict[str, Any] | None = None,
    ) -> list[RetrievalResult]:
        collection = self._require_collection("query")
        try:
            total = collection.count()
            if total == 0 or k <= 0:
                return []
            raw = collection.query(
                query_embeddings=[list(query_embedding)],
                n_results=min(k, total),
                where=self._where(metadata_filter),
                include=["documents", "metadatas", "distances"],
            )
        except Exception as exc:
            raise VectorStoreUnavailableError(f"Chroma query failed: {exc}") from exc

        documents = (raw.get("documents") or [[]])[0] or []
        metadatas = (raw.get("metadatas") or [[]])[0] or []
        distances = (raw.get("distances") or [[]])[0] or []
        results: list[RetrievalResult] = []
        for index, document in enumerate(documents):
            if not document:
                continue
            results.append(
                RetrievalResult(
                    content=document,
                    metadata=dict(metadatas[index] or {}) if index < len(metadatas) else {},
                    distance=float(distances[index]) if index < len(distances) else 1.0,
                )
            )
        return results

    def delete_by_source(self, source_name: str, keep_ids: Collection[str] | None = None) -> int:
        collection = self._require_collection("delete_by_source")
        kept = set(keep_ids or ())
        try:
            existing = collection.get(where={"source_name": source_name}, include=[])
            ids = [entry_id for entry_id in existing.get("ids") or [] if entry_id not in kept]
            if ids:
                collection.delete(ids=ids)
        except Exception as exc:
            raise VectorStoreUnavailableError(f"Chroma delete failed: {exc}") from exc
        if ids:
            logger.info("Deleted %d chunks for source: %s", len(ids), source_name)
        return len(ids)

    def stats(self) -> StoreStats:
        collection = self._require_collection("stats")
        try:
            count = collection.count()
            records = collection.get(include=["metadatas"])
        except Exception as exc:
            raise VectorStoreUnavailableError(f"Chroma stats failed: {exc}") from exc
        subjects = {(metadata or {}).get("subject") for metadata in records.get("metadatas") or []}
        return StoreStats(count=count, distinct_subjects=sorted(s for s in subjects if s))

    @staticmethod
    def _where(metadata_filter: dict[str, Any] | None) -> dict[str, Any] | None:
        if not metadata_filter:
            return None
        if len(metadata_filter) == 1:
            return dict(metadata_filter)
        return {"$and": [{key: value} for key, value in metadata_filter.items()]}


__all__ = ["ChromaVectorStore", "ChromaStoreConfig"]
