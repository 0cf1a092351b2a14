"""Retrieval orchestrator exposed to the chat and document-management surfaces."""
from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterator, TypeVar

from application.use_cases.ingest_documents import ingest_document
from application.use_cases.search import retrieve_context, search
from domain.entities import (
    ContextAssembly,
    IndexedDocument,
    IndexingState,
    RetrievalResult,
    StoreMode,
    StoreStats,
)
from domain.errors import RetrievalError
from infrastructure.config import Container
from infrastructure.text_extraction import extractor_for

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(slots=True)
class _SourceLock:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


class RetrievalService:
    """Façade tying ingestion and query-time retrieval together.

    Each source moves ``UNINDEXED -> CHUNKING -> EMBEDDING -> INDEXED``; any
    failure puts it back to ``UNINDEXED`` and re-raises. Ingestion and
    deletion of the same source are serialized with a per-source lock.
    Sources accepted while the store is degraded are reported as
    unsearchable by ``health()`` until they are re-ingested in live mode.
    Queries take no locks and fail open: errors and timeouts yield empty
    results.
    """

    def __init__(self, container: Container, *, query_workers: int = 4) -> None:
        self._container = container
        self._settings = container.retrieval
        self._states: dict[str, IndexingState] = {}
        self._source_locks: dict[str, _SourceLock] = {}
        self._unsearchable: set[str] = set()
        self._registry_lock = threading.Lock()
        self._query_executor = ThreadPoolExecutor(max_workers=query_workers, thread_name_prefix="retrieval-query")

    def __enter__(self) -> "RetrievalService":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def initialize(self) -> StoreMode:
        """Initialize (or retry) the vector store and return its mode."""
        store = self._container.vector_store
        store.initialize()
        logger.info("Vector store initialized in %s mode", store.mode.value)
        return store.mode

    def close(self) -> None:
        self._query_executor.shutdown(wait=False, cancel_futures=True)

    @property
    def store_mode(self) -> StoreMode:
        return self._container.vector_store.mode

    def state_of(self, source_name: str) -> IndexingState:
        with self._registry_lock:
            return self._states.get(source_name, IndexingState.UNINDEXED)

    def _set_state(self, source_name: str, state: IndexingState) -> None:
        with self._registry_lock:
            if state is IndexingState.UNINDEXED:
                self._states.pop(source_name, None)
                self._unsearchable.discard(source_name)
            else:
                self._states[source_name] = state
        logger.debug("Source %s -> %s", source_name, state.value)

    @contextmanager
    def _source_lock(self, source_name: str) -> Iterator[None]:
        with self._registry_lock:
            entry = self._source_locks.setdefault(source_name, _SourceLock())
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._registry_lock:
                entry.users -= 1
                if not entry.users:
                    del self._source_locks[source_name]

    # Ingestion ---------------------------------------------------------

    def ingest_text(
        self,
        text: str,
        source_name: str,
        source_type: str,
        *,
        subject: str | None = None,
        grade: int | None = None,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> IndexedDocument:
        """Index extracted text. Errors propagate after reverting the state."""
        deadline = timeout if timeout is not None else self._settings.ingest_timeout
        with self._source_lock(source_name):
            try:
                document = ingest_document(
                    text,
                    source_name=source_name,
                    source_type=source_type,
                    chunker=self._container.chunker,
                    embedder=self._container.embedder,
                    vector_store=self._container.vector_store,
                    subject=subject,
                    grade=grade,
                    timeout=deadline,
                    cancel_event=cancel_event,
                    on_state=lambda state: self._set_state(source_name, state),
                )
            except Exception:
                self._set_state(source_name, IndexingState.UNINDEXED)
                logger.exception("Failed to ingest %s", source_name)
                raise
            self._set_state(source_name, IndexingState.INDEXED)
            with self._registry_lock:
                if document.searchable:
                    self._unsearchable.discard(source_name)
                else:
                    self._unsearchable.add(source_name)
        logger.info("Processed %s: %d chunks created", source_name, document.chunks_count)
        return document

    def ingest_file(
        self,
        path: str | Path,
        *,
        source_name: str | None = None,
        subject: str | None = None,
        grade: int | None = None,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> IndexedDocument:
        """Extract text by file extension, then ingest it."""
        file_path = Path(path)
        file_type = file_path.suffix.lower()
        extractor = extractor_for(file_type, self._container.extractors)
        logger.info("Processing file: %s", file_path.name)
        text = extractor.extract(file_path.read_bytes())
        return self.ingest_text(
            text,
            source_name or file_path.name,
            file_type,
            subject=subject,
            grade=grade,
            timeout=timeout,
            cancel_event=cancel_event,
        )

    def delete_source(self, source_name: str) -> int:
        with self._source_lock(source_name):
            removed = self._container.vector_store.delete_by_source(source_name)
            self._set_state(source_name, IndexingState.UNINDEXED)
        logger.info("Deleted document %s (%d chunks)", source_name, removed)
        return removed

    # Query path --------------------------------------------------------

    def _fail_open(self, operation: str, call: Callable[[], T], timeout: float) -> T | None:
        future = self._query_executor.submit(call)
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError:
            future.cancel()
            logger.warning("%s timed out after %ss, continuing without context", operation, timeout)
        except RetrievalError as exc:
            logger.warning("%s failed, continuing without context: %s", operation, exc)
        except Exception:
            logger.exception("%s failed unexpectedly, continuing without context", operation)
        return None

    def search(
        self,
        query: str,
        *,
        subject: str | None = None,
        limit: int | None = None,
        timeout: float | None = None,
    ) -> list[RetrievalResult]:
        """Return scored results for the document search surface."""
        deadline = timeout if timeout is not None else self._settings.query_timeout
        results = self._fail_open(
            "Document search",
            lambda: search(
                query,
                embedder=self._container.embedder,
                vector_store=self._container.vector_store,
                ranker=self._container.ranker,
                top_k=limit or self._settings.query_top_k,
                subject=subject,
                timeout=deadline,
            ),
            deadline,
        )
        return results or []

    def build_chat_context(
        self,
        query: str,
        *,
        subject: str | None = None,
        timeout: float | None = None,
    ) -> ContextAssembly:
        """Return context strings, confidence and source attribution for chat."""
        deadline = timeout if timeout is not None else self._settings.query_timeout
        assembly = self._fail_open(
            "Context retrieval",
            lambda: retrieve_context(
                query,
                embedder=self._container.embedder,
                vector_store=self._container.vector_store,
                ranker=self._container.ranker,
                assembler=self._container.assembler,
                top_k=self._settings.query_top_k,
                subject=subject,
                timeout=deadline,
            ),
            deadline,
        )
        if assembly is None:
            return self._container.assembler.assemble(query, [])
        logger.info(
            "Context assembled (confidence: %s, sources: %d)",
            assembly.confidence,
            len(assembly.sources),
        )
        return assembly

    # Management --------------------------------------------------------

    def ensure_embedding_model(self) -> str:
        """Acquire the embedding model now instead of on first use."""
        embedder = self._container.embedder
        embedder.ensure_ready()
        return embedder.model_id

    def stats(self) -> StoreStats:
        return self._container.vector_store.stats()

    def health(self) -> dict[str, Any]:
        embedder = self._container.embedder
        check = getattr(embedder, "check_connection", None)
        list_models = getattr(embedder, "list_models", None)
        stats = self.stats()
        with self._registry_lock:
            unsearchable = sorted(self._unsearchable)
        return {
            "embedder": {
                "model": embedder.model_id,
                "connected": check() if check else True,
                "models": list_models() if list_models else [embedder.model_id],
            },
            "vector_store": {
                "mode": self.store_mode.value,
                "count": stats.count,
                "unsearchable_sources": unsearchable,
            },
        }


__all__ = ["RetrievalService"]
