"""Use case that chunks, embeds and commits one source document."""
from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from domain.entities import IndexedDocument, IndexingState, StoreMode
from domain.errors import IngestionCancelledError, OperationTimeoutError
from domain.interfaces import Chunker, EmbeddingProvider, VectorStore
from infrastructure.splitting.sliding_window_chunker import normalize_text

logger = logging.getLogger(__name__)

PREVIEW_CHARS = 500


def ingest_document(
    text: str,
    *,
    source_name: str,
    source_type: str,
    chunker: Chunker,
    embedder: EmbeddingProvider,
    vector_store: VectorStore,
    subject: str | None = None,
    grade: int | None = None,
    timeout: float | None = None,
    cancel_event: threading.Event | None = None,
    on_state: Callable[[IndexingState], None] | None = None,
) -> IndexedDocument:
    """Index ``text`` as ``source_name``, replacing any previous entries.

    Embeddings for every chunk must arrive before anything is written. New
    chunks are written before stale ones are pruned, so a failed write leaves
    the previous version searchable.
    """

    notify = on_state or (lambda _state: None)
    started = time.monotonic()

    notify(IndexingState.CHUNKING)
    chunks = chunker.chunk(text, source_name, source_type, {"subject": subject, "grade": grade})

    searchable = vector_store.mode is StoreMode.LIVE
    if not searchable:
        logger.warning("Vector store degraded, %s will not be searchable", source_name)
        embeddings: list[list[float]] = []
    else:
        notify(IndexingState.EMBEDDING)
        _raise_if_cancelled(cancel_event, source_name)
        embeddings = embedder.embed_batch(
            [chunk.content for chunk in chunks],
            timeout=_remaining(timeout, started),
        )

    _raise_if_cancelled(cancel_event, source_name)
    if _remaining(timeout, started) == 0.0:
        raise OperationTimeoutError("ingestion", timeout)

    if embeddings:
        # chunk ids are deterministic, so upserting overwrites matching entries
        vector_store.insert(chunks, embeddings)
        vector_store.delete_by_source(source_name, keep_ids={chunk.id for chunk in chunks})

    cleaned = normalize_text(text)
    preview = cleaned[:PREVIEW_CHARS] + ("..." if len(cleaned) > PREVIEW_CHARS else "")
    return IndexedDocument(
        source_name=source_name,
        source_type=source_type,
        chunks_count=len(chunks),
        subject=subject,
        grade=grade,
        preview=preview,
        searchable=searchable,
    )


def _remaining(timeout: float | None, started: float) -> float | None:
    if timeout is None:
        return None
    return max(0.0, timeout - (time.monotonic() - started))


def _raise_if_cancelled(cancel_event: threading.Event | None, source_name: str) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise IngestionCancelledError(source_name)


__all__ = ["ingest_document"]
