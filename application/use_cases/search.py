"""Use cases that perform semantic search and context assembly."""
from __future__ import annotations

from domain.entities import ContextAssembly, RetrievalResult, StoreMode
from domain.interfaces import EmbeddingProvider, VectorStore
from infrastructure.query.context_assembler import ContextAssembler
from infrastructure.query.relevance_ranker import RelevanceRanker


def search(
    query_text: str,
    *,
    embedder: EmbeddingProvider,
    vector_store: VectorStore,
    ranker: RelevanceRanker,
    top_k: int = 5,
    subject: str | None = None,
    timeout: float | None = None,
) -> list[RetrievalResult]:
    """Embed the query and return scored results, most similar first."""

    if vector_store.mode is StoreMode.DEGRADED:
        return []
    query_embedding = embedder.embed(query_text, timeout=timeout)
    metadata_filter = {"subject": subject} if subject else None
    return ranker.rank(vector_store.query(query_embedding, top_k, metadata_filter))


def retrieve_context(
    query_text: str,
    *,
    embedder: EmbeddingProvider,
    vector_store: VectorStore,
    ranker: RelevanceRanker,
    assembler: ContextAssembler,
    top_k: int = 5,
    subject: str | None = None,
    timeout: float | None = None,
) -> ContextAssembly:
    results = search(
        query_text,
        embedder=embedder,
        vector_store=vector_store,
        ranker=ranker,
        top_k=top_k,
        subject=subject,
        timeout=timeout,
    )
    return assembler.assemble(query_text, results)


__all__ = ["retrieve_context", "search"]
