"""Configuration and dependency wiring for the retrieval core."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Literal

from domain.errors import ConfigurationError
from domain.interfaces import Chunker, EmbeddingProvider, TextExtractor, VectorStore
from infrastructure.embedding.base_provider import ModelReadinessGuard
from infrastructure.embedding.hash_embedder import HashEmbeddingProvider
from infrastructure.embedding.ollama_embedder import OllamaEmbedderConfig, OllamaEmbeddingProvider
from infrastructure.embedding.sentence_transformers_embedder import (
    SentenceTransformersConfig,
    SentenceTransformersEmbeddingProvider,
)
from infrastructure.query.context_assembler import ContextAssembler
from infrastructure.query.relevance_ranker import RelevanceRanker
from infrastructure.splitting.sliding_window_chunker import SlidingWindowChunker
from infrastructure.storage.chroma_vector_store import ChromaStoreConfig, ChromaVectorStore
from infrastructure.storage.degraded_vector_store import DegradedVectorStore
from infrastructure.storage.in_memory_vector_store import InMemoryVectorStore
from infrastructure.storage.managed_vector_store import ManagedVectorStore
from infrastructure.text_extraction import default_extractors

if TYPE_CHECKING:
    from application.services.retrieval_service import RetrievalService


EmbedderName = Literal["ollama", "sentence_transformers", "hash"]
VectorStoreName = Literal["chroma", "memory", "none"]

ENV_PREFIX = "EDUAI_"


@dataclass(slots=True)
class RetrievalConfig:
    """Tunables for chunking, ranking, context assembly and deadlines."""

    window_size: int = 1000
    overlap: int = 200
    min_chunk_chars: int = 50
    significance_threshold: float = 0.7
    max_context_chunks: int = 3
    context_char_budget: int = 300
    query_top_k: int = 5
    confidence_with_context: float = 0.9
    confidence_without_context: float = 0.7
    ingest_timeout: float = 120.0
    query_timeout: float = 15.0
    embed_concurrency: int = 4

    def validate(self) -> None:
        if self.window_size <= 0:
            raise ConfigurationError("window_size must be positive", {"window_size": self.window_size})
        if not 0 <= self.overlap < self.window_size:
            raise ConfigurationError(
                "overlap must satisfy 0 <= overlap < window_size",
                {"overlap": self.overlap, "window_size": self.window_size},
            )
        if not 0.0 <= self.significance_threshold <= 1.0:
            raise ConfigurationError(
                "significance_threshold must lie in [0, 1]",
                {"significance_threshold": self.significance_threshold},
            )
        for name in ("min_chunk_chars", "max_context_chunks", "context_char_budget", "query_top_k", "embed_concurrency"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive", {name: getattr(self, name)})


@dataclass(slots=True)
class ContainerConfig:
    """Selects backends and carries their connection settings."""

    embedder: EmbedderName = "ollama"
    vector_store: VectorStoreName = "chroma"
    ollama_url: str = "http://localhost:11434"
    embedding_model: str = "mxbai-embed-large"
    sentence_transformers_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    chroma_host: str | None = None
    chroma_port: int = 8000
    chroma_persist_dir: str | None = "chroma_data"
    collection_name: str = "edu_ai_documents"
    retrieval: RetrievalConfig = field(default_factory=RetrievalConfig)

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "ContainerConfig":
        """Read ``EDUAI_*`` variables plus ``OLLAMA_URL``/``OLLAMA_EMBEDDING_MODEL``."""
        env = os.environ if environ is None else environ
        defaults = cls()
        retrieval_defaults = RetrievalConfig()

        def text(name: str, default: str | None) -> str | None:
            value = env.get(ENV_PREFIX + name)
            return value.strip() if value and value.strip() else default

        def number(name: str, default, cast: Callable):
            raw = env.get(ENV_PREFIX + name)
            if raw is None or not raw.strip():
                return default
            try:
                return cast(raw.strip())
            except ValueError as exc:
                raise ConfigurationError(f"Invalid value for {ENV_PREFIX + name}: {raw!r}") from exc

        retrieval = RetrievalConfig(
            window_size=number("CHUNK_WINDOW", retrieval_defaults.window_size, int),
            overlap=number("CHUNK_OVERLAP", retrieval_defaults.overlap, int),
            min_chunk_chars=number("MIN_CHUNK_CHARS", retrieval_defaults.min_chunk_chars, int),
            significance_threshold=number(
                "SIGNIFICANCE_THRESHOLD", retrieval_defaults.significance_threshold, float
            ),
            max_context_chunks=number("MAX_CONTEXT_CHUNKS", retrieval_defaults.max_context_chunks, int),
            context_char_budget=number("CONTEXT_CHAR_BUDGET", retrieval_defaults.context_char_budget, int),
            query_top_k=number("QUERY_TOP_K", retrieval_defaults.query_top_k, int),
            ingest_timeout=number("INGEST_TIMEOUT", retrieval_defaults.ingest_timeout, float),
            query_timeout=number("QUERY_TIMEOUT", retrieval_defaults.query_timeout, float),
            embed_concurrency=number("EMBED_CONCURRENCY", retrieval_defaults.embed_concurrency, int),
        )
        return cls(
            embedder=text("EMBEDDER", defaults.embedder),
            vector_store=text("VECTOR_STORE", defaults.vector_store),
            ollama_url=env.get("OLLAMA_URL") or defaults.ollama_url,
            embedding_model=env.get("OLLAMA_EMBEDDING_MODEL") or defaults.embedding_model,
            sentence_transformers_model=text("ST_MODEL", defaults.sentence_transformers_model),
            chroma_host=text("CHROMA_HOST", defaults.chroma_host),
            chroma_port=number("CHROMA_PORT", defaults.chroma_port, int),
            chroma_persist_dir=text("CHROMA_PERSIST_DIR", defaults.chroma_persist_dir),
            collection_name=text("COLLECTION", defaults.collection_name),
            retrieval=retrieval,
        )


@dataclass(slots=True)
class Container:
    """Bundle of concrete implementations used by the retrieval service."""

    extractors: dict[str, TextExtractor]
    chunker: Chunker
    embedder: EmbeddingProvider
    vector_store: VectorStore
    ranker: RelevanceRanker
    assembler: ContextAssembler
    retrieval: RetrievalConfig


def _build_embedder(cfg: ContainerConfig, guard: ModelReadinessGuard) -> EmbeddingProvider:
    if cfg.embedder == "ollama":
        return OllamaEmbeddingProvider(
            OllamaEmbedderConfig(
                model=cfg.embedding_model,
                ollama_url=cfg.ollama_url,
                max_concurrency=cfg.retrieval.embed_concurrency,
            ),
            guard=guard,
        )
    if cfg.embedder == "sentence_transformers":
        return SentenceTransformersEmbeddingProvider(
            SentenceTransformersConfig(model_name=cfg.sentence_transformers_model),
            guard=guard,
        )
    if cfg.embedder == "hash":
        return HashEmbeddingProvider(guard=guard)
    raise ConfigurationError(f"Unknown embedder '{cfg.embedder}'")


def _build_vector_store(cfg: ContainerConfig) -> VectorStore:
    if cfg.vector_store == "chroma":
        live: VectorStore = ChromaVectorStore(
            ChromaStoreConfig(
                collection_name=cfg.collection_name,
                host=cfg.chroma_host,
                port=cfg.chroma_port,
                persist_dir=cfg.chroma_persist_dir,
            )
        )
        return ManagedVectorStore(live)
    if cfg.vector_store == "memory":
        return ManagedVectorStore(InMemoryVectorStore())
    if cfg.vector_store == "none":
        return DegradedVectorStore()
    raise ConfigurationError(f"Unknown vector store '{cfg.vector_store}'")


def build_default_container(config: ContainerConfig | None = None) -> Container:
    """Instantiate the configured infrastructure stack."""

    cfg = config or ContainerConfig()
    cfg.retrieval.validate()
    settings = cfg.retrieval
    ranker = RelevanceRanker(threshold=settings.significance_threshold)
    return Container(
        extractors=default_extractors(),
        chunker=SlidingWindowChunker(
            window_size=settings.window_size,
            overlap=settings.overlap,
            min_chars=settings.min_chunk_chars,
        ),
        embedder=_build_embedder(cfg, ModelReadinessGuard()),
        vector_store=_build_vector_store(cfg),
        ranker=ranker,
        assembler=ContextAssembler(
            ranker,
            max_chunks=settings.max_context_chunks,
            char_budget=settings.context_char_budget,
            confidence_with_context=settings.confidence_with_context,
            confidence_without_context=settings.confidence_without_context,
        ),
        retrieval=settings,
    )


def build_retrieval_service(config: ContainerConfig | None = None) -> "RetrievalService":
    """Build the container and return an initialized retrieval service."""
    from application.services.retrieval_service import RetrievalService

    service = RetrievalService(build_default_container(config))
    service.initialize()
    return service


__all__ = [
    "Container",
    "ContainerConfig",
    "RetrievalConfig",
    "build_default_container",
    "build_retrieval_service",
]
