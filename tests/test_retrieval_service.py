import tempfile
import threading
import time
import unittest
from pathlib import Path

from application.services.retrieval_service import RetrievalService
from domain.entities import IndexingState, StoreMode
from domain.errors import (
    EmptyContentError,
    IngestionCancelledError,
    ModelUnavailableError,
    OperationTimeoutError,
    UnsupportedDocumentError,
    VectorStoreUnavailableError,
)
from infrastructure.config import Container, RetrievalConfig
from infrastructure.embedding.base_provider import BaseEmbeddingProvider
from infrastructure.embedding.hash_embedder import HashEmbeddingProvider
from infrastructure.query.context_assembler import ContextAssembler
from infrastructure.query.relevance_ranker import RelevanceRanker
from infrastructure.splitting.sliding_window_chunker import SlidingWindowChunker
from infrastructure.storage.degraded_vector_store import DegradedVectorStore
from infrastructure.storage.in_memory_vector_store import InMemoryVectorStore
from infrastructure.storage.managed_vector_store import ManagedVectorStore
from infrastructure.text_extraction import default_extractors


PHYSICS = " ".join(f"fyzika{i} síla pohyb energie" for i in range(60))
BIOLOGY = " ".join(f"biologie{i} buňka jádro membrána" for i in range(60))


class _UnavailableEmbedder(BaseEmbeddingProvider):
    @property
    def model_id(self) -> str:
        return "missing-model"

    def _acquire(self) -> None:
        raise ModelUnavailableError(self.model_id, "pull failed")

    def _embed_one(self, text, timeout):
        raise AssertionError("model was never ready")


class _SlowEmbedder(HashEmbeddingProvider):
    def embed(self, text, *, timeout=None):
        time.sleep(0.5)
        return super().embed(text, timeout=timeout)


class _SlowAcquireEmbedder(HashEmbeddingProvider):
    def _acquire(self) -> None:
        time.sleep(1.0)


class _FailingWriteStore(InMemoryVectorStore):
    def __init__(self) -> None:
        super().__init__()
        self.fail_writes = False

    def insert(self, chunks, embeddings) -> None:
        if self.fail_writes:
            raise VectorStoreUnavailableError("upsert failed")
        super().insert(chunks, embeddings)


class _CountingEmbedder(HashEmbeddingProvider):
    def __init__(self) -> None:
        super().__init__()
        self.batches = 0

    def embed_batch(self, texts, *, timeout=None):
        self.batches += 1
        return super().embed_batch(texts, timeout=timeout)


def _service(embedder=None, store=None, **settings) -> RetrievalService:
    config = RetrievalConfig(window_size=40, overlap=8, min_chunk_chars=20, **settings)
    ranker = RelevanceRanker(threshold=config.significance_threshold)
    container = Container(
        extractors=default_extractors(),
        chunker=SlidingWindowChunker(config.window_size, config.overlap, config.min_chunk_chars),
        embedder=embedder or HashEmbeddingProvider(),
        vector_store=store or ManagedVectorStore(InMemoryVectorStore()),
        ranker=ranker,
        assembler=ContextAssembler(ranker, max_chunks=config.max_context_chunks, char_budget=config.context_char_budget),
        retrieval=config,
    )
    service = RetrievalService(container)
    service.initialize()
    return service


class TestIngestion(unittest.TestCase):
    def setUp(self) -> None:
        self.service = _service()

    def tearDown(self) -> None:
        self.service.close()

    def test_ingest_indexes_every_chunk(self):
        document = self.service.ingest_text(PHYSICS, "fyzika.txt", ".txt", subject="Fyzika", grade=8)

        self.assertEqual(document.chunks_count, 6)
        self.assertEqual(self.service.state_of("fyzika.txt"), IndexingState.INDEXED)
        stats = self.service.stats()
        self.assertEqual(stats.count, document.chunks_count)
        self.assertEqual(stats.distinct_subjects, ["Fyzika"])
        self.assertTrue(document.preview.endswith("..."))

    def test_reingest_replaces_previous_chunks(self):
        self.service.ingest_text(PHYSICS, "fyzika.txt", ".txt")
        self.service.ingest_text(" ".join(PHYSICS.split()[:60]), "fyzika.txt", ".txt")
        self.assertEqual(self.service.stats().count, 2)

    def test_delete_source_clears_its_chunks(self):
        self.service.ingest_text(PHYSICS, "fyzika.txt", ".txt")
        self.service.ingest_text(BIOLOGY, "bio.txt", ".txt")

        removed = self.service.delete_source("fyzika.txt")

        self.assertEqual(removed, 6)
        self.assertEqual(self.service.stats().count, 6)
        self.assertEqual(self.service.state_of("fyzika.txt"), IndexingState.UNINDEXED)

    def test_empty_source_leaves_index_untouched(self):
        with self.assertRaises(EmptyContentError):
            self.service.ingest_text("   \n  ", "empty.txt", ".txt")
        self.assertEqual(self.service.state_of("empty.txt"), IndexingState.UNINDEXED)
        self.assertEqual(self.service.stats().count, 0)

    def test_unavailable_model_fails_ingestion_without_writes(self):
        service = _service(embedder=_UnavailableEmbedder())
        self.addCleanup(service.close)
        with self.assertRaises(ModelUnavailableError):
            service.ingest_text(PHYSICS, "fyzika.txt", ".txt")
        self.assertEqual(service.state_of("fyzika.txt"), IndexingState.UNINDEXED)
        self.assertEqual(service.stats().count, 0)

    def test_failed_reingest_keeps_previous_version(self):
        store = ManagedVectorStore(InMemoryVectorStore())
        first = _service(store=store)
        self.addCleanup(first.close)
        first.ingest_text(PHYSICS, "fyzika.txt", ".txt")

        second = _service(embedder=_UnavailableEmbedder(), store=store)
        self.addCleanup(second.close)
        with self.assertRaises(ModelUnavailableError):
            second.ingest_text(BIOLOGY, "fyzika.txt", ".txt")
        self.assertEqual(store.stats().count, 6)

    def test_failed_write_on_reingest_keeps_previous_version(self):
        store = _FailingWriteStore()
        service = _service(store=store)
        self.addCleanup(service.close)
        service.ingest_text(PHYSICS, "fyzika.txt", ".txt")

        store.fail_writes = True
        with self.assertRaises(VectorStoreUnavailableError):
            service.ingest_text(BIOLOGY, "fyzika.txt", ".txt")

        self.assertEqual(store.stats().count, 6)
        hits = store.query(HashEmbeddingProvider().embed(" ".join(PHYSICS.split()[:40])), 1)
        self.assertTrue(hits[0].content.startswith("fyzika0 "))

    def test_model_acquisition_is_bounded_by_ingest_timeout(self):
        service = _service(embedder=_SlowAcquireEmbedder())
        self.addCleanup(service.close)

        started = time.monotonic()
        with self.assertRaises(OperationTimeoutError):
            service.ingest_text(PHYSICS, "fyzika.txt", ".txt", timeout=0.1)

        self.assertLess(time.monotonic() - started, 0.6)
        self.assertEqual(service.state_of("fyzika.txt"), IndexingState.UNINDEXED)
        self.assertEqual(service.stats().count, 0)

    def test_finished_sources_leave_no_bookkeeping_behind(self):
        self.service.ingest_text(PHYSICS, "fyzika.txt", ".txt")
        self.assertEqual(self.service._source_locks, {})

        self.service.delete_source("fyzika.txt")
        with self.assertRaises(EmptyContentError):
            self.service.ingest_text("", "prazdny.txt", ".txt")

        self.assertEqual(self.service._states, {})
        self.assertEqual(self.service._source_locks, {})

    def test_cancelled_ingestion_commits_nothing(self):
        cancel = threading.Event()
        cancel.set()
        with self.assertRaises(IngestionCancelledError):
            self.service.ingest_text(PHYSICS, "fyzika.txt", ".txt", cancel_event=cancel)
        self.assertEqual(self.service.stats().count, 0)
        self.assertEqual(self.service.state_of("fyzika.txt"), IndexingState.UNINDEXED)

    def test_degraded_store_skips_embedding_but_reports_chunks(self):
        embedder = _CountingEmbedder()
        service = _service(embedder=embedder, store=DegradedVectorStore())
        self.addCleanup(service.close)

        document = service.ingest_text(PHYSICS, "fyzika.txt", ".txt")

        self.assertEqual(service.store_mode, StoreMode.DEGRADED)
        self.assertEqual(document.chunks_count, 6)
        self.assertEqual(embedder.batches, 0)
        self.assertEqual(service.search("síla"), [])

    def test_degraded_ingestion_is_reported_as_unsearchable(self):
        service = _service(store=DegradedVectorStore())
        self.addCleanup(service.close)

        document = service.ingest_text(PHYSICS, "fyzika.txt", ".txt")

        self.assertFalse(document.searchable)
        self.assertEqual(service.state_of("fyzika.txt"), IndexingState.INDEXED)
        self.assertEqual(service.health()["vector_store"]["unsearchable_sources"], ["fyzika.txt"])

        service.delete_source("fyzika.txt")
        self.assertEqual(service.health()["vector_store"]["unsearchable_sources"], [])

    def test_ingest_file_uses_extension_extractor(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "Poznamky.TXT"
            path.write_text(BIOLOGY, encoding="utf-8")
            document = self.service.ingest_file(path, subject="Biologie")
        self.assertEqual(document.source_name, "Poznamky.TXT")
        self.assertEqual(document.source_type, ".txt")
        self.assertEqual(self.service.stats().distinct_subjects, ["Biologie"])

    def test_unsupported_extension_is_rejected(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "slides.pptx"
            path.write_bytes(b"binary")
            with self.assertRaises(UnsupportedDocumentError):
                self.service.ingest_file(path)


class TestQueryPath(unittest.TestCase):
    def setUp(self) -> None:
        self.service = _service()
        self.service.ingest_text(PHYSICS, "fyzika.txt", ".txt", subject="Fyzika")
        self.service.ingest_text(BIOLOGY, "bio.txt", ".txt", subject="Biologie")

    def tearDown(self) -> None:
        self.service.close()

    def test_exact_chunk_text_yields_context(self):
        chunk_text = " ".join(PHYSICS.split()[:40])

        assembly = self.service.build_chat_context(chunk_text)

        self.assertEqual(assembly.confidence, 0.9)
        self.assertTrue(assembly.contexts[0].startswith("[fyzika.txt] "))
        self.assertEqual(assembly.sources[0].source_name, "fyzika.txt")
        self.assertLessEqual(len(assembly.contexts), 3)

    def test_search_is_ordered_and_filtered_by_subject(self):
        results = self.service.search(" ".join(BIOLOGY.split()[:40]), limit=4)
        self.assertEqual(len(results), 4)
        scores = [result.relevance_score for result in results]
        self.assertEqual(scores, sorted(scores, reverse=True))

        filtered = self.service.search(" ".join(BIOLOGY.split()[:40]), subject="Fyzika")
        self.assertTrue(filtered)
        self.assertTrue(all(result.source_name == "fyzika.txt" for result in filtered))

    def test_query_failure_answers_without_context(self):
        service = _service(embedder=_UnavailableEmbedder())
        self.addCleanup(service.close)
        assembly = service.build_chat_context("Co je síla?")
        self.assertEqual(assembly.contexts, [])
        self.assertEqual(assembly.confidence, 0.7)
        self.assertEqual(service.search("Co je síla?"), [])

    def test_query_timeout_answers_without_context(self):
        service = _service(embedder=_SlowEmbedder())
        self.addCleanup(service.close)

        started = time.monotonic()
        assembly = service.build_chat_context("Co je síla?", timeout=0.05)

        self.assertLess(time.monotonic() - started, 0.4)
        self.assertEqual(assembly.contexts, [])
        self.assertEqual(assembly.confidence, 0.7)

    def test_health_reports_model_and_store(self):
        health = self.service.health()
        self.assertEqual(health["embedder"]["model"], "hash-words-64")
        self.assertTrue(health["embedder"]["connected"])
        self.assertEqual(health["vector_store"], {"mode": "live", "count": 12, "unsearchable_sources": []})
        self.assertEqual(self.service.ensure_embedding_model(), "hash-words-64")


if __name__ == "__main__":
    unittest.main()
