"""Shared plumbing for embedding providers: readiness guard and batch fan-out."""
from __future__ import annotations

import logging
import threading
import time
from abc import abstractmethod
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable, Sequence

from domain.errors import OperationTimeoutError
from domain.interfaces import EmbeddingProvider

logger = logging.getLogger(__name__)


class ModelReadinessGuard:
    """One-shot initializer keyed by model identifier.

    ``acquire`` runs at most once successfully per model id. A failed
    acquisition is not memoized, so a later request may try again.
    """

    def __init__(self) -> None:
        self._ready: set[str] = set()
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def ensure(self, model_id: str, acquire: Callable[[], None]) -> None:
        if model_id in self._ready:
            return
        with self._registry_lock:
            model_lock = self._locks.setdefault(model_id, threading.Lock())
        with model_lock:
            if model_id in self._ready:
                return
            acquire()
            self._ready.add(model_id)
            logger.debug("Model %s marked ready", model_id)

    def is_ready(self, model_id: str) -> bool:
        return model_id in self._ready

    def reset(self, model_id: str | None = None) -> None:
        with self._registry_lock:
            if model_id is None:
                self._ready.clear()
            else:
                self._ready.discard(model_id)


class BaseEmbeddingProvider(EmbeddingProvider):
    """Embeds one text per call and fans batches out over a bounded pool.

    A caller-supplied timeout covers model acquisition as well as the
    embedding requests themselves.
    """

    def __init__(
        self,
        *,
        guard: ModelReadinessGuard | None = None,
        max_concurrency: int = 4,
        default_timeout: float | None = None,
    ) -> None:
        self._guard = guard or ModelReadinessGuard()
        self._max_concurrency = max(1, max_concurrency)
        self._default_timeout = default_timeout

    @abstractmethod
    def _acquire(self) -> None:
        """Check the model is present and fetch it if not."""

    @abstractmethod
    def _embed_one(self, text: str, timeout: float | None) -> list[float]:
        """Embed a single text against the ready model."""

    def ensure_ready(self) -> None:
        self._guard.ensure(self.model_id, self._acquire)

    def _ready_within(self, timeout: float | None) -> None:
        """Run ``ensure_ready`` but give up waiting once ``timeout`` elapses.

        An abandoned acquisition keeps running in the background and a later
        call finds the model ready.
        """
        if timeout is None or self._guard.is_ready(self.model_id):
            self.ensure_ready()
            return
        if timeout <= 0:
            raise OperationTimeoutError("model acquisition", timeout)
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="model-acquire")
        future = executor.submit(self.ensure_ready)
        executor.shutdown(wait=False)
        try:
            future.result(timeout=timeout)
        except FutureTimeoutError:
            logger.warning("Model %s not ready within %ss", self.model_id, timeout)
            raise OperationTimeoutError("model acquisition", timeout) from None

    def _request_budget(self, timeout: float | None, started: float, operation: str) -> float | None:
        """Time left of the caller's budget, or the per-request default."""
        if timeout is None:
            return self._default_timeout
        remaining = timeout - (time.monotonic() - started)
        if remaining <= 0:
            raise OperationTimeoutError(operation, timeout)
        return remaining

    def embed(self, text: str, *, timeout: float | None = None) -> list[float]:
        started = time.monotonic()
        self._ready_within(timeout)
        return self._embed_one(text, self._request_budget(timeout, started, "embedding request"))

    def embed_batch(self, texts: Sequence[str], *, timeout: float | None = None) -> list[list[float]]:
        if not texts:
            return []
        started = time.monotonic()
        self._ready_within(timeout)
        deadline = self._request_budget(timeout, started, "embedding batch")

        executor = ThreadPoolExecutor(
            max_workers=min(self._max_concurrency, len(texts)),
            thread_name_prefix="embed",
        )
        try:
            futures: list[Future[list[float]]] = [
                executor.submit(self._embed_one, text, deadline) for text in texts
            ]
            done, pending = wait(futures, timeout=deadline, return_when=FIRST_EXCEPTION)
            for future in futures:
                if future in done and future.exception() is not None:
                    raise future.exception()  # type: ignore[misc]
            if pending:
                raise OperationTimeoutError("embedding batch", deadline)
            return [future.result() for future in futures]
        finally:
            executor.shutdown(wait=False, cancel_futures=True)


__all__ = ["BaseEmbeddingProvider", "ModelReadinessGuard"]
