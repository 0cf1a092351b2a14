"""Embedding provider backed by sentence-transformers."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from domain.errors import ModelUnavailableError
from infrastructure.embedding.base_provider import BaseEmbeddingProvider, ModelReadinessGuard

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SentenceTransformersConfig:
    model_name: str = "sentence-transformers/all-MiniLM-L6-v2"
    device: str = "cpu"
    normalize_embeddings: bool = True
    batch_size: int = 16


class SentenceTransformersEmbeddingProvider(BaseEmbeddingProvider):
    """Loads the model lazily on first use and encodes locally.

    Encoding is in-process, so ``timeout`` bounds model loading only.
    """

    def __init__(
        self,
        config: SentenceTransformersConfig | None = None,
        *,
        guard: ModelReadinessGuard | None = None,
    ) -> None:
        super().__init__(guard=guard, max_concurrency=1)
        self._config = config or SentenceTransformersConfig()
        self._model = None

    @property
    def model_id(self) -> str:
        return self._config.model_name

    def _acquire(self) -> None:
        logger.info("Loading sentence-transformers model: %s", self._config.model_name)
        try:
            from sentence_transformers import SentenceTransformer

            self._model = SentenceTransformer(self._config.model_name, device=self._config.device)
        except Exception as exc:
            raise ModelUnavailableError(self._config.model_name, str(exc)) from exc

    def _encode(self, texts: Sequence[str]) -> list[list[float]]:
        embeddings = self._model.encode(
            list(texts),
            batch_size=self._config.batch_size,
            normalize_embeddings=self._config.normalize_embeddings,
            show_progress_bar=False,
        )
        return embeddings.tolist()

    def _embed_one(self, text: str, timeout: float | None) -> list[float]:
        return self._encode([text])[0]

    def embed_batch(self, texts: Sequence[str], *, timeout: float | None = None) -> list[list[float]]:
        if not texts:
            return []
        self._ready_within(timeout)
        logger.debug("Encoding %d texts with %s", len(texts), self._config.model_name)
        return self._encode(texts)


__all__ = ["SentenceTransformersEmbeddingProvider", "SentenceTransformersConfig"]
