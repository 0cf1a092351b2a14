"""Embedder that averages hashed word vectors (offline, deterministic)."""
from __future__ import annotations

import hashlib
import math
from collections import Counter
from typing import Sequence

from infrastructure.embedding.base_provider import BaseEmbeddingProvider, ModelReadinessGuard


class HashEmbeddingProvider(BaseEmbeddingProvider):
    """Produces deterministic vectors by hashing individual words.

    Texts sharing vocabulary land close together, which is enough for demos
    and for exercising the pipeline without a model runtime.
    """

    def __init__(self, dimension: int = 64, *, guard: ModelReadinessGuard | None = None) -> None:
        super().__init__(guard=guard, max_concurrency=1)
        self.dimension = dimension
        self._model_id = f"hash-words-{dimension}"

    @property
    def model_id(self) -> str:
        return self._model_id

    def _acquire(self) -> None:
        return None

    def _word_vector(self, word: str) -> list[float]:
        digest = hashlib.md5(word.encode("utf-8")).digest()
        return [(digest[i % len(digest)] / 255.0) - 0.5 for i in range(self.dimension)]

    def _combine(self, words: Sequence[str]) -> list[float]:
        counts = Counter(word.lower() for word in words if word.strip())
        vector = [0.0] * self.dimension
        total = sum(counts.values()) or 1
        for word, count in counts.items():
            for idx, value in enumerate(self._word_vector(word)):
                vector[idx] += value * count / total
        norm = math.sqrt(sum(value * value for value in vector)) or 1.0
        return [value / norm for value in vector]

    def _embed_one(self, text: str, timeout: float | None) -> list[float]:
        return self._combine(text.split())

    def embed_batch(self, texts: Sequence[str], *, timeout: float | None = None) -> list[list[float]]:
        self._ready_within(timeout)
        return [self._combine(text.split()) for text in texts]


__all__ = ["HashEmbeddingProvider"]
