"""Turns vector distances into bounded relevance scores."""
from __future__ import annotations

from dataclasses import replace
from typing import Iterable

from domain.entities import RetrievalResult

DEFAULT_SIGNIFICANCE_THRESHOLD = 0.7


def to_relevance(distance: float) -> float:
    """Map a distance (0 = identical, >= 1 = unrelated) onto ``[0, 1]``."""
    return min(1.0, max(0.0, 1.0 - float(distance)))


class RelevanceRanker:
    """Scores results and decides which ones are significant.

    Results keep the store's order (ascending distance); no secondary sort
    key is applied, so ties stay in native order.
    """

    def __init__(self, threshold: float = DEFAULT_SIGNIFICANCE_THRESHOLD) -> None:
        self.threshold = threshold

    def rank(self, results: Iterable[RetrievalResult]) -> list[RetrievalResult]:
        return [replace(result, relevance_score=to_relevance(result.distance)) for result in results]

    def is_significant(self, result: RetrievalResult) -> bool:
        return result.relevance_score > self.threshold

    def significant(self, results: Iterable[RetrievalResult]) -> list[RetrievalResult]:
        return [result for result in results if self.is_significant(result)]


__all__ = ["DEFAULT_SIGNIFICANCE_THRESHOLD", "RelevanceRanker", "to_relevance"]
