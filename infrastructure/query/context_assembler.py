"""Builds the bounded context block handed to the generation call."""
from __future__ import annotations

from typing import Sequence

from domain.entities import ContextAssembly, RetrievalResult, SourceAttribution
from infrastructure.query.relevance_ranker import RelevanceRanker


class ContextAssembler:
    """Labels and truncates the top significant chunks.

    Each context line reads ``"[<source_name>] <content prefix>"``. Content
    longer than ``char_budget`` is cut and suffixed with ``ellipsis``.
    """

    def __init__(
        self,
        ranker: RelevanceRanker,
        *,
        max_chunks: int = 3,
        char_budget: int = 300,
        ellipsis: str = "...",
        confidence_with_context: float = 0.9,
        confidence_without_context: float = 0.7,
    ) -> None:
        self._ranker = ranker
        self.max_chunks = max_chunks
        self.char_budget = char_budget
        self.ellipsis = ellipsis
        self.confidence_with_context = confidence_with_context
        self.confidence_without_context = confidence_without_context

    def assemble(
        self,
        query: str,
        results: Sequence[RetrievalResult],
        max_chunks: int | None = None,
    ) -> ContextAssembly:
        limit = self.max_chunks if max_chunks is None else max_chunks
        used = self._ranker.significant(self._ranker.rank(results))[: max(0, limit)]
        if not used:
            return ContextAssembly(contexts=[], confidence=self.confidence_without_context, sources=[])

        return ContextAssembly(
            contexts=[f"[{result.source_name}] {self._truncate(result.content)}" for result in used],
            confidence=self.confidence_with_context,
            sources=[
                SourceAttribution(
                    source_name=result.source_name,
                    relevance_percent=round(result.relevance_score * 100),
                )
                for result in used
            ],
        )

    def _truncate(self, content: str) -> str:
        text = content.strip()
        if len(text) <= self.char_budget:
            return text
        return text[: self.char_budget] + self.ellipsis


__all__ = ["ContextAssembler"]
