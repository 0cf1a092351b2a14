import unittest

from domain.entities import ChunkMetadata, RetrievalResult, SourceAttribution
from infrastructure.query.context_assembler import ContextAssembler
from infrastructure.query.relevance_ranker import RelevanceRanker, to_relevance


def _result(source: str, distance: float, content: str = "obsah") -> RetrievalResult:
    return RetrievalResult(content=content, metadata={"source_name": source}, distance=distance)


class TestToRelevance(unittest.TestCase):
    def test_stays_within_unit_interval(self):
        for distance in [-0.5, 0.0, 0.25, 1.0, 1.7, 2.0, 40.0]:
            with self.subTest(distance=distance):
                self.assertGreaterEqual(to_relevance(distance), 0.0)
                self.assertLessEqual(to_relevance(distance), 1.0)

    def test_is_monotone_non_increasing(self):
        distances = [0.0, 0.1, 0.3, 0.3, 0.9, 1.0, 1.5]
        scores = [to_relevance(distance) for distance in distances]
        self.assertEqual(scores, sorted(scores, reverse=True))

    def test_identical_vectors_score_one(self):
        self.assertEqual(to_relevance(0.0), 1.0)
        self.assertEqual(to_relevance(1.2), 0.0)


class TestRelevanceRanker(unittest.TestCase):
    def test_rank_scores_without_reordering(self):
        ranker = RelevanceRanker()
        ranked = ranker.rank([_result("a", 0.2), _result("b", 0.2), _result("c", 0.5)])
        self.assertEqual([r.source_name for r in ranked], ["a", "b", "c"])
        self.assertAlmostEqual(ranked[0].relevance_score, 0.8)
        self.assertAlmostEqual(ranked[2].relevance_score, 0.5)

    def test_threshold_is_strict(self):
        ranker = RelevanceRanker(threshold=0.7)
        self.assertFalse(ranker.is_significant(RetrievalResult("x", {}, 0.3, relevance_score=0.7)))
        self.assertTrue(ranker.is_significant(RetrievalResult("x", {}, 0.29, relevance_score=0.71)))


class TestContextAssembler(unittest.TestCase):
    def setUp(self) -> None:
        self.assembler = ContextAssembler(RelevanceRanker(threshold=0.7))

    def test_only_significant_results_are_used(self):
        assembly = self.assembler.assemble(
            "Co je síla?",
            [_result("fyzika.pdf", 0.1, "Síla je vektorová veličina."), _result("dejepis.pdf", 0.9, "Bitva")],
        )
        self.assertEqual(assembly.contexts, ["[fyzika.pdf] Síla je vektorová veličina."])
        self.assertEqual(assembly.confidence, 0.9)
        self.assertEqual(assembly.sources, [SourceAttribution(source_name="fyzika.pdf", relevance_percent=90)])
        self.assertTrue(assembly.context_used)

    def test_no_results_falls_back_to_plain_confidence(self):
        assembly = self.assembler.assemble("Co je síla?", [])
        self.assertEqual(assembly.contexts, [])
        self.assertEqual(assembly.sources, [])
        self.assertEqual(assembly.confidence, 0.7)
        self.assertFalse(assembly.context_used)

    def test_insignificant_results_fall_back_as_well(self):
        assembly = self.assembler.assemble("q", [_result("a", 0.3), _result("b", 0.8)])
        self.assertEqual(assembly.contexts, [])
        self.assertEqual(assembly.confidence, 0.7)

    def test_long_content_is_truncated_with_ellipsis(self):
        assembly = self.assembler.assemble("q", [_result("a", 0.0, "x" * 450)])
        self.assertEqual(assembly.contexts, ["[a] " + "x" * 300 + "..."])

    def test_content_within_budget_is_not_marked(self):
        assembly = self.assembler.assemble("q", [_result("a", 0.0, "y" * 300)])
        self.assertEqual(assembly.contexts, ["[a] " + "y" * 300])

    def test_at_most_max_chunks_in_store_order(self):
        results = [_result(f"s{i}", 0.05 * i) for i in range(5)]
        assembly = self.assembler.assemble("q", results)
        self.assertEqual([source.source_name for source in assembly.sources], ["s0", "s1", "s2"])
        self.assertEqual(len(self.assembler.assemble("q", results, max_chunks=1).contexts), 1)

    def test_metadata_records_provide_source_labels(self):
        record = ChunkMetadata(source_name="bio.docx", source_type=".docx", chunk_index=0).to_record()
        assembly = self.assembler.assemble("q", [RetrievalResult("Buňka", record, 0.05)])
        self.assertEqual(assembly.contexts, ["[bio.docx] Buňka"])
        self.assertEqual(assembly.sources[0].relevance_percent, 95)


if __name__ == "__main__":
    unittest.main()
