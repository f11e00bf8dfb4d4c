"""Tests for the keyword re-ranker."""
from campusbot.rag.reranker import KeywordReranker, count_term_matches

from conftest import make_result

TERMS = ["principal", "vice principal", "dean", "director", "head"]


class TestTrigger:
    def test_matches_any_term_case_insensitively(self):
        reranker = KeywordReranker(TERMS)
        assert reranker.is_triggered("Who is the PRINCIPAL?")
        assert reranker.is_triggered("Name the Dean of students")

    def test_substring_match_counts(self):
        # "headquarters" contains "head"; the heuristic accepts that
        assert KeywordReranker(TERMS).is_triggered("Where are the headquarters?")

    def test_unrelated_query_does_not_trigger(self):
        assert not KeywordReranker(TERMS).is_triggered("When do admissions open?")

    def test_terms_default_from_config(self):
        reranker = KeywordReranker()
        assert "principal" in reranker.trigger_terms


class TestScoring:
    def test_counts_distinct_terms(self):
        text = "The Vice Principal reports to the Principal and the Director."
        # principal, vice principal, director
        assert count_term_matches(text, TERMS) == 3

    def test_zero_when_nothing_matches(self):
        assert count_term_matches("Admissions open in June.", TERMS) == 0

    def test_custom_scorer_is_used(self):
        reranker = KeywordReranker(["dean"], scorer=lambda text, terms: len(text))
        assert reranker.score("abc") == 3


class TestRerank:
    def test_untriggered_query_keeps_order(self):
        results = [make_result("Dean's office", 0), make_result("Bus routes", 1)]
        reranked = KeywordReranker(TERMS).rerank(results, "Which buses go to campus?")
        assert reranked == results
        assert reranked is not results

    def test_highest_score_first(self):
        results = [
            make_result("Admissions open in June.", 0),
            make_result("Dr. X is the Principal of MITS.", 1),
        ]
        reranked = KeywordReranker(TERMS).rerank(results, "Who is the principal?")
        assert [r.vector_id for r in reranked] == [1, 0]

    def test_ties_keep_similarity_order(self):
        results = [
            make_result("Hostel fees", 0),
            make_result("The Dean approves leave", 1),
            make_result("Canteen timings", 2),
            make_result("Contact the Director", 3),
            make_result("Library hours", 4),
        ]
        reranked = KeywordReranker(TERMS).rerank(results, "who is the dean")
        assert [r.vector_id for r in reranked] == [1, 3, 0, 2, 4]

    def test_multi_term_chunk_beats_single_term_chunk(self):
        results = [
            make_result("Head of the CSE department", 0),
            make_result("Principal and Vice Principal messages", 1),
        ]
        reranked = KeywordReranker(TERMS).rerank(results, "principal")
        assert [r.vector_id for r in reranked] == [1, 0]

    def test_empty_results(self):
        assert KeywordReranker(TERMS).rerank([], "principal") == []
