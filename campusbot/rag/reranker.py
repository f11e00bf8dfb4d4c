"""Keyword re-ranking for leadership questions.

Similarity search alone tends to bury the page that names the principal
under admission notices. When a question mentions a leadership role, chunks
are re-ordered by how many leadership terms they contain.
"""
from typing import Callable, Iterable, List, Optional, Sequence
import structlog

from campusbot import config
from campusbot.models import RetrievedChunk

logger = structlog.get_logger()

Scorer = Callable[[str, Sequence[str]], int]


def count_term_matches(text: str, terms: Sequence[str]) -> int:
    """Number of terms that appear in text (case-insensitive substring)."""
    lowered = text.lower()
    return sum(1 for term in terms if term in lowered)


class KeywordReranker:
    """Stable keyword-overlap re-ranker with configurable trigger terms."""

    def __init__(self, trigger_terms: Iterable[str] = None, scorer: Optional[Scorer] = None):
        terms = config.LEADERSHIP_TERMS if trigger_terms is None else trigger_terms
        self.trigger_terms = tuple(t.lower() for t in terms if t)
        self.scorer = scorer or count_term_matches

    def is_triggered(self, query: str) -> bool:
        return count_term_matches(query, self.trigger_terms) > 0

    def score(self, text: str) -> int:
        return self.scorer(text, self.trigger_terms)

    def rerank(self, results: Sequence[RetrievedChunk], query: str) -> List[RetrievedChunk]:
        """Reorder results by descending keyword score.

        Returns a new list. Untriggered queries keep the input order, and
        ties keep their similarity order.
        """
        if not self.is_triggered(query):
            return list(results)

        # sorted() is stable, so equal scores stay in similarity order
        reranked = sorted(results, key=lambda r: self.score(r.text), reverse=True)

        logger.info(
            "results_reranked",
            result_count=len(reranked),
            top_score=self.score(reranked[0].text) if reranked else None,
        )
        return reranked
