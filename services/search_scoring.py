"""
Search relevance scoring.

SearchScorer is the hook search_ops ranks candidates with. The default
KeywordOverlapScorer counts how many query words an article contains,
weighting title hits above body hits. FuzzyKeywordScorer also gives
partial credit to near misses (typos) using rapidfuzz. Swap in another
scorer for real relevance.
"""

import re
from abc import ABC, abstractmethod
from typing import List, Set

from rapidfuzz import fuzz

from domain.models import Article

_WORD = re.compile(r"\w+", re.UNICODE)

TITLE_WEIGHT = 0.4
BODY_WEIGHT = 0.6

# Share of an exact hit a close fuzzy hit is worth
FUZZY_WEIGHT = 0.6


def tokenize(text: str) -> List[str]:
    """
    Split text into distinct lower-case words, keeping first-seen order.

    Example:
        >>> tokenize("Reset VPN, reset token")
        ['reset', 'vpn', 'token']
    """
    seen = []
    for word in _WORD.findall((text or "").lower()):
        if word not in seen:
            seen.append(word)
    return seen


class SearchScorer(ABC):
    """Relevance of one article for one query, in [0, 1]."""

    @abstractmethod
    def score(self, article: Article, query: str) -> float:
        pass


class KeywordOverlapScorer(SearchScorer):
    """Share of query words found in the title and in the body/tags."""

    def score(self, article: Article, query: str) -> float:
        terms = tokenize(query)
        if not terms:
            return 0.0

        title_words = set(tokenize(article.title))
        body_words = set(tokenize(" ".join([article.summary, article.content, *article.tags])))

        title_hits = sum(1 for term in terms if term in title_words)
        body_hits = sum(1 for term in terms if term in body_words or term in title_words)

        score = (TITLE_WEIGHT * title_hits + BODY_WEIGHT * body_hits) / len(terms)
        return round(min(score, 1.0), 4)


class FuzzyKeywordScorer(SearchScorer):
    """
    Typo-tolerant keyword overlap.

    Scoring per query word:
    - Exact word in the article: 1 hit
    - Otherwise best rapidfuzz ratio against the article's words; at or
      above min_ratio it counts (ratio / 100) * FUZZY_WEIGHT of a hit

    Candidates still come from the database's substring filter, so at
    least one query word has to appear verbatim.
    """

    def __init__(self, min_ratio: float = 80.0):
        self.min_ratio = min_ratio

    def _match(self, term: str, words: Set[str]) -> float:
        if term in words:
            return 1.0

        best = max((fuzz.ratio(term, word) for word in words), default=0.0)
        if best < self.min_ratio:
            return 0.0
        return (best / 100) * FUZZY_WEIGHT

    def score(self, article: Article, query: str) -> float:
        terms = tokenize(query)
        if not terms:
            return 0.0

        title_words = set(tokenize(article.title))
        body_words = set(tokenize(" ".join([article.summary, article.content, *article.tags]))) | title_words

        title_hits = sum(self._match(term, title_words) for term in terms)
        body_hits = sum(self._match(term, body_words) for term in terms)

        score = (TITLE_WEIGHT * title_hits + BODY_WEIGHT * body_hits) / len(terms)
        return round(min(score, 1.0), 4)
