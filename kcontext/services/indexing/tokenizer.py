"""Tokenization of queries, transcript text and keyword lists."""

import re
from collections.abc import Iterable

from kcontext.services.indexing.normalizer import normalize_for_search, normalize_token

DEFAULT_KOREAN_STOPWORDS: tuple[str, ...] = (
    "그",
    "저",
    "이",
    "그리고",
    "그래서",
    "근데",
    "진짜",
    "정말",
    "아",
    "어",
    "음",
    "네",
    "응",
    "것",
    "수",
    "더",
    "좀",
    "또",
    "그거",
    "이거",
    "저거",
    "하다",
)

# Letter or digit, then letters, digits, apostrophes or hyphens.
_WORD = re.compile(r"[^\W_](?:[^\W_]|['-])*")
_NON_WORD = re.compile(r"[\W_]+")


def _dedupe(items: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    unique: list[str] = []
    for item in items:
        if item in seen:
            continue
        seen.add(item)
        unique.append(item)
    return unique


def tokenize_query(query: str) -> list[str]:
    """Split a query into unique normalized terms, keeping first-seen order."""
    return _dedupe(term for term in normalize_for_search(query).split(" ") if term)


def tokenize_words(text: str) -> list[str]:
    """Extract raw word tokens from transcript text."""
    if not text:
        return []
    words = (match.group(0).strip() for match in _WORD.finditer(text))
    return [word for word in words if word]


def normalize_stopwords(stopwords: Iterable[str] | None) -> frozenset[str]:
    """Normalize a stopword list the same way indexed tokens are normalized."""
    if stopwords is None:
        return frozenset()
    return frozenset(filter(None, (normalize_token(word) for word in stopwords)))


def extract_keywords(text: str, stopwords: Iterable[str] | None = None) -> list[str]:
    """Extract unique, canonicalized keywords from free text.

    Args:
        text: Arbitrary text (query, transcript line)
        stopwords: Words to drop; defaults to DEFAULT_KOREAN_STOPWORDS

    Returns:
        Keywords in first-seen order
    """
    stopword_set = normalize_stopwords(
        DEFAULT_KOREAN_STOPWORDS if stopwords is None else stopwords
    )
    tokens = (normalize_token(token) for token in _NON_WORD.sub(" ", text.lower()).split())
    return _dedupe(token for token in tokens if token and token not in stopword_set)
