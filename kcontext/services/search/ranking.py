"""Relevance scoring and reranking of store candidates.

The store returns keyword candidates with its own match statistics. Here the
exact matches are re-normalized against the query, near-miss spellings are
recovered with a bounded edit-distance search over the chunk's words, and the
keyword, text and coverage signals are blended into one final score.
"""

import math
from dataclasses import dataclass
from typing import Iterable, Sequence

from kcontext.models.search import CandidateRow, SearchResult
from kcontext.services.indexing.normalizer import normalize_for_search

RELEVANCE_WEIGHTS = {
    "keyword": 0.55,
    "text": 0.30,
    "coverage": 0.15,
}

COVERAGE_QUERY_WEIGHT = 0.65
COVERAGE_DENSITY_WEIGHT = 0.35

# Fuzzy matching thresholds. Empirically tuned; adjust together.
FUZZY_MIN_QUERY_TERM_LENGTH = 4
FUZZY_MIN_TOKEN_LENGTH = 3
FUZZY_MIN_COMMON_PREFIX = 2
FUZZY_RULES: tuple[tuple[int, float], ...] = (
    # (max edit distance, min similarity)
    (1, 0.72),
    (2, 0.86),
)


@dataclass(frozen=True)
class RelevanceScoreBreakdown:
    """Clamped score components and their weighted blend."""

    keyword_score: float
    text_score: float
    coverage_score: float
    final_score: float


@dataclass(frozen=True)
class FuzzyMatch:
    """A chunk word accepted as a near-miss spelling of a query term."""

    term: str
    token: str
    distance: int
    similarity: float


@dataclass(frozen=True)
class TermCoverage:
    """Exact and fuzzy query-term matches for one candidate."""

    matched_terms: list[str]
    fuzzy_matches: list[FuzzyMatch]
    term_hit_count: int

    @property
    def term_match_count(self) -> int:
        return len(self.matched_terms)


def clamp01(value: float) -> float:
    """Clamp to [0, 1]; non-finite values become 0."""
    if not math.isfinite(value):
        return 0.0
    return min(max(value, 0.0), 1.0)


def clamp(value: float, low: float, high: float) -> float:
    """Clamp ``value`` to ``[low, high]``; NaN becomes ``low``."""
    if math.isnan(value):
        return low
    return min(max(value, low), high)


def ratio(numerator: float, denominator: float) -> float:
    """Safe division returning 0 for empty or non-finite inputs."""
    if not math.isfinite(numerator) or not math.isfinite(denominator) or denominator <= 0:
        return 0.0
    return numerator / denominator


def levenshtein_distance(left: str, right: str) -> int:
    """Classic edit distance (insert, delete, substitute all cost 1)."""
    if left == right:
        return 0
    if not left:
        return len(right)
    if not right:
        return len(left)
    if len(left) < len(right):
        left, right = right, left

    previous = list(range(len(right) + 1))
    for i, left_char in enumerate(left, start=1):
        current = [i]
        for j, right_char in enumerate(right, start=1):
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + (left_char != right_char),
                )
            )
        previous = current
    return previous[-1]


def similarity(left: str, right: str, distance: int | None = None) -> float:
    """``1 - distance / max(len)``; identical empty strings count as similar."""
    longest = max(len(left), len(right))
    if longest == 0:
        return 1.0
    if distance is None:
        distance = levenshtein_distance(left, right)
    return 1.0 - distance / longest


def common_prefix_length(left: str, right: str) -> int:
    length = 0
    for left_char, right_char in zip(left, right):
        if left_char != right_char:
            break
        length += 1
    return length


def find_fuzzy_match(term: str, chunk_tokens: Iterable[str]) -> FuzzyMatch | None:
    """Find the chunk word closest to ``term`` within the fuzzy thresholds.

    Among qualifying words the highest similarity wins, ties going to the
    lower edit distance. Short query terms are never fuzzy-matched.
    """
    if len(term) < FUZZY_MIN_QUERY_TERM_LENGTH:
        return None

    best: FuzzyMatch | None = None
    for token in dict.fromkeys(chunk_tokens):
        if len(token) < FUZZY_MIN_TOKEN_LENGTH or token == term:
            continue
        if common_prefix_length(term, token) < FUZZY_MIN_COMMON_PREFIX:
            continue

        distance = levenshtein_distance(term, token)
        score = similarity(term, token, distance)
        if not any(distance <= max_d and score >= min_s for max_d, min_s in FUZZY_RULES):
            continue

        if (
            best is None
            or score > best.similarity
            or (score == best.similarity and distance < best.distance)
        ):
            best = FuzzyMatch(term=term, token=token, distance=distance, similarity=score)

    return best


def compute_term_coverage(query_terms: Sequence[str], candidate: CandidateRow) -> TermCoverage:
    """Recompute which query terms a candidate satisfies.

    Store-reported matches are normalized and intersected with the query;
    the remaining query terms are looked up fuzzily in the chunk's words.
    Each fuzzy match adds the occurrences of the matched word to the hit
    count.
    """
    reported = {normalize_for_search(term) for term in candidate.matched_terms}
    exact = [term for term in query_terms if term in reported]

    chunk_tokens = candidate.norm_text.split()
    fuzzy_matches: list[FuzzyMatch] = []
    fuzzy_hits = 0
    for term in query_terms:
        if term in reported:
            continue
        match = find_fuzzy_match(term, chunk_tokens)
        if match is None:
            continue
        fuzzy_matches.append(match)
        fuzzy_hits += chunk_tokens.count(match.token)

    fuzzy_terms = {match.term for match in fuzzy_matches}
    matched = [term for term in query_terms if term in reported or term in fuzzy_terms]
    exact_hits = candidate.term_hit_count if exact else 0

    return TermCoverage(
        matched_terms=matched,
        fuzzy_matches=fuzzy_matches,
        term_hit_count=exact_hits + fuzzy_hits,
    )


def compute_coverage_score(
    term_match_count: int,
    term_hit_count: int,
    query_term_count: int,
    token_count: int,
) -> float:
    """Blend query coverage with in-chunk term density."""
    query_coverage = clamp01(ratio(term_match_count, query_term_count))
    local_density = clamp01(min(ratio(term_hit_count, token_count), 1.0))
    return clamp01(
        query_coverage * COVERAGE_QUERY_WEIGHT + local_density * COVERAGE_DENSITY_WEIGHT
    )


def combine_relevance_scores(
    keyword_score: float,
    text_score: float,
    coverage_score: float,
) -> RelevanceScoreBreakdown:
    """Clamp the components and compute the weighted final score."""
    keyword_score = clamp01(keyword_score)
    text_score = clamp01(text_score)
    coverage_score = clamp01(coverage_score)

    final_score = (
        keyword_score * RELEVANCE_WEIGHTS["keyword"]
        + text_score * RELEVANCE_WEIGHTS["text"]
        + coverage_score * RELEVANCE_WEIGHTS["coverage"]
    )
    return RelevanceScoreBreakdown(
        keyword_score=keyword_score,
        text_score=text_score,
        coverage_score=coverage_score,
        final_score=clamp01(final_score),
    )


def compute_interval_iou(left: tuple[float, float], right: tuple[float, float]) -> float:
    """Intersection over union of two ``(start, end)`` intervals."""
    left_start, left_end = left
    right_start, right_end = right

    intersection = max(0.0, min(left_end, right_end) - max(left_start, right_start))
    if intersection <= 0:
        return 0.0

    union = max(0.0, left_end - left_start) + max(0.0, right_end - right_start) - intersection
    if union <= 0:
        return 0.0
    return intersection / union


def _rank_reason(coverage: TermCoverage, query_term_count: int) -> str:
    label = "full" if coverage.term_match_count >= query_term_count else "partial"
    reason = f"{label} match {coverage.term_match_count}/{query_term_count}"
    if coverage.fuzzy_matches:
        pairs = ", ".join(f"{m.term}~{m.token}" for m in coverage.fuzzy_matches)
        reason = f"{reason}; fuzzy {pairs}"
    return reason


def score_candidate(
    candidate: CandidateRow,
    query_terms: Sequence[str],
    preroll: float,
) -> SearchResult:
    """Rescore one candidate and compute its anchor and recommended start."""
    query_term_count = len(query_terms)
    coverage = compute_term_coverage(query_terms, candidate)

    keyword_score = ratio(coverage.term_match_count, query_term_count)
    coverage_score = compute_coverage_score(
        coverage.term_match_count,
        coverage.term_hit_count,
        query_term_count,
        candidate.token_count,
    )
    scores = combine_relevance_scores(keyword_score, candidate.text_score, coverage_score)

    chunk_start = candidate.chunk_start_sec
    chunk_end = max(candidate.chunk_end_sec, chunk_start)
    anchor = candidate.anchor_sec if math.isfinite(candidate.anchor_sec) else chunk_start
    anchor_sec = clamp(anchor, chunk_start, chunk_end)

    recommended = candidate.recommended_start_sec
    if recommended is None or not math.isfinite(recommended):
        recommended = anchor_sec - preroll
    recommended_start_sec = clamp(recommended, chunk_start, chunk_end)

    return SearchResult(
        chunk_id=candidate.chunk_id,
        video_id=candidate.video_id,
        chunk_start_sec=chunk_start,
        chunk_end_sec=chunk_end,
        anchor_sec=anchor_sec,
        recommended_start_sec=recommended_start_sec,
        full_text=candidate.full_text,
        norm_text=candidate.norm_text,
        token_count=candidate.token_count,
        matched_terms=coverage.matched_terms,
        term_match_count=coverage.term_match_count,
        term_hit_count=coverage.term_hit_count,
        keyword_score=scores.keyword_score,
        text_score=scores.text_score,
        coverage_score=scores.coverage_score,
        final_score=scores.final_score,
        rank_reason=_rank_reason(coverage, query_term_count),
    )


def rank_sort_key(result: SearchResult, query_term_count: int) -> tuple:
    """Total order: full coverage, score, matches, earlier anchor, earlier chunk."""
    full_coverage = result.term_match_count >= query_term_count
    return (
        0 if full_coverage else 1,
        -result.final_score,
        -result.term_match_count,
        result.anchor_sec,
        result.chunk_start_sec,
        result.chunk_id,
    )


def rerank_candidates(
    candidates: Iterable[CandidateRow],
    query_terms: Sequence[str],
    preroll: float,
) -> list[SearchResult]:
    """Score every candidate and return them in rank order."""
    query_term_count = len(query_terms)
    scored = [score_candidate(candidate, query_terms, preroll) for candidate in candidates]
    scored.sort(key=lambda result: rank_sort_key(result, query_term_count))
    return scored
