"""Tests for relevance scoring, fuzzy matching and candidate ordering."""

import math
from typing import Any

import pytest

from kcontext.models.search import CandidateRow
from kcontext.services.search.ranking import (
    clamp01,
    combine_relevance_scores,
    compute_coverage_score,
    compute_interval_iou,
    find_fuzzy_match,
    levenshtein_distance,
    ratio,
    rerank_candidates,
    score_candidate,
)


def make_candidate(**overrides: Any) -> CandidateRow:
    data: dict[str, Any] = {
        "chunk_id": "c1",
        "video_id": "v1",
        "chunk_start_sec": 10.0,
        "chunk_end_sec": 25.0,
        "anchor_sec": 12.0,
        "recommended_start_sec": None,
        "full_text": "we deploy the pipelne today",
        "norm_text": "we deploy the pipelne today",
        "token_count": 5,
        "matched_terms": ["deploy"],
        "term_match_count": 1,
        "term_hit_count": 1,
        "keyword_score": 0.5,
        "text_score": 0.5,
        "candidate_score": 0.5,
    }
    data.update(overrides)
    return CandidateRow(**data)


class TestScoreHelpers:
    def test_clamp01(self) -> None:
        assert clamp01(1.5) == 1.0
        assert clamp01(-0.2) == 0.0
        assert clamp01(0.4) == 0.4
        assert clamp01(math.nan) == 0.0
        assert clamp01(math.inf) == 0.0

    def test_ratio(self) -> None:
        assert ratio(1, 4) == 0.25
        assert ratio(1, 0) == 0.0
        assert ratio(math.nan, 2) == 0.0

    def test_interval_iou(self) -> None:
        assert compute_interval_iou((0, 10), (5, 15)) == pytest.approx(5 / 15)
        assert compute_interval_iou((0, 10), (20, 30)) == 0.0
        assert compute_interval_iou((0, 10), (0, 10)) == 1.0
        assert compute_interval_iou((5, 5), (0, 10)) == 0.0

    def test_coverage_score(self) -> None:
        assert compute_coverage_score(2, 2, 2, 5) == pytest.approx(0.65 + 0.35 * 0.4)
        assert compute_coverage_score(1, 50, 2, 5) == pytest.approx(0.65 * 0.5 + 0.35)
        assert compute_coverage_score(0, 0, 0, 0) == 0.0

    def test_combine_clamps_inputs(self) -> None:
        scores = combine_relevance_scores(2.0, -1.0, math.nan)

        assert scores.keyword_score == 1.0
        assert scores.text_score == 0.0
        assert scores.coverage_score == 0.0
        assert scores.final_score == pytest.approx(0.55)


class TestFuzzyMatch:
    def test_levenshtein(self) -> None:
        assert levenshtein_distance("kitten", "sitting") == 3
        assert levenshtein_distance("", "abc") == 3
        assert levenshtein_distance("same", "same") == 0

    def test_single_edit_matches(self) -> None:
        match = find_fuzzy_match("pipeline", ["the", "pipelne", "today"])

        assert match is not None
        assert match.token == "pipelne"
        assert match.distance == 1
        assert match.similarity == pytest.approx(0.875)

    def test_short_terms_are_not_fuzzy_matched(self) -> None:
        assert find_fuzzy_match("abc", ["abd"]) is None

    def test_common_prefix_required(self) -> None:
        assert find_fuzzy_match("banana", ["canana"]) is None

    def test_two_edits_need_high_similarity(self) -> None:
        # distance 2 over length 6 is below the 0.86 similarity floor
        assert find_fuzzy_match("deploy", ["dexxoy"]) is None
        # distance 2 over length 15 clears it
        match = find_fuzzy_match("transformations", ["transformatinos"])
        assert match is not None
        assert match.distance == 2

    def test_best_similarity_wins(self) -> None:
        match = find_fuzzy_match("analysis", ["analysys", "analysis1"])

        assert match is not None
        # one insertion over nine characters beats one substitution over eight
        assert match.token == "analysis1"


class TestScoreCandidate:
    def test_fuzzy_term_counts_as_matched(self) -> None:
        result = score_candidate(make_candidate(), ["deploy", "pipeline"], preroll=4)

        assert result.matched_terms == ["deploy", "pipeline"]
        assert result.term_match_count == 2
        assert result.term_hit_count == 2
        assert result.keyword_score == 1.0
        assert result.coverage_score == pytest.approx(0.79)
        assert result.final_score == pytest.approx(0.55 + 0.15 + 0.15 * 0.79)
        assert result.rank_reason == "full match 2/2; fuzzy pipeline~pipelne"

    def test_reported_terms_are_normalized(self) -> None:
        candidate = make_candidate(matched_terms=["Deploy!"], norm_text="we deploy today")
        result = score_candidate(candidate, ["deploy"], preroll=4)

        assert result.matched_terms == ["deploy"]

    def test_anchor_and_recommended_start_are_clamped(self) -> None:
        late = score_candidate(make_candidate(anchor_sec=100.0), ["deploy"], preroll=4)
        assert late.anchor_sec == 25.0
        assert late.recommended_start_sec == 21.0

        early = score_candidate(make_candidate(recommended_start_sec=5.0), ["deploy"], preroll=4)
        assert early.anchor_sec == 12.0
        assert early.recommended_start_sec == 10.0

    def test_nan_preroll_keeps_start_inside_chunk(self) -> None:
        result = score_candidate(make_candidate(anchor_sec=15.0), ["deploy"], preroll=float("nan"))

        assert result.anchor_sec == 15.0
        assert result.recommended_start_sec == 10.0

    def test_scores_stay_in_unit_interval(self) -> None:
        candidate = make_candidate(text_score=7.5, term_hit_count=500, token_count=0)
        result = score_candidate(candidate, ["deploy", "pipeline", "missing"], preroll=0)

        for score in (
            result.keyword_score,
            result.text_score,
            result.coverage_score,
            result.final_score,
        ):
            assert 0.0 <= score <= 1.0

    def test_no_query_terms(self) -> None:
        result = score_candidate(make_candidate(), [], preroll=4)

        assert result.keyword_score == 0.0
        assert result.matched_terms == []


class TestRerankOrdering:
    def test_full_coverage_beats_higher_score(self) -> None:
        partial = make_candidate(
            chunk_id="partial",
            matched_terms=["alpha"],
            norm_text="alpha alpha",
            text_score=1.0,
            token_count=2,
            term_hit_count=5,
        )
        full = make_candidate(
            chunk_id="full",
            matched_terms=["alpha", "beta"],
            norm_text="alpha beta",
            text_score=0.0,
            token_count=100,
            term_hit_count=2,
        )

        ranked = rerank_candidates([partial, full], ["alpha", "beta"], preroll=4)

        assert ranked[0].final_score < ranked[1].final_score
        assert [r.chunk_id for r in ranked] == ["full", "partial"]

    def test_ties_break_on_anchor_then_chunk_id(self) -> None:
        candidates = [
            make_candidate(chunk_id="b", anchor_sec=15.0),
            make_candidate(chunk_id="c", anchor_sec=11.0),
            make_candidate(chunk_id="a", anchor_sec=15.0),
        ]

        ranked = rerank_candidates(candidates, ["deploy"], preroll=4)

        assert [r.chunk_id for r in ranked] == ["c", "a", "b"]

    def test_deterministic(self) -> None:
        candidates = [make_candidate(chunk_id=str(i), anchor_sec=10.0 + i % 3) for i in range(6)]

        first = rerank_candidates(candidates, ["deploy"], preroll=4)
        second = rerank_candidates(list(reversed(candidates)), ["deploy"], preroll=4)

        assert [r.chunk_id for r in first] == [r.chunk_id for r in second]
