"""Tests for snippet extraction."""

from kcontext.services.search.snippet import build_snippet

LONG_TEXT = "가" * 100 + "분석" + "나" * 100


def test_short_text_is_unchanged() -> None:
    assert build_snippet("짧은 문장", ["문장"]) == "짧은 문장"
    assert build_snippet("", ["문장"]) == ""


def test_window_is_centred_on_term() -> None:
    snippet = build_snippet(LONG_TEXT, ["분석"])

    assert snippet.startswith("…")
    assert snippet.endswith("…")
    assert "분석" in snippet
    assert len(snippet) == 122
    assert snippet[1:-1] == LONG_TEXT[41:161]


def test_window_at_text_start_has_no_prefix() -> None:
    text = "분석" + "가" * 200
    snippet = build_snippet(text, ["분석"])

    assert snippet == text[:120] + "…"


def test_missing_term_truncates_head() -> None:
    assert build_snippet(LONG_TEXT, ["없음"]) == LONG_TEXT[:119] + "…"
    assert build_snippet(LONG_TEXT, []) == LONG_TEXT[:119] + "…"


def test_later_terms_are_tried_when_first_is_absent() -> None:
    snippet = build_snippet(LONG_TEXT, ["분석하다", "분석"])

    assert snippet[1:-1] == LONG_TEXT[41:161]


def test_custom_length() -> None:
    assert len(build_snippet(LONG_TEXT, [], max_length=20)) == 20


def test_window_is_aligned_when_lowercasing_changes_length() -> None:
    text = "İ" * 60 + "x" * 40 + "Deploy" + "y" * 100
    snippet = build_snippet(text, ["deploy"])

    assert snippet[1:-1] == text[43:163]
    assert "Deploy" in snippet
