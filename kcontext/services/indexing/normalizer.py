"""Text normalization for search terms.

Two levels of normalization are used:

* ``normalize_for_search`` folds whole strings (queries, chunk text) into a
  lowercase, punctuation-free, single-spaced form.
* ``normalize_token`` canonicalizes a single word, rewriting common Korean
  verb/adjective endings to their dictionary form so that "테스트했다" and
  "테스트하고" index under the same term.
"""

import re

HANGUL = "\u1100-\u11ff\u3130-\u318f\ua960-\ua97f\uac00-\ud7af\ud7b0-\ud7ff"

_NON_SEARCHABLE = re.compile(r"[^0-9a-z가-힣\s]")
_WHITESPACE = re.compile(r"\s+")
_NON_ALNUM = re.compile(r"[^0-9a-z가-힣]")
# Apostrophes and hyphens between word characters.
_INNER_JOINER = re.compile(r"(?<=[0-9a-z가-힣])['-]+(?=[0-9a-z가-힣])")

# Ordered (pattern, replacement) table; first match wins.
SUFFIX_RULES: tuple[tuple[re.Pattern[str], str], ...] = tuple(
    (re.compile(rf"([{HANGUL}]+){suffix}$"), rf"\g<1>{canonical}")
    for suffix, canonical in (
        ("했다", "하다"),
        ("한다", "하다"),
        ("해요", "하다"),
        ("했어", "하다"),
        ("하는", "하다"),
        ("하며", "하다"),
        ("하면", "하다"),
        ("하고", "하다"),
        ("돼요", "되다"),
        ("됐다", "되다"),
        ("돼", "되다"),
        ("였어", "이다"),
        ("였다", "이다"),
    )
)

_KEEPABLE = re.compile(rf"^[{HANGUL}]{{2,}}$|^[a-z0-9]{{2,}}$")


def normalize_for_search(text: str) -> str:
    """Lowercase, replace non [0-9a-z가-힣] characters with spaces, collapse whitespace.

    Word-internal apostrophes and hyphens are dropped rather than split on,
    so "don't" folds to "dont" exactly as ``normalize_word`` indexes it.
    """
    if not text:
        return ""
    joined = _INNER_JOINER.sub("", text.lower())
    folded = _NON_SEARCHABLE.sub(" ", joined)
    return _WHITESPACE.sub(" ", folded).strip()


def normalize_token(token: str) -> str:
    """Canonicalize a single token, or return "" if it is not worth indexing."""
    trimmed = token.strip().lower()
    if not trimmed:
        return ""

    for pattern, replacement in SUFFIX_RULES:
        if pattern.search(trimmed):
            return pattern.sub(replacement, trimmed, count=1)

    if _KEEPABLE.match(trimmed):
        return trimmed
    return ""


def normalize_word(word: str) -> str:
    """Normalize a raw transcript word (may carry apostrophes or hyphens)."""
    return normalize_token(_NON_ALNUM.sub("", word.lower()))
