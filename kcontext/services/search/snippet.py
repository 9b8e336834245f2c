"""Result snippets centred on a matched term."""

from typing import Sequence

ELLIPSIS = "…"
DEFAULT_SNIPPET_LENGTH = 120


def _fold(text: str) -> str:
    """Lowercase character by character, keeping the string's length."""
    folded = []
    for char in text:
        lowered = char.lower()
        folded.append(lowered if len(lowered) == 1 else char)
    return "".join(folded)


def _truncate(text: str, max_length: int) -> str:
    return f"{text[: max_length - 1]}{ELLIPSIS}"


def build_snippet(
    full_text: str,
    matched_terms: Sequence[str],
    max_length: int = DEFAULT_SNIPPET_LENGTH,
) -> str:
    """Cut a window of ``full_text`` around the first matched term found in it.

    Text that fits is returned unchanged. Canonical terms (e.g. ``하다``
    forms) may not appear verbatim in the raw text; those are skipped, and
    when no term is found the head of the text is returned.
    """
    if not full_text:
        return ""
    if len(full_text) <= max_length:
        return full_text

    folded_text = _fold(full_text)
    for raw_term in matched_terms:
        term = raw_term.strip()
        if not term:
            continue
        match_index = folded_text.find(_fold(term))
        if match_index < 0:
            continue

        padding = max(0, (max_length - len(term)) // 2)
        start = max(0, match_index - padding)
        end = min(len(full_text), start + max_length)

        prefix = ELLIPSIS if start > 0 else ""
        suffix = ELLIPSIS if end < len(full_text) else ""
        return f"{prefix}{full_text[start:end]}{suffix}"

    return _truncate(full_text, max_length)
