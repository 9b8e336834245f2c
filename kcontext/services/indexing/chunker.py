"""Sliding-window chunking of timed transcript segments."""

import unicodedata
from collections.abc import Iterable, Sequence

import structlog

from kcontext.core.config import settings
from kcontext.models.chunk import Chunk, ChunkTerm, TimedToken
from kcontext.models.transcript import TranscriptSegment
from kcontext.services.indexing.exceptions import ChunkingConfigError
from kcontext.services.indexing.normalizer import normalize_for_search, normalize_word
from kcontext.services.indexing.tokenizer import normalize_stopwords, tokenize_words

logger = structlog.get_logger(__name__)

# Floor for zero-length segments so every word still gets a positive span.
MIN_SEGMENT_DURATION = 0.05


def validate_window(window_seconds: float, overlap_seconds: float) -> float:
    """Return the step between windows, or raise for unusable settings."""
    step_seconds = window_seconds - overlap_seconds
    if window_seconds <= 0 or step_seconds <= 0:
        raise ChunkingConfigError(
            f"Invalid chunking window/overlap settings: "
            f"window={window_seconds} overlap={overlap_seconds}"
        )
    return step_seconds


def build_sliding_window_chunks(
    video_id: str,
    segments: Sequence[TranscriptSegment],
    window_seconds: float | None = None,
    overlap_seconds: float | None = None,
    stopwords: Iterable[str] | None = None,
) -> list[Chunk]:
    """Split a video's segments into overlapping, time-bounded chunks.

    Windows of ``window_seconds`` start every ``window_seconds - overlap_seconds``
    seconds. A segment belongs to every window its interval overlaps, so
    neighbouring chunks share boundary segments. Windows selecting the same
    segment range collapse into one chunk.

    Args:
        video_id: ID of the source video
        segments: Canonical transcript segments for the video
        window_seconds: Window length (defaults to settings)
        overlap_seconds: Overlap between consecutive windows (defaults to settings)
        stopwords: Terms excluded from chunk-term aggregation

    Returns:
        Chunks in window-start order

    Raises:
        ChunkingConfigError: If the window or step is not positive
    """
    if window_seconds is None:
        window_seconds = settings.chunk_window_seconds
    if overlap_seconds is None:
        overlap_seconds = settings.chunk_overlap_seconds

    step_seconds = validate_window(window_seconds, overlap_seconds)

    if not segments:
        return []

    ordered = sorted(segments, key=lambda segment: (segment.start_sec, segment.seq))
    min_start = ordered[0].start_sec
    max_end = ordered[-1].end_sec
    stopword_set = normalize_stopwords(stopwords)

    chunks: list[Chunk] = []
    seen: set[tuple[int, int]] = set()
    step_index = 0

    while True:
        # Multiply instead of accumulating so long videos don't drift.
        window_start = min_start + step_index * step_seconds
        if window_start > max_end:
            break
        step_index += 1
        window_end = window_start + window_seconds

        in_window = [
            segment
            for segment in ordered
            if segment.end_sec > window_start and segment.start_sec < window_end
        ]
        if not in_window:
            continue

        key = (in_window[0].seq, in_window[-1].seq)
        if key in seen:
            continue
        seen.add(key)

        full_text = " ".join(text for text in (s.text.strip() for s in in_window) if text)
        norm_text = normalize_for_search(full_text)
        tokens = build_timed_tokens(in_window)

        if not norm_text or not tokens:
            logger.debug(
                "chunk_dropped_empty",
                video_id=video_id,
                segment_start_seq=key[0],
                segment_end_seq=key[1],
            )
            continue

        chunks.append(
            Chunk(
                video_id=video_id,
                chunk_index=len(chunks),
                start_sec=in_window[0].start_sec,
                end_sec=max(segment.end_sec for segment in in_window),
                segment_start_seq=key[0],
                segment_end_seq=key[1],
                full_text=full_text,
                norm_text=norm_text,
                token_count=len(tokens),
                tokens=tokens,
                terms=aggregate_chunk_terms(tokens, stopword_set),
            )
        )

    logger.debug("segments_chunked", video_id=video_id, segments=len(ordered), chunks=len(chunks))
    return chunks


def build_timed_tokens(segments: Sequence[TranscriptSegment], start_idx: int = 0) -> list[TimedToken]:
    """Estimate per-word timing inside each segment.

    A segment's duration is distributed over its words in proportion to the
    length of each normalized word. The last highlightable word of a segment
    always ends exactly at the segment's end; words after it collapse onto
    that instant.
    """
    tokens: list[TimedToken] = []
    idx = start_idx

    for segment in segments:
        words = tokenize_words(segment.text)
        normalized = [normalize_word(word) for word in words]

        if not any(normalized):
            continue

        weights = [max(len(norm), 1) for norm in normalized]
        last_highlightable = max(i for i, norm in enumerate(normalized) if norm)
        total_weight = sum(weights)
        duration = max(segment.end_sec - segment.start_sec, MIN_SEGMENT_DURATION)
        cursor = segment.start_sec

        for position, (word, norm, weight) in enumerate(zip(words, normalized, weights)):
            start_sec = cursor
            if position >= last_highlightable:
                end_sec = segment.end_sec
            else:
                end_sec = min(segment.end_sec, start_sec + duration * weight / total_weight)

            tokens.append(
                TimedToken(
                    idx=idx,
                    token=word,
                    token_norm=norm,
                    start_sec=start_sec,
                    end_sec=end_sec,
                )
            )
            idx += 1
            cursor = end_sec

    return tokens


def _term_sort_key(term: str) -> str:
    # NFC code point order places precomposed Hangul syllables in dictionary order.
    return unicodedata.normalize("NFC", term)


def aggregate_chunk_terms(
    tokens: Iterable[TimedToken],
    stopwords: Iterable[str] | None = None,
) -> list[ChunkTerm]:
    """Group tokens by normalized form into per-term statistics."""
    excluded = stopwords if isinstance(stopwords, frozenset) else normalize_stopwords(stopwords)
    grouped: dict[str, ChunkTerm] = {}

    for token in tokens:
        term = token.token_norm
        if not term or term in excluded:
            continue

        existing = grouped.get(term)
        if existing is None:
            grouped[term] = ChunkTerm(
                term=term,
                first_hit_sec=token.start_sec,
                hit_count=1,
                positions=[token.idx],
            )
            continue

        existing.first_hit_sec = min(existing.first_hit_sec, token.start_sec)
        existing.hit_count += 1
        existing.positions.append(token.idx)

    return [grouped[term] for term in sorted(grouped, key=_term_sort_key)]
