"""Keyword chunk search: candidate retrieval, reranking and diversity."""

import math
from typing import Any, Iterable, Protocol

import structlog
from pydantic import ValidationError

from kcontext.core.config import settings
from kcontext.db.exceptions import StoreReadError
from kcontext.models.chunk import ChunkContext, ChunkSummary, TimedToken
from kcontext.models.result import Err, Ok, Result
from kcontext.models.search import CandidateRow, SearchResult
from kcontext.models.transcript import VideoSegment
from kcontext.services.indexing.normalizer import normalize_for_search
from kcontext.services.indexing.tokenizer import tokenize_query
from kcontext.services.search.diversity import select_diverse_results
from kcontext.services.search.ranking import rerank_candidates
from kcontext.services.search.snippet import build_snippet

logger = structlog.get_logger(__name__)

CANDIDATE_CAP_FACTOR = 6
CANDIDATE_CAP_MIN = 60
CANDIDATE_CAP_MAX = 300


class CandidateStore(Protocol):
    async def search_candidates(
        self, lookup: str, limit: int, preroll: float
    ) -> list[dict[str, Any]]: ...

    async def get_chunk_context(self, chunk_id: str) -> dict[str, Any] | None: ...

    async def get_nearest_chunk(self, video_id: str, at_sec: float) -> dict[str, Any] | None: ...


class SegmentStore(Protocol):
    async def list_by_video(self, video_id: str) -> list[dict[str, Any]]: ...


def clamp_limit(value: int | None) -> int:
    """Clamp a requested result count to ``[1, search_max_limit]``."""
    if value is None:
        return settings.search_default_limit
    return min(max(int(value), 1), settings.search_max_limit)


def clamp_preroll(value: float | None) -> float:
    """Clamp a requested preroll to ``[0, search_max_preroll]`` seconds.

    Missing or non-finite values fall back to the default.
    """
    if value is None or not math.isfinite(value):
        return float(settings.search_default_preroll)
    return float(min(max(value, 0.0), settings.search_max_preroll))


def candidate_cap(limit: int) -> int:
    """Number of store candidates to request for ``limit`` final results."""
    return min(max(limit * CANDIDATE_CAP_FACTOR, CANDIDATE_CAP_MIN), CANDIDATE_CAP_MAX)


def decode_candidate_row(row: Any) -> Result[CandidateRow]:
    """Strictly decode one store row; never partially trust it."""
    try:
        return Ok(CandidateRow.model_validate(row))
    except ValidationError as e:
        return Err(f"invalid candidate row: {e.error_count()} error(s)", e)


def decode_timed_tokens(rows: Iterable[Any]) -> list[TimedToken]:
    """Decode token rows, dropping invalid ones, ordered by ``idx``."""
    tokens: list[TimedToken] = []
    dropped = 0
    for row in rows:
        try:
            tokens.append(TimedToken.model_validate(row))
        except ValidationError:
            dropped += 1

    if dropped:
        logger.warning("timed_tokens_dropped", dropped=dropped)
    return sorted(tokens, key=lambda token: token.idx)


async def fetch_candidates(
    store: CandidateStore,
    lookup: str,
    limit: int,
    preroll: float,
) -> Result[list[CandidateRow]]:
    """Fetch and decode up to ``limit`` candidates from the store.

    Store failures come back as ``Err``; the caller decides whether that is
    fatal. Undecodable rows are filtered out and logged.
    """
    try:
        raw_rows = await store.search_candidates(lookup, limit, preroll)
    except StoreReadError as e:
        return Err(str(e), e)

    candidates: list[CandidateRow] = []
    for raw in raw_rows:
        decoded = decode_candidate_row(raw)
        if isinstance(decoded, Ok):
            candidates.append(decoded.value)
        else:
            logger.warning("candidate_row_dropped", reason=decoded.reason)

    return Ok(candidates)


class ChunkSearchService:
    """Query-time search over persisted chunks.

    In lenient mode (the default) a failed candidate read yields an empty
    result list; in strict mode the ``StoreReadError`` propagates.
    """

    def __init__(
        self,
        chunk_repo: CandidateStore,
        segment_repo: SegmentStore,
        strict: bool | None = None,
    ):
        self.chunk_repo = chunk_repo
        self.segment_repo = segment_repo
        self.strict = settings.search_strict if strict is None else strict

    async def search(
        self,
        query: str,
        limit: int | None = None,
        preroll: float | None = None,
        strict: bool | None = None,
    ) -> list[SearchResult]:
        """Search chunks for a free-text query.

        Args:
            query: Raw user query
            limit: Maximum number of results (clamped)
            preroll: Seconds to start playback before the anchor (clamped)
            strict: Override the service's failure mode for this call

        Returns:
            Ranked, diversity-filtered results with snippets
        """
        lookup = normalize_for_search(query or "")
        query_terms = tokenize_query(lookup)
        if not query_terms:
            return []

        limit = clamp_limit(limit)
        preroll = clamp_preroll(preroll)
        strict = self.strict if strict is None else strict

        logger.info("chunk_search_started", lookup=lookup[:100], limit=limit, preroll=preroll)

        fetched = await fetch_candidates(self.chunk_repo, lookup, candidate_cap(limit), preroll)
        if isinstance(fetched, Err):
            if strict and fetched.error is not None:
                raise fetched.error
            logger.error("chunk_search_failed", lookup=lookup[:100], reason=fetched.reason)
            return []

        ranked = rerank_candidates(fetched.value, query_terms, preroll)
        selected = select_diverse_results(ranked, limit)
        results = [
            result.model_copy(
                update={"snippet": build_snippet(result.full_text, result.matched_terms)}
            )
            for result in selected
        ]

        logger.info(
            "chunk_search_completed",
            candidates=len(fetched.value),
            results=len(results),
        )
        return results

    async def get_chunk_context(self, chunk_id: str) -> ChunkContext | None:
        """Load a chunk with its timed tokens."""
        row = await self.chunk_repo.get_chunk_context(chunk_id)
        if row is None:
            return None

        tokens = decode_timed_tokens(row.get("tokens", []))
        return ChunkContext(
            chunk_id=row["chunk_id"],
            video_id=row["video_id"],
            chunk_start_sec=row["chunk_start_sec"],
            chunk_end_sec=row["chunk_end_sec"],
            token_count=row["token_count"],
            tokens=tokens,
        )

    async def get_timed_tokens(self, chunk_id: str) -> list[TimedToken]:
        """Timed tokens of one chunk; empty when the chunk is unknown."""
        context = await self.get_chunk_context(chunk_id)
        return context.tokens if context else []

    async def get_nearest_chunk(self, video_id: str, at_sec: float) -> ChunkSummary | None:
        """Chunk containing ``at_sec``, else the one with the closest boundary."""
        row = await self.chunk_repo.get_nearest_chunk(video_id, max(at_sec, 0.0))
        return ChunkSummary.model_validate(row) if row else None

    async def get_video_segments(self, video_id: str) -> list[VideoSegment]:
        """Persisted segments of a video in ``seq`` order."""
        rows = await self.segment_repo.list_by_video(video_id)
        return [VideoSegment.model_validate(row) for row in rows]
