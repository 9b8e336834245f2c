"""Chunk repository: idempotent chunk writes and query-time lookups."""

import json
from typing import Any, Sequence
from uuid import uuid4

import aiosqlite
import structlog

from kcontext.db.connection import Database
from kcontext.db.exceptions import StoreReadError, StoreWriteError
from kcontext.db.repositories.video import VideoRepository
from kcontext.models.chunk import Chunk
from kcontext.services.indexing.normalizer import normalize_token
from kcontext.services.indexing.tokenizer import tokenize_query

logger = structlog.get_logger(__name__)

DEFAULT_BATCH_SIZE = 120

# Store-side pre-rerank blend. Not authoritative; the search service rescores.
CANDIDATE_KEYWORD_WEIGHT = 0.6
CANDIDATE_TEXT_WEIGHT = 0.4

ChunkIdentity = tuple[str, int, int]


class ChunkRepository:
    """Repository for chunks and their per-term and per-token rows.

    Chunks are keyed by ``(video_id, segment_start_seq, segment_end_seq)``.
    Term and token rows of every upserted chunk are replaced wholesale, so
    re-ingesting a video converges to the same state.
    """

    def __init__(self, db: Database):
        """Initialize with database manager."""
        self.db = db
        self.videos = VideoRepository(db)

    async def upsert_chunks(
        self,
        chunks: Sequence[Chunk],
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> dict[ChunkIdentity, str]:
        """Insert or update chunks and replace their terms and tokens.

        Returns:
            Mapping of chunk identity key to stored chunk id
        """
        if not chunks:
            return {}

        await self.videos.upsert_many([chunk.video_id for chunk in chunks])

        chunk_ids: dict[ChunkIdentity, str] = {}
        try:
            for i in range(0, len(chunks), batch_size):
                batch = chunks[i : i + batch_size]
                async with self.db.transaction() as conn:
                    batch_ids = await self._upsert_chunk_rows(conn, batch)
                    ids = [batch_ids[chunk.identity_key] for chunk in batch]
                    await self._replace_terms(conn, batch, batch_ids, ids)
                    await self._replace_tokens(conn, batch, batch_ids, ids)
                chunk_ids.update(batch_ids)
                logger.debug("chunks_upserted", batch_start=i, batch_size=len(batch))
        except aiosqlite.Error as e:
            raise StoreWriteError(f"Failed to upsert chunks: {e}") from e

        return chunk_ids

    async def _upsert_chunk_rows(
        self,
        conn: aiosqlite.Connection,
        batch: Sequence[Chunk],
    ) -> dict[ChunkIdentity, str]:
        ids: dict[ChunkIdentity, str] = {}
        for chunk in batch:
            async with conn.execute(
                """
                INSERT INTO chunks (
                    id, video_id, chunk_index, segment_start_seq, segment_end_seq,
                    chunk_start_sec, chunk_end_sec, full_text, norm_text, token_count
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(video_id, segment_start_seq, segment_end_seq) DO UPDATE SET
                    chunk_index = excluded.chunk_index,
                    chunk_start_sec = excluded.chunk_start_sec,
                    chunk_end_sec = excluded.chunk_end_sec,
                    full_text = excluded.full_text,
                    norm_text = excluded.norm_text,
                    token_count = excluded.token_count,
                    updated_at = CURRENT_TIMESTAMP
                RETURNING id, video_id, segment_start_seq, segment_end_seq
                """,
                (
                    str(uuid4()),
                    chunk.video_id,
                    chunk.chunk_index,
                    chunk.segment_start_seq,
                    chunk.segment_end_seq,
                    chunk.start_sec,
                    chunk.end_sec,
                    chunk.full_text,
                    chunk.norm_text,
                    chunk.token_count,
                ),
            ) as cursor:
                row = await cursor.fetchone()

            if row is None:
                raise StoreWriteError(
                    f"Unable to resolve upserted chunk id for {chunk.identity_key}"
                )
            ids[(row["video_id"], row["segment_start_seq"], row["segment_end_seq"])] = row["id"]

        return ids

    async def _replace_terms(
        self,
        conn: aiosqlite.Connection,
        batch: Sequence[Chunk],
        batch_ids: dict[ChunkIdentity, str],
        ids: list[str],
    ) -> None:
        placeholders = ", ".join("?" for _ in ids)
        await conn.execute(f"DELETE FROM chunk_terms WHERE chunk_id IN ({placeholders})", ids)
        await conn.executemany(
            """
            INSERT INTO chunk_terms (chunk_id, term, first_hit_sec, hit_count, positions)
            VALUES (?, ?, ?, ?, ?)
            """,
            [
                (
                    batch_ids[chunk.identity_key],
                    term.term,
                    term.first_hit_sec,
                    term.hit_count,
                    json.dumps(term.positions),
                )
                for chunk in batch
                for term in chunk.terms
            ],
        )

    async def _replace_tokens(
        self,
        conn: aiosqlite.Connection,
        batch: Sequence[Chunk],
        batch_ids: dict[ChunkIdentity, str],
        ids: list[str],
    ) -> None:
        placeholders = ", ".join("?" for _ in ids)
        await conn.execute(f"DELETE FROM chunk_tokens WHERE chunk_id IN ({placeholders})", ids)
        await conn.executemany(
            """
            INSERT INTO chunk_tokens (chunk_id, idx, token, token_norm, start_sec, end_sec)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    batch_ids[chunk.identity_key],
                    token.idx,
                    token.token,
                    token.token_norm,
                    token.start_sec,
                    token.end_sec,
                )
                for chunk in batch
                for token in chunk.tokens
            ],
        )

    async def search_candidates(
        self,
        lookup: str,
        limit: int,
        preroll: float,
    ) -> list[dict[str, Any]]:
        """Keyword candidate retrieval for a normalized lookup string.

        A chunk is a candidate when one of its terms equals a query term (or
        the query term's canonical form), or when its normalized text
        contains a query term. Rows carry store-side match statistics and a
        pre-rerank ``candidate_score``; at most ``limit`` rows are returned.
        """
        terms = tokenize_query(lookup)
        if not terms or limit <= 0:
            return []

        # Each stored term may satisfy one or more query terms.
        query_terms_by_variant: dict[str, set[str]] = {}
        for term in terms:
            for variant in {term, normalize_token(term)}:
                if variant:
                    query_terms_by_variant.setdefault(variant, set()).add(term)
        variants = list(query_terms_by_variant)
        variant_placeholders = ", ".join("?" for _ in variants)
        like_clauses = " OR ".join("c.norm_text LIKE ?" for _ in terms)

        try:
            chunk_rows = await self.db.fetchall(
                f"""
                SELECT c.id AS chunk_id, c.video_id, c.chunk_start_sec, c.chunk_end_sec,
                       c.full_text, c.norm_text, c.token_count
                FROM chunks c
                WHERE c.id IN (
                    SELECT chunk_id FROM chunk_terms WHERE term IN ({variant_placeholders})
                )
                OR {like_clauses}
                """,
                [*variants, *(f"%{term}%" for term in terms)],
            )
            term_rows = await self.db.fetchall(
                f"""
                SELECT chunk_id, term, first_hit_sec, hit_count
                FROM chunk_terms
                WHERE term IN ({variant_placeholders})
                """,
                variants,
            )
        except aiosqlite.Error as e:
            raise StoreReadError(f"Candidate search failed: {e}") from e

        hits_by_chunk: dict[str, list[dict[str, Any]]] = {}
        for row in term_rows:
            hits_by_chunk.setdefault(row["chunk_id"], []).append(row)

        candidates: list[dict[str, Any]] = []
        for chunk in chunk_rows:
            hits = hits_by_chunk.get(chunk["chunk_id"], [])
            satisfied: set[str] = set()
            for hit in hits:
                satisfied |= query_terms_by_variant[hit["term"]]
            matched_terms = [term for term in terms if term in satisfied]

            keyword_score = len(matched_terms) / len(terms)
            text_score = sum(1 for term in terms if term in chunk["norm_text"]) / len(terms)
            candidate_score = (
                CANDIDATE_KEYWORD_WEIGHT * keyword_score + CANDIDATE_TEXT_WEIGHT * text_score
            )
            if candidate_score <= 0:
                continue

            chunk_start = chunk["chunk_start_sec"]
            anchor_sec = min((hit["first_hit_sec"] for hit in hits), default=chunk_start)

            candidates.append(
                {
                    **chunk,
                    "anchor_sec": anchor_sec,
                    "recommended_start_sec": max(chunk_start, anchor_sec - preroll),
                    "matched_terms": matched_terms,
                    "term_match_count": len(matched_terms),
                    "term_hit_count": sum(hit["hit_count"] for hit in hits),
                    "keyword_score": keyword_score,
                    "text_score": text_score,
                    "candidate_score": candidate_score,
                }
            )

        candidates.sort(
            key=lambda row: (-row["candidate_score"], row["chunk_start_sec"], row["chunk_id"])
        )
        return candidates[:limit]

    async def get_chunk_context(self, chunk_id: str) -> dict[str, Any] | None:
        """Load a chunk's bounds with its raw token rows."""
        try:
            chunk = await self.db.fetchone(
                """
                SELECT id AS chunk_id, video_id, chunk_start_sec, chunk_end_sec, token_count
                FROM chunks
                WHERE id = ?
                """,
                (chunk_id,),
            )
            if chunk is None:
                return None

            chunk["tokens"] = await self.db.fetchall(
                """
                SELECT idx, token, token_norm, start_sec, end_sec
                FROM chunk_tokens
                WHERE chunk_id = ?
                ORDER BY idx
                """,
                (chunk_id,),
            )
        except aiosqlite.Error as e:
            raise StoreReadError(f"Failed to load chunk context: {e}") from e

        return chunk

    async def get_nearest_chunk(self, video_id: str, at_sec: float) -> dict[str, Any] | None:
        """Find the chunk containing ``at_sec``, else the one with the closest boundary.

        Among containing chunks the latest-starting one wins, so playback
        begins as close to ``at_sec`` as possible.
        """
        columns = """
            id AS chunk_id, video_id, chunk_index, chunk_start_sec, chunk_end_sec, full_text
        """
        try:
            containing = await self.db.fetchone(
                f"""
                SELECT {columns}
                FROM chunks
                WHERE video_id = ? AND chunk_start_sec <= ? AND chunk_end_sec >= ?
                ORDER BY chunk_start_sec DESC
                LIMIT 1
                """,
                (video_id, at_sec, at_sec),
            )
            if containing is not None:
                return containing

            return await self.db.fetchone(
                f"""
                SELECT {columns}
                FROM chunks
                WHERE video_id = ?
                ORDER BY MIN(ABS(chunk_start_sec - ?), ABS(chunk_end_sec - ?)), chunk_start_sec
                LIMIT 1
                """,
                (video_id, at_sec, at_sec),
            )
        except aiosqlite.Error as e:
            raise StoreReadError(f"Failed to load nearest chunk: {e}") from e

    async def list_terms(self, chunk_id: str) -> list[dict[str, Any]]:
        """List a chunk's term rows ordered by term."""
        try:
            rows = await self.db.fetchall(
                """
                SELECT term, first_hit_sec, hit_count, positions
                FROM chunk_terms
                WHERE chunk_id = ?
                ORDER BY term
                """,
                (chunk_id,),
            )
        except aiosqlite.Error as e:
            raise StoreReadError(f"Failed to load chunk terms: {e}") from e

        for row in rows:
            row["positions"] = json.loads(row["positions"])
        return rows

    async def count_by_video(self, video_id: str) -> int:
        """Count chunks stored for a video."""
        try:
            row = await self.db.fetchone(
                "SELECT COUNT(*) AS count FROM chunks WHERE video_id = ?",
                (video_id,),
            )
        except aiosqlite.Error as e:
            raise StoreReadError(f"Failed to count chunks: {e}") from e
        return row["count"] if row else 0
