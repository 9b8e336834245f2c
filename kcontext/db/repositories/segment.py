"""Transcript segment repository."""

from typing import Any, Sequence

import aiosqlite
import structlog

from kcontext.db.connection import Database
from kcontext.db.exceptions import StoreReadError, StoreWriteError
from kcontext.db.repositories.video import VideoRepository
from kcontext.models.transcript import TranscriptSegment

logger = structlog.get_logger(__name__)

DEFAULT_BATCH_SIZE = 500


class SegmentRepository:
    """Repository for canonical transcript segments, keyed by (video_id, seq)."""

    def __init__(self, db: Database):
        """Initialize with database manager."""
        self.db = db
        self.videos = VideoRepository(db)

    async def upsert_segments(
        self,
        segments: Sequence[TranscriptSegment],
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> int:
        """Insert or update segments; returns the number of rows written."""
        if not segments:
            return 0

        await self.videos.upsert_many([segment.video_id for segment in segments])

        rows = [
            (
                segment.video_id,
                segment.seq,
                segment.start_sec,
                segment.end_sec,
                segment.text,
                segment.norm_text,
                segment.token_count,
            )
            for segment in segments
        ]

        try:
            for i in range(0, len(rows), batch_size):
                batch = rows[i : i + batch_size]
                async with self.db.transaction() as conn:
                    await conn.executemany(
                        """
                        INSERT INTO segments (
                            video_id, seq, start_sec, end_sec, text, norm_text, token_count
                        )
                        VALUES (?, ?, ?, ?, ?, ?, ?)
                        ON CONFLICT(video_id, seq) DO UPDATE SET
                            start_sec = excluded.start_sec,
                            end_sec = excluded.end_sec,
                            text = excluded.text,
                            norm_text = excluded.norm_text,
                            token_count = excluded.token_count
                        """,
                        batch,
                    )
                logger.debug("segments_upserted", batch_start=i, batch_size=len(batch))
        except aiosqlite.Error as e:
            raise StoreWriteError(f"Failed to upsert segments: {e}") from e

        return len(rows)

    async def list_by_video(self, video_id: str) -> list[dict[str, Any]]:
        """List a video's segments ordered by seq."""
        try:
            return await self.db.fetchall(
                """
                SELECT seq, start_sec, end_sec, text, norm_text
                FROM segments
                WHERE video_id = ?
                ORDER BY seq
                """,
                (video_id,),
            )
        except aiosqlite.Error as e:
            raise StoreReadError(f"Failed to load video segments: {e}") from e

    async def count_by_video(self, video_id: str) -> int:
        """Count segments stored for a video."""
        try:
            row = await self.db.fetchone(
                "SELECT COUNT(*) AS count FROM segments WHERE video_id = ?",
                (video_id,),
            )
        except aiosqlite.Error as e:
            raise StoreReadError(f"Failed to count segments: {e}") from e
        return row["count"] if row else 0
