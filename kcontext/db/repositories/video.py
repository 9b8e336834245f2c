"""Video repository for database operations."""

from typing import Any

import aiosqlite
import structlog

from kcontext.db.connection import Database
from kcontext.db.exceptions import StoreReadError, StoreWriteError

logger = structlog.get_logger(__name__)


class VideoRepository:
    """Repository for video rows."""

    def __init__(self, db: Database):
        """Initialize with database manager."""
        self.db = db

    async def upsert_many(self, video_ids: list[str]) -> None:
        """Ensure a row exists for every video id (title defaults to the id)."""
        unique_ids = list(dict.fromkeys(video_ids))
        if not unique_ids:
            return

        try:
            async with self.db.transaction() as conn:
                await conn.executemany(
                    """
                    INSERT INTO videos (id, title)
                    VALUES (?, ?)
                    ON CONFLICT(id) DO UPDATE SET updated_at = CURRENT_TIMESTAMP
                    """,
                    [(video_id, video_id) for video_id in unique_ids],
                )
        except aiosqlite.Error as e:
            raise StoreWriteError(f"Failed to upsert videos: {e}") from e

        logger.debug("videos_upserted", count=len(unique_ids))

    async def get_by_video_id(self, video_id: str) -> dict[str, Any] | None:
        """Get a video by its YouTube video ID."""
        try:
            return await self.db.fetchone("SELECT * FROM videos WHERE id = ?", (video_id,))
        except aiosqlite.Error as e:
            raise StoreReadError(f"Failed to load video: {e}") from e

    async def exists(self, video_id: str) -> bool:
        """Check if a video exists."""
        return await self.get_by_video_id(video_id) is not None
