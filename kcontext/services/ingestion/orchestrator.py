"""Ingestion orchestrator - coordinates the transcript indexing pipeline."""

from pathlib import Path
from typing import Awaitable, Callable, Iterable, Sequence

import structlog

from kcontext.core.config import settings
from kcontext.core.retry import RetryOptions, retry_with_backoff
from kcontext.db.repositories.chunk import ChunkRepository
from kcontext.db.repositories.segment import SegmentRepository
from kcontext.db.repositories.video import VideoRepository
from kcontext.models.ingestion import IngestionFailure, IngestionRunResult
from kcontext.models.transcript import TranscriptSegment
from kcontext.services.indexing.chunker import build_sliding_window_chunks, validate_window
from kcontext.services.ingestion.checkpoint import (
    mark_video_completed,
    read_checkpoint,
    write_checkpoint,
)
from kcontext.services.youtube.transcript import fetch_canonical_transcript_segments

logger = structlog.get_logger(__name__)

TranscriptFetcher = Callable[[str], Awaitable[list[TranscriptSegment]]]


def default_retry_options() -> RetryOptions:
    return RetryOptions(
        max_retries=settings.max_retry_attempts,
        base_delay_ms=settings.retry_base_delay_ms,
        factor=settings.retry_factor,
    )


class IngestionOrchestrator:
    """Fetches, chunks and persists transcripts for a list of videos.

    Videos are processed strictly in input order. A video that fails is
    recorded and skipped; it never aborts the run. After each successful
    video the checkpoint is rewritten, so a rerun resumes where it stopped.
    """

    def __init__(
        self,
        video_repo: VideoRepository,
        segment_repo: SegmentRepository,
        chunk_repo: ChunkRepository,
        transcript_fetcher: TranscriptFetcher = fetch_canonical_transcript_segments,
        checkpoint_path: str | Path | None = None,
        retry_options: RetryOptions | None = None,
        batch_size: int | None = None,
        window_seconds: float | None = None,
        overlap_seconds: float | None = None,
        stopwords: Iterable[str] | None = None,
    ):
        """Initialize the orchestrator with repositories and run options.

        Raises:
            ChunkingConfigError: If the window/overlap pair is invalid
        """
        self.video_repo = video_repo
        self.segment_repo = segment_repo
        self.chunk_repo = chunk_repo
        self.transcript_fetcher = transcript_fetcher
        self.checkpoint_path = (
            Path(checkpoint_path) if checkpoint_path is not None else settings.checkpoint_file
        )
        self.retry_options = retry_options or default_retry_options()
        self.batch_size = batch_size or settings.ingest_batch_size
        self.window_seconds = (
            settings.chunk_window_seconds if window_seconds is None else window_seconds
        )
        self.overlap_seconds = (
            settings.chunk_overlap_seconds if overlap_seconds is None else overlap_seconds
        )
        self.stopwords = list(stopwords) if stopwords is not None else None

        validate_window(self.window_seconds, self.overlap_seconds)

    async def run(self, video_ids: Sequence[str]) -> IngestionRunResult:
        """Ingest each video id in order.

        Args:
            video_ids: YouTube video IDs to ingest

        Returns:
            Processed, skipped and failed video ids
        """
        checkpoint = read_checkpoint(self.checkpoint_path)
        completed = set(checkpoint.completed_video_ids)
        result = IngestionRunResult()

        logger.info(
            "ingestion_started",
            videos=len(video_ids),
            already_completed=len(completed),
            checkpoint=str(self.checkpoint_path),
        )

        for video_id in video_ids:
            if video_id in completed:
                result.skipped_video_ids.append(video_id)
                logger.info("video_skipped_completed", video_id=video_id)
                continue

            logger.info("video_ingestion_started", video_id=video_id)

            try:
                segments, chunk_count, last_chunk_start = await self._ingest_video(video_id)
                updated = mark_video_completed(
                    checkpoint,
                    video_id,
                    last_segment_seq=segments[-1].seq if segments else None,
                    last_chunk_start_time=last_chunk_start,
                )
                write_checkpoint(updated, self.checkpoint_path)
            except Exception as e:
                reason = str(e) or type(e).__name__
                result.failed.append(IngestionFailure(video_id=video_id, reason=reason))
                logger.error("video_ingestion_failed", video_id=video_id, error=reason)
                continue

            checkpoint = updated
            completed.add(video_id)
            result.processed_video_ids.append(video_id)
            logger.info(
                "video_ingestion_completed",
                video_id=video_id,
                segments=len(segments),
                chunks=chunk_count,
            )

        logger.info(
            "ingestion_completed",
            processed=len(result.processed_video_ids),
            skipped=len(result.skipped_video_ids),
            failed=len(result.failed),
        )
        return result

    async def _ingest_video(
        self, video_id: str
    ) -> tuple[list[TranscriptSegment], int, float | None]:
        """Fetch, persist segments, chunk, persist chunks.

        Returns:
            Segments, number of chunks and the last chunk's start time
        """
        segments = await self.transcript_fetcher(video_id)

        await retry_with_backoff(
            lambda: self.video_repo.upsert_many([video_id]),
            self.retry_options,
        )
        await retry_with_backoff(
            lambda: self.segment_repo.upsert_segments(segments, self.batch_size),
            self.retry_options,
        )

        chunks = build_sliding_window_chunks(
            video_id,
            segments,
            window_seconds=self.window_seconds,
            overlap_seconds=self.overlap_seconds,
            stopwords=self.stopwords,
        )

        await retry_with_backoff(
            lambda: self.chunk_repo.upsert_chunks(chunks, self.batch_size),
            self.retry_options,
        )

        last_chunk_start = chunks[-1].start_sec if chunks else None
        return segments, len(chunks), last_chunk_start
