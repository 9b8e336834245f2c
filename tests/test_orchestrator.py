"""Tests for the ingestion orchestrator."""

from pathlib import Path
from typing import Any, Sequence

import pytest

from kcontext.core.retry import RetryOptions
from kcontext.db.connection import Database
from kcontext.db.exceptions import StoreWriteError
from kcontext.db.repositories.chunk import ChunkRepository
from kcontext.db.repositories.segment import SegmentRepository
from kcontext.db.repositories.video import VideoRepository
from kcontext.models.transcript import TranscriptSegment
from kcontext.services.indexing.exceptions import ChunkingConfigError
from kcontext.services.ingestion.checkpoint import read_checkpoint
from kcontext.services.ingestion.orchestrator import IngestionOrchestrator
from kcontext.services.youtube.exceptions import TranscriptUnavailableError

NO_DELAY = RetryOptions(max_retries=2, base_delay_ms=0)


class FakeFetcher:
    def __init__(self, transcripts: dict[str, list[TranscriptSegment]]):
        self.transcripts = transcripts
        self.calls: list[str] = []

    async def __call__(self, video_id: str) -> list[TranscriptSegment]:
        self.calls.append(video_id)
        if video_id not in self.transcripts:
            raise TranscriptUnavailableError(video_id, "captions not found")
        return self.transcripts[video_id]


class FlakySegmentRepository(SegmentRepository):
    """Fails the first ``failures`` upserts."""

    def __init__(self, db: Database, failures: int):
        super().__init__(db)
        self.failures = failures
        self.attempts = 0

    async def upsert_segments(self, segments: Sequence[TranscriptSegment], batch_size: int = 500) -> int:
        self.attempts += 1
        if self.attempts <= self.failures:
            raise StoreWriteError("database is locked")
        return await super().upsert_segments(segments, batch_size)


class BrokenChunkRepository(ChunkRepository):
    async def upsert_chunks(self, chunks: Sequence[Any], batch_size: int = 120) -> dict:
        raise StoreWriteError("disk full")


def make_orchestrator(
    db: Database,
    fetcher: FakeFetcher,
    checkpoint: Path,
    segment_repo: SegmentRepository | None = None,
    chunk_repo: ChunkRepository | None = None,
) -> IngestionOrchestrator:
    return IngestionOrchestrator(
        video_repo=VideoRepository(db),
        segment_repo=segment_repo or SegmentRepository(db),
        chunk_repo=chunk_repo or ChunkRepository(db),
        transcript_fetcher=fetcher,
        checkpoint_path=checkpoint,
        retry_options=NO_DELAY,
        window_seconds=15,
        overlap_seconds=5,
    )


@pytest.mark.asyncio
async def test_run_processes_skips_and_isolates_failures(
    test_db: Database,
    sample_segments: list[TranscriptSegment],
    tmp_path: Path,
) -> None:
    """A failing video is recorded without stopping the run."""
    checkpoint_path = tmp_path / "checkpoint.json"
    fetcher = FakeFetcher({"v1": sample_segments})
    orchestrator = make_orchestrator(test_db, fetcher, checkpoint_path)

    result = await orchestrator.run(["v1", "missing", "v1"])

    assert result.processed_video_ids == ["v1"]
    assert result.skipped_video_ids == ["v1"]
    assert [(f.video_id, f.reason) for f in result.failed] == [
        ("missing", "Transcript unavailable for missing: captions not found")
    ]
    assert result.has_failures

    assert await SegmentRepository(test_db).count_by_video("v1") == 4
    assert await ChunkRepository(test_db).count_by_video("v1") == 2

    checkpoint = read_checkpoint(checkpoint_path)
    assert checkpoint.completed_video_ids == ["v1"]
    assert checkpoint.last_segment_seq == 3
    assert checkpoint.last_chunk_start_time == 10.0


@pytest.mark.asyncio
async def test_rerun_resumes_from_checkpoint(
    test_db: Database,
    sample_segments: list[TranscriptSegment],
    tmp_path: Path,
) -> None:
    """Completed videos are not fetched again."""
    checkpoint_path = tmp_path / "checkpoint.json"
    await make_orchestrator(test_db, FakeFetcher({"v1": sample_segments}), checkpoint_path).run(["v1"])

    fetcher = FakeFetcher({"v1": sample_segments})
    result = await make_orchestrator(test_db, fetcher, checkpoint_path).run(["v1"])

    assert result.skipped_video_ids == ["v1"]
    assert result.processed_video_ids == []
    assert fetcher.calls == []


@pytest.mark.asyncio
async def test_transient_store_failures_are_retried(
    test_db: Database,
    sample_segments: list[TranscriptSegment],
    tmp_path: Path,
) -> None:
    """Persistence steps succeed within the retry budget."""
    segment_repo = FlakySegmentRepository(test_db, failures=2)
    orchestrator = make_orchestrator(
        test_db,
        FakeFetcher({"v1": sample_segments}),
        tmp_path / "checkpoint.json",
        segment_repo=segment_repo,
    )

    result = await orchestrator.run(["v1"])

    assert result.processed_video_ids == ["v1"]
    assert segment_repo.attempts == 3


@pytest.mark.asyncio
async def test_exhausted_retries_fail_only_that_video(
    test_db: Database,
    sample_segments: list[TranscriptSegment],
    tmp_path: Path,
) -> None:
    """Exhaustion is a per-video failure and leaves the checkpoint untouched."""
    checkpoint_path = tmp_path / "checkpoint.json"
    orchestrator = make_orchestrator(
        test_db,
        FakeFetcher({"v1": sample_segments}),
        checkpoint_path,
        chunk_repo=BrokenChunkRepository(test_db),
    )

    result = await orchestrator.run(["v1"])

    assert result.processed_video_ids == []
    assert [(f.video_id, f.reason) for f in result.failed] == [("v1", "disk full")]
    assert not checkpoint_path.exists()


@pytest.mark.asyncio
async def test_reingestion_is_idempotent(
    test_db: Database,
    sample_segments: list[TranscriptSegment],
    tmp_path: Path,
) -> None:
    """Running twice with fresh checkpoints converges to the same rows."""
    for name in ("first.json", "second.json"):
        orchestrator = make_orchestrator(
            test_db, FakeFetcher({"v1": sample_segments}), tmp_path / name
        )
        await orchestrator.run(["v1"])

    assert await SegmentRepository(test_db).count_by_video("v1") == 4
    assert await ChunkRepository(test_db).count_by_video("v1") == 2


def test_invalid_chunking_settings_fail_fast(tmp_path: Path) -> None:
    """The window/overlap pair is validated at construction time."""
    db = Database(":memory:")
    with pytest.raises(ChunkingConfigError):
        IngestionOrchestrator(
            video_repo=VideoRepository(db),
            segment_repo=SegmentRepository(db),
            chunk_repo=ChunkRepository(db),
            transcript_fetcher=FakeFetcher({}),
            checkpoint_path=tmp_path / "checkpoint.json",
            window_seconds=10,
            overlap_seconds=10,
        )


@pytest.mark.asyncio
async def test_checkpoint_write_failure_is_a_video_failure(
    test_db: Database,
    sample_segments: list[TranscriptSegment],
    tmp_path: Path,
) -> None:
    """An unwritable checkpoint fails each video but the run still returns."""
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    other = [s.model_copy(update={"video_id": "v2"}) for s in sample_segments]
    orchestrator = make_orchestrator(
        test_db,
        FakeFetcher({"v1": sample_segments, "v2": other}),
        blocker / "checkpoint.json",
    )

    result = await orchestrator.run(["v1", "v2"])

    assert result.processed_video_ids == []
    assert [f.video_id for f in result.failed] == ["v1", "v2"]
    assert all(f.reason for f in result.failed)
    assert await SegmentRepository(test_db).count_by_video("v2") == 4
