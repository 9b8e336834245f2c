"""Pytest configuration and fixtures."""

from pathlib import Path
from typing import AsyncIterator

import pytest
import pytest_asyncio

from kcontext.db.connection import Database
from kcontext.models.transcript import TranscriptSegment
from kcontext.services.indexing.normalizer import normalize_for_search


def build_segment(video_id: str, seq: int, start: float, end: float, text: str) -> TranscriptSegment:
    """Build a canonical segment the way transcript normalization would."""
    norm_text = normalize_for_search(text)
    return TranscriptSegment(
        video_id=video_id,
        seq=seq,
        start_sec=start,
        end_sec=end,
        text=text,
        norm_text=norm_text,
        token_count=len(norm_text.split()),
    )


@pytest.fixture
def make_segment():
    """Factory for canonical segments."""
    return build_segment


@pytest.fixture
def sample_segments() -> list[TranscriptSegment]:
    """Four segments at 0-3, 4-8, 10-14 and 16-20 seconds."""
    return [
        build_segment("v1", 0, 0.0, 3.0, "데이터 분석을 시작합니다"),
        build_segment("v1", 1, 4.0, 8.0, "먼저 데이터를 정리했다"),
        build_segment("v1", 2, 10.0, 14.0, "그리고 결과를 테스트했다"),
        build_segment("v1", 3, 16.0, 20.0, "마지막으로 결과를 공유합니다"),
    ]


@pytest_asyncio.fixture
async def test_db(tmp_path: Path) -> AsyncIterator[Database]:
    """Create a test database with temporary path."""
    db = Database(tmp_path / "test.db")
    await db.connect()
    await db.init_schema()

    yield db

    await db.disconnect()
