"""Tests for caption parsing and transcript normalization."""

import math

import pytest

from kcontext.models.transcript import RawTranscriptRow
from kcontext.services.youtube import transcript
from kcontext.services.youtube.exceptions import TranscriptUnavailableError
from kcontext.services.youtube.transcript import (
    fetch_canonical_transcript_segments,
    normalize_transcript_segments,
    parse_vtt,
)

SAMPLE_VTT = """WEBVTT
Kind: captions
Language: ko

00:00:01.000 --> 00:00:03.500 align:start position:0%
<c>안녕하세요</c> [음악]

00:00:03.500 --> 00:00:05.000
안녕하세요

00:00:05.000 --> 00:00:07.000
반갑습니다

01:00:00.000 --> 01:00:02.000
[박수]
"""


def test_parse_vtt() -> None:
    """Tags and annotations are stripped; repeated cues are dropped."""
    rows = parse_vtt(SAMPLE_VTT)

    assert [(r.offset, r.duration, r.text) for r in rows] == [
        (1.0, 2.5, "안녕하세요"),
        (5.0, 2.0, "반갑습니다"),
    ]


def test_normalize_drops_and_renumbers() -> None:
    """Rows are sorted, filtered and renumbered from zero."""
    rows = [
        {"offset": 5, "duration": 2, "text": " 두번째 "},
        {"offset": -1, "duration": 1, "text": "첫번째"},
        {"offset": 3, "duration": 0, "text": "길이없음"},
        {"offset": 7, "duration": 1, "text": "   "},
        {"offset": 9, "duration": -2, "text": "음수"},
    ]

    segments = normalize_transcript_segments("v1", rows)

    assert [(s.seq, s.start_sec, s.end_sec, s.text) for s in segments] == [
        (0, 0.0, 1.0, "첫번째"),
        (1, 5.0, 7.0, "두번째"),
    ]
    assert all(s.video_id == "v1" for s in segments)


def test_normalize_sanitizes_non_finite_numbers() -> None:
    """NaN offsets become zero; non-finite durations drop the row."""
    rows = [
        RawTranscriptRow(offset=math.nan, duration=2.0, text="Hello, World"),
        RawTranscriptRow(offset=4.0, duration=math.inf, text="무한"),
    ]

    segments = normalize_transcript_segments("v1", rows)

    assert len(segments) == 1
    assert segments[0].start_sec == 0.0
    assert segments[0].norm_text == "hello world"
    assert segments[0].token_count == 2


@pytest.mark.asyncio
async def test_fetch_canonical_wraps_source_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    """Any source failure surfaces as TranscriptUnavailableError."""

    async def failing_fetch(video_id: str) -> list[RawTranscriptRow]:
        raise RuntimeError("network down")

    monkeypatch.setattr(transcript, "fetch_raw_transcript", failing_fetch)

    with pytest.raises(TranscriptUnavailableError) as exc_info:
        await fetch_canonical_transcript_segments("v1")

    assert exc_info.value.video_id == "v1"
    assert exc_info.value.reason == "network down"


@pytest.mark.asyncio
async def test_fetch_canonical_rejects_empty_transcripts(monkeypatch: pytest.MonkeyPatch) -> None:
    """A transcript with no usable rows is unavailable."""

    async def empty_fetch(video_id: str) -> list[RawTranscriptRow]:
        return [RawTranscriptRow(offset=0.0, duration=0.0, text="무음")]

    monkeypatch.setattr(transcript, "fetch_raw_transcript", empty_fetch)

    with pytest.raises(TranscriptUnavailableError, match="no usable transcript rows"):
        await fetch_canonical_transcript_segments("v1")


@pytest.mark.asyncio
async def test_fetch_canonical_returns_segments(monkeypatch: pytest.MonkeyPatch) -> None:
    """Successful fetches are normalized into segments."""

    async def fetch(video_id: str) -> list[RawTranscriptRow]:
        return parse_vtt(SAMPLE_VTT)

    monkeypatch.setattr(transcript, "fetch_raw_transcript", fetch)

    segments = await fetch_canonical_transcript_segments("v1")

    assert [s.text for s in segments] == ["안녕하세요", "반갑습니다"]
    assert [s.seq for s in segments] == [0, 1]
