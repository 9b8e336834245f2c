"""YouTube caption retrieval using yt-dlp, and transcript normalization."""

import asyncio
import math
import re
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Iterable

import structlog
import yt_dlp

from kcontext.core.config import settings
from kcontext.models.transcript import RawTranscriptRow, TranscriptSegment
from kcontext.services.indexing.normalizer import normalize_for_search
from kcontext.services.youtube.exceptions import TranscriptUnavailableError

logger = structlog.get_logger(__name__)

_executor = ThreadPoolExecutor(max_workers=2)

# Regex for timestamp line: 00:00:00.000 --> 00:00:05.000 (hours optional)
_TIMESTAMP = re.compile(
    r"((?:\d{1,2}:)?\d{2}:\d{2}[.,]\d{3})\s*-->\s*((?:\d{1,2}:)?\d{2}:\d{2}[.,]\d{3})"
)
_TAG = re.compile(r"<[^>]+>")
_BRACKETED = re.compile(r"\[.*?\]")


def _get_transcripts_dir() -> Path:
    """Get and ensure transcripts directory exists."""
    transcripts_dir = settings.transcripts_path
    transcripts_dir.mkdir(parents=True, exist_ok=True)
    return transcripts_dir


def _timestamp_to_seconds(value: str) -> float:
    parts = value.replace(",", ".").split(":")
    seconds = 0.0
    for part in parts:
        seconds = seconds * 60 + float(part)
    return seconds


def parse_vtt(vtt_content: str) -> list[RawTranscriptRow]:
    """Parse WebVTT captions into raw offset/duration rows.

    Cue settings and inline tags are stripped, ``[Music]``-style annotations
    removed, and cues left without text are skipped. Consecutive cues
    repeating the previous text (common in auto-captions) are dropped.
    """
    rows: list[RawTranscriptRow] = []
    current: dict[str, Any] | None = None

    def flush() -> None:
        if current and current["text"]:
            if rows and rows[-1].text == current["text"]:
                return
            rows.append(
                RawTranscriptRow(
                    offset=current["start"],
                    duration=current["end"] - current["start"],
                    text=current["text"],
                )
            )

    for line in vtt_content.splitlines():
        line = line.strip()

        # Skip header and empty lines
        if not line or line == "WEBVTT" or line.startswith(("Kind:", "Language:", "NOTE")):
            continue

        match = _TIMESTAMP.search(line)
        if match:
            flush()
            current = {
                "start": _timestamp_to_seconds(match.group(1)),
                "end": _timestamp_to_seconds(match.group(2)),
                "text": "",
            }
            continue

        if current is None:
            continue

        clean_text = _BRACKETED.sub("", _TAG.sub("", line)).strip()
        if clean_text:
            current["text"] = f"{current['text']} {clean_text}".strip()

    flush()
    return rows


def _fetch_raw_transcript_sync(video_id: str, languages: list[str]) -> list[RawTranscriptRow]:
    """Synchronous caption download and parse."""
    url = f"https://www.youtube.com/watch?v={video_id}"
    transcripts_dir = _get_transcripts_dir()

    ydl_opts = {
        "quiet": True,
        "no_warnings": True,
        "skip_download": True,
        "writeautomaticsub": True,
        "writesubtitles": True,
        "subtitleslangs": languages,
        "subtitlesformat": "vtt",
        "outtmpl": str(transcripts_dir / f"{video_id}"),
    }

    try:
        with yt_dlp.YoutubeDL(ydl_opts) as ydl:
            info = ydl.extract_info(url, download=True)
    except yt_dlp.utils.DownloadError as e:
        raise TranscriptUnavailableError(video_id, str(e)) from e

    if info is None:
        raise TranscriptUnavailableError(video_id, "video unavailable")

    vtt_files = sorted(transcripts_dir.glob(f"{video_id}*.vtt"))
    if not vtt_files:
        raise TranscriptUnavailableError(video_id, "captions not found")

    # Prefer manual subs in the first configured language over auto-generated ones
    vtt_file = vtt_files[0]
    for language in languages:
        preferred = [f for f in vtt_files if f.name.endswith(f".{language}.vtt")]
        if preferred:
            vtt_file = preferred[0]
            break

    try:
        rows = parse_vtt(vtt_file.read_text(encoding="utf-8"))
    finally:
        for f in vtt_files:
            f.unlink(missing_ok=True)

    logger.info("captions_extracted", video_id=video_id, rows=len(rows), file=vtt_file.name)
    return rows


async def fetch_raw_transcript(
    video_id: str,
    languages: list[str] | None = None,
) -> list[RawTranscriptRow]:
    """Fetch raw caption rows for a video asynchronously.

    Raises:
        TranscriptUnavailableError: If captions are disabled, missing, or the
            video cannot be accessed
    """
    if languages is None:
        languages = settings.caption_languages
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(_executor, _fetch_raw_transcript_sync, video_id, languages)


def _sanitize_number(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    if math.isnan(value) or math.isinf(value) or value < 0:
        return 0.0
    return float(value)


def normalize_transcript_segments(
    video_id: str,
    raw_rows: Iterable[RawTranscriptRow | dict[str, Any]],
) -> list[TranscriptSegment]:
    """Turn raw caption rows into canonical, contiguous segments.

    Negative or non-finite offsets are clamped to zero, rows are ordered by
    offset, rows with empty text or non-positive duration are dropped, and
    surviving rows are renumbered with a 0-based ``seq``.
    """
    cleaned = []
    for row in raw_rows:
        data = row.model_dump() if isinstance(row, RawTranscriptRow) else dict(row)
        text = data.get("text")
        cleaned.append(
            (
                _sanitize_number(data.get("offset")),
                _sanitize_number(data.get("duration")),
                text.strip() if isinstance(text, str) else "",
            )
        )

    # sorted() is stable, so rows sharing an offset keep their source order
    cleaned.sort(key=lambda item: item[0])

    segments: list[TranscriptSegment] = []
    for offset, duration, text in cleaned:
        if not text or duration <= 0:
            continue

        end_sec = offset + duration
        if end_sec <= offset:
            continue

        norm_text = normalize_for_search(text)
        segments.append(
            TranscriptSegment(
                video_id=video_id,
                seq=len(segments),
                start_sec=offset,
                end_sec=end_sec,
                text=text,
                norm_text=norm_text,
                token_count=len(norm_text.split()),
            )
        )

    return segments


async def fetch_canonical_transcript_segments(video_id: str) -> list[TranscriptSegment]:
    """Fetch and normalize a video's transcript.

    Raises:
        TranscriptUnavailableError: For any source failure or when no usable
            rows remain after normalization
    """
    try:
        raw_rows = await fetch_raw_transcript(video_id)
    except TranscriptUnavailableError:
        raise
    except Exception as e:
        raise TranscriptUnavailableError(video_id, str(e) or type(e).__name__) from e

    segments = normalize_transcript_segments(video_id, raw_rows)
    if not segments:
        raise TranscriptUnavailableError(video_id, "no usable transcript rows")

    return segments
