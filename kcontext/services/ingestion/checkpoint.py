"""Ingestion checkpoint file: read, write and update.

The checkpoint is a small JSON document with camelCase keys::

    {
      "completedVideoIds": ["abc123"],
      "lastVideoId": "abc123",
      "lastSegmentSeq": 12,
      "lastChunkStartTime": 60.0,
      "updatedAt": "2026-01-01T00:00:00Z"
    }

A missing or unreadable file is a fresh start, never an error. Malformed
fields are dropped individually.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import structlog

from kcontext.core.config import settings
from kcontext.models.ingestion import IngestionCheckpoint

logger = structlog.get_logger(__name__)

EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


def _iso(moment: datetime) -> str:
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def create_initial_checkpoint() -> IngestionCheckpoint:
    """An empty checkpoint stamped with the Unix epoch."""
    return IngestionCheckpoint(
        completed_video_ids=[],
        last_video_id=None,
        last_segment_seq=None,
        last_chunk_start_time=None,
        updated_at=_iso(EPOCH),
    )


def normalize_checkpoint(data: Any) -> IngestionCheckpoint:
    """Build a checkpoint from loosely-typed JSON, dropping bad fields."""
    if not isinstance(data, dict):
        return create_initial_checkpoint()

    completed = data.get("completedVideoIds")
    last_video_id = data.get("lastVideoId")
    last_segment_seq = data.get("lastSegmentSeq")
    last_chunk_start = data.get("lastChunkStartTime")
    updated_at = data.get("updatedAt")

    return IngestionCheckpoint(
        completed_video_ids=(
            [value for value in completed if isinstance(value, str)]
            if isinstance(completed, list)
            else []
        ),
        last_video_id=last_video_id if isinstance(last_video_id, str) else None,
        last_segment_seq=(
            int(last_segment_seq)
            if _is_number(last_segment_seq) and float(last_segment_seq).is_integer()
            else None
        ),
        last_chunk_start_time=(
            float(last_chunk_start) if _is_number(last_chunk_start) else None
        ),
        updated_at=updated_at if isinstance(updated_at, str) else _iso(EPOCH),
    )


def read_checkpoint(path: str | Path | None = None) -> IngestionCheckpoint:
    """Load the checkpoint, or an initial one if the file is absent or invalid."""
    path = Path(path) if path is not None else settings.checkpoint_file

    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return create_initial_checkpoint()
    except OSError as e:
        logger.warning("checkpoint_unreadable", path=str(path), error=str(e))
        return create_initial_checkpoint()

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning("checkpoint_invalid_json", path=str(path), error=str(e))
        return create_initial_checkpoint()

    return normalize_checkpoint(data)


def write_checkpoint(checkpoint: IngestionCheckpoint, path: str | Path | None = None) -> None:
    """Write the checkpoint, stamping ``updatedAt`` with the current time.

    The file is written to a sibling temp file and renamed into place, so a
    crash mid-write leaves the previous checkpoint intact.
    """
    path = Path(path) if path is not None else settings.checkpoint_file
    path.parent.mkdir(parents=True, exist_ok=True)

    stamped = normalize_checkpoint(
        {**checkpoint.model_dump(by_alias=True), "updatedAt": _iso(datetime.now(timezone.utc))}
    )
    payload = json.dumps(stamped.model_dump(by_alias=True), ensure_ascii=False, indent=2)

    tmp_path = path.with_name(f"{path.name}.tmp")
    tmp_path.write_text(payload, encoding="utf-8")
    tmp_path.replace(path)


def mark_video_completed(
    checkpoint: IngestionCheckpoint,
    video_id: str,
    last_segment_seq: int | None,
    last_chunk_start_time: float | None,
) -> IngestionCheckpoint:
    """Return a new checkpoint with ``video_id`` recorded as completed."""
    completed = list(dict.fromkeys([*checkpoint.completed_video_ids, video_id]))
    return IngestionCheckpoint(
        completed_video_ids=completed,
        last_video_id=video_id,
        last_segment_seq=last_segment_seq,
        last_chunk_start_time=last_chunk_start_time,
        updated_at=_iso(datetime.now(timezone.utc)),
    )
