#!/usr/bin/env python3
"""Fetch canonical transcript segments for one video as JSON."""

import argparse
import asyncio
import json
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from kcontext.core.logging import setup_logging, get_logger
from kcontext.services.youtube.exceptions import TranscriptUnavailableError
from kcontext.services.youtube.transcript import fetch_canonical_transcript_segments

setup_logging()
logger = get_logger(__name__)


async def main(video_id: str, out: str | None) -> int:
    """Fetch a transcript and print or save it.

    Returns:
        Process exit code
    """
    try:
        segments = await fetch_canonical_transcript_segments(video_id)
    except TranscriptUnavailableError as e:
        logger.warning("transcript_unavailable", video_id=video_id, error=str(e))
        print(f"Transcript unavailable: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        logger.error("transcript_fetch_failed", video_id=video_id, error=str(e))
        print(f"Transcript fetch failed: {e}", file=sys.stderr)
        return 1

    payload = json.dumps(
        [segment.model_dump(exclude={"duration"}) for segment in segments],
        ensure_ascii=False,
        indent=2,
    )

    if out:
        Path(out).write_text(payload, encoding="utf-8")
        print(f"Saved {len(segments)} transcript rows to {out}")
    else:
        print(payload)
    return 0


def parse_args() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Fetch a YouTube transcript as canonical segments",
    )
    parser.add_argument("--video-id", required=True, help="YouTube video ID")
    parser.add_argument("--out", help="Output file path (JSON)")
    return parser.parse_args()


if __name__ == "__main__":
    args = parse_args()
    sys.exit(asyncio.run(main(video_id=args.video_id, out=args.out)))
