#!/usr/bin/env python3
"""CLI script for transcript ingestion."""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from kcontext.core.config import settings
from kcontext.core.logging import setup_logging, get_logger
from kcontext.core.retry import RetryOptions
from kcontext.db.connection import Database
from kcontext.db.repositories.chunk import ChunkRepository
from kcontext.db.repositories.segment import SegmentRepository
from kcontext.db.repositories.video import VideoRepository
from kcontext.services.ingestion.orchestrator import IngestionOrchestrator
from kcontext.services.ingestion.video_ids import collect_video_ids

setup_logging()
logger = get_logger(__name__)


async def main(
    video_ids: list[str],
    batch_size: int,
    checkpoint: str,
    max_retries: int,
    retry_base_ms: int,
) -> int:
    """Run the ingestion pipeline.

    Returns:
        Process exit code (1 if any video failed)
    """
    db = Database()

    try:
        await db.connect()
        await db.init_schema()

        orchestrator = IngestionOrchestrator(
            video_repo=VideoRepository(db),
            segment_repo=SegmentRepository(db),
            chunk_repo=ChunkRepository(db),
            checkpoint_path=checkpoint,
            retry_options=RetryOptions(
                max_retries=max_retries,
                base_delay_ms=retry_base_ms,
                factor=settings.retry_factor,
            ),
            batch_size=batch_size,
        )
        result = await orchestrator.run(video_ids)

    except KeyboardInterrupt:
        logger.info("ingestion_interrupted")
        print("\nIngestion interrupted by user")
        return 1
    except Exception as e:
        logger.error("ingestion_failed", error=str(e))
        print(f"\nIngestion failed: {e}", file=sys.stderr)
        return 1
    finally:
        await db.disconnect()

    print("\n" + "=" * 50)
    print("INGESTION COMPLETE")
    print("=" * 50)
    print(f"Processed: {len(result.processed_video_ids)}")
    print(f"Skipped: {len(result.skipped_video_ids)}")
    print(f"Failed: {len(result.failed)}")
    for failure in result.failed:
        print(f"- {failure.video_id}: {failure.reason}", file=sys.stderr)
    print("=" * 50)

    return 1 if result.has_failures else 0


def positive_int(value: str) -> int:
    """argparse type for strictly positive integers."""
    parsed = int(value)
    if parsed <= 0:
        raise argparse.ArgumentTypeError(f"Invalid integer value: {value}")
    return parsed


def parse_args() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Fetch, chunk and index YouTube transcripts",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--video-id",
        nargs="+",
        default=[],
        help="Video IDs to ingest",
    )
    parser.add_argument(
        "--video-ids-file",
        help="Path to newline-delimited video IDs ('#' starts a comment)",
    )
    parser.add_argument(
        "--batch-size",
        type=positive_int,
        default=settings.ingest_batch_size,
        help="Batch size for store upserts",
    )
    parser.add_argument(
        "--checkpoint",
        default=settings.checkpoint_path,
        help="Checkpoint path",
    )
    parser.add_argument(
        "--max-retries",
        type=positive_int,
        default=settings.max_retry_attempts,
        help="Max retries per persistence step",
    )
    parser.add_argument(
        "--retry-base-ms",
        type=positive_int,
        default=settings.retry_base_delay_ms,
        help="Retry base delay in ms",
    )
    return parser.parse_args()


if __name__ == "__main__":
    args = parse_args()
    video_ids = collect_video_ids(args.video_id, args.video_ids_file)
    if not video_ids:
        print("No video IDs provided. Use --video-id or --video-ids-file.", file=sys.stderr)
        sys.exit(1)

    sys.exit(
        asyncio.run(
            main(
                video_ids=video_ids,
                batch_size=args.batch_size,
                checkpoint=args.checkpoint,
                max_retries=args.max_retries,
                retry_base_ms=args.retry_base_ms,
            )
        )
    )
