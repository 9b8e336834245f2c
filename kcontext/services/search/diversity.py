"""Per-video diversity pass over ranked search results."""

from typing import Sequence

from kcontext.models.search import SearchResult
from kcontext.services.search.ranking import compute_interval_iou

DEFAULT_MAX_PER_VIDEO = 2
DEFAULT_IOU_THRESHOLD = 0.35
DEFAULT_MIN_START_GAP_SEC = 14.0


def is_near_duplicate(
    left: SearchResult,
    right: SearchResult,
    iou_threshold: float = DEFAULT_IOU_THRESHOLD,
    min_start_gap: float = DEFAULT_MIN_START_GAP_SEC,
) -> bool:
    """Two clips of one video overlap too much or start too close together."""
    iou = compute_interval_iou(
        (left.chunk_start_sec, left.chunk_end_sec),
        (right.chunk_start_sec, right.chunk_end_sec),
    )
    start_gap = abs(left.chunk_start_sec - right.chunk_start_sec)
    return iou >= iou_threshold or start_gap < min_start_gap


def select_diverse_results(
    ranked: Sequence[SearchResult],
    limit: int,
    max_per_video: int = DEFAULT_MAX_PER_VIDEO,
    iou_threshold: float = DEFAULT_IOU_THRESHOLD,
    min_start_gap: float = DEFAULT_MIN_START_GAP_SEC,
) -> list[SearchResult]:
    """Two-pass greedy selection over rank-ordered results.

    Pass 1 takes the best result of each distinct video. If that leaves the
    list short of ``limit``, pass 2 backfills further results from videos
    already represented, up to ``max_per_video`` each, skipping any result
    that near-duplicates one already accepted for its video.

    Args:
        ranked: Results in rank order
        limit: Target number of results

    Returns:
        Pass-1 picks in rank order followed by pass-2 backfills
    """
    if limit <= 0:
        return []

    selected: list[SearchResult] = []
    accepted_by_video: dict[str, list[SearchResult]] = {}
    picked: set[str] = set()

    for result in ranked:
        if len(selected) >= limit:
            return selected
        if result.video_id in accepted_by_video:
            continue
        selected.append(result)
        accepted_by_video[result.video_id] = [result]
        picked.add(result.chunk_id)

    for result in ranked:
        if len(selected) >= limit:
            break
        if result.chunk_id in picked:
            continue

        accepted = accepted_by_video.get(result.video_id, [])
        if len(accepted) >= max_per_video:
            continue
        if any(
            is_near_duplicate(result, other, iou_threshold, min_start_gap) for other in accepted
        ):
            continue

        selected.append(result)
        accepted.append(result)
        picked.add(result.chunk_id)

    return selected
