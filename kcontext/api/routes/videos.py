"""Video-scoped API routes."""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status

from kcontext.api.deps import get_search_service
from kcontext.models.chunk import ChunkSummary
from kcontext.services.search.chunk_search import ChunkSearchService

router = APIRouter(prefix="/api/videos", tags=["videos"])


@router.get("/{video_id}/segments")
async def get_video_segments(
    video_id: str,
    service: ChunkSearchService = Depends(get_search_service),
) -> dict[str, Any]:
    """List a video's transcript segments in order."""
    segments = await service.get_video_segments(video_id)
    return {
        "video_id": video_id,
        "count": len(segments),
        "segments": [segment.model_dump() for segment in segments],
    }


@router.get("/{video_id}/nearest-chunk", response_model=ChunkSummary)
async def get_nearest_chunk(
    video_id: str,
    t: float = Query(..., ge=0, description="Playback time in seconds"),
    service: ChunkSearchService = Depends(get_search_service),
) -> ChunkSummary:
    """Find the chunk playing at ``t``, else the closest one."""
    chunk = await service.get_nearest_chunk(video_id, t)
    if not chunk:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No chunks for video {video_id}",
        )
    return chunk
