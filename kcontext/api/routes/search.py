"""Search API routes for transcript clips."""

import math

from fastapi import APIRouter, Depends, HTTPException, Query, status

from kcontext.api.deps import get_search_service
from kcontext.models.search import SearchResponse
from kcontext.services.search.chunk_search import (
    ChunkSearchService,
    clamp_limit,
    clamp_preroll,
)

router = APIRouter(prefix="/api", tags=["search"])


@router.get("/search", response_model=SearchResponse)
async def search_clips(
    q: str = Query(default="", description="Free-text query"),
    limit: int | None = Query(default=None, description="Maximum results (1-50)"),
    preroll: float | None = Query(default=None, description="Seconds before the anchor (0-15)"),
    service: ChunkSearchService = Depends(get_search_service),
) -> SearchResponse:
    """Search transcript chunks for a spoken phrase.

    Example:
        GET /api/search?q=분석했다&limit=5&preroll=3
    """
    query = q.strip()
    if not query:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Query parameter 'q' is required",
        )
    if preroll is not None and not math.isfinite(preroll):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="preroll must be a valid number",
        )

    limit = clamp_limit(limit)
    preroll = clamp_preroll(preroll)
    results = await service.search(query, limit=limit, preroll=preroll)

    return SearchResponse(
        query=query,
        limit=limit,
        preroll=preroll,
        count=len(results),
        results=results,
    )
