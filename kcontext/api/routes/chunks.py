"""Chunk context API routes."""

from fastapi import APIRouter, Depends, HTTPException, status

from kcontext.api.deps import get_search_service
from kcontext.models.chunk import ChunkContext, TimedToken
from kcontext.services.search.chunk_search import ChunkSearchService

router = APIRouter(prefix="/api/chunks", tags=["chunks"])


@router.get("/{chunk_id}/context", response_model=ChunkContext)
async def get_chunk_context(
    chunk_id: str,
    service: ChunkSearchService = Depends(get_search_service),
) -> ChunkContext:
    """Get a chunk's bounds and timed tokens for highlighting."""
    context = await service.get_chunk_context(chunk_id)
    if not context:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Chunk {chunk_id} not found",
        )
    return context


@router.get("/{chunk_id}/timed-tokens", response_model=list[TimedToken])
async def get_timed_tokens(
    chunk_id: str,
    service: ChunkSearchService = Depends(get_search_service),
) -> list[TimedToken]:
    """Get only the timed tokens of a chunk."""
    return await service.get_timed_tokens(chunk_id)
