"""FastAPI dependencies resolving services from application state."""

from fastapi import Request

from kcontext.services.search.chunk_search import ChunkSearchService


def get_search_service(request: Request) -> ChunkSearchService:
    """Get the search service created during application startup."""
    return request.app.state.search_service
