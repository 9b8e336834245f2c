"""Keyword search over transcript chunks."""

from kcontext.services.search.chunk_search import ChunkSearchService

__all__ = ["ChunkSearchService"]
