"""Indexing service exceptions."""


class IndexingError(Exception):
    """Base exception for indexing errors."""

    pass


class ChunkingConfigError(IndexingError, ValueError):
    """Raised when the window or step of the chunker is not positive."""

    pass
