"""Store exceptions."""


class StoreError(Exception):
    """Base exception for persistent store errors."""

    pass


class StoreWriteError(StoreError):
    """Raised when an upsert or delete against the store fails."""

    pass


class StoreReadError(StoreError):
    """Raised when a query against the store fails."""

    pass
