"""Async SQLite connection manager."""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator

import aiosqlite
import structlog

from kcontext.core.config import settings

logger = structlog.get_logger(__name__)

MEMORY = ":memory:"


class Database:
    """Async database connection manager.

    Construct one instance at process start and pass it to the repositories
    that need it.
    """

    def __init__(self, path: str | Path | None = None):
        """Initialize database manager."""
        self.path = str(path) if path is not None else str(settings.database_path)
        self._connection: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Open the database connection."""
        if self.path != MEMORY:
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)

        self._connection = await aiosqlite.connect(self.path)
        self._connection.row_factory = aiosqlite.Row

        # Enable foreign keys
        await self._connection.execute("PRAGMA foreign_keys = ON")
        logger.info("database_connected", type="sqlite", path=self.path)

    async def disconnect(self) -> None:
        """Close the database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None
            logger.info("database_disconnected")

    @property
    def is_connected(self) -> bool:
        """Check if the database is connected."""
        return self._connection is not None

    @property
    def connection(self) -> aiosqlite.Connection:
        """Get the current database connection."""
        if not self._connection:
            raise RuntimeError("Database not connected")
        return self._connection

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Context manager for database transactions."""
        conn = self.connection
        try:
            yield conn
            await conn.commit()
        except BaseException:
            await conn.rollback()
            raise

    async def fetchone(self, sql: str, parameters: tuple | list = ()) -> dict[str, Any] | None:
        """Execute query and fetch one row as dict."""
        async with self.connection.execute(sql, parameters) as cursor:
            row = await cursor.fetchone()
        return dict(row) if row is not None else None

    async def fetchall(self, sql: str, parameters: tuple | list = ()) -> list[dict[str, Any]]:
        """Execute query and fetch all rows as dicts."""
        async with self.connection.execute(sql, parameters) as cursor:
            rows = await cursor.fetchall()
        return [dict(row) for row in rows]

    async def init_schema(self, schema_path: str | Path | None = None) -> None:
        """Initialize database schema from SQL file."""
        if schema_path is None:
            schema_path = Path(__file__).parent / "schema.sql"

        schema = Path(schema_path).read_text(encoding="utf-8")
        await self.connection.executescript(schema)
        await self.connection.commit()

        logger.info("database_schema_initialized")
