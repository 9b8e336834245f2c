"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from kcontext.api.routes import chunks, search, videos
from kcontext.core.config import settings
from kcontext.core.logging import get_logger, setup_logging
from kcontext.db.connection import Database
from kcontext.db.exceptions import StoreError
from kcontext.db.repositories.chunk import ChunkRepository
from kcontext.db.repositories.segment import SegmentRepository
from kcontext.services.search.chunk_search import ChunkSearchService

# Set up logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager for startup/shutdown."""
    logger.info("application_starting", app_name=settings.app_name)

    db = Database()
    await db.connect()
    await db.init_schema()

    app.state.db = db
    app.state.search_service = ChunkSearchService(
        chunk_repo=ChunkRepository(db),
        segment_repo=SegmentRepository(db),
        strict=settings.search_strict,
    )

    logger.info("application_started")

    yield

    logger.info("application_stopping")
    await db.disconnect()
    logger.info("application_stopped")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    description="Keyword search for short spoken clips inside long video transcripts",
    version="0.1.0",
    lifespan=lifespan,
)

# Include routers
app.include_router(search.router)
app.include_router(chunks.router)
app.include_router(videos.router)


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    """Map store failures to 503."""
    logger.error("store_request_failed", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=503, content={"detail": "Store unavailable"})


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "message": "K-Context Clip Search API",
        "docs": "/docs",
    }
