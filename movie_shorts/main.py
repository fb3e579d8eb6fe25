"""
FastAPI entrypoint for the Movie Shorts job API.

Processing happens via the batch CLI (run_batch.py); this API only inspects
the job table and re-triggers failed jobs.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from movie_shorts.api.routes_jobs import router as jobs_router
from movie_shorts.core.config import settings
from movie_shorts.core.logging_config import get_logger, setup_logging

setup_logging(log_level=settings.log_level)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info("=" * 60)
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Job table: {settings.jobs_dir}")
    logger.info("=" * 60)
    yield
    logger.info("Shutting down application")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Movie Shorts - job status and retry API",
    lifespan=lifespan,
)

app.include_router(jobs_router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "status": "running",
        "endpoints": {
            "list_jobs": "/jobs",
            "get_job": "/jobs/{movie_id}",
            "retry_job": "/jobs/{movie_id}/retry",
            "docs": "/docs",
        },
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "movie_shorts.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
