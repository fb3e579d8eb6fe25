"""FastAPI routes for inspecting and re-triggering movie jobs."""

from fastapi import APIRouter, Depends, HTTPException

from movie_shorts.core.config import Settings, settings
from movie_shorts.core.logging_config import get_logger
from movie_shorts.models.schemas import JobStage, JobSummary
from movie_shorts.pipelines.run_batch import reset_movie_job
from movie_shorts.storage.repository import JobRepository

router = APIRouter(prefix="/jobs", tags=["jobs"])


def get_settings() -> Settings:
    return settings


def get_repository(app_settings: Settings = Depends(get_settings)) -> JobRepository:
    return JobRepository(app_settings, get_logger(__name__))


@router.get("", response_model=list[JobSummary])
async def list_jobs(repository: JobRepository = Depends(get_repository)) -> list[JobSummary]:
    """List every recorded job."""
    return [JobSummary.from_job(job) for job in repository.list_jobs()]


@router.get("/{movie_id}", response_model=JobSummary)
async def get_job(movie_id: str, repository: JobRepository = Depends(get_repository)) -> JobSummary:
    """Get one job's stage and error."""
    job = repository.load_job(movie_id)
    if job is None:
        raise HTTPException(status_code=404, detail=f"Job {movie_id} not found")
    return JobSummary.from_job(job)


@router.post("/{movie_id}/retry")
async def retry_job(
    movie_id: str,
    repository: JobRepository = Depends(get_repository),
    app_settings: Settings = Depends(get_settings),
) -> dict:
    """
    Reset a failed job so the next batch run reprocesses the movie.

    Only failed jobs can be retried; other stages resume on their own.
    """
    logger = get_logger(__name__, movie_id=movie_id)
    job = repository.load_job(movie_id)
    if job is None:
        raise HTTPException(status_code=404, detail=f"Job {movie_id} not found")
    if job.stage != JobStage.FAILED:
        raise HTTPException(status_code=409, detail=f"Job {movie_id} is {job.stage.value}, not failed")

    reset_movie_job(app_settings, logger, movie_id, repository=repository)
    logger.info(f"Job {movie_id} reset for retry (was {job.error_kind.value if job.error_kind else 'failed'})")
    return {"movie_id": movie_id, "status": "reset"}
