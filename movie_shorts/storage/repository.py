"""Storage repository for the job table (one JSON record per movie)."""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from movie_shorts.core.config import Settings
from movie_shorts.models.schemas import MovieJob
from movie_shorts.utils.io_utils import atomic_write_json, read_json


class JobRepository:
    """Repository for storing and loading MovieJobs."""

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize the repository.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger
        self.storage_path = settings.path("jobs_dir")
        self.storage_path.mkdir(parents=True, exist_ok=True)

    def _path(self, movie_id: str) -> Path:
        return self.storage_path / f"{movie_id}.json"

    def save_job(self, job: MovieJob) -> MovieJob:
        """
        Persist a job atomically, stamping updated_at.

        Args:
            job: Job to save

        Returns:
            The saved job
        """
        job = job.model_copy(update={"updated_at": datetime.now()})
        atomic_write_json(self._path(job.movie_id), job.model_dump(mode="json"))
        self.logger.debug(f"Saved job {job.movie_id}: stage={job.stage.value}")
        return job

    def load_job(self, movie_id: str) -> Optional[MovieJob]:
        """
        Load a job.

        Args:
            movie_id: Movie identifier

        Returns:
            MovieJob if found and readable, None otherwise
        """
        path = self._path(movie_id)
        try:
            data = read_json(path)
        except (OSError, json.JSONDecodeError) as e:
            self.logger.warning(f"Unreadable job record {path}: {e}")
            return None
        if data is None:
            return None
        try:
            return MovieJob.model_validate(data)
        except ValidationError as e:
            self.logger.warning(f"Invalid job record {path}: {e}")
            return None

    def list_jobs(self) -> list[MovieJob]:
        """All readable jobs, sorted by movie ID."""
        jobs = []
        for path in sorted(self.storage_path.glob("*.json")):
            job = self.load_job(path.stem)
            if job is not None:
                jobs.append(job)
        return jobs

    def delete_job(self, movie_id: str) -> bool:
        """Remove a job record. Returns True if one existed."""
        path = self._path(movie_id)
        if not path.exists():
            return False
        path.unlink()
        self.logger.info(f"Deleted job record: {movie_id}")
        return True
