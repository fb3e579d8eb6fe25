"""Tests for the job repository and checkpoint store."""

from pathlib import Path

import pytest

from movie_shorts.core.errors import ErrorKind
from movie_shorts.models.schemas import JobStage, MovieJob
from movie_shorts.services.checkpoint_manager import CheckpointManager
from movie_shorts.storage.repository import JobRepository


@pytest.fixture
def repository(settings, logger):
    """Create repository with temp storage."""
    return JobRepository(settings, logger)


@pytest.fixture
def checkpoints(settings, logger):
    return CheckpointManager(settings, logger)


@pytest.fixture
def sample_job():
    return MovieJob(movie_id="Heat", source_path=Path("movies/Heat.mp4"))


def test_save_job_creates_file(repository, sample_job, settings):
    """Test saving a job writes one JSON record."""
    repository.save_job(sample_job)

    assert (settings.path("jobs_dir") / "Heat.json").exists()
    assert not list(settings.path("jobs_dir").glob(".*.tmp"))


def test_load_job_round_trips_stage_and_error(repository, sample_job):
    """Test a failed job loads with its stage and error kind."""
    failed = sample_job.model_copy(
        update={"stage": JobStage.FAILED, "error_kind": ErrorKind.NO_PLAN, "error_message": "no plan"}
    )
    repository.save_job(failed)

    loaded = repository.load_job("Heat")

    assert loaded.stage == JobStage.FAILED
    assert loaded.error_kind == ErrorKind.NO_PLAN
    assert loaded.source_path == Path("movies/Heat.mp4")


def test_save_job_updates_timestamp(repository, sample_job):
    """Test updated_at moves forward on every save."""
    first = repository.save_job(sample_job)
    second = repository.save_job(first.model_copy(update={"stage": JobStage.NARRATED}))

    assert second.updated_at >= first.updated_at
    assert second.created_at == first.created_at


def test_load_nonexistent_job(repository):
    """Test loading a missing job returns None."""
    assert repository.load_job("nonexistent") is None


def test_corrupt_job_record_ignored(repository, settings):
    """Test a torn or invalid record is treated as missing."""
    (settings.path("jobs_dir") / "Broken.json").write_text("{not json", encoding="utf-8")

    assert repository.load_job("Broken") is None
    assert repository.list_jobs() == []


def test_list_and_delete_jobs(repository, sample_job):
    """Test listing returns saved jobs and delete removes them."""
    repository.save_job(sample_job)
    repository.save_job(MovieJob(movie_id="Alien", source_path=Path("movies/Alien.mkv")))

    assert [job.movie_id for job in repository.list_jobs()] == ["Alien", "Heat"]
    assert repository.delete_job("Heat")
    assert not repository.delete_job("Heat")
    assert [job.movie_id for job in repository.list_jobs()] == ["Alien"]


def test_checkpoint_round_trip(checkpoints):
    """Test a stage checkpoint loads back its data."""
    checkpoints.save_checkpoint("Heat", JobStage.ASSEMBLED, {"master": {"file_path": "m.mp4"}})

    assert checkpoints.has_checkpoint("Heat", JobStage.ASSEMBLED)
    assert checkpoints.load_checkpoint("Heat", JobStage.ASSEMBLED) == {"master": {"file_path": "m.mp4"}}
    assert checkpoints.load_checkpoint("Heat", JobStage.MIXED) is None


def test_clear_all_checkpoints_only_touches_one_movie(checkpoints):
    """Test clearing one movie's checkpoints leaves other movies alone."""
    checkpoints.save_checkpoint("Heat", JobStage.PLANNED, {})
    checkpoints.save_checkpoint("Heat", JobStage.NARRATED, {})
    checkpoints.save_checkpoint("Alien", JobStage.PLANNED, {})

    checkpoints.clear_all_checkpoints("Heat")

    assert not checkpoints.has_checkpoint("Heat", JobStage.PLANNED)
    assert not checkpoints.has_checkpoint("Heat", JobStage.NARRATED)
    assert checkpoints.has_checkpoint("Alien", JobStage.PLANNED)


@pytest.mark.parametrize("movie_id", ["Heat [1995]", "Heat *", "Heat ?"])
def test_clear_all_checkpoints_with_glob_characters(checkpoints, settings, movie_id):
    """Test titles containing glob metacharacters are cleared too."""
    checkpoints.save_checkpoint(movie_id, JobStage.PLANNED, {"plan": {"movie_id": movie_id, "scenes": []}})
    checkpoints.save_checkpoint(movie_id, JobStage.NARRATED, {})
    checkpoints.save_checkpoint("Heat 1", JobStage.PLANNED, {})

    checkpoints.clear_all_checkpoints(movie_id)

    assert checkpoints.load_checkpoint(movie_id, JobStage.PLANNED) is None
    assert not checkpoints.has_checkpoint(movie_id, JobStage.NARRATED)
    assert checkpoints.has_checkpoint("Heat 1", JobStage.PLANNED)
    assert [p.name for p in (settings.path("jobs_dir") / "checkpoints").glob("*.json")] == ["Heat 1__planned.json"]


def test_checkpoints_not_listed_as_jobs(repository, checkpoints, sample_job):
    """Test checkpoint files never show up in the job table."""
    repository.save_job(sample_job)
    checkpoints.save_checkpoint("Heat", JobStage.PLANNED, {})

    assert [job.movie_id for job in repository.list_jobs()] == ["Heat"]
