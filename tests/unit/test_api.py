"""Tests for the job API."""

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from movie_shorts.api.routes_jobs import get_settings
from movie_shorts.core.errors import ErrorKind
from movie_shorts.main import app
from movie_shorts.models.schemas import JobStage, MovieJob
from movie_shorts.services.checkpoint_manager import CheckpointManager
from movie_shorts.storage.repository import JobRepository


@pytest.fixture
def client(settings):
    """TestClient whose routes use the temporary settings."""
    app.dependency_overrides[get_settings] = lambda: settings
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def repository(settings, logger):
    return JobRepository(settings, logger)


def test_health(client):
    """Test health endpoint."""
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_list_jobs(client, repository):
    """Test every recorded job is listed."""
    repository.save_job(MovieJob(movie_id="Heat", source_path=Path("movies/Heat.mp4"), stage=JobStage.MIXED))

    response = client.get("/jobs")

    assert response.status_code == 200
    assert [(j["movie_id"], j["stage"]) for j in response.json()] == [("Heat", "mixed")]


def test_get_job_not_found(client):
    """Test a missing job is a 404."""
    assert client.get("/jobs/Nope").status_code == 404


def test_retry_failed_job_resets_it(client, repository, settings, logger):
    """Test retrying a failed job deletes its record and checkpoints."""
    repository.save_job(
        MovieJob(
            movie_id="Heat",
            source_path=Path("movies/Heat.mp4"),
            stage=JobStage.FAILED,
            error_kind=ErrorKind.NO_PLAN,
            error_message="no clip plan",
        )
    )
    checkpoints = CheckpointManager(settings, logger)
    checkpoints.save_checkpoint("Heat", JobStage.PLANNED, {})

    response = client.post("/jobs/Heat/retry")

    assert response.status_code == 200
    assert response.json()["status"] == "reset"
    assert repository.load_job("Heat") is None
    assert not checkpoints.has_checkpoint("Heat", JobStage.PLANNED)


def test_retry_running_job_conflicts(client, repository):
    """Test only failed jobs can be retried."""
    repository.save_job(MovieJob(movie_id="Heat", source_path=Path("movies/Heat.mp4"), stage=JobStage.NARRATED))

    response = client.post("/jobs/Heat/retry")

    assert response.status_code == 409
    assert repository.load_job("Heat").stage == JobStage.NARRATED
