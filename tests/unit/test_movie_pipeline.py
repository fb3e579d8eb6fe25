"""Tests for the per-movie pipeline: stage transitions, resume and renumbering."""

import threading
from pathlib import Path

import pytest

from conftest import FakeTTSClient
from movie_shorts.core.errors import ErrorKind
from movie_shorts.models.schemas import (
    ClipPlan,
    IntermediateClip,
    JobStage,
    MovieJob,
    NarrationAsset,
    ReconciledScene,
    SceneEntry,
)
from movie_shorts.pipelines.movie_pipeline import MoviePipeline, StopRequested, renumber_extracted
from movie_shorts.services.checkpoint_manager import CheckpointManager
from movie_shorts.storage.repository import JobRepository
from movie_shorts.utils.io_utils import job_dir_name


class StaticPlanSource:
    def __init__(self, scenes):
        self.scenes = scenes
        self.calls = 0

    def fetch(self, movie_id):
        self.calls += 1
        return ClipPlan(movie_id=movie_id, scenes=self.scenes)


def _plan_scenes():
    return [
        SceneEntry(index=0, source_start=100.0, source_end=106.0, narration_text="A"),
        SceneEntry(index=1, source_start=200.0, source_end=207.0, narration_text="B"),
        SceneEntry(index=2, source_start=300.0, source_end=306.0, narration_text="C"),
    ]


@pytest.fixture
def repository(settings, logger):
    return JobRepository(settings, logger)


@pytest.fixture
def checkpoints(settings, logger):
    return CheckpointManager(settings, logger)


@pytest.fixture
def tts():
    return FakeTTSClient({"A": 4.0, "B": 6.0, "C": 5.0})


@pytest.fixture
def plan_source():
    return StaticPlanSource(_plan_scenes())


@pytest.fixture
def job(settings, media_tool, repository):
    source = media_tool.register(settings.path("movies_dir") / "Heat.mp4", 600.0)
    return repository.save_job(MovieJob(movie_id="Heat", source_path=source))


@pytest.fixture
def make_pipeline(settings, logger, repository, checkpoints, plan_source, media_tool, tts):
    def make(stop_event=None):
        return MoviePipeline(
            settings,
            logger,
            repository,
            checkpoints,
            plan_source,
            media_tool=media_tool,
            tts_client=tts,
            stop_event=stop_event,
        )

    return make


def test_stages_persisted_in_order(make_pipeline, job, repository, settings, monkeypatch):
    """Test each stage transition is saved and the job ends done."""
    seen = []
    original = repository.save_job

    def record(saved):
        seen.append(saved.stage)
        return original(saved)

    monkeypatch.setattr(repository, "save_job", record)

    result = make_pipeline().run(job)

    assert result.stage == JobStage.DONE
    assert seen == [
        JobStage.NARRATED,
        JobStage.RECONCILED,
        JobStage.EXTRACTED,
        JobStage.ASSEMBLED,
        JobStage.MIXED,
        JobStage.REFRAMED,
        JobStage.DONE,
    ]


def test_resume_falls_back_when_master_missing(make_pipeline, job, media_tool, plan_source, tts, settings):
    """Test a missing master resumes from the last stage whose inputs survive."""
    stop = threading.Event()
    pipeline = make_pipeline(stop)
    original = media_tool.ffmpeg

    def stop_after_master(args, timeout=None):
        original(args, timeout)
        if args[-1].endswith("master.mp4"):
            stop.set()

    media_tool.ffmpeg = stop_after_master
    with pytest.raises(StopRequested):
        pipeline.run(job)
    media_tool.ffmpeg = original

    job = pipeline.repository.load_job("Heat")
    assert job.stage == JobStage.ASSEMBLED
    (settings.path("work_dir") / job_dir_name("Heat") / "master.mp4").unlink()
    extractions_before = len(media_tool.commands_writing("clip_"))
    tts_calls_before = len(tts.calls)

    result = make_pipeline().run(job)

    assert result.stage == JobStage.DONE
    assert len(media_tool.commands_writing("clip_")) == extractions_before + 3
    assert len(tts.calls) == tts_calls_before
    assert plan_source.calls == 1


def test_stage_never_regresses_on_resume(make_pipeline, job, settings, monkeypatch, repository):
    """Test re-running earlier stages does not move the persisted stage backwards."""
    stop = threading.Event()
    pipeline = make_pipeline(stop)
    pipeline.reconciler.reconcile_all = _stop_after(pipeline.reconciler.reconcile_all, stop)
    with pytest.raises(StopRequested):
        pipeline.run(job)

    job = repository.load_job("Heat")
    assert job.stage == JobStage.RECONCILED
    job = repository.save_job(job.model_copy(update={"stage": JobStage.EXTRACTED}))

    seen = []
    original = repository.save_job
    monkeypatch.setattr(repository, "save_job", lambda saved: seen.append(saved.stage) or original(saved))

    make_pipeline().run(job)

    assert JobStage.RECONCILED not in seen
    assert seen[0] == JobStage.ASSEMBLED


def _stop_after(func, stop):
    def wrapper(*args, **kwargs):
        result = func(*args, **kwargs)
        stop.set()
        return result

    return wrapper


def test_no_plan_fails_job(settings, logger, repository, checkpoints, media_tool, tts, job):
    """Test an empty plan fails the job with no_plan."""
    pipeline = MoviePipeline(
        settings, logger, repository, checkpoints, StaticPlanSource([]), media_tool=media_tool, tts_client=tts
    )

    result = pipeline.run(job)

    assert result.stage == JobStage.FAILED
    assert result.error_kind == ErrorKind.NO_PLAN
    assert repository.load_job("Heat").stage == JobStage.FAILED


def test_unexpected_error_persisted_as_tool_failure(make_pipeline, job, monkeypatch):
    """Test an unexpected exception fails the job as tool_failure."""
    pipeline = make_pipeline()

    def boom(*args, **kwargs):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(pipeline.reconciler, "reconcile_all", boom)

    result = pipeline.run(job)

    assert result.stage == JobStage.FAILED
    assert result.error_kind == ErrorKind.TOOL_FAILURE
    assert "disk on fire" in result.error_message


def test_extraction_drop_renumbers_all_scene_lists(make_pipeline, job, media_tool, settings):
    """Test a scene dropped during extraction leaves a contiguous timeline."""
    media_tool.fail_when = lambda args: args[-1].endswith("clip_001.mp4")

    result = make_pipeline().run(job)

    assert result.stage == JobStage.DONE
    master = settings.path("work_dir") / job_dir_name("Heat") / "master.mp4"
    assert media_tool.durations[media_tool._key(master)] == pytest.approx(11.0)
    segment_outputs = [Path(cmd[-1]).name for cmd in media_tool.commands_writing("segment_")]
    assert segment_outputs == ["segment_000.mp4", "segment_001.mp4"]


def test_renumber_extracted_keeps_order():
    """Test survivors of extraction are renumbered 0..N-1 across every list."""
    scenes = _plan_scenes()
    narrations = [NarrationAsset(scene_index=i, audio_path=Path(f"n{i}.wav"), duration=2.0) for i in range(3)]
    reconciled = [
        ReconciledScene(
            scene_index=i, source_start=s.source_start, source_end=s.source_end, target_duration=3.0, playback_rate=1.0
        )
        for i, s in enumerate(scenes)
    ]
    clips = [
        IntermediateClip(scene_index=0, file_path=Path("clip_000.mp4"), actual_duration=3.0),
        IntermediateClip(scene_index=2, file_path=Path("clip_002.mp4"), actual_duration=3.0),
    ]

    out_scenes, out_narrations, out_reconciled, out_clips = renumber_extracted(scenes, narrations, reconciled, clips)

    assert [s.narration_text for s in out_scenes] == ["A", "C"]
    assert [s.index for s in out_scenes] == [0, 1]
    assert [n.audio_path.name for n in out_narrations] == ["n0.wav", "n2.wav"]
    assert [r.scene_index for r in out_reconciled] == [0, 1]
    assert [c.file_path.name for c in out_clips] == ["clip_000.mp4", "clip_002.mp4"]
    assert [c.scene_index for c in out_clips] == [0, 1]


def test_work_dirs_private_for_titles_that_slugify_alike(make_pipeline, settings):
    """Test titles differing only in punctuation never share a working directory."""
    pipeline = make_pipeline()

    first = pipeline.work_dir("Heat (1995)")
    second = pipeline.work_dir("Heat 1995")

    assert first != second
    assert first.parent == second.parent == settings.path("work_dir")
    assert first == pipeline.work_dir("Heat (1995)")
    assert first.name.startswith("heat-1995-")
