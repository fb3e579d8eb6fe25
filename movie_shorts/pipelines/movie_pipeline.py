"""Per-movie pipeline: plan -> narrate -> reconcile -> extract -> assemble -> mix -> reframe -> finalize."""

import threading
from pathlib import Path
from typing import Any, Callable, Optional

from pydantic import BaseModel, Field, ValidationError

from movie_shorts.core.config import Settings
from movie_shorts.core.errors import MovieShortsError, NoPlanError, error_kind_of
from movie_shorts.models.schemas import (
    PIPELINE_ORDER,
    AssembledMaster,
    ClipPlan,
    IntermediateClip,
    JobStage,
    MixedMaster,
    MovieJob,
    NarrationAsset,
    ReconciledScene,
    SceneEntry,
)
from movie_shorts.services.audio_mixer import AudioMixer
from movie_shorts.services.checkpoint_manager import CheckpointManager
from movie_shorts.services.clip_extractor import ClipExtractor
from movie_shorts.services.duration_reconciler import DurationReconciler
from movie_shorts.services.format_reframer import FormatReframer
from movie_shorts.services.media_tool import MediaTool
from movie_shorts.services.narration_renderer import NarrationRenderer
from movie_shorts.services.plan_source import PlanSource
from movie_shorts.services.timeline_assembler import TimelineAssembler
from movie_shorts.services.tts_client import TTSClient
from movie_shorts.storage.repository import JobRepository
from movie_shorts.utils.error_handler import format_error_message, get_recovery_suggestion
from movie_shorts.utils.io_utils import job_dir_name, move_file, purge_directory


class StopRequested(Exception):
    """Raised between stages once an operator stop has been requested."""


class StageState(BaseModel):
    """Everything a stage may need from the stages before it."""

    plan: Optional[ClipPlan] = None
    scenes: list[SceneEntry] = Field(default_factory=list)
    narrations: list[NarrationAsset] = Field(default_factory=list)
    reconciled: list[ReconciledScene] = Field(default_factory=list)
    clips: list[IntermediateClip] = Field(default_factory=list)
    master: Optional[AssembledMaster] = None
    mixed: Optional[MixedMaster] = None
    vertical_path: Optional[Path] = None


# Fields each stage checkpoint stores; every checkpoint is self-contained for the stages after it.
CHECKPOINT_FIELDS: dict[JobStage, tuple[str, ...]] = {
    JobStage.PLANNED: ("plan",),
    JobStage.NARRATED: ("scenes", "narrations"),
    JobStage.RECONCILED: ("scenes", "narrations", "reconciled"),
    JobStage.EXTRACTED: ("scenes", "narrations", "reconciled", "clips"),
    JobStage.ASSEMBLED: ("master",),
    JobStage.MIXED: ("mixed",),
    JobStage.REFRAMED: ("mixed", "vertical_path"),
}


def artifacts_intact(stage: JobStage, state: StageState) -> bool:
    """True when every file a restored stage refers to is still on disk."""
    if stage == JobStage.PLANNED:
        return state.plan is not None and not state.plan.is_empty
    if stage in (JobStage.NARRATED, JobStage.RECONCILED):
        return bool(state.narrations) and all(n.audio_path.exists() for n in state.narrations)
    if stage == JobStage.EXTRACTED:
        return (
            bool(state.clips)
            and all(n.audio_path.exists() for n in state.narrations)
            and all(c.file_path.exists() for c in state.clips)
        )
    if stage == JobStage.ASSEMBLED:
        return state.master is not None and state.master.file_path.exists()
    if stage == JobStage.MIXED:
        return state.mixed is not None and state.mixed.file_path.exists()
    if stage == JobStage.REFRAMED:
        return (
            state.mixed is not None
            and state.mixed.file_path.exists()
            and state.vertical_path is not None
            and state.vertical_path.exists()
        )
    return False


def renumber_extracted(
    scenes: list[SceneEntry],
    narrations: list[NarrationAsset],
    reconciled: list[ReconciledScene],
    clips: list[IntermediateClip],
) -> tuple[list[SceneEntry], list[NarrationAsset], list[ReconciledScene], list[IntermediateClip]]:
    """Keep only scenes that produced a clip and renumber all four lists 0..N-1."""
    kept = {clip.scene_index for clip in clips}
    by_index = {clip.scene_index: clip for clip in clips}
    out_scenes, out_narrations, out_reconciled, out_clips = [], [], [], []
    for scene, narration, rec in zip(scenes, narrations, reconciled):
        if scene.index not in kept:
            continue
        new_index = len(out_scenes)
        out_scenes.append(scene.model_copy(update={"index": new_index}))
        out_narrations.append(narration.model_copy(update={"scene_index": new_index}))
        out_reconciled.append(rec.model_copy(update={"scene_index": new_index}))
        out_clips.append(by_index[scene.index].model_copy(update={"scene_index": new_index}))
    return out_scenes, out_narrations, out_reconciled, out_clips


class MoviePipeline:
    """Drives one MovieJob through its stages, persisting each transition."""

    def __init__(
        self,
        settings: Settings,
        logger: Any,
        repository: JobRepository,
        checkpoints: CheckpointManager,
        plan_source: PlanSource,
        media_tool: Optional[MediaTool] = None,
        tts_client: Optional[TTSClient] = None,
        stop_event: Optional[threading.Event] = None,
    ):
        """
        Initialize the pipeline for one movie.

        Args:
            settings: Application settings
            logger: Logger bound to the movie
            repository: Job table
            checkpoints: Stage checkpoint store
            plan_source: Where the clip plan comes from
            media_tool: ffmpeg wrapper shared by the media stages
            tts_client: Speech synthesis client
            stop_event: Set by the operator to stop before the next stage
        """
        self.settings = settings
        self.logger = logger
        self.repository = repository
        self.checkpoints = checkpoints
        self.plan_source = plan_source
        self.stop_event = stop_event or threading.Event()

        media_tool = media_tool or MediaTool(settings, logger)
        self.narration_renderer = NarrationRenderer(settings, logger, tts_client=tts_client)
        self.reconciler = DurationReconciler(settings, logger)
        self.extractor = ClipExtractor(settings, logger, media_tool=media_tool)
        self.assembler = TimelineAssembler(settings, logger, media_tool=media_tool)
        self.mixer = AudioMixer(settings, logger, media_tool=media_tool)
        self.reframer = FormatReframer(settings, logger, media_tool=media_tool)

        self._stages: dict[JobStage, Callable[[MovieJob, StageState], None]] = {
            JobStage.PLANNED: self._plan,
            JobStage.NARRATED: self._narrate,
            JobStage.RECONCILED: self._reconcile,
            JobStage.EXTRACTED: self._extract,
            JobStage.ASSEMBLED: self._assemble,
            JobStage.MIXED: self._mix,
            JobStage.REFRAMED: self._reframe,
        }

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def work_dir(self, movie_id: str) -> Path:
        return self.settings.path("work_dir") / job_dir_name(movie_id)

    def horizontal_output(self, movie_id: str) -> Path:
        return self.settings.path("output_dir") / f"{movie_id}.mp4"

    def vertical_output(self, movie_id: str) -> Path:
        return self.settings.path("vertical_output_dir") / f"{movie_id}_vertical.mp4"

    # ------------------------------------------------------------------
    # Resume
    # ------------------------------------------------------------------

    def _load_stage(self, movie_id: str, stage: JobStage) -> Optional[StageState]:
        data = self.checkpoints.load_checkpoint(movie_id, stage)
        if data is None:
            return None
        try:
            state = StageState.model_validate({name: data.get(name) for name in CHECKPOINT_FIELDS[stage] if name in data})
        except ValidationError as e:
            self.logger.warning(f"Discarding corrupt {stage.value} checkpoint: {e}")
            return None
        return state if artifacts_intact(stage, state) else None

    def restore(self, job: MovieJob) -> tuple[Optional[JobStage], StageState]:
        """
        Find the latest completed stage whose outputs are still usable.

        Walks back from the job's persisted stage. Returns (None, empty state)
        when nothing can be reused and the job must start from its plan.
        """
        if job.stage.is_terminal:
            return None, StageState()
        candidates = [stage for stage in PIPELINE_ORDER if stage in CHECKPOINT_FIELDS and stage.order <= job.stage.order]
        for stage in reversed(candidates):
            state = self._load_stage(job.movie_id, stage)
            if state is not None:
                if stage != job.stage:
                    self.logger.warning(
                        f"Outputs of stage {job.stage.value} are missing; resuming after {stage.value}"
                    )
                return stage, state
        return None, StageState()

    # ------------------------------------------------------------------
    # Stage bookkeeping
    # ------------------------------------------------------------------

    def _complete(self, job: MovieJob, stage: JobStage, state: StageState) -> MovieJob:
        payload = state.model_dump(mode="json", include=set(CHECKPOINT_FIELDS[stage]))
        self.checkpoints.save_checkpoint(job.movie_id, stage, payload)
        if stage.order > job.stage.order:
            job = self.repository.save_job(job.model_copy(update={"stage": stage}))
        self.logger.info(f"Stage complete: {stage.value}")
        return job

    def _check_stop(self) -> None:
        if self.stop_event.is_set():
            raise StopRequested()

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _plan(self, job: MovieJob, state: StageState) -> None:
        plan = self.plan_source.fetch(job.movie_id)
        if plan.is_empty:
            raise NoPlanError(f"no clip plan available for {job.movie_id}")
        self.logger.info(f"Plan has {len(plan.scenes)} scenes")
        state.plan = plan

    def _narrate(self, job: MovieJob, state: StageState) -> None:
        state.scenes, state.narrations = self.narration_renderer.render_all(
            state.plan.scenes, self.work_dir(job.movie_id) / "audio", movie_id=job.movie_id
        )

    def _reconcile(self, job: MovieJob, state: StageState) -> None:
        state.reconciled = self.reconciler.reconcile_all(state.scenes, state.narrations)

    def _extract(self, job: MovieJob, state: StageState) -> None:
        clips = self.extractor.extract_all(
            job.source_path, state.reconciled, self.work_dir(job.movie_id) / "clips", movie_id=job.movie_id
        )
        state.scenes, state.narrations, state.reconciled, state.clips = renumber_extracted(
            state.scenes, state.narrations, state.reconciled, clips
        )

    def _assemble(self, job: MovieJob, state: StageState) -> None:
        state.master = self.assembler.assemble(state.clips, state.narrations, self.work_dir(job.movie_id))

    def _mix(self, job: MovieJob, state: StageState) -> None:
        state.mixed = self.mixer.mix(state.master, self.work_dir(job.movie_id), seed=job.movie_id)

    def _reframe(self, job: MovieJob, state: StageState) -> None:
        state.vertical_path = self.reframer.reframe(state.mixed, self.vertical_output(job.movie_id))

    def _finalize(self, job: MovieJob, state: StageState) -> MovieJob:
        """Publish the horizontal master, retire the source and clean up."""
        output = move_file(state.mixed.file_path, self.horizontal_output(job.movie_id))
        self.logger.info(f"Horizontal output: {output}")

        if job.source_path.exists():
            retired = move_file(job.source_path, self.settings.path("retired_dir") / job.source_path.name)
            self.logger.info(f"Retired source to {retired}")
        else:
            self.logger.warning(f"Source {job.source_path} already gone; nothing to retire")

        purge_directory(self.work_dir(job.movie_id))
        self.checkpoints.clear_all_checkpoints(job.movie_id)
        return self.repository.save_job(job.model_copy(update={"stage": JobStage.DONE}))

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def run(self, job: MovieJob) -> MovieJob:
        """
        Run or resume a job until it is done or failed.

        Args:
            job: Persisted job in a non-terminal stage

        Returns:
            The job as last persisted

        Raises:
            StopRequested: If a stop was requested; the job keeps its last stage
        """
        resumed_from, state = self.restore(job)
        pending = [
            stage
            for stage in PIPELINE_ORDER
            if stage in self._stages and (resumed_from is None or stage.order > resumed_from.order)
        ]
        if resumed_from is not None:
            self.logger.info(f"Resuming {job.movie_id} after stage {resumed_from.value}")

        current: Optional[JobStage] = None
        try:
            for stage in pending:
                self._check_stop()
                current = stage
                self.logger.info(f"Running stage: {stage.value}")
                self._stages[stage](job, state)
                job = self._complete(job, stage, state)
            self._check_stop()
            current = JobStage.DONE
            job = self._finalize(job, state)
        except StopRequested:
            self.logger.warning(f"Stop requested; {job.movie_id} left at stage {job.stage.value}")
            raise
        except Exception as e:
            kind = error_kind_of(e)
            operation = f"Stage {current.value if current else 'startup'}"
            message = format_error_message(operation, e, {"movie_id": job.movie_id}, get_recovery_suggestion(e))
            if isinstance(e, MovieShortsError):
                self.logger.error(message)
            else:
                self.logger.exception(message)
            return self.repository.save_job(
                job.model_copy(update={"stage": JobStage.FAILED, "error_kind": kind, "error_message": str(e)})
            )

        self.logger.info(f"Movie {job.movie_id} done")
        return job
