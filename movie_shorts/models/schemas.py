"""Pydantic models and schemas for the timeline engine."""

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator

from movie_shorts.core.errors import ErrorKind


# ============================================================================
# Enums
# ============================================================================


class JobStage(str, Enum):
    """Lifecycle of a MovieJob. Stages advance monotonically."""

    PLANNED = "planned"
    NARRATED = "narrated"
    RECONCILED = "reconciled"
    EXTRACTED = "extracted"
    ASSEMBLED = "assembled"
    MIXED = "mixed"
    REFRAMED = "reframed"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStage.DONE, JobStage.FAILED)

    @property
    def order(self) -> int:
        return PIPELINE_ORDER.index(self) if self in PIPELINE_ORDER else len(PIPELINE_ORDER)


PIPELINE_ORDER = [
    JobStage.PLANNED,
    JobStage.NARRATED,
    JobStage.RECONCILED,
    JobStage.EXTRACTED,
    JobStage.ASSEMBLED,
    JobStage.MIXED,
    JobStage.REFRAMED,
    JobStage.DONE,
]


# ============================================================================
# Clip Plan Models
# ============================================================================


class SceneEntry(BaseModel):
    """One narrative beat selected from the source movie."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(..., ge=0, description="Playback position within the plan")
    source_start: float = Field(..., ge=0.0, description="Start timestamp in the source movie (seconds)")
    source_end: float = Field(..., description="End timestamp in the source movie (seconds)")
    narration_text: str = Field(..., min_length=1, description="Narration spoken over this scene")

    @model_validator(mode="after")
    def _check_range(self) -> "SceneEntry":
        if self.source_start >= self.source_end:
            raise ValueError(f"scene {self.index}: source_start must be before source_end")
        return self

    @property
    def source_span(self) -> float:
        return self.source_end - self.source_start


class ClipPlan(BaseModel):
    """Ordered scene plan for one movie."""

    movie_id: str
    scenes: list[SceneEntry] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_order(self) -> "ClipPlan":
        for previous, current in zip(self.scenes, self.scenes[1:]):
            if current.index <= previous.index:
                raise ValueError("scene indices must be strictly increasing")
        return self

    @property
    def is_empty(self) -> bool:
        return not self.scenes


class RawClip(BaseModel):
    """A clip as returned by a planner: {"start": s, "end": e, "narration": "..."}."""

    start: float
    end: float
    narration: str = ""


class RawClipPlan(BaseModel):
    """Planner wire format: {"clips": [...]}."""

    clips: list[RawClip] = Field(default_factory=list)


# ============================================================================
# Stage Outputs
# ============================================================================


class NarrationAsset(BaseModel):
    """Synthesized narration for one scene with its measured duration."""

    scene_index: int
    audio_path: Path
    duration: float = Field(..., gt=0.0, description="Measured from the decoded audio (seconds)")


class ReconciledScene(BaseModel):
    """Output duration and playback rate aligning footage to narration."""

    scene_index: int
    source_start: float
    source_end: float
    target_duration: float = Field(..., gt=0.0)
    playback_rate: float = Field(..., gt=0.0)
    clamped: bool = Field(default=False, description="True when the raw rate fell outside the configured bounds")

    @property
    def footage_duration(self) -> float:
        """Seconds of output produced by the rate-adjusted footage alone."""
        return (self.source_end - self.source_start) / self.playback_rate


class IntermediateClip(BaseModel):
    """One extracted, rate-adjusted, video-only clip."""

    scene_index: int
    file_path: Path
    actual_duration: float = Field(..., gt=0.0)


class AssembledMaster(BaseModel):
    """Concatenated timeline with narration audio."""

    file_path: Path
    duration: float
    scene_count: int
    reencoded: bool = Field(default=False, description="True when the uniform re-encode fallback was used")


class MixedMaster(BaseModel):
    """Assembled master with the background-music bed mixed in."""

    file_path: Path
    duration: float
    music_path: Optional[Path] = Field(default=None, description="Selected music track, or None for narration-only")


class StreamInfo(BaseModel):
    """Encoding parameters of a video stream as reported by ffprobe."""

    width: int
    height: int
    fps: float
    codec: str


# ============================================================================
# Job Table
# ============================================================================


class MovieJob(BaseModel):
    """Persisted unit of progress for one source movie."""

    movie_id: str
    source_path: Path
    stage: JobStage = JobStage.PLANNED
    error_kind: Optional[ErrorKind] = None
    error_message: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)


# ============================================================================
# Typed outcomes for per-scene external calls
# ============================================================================

T = TypeVar("T")


class SceneOutcome(BaseModel, Generic[T]):
    """Result of one per-scene call: a value, or the error that dropped the scene."""

    scene_index: int
    value: Optional[T] = None
    error_kind: Optional[ErrorKind] = None
    error_message: Optional[str] = None
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return self.value is not None and self.error_kind is None


class JobSummary(BaseModel):
    """API view of a MovieJob."""

    movie_id: str
    stage: JobStage
    error_kind: Optional[ErrorKind] = None
    error_message: Optional[str] = None
    updated_at: datetime

    @classmethod
    def from_job(cls, job: MovieJob) -> "JobSummary":
        return cls(
            movie_id=job.movie_id,
            stage=job.stage,
            error_kind=job.error_kind,
            error_message=job.error_message,
            updated_at=job.updated_at,
        )


class BatchReport(BaseModel):
    """What one batch run did, per movie."""

    processed: list[str] = Field(default_factory=list)
    failed: dict[str, Optional[ErrorKind]] = Field(default_factory=dict)
    skipped: list[str] = Field(default_factory=list)
    stopped: list[str] = Field(default_factory=list)
