"""Clip plan sources - where a movie's ordered scene list comes from."""

import json
import random
from pathlib import Path
from typing import Any, Optional, Protocol

from openai import OpenAIError
from pydantic import ValidationError

from movie_shorts.core.config import Settings
from movie_shorts.models.schemas import ClipPlan, RawClipPlan, SceneEntry
from movie_shorts.services.llm_client import LLMClient
from movie_shorts.utils.io_utils import atomic_write_json, read_json
from movie_shorts.utils.srt_utils import convert_srt_to_seconds, read_srt, trim_text


def plan_from_raw(movie_id: str, raw: RawClipPlan, logger: Any = None) -> ClipPlan:
    """
    Turn a planner's raw clip list into a ClipPlan.

    Clips that start at or before 0, end before they start or carry no
    narration are skipped. Survivors are indexed 0..N-1 in the order given.
    """
    scenes: list[SceneEntry] = []
    for position, clip in enumerate(raw.clips):
        narration = clip.narration.strip()
        if clip.start <= 0 or clip.end <= clip.start or not narration:
            if logger is not None:
                logger.warning(
                    f"Skipping invalid clip #{position}: start={clip.start} end={clip.end} "
                    f"narration={'yes' if narration else 'no'}"
                )
            continue
        scenes.append(
            SceneEntry(
                index=len(scenes),
                source_start=clip.start,
                source_end=clip.end,
                narration_text=narration,
            )
        )
    return ClipPlan(movie_id=movie_id, scenes=scenes)


class PlanSource(Protocol):
    def fetch(self, movie_id: str) -> ClipPlan: ...


class JsonPlanSource:
    """Reads hand-written or cached plans from <plans_dir>/<movie_id>.json."""

    def __init__(self, settings: Settings, logger: Any):
        self.settings = settings
        self.logger = logger
        self.plans_dir = settings.path("plans_dir")

    def plan_path(self, movie_id: str) -> Path:
        return self.plans_dir / f"{movie_id}.json"

    def fetch(self, movie_id: str) -> ClipPlan:
        path = self.plan_path(movie_id)
        try:
            data = read_json(path)
        except (OSError, json.JSONDecodeError) as e:
            self.logger.warning(f"Unreadable plan file {path}: {e}")
            return ClipPlan(movie_id=movie_id)
        if data is None:
            return ClipPlan(movie_id=movie_id)

        try:
            raw = RawClipPlan.model_validate(data)
        except ValidationError as e:
            self.logger.warning(f"Plan file {path} is not a clip plan: {e}")
            return ClipPlan(movie_id=movie_id)

        plan = plan_from_raw(movie_id, raw, self.logger)
        self.logger.info(f"Loaded plan from {path}: {len(plan.scenes)} scenes")
        return plan


class SubtitlePlanSource:
    """
    Drafts a plan with the LLM from <subtitles_dir>/<movie_id>.srt.

    Successful plans are cached as JSON under plans_dir, so a rerun reuses
    the same scenes instead of asking again.
    """

    def __init__(self, settings: Settings, logger: Any, llm_client: Optional[LLMClient] = None):
        """
        Initialize the subtitle plan source.

        Args:
            settings: Application settings
            logger: Logger instance
            llm_client: OpenAI client (defaults to LLMClient)
        """
        self.settings = settings
        self.logger = logger
        self.llm_client = llm_client or LLMClient(settings, logger)
        self.subtitles_dir = settings.path("subtitles_dir")
        self.plans_dir = settings.path("plans_dir")

    def clip_count(self, movie_id: str) -> int:
        """Number of clips to request, fixed per movie."""
        rng = random.Random(movie_id)
        return rng.randint(self.settings.min_num_clips, self.settings.max_num_clips)

    def fetch(self, movie_id: str) -> ClipPlan:
        srt_path = self.subtitles_dir / f"{movie_id}.srt"
        if not srt_path.exists():
            self.logger.info(f"No subtitles at {srt_path}")
            return ClipPlan(movie_id=movie_id)
        if not self.llm_client.is_configured:
            self.logger.warning("Subtitles found but no OpenAI key configured; cannot draft a plan")
            return ClipPlan(movie_id=movie_id)

        subtitles = trim_text(convert_srt_to_seconds(read_srt(srt_path)), self.settings.max_subtitle_chars)
        try:
            raw = self.llm_client.generate_clip_plan(movie_id, subtitles, self.clip_count(movie_id))
        except (OpenAIError, ValueError) as e:
            self.logger.warning(f"Could not draft a plan for {movie_id}: {e}")
            return ClipPlan(movie_id=movie_id)

        plan = plan_from_raw(movie_id, raw, self.logger)
        if not plan.is_empty:
            atomic_write_json(self.plans_dir / f"{movie_id}.json", raw.model_dump())
        return plan


class ChainedPlanSource:
    """Tries each source in order; the first non-empty plan wins."""

    def __init__(self, sources: list[PlanSource], logger: Any):
        self.sources = sources
        self.logger = logger

    def fetch(self, movie_id: str) -> ClipPlan:
        for source in self.sources:
            plan = source.fetch(movie_id)
            if not plan.is_empty:
                return plan
        self.logger.warning(f"No plan source produced scenes for {movie_id}")
        return ClipPlan(movie_id=movie_id)


def default_plan_source(settings: Settings, logger: Any) -> ChainedPlanSource:
    """JSON plans first, then subtitle-driven LLM drafting."""
    return ChainedPlanSource([JsonPlanSource(settings, logger), SubtitlePlanSource(settings, logger)], logger)
