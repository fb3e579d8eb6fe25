"""LLM Client - OpenAI chat client that drafts clip plans from subtitles."""

import json
from typing import Any

from openai import OpenAI, OpenAIError

from movie_shorts.core.config import Settings
from movie_shorts.models.schemas import RawClipPlan
from movie_shorts.utils.rate_limiter import get_openai_limiter

SYSTEM_PROMPT = "You are a helpful assistant designed to output JSON."


def build_plan_prompt(movie_title: str, subtitles: str, num_clips: int) -> str:
    """User prompt asking for num_clips narrated time ranges covering the plot."""
    return f"""Movie: {movie_title}

Subtitles with timestamps in SECONDS:
{subtitles}

TASK:
- Choose {num_clips} non-overlapping time ranges that best cover the full plot arc.
- Use the subtitle timestamps (seconds) for start/end times.
- Each time range should usually be 8-16 seconds long (end-start). Avoid >20 seconds.
- Keep narrations punchy but not tiny: about 20-35 words, in 3-5 short sentences.
- Prefer ranges with clear visual action (reveals, confrontations, entrances, big moments).
- Skip any range that starts at 0.
- Clips must be increasing by start time.
- The first narration must start with: "Here we go, let's go over the movie {movie_title}."

Return STRICT JSON with this shape ONLY:
{{"clips":[{{"start":120,"end":145,"narration":"..."}}, ...]}}
"""


class LLMClient:
    """OpenAI client for clip-plan generation."""

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize LLM client.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger
        self._client = None

    @property
    def is_configured(self) -> bool:
        return bool(self.settings.openai_api_key)

    def _get_client(self) -> OpenAI:
        """Get or create OpenAI client."""
        if self._client is None:
            if not self.settings.openai_api_key:
                raise ValueError("OpenAI API key not configured")
            self._client = OpenAI(
                api_key=self.settings.openai_api_key,
                timeout=self.settings.llm_timeout_seconds,
            )
        return self._client

    def generate_clip_plan(self, movie_title: str, subtitles: str, num_clips: int) -> RawClipPlan:
        """
        Ask the model for a clip plan.

        Args:
            movie_title: Title used in the prompt and first narration
            subtitles: Seconds-based subtitle text (already trimmed)
            num_clips: Number of ranges to request

        Returns:
            RawClipPlan as returned by the model (unvalidated ranges)

        Raises:
            OpenAIError: If the request fails
            ValueError: If the response is not a JSON clip plan
        """
        self.logger.info(f"Requesting a {num_clips}-clip plan for {movie_title} from {self.settings.openai_model}")
        get_openai_limiter().wait_if_needed("clip_plan")

        try:
            response = self._get_client().chat.completions.create(
                model=self.settings.openai_model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": build_plan_prompt(movie_title, subtitles, num_clips)},
                ],
                response_format={"type": "json_object"},
            )
        except OpenAIError as e:
            self.logger.error(f"LLM clip-plan request failed: {e}")
            raise

        content = response.choices[0].message.content or ""
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ValueError(f"LLM returned non-JSON content: {content[:200]!r}") from e

        plan = RawClipPlan.model_validate(data)
        self.logger.info(f"LLM plan received: {len(plan.clips)} clips")
        return plan
