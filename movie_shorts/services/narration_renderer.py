"""Narration Renderer - turns scene narration text into measured speech assets."""

import time
from pathlib import Path
from typing import Any, Callable, Optional

from pydub.exceptions import CouldntDecodeError

from movie_shorts.core.config import Settings
from movie_shorts.core.errors import ErrorKind, SynthesisError
from movie_shorts.models.schemas import NarrationAsset, SceneEntry, SceneOutcome
from movie_shorts.services.tts_client import TTSClient
from movie_shorts.utils.audio_utils import measure_audio_duration
from movie_shorts.utils.parallel_executor import ParallelExecutor


class NarrationRenderer:
    """Synthesizes one narration per scene, retrying and dropping scenes that keep failing."""

    def __init__(
        self,
        settings: Settings,
        logger: Any,
        tts_client: Optional[TTSClient] = None,
        duration_probe: Callable[[Path], float] = measure_audio_duration,
        executor: Optional[ParallelExecutor] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the narration renderer.

        Args:
            settings: Application settings
            logger: Logger instance
            tts_client: Speech synthesis client (defaults to TTSClient)
            duration_probe: Measures a decoded audio file in seconds
            executor: Bounded executor for per-scene calls
            sleep: Backoff sleep function
        """
        self.settings = settings
        self.logger = logger
        self.tts_client = tts_client or TTSClient(settings, logger)
        self.duration_probe = duration_probe
        self.executor = executor or ParallelExecutor(settings, logger)
        self.sleep = sleep

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retry number `attempt` (1-based count of failed attempts)."""
        return self.settings.tts_backoff_seconds * (2 ** (attempt - 1))

    def synthesize_scene(self, scene: SceneEntry, audio_dir: Path) -> SceneOutcome[NarrationAsset]:
        """
        Synthesize and measure the narration for one scene.

        Args:
            scene: Scene whose narration_text is spoken
            audio_dir: Directory for the audio file

        Returns:
            SceneOutcome holding the NarrationAsset, or the error after the last attempt
        """
        max_attempts = self.settings.tts_max_retries
        last_error: Optional[Exception] = None

        for attempt in range(1, max_attempts + 1):
            if attempt > 1:
                delay = self.backoff_delay(attempt - 1)
                self.logger.info(
                    f"Scene {scene.index}: waiting {delay:.1f}s before synthesis attempt {attempt}/{max_attempts}..."
                )
                self.sleep(delay)

            try:
                audio_path = self.tts_client.generate_speech(
                    scene.narration_text,
                    audio_dir / f"narration_{scene.index:03d}",
                )
                duration = self.duration_probe(audio_path)
                if duration <= 0:
                    raise SynthesisError(f"decoded narration has no length: {audio_path}")
            except (SynthesisError, CouldntDecodeError, OSError) as e:
                last_error = e
                self.logger.warning(f"Scene {scene.index}: synthesis attempt {attempt}/{max_attempts} failed: {e}")
                continue

            return SceneOutcome[NarrationAsset](
                scene_index=scene.index,
                value=NarrationAsset(scene_index=scene.index, audio_path=audio_path, duration=duration),
                attempts=attempt,
            )

        return SceneOutcome[NarrationAsset](
            scene_index=scene.index,
            error_kind=ErrorKind.SYNTHESIS_ERROR,
            error_message=str(last_error),
            attempts=max_attempts,
        )

    def render_all(
        self,
        scenes: list[SceneEntry],
        audio_dir: Path,
        movie_id: Optional[str] = None,
    ) -> tuple[list[SceneEntry], list[NarrationAsset]]:
        """
        Render narration for every scene and drop the ones that failed.

        Surviving scenes and assets are renumbered 0..N-1 in plan order.

        Args:
            scenes: Planned scenes in playback order
            audio_dir: Directory for narration audio
            movie_id: Optional movie ID for logging context

        Returns:
            Tuple of (surviving scenes, their narration assets)

        Raises:
            SynthesisError: If no scene could be narrated
        """
        audio_dir.mkdir(parents=True, exist_ok=True)
        self.logger.info(f"Synthesizing narration for {len(scenes)} scenes...")

        tasks = [(lambda s=scene: self.synthesize_scene(s, audio_dir)) for scene in scenes]
        results = self.executor.execute_scene_calls(
            tasks,
            task_names=[f"narration_{scene.index}" for scene in scenes],
            movie_id=movie_id,
        )

        survivors: list[tuple[SceneEntry, NarrationAsset]] = []
        for scene, (outcome, error) in zip(scenes, results):
            if error is not None or outcome is None or not outcome.ok:
                reason = error if error is not None else (outcome.error_message if outcome else "no result")
                self.logger.warning(f"Dropping scene {scene.index}: narration failed ({reason})")
                continue
            survivors.append((scene, outcome.value))

        if not survivors:
            raise SynthesisError(f"narration failed for all {len(scenes)} scenes")

        kept_scenes, kept_assets = renumber_narrated(survivors)
        self.logger.info(f"Narrated {len(kept_scenes)}/{len(scenes)} scenes")
        return kept_scenes, kept_assets


def renumber_narrated(
    survivors: list[tuple[SceneEntry, NarrationAsset]],
) -> tuple[list[SceneEntry], list[NarrationAsset]]:
    """Renumber surviving (scene, narration) pairs contiguously, keeping their order."""
    scenes: list[SceneEntry] = []
    assets: list[NarrationAsset] = []
    for new_index, (scene, asset) in enumerate(survivors):
        scenes.append(scene.model_copy(update={"index": new_index}))
        assets.append(asset.model_copy(update={"scene_index": new_index}))
    return scenes, assets
