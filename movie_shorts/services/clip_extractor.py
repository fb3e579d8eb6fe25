"""Clip Extractor - cuts and rate-adjusts one source scene into one intermediate clip."""

from pathlib import Path
from typing import Any, Optional

from movie_shorts.core.config import Settings
from movie_shorts.core.errors import ExtractionError, ToolFailure
from movie_shorts.models.schemas import IntermediateClip, ReconciledScene
from movie_shorts.services.media_tool import MediaTool
from movie_shorts.utils.parallel_executor import ParallelExecutor

# Timestamps may sit this far past the probed source duration (container rounding)
SOURCE_END_SLACK = 0.5


def conform_filter(settings: Settings) -> str:
    """Filter chain that scales and pads any frame to the output profile."""
    w, h = settings.video_width, settings.video_height
    return (
        f"scale={w}:{h}:force_original_aspect_ratio=decrease,"
        f"pad={w}:{h}:(ow-iw)/2:(oh-ih)/2:color=black,setsar=1,fps={settings.video_fps}"
    )


def build_extract_args(
    source: Path,
    scene: ReconciledScene,
    output_path: Path,
    settings: Settings,
    encode_args: list[str],
) -> list[str]:
    """
    Build the ffmpeg arguments that cut, retime and conform one scene.

    The output is video-only and exactly target_duration long: footage that
    runs short at the clamped rate is extended by freezing its last frame.
    """
    span = scene.source_end - scene.source_start
    video_filter = f"setpts=PTS/{scene.playback_rate:.10f},{conform_filter(settings)}"
    shortfall = scene.target_duration - scene.footage_duration
    if scene.clamped and shortfall > 0:
        video_filter += f",tpad=stop_mode=clone:stop_duration={shortfall + 1.0 / settings.video_fps:.3f}"

    return [
        "-ss", f"{scene.source_start:.3f}",
        "-t", f"{span:.3f}",
        "-i", str(source),
        "-an", "-sn", "-dn",
        "-filter:v", video_filter,
        *encode_args,
        "-t", f"{scene.target_duration:.3f}",
        "-movflags", "+faststart",
        str(output_path),
    ]


class ClipExtractor:
    """Produces one IntermediateClip per reconciled scene."""

    def __init__(
        self,
        settings: Settings,
        logger: Any,
        media_tool: Optional[MediaTool] = None,
        executor: Optional[ParallelExecutor] = None,
    ):
        """
        Initialize the clip extractor.

        Args:
            settings: Application settings
            logger: Logger instance
            media_tool: ffmpeg wrapper
            executor: Bounded executor for per-scene cuts
        """
        self.settings = settings
        self.logger = logger
        self.media_tool = media_tool or MediaTool(settings, logger)
        self.executor = executor or ParallelExecutor(settings, logger)

    def extract(
        self,
        source: Path,
        scene: ReconciledScene,
        clip_dir: Path,
        source_duration: Optional[float] = None,
    ) -> IntermediateClip:
        """
        Cut one scene.

        Args:
            source: Source movie file
            scene: Reconciled scene to cut
            clip_dir: Private working directory of the job
            source_duration: Probed length of the source, used to reject impossible ranges

        Returns:
            IntermediateClip whose duration matches target_duration within tolerance

        Raises:
            ExtractionError: If the range is invalid, ffmpeg fails or the result drifts
        """
        if source_duration is not None and scene.source_start >= source_duration:
            raise ExtractionError(
                f"scene {scene.scene_index} starts at {scene.source_start:.2f}s, past the end of the source "
                f"({source_duration:.2f}s)"
            )
        if source_duration is not None and scene.source_end > source_duration + SOURCE_END_SLACK:
            raise ExtractionError(
                f"scene {scene.scene_index} ends at {scene.source_end:.2f}s, past the end of the source "
                f"({source_duration:.2f}s)"
            )

        clip_dir.mkdir(parents=True, exist_ok=True)
        output_path = clip_dir / f"clip_{scene.scene_index:03d}.mp4"
        args = build_extract_args(source, scene, output_path, self.settings, self.media_tool.video_encode_args())

        try:
            self.media_tool.ffmpeg(args)
            actual = self.media_tool.probe_duration(output_path)
        except ToolFailure as e:
            output_path.unlink(missing_ok=True)
            raise ExtractionError(f"scene {scene.scene_index}: {e}") from e

        drift = abs(actual - scene.target_duration)
        if drift > self.settings.clip_duration_tolerance_seconds:
            output_path.unlink(missing_ok=True)
            raise ExtractionError(
                f"scene {scene.scene_index}: clip is {actual:.3f}s, expected {scene.target_duration:.3f}s"
            )

        self.logger.debug(
            f"Built clip {scene.scene_index}: {scene.source_start:.2f}-{scene.source_end:.2f} "
            f"at {scene.playback_rate:.3f}x => {actual:.3f}s"
        )
        return IntermediateClip(scene_index=scene.scene_index, file_path=output_path, actual_duration=actual)

    def extract_all(
        self,
        source: Path,
        scenes: list[ReconciledScene],
        clip_dir: Path,
        movie_id: Optional[str] = None,
    ) -> list[IntermediateClip]:
        """
        Cut every scene, dropping the ones that fail.

        Args:
            source: Source movie file
            scenes: Reconciled scenes in playback order
            clip_dir: Private working directory of the job
            movie_id: Optional movie ID for logging context

        Returns:
            Surviving clips in scene_index order (original indices, not renumbered)

        Raises:
            ExtractionError: If no scene could be cut
        """
        try:
            source_duration: Optional[float] = self.media_tool.probe_duration(source)
        except ToolFailure as e:
            self.logger.warning(f"Could not probe source duration ({e}); skipping range checks")
            source_duration = None

        self.logger.info(f"Extracting {len(scenes)} clips from {source.name}...")
        tasks = [(lambda s=scene: self.extract(source, s, clip_dir, source_duration)) for scene in scenes]
        results = self.executor.execute_scene_calls(
            tasks,
            task_names=[f"clip_{scene.scene_index}" for scene in scenes],
            movie_id=movie_id,
        )

        clips: list[IntermediateClip] = []
        for scene, (clip, error) in zip(scenes, results):
            if error is not None:
                self.logger.warning(f"Dropping scene {scene.scene_index}: {error}")
                continue
            clips.append(clip)

        if not clips:
            raise ExtractionError(f"no clip could be extracted from {source.name}")

        self.logger.info(f"Extracted {len(clips)}/{len(scenes)} clips")
        return clips
