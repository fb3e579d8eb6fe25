"""Timeline Assembler - joins intermediate clips and narration into one master."""

from pathlib import Path
from typing import Any, Optional

from movie_shorts.core.config import Settings
from movie_shorts.core.errors import AssemblyError
from movie_shorts.models.schemas import AssembledMaster, IntermediateClip, NarrationAsset, StreamInfo
from movie_shorts.services.media_tool import MediaTool

FPS_EPSILON = 0.01


def narration_filter(duration: float, settings: Settings) -> str:
    """Audio chain: narration delayed by lead-in, padded with silence, cut to the clip length."""
    delay_ms = int(round(settings.lead_in_seconds * 1000))
    return (
        f"[1:a]aresample={settings.audio_sample_rate},aformat=channel_layouts=stereo,"
        f"adelay=delays={delay_ms}:all=1,apad,atrim=0:{duration:.3f},asetpts=PTS-STARTPTS[a]"
    )


def fade_filter(duration: float, fade: float) -> str:
    """Time-neutral fade through black at both ends of a segment."""
    fade = min(fade, duration / 2.0)
    return f"[0:v]fade=t=in:st=0:d={fade:.3f},fade=t=out:st={duration - fade:.3f}:d={fade:.3f}[v]"


def build_segment_args(
    clip: IntermediateClip,
    narration: NarrationAsset,
    output_path: Path,
    settings: Settings,
    video_encode_args: list[str],
    audio_encode_args: list[str],
) -> list[str]:
    """ffmpeg arguments that put a scene's narration on its clip."""
    duration = clip.actual_duration
    filters = [narration_filter(duration, settings)]
    if settings.transition == "fade" and settings.fade_seconds > 0:
        filters.append(fade_filter(duration, settings.fade_seconds))
        video_map, video_codec = "[v]", video_encode_args
    else:
        video_map, video_codec = "0:v", ["-c:v", "copy"]

    return [
        "-i", str(clip.file_path),
        "-i", str(narration.audio_path),
        "-filter_complex", ";".join(filters),
        "-map", video_map,
        "-map", "[a]",
        *video_codec,
        *audio_encode_args,
        "-t", f"{duration:.3f}",
        str(output_path),
    ]


def write_concat_list(paths: list[Path], list_path: Path) -> Path:
    """Write an ffmpeg concat-demuxer list with absolute, quoted paths."""
    lines = []
    for path in paths:
        escaped = str(path.resolve()).replace("'", "'\\''")
        lines.append(f"file '{escaped}'")
    list_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return list_path


def build_concat_copy_args(list_path: Path, output_path: Path) -> list[str]:
    """Stream-copy concatenation for segments that already share one encoding."""
    return [
        "-f", "concat",
        "-safe", "0",
        "-i", str(list_path),
        "-c", "copy",
        "-movflags", "+faststart",
        str(output_path),
    ]


def build_concat_reencode_args(
    segments: list[Path],
    output_path: Path,
    settings: Settings,
    video_encode_args: list[str],
    audio_encode_args: list[str],
) -> list[str]:
    """Uniform re-encode: every segment is normalized to the profile before the concat filter."""
    w, h, fps = settings.video_width, settings.video_height, settings.video_fps
    inputs: list[str] = []
    chains: list[str] = []
    pads: list[str] = []
    for i, segment in enumerate(segments):
        inputs += ["-i", str(segment)]
        chains.append(
            f"[{i}:v]scale={w}:{h}:force_original_aspect_ratio=decrease,"
            f"pad={w}:{h}:(ow-iw)/2:(oh-ih)/2:color=black,setsar=1,fps={fps},"
            f"format={settings.pixel_format}[v{i}]"
        )
        chains.append(
            f"[{i}:a]aresample={settings.audio_sample_rate},aformat=channel_layouts=stereo[a{i}]"
        )
        pads.append(f"[v{i}][a{i}]")
    chains.append(f"{''.join(pads)}concat=n={len(segments)}:v=1:a=1[v][a]")

    return [
        *inputs,
        "-filter_complex", ";".join(chains),
        "-map", "[v]",
        "-map", "[a]",
        *video_encode_args,
        *audio_encode_args,
        "-movflags", "+faststart",
        str(output_path),
    ]


class TimelineAssembler:
    """Concatenates clips in plan order with narration replacing source audio."""

    def __init__(self, settings: Settings, logger: Any, media_tool: Optional[MediaTool] = None):
        """
        Initialize the assembler.

        Args:
            settings: Application settings
            logger: Logger instance
            media_tool: ffmpeg wrapper
        """
        self.settings = settings
        self.logger = logger
        self.media_tool = media_tool or MediaTool(settings, logger)

    def matches_profile(self, info: StreamInfo) -> bool:
        """True when a stream carries exactly the declared output encoding."""
        s = self.settings
        return (
            info.width == s.video_width
            and info.height == s.video_height
            and abs(info.fps - s.video_fps) < FPS_EPSILON
            and info.codec == s.video_codec
        )

    def _check_inputs(self, clips: list[IntermediateClip], narrations: list[NarrationAsset]) -> None:
        if len(clips) < self.settings.min_scenes:
            raise AssemblyError(
                f"only {len(clips)} scene(s) survived, at least {self.settings.min_scenes} required"
            )
        if [c.scene_index for c in clips] != [n.scene_index for n in narrations]:
            raise ValueError("clips and narrations are not aligned by scene_index")
        indices = [c.scene_index for c in clips]
        if any(b <= a for a, b in zip(indices, indices[1:])):
            raise ValueError("clips are not in scene_index order")

    def assemble(
        self,
        clips: list[IntermediateClip],
        narrations: list[NarrationAsset],
        work_dir: Path,
    ) -> AssembledMaster:
        """
        Build the assembled master.

        Args:
            clips: Intermediate clips in scene_index order
            narrations: Narration assets aligned with clips
            work_dir: Private working directory of the job

        Returns:
            AssembledMaster (the consumed clip and segment files are deleted)

        Raises:
            AssemblyError: If fewer than min_scenes clips survived
        """
        self._check_inputs(clips, narrations)

        segment_dir = work_dir / "segments"
        segment_dir.mkdir(parents=True, exist_ok=True)
        video_args = self.media_tool.video_encode_args()
        audio_args = self.media_tool.audio_encode_args()

        self.logger.info(f"Building {len(clips)} narrated segments (transition: {self.settings.transition})...")
        segments: list[Path] = []
        for clip, narration in zip(clips, narrations):
            segment_path = segment_dir / f"segment_{clip.scene_index:03d}.mp4"
            self.media_tool.ffmpeg(
                build_segment_args(clip, narration, segment_path, self.settings, video_args, audio_args)
            )
            segments.append(segment_path)

        master_path = work_dir / "master.mp4"
        heterogeneous = [
            seg.name for seg in segments if not self.matches_profile(self.media_tool.probe_video_stream(seg))
        ]
        if heterogeneous:
            self.logger.warning(
                f"{len(heterogeneous)} segment(s) differ from the target profile ({', '.join(heterogeneous)}); "
                "re-encoding the whole timeline"
            )
            self.media_tool.ffmpeg(
                build_concat_reencode_args(segments, master_path, self.settings, video_args, audio_args)
            )
        else:
            list_path = write_concat_list(segments, work_dir / "concat_list.txt")
            self.media_tool.ffmpeg(build_concat_copy_args(list_path, master_path))

        duration = self.media_tool.probe_duration(master_path)
        expected = sum(clip.actual_duration for clip in clips)
        if abs(duration - expected) > self.settings.assembly_tolerance_seconds:
            self.logger.warning(
                f"Master duration {duration:.3f}s drifts from clip total {expected:.3f}s "
                f"(tolerance {self.settings.assembly_tolerance_seconds:.3f}s)"
            )

        for path in [*segments, *(clip.file_path for clip in clips)]:
            path.unlink(missing_ok=True)

        self.logger.info(f"Assembled master: {master_path} ({duration:.2f}s, {len(clips)} scenes)")
        return AssembledMaster(
            file_path=master_path,
            duration=duration,
            scene_count=len(clips),
            reencoded=bool(heterogeneous),
        )
