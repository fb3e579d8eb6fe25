"""Audio Mixer - lays a ducked background-music bed under the narration."""

import math
import random
import shutil
from pathlib import Path
from typing import Any, Optional

from movie_shorts.core.config import Settings
from movie_shorts.core.errors import ToolFailure
from movie_shorts.models.schemas import AssembledMaster, MixedMaster
from movie_shorts.services.media_tool import MediaTool
from movie_shorts.utils.io_utils import list_files_with_ext

MUSIC_EXTENSIONS = (".mp3", ".m4a", ".wav", ".aac", ".flac", ".ogg")


def eligible_tracks(durations: dict[Path, float], min_duration: float) -> list[Path]:
    """Tracks long enough to be selected, sorted by path."""
    return sorted(path for path, duration in durations.items() if duration >= min_duration)


def choose_track(candidates: list[Path], seed: str) -> Optional[Path]:
    """Pick one candidate deterministically for a given seed."""
    if not candidates:
        return None
    return random.Random(seed).choice(sorted(candidates))


def loop_count(track_duration: float, total_duration: float) -> int:
    """How many back-to-back plays of a track cover total_duration."""
    if track_duration <= 0:
        raise ValueError("track duration must be positive")
    return max(1, math.ceil(total_duration / track_duration))


def music_offset(track_duration: float, settings: Settings) -> float:
    """Intro to skip on each play, or 0 when the rest of the track would fall under the minimum."""
    offset = settings.music_start_offset_seconds
    if offset > 0 and track_duration - offset >= settings.music_min_duration_seconds:
        return offset
    return 0.0


def build_mix_args(
    master: Path,
    music: Path,
    output_path: Path,
    total_duration: float,
    track_duration: float,
    settings: Settings,
    audio_encode_args: list[str],
    offset: float = 0.0,
) -> list[str]:
    """
    ffmpeg arguments that loop, trim, attenuate and mix the music bed.

    Without an offset the whole file is looped by the demuxer. With one, the
    intro is cut first and only the remainder is looped (aloop), so every
    repetition starts past the intro.
    """
    body = track_duration - offset
    loops = loop_count(body, total_duration)
    music_chain = f"[1:a]aresample={settings.audio_sample_rate},aformat=channel_layouts=stereo,"
    music_input = ["-i", str(music)]
    if offset > 0:
        samples = math.ceil(body * settings.audio_sample_rate)
        music_chain += (
            f"atrim=start={offset:.3f},asetpts=PTS-STARTPTS,"
            f"aloop=loop={loops - 1}:size={samples},"
        )
    else:
        music_input = ["-stream_loop", str(loops - 1), *music_input]

    mix = (
        f"[0:a]volume={settings.narration_gain:.3f}[a0];"
        f"{music_chain}atrim=0:{total_duration:.3f},asetpts=PTS-STARTPTS,"
        f"volume=-{settings.music_attenuation_db:.1f}dB[a1];"
        "[a0][a1]amix=inputs=2:duration=first:dropout_transition=0:normalize=0[a]"
    )
    return [
        "-i", str(master),
        *music_input,
        "-filter_complex", mix,
        "-map", "0:v",
        "-map", "[a]",
        "-c:v", "copy",
        *audio_encode_args,
        "-t", f"{total_duration:.3f}",
        "-movflags", "+faststart",
        str(output_path),
    ]


class AudioMixer:
    """Selects a background track and mixes it under the assembled master."""

    def __init__(self, settings: Settings, logger: Any, media_tool: Optional[MediaTool] = None):
        """
        Initialize the mixer.

        Args:
            settings: Application settings
            logger: Logger instance
            media_tool: ffmpeg wrapper
        """
        self.settings = settings
        self.logger = logger
        self.media_tool = media_tool or MediaTool(settings, logger)
        self.music_dir = settings.path("music_dir")

    def probe_candidates(self) -> dict[Path, float]:
        """Durations of readable music candidates; unreadable files are left out."""
        durations: dict[Path, float] = {}
        for path in list_files_with_ext(self.music_dir, MUSIC_EXTENSIONS):
            try:
                durations[path] = self.media_tool.probe_duration(path)
            except ToolFailure as e:
                self.logger.warning(f"Skipping unreadable music file {path.name}: {e}")
        return durations

    def select_track(self, seed: str) -> Optional[tuple[Path, float]]:
        """
        Select the music track for one movie.

        Args:
            seed: Per-movie seed (the movie ID) so reruns pick the same track

        Returns:
            (track, duration) or None when no track meets the minimum duration
        """
        durations = self.probe_candidates()
        candidates = eligible_tracks(durations, self.settings.music_min_duration_seconds)
        excluded = len(durations) - len(candidates)
        if excluded:
            self.logger.info(
                f"Excluded {excluded} music track(s) shorter than {self.settings.music_min_duration_seconds:.0f}s"
            )
        track = choose_track(candidates, seed)
        if track is None:
            return None
        return track, durations[track]

    def mix(self, master: AssembledMaster, work_dir: Path, seed: str) -> MixedMaster:
        """
        Produce the mixed master.

        Falls back to a narration-only copy of the master when no eligible
        track exists.

        Args:
            master: Assembled master
            work_dir: Private working directory of the job
            seed: Per-movie seed for track selection

        Returns:
            MixedMaster

        Raises:
            ToolFailure: If ffmpeg fails while mixing
        """
        output_path = work_dir / "mixed.mp4"
        selection = self.select_track(seed)

        if selection is None:
            self.logger.warning("No eligible background music; output will be narration-only.")
            shutil.copy2(master.file_path, output_path)
            return MixedMaster(file_path=output_path, duration=master.duration, music_path=None)

        track, track_duration = selection
        offset = music_offset(track_duration, self.settings)
        loops = loop_count(track_duration - offset, master.duration)
        self.logger.info(
            f"Mixing {track.name} from {offset:.0f}s ({track_duration - offset:.1f}s x{loops}) "
            f"under {master.duration:.2f}s of narration at -{self.settings.music_attenuation_db:.0f} dB"
        )
        self.media_tool.ffmpeg(
            build_mix_args(
                master.file_path,
                track,
                output_path,
                master.duration,
                track_duration,
                self.settings,
                self.media_tool.audio_encode_args(),
                offset=offset,
            )
        )
        duration = self.media_tool.probe_duration(output_path)
        return MixedMaster(file_path=output_path, duration=duration, music_path=track)
