"""Media Tool - ffmpeg/ffprobe subprocess wrapper with timeouts."""

import json
import subprocess
from fractions import Fraction
from pathlib import Path
from typing import Any, Optional

from movie_shorts.core.config import Settings
from movie_shorts.core.errors import ToolFailure
from movie_shorts.models.schemas import StreamInfo

STDERR_TAIL_CHARS = 800


def parse_frame_rate(raw: str) -> float:
    """Parse an ffprobe rate such as '30000/1001' or '25'."""
    if not raw or raw == "0/0":
        return 0.0
    return float(Fraction(raw))


class MediaTool:
    """Runs ffmpeg and ffprobe as bounded external processes."""

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize media tool.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger
        self.timeout = settings.tool_timeout_seconds

    def _execute(self, cmd: list[str], timeout: Optional[float] = None) -> str:
        """
        Run one process to completion and return its stdout.

        The child runs in its own session so a terminal interrupt aimed at the
        batch does not kill it mid-write.

        Raises:
            ToolFailure: On nonzero exit, timeout or a missing binary
        """
        timeout = timeout or self.timeout
        self.logger.debug(f"CMD: {' '.join(cmd)}")
        try:
            proc = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=timeout,
                start_new_session=True,
            )
        except subprocess.TimeoutExpired as e:
            raise ToolFailure(f"{cmd[0]} timed out after {timeout:.0f}s") from e
        except FileNotFoundError as e:
            raise ToolFailure(f"{cmd[0]} not found on PATH") from e

        if proc.returncode != 0:
            stderr = (proc.stderr or "")[-STDERR_TAIL_CHARS:]
            self.logger.debug(f"{cmd[0]} stderr: {stderr}")
            raise ToolFailure(
                f"{cmd[0]} exited with status {proc.returncode}",
                returncode=proc.returncode,
                stderr=stderr,
            )
        return proc.stdout or ""

    def ffmpeg(self, args: list[str], timeout: Optional[float] = None) -> None:
        """
        Run ffmpeg with the given arguments (binary and global flags are prepended).

        Args:
            args: ffmpeg arguments; the last one is the output path
            timeout: Optional override of tool_timeout_seconds
        """
        cmd = [self.settings.ffmpeg_binary, "-y", "-hide_banner", "-loglevel", "error", *args]
        self._execute(cmd, timeout)

    def probe_duration(self, path: Path) -> float:
        """
        Return a media file's container duration in seconds.

        Raises:
            ToolFailure: If ffprobe fails or reports no usable duration
        """
        out = self._execute([
            self.settings.ffprobe_binary,
            "-v", "error",
            "-show_entries", "format=duration",
            "-of", "default=noprint_wrappers=1:nokey=1",
            str(path),
        ])
        try:
            duration = float(out.strip())
        except ValueError as e:
            raise ToolFailure(f"ffprobe returned no duration for {path}") from e
        if duration <= 0:
            raise ToolFailure(f"ffprobe returned non-positive duration for {path}")
        return duration

    def probe_video_stream(self, path: Path) -> StreamInfo:
        """
        Return resolution, frame rate and codec of the first video stream.

        Raises:
            ToolFailure: If ffprobe fails or the file has no video stream
        """
        out = self._execute([
            self.settings.ffprobe_binary,
            "-v", "error",
            "-select_streams", "v:0",
            "-show_entries", "stream=width,height,r_frame_rate,codec_name",
            "-of", "json",
            str(path),
        ])
        try:
            streams = json.loads(out).get("streams", [])
        except json.JSONDecodeError as e:
            raise ToolFailure(f"ffprobe returned invalid JSON for {path}") from e
        if not streams:
            raise ToolFailure(f"no video stream in {path}")
        stream = streams[0]
        return StreamInfo(
            width=int(stream.get("width", 0)),
            height=int(stream.get("height", 0)),
            fps=parse_frame_rate(stream.get("r_frame_rate", "0/0")),
            codec=str(stream.get("codec_name", "")),
        )

    def is_available(self) -> bool:
        """Check that ffmpeg can be executed."""
        try:
            self._execute([self.settings.ffmpeg_binary, "-version"], timeout=30)
            return True
        except ToolFailure:
            return False

    def video_encode_args(self) -> list[str]:
        """Deterministic video encoder parameters of the output profile."""
        s = self.settings
        return [
            "-c:v", s.video_encoder,
            "-pix_fmt", s.pixel_format,
            "-preset", s.video_preset,
            "-crf", str(s.video_crf),
            "-r", str(s.video_fps),
        ]

    def audio_encode_args(self) -> list[str]:
        """Deterministic audio encoder parameters of the output profile."""
        s = self.settings
        return ["-c:a", s.audio_codec, "-b:a", s.audio_bitrate, "-ar", str(s.audio_sample_rate), "-ac", "2"]
