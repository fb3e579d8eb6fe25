"""Shared pytest fixtures and configuration."""

from pathlib import Path
from typing import Callable, Optional

import pytest

from movie_shorts.core.config import Settings
from movie_shorts.core.errors import SynthesisError, ToolFailure
from movie_shorts.core.logging_config import get_logger
from movie_shorts.models.schemas import StreamInfo
from movie_shorts.services.media_tool import MediaTool
from movie_shorts.utils.audio_utils import write_silence


class FakeMediaTool(MediaTool):
    """
    MediaTool that never spawns ffmpeg.

    Every ffmpeg call is recorded and its output file is fabricated with a
    known duration: the last "-t" value, or the sum of the inputs for
    concatenations.
    """

    def __init__(self, settings: Settings, logger):
        super().__init__(settings, logger)
        self.commands: list[list[str]] = []
        self.durations: dict[str, float] = {}
        self.streams: dict[str, StreamInfo] = {}
        self.fail_when: Optional[Callable[[list[str]], bool]] = None

    @staticmethod
    def _key(path) -> str:
        return str(Path(path).resolve())

    def register(self, path: Path, duration: float, stream: Optional[StreamInfo] = None) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"fake media")
        self.durations[self._key(path)] = duration
        if stream is not None:
            self.streams[self._key(path)] = stream
        return path

    def default_stream(self) -> StreamInfo:
        s = self.settings
        return StreamInfo(width=s.video_width, height=s.video_height, fps=float(s.video_fps), codec=s.video_codec)

    def _inputs(self, args: list[str]) -> list[str]:
        return [args[i + 1] for i, arg in enumerate(args[:-1]) if arg == "-i"]

    def ffmpeg(self, args: list[str], timeout: Optional[float] = None) -> None:
        self.commands.append(list(args))
        if self.fail_when is not None and self.fail_when(args):
            raise ToolFailure("ffmpeg exited with status 1", returncode=1, stderr="simulated failure")

        output = args[-1]
        if "concat" in args and "-f" in args:
            list_file = Path(self._inputs(args)[0])
            paths = [
                line[len("file '"):-1]
                for line in list_file.read_text(encoding="utf-8").splitlines()
                if line.startswith("file '")
            ]
            duration = sum(self.durations[self._key(p)] for p in paths)
        elif any("concat=n=" in arg for arg in args):
            duration = sum(self.durations[self._key(p)] for p in self._inputs(args))
        else:
            t_values = [args[i + 1] for i, arg in enumerate(args[:-1]) if arg == "-t"]
            duration = float(t_values[-1])

        Path(output).parent.mkdir(parents=True, exist_ok=True)
        Path(output).write_bytes(b"fake media")
        self.durations[self._key(output)] = duration

    def probe_duration(self, path: Path) -> float:
        try:
            return self.durations[self._key(path)]
        except KeyError:
            raise ToolFailure(f"ffprobe could not open {path}", returncode=1) from None

    def probe_video_stream(self, path: Path) -> StreamInfo:
        if self._key(path) not in self.durations:
            raise ToolFailure(f"ffprobe could not open {path}", returncode=1)
        return self.streams.get(self._key(path), self.default_stream())

    def is_available(self) -> bool:
        return True

    def commands_writing(self, fragment: str) -> list[list[str]]:
        """Recorded commands whose output path contains fragment."""
        return [cmd for cmd in self.commands if fragment in cmd[-1]]


class FakeTTSClient:
    """TTS client that writes silent WAV files of a chosen length."""

    file_suffix = ".wav"

    def __init__(self, durations: Optional[dict[str, float]] = None, default_duration: float = 2.0):
        self.durations = durations or {}
        self.default_duration = default_duration
        self.failing: set[str] = set()
        self.calls: list[str] = []

    def generate_speech(self, text, output_path, voice_id=None, model_id=None) -> Path:
        self.calls.append(text)
        if text in self.failing:
            raise SynthesisError(f"simulated synthesis failure for {text!r}")
        output_path = Path(output_path).with_suffix(self.file_suffix)
        return write_silence(output_path, self.durations.get(text, self.default_duration))


@pytest.fixture
def settings(tmp_path):
    """Create test settings rooted in a temporary directory."""
    return Settings(
        movies_dir=str(tmp_path / "movies"),
        music_dir=str(tmp_path / "backgroundmusic"),
        output_dir=str(tmp_path / "output"),
        vertical_output_dir=str(tmp_path / "tiktok_output"),
        retired_dir=str(tmp_path / "movies_retired"),
        work_dir=str(tmp_path / "clips"),
        jobs_dir=str(tmp_path / "storage" / "jobs"),
        plans_dir=str(tmp_path / "plans"),
        subtitles_dir=str(tmp_path / "srt"),
        log_file="",
        openai_api_key="",
        elevenlabs_api_key="",
        tts_backoff_seconds=0.0,
        max_parallel_movies=1,
        max_parallel_scene_calls=1,
    )


@pytest.fixture
def logger():
    """Create test logger instance."""
    return get_logger(__name__)


@pytest.fixture
def media_tool(settings, logger):
    """Fake ffmpeg/ffprobe wrapper."""
    return FakeMediaTool(settings, logger)


@pytest.fixture
def tts_client():
    """Fake TTS client writing silent WAVs."""
    return FakeTTSClient()
