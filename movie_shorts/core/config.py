"""Application configuration using pydantic-settings."""

from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be configured via environment variables or a .env file.
    See .env.example for a template.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================================================
    # Application Settings
    # ========================================================================
    app_name: str = Field(default="Movie Shorts Factory", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    log_file: Optional[str] = Field(default="outputs/latest_run.log", description="Rotating log file (empty to disable)")

    # ========================================================================
    # Filesystem Layout
    # ========================================================================
    movies_dir: str = Field(default="movies", description="Directory scanned for source movies")
    music_dir: str = Field(default="backgroundmusic", description="Background-music candidate directory")
    output_dir: str = Field(default="output", description="Horizontal (16:9) render directory")
    vertical_output_dir: str = Field(default="tiktok_output", description="Vertical (9:16) render directory")
    retired_dir: str = Field(default="movies_retired", description="Where consumed source movies are moved")
    work_dir: str = Field(default="clips", description="Working area for intermediate files (one subdir per movie)")
    jobs_dir: str = Field(default="storage/jobs", description="Persisted job table and stage checkpoints")
    plans_dir: str = Field(default="scripts/plans", description="Optional hand-written plan JSON files")
    subtitles_dir: str = Field(default="scripts/srt_files", description="Subtitle (.srt) files used for planning")

    # ========================================================================
    # LLM Settings (scene planning)
    # ========================================================================
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API key")
    openai_model: str = Field(default="gpt-4o-mini", description="OpenAI model used for scene planning")
    llm_timeout_seconds: float = Field(default=600.0, description="Timeout for one planning request")
    max_subtitle_chars: int = Field(default=320_000, description="Subtitle text budget sent to the planner")
    min_num_clips: int = Field(default=20, description="Lower bound of scenes requested from the planner")
    max_num_clips: int = Field(default=30, description="Upper bound of scenes requested from the planner")

    # ========================================================================
    # TTS (Text-to-Speech) Settings
    # ========================================================================
    elevenlabs_api_key: Optional[str] = Field(default=None, description="ElevenLabs API key (stub TTS when unset)")
    elevenlabs_voice_id: str = Field(default="JBFqnCBsd6RMkjVDRZzb", description="ElevenLabs voice ID")
    elevenlabs_model_id: str = Field(default="eleven_multilingual_v2", description="ElevenLabs model ID")
    elevenlabs_rate_limit: int = Field(default=100, description="ElevenLabs API calls per minute")
    tts_timeout_seconds: float = Field(default=300.0, description="Timeout for one synthesis request")
    tts_max_retries: int = Field(default=3, ge=1, description="Synthesis attempts per scene before it is dropped")
    tts_backoff_seconds: float = Field(default=2.0, ge=0.0, description="Initial retry delay, doubled per attempt")

    # ========================================================================
    # Media Tool Settings
    # ========================================================================
    ffmpeg_binary: str = Field(default="ffmpeg", description="ffmpeg executable")
    ffprobe_binary: str = Field(default="ffprobe", description="ffprobe executable")
    tool_timeout_seconds: float = Field(default=1800.0, description="Timeout for one ffmpeg/ffprobe invocation")

    # ========================================================================
    # Timeline Settings
    # ========================================================================
    lead_in_seconds: float = Field(default=0.5, ge=0.0, description="Silence before each narration")
    lead_out_seconds: float = Field(default=0.5, ge=0.0, description="Silence after each narration")
    min_rate: float = Field(default=0.5, gt=0.0, description="Slowest allowed source playback rate")
    max_rate: float = Field(default=1.75, gt=0.0, description="Fastest allowed source playback rate")
    min_scenes: int = Field(default=1, ge=1, description="Fewest surviving scenes for a watchable short")
    transition: Literal["cut", "fade"] = Field(default="cut", description="Cut-point handling")
    fade_seconds: float = Field(default=0.25, ge=0.0, description="Fade length when transition is 'fade'")
    clip_duration_tolerance_seconds: float = Field(
        default=0.1, description="Allowed drift between a clip's target and measured duration"
    )
    assembly_tolerance_seconds: float = Field(
        default=0.5, description="Allowed drift between the master and the sum of its clips"
    )

    # ========================================================================
    # Output Profile
    # ========================================================================
    video_width: int = Field(default=1920, description="Horizontal master width in pixels")
    video_height: int = Field(default=1080, description="Horizontal master height in pixels")
    video_fps: int = Field(default=30, description="Output frame rate")
    video_codec: str = Field(default="h264", description="Codec name as reported by ffprobe")
    video_encoder: str = Field(default="libx264", description="ffmpeg encoder for video")
    pixel_format: str = Field(default="yuv420p", description="Output pixel format")
    video_crf: int = Field(default=22, description="x264 constant rate factor")
    video_preset: str = Field(default="veryfast", description="x264 preset")
    audio_codec: str = Field(default="aac", description="ffmpeg encoder for audio")
    audio_bitrate: str = Field(default="192k", description="Audio bitrate")
    audio_sample_rate: int = Field(default=44100, description="Audio sample rate")

    # ========================================================================
    # Background Music
    # ========================================================================
    music_min_duration_seconds: float = Field(
        default=60.0, description="Tracks shorter than this are never selected"
    )
    music_attenuation_db: float = Field(default=20.0, ge=0.0, description="Ducking applied to the music bed")
    music_start_offset_seconds: float = Field(
        default=40.0, ge=0.0, description="Intro skipped on each play of a track that stays above the minimum after the cut"
    )
    narration_gain: float = Field(default=1.0, gt=0.0, description="Static gain applied to narration in the mix")

    # ========================================================================
    # Vertical Render
    # ========================================================================
    vertical_strategy: Literal["crop", "pad"] = Field(default="crop", description="Reframing rule")
    pad_color: str = Field(default="black", description="Fill colour used when padding")

    # ========================================================================
    # Parallelism Settings
    # ========================================================================
    max_parallel_movies: int = Field(
        default=1,
        ge=1,
        description="Maximum number of movies to process concurrently (1 = sequential)",
    )
    max_parallel_scene_calls: int = Field(
        default=4,
        ge=1,
        description="Maximum number of concurrent per-scene calls (TTS, clip extraction) within one movie",
    )

    @model_validator(mode="after")
    def _check_bounds(self) -> "Settings":
        if self.min_rate > self.max_rate:
            raise ValueError("min_rate must not exceed max_rate")
        if self.min_num_clips > self.max_num_clips:
            raise ValueError("min_num_clips must not exceed max_num_clips")
        return self

    def path(self, name: str) -> Path:
        """Return a configured directory setting as a Path."""
        return Path(getattr(self, name))


# Global settings instance
settings = Settings()
