"""Format Reframer - derives the vertical 9:16 render from the horizontal master."""

import os
from fractions import Fraction
from pathlib import Path
from typing import Any, Optional

from movie_shorts.core.config import Settings
from movie_shorts.models.schemas import MixedMaster
from movie_shorts.services.media_tool import MediaTool

VERTICAL_ASPECT = Fraction(9, 16)


def even(value: int) -> int:
    return value - (value % 2)


def vertical_dimensions(width: int, height: int) -> tuple[int, int]:
    """Output size of the vertical render: source height, 9:16 width, both even."""
    out_h = even(height)
    out_w = even(int(round(height * 9 / 16)))
    return out_w, out_h


def build_reframe_filter(width: int, height: int, strategy: str, pad_color: str = "black") -> str:
    """
    Deterministic reframing rule.

    'crop' centre-crops when the source is at least as wide as 9:16. 'pad', or
    a source already narrower than 9:16, scales to fit and pads with pad_color.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"invalid source size {width}x{height}")

    out_w, out_h = vertical_dimensions(width, height)
    if strategy == "crop" and Fraction(width, height) >= VERTICAL_ASPECT:
        crop_w = min(width, out_w)
        x = (width - crop_w) // 2
        return f"crop={crop_w}:{height}:{x}:0,scale={out_w}:{out_h},setsar=1"

    return (
        f"scale={out_w}:{out_h}:force_original_aspect_ratio=decrease,"
        f"pad={out_w}:{out_h}:(ow-iw)/2:(oh-ih)/2:color={pad_color},setsar=1"
    )


class FormatReframer:
    """Renders the vertical output without touching the horizontal master."""

    def __init__(self, settings: Settings, logger: Any, media_tool: Optional[MediaTool] = None):
        """
        Initialize the reframer.

        Args:
            settings: Application settings
            logger: Logger instance
            media_tool: ffmpeg wrapper
        """
        self.settings = settings
        self.logger = logger
        self.media_tool = media_tool or MediaTool(settings, logger)

    def reframe(self, mixed: MixedMaster, output_path: Path) -> Path:
        """
        Render the vertical version of a mixed master.

        The render is written to a partial file and renamed into place, so the
        output path only ever holds a complete file.

        Args:
            mixed: Mixed horizontal master
            output_path: Destination of the vertical render

        Returns:
            output_path
        """
        info = self.media_tool.probe_video_stream(mixed.file_path)
        video_filter = build_reframe_filter(
            info.width, info.height, self.settings.vertical_strategy, self.settings.pad_color
        )
        self.logger.info(
            f"Rendering vertical ({self.settings.vertical_strategy}) from {info.width}x{info.height} -> {output_path}"
        )

        output_path.parent.mkdir(parents=True, exist_ok=True)
        partial = output_path.with_name(f".{output_path.stem}.partial{output_path.suffix}")
        try:
            self.media_tool.ffmpeg([
                "-i", str(mixed.file_path),
                "-filter_complex", f"[0:v]{video_filter}[v]",
                "-map", "[v]",
                "-map", "0:a?",
                *self.media_tool.video_encode_args(),
                "-c:a", "copy",
                "-t", f"{mixed.duration:.3f}",
                "-movflags", "+faststart",
                str(partial),
            ])
        except BaseException:
            partial.unlink(missing_ok=True)
            raise
        os.replace(partial, output_path)
        return output_path
