"""Utility functions for Movie Shorts."""

from movie_shorts.utils.io_utils import job_dir_name, slugify
from movie_shorts.utils.srt_utils import convert_srt_to_seconds, timestamp_to_seconds

__all__ = [
    "job_dir_name",
    "slugify",
    "convert_srt_to_seconds",
    "timestamp_to_seconds",
]
