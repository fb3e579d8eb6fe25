"""Logging setup: loguru sinks with a per-movie column."""

import sys
from pathlib import Path
from typing import Any, Optional, Union

from loguru import logger

from movie_shorts.core.config import Settings

NO_MOVIE = "-"

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<magenta>{extra[movie_id]: <24}</magenta> | <cyan>{name}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)

# One pipe-separated line per record so a single movie can be grepped out of a batch log
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {extra[movie_id]} | {name}:{function}:{line} | {message}"


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[Union[str, Path]] = None,
    rotation: str = "10 MB",
    retention: str = "7 days",
) -> None:
    """
    Replace all sinks with a coloured stderr sink and an optional rotating file.

    Args:
        log_level: Minimum level for both sinks
        log_file: Batch log path; empty or None disables the file sink
        rotation: Size at which the file rotates
        retention: How long rotated files are kept
    """
    logger.remove()
    logger.configure(extra={"movie_id": NO_MOVIE})
    logger.add(sys.stderr, format=CONSOLE_FORMAT, level=log_level, colorize=True)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_path,
            format=FILE_FORMAT,
            level=log_level,
            rotation=rotation,
            retention=retention,
            compression="zip",
            encoding="utf-8",
        )


def setup_logging_from_settings(settings: Settings) -> None:
    """Configure sinks from the log_level and log_file settings."""
    setup_logging(log_level=settings.log_level, log_file=settings.log_file or None)


def get_logger(name: str, movie_id: Optional[str] = None, **context: Any) -> Any:
    """
    Logger bound to a module and, inside a job, to its movie.

    Args:
        name: Module name (typically __name__)
        movie_id: Movie the records belong to; batch-level records show "-"
        **context: Extra fields kept on every record

    Returns:
        Bound loguru logger
    """
    return logger.bind(name=name, movie_id=movie_id or NO_MOVIE, **context)


logger.configure(extra={"movie_id": NO_MOVIE})
