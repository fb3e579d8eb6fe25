"""Checkpoint Manager - persists stage outputs so an interrupted job can resume."""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from movie_shorts.core.config import Settings
from movie_shorts.models.schemas import JobStage
from movie_shorts.utils.io_utils import atomic_write_json, read_json


class CheckpointManager:
    """One JSON file per (movie, stage) under <jobs_dir>/checkpoints."""

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize checkpoint manager.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger
        self.checkpoint_dir = settings.path("jobs_dir") / "checkpoints"
        self.checkpoint_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, movie_id: str, stage: JobStage) -> Path:
        return self.checkpoint_dir / f"{movie_id}__{stage.value}.json"

    def save_checkpoint(self, movie_id: str, stage: JobStage, data: dict) -> None:
        """
        Save the output of a completed stage.

        Args:
            movie_id: Movie identifier
            stage: Stage whose output is stored
            data: JSON-serializable stage output
        """
        atomic_write_json(
            self._path(movie_id, stage),
            {
                "movie_id": movie_id,
                "stage": stage.value,
                "timestamp": datetime.now().isoformat(),
                "data": data,
            },
        )
        self.logger.debug(f"Saved checkpoint: {movie_id} at stage {stage.value}")

    def load_checkpoint(self, movie_id: str, stage: JobStage) -> Optional[dict]:
        """
        Load the stored output of a stage.

        Returns:
            Checkpoint data dict, or None if missing or unreadable
        """
        path = self._path(movie_id, stage)
        try:
            checkpoint = read_json(path)
        except (OSError, json.JSONDecodeError) as e:
            self.logger.warning(f"Failed to load checkpoint {path}: {e}")
            return None
        if not isinstance(checkpoint, dict):
            return None
        return checkpoint.get("data")

    def has_checkpoint(self, movie_id: str, stage: JobStage) -> bool:
        return self._path(movie_id, stage).exists()

    def clear_all_checkpoints(self, movie_id: str) -> None:
        """Remove every checkpoint of one movie."""
        for stage in JobStage:
            self._path(movie_id, stage).unlink(missing_ok=True)
        self.logger.debug(f"Cleared all checkpoints for: {movie_id}")
