"""Duration Reconciler - aligns source footage length to narration length."""

from typing import Any

from movie_shorts.core.config import Settings
from movie_shorts.models.schemas import NarrationAsset, ReconciledScene, SceneEntry


def compute_playback(
    source_start: float,
    source_end: float,
    target_duration: float,
    min_rate: float,
    max_rate: float,
) -> tuple[float, float, float, bool]:
    """
    Compute the source window and playback rate for one scene.

    A rate above max_rate narrows the window around its centre so the footage
    plays at exactly max_rate. A rate below min_rate is clamped; the shortfall
    is filled by the extractor.

    Returns:
        (window_start, window_end, playback_rate, clamped)
    """
    span = source_end - source_start
    raw_rate = span / target_duration

    if raw_rate > max_rate:
        window = target_duration * max_rate
        center = (source_start + source_end) / 2.0
        start = max(source_start, center - window / 2.0)
        return start, start + window, max_rate, True

    if raw_rate < min_rate:
        return source_start, source_end, min_rate, True

    return source_start, source_end, raw_rate, False


class DurationReconciler:
    """Computes per-scene output duration and playback rate."""

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize the reconciler.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger

    def target_duration(self, narration: NarrationAsset) -> float:
        return narration.duration + self.settings.lead_in_seconds + self.settings.lead_out_seconds

    def reconcile(self, scene: SceneEntry, narration: NarrationAsset) -> ReconciledScene:
        """
        Reconcile one scene against its narration.

        Args:
            scene: Planned scene
            narration: Narration rendered for that scene

        Returns:
            ReconciledScene with playback_rate inside [min_rate, max_rate]
        """
        if scene.index != narration.scene_index:
            raise ValueError(f"narration {narration.scene_index} does not belong to scene {scene.index}")

        target = self.target_duration(narration)
        start, end, rate, clamped = compute_playback(
            scene.source_start,
            scene.source_end,
            target,
            self.settings.min_rate,
            self.settings.max_rate,
        )

        if clamped:
            self.logger.info(
                f"Rate clamped for scene {scene.index}: planned {scene.source_start:.2f}-{scene.source_end:.2f} "
                f"({scene.source_span:.2f}s) vs target {target:.2f}s => {scene.source_span / target:.2f}x. "
                f"Using {start:.2f}-{end:.2f} at {rate:.2f}x."
            )

        return ReconciledScene(
            scene_index=scene.index,
            source_start=start,
            source_end=end,
            target_duration=target,
            playback_rate=rate,
            clamped=clamped,
        )

    def reconcile_all(self, scenes: list[SceneEntry], narrations: list[NarrationAsset]) -> list[ReconciledScene]:
        """Reconcile every surviving scene, preserving plan order."""
        if len(scenes) != len(narrations):
            raise ValueError(f"{len(scenes)} scenes but {len(narrations)} narrations")
        reconciled = [self.reconcile(scene, narration) for scene, narration in zip(scenes, narrations)]
        clamped = sum(1 for r in reconciled if r.clamped)
        self.logger.info(f"Reconciled {len(reconciled)} scenes ({clamped} clamped)")
        return reconciled
