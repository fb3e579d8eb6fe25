"""Batch controller - discovers source movies and drives each MovieJob to completion."""

import argparse
import signal
import sys
import threading
import time
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from movie_shorts.core.config import Settings, settings
from movie_shorts.core.errors import ErrorKind
from movie_shorts.core.logging_config import get_logger, setup_logging_from_settings
from movie_shorts.models.schemas import BatchReport, JobStage, MovieJob
from movie_shorts.pipelines.movie_pipeline import MoviePipeline, StopRequested
from movie_shorts.services.checkpoint_manager import CheckpointManager
from movie_shorts.services.media_tool import MediaTool
from movie_shorts.services.plan_source import PlanSource, default_plan_source
from movie_shorts.services.tts_client import TTSClient
from movie_shorts.storage.repository import JobRepository
from movie_shorts.utils.io_utils import ensure_dirs, job_dir_name, list_files_with_ext, purge_directory
from movie_shorts.utils.parallel_executor import ParallelExecutor

MOVIE_EXTENSIONS = (".mp4", ".mkv", ".mov")


class MovieAction(str, Enum):
    """What the controller will do with one discovered movie."""

    SKIP_OUTPUT_EXISTS = "skip_output_exists"
    SKIP_FAILED = "skip_failed"
    RETRY_FAILED = "retry_failed"
    RESUME = "resume"
    RESTART_DONE = "restart_done"
    NEW = "new"

    @property
    def skips(self) -> bool:
        return self in (MovieAction.SKIP_OUTPUT_EXISTS, MovieAction.SKIP_FAILED)


def reset_movie_job(
    settings: Settings,
    logger: Any,
    movie_id: str,
    repository: Optional[JobRepository] = None,
    checkpoints: Optional[CheckpointManager] = None,
) -> bool:
    """
    Forget everything about a movie's job so the next run starts it fresh.

    Deletes the job record and its checkpoints and purges its working directory.

    Returns:
        True if a job record existed
    """
    repository = repository or JobRepository(settings, logger)
    checkpoints = checkpoints or CheckpointManager(settings, logger)
    existed = repository.delete_job(movie_id)
    checkpoints.clear_all_checkpoints(movie_id)
    purge_directory(settings.path("work_dir") / job_dir_name(movie_id))
    return existed


class BatchController:
    """Runs every movie in movies_dir through the pipeline, skipping and resuming as needed."""

    def __init__(
        self,
        settings: Settings,
        logger: Any,
        repository: Optional[JobRepository] = None,
        checkpoints: Optional[CheckpointManager] = None,
        plan_source: Optional[PlanSource] = None,
        media_tool: Optional[MediaTool] = None,
        tts_client: Optional[TTSClient] = None,
        executor: Optional[ParallelExecutor] = None,
    ):
        """
        Initialize the batch controller.

        Args:
            settings: Application settings
            logger: Logger instance
            repository: Job table (defaults to JobRepository)
            checkpoints: Stage checkpoint store
            plan_source: Clip plan source (defaults to JSON plans, then subtitles + LLM)
            media_tool: ffmpeg wrapper shared by all movies
            tts_client: Speech synthesis client shared by all movies
            executor: Bounded executor for parallel movies
        """
        self.settings = settings
        self.logger = logger
        self.repository = repository or JobRepository(settings, logger)
        self.checkpoints = checkpoints or CheckpointManager(settings, logger)
        self.plan_source = plan_source or default_plan_source(settings, logger)
        self.media_tool = media_tool
        self.tts_client = tts_client
        self.executor = executor or ParallelExecutor(settings, logger)
        self.stop_event = threading.Event()

    def request_stop(self) -> None:
        """Stop scheduling new stages; running tool calls finish or time out."""
        if not self.stop_event.is_set():
            self.logger.warning("Stop requested; finishing in-flight work...")
        self.stop_event.set()

    def discover_movies(self) -> list[Path]:
        """Source movies in movies_dir, sorted by name."""
        return list_files_with_ext(self.settings.path("movies_dir"), MOVIE_EXTENSIONS)

    def horizontal_output(self, movie_id: str) -> Path:
        return self.settings.path("output_dir") / f"{movie_id}.mp4"

    def decide(self, source: Path, retry_failed: bool = False) -> tuple[MovieAction, Optional[MovieJob]]:
        """
        Decide what to do with one movie without writing anything.

        Args:
            source: Source movie file
            retry_failed: Whether failed jobs are re-triggered

        Returns:
            (action, existing job or None)
        """
        movie_id = source.stem
        if self.horizontal_output(movie_id).exists():
            return MovieAction.SKIP_OUTPUT_EXISTS, None

        job = self.repository.load_job(movie_id)
        if job is None:
            return MovieAction.NEW, None
        if job.stage == JobStage.FAILED:
            return (MovieAction.RETRY_FAILED if retry_failed else MovieAction.SKIP_FAILED), job
        if job.stage == JobStage.DONE:
            return MovieAction.RESTART_DONE, job
        return MovieAction.RESUME, job

    def prepare_job(self, source: Path, action: MovieAction, job: Optional[MovieJob]) -> MovieJob:
        """Create or reset the persisted job for a movie that will run."""
        movie_id = source.stem
        if action == MovieAction.RESUME and job is not None:
            if job.source_path != source:
                job = self.repository.save_job(job.model_copy(update={"source_path": source}))
            return job

        if action in (MovieAction.RETRY_FAILED, MovieAction.RESTART_DONE):
            reset_movie_job(self.settings, self.logger, movie_id, self.repository, self.checkpoints)
        return self.repository.save_job(MovieJob(movie_id=movie_id, source_path=source))

    def process_movie(self, source: Path, retry_failed: bool = False) -> tuple[str, Optional[ErrorKind]]:
        """
        Process one movie.

        Returns:
            (outcome, error kind) where outcome is processed, failed, skipped or stopped
        """
        movie_id = source.stem
        logger = get_logger(__name__, movie_id=movie_id)

        action, job = self.decide(source, retry_failed)
        if action == MovieAction.SKIP_OUTPUT_EXISTS:
            logger.info(f"Skipping {movie_id}: output already exists")
            return "skipped", None
        if action == MovieAction.SKIP_FAILED:
            logger.info(f"Skipping {movie_id}: previous run failed ({job.error_kind.value if job.error_kind else '?'})")
            return "skipped", None
        if self.stop_event.is_set():
            return "stopped", None

        job = self.prepare_job(source, action, job)
        logger.info(f"{action.value}: {movie_id} (stage {job.stage.value})")

        pipeline = MoviePipeline(
            self.settings,
            logger,
            self.repository,
            self.checkpoints,
            self.plan_source,
            media_tool=self.media_tool,
            tts_client=self.tts_client,
            stop_event=self.stop_event,
        )
        try:
            job = pipeline.run(job)
        except StopRequested:
            return "stopped", None

        if job.stage == JobStage.FAILED:
            return "failed", job.error_kind
        return "processed", None

    def run(self, retry_failed: bool = False, dry_run: bool = False) -> BatchReport:
        """
        Process every discovered movie.

        Args:
            retry_failed: Re-trigger movies whose job failed in an earlier run
            dry_run: Only report what would happen

        Returns:
            BatchReport
        """
        movies = self.discover_movies()
        report = BatchReport()
        self.logger.info(f"Found {len(movies)} movie(s) in {self.settings.movies_dir}")

        if dry_run:
            for source in movies:
                action, job = self.decide(source, retry_failed)
                stage = f" (stage {job.stage.value})" if job else ""
                self.logger.info(f"[dry-run] {source.stem}: {action.value}{stage}")
                (report.skipped if action.skips else report.processed).append(source.stem)
            return report

        tasks = [(lambda s=source: self.process_movie(s, retry_failed)) for source in movies]
        results = self.executor.execute_batch(tasks, task_names=[source.stem for source in movies])

        for source, (result, error) in zip(movies, results):
            movie_id = source.stem
            if error is not None:
                self.logger.error(f"Movie {movie_id} crashed outside the pipeline: {error}")
                report.failed[movie_id] = ErrorKind.TOOL_FAILURE
                continue
            outcome, kind = result
            if outcome == "processed":
                report.processed.append(movie_id)
            elif outcome == "failed":
                report.failed[movie_id] = kind
            elif outcome == "stopped":
                report.stopped.append(movie_id)
            else:
                report.skipped.append(movie_id)
        return report


def print_jobs(repository: JobRepository) -> None:
    jobs = repository.list_jobs()
    if not jobs:
        print("No jobs recorded.")
        return
    print(f"{'MOVIE':<40} {'STAGE':<11} {'UPDATED':<20} ERROR")
    for job in jobs:
        error = f"{job.error_kind.value}: {job.error_message}" if job.error_kind else ""
        print(f"{job.movie_id:<40} {job.stage.value:<11} {job.updated_at:%Y-%m-%d %H:%M:%S}  {error}")


def main(argv: Optional[list[str]] = None) -> int:
    """Main entrypoint for a batch run."""
    parser = argparse.ArgumentParser(
        description="Movie Shorts - turn source movies into narrated horizontal and vertical shorts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--movies-dir",
        type=str,
        default=None,
        help=f"Folder with source movies (default: {settings.movies_dir})",
    )
    parser.add_argument(
        "--max-workers",
        type=int,
        default=None,
        help=f"Movies processed in parallel (default: {settings.max_parallel_movies})",
    )
    parser.add_argument(
        "--retry-failed",
        action="store_true",
        help="Reprocess movies whose job failed in an earlier run",
    )
    parser.add_argument(
        "--list-jobs",
        action="store_true",
        help="Print the job table and exit",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report what each movie would do without processing anything",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help=f"Log level (default: {settings.log_level})",
    )

    args = parser.parse_args(argv)

    if args.max_workers is not None and args.max_workers < 1:
        parser.error("--max-workers must be >= 1")

    overrides: dict[str, Any] = {}
    if args.movies_dir:
        overrides["movies_dir"] = args.movies_dir
    if args.max_workers is not None:
        overrides["max_parallel_movies"] = args.max_workers
    if args.log_level:
        overrides["log_level"] = args.log_level
    run_settings = settings.model_copy(update=overrides)

    setup_logging_from_settings(run_settings)
    logger = get_logger(__name__)

    repository = JobRepository(run_settings, logger)
    if args.list_jobs:
        print_jobs(repository)
        return 0

    logger.info("=" * 60)
    logger.info(f"{run_settings.app_name} v{run_settings.app_version} - batch run")
    logger.info(f"Movies: {run_settings.movies_dir}")
    logger.info(f"Parallel movies: {run_settings.max_parallel_movies}")
    if args.dry_run:
        logger.info("Mode: DRY-RUN (no processing)")
    logger.info("=" * 60)

    media_tool = MediaTool(run_settings, logger)
    if not args.dry_run and not media_tool.is_available():
        logger.error(f"ffmpeg not found ({run_settings.ffmpeg_binary}). Install ffmpeg or set FFMPEG_BINARY.")
        return 1

    ensure_dirs(
        *(
            run_settings.path(name)
            for name in (
                "movies_dir",
                "music_dir",
                "output_dir",
                "vertical_output_dir",
                "retired_dir",
                "work_dir",
                "jobs_dir",
                "plans_dir",
                "subtitles_dir",
            )
        )
    )

    controller = BatchController(run_settings, logger, repository=repository, media_tool=media_tool)

    def handle_sigint(signum, frame):
        controller.request_stop()
        # A second Ctrl+C interrupts immediately
        signal.signal(signal.SIGINT, signal.default_int_handler)

    previous_handler = signal.signal(signal.SIGINT, handle_sigint)
    start = time.time()
    try:
        report = controller.run(retry_failed=args.retry_failed, dry_run=args.dry_run)
    except KeyboardInterrupt:
        logger.warning("Batch interrupted by user")
        return 1
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    logger.info("=" * 60)
    logger.info(f"BATCH COMPLETE in {time.time() - start:.1f}s")
    logger.info(f"Processed: {len(report.processed)}  Failed: {len(report.failed)}  "
                f"Skipped: {len(report.skipped)}  Stopped: {len(report.stopped)}")
    for movie_id, kind in report.failed.items():
        logger.info(f"  FAILED {movie_id}: {kind.value if kind else 'unknown'}")
    logger.info("=" * 60)

    return 1 if report.failed else 0


if __name__ == "__main__":
    sys.exit(main())
