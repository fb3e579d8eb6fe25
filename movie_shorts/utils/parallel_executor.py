"""Parallel Executor - bounded parallelism for movie batches and per-scene calls."""

import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable, Optional

from movie_shorts.core.config import Settings


class ParallelExecutor:
    """Runs independent tasks on a bounded thread pool, keeping results in submission order."""

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize parallel executor.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger
        self.max_parallel_movies = settings.max_parallel_movies
        self.max_parallel_scene_calls = settings.max_parallel_scene_calls

    def execute_batch(
        self,
        tasks: list[Callable[[], Any]],
        task_names: Optional[list[str]] = None,
        max_workers: Optional[int] = None,
    ) -> list[tuple[Any, Optional[Exception]]]:
        """
        Execute one task per movie with controlled concurrency.

        Args:
            tasks: List of callable tasks to execute
            task_names: Optional list of task names for logging
            max_workers: Maximum number of parallel workers (defaults to max_parallel_movies)

        Returns:
            List of tuples: (result, exception) for each task, in task order
        """
        return self._run(
            tasks,
            task_names,
            max_workers or self.max_parallel_movies,
            default_prefix="movie",
            log_prefix="",
            verbose=True,
        )

    def execute_scene_calls(
        self,
        tasks: list[Callable[[], Any]],
        task_names: Optional[list[str]] = None,
        movie_id: Optional[str] = None,
        max_workers: Optional[int] = None,
    ) -> list[tuple[Any, Optional[Exception]]]:
        """
        Execute independent per-scene calls (TTS requests, clip cuts) for one movie.

        Args:
            tasks: List of callable tasks to execute
            task_names: Optional list of task names for logging
            movie_id: Optional movie ID for logging context
            max_workers: Maximum number of parallel workers (defaults to max_parallel_scene_calls)

        Returns:
            List of tuples: (result, exception) for each task, in task order
        """
        return self._run(
            tasks,
            task_names,
            max_workers or self.max_parallel_scene_calls,
            default_prefix="scene_call",
            log_prefix=f"[{movie_id}] " if movie_id else "",
            verbose=False,
        )

    def _run(
        self,
        tasks: list[Callable[[], Any]],
        task_names: Optional[list[str]],
        max_workers: int,
        default_prefix: str,
        log_prefix: str,
        verbose: bool,
    ) -> list[tuple[Any, Optional[Exception]]]:
        if not tasks:
            return []

        log_done = self.logger.info if verbose else self.logger.debug
        log_fail = self.logger.error if verbose else self.logger.warning
        names = [
            task_names[i] if task_names and i < len(task_names) else f"{default_prefix}_{i + 1}"
            for i in range(len(tasks))
        ]
        start_time = time.time()
        results: list[tuple[Any, Optional[Exception]]] = [(None, None)] * len(tasks)

        # Sequential mode keeps stack traces and ordering trivial to follow
        if max_workers == 1:
            for i, task in enumerate(tasks):
                try:
                    results[i] = (task(), None)
                    log_done(f"{log_prefix}✅ {names[i]} completed in {time.time() - start_time:.2f}s")
                except Exception as e:
                    log_fail(f"{log_prefix}❌ {names[i]} failed after {time.time() - start_time:.2f}s: {e}")
                    results[i] = (None, e)
            return results

        log_done(f"{log_prefix}Parallel execution: {len(tasks)} tasks with max {max_workers} workers")
        completed_count = 0

        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            future_to_index = {executor.submit(task): i for i, task in enumerate(tasks)}

            for future in as_completed(future_to_index):
                index = future_to_index[future]
                completed_count += 1
                elapsed = time.time() - start_time
                try:
                    results[index] = (future.result(), None)
                    log_done(
                        f"{log_prefix}✅ {names[index]} completed ({completed_count}/{len(tasks)}) in {elapsed:.2f}s"
                    )
                except Exception as e:
                    log_fail(
                        f"{log_prefix}❌ {names[index]} failed ({completed_count}/{len(tasks)}) after {elapsed:.2f}s: {e}"
                    )
                    results[index] = (None, e)

        successful = sum(1 for _, error in results if error is None)
        log_done(
            f"{log_prefix}Batch complete: {successful}/{len(tasks)} successful in {time.time() - start_time:.2f}s "
            f"(parallelism: {max_workers} workers)"
        )
        return results
