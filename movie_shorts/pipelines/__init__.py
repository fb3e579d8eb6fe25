"""Pipeline orchestrators for Movie Shorts."""

from movie_shorts.pipelines.movie_pipeline import MoviePipeline
from movie_shorts.pipelines.run_batch import BatchController, main, reset_movie_job

__all__ = ["BatchController", "MoviePipeline", "main", "reset_movie_job"]
