"""Error kinds and exception hierarchy for the timeline engine."""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Persisted classification of a failure."""

    SYNTHESIS_ERROR = "synthesis_error"
    EXTRACTION_ERROR = "extraction_error"
    ASSEMBLY_ERROR = "assembly_error"
    TOOL_FAILURE = "tool_failure"
    NO_PLAN = "no_plan"


class MovieShortsError(Exception):
    """Base class; every subclass carries the ErrorKind persisted on failure."""

    kind: ErrorKind = ErrorKind.TOOL_FAILURE


class SynthesisError(MovieShortsError):
    """Speech synthesis failed for one scene (recoverable by dropping the scene)."""

    kind = ErrorKind.SYNTHESIS_ERROR


class ExtractionError(MovieShortsError):
    """Cutting one scene out of the source failed (recoverable by dropping the scene)."""

    kind = ErrorKind.EXTRACTION_ERROR


class AssemblyError(MovieShortsError):
    """Too few scenes survived to build a watchable short."""

    kind = ErrorKind.ASSEMBLY_ERROR


class NoPlanError(MovieShortsError):
    """The scene-plan source produced no scenes."""

    kind = ErrorKind.NO_PLAN


class ToolFailure(MovieShortsError):
    """An external media-tool process exited nonzero or timed out."""

    kind = ErrorKind.TOOL_FAILURE

    def __init__(self, message: str, returncode: Optional[int] = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


def error_kind_of(error: BaseException) -> ErrorKind:
    """Map any exception onto the ErrorKind persisted for a failed job."""
    if isinstance(error, MovieShortsError):
        return error.kind
    return ErrorKind.TOOL_FAILURE
