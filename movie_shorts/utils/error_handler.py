"""Error Handler - provides operator-friendly error messages."""

from typing import Optional

from movie_shorts.core.errors import ErrorKind, error_kind_of


def format_error_message(
    operation: str,
    error: Exception,
    context: Optional[dict] = None,
    suggestion: Optional[str] = None,
) -> str:
    """
    Format an operator-friendly error message.

    Args:
        operation: What operation was being performed (e.g., "Extracting scene 3")
        error: The exception that occurred
        context: Additional context (e.g., {"movie_id": "Heat", "scene": 3})
        suggestion: Optional suggestion for how to fix the issue

    Returns:
        Formatted error message
    """
    error_type = type(error).__name__
    error_msg = str(error)

    context_str = ""
    if context:
        context_parts = [f"{k}={v}" for k, v in context.items()]
        context_str = f" ({', '.join(context_parts)})"

    message = f"❌ {operation} failed{context_str}\n"
    message += f"   Error: {error_type}: {error_msg}"

    if suggestion:
        message += f"\n   💡 Suggestion: {suggestion}"

    return message


def get_recovery_suggestion(error: Exception) -> Optional[str]:
    """
    Get a suggestion for how an operator can recover a failed movie.

    Args:
        error: The exception that failed the job

    Returns:
        Suggestion string or None
    """
    kind = error_kind_of(error)

    if kind == ErrorKind.NO_PLAN:
        return "Place an .srt file in the subtitles folder or a plan JSON in the plans folder, then retry the job."
    elif kind == ErrorKind.SYNTHESIS_ERROR:
        return "Every narration failed to synthesize. Check ELEVENLABS_API_KEY and network access, then retry."
    elif kind == ErrorKind.EXTRACTION_ERROR:
        return "No scene could be cut from the source. The movie file may be corrupt or the plan timestamps invalid."
    elif kind == ErrorKind.ASSEMBLY_ERROR:
        return "Too few scenes survived. Lower MIN_SCENES or provide a better plan, then retry."
    elif kind == ErrorKind.TOOL_FAILURE:
        return "ffmpeg failed or timed out. Check that ffmpeg is installed and the disk is not full."

    return None
