"""Subtitle (SRT) helpers used to give the planner seconds-based timestamps."""

import re
from pathlib import Path
from typing import Optional

ITALIC_TAG = re.compile(r"</?i>", re.IGNORECASE)
TIMESTAMP = re.compile(r"^\s*(\d+):(\d{1,2}):(\d{1,2})[,.](\d{1,3})\s*$")


def timestamp_to_seconds(timestamp: str) -> Optional[int]:
    """
    Convert an SRT timestamp ("01:02:03,456") to whole seconds.

    Milliseconds are dropped. Returns None for anything that is not a timestamp.
    """
    match = TIMESTAMP.match(timestamp)
    if not match:
        return None
    hours, minutes, seconds, _ = match.groups()
    return int(hours) * 3600 + int(minutes) * 60 + int(seconds)


def convert_srt_to_seconds(text: str) -> str:
    """
    Rewrite SRT timing lines as "<start> --> <end>" in whole seconds.

    Italic tags are stripped from every line; other lines pass through unchanged.
    """
    out = []
    for line in text.splitlines():
        line = ITALIC_TAG.sub("", line)
        parts = line.split(" --> ")
        if len(parts) == 2:
            start, end = timestamp_to_seconds(parts[0]), timestamp_to_seconds(parts[1])
            if start is not None and end is not None:
                line = f"{start} --> {end}"
        out.append(line)
    return "\n".join(out) + "\n"


def read_srt(path: Path) -> str:
    """Read a subtitle file, replacing undecodable bytes."""
    return path.read_text(encoding="utf-8", errors="replace")


def trim_text(text: str, max_chars: int) -> str:
    """Cut text to at most max_chars characters."""
    return text if len(text) <= max_chars else text[:max_chars]
