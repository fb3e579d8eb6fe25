"""I/O utility functions for file and directory operations."""

import hashlib
import json
import os
import re
import shutil
import tempfile
from pathlib import Path
from typing import Any, Iterable, Optional


def slugify(text: str) -> str:
    """
    Convert text to a filesystem-safe slug.

    Args:
        text: Input text to slugify.

    Returns:
        Filesystem-safe slug string.
    """
    text = text.lower()
    text = re.sub(r"[^\w\s-]", "", text)
    text = re.sub(r"[-\s]+", "-", text)
    text = text.strip("-")
    if len(text) > 100:
        text = text[:100].rstrip("-")
    return text or "untitled"


def job_dir_name(movie_id: str) -> str:
    """
    Private directory name for one movie: readable slug plus a stable hash.

    Titles that slugify alike ("Heat (1995)", "Heat 1995") still get distinct names.
    """
    digest = hashlib.md5(movie_id.encode("utf-8")).hexdigest()[:8]
    return f"{slugify(movie_id)}-{digest}"


def atomic_write_json(path: Path, data: Any) -> None:
    """
    Write JSON so readers see either the old or the new content, never a torn file.

    Args:
        path: Destination file.
        data: JSON-serializable data (datetimes and paths are stringified).
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False, default=str)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def read_json(path: Path) -> Optional[Any]:
    """Load JSON from path, or None if the file does not exist."""
    if not path.exists():
        return None
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def list_files_with_ext(directory: Path, extensions: Iterable[str]) -> list[Path]:
    """
    List regular files in a directory whose suffix matches one of extensions.

    Args:
        directory: Directory to scan (missing directories yield an empty list).
        extensions: Suffixes such as ".mp3" (case-insensitive).

    Returns:
        Matching files sorted by name.
    """
    if not directory.is_dir():
        return []
    wanted = {ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in extensions}
    return sorted(p for p in directory.iterdir() if p.is_file() and p.suffix.lower() in wanted)


def ensure_dirs(*directories: Path) -> None:
    """Create each directory (and parents) if missing."""
    for directory in directories:
        directory.mkdir(parents=True, exist_ok=True)


def purge_directory(directory: Path) -> None:
    """Remove a directory tree if it exists."""
    if directory.exists():
        shutil.rmtree(directory)


def move_file(source: Path, destination: Path) -> Path:
    """
    Move a file, replacing any existing destination.

    Uses os.replace when both paths share a filesystem and falls back to a copy
    into a temporary sibling followed by os.replace otherwise.
    """
    destination.parent.mkdir(parents=True, exist_ok=True)
    try:
        os.replace(source, destination)
    except OSError:
        tmp = destination.with_name(f".{destination.name}.partial")
        shutil.copy2(source, tmp)
        os.replace(tmp, destination)
        source.unlink()
    return destination
