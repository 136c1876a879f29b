"""
Helper utilities for the project watcher.

Common path checks used by the event handler and the classifier.
"""

from pathlib import Path, PurePath
from typing import Iterable, Optional


EXCLUDED_DIR_NAMES = frozenset({"node_modules", ".git", ".hg", ".svn"})

CONCEPT_FILE_NAMES = ("concept.md", "readme.md")


def is_hidden(path: PurePath) -> bool:
    """Check if path is hidden (starts with dot)."""
    return path.name.startswith('.')


def should_exclude_path(parts: Iterable[str], excluded: Optional[Iterable[str]] = None) -> bool:
    """
    Check if any path component is hidden or an excluded directory.

    Args:
        parts: Path components relative to the watch root
        excluded: Directory names to exclude

    Returns:
        True if should exclude, False otherwise
    """
    excluded_names = EXCLUDED_DIR_NAMES if excluded is None else frozenset(excluded)

    for part in parts:
        if part.startswith('.') or part in excluded_names:
            return True

    return False


def is_concept_file_name(name: str) -> bool:
    """Check whether a file name is a concept document (case-insensitive)."""
    return name.lower() in CONCEPT_FILE_NAMES


def find_concept_file(docs_dir: Path) -> Optional[Path]:
    """
    Locate the concept document inside a project's docs directory.

    ``concept.md`` wins over ``README.md``; names match case-insensitively.

    Returns:
        Path to the document or None if neither exists

    Raises:
        OSError: If the docs directory exists but cannot be listed
    """
    if not docs_dir.is_dir():
        return None

    by_name = {}
    for entry in sorted(docs_dir.iterdir()):
        lowered = entry.name.lower()
        if lowered in CONCEPT_FILE_NAMES and lowered not in by_name and entry.is_file():
            by_name[lowered] = entry

    for name in CONCEPT_FILE_NAMES:
        if name in by_name:
            return by_name[name]

    return None
