"""
Candidate classification for debounced filesystem paths.

Decides whether a path names a project directory directly under the watch
root, or a concept document whose addition implies one.
"""

from __future__ import annotations

import asyncio
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from loguru import logger

from app.utils.helpers import is_concept_file_name
from domains.auto_register.paths import WatchRoot


DOCS_DIR_NAME = "docs"


@dataclass(frozen=True, slots=True)
class ProjectCandidate:
    """A directory that plausibly is a new project."""

    name: str
    container_path: Path
    host_path: str
    concept_text: Optional[str] = None


def _stat_mode(path: Path) -> Optional[int]:
    try:
        return path.stat().st_mode
    except (FileNotFoundError, NotADirectoryError):
        return None


class CandidateClassifier:
    """Maps debounced paths to candidate project directories."""

    def __init__(self, watch_root: WatchRoot):
        self.watch_root = watch_root

    def candidate_for(self, directory: Path) -> ProjectCandidate:
        return ProjectCandidate(
            name=directory.name,
            container_path=directory,
            host_path=self.watch_root.translate(directory),
        )

    def match(self, path: Path, is_dir: bool) -> Optional[Path]:
        """
        Apply the classification rules to ``path``.

        Args:
            path: Debounced path inside the container view
            is_dir: Whether the path is currently a directory

        Returns:
            The candidate project directory, or None
        """
        root = self.watch_root.container_path

        if path.parent == root:
            return path if is_dir else None

        if is_dir or not is_concept_file_name(path.name):
            return None

        docs_dir = path.parent
        project_dir = docs_dir.parent
        if docs_dir.name == DOCS_DIR_NAME and project_dir.parent == root:
            return project_dir

        return None

    async def classify(self, path: Path) -> Optional[ProjectCandidate]:
        """Re-stat ``path`` now and classify it."""

        path = Path(path)
        mode = await asyncio.to_thread(_stat_mode, path)
        if mode is None:
            logger.debug(f"Path vanished before classification: {path}")
            return None

        directory = self.match(path, stat.S_ISDIR(mode))
        if directory is None:
            return None

        if directory != path:
            logger.info(f"Document add triggered processing for dir: {directory}")

        return self.candidate_for(directory)
