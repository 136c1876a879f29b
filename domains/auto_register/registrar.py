"""
Registrar for candidate project directories.

Verifies a candidate against the tracking API, reads its concept document
and creates the project. Every attempt ends in exactly one dedup decision:
registered, or released for a later retry.
"""

from __future__ import annotations

import asyncio
import dataclasses
from pathlib import Path
from typing import Optional

from loguru import logger

from app.models.schemas import ProjectCreate
from app.utils.helpers import find_concept_file
from app.utils.tracker_client import ProjectExistsError, TrackerClient, TrackerClientError
from domains.auto_register.classifier import DOCS_DIR_NAME, ProjectCandidate
from domains.auto_register.dedup import DedupStore, Outcome


def read_concept(project_dir: Path) -> Optional[str]:
    """
    Read ``docs/concept.md`` (or ``docs/README.md``) from a project.

    Returns:
        Document text, or None if neither document exists

    Raises:
        OSError, UnicodeDecodeError: If the document cannot be read
    """
    concept_file = find_concept_file(project_dir / DOCS_DIR_NAME)
    if concept_file is None:
        return None

    logger.info(f" - Found concept/readme file: {concept_file}")
    return concept_file.read_text(encoding="utf-8")


class Registrar:
    """Registers candidate directories with the tracking API."""

    def __init__(self, client: TrackerClient, dedup: DedupStore):
        """
        Initialize registrar.

        Args:
            client: Tracking API client
            dedup: Dedup store owning the in-progress records
        """
        self.client = client
        self.dedup = dedup

    async def process(self, candidate: ProjectCandidate) -> Optional[Outcome]:
        """
        Register ``candidate`` unless another attempt holds its record.

        Returns:
            The attempt outcome, or None if the dedup gate refused it
        """
        if not self.dedup.try_acquire(candidate.container_path):
            logger.debug(f"Already processing or processed: {candidate.container_path}")
            return None

        return await self.register(candidate)

    async def register(self, candidate: ProjectCandidate) -> Outcome:
        """Run one attempt for a candidate whose record was just acquired."""

        outcome: Optional[Outcome] = None
        try:
            outcome = await self._attempt(candidate)
            return outcome
        finally:
            # Unexpected errors and cancellation release the record.
            self.dedup.finalize(candidate.container_path, outcome or Outcome.RETRY)

    async def _attempt(self, candidate: ProjectCandidate) -> Outcome:
        logger.info(f"Processing directory: {candidate.name} at {candidate.container_path}")
        logger.info(f"  Host path: {candidate.host_path}")

        try:
            existing = await self.client.find_by_local_path(candidate.host_path)
        except TrackerClientError as e:
            logger.warning(f" - Error checking API for existing project {candidate.host_path}: {e}")
            return Outcome.RETRY

        if existing:
            logger.info(
                f" - Skipping: project with path {candidate.host_path} already exists "
                f"(ID: {existing[0].id})"
            )
            return Outcome.REGISTERED

        try:
            concept = await asyncio.to_thread(read_concept, candidate.container_path)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f" - Error reading concept for {candidate.name}: {e}")
            return Outcome.SKIPPED

        if concept is None:
            logger.info(
                f" - Skipping: no docs/concept.md or docs/README.md found in {candidate.name}"
            )
            return Outcome.SKIPPED

        candidate = dataclasses.replace(candidate, concept_text=concept)
        return await self._create(candidate)

    async def _create(self, candidate: ProjectCandidate) -> Outcome:
        payload = ProjectCreate(
            name=candidate.name,
            local_path=candidate.host_path,
            concept=candidate.concept_text,
        )

        try:
            logger.info(f" - Attempting to create project via API: {candidate.name}")
            record = await self.client.create_project(payload)

        except ProjectExistsError:
            logger.info(f" - Project with path {candidate.host_path} already exists according to API")
            return Outcome.REGISTERED

        except TrackerClientError as e:
            logger.warning(f" - Error creating project {candidate.name}: {e}")
            return Outcome.RETRY

        project_id = record.id if record else None
        logger.success(f" - Registered project {candidate.name} (ID: {project_id})")
        return Outcome.REGISTERED
