"""
Async client for the NautManager tracking API.

Provides:
- Lookup of projects by stored local path
- Project creation with duplicate (409) detection
- Explicit per-request timeouts
"""

from typing import List, Optional

import httpx
from loguru import logger
from pydantic import TypeAdapter, ValidationError

from app.models.schemas import ProjectCreate, ProjectRecord


_RECORD_LIST = TypeAdapter(List[ProjectRecord])


class TrackerClientError(Exception):
    """Tracking API call failed (network, timeout, bad status or body)."""


class ProjectExistsError(TrackerClientError):
    """Tracking API rejected a create because the local path is taken."""


class TrackerClient:
    """Client for the projects endpoints of the tracking API."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize tracker client.

        Args:
            base_url: API base URL, e.g. http://server:3001/api
            timeout: Seconds allowed for each request
            transport: Optional transport override (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout),
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    async def close(self):
        """Close the underlying connection pool."""
        await self._client.aclose()

    async def find_by_local_path(self, local_path: str) -> List[ProjectRecord]:
        """
        Return projects whose stored local path equals ``local_path``.

        Raises:
            TrackerClientError: If the request or response decoding fails
        """
        try:
            response = await self._client.get("/projects", params={"local_path": local_path})
            response.raise_for_status()
            return _RECORD_LIST.validate_python(response.json())

        except httpx.HTTPStatusError as e:
            raise TrackerClientError(
                f"lookup for {local_path} returned {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise TrackerClientError(f"lookup for {local_path} failed: {e!r}") from e
        except (ValueError, ValidationError) as e:
            raise TrackerClientError(f"lookup for {local_path} returned malformed body: {e}") from e

    async def create_project(self, project: ProjectCreate) -> Optional[ProjectRecord]:
        """
        Create a project.

        Returns:
            The created record, or None if the API acknowledged without a body

        Raises:
            ProjectExistsError: If the API answers 409 Conflict
            TrackerClientError: On any other failure
        """
        try:
            response = await self._client.post("/projects", json=project.model_dump())
        except httpx.HTTPError as e:
            raise TrackerClientError(f"create for {project.local_path} failed: {e!r}") from e

        if response.status_code == httpx.codes.CONFLICT:
            raise ProjectExistsError(f"project with path {project.local_path} already exists")

        if response.is_error:
            logger.debug(f"Create rejected for {project.name}: {response.text[:200]}")
            raise TrackerClientError(
                f"create for {project.local_path} returned {response.status_code}"
            )

        try:
            return ProjectRecord.model_validate(response.json())
        except (ValueError, ValidationError):
            return None
