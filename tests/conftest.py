import json
from pathlib import Path
from typing import Dict, List, Optional

import httpx
import pytest

from app.utils.config import Settings
from app.utils.tracker_client import TrackerClient


API_URL = "http://tracker.test/api"


class FakeTrackerAPI:
    """In-memory stand-in for the NautManager projects endpoints."""

    def __init__(self):
        self.projects: List[Dict[str, object]] = []
        self.lookups: List[str] = []
        self.creates: List[Dict[str, object]] = []
        self.lookup_status: Optional[int] = None
        self.create_status: Optional[int] = None
        self.lookup_error: Optional[Exception] = None
        self.create_error: Optional[Exception] = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/projects"

        if request.method == "GET":
            local_path = request.url.params.get("local_path")
            self.lookups.append(local_path)
            if self.lookup_error is not None:
                raise self.lookup_error
            if self.lookup_status is not None:
                return httpx.Response(self.lookup_status, json={"message": "boom"})
            matches = [p for p in self.projects if p["local_path"] == local_path]
            return httpx.Response(200, json=matches)

        if request.method == "POST":
            body = json.loads(request.content)
            self.creates.append(body)
            if self.create_error is not None:
                raise self.create_error
            if self.create_status is not None:
                return httpx.Response(self.create_status, json={"message": "rejected"})
            if any(p["local_path"] == body["local_path"] for p in self.projects):
                return httpx.Response(409, json={"message": "Project with this local path already exists"})
            record = dict(body, id=len(self.projects) + 1)
            self.projects.append(record)
            return httpx.Response(201, json=record)

        return httpx.Response(405)

    def client(self) -> TrackerClient:
        return TrackerClient(API_URL, timeout=5.0, transport=httpx.MockTransport(self.handler))


@pytest.fixture
def fake_api() -> FakeTrackerAPI:
    return FakeTrackerAPI()


@pytest.fixture
def watch_dir(tmp_path: Path) -> Path:
    root = tmp_path / "projects"
    root.mkdir()
    return root


@pytest.fixture
def make_settings(watch_dir: Path):
    def _make(**overrides) -> Settings:
        values = {
            "container_watch_path": watch_dir,
            "host_watch_path": "/srv/projects",
            "nautmanager_api_url": API_URL,
            "debounce_ms": 100,
            "initial_scan": False,
            "shutdown_grace_seconds": 1.0,
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make


@pytest.fixture
def make_project():
    """Create ``root/name`` with the given files under ``docs/``."""

    def _make(root: Path, name: str, docs: Optional[Dict[str, str]] = None) -> Path:
        project = root / name
        project.mkdir()
        if docs is not None:
            (project / "docs").mkdir()
            for filename, text in docs.items():
                (project / "docs" / filename).write_text(text, encoding="utf-8")
        return project

    return _make
