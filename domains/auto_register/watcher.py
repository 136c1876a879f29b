#!/usr/bin/env python3
"""
Project directory watcher for the Auto-Registration domain.

Monitors the projects root for new project directories and registers them
with the NautManager tracking API. Uses the watchdog library for filesystem
notifications and a single asyncio event loop for everything after them.

Only the root, each project directory and each project's ``docs/`` carry a
(non-recursive) watch, so large trees such as ``node_modules`` never hold
inotify watches.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import signal
import sys
from pathlib import Path
from typing import Callable, Dict, Optional, Set

from loguru import logger
from pydantic import ValidationError
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import ObservedWatch

from app.utils.config import Settings, get_settings
from app.utils.helpers import is_hidden, should_exclude_path
from app.utils.tracker_client import TrackerClient
from domains.auto_register.classifier import DOCS_DIR_NAME, CandidateClassifier
from domains.auto_register.debounce import Debouncer
from domains.auto_register.dedup import DedupStore
from domains.auto_register.paths import PathOutsideRootError, WatchRoot
from domains.auto_register.registrar import Registrar


# Root, then one directory below it, then entries of that directory.
MAX_RELATIVE_DEPTH = 3

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


class ProjectEventHandler(FileSystemEventHandler):
    """Filters raw notifications and forwards accepted paths."""

    def __init__(
        self,
        watch_root: WatchRoot,
        forward: Callable[[Path], None],
        track_directory: Optional[Callable[[Path, bool], None]] = None,
    ):
        """
        Initialize event handler.

        Args:
            watch_root: Watched root
            forward: Called from the observer thread with each accepted path
            track_directory: Called with (path, present) when a directory that
                needs its own watch appears or disappears
        """
        super().__init__()
        self.watch_root = watch_root
        self.forward = forward
        self.track_directory = track_directory

    def _relative_parts(self, path: Path) -> tuple:
        try:
            return self.watch_root.relative(path).parts
        except PathOutsideRootError:
            return ()

    def should_process(self, path: Path) -> bool:
        """
        Check if path should be processed.

        Hidden entries, node_modules and VCS metadata inside projects, and
        anything deeper than two directory levels below the root are ignored.
        """
        parts = self._relative_parts(path)

        if not parts or len(parts) > MAX_RELATIVE_DEPTH:
            return False

        if is_hidden(Path(parts[0])):
            return False

        return not should_exclude_path(parts[1:])

    def needs_watch(self, path: Path) -> bool:
        """Project directories and their docs/ get a watch of their own."""
        parts = self._relative_parts(path)
        if len(parts) == 1:
            return not is_hidden(Path(parts[0]))
        if len(parts) == 2:
            return parts[1] == DOCS_DIR_NAME and not is_hidden(Path(parts[0]))
        return False

    def _forward(self, raw_path) -> None:
        path = Path(os.fsdecode(raw_path))
        if self.should_process(path):
            self.forward(path)

    def _track(self, raw_path, present: bool) -> None:
        if self.track_directory is None:
            return
        path = Path(os.fsdecode(raw_path))
        if self.needs_watch(path):
            self.track_directory(path, present)

    def on_created(self, event: FileSystemEvent):
        """Handle file/directory creation."""
        if event.is_directory:
            self._track(event.src_path, True)
        self._forward(event.src_path)

    def on_modified(self, event: FileSystemEvent):
        """Handle file modification; keeps the debounce open during writes."""
        # Skip directory modifications (too noisy)
        if event.is_directory:
            return
        self._forward(event.src_path)

    def on_deleted(self, event: FileSystemEvent):
        """Drop watches for removed project directories."""
        if event.is_directory:
            self._track(event.src_path, False)

    def on_moved(self, event: FileSystemEvent):
        """Handle entries moved or renamed into place."""
        dest = getattr(event, "dest_path", None)
        if event.is_directory:
            self._track(event.src_path, False)
            if dest:
                self._track(dest, True)
        if dest:
            self._forward(dest)


class ProjectWatcher:
    """
    Auto-registration daemon.

    Owns the observer, debounce timers, dedup records and in-flight
    registration tasks for one watch root. Construct it, then either
    ``await run(stop_event)`` or drive ``start()``/``stop()`` directly.
    """

    def __init__(
        self,
        settings: Settings,
        client: Optional[TrackerClient] = None,
        observer_factory: Callable[[], Observer] = Observer,
    ):
        self.settings = settings
        self.watch_root = WatchRoot.from_config(
            settings.container_watch_path, settings.host_watch_path
        )
        self.client = client or TrackerClient(
            settings.nautmanager_api_url,
            timeout=settings.api_timeout_seconds,
        )

        self.dedup = DedupStore()
        self.classifier = CandidateClassifier(self.watch_root)
        self.registrar = Registrar(self.client, self.dedup)
        self.event_handler = ProjectEventHandler(
            self.watch_root, self.dispatch, self.dispatch_directory
        )

        self._observer_factory = observer_factory
        self.observer: Optional[Observer] = None
        self.debouncer: Optional[Debouncer] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._tasks: Set[asyncio.Task] = set()
        self._watches: Dict[Path, ObservedWatch] = {}

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    @property
    def watched_directories(self) -> Set[Path]:
        """Directories below the root that currently hold a watch."""
        return set(self._watches)

    async def start(self):
        """Start watching the root. Fails if the root is not a directory."""
        root = self.watch_root.container_path
        if not root.is_dir():
            raise NotADirectoryError(f"Watch path is not a directory: {root}")

        self._loop = asyncio.get_running_loop()
        self.debouncer = Debouncer(self._on_debounced, self.settings.debounce_seconds, self._loop)

        self.observer = self._observer_factory()
        self.observer.schedule(self.event_handler, str(root), recursive=False)
        self.observer.start()
        logger.success(f"Started watching: {root}")

        existing = self._existing_projects()
        for entry in existing:
            self.watch_directory(entry)
        logger.info(f"Watching {len(self._watches)} project and docs directories")

        if self.settings.initial_scan:
            for entry in existing:
                self.notify(entry)
            logger.info(f"Initial scan queued {len(existing)} existing directories")

    def _existing_projects(self) -> list[Path]:
        return [
            entry
            for entry in sorted(self.watch_root.container_path.iterdir())
            if entry.is_dir() and self.event_handler.needs_watch(entry)
        ]

    def watch_directory(self, path: Path) -> None:
        """Add a non-recursive watch for ``path``. Loop thread only."""
        if self.observer is None or path in self._watches:
            return

        try:
            watch = self.observer.schedule(self.event_handler, str(path), recursive=False)
        except OSError as e:
            # Vanished before it could be watched, or watch limit reached.
            logger.warning(f"Could not watch {path}: {e}")
            return

        self._watches[path] = watch
        logger.debug(f"Watching directory: {path}")

        if self.watch_root.is_direct_child(path):
            docs_dir = path / DOCS_DIR_NAME
            if docs_dir.is_dir():
                self.watch_directory(docs_dir)

    def unwatch_directory(self, path: Path) -> None:
        """Drop watches for ``path`` and anything below it. Loop thread only."""
        for watched in [p for p in self._watches if p == path or path in p.parents]:
            watch = self._watches.pop(watched)
            if self.observer is None:
                continue
            try:
                self.observer.unschedule(watch)
            except KeyError:
                # Emitter already gone with its directory.
                pass
            logger.debug(f"Stopped watching directory: {watched}")

    def _call_soon(self, callback, *args) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        try:
            loop.call_soon_threadsafe(callback, *args)
        except RuntimeError:
            # Loop closed between the check and the call during shutdown.
            logger.debug(f"Dropped event after shutdown: {args}")

    def dispatch(self, path: Path) -> None:
        """Thread-safe entry point used by the observer thread."""
        self._call_soon(self.notify, path)

    def dispatch_directory(self, path: Path, present: bool) -> None:
        """Thread-safe request to add or drop a directory watch."""
        if present:
            self._call_soon(self.watch_directory, path)
        else:
            self._call_soon(self.unwatch_directory, path)

    def notify(self, path: Path) -> None:
        """Record a filesystem event for ``path``. Loop thread only."""
        if self.debouncer is not None:
            self.debouncer.touch(path)

    def _on_debounced(self, path: Path) -> None:
        task = self._loop.create_task(self._handle(path))
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.opt(exception=exc).error(f"Registration task failed: {exc}")

    async def _handle(self, path: Path):
        logger.debug(f"Handling event for: {path}")
        candidate = await self.classifier.classify(path)
        if candidate is None:
            return None
        return await self.registrar.process(candidate)

    async def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Wait until no debounce timer is armed and no task is in flight.

        Returns:
            True if idle was reached, False on timeout
        """
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout

        while (self.debouncer and self.debouncer.pending) or self._tasks:
            if deadline is not None and loop.time() >= deadline:
                return False
            if self._tasks:
                await asyncio.wait(set(self._tasks), timeout=0.05)
            else:
                await asyncio.sleep(0.05)

        return True

    async def stop(self):
        """Stop watching, drain in-flight registrations, release resources."""
        if self.observer is not None:
            self.observer.stop()
            await asyncio.to_thread(self.observer.join)
            self.observer = None
            self._watches.clear()
            logger.info("File system observer stopped")

        if self.debouncer is not None:
            self.debouncer.cancel_all()

        if self._tasks:
            grace = self.settings.shutdown_grace_seconds
            logger.info(f"Waiting up to {grace}s for {len(self._tasks)} registrations")
            _, pending = await asyncio.wait(set(self._tasks), timeout=grace)
            for task in pending:
                task.cancel()
            if pending:
                logger.warning(f"Cancelled {len(pending)} unfinished registrations")
                await asyncio.gather(*pending, return_exceptions=True)

        await self.client.close()
        self.dedup.clear()

    async def run(self, stop_event: asyncio.Event):
        """Run until ``stop_event`` is set."""
        try:
            await self.start()
            logger.info("Watcher ready.")
            await stop_event.wait()
            logger.info("Shutting down watcher...")
        finally:
            await self.stop()
        logger.info("Watcher stopped.")


def configure_logging(level: str = "INFO"):
    """Send loguru output to stdout with the service format."""
    logger.remove()
    logger.add(sys.stdout, format=LOG_FORMAT, level=level)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(
        description="Watch a projects root and register new projects with NautManager.",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Read settings from this .env file instead of ./.env.",
    )
    return parser.parse_args(argv)


def load_settings(env_file: Optional[Path] = None) -> Settings:
    if env_file is not None:
        return Settings(_env_file=env_file)
    return get_settings()


async def serve(settings: Settings) -> None:
    """Run the watcher until SIGINT or SIGTERM."""
    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, stop_event.set)
        except NotImplementedError:
            signal.signal(signum, lambda *_: loop.call_soon_threadsafe(stop_event.set))

    watcher = ProjectWatcher(settings)
    await watcher.run(stop_event)


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    configure_logging()

    try:
        settings = load_settings(args.env_file)
    except ValidationError as e:
        logger.error(
            "Invalid configuration (CONTAINER_WATCH_PATH, HOST_WATCH_PATH and "
            f"NAUTMANAGER_API_URL must be set in environment variables): {e}"
        )
        return 1

    configure_logging(settings.log_level)
    watch_root = WatchRoot.from_config(settings.container_watch_path, settings.host_watch_path)
    logger.info("Auto-Registration - Project Watcher")
    logger.info(f"Watching path inside container: {watch_root.container_path}")
    logger.info(f"Host path: {watch_root.host_path}")
    logger.info(f"API URL: {settings.nautmanager_api_url}")
    logger.info(f"Debounce time: {settings.debounce_ms}ms")

    try:
        asyncio.run(serve(settings))

    except NotADirectoryError as e:
        logger.error(str(e))
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
