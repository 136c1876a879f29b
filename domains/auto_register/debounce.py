"""Per-path trailing-edge debouncing on the asyncio event loop."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Callable, Dict, Optional

from loguru import logger


class Debouncer:
    """
    Collapse bursts of events on the same path into one callback.

    Each call to :meth:`touch` (re)arms a timer for the path; the callback
    fires once the path has been quiet for ``delay`` seconds. Must only be
    used from the event loop thread.
    """

    def __init__(
        self,
        callback: Callable[[Path], None],
        delay: float,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        self._callback = callback
        self.delay = delay
        self._loop = loop
        self._timers: Dict[Path, asyncio.TimerHandle] = {}

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    @property
    def pending(self) -> int:
        return len(self._timers)

    def is_armed(self, path: Path) -> bool:
        return Path(path) in self._timers

    def deadline(self, path: Path) -> Optional[float]:
        """Loop time at which the timer for ``path`` will fire."""
        timer = self._timers.get(Path(path))
        return timer.when() if timer else None

    def touch(self, path: Path) -> None:
        """Record an event for ``path``, superseding any armed timer."""

        path = Path(path)
        previous = self._timers.pop(path, None)
        if previous is not None:
            previous.cancel()

        self._timers[path] = self.loop.call_later(self.delay, self._fire, path)

    def _fire(self, path: Path) -> None:
        self._timers.pop(path, None)
        try:
            self._callback(path)
        except Exception:
            logger.exception(f"Debounced callback failed for {path}")

    def cancel_all(self) -> None:
        """Drop every armed timer without firing it."""

        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
