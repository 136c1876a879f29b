"""In-memory gate against duplicate registration attempts."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Dict, Optional


class RecordState(str, Enum):
    IN_PROGRESS = "in-progress"
    REGISTERED = "registered"


class Outcome(str, Enum):
    """Terminal decision of one registration attempt."""

    REGISTERED = "registered"
    SKIPPED = "skipped"
    RETRY = "retry"


class DedupStore:
    """
    Records which candidate directories are in progress or registered.

    Only touched from the event loop thread, so the check-and-set in
    :meth:`try_acquire` cannot be interleaved. Records are never expired;
    they leave only through :meth:`finalize`.
    """

    def __init__(self):
        self._records: Dict[Path, RecordState] = {}

    def try_acquire(self, path: Path) -> bool:
        path = Path(path)
        if path in self._records:
            return False
        self._records[path] = RecordState.IN_PROGRESS
        return True

    def finalize(self, path: Path, outcome: Outcome) -> None:
        """Promote to registered, or release so a later event can retry."""

        path = Path(path)
        if outcome is Outcome.REGISTERED:
            self._records[path] = RecordState.REGISTERED
        else:
            self._records.pop(path, None)

    def state(self, path: Path) -> Optional[RecordState]:
        return self._records.get(Path(path))

    def clear(self) -> None:
        self._records.clear()

    def __contains__(self, path: object) -> bool:
        return isinstance(path, (str, Path)) and Path(path) in self._records

    def __len__(self) -> int:
        return len(self._records)
