"""Container-to-host path translation for the watch root."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path, PurePosixPath


class PathOutsideRootError(ValueError):
    """Raised when a path does not live under the watch root."""


@dataclass(frozen=True, slots=True)
class WatchRoot:
    """The watched directory as seen inside the container and by the API."""

    container_path: Path
    host_path: str

    @classmethod
    def from_config(cls, container_path: Path | str, host_path: str) -> "WatchRoot":
        # Made absolute but not resolved, so paths reported by the observer
        # keep the same prefix as the configured root.
        container = Path(os.path.abspath(os.path.expanduser(str(container_path))))
        return cls(container_path=container, host_path=str(host_path).rstrip("/") or "/")

    def relative(self, path: Path) -> PurePosixPath:
        """Return ``path`` relative to the container root."""

        try:
            relative = Path(path).relative_to(self.container_path)
        except ValueError as exc:
            raise PathOutsideRootError(
                f"{path} is not under watch root {self.container_path}"
            ) from exc
        return PurePosixPath(*relative.parts)

    def translate(self, container_path: Path) -> str:
        """Map a container path to the host path stored by the tracking API."""

        relative = self.relative(container_path)
        return str(PurePosixPath(self.host_path).joinpath(relative))

    def is_direct_child(self, path: Path) -> bool:
        return Path(path).parent == self.container_path
