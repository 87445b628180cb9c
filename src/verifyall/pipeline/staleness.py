"""Staleness gate for the incremental auxiliary check.

The gate decides whether an expensive check must run again by comparing the
modification times of a watched file set against a persisted marker. The
marker only ever holds the completion time of the last successful check.

Contents are not hashed: a file that is touched but unchanged still
triggers a recheck. A watched file whose clock is behind the marker can be
missed; both are accepted for this tool.
"""

from __future__ import annotations

import math
import os
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from verifyall.observability.logging import get_logger

if TYPE_CHECKING:
    from pathlib import Path

log = get_logger(__name__)

Clock = Callable[[], float]
MtimeLister = Callable[[], Iterable[float]]


class MarkerStore(Protocol):
    """Persistence for the marker's timestamp token."""

    def read(self) -> float | None:
        """Return the stored timestamp, or None if never written."""
        ...

    def write(self, timestamp: float) -> None:
        """Persist a new timestamp."""
        ...


class FileMarkerStore:
    """Marker kept as a small file under the build output directory.

    The file holds the timestamp as text and its mtime is set to the same
    instant. A marker created by other means (plain ``touch``) has no
    parsable content and falls back to its mtime, as does a file holding a
    non-finite value.

    Writing does not create missing parent directories: without a build
    output directory there is nothing to mark.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def read(self) -> float | None:
        try:
            text = self.path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        try:
            stamp = float(text)
        except ValueError:
            return self.path.stat().st_mtime
        if not math.isfinite(stamp):
            return self.path.stat().st_mtime
        return stamp

    def write(self, timestamp: float) -> None:
        self.path.write_text(f"{timestamp:.6f}\n", encoding="utf-8")
        os.utime(self.path, (timestamp, timestamp))


def glob_mtimes(root: Path, pattern: str) -> MtimeLister:
    """Lister yielding mtimes of files under root matching pattern, recursively."""

    def _list() -> list[float]:
        if not root.is_dir():
            return []
        return [path.stat().st_mtime for path in root.rglob(pattern) if path.is_file()]

    return _list


@dataclass(frozen=True)
class StalenessMarker:
    """A persisted timestamp plus the identity of the file set it watches."""

    store: MarkerStore
    watched_root: Path
    pattern: str = "*.py"


class StalenessGate:
    """Decide whether a gated check must run, and record successful runs.

    Both the clock and the file lister are injectable so the policy can be
    exercised without touching the filesystem.
    """

    def __init__(
        self,
        marker: StalenessMarker,
        *,
        clock: Clock = time.time,
        list_mtimes: MtimeLister | None = None,
    ) -> None:
        self.marker = marker
        self._clock = clock
        self._list_mtimes = list_mtimes or glob_mtimes(marker.watched_root, marker.pattern)

    def should_run(self) -> bool:
        """Return True if the check has never succeeded or any watched file is newer."""
        stamp = self.marker.store.read()
        if stamp is None:
            log.debug("marker_absent", watched=str(self.marker.watched_root))
            return True

        newer = sum(1 for mtime in self._list_mtimes() if mtime > stamp)
        log.debug(
            "staleness_checked",
            watched=str(self.marker.watched_root),
            marker=stamp,
            newer_files=newer,
        )
        return newer > 0

    def commit(self) -> float:
        """Record a successful check at the current time.

        Must only be called after the gated check completed without error.

        Returns:
            The timestamp written.

        Raises:
            OSError: If the marker cannot be persisted.
        """
        now = self._clock()
        self.marker.store.write(now)
        log.info("marker_committed", watched=str(self.marker.watched_root), timestamp=now)
        return now
