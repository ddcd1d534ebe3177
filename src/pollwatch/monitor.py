"""Tracked-set bookkeeping and the polling diff scan."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from .events import Batch, ChangeEvent, ChangeKind, FileInfo

logger = logging.getLogger(__name__)

Snapshot = Dict[str, FileInfo]

# Stat failures that mean the path is gone rather than unreadable.
_MISSING_ERRORS = (FileNotFoundError, NotADirectoryError)


@dataclass
class WatchStats:
    """Counters kept by a tracked tree for observability."""

    scans: int = 0
    events_emitted: int = 0


class TrackedTree:
    """The set of watched paths and their last observed metadata.

    A tree is owned by exactly one watch session; nothing outside the scanning
    thread reads or mutates it.
    """

    def __init__(self, root: str, *, recursive: bool):
        self._root = root
        self._recursive = recursive
        self._snapshot: Snapshot = {}
        self._stats = WatchStats()

    @property
    def root(self) -> str:
        return self._root

    @property
    def recursive(self) -> bool:
        return self._recursive

    @property
    def stats(self) -> WatchStats:
        return self._stats

    def __len__(self) -> int:
        return len(self._snapshot)

    def __contains__(self, path: object) -> bool:
        return path in self._snapshot

    def get(self, path: str) -> Optional[FileInfo]:
        return self._snapshot.get(path)

    def enumerate(self) -> Batch:
        """Walk the root once and return an ``ADDED`` event for every path found.

        Any error aborts the walk and leaves the tree empty.
        """

        found: Snapshot = {}
        for path, info in _walk(self._root, self._should_descend):
            found[path] = info
        self._snapshot = found
        logger.debug("Enumerated %s paths under %s", len(found), self._root)
        events = tuple(
            ChangeEvent(kind=ChangeKind.ADDED, path=path, previous=info)
            for path, info in found.items()
        )
        self._stats.events_emitted += len(events)
        return events

    def scan(self) -> Batch:
        """Re-stat every tracked path and return the events found in this pass."""

        events: List[ChangeEvent] = []
        for path, prev in list(self._snapshot.items()):
            try:
                st = os.lstat(path)
            except _MISSING_ERRORS as exc:
                del self._snapshot[path]
                events.append(ChangeEvent(kind=ChangeKind.REMOVED, path=path, previous=prev, error=exc))
                continue
            except OSError as exc:
                logger.warning("Unable to stat %s: %s", path, exc)
                events.append(ChangeEvent(kind=ChangeKind.ERRORED, path=path, previous=prev, error=exc))
                continue

            current = FileInfo.from_stat(path, st)
            if not current.differs_from(prev):
                continue
            self._snapshot[path] = current

            error: Optional[OSError] = None
            discovered: List[ChangeEvent] = []
            if current.is_dir:
                error = self._discover(path, discovered)
            events.append(
                ChangeEvent(kind=ChangeKind.CHANGED, path=path, previous=prev, current=current, error=error)
            )
            events.extend(discovered)

        self._stats.scans += 1
        self._stats.events_emitted += len(events)
        return tuple(events)

    def _discover(self, directory: str, discovered: List[ChangeEvent]) -> Optional[OSError]:
        try:
            for path, info in _walk(directory, self._should_descend):
                if path in self._snapshot:
                    continue
                self._snapshot[path] = info
                discovered.append(ChangeEvent(kind=ChangeKind.ADDED, path=path, previous=info))
                logger.debug("Discovered %s", path)
        except OSError as exc:
            logger.warning("Discovery walk of %s failed: %s", directory, exc)
            return exc
        return None

    def _should_descend(self, path: str) -> bool:
        return self._recursive or path == self._root


def _walk(top: str, should_descend: Callable[[str], bool]) -> Iterator[Tuple[str, FileInfo]]:
    """Yield ``top`` and its descendants depth-first without following links.

    Children are visited in sorted order. A directory for which
    ``should_descend`` returns False is yielded but not listed.
    """

    st = os.lstat(top)
    info = FileInfo.from_stat(top, st)
    yield top, info
    if not info.is_dir or not should_descend(top):
        return
    for name in sorted(os.listdir(top)):
        yield from _walk(os.path.join(top, name), should_descend)
