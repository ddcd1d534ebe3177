"""Event models shared between the scanner and the watch loop."""
from __future__ import annotations

import os
import stat
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


class ChangeKind(str, Enum):
    """Types of filesystem changes reported by a scan pass."""

    ADDED = "added"
    REMOVED = "removed"
    CHANGED = "changed"
    ERRORED = "errored"


@dataclass(frozen=True)
class FileInfo:
    """Metadata observed for a single path at one point in time."""

    name: str
    size: int
    mtime_ns: int
    mode: int

    @classmethod
    def from_stat(cls, path: str, st: os.stat_result) -> "FileInfo":
        return cls(
            name=os.path.basename(path) or path,
            size=st.st_size,
            mtime_ns=st.st_mtime_ns,
            mode=st.st_mode,
        )

    @property
    def is_dir(self) -> bool:
        return stat.S_ISDIR(self.mode)

    @property
    def mtime(self) -> float:
        return self.mtime_ns / 1e9

    def differs_from(self, other: "FileInfo") -> bool:
        """Return True when this snapshot is newer or a different size than ``other``."""

        return self.mtime_ns > other.mtime_ns or self.size != other.size


@dataclass(frozen=True)
class ChangeEvent:
    """A single change observed for a tracked path.

    ``previous`` always carries metadata: the last known snapshot for changes
    and removals, or the freshly observed one for additions. ``current`` is
    only set for in-place changes.
    """

    kind: ChangeKind
    path: str
    previous: FileInfo
    current: Optional[FileInfo] = None
    error: Optional[BaseException] = None

    @property
    def was_added(self) -> bool:
        return self.kind is ChangeKind.ADDED

    @property
    def was_removed(self) -> bool:
        # A failed stat is reported as a removal even when the path stays tracked.
        return self.kind in (ChangeKind.REMOVED, ChangeKind.ERRORED)


Batch = Tuple[ChangeEvent, ...]
