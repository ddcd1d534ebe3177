"""Polling watch sessions that deliver batches of change events."""
from __future__ import annotations

import logging
import os
import threading
import time
from typing import Iterator, Optional, Union

from .events import Batch
from .monitor import TrackedTree

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 2.0

# How often a blocked delivery re-checks the cancel event.
_HANDOFF_POLL = 0.05


class StreamClosed(Exception):
    """Raised when reading from a stream whose session has ended."""


class BatchStream:
    """Rendezvous between a watch session and its consumer.

    A batch is handed over only when the consumer takes it; the session blocks
    until then. Once the session ends the stream is closed for good.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._pending: Optional[Batch] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    def get(self, timeout: Optional[float] = None) -> Optional[Batch]:
        """Return the next batch, or None if ``timeout`` elapses first."""

        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            while self._pending is None:
                if self._closed:
                    raise StreamClosed("watch session has ended")
                if deadline is None:
                    self._cond.wait()
                    continue
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return None
                self._cond.wait(remaining)
            batch, self._pending = self._pending, None
            self._cond.notify_all()
            return batch

    def __iter__(self) -> Iterator[Batch]:
        while True:
            try:
                batch = self.get()
            except StreamClosed:
                return
            if batch is not None:
                yield batch

    def _deliver(self, batch: Batch, cancel: threading.Event) -> bool:
        """Block until ``batch`` is taken; return False if cancelled first."""

        with self._cond:
            self._pending = batch
            self._cond.notify_all()
            while self._pending is batch:
                if cancel.is_set():
                    self._pending = None
                    return False
                self._cond.wait(_HANDOFF_POLL)
        return True

    def _close(self) -> None:
        with self._cond:
            self._closed = True
            self._pending = None
            self._cond.notify_all()


def watch(
    cancel: threading.Event,
    path: Union[str, "os.PathLike[str]"],
    recurse: bool = False,
    interval: Optional[float] = None,
) -> BatchStream:
    """Watch a file or directory for changes on a fixed interval.

    ``path`` is resolved to an absolute path and walked once before this
    function returns; a resolution or walk failure is raised here and nothing
    is watched. Links are never followed. When ``recurse`` is False only the
    immediate children of a directory are tracked.

    The returned stream first yields one batch with every tracked path marked
    as added, then one batch per tick that saw at least one change. Setting
    ``cancel`` stops the session and closes the stream; a pending batch is
    discarded rather than delivered.
    """

    if interval is None:
        interval = DEFAULT_INTERVAL
    elif interval <= 0:
        raise ValueError(f"watch: interval may not be less than or equal to zero, given {interval}")

    root = os.path.abspath(os.fspath(path))
    tree = TrackedTree(root, recursive=recurse)
    initial = tree.enumerate()

    stream = BatchStream()
    session = _Session(tree, stream, cancel, float(interval), initial)
    thread = threading.Thread(target=session.run, daemon=True, name=f"pollwatch:{root}")
    thread.start()
    logger.info("Watching %s (recursive=%s, interval=%ss)", root, recurse, interval)
    return stream


class _Session:
    """Background loop that owns a tracked tree for the lifetime of one watch."""

    def __init__(
        self,
        tree: TrackedTree,
        stream: BatchStream,
        cancel: threading.Event,
        interval: float,
        initial: Batch,
    ):
        self._tree = tree
        self._stream = stream
        self._cancel = cancel
        self._interval = interval
        self._initial = initial

    def run(self) -> None:
        try:
            self._loop()
        except Exception:
            logger.exception("Watch of %s failed", self._tree.root)
        finally:
            self._stream._close()
            stats = self._tree.stats
            logger.info(
                "Watch of %s stopped after %s scans, %s events",
                self._tree.root,
                stats.scans,
                stats.events_emitted,
            )

    def _loop(self) -> None:
        if not self._stream._deliver(self._initial, self._cancel):
            return

        next_tick = time.monotonic() + self._interval
        while not self._cancel.wait(max(next_tick - time.monotonic(), 0.0)):
            next_tick = self._advance(next_tick)
            batch = self._tree.scan()
            if not batch:
                continue
            logger.debug("Tick produced %s events for %s", len(batch), self._tree.root)
            if not self._stream._deliver(batch, self._cancel):
                return

    def _advance(self, scheduled: float) -> float:
        # Ticks missed while scanning or delivering are dropped, not replayed.
        now = time.monotonic()
        upcoming = scheduled + self._interval
        if upcoming <= now:
            missed = int((now - scheduled) // self._interval)
            upcoming = scheduled + (missed + 1) * self._interval
        return upcoming
