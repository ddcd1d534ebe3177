"""End-to-end tests for watch sessions running on a background thread."""

from __future__ import annotations

import os
import threading
import time

import pytest

from pollwatch.watcher import BatchStream, StreamClosed, watch

INTERVAL = 0.02
TIMEOUT = 5.0


def _paths(batch):
    return {event.path for event in batch}


def _wait_closed(stream: BatchStream, timeout: float = TIMEOUT) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if stream.closed:
            return True
        time.sleep(0.01)
    return stream.closed


@pytest.mark.parametrize("interval", [0, -1.0])
def test_rejects_non_positive_interval(sample_tree, cancel, interval):
    before = threading.active_count()

    with pytest.raises(ValueError):
        watch(cancel, sample_tree.root, True, interval)
    assert threading.active_count() <= before


def test_missing_path_fails_synchronously(tmp_path, cancel):
    before = threading.active_count()

    with pytest.raises(FileNotFoundError):
        watch(cancel, tmp_path / "absent", True, INTERVAL)
    assert threading.active_count() <= before


def test_initial_batch_marks_every_path_added(sample_tree, cancel):
    stream = watch(cancel, sample_tree.root, True, INTERVAL)

    initial = stream.get(timeout=TIMEOUT)

    assert initial is not None
    assert _paths(initial) == {
        str(sample_tree.root),
        str(sample_tree.sub),
        str(sample_tree.temp1),
        str(sample_tree.temp2),
    }
    assert all(event.was_added for event in initial)


def test_relative_path_is_resolved(sample_tree, cancel, monkeypatch):
    monkeypatch.chdir(sample_tree.root)
    stream = watch(cancel, "temp1", False, INTERVAL)

    initial = stream.get(timeout=TIMEOUT)

    assert _paths(initial) == {os.path.join(os.getcwd(), "temp1")}


def test_idle_ticks_deliver_nothing(sample_tree, cancel):
    stream = watch(cancel, sample_tree.root, True, INTERVAL)
    assert stream.get(timeout=TIMEOUT) is not None

    assert stream.get(timeout=INTERVAL * 10) is None


def test_file_write_is_delivered(sample_tree, cancel):
    stream = watch(cancel, sample_tree.root, True, INTERVAL)
    assert stream.get(timeout=TIMEOUT) is not None

    with open(sample_tree.temp1, "a") as fh:
        fh.write("foo")

    batch = stream.get(timeout=TIMEOUT)
    assert batch is not None
    assert len(batch) == 1
    assert batch[0].path == str(sample_tree.temp1)
    assert batch[0].current.size == 3


def test_file_addition_is_delivered(sample_tree, cancel, bump_mtime):
    stream = watch(cancel, sample_tree.root, True, INTERVAL)
    assert stream.get(timeout=TIMEOUT) is not None

    temp3 = sample_tree.sub / "temp3"
    temp3.touch()
    bump_mtime(sample_tree.sub)

    batch = stream.get(timeout=TIMEOUT)
    assert batch is not None
    events = {event.path: event for event in batch}
    assert set(events) == {str(sample_tree.sub), str(temp3)}
    assert events[str(temp3)].was_added


def test_file_deletion_is_delivered_once(sample_tree, cancel):
    stream = watch(cancel, sample_tree.root, True, INTERVAL)
    assert stream.get(timeout=TIMEOUT) is not None

    sample_tree.temp2.unlink()

    batch = stream.get(timeout=TIMEOUT)
    assert batch is not None
    removed = [event for event in batch if event.path == str(sample_tree.temp2)]
    assert len(removed) == 1 and removed[0].was_removed

    sample_tree.temp1.write_text("later")
    later = stream.get(timeout=TIMEOUT)
    while later is not None and str(sample_tree.temp1) not in _paths(later):
        assert str(sample_tree.temp2) not in _paths(later)
        later = stream.get(timeout=TIMEOUT)
    assert later is not None
    assert str(sample_tree.temp2) not in _paths(later)


def test_cancel_closes_stream(sample_tree, cancel):
    stream = watch(cancel, sample_tree.root, True, INTERVAL)
    assert stream.get(timeout=TIMEOUT) is not None

    cancel.set()

    assert _wait_closed(stream)
    with pytest.raises(StreamClosed):
        stream.get(timeout=TIMEOUT)
    assert list(stream) == []


def test_cancel_discards_undelivered_batch(sample_tree, cancel):
    stream = watch(cancel, sample_tree.root, True, INTERVAL)
    assert stream.get(timeout=TIMEOUT) is not None

    sample_tree.temp1.write_text("pending")
    time.sleep(INTERVAL * 10)
    cancel.set()

    assert _wait_closed(stream)
    with pytest.raises(StreamClosed):
        stream.get()


def test_cancel_before_initial_delivery(sample_tree):
    cancel = threading.Event()
    cancel.set()

    stream = watch(cancel, sample_tree.root, True, INTERVAL)

    assert _wait_closed(stream)
    assert list(stream) == []


def test_iteration_ends_after_cancel(sample_tree, cancel):
    stream = watch(cancel, sample_tree.root, True, INTERVAL)
    received = []

    def consume():
        for batch in stream:
            received.append(batch)
            cancel.set()

    consumer = threading.Thread(target=consume)
    consumer.start()
    consumer.join(TIMEOUT)

    assert not consumer.is_alive()
    assert len(received) == 1
