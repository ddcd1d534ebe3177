"""Shared fixtures for the pollwatch test suite."""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass
from pathlib import Path

import pytest


@dataclass
class SampleTree:
    """Paths of a small directory tree: root/temp1 and root/sub/temp2."""

    root: Path
    sub: Path
    temp1: Path
    temp2: Path


@pytest.fixture
def sample_tree(tmp_path: Path) -> SampleTree:
    root = tmp_path / "root"
    sub = root / "sub"
    sub.mkdir(parents=True)
    temp1 = root / "temp1"
    temp2 = sub / "temp2"
    temp1.touch()
    temp2.touch()
    return SampleTree(root=root, sub=sub, temp1=temp1, temp2=temp2)


@pytest.fixture
def cancel():
    """A cancel event that is always set when the test finishes."""
    event = threading.Event()
    yield event
    event.set()


@pytest.fixture
def bump_mtime():
    """Push a path's mtime forward so coarse timestamp clocks still register a change."""

    def _bump(path: Path, seconds: float = 5.0) -> None:
        st = os.lstat(path)
        bumped = st.st_mtime_ns + int(seconds * 1e9)
        os.utime(path, ns=(st.st_atime_ns, bumped), follow_symlinks=False)

    return _bump
