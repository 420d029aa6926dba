"""Shared fixtures for the test suite."""
from __future__ import annotations

import tarfile
import threading
import time
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

import pytest

from cloner.client import CloneError
from models.repository import Credentials


class FakeAdapter:
    """Thread-safe stand-in for ClientAdapter that never touches the network.

    Successful clones create ``destination/HEAD`` so the staging tree looks
    like a (tiny) bare repository.
    """

    def __init__(self, failing: Iterable[str] = (), delay: float = 0.0) -> None:
        self.failing = set(failing)
        self.delay = delay
        self.calls: List[Tuple[str, Path, Optional[Credentials]]] = []
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def clone(self, url: str, destination: Path, credentials: Optional[Credentials] = None) -> None:
        with self._lock:
            self.calls.append((url, Path(destination), credentials))
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                time.sleep(self.delay)
            if url in self.failing:
                raise CloneError(url, destination, "repository not found")
            destination = Path(destination)
            destination.mkdir(parents=True)
            (destination / "HEAD").write_text("ref: refs/heads/main\n")
        finally:
            with self._lock:
                self.active -= 1


@pytest.fixture
def fake_adapter() -> FakeAdapter:
    """Adapter where every clone succeeds."""
    return FakeAdapter()


@pytest.fixture
def make_adapter():
    """Factory for adapters with failing URLs or an artificial delay."""
    return FakeAdapter


@pytest.fixture
def archive_members():
    """Return a reader for the member names of an archive file."""

    def _read(path: Path) -> List[str]:
        with tarfile.open(path, mode="r:*") as tar:
            return tar.getnames()

    return _read
