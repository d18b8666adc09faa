"""Shared fakes for the homewatch tests."""

import errno
import os
from pathlib import Path

import pytest
from inotify_simple import Event

from src.homewatch.connection import BaseConnection
from src.homewatch.models import ScanOutcome
from src.homewatch.scanner import BaseScanner


class FakeINotify:
    """
    Stand-in for inotify_simple.INotify.

    Hands out descriptors per path, records calls, and exposes a pipe as
    its file descriptor so it can be used with select().
    """

    def __init__(self, fail_paths=()):
        self.fail_paths = {str(p) for p in fail_paths}
        self.watches = {}
        self.added = []
        self.removed = []
        self._by_path = {}
        self._next_wd = 1
        self._events = []
        self._r, self._w = os.pipe()
        os.set_blocking(self._r, False)
        self.closed = False

    def add_watch(self, path, mask):
        path = str(path)
        if path in self.fail_paths:
            raise PermissionError(errno.EACCES, "Permission denied", path)
        self.added.append(path)
        if path in self._by_path:
            return self._by_path[path]
        wd = self._next_wd
        self._next_wd += 1
        self.watches[wd] = path
        self._by_path[path] = wd
        return wd

    def rm_watch(self, wd):
        if wd not in self.watches:
            raise OSError(errno.EINVAL, "Invalid argument")
        path = self.watches.pop(wd)
        if self._by_path.get(path) == wd:
            del self._by_path[path]
        self.removed.append(wd)

    def recreate(self, path):
        """Simulate a new directory (new inode) appearing at a watched path."""
        self._by_path.pop(str(path), None)

    def push(self, *events):
        """Queue events and make fileno() readable."""
        self._events.extend(events)
        os.write(self._w, b"x")

    def fileno(self):
        return self._r

    def read(self, timeout=None, read_delay=None):
        try:
            while os.read(self._r, 512):
                pass
        except BlockingIOError:
            pass
        events, self._events = self._events, []
        return events

    def close(self):
        if self.closed:
            return
        self.closed = True
        os.close(self._r)
        os.close(self._w)


class FakeConnection(BaseConnection):
    """Connection whose next `failures` connect() calls raise."""

    def __init__(self, failures: int = 0):
        self.failures = failures
        self.connected = False
        self.connect_calls = 0
        self.close_calls = 0

    def connect(self):
        self.connect_calls += 1
        if self.failures > 0:
            self.failures -= 1
            raise ConnectionError("database unreachable")
        self.connected = True

    def close(self):
        self.close_calls += 1
        self.connected = False

    def is_connected(self):
        return self.connected


class RecordingScanner(BaseScanner):
    """Scanner that records every call and returns a scripted outcome."""

    def __init__(self, outcome=ScanOutcome.SUCCESS, outcomes=None):
        self.outcome = outcome
        self.outcomes = outcomes or {}
        self.calls = []

    def scan(self, identity, relative_path, recursive=False, lock=None):
        self.calls.append((identity, relative_path))
        result = self.outcomes.get(relative_path, self.outcome)
        if isinstance(result, Exception):
            raise result
        return result


def make_event(wd, mask, name="", cookie=0):
    """Build an inotify_simple.Event."""
    return Event(wd=wd, mask=int(mask), cookie=cookie, name=name)


@pytest.fixture
def fake_inotify():
    inotify = FakeINotify()
    yield inotify
    inotify.close()


@pytest.fixture
def data_dir(tmp_path) -> Path:
    """Data directory with alice and bob, each owning a files/ directory."""
    root = tmp_path.resolve() / "home"
    (root / "alice" / "files").mkdir(parents=True)
    (root / "bob" / "files").mkdir(parents=True)
    return root
