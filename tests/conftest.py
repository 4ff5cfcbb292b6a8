"""Shared fixtures for watcher tests."""

from pathlib import Path
from typing import List

import pytest

from src.filewatcher.fs_watcher import (
    FSEventHandler,
    NotificationSource,
    WatchHandle,
    content_filter,
)


class FakeNotificationSource(NotificationSource):
    """
    Notification source without observers.

    Tests feed watchdog events straight into the handlers with
    ``handle.handler.dispatch(event)``.
    """

    def __init__(self):
        self.presence_handles: List[WatchHandle] = []
        self.content_handles: List[WatchHandle] = []

    def watch_presence(self, directory: Path, callback) -> WatchHandle:
        handle = WatchHandle(FSEventHandler(callback), directory.parent)
        self.presence_handles.append(handle)
        return handle

    def watch_content(self, directory: Path, pattern: str, callback) -> WatchHandle:
        handle = WatchHandle(FSEventHandler(callback, accept=content_filter(pattern)), directory)
        self.content_handles.append(handle)
        return handle

    @property
    def presence(self) -> WatchHandle:
        return self.presence_handles[-1]

    @property
    def content(self) -> WatchHandle:
        return self.content_handles[-1]


class Recorder:
    """Collects (root, name) callback invocations."""

    def __init__(self):
        self.calls = []

    def __call__(self, root: str, name: str) -> None:
        self.calls.append((root, name))

    @property
    def names(self) -> List[str]:
        return [name for _, name in self.calls]


@pytest.fixture
def fake_source():
    return FakeNotificationSource()


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def root(tmp_path):
    """Watched root directory (not created)."""
    return tmp_path / "watched"
