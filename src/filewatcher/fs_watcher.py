"""Directory notification sources built on the watchdog library."""

import logging
import threading
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Optional

from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver
from watchdog.observers.polling import PollingObserver
from watchdog.events import (
    FileSystemEventHandler,
    DirCreatedEvent,
    DirDeletedEvent,
    DirModifiedEvent,
    DirMovedEvent,
)

from .config import WatcherConfig
from .models import RawFSEvent, matches_filter

logger = logging.getLogger(__name__)

EventCallback = Callable[[RawFSEvent], None]


class FSEventHandler(FileSystemEventHandler):
    """
    Handler that converts watchdog events to RawFSEvent.

    Delivery can be switched off and on. Switching it off waits for a
    callback already running on the observer thread to return, so no
    event is delivered once disable() has returned.
    """

    def __init__(
        self,
        callback: EventCallback,
        accept: Optional[Callable[[RawFSEvent], bool]] = None,
    ):
        super().__init__()
        self.callback = callback
        self.accept = accept
        self._enabled = True
        self._lock = threading.RLock()

    @property
    def enabled(self) -> bool:
        return self._enabled

    def enable(self) -> None:
        with self._lock:
            self._enabled = True

    def disable(self) -> None:
        with self._lock:
            self._enabled = False

    def _emit(self, event_type: str, src_path: Path, dest_path: Optional[Path] = None, is_directory: bool = False):
        """Emit a RawFSEvent to the callback."""
        raw_event = RawFSEvent(
            event_type=event_type,
            src_path=src_path,
            dest_path=dest_path,
            is_directory=is_directory,
            timestamp=time.time(),
        )
        if self.accept is not None and not self.accept(raw_event):
            return

        with self._lock:
            if not self._enabled:
                return
            logger.debug(f"{event_type}: {src_path}" + (f" -> {dest_path}" if dest_path else ""))
            self.callback(raw_event)

    def on_created(self, event):
        is_dir = isinstance(event, DirCreatedEvent)
        self._emit("created", Path(event.src_path), is_directory=is_dir)

    def on_deleted(self, event):
        is_dir = isinstance(event, DirDeletedEvent)
        self._emit("deleted", Path(event.src_path), is_directory=is_dir)

    def on_modified(self, event):
        is_dir = isinstance(event, DirModifiedEvent)
        self._emit("modified", Path(event.src_path), is_directory=is_dir)

    def on_moved(self, event):
        is_dir = isinstance(event, DirMovedEvent)
        self._emit(
            "moved",
            Path(event.src_path),
            Path(event.dest_path),
            is_directory=is_dir,
        )


class WatchHandle:
    """
    One active watch: an event handler and the observer feeding it.

    A handle without an observer is driven directly through its handler,
    which lets other notification backends reuse it.
    """

    def __init__(
        self,
        handler: FSEventHandler,
        path: Path,
        observer: Optional[BaseObserver] = None,
        join_timeout_s: float = 5.0,
    ):
        self.handler = handler
        self.path = path
        self.observer = observer
        self.join_timeout_s = join_timeout_s
        self._closed = False

    @property
    def enabled(self) -> bool:
        return not self._closed and self.handler.enabled

    @property
    def closed(self) -> bool:
        return self._closed

    def enable(self) -> None:
        if not self._closed:
            self.handler.enable()

    def disable(self) -> None:
        self.handler.disable()

    def close(self) -> None:
        """Stop delivery, then stop and join the observer."""
        if self._closed:
            return
        self._closed = True
        self.handler.disable()

        if self.observer is not None:
            self.observer.stop()
            if self.observer is not threading.current_thread():
                self.observer.join(timeout=self.join_timeout_s)


class NotificationSource(ABC):
    """Capability to watch directories for changes."""

    @abstractmethod
    def watch_presence(self, directory: Path, callback: EventCallback) -> WatchHandle:
        """
        Watch for creation, deletion and renames of a directory.

        The returned watch covers an ancestor recursively, so the callback
        also receives events for unrelated entries and must filter them.

        Args:
            directory: Absolute path of the directory whose presence to track
            callback: Receives raw events; delivery starts enabled
        """

    @abstractmethod
    def watch_content(self, directory: Path, pattern: str, callback: EventCallback) -> WatchHandle:
        """
        Watch a directory non-recursively for file changes.

        Only files whose name (old or new, for renames) matches the glob
        pattern are reported.

        Args:
            directory: Existing directory to watch
            pattern: Glob filter such as ``*.txt``
            callback: Receives raw events; delivery starts enabled
        """


def content_filter(pattern: str) -> Callable[[RawFSEvent], bool]:
    """Build the accept predicate for a content watch."""

    def accept(raw_event: RawFSEvent) -> bool:
        if raw_event.is_directory:
            return False
        if matches_filter(raw_event.src_path.name, pattern):
            return True
        return raw_event.dest_path is not None and matches_filter(raw_event.dest_path.name, pattern)

    return accept


class WatchdogNotificationSource(NotificationSource):
    """
    Notification source backed by watchdog observers.

    Each watch gets its own observer so that closing one never affects
    another watch scheduled on the same path.
    """

    def __init__(self, config: Optional[WatcherConfig] = None):
        self.config = config or WatcherConfig()

    def _new_observer(self) -> BaseObserver:
        if self.config.use_polling:
            return PollingObserver(timeout=self.config.polling_interval_ms / 1000.0)
        return Observer()

    def _start(self, handler: FSEventHandler, path: Path, recursive: bool) -> WatchHandle:
        observer = self._new_observer()
        observer.schedule(handler, str(path), recursive=recursive)
        observer.start()
        logger.debug(f"Observer started on {path} (recursive={recursive})")
        return WatchHandle(handler, path, observer, self.config.join_timeout_s)

    def watch_presence(self, directory: Path, callback: EventCallback) -> WatchHandle:
        parent = self.config.get_presence_root(directory)
        return self._start(FSEventHandler(callback), parent, recursive=True)

    def watch_content(self, directory: Path, pattern: str, callback: EventCallback) -> WatchHandle:
        handler = FSEventHandler(callback, accept=content_filter(pattern))
        return self._start(handler, directory, recursive=False)
