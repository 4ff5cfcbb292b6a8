"""State machine that swaps between presence and content watches."""

import logging
import threading
from pathlib import Path
from typing import Callable, Optional

from .exceptions import WatcherAlreadyRunningError
from .fs_watcher import NotificationSource, WatchHandle
from .models import ChangeEvent, RawFSEvent, WatcherState, WatchTarget

logger = logging.getLogger(__name__)


class WatcherStateMachine:
    """
    Tracks whether a watched root exists and keeps the matching watches.

    In AWAITING_DIRECTORY only the presence watch is active. In WATCHING a
    content watch on the root is active as well. Transitions run under a
    per-instance lock with presence delivery switched off, so no event is
    emitted or lost while the watches are reconfigured.
    """

    def __init__(
        self,
        target: WatchTarget,
        source: NotificationSource,
        on_change: Callable[[ChangeEvent], None],
    ):
        """
        Initialize the state machine.

        Args:
            target: Watch target (root path and filter)
            source: Notification source providing the watches
            on_change: Receives caller-facing change events
        """
        self.target = target
        self.source = source
        self.on_change = on_change

        self._root = target.directory
        self._state: Optional[WatcherState] = None
        self._presence: Optional[WatchHandle] = None
        self._content: Optional[WatchHandle] = None
        self._lock = threading.RLock()

    @property
    def state(self) -> Optional[WatcherState]:
        """Current state, or None while disarmed."""
        return self._state

    @property
    def is_armed(self) -> bool:
        return self._presence is not None

    @property
    def content_armed(self) -> bool:
        """Whether a content watch exists and is delivering events."""
        content = self._content
        return content is not None and content.enabled

    def arm(self) -> WatcherState:
        """
        Open the watches for the root's current state.

        Returns:
            The initial state

        Raises:
            WatcherAlreadyRunningError: If already armed
        """
        with self._lock:
            if self._presence is not None:
                raise WatcherAlreadyRunningError(f"Already watching {self.target.path}")

            self._presence = self.source.watch_presence(self._root, self._on_presence_event)

            if self._root.is_dir():
                self._content = self._open_content_watch()
                self._state = WatcherState.WATCHING
            else:
                self._state = WatcherState.AWAITING_DIRECTORY

            logger.info(f"Watching {self.target.path} ({self.target.filter}): {self._state.value}")
            return self._state

    def disarm(self) -> None:
        """
        Close all watches.

        No change event is delivered once this returns.
        """
        presence = self._presence
        if presence is not None:
            # Outside the lock: a presence callback may be waiting for it.
            presence.disable()

        with self._lock:
            content = self._content
            if content is not None:
                content.disable()
            self._presence = None
            self._content = None
            self._state = None

        for handle in (presence, content):
            if handle is not None:
                handle.close()

        logger.info(f"Stopped watching {self.target.path}")

    def _open_content_watch(self) -> WatchHandle:
        return self.source.watch_content(self._root, self.target.filter, self._on_content_event)

    def _close_content_watch(self) -> None:
        if self._content is not None:
            self._content.close()
            self._content = None

    def _emit(self, name: str, is_directory: bool = False) -> None:
        event = ChangeEvent(root=self.target.path, name=name, is_directory=is_directory)
        try:
            self.on_change(event)
        except Exception:
            logger.exception(f"Change callback failed for {self.target.path}: {name}")

    def _on_presence_event(self, raw_event: RawFSEvent) -> None:
        if raw_event.event_type == "created":
            self._on_path_created(raw_event.src_path, renamed=False)
        elif raw_event.event_type == "deleted":
            self._on_path_deleted()
        elif raw_event.event_type == "moved":
            self._on_path_renamed(raw_event.src_path, raw_event.dest_path)

    def _on_path_created(self, path: Optional[Path], renamed: bool) -> None:
        if path is None or not self.target.is_root(path):
            return

        with self._lock:
            if self._presence is None:
                return
            if not renamed and self._state is not WatcherState.AWAITING_DIRECTORY:
                return
            # A regular file at the root path is not the directory.
            if not self._root.is_dir():
                return

            self._presence.disable()
            try:
                content = self._open_content_watch()
            except OSError as e:
                logger.warning(f"Cannot watch {self.target.path} after it appeared: {e}")
                self._presence.enable()
                return

            self._close_content_watch()
            self._content = content
            self._state = WatcherState.WATCHING
            self._presence.enable()

            logger.info(f"Directory appeared: {self.target.path}")
            self._emit(self.target.name, is_directory=True)

    def _on_path_deleted(self) -> None:
        with self._lock:
            if self._presence is None or self._state is not WatcherState.WATCHING:
                return
            if self._root.exists():
                return

            self._presence.disable()
            self._close_content_watch()
            self._state = WatcherState.AWAITING_DIRECTORY
            self._presence.enable()

            logger.info(f"Directory disappeared: {self.target.path}")
            self._emit(self.target.name, is_directory=True)

    def _on_path_renamed(self, old_path: Path, new_path: Optional[Path]) -> None:
        if not self.target.is_root(old_path):
            self._on_path_created(new_path, renamed=True)
            return

        # TODO: decide whether a rename away should also switch to
        # AWAITING_DIRECTORY; until then the content watch stays disabled.
        with self._lock:
            if self._presence is None:
                return
            logger.info(f"Directory renamed away: {self.target.path} -> {new_path}")
            self._emit(old_path.name, is_directory=True)
            if self._content is not None:
                self._content.disable()

    def _on_content_event(self, raw_event: RawFSEvent) -> None:
        # Renames report the old name only.
        self._emit(raw_event.src_path.name)
