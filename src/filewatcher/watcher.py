"""Watcher facade wiring the store, reconciliation and state machine."""

import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional, Union

from .config import WatcherConfig
from .exceptions import WatcherAlreadyRunningError, WatcherNotRunningError
from .fs_watcher import NotificationSource, WatchdogNotificationSource
from .models import ChangeEvent, Snapshot, WatcherState, WatchTarget
from .reconciler import reconcile, scan_directory
from .state_machine import WatcherStateMachine
from .store import SnapshotStore

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[str, str], None]


class Watcher:
    """
    Watches one directory for file changes and survives restarts.

    On start, changes made while the process was not running are replayed
    from the snapshot persisted by the previous stop. Live changes are
    then reported as they happen. Each change is reported to the callback
    as ``(root_path, name)``.

    Example:
        watcher = Watcher("App_Data/Files", "*.txt", print)
        watcher.start()
        ...
        watcher.stop()
    """

    def __init__(
        self,
        path: Union[str, Path],
        filter: str = "*",
        on_change: Optional[ChangeCallback] = None,
        config: Optional[WatcherConfig] = None,
        source: Optional[NotificationSource] = None,
        store: Optional[SnapshotStore] = None,
    ):
        """
        Initialize the watcher.

        Args:
            path: Directory to watch; it does not need to exist yet
            filter: Glob pattern selecting the reported files
            on_change: Callback receiving (root_path, name)
            config: Watcher configuration
            source: Notification source (defaults to watchdog observers)
            store: Snapshot store (defaults to the configured state file)
        """
        self.config = config or WatcherConfig()
        self.target = WatchTarget(str(path), filter)
        self.on_change = on_change

        self._store = store or SnapshotStore(self.config.get_state_file())
        self._source = source or WatchdogNotificationSource(self.config)
        self._machine = WatcherStateMachine(self.target, self._source, self._deliver)

        self._started = False
        self._stopped = False
        self._lock = threading.Lock()

    @property
    def state(self) -> Optional[WatcherState]:
        return self._machine.state

    @property
    def store(self) -> SnapshotStore:
        return self._store

    @property
    def is_running(self) -> bool:
        return self._started and not self._stopped

    def _deliver(self, event: ChangeEvent) -> None:
        if self.on_change is not None:
            self.on_change(event.root, event.name)

    def start(self) -> List[ChangeEvent]:
        """
        Replay missed changes, then start watching.

        Returns:
            The change events synthesized from the previous snapshot

        Raises:
            WatcherAlreadyRunningError: If start() was already called
            CorruptStateError: If the state file cannot be parsed
        """
        with self._lock:
            if self._started:
                raise WatcherAlreadyRunningError(f"Watcher already started: {self.target.path}")
            self._started = True

        try:
            snapshot = self._store.get(self.target)
            missed = reconcile(self.target, snapshot, scan_directory(self.target))
            for event in missed:
                self._deliver(event)
            self._machine.arm()
        except Exception:
            with self._lock:
                self._started = False
            raise

        return missed

    def stop(self) -> None:
        """
        Stop watching and persist the current state.

        Calling stop() again is a no-op.

        Raises:
            WatcherNotRunningError: If the watcher was never started
        """
        with self._lock:
            if not self._started:
                raise WatcherNotRunningError(f"Watcher not started: {self.target.path}")
            if self._stopped:
                return
            self._stopped = True

        self._machine.disarm()
        self.save_state_only()

    def save_state_only(self) -> Snapshot:
        """
        Persist a fresh snapshot without stopping.

        Used by failure handlers to checkpoint state before exiting.

        Returns:
            The snapshot that was saved
        """
        taken_at = datetime.now(timezone.utc)
        snapshot = scan_directory(self.target).to_snapshot(taken_at)
        self._store.upsert_and_save(self.target, snapshot)
        logger.debug(
            f"Saved state for {self.target.path}: "
            f"exists={snapshot.path_exists}, files={len(snapshot.file_names)}"
        )
        return snapshot

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False
