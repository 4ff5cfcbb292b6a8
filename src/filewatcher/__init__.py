"""
File Watcher Package

Notifies a caller whenever files matching a glob filter change under a
watched directory, and whenever the directory itself appears or
disappears. State is persisted on stop so that changes made while the
process was not running are replayed on the next start.

Features:
- Presence watch that survives the root being deleted and recreated
- Content watch for file creation, modification, deletion and renames
- Startup reconciliation against the persisted snapshot
- One JSON state file shared by all watchers in the process
"""

from .models import (
    WatcherState,
    WatchTarget,
    Snapshot,
    SnapshotRecord,
    PersistedStore,
    FileEntry,
    DirectoryState,
    RawFSEvent,
    ChangeEvent,
    matches_filter,
)

from .config import WatcherConfig, STATE_FILE_NAME

from .exceptions import (
    WatcherError,
    StateError,
    CorruptStateError,
    WatcherNotRunningError,
    WatcherAlreadyRunningError,
)

from .store import SnapshotStore
from .reconciler import reconcile, scan_directory
from .fs_watcher import (
    FSEventHandler,
    WatchHandle,
    NotificationSource,
    WatchdogNotificationSource,
)
from .state_machine import WatcherStateMachine
from .watcher import Watcher


__all__ = [
    # Models
    "WatcherState",
    "WatchTarget",
    "Snapshot",
    "SnapshotRecord",
    "PersistedStore",
    "FileEntry",
    "DirectoryState",
    "RawFSEvent",
    "ChangeEvent",
    "matches_filter",
    # Config
    "WatcherConfig",
    "STATE_FILE_NAME",
    # Exceptions
    "WatcherError",
    "StateError",
    "CorruptStateError",
    "WatcherNotRunningError",
    "WatcherAlreadyRunningError",
    # Components
    "SnapshotStore",
    "reconcile",
    "scan_directory",
    "FSEventHandler",
    "WatchHandle",
    "NotificationSource",
    "WatchdogNotificationSource",
    "WatcherStateMachine",
    # Facade
    "Watcher",
]

__version__ = "0.1.0"
