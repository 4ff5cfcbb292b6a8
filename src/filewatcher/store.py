"""JSON-file-backed store for watcher snapshots."""

import json
import logging
import os
import threading
from pathlib import Path
from typing import Optional, Union

from .config import STATE_FILE_NAME
from .exceptions import CorruptStateError
from .models import PersistedStore, Snapshot, WatchTarget

logger = logging.getLogger(__name__)

# Shared by every SnapshotStore in the process; all watchers write one file.
_SAVE_LOCK = threading.RLock()


class SnapshotStore:
    """
    Loads and saves the snapshots of all watch targets.

    Every target's snapshot lives in one state file, so saves are
    serialized by a process-wide lock. Concurrent writers in other
    processes are not coordinated.
    """

    def __init__(self, state_file: Optional[Union[str, Path]] = None):
        """
        Initialize the store.

        Args:
            state_file: Path to the JSON state file (relative paths are
                resolved against the working directory at use time)
        """
        self.state_file = Path(state_file) if state_file else Path(STATE_FILE_NAME)

    def load(self) -> PersistedStore:
        """
        Read the state file.

        Returns:
            The persisted store, empty if the file does not exist

        Raises:
            CorruptStateError: If the file exists but cannot be parsed
            OSError: If the file cannot be read
        """
        if not self.state_file.exists():
            return PersistedStore()

        try:
            text = self.state_file.read_text(encoding="utf-8")
            return PersistedStore.from_dict(json.loads(text))
        except (ValueError, KeyError, TypeError) as e:
            raise CorruptStateError(
                f"State file is corrupted: {self.state_file}: {e}",
                state_file=self.state_file,
            ) from e

    def get(self, target: WatchTarget) -> Optional[Snapshot]:
        """Get the persisted snapshot for a target, if any."""
        return self.load().get(target)

    def save(self, store: PersistedStore) -> None:
        """
        Overwrite the state file with the whole store.

        Args:
            store: Store to serialize
        """
        payload = json.dumps(store.to_dict(), ensure_ascii=False, indent=2)

        with _SAVE_LOCK:
            self.state_file.parent.mkdir(parents=True, exist_ok=True)
            tmp_file = self.state_file.with_name(self.state_file.name + ".tmp")
            try:
                tmp_file.write_text(payload, encoding="utf-8")
                os.replace(tmp_file, self.state_file)
            finally:
                tmp_file.unlink(missing_ok=True)

        logger.debug(f"Saved {len(store)} snapshot(s) to {self.state_file}")

    def upsert_and_save(self, target: WatchTarget, snapshot: Snapshot) -> None:
        """
        Replace or insert the snapshot for a target and save.

        The read-modify-write runs under the process-wide save lock, so
        saves issued by other watchers in this process are not lost.
        """
        with _SAVE_LOCK:
            store = self.load()
            store.upsert(target, snapshot)
            self.save(store)
