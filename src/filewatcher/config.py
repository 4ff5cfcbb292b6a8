"""Configuration for the file watcher package."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


STATE_FILE_NAME = "FileWatcherStateData.json"


@dataclass
class WatcherConfig:
    """
    Configuration options for the file watcher.

    Attributes:
        state_file: JSON file holding snapshots of every watched path
        state_file_env: Environment variable that overrides state_file
        presence_root: Directory watched recursively for the root's
            appearance and disappearance (default: nearest existing
            ancestor of the root's parent)
        use_polling: Use watchdog's polling observer instead of the
            native one
        polling_interval_ms: Interval between polls when use_polling is set
        join_timeout_s: Seconds to wait for an observer thread on shutdown
    """
    state_file: Path = field(default_factory=lambda: Path(STATE_FILE_NAME))
    state_file_env: str = "FILEWATCHER_STATE_FILE"
    presence_root: Optional[Path] = None
    use_polling: bool = False
    polling_interval_ms: int = 1000
    join_timeout_s: float = 5.0

    def __post_init__(self):
        if isinstance(self.state_file, str):
            self.state_file = Path(self.state_file)
        if isinstance(self.presence_root, str):
            self.presence_root = Path(self.presence_root)

    def get_state_file(self) -> Path:
        """Get the state file path from the environment or config."""
        override = os.environ.get(self.state_file_env)
        if override:
            return Path(override)
        return self.state_file

    def get_presence_root(self, directory: Path) -> Path:
        """
        Get the directory to watch for the presence of a root.

        Args:
            directory: Absolute path of the watched root

        Returns:
            The configured presence root, or the nearest existing
            ancestor of the root's parent
        """
        if self.presence_root is not None:
            return self.presence_root.resolve()

        candidate = directory.parent
        while not candidate.is_dir() and candidate.parent != candidate:
            candidate = candidate.parent
        return candidate
