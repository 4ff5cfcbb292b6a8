"""Data models for the file watcher package."""

import fnmatch
import os
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import FrozenSet, List, Optional, Tuple


class WatcherState(Enum):
    """States of a watcher's state machine."""
    AWAITING_DIRECTORY = "awaiting_directory"
    WATCHING = "watching"


def matches_filter(name: str, pattern: str) -> bool:
    """Check if an entry name matches a glob filter such as ``*.txt``."""
    return fnmatch.fnmatch(name, pattern)


def same_path(a, b) -> bool:
    """Compare two paths case-insensitively after resolving them."""
    left = os.path.normcase(str(Path(a).resolve()))
    right = os.path.normcase(str(Path(b).resolve()))
    return left.casefold() == right.casefold()


def format_timestamp(value: datetime) -> str:
    """Format a datetime as an ISO-8601 string for the state file."""
    return value.isoformat()


def parse_timestamp(value: str) -> datetime:
    """
    Parse an ISO-8601 timestamp from the state file.

    Naive timestamps are interpreted as local time so they compare
    correctly with the timezone-aware times used everywhere else.
    """
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    return parsed


@dataclass(frozen=True)
class WatchTarget:
    """
    Identifies one watch configuration.

    Attributes:
        path: Root directory to watch, as given by the caller
        filter: Glob pattern selecting the files reported under the root
    """
    path: str
    filter: str = "*"

    def key(self) -> Tuple[str, str]:
        """Identity key: path compared case-insensitively, filter exactly."""
        return (self.path.casefold(), self.filter)

    def same_as(self, other: "WatchTarget") -> bool:
        return self.key() == other.key()

    @property
    def directory(self) -> Path:
        """Absolute, resolved path of the root directory."""
        return Path(self.path).resolve()

    @property
    def name(self) -> str:
        """Leaf name of the root directory."""
        return self.directory.name

    def matches(self, name: str) -> bool:
        return matches_filter(name, self.filter)

    def is_root(self, path) -> bool:
        """Check whether a path points at this target's root directory."""
        return same_path(path, self.directory)


@dataclass(frozen=True)
class Snapshot:
    """
    State of one watch target at the moment it was persisted.

    Attributes:
        last_watch_time: When the snapshot was taken (timezone aware)
        file_names: Names of files matching the filter at that time
        path_exists: Whether the root directory existed at that time
    """
    last_watch_time: datetime
    file_names: FrozenSet[str] = frozenset()
    path_exists: bool = False

    def __post_init__(self):
        if not isinstance(self.file_names, frozenset):
            object.__setattr__(self, "file_names", frozenset(self.file_names))


@dataclass(frozen=True)
class SnapshotRecord:
    """One entry of the persisted state: a target and its snapshot."""
    target: WatchTarget
    snapshot: Snapshot

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "path": self.target.path,
            "filter": self.target.filter,
            "lastWatchDateTime": format_timestamp(self.snapshot.last_watch_time),
            "files": sorted(self.snapshot.file_names),
            "pathExists": self.snapshot.path_exists,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SnapshotRecord":
        """Create from dictionary."""
        path = data["path"]
        pattern = data["filter"]
        if not isinstance(path, str) or not isinstance(pattern, str):
            raise TypeError("path and filter must be strings")

        files = data.get("files") or []
        if not isinstance(files, list) or not all(isinstance(f, str) for f in files):
            raise TypeError("files must be a list of strings")

        path_exists = data["pathExists"]
        if not isinstance(path_exists, bool):
            raise TypeError("pathExists must be a boolean")

        return cls(
            target=WatchTarget(path, pattern),
            snapshot=Snapshot(
                last_watch_time=parse_timestamp(data["lastWatchDateTime"]),
                file_names=frozenset(files),
                path_exists=path_exists,
            ),
        )


@dataclass
class PersistedStore:
    """
    All snapshots kept in the state file, one per watch target.

    Keys are unique; upserting a snapshot for an existing target replaces
    the old record.
    """
    records: List[SnapshotRecord] = field(default_factory=list)

    def get(self, target: WatchTarget) -> Optional[Snapshot]:
        for record in self.records:
            if record.target.same_as(target):
                return record.snapshot
        return None

    def upsert(self, target: WatchTarget, snapshot: Snapshot) -> None:
        """Replace the record for target, or append a new one."""
        self.records = [r for r in self.records if not r.target.same_as(target)]
        self.records.append(SnapshotRecord(target, snapshot))

    def __len__(self) -> int:
        return len(self.records)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {"pathFilterStateData": [r.to_dict() for r in self.records]}

    @classmethod
    def from_dict(cls, data: dict) -> "PersistedStore":
        """Create from dictionary."""
        if not isinstance(data, dict):
            raise TypeError("state data must be a JSON object")
        items = data.get("pathFilterStateData") or []
        if not isinstance(items, list):
            raise TypeError("pathFilterStateData must be a list")

        store = cls()
        for item in items:
            record = SnapshotRecord.from_dict(item)
            store.upsert(record.target, record.snapshot)
        return store


@dataclass(frozen=True)
class FileEntry:
    """A file in the watched directory and its last write time."""
    name: str
    last_write_time: datetime


@dataclass(frozen=True)
class DirectoryState:
    """
    Live state of a watched directory.

    Attributes:
        exists: Whether the directory exists
        creation_time: When the directory was created (None if absent)
        files: Files matching the filter, in listing order
    """
    exists: bool
    creation_time: Optional[datetime] = None
    files: Tuple[FileEntry, ...] = ()

    @property
    def file_names(self) -> FrozenSet[str]:
        return frozenset(f.name for f in self.files)

    def to_snapshot(self, taken_at: datetime) -> Snapshot:
        """Build the snapshot that records this state."""
        return Snapshot(
            last_watch_time=taken_at,
            file_names=self.file_names if self.exists else frozenset(),
            path_exists=self.exists,
        )


@dataclass
class RawFSEvent:
    """
    Raw event from the filesystem watcher before processing.

    Attributes:
        event_type: Raw event type string (created, deleted, modified, moved)
        src_path: Source path of the event
        dest_path: Destination path (for move events)
        is_directory: Whether this is a directory event
        timestamp: Unix timestamp when the event occurred
    """
    event_type: str
    src_path: Path
    dest_path: Optional[Path] = None
    is_directory: bool = False
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class ChangeEvent:
    """
    Caller-facing change notification.

    Creation, modification, deletion and renames are deliberately not
    distinguished; the caller only learns which name changed.

    Attributes:
        root: Watched root path, as given by the caller
        name: Name of the changed file, or of the root directory itself
        is_directory: Whether the change concerns the root directory
        timestamp: Unix timestamp when the change was observed
    """
    root: str
    name: str
    is_directory: bool = False
    timestamp: float = field(default_factory=time.time)
