"""
Startup reconciliation.

Compares the snapshot persisted when the watcher last stopped with the
live directory and synthesizes the change events that were missed while
the process was not running.
"""

import logging
import os
from datetime import datetime, timezone
from typing import List, Optional

from .models import ChangeEvent, DirectoryState, FileEntry, Snapshot, WatchTarget

logger = logging.getLogger(__name__)


def _to_datetime(timestamp: float) -> datetime:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


def _creation_time(stat: os.stat_result) -> Optional[datetime]:
    # st_ctime is the inode change time on POSIX, not a creation time.
    birthtime = getattr(stat, "st_birthtime", None)
    if not birthtime:
        return None
    return _to_datetime(birthtime)


def scan_directory(target: WatchTarget) -> DirectoryState:
    """
    Query the live state of a target's root directory.

    Creation time comes from ``st_birthtime``. It is None where the
    platform does not report one, and recreation of the directory while
    stopped then goes undetected.

    Args:
        target: Watch target to scan

    Returns:
        Directory state with the matching files in listing order
    """
    directory = target.directory
    if not directory.is_dir():
        return DirectoryState(exists=False)

    created = _creation_time(directory.stat())

    files = []
    with os.scandir(directory) as entries:
        for entry in entries:
            if not entry.is_file() or not target.matches(entry.name):
                continue
            files.append(FileEntry(entry.name, _to_datetime(entry.stat().st_mtime)))

    return DirectoryState(
        exists=True,
        creation_time=created,
        files=tuple(files),
    )


def reconcile(
    target: WatchTarget,
    snapshot: Optional[Snapshot],
    live: DirectoryState,
) -> List[ChangeEvent]:
    """
    Compute the changes missed between a snapshot and the live state.

    The directory-level event, if any, comes first. Files written after
    the snapshot follow in listing order, then files that disappeared.

    Args:
        target: Watch target the snapshot belongs to
        snapshot: Snapshot from the previous run, or None on first run
        live: Current state of the root directory

    Returns:
        Change events to deliver, possibly empty
    """
    if snapshot is None:
        return []

    def event(name: str, is_directory: bool = False) -> ChangeEvent:
        return ChangeEvent(root=target.path, name=name, is_directory=is_directory)

    if snapshot.path_exists and not live.exists:
        logger.info(f"Directory removed while stopped: {target.path}")
        return [event(target.name, is_directory=True)]

    if not snapshot.path_exists and live.exists:
        logger.info(f"Directory created while stopped: {target.path}")
        return [event(target.name, is_directory=True)]

    if not live.exists:
        return []

    events = []
    since = snapshot.last_watch_time

    if live.creation_time is not None and live.creation_time > since:
        logger.info(f"Directory recreated while stopped: {target.path}")
        events.append(event(target.name, is_directory=True))

    for entry in live.files:
        if entry.last_write_time > since:
            events.append(event(entry.name))

    live_names = live.file_names
    for name in sorted(snapshot.file_names):
        if name not in live_names:
            events.append(event(name))

    if events:
        logger.info(f"Reconciled {len(events)} missed change(s) for {target.path}")
    return events
