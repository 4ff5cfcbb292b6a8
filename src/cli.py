#!/usr/bin/env python3
"""
CLI for running file watchers.

Usage:
    python -m src.cli watch App_Data/Files --filter "*.txt"
    python -m src.cli watch ./inbox ./outbox --filter "*.csv" --state-file state.json
    python -m src.cli show-state --state-file state.json
"""

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from src.filewatcher import SnapshotStore, Watcher, WatcherConfig, WatcherError


load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("cli")


class GracefulShutdown:
    """Handle graceful shutdown on SIGINT/SIGTERM."""

    def __init__(self):
        self.stop_event = threading.Event()
        signal.signal(signal.SIGINT, self._handler)
        signal.signal(signal.SIGTERM, self._handler)

    def _handler(self, signum, frame):
        logger.info("Received shutdown signal, stopping...")
        self.stop_event.set()

    def wait(self) -> None:
        while not self.stop_event.is_set():
            self.stop_event.wait(timeout=0.5)


def print_change(path: str, name: str) -> None:
    """Default change callback: one line per change on stdout."""
    print(f"path:{path}, file:{name}", flush=True)


def build_config(args) -> WatcherConfig:
    config = WatcherConfig(use_polling=args.polling)
    if getattr(args, "presence_root", None):
        config.presence_root = Path(args.presence_root)
    return config


def cmd_watch(args) -> int:
    """Watch one or more directories until interrupted."""
    config = build_config(args)
    store = SnapshotStore(args.state_file or config.get_state_file())
    watchers: List[Watcher] = []
    shutdown = GracefulShutdown()

    try:
        for path in args.paths:
            watcher = Watcher(path, args.filter, print_change, config=config, store=store)
            watchers.append(watcher)
            missed = watcher.start()
            logger.info(f"Watching {path} ({args.filter}), {len(missed)} missed change(s)")

        logger.info(f"State file: {store.state_file}")
        logger.info("Press Ctrl+C to stop")

        shutdown.wait()

        for watcher in watchers:
            watcher.stop()
    except Exception as e:
        logger.error(f"Watcher failed: {e}")
        for watcher in watchers:
            try:
                watcher.save_state_only()
            except Exception as save_error:
                logger.error(f"Could not save state for {watcher.target.path}: {save_error}")
        return 1

    logger.info("Watcher stopped")
    return 0


def cmd_show_state(args) -> int:
    """Print the snapshots stored in the state file."""
    config = build_config(args)
    store = SnapshotStore(args.state_file or config.get_state_file())

    try:
        persisted = store.load()
    except WatcherError as e:
        logger.error(str(e))
        return 1

    if not len(persisted):
        print(f"No snapshots in {store.state_file}")
        return 0

    for record in persisted.records:
        snapshot = record.snapshot
        status = "present" if snapshot.path_exists else "absent"
        print(f"{record.target.path} ({record.target.filter}): {status}, "
              f"{len(snapshot.file_names)} file(s), last watched {snapshot.last_watch_time.isoformat()}")
        for name in sorted(snapshot.file_names):
            print(f"  - {name}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Watch directories for file changes, including changes made while stopped",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Watch a directory for text files
  python -m src.cli watch App_Data/Files --filter "*.txt"

  # Watch several directories sharing one state file
  python -m src.cli watch ./inbox ./outbox --state-file data/state.json

  # Show what was persisted by the last run
  python -m src.cli show-state --state-file data/state.json
        """,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    watch_parser = subparsers.add_parser("watch", help="Watch directories until interrupted")
    watch_parser.add_argument("paths", nargs="+", help="Directories to watch (may not exist yet)")
    watch_parser.add_argument("--filter", default="*", help="Glob filter for reported files (default: *)")
    watch_parser.add_argument("--state-file", default=None, help="State file path (or FILEWATCHER_STATE_FILE env)")
    watch_parser.add_argument("--presence-root", default=None, help="Ancestor directory watched for the roots' presence")
    watch_parser.add_argument("--polling", action="store_true", help="Use the polling observer")
    watch_parser.set_defaults(func=cmd_watch)

    state_parser = subparsers.add_parser("show-state", help="Print persisted snapshots")
    state_parser.add_argument("--state-file", default=None, help="State file path (or FILEWATCHER_STATE_FILE env)")
    state_parser.set_defaults(func=cmd_show_state, polling=False)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
