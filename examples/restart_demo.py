#!/usr/bin/env python3
"""
Restart-surviving file watcher demo.

This example demonstrates:
1. Live changes reported while the watcher runs
2. Changes made while the watcher is stopped, replayed on the next start
3. The watched directory being removed and recreated

Usage:
    python examples/restart_demo.py

The demo will:
- Create a temporary directory structure
- Start a watcher, create files, stop it
- Change files while nothing is watching
- Restart and show the missed changes
- Remove and recreate the watched directory
- Clean up
"""

import shutil
import sys
import tempfile
import time
from pathlib import Path

# Add the project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.filewatcher import SnapshotStore, Watcher, WatcherConfig


def on_change(path: str, name: str) -> None:
    print(f"  [EVENT] path:{path}, file:{name}")


def run_phase(title: str, watch_dir: Path, store: SnapshotStore, config: WatcherConfig, action=None):
    print(f"\n[DEMO] {title}")
    with Watcher(watch_dir, "*.txt", on_change, config=config, store=store) as watcher:
        print(f"  [WATCHER] state: {watcher.state.value}")
        if action:
            time.sleep(0.3)
            action()
            time.sleep(0.8)
    print("  [WATCHER] stopped, state saved")


def main():
    base = Path(tempfile.mkdtemp(prefix="filewatcher_demo_"))
    watch_dir = base / "App_Data" / "Files"
    state_file = base / "FileWatcherStateData.json"

    config = WatcherConfig(state_file=state_file, presence_root=base)
    store = SnapshotStore(state_file)

    print(f"[DEMO] Base directory: {base}")

    try:
        watch_dir.mkdir(parents=True)
        (watch_dir / "keep.txt").write_text("unchanged")
        (watch_dir / "remove.txt").write_text("will be deleted")

        def live_changes():
            (watch_dir / "live.txt").write_text("created while running")
            (watch_dir / "ignored.log").write_text("filtered out")

        run_phase("First run: live changes", watch_dir, store, config, live_changes)

        print("\n[DEMO] Changing files while the watcher is stopped...")
        time.sleep(1.1)
        (watch_dir / "live.txt").write_text("modified while stopped")
        (watch_dir / "offline.txt").write_text("created while stopped")
        (watch_dir / "remove.txt").unlink()

        run_phase("Second run: missed changes replayed on start", watch_dir, store, config)

        def recreate_directory():
            shutil.rmtree(watch_dir)
            time.sleep(0.5)
            watch_dir.mkdir()
            time.sleep(0.5)
            (watch_dir / "fresh.txt").write_text("after recreation")

        run_phase("Third run: directory removed and recreated", watch_dir, store, config, recreate_directory)

        print(f"\n[DEMO] Persisted state ({state_file.name}):")
        print(state_file.read_text(encoding="utf-8"))

    finally:
        shutil.rmtree(base, ignore_errors=True)
        print("[DEMO] Cleaned up")


if __name__ == "__main__":
    main()
