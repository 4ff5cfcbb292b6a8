"""Tests for the watcher state machine."""

import logging
import shutil
import pytest
from pathlib import Path

from watchdog.events import (
    DirCreatedEvent,
    DirDeletedEvent,
    DirModifiedEvent,
    DirMovedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from src.filewatcher.exceptions import WatcherAlreadyRunningError
from src.filewatcher.models import WatcherState, WatchTarget
from src.filewatcher.state_machine import WatcherStateMachine

from conftest import FakeNotificationSource


@pytest.fixture
def events():
    return []


@pytest.fixture
def machine(root, fake_source, events):
    return WatcherStateMachine(WatchTarget(str(root), "*.txt"), fake_source, events.append)


def _names(events):
    return [e.name for e in events]


def _assert_invariant(machine):
    assert machine.content_armed == (machine.state is WatcherState.WATCHING)


class TestArm:
    """Tests for arming and disarming."""

    def test_arm_without_directory(self, machine, fake_source):
        state = machine.arm()

        assert state is WatcherState.AWAITING_DIRECTORY
        assert machine.state is WatcherState.AWAITING_DIRECTORY
        assert machine.is_armed is True
        assert len(fake_source.presence_handles) == 1
        assert fake_source.content_handles == []
        _assert_invariant(machine)

    def test_arm_with_directory(self, machine, fake_source, root):
        root.mkdir()

        state = machine.arm()

        assert state is WatcherState.WATCHING
        assert len(fake_source.content_handles) == 1
        assert fake_source.content.path == root.resolve()
        _assert_invariant(machine)

    def test_arm_twice_raises(self, machine):
        machine.arm()
        with pytest.raises(WatcherAlreadyRunningError):
            machine.arm()

    def test_disarm_closes_watches(self, machine, fake_source, root):
        root.mkdir()
        machine.arm()

        machine.disarm()

        assert machine.state is None
        assert machine.is_armed is False
        assert fake_source.presence.closed is True
        assert fake_source.content.closed is True
        assert machine.content_armed is False

    def test_no_events_after_disarm(self, machine, fake_source, root, events):
        root.mkdir()
        machine.arm()
        presence, content = fake_source.presence, fake_source.content

        machine.disarm()
        content.handler.dispatch(FileCreatedEvent(str(root / "a.txt")))
        root.rmdir()
        presence.handler.dispatch(DirDeletedEvent(str(root)))

        assert events == []

    def test_disarm_when_never_armed(self, machine):
        machine.disarm()
        assert machine.state is None

    def test_rearm_after_disarm(self, machine, fake_source):
        machine.arm()
        machine.disarm()

        assert machine.arm() is WatcherState.AWAITING_DIRECTORY
        assert len(fake_source.presence_handles) == 2


class TestPresenceTransitions:
    """Tests for directory appearance and disappearance."""

    def test_directory_created(self, machine, fake_source, root, events):
        machine.arm()
        root.mkdir()

        fake_source.presence.handler.dispatch(DirCreatedEvent(str(root)))

        assert machine.state is WatcherState.WATCHING
        assert len(fake_source.content_handles) == 1
        assert fake_source.presence.enabled is True
        assert _names(events) == ["watched"]
        assert events[0].is_directory is True
        assert events[0].root == str(root)
        _assert_invariant(machine)

    def test_other_directory_created_is_ignored(self, machine, fake_source, root, events):
        machine.arm()

        fake_source.presence.handler.dispatch(DirCreatedEvent(str(root.parent / "other")))
        fake_source.presence.handler.dispatch(FileCreatedEvent(str(root.parent / "watched.txt")))

        assert machine.state is WatcherState.AWAITING_DIRECTORY
        assert events == []

    def test_created_path_compared_case_insensitively(self, machine, fake_source, root, events):
        machine.arm()
        root.mkdir()

        fake_source.presence.handler.dispatch(DirCreatedEvent(str(root.parent / "WATCHED")))

        assert machine.state is WatcherState.WATCHING
        assert _names(events) == ["watched"]

    def test_file_created_at_root_path_is_ignored(self, machine, fake_source, root, events):
        machine.arm()
        root.write_text("not a directory")

        fake_source.presence.handler.dispatch(FileCreatedEvent(str(root)))

        assert machine.state is WatcherState.AWAITING_DIRECTORY
        assert fake_source.content_handles == []
        assert events == []
        _assert_invariant(machine)

    def test_file_renamed_onto_root_path_is_ignored(self, machine, fake_source, root, events):
        machine.arm()
        root.write_text("not a directory")

        fake_source.presence.handler.dispatch(
            FileMovedEvent(str(root.parent / "staging.txt"), str(root))
        )

        assert machine.state is WatcherState.AWAITING_DIRECTORY
        assert fake_source.content_handles == []
        assert events == []

    def test_creation_while_watching_is_ignored(self, machine, fake_source, root, events):
        root.mkdir()
        machine.arm()

        fake_source.presence.handler.dispatch(DirCreatedEvent(str(root)))

        assert events == []
        assert len(fake_source.content_handles) == 1

    def test_directory_deleted(self, machine, fake_source, root, events):
        root.mkdir()
        machine.arm()
        content = fake_source.content
        root.rmdir()

        fake_source.presence.handler.dispatch(DirDeletedEvent(str(root)))

        assert machine.state is WatcherState.AWAITING_DIRECTORY
        assert content.closed is True
        assert fake_source.presence.enabled is True
        assert _names(events) == ["watched"]
        assert events[0].is_directory is True
        _assert_invariant(machine)

    def test_deletion_ignored_while_directory_exists(self, machine, fake_source, root, events):
        root.mkdir()
        machine.arm()

        fake_source.presence.handler.dispatch(FileDeletedEvent(str(root / "a.txt")))

        assert machine.state is WatcherState.WATCHING
        assert events == []

    def test_any_deletion_confirms_absence(self, machine, fake_source, root, events):
        root.mkdir()
        machine.arm()
        shutil.rmtree(root)

        fake_source.presence.handler.dispatch(FileDeletedEvent(str(root / "a.txt")))

        assert machine.state is WatcherState.AWAITING_DIRECTORY
        assert _names(events) == ["watched"]

    def test_deletion_ignored_while_awaiting(self, machine, fake_source, root, events):
        machine.arm()

        fake_source.presence.handler.dispatch(DirDeletedEvent(str(root)))

        assert machine.state is WatcherState.AWAITING_DIRECTORY
        assert events == []

    def test_delete_and_recreate_cycle(self, machine, fake_source, root, events):
        root.mkdir()
        machine.arm()

        root.rmdir()
        fake_source.presence.handler.dispatch(DirDeletedEvent(str(root)))
        root.mkdir()
        fake_source.presence.handler.dispatch(DirCreatedEvent(str(root)))
        fake_source.content.handler.dispatch(FileCreatedEvent(str(root / "a.txt")))

        assert machine.state is WatcherState.WATCHING
        assert len(fake_source.content_handles) == 2
        assert fake_source.content_handles[0].closed is True
        assert _names(events) == ["watched", "watched", "a.txt"]
        _assert_invariant(machine)

    def test_rename_into_root_arms_content_watch(self, machine, fake_source, root, events):
        machine.arm()
        root.mkdir()

        fake_source.presence.handler.dispatch(DirMovedEvent(str(root.parent / "staging"), str(root)))

        assert machine.state is WatcherState.WATCHING
        assert _names(events) == ["watched"]
        _assert_invariant(machine)

    def test_unrelated_rename_is_ignored(self, machine, fake_source, root, events):
        root.mkdir()
        machine.arm()

        fake_source.presence.handler.dispatch(
            FileMovedEvent(str(root / "a.txt"), str(root / "b.txt"))
        )

        assert events == []
        assert len(fake_source.content_handles) == 1

    def test_rename_away_emits_and_disables_content(self, machine, fake_source, root, events):
        root.mkdir()
        machine.arm()
        content = fake_source.content

        fake_source.presence.handler.dispatch(DirMovedEvent(str(root), str(root.parent / "archived")))
        content.handler.dispatch(FileCreatedEvent(str(root / "a.txt")))

        assert _names(events) == ["watched"]
        assert events[0].is_directory is True
        assert content.enabled is False
        # The state is not switched back to awaiting the directory.
        assert machine.state is WatcherState.WATCHING

    def test_failed_content_watch_keeps_awaiting(self, root, events, caplog):
        class FailingSource(FakeNotificationSource):
            def watch_content(self, directory, pattern, callback):
                raise FileNotFoundError(str(directory))

        source = FailingSource()
        machine = WatcherStateMachine(WatchTarget(str(root), "*.txt"), source, events.append)
        machine.arm()
        root.mkdir()

        with caplog.at_level(logging.WARNING):
            source.presence.handler.dispatch(DirCreatedEvent(str(root)))

        assert machine.state is WatcherState.AWAITING_DIRECTORY
        assert source.presence.enabled is True
        assert events == []
        assert "Cannot watch" in caplog.text


class TestContentEvents:
    """Tests for file-level events while watching."""

    @pytest.fixture
    def watching(self, machine, root):
        root.mkdir()
        machine.arm()
        return machine

    def test_create_modify_delete(self, watching, fake_source, root, events):
        handler = fake_source.content.handler
        handler.dispatch(FileCreatedEvent(str(root / "a.txt")))
        handler.dispatch(FileModifiedEvent(str(root / "a.txt")))
        handler.dispatch(FileDeletedEvent(str(root / "a.txt")))

        assert _names(events) == ["a.txt", "a.txt", "a.txt"]
        assert all(e.root == str(root) for e in events)
        assert not any(e.is_directory for e in events)

    def test_filter_applied(self, watching, fake_source, root, events):
        fake_source.content.handler.dispatch(FileCreatedEvent(str(root / "a.log")))
        assert events == []

    def test_directory_events_ignored(self, watching, fake_source, root, events):
        fake_source.content.handler.dispatch(DirModifiedEvent(str(root)))
        fake_source.content.handler.dispatch(DirCreatedEvent(str(root / "sub.txt")))
        assert events == []

    def test_rename_reports_old_name_only(self, watching, fake_source, root, events):
        fake_source.content.handler.dispatch(
            FileMovedEvent(str(root / "old.txt"), str(root / "new.txt"))
        )

        assert _names(events) == ["old.txt"]

    def test_rename_to_matching_name_reports_old_name(self, watching, fake_source, root, events):
        fake_source.content.handler.dispatch(
            FileMovedEvent(str(root / "draft.tmp"), str(root / "final.txt"))
        )

        assert _names(events) == ["draft.tmp"]

    def test_callback_errors_are_logged(self, root, fake_source, caplog):
        def failing(event):
            raise RuntimeError("boom")

        root.mkdir()
        machine = WatcherStateMachine(WatchTarget(str(root), "*.txt"), fake_source, failing)
        machine.arm()

        with caplog.at_level(logging.ERROR):
            fake_source.content.handler.dispatch(FileCreatedEvent(str(root / "a.txt")))

        assert "Change callback failed" in caplog.text
        assert fake_source.content.enabled is True
