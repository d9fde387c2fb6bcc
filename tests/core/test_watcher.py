"""
Tests for Marker Watching
=========================

Unit tests feed synthetic watchdog events through the handler; the
integration tests at the bottom let a real observer report file writes.
"""

import os
import queue
import shutil
import threading

import pytest
from watchdog.events import DirModifiedEvent, FileCreatedEvent, FileModifiedEvent, FileMovedEvent

from filesync.core.watcher import MarkerEvent, MarkerEventHandler, MarkerWatcher
from filesync.exceptions import WatcherError
from filesync.sync.version_store import MARKER_NAME


class Recorder:
    """Thread-safe record of marker callbacks."""

    def __init__(self):
        self.markers: list[str] = []
        self.overflows = 0
        self._lock = threading.Lock()

    def on_marker(self, marker: str) -> None:
        with self._lock:
            self.markers.append(marker)

    def on_overflow(self) -> None:
        with self._lock:
            self.overflows += 1


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def marker_dir(tmp_path):
    path = tmp_path / "shared" / "configs"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def watcher(recorder):
    watcher = MarkerWatcher(recorder.on_marker, recorder.on_overflow)
    watcher.start()
    yield watcher
    watcher.close()


def test_handler_queues_events(tmp_path):
    """Created, modified and moved events are reduced to MarkerEvents."""
    channel = queue.Queue()
    handler = MarkerEventHandler(channel, threading.Event())
    marker = str(tmp_path / MARKER_NAME)

    handler.on_modified(FileModifiedEvent(marker))
    handler.on_created(FileCreatedEvent(marker))
    handler.on_moved(FileMovedEvent(str(tmp_path / ".info.tmp"), marker))

    events = [channel.get_nowait() for _ in range(3)]
    assert [event.event_type for event in events] == ["modified", "created", "moved"]
    assert all(event.path == marker for event in events)
    assert all(isinstance(event, MarkerEvent) for event in events)


def test_handler_flags_overflow(tmp_path):
    """A full channel drops the event and raises the overflow flag."""
    channel = queue.Queue(maxsize=1)
    overflowed = threading.Event()
    handler = MarkerEventHandler(channel, overflowed)
    marker = str(tmp_path / MARKER_NAME)

    handler.on_modified(FileModifiedEvent(marker))
    assert not overflowed.is_set()
    handler.on_modified(FileModifiedEvent(marker))
    assert overflowed.is_set()
    assert channel.qsize() == 1


def test_register_requires_running_watcher(recorder, marker_dir):
    with pytest.raises(WatcherError):
        MarkerWatcher(recorder.on_marker).register(marker_dir)


def test_register_missing_directory(watcher, tmp_path):
    with pytest.raises(WatcherError):
        watcher.register(tmp_path / "missing")


def test_marker_event_reaches_callback(watcher, recorder, marker_dir, waiter):
    """A marker event in a registered directory is reported with its path."""
    watcher.register(marker_dir)
    marker = os.path.join(os.path.abspath(marker_dir), MARKER_NAME)

    watcher.handler.on_modified(FileModifiedEvent(marker))

    assert waiter(lambda: marker in recorder.markers)


def test_marker_replaced_by_rename(watcher, recorder, marker_dir, waiter):
    """A marker moved into place counts as a marker change."""
    watcher.register(marker_dir)
    marker = os.path.join(os.path.abspath(marker_dir), MARKER_NAME)

    watcher.handler.on_moved(FileMovedEvent(marker + ".tmp", marker))

    assert waiter(lambda: marker in recorder.markers)


def test_other_events_are_ignored(watcher, recorder, marker_dir, tmp_path, waiter):
    """Non-marker files, directories and unregistered directories are ignored."""
    watcher.register(marker_dir)
    other_dir = tmp_path / "elsewhere"
    other_dir.mkdir()
    marker = os.path.join(os.path.abspath(marker_dir), MARKER_NAME)

    watcher.handler.on_modified(FileModifiedEvent(str(marker_dir / "notes.txt")))
    watcher.handler.on_modified(DirModifiedEvent(str(marker_dir)))
    watcher.handler.on_modified(FileModifiedEvent(str(other_dir / MARKER_NAME)))
    # Sentinel event to know the batch above was processed
    watcher.handler.on_modified(FileModifiedEvent(marker))

    assert waiter(lambda: recorder.markers == [marker])


def test_unregistered_directory_stops_reporting(watcher, recorder, marker_dir, tmp_path, waiter):
    """After clear(), events for the old directory are ignored."""
    watcher.register(marker_dir)
    watcher.clear()
    assert watcher.directories == []

    other = tmp_path / "other"
    other.mkdir()
    watcher.register(other)
    watcher.handler.on_modified(FileModifiedEvent(str(marker_dir / MARKER_NAME)))
    watcher.handler.on_modified(FileModifiedEvent(str(other / MARKER_NAME)))

    expected = os.path.join(os.path.abspath(other), MARKER_NAME)
    assert waiter(lambda: recorder.markers == [expected])


def test_overflow_calls_back_after_batch(recorder, tmp_path, waiter):
    """Events dropped before the loop drained them trigger the overflow callback."""
    watcher = MarkerWatcher(recorder.on_marker, recorder.on_overflow, queue_size=1)
    marker = str(tmp_path / MARKER_NAME)
    watcher.handler.on_modified(FileModifiedEvent(marker))
    watcher.handler.on_modified(FileModifiedEvent(marker))

    watcher.start()
    try:
        assert waiter(lambda: recorder.overflows == 1)
    finally:
        watcher.close()


def test_callback_errors_do_not_stop_loop(marker_dir, waiter):
    """An exception in the callback is logged and the loop keeps running."""
    calls = []

    def flaky(marker):
        calls.append(marker)
        if len(calls) == 1:
            raise RuntimeError("boom")

    watcher = MarkerWatcher(flaky)
    watcher.start()
    try:
        watcher.register(marker_dir)
        marker = str(marker_dir / MARKER_NAME)
        watcher.handler.on_modified(FileModifiedEvent(marker))
        assert waiter(lambda: len(calls) == 1)
        watcher.handler.on_modified(FileModifiedEvent(marker))
        assert waiter(lambda: len(calls) == 2)
        assert watcher.is_alive
    finally:
        watcher.close()


def test_lost_registration_stops_loop(watcher, marker_dir, waiter):
    """When the last watched directory vanishes the loop exits."""
    watcher.register(marker_dir)
    shutil.rmtree(marker_dir)

    watcher.handler.on_modified(FileModifiedEvent(str(marker_dir / MARKER_NAME)))

    assert waiter(lambda: not watcher.is_alive)
    assert watcher.directories == []


def test_close_stops_loop(recorder):
    """Closing unblocks the loop, which exits cleanly."""
    watcher = MarkerWatcher(recorder.on_marker)
    watcher.start()
    assert watcher.is_alive

    watcher.close()

    assert not watcher.is_alive
    with pytest.raises(WatcherError):
        watcher.start()


def test_real_marker_write_is_reported(watcher, recorder, marker_dir, waiter):
    """Writing the marker on disk reaches the callback through watchdog."""
    watcher.register(marker_dir)
    marker = os.path.join(os.path.abspath(marker_dir), MARKER_NAME)

    with open(marker, "w") as f:
        f.write("2024-01-01_00-00-00")

    assert waiter(lambda: marker in recorder.markers)


def test_real_non_marker_write_is_ignored(watcher, recorder, marker_dir, waiter):
    """Other files beside the marker never reach the callback."""
    watcher.register(marker_dir)
    (marker_dir / "readme.txt").write_text("hello")
    marker = os.path.join(os.path.abspath(marker_dir), MARKER_NAME)
    with open(marker, "w") as f:
        f.write("v1")

    assert waiter(lambda: marker in recorder.markers)
    assert all(os.path.basename(path) == MARKER_NAME for path in recorder.markers)


def test_any_lost_registration_stops_loop(watcher, recorder, marker_dir, tmp_path, waiter):
    """Losing one of several watched directories ends the loop until a reload."""
    other = tmp_path / "shared" / "plugins"
    other.mkdir()
    watcher.register(marker_dir)
    watcher.register(other)
    shutil.rmtree(marker_dir)

    watcher.handler.on_modified(FileModifiedEvent(str(other / MARKER_NAME)))

    assert waiter(lambda: not watcher.is_alive)
    assert watcher.directories == [os.path.abspath(other)]
