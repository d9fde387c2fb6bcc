"""
Marker Watching
===============

Watches the directories that hold version markers and reports marker
changes. watchdog observer threads push raw events into a bounded channel;
a single loop thread drains the channel in batches and hands every marker
event to the engine.

Classes:
    MarkerEvent: Raw filesystem event as queued on the channel
    MarkerEventHandler: watchdog handler feeding the channel
    MarkerWatcher: Registration bookkeeping plus the loop thread
"""

import os
import queue
import threading
from collections.abc import Callable
from typing import NamedTuple

from loguru import logger
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from filesync.exceptions import WatcherError
from filesync.sync.version_store import MARKER_NAME

# Distinguished channel item that stops the loop
CLOSED = object()

DEFAULT_QUEUE_SIZE = 1024


class MarkerEvent(NamedTuple):
    """A filesystem event reduced to what the loop needs."""

    event_type: str
    path: str
    is_directory: bool


class MarkerEventHandler(FileSystemEventHandler):
    """Pushes watchdog events onto the watcher channel."""

    def __init__(self, channel: queue.Queue, overflowed: threading.Event):
        """Initialize the handler.

        Args:
            channel: Bounded queue drained by the watcher loop
            overflowed: Set whenever an event had to be dropped
        """
        super().__init__()
        self.channel = channel
        self.overflowed = overflowed

    def _push(self, event_type: str, path: str | bytes, is_directory: bool) -> None:
        try:
            self.channel.put_nowait(MarkerEvent(event_type, os.fsdecode(path), is_directory))
        except queue.Full:
            if not self.overflowed.is_set():
                logger.warning("Watch channel is full, dropping filesystem events")
            self.overflowed.set()

    def on_created(self, event: FileSystemEvent) -> None:
        self._push(event.event_type, event.src_path, event.is_directory)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._push(event.event_type, event.src_path, event.is_directory)

    def on_moved(self, event: FileSystemEvent) -> None:
        # Markers replaced by rename show up as the move destination
        self._push(event.event_type, event.dest_path, event.is_directory)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._push(event.event_type, event.src_path, event.is_directory)


class MarkerWatcher:
    """Watches marker directories and reports marker changes.

    The marker callback runs on the watcher loop thread. Anything that must
    not run there is the callback's job to hand off.
    """

    def __init__(
        self,
        on_marker: Callable[[str], None],
        on_overflow: Callable[[], None] | None = None,
        marker_name: str = MARKER_NAME,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        observer_factory: Callable[[], Observer] = Observer,
    ):
        """Initialize the watcher.

        Args:
            on_marker: Called with the marker path for every marker event
            on_overflow: Called once after a batch during which events were dropped
            marker_name: File name that identifies a marker
            queue_size: Capacity of the event channel
            observer_factory: Creates the watchdog observer
        """
        self.on_marker = on_marker
        self.on_overflow = on_overflow
        self.marker_name = marker_name
        self._channel: queue.Queue = queue.Queue(maxsize=queue_size)
        self._overflowed = threading.Event()
        self._closed = threading.Event()
        self.handler = MarkerEventHandler(self._channel, self._overflowed)
        self._observer_factory = observer_factory
        self._observer = None
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self._watches: dict[str, object] = {}
        self._real_paths: dict[str, str] = {}

    @property
    def is_alive(self) -> bool:
        """True while the loop thread is running."""
        return self._thread is not None and self._thread.is_alive()

    @property
    def directories(self) -> list[str]:
        with self._lock:
            return list(self._watches)

    def start(self) -> None:
        """Create the observer and start the loop thread.

        Raises:
            WatcherError: If the notification facility cannot be started
        """
        if self.is_alive:
            logger.warning("Marker watcher is already running")
            return
        if self._closed.is_set():
            raise WatcherError("Marker watcher has been closed")

        try:
            observer = self._observer_factory()
            observer.start()
        except (OSError, RuntimeError) as error:
            raise WatcherError(f"Failed to start filesystem observer: {error}") from error

        self._observer = observer
        self._thread = threading.Thread(target=self._run, name="filesync-watcher", daemon=True)
        self._thread.start()
        logger.info("Marker watcher started")

    def register(self, directory: str | os.PathLike) -> None:
        """Watch a marker directory.

        Raises:
            WatcherError: If the watcher is not running or the directory cannot be watched
        """
        if self._observer is None or self._closed.is_set():
            raise WatcherError("Marker watcher is not running")

        directory = os.path.abspath(directory)
        with self._lock:
            if directory in self._watches:
                return
            if not os.path.isdir(directory):
                raise WatcherError(f"Watch directory does not exist: {directory}")
            try:
                watch = self._observer.schedule(self.handler, directory, recursive=False)
            except (OSError, RuntimeError) as error:
                raise WatcherError(f"Failed to watch {directory}: {error}") from error
            self._watches[directory] = watch
            self._real_paths[os.path.realpath(directory)] = directory
        logger.debug(f"Watching {directory}")

    def clear(self) -> None:
        """Cancel every registration."""
        with self._lock:
            for directory in list(self._watches):
                self._unschedule(directory)

    def _unschedule(self, directory: str) -> None:
        watch = self._watches.pop(directory, None)
        self._real_paths = {real: path for real, path in self._real_paths.items() if path != directory}
        if watch is None or self._observer is None:
            return
        try:
            self._observer.unschedule(watch)
        except (KeyError, OSError, RuntimeError) as error:
            logger.debug(f"Watch for {directory} was already gone: {error}")

    def _registered_directory(self, directory: str) -> str | None:
        with self._lock:
            if directory in self._watches:
                return directory
            return self._real_paths.get(os.path.realpath(directory))

    def _run(self) -> None:
        """Drain the channel batch by batch until closed."""
        while True:
            item = self._channel.get()
            if item is CLOSED:
                break

            batch = [item]
            while True:
                try:
                    batch.append(self._channel.get_nowait())
                except queue.Empty:
                    break

            closed = CLOSED in batch
            self._process_batch([event for event in batch if event is not CLOSED])

            if self._overflowed.is_set():
                self._overflowed.clear()
                self._handle_overflow()

            if closed or self._closed.is_set():
                break
            if not self._revalidate():
                logger.critical("Marker watch lost, watcher stopped until the next reload")
                break
        logger.info("Marker watcher stopped")

    def _process_batch(self, batch: list[MarkerEvent]) -> None:
        markers: list[str] = []
        for event in batch:
            if event.is_directory or event.event_type == "deleted":
                continue
            directory, name = os.path.split(event.path)
            if name != self.marker_name:
                continue
            registered = self._registered_directory(directory)
            if registered is None:
                logger.debug(f"Ignoring marker event outside registered directories: {event.path}")
                continue
            marker = os.path.join(registered, name)
            if marker not in markers:
                markers.append(marker)

        for marker in markers:
            try:
                self.on_marker(marker)
            except Exception:
                logger.exception(f"Error handling marker change {marker}")

    def _handle_overflow(self) -> None:
        if self.on_overflow is None:
            logger.warning("Filesystem events were dropped, changes may have been missed")
            return
        try:
            self.on_overflow()
        except Exception:
            logger.exception("Error handling dropped filesystem events")

    def _revalidate(self) -> bool:
        """Drop registrations whose directory vanished.

        Returns:
            bool: False if any registration was dropped
        """
        with self._lock:
            lost = [directory for directory in self._watches if not os.path.isdir(directory)]
            for directory in lost:
                logger.critical(f"Watch lost for {directory}, a reload is required to recover")
                self._unschedule(directory)
            return not lost

    def close(self, timeout: float = 5.0) -> None:
        """Cancel all registrations, stop the observer and end the loop."""
        if self._closed.is_set():
            return
        self._closed.set()
        self.clear()

        if self._observer is not None:
            try:
                self._observer.stop()
                if self._observer.is_alive():
                    self._observer.join(timeout)
            except RuntimeError as error:
                logger.debug(f"Observer was not running: {error}")

        while True:
            try:
                self._channel.put_nowait(CLOSED)
                break
            except queue.Full:
                try:
                    self._channel.get_nowait()
                except queue.Empty:
                    pass

        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)
        logger.info("Marker watcher closed")
