"""
Test Configuration and Fixtures
=============================

This module provides pytest fixtures and utilities for testing FileSync.
"""

import os
import time
from collections.abc import Callable
from pathlib import Path

import pytest

from filesync.config import FileSyncConfig, parse_config
from filesync.core.dispatcher import CommandDispatcher
from filesync.exceptions import WatcherError
from filesync.sync.engine import SyncEngine


def wait_for(predicate: Callable[[], bool], timeout: float = 5.0, interval: float = 0.05) -> bool:
    """Poll until predicate() is true or the timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


class FakeWatcher:
    """Stand-in for MarkerWatcher that records registrations.

    Tests fire marker events by calling ``on_marker`` themselves.
    """

    instances: list["FakeWatcher"] = []
    fail_start = False
    fail_register: set[str] = set()

    def __init__(self, on_marker, on_overflow=None, **kwargs):
        self.on_marker = on_marker
        self.on_overflow = on_overflow
        self.registered: list[str] = []
        self.started = False
        self.closed = False
        self.clear_calls = 0
        FakeWatcher.instances.append(self)

    @property
    def is_alive(self) -> bool:
        return self.started and not self.closed

    @property
    def directories(self) -> list[str]:
        return list(self.registered)

    def start(self) -> None:
        if FakeWatcher.fail_start:
            raise WatcherError("watch service unavailable")
        self.started = True

    def register(self, directory) -> None:
        directory = os.path.abspath(directory)
        if os.path.basename(directory) in FakeWatcher.fail_register:
            raise WatcherError(f"cannot watch {directory}")
        self.registered.append(directory)

    def clear(self) -> None:
        self.clear_calls += 1
        self.registered.clear()

    def close(self) -> None:
        self.closed = True
        self.registered.clear()


@pytest.fixture(autouse=True)
def reset_fake_watcher():
    FakeWatcher.instances = []
    FakeWatcher.fail_start = False
    FakeWatcher.fail_register = set()
    yield


@pytest.fixture
def shared_dir(tmp_path) -> Path:
    path = tmp_path / "shared"
    path.mkdir()
    return path


@pytest.fixture
def publisher_dir(tmp_path) -> Path:
    path = tmp_path / "publisher"
    path.mkdir()
    return path


@pytest.fixture
def subscriber_dir(tmp_path) -> Path:
    path = tmp_path / "subscriber"
    path.mkdir()
    return path


@pytest.fixture
def make_config(shared_dir) -> Callable[..., FileSyncConfig]:
    """Build a validated configuration pointing at the shared directory."""

    def _make(
        read_only: bool = False,
        startup_sync: bool = False,
        synchronizations: dict | None = None,
        resync_on_overflow: bool = True,
    ) -> FileSyncConfig:
        if synchronizations is None:
            synchronizations = {"configs": {"Locations": ["server.properties"], "Command": "reload"}}
        return parse_config(
            {
                "StartUpSync": startup_sync,
                "ReadOnly": read_only,
                "SharedLocation": str(shared_dir),
                "ResyncOnOverflow": resync_on_overflow,
                "Synchronizations": synchronizations,
            }
        )

    return _make


@pytest.fixture
def commands() -> list[str]:
    """Commands executed by the engine's command runner, in order."""
    return []


@pytest.fixture
def dispatcher() -> CommandDispatcher:
    return CommandDispatcher()


@pytest.fixture
def publisher(publisher_dir, commands, dispatcher) -> SyncEngine:
    return SyncEngine(
        publisher_dir,
        dispatcher=dispatcher,
        command_runner=commands.append,
        watcher_factory=FakeWatcher,
    )


@pytest.fixture
def subscriber(subscriber_dir, commands, dispatcher) -> SyncEngine:
    return SyncEngine(
        subscriber_dir,
        dispatcher=dispatcher,
        command_runner=commands.append,
        watcher_factory=FakeWatcher,
    )


@pytest.fixture
def fake_watchers() -> type[FakeWatcher]:
    """The FakeWatcher class, for inspecting instances and injecting failures."""
    return FakeWatcher


@pytest.fixture
def waiter() -> Callable[..., bool]:
    return wait_for
