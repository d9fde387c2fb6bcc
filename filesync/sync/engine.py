"""
Synchronization Engine
======================

Publishes new versions of synchronized objects into the shared location
(writable nodes) and pulls published versions into the local tree when a
version marker changes (read-only nodes).

Every reload builds a complete EngineConfig and swaps it in with a single
assignment. Readers take one reference to the current config and use it
throughout, so they never see a half-built registry.
"""

import os
import threading
from collections.abc import Callable
from pathlib import Path

from loguru import logger

from filesync.config import FileSyncConfig
from filesync.core.dispatcher import CommandDispatcher, run_shell_command
from filesync.core.watcher import MarkerWatcher
from filesync.exceptions import VersionStoreError, WatcherError
from filesync.models import EngineConfig, Mode, SynchronizedObject
from filesync.sync.copier import copy_path
from filesync.sync.version_store import VersionStore, new_version, read_marker
from filesync.utils.logging import timeit


class SyncEngine:
    """Owns the object registry, the node mode and the marker watcher."""

    def __init__(
        self,
        base_dir: str | Path,
        dispatcher: CommandDispatcher | None = None,
        command_runner: Callable[[str], object] | None = None,
        watcher_factory: Callable[..., MarkerWatcher] = MarkerWatcher,
        copier: Callable[[Path, Path], bool] = copy_path,
        version_factory: Callable[[], str] = new_version,
    ):
        """Initialize the engine.

        Args:
            base_dir: Node-local root every location is resolved against
            dispatcher: Primary-context queue that runs post-sync commands
            command_runner: Executes an object's command; defaults to the shell
            watcher_factory: Creates the marker watcher for read-only mode
            copier: File/directory copy primitive
            version_factory: Stamps new versions for initial publishes
        """
        self.base_dir = Path(base_dir).absolute()
        self.dispatcher = dispatcher or CommandDispatcher()
        self.command_runner = command_runner or (lambda command: run_shell_command(command, cwd=str(self.base_dir)))
        self._watcher_factory = watcher_factory
        self._copy = copier
        self._new_version = version_factory
        self._config = EngineConfig(base_dir=self.base_dir, shared_root=self.base_dir)
        self._watcher: MarkerWatcher | None = None
        self._locks: dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()
        self._synced_versions: dict[str, str] = {}

    @property
    def config(self) -> EngineConfig:
        """The current registry snapshot."""
        return self._config

    @property
    def readonly(self) -> bool:
        return self._config.readonly

    @property
    def objects(self) -> dict[str, SynchronizedObject]:
        return self._config.objects

    @property
    def watcher(self) -> MarkerWatcher | None:
        return self._watcher

    @property
    def store(self) -> VersionStore:
        return VersionStore(self._config.shared_root)

    def get_object(self, name: str) -> SynchronizedObject | None:
        """Find a synchronized object by name, ignoring case."""
        return self._config.get(name)

    def _object_lock(self, obj: SynchronizedObject) -> threading.RLock:
        with self._locks_guard:
            return self._locks.setdefault(obj.key, threading.RLock())

    def reload(self, config: FileSyncConfig) -> bool:
        """
        Rebuild the registry from a validated configuration.

        Args:
            config: Configuration produced by filesync.config.load_config

        Returns:
            bool: False if watching could not be started
        """
        if self._watcher is not None:
            self._watcher.clear()

        mode = Mode.READONLY if config.read_only else Mode.WRITABLE
        shared_root = config.shared_root(self.base_dir)

        if mode is Mode.READONLY:
            if self._watcher is None or not self._watcher.is_alive:
                if not self._start_watcher():
                    return False
        elif self._watcher is not None:
            self._watcher.close()
            self._watcher = None

        objects: dict[str, SynchronizedObject] = {}
        markers: dict[str, str] = {}
        store = VersionStore(shared_root)
        for obj in config.build_objects():
            objects[obj.key] = obj
            if mode is Mode.WRITABLE:
                continue

            # Only watched objects get a marker entry, the rest never sync
            marker = store.marker_path(obj)
            try:
                marker.parent.mkdir(parents=True, exist_ok=True)
                self._watcher.register(marker.parent)
            except (OSError, WatcherError) as error:
                logger.error(f"Failed to register watch for {obj.name}: {error}")
                continue
            markers[os.path.abspath(marker)] = obj.name

        self._config = EngineConfig(
            mode=mode,
            base_dir=self.base_dir,
            shared_root=shared_root,
            startup_sync=config.startup_sync,
            resync_on_overflow=config.resync_on_overflow,
            objects=objects,
            markers=markers,
        )
        self._synced_versions = {key: version for key, version in self._synced_versions.items() if key in objects}
        logger.info(f"Loaded {len(objects)} synchronized object(s) in {mode.value} mode from {shared_root}")

        if not config.startup_sync:
            return True

        if mode is Mode.WRITABLE:
            for obj in objects.values():
                if not store.exists(obj):
                    self.publish(obj, self._new_version())
            return True

        for obj in self._config.watched_objects():
            try:
                version = store.read(obj)
            except VersionStoreError as error:
                logger.error(f"Failed to read version for {obj.name}: {error}")
                continue
            self.sync(obj, version)

        return True

    def _start_watcher(self) -> bool:
        if self._watcher is not None:
            self._watcher.close()
            self._watcher = None
        watcher = self._watcher_factory(on_marker=self._on_marker_changed, on_overflow=self._on_overflow)
        try:
            watcher.start()
        except WatcherError as error:
            logger.critical(f"Failed to open watch service: {error}")
            return False
        self._watcher = watcher
        return True

    @timeit
    def publish(self, obj: SynchronizedObject, version: str) -> bool:
        """
        Stage a new version of an object and point its marker at it.

        The marker is only written once every location was copied, so it
        never points at an incomplete version.

        Returns:
            bool: True if every location was copied and the marker was written
        """
        config = self._config
        if config.readonly:
            logger.warning(f"Refusing to publish {obj.name}: node is read-only")
            return False

        store = VersionStore(config.shared_root)
        root = store.version_root(obj, version)
        with self._object_lock(obj):
            success = True
            for location in obj.locations:
                success &= self._copy(config.base_dir / location, root / location)

            if not success:
                logger.error(f"Failed to publish {obj.name} (version {version}), marker left unchanged")
                return False

            if not store.write(obj, version):
                return False

        logger.info(f"Published object {obj.name} (version {version})")
        return True

    @timeit
    def sync(self, obj: SynchronizedObject, version: str) -> None:
        """
        Copy one published version of an object into the local tree.

        Locations missing from the version are skipped. The object's command
        is queued on the dispatcher once every location was processed.
        """
        config = self._config
        root = VersionStore(config.shared_root).version_root(obj, version)
        with self._object_lock(obj):
            for location in obj.locations:
                src = root / location
                if not src.exists():
                    logger.debug(f"Skipping {location} for {obj.name}: not part of version {version}")
                    continue
                self._copy(src, config.base_dir / location)
            self._synced_versions[obj.key] = version

        self.dispatcher.submit(self.command_runner, obj.command)
        logger.info(f"Synchronized object {obj.name} (version {version})")

    def _on_marker_changed(self, marker: str) -> None:
        """Resolve a marker event to its object and sync the new version."""
        config = self._config
        obj = config.resolve_marker(marker)
        if obj is None:
            logger.debug(f"No synchronized object for marker {marker}")
            return
        try:
            version = read_marker(marker)
        except VersionStoreError as error:
            logger.warning(str(error))
            return
        if not version:
            # Truncate-then-write shows up as an empty marker first
            logger.debug(f"Marker for {obj.name} is empty, waiting for the next write")
            return
        self._sync_new_version(obj, version)

    def _sync_new_version(self, obj: SynchronizedObject, version: str) -> bool:
        """Sync a version unless it is the one this node already holds.

        One marker write arrives as several filesystem events, possibly in
        separate batches. Only the first of them may sync.
        """
        with self._object_lock(obj):
            if self._synced_versions.get(obj.key) == version:
                logger.debug(f"Version {version} of {obj.name} is already synchronized")
                return False
            self.sync(obj, version)
        return True

    def _on_overflow(self) -> None:
        """Resync every object whose marker moved on while events were dropped."""
        config = self._config
        if not config.resync_on_overflow:
            logger.warning("Filesystem events were dropped, changes may have been missed")
            return

        logger.warning("Filesystem events were dropped, checking every object for missed versions")
        store = VersionStore(config.shared_root)
        for obj in config.watched_objects():
            try:
                version = store.read(obj)
            except VersionStoreError:
                continue
            if version:
                self._sync_new_version(obj, version)

    def status(self) -> dict:
        """Describe the current mode and every object's versions."""
        config = self._config
        store = VersionStore(config.shared_root)
        watched = set(self._watcher.directories) if self._watcher is not None else set()
        objects = {}
        for obj in config.objects.values():
            try:
                published = store.read(obj)
            except VersionStoreError:
                published = None
            objects[obj.name] = {
                "locations": list(obj.locations),
                "command": obj.command,
                "published": published,
                "synced": self._synced_versions.get(obj.key),
                "watching": os.path.abspath(store.object_root(obj)) in watched,
            }
        return {
            "mode": config.mode.value,
            "shared_root": str(config.shared_root),
            "watching": self._watcher is not None and self._watcher.is_alive,
            "objects": objects,
        }

    def shutdown(self) -> None:
        """Cancel all watches and stop the watcher loop."""
        if self._watcher is not None:
            self._watcher.close()
            self._watcher = None
        logger.info("Synchronization engine stopped")
