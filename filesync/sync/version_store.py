"""
Version Markers
===============

Each synchronized object has one marker file, ``<shared>/<name>/.info``,
whose whole contents are the currently published version. Published
versions live beside it in ``<shared>/<name>/<version>/``.
"""

from datetime import datetime
from pathlib import Path

from loguru import logger

from filesync.exceptions import VersionStoreError
from filesync.models import SynchronizedObject

MARKER_NAME = ".info"
VERSION_FORMAT = "%Y-%m-%d_%H-%M-%S"


def new_version(now: datetime | None = None) -> str:
    """Stamp a version string with second precision."""
    return (now or datetime.now()).strftime(VERSION_FORMAT)


class VersionStore:
    """Reads and writes version markers below a shared root."""

    def __init__(self, shared_root: str | Path):
        self.shared_root = Path(shared_root)

    def object_root(self, obj: SynchronizedObject) -> Path:
        return self.shared_root / obj.name

    def marker_path(self, obj: SynchronizedObject) -> Path:
        return self.object_root(obj) / MARKER_NAME

    def version_root(self, obj: SynchronizedObject, version: str) -> Path:
        """Directory holding one published version of an object."""
        return self.object_root(obj) / version

    def exists(self, obj: SynchronizedObject) -> bool:
        """Check whether the object has ever been published."""
        return self.marker_path(obj).is_file()

    def read(self, obj: SynchronizedObject) -> str:
        """
        Read the currently published version.

        Raises:
            VersionStoreError: If the marker is missing or unreadable
        """
        return read_marker(self.marker_path(obj))

    def write(self, obj: SynchronizedObject, version: str) -> bool:
        """
        Point the marker at a new version.

        Returns:
            bool: True if the marker was written
        """
        marker = self.marker_path(obj)
        try:
            marker.parent.mkdir(parents=True, exist_ok=True)
            with open(marker, "w", encoding="utf-8") as f:
                f.write(version)
            return True
        except OSError as error:
            logger.error(f"Failed to write version marker {marker}: {error}")
            return False


def read_marker(marker: str | Path) -> str:
    """
    Read a marker file's version string.

    Raises:
        VersionStoreError: If the marker is missing or unreadable
    """
    try:
        with open(marker, encoding="utf-8") as f:
            return f.read().strip()
    except OSError as error:
        raise VersionStoreError(f"Failed to read version marker {marker}: {error}") from error
