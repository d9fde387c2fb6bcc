"""
Value types shared by the synchronization engine.

Classes:
    Mode: Read-only (subscriber) or writable (publisher) node mode
    SynchronizedObject: A named set of locations plus a post-sync command
    EngineConfig: Immutable registry snapshot produced by every reload
"""

import os
from enum import Enum
from pathlib import Path, PurePath

from pydantic import BaseModel, ConfigDict, field_validator


class Mode(str, Enum):
    """Node mode, re-evaluated on every reload."""

    READONLY = "readonly"
    WRITABLE = "writable"


class SynchronizedObject(BaseModel):
    """A named set of relative locations synchronized as one unit.

    Attributes:
        name: Unique object name, looked up case-insensitively
        locations: Ordered, duplicate-free relative paths
        command: Command executed on a subscriber after each completed sync
    """

    name: str
    locations: tuple[str, ...]
    command: str
    model_config = ConfigDict(frozen=True)

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        value = value.strip()
        if not value or "/" in value or "\\" in value or value in (".", ".."):
            raise ValueError(f"invalid object name: {value!r}")
        return value

    @field_validator("locations")
    @classmethod
    def _check_locations(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        seen: list[str] = []
        for location in value:
            path = PurePath(location)
            if not location or path.is_absolute() or path.anchor:
                raise ValueError(f"location must be a relative path: {location!r}")
            if ".." in path.parts:
                raise ValueError(f"location must stay inside its root: {location!r}")
            if location not in seen:
                seen.append(location)
        return tuple(seen)

    @property
    def key(self) -> str:
        """Registry key used for case-insensitive lookup."""
        return self.name.lower()


class EngineConfig(BaseModel):
    """Everything a reload produces, swapped in as a single reference."""

    mode: Mode = Mode.WRITABLE
    base_dir: Path = Path(".")
    shared_root: Path = Path(".")
    startup_sync: bool = False
    resync_on_overflow: bool = True
    objects: dict[str, SynchronizedObject] = {}
    markers: dict[str, str] = {}
    model_config = ConfigDict(frozen=True)

    @property
    def readonly(self) -> bool:
        return self.mode is Mode.READONLY

    def get(self, name: str) -> SynchronizedObject | None:
        """Look an object up by name, ignoring case."""
        return self.objects.get(name.lower())

    def resolve_marker(self, marker_path: str | Path) -> SynchronizedObject | None:
        """Map an absolute marker path back to its object."""
        name = self.markers.get(os.path.abspath(marker_path))
        if name is None:
            return None
        return self.get(name)

    def watched_objects(self) -> list[SynchronizedObject]:
        """Objects whose marker directory was registered with the watcher."""
        return [obj for obj in map(self.get, self.markers.values()) if obj is not None]
