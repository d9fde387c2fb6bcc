"""
Configuration File Loading
==========================

Reads the YAML configuration file into validated pydantic models. Any
missing or malformed field raises ConfigError before the engine sees the
configuration, so a failed reload never touches the running registry.
"""

from pathlib import Path

import yaml
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from filesync.exceptions import ConfigError
from filesync.models import SynchronizedObject

DEFAULT_CONFIG = """\
# Synchronize all objects when the node starts. A writable node publishes an
# initial version of every object that has never been published; a read-only
# node pulls the currently published version.
StartUpSync: true

# Read-only nodes subscribe to published versions, writable nodes publish.
ReadOnly: true

# Shared directory reachable by every node, relative to the base directory.
SharedLocation: ../shared

# Resync every object when filesystem events were dropped.
ResyncOnOverflow: true

Synchronizations:
  configs:
    Locations:
      - server.properties
    Command: reload
"""


class SynchronizationConfig(BaseModel):
    """One entry of the Synchronizations section."""

    locations: list[str] = Field(alias="Locations")
    command: str = Field(alias="Command")
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="forbid")


class FileSyncConfig(BaseModel):
    """Validated contents of the configuration file."""

    startup_sync: bool = Field(False, alias="StartUpSync")
    read_only: bool = Field(False, alias="ReadOnly")
    shared_location: str = Field(alias="SharedLocation")
    resync_on_overflow: bool = Field(True, alias="ResyncOnOverflow")
    synchronizations: dict[str, SynchronizationConfig] = Field(alias="Synchronizations")
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="forbid")

    def shared_root(self, base_dir: Path) -> Path:
        """Resolve the shared location against the node's base directory."""
        return (Path(base_dir) / Path(self.shared_location).expanduser()).absolute()

    def build_objects(self) -> list[SynchronizedObject]:
        """Create the synchronized objects in configuration order.

        Raises:
            ConfigError: If an object is invalid or two names differ only in case
        """
        objects: list[SynchronizedObject] = []
        seen: set[str] = set()
        for name, definition in self.synchronizations.items():
            try:
                obj = SynchronizedObject(
                    name=name,
                    locations=tuple(definition.locations),
                    command=definition.command,
                )
            except ValidationError as error:
                raise ConfigError(f"Invalid synchronization {name!r}: {error}") from error
            if obj.key in seen:
                raise ConfigError(f"Duplicate synchronization name: {name!r}")
            seen.add(obj.key)
            objects.append(obj)
        return objects


def parse_config(data: object) -> FileSyncConfig:
    """Validate already-parsed configuration data.

    Raises:
        ConfigError: If the data does not describe a valid configuration
    """
    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a mapping")
    try:
        config = FileSyncConfig.model_validate(data)
    except ValidationError as error:
        raise ConfigError(f"Invalid configuration: {error}") from error
    # Surface object-level problems now rather than halfway through a reload
    config.build_objects()
    return config


def load_config(path: str | Path) -> FileSyncConfig:
    """Read and validate the YAML configuration file.

    Args:
        path: Path to the configuration file

    Returns:
        FileSyncConfig: The validated configuration

    Raises:
        ConfigError: If the file is missing, unreadable or invalid
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as error:
        raise ConfigError(f"Cannot read configuration file {path}: {error}") from error
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as error:
        raise ConfigError(f"Invalid YAML in {path}: {error}") from error
    config = parse_config(data)
    logger.debug(f"Loaded configuration from {path}")
    return config


def save_default_config(path: str | Path) -> bool:
    """Write the default configuration file unless one already exists.

    Returns:
        bool: True if the file was created
    """
    path = Path(path)
    if path.exists():
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(DEFAULT_CONFIG, encoding="utf-8")
    logger.info(f"Created default configuration at {path}")
    return True
