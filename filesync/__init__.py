"""
FileSync - Versioned file synchronization through a shared directory
"""

from filesync.config import FileSyncConfig, load_config
from filesync.exceptions import ConfigError, FileSyncError, VersionStoreError, WatcherError
from filesync.models import EngineConfig, Mode, SynchronizedObject
from filesync.sync.engine import SyncEngine

__version__ = "0.1.0"
__all__ = [
    "ConfigError",
    "EngineConfig",
    "FileSyncConfig",
    "FileSyncError",
    "Mode",
    "SyncEngine",
    "SynchronizedObject",
    "VersionStoreError",
    "WatcherError",
    "load_config",
]
