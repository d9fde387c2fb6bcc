"""
Exceptions raised by FileSync.
"""


class FileSyncError(Exception):
    """Base exception for FileSync errors."""


class ConfigError(FileSyncError):
    """Raised when the configuration file is missing or invalid."""


class VersionStoreError(FileSyncError):
    """Raised when a version marker cannot be read."""


class WatcherError(FileSyncError):
    """Raised when the marker watcher cannot be created or used."""
