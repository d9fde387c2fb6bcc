"""
Publish/sync engine and its filesystem primitives.
"""

from .copier import copy_path
from .engine import SyncEngine
from .version_store import MARKER_NAME, VersionStore, new_version, read_marker

__all__ = ["copy_path", "SyncEngine", "MARKER_NAME", "VersionStore", "new_version", "read_marker"]
