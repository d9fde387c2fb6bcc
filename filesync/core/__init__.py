"""
Background watching and primary-context dispatch.
"""

from .dispatcher import CommandDispatcher, run_shell_command
from .watcher import MarkerEvent, MarkerEventHandler, MarkerWatcher

__all__ = ["CommandDispatcher", "run_shell_command", "MarkerEvent", "MarkerEventHandler", "MarkerWatcher"]
