"""
Utility helpers for FileSync.
"""

from filesync.utils.logging import configure_logging, timeit
from filesync.utils.rich_console import get_console, print_panel, print_table

__all__ = ["configure_logging", "timeit", "get_console", "print_panel", "print_table"]
