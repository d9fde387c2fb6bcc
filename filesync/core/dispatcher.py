"""
Primary Control Context
=======================

Work that must not run on the watcher thread (post-sync commands, operator
commands, reloads) is submitted to a CommandDispatcher and executed in FIFO
order by whichever thread drains it. Only one thread drains a dispatcher, so
two submitted tasks never run concurrently. The queue is a SimpleQueue so
submit() may be called from a signal handler on the draining thread.
"""

import queue
import subprocess
import threading
from collections.abc import Callable
from typing import Any

from loguru import logger


class CommandDispatcher:
    """FIFO task queue drained by the primary control thread."""

    def __init__(self):
        self._tasks: queue.SimpleQueue[tuple[Callable[..., Any], tuple, dict]] = queue.SimpleQueue()
        self._drain_lock = threading.Lock()

    @property
    def pending(self) -> int:
        """Number of tasks waiting to run."""
        return self._tasks.qsize()

    def submit(self, func: Callable[..., Any], *args, **kwargs) -> None:
        """Queue a callable for execution on the primary context."""
        self._tasks.put((func, args, kwargs))

    def run_pending(self, timeout: float | None = None) -> int:
        """
        Run every queued task.

        Args:
            timeout: Seconds to wait for a first task when the queue is empty.
                None or 0 returns immediately.

        Returns:
            int: Number of tasks executed
        """
        with self._drain_lock:
            executed = 0
            block = bool(timeout)
            while True:
                try:
                    func, args, kwargs = self._tasks.get(block=block, timeout=timeout if block else None)
                except queue.Empty:
                    return executed
                block = False
                try:
                    func(*args, **kwargs)
                except Exception:
                    logger.exception(f"Task {getattr(func, '__qualname__', func)!r} failed")
                executed += 1

    def serve(self, stop_event: threading.Event, poll_interval: float = 0.2) -> None:
        """Drain tasks until stop_event is set, then run what is left."""
        while not stop_event.is_set():
            self.run_pending(timeout=poll_interval)
        self.run_pending()


def run_shell_command(command: str, cwd: str | None = None) -> int:
    """
    Run a command through the shell and log its outcome.

    Returns:
        int: The exit code, or -1 if the command could not be started
    """
    logger.info(f"Running command: {command}")
    try:
        result = subprocess.run(command, shell=True, cwd=cwd, capture_output=True, text=True)
    except OSError as error:
        logger.error(f"Failed to run command {command!r}: {error}")
        return -1

    if result.stdout:
        logger.debug(result.stdout.rstrip())
    if result.returncode != 0:
        error_msg = result.stderr.strip() if result.stderr else "Unknown error"
        logger.error(f"Command {command!r} exited with {result.returncode}: {error_msg}")
    return result.returncode
