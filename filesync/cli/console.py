"""
Operator Console
================

The actions an operator (or an object's post-sync command) can run against a
live node: ``reload``, ``publish <name>`` and ``status``.
"""

import shlex
from collections.abc import Callable
from typing import NamedTuple

from loguru import logger

from filesync.config import FileSyncConfig
from filesync.core.dispatcher import run_shell_command
from filesync.exceptions import ConfigError
from filesync.sync.engine import SyncEngine
from filesync.sync.version_store import new_version

ACTIONS = ("reload", "publish", "status")


class ConsoleResult(NamedTuple):
    """Outcome of an operator action plus a short user-facing message."""

    ok: bool
    message: str


class FileSyncConsole:
    """Executes operator actions against a SyncEngine."""

    def __init__(self, engine: SyncEngine, config_loader: Callable[[], FileSyncConfig]):
        """Initialize the console.

        Args:
            engine: Engine the actions run against
            config_loader: Loads and validates the configuration for reloads
        """
        self.engine = engine
        self.config_loader = config_loader

    def handles(self, command: str) -> bool:
        """Check whether a command line names one of the console actions."""
        words = command.split()
        return bool(words) and words[0].lower() in ACTIONS

    def run_command(self, command: str, cwd: str | None = None) -> None:
        """Run an object's post-sync command.

        Console actions run against this console, anything else goes to the shell.
        """
        if self.handles(command):
            result = self.run_line(command)
            log = logger.info if result.ok else logger.warning
            log(f"{command}: {result.message}")
        else:
            run_shell_command(command, cwd=cwd)

    def run_line(self, line: str) -> ConsoleResult:
        """Split a command line and execute it."""
        try:
            args = shlex.split(line)
        except ValueError as error:
            return ConsoleResult(False, f"Invalid command: {error}")
        return self.execute(args)

    def execute(self, args: list[str]) -> ConsoleResult:
        if not args:
            return ConsoleResult(False, self.usage())

        action = args[0].lower()
        if action == "reload":
            if len(args) != 1:
                return ConsoleResult(False, self.usage())
            return self.reload()
        if action == "publish":
            if self.engine.readonly:
                return ConsoleResult(False, "Server is in readonly mode")
            if len(args) != 2:
                return ConsoleResult(False, self.usage())
            return self.publish(args[1])
        if action == "status":
            if len(args) != 1:
                return ConsoleResult(False, self.usage())
            return self.status()
        return ConsoleResult(False, self.usage())

    def usage(self) -> str:
        if self.engine.readonly:
            return "Usage: reload | status"
        return "Usage: reload | status | publish <name>"

    def reload(self) -> ConsoleResult:
        try:
            config = self.config_loader()
        except ConfigError as error:
            logger.error(f"Reload aborted: {error}")
            return ConsoleResult(False, "Failed to reload FileSync")
        if not self.engine.reload(config):
            return ConsoleResult(False, "Failed to reload FileSync")
        return ConsoleResult(True, "FileSync Reloaded")

    def publish(self, name: str) -> ConsoleResult:
        obj = self.engine.get_object(name)
        if obj is None:
            return ConsoleResult(False, "Unknown object")
        if self.engine.publish(obj, new_version()):
            return ConsoleResult(True, "New version published")
        return ConsoleResult(False, "Error publishing version")

    def status(self) -> ConsoleResult:
        status = self.engine.status()
        lines = [f"Mode: {status['mode']}, shared location: {status['shared_root']}"]
        for name, info in status["objects"].items():
            lines.append(
                f"{name}: published={info['published'] or '-'} synced={info['synced'] or '-'}"
            )
        return ConsoleResult(True, "\n".join(lines))

    def complete(self, args: list[str]) -> list[str]:
        """Complete the last word of a partially typed command."""
        if not args:
            args = [""]
        prefix = args[-1].lower()

        if len(args) == 1:
            actions = ["reload", "status"] if self.engine.readonly else ["reload", "publish", "status"]
            return [action for action in actions if action.startswith(prefix)]

        if len(args) == 2 and args[0].lower() == "publish" and not self.engine.readonly:
            names = [obj.name for obj in self.engine.objects.values()]
            return [name for name in names if name.lower().startswith(prefix)]

        return []
