"""
Main CLI entry point for FileSync.
"""

# Standard library imports
import importlib.metadata
import signal
import sys
import threading
from pathlib import Path
from typing import Optional

# Third-party imports
import typer

# Local imports
from filesync.cli.console import FileSyncConsole
from filesync.config import FileSyncConfig, load_config, save_default_config
from filesync.core.dispatcher import CommandDispatcher
from filesync.environment import get_env_config
from filesync.exceptions import ConfigError, VersionStoreError
from filesync.sync.engine import SyncEngine
from filesync.sync.version_store import VersionStore
from filesync.utils.rich_console import get_console, print_panel, print_table

console = get_console()

app = typer.Typer(
    help="FileSync - Versioned file synchronization through a shared directory\n\n"
    "A writable node publishes versions of its synchronized objects, read-only nodes "
    "watch the shared location and pull every new version."
)

ConfigOption = typer.Option(None, "--config", "-c", help="Configuration file (default: $FILESYNC_CONFIG)")
BaseDirOption = typer.Option(None, "--base-dir", "-b", help="Node base directory (default: $FILESYNC_BASE_DIR or cwd)")


def _resolve_paths(config_path: Optional[Path], base_dir: Optional[Path]) -> tuple[Path, Path]:
    env = get_env_config()
    base = (base_dir or env.base_dir).absolute()
    if config_path is None:
        config_path = Path(env.FILESYNC_CONFIG).expanduser()
        if not config_path.is_absolute():
            config_path = base / config_path
    return config_path, base


def _load_or_exit(config_path: Path) -> FileSyncConfig:
    try:
        return load_config(config_path)
    except ConfigError as error:
        print_panel(str(error), title="Configuration Error", style="bold red")
        raise typer.Exit(1)


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context):
    """
    FileSync - Versioned file synchronization through a shared directory
    """
    if ctx.invoked_subcommand is None:
        print_table(
            ["Subcommand", "Description"],
            [
                ["init", "Write the default configuration file"],
                ["run", "Run this node (publisher or subscriber)"],
                ["publish", "Publish a new version of an object"],
                ["status", "Show synchronized objects and published versions"],
                ["version", "Show FileSync version"],
            ],
            title="Available FileSync Subcommands",
        )
        typer.echo("\nFor more information about a subcommand, run:")
        typer.echo("  filesync <subcommand> --help")
        raise typer.Exit(0)


@app.command()
def init(config: Optional[Path] = ConfigOption, base_dir: Optional[Path] = BaseDirOption):
    """Write the default configuration file if none exists."""
    config_path, _ = _resolve_paths(config, base_dir)
    if save_default_config(config_path):
        typer.echo(f"Created {config_path}")
    else:
        typer.echo(f"Configuration already exists: {config_path}")


@app.command()
def run(config: Optional[Path] = ConfigOption, base_dir: Optional[Path] = BaseDirOption):  # pragma: no cover
    """Run this node until interrupted.

    Lines typed on stdin are operator commands (reload, status, publish <name>).
    SIGHUP reloads the configuration. Press Ctrl+C to stop.
    """
    config_path, base = _resolve_paths(config, base_dir)
    file_config = _load_or_exit(config_path)

    dispatcher = CommandDispatcher()
    stop_event = threading.Event()
    engine = SyncEngine(base, dispatcher=dispatcher)
    operator_console = FileSyncConsole(engine, lambda: load_config(config_path))
    engine.command_runner = lambda command: operator_console.run_command(command, cwd=str(base))

    def operator_line(line: str) -> None:
        result = operator_console.run_line(line)
        style = "green" if result.ok else "red"
        console.print(f"[{style}]{result.message}[/{style}]")

    def read_stdin() -> None:
        for line in sys.stdin:
            line = line.strip()
            if line in ("quit", "exit", "stop"):
                stop_event.set()
                return
            if line:
                dispatcher.submit(operator_line, line)

    if hasattr(signal, "SIGHUP"):
        signal.signal(signal.SIGHUP, lambda signum, frame: dispatcher.submit(operator_line, "reload"))

    if not engine.reload(file_config):
        engine.shutdown()
        raise typer.Exit(1)

    mode = "read-only" if engine.readonly else "writable"
    typer.echo(f"FileSync running in {mode} mode with {len(engine.objects)} object(s) (Ctrl+C to stop)...")
    threading.Thread(target=read_stdin, name="filesync-console", daemon=True).start()

    try:
        dispatcher.serve(stop_event)
    except KeyboardInterrupt:
        typer.echo("\nStopped.")
    finally:
        engine.shutdown()


@app.command()
def publish(
    name: str = typer.Argument(..., help="Name of the synchronized object"),
    config: Optional[Path] = ConfigOption,
    base_dir: Optional[Path] = BaseDirOption,
):
    """Publish a new version of a synchronized object."""
    config_path, base = _resolve_paths(config, base_dir)
    file_config = _load_or_exit(config_path)
    if file_config.read_only:
        typer.echo("Server is in readonly mode")
        raise typer.Exit(1)

    engine = SyncEngine(base)
    # One-shot publish: no initial publishes for the other objects
    engine.reload(file_config.model_copy(update={"startup_sync": False}))
    result = FileSyncConsole(engine, lambda: load_config(config_path)).publish(name)
    engine.shutdown()
    typer.echo(result.message)
    if not result.ok:
        raise typer.Exit(1)


@app.command()
def status(config: Optional[Path] = ConfigOption, base_dir: Optional[Path] = BaseDirOption):
    """Show synchronized objects and their published versions."""
    config_path, base = _resolve_paths(config, base_dir)
    file_config = _load_or_exit(config_path)
    store = VersionStore(file_config.shared_root(base))

    rows = []
    for obj in file_config.build_objects():
        try:
            published = store.read(obj)
        except VersionStoreError:
            published = "(never published)"
        rows.append([obj.name, ", ".join(obj.locations), obj.command, published])

    mode = "read-only" if file_config.read_only else "writable"
    print_table(
        ["Object", "Locations", "Command", "Published Version"],
        rows,
        title=f"FileSync Status ({mode}, {store.shared_root})",
    )


@app.command()
def version():
    """Show the FileSync version."""
    try:
        typer.echo(f"FileSync version: {importlib.metadata.version('filesync')}")
    except importlib.metadata.PackageNotFoundError:
        from filesync import __version__

        typer.echo(f"FileSync version: {__version__}")


if __name__ == "__main__":
    app()
