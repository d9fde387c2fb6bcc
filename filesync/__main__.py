"""
Main entry point for the FileSync CLI.
"""

from filesync.cli import cli


def main() -> None:
    """Main function for the FileSync CLI."""
    cli()


if __name__ == "__main__":
    main()
