"""
File and directory copy with replace semantics.

A file replaces the destination file in place. A directory replaces the
destination tree entirely: the old tree is removed first, so files deleted
at the source disappear at the destination too.
"""

import shutil
from pathlib import Path

from loguru import logger


def copy_path(src: str | Path, dst: str | Path) -> bool:
    """
    Copy a file or directory from src to dst, replacing existing content.

    Args:
        src: Source file or directory
        dst: Destination path

    Returns:
        bool: True if the copy succeeded, False on any I/O error
    """
    src = Path(src)
    dst = Path(dst)
    try:
        dst.parent.mkdir(parents=True, exist_ok=True)

        if not src.is_dir():
            if dst.is_dir() and not dst.is_symlink():
                shutil.rmtree(dst)
            shutil.copy2(src, dst)
            return True

        if dst.is_symlink() or dst.is_file():
            dst.unlink()
        elif dst.exists():
            shutil.rmtree(dst)
        shutil.copytree(src, dst, copy_function=shutil.copy2)
        return True
    except (OSError, shutil.Error) as error:
        logger.error(f"Failed to copy {src} to {dst}: {error}")
        return False
