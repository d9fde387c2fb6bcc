import sys
import time
from functools import wraps
from pathlib import Path

from loguru import logger

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
VALID_LEVELS = ["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"]


def configure_logging(level: str = "INFO", log_file: str | Path | None = None) -> str:
    """
    Replace loguru's default handler with the FileSync sinks.

    Args:
        level: Minimum level for every sink
        log_file: Optional path of a rotating log file

    Returns:
        The level actually applied (invalid names fall back to INFO)
    """
    level = (level or "INFO").upper()
    if level not in VALID_LEVELS:
        level = "INFO"

    logger.remove()
    logger.add(sys.stderr, level=level, format=LOG_FORMAT)
    if log_file:
        logger.add(str(log_file), level=level, rotation="10 MB", retention=5, enqueue=True)
    return level


def timeit(func):  # pragma: no cover
    """
    Decorator that logs the execution time of the decorated function.
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        start = time.perf_counter()
        result = func(*args, **kwargs)
        elapsed = time.perf_counter() - start
        logger.debug(f"{func.__qualname__} executed in {elapsed:.6f}s")
        return result
    return wrapper
