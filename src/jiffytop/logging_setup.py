"""Logging lifecycle for jiffytop.

Call ``configure_logging`` once at startup and ``shutdown_logging`` at exit.
Components take a ``logging.Logger`` at construction and default to their
module logger, which propagates to the handlers installed here.
"""

import logging
import sys
from pathlib import Path

from jiffytop.config import LOG_DATE_FORMAT, LOG_FORMAT

ROOT_LOGGER_NAME = "jiffytop"

_handlers: list[logging.Handler] = []


def configure_logging(
    level: int | str = logging.INFO,
    log_file: str | Path | None = None,
    stream=None,
    console: bool = True,
) -> logging.Logger:
    """
    Install handlers on the ``jiffytop`` logger.

    Args:
        level: Minimum level to emit.
        log_file: Optional file to append log records to.
        stream: Stream for the console handler. Default stderr.
        console: Install the console handler at all.

    Returns:
        The configured ``jiffytop`` logger.
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    shutdown_logging()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    if console:
        stream_handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
        stream_handler.setFormatter(formatter)
        _handlers.append(stream_handler)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setFormatter(formatter)
        _handlers.append(file_handler)

    if not _handlers:
        # Keeps records away from the lastResort stderr handler
        _handlers.append(logging.NullHandler())

    for handler in _handlers:
        root.addHandler(handler)
    root.setLevel(level)
    root.propagate = False
    return root


def shutdown_logging() -> None:
    """Flush, detach and close the handlers installed by configure_logging."""
    root = logging.getLogger(ROOT_LOGGER_NAME)
    while _handlers:
        handler = _handlers.pop()
        handler.flush()
        root.removeHandler(handler)
        handler.close()
    root.setLevel(logging.NOTSET)
    root.propagate = True
