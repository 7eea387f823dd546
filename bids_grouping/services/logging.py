"""Logging utilities for the grouping engine."""

from __future__ import annotations

import logging
import queue
from logging.handlers import QueueHandler, QueueListener
from pathlib import Path
from typing import Optional


_ROOT_LOGGER_NAME = "bids_grouping"
_CONSOLE_FILTER_FLAG = "to_console"
_queue_listener: Optional[QueueListener] = None


class _ConsoleFilter(logging.Filter):
    """Allow only records flagged for console emission, or any warning when verbose is off."""

    def __init__(self, *, verbose: bool = False) -> None:
        super().__init__()
        self.verbose = verbose

    def filter(self, record: logging.LogRecord) -> bool:
        if self.verbose:
            return True
        if record.levelno >= logging.WARNING:
            return True
        return bool(getattr(record, _CONSOLE_FILTER_FLAG, False))


def configure_logging(
    *,
    log_to_file: bool,
    log_file: Optional[Path],
    log_to_console: bool,
    verbose: bool = False,
) -> None:
    """Configure logging sinks for this run."""

    shutdown_logging()

    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    for handler in list(root_logger.handlers):
        if isinstance(handler, QueueHandler):
            root_logger.removeHandler(handler)

    handlers: list[logging.Handler] = []
    if log_to_file and log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    package_logger = logging.getLogger(_ROOT_LOGGER_NAME)
    package_logger.setLevel(logging.DEBUG)
    package_logger.propagate = True

    if log_to_console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
        console_handler.addFilter(_ConsoleFilter(verbose=verbose))
        handlers.append(console_handler)

    if not handlers:
        # Keep warnings visible when every sink is disabled.
        fallback_handler = logging.StreamHandler()
        fallback_handler.setLevel(logging.WARNING)
        fallback_handler.setFormatter(formatter)
        handlers.append(fallback_handler)

    log_queue: queue.Queue[logging.LogRecord] = queue.Queue(-1)
    queue_handler = QueueHandler(log_queue)
    root_logger.addHandler(queue_handler)

    global _queue_listener
    _queue_listener = QueueListener(log_queue, *handlers, respect_handler_level=True)
    _queue_listener.start()


def shutdown_logging() -> None:
    """Flush and stop the queue listener started by :func:`configure_logging`."""

    global _queue_listener
    if _queue_listener is None:
        return
    _queue_listener.stop()
    for handler in _queue_listener.handlers:
        handler.close()
    _queue_listener = None


def console_kwargs() -> dict[str, bool]:
    """Helper to flag log records for console emission."""

    return {_CONSOLE_FILTER_FLAG: True}


__all__ = ["configure_logging", "console_kwargs", "shutdown_logging"]
