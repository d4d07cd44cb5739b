#!/usr/bin/env python3
"""Structured logging for vtree.

This module wraps the standard logging module with:
- Log levels as an IntEnum (DEBUG, INFO, WARNING, ERROR, CRITICAL)
- Structured context (key-value pairs appended to the message)
- Thread-local context stacks
- Console output on stderr and optional rotating log files

Diagnostics go to stderr so they never mix with listings printed on
stdout or with the output of commands run through `call`.

Example:
    >>> logger = Logger("vtree.store", level=LogLevel.DEBUG)
    >>> logger.info("Saved tree", tree="Project_A", nodes=12)
    >>> with logger.add_context(tree="Project_A"):
    ...     logger.debug("Entering session")
"""

import logging
import logging.handlers
import sys
import threading
from contextlib import contextmanager
from enum import IntEnum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union


class LogLevel(IntEnum):
    """Log levels matching Python's logging module."""

    DEBUG = logging.DEBUG  # 10
    INFO = logging.INFO  # 20
    WARNING = logging.WARNING  # 30
    ERROR = logging.ERROR  # 40
    CRITICAL = logging.CRITICAL  # 50


CONSOLE_FORMAT = "%(name)s: %(levelname)s: %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class Logger:
    """Structured logger with context support.

    Messages carry key-value context that is rendered as
    ``message | key=value key=value``. Context pushed with
    :meth:`add_context` applies to every message logged inside the block
    on the same thread.
    """

    _local = threading.local()

    def __init__(
        self,
        name: str = "vtree",
        level: Union[LogLevel, str] = LogLevel.WARNING,
        handlers: Optional[List[logging.Handler]] = None,
    ):
        """Bind to the stdlib logger ``name``, replacing its handlers.

        Args:
            name: Dotted logger name ("vtree" or "vtree.<component>")
            level: Minimum level to emit
            handlers: Handlers to install; a stderr console handler if None
        """
        self.name = name
        self.logger = logging.getLogger(name)
        # Records stop here; the root logger belongs to the host program
        self.logger.propagate = False
        self.set_level(level)
        self.logger.handlers = list(handlers) if handlers is not None else [self._console_handler()]

    @staticmethod
    def _console_handler() -> logging.StreamHandler:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        return handler

    def create_file_handler(
        self,
        filename: Union[str, Path],
        max_bytes: int = 1024 * 1024,
        backup_count: int = 3,
    ) -> logging.handlers.RotatingFileHandler:
        """Rotating UTF-8 log file handler; parent directories are created."""
        path = Path(filename).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.handlers.RotatingFileHandler(
            path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
        handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        return handler

    def add_handler(self, handler: logging.Handler) -> None:
        """Add a new output handler."""
        self.logger.addHandler(handler)

    def set_level(self, level: Union[LogLevel, str]) -> None:
        """Set the minimum level; names are accepted in any case."""
        self.logger.setLevel(LogLevel[level.upper()] if isinstance(level, str) else level)

    def get_level(self) -> LogLevel:
        return LogLevel(self.logger.level)

    def child(self, suffix: str) -> "Logger":
        """Create a logger named ``<name>.<suffix>`` sharing level and handlers."""
        return Logger(
            f"{self.name}.{suffix}",
            level=self.get_level(),
            handlers=list(self.logger.handlers),
        )

    @classmethod
    def _stack(cls) -> List[Dict[str, Any]]:
        stack = getattr(cls._local, "stack", None)
        if stack is None:
            stack = cls._local.stack = []
        return stack

    @contextmanager
    def add_context(self, **fields):
        """Attach ``fields`` to every message logged on this thread inside the block.

        Example:
            >>> with logger.add_context(tree="Project_A"):
            ...     logger.info("Loaded")
        """
        stack = self._stack()
        stack.append(fields)
        try:
            yield
        finally:
            stack.pop()

    def _log(self, level: LogLevel, msg: str, fields: Dict[str, Any]) -> None:
        if not self.logger.isEnabledFor(level):
            return
        context: Dict[str, Any] = {}
        for frame in self._stack():
            context.update(frame)
        context.update(fields)
        if context:
            msg = msg + " | " + " ".join(f"{k}={v}" for k, v in context.items())
        self.logger.log(level, msg, extra={"context": context})

    def debug(self, msg: str, **fields) -> None:
        self._log(LogLevel.DEBUG, msg, fields)

    def info(self, msg: str, **fields) -> None:
        self._log(LogLevel.INFO, msg, fields)

    def warning(self, msg: str, **fields) -> None:
        self._log(LogLevel.WARNING, msg, fields)

    def error(self, msg: str, **fields) -> None:
        self._log(LogLevel.ERROR, msg, fields)


# Global logger instance
_global_logger: Optional[Logger] = None


def get_logger(name: str = "vtree") -> Logger:
    """Get the global logger, or a child of it for dotted sub-names.

    Args:
        name: Logger name ("vtree" or "vtree.<component>")

    Returns:
        Logger instance
    """
    global _global_logger
    if _global_logger is None:
        _global_logger = Logger(name="vtree")
    if name == _global_logger.name:
        return _global_logger
    if name.startswith(_global_logger.name + "."):
        return _global_logger.child(name[len(_global_logger.name) + 1 :])
    return Logger(name=name, level=_global_logger.get_level())


def set_global_logger(logger: Logger) -> None:
    """Set the global logger instance."""
    global _global_logger
    _global_logger = logger


def configure_logging(
    level: Union[LogLevel, str] = LogLevel.WARNING, log_file: Optional[str] = None
) -> Logger:
    """Build the process-wide logger used by the command-line front end.

    Args:
        level: Minimum level for console and file output
        log_file: Optional file receiving the same records

    Returns:
        The new global logger
    """
    logger = Logger("vtree", level=level)
    if log_file:
        logger.add_handler(logger.create_file_handler(log_file))
    set_global_logger(logger)
    return logger
