"""Logging configuration for godot-lsp-bridge.

Uses Python's standard logging module with support for:
- File logging via config, --log-file or GODOT_LSP_BRIDGE_LOG
- Verbosity levels: error(0), warning(1), info(2), verbose(3), trace(4)
- Stderr output otherwise

Stdout carries the proxied LSP stream, so no handler ever writes to it.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from godot_lsp_bridge.config.schema import LoggingConfig

# Custom log levels
TRACE = 5
VERBOSE = 15

logging.addLevelName(TRACE, "TRACE")
logging.addLevelName(VERBOSE, "VERBOSE")

PREFIX = "[godot-lsp-bridge]"

logger = logging.getLogger("godot_lsp_bridge")

_initialized = False

# Map --verbose=N to log levels (0=errors only, 4=everything)
_VERBOSITY_MAP = {
    0: logging.ERROR,
    1: logging.WARNING,
    2: logging.INFO,
    3: VERBOSE,
    4: TRACE,
}


class _LowercaseLevelFormatter(logging.Formatter):
    """Formatter that emits lowercase level names."""

    def format(self, record: logging.LogRecord) -> str:
        record.levelname = record.levelname.lower()
        return super().format(record)


def level_for_verbosity(verbose: int) -> int:
    """Translate a 0-4 verbosity count into a logging level."""
    if verbose < 0:
        return logging.ERROR
    return _VERBOSITY_MAP.get(verbose, TRACE)


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Initialize logging based on configuration.

    Call this once at startup. Subsequent calls are no-ops.

    Args:
        config: Optional LoggingConfig with verbose, quiet and file settings.
    """
    global _initialized
    if _initialized:
        return
    _initialized = True

    log_level = logging.INFO
    if config:
        log_level = logging.ERROR if config.quiet else level_for_verbosity(config.verbose)

    logger.setLevel(log_level)
    # Keep records away from any root handlers a host may have installed
    logger.propagate = False

    formatter = _LowercaseLevelFormatter(
        f"{PREFIX} %(asctime)s %(levelname)s: %(message)s", datefmt="%H:%M:%S"
    )

    log_path = config.file if config and config.file else os.environ.get("GODOT_LSP_BRIDGE_LOG")

    if log_path:
        log_path = os.path.expanduser(log_path)
        try:
            file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
            file_handler.setLevel(log_level)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
            return
        except OSError as e:
            print(f"{PREFIX} Failed to open log file: {e}", file=sys.stderr)

    _add_stderr_handler(formatter, log_level)


def reset_logging() -> None:
    """Drop installed handlers so setup_logging can run again."""
    global _initialized
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
    _initialized = False


def _add_stderr_handler(formatter: logging.Formatter, level: int = logging.DEBUG) -> None:
    """Add a stderr handler to the logger."""
    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(level)
    stderr_handler.setFormatter(formatter)
    logger.addHandler(stderr_handler)


def get_logger(name: str | None = None) -> logging.Logger:
    """Get a logger instance.

    Args:
        name: Optional name for a child logger (e.g., "probe", "supervisor").
              If None, returns the root godot_lsp_bridge logger.

    Returns:
        A configured logger instance.
    """
    if name:
        return logger.getChild(name)
    return logger
