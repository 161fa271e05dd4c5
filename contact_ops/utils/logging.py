"""
Logging configuration for contact_ops.

Tasks run on queue workers and access requests resolve on whichever thread
completes them, so every record is stamped with the name of the task it was
emitted for. task_context() sets that name for the current thread and
TaskContextFilter copies it onto records as %(task)s.

Levels come from CONTACT_OPS_LOG_LEVEL / CONTACT_OPS_DEBUG unless --verbose
is given. File logs always capture DEBUG with the task and thread columns.
"""

import logging
import os
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Optional

from contact_ops.utils.paths import resolve_config_dir

ROOT_LOGGER = "contact_ops"

# Console output without --verbose
CONSOLE_FORMAT = "%(levelname)s: %(message)s"

# File output and --verbose console output
VERBOSE_FORMAT = (
    "%(asctime)s - %(levelname)s - [%(threadName)s] [%(task)s] %(name)s - %(message)s"
)

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Placeholder for records emitted outside any task
NO_TASK = "-"

ENV_LOG_LEVEL = "CONTACT_OPS_LOG_LEVEL"
ENV_DEBUG = "CONTACT_OPS_DEBUG"
ENV_LOG_FILE = "CONTACT_OPS_LOG_FILE"

LOG_FILE_PREFIX = "contact_ops_"

_current = threading.local()


@contextmanager
def task_context(name: str) -> Iterator[None]:
    """Attribute records logged on this thread to the named task."""
    previous = getattr(_current, "task", None)
    _current.task = name
    try:
        yield
    finally:
        _current.task = previous


def current_task_name() -> Optional[str]:
    return getattr(_current, "task", None)


class TaskContextFilter(logging.Filter):
    """Sets record.task to the task running on the emitting thread."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.task = current_task_name() or NO_TASK
        return True


class ColoredFormatter(logging.Formatter):
    """
    Formatter that colors the level name on terminals.

    Colors are dropped when stderr is not a TTY, NO_COLOR is set or TERM is
    "dumb".
    """

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(
        self,
        fmt: Optional[str] = None,
        datefmt: Optional[str] = None,
        use_colors: bool = True,
    ):
        super().__init__(fmt, datefmt)
        self.use_colors = use_colors and _stderr_supports_color()

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname) if self.use_colors else None
        if color is None:
            return super().format(record)

        # Other handlers share the record
        colored = logging.makeLogRecord(record.__dict__)
        colored.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(colored)


def _stderr_supports_color() -> bool:
    isatty = getattr(sys.stderr, "isatty", None)
    if isatty is None or not isatty():
        return False
    # https://no-color.org/
    if os.environ.get("NO_COLOR"):
        return False
    return os.environ.get("TERM", "") != "dumb"


def get_log_level_from_env() -> int:
    """
    Resolve the level from the environment.

    CONTACT_OPS_DEBUG wins over CONTACT_OPS_LOG_LEVEL; unknown names mean INFO.
    """
    if os.environ.get(ENV_DEBUG, "").lower() in ("1", "true", "yes"):
        return logging.DEBUG

    level = logging.getLevelName(os.environ.get(ENV_LOG_LEVEL, "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def get_log_file_path(log_dir: Optional[Path] = None) -> Optional[Path]:
    """
    Path of today's log file.

    CONTACT_OPS_LOG_FILE overrides the location; "none", "disabled" or an
    empty value turns file logging off and returns None.
    """
    override = os.environ.get(ENV_LOG_FILE)
    if override is not None:
        if override.lower() in ("none", "disabled", ""):
            return None
        return Path(override)

    directory = log_dir or resolve_config_dir() / "logs"
    return directory / f"{LOG_FILE_PREFIX}{datetime.now():%Y%m%d}.log"


def _console_handler(level: int, verbose: bool, use_colors: bool) -> logging.Handler:
    fmt = VERBOSE_FORMAT if verbose else CONSOLE_FORMAT
    formatter = (
        ColoredFormatter(fmt, DATE_FORMAT)
        if use_colors
        else logging.Formatter(fmt, DATE_FORMAT)
    )
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def _file_handler(path: Path) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(VERBOSE_FORMAT, DATE_FORMAT))
    return handler


def setup_logging(
    verbose: bool = False,
    log_dir: Optional[Path] = None,
    log_file: Optional[Path] = None,
    enable_file_logging: bool = True,
    use_colors: bool = True,
) -> logging.Logger:
    """
    Configure the contact_ops logger.

    Replaces any handlers from an earlier call. The console handler follows
    the environment level (DEBUG with verbose=True); the file handler, when
    enabled, records everything.

    Args:
        verbose: DEBUG level and the task/thread format on the console
        log_dir: Directory for the dated log file
        log_file: Explicit log file, overriding log_dir
        enable_file_logging: Set False for console-only logging
        use_colors: Color level names when the terminal supports it

    Returns:
        The package logger
    """
    level = logging.DEBUG if verbose else get_log_level_from_env()

    logger = logging.getLogger(ROOT_LOGGER)
    logger.handlers.clear()
    logger.propagate = False

    handlers = [_console_handler(level, verbose, use_colors)]
    file_error: Optional[OSError] = None
    file_path = None
    if enable_file_logging:
        file_path = log_file or get_log_file_path(log_dir)
        if file_path is not None:
            try:
                handlers.append(_file_handler(file_path))
            except OSError as e:
                file_error = e

    task_filter = TaskContextFilter()
    for handler in handlers:
        handler.addFilter(task_filter)
        logger.addHandler(handler)
    logger.setLevel(min(h.level for h in handlers))

    if file_error is not None:
        logger.warning(f"Could not create log file {file_path}: {file_error}")
    elif file_path is not None and len(handlers) > 1:
        logger.debug(f"Log file: {file_path}")

    return logger


def cleanup_old_logs(log_dir: Optional[Path] = None, keep_count: int = 10) -> int:
    """
    Delete all but the newest keep_count dated log files.

    Files not matching the contact_ops_*.log pattern are never touched and a
    keep_count of 0 disables cleanup.

    Returns:
        Number of files deleted
    """
    directory = log_dir or resolve_config_dir() / "logs"
    if keep_count <= 0 or not directory.is_dir():
        return 0

    newest_first = sorted(
        directory.glob(f"{LOG_FILE_PREFIX}*.log"),
        key=lambda p: p.stat().st_mtime,
        reverse=True,
    )

    deleted = 0
    for stale in newest_first[keep_count:]:
        try:
            stale.unlink()
        except OSError as e:
            logging.getLogger(ROOT_LOGGER).debug(f"Could not delete {stale}: {e}")
            continue
        deleted += 1
    return deleted


def get_logger(name: str) -> logging.Logger:
    """Logger under the contact_ops hierarchy, prefixing bare names."""
    if not name.startswith(ROOT_LOGGER):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)


__all__ = [
    "setup_logging",
    "get_logger",
    "cleanup_old_logs",
    "task_context",
    "current_task_name",
    "TaskContextFilter",
    "ColoredFormatter",
    "get_log_level_from_env",
    "get_log_file_path",
    "ROOT_LOGGER",
    "CONSOLE_FORMAT",
    "VERBOSE_FORMAT",
    "DATE_FORMAT",
    "NO_TASK",
]
