"""
Structured logging for ttsync.

Two output formats:
- text: human-readable lines, coloured on a terminal
- json: one JSON object per line, for log aggregation

Example:
    >>> setup_logging(level=logging.DEBUG, log_format="json",
    ...               static_fields={"service": "ttsync"})
    >>> logger = get_logger("SyncCommand", run="nightly")
    >>> logger.info("Sync started")
"""

from __future__ import annotations

import json
import logging
import sys
import traceback
from datetime import datetime, timezone
from typing import Any


# Attributes every LogRecord has; anything else came in through ``extra``
_RECORD_ATTRIBUTES = frozenset(
    {
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
    }
)

NOISY_LOGGERS = ("urllib3", "requests", "redis")


def _context_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RECORD_ATTRIBUTES and not key.startswith("_")
    }


class JSONFormatter(logging.Formatter):
    """
    Format log records as single-line JSON objects.

    Output fields: timestamp (ISO 8601, UTC), level, logger, message, the
    static fields, ``context`` (extra fields), ``location`` (optional) and
    ``exception`` (type, message, traceback).
    """

    def __init__(
        self,
        include_timestamp: bool = True,
        include_level: bool = True,
        include_logger: bool = True,
        include_location: bool = False,
        static_fields: dict[str, Any] | None = None,
    ):
        super().__init__()
        self.include_timestamp = include_timestamp
        self.include_level = include_level
        self.include_logger = include_logger
        self.include_location = include_location
        self.static_fields = dict(static_fields or {})

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {}

        if self.include_timestamp:
            timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
            entry["timestamp"] = timestamp.strftime("%Y-%m-%dT%H:%M:%S.") + (
                f"{int(record.msecs):03d}Z"
            )
        if self.include_level:
            entry["level"] = record.levelname
        if self.include_logger:
            entry["logger"] = record.name

        entry["message"] = record.getMessage()
        entry.update(self.static_fields)

        context = _context_fields(record)
        if context:
            entry["context"] = context

        if self.include_location:
            entry["location"] = {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc_value, exc_tb = record.exc_info
            entry["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc_value),
                "traceback": "".join(traceback.format_exception(exc_type, exc_value, exc_tb)),
            }

        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """
    Human-readable formatter: ``<time> <LEVEL> <logger>: <message>``.
    """

    LEVEL_COLORS = {
        logging.DEBUG: "\033[2m",
        logging.INFO: "\033[36m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[1;31m",
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True, include_context: bool = False):
        super().__init__(datefmt="%H:%M:%S")
        self.use_colors = use_colors
        self.include_context = include_context

    def format(self, record: logging.LogRecord) -> str:
        level = record.levelname
        if self.use_colors:
            level = f"{self.LEVEL_COLORS.get(record.levelno, '')}{level}{self.RESET}"

        timestamp = self.formatTime(record, self.datefmt)
        line = f"{timestamp} {level} {record.name}: {record.getMessage()}"

        if self.include_context:
            context = _context_fields(record)
            if context:
                line += " " + " ".join(f"{key}={value}" for key, value in context.items())

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class ContextLogger:
    """
    Logger wrapper that attaches fixed context fields to every record.
    """

    def __init__(self, name: str, context: dict[str, Any] | None = None):
        self._logger = logging.getLogger(name)
        self._context = dict(context or {})

    def bind(self, **context: Any) -> ContextLogger:
        """Return a new logger with additional context."""
        return ContextLogger(self._logger.name, {**self._context, **context})

    def log(self, level: int, msg: str, *args: Any, **kwargs: Any) -> None:
        extra = {**self._context, **kwargs.pop("extra", {})}
        self._logger.log(level, msg, *args, extra=extra, **kwargs)

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self.log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self.log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self.log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self.log(logging.ERROR, msg, *args, **kwargs)

    def critical(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self.log(logging.CRITICAL, msg, *args, **kwargs)

    def exception(self, msg: str, *args: Any, **kwargs: Any) -> None:
        kwargs.setdefault("exc_info", True)
        self.log(logging.ERROR, msg, *args, **kwargs)


def get_logger(name: str, **context: Any) -> ContextLogger:
    """Get a logger that adds ``context`` to every record."""
    return ContextLogger(name, context)


def setup_logging(
    level: int = logging.INFO,
    log_format: str = "text",
    log_file: str | None = None,
    static_fields: dict[str, Any] | None = None,
) -> None:
    """
    Configure the root logger.

    Existing root handlers are replaced. Logs go to stderr and, when
    ``log_file`` is given, to that file as well (never coloured).

    Args:
        level: Root log level.
        log_format: "text" or "json".
        log_file: Optional path of a log file to append to.
        static_fields: Fields added to every JSON record.
    """
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()

    def make_formatter(use_colors: bool) -> logging.Formatter:
        if log_format == "json":
            return JSONFormatter(static_fields=static_fields)
        return TextFormatter(use_colors=use_colors)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(make_formatter(sys.stderr.isatty()))
    root.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(make_formatter(False))
        root.addHandler(file_handler)

    root.setLevel(level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
