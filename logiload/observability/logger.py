"""
Structured logging for logiload

Every component logs through get_logger(__name__); all module loggers hang
below the "logiload" logger, which owns the handlers. Records are JSON lines
on stdout (python-json-logger). LOG_FORMAT=text switches to a plain format
for local runs and LOGILOAD_LOG_FILE adds a file handler.

Import context such as the table identifier or unit index is passed through
`extra=` and lands as top-level JSON keys.
"""
import logging
import os
import sys
import time

from pythonjsonlogger import jsonlogger

ROOT_LOGGER_NAME = "logiload"

JSON_FORMAT = "%(timestamp)s %(level)s %(logger)s %(message)s"
TEXT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s [%(table)s] %(message)s"


class ImportJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter with a fixed set of leading keys."""

    def add_fields(self, log_record: dict, record: logging.LogRecord, message_dict: dict) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record.setdefault("timestamp", self.formatTime(record, self.datefmt))
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["location"] = f"{record.module}:{record.funcName}:{record.lineno}"


class _TableDefault(logging.Filter):
    # The text format prints [table]; records without one show "-".
    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "table"):
            record.table = "-"
        return True


def _make_handler(stream_or_path, format_type: str, level: int) -> logging.Handler:
    if isinstance(stream_or_path, str):
        handler: logging.Handler = logging.FileHandler(stream_or_path, encoding="utf-8")
    else:
        handler = logging.StreamHandler(stream_or_path)

    if format_type == "text":
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt="%H:%M:%S"))
        handler.addFilter(_TableDefault())
    else:
        handler.setFormatter(ImportJsonFormatter(JSON_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S"))
    handler.setLevel(level)
    return handler


def setup_logger(
    name: str = ROOT_LOGGER_NAME,
    level: str | None = None,
    format_type: str | None = None,
    log_file: str | None = None,
) -> logging.Logger:
    """
    Setup and configure a logger

    Args:
        name: Logger name
        level: Log level name (defaults to env LOG_LEVEL, then INFO)
        format_type: "json" or "text" (defaults to env LOG_FORMAT, then json)
        log_file: Optional file path (defaults to env LOGILOAD_LOG_FILE)

    Returns:
        Configured logger instance
    """
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_level = logging.getLevelName(level_name)
    if not isinstance(log_level, int):
        log_level = logging.INFO
    format_type = (format_type or os.getenv("LOG_FORMAT", "json")).lower()
    log_file = log_file or os.getenv("LOGILOAD_LOG_FILE")

    logger = logging.getLogger(name)
    logger.setLevel(log_level)
    logger.handlers.clear()
    logger.addHandler(_make_handler(sys.stdout, format_type, log_level))
    if log_file:
        logger.addHandler(_make_handler(log_file, format_type, log_level))
    logger.propagate = False
    return logger


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """
    Get a logger below the "logiload" root, configuring the root on first use.

    Names outside the logiload namespace (scripts, __main__) are placed
    under it so they share the same handlers.
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if not root.handlers:
        setup_logger(ROOT_LOGGER_NAME)

    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


class log_operation:
    """
    Context manager logging the start, end and duration of an operation

    Usage:
        with log_operation("Writing 500 rows to 'orders'", logger=logger, table="orders"):
            ...
    """

    def __init__(self, operation_name: str, logger: logging.Logger | None = None, **extra_fields):
        self.operation_name = operation_name
        self.logger = logger or get_logger()
        self.extra_fields = extra_fields
        self.start_time = 0.0

    def __enter__(self):
        self.start_time = time.monotonic()
        self.logger.info(f"Starting: {self.operation_name}", extra=self.extra_fields)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        extra = {"duration_seconds": round(time.monotonic() - self.start_time, 3), **self.extra_fields}
        if exc_type is None:
            self.logger.info(f"Completed: {self.operation_name}", extra=extra)
        else:
            extra["error_type"] = exc_type.__name__
            self.logger.error(f"Failed: {self.operation_name}: {exc_val}", extra=extra)
        return False
