"""
Centralized Logging Configuration with Structured Logging Support

Supports both traditional text logging and structured JSON logging with
correlation IDs. Every credforge module logs through
``logging.getLogger(__name__)`` so configuring the ``credforge`` package
logger here covers the whole engine.

Usage:
    from credforge.logging_config import configure_logging, correlation_id_var

    # Text logging to the console (and optionally a file)
    configure_logging(log_level="DEBUG")

    # JSON logging for services that ship logs to an aggregator
    configure_logging(log_format="json")

    # Tag every line of one migration run
    correlation_id_var.set("migration-2024-06-01")

Environment Variables:
    CREDFORGE_LOG_LEVEL - Set log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    CREDFORGE_LOG_FORMAT - "text" or "json"
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar
from pathlib import Path
from typing import Optional

from .config import settings

PACKAGE_LOGGER = "credforge"

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
TEXT_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Context var for correlation ID (used in structured logging)
correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

_STANDARD_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "thread",
        "threadName",
        "taskName",
        "exc_info",
        "exc_text",
        "stack_info",
        "message",
    }
)


class StructuredFormatter(logging.Formatter):
    """JSON formatter with correlation ID for structured logging.

    Each log entry includes timestamp, level, logger name, message,
    correlation ID, and any extra fields added to the log record.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as JSON.

        Args:
            record: The log record to format

        Returns:
            JSON-formatted log string
        """
        log_data = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": correlation_id_var.get(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Extra fields (e.g. logger.info("...", extra={"project_ref": ref}))
        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and key not in log_data:
                log_data[key] = value

        return json.dumps(log_data, default=str)


def _build_formatter(log_format: str) -> logging.Formatter:
    if log_format.lower() == "json":
        return StructuredFormatter()
    return logging.Formatter(fmt=TEXT_FORMAT, datefmt=TEXT_DATEFMT)


def setup_structured_logging(log_level: str = "INFO") -> None:
    """Configure structured JSON logging on the root logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Example:
        setup_structured_logging()
        correlation_id_var.set(str(uuid.uuid4()))
        logger.info("Starting migration")  # includes correlation_id
    """
    level = getattr(logging, log_level.upper())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter())
    handler.setLevel(level)
    root_logger.addHandler(handler)


def configure_logging(
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
    log_file: Optional[Path] = None,
    log_to_console: bool = True,
) -> logging.Logger:
    """
    Configure the credforge package logger.

    Calling this again replaces the handlers it installed earlier, so it is
    safe to call from tests and from long-running processes that reload
    their settings.

    Args:
        log_level: Log level (defaults to ``settings.log_level``)
        log_format: "text" or "json" (defaults to ``settings.log_format``)
        log_file: Optional file to append log lines to
        log_to_console: Whether to log to stdout

    Returns:
        Configured package logger
    """
    logger = logging.getLogger(PACKAGE_LOGGER)

    # Close and drop our previous handlers to avoid duplicates
    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)

    level = getattr(logging, (log_level or settings.log_level).upper())
    logger.setLevel(level)
    formatter = _build_formatter(log_format or settings.log_format)

    if log_to_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_file is not None:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        # UTF-8 so project refs with non-ASCII names survive
        file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

        logger.info(f"Logging to: {log_path}")

    return logger
