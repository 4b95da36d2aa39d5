"""
Error classification for credential operations.

Typed errors raised inside the engine already know their kind. Untyped
exceptions coming from third-party code (the project store, drivers, HTTP
clients) are classified here, first by exception type and then, as a last
resort, by keywords in the message.
"""

import asyncio
import logging
from enum import Enum
from typing import Tuple

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    """Error kinds for credential operations"""

    VALIDATION_ERROR = "VALIDATION_ERROR"  # Bad input / policy violation - never retried
    NETWORK_ERROR = "NETWORK_ERROR"  # Connectivity - retry
    DATABASE_ERROR = "DATABASE_ERROR"  # Store / SQL failures - usually retry
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"  # Missing or broken setup - fail-fast
    TIMEOUT_ERROR = "TIMEOUT_ERROR"  # Deadline exceeded - retry
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"  # Circuit open / dependency down
    UNKNOWN_ERROR = "UNKNOWN_ERROR"  # Unclassified


class ErrorSeverity(str, Enum):
    """Error severity levels"""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


# kind -> (severity, retryable)
KIND_DEFAULTS = {
    ErrorKind.VALIDATION_ERROR: (ErrorSeverity.MEDIUM, False),
    ErrorKind.NETWORK_ERROR: (ErrorSeverity.HIGH, True),
    ErrorKind.DATABASE_ERROR: (ErrorSeverity.HIGH, True),
    ErrorKind.CONFIGURATION_ERROR: (ErrorSeverity.HIGH, False),
    ErrorKind.TIMEOUT_ERROR: (ErrorSeverity.HIGH, True),
    ErrorKind.SERVICE_UNAVAILABLE: (ErrorSeverity.HIGH, True),
    ErrorKind.UNKNOWN_ERROR: (ErrorSeverity.MEDIUM, False),
}

TIMEOUT_MARKERS = ("timeout", "timed out")
NETWORK_MARKERS = ("network", "connection", "refused", "reset", "unreachable")
DATABASE_MARKERS = ("database", "sql")
VALIDATION_MARKERS = ("validation", "invalid")
CONFIGURATION_MARKERS = ("config", "environment")


def classify_exception(error: BaseException) -> Tuple[ErrorKind, ErrorSeverity, bool]:
    """
    Classify an untyped exception.

    Args:
        error: Exception raised by code outside the engine

    Returns:
        (kind, severity, retryable)
    """
    kind = _classify_by_type(error)
    if kind is None:
        kind = classify_message(str(error))

    severity, retryable = KIND_DEFAULTS[kind]
    logger.debug(f"Classified {type(error).__name__} as {kind.value} (retryable={retryable})")
    return kind, severity, retryable


def classify_message(message: str) -> ErrorKind:
    """Best-effort classification from free text. Order matters: timeouts first."""
    message_lower = message.lower() if message else ""

    if any(marker in message_lower for marker in TIMEOUT_MARKERS):
        return ErrorKind.TIMEOUT_ERROR
    if any(marker in message_lower for marker in NETWORK_MARKERS):
        return ErrorKind.NETWORK_ERROR
    if any(marker in message_lower for marker in DATABASE_MARKERS):
        return ErrorKind.DATABASE_ERROR
    if any(marker in message_lower for marker in VALIDATION_MARKERS):
        return ErrorKind.VALIDATION_ERROR
    if any(marker in message_lower for marker in CONFIGURATION_MARKERS):
        return ErrorKind.CONFIGURATION_ERROR

    return ErrorKind.UNKNOWN_ERROR


def _classify_by_type(error: BaseException):
    if isinstance(error, (TimeoutError, asyncio.TimeoutError)):
        return ErrorKind.TIMEOUT_ERROR
    if isinstance(error, ConnectionError):
        return ErrorKind.NETWORK_ERROR
    return None


def is_retryable_error(error: BaseException) -> bool:
    """
    Default retry predicate.

    Typed credential errors carry their own ``retryable`` flag; everything
    else is classified on the fly.
    """
    retryable = getattr(error, "retryable", None)
    if isinstance(retryable, bool):
        return retryable

    _, _, retryable = classify_exception(error)
    return retryable
