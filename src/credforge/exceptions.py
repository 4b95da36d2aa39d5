"""Custom exceptions for credforge."""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .error_classifier import KIND_DEFAULTS, ErrorKind, ErrorSeverity, classify_exception


class CredentialError(Exception):
    """Structured error for credential operations.

    Attributes are read-only once the error has been created.
    """

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.UNKNOWN_ERROR,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        retryable: bool = False,
        context: Optional[Dict[str, Any]] = None,
        original_error: Optional[BaseException] = None,
    ):
        """
        Initialize credential error.

        Args:
            message: Error message
            kind: Error kind used for retry and reporting decisions
            severity: Error severity
            retryable: Whether the failed operation may be re-attempted
            context: Extra diagnostic data (never secrets)
            original_error: Underlying exception, if any
        """
        super().__init__(message)
        self._message = message
        self._kind = kind
        self._severity = severity
        self._retryable = retryable
        self._context = dict(context or {})
        self._original_error = original_error
        self._timestamp = datetime.now(timezone.utc).isoformat()

    @property
    def message(self) -> str:
        return self._message

    @property
    def kind(self) -> ErrorKind:
        return self._kind

    @property
    def severity(self) -> ErrorSeverity:
        return self._severity

    @property
    def retryable(self) -> bool:
        return self._retryable

    @property
    def context(self) -> Dict[str, Any]:
        return dict(self._context)

    @property
    def original_error(self) -> Optional[BaseException]:
        return self._original_error

    @property
    def timestamp(self) -> str:
        return self._timestamp

    @classmethod
    def _of_kind(
        cls,
        kind: ErrorKind,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_error: Optional[BaseException] = None,
    ) -> "CredentialError":
        severity, retryable = KIND_DEFAULTS[kind]
        return cls(message, kind, severity, retryable, context, original_error)

    @classmethod
    def validation(cls, message: str, context: Optional[Dict[str, Any]] = None) -> "CredentialError":
        """Bad input or policy violation (not retryable)."""
        return cls._of_kind(ErrorKind.VALIDATION_ERROR, message, context)

    @classmethod
    def network(
        cls,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_error: Optional[BaseException] = None,
    ) -> "CredentialError":
        """Connectivity failure (retryable)."""
        return cls._of_kind(ErrorKind.NETWORK_ERROR, message, context, original_error)

    @classmethod
    def database(
        cls,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_error: Optional[BaseException] = None,
    ) -> "CredentialError":
        """Project store / database failure (retryable)."""
        return cls._of_kind(ErrorKind.DATABASE_ERROR, message, context, original_error)

    @classmethod
    def configuration(cls, message: str, context: Optional[Dict[str, Any]] = None) -> "CredentialError":
        """Missing or broken configuration (not retryable)."""
        return cls._of_kind(ErrorKind.CONFIGURATION_ERROR, message, context)

    @classmethod
    def timeout(
        cls,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_error: Optional[BaseException] = None,
    ) -> "CredentialError":
        """Deadline exceeded (retryable)."""
        return cls._of_kind(ErrorKind.TIMEOUT_ERROR, message, context, original_error)

    @classmethod
    def service_unavailable(cls, message: str, context: Optional[Dict[str, Any]] = None) -> "CredentialError":
        """Dependency temporarily unavailable (retryable)."""
        return cls._of_kind(ErrorKind.SERVICE_UNAVAILABLE, message, context)

    @classmethod
    def from_exception(
        cls, error: BaseException, context: Optional[Dict[str, Any]] = None
    ) -> "CredentialError":
        """
        Convert any exception to a CredentialError.

        Credential errors are returned unchanged. Anything else is classified
        by type and message heuristics.
        """
        if isinstance(error, CredentialError):
            return error

        kind, severity, retryable = classify_exception(error)
        return cls(str(error) or type(error).__name__, kind, severity, retryable, context, error)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/API"""
        original = None
        if self._original_error is not None:
            original = {
                "type": type(self._original_error).__name__,
                "message": str(self._original_error),
            }
        return {
            "type": type(self).__name__,
            "kind": self._kind.value,
            "message": self._message,
            "severity": self._severity.value,
            "retryable": self._retryable,
            "context": dict(self._context),
            "timestamp": self._timestamp,
            "original_error": original,
        }


class CircuitBreakerOpenError(CredentialError):
    """Raised when a circuit breaker is open and rejects calls."""

    def __init__(self, service_name: str, retry_after: float = 0.0, failure_count: int = 0):
        super().__init__(
            f"Circuit breaker is OPEN for {service_name}. Service temporarily unavailable.",
            kind=ErrorKind.SERVICE_UNAVAILABLE,
            severity=ErrorSeverity.HIGH,
            # Rejections are answered immediately and never spend a retry attempt
            retryable=False,
            context={
                "service_name": service_name,
                "retry_after": round(retry_after, 3),
                "failure_count": failure_count,
            },
        )
        self.service_name = service_name
        self.retry_after = retry_after


class DegradedServiceError(CredentialError):
    """Raised when a primary operation failed and no fallback could cover it."""

    def __init__(
        self,
        service_name: str,
        primary_error: BaseException,
        fallback_error: Optional[BaseException] = None,
    ):
        primary = CredentialError.from_exception(primary_error)
        if fallback_error is not None:
            message = (
                f"{service_name} failed: {primary_error}; "
                f"fallback also failed: {fallback_error}"
            )
        else:
            message = f"{service_name} failed and no fallback is registered: {primary_error}"

        super().__init__(
            message,
            kind=primary.kind,
            severity=primary.severity,
            retryable=primary.retryable,
            context={
                "service_name": service_name,
                "fallback_attempted": fallback_error is not None,
                "fallback_error": str(fallback_error) if fallback_error is not None else None,
            },
            original_error=primary_error,
        )
        self.service_name = service_name
        self.primary_error = primary_error
        self.fallback_error = fallback_error
