"""
Composed error handling for calls to external collaborators.

Layering, innermost first:

    circuit breaker -> retry -> graceful degradation

The breaker guards every individual attempt, so an open circuit rejects the
attempt without touching the dependency and the retry layer re-raises the
rejection at once. Degradation sees only the outcome after retries are
exhausted and invokes the fallback at most once per call.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional

from .circuit_breaker import CircuitBreaker, CircuitBreakerConfig
from .circuit_breaker_registry import CircuitBreakerRegistry
from .config import Settings, settings
from .degradation import GracefulDegradationManager
from .retry import RetryConfig, RetryManager
from .utils import Operation, invoke_operation

logger = logging.getLogger(__name__)

DEFAULT_SERVICE_NAME = "default"


@dataclass
class ErrorHandlingOptions:
    """Per-call selection of the resilience layers.

    Attributes:
        service_name: Key for the circuit breaker and health record
        context: Label used in log messages
        retry_overrides: RetryConfig field overrides for this call
        circuit_config: Used only when the service's breaker is first created
        fallback: One-off fallback; the registered one applies when omitted
    """

    service_name: str = DEFAULT_SERVICE_NAME
    context: str = "operation"
    enable_retry: bool = True
    enable_circuit_breaker: bool = True
    enable_graceful_degradation: bool = True
    retry_overrides: Dict[str, Any] = field(default_factory=dict)
    circuit_config: Optional[CircuitBreakerConfig] = None
    fallback: Optional[Operation] = None


class CredentialErrorHandler:
    """Single entry point that applies retry, circuit breaking and degradation.

    Example:
        handler = CredentialErrorHandler()
        projects = await handler.execute_with_error_handling(
            store.find_all,
            ErrorHandlingOptions(service_name="project_store", fallback=lambda: []),
        )
    """

    def __init__(
        self,
        config: Optional[Settings] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Args:
            config: Settings to derive retry and breaker defaults from
            clock: Time source for circuit breaker cooldowns
            sleep: Awaitable sleep used between retry attempts
        """
        config = config or settings
        self.retry_manager = RetryManager(RetryConfig.from_settings(config), sleep=sleep)
        self.circuit_breakers = CircuitBreakerRegistry(
            CircuitBreakerConfig(
                failure_threshold=config.circuit_failure_threshold,
                recovery_timeout=config.circuit_recovery_timeout,
                half_open_max_calls=config.circuit_half_open_max_calls,
            ),
            clock=clock,
        )
        self.degradation = GracefulDegradationManager()

    async def execute_with_error_handling(
        self, operation: Operation, options: Optional[ErrorHandlingOptions] = None
    ) -> Any:
        """
        Execute ``operation`` through the enabled layers.

        Args:
            operation: Zero-argument callable or coroutine function
            options: Layer selection (all layers enabled when omitted)

        Returns:
            Result of the operation, or of the fallback after a failure

        Raises:
            With degradation disabled, the operation's own last error (or
            CircuitBreakerOpenError). With degradation enabled,
            DegradedServiceError when no fallback could cover the failure.
        """
        options = options or ErrorHandlingOptions()
        label = options.context

        call = operation
        if options.enable_circuit_breaker:
            breaker = self.circuit_breakers.get_or_create(options.service_name, options.circuit_config)
            call = self._with_breaker(breaker, call, label)

        if options.enable_retry:
            call = self._with_retry(call, label, options.retry_overrides)

        if options.enable_graceful_degradation:
            return await self.degradation.execute_with_fallback(
                options.service_name, call, label, fallback=options.fallback
            )

        return await invoke_operation(call)

    @staticmethod
    def _with_breaker(breaker: CircuitBreaker, operation: Operation, label: str) -> Operation:
        return lambda: breaker.execute(operation, label)

    def _with_retry(
        self, operation: Operation, label: str, overrides: Dict[str, Any]
    ) -> Operation:
        return lambda: self.retry_manager.execute(operation, label, overrides)

    def register_fallback(self, service_name: str, fallback: Operation):
        self.degradation.register_fallback(service_name, fallback)

    def get_status(self) -> Dict[str, Any]:
        """Per-service breaker and health snapshot. Does not touch in-flight calls."""
        return {
            "circuit_breakers": self.circuit_breakers.get_all_statuses(),
            "service_health": self.degradation.get_service_health(),
        }

    def reset_circuit_breakers(self):
        """Force every breaker back to CLOSED."""
        logger.info("[Error Handler] Resetting all circuit breakers")
        self.circuit_breakers.reset_all()
