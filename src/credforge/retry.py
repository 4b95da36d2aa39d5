"""
Bounded retry with exponential backoff.

The manager holds configuration only; every ``execute`` call keeps its own
attempt counter, so one manager can be shared by concurrent callers.
"""

import asyncio
import dataclasses
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from .config import Settings, settings
from .error_classifier import is_retryable_error
from .exceptions import CircuitBreakerOpenError
from .utils import Operation, invoke_operation

logger = logging.getLogger(__name__)

JITTER_RATIO = 0.25


@dataclass(frozen=True)
class RetryConfig:
    """Retry policy for one ``RetryManager.execute`` call.

    ``backoff_multiplier=1`` with ``jitter=False`` gives a fixed delay of
    ``base_delay`` between attempts.
    """

    max_attempts: int = 3
    base_delay: float = 1.0  # seconds
    max_delay: float = 10.0  # seconds
    backoff_multiplier: float = 2.0
    jitter: bool = True
    retry_condition: Callable[[BaseException], bool] = is_retryable_error

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("retry delays must not be negative")

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "RetryConfig":
        config = config or settings
        return cls(
            max_attempts=config.retry_max_attempts,
            base_delay=config.retry_base_delay,
            max_delay=config.retry_max_delay,
            backoff_multiplier=config.retry_backoff_multiplier,
            jitter=config.retry_jitter,
        )

    def with_overrides(self, overrides: Optional[Dict[str, Any]]) -> "RetryConfig":
        if not overrides:
            return self
        return dataclasses.replace(self, **overrides)

    def delay_for(self, attempt: int) -> float:
        """
        Seconds to wait after failed attempt ``attempt`` (1-based).

        Args:
            attempt: Number of the attempt that just failed

        Returns:
            Non-negative delay, capped at ``max_delay`` before jitter
        """
        delay = min(self.base_delay * (self.backoff_multiplier ** (attempt - 1)), self.max_delay)
        if self.jitter:
            delay += delay * random.uniform(-JITTER_RATIO, JITTER_RATIO)
        return max(0.0, delay)


class RetryManager:
    """Runs an operation up to ``max_attempts`` times.

    Example:
        manager = RetryManager(RetryConfig(max_attempts=3, base_delay=0.5))
        rows = await manager.execute(store.find_all, "find all projects")
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Args:
            config: Default policy (built from settings when omitted)
            sleep: Awaitable sleep function, replaceable in tests
        """
        self.config = config or RetryConfig.from_settings()
        self._sleep = sleep

    async def execute(
        self,
        operation: Operation,
        label: str = "operation",
        overrides: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Execute ``operation`` with retries.

        Args:
            operation: Zero-argument callable or coroutine function
            label: Human-readable operation name for logging
            overrides: Per-call RetryConfig field overrides

        Returns:
            Result of the first successful attempt

        Raises:
            The last error, unmodified, once attempts are exhausted or the
            retry condition rejects it. CircuitBreakerOpenError immediately.
        """
        config = self.config.with_overrides(overrides)

        for attempt in range(1, config.max_attempts + 1):
            try:
                result = await invoke_operation(operation)
                if attempt > 1:
                    logger.info(f"[Retry Manager] {label} succeeded on attempt {attempt}")
                return result

            except CircuitBreakerOpenError:
                logger.warning(f"[Retry Manager] {label} rejected by open circuit, not retrying")
                raise

            except Exception as e:
                logger.warning(
                    f"[Retry Manager] {label} failed (attempt {attempt}/{config.max_attempts}): "
                    f"{type(e).__name__}: {e}"
                )

                if not config.retry_condition(e):
                    logger.error(f"[Retry Manager] {label} failed with non-retryable error")
                    raise

                if attempt >= config.max_attempts:
                    logger.error(
                        f"[Retry Manager] {label} failed after {config.max_attempts} attempts"
                    )
                    raise

                delay = config.delay_for(attempt)
                logger.debug(f"[Retry Manager] Retrying {label} in {delay:.2f}s")
                await self._sleep(delay)
