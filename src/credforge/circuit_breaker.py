"""Circuit Breaker Pattern Implementation.

Stops calling a failing dependency (the project store, a remote API) for a
cooldown window once it has failed ``failure_threshold`` times in a row,
then admits at most ``half_open_max_calls`` trial calls to test recovery.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional

from .exceptions import CircuitBreakerOpenError
from .utils import Operation, invoke_operation

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "CLOSED"  # Normal operation
    OPEN = "OPEN"  # Failing, reject calls
    HALF_OPEN = "HALF_OPEN"  # Testing recovery


@dataclass
class CircuitBreakerConfig:
    """Configuration for circuit breaker."""

    failure_threshold: int = 5
    recovery_timeout: float = 60.0  # seconds since the last failure
    half_open_max_calls: int = 3

    def __post_init__(self):
        if self.failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        if self.recovery_timeout < 0:
            raise ValueError("recovery_timeout must not be negative")
        if self.half_open_max_calls < 1:
            raise ValueError("half_open_max_calls must be at least 1")


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class CircuitBreakerMetrics:
    """Call outcomes of one breaker, with rejections broken down by operation label."""

    successes: int = 0
    failures: int = 0
    rejections_by_label: Dict[str, int] = field(default_factory=dict)
    trial_limit_rejections: int = 0
    transitions: Dict[str, int] = field(default_factory=dict)
    last_failure_at: Optional[str] = None
    last_success_at: Optional[str] = None

    @property
    def rejections(self) -> int:
        return sum(self.rejections_by_label.values())

    @property
    def total_calls(self) -> int:
        return self.successes + self.failures + self.rejections

    def record_outcome(self, succeeded: bool):
        if succeeded:
            self.successes += 1
            self.last_success_at = _utc_now()
        else:
            self.failures += 1
            self.last_failure_at = _utc_now()

    def record_rejection(self, label: str, trial_limit: bool = False):
        """Count a call that never reached the dependency."""
        self.rejections_by_label[label] = self.rejections_by_label.get(label, 0) + 1
        if trial_limit:
            self.trial_limit_rejections += 1

    def record_transition(self, from_state: CircuitState, to_state: CircuitState):
        key = f"{from_state.value}_to_{to_state.value}"
        self.transitions[key] = self.transitions.get(key, 0) + 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_calls": self.total_calls,
            "successes": self.successes,
            "failures": self.failures,
            "rejections": self.rejections,
            "rejections_by_label": dict(self.rejections_by_label),
            "trial_limit_rejections": self.trial_limit_rejections,
            "transitions": dict(self.transitions),
            "last_failure_at": self.last_failure_at,
            "last_success_at": self.last_success_at,
        }


class CircuitBreaker:
    """Circuit breaker for one named dependency.

    States:
    - CLOSED: Normal operation, calls pass through
    - OPEN: Too many failures, reject all calls until the cooldown elapses
    - HALF_OPEN: Cooldown elapsed, up to ``half_open_max_calls`` trial calls
      are admitted; a success closes the circuit, a failure reopens it

    State is only read and written under ``_lock``; the wrapped operation
    itself runs outside the lock.

    Example:
        breaker = CircuitBreaker(
            name="project_store",
            config=CircuitBreakerConfig(failure_threshold=3, recovery_timeout=30.0),
        )

        try:
            projects = await breaker.execute(store.find_all, "find all projects")
        except CircuitBreakerOpenError:
            projects = []
    """

    def __init__(
        self,
        name: str,
        config: Optional[CircuitBreakerConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize circuit breaker.

        Args:
            name: Identifier for this circuit breaker
            config: Configuration settings
            clock: Monotonic time source in seconds, replaceable in tests
        """
        self.name = name
        self.config = config or CircuitBreakerConfig()
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.half_open_calls = 0
        self.last_failure_time: Optional[float] = None
        self.metrics = CircuitBreakerMetrics()
        self._clock = clock
        self._lock = threading.RLock()

        logger.debug(
            f"[Circuit Breaker] '{name}' initialized: "
            f"failure_threshold={self.config.failure_threshold}, "
            f"recovery_timeout={self.config.recovery_timeout}s, "
            f"half_open_max_calls={self.config.half_open_max_calls}"
        )

    async def execute(self, operation: Operation, label: str = "operation") -> Any:
        """Execute operation with circuit breaker protection.

        Args:
            operation: Zero-argument callable or coroutine function
            label: Human-readable operation name for logging

        Returns:
            Result of the operation

        Raises:
            CircuitBreakerOpenError: If the circuit is open or the HALF_OPEN
                trial calls are used up (operation not invoked)
            Exception: Any exception raised by the operation
        """
        self._before_call(label)

        try:
            result = await invoke_operation(operation)
        except Exception:
            self._on_failure(label)
            raise

        self._on_success()
        return result

    def _before_call(self, label: str):
        with self._lock:
            self._update_state()

            if self.state == CircuitState.OPEN:
                self.metrics.record_rejection(label)
                retry_after = self._seconds_until_recovery()
                logger.warning(
                    f"[Circuit Breaker] '{self.name}' is OPEN, rejecting {label} "
                    f"(retry in {retry_after:.1f}s)"
                )
                raise CircuitBreakerOpenError(self.name, retry_after, self.failure_count)

            if self.state == CircuitState.HALF_OPEN:
                if self.half_open_calls >= self.config.half_open_max_calls:
                    self.metrics.record_rejection(label, trial_limit=True)
                    logger.warning(
                        f"[Circuit Breaker] '{self.name}' is HALF_OPEN with "
                        f"{self.half_open_calls} trial calls in flight, rejecting {label}"
                    )
                    raise CircuitBreakerOpenError(self.name, 0.0, self.failure_count)
                self.half_open_calls += 1

    def _seconds_until_recovery(self) -> float:
        if self.last_failure_time is None:
            return 0.0
        elapsed = self._clock() - self.last_failure_time
        return max(0.0, self.config.recovery_timeout - elapsed)

    def _update_state(self):
        """Move OPEN to HALF_OPEN once the recovery timeout has elapsed."""
        if self.state == CircuitState.OPEN and self._seconds_until_recovery() <= 0:
            self._transition_to(CircuitState.HALF_OPEN)

    def _on_success(self):
        with self._lock:
            self.metrics.record_outcome(succeeded=True)
            self.failure_count = 0
            if self.state != CircuitState.CLOSED:
                self._transition_to(CircuitState.CLOSED)
                logger.info(f"[Circuit Breaker] '{self.name}' recovered")

    def _on_failure(self, label: str):
        with self._lock:
            self.metrics.record_outcome(succeeded=False)
            self.last_failure_time = self._clock()
            # Capped at the threshold; further failures only extend the cooldown
            self.failure_count = min(self.failure_count + 1, self.config.failure_threshold)

            logger.warning(
                f"[Circuit Breaker] '{self.name}' {label} failed while {self.state.value}: "
                f"{self.failure_count}/{self.config.failure_threshold}"
            )

            if self.state == CircuitState.HALF_OPEN:
                # Any failed trial call reopens the circuit
                self._transition_to(CircuitState.OPEN)
                logger.error(f"[Circuit Breaker] '{self.name}' failed in HALF_OPEN, reopening")
            elif self.state == CircuitState.CLOSED and self.failure_count >= self.config.failure_threshold:
                self._transition_to(CircuitState.OPEN)
                logger.error(
                    f"[Circuit Breaker] '{self.name}' threshold reached, opening for "
                    f"{self.config.recovery_timeout}s"
                )

    def _transition_to(self, new_state: CircuitState):
        old_state = self.state
        if old_state == new_state:
            return
        self.state = new_state
        self.half_open_calls = 0
        self.metrics.record_transition(old_state, new_state)
        logger.info(
            f"[Circuit Breaker] '{self.name}' state transition: "
            f"{old_state.value} -> {new_state.value}"
        )

    def reset(self):
        """Manually reset circuit breaker to CLOSED with no recorded failures."""
        with self._lock:
            logger.info(f"[Circuit Breaker] Manually resetting '{self.name}'")
            self._transition_to(CircuitState.CLOSED)
            self.failure_count = 0
            self.half_open_calls = 0
            self.last_failure_time = None

    def get_state(self) -> CircuitState:
        """Get current circuit breaker state."""
        with self._lock:
            return self.state

    def get_status(self) -> Dict[str, Any]:
        """Read-only snapshot of the breaker state."""
        with self._lock:
            return {
                "state": self.state.value,
                "failure_count": self.failure_count,
                "half_open_calls": self.half_open_calls,
                "last_failure_time": self.last_failure_time,
            }

    def get_metrics(self) -> CircuitBreakerMetrics:
        """Get circuit breaker metrics."""
        with self._lock:
            return self.metrics

    def is_available(self) -> bool:
        """Check if circuit breaker will allow calls."""
        with self._lock:
            self._update_state()
            if self.state == CircuitState.HALF_OPEN:
                return self.half_open_calls < self.config.half_open_max_calls
            return self.state != CircuitState.OPEN

    def to_dict(self) -> Dict[str, Any]:
        """Serialize circuit breaker state and metrics to a dictionary."""
        with self._lock:
            return {
                "name": self.name,
                **self.get_status(),
                "config": {
                    "failure_threshold": self.config.failure_threshold,
                    "recovery_timeout": self.config.recovery_timeout,
                    "half_open_max_calls": self.config.half_open_max_calls,
                },
                "metrics": self.metrics.to_dict(),
            }
