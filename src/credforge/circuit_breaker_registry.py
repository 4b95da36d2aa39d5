"""Circuit Breaker Registry for managing one breaker per named service.

Each CredentialErrorHandler owns its own registry, so breaker state lives
exactly as long as the handler that created it.
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional

from .circuit_breaker import CircuitBreaker, CircuitBreakerConfig

logger = logging.getLogger(__name__)


class CircuitBreakerRegistry:
    """Registry of circuit breakers keyed by service name.

    Example:
        registry = CircuitBreakerRegistry()
        breaker = registry.get_or_create("project_store", CircuitBreakerConfig(failure_threshold=3))
        projects = await breaker.execute(store.find_all)

        # Monitor all circuit breakers
        statuses = registry.get_all_statuses()
    """

    def __init__(
        self,
        default_config: Optional[CircuitBreakerConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            default_config: Config for breakers created without an explicit one
            clock: Time source handed to every breaker this registry creates
        """
        self._breakers: Dict[str, CircuitBreaker] = {}
        self._default_config = default_config or CircuitBreakerConfig()
        self._clock = clock
        self._registry_lock = threading.RLock()

    def get(self, name: str) -> Optional[CircuitBreaker]:
        """Get a circuit breaker by name, or None if none was created."""
        with self._registry_lock:
            return self._breakers.get(name)

    def get_or_create(
        self, name: str, config: Optional[CircuitBreakerConfig] = None
    ) -> CircuitBreaker:
        """Get existing circuit breaker or create new one.

        The config only applies when the breaker is created; an existing
        breaker keeps the config it was created with.

        Args:
            name: Circuit breaker identifier
            config: Configuration for new circuit breaker (if created)

        Returns:
            Existing or newly created circuit breaker
        """
        with self._registry_lock:
            breaker = self._breakers.get(name)
            if breaker is None:
                breaker = CircuitBreaker(name, config or self._default_config, clock=self._clock)
                self._breakers[name] = breaker
                logger.debug(f"[Circuit Breaker] Registered breaker for {name}")
            return breaker

    def get_status(self, name: str) -> Optional[Dict[str, Any]]:
        with self._registry_lock:
            breaker = self._breakers.get(name)
            return breaker.get_status() if breaker is not None else None

    def get_all_statuses(self) -> Dict[str, Dict[str, Any]]:
        """Snapshot of every breaker, keyed by service name."""
        with self._registry_lock:
            return {name: breaker.get_status() for name, breaker in self._breakers.items()}

    def names(self) -> List[str]:
        with self._registry_lock:
            return list(self._breakers.keys())

    def reset_all(self):
        """Reset all circuit breakers to CLOSED state."""
        with self._registry_lock:
            for breaker in self._breakers.values():
                breaker.reset()
            if self._breakers:
                logger.info(f"[Circuit Breaker] Reset {len(self._breakers)} circuit breakers")

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._breakers)
