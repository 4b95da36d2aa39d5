"""Graceful degradation: per-service fallbacks and last-known health."""

import logging
import threading
from typing import Any, Dict, Optional

from .exceptions import DegradedServiceError
from .utils import Operation, invoke_operation

logger = logging.getLogger(__name__)


class GracefulDegradationManager:
    """Registry of fallback operations keyed by service name.

    A service is healthy until its primary operation fails, and healthy
    again after the next primary success. Unknown services are reported
    healthy.

    Example:
        degradation = GracefulDegradationManager()
        degradation.register_fallback("project_store", lambda: [])
        projects = await degradation.execute_with_fallback("project_store", store.find_all)
    """

    def __init__(self):
        self._fallbacks: Dict[str, Operation] = {}
        self._health: Dict[str, bool] = {}
        self._lock = threading.RLock()

    def register_fallback(self, service_name: str, fallback: Operation):
        """Register (or replace) the fallback for ``service_name``."""
        with self._lock:
            self._fallbacks[service_name] = fallback
        logger.debug(f"[Graceful Degradation] Registered fallback for {service_name}")

    def unregister_fallback(self, service_name: str) -> bool:
        """Remove the fallback for ``service_name``. Returns False if none was registered."""
        with self._lock:
            return self._fallbacks.pop(service_name, None) is not None

    async def execute_with_fallback(
        self,
        service_name: str,
        primary: Operation,
        label: str = "operation",
        fallback: Optional[Operation] = None,
    ) -> Any:
        """
        Run ``primary``, falling back when it fails.

        Args:
            service_name: Service whose health is tracked
            primary: Zero-argument callable or coroutine function
            label: Human-readable operation name for logging
            fallback: One-off fallback used instead of the registered one

        Returns:
            Primary result, or the fallback result after a primary failure

        Raises:
            DegradedServiceError: Primary failed and the fallback failed or
                none was available. Carries both causes.
        """
        try:
            result = await invoke_operation(primary)
        except Exception as primary_error:
            logger.warning(
                f"[Graceful Degradation] {label}: primary service {service_name} failed: "
                f"{primary_error}"
            )
            self._mark(service_name, healthy=False)

            if fallback is None:
                with self._lock:
                    fallback = self._fallbacks.get(service_name)

            if fallback is None:
                raise DegradedServiceError(service_name, primary_error) from primary_error

            try:
                logger.info(f"[Graceful Degradation] {label}: attempting fallback for {service_name}")
                fallback_result = await invoke_operation(fallback)
            except Exception as fallback_error:
                logger.error(
                    f"[Graceful Degradation] {label}: fallback also failed for {service_name}: "
                    f"{fallback_error}"
                )
                raise DegradedServiceError(
                    service_name, primary_error, fallback_error
                ) from primary_error

            logger.info(f"[Graceful Degradation] {label}: fallback succeeded for {service_name}")
            return fallback_result

        self._mark(service_name, healthy=True)
        return result

    def _mark(self, service_name: str, healthy: bool):
        with self._lock:
            previous = self._health.get(service_name, True)
            self._health[service_name] = healthy

        if previous != healthy:
            if healthy:
                logger.info(f"[Graceful Degradation] Service {service_name} recovered")
            else:
                logger.warning(f"[Graceful Degradation] Service {service_name} marked unhealthy")

    def is_service_healthy(self, service_name: str) -> bool:
        with self._lock:
            return self._health.get(service_name, True)

    def get_service_health(self) -> Dict[str, bool]:
        """Copy of the per-service health map."""
        with self._lock:
            return dict(self._health)

    def reset(self):
        """Forget all health records and fallbacks."""
        with self._lock:
            self._health.clear()
            self._fallbacks.clear()
