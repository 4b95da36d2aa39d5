"""
Service wiring for the credential engine.

Build one ``CredentialServices`` at process start and pass it around. The
module-level accessors below exist for hosts that prefer a process-wide
instance; they never create one implicitly without a project store.

Usage:
    from credforge.services import configure_credential_services, get_credential_migration_manager

    configure_credential_services(store)
    result = await get_credential_migration_manager().get_migration_stats()
"""

import logging
import threading
from dataclasses import dataclass
from typing import Optional

from .config import Settings, settings
from .credentials.fallback import CredentialFallbackManager
from .credentials.generator import CredentialGenerator
from .credentials.migration import CredentialMigrationManager
from .credentials.store import ProjectStore
from .credentials.validator import CredentialValidator, PasswordPolicy, UsernamePolicy
from .error_handler import CredentialErrorHandler
from .exceptions import CredentialError

logger = logging.getLogger(__name__)


@dataclass
class CredentialServices:
    """One consistent set of engine components."""

    error_handler: CredentialErrorHandler
    validator: CredentialValidator
    generator: CredentialGenerator
    fallback_manager: CredentialFallbackManager
    migration_manager: CredentialMigrationManager


def build_credential_services(
    store: ProjectStore, config: Optional[Settings] = None
) -> CredentialServices:
    """
    Build every component from one Settings instance.

    Args:
        store: Project store the migration manager reads and writes
        config: Settings (module settings when omitted)

    Returns:
        Wired CredentialServices
    """
    config = config or settings
    error_handler = CredentialErrorHandler(config)
    validator = CredentialValidator(
        PasswordPolicy.from_settings(config), UsernamePolicy.from_settings(config)
    )
    generator = CredentialGenerator(validator, config)
    fallback_manager = CredentialFallbackManager()
    migration_manager = CredentialMigrationManager(
        store, error_handler, generator, validator, fallback_manager
    )
    return CredentialServices(error_handler, validator, generator, fallback_manager, migration_manager)


_services: Optional[CredentialServices] = None
_standalone_handler: Optional[CredentialErrorHandler] = None
_lock = threading.Lock()


def configure_credential_services(
    store: ProjectStore, config: Optional[Settings] = None
) -> CredentialServices:
    """Build the process-wide services, replacing any earlier ones."""
    global _services
    with _lock:
        _services = build_credential_services(store, config)
    logger.info("[Credential Migration] Credential services configured")
    return _services


def get_credential_services() -> CredentialServices:
    """
    Process-wide services.

    Raises:
        CredentialError: (configuration) if configure_credential_services()
            has not been called
    """
    with _lock:
        services = _services
    if services is None:
        raise CredentialError.configuration(
            "Credential services are not configured; call configure_credential_services(store) first"
        )
    return services


def get_credential_error_handler() -> CredentialErrorHandler:
    """Error handler of the configured services, or a standalone one.

    The error handler needs no project store, so it is available before
    configure_credential_services() runs.
    """
    global _standalone_handler
    with _lock:
        if _services is not None:
            return _services.error_handler
        if _standalone_handler is None:
            _standalone_handler = CredentialErrorHandler()
        return _standalone_handler


def get_credential_migration_manager() -> CredentialMigrationManager:
    return get_credential_services().migration_manager


def reset_credential_error_handler() -> None:
    """Test hook: drop breaker and health state of the process-wide handler."""
    global _standalone_handler
    with _lock:
        _standalone_handler = None
        if _services is not None:
            _services.error_handler.reset_circuit_breakers()
            _services.error_handler.degradation.reset()


def reset_credential_services() -> None:
    """Test hook: forget the process-wide services."""
    global _services, _standalone_handler
    with _lock:
        _services = None
        _standalone_handler = None
