"""Project database credential generation, validation and migration.

Never holds plaintext passwords beyond the moment they are hashed.
"""

from .fallback import (CredentialFallbackManager, CredentialFallbackProvider,
                       FallbackUsageEntry)
from .generator import (CredentialGenerator, GenerationOptions,
                        generate_secure_password, generate_username,
                        sanitize_project_ref, verify_password)
from .migration import CredentialMigrationManager
from .models import (BatchMigrationResult, BatchMigrationSummary,
                     CredentialCompleteness, DetailedValidationResult,
                     MigrationResult, MigrationStats, ProjectCredentials,
                     ValidationResult)
from .reporting import generate_validation_error_report, log_validation_failure
from .store import ProjectRecord, ProjectStore
from .validator import (CredentialValidator, PasswordPolicy, UsernamePolicy,
                        are_credentials_too_similar,
                        calculate_password_strength, has_sequential_chars,
                        levenshtein_distance, shannon_entropy,
                        validate_credential_format)

__all__ = [
    # Models
    "ProjectCredentials",
    "CredentialCompleteness",
    "ValidationResult",
    "DetailedValidationResult",
    "MigrationResult",
    "BatchMigrationResult",
    "BatchMigrationSummary",
    "MigrationStats",
    # Store contract
    "ProjectRecord",
    "ProjectStore",
    # Generation
    "CredentialGenerator",
    "GenerationOptions",
    "generate_secure_password",
    "generate_username",
    "sanitize_project_ref",
    "verify_password",
    # Validation
    "CredentialValidator",
    "PasswordPolicy",
    "UsernamePolicy",
    "are_credentials_too_similar",
    "calculate_password_strength",
    "has_sequential_chars",
    "levenshtein_distance",
    "shannon_entropy",
    "validate_credential_format",
    "generate_validation_error_report",
    "log_validation_failure",
    # Fallback
    "CredentialFallbackManager",
    "CredentialFallbackProvider",
    "FallbackUsageEntry",
    # Migration
    "CredentialMigrationManager",
]
