"""Credential, validation and migration result models.

None of these models ever holds a plaintext password: generated passwords
are hashed before they leave the generator.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class CredentialCompleteness(str, Enum):
    """Which credential fields a project has."""

    COMPLETE = "complete"
    MISSING_USER = "missing_user"
    MISSING_PASSWORD = "missing_password"
    MISSING_BOTH = "missing_both"


@dataclass(frozen=True)
class ProjectCredentials:
    """Database credentials of one project (username and password hash)."""

    user: Optional[str] = None
    password_hash: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return bool(self.user) and bool(self.password_hash)

    @property
    def completeness(self) -> CredentialCompleteness:
        if self.user and self.password_hash:
            return CredentialCompleteness.COMPLETE
        if self.password_hash:
            return CredentialCompleteness.MISSING_USER
        if self.user:
            return CredentialCompleteness.MISSING_PASSWORD
        return CredentialCompleteness.MISSING_BOTH

    def to_dict(self) -> dict:
        """Convert to API-safe dictionary (hash prefix only)."""
        return {
            "user": self.user,
            "password_hash_prefix": self.password_hash[:7] if self.password_hash else None,
            "is_complete": self.is_complete,
        }


@dataclass
class ValidationResult:
    """Outcome of validating one username or password.

    ``score`` is only set for password validation.
    """

    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    score: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "is_valid": self.is_valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "score": self.score,
        }


@dataclass
class DetailedValidationResult:
    """Username and password results plus cross-field checks."""

    is_valid: bool
    user_validation: ValidationResult
    password_validation: ValidationResult
    overall_errors: List[str] = field(default_factory=list)

    @property
    def all_errors(self) -> List[str]:
        return self.user_validation.errors + self.password_validation.errors + self.overall_errors

    def to_dict(self) -> dict:
        return {
            "is_valid": self.is_valid,
            "user_validation": self.user_validation.to_dict(),
            "password_validation": self.password_validation.to_dict(),
            "overall_errors": list(self.overall_errors),
        }


@dataclass
class MigrationResult:
    """Outcome of migrating (or dry-running) one project."""

    success: bool
    project_ref: str
    generated_credentials: Optional[ProjectCredentials] = None
    error: Optional[str] = None
    validation_result: Optional[DetailedValidationResult] = None

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "project_ref": self.project_ref,
            "generated_credentials": (
                self.generated_credentials.to_dict() if self.generated_credentials else None
            ),
            "error": self.error,
            "validation_result": (
                self.validation_result.to_dict() if self.validation_result else None
            ),
        }


@dataclass
class BatchMigrationSummary:
    projects_with_missing_credentials: int = 0
    projects_already_complete: int = 0
    migration_errors: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "projects_with_missing_credentials": self.projects_with_missing_credentials,
            "projects_already_complete": self.projects_already_complete,
            "migration_errors": list(self.migration_errors),
        }


@dataclass
class BatchMigrationResult:
    """Outcome of a batch run.

    ``successful_migrations + failed_migrations`` always equals the number
    of projects detected as incomplete.
    """

    total_projects: int
    successful_migrations: int
    failed_migrations: int
    results: List[MigrationResult] = field(default_factory=list)
    summary: BatchMigrationSummary = field(default_factory=BatchMigrationSummary)
    dry_run: bool = False

    def to_dict(self) -> dict:
        return {
            "total_projects": self.total_projects,
            "successful_migrations": self.successful_migrations,
            "failed_migrations": self.failed_migrations,
            "results": [result.to_dict() for result in self.results],
            "summary": self.summary.to_dict(),
            "dry_run": self.dry_run,
        }


@dataclass
class MigrationStats:
    """Project counts by credential completeness."""

    total_projects: int = 0
    projects_complete: int = 0
    projects_missing_user: int = 0
    projects_missing_password: int = 0
    projects_missing_both: int = 0

    @property
    def projects_with_missing_credentials(self) -> int:
        return self.projects_missing_user + self.projects_missing_password + self.projects_missing_both

    def record(self, completeness: CredentialCompleteness):
        self.total_projects += 1
        if completeness == CredentialCompleteness.COMPLETE:
            self.projects_complete += 1
        elif completeness == CredentialCompleteness.MISSING_USER:
            self.projects_missing_user += 1
        elif completeness == CredentialCompleteness.MISSING_PASSWORD:
            self.projects_missing_password += 1
        else:
            self.projects_missing_both += 1

    def to_dict(self) -> dict:
        return {
            "total_projects": self.total_projects,
            "projects_complete": self.projects_complete,
            "projects_missing_user": self.projects_missing_user,
            "projects_missing_password": self.projects_missing_password,
            "projects_missing_both": self.projects_missing_both,
            "projects_with_missing_credentials": self.projects_with_missing_credentials,
        }
