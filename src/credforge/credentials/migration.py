"""
Credential migration across all projects.

Finds projects whose stored database credentials are incomplete, generates
replacements and persists them through the project store. Store calls go
through the CredentialErrorHandler; projects are processed one at a time so
breaker and health state stay meaningful.
"""

import logging
from typing import Any, Dict, List, Optional

from ..error_handler import CredentialErrorHandler, ErrorHandlingOptions
from ..exceptions import CredentialError
from ..result import Result
from .fallback import CredentialFallbackProvider
from .generator import CredentialGenerator, GenerationOptions
from .models import (
    BatchMigrationResult,
    BatchMigrationSummary,
    CredentialCompleteness,
    DetailedValidationResult,
    MigrationResult,
    MigrationStats,
    ProjectCredentials,
)
from .reporting import log_validation_failure
from .store import ProjectRecord, ProjectStore
from .validator import CredentialValidator

logger = logging.getLogger(__name__)

PROJECT_STORE_SERVICE = "project_store"

ALREADY_COMPLETE = "Project already has complete credentials"
FAILED_VALIDATION = "Generated credentials failed validation"
MISSING_CREDENTIALS_REASON = "Missing database credentials"

_FALLBACK_KIND = {
    CredentialCompleteness.MISSING_USER: "user",
    CredentialCompleteness.MISSING_PASSWORD: "password",
    CredentialCompleteness.MISSING_BOTH: "both",
}


def _not_found(project_ref: str) -> str:
    return f'Project with ref "{project_ref}" not found'


class CredentialMigrationManager:
    """Detects, reports on and repairs incomplete project credentials.

    Every public operation returns a ``Result``; expected failures never
    raise.

    Example:
        manager = CredentialMigrationManager(store, handler, generator, validator, fallback)
        result = await manager.migrate_all_project_credentials(dry_run=True)
        print(result.data.summary.projects_with_missing_credentials)
    """

    def __init__(
        self,
        store: ProjectStore,
        error_handler: CredentialErrorHandler,
        generator: CredentialGenerator,
        validator: CredentialValidator,
        fallback_manager: CredentialFallbackProvider,
    ):
        self.store = store
        self.error_handler = error_handler
        self.generator = generator
        self.validator = validator
        self.fallback_manager = fallback_manager

    def _credentials_of(self, project: ProjectRecord) -> ProjectCredentials:
        return self.fallback_manager.get_project_credentials(
            project.ref, project.database_user, project.database_password_hash
        )

    async def _load_projects(self, context: str) -> List[ProjectRecord]:
        """All projects, with retry and circuit breaking but no fallback."""
        projects = await self.error_handler.execute_with_error_handling(
            self.store.find_all,
            ErrorHandlingOptions(
                service_name=PROJECT_STORE_SERVICE,
                context=context,
                enable_graceful_degradation=False,
            ),
        )
        return list(projects)

    async def _update_project(self, project: ProjectRecord, fields: Dict[str, Any]) -> ProjectRecord:
        return await self.error_handler.execute_with_error_handling(
            lambda: self.store.update(project.id, fields),
            ErrorHandlingOptions(
                service_name=PROJECT_STORE_SERVICE,
                context=f"update project {project.ref}",
                enable_graceful_degradation=False,
            ),
        )

    async def detect_projects_with_missing_credentials(self) -> Result[List[str]]:
        """
        Refs of every project whose credentials are incomplete.

        When the store stays unreachable after retries the detection
        degrades to an empty list instead of failing.

        Returns:
            Result with the refs, in store order
        """
        try:
            projects = await self.error_handler.execute_with_error_handling(
                self.store.find_all,
                ErrorHandlingOptions(
                    service_name=PROJECT_STORE_SERVICE,
                    context="detect projects with missing credentials",
                    fallback=self._empty_detection,
                ),
            )

            missing: List[str] = []
            for project in projects:
                credentials = self._credentials_of(project)
                if self.fallback_manager.should_use_fallback(credentials):
                    missing.append(project.ref)
                    self.fallback_manager.log_fallback_usage(
                        project.ref,
                        MISSING_CREDENTIALS_REASON,
                        _FALLBACK_KIND.get(credentials.completeness, "both"),
                    )
        except Exception as e:
            logger.error(f"[Credential Migration] Detection failed: {e}")
            return Result.failure(e, operation="detect_projects_with_missing_credentials")

        logger.info(f"[Credential Migration] Detected {len(missing)} projects with missing credentials")
        return Result.ok(missing)

    @staticmethod
    def _empty_detection() -> List[ProjectRecord]:
        logger.warning("[Credential Migration] Using fallback detection method")
        return []

    async def get_migration_stats(self) -> Result[MigrationStats]:
        """Count projects by credential completeness."""
        try:
            projects = await self._load_projects("get migration stats")
        except Exception as e:
            logger.error(f"[Credential Migration] Failed to get migration statistics: {e}")
            return Result.failure(e, operation="get_migration_stats")

        stats = MigrationStats()
        for project in projects:
            stats.record(self._credentials_of(project).completeness)
        return Result.ok(stats)

    async def generate_project_credentials(
        self, project_ref: str, options: Optional[GenerationOptions] = None, **overrides
    ) -> Result[ProjectCredentials]:
        return await self.generator.generate_project_credentials(project_ref, options, **overrides)

    async def migrate_project_credentials(
        self, project_ref: str, options: Optional[GenerationOptions] = None
    ) -> Result[MigrationResult]:
        """
        Generate and persist credentials for one project.

        A project that already has complete credentials is left untouched
        and reported as a success.

        Args:
            project_ref: Project reference identifier
            options: Generation options

        Returns:
            Result with the MigrationResult; an error only when the project
            store cannot be read
        """
        try:
            projects = await self._load_projects(f"migrate project {project_ref}")
        except Exception as e:
            return Result.failure(e, operation="migrate_project_credentials", project_ref=project_ref)

        project = next((p for p in projects if p.ref == project_ref), None)
        if project is None:
            return Result.ok(MigrationResult(False, project_ref, error=_not_found(project_ref)))

        return Result.ok(await self._migrate_project(project, options))

    async def _migrate_project(
        self, project: ProjectRecord, options: Optional[GenerationOptions]
    ) -> MigrationResult:
        project_ref = project.ref

        try:
            existing = self._credentials_of(project)
            if existing.is_complete:
                return MigrationResult(True, project_ref, existing, error=ALREADY_COMPLETE)

            generated = await self.generate_project_credentials(project_ref, options)
            if not generated.is_ok:
                return MigrationResult(False, project_ref, error=generated.error.message)

            credentials = generated.data
            try:
                stored = await self._update_project(
                    project,
                    {
                        "database_user": credentials.user,
                        "database_password_hash": credentials.password_hash,
                    },
                )
            except Exception as e:
                logger.error(f"[Credential Migration] Failed to update project {project_ref}: {e}")
                return MigrationResult(False, project_ref, error=f"Failed to update project: {e}")

            # Validate what the store actually kept
            persisted = self._credentials_of(stored) if stored is not None else credentials
            validation = self.validator.validate_project_credentials(persisted, require_complete=True)

        except Exception as e:
            logger.error(f"[Credential Migration] Migration failed for {project_ref}: {e}")
            return MigrationResult(False, project_ref, error=f"Migration failed: {e}")

        if not validation.is_valid:
            log_validation_failure(validation, project_ref, "credential migration")
            return MigrationResult(
                False, project_ref, persisted, error=FAILED_VALIDATION, validation_result=validation
            )

        logger.info(f"[Credential Migration] Successfully migrated credentials for project: {project_ref}")
        return MigrationResult(True, project_ref, persisted, validation_result=validation)

    async def _dry_run_project(
        self, project_ref: str, options: Optional[GenerationOptions]
    ) -> MigrationResult:
        generated = await self.generate_project_credentials(project_ref, options)
        if not generated.is_ok:
            return MigrationResult(False, project_ref, error=generated.error.message)
        return MigrationResult(True, project_ref, generated.data)

    async def migrate_all_project_credentials(
        self, options: Optional[GenerationOptions] = None, dry_run: bool = False
    ) -> Result[BatchMigrationResult]:
        """
        Migrate every project detected as incomplete, one after another.

        Args:
            options: Generation options applied to every project
            dry_run: Only generate and validate; never write to the store

        Returns:
            Result with the BatchMigrationResult; per-project failures are
            recorded in it and never abort the batch
        """
        detection = await self.detect_projects_with_missing_credentials()
        if not detection.is_ok:
            return Result(error=detection.error)
        refs = detection.data

        try:
            projects = await self._load_projects("migrate all project credentials")
        except Exception as e:
            return Result.failure(e, operation="migrate_all_project_credentials")

        by_ref = {project.ref: project for project in projects}
        mode = "dry run" if dry_run else "migration"
        logger.info(f"[Credential Migration] Starting {mode} for {len(refs)} projects")

        results: List[MigrationResult] = []
        errors: List[str] = []
        for project_ref in refs:
            if dry_run:
                result = await self._dry_run_project(project_ref, options)
            elif project_ref not in by_ref:
                result = MigrationResult(False, project_ref, error=_not_found(project_ref))
            else:
                result = await self._migrate_project(by_ref[project_ref], options)

            results.append(result)
            if not result.success and result.error:
                errors.append(f"{project_ref}: {result.error}")

        successful = sum(1 for result in results if result.success)
        batch = BatchMigrationResult(
            total_projects=len(projects),
            successful_migrations=successful,
            failed_migrations=len(results) - successful,
            results=results,
            summary=BatchMigrationSummary(
                projects_with_missing_credentials=len(refs),
                projects_already_complete=len(projects) - len(refs),
                migration_errors=errors,
            ),
            dry_run=dry_run,
        )

        logger.info(
            f"[Credential Migration] {mode.capitalize()} completed: "
            f"{batch.successful_migrations} successful, {batch.failed_migrations} failed"
        )
        return Result.ok(batch)

    async def validate_existing_credentials(self, project_ref: str) -> Result[DetailedValidationResult]:
        """Validate a project's stored credentials without changing anything."""
        try:
            projects = await self._load_projects(f"validate credentials of {project_ref}")
        except Exception as e:
            return Result.failure(e, operation="validate_existing_credentials", project_ref=project_ref)

        project = next((p for p in projects if p.ref == project_ref), None)
        if project is None:
            return Result(
                error=CredentialError.validation(_not_found(project_ref), {"project_ref": project_ref})
            )

        return Result.ok(
            self.validator.validate_project_credentials(self._credentials_of(project), require_complete=True)
        )
