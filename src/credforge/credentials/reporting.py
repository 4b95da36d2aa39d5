"""Human-readable reports for failed credential validation."""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from .models import DetailedValidationResult, ValidationResult

logger = logging.getLogger(__name__)


def _status(is_valid: bool) -> str:
    return "VALID" if is_valid else "INVALID"


def _field_section(title: str, result: ValidationResult) -> List[str]:
    lines = [f"{title}:", f"  Status: {_status(result.is_valid)}"]
    if result.score is not None:
        lines.append(f"  Strength Score: {result.score}/100")
    if result.errors:
        lines.append("  Errors:")
        lines.extend(f"    - {error}" for error in result.errors)
    if result.warnings:
        lines.append("  Warnings:")
        lines.extend(f"    - {warning}" for warning in result.warnings)
    lines.append("")
    return lines


def generate_validation_error_report(
    result: DetailedValidationResult,
    project_ref: Optional[str] = None,
    operation: str = "credential validation",
    timestamp: Optional[str] = None,
) -> str:
    """
    Build a multi-line report of a validation result.

    Args:
        result: Result to describe
        project_ref: Project the credentials belong to
        operation: What was being done when validation ran
        timestamp: ISO timestamp (defaults to now, UTC)

    Returns:
        Report text, one finding per line
    """
    timestamp = timestamp or datetime.now(timezone.utc).isoformat()

    lines = ["=== Credential Validation Error Report ===", f"Timestamp: {timestamp}"]
    if project_ref:
        lines.append(f"Project: {project_ref}")
    lines.append(f"Operation: {operation}")
    lines.append(f"Overall Status: {_status(result.is_valid)}")
    lines.append("")

    lines.extend(_field_section("Username Validation", result.user_validation))
    lines.extend(_field_section("Password Validation", result.password_validation))

    if result.overall_errors:
        lines.append("Overall Errors:")
        lines.extend(f"  - {error}" for error in result.overall_errors)
        lines.append("")

    lines.append("=== End Report ===")
    return "\n".join(lines)


def log_validation_failure(
    result: DetailedValidationResult,
    project_ref: Optional[str] = None,
    operation: str = "credential validation",
) -> None:
    """Log the report at ERROR level. Valid results are not logged."""
    if result.is_valid:
        return

    report = generate_validation_error_report(result, project_ref, operation)
    logger.error(
        f"[Credential Validation] Failure for {project_ref or 'Unknown Project'}\n{report}"
    )
