"""Credential fallback bookkeeping.

Decides whether a project's stored credentials are usable and keeps a
bounded in-memory log of every time a project had to fall back.
"""

import logging
import threading
from collections import Counter, deque
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional, Protocol, runtime_checkable

from .models import ProjectCredentials

logger = logging.getLogger(__name__)

MAX_LOG_ENTRIES = 1000
CREDENTIAL_KINDS = ("user", "password", "both")


@runtime_checkable
class CredentialFallbackProvider(Protocol):
    """What the migration manager needs from a fallback manager."""

    def get_project_credentials(
        self, project_ref: str, user: Optional[str], password_hash: Optional[str]
    ) -> ProjectCredentials:
        ...

    def should_use_fallback(self, credentials: ProjectCredentials) -> bool:
        ...

    def log_fallback_usage(self, project_ref: str, reason: str, credential_kind: str = "both") -> None:
        ...


@dataclass(frozen=True)
class FallbackUsageEntry:
    project_ref: str
    reason: str
    timestamp: str
    credential_kind: str


def normalize_credential_value(value: Optional[str]) -> Optional[str]:
    """None for missing or blank values, the stripped string otherwise."""
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


class CredentialFallbackManager:
    """Default in-process CredentialFallbackProvider."""

    def __init__(self, max_entries: int = MAX_LOG_ENTRIES):
        self._log: Deque[FallbackUsageEntry] = deque(maxlen=max_entries)
        self._lock = threading.Lock()

    def get_project_credentials(
        self, project_ref: str, user: Optional[str], password_hash: Optional[str]
    ) -> ProjectCredentials:
        return ProjectCredentials(
            user=normalize_credential_value(user),
            password_hash=normalize_credential_value(password_hash),
        )

    def should_use_fallback(self, credentials: ProjectCredentials) -> bool:
        return (
            normalize_credential_value(credentials.user) is None
            or normalize_credential_value(credentials.password_hash) is None
        )

    def log_fallback_usage(self, project_ref: str, reason: str, credential_kind: str = "both") -> None:
        """
        Record that ``project_ref`` needed fallback credentials.

        Args:
            project_ref: Project reference identifier
            reason: Why the fallback was needed
            credential_kind: "user", "password" or "both"
        """
        if credential_kind not in CREDENTIAL_KINDS:
            raise ValueError(f"credential_kind must be one of {CREDENTIAL_KINDS}, got {credential_kind!r}")

        entry = FallbackUsageEntry(
            project_ref=project_ref,
            reason=reason,
            timestamp=datetime.now(timezone.utc).isoformat(),
            credential_kind=credential_kind,
        )
        with self._lock:
            self._log.append(entry)

        logger.info(
            f"[Credential Fallback] Project: {project_ref}, Reason: {reason}, "
            f"Type: {credential_kind}"
        )

    def get_recent_fallback_usage(self, limit: int = 100) -> List[FallbackUsageEntry]:
        """Newest entries first."""
        with self._lock:
            entries = list(self._log)
        entries.reverse()
        return entries[:limit]

    def get_fallback_usage_stats(self) -> Dict[str, Any]:
        with self._lock:
            entries = list(self._log)

        reason_counts = Counter(entry.reason for entry in entries)
        return {
            "total_entries": len(entries),
            "unique_projects": len({entry.project_ref for entry in entries}),
            "recent_usage": [asdict(entry) for entry in reversed(entries[-10:])],
            "most_common_reasons": [
                {"reason": reason, "count": count} for reason, count in reason_counts.most_common(10)
            ],
        }

    def clear_fallback_usage_log(self) -> None:
        with self._lock:
            self._log.clear()
