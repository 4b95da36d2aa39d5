"""Project store contract.

How project records are persisted (JSON file, SQL table, HTTP API) is up to
the host application; the migration manager only needs these two calls.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable


@dataclass
class ProjectRecord:
    """One tenant project as seen by the credential engine."""

    id: Any
    ref: str
    name: Optional[str] = None
    database_user: Optional[str] = None
    database_password_hash: Optional[str] = None


@runtime_checkable
class ProjectStore(Protocol):
    """Async access to project records."""

    async def find_all(self) -> List[ProjectRecord]:
        ...

    async def update(self, project_id: Any, fields: Dict[str, Any]) -> ProjectRecord:
        """Apply ``fields`` (e.g. ``database_user``) and return the stored record."""
        ...
