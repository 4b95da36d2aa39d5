"""Pytest configuration and fixtures for credforge tests"""

import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List

import pytest

# Ensure src directory is in Python path before any imports
project_root = Path(__file__).resolve().parent.parent
src_path = project_root / "src"

if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from credforge.config import Settings
from credforge.credentials.store import ProjectRecord
from credforge.error_handler import CredentialErrorHandler
from credforge.services import build_credential_services, reset_credential_services


class InMemoryProjectStore:
    """Project store fake that records every call."""

    def __init__(self, projects: List[ProjectRecord] = None):
        self.projects: List[ProjectRecord] = list(projects or [])
        self.find_all_calls = 0
        self.update_calls: List[Dict[str, Any]] = []
        self.fail_find_all: List[Exception] = []
        self.fail_update: List[Exception] = []

    async def find_all(self) -> List[ProjectRecord]:
        self.find_all_calls += 1
        if self.fail_find_all:
            raise self.fail_find_all.pop(0)
        return [replace(project) for project in self.projects]

    async def update(self, project_id, fields: Dict[str, Any]) -> ProjectRecord:
        self.update_calls.append({"id": project_id, "fields": dict(fields)})
        if self.fail_update:
            raise self.fail_update.pop(0)
        for index, project in enumerate(self.projects):
            if project.id == project_id:
                self.projects[index] = replace(project, **fields)
                return replace(self.projects[index])
        raise KeyError(f"project {project_id} not found")


async def no_sleep(_delay: float) -> None:
    return None


@pytest.fixture
def fast_settings():
    """Settings with short delays and the cheapest bcrypt cost."""
    return Settings(
        retry_base_delay=0.0,
        retry_max_delay=0.0,
        retry_jitter=False,
        circuit_failure_threshold=5,
        circuit_recovery_timeout=60.0,
        bcrypt_rounds=4,
    )


@pytest.fixture
def sample_projects():
    """One complete project and two incomplete ones."""
    return [
        ProjectRecord(
            id=1,
            ref="complete-project",
            name="Complete",
            database_user="proj_complete_project_user",
            database_password_hash="$2b$04$abcdefghijklmnopqrstuuZ7f8g9h0JKLMNOPQRSTUVWXYZ.1234",
        ),
        ProjectRecord(id=2, ref="missing-both", name="Missing both"),
        ProjectRecord(id=3, ref="missing-password", name="Missing password", database_user="proj_x_user"),
    ]


@pytest.fixture
def store_factory():
    """Build an InMemoryProjectStore from a list of ProjectRecords."""
    return InMemoryProjectStore


@pytest.fixture
def store(sample_projects):
    return InMemoryProjectStore(sample_projects)


@pytest.fixture
def error_handler(fast_settings):
    return CredentialErrorHandler(fast_settings, sleep=no_sleep)


@pytest.fixture
def services(store, fast_settings):
    return build_credential_services(store, fast_settings)


@pytest.fixture(autouse=True)
def _reset_process_services():
    yield
    reset_credential_services()
