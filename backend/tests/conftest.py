"""
Pytest configuration for backend tests.

Why: Force AnyIO to use the asyncio backend, keep the repo root importable
without an install, and give every test a fresh app state (sessions, OIDC
state, listing cache, school repo) so nothing leaks across tests.
"""
import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from backend.tenancy.models import Teacher  # noqa: E402
from backend.tenancy.repo_memory import InMemorySchoolRepo  # noqa: E402


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _clear_env_toggles(monkeypatch: pytest.MonkeyPatch):
    """Default to dev semantics; individual tests opt into prod explicitly."""
    for var in (
        "SCHOOLHUB_ENV",
        "SCHOOLHUB_TRUST_PROXY",
        "SESSIONS_BACKEND",
        "SCHOOLS_BACKEND",
        "SCHOOL_LISTING_CACHE_TTL",
        "SCHOOL_PAGE_SIZE",
        "SESSION_TTL_SECONDS",
        "SESSION_DATABASE_URL",
        "SCHOOLS_DATABASE_URL",
    ):
        monkeypatch.delenv(var, raising=False)
    yield


def build_seeded_repo() -> InMemorySchoolRepo:
    """Schools, members and a superadmin used across the suite.

    - staff-1 (teacher) -> tenant-9
    - admin-1 (admin), stud-1 (student) -> school-a
    - par-1 (parent) -> school-b
    - sa-1 (superadmin) administers school-b then school-a (insertion order)
    - sa-empty (superadmin) administers nothing
    - class 1A in school-a is supervised and taught by teacher-a2
    """
    repo = InMemorySchoolRepo()
    repo.add_school("tenant-9", "Greenwood High School", code="GREENWOOD")
    repo.add_school("school-a", "Alpha Academy", code="ALPHA")
    repo.add_school("school-b", "Beta Elementary", code="BETA")
    repo.add_school("school-c", "Gamma Institute", code="GAMMA", is_active=False)

    repo.add_teacher(Teacher(id="staff-1", school_id="tenant-9", username="staff1", name="Ada", subjects=["Math"]))
    repo.add_teacher(Teacher(id="teacher-a1", school_id="school-a", username="ta1", name="Bert"))
    repo.add_teacher(Teacher(id="teacher-a2", school_id="school-a", username="ta2", name="Carla"))
    repo.add_member("admins", "admin-1", "school-a")
    repo.add_member("students", "stud-1", "school-a")
    repo.add_member("students", "stud-2", "school-a")
    repo.add_member("parents", "par-1", "school-b")
    repo.add_class(1, "school-a", "1A", supervisor_id="teacher-a2")
    repo.add_lesson("teacher-a2", 1)
    repo.add_subject("subj-1", "school-a")

    repo.link_superadmin("sa-1", "school-b")
    repo.link_superadmin("sa-1", "school-a")
    return repo


@pytest.fixture
def repo() -> InMemorySchoolRepo:
    return build_seeded_repo()


@pytest.fixture
def app_main(repo):
    """The FastAPI module with a fresh state and the seeded repo installed."""
    from backend.web import main

    main.SETTINGS.override_environment(None)
    main.init_state(main.app)
    main.app.state.school_repo = repo
    yield main
    main.SETTINGS.override_environment(None)
