"""
School resolution for every role.

Given the seeded repo (see conftest.build_seeded_repo):
- single-school roles resolve to their one membership, idempotently;
- zero memberships fail with NoSchoolAccessError, never a default;
- superadmins pick an explicit school from their set or get a deterministic default.
"""
from __future__ import annotations

import pytest

from backend.identity_access.domain import Principal
from backend.identity_access.errors import (
    NoSchoolAccessError,
    RoleMissingError,
    SchoolAccessDeniedError,
)
from backend.tenancy.context import (
    list_accessible_school_ids,
    resolve_school_id,
    school_context,
    superadmin_schools,
)
from backend.tenancy.memberships import MEMBERSHIP_RESOLVERS, MembershipRule, role_table
from backend.tenancy.repo_memory import InMemorySchoolRepo


def test_staff_member_resolves_to_membership_row(repo):
    staff = Principal(id="staff-1", role="teacher")
    assert resolve_school_id(staff, repo) == "tenant-9"


@pytest.mark.parametrize(
    "principal_id, role, expected",
    [
        ("staff-1", "teacher", "tenant-9"),
        ("admin-1", "admin", "school-a"),
        ("stud-1", "student", "school-a"),
        ("par-1", "parent", "school-b"),
    ],
)
def test_single_school_roles_are_idempotent(repo, principal_id, role, expected):
    principal = Principal(id=principal_id, role=role)
    results = {resolve_school_id(principal, repo) for _ in range(5)}
    assert results == {expected}
    assert expected == repo.members[f"{role}s"][principal_id]


@pytest.mark.parametrize("role", ["admin", "teacher", "student", "parent", "superadmin"])
def test_zero_memberships_raise_no_school_access(repo, role):
    with pytest.raises(NoSchoolAccessError) as ei:
        resolve_school_id(Principal(id="nobody", role=role), repo)
    assert ei.value.code == "no_school_access"


def test_superadmin_without_schools_raises_no_school_access(repo):
    with pytest.raises(NoSchoolAccessError):
        resolve_school_id(Principal(id="sa-empty", role="superadmin"), repo, "school-a")


def test_superadmin_explicit_school_outside_set_is_denied(repo):
    sa = Principal(id="sa-1", role="superadmin")
    with pytest.raises(SchoolAccessDeniedError) as ei:
        resolve_school_id(sa, repo, "tenant-9")
    assert ei.value.school_id == "tenant-9"


def test_superadmin_explicit_school_inside_set_is_returned(repo):
    sa = Principal(id="sa-1", role="superadmin")
    assert resolve_school_id(sa, repo, "school-a") == "school-a"
    assert resolve_school_id(sa, repo, "school-b") == "school-b"


def test_superadmin_default_is_deterministic_insertion_first(repo):
    sa = Principal(id="sa-1", role="superadmin")
    picks = {resolve_school_id(sa, repo) for _ in range(5)}
    # school-b was linked first; insertion order beats lexicographic order.
    assert picks == {"school-b"}


def test_blank_explicit_school_falls_back_to_default(repo):
    sa = Principal(id="sa-1", role="superadmin")
    assert resolve_school_id(sa, repo, "  ") == "school-b"


def test_single_school_role_cannot_select_foreign_school(repo):
    staff = Principal(id="staff-1", role="teacher")
    assert resolve_school_id(staff, repo, "tenant-9") == "tenant-9"
    with pytest.raises(SchoolAccessDeniedError):
        resolve_school_id(staff, repo, "school-a")


def test_unknown_role_has_no_membership_rule(repo):
    with pytest.raises(RoleMissingError):
        resolve_school_id(Principal(id="x", role="janitor"), repo)


def test_adding_a_role_is_one_table_entry(repo):
    repo.add_member("admins", "lib-1", "school-c")
    rules = dict(MEMBERSHIP_RESOLVERS)
    rules["librarian"] = MembershipRule(role_table("admins"))
    assert resolve_school_id(Principal(id="lib-1", role="librarian"), repo, rules=rules) == "school-c"


def test_role_table_rejects_unknown_tables():
    with pytest.raises(ValueError):
        role_table("schools; drop table schools")


def test_list_accessible_school_ids(repo):
    assert list_accessible_school_ids(Principal(id="sa-1", role="superadmin"), repo) == ["school-b", "school-a"]
    assert list_accessible_school_ids(Principal(id="par-1", role="parent"), repo) == ["school-b"]
    assert list_accessible_school_ids(Principal(id="ghost", role="parent"), repo) == []


def test_superadmin_school_list_and_context(repo):
    sa = Principal(id="sa-1", role="superadmin")
    schools = superadmin_schools(sa, repo)
    assert [s.school_id for s in schools] == ["school-b", "school-a"]
    assert schools[0].to_dict() == {"schoolId": "school-b", "schoolName": "Beta Elementary", "role": "superadmin"}

    ctx = school_context(sa, repo)
    assert ctx.school_id == "school-b"
    assert ctx.school_name == "Beta Elementary"
    assert ctx.has_multiple_schools is True

    picked = school_context(sa, repo, "school-a")
    assert picked.school_name == "Alpha Academy"


def test_school_context_for_single_school_role(repo):
    ctx = school_context(Principal(id="staff-1", role="teacher"), repo)
    assert ctx.to_dict() == {
        "schoolId": "tenant-9",
        "schoolName": "Greenwood High School",
        "userRole": "teacher",
        "hasMultipleSchools": False,
    }


def test_school_context_superadmin_without_schools():
    with pytest.raises(NoSchoolAccessError):
        school_context(Principal(id="sa-x", role="superadmin"), InMemorySchoolRepo())
