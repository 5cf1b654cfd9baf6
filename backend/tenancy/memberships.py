"""
Role -> membership lookup table.

Each application role maps to one `MembershipRule` that knows how to list the
school ids a principal of that role belongs to. Adding a role means adding
one entry to MEMBERSHIP_RESOLVERS; the resolver in context.py never branches
on role names.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol, Tuple

from backend.identity_access.domain import ADMIN, PARENT, STUDENT, SUPERADMIN, TEACHER

from .models import PlatformStats, School, SchoolAccess, SchoolListItem, SchoolStats, Teacher

# Role tables carrying a single `school_id` per row. Only these names may reach SQL.
MEMBER_TABLES = frozenset({"admins", "teachers", "students", "parents"})


class SchoolRepoProtocol(Protocol):
    def member_school_id(self, *, table: str, principal_id: str) -> Optional[str]:
        ...

    def list_superadmin_schools(self, *, superadmin_id: str) -> List[SchoolAccess]:
        ...

    def get_school(self, school_id: str) -> Optional[School]:
        ...

    def school_stats(self, school_id: str) -> SchoolStats:
        ...

    def list_active_schools(self) -> List[School]:
        ...

    def platform_stats(self) -> PlatformStats:
        ...

    def list_schools(
        self, *, search: Optional[str], active: Optional[bool], limit: int, offset: int
    ) -> Tuple[List[SchoolListItem], int]:
        ...

    def list_teachers(
        self, *, school_id: str, search: Optional[str], class_id: Optional[int], limit: int, offset: int
    ) -> Tuple[List[Teacher], int]:
        ...

    def get_teacher(self, *, school_id: str, teacher_id: str) -> Optional[Teacher]:
        ...


MembershipLookup = Callable[[SchoolRepoProtocol, str], List[str]]


@dataclass(frozen=True)
class MembershipRule:
    lookup: MembershipLookup
    multi_school: bool = False


def role_table(table: str) -> MembershipLookup:
    """Build a lookup for a single-school role stored in `table`."""
    if table not in MEMBER_TABLES:
        raise ValueError(f"unknown member table: {table}")

    def _lookup(repo: SchoolRepoProtocol, principal_id: str) -> List[str]:
        school_id = repo.member_school_id(table=table, principal_id=principal_id)
        return [school_id] if school_id else []

    return _lookup


def superadmin_schools(repo: SchoolRepoProtocol, principal_id: str) -> List[str]:
    return [access.school_id for access in repo.list_superadmin_schools(superadmin_id=principal_id)]


MEMBERSHIP_RESOLVERS: dict[str, MembershipRule] = {
    SUPERADMIN: MembershipRule(superadmin_schools, multi_school=True),
    ADMIN: MembershipRule(role_table("admins")),
    TEACHER: MembershipRule(role_table("teachers")),
    STUDENT: MembershipRule(role_table("students")),
    PARENT: MembershipRule(role_table("parents")),
}
