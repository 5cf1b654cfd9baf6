"""Read models for the tenancy context (plain dataclasses, no ORM)."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class School:
    id: str
    name: str
    code: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    logo: Optional[str] = None
    is_active: bool = True
    created_at: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class SchoolStats:
    students: int = 0
    teachers: int = 0
    classes: int = 0
    subjects: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class PlatformStats:
    """Counts across every school, for the superadmin dashboard."""

    schools: int = 0
    active_schools: int = 0
    admins: int = 0
    teachers: int = 0
    students: int = 0
    parents: int = 0

    @property
    def total_users(self) -> int:
        return self.admins + self.teachers + self.students + self.parents

    def to_dict(self) -> dict:
        body = asdict(self)
        body["total_users"] = self.total_users
        return body


@dataclass(frozen=True)
class SchoolAccess:
    """One entry of a superadmin's school list."""

    school_id: str
    school_name: str
    role: str = "superadmin"

    def to_dict(self) -> dict:
        return {"schoolId": self.school_id, "schoolName": self.school_name, "role": self.role}


@dataclass(frozen=True)
class SchoolContext:
    school_id: str
    school_name: Optional[str]
    role: str
    has_multiple_schools: bool = False

    def to_dict(self) -> dict:
        return {
            "schoolId": self.school_id,
            "schoolName": self.school_name,
            "userRole": self.role,
            "hasMultipleSchools": self.has_multiple_schools,
        }


@dataclass(frozen=True)
class SchoolListItem:
    school: School
    students: int = 0
    teachers: int = 0
    admins: int = 0

    def to_dict(self) -> dict:
        body = self.school.to_dict()
        body["counts"] = {"students": self.students, "teachers": self.teachers, "admins": self.admins}
        return body


@dataclass(frozen=True)
class Teacher:
    id: str
    school_id: str
    username: str
    name: str
    surname: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    subjects: List[str] = field(default_factory=list)
    classes: List[str] = field(default_factory=list)
    lessons: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class Page:
    """One page of a listing plus the pagination envelope."""

    items: list
    page: int
    page_size: int
    total_count: int

    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return -(-self.total_count // self.page_size)

    @property
    def has_next(self) -> bool:
        return self.page * self.page_size < self.total_count

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    def pagination(self) -> dict:
        return {
            "page": self.page,
            "totalPages": self.total_pages,
            "totalCount": self.total_count,
            "hasNext": self.has_next,
            "hasPrev": self.has_prev,
        }
