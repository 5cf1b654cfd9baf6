"""
In-memory school repository for development and tests.

Mirrors the ordering contracts of DBSchoolRepo: superadmin memberships come
back in insertion order, school listings newest first. Teacher `classes` are
the classes a teacher supervises and `lessons` counts their lessons; the
`class_id` filter matches teachers holding a lesson in that class.
"""
from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from .memberships import MEMBER_TABLES
from .models import PlatformStats, School, SchoolAccess, SchoolListItem, SchoolStats, Teacher


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class InMemorySchoolRepo:
    def __init__(self) -> None:
        self.schools: Dict[str, School] = {}
        # members[table][principal_id] = school_id
        self.members: Dict[str, Dict[str, str]] = {t: {} for t in MEMBER_TABLES}
        # superadmin_id -> [school_id, ...] in insertion order
        self.superadmin_links: Dict[str, List[str]] = {}
        self.teachers: Dict[str, Teacher] = {}
        # class_id -> (school_id, name, supervisor_id)
        self.classes: Dict[int, Tuple[str, str, Optional[str]]] = {}
        # (teacher_id, class_id) per lesson
        self.lessons: List[Tuple[str, int]] = []
        self.subjects: Dict[str, str] = {}
        # school_id -> insertion sequence; stands in for created_at ordering
        self._order: Dict[str, int] = {}

    # --- seeding helpers ------------------------------------------------------
    def add_school(self, school_id: str, name: str, *, is_active: bool = True, **fields) -> School:
        self._order.setdefault(school_id, len(self._order) + 1)
        created = fields.pop("created_at", None) or _now_iso()
        school = School(id=school_id, name=name, is_active=is_active, created_at=created, **fields)
        self.schools[school_id] = school
        return school

    def add_member(self, table: str, principal_id: str, school_id: str) -> None:
        if table not in MEMBER_TABLES:
            raise ValueError(f"unknown member table: {table}")
        self.members[table][principal_id] = school_id

    def link_superadmin(self, superadmin_id: str, school_id: str) -> None:
        links = self.superadmin_links.setdefault(superadmin_id, [])
        if school_id not in links:
            links.append(school_id)

    def add_teacher(self, teacher: Teacher) -> None:
        self.teachers[teacher.id] = teacher
        self.add_member("teachers", teacher.id, teacher.school_id)

    def add_class(self, class_id: int, school_id: str, name: str, *, supervisor_id: Optional[str] = None) -> None:
        self.classes[int(class_id)] = (school_id, name, supervisor_id)

    def add_lesson(self, teacher_id: str, class_id: int) -> None:
        self.lessons.append((teacher_id, int(class_id)))

    def add_subject(self, subject_id: str, school_id: str) -> None:
        self.subjects[subject_id] = school_id

    # --- SchoolRepoProtocol ---------------------------------------------------
    def member_school_id(self, *, table: str, principal_id: str) -> Optional[str]:
        if table not in MEMBER_TABLES:
            raise ValueError(f"unknown member table: {table}")
        return self.members[table].get(principal_id)

    def list_superadmin_schools(self, *, superadmin_id: str) -> List[SchoolAccess]:
        out: List[SchoolAccess] = []
        for sid in self.superadmin_links.get(superadmin_id, []):
            school = self.schools.get(sid)
            if school is not None:
                out.append(SchoolAccess(school_id=school.id, school_name=school.name))
        return out

    def get_school(self, school_id: str) -> Optional[School]:
        return self.schools.get(school_id)

    def school_stats(self, school_id: str) -> SchoolStats:
        return SchoolStats(
            students=self._count_members("students", school_id),
            teachers=self._count_members("teachers", school_id),
            classes=sum(1 for c in self.classes.values() if c[0] == school_id),
            subjects=sum(1 for s in self.subjects.values() if s == school_id),
        )

    def list_active_schools(self) -> List[School]:
        return sorted((s for s in self.schools.values() if s.is_active), key=lambda s: s.name)

    def platform_stats(self) -> PlatformStats:
        return PlatformStats(
            schools=len(self.schools),
            active_schools=sum(1 for s in self.schools.values() if s.is_active),
            admins=len(self.members["admins"]),
            teachers=len(self.members["teachers"]),
            students=len(self.members["students"]),
            parents=len(self.members["parents"]),
        )

    def list_schools(
        self, *, search: Optional[str], active: Optional[bool], limit: int, offset: int
    ) -> Tuple[List[SchoolListItem], int]:
        rows = list(self.schools.values())
        if search:
            needle = search.lower()
            rows = [s for s in rows if needle in s.name.lower()]
        if active is not None:
            rows = [s for s in rows if s.is_active == active]
        rows.sort(key=lambda s: self._order.get(s.id, 0), reverse=True)
        total = len(rows)
        page = rows[offset: offset + limit]
        items = [
            SchoolListItem(
                school=s,
                students=self._count_members("students", s.id),
                teachers=self._count_members("teachers", s.id),
                admins=self._count_members("admins", s.id),
            )
            for s in page
        ]
        return items, total

    def list_teachers(
        self, *, school_id: str, search: Optional[str], class_id: Optional[int], limit: int, offset: int
    ) -> Tuple[List[Teacher], int]:
        rows = [t for t in self.teachers.values() if t.school_id == school_id]
        if search:
            needle = search.lower()
            rows = [t for t in rows if needle in t.name.lower()]
        if class_id is not None:
            # Same rule as the SQL filter: the teacher holds a lesson in that class.
            teaching = {tid for tid, cid in self.lessons if cid == int(class_id)}
            rows = [t for t in rows if t.id in teaching]
        rows.sort(key=lambda t: (t.name.lower(), t.id))
        return [self._with_details(t) for t in rows[offset: offset + limit]], len(rows)

    def get_teacher(self, *, school_id: str, teacher_id: str) -> Optional[Teacher]:
        teacher = self.teachers.get(teacher_id)
        if teacher is None or teacher.school_id != school_id:
            return None
        return self._with_details(teacher)

    def _count_members(self, table: str, school_id: str) -> int:
        return sum(1 for sid in self.members[table].values() if sid == school_id)

    def _with_details(self, teacher: Teacher) -> Teacher:
        """Fill the derived columns the way DBSchoolRepo aggregates them."""
        supervised = sorted(name for sid, name, sup in self.classes.values() if sup == teacher.id)
        lessons = sum(1 for tid, _ in self.lessons if tid == teacher.id)
        return replace(teacher, classes=supervised, lessons=lessons)
