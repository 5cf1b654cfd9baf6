"""
Postgres-backed repository for schools and memberships.

Design:
- Minimal psycopg3 usage; each call opens a short-lived connection.
- Returns the dataclasses from models.py; no ORM.
- Member tables are never taken from input: only names in MEMBER_TABLES reach SQL.

Schema: see schema.sql next to this module.
"""
from __future__ import annotations

from typing import List, Optional, Tuple
import os

try:
    import psycopg
    HAVE_PSYCOPG = True
except ImportError:  # pragma: no cover - optional in some dev envs
    psycopg = None  # type: ignore
    HAVE_PSYCOPG = False

from .memberships import MEMBER_TABLES
from .models import PlatformStats, School, SchoolAccess, SchoolListItem, SchoolStats, Teacher

_ISO = """to_char({col} at time zone 'utc', 'YYYY-MM-DD"T"HH24:MI:SS"+00:00"')"""

_SCHOOL_COLUMNS_SQL = f"""
    s.id::text,
    s.name,
    s.code,
    s.address,
    s.phone,
    s.email,
    s.logo,
    s.is_active,
    {_ISO.format(col="s.created_at")}
"""

_TEACHER_COLUMNS_SQL = """
    t.id::text,
    t.school_id::text,
    t.username,
    t.name,
    t.surname,
    t.email,
    t.phone,
    coalesce((select array_agg(sub.name order by sub.name)
                from public.teacher_subjects ts
                join public.subjects sub on sub.id = ts.subject_id
               where ts.teacher_id = t.id), '{}'),
    coalesce((select array_agg(c.name order by c.name)
                from public.classes c
               where c.supervisor_id = t.id), '{}'),
    (select count(*) from public.lessons l where l.teacher_id = t.id)
"""


def _dsn() -> str:
    for dsn in (os.getenv("SCHOOLS_DATABASE_URL"), os.getenv("DATABASE_URL")):
        if dsn:
            return dsn
    raise RuntimeError("Database DSN unavailable for DBSchoolRepo")


def _school_from_row(row: Tuple) -> School:
    return School(
        id=row[0],
        name=row[1],
        code=row[2],
        address=row[3],
        phone=row[4],
        email=row[5],
        logo=row[6],
        is_active=bool(row[7]),
        created_at=row[8],
    )


def _teacher_from_row(row: Tuple) -> Teacher:
    return Teacher(
        id=row[0],
        school_id=row[1],
        username=row[2],
        name=row[3],
        surname=row[4],
        email=row[5],
        phone=row[6],
        subjects=list(row[7] or []),
        classes=list(row[8] or []),
        lessons=int(row[9] or 0),
    )


class DBSchoolRepo:
    def __init__(self, dsn: Optional[str] = None) -> None:
        if not HAVE_PSYCOPG:
            raise RuntimeError("psycopg3 is required for DBSchoolRepo")
        self._dsn = dsn or _dsn()

    # --- memberships ----------------------------------------------------------
    def member_school_id(self, *, table: str, principal_id: str) -> Optional[str]:
        if table not in MEMBER_TABLES:
            raise ValueError(f"unknown member table: {table}")
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(f"select school_id::text from public.{table} where id = %s", (principal_id,))
                row = cur.fetchone()
        return row[0] if row and row[0] else None

    def list_superadmin_schools(self, *, superadmin_id: str) -> List[SchoolAccess]:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    select s.id::text, s.name
                      from public.superadmin_schools l
                      join public.schools s on s.id = l.school_id
                     where l.superadmin_id = %s
                     order by l.created_at asc, s.id asc
                    """,
                    (superadmin_id,),
                )
                rows = cur.fetchall() or []
        return [SchoolAccess(school_id=r[0], school_name=r[1]) for r in rows]

    # --- schools --------------------------------------------------------------
    def get_school(self, school_id: str) -> Optional[School]:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(f"select {_SCHOOL_COLUMNS_SQL} from public.schools s where s.id = %s", (school_id,))
                row = cur.fetchone()
        return _school_from_row(row) if row else None

    def school_stats(self, school_id: str) -> SchoolStats:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    select (select count(*) from public.students where school_id = %(sid)s),
                           (select count(*) from public.teachers where school_id = %(sid)s),
                           (select count(*) from public.classes  where school_id = %(sid)s),
                           (select count(*) from public.subjects where school_id = %(sid)s)
                    """,
                    {"sid": school_id},
                )
                row = cur.fetchone() or (0, 0, 0, 0)
        return SchoolStats(students=int(row[0]), teachers=int(row[1]), classes=int(row[2]), subjects=int(row[3]))

    def list_active_schools(self) -> List[School]:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(f"select {_SCHOOL_COLUMNS_SQL} from public.schools s where s.is_active order by s.name asc")
                rows = cur.fetchall() or []
        return [_school_from_row(r) for r in rows]

    def platform_stats(self) -> PlatformStats:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    select (select count(*) from public.schools),
                           (select count(*) from public.schools where is_active),
                           (select count(*) from public.admins),
                           (select count(*) from public.teachers),
                           (select count(*) from public.students),
                           (select count(*) from public.parents)
                    """
                )
                row = cur.fetchone() or (0, 0, 0, 0, 0, 0)
        return PlatformStats(*(int(v or 0) for v in row))

    def list_schools(
        self, *, search: Optional[str], active: Optional[bool], limit: int, offset: int
    ) -> Tuple[List[SchoolListItem], int]:
        where = ["true"]
        params: dict = {"limit": int(limit), "offset": int(offset)}
        if search:
            where.append("s.name ilike %(search)s")
            params["search"] = f"%{search}%"
        if active is not None:
            where.append("s.is_active = %(active)s")
            params["active"] = bool(active)
        where_sql = " and ".join(where)
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    select {_SCHOOL_COLUMNS_SQL},
                           (select count(*) from public.students x where x.school_id = s.id),
                           (select count(*) from public.teachers x where x.school_id = s.id),
                           (select count(*) from public.admins x where x.school_id = s.id)
                      from public.schools s
                     where {where_sql}
                     order by s.created_at desc, s.id asc
                     limit %(limit)s offset %(offset)s
                    """,
                    params,
                )
                rows = cur.fetchall() or []
                cur.execute(f"select count(*) from public.schools s where {where_sql}", params)
                total_row = cur.fetchone()
        items = [
            SchoolListItem(school=_school_from_row(r[:9]), students=int(r[9]), teachers=int(r[10]), admins=int(r[11]))
            for r in rows
        ]
        return items, int(total_row[0]) if total_row else 0

    # --- teachers -------------------------------------------------------------
    def list_teachers(
        self, *, school_id: str, search: Optional[str], class_id: Optional[int], limit: int, offset: int
    ) -> Tuple[List[Teacher], int]:
        where = ["t.school_id = %(school_id)s"]
        params: dict = {"school_id": school_id, "limit": int(limit), "offset": int(offset)}
        if search:
            where.append("t.name ilike %(search)s")
            params["search"] = f"%{search}%"
        if class_id is not None:
            where.append("exists (select 1 from public.lessons l where l.teacher_id = t.id and l.class_id = %(class_id)s)")
            params["class_id"] = int(class_id)
        where_sql = " and ".join(where)
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    select {_TEACHER_COLUMNS_SQL}
                      from public.teachers t
                     where {where_sql}
                     order by lower(t.name) asc, t.id asc
                     limit %(limit)s offset %(offset)s
                    """,
                    params,
                )
                rows = cur.fetchall() or []
                cur.execute(f"select count(*) from public.teachers t where {where_sql}", params)
                total_row = cur.fetchone()
        return [_teacher_from_row(r) for r in rows], int(total_row[0]) if total_row else 0

    def get_teacher(self, *, school_id: str, teacher_id: str) -> Optional[Teacher]:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"select {_TEACHER_COLUMNS_SQL} from public.teachers t where t.id = %s and t.school_id = %s",
                    (teacher_id, school_id),
                )
                row = cur.fetchone()
        return _teacher_from_row(row) if row else None
