"""
Teacher directory API, scoped to one school.

Permissions:
    Caller must be admin, teacher or superadmin AND have access to the school.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends

from backend.identity_access.domain import ADMIN, SUPERADMIN, TEACHER, Principal
from backend.identity_access.principal import require_any_role
from backend.tenancy.context import assert_school_access
from backend.tenancy.service import SchoolService

from ..deps import get_principal, get_school_service
from ..errors import private_json

teachers_router = APIRouter(tags=["Teachers"])

_STAFF_ROLES = (ADMIN, TEACHER, SUPERADMIN)


@teachers_router.get("/api/schools/{school_id}/teachers")
async def list_teachers(
    school_id: str,
    page: int = 1,
    search: str | None = None,
    class_id: int | None = None,
    principal: Principal = Depends(get_principal),
    service: SchoolService = Depends(get_school_service),
):
    require_any_role(principal, _STAFF_ROLES)
    assert_school_access(principal, school_id, service.repo)
    result = service.list_teachers(school_id, page=page, search=search, class_id=class_id)
    return private_json(
        {
            "data": [t.to_dict() for t in result.items],
            "pagination": result.pagination(),
            "meta": {"role": principal.role, "userId": principal.id},
        }
    )


@teachers_router.get("/api/schools/{school_id}/teachers/{teacher_id}")
async def get_teacher(
    school_id: str,
    teacher_id: str,
    principal: Principal = Depends(get_principal),
    service: SchoolService = Depends(get_school_service),
):
    require_any_role(principal, _STAFF_ROLES)
    assert_school_access(principal, school_id, service.repo)
    return private_json({"data": service.get_teacher(school_id, teacher_id).to_dict()})
