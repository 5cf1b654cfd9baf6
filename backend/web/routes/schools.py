"""
School API: superadmin directory plus school-scoped reads.

Permissions:
    - Directory listing: superadmin only. This is the one read not scoped to a
      resolved school: it spans every school on the platform, including ones
      the caller does not administer. Stats and detail stay guarded below.
    - Single school and stats: any principal whose memberships include the school.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends

from backend.identity_access.domain import SUPERADMIN, Principal
from backend.identity_access.principal import require_role
from backend.tenancy.context import assert_school_access
from backend.tenancy.service import SchoolService

from ..deps import get_principal, get_school_service
from ..errors import private_json

schools_router = APIRouter(tags=["Schools"])


@schools_router.get("/api/schools")
async def list_schools(
    page: int = 1,
    search: str | None = None,
    active: bool | None = None,
    principal: Principal = Depends(get_principal),
    service: SchoolService = Depends(get_school_service),
):
    require_role(principal, SUPERADMIN)
    result = service.list_schools(page=page, search=search, active=active)
    return private_json({"data": [item.to_dict() for item in result.items], "pagination": result.pagination()})


@schools_router.get("/api/schools/{school_id}")
async def get_school(
    school_id: str,
    principal: Principal = Depends(get_principal),
    service: SchoolService = Depends(get_school_service),
):
    assert_school_access(principal, school_id, service.repo)
    return private_json(service.get_school(school_id).to_dict())


@schools_router.get("/api/schools/{school_id}/stats")
async def get_school_stats(
    school_id: str,
    principal: Principal = Depends(get_principal),
    service: SchoolService = Depends(get_school_service),
):
    assert_school_access(principal, school_id, service.repo)
    return private_json(service.get_school_stats(school_id).to_dict())
