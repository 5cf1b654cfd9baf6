"""
Caller-centric endpoints: who am I, which school am I acting on.

Permissions:
    Any authenticated principal with an application role.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends

from backend.identity_access.domain import Principal
from backend.tenancy.context import school_context, superadmin_schools
from backend.tenancy.service import SchoolService

from ..deps import get_principal, get_school_service
from ..errors import private_json

me_router = APIRouter(tags=["Me"])


@me_router.get("/api/me")
async def get_me(principal: Principal = Depends(get_principal)):
    return private_json(principal.to_dict())


@me_router.get("/api/me/school-context")
async def get_my_school_context(
    school_id: str | None = None,
    principal: Principal = Depends(get_principal),
    service: SchoolService = Depends(get_school_service),
):
    """Active school for the caller.

    Superadmins may pass `school_id` to pick one of their schools; other roles
    always get their own school, and a foreign `school_id` is denied.
    """
    ctx = school_context(principal, service.repo, school_id)
    return private_json(ctx.to_dict())


@me_router.get("/api/me/schools")
async def list_my_schools(
    principal: Principal = Depends(get_principal),
    service: SchoolService = Depends(get_school_service),
):
    """Schools a superadmin administers (403 for other roles)."""
    return private_json([s.to_dict() for s in superadmin_schools(principal, service.repo)])
