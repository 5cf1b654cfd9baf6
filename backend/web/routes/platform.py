"""
Platform-wide dashboard figures for superadmins.

Permissions:
    Superadmin only. The totals span every school, not only the ones the
    caller administers; no per-school data is exposed.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends

from backend.identity_access.domain import SUPERADMIN, Principal
from backend.identity_access.principal import require_role
from backend.tenancy.service import SchoolService

from ..deps import get_principal, get_school_service
from ..errors import private_json

platform_router = APIRouter(tags=["Platform"])


@platform_router.get("/api/platform/stats")
async def get_platform_stats(
    principal: Principal = Depends(get_principal),
    service: SchoolService = Depends(get_school_service),
):
    require_role(principal, SUPERADMIN)
    return private_json(service.platform_stats().to_dict())
