"""FastAPI dependencies shared by the API routers."""
from __future__ import annotations

from fastapi import Request

from backend.identity_access.domain import Principal
from backend.identity_access.errors import UnauthenticatedError
from backend.tenancy.service import SchoolService


def get_principal(request: Request) -> Principal:
    """Principal resolved by the auth middleware for this request."""
    principal = getattr(request.state, "principal", None)
    if principal is None:
        raise UnauthenticatedError("no principal on request")
    return principal


def get_school_service(request: Request) -> SchoolService:
    state = request.app.state
    return SchoolService(
        state.school_repo,
        listing_cache=state.listing_cache,
        page_size=state.page_size,
    )
