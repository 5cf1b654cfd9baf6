"""
Translate typed identity/tenancy failures into JSON responses.

Every error body is `{"error": <code>}` (plus `schoolId` where one applies)
and never cacheable.
"""
from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse

from backend.identity_access.errors import AuthError, SchoolAccessError

PRIVATE_NO_STORE = {"Cache-Control": "private, no-store"}


def private_json(body, *, status_code: int = 200) -> JSONResponse:
    return JSONResponse(body, status_code=status_code, headers=dict(PRIVATE_NO_STORE))


def error_response(exc: Exception) -> JSONResponse:
    status = int(getattr(exc, "status_code", 500) or 500)
    body = {"error": getattr(exc, "code", "internal_error")}
    school_id = getattr(exc, "school_id", None)
    if school_id:
        body["schoolId"] = school_id
    return private_json(body, status_code=status)


async def handle_auth_error(request: Request, exc: AuthError) -> JSONResponse:
    return error_response(exc)


async def handle_school_access_error(request: Request, exc: SchoolAccessError) -> JSONResponse:
    return error_response(exc)


def register_error_handlers(app) -> None:
    app.add_exception_handler(AuthError, handle_auth_error)
    app.add_exception_handler(SchoolAccessError, handle_school_access_error)
