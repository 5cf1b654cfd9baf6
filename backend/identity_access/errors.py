"""
Typed failures for principal lookup and school (tenant) resolution.

Every error carries a stable `code` so web adapters can translate it into a
JSON body and status without parsing messages. None of these are retried;
they are terminal for the request that raised them.
"""

from __future__ import annotations

from typing import Optional


class AuthError(Exception):
    """Base for failures about *who* is calling."""

    code = "auth_error"
    status_code = 401

    def __init__(self, message: str = "", *, code: Optional[str] = None):
        super().__init__(message or self.code)
        if code:
            self.code = code


class UnauthenticatedError(AuthError):
    """No valid session for the presented token."""

    code = "unauthenticated"
    status_code = 401


class RoleMissingError(AuthError):
    """Session exists but carries no application role."""

    code = "role_missing"
    status_code = 403


class InsufficientRoleError(AuthError):
    code = "forbidden"
    status_code = 403


class SchoolAccessError(Exception):
    """Base for failures about *which school* the caller may act on."""

    code = "school_access_error"
    status_code = 403

    def __init__(self, message: str = "", *, school_id: Optional[str] = None):
        super().__init__(message or self.code)
        self.school_id = school_id


class NoSchoolAccessError(SchoolAccessError):
    """Principal has zero school memberships."""

    code = "no_school_access"


class SchoolAccessDeniedError(SchoolAccessError):
    """Principal's membership set excludes the requested school."""

    code = "school_access_denied"


class SchoolNotFoundError(SchoolAccessError):
    code = "school_not_found"
    status_code = 404


class TeacherNotFoundError(SchoolAccessError):
    code = "teacher_not_found"
    status_code = 404

    def __init__(self, message: str = "", *, school_id: Optional[str] = None, teacher_id: Optional[str] = None):
        super().__init__(message, school_id=school_id)
        self.teacher_id = teacher_id


__all__ = [
    "AuthError",
    "InsufficientRoleError",
    "NoSchoolAccessError",
    "RoleMissingError",
    "SchoolAccessDeniedError",
    "SchoolAccessError",
    "SchoolNotFoundError",
    "TeacherNotFoundError",
    "UnauthenticatedError",
]
