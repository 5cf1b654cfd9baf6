"""
Identity domain constants and the principal value object.

Why:
- Centralize allowed roles to avoid drift between the session layer, the
  tenancy resolver and the web adapters.
- Keep the principal a small immutable record; everything else about a user
  lives in the identity provider (Keycloak).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

SUPERADMIN = "superadmin"
ADMIN = "admin"
TEACHER = "teacher"
STUDENT = "student"
PARENT = "parent"

# Immutable to prevent accidental mutation.
ALLOWED_ROLES = frozenset({SUPERADMIN, ADMIN, TEACHER, STUDENT, PARENT})

# Highest privilege first; used when a session carries several realm roles.
ROLE_PRIORITY = (SUPERADMIN, ADMIN, TEACHER, PARENT, STUDENT)


def primary_role(roles: Iterable[str]) -> Optional[str]:
    """Return the highest-priority application role, or None if there is none."""
    lowered = {str(r).lower() for r in roles or [] if isinstance(r, str)}
    for role in ROLE_PRIORITY:
        if role in lowered:
            return role
    return None


@dataclass(frozen=True)
class Principal:
    """Authenticated actor making a request.

    `id` is the stable IdP subject (OIDC `sub`); it doubles as the primary key
    of the role tables (admins, teachers, ...).
    """

    id: str
    role: str
    email: Optional[str] = None
    username: Optional[str] = None
    name: Optional[str] = None

    @property
    def is_superadmin(self) -> bool:
        return self.role == SUPERADMIN

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "role": self.role,
            "email": self.email,
            "username": self.username,
            "name": self.name,
        }


__all__ = [
    "ADMIN",
    "ALLOWED_ROLES",
    "PARENT",
    "Principal",
    "ROLE_PRIORITY",
    "STUDENT",
    "SUPERADMIN",
    "TEACHER",
    "primary_role",
]
