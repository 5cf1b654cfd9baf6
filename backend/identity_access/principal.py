"""
Principal lookup: opaque session token -> Principal.

The session record behind the token was written at login from verified IdP
claims, so this is a pure read. Role checks (`principal_has_role`, ...) and
guards (`require_role`, ...) live here as well so web adapters and services
share one definition of "who may call this".
"""
from __future__ import annotations

import logging
from typing import Iterable, Mapping, Optional, Protocol

from .domain import ALLOWED_ROLES, Principal, primary_role
from .errors import InsufficientRoleError, RoleMissingError, UnauthenticatedError

logger = logging.getLogger("schoolhub.identity_access")


class SessionLookup(Protocol):
    def get(self, session_id: str):
        ...


def resolve_principal(session_token: Optional[str], *, sessions: SessionLookup) -> Principal:
    """Resolve a session token to the calling principal.

    Raises:
        UnauthenticatedError: token missing, unknown or expired, or the session
            store could not be read.
        RoleMissingError: the session carries no application role.
    """
    token = (session_token or "").strip()
    if not token:
        raise UnauthenticatedError("no session token")
    try:
        rec = sessions.get(token)
    except Exception as exc:
        logger.warning("Session store get failed: %s", exc.__class__.__name__)
        raise UnauthenticatedError("session lookup failed", code="session_lookup_failed") from exc
    if rec is None:
        raise UnauthenticatedError("session not found or expired")

    role = primary_role(getattr(rec, "roles", None) or [])
    if role is None:
        logger.info("Session for sub=%s carries no application role", rec.sub)
        raise RoleMissingError("identity record lacks a role claim")
    return Principal(
        id=str(rec.sub),
        role=role,
        email=getattr(rec, "email", None) or None,
        username=getattr(rec, "username", None) or None,
        name=getattr(rec, "name", None) or None,
    )


def principal_has_role(principal: Principal, role: str) -> bool:
    return principal.role == role


def principal_has_any_role(principal: Principal, roles: Iterable[str]) -> bool:
    return principal.role in set(roles)


def require_role(principal: Principal, role: str) -> None:
    if principal.role != role:
        raise InsufficientRoleError(f"required role: {role}, current role: {principal.role}")


def require_any_role(principal: Principal, roles: Iterable[str]) -> None:
    allowed = list(roles)
    if principal.role not in allowed:
        raise InsufficientRoleError(
            f"required roles: {', '.join(allowed)}, current role: {principal.role}"
        )


def session_fields_from_claims(claims: Mapping[str, object]) -> dict:
    """Extract the session fields SchoolHub keeps from verified ID token claims.

    Realm roles outside ALLOWED_ROLES are dropped. An empty role list is kept
    as-is so that the next lookup fails with RoleMissingError.
    """
    raw_roles: list[str] = []
    realm_access = claims.get("realm_access") or {}
    if isinstance(realm_access, dict):
        listed = realm_access.get("roles")
        if isinstance(listed, list):
            raw_roles = [str(r).lower() for r in listed]
    single = claims.get("role")
    if isinstance(single, str) and single:
        raw_roles.append(single.lower())
    roles = [r for r in dict.fromkeys(raw_roles) if r in ALLOWED_ROLES]

    email = str(claims.get("email") or "") or None
    username = str(claims.get("preferred_username") or "") or None
    name = claims.get("name") or username or (email.split("@")[0] if email else "")
    return {
        "sub": str(claims.get("sub") or ""),
        "roles": roles,
        "name": str(name or ""),
        "email": email,
        "username": username,
    }
