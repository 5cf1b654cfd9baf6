"""
School (tenant) context resolution and the access guard.

Why:
    Every school-scoped read must name a school the caller may act on. These
    functions turn a Principal into that school id, or fail with a typed error.

Behavior:
    - Single-school roles (admin, teacher, student, parent) resolve through
      their role table. No row -> NoSchoolAccessError.
    - Superadmins administer a set of schools. An explicit school id must be a
      member of that set; without one the first school in repository order is
      returned (membership insertion order, ties broken by school id).
    - All failures are terminal for the calling request; nothing is retried.
"""
from __future__ import annotations

import logging
from typing import List, Mapping, Optional

from backend.identity_access.domain import SUPERADMIN, Principal
from backend.identity_access.errors import (
    AuthError,
    NoSchoolAccessError,
    RoleMissingError,
    SchoolAccessDeniedError,
    SchoolAccessError,
)
from backend.identity_access.principal import require_role

from .memberships import MEMBERSHIP_RESOLVERS, MembershipRule, SchoolRepoProtocol
from .models import SchoolAccess, SchoolContext

logger = logging.getLogger("schoolhub.tenancy")


def _rule_for(principal: Principal, rules: Mapping[str, MembershipRule]) -> MembershipRule:
    rule = rules.get(principal.role)
    if rule is None:
        raise RoleMissingError(f"no membership rule for role {principal.role!r}")
    return rule


def list_accessible_school_ids(
    principal: Principal,
    repo: SchoolRepoProtocol,
    *,
    rules: Mapping[str, MembershipRule] = MEMBERSHIP_RESOLVERS,
) -> List[str]:
    """Return every school id the principal may act on (possibly empty)."""
    rule = _rule_for(principal, rules)
    ids = rule.lookup(repo, principal.id)
    # Single-school roles never expose more than one membership.
    return list(ids) if rule.multi_school else list(ids[:1])


def resolve_school_id(
    principal: Principal,
    repo: SchoolRepoProtocol,
    explicit_school_id: Optional[str] = None,
    *,
    rules: Mapping[str, MembershipRule] = MEMBERSHIP_RESOLVERS,
) -> str:
    """Resolve the school the principal's operations are scoped to.

    Raises:
        NoSchoolAccessError: the principal has no membership at all.
        SchoolAccessDeniedError: `explicit_school_id` is outside the membership set.
        RoleMissingError: the principal's role has no membership rule.
    """
    ids = list_accessible_school_ids(principal, repo, rules=rules)
    if not ids:
        logger.info("No school membership for sub=%s role=%s", principal.id, principal.role)
        raise NoSchoolAccessError(f"{principal.role} is not associated with any school")

    explicit = (explicit_school_id or "").strip() or None
    if explicit is None:
        return ids[0]
    if explicit not in ids:
        logger.warning(
            "School access denied: sub=%s role=%s school_id=%s", principal.id, principal.role, explicit
        )
        raise SchoolAccessDeniedError("principal may not act on this school", school_id=explicit)
    return explicit


def assert_school_access(
    principal: Principal,
    school_id: str,
    repo: SchoolRepoProtocol,
    *,
    rules: Mapping[str, MembershipRule] = MEMBERSHIP_RESOLVERS,
) -> None:
    """Raise SchoolAccessDeniedError unless `school_id` is resolvable for the principal."""
    try:
        ids = list_accessible_school_ids(principal, repo, rules=rules)
    except RoleMissingError as exc:
        raise SchoolAccessDeniedError("role has no school memberships", school_id=school_id) from exc
    if school_id not in ids:
        logger.warning(
            "School access denied: sub=%s role=%s school_id=%s", principal.id, principal.role, school_id
        )
        raise SchoolAccessDeniedError("principal may not act on this school", school_id=school_id)


def has_school_access(
    principal: Principal,
    school_id: str,
    repo: SchoolRepoProtocol,
    *,
    rules: Mapping[str, MembershipRule] = MEMBERSHIP_RESOLVERS,
) -> bool:
    """Boolean form of assert_school_access; any failure reads as False."""
    try:
        assert_school_access(principal, school_id, repo, rules=rules)
    except (SchoolAccessError, AuthError) as exc:
        logger.debug("has_school_access=False (%s)", exc.code)
        return False
    except Exception as exc:
        logger.warning("has_school_access lookup failed: %s", exc.__class__.__name__)
        return False
    return True


def superadmin_schools(principal: Principal, repo: SchoolRepoProtocol) -> List[SchoolAccess]:
    """List the schools a superadmin administers, in resolution order."""
    require_role(principal, SUPERADMIN)
    return list(repo.list_superadmin_schools(superadmin_id=principal.id))


def school_context(
    principal: Principal,
    repo: SchoolRepoProtocol,
    explicit_school_id: Optional[str] = None,
) -> SchoolContext:
    """Summarize the caller's active school for page headers and navigation."""
    if principal.is_superadmin:
        schools = superadmin_schools(principal, repo)
        if not schools:
            raise NoSchoolAccessError("superadmin has no associated schools")
        names = {s.school_id: s.school_name for s in schools}
        school_id = resolve_school_id(principal, repo, explicit_school_id)
        return SchoolContext(
            school_id=school_id,
            school_name=names.get(school_id),
            role=principal.role,
            has_multiple_schools=len(schools) > 1,
        )

    school_id = resolve_school_id(principal, repo, explicit_school_id)
    school = repo.get_school(school_id)
    return SchoolContext(
        school_id=school_id,
        school_name=school.name if school else None,
        role=principal.role,
        has_multiple_schools=False,
    )
