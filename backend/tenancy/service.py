"""
Read-only school queries scoped to one validated school id.

Creation, update and deletion of schools and their members happen elsewhere;
nothing in this service writes.
"""
from __future__ import annotations

import logging
from typing import List, Optional

from backend.identity_access.domain import Principal
from backend.identity_access.errors import SchoolNotFoundError, TeacherNotFoundError

from .cache import ListingCache, query_shape
from .context import resolve_school_id
from .memberships import SchoolRepoProtocol
from .models import Page, PlatformStats, School, SchoolStats, Teacher

logger = logging.getLogger("schoolhub.tenancy")

DEFAULT_PAGE_SIZE = 10


class SchoolService:
    def __init__(
        self,
        repo: SchoolRepoProtocol,
        *,
        listing_cache: Optional[ListingCache] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self._repo = repo
        self._cache = listing_cache
        self._page_size = max(1, int(page_size))

    @property
    def repo(self) -> SchoolRepoProtocol:
        return self._repo

    def contextual_school_id(self, principal: Principal, selected_school_id: Optional[str] = None) -> str:
        """School id for the caller; superadmins may select one of theirs."""
        return resolve_school_id(principal, self._repo, selected_school_id)

    def get_school(self, school_id: str) -> School:
        school = self._repo.get_school(school_id)
        if school is None:
            logger.info("School not found: %s", school_id)
            raise SchoolNotFoundError("school not found", school_id=school_id)
        return school

    def get_school_stats(self, school_id: str) -> SchoolStats:
        """Member counts by category; unknown ids raise SchoolNotFoundError."""
        self.get_school(school_id)
        return self._repo.school_stats(school_id)

    def is_school_active(self, school_id: str) -> bool:
        school = self._repo.get_school(school_id)
        return bool(school and school.is_active)

    def list_active_schools(self) -> List[School]:
        return sorted(self._repo.list_active_schools(), key=lambda s: s.name)

    def platform_stats(self) -> PlatformStats:
        """Totals across every school; callers restrict this to superadmins."""
        return self._repo.platform_stats()

    def list_schools(self, *, page: int = 1, search: Optional[str] = None, active: Optional[bool] = None) -> Page:
        """Paginated school directory, newest first, with member counts.

        Pages go through the listing cache when one was supplied.
        """
        page = max(1, int(page or 1))
        search = (search or "").strip() or None

        def _load() -> Page:
            items, total = self._repo.list_schools(
                search=search,
                active=active,
                limit=self._page_size,
                offset=self._page_size * (page - 1),
            )
            return Page(items=list(items), page=page, page_size=self._page_size, total_count=int(total))

        if self._cache is None:
            return _load()
        # Page size is part of the shape: page N means different rows per size.
        shape = query_shape("schools", {"search": search, "active": active, "page_size": self._page_size})
        return self._cache.get_or_load(shape, page, _load)

    def list_teachers(
        self,
        school_id: str,
        *,
        page: int = 1,
        search: Optional[str] = None,
        class_id: Optional[int] = None,
    ) -> Page:
        self.get_school(school_id)
        page = max(1, int(page or 1))
        items, total = self._repo.list_teachers(
            school_id=school_id,
            search=(search or "").strip() or None,
            class_id=class_id,
            limit=self._page_size,
            offset=self._page_size * (page - 1),
        )
        return Page(items=list(items), page=page, page_size=self._page_size, total_count=int(total))

    def get_teacher(self, school_id: str, teacher_id: str) -> Teacher:
        teacher = self._repo.get_teacher(school_id=school_id, teacher_id=teacher_id)
        if teacher is None:
            raise TeacherNotFoundError("teacher not found", school_id=school_id, teacher_id=teacher_id)
        return teacher
