"""
SchoolService: read-only aggregates scoped to a validated school id.
"""
from __future__ import annotations

import pytest

from backend.identity_access.domain import Principal
from backend.identity_access.errors import SchoolAccessDeniedError, SchoolNotFoundError, TeacherNotFoundError
from backend.tenancy.cache import ListingCache
from backend.tenancy.models import PlatformStats, SchoolStats
from backend.tenancy.service import SchoolService


def test_get_school_and_not_found(repo):
    service = SchoolService(repo)
    assert service.get_school("tenant-9").name == "Greenwood High School"
    with pytest.raises(SchoolNotFoundError) as ei:
        service.get_school("nope")
    assert ei.value.school_id == "nope"
    assert ei.value.status_code == 404


def test_school_stats_counts_members_by_category(repo):
    service = SchoolService(repo)
    assert service.get_school_stats("school-a") == SchoolStats(students=2, teachers=2, classes=1, subjects=1)
    assert service.get_school_stats("school-c") == SchoolStats()
    with pytest.raises(SchoolNotFoundError):
        service.get_school_stats("nope")


def test_is_school_active_and_active_listing(repo):
    service = SchoolService(repo)
    assert service.is_school_active("school-a") is True
    assert service.is_school_active("school-c") is False
    assert service.is_school_active("nope") is False
    names = [s.name for s in service.list_active_schools()]
    assert names == ["Alpha Academy", "Beta Elementary", "Greenwood High School"]


def test_contextual_school_id_honours_superadmin_selection(repo):
    service = SchoolService(repo)
    assert service.contextual_school_id(Principal(id="staff-1", role="teacher")) == "tenant-9"
    sa = Principal(id="sa-1", role="superadmin")
    assert service.contextual_school_id(sa) == "school-b"
    assert service.contextual_school_id(sa, "school-a") == "school-a"
    with pytest.raises(SchoolAccessDeniedError):
        service.contextual_school_id(sa, "tenant-9")


def test_list_schools_paginates_newest_first(repo):
    service = SchoolService(repo, page_size=3)
    first = service.list_schools(page=1)
    assert [i.school.id for i in first.items] == ["school-c", "school-b", "school-a"]
    assert first.pagination() == {"page": 1, "totalPages": 2, "totalCount": 4, "hasNext": True, "hasPrev": False}
    second = service.list_schools(page=2)
    assert [i.school.id for i in second.items] == ["tenant-9"]
    assert second.has_prev and not second.has_next


def test_list_schools_filters_and_counts(repo):
    service = SchoolService(repo)
    found = service.list_schools(search="ALPHA")
    assert [i.school.id for i in found.items] == ["school-a"]
    assert found.items[0].to_dict()["counts"] == {"students": 2, "teachers": 2, "admins": 1}
    inactive = service.list_schools(active=False)
    assert [i.school.id for i in inactive.items] == ["school-c"]


def test_list_schools_page_below_one_is_clamped(repo):
    assert SchoolService(repo).list_schools(page=0).page == 1


def test_list_schools_uses_listing_cache(repo):
    cache = ListingCache(ttl_seconds=60)
    service = SchoolService(repo, listing_cache=cache)
    before = service.list_schools(page=1)
    repo.add_school("school-d", "Delta College")
    assert service.list_schools(page=1) is before
    # A different query shape is a different entry.
    assert [i.school.id for i in service.list_schools(page=1, search="delta").items] == ["school-d"]
    cache.invalidate("schools")
    assert service.list_schools(page=1).total_count == 5


def test_listing_cache_entries_are_per_page_size(repo):
    cache = ListingCache(ttl_seconds=60)
    small = SchoolService(repo, page_size=2, listing_cache=cache)
    large = SchoolService(repo, page_size=3, listing_cache=cache)
    assert len(small.list_schools(page=1).items) == 2
    page = large.list_schools(page=1)
    assert len(page.items) == 3
    assert page.page_size == 3


def test_platform_stats_span_every_school(repo):
    stats = SchoolService(repo).platform_stats()
    assert stats == PlatformStats(schools=4, active_schools=3, admins=1, teachers=3, students=2, parents=1)
    assert stats.to_dict()["total_users"] == 7


def test_list_and_get_teachers(repo):
    service = SchoolService(repo)
    page = service.list_teachers("school-a")
    assert [t.name for t in page.items] == ["Bert", "Carla"]
    assert page.total_count == 2
    assert [t.id for t in service.list_teachers("school-a", search="car").items] == ["teacher-a2"]
    by_class = service.list_teachers("school-a", class_id=1)
    assert [t.id for t in by_class.items] == ["teacher-a2"]
    assert by_class.items[0].classes == ["1A"]

    assert service.get_teacher("tenant-9", "staff-1").subjects == ["Math"]
    with pytest.raises(TeacherNotFoundError):
        service.get_teacher("school-a", "staff-1")
    with pytest.raises(SchoolNotFoundError):
        service.list_teachers("nope")
