"""Monthly rollups, rankings, scoping and the snapshot cache."""

from __future__ import annotations

import asyncio
from decimal import Decimal
from uuid import UUID

import pytest

from academy.core.errors import Forbidden, InvalidInput
from academy.models.analytics import AnalyticsScope
from academy.models.principal import Principal
from academy.services.analytics_service import AnalyticsService
from academy.services.cache import InMemoryCacheService
from tests.conftest import INSTRUCTOR_ID, OTHER_INSTRUCTOR_ID, build_course

DAY = 86_400


@pytest.fixture
def analytics(world) -> AnalyticsService:
    return AnalyticsService(
        world.catalog,
        world.enrollment_repo,
        world.certificate_repo,
        InMemoryCacheService(),
        cache_ttl=300,
        clock=world.clock,
    )


@pytest.fixture
def platform(world, instructor):
    """Two instructors, three students, enrollments in January and February 2026."""
    ada = build_course(
        world.catalog, slug="ada-web", lesson_count=1, with_quiz=False,
        with_assignment=False, price=Decimal("100.00"), rating=4.5,
    )
    ada_net = build_course(
        world.catalog, slug="ada-net", lesson_count=2, with_quiz=False,
        with_assignment=False, price=Decimal("20.00"), rating=4.0,
    )
    lin = build_course(
        world.catalog, slug="lin-malware", instructor_id=OTHER_INSTRUCTOR_ID,
        lesson_count=1, with_quiz=False, with_assignment=False,
        price=Decimal("50.00"), rating=4.9,
    )
    students = [Principal(user_id=f"student-{i}", roles=frozenset({"student"})) for i in range(3)]

    # January: all three take ada-web, student-0 finishes it and is certified
    for s in students:
        asyncio.run(world.enrollments.enroll(s, ada.course.id))
    asyncio.run(world.ledger.record_lesson_complete(students[0], ada.lessons[0].id))
    asyncio.run(
        world.certificates.issue_certificate(instructor, students[0].user_id, ada.course.id)
    )

    # February: one student takes lin-malware, one takes ada-net
    world.clock.advance(40 * DAY)
    asyncio.run(world.enrollments.enroll(students[1], lin.course.id))
    asyncio.run(world.enrollments.enroll(students[2], ada_net.course.id))
    return {"ada": ada, "ada_net": ada_net, "lin": lin}


def test_month_buckets(analytics, platform) -> None:
    scope = AnalyticsScope()

    assert asyncio.run(analytics.enrollments_by_month(scope)) == {"2026-01": 3, "2026-02": 2}
    assert asyncio.run(analytics.revenue_by_month(scope)) == {
        "2026-01": Decimal("300.00"),
        "2026-02": Decimal("70.00"),
    }
    assert asyncio.run(analytics.completions_by_month(scope)) == {"2026-01": 1}
    assert asyncio.run(analytics.certificates_by_month(scope)) == {"2026-01": 1}


def test_window_bounds_are_inclusive(analytics, platform) -> None:
    february = AnalyticsScope(since="2026-02", until="2026-02")
    assert asyncio.run(analytics.enrollments_by_month(february)) == {"2026-02": 2}
    assert asyncio.run(analytics.completions_by_month(february)) == {}


def test_enrollments_by_course_includes_empty_courses(analytics, platform, world) -> None:
    quiet = build_course(world.catalog, slug="quiet", with_quiz=False, with_assignment=False)
    counts = asyncio.run(analytics.enrollments_by_course(AnalyticsScope()))

    assert counts[str(platform["ada"].course.id)] == 3
    assert counts[str(quiet.course.id)] == 0


def test_top_courses_order(analytics, platform) -> None:
    ranking = asyncio.run(analytics.top_courses(AnalyticsScope(), limit=3))

    # ada-web by enrollments; lin-malware and ada-net tie at one, rating breaks it
    assert [r.course_id for r in ranking] == [
        platform["ada"].course.id,
        platform["lin"].course.id,
        platform["ada_net"].course.id,
    ]
    assert ranking[0].enrollments == 3


def test_top_instructors_order(analytics, platform) -> None:
    ranking = asyncio.run(analytics.top_instructors(AnalyticsScope()))

    assert [r.instructor_id for r in ranking] == [INSTRUCTOR_ID, OTHER_INSTRUCTOR_ID]
    assert ranking[0].students == 3
    assert ranking[0].courses == 2
    assert ranking[0].average_rating == 4.25
    assert ranking[1].students == 1


def test_instructor_scope_sees_own_courses_only(analytics, platform) -> None:
    scope = AnalyticsScope(instructor_id=OTHER_INSTRUCTOR_ID)
    assert asyncio.run(analytics.enrollments_by_month(scope)) == {"2026-02": 1}
    assert asyncio.run(analytics.revenue_by_month(scope)) == {"2026-02": Decimal("50.00")}


def test_unknown_instructor_scope_is_empty(analytics, platform) -> None:
    snapshot = asyncio.run(analytics.compute_snapshot(AnalyticsScope(instructor_id="nobody")))
    assert snapshot.total_enrollments == 0
    assert snapshot.top_courses == []


def test_snapshot_totals(analytics, platform) -> None:
    snapshot = asyncio.run(analytics.snapshot(AnalyticsScope()))

    assert snapshot.total_enrollments == 5
    assert snapshot.total_revenue == Decimal("370.00")
    assert snapshot.total_completions == 1
    assert snapshot.total_certificates == 1


def test_snapshot_served_from_cache_until_refresh(analytics, platform, world) -> None:
    first = asyncio.run(analytics.snapshot(AnalyticsScope()))
    late = Principal(user_id="student-late", roles=frozenset({"student"}))
    asyncio.run(world.enrollments.enroll(late, platform["lin"].course.id))

    cached = asyncio.run(analytics.snapshot(AnalyticsScope()))
    assert cached.total_enrollments == first.total_enrollments

    refreshed = asyncio.run(analytics.refresh())
    assert refreshed.total_enrollments == first.total_enrollments + 1


def test_cached_snapshot_keeps_field_types(analytics, platform) -> None:
    scope = AnalyticsScope(since="2026-01")
    computed = asyncio.run(analytics.snapshot(scope))
    cached = asyncio.run(analytics.snapshot(scope))

    assert cached == computed
    assert isinstance(cached.total_revenue, Decimal)
    assert isinstance(cached.revenue_by_month["2026-01"], Decimal)
    assert isinstance(cached.top_courses[0].course_id, UUID)
    assert cached.scope == scope


# ---------------------------------------------------------------------------
# Scope resolution
# ---------------------------------------------------------------------------


def test_admin_scope(admin) -> None:
    scope = AnalyticsService.scope_for(admin, instructor_id=INSTRUCTOR_ID, since="2026-01")
    assert scope == AnalyticsScope(instructor_id=INSTRUCTOR_ID, since="2026-01")
    assert AnalyticsService.scope_for(admin) == AnalyticsScope()


def test_instructor_pinned_to_self(instructor) -> None:
    scope = AnalyticsService.scope_for(instructor)
    assert scope.instructor_id == INSTRUCTOR_ID

    with pytest.raises(Forbidden):
        AnalyticsService.scope_for(instructor, instructor_id=OTHER_INSTRUCTOR_ID)


def test_student_has_no_analytics(student) -> None:
    with pytest.raises(Forbidden):
        AnalyticsService.scope_for(student)


@pytest.mark.parametrize(
    ("since", "until"),
    [("2026-13", None), ("2026-1", None), (None, "January"), ("2026-03", "2026-02")],
)
def test_bad_month_window(admin, since, until) -> None:
    with pytest.raises(InvalidInput):
        AnalyticsService.scope_for(admin, since=since, until=until)
