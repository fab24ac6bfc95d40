"""Monthly rollups and rankings over enrollments and certificates.

Everything here is a projection: nothing is stored as truth, and any
result can be thrown away and rebuilt.  Revenue is recognised at
enrollment time using the course's catalog price.

Snapshots go through the read-through cache keyed by scope, so a
dashboard refresh storm costs one recomputation per TTL window.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from pydantic import TypeAdapter

from academy.core.config import SETTINGS
from academy.core.errors import Forbidden, InvalidInput
from academy.core.timeutil import is_month, month_bucket, utc_now
from academy.models.analytics import (
    AnalyticsScope,
    AnalyticsSnapshot,
    CourseRanking,
    InstructorRanking,
)
from academy.models.catalog import Course
from academy.models.certificate import Certificate
from academy.models.enrollment import Enrollment
from academy.models.principal import Principal
from academy.repos.catalog_repo import CatalogRepo
from academy.repos.certificate_repo import CertificateRepo
from academy.repos.enrollment_repo import EnrollmentRepo
from academy.services.cache import CacheService

logger = logging.getLogger(__name__)

DEFAULT_TOP_LIMIT = 5

# Cached snapshots round-trip as JSON; Decimal and UUID fields come back typed
_SNAPSHOT = TypeAdapter(AnalyticsSnapshot)


@dataclass(frozen=True, slots=True)
class _Dataset:
    courses: dict[UUID, Course]
    enrollments: list[Enrollment]
    certificates: list[Certificate]


def _in_window(month: str, scope: AnalyticsScope) -> bool:
    # YYYY-MM strings order the same way as the months they name
    if scope.since is not None and month < scope.since:
        return False
    if scope.until is not None and month > scope.until:
        return False
    return True


def _sorted_months(counts: dict[str, object]) -> dict:
    return {month: counts[month] for month in sorted(counts)}


class AnalyticsService:
    def __init__(
        self,
        catalog: CatalogRepo,
        enrollments: EnrollmentRepo,
        certificates: CertificateRepo,
        cache: CacheService,
        *,
        cache_ttl: int | None = None,
        clock: Callable[[], int] = utc_now,
    ) -> None:
        self._catalog = catalog
        self._enrollments = enrollments
        self._certificates = certificates
        self._cache = cache
        self._cache_ttl = SETTINGS.analytics_cache_ttl if cache_ttl is None else cache_ttl
        self._clock = clock

    @staticmethod
    def scope_for(
        principal: Principal,
        *,
        instructor_id: str | None = None,
        since: str | None = None,
        until: str | None = None,
    ) -> AnalyticsScope:
        """Resolve what the caller may see.

        Admins get the whole platform or any one instructor.  Instructors
        are pinned to their own courses whatever they ask for.
        """
        for name, value in (("since", since), ("until", until)):
            if value is not None and not is_month(value):
                raise InvalidInput(f"{name} must be a YYYY-MM month (got {value!r})")
        if since is not None and until is not None and since > until:
            raise InvalidInput("since must not be after until")

        if principal.is_admin():
            return AnalyticsScope(instructor_id=instructor_id, since=since, until=until)
        if not principal.is_instructor():
            raise Forbidden()
        if instructor_id is not None and instructor_id != principal.user_id:
            raise Forbidden("Instructors can only view their own analytics")
        return AnalyticsScope(instructor_id=principal.user_id, since=since, until=until)

    # ------------------------------------------------------------------
    # Individual views
    # ------------------------------------------------------------------

    async def enrollments_by_month(self, scope: AnalyticsScope) -> dict[str, int]:
        return self._enrollments_by_month(await self._load(scope), scope)

    async def revenue_by_month(self, scope: AnalyticsScope) -> dict[str, Decimal]:
        return self._revenue_by_month(await self._load(scope), scope)

    async def completions_by_month(self, scope: AnalyticsScope) -> dict[str, int]:
        return self._completions_by_month(await self._load(scope), scope)

    async def certificates_by_month(self, scope: AnalyticsScope) -> dict[str, int]:
        return self._certificates_by_month(await self._load(scope), scope)

    async def enrollments_by_course(self, scope: AnalyticsScope) -> dict[str, int]:
        return self._enrollments_by_course(await self._load(scope), scope)

    async def top_courses(
        self, scope: AnalyticsScope, limit: int = DEFAULT_TOP_LIMIT
    ) -> list[CourseRanking]:
        return self._top_courses(await self._load(scope), scope, limit)

    async def top_instructors(
        self, scope: AnalyticsScope, limit: int = DEFAULT_TOP_LIMIT
    ) -> list[InstructorRanking]:
        return self._top_instructors(await self._load(scope), scope, limit)

    # ------------------------------------------------------------------
    # Snapshot (cached)
    # ------------------------------------------------------------------

    async def snapshot(self, scope: AnalyticsScope) -> AnalyticsSnapshot:
        key = scope.cache_key()
        cached = await self._cache.get(key)
        if cached is not None:
            return _SNAPSHOT.validate_json(cached)

        snapshot = await self.compute_snapshot(scope)
        await self._cache.set(key, _SNAPSHOT.dump_json(snapshot).decode(), self._cache_ttl)
        return snapshot

    async def compute_snapshot(self, scope: AnalyticsScope) -> AnalyticsSnapshot:
        data = await self._load(scope)
        enrollments = self._enrollments_by_month(data, scope)
        revenue = self._revenue_by_month(data, scope)
        completions = self._completions_by_month(data, scope)
        certificates = self._certificates_by_month(data, scope)
        snapshot = AnalyticsSnapshot(
            scope=scope,
            generated_at=self._clock(),
            enrollments_by_month=enrollments,
            revenue_by_month=revenue,
            completions_by_month=completions,
            certificates_by_month=certificates,
            enrollments_by_course=self._enrollments_by_course(data, scope),
            top_courses=self._top_courses(data, scope, DEFAULT_TOP_LIMIT),
            top_instructors=self._top_instructors(data, scope, DEFAULT_TOP_LIMIT),
            total_enrollments=sum(enrollments.values()),
            total_revenue=sum(revenue.values(), Decimal("0")),
            total_completions=sum(completions.values()),
            total_certificates=sum(certificates.values()),
        )
        logger.info(
            "Computed analytics snapshot scope=%s enrollments=%d",
            scope.cache_key(),
            snapshot.total_enrollments,
        )
        return snapshot

    async def refresh(self) -> AnalyticsSnapshot:
        """Drop every cached snapshot and rebuild the global one."""
        await self._cache.delete_pattern("analytics:*")
        return await self.snapshot(AnalyticsScope())

    # ------------------------------------------------------------------
    # Projections
    # ------------------------------------------------------------------

    async def _load(self, scope: AnalyticsScope) -> _Dataset:
        courses = await self._catalog.list_courses(instructor_id=scope.instructor_id)
        by_id = {c.id: c for c in courses}
        if scope.instructor_id is None:
            course_ids = None
        elif not by_id:
            return _Dataset(courses={}, enrollments=[], certificates=[])
        else:
            course_ids = set(by_id)
        return _Dataset(
            courses=by_id,
            enrollments=await self._enrollments.list_by_courses(course_ids),
            certificates=await self._certificates.list_by_courses(course_ids),
        )

    def _window_enrollments(self, data: _Dataset, scope: AnalyticsScope) -> list[Enrollment]:
        return [
            e for e in data.enrollments if _in_window(month_bucket(e.enrolled_at), scope)
        ]

    def _enrollments_by_month(self, data: _Dataset, scope: AnalyticsScope) -> dict[str, int]:
        counts = Counter(
            month_bucket(e.enrolled_at) for e in self._window_enrollments(data, scope)
        )
        return _sorted_months(counts)

    def _revenue_by_month(
        self, data: _Dataset, scope: AnalyticsScope
    ) -> dict[str, Decimal]:
        revenue: dict[str, Decimal] = {}
        for enrollment in self._window_enrollments(data, scope):
            course = data.courses.get(enrollment.course_id)
            if course is None:
                continue
            month = month_bucket(enrollment.enrolled_at)
            revenue[month] = revenue.get(month, Decimal("0")) + course.price
        return _sorted_months(revenue)

    def _completions_by_month(self, data: _Dataset, scope: AnalyticsScope) -> dict[str, int]:
        counts = Counter(
            month_bucket(e.completed_at)
            for e in data.enrollments
            if e.completed_at is not None
            and _in_window(month_bucket(e.completed_at), scope)
        )
        return _sorted_months(counts)

    def _certificates_by_month(self, data: _Dataset, scope: AnalyticsScope) -> dict[str, int]:
        counts = Counter(
            month_bucket(c.issued_at)
            for c in data.certificates
            if _in_window(month_bucket(c.issued_at), scope)
        )
        return _sorted_months(counts)

    def _enrollments_by_course(self, data: _Dataset, scope: AnalyticsScope) -> dict[str, int]:
        counts = Counter(str(e.course_id) for e in self._window_enrollments(data, scope))
        return {str(course_id): counts.get(str(course_id), 0) for course_id in data.courses}

    def _top_courses(
        self, data: _Dataset, scope: AnalyticsScope, limit: int
    ) -> list[CourseRanking]:
        counts = Counter(e.course_id for e in self._window_enrollments(data, scope))
        rankings = [
            CourseRanking(
                course_id=course.id,
                title=course.title,
                instructor_id=course.instructor_id,
                enrollments=counts.get(course.id, 0),
                rating=course.rating,
            )
            for course in data.courses.values()
        ]
        rankings.sort(key=lambda r: (-r.enrollments, -r.rating, str(r.course_id)))
        return rankings[:limit]

    def _top_instructors(
        self, data: _Dataset, scope: AnalyticsScope, limit: int
    ) -> list[InstructorRanking]:
        students: dict[str, set[str]] = {}
        ratings: dict[str, list[float]] = {}
        for course in data.courses.values():
            students.setdefault(course.instructor_id, set())
            ratings.setdefault(course.instructor_id, []).append(course.rating)
        for enrollment in self._window_enrollments(data, scope):
            course = data.courses.get(enrollment.course_id)
            if course is not None:
                students[course.instructor_id].add(enrollment.student_id)

        rankings = [
            InstructorRanking(
                instructor_id=instructor_id,
                students=len(students[instructor_id]),
                courses=len(course_ratings),
                average_rating=round(sum(course_ratings) / len(course_ratings), 2),
            )
            for instructor_id, course_ratings in ratings.items()
        ]
        rankings.sort(key=lambda r: (-r.students, -r.average_rating, r.instructor_id))
        return rankings[:limit]

