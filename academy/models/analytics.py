from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID


@dataclass(frozen=True, slots=True)
class AnalyticsScope:
    """Which slice of the platform to aggregate.

    ``instructor_id=None`` is the global (admin) view.  ``since`` and
    ``until`` are inclusive ``YYYY-MM`` month bounds.
    """

    instructor_id: str | None = None
    since: str | None = None
    until: str | None = None

    def cache_key(self) -> str:
        return (
            f"analytics:{self.instructor_id or '*'}:"
            f"{self.since or '-'}:{self.until or '-'}"
        )


@dataclass(frozen=True, slots=True)
class CourseRanking:
    course_id: UUID
    title: str
    instructor_id: str
    enrollments: int
    rating: float


@dataclass(frozen=True, slots=True)
class InstructorRanking:
    instructor_id: str
    students: int
    courses: int
    average_rating: float


@dataclass(frozen=True, slots=True)
class AnalyticsSnapshot:
    scope: AnalyticsScope
    generated_at: int
    enrollments_by_month: dict[str, int] = field(default_factory=dict)
    revenue_by_month: dict[str, Decimal] = field(default_factory=dict)
    completions_by_month: dict[str, int] = field(default_factory=dict)
    certificates_by_month: dict[str, int] = field(default_factory=dict)
    enrollments_by_course: dict[str, int] = field(default_factory=dict)
    top_courses: list[CourseRanking] = field(default_factory=list)
    top_instructors: list[InstructorRanking] = field(default_factory=list)
    total_enrollments: int = 0
    total_revenue: Decimal = Decimal("0")
    total_completions: int = 0
    total_certificates: int = 0
