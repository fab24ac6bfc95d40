"""Instructor and admin analytics.

  GET /v1/analytics?instructor_id=&since=YYYY-MM&until=YYYY-MM

Served from the read-through cache; the worker rebuilds the global
snapshot on a timer.  Instructors only ever see their own courses.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Query
from pydantic import BaseModel

from academy.api.dependencies import StaffPrincipal
from academy.services.analytics_service import AnalyticsService
from academy.services.registry import open_services

router = APIRouter(prefix="/v1/analytics", tags=["analytics"])


class ScopeOut(BaseModel):
    instructor_id: str | None
    since: str | None
    until: str | None


class CourseRankingOut(BaseModel):
    course_id: UUID
    title: str
    instructor_id: str
    enrollments: int
    rating: float


class InstructorRankingOut(BaseModel):
    instructor_id: str
    students: int
    courses: int
    average_rating: float


class AnalyticsOut(BaseModel):
    scope: ScopeOut
    generated_at: int
    enrollments_by_month: dict[str, int]
    revenue_by_month: dict[str, Decimal]
    completions_by_month: dict[str, int]
    certificates_by_month: dict[str, int]
    enrollments_by_course: dict[str, int]
    top_courses: list[CourseRankingOut]
    top_instructors: list[InstructorRankingOut]
    total_enrollments: int
    total_revenue: Decimal
    total_completions: int
    total_certificates: int


@router.get("", response_model=AnalyticsOut)
async def analytics(
    principal: StaffPrincipal,
    instructor_id: str | None = Query(default=None),
    since: str | None = Query(default=None),
    until: str | None = Query(default=None),
) -> AnalyticsOut:
    scope = AnalyticsService.scope_for(
        principal, instructor_id=instructor_id, since=since, until=until
    )
    async with open_services() as services:
        snapshot = await services.analytics.snapshot(scope)
    return AnalyticsOut(
        scope=ScopeOut(
            instructor_id=snapshot.scope.instructor_id,
            since=snapshot.scope.since,
            until=snapshot.scope.until,
        ),
        generated_at=snapshot.generated_at,
        enrollments_by_month=snapshot.enrollments_by_month,
        revenue_by_month=snapshot.revenue_by_month,
        completions_by_month=snapshot.completions_by_month,
        certificates_by_month=snapshot.certificates_by_month,
        enrollments_by_course=snapshot.enrollments_by_course,
        top_courses=[
            CourseRankingOut(
                course_id=r.course_id,
                title=r.title,
                instructor_id=r.instructor_id,
                enrollments=r.enrollments,
                rating=r.rating,
            )
            for r in snapshot.top_courses
        ],
        top_instructors=[
            InstructorRankingOut(
                instructor_id=r.instructor_id,
                students=r.students,
                courses=r.courses,
                average_rating=r.average_rating,
            )
            for r in snapshot.top_instructors
        ],
        total_enrollments=snapshot.total_enrollments,
        total_revenue=snapshot.total_revenue,
        total_completions=snapshot.total_completions,
        total_certificates=snapshot.total_certificates,
    )
