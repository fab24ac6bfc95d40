"""Catalog browsing and enrollment.

  GET  /v1/courses                          published catalog
  POST /v1/courses/{course_id}/enroll       student enrolls (201)
  GET  /v1/enrollments                      caller's enrollments
  GET  /v1/courses/{course_id}/enrollments  roster, course instructor or admin
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from academy.api.dependencies import StaffPrincipal, StudentPrincipal, UserPrincipal
from academy.api.ratelimit import DECISIONS, require_rate_limit
from academy.models.catalog import Course, CourseStatus
from academy.models.enrollment import Enrollment
from academy.services.registry import open_services

router = APIRouter(prefix="/v1", tags=["courses"])


class CourseOut(BaseModel):
    id: UUID
    slug: str
    title: str
    instructor_id: str
    price: Decimal
    rating: float
    status: str


class EnrollmentOut(BaseModel):
    id: UUID
    student_id: str
    course_id: UUID
    status: str
    progress: int
    enrolled_at: int
    completed_at: int | None


def course_out(course: Course) -> CourseOut:
    return CourseOut(
        id=course.id,
        slug=course.slug,
        title=course.title,
        instructor_id=course.instructor_id,
        price=course.price,
        rating=course.rating,
        status=course.status.value,
    )


def enrollment_out(enrollment: Enrollment) -> EnrollmentOut:
    return EnrollmentOut(
        id=enrollment.id,
        student_id=enrollment.student_id,
        course_id=enrollment.course_id,
        status=enrollment.status.value,
        progress=enrollment.progress,
        enrolled_at=enrollment.enrolled_at,
        completed_at=enrollment.completed_at,
    )


@router.get("/courses", response_model=list[CourseOut])
async def list_courses(_principal: UserPrincipal) -> list[CourseOut]:
    async with open_services() as services:
        courses = await services.catalog.list_courses()
    return [course_out(c) for c in courses if c.status is CourseStatus.PUBLISHED]


@router.post(
    "/courses/{course_id}/enroll",
    response_model=EnrollmentOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_rate_limit(DECISIONS))],
)
async def enroll(course_id: UUID, principal: StudentPrincipal) -> EnrollmentOut:
    async with open_services() as services:
        enrollment = await services.enrollments.enroll(principal, course_id)
    return enrollment_out(enrollment)


@router.get("/enrollments", response_model=list[EnrollmentOut])
async def my_enrollments(principal: UserPrincipal) -> list[EnrollmentOut]:
    async with open_services() as services:
        enrollments = await services.enrollments.list_enrollments(principal.user_id)
    return [enrollment_out(e) for e in enrollments]


@router.get("/courses/{course_id}/enrollments", response_model=list[EnrollmentOut])
async def course_roster(course_id: UUID, principal: StaffPrincipal) -> list[EnrollmentOut]:
    async with open_services() as services:
        enrollments = await services.enrollments.list_course_enrollments(
            principal, course_id
        )
    return [enrollment_out(e) for e in enrollments]
