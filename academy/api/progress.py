"""Lesson completion and course progress.

  POST /v1/progress/lessons/{lesson_id}/complete
    -> ledger insert (idempotent)
    -> recompute progress, maybe ACTIVE -> COMPLETED
    -> 200 with the completion and the enrollment it produced

  GET /v1/progress/courses/{course_id}
    -> computed from the ledger on every call, never cached
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from academy.api.courses import EnrollmentOut, enrollment_out
from academy.api.dependencies import StudentPrincipal, UserPrincipal
from academy.api.ratelimit import require_rate_limit
from academy.services.registry import open_services

router = APIRouter(prefix="/v1/progress", tags=["progress"])


class LessonCompletionOut(BaseModel):
    student_id: str
    lesson_id: UUID
    course_id: UUID
    completed_at: int
    enrollment: EnrollmentOut


class CourseProgressOut(BaseModel):
    student_id: str
    course_id: UUID
    completed_lessons: int
    total_lessons: int
    percentage: int
    status: str


@router.post(
    "/lessons/{lesson_id}/complete",
    response_model=LessonCompletionOut,
    dependencies=[Depends(require_rate_limit())],
)
async def complete_lesson(lesson_id: UUID, principal: StudentPrincipal) -> LessonCompletionOut:
    async with open_services() as services:
        completion = await services.ledger.record_lesson_complete(principal, lesson_id)
        enrollment = await services.enrollments.get_enrollment(
            completion.student_id, completion.course_id
        )
    return LessonCompletionOut(
        student_id=completion.student_id,
        lesson_id=completion.lesson_id,
        course_id=completion.course_id,
        completed_at=completion.completed_at,
        enrollment=enrollment_out(enrollment),
    )


@router.get("/courses/{course_id}", response_model=CourseProgressOut)
async def course_progress(course_id: UUID, principal: UserPrincipal) -> CourseProgressOut:
    async with open_services() as services:
        enrollment = await services.enrollments.get_enrollment(principal.user_id, course_id)
        progress = await services.enrollments.get_progress(principal.user_id, course_id)
    return CourseProgressOut(
        student_id=progress.student_id,
        course_id=progress.course_id,
        completed_lessons=progress.completed_lessons,
        total_lessons=progress.total_lessons,
        percentage=progress.percentage,
        status=enrollment.status.value,
    )
