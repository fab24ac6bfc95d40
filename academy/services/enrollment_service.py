"""Enrollment lifecycle: ACTIVE -> COMPLETED, never back.

``evaluate`` is the only code path that moves an enrollment forward.
The ledger service calls it after every write, while holding the
(student, course) lock and the enrollment row lock taken by
``lock_enrollment``, so it must not take either itself.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from uuid import UUID

from academy.core.errors import (
    AlreadyEnrolled,
    CourseNotFound,
    EnrollmentNotFound,
    NotCourseInstructor,
)
from academy.core.metrics import ENROLLMENTS
from academy.core.timeutil import utc_now
from academy.models.catalog import CourseStatus
from academy.models.enrollment import Enrollment
from academy.models.events import DomainEvent, EventType
from academy.models.principal import Principal
from academy.models.progress import CourseProgress
from academy.repos.catalog_repo import CatalogRepo
from academy.repos.enrollment_repo import EnrollmentRepo
from academy.services.notifications import NotificationPublisher
from academy.services.progress_calculator import ProgressCalculator

logger = logging.getLogger(__name__)


class EnrollmentService:
    def __init__(
        self,
        catalog: CatalogRepo,
        enrollments: EnrollmentRepo,
        calculator: ProgressCalculator,
        publisher: NotificationPublisher,
        clock: Callable[[], int] = utc_now,
    ) -> None:
        self._catalog = catalog
        self._enrollments = enrollments
        self._calculator = calculator
        self._publisher = publisher
        self._clock = clock

    async def enroll(self, principal: Principal, course_id: UUID) -> Enrollment:
        course = await self._catalog.get_course(course_id)
        if course is None or course.status is not CourseStatus.PUBLISHED:
            raise CourseNotFound()

        if await self._enrollments.get(principal.user_id, course_id) is not None:
            logger.warning(
                "Rejected duplicate enrollment student=%s course=%s",
                principal.user_id,
                course_id,
            )
            raise AlreadyEnrolled()

        enrollment = Enrollment.new(
            student_id=principal.user_id,
            course_id=course_id,
            enrolled_at=self._clock(),
        )
        # The repo re-checks uniqueness; a concurrent enroll still fails cleanly
        await self._enrollments.add(enrollment)
        ENROLLMENTS.labels(status="active").inc()
        logger.info(
            "Enrolled student=%s course=%s enrollment=%s",
            enrollment.student_id,
            course_id,
            enrollment.id,
        )
        return enrollment

    async def get_enrollment(self, student_id: str, course_id: UUID) -> Enrollment:
        enrollment = await self._enrollments.get(student_id, course_id)
        if enrollment is None:
            raise EnrollmentNotFound()
        return enrollment

    async def lock_enrollment(self, student_id: str, course_id: UUID) -> Enrollment:
        """Serialize writers for one pair until the unit of work ends."""
        enrollment = await self._enrollments.lock(student_id, course_id)
        if enrollment is None:
            raise EnrollmentNotFound()
        return enrollment

    async def get_progress(self, student_id: str, course_id: UUID) -> CourseProgress:
        await self.get_enrollment(student_id, course_id)
        return await self._calculator.compute_progress(student_id, course_id)

    async def list_enrollments(self, student_id: str) -> list[Enrollment]:
        enrollments = await self._enrollments.list_by_student(student_id)
        return sorted(enrollments, key=lambda e: e.enrolled_at, reverse=True)

    async def list_course_enrollments(
        self, principal: Principal, course_id: UUID
    ) -> list[Enrollment]:
        course = await self._catalog.get_course(course_id)
        if course is None:
            raise CourseNotFound()
        if not principal.can_manage_course(course.instructor_id):
            raise NotCourseInstructor()
        enrollments = await self._enrollments.list_by_courses({course_id})
        return sorted(enrollments, key=lambda e: e.enrolled_at, reverse=True)

    async def evaluate(self, student_id: str, course_id: UUID) -> Enrollment:
        """Re-derive progress and complete the enrollment when every lesson is done.

        Idempotent.  A COMPLETED enrollment is returned untouched, and the
        compare-and-set in the repository means only one caller ever wins
        the transition and publishes ``course_completed``.
        """
        enrollment = await self._enrollments.get(student_id, course_id)
        if enrollment is None:
            raise EnrollmentNotFound()
        if enrollment.is_completed:
            return enrollment

        progress = await self._calculator.compute_progress(student_id, course_id)
        if progress.percentage > enrollment.progress:
            await self._enrollments.raise_progress(enrollment.id, progress.percentage)

        if not progress.is_complete:
            logger.debug(
                "Progress student=%s course=%s %d/%d",
                student_id,
                course_id,
                progress.completed_lessons,
                progress.total_lessons,
            )
            return await self.get_enrollment(student_id, course_id)

        completed = await self._enrollments.complete_if_active(
            enrollment.id,
            expected_version=enrollment.version,
            completed_at=self._clock(),
            progress=progress.percentage,
        )
        if completed is None:
            logger.info(
                "Completion already recorded by another writer student=%s course=%s",
                student_id,
                course_id,
            )
            return await self.get_enrollment(student_id, course_id)

        ENROLLMENTS.labels(status="completed").inc()
        logger.info(
            "Enrollment completed student=%s course=%s enrollment=%s",
            student_id,
            course_id,
            completed.id,
        )
        await self._publisher.publish(
            DomainEvent.new(
                type=EventType.COURSE_COMPLETED,
                student_id=student_id,
                course_id=course_id,
                occurred_at=completed.completed_at or self._clock(),
            )
        )
        return completed
