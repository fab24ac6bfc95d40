"""Certificate workflow: request, review, issue, reject, verify.

The only hard gate is a COMPLETED enrollment.  The performance summary
and its ``ready_for_certification`` flag inform the instructor's decision
but never block it.

Two policies, picked by ``CERTIFICATE_POLICY``:

    review  student requests -> instructor issues or rejects (default)
    auto    student requests -> certificate issued on the spot, signed
            by the course instructor

Verification codes look like ``HACK-LZ1K9Q3A-9F2C01AB``: prefix, the
issue time in base-36 milliseconds, and 32 random bits.  The repository
enforces code uniqueness; a collision regenerates the code a bounded
number of times.
"""

from __future__ import annotations

import logging
import secrets
import time
from collections.abc import Callable
from dataclasses import replace
from uuid import UUID

from academy.core.config import SETTINGS
from academy.core.errors import (
    AlreadyCertified,
    CertificateNotFound,
    CertificateRequestNotFound,
    CodeGenerationFailed,
    CourseNotCompleted,
    CourseNotFound,
    NotCourseInstructor,
    VerificationCodeCollision,
)
from academy.core.metrics import CERTIFICATE_CODE_COLLISIONS, CERTIFICATE_DECISIONS
from academy.core.timeutil import utc_now
from academy.models.catalog import Course, LessonType
from academy.models.certificate import (
    Certificate,
    CertificateRequest,
    CertificateRequestStatus,
)
from academy.models.events import DomainEvent, EventType
from academy.models.ledger import AssignmentSubmission, QuizAttempt
from academy.models.principal import Principal
from academy.models.progress import (
    AssignmentBreakdown,
    LessonBreakdown,
    PerformanceSummary,
    QuizBreakdown,
)
from academy.repos.catalog_repo import CatalogRepo
from academy.repos.certificate_repo import CertificateRepo
from academy.repos.ledger_repo import LedgerRepo
from academy.services.enrollment_service import EnrollmentService
from academy.services.locks import PairLocks
from academy.services.notifications import NotificationPublisher
from academy.services.progress_calculator import ProgressCalculator

logger = logging.getLogger(__name__)

_BASE36 = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_verification_code(prefix: str | None = None) -> str:
    prefix = prefix or SETTINGS.certificate_code_prefix
    millis = time.time_ns() // 1_000_000
    return f"{prefix}-{_to_base36(millis)}-{secrets.token_hex(4).upper()}"


def _mean(values: list[int]) -> float:
    if not values:
        return 0.0
    return round(sum(values) / len(values), 2)


class CertificateService:
    def __init__(
        self,
        catalog: CatalogRepo,
        ledger: LedgerRepo,
        certificates: CertificateRepo,
        enrollments: EnrollmentService,
        calculator: ProgressCalculator,
        publisher: NotificationPublisher,
        locks: PairLocks,
        *,
        auto_issue: bool | None = None,
        ready_quiz_average: int | None = None,
        max_code_attempts: int | None = None,
        code_factory: Callable[[], str] = generate_verification_code,
        clock: Callable[[], int] = utc_now,
    ) -> None:
        self._catalog = catalog
        self._ledger = ledger
        self._certificates = certificates
        self._enrollments = enrollments
        self._calculator = calculator
        self._publisher = publisher
        self._locks = locks
        self._auto_issue = (
            SETTINGS.auto_issue_certificates if auto_issue is None else auto_issue
        )
        self._ready_quiz_average = (
            SETTINGS.ready_quiz_average
            if ready_quiz_average is None
            else ready_quiz_average
        )
        self._max_code_attempts = (
            SETTINGS.certificate_code_max_attempts
            if max_code_attempts is None
            else max_code_attempts
        )
        self._code_factory = code_factory
        self._clock = clock

    # ------------------------------------------------------------------
    # Student side
    # ------------------------------------------------------------------

    async def request_certificate(
        self, principal: Principal, course_id: UUID
    ) -> CertificateRequest:
        """Ask for a certificate.

        Returns the request record.  Under the auto policy it comes back
        already ISSUED and the certificate exists; under review it stays
        PENDING until an instructor decides.  Asking again while a request
        is pending returns that same request.
        """
        student_id = principal.user_id
        course = await self._get_course(course_id)

        async with self._locks.hold(student_id, course_id):
            await self._enrollments.lock_enrollment(student_id, course_id)
            if await self._certificates.get(student_id, course_id) is not None:
                raise AlreadyCertified()
            await self._require_completed(student_id, course_id)

            existing = await self._certificates.get_request(student_id, course_id)
            if existing is not None and existing.is_pending:
                return existing

            now = self._clock()
            request = CertificateRequest.new(
                student_id=student_id, course_id=course_id, requested_at=now
            )
            CERTIFICATE_DECISIONS.labels(decision="requested").inc()

            if self._auto_issue:
                certificate = await self._issue(
                    student_id, course, issued_by=course.instructor_id
                )
                request = replace(
                    request,
                    status=CertificateRequestStatus.ISSUED,
                    decided_at=certificate.issued_at,
                    decided_by=certificate.issued_by,
                )
                await self._certificates.save_request(request)
                return request

            await self._certificates.save_request(request)
            logger.info(
                "Certificate requested student=%s course=%s request=%s",
                student_id,
                course_id,
                request.id,
            )
        await self._publisher.publish(
            DomainEvent.new(
                type=EventType.CERTIFICATE_REQUESTED,
                student_id=student_id,
                course_id=course_id,
                occurred_at=now,
            )
        )
        return request

    async def get_certificate(self, student_id: str, course_id: UUID) -> Certificate:
        certificate = await self._certificates.get(student_id, course_id)
        if certificate is None:
            raise CertificateNotFound()
        return certificate

    async def list_certificates(self, student_id: str) -> list[Certificate]:
        return await self._certificates.list_by_student(student_id)

    async def verify(self, verification_code: str) -> Certificate:
        """Public lookup used by third parties to confirm a certificate."""
        certificate = await self._certificates.get_by_code(
            verification_code.strip().upper()
        )
        if certificate is None:
            logger.info("Verification miss code=%s", verification_code)
            raise CertificateNotFound()
        return certificate

    # ------------------------------------------------------------------
    # Instructor side
    # ------------------------------------------------------------------

    async def get_performance_summary(
        self, principal: Principal, student_id: str, course_id: UUID
    ) -> PerformanceSummary:
        course = await self._get_course(course_id)
        if principal.user_id != student_id and not principal.can_manage_course(
            course.instructor_id
        ):
            raise NotCourseInstructor()
        await self._enrollments.get_enrollment(student_id, course_id)

        lessons = await self._lesson_breakdown(student_id, course_id)
        quizzes = await self._quiz_breakdown(student_id, course_id)
        assignments = await self._assignment_breakdown(student_id, course_id)

        quizzes_ok = (
            quizzes.total == 0 or quizzes.average_score >= self._ready_quiz_average
        )
        ready = (
            lessons.percentage == 100
            and quizzes_ok
            and assignments.submitted == assignments.total
        )
        return PerformanceSummary(
            student_id=student_id,
            course_id=course_id,
            lessons=lessons,
            quizzes=quizzes,
            assignments=assignments,
            ready_for_certification=ready,
        )

    async def issue_certificate(
        self, principal: Principal, student_id: str, course_id: UUID
    ) -> Certificate:
        course = await self._get_course(course_id)
        self._require_manager(principal, course)

        async with self._locks.hold(student_id, course_id):
            await self._enrollments.lock_enrollment(student_id, course_id)
            if await self._certificates.get(student_id, course_id) is not None:
                logger.warning(
                    "Rejected duplicate issuance student=%s course=%s",
                    student_id,
                    course_id,
                )
                raise AlreadyCertified()
            await self._require_completed(student_id, course_id)

            certificate = await self._issue(student_id, course, issued_by=principal.user_id)

            request = await self._certificates.get_request(student_id, course_id)
            if request is not None and request.is_pending:
                await self._certificates.save_request(
                    replace(
                        request,
                        status=CertificateRequestStatus.ISSUED,
                        decided_at=certificate.issued_at,
                        decided_by=principal.user_id,
                    )
                )
        return certificate

    async def reject_certificate_request(
        self,
        principal: Principal,
        student_id: str,
        course_id: UUID,
        reason: str | None = None,
    ) -> CertificateRequest:
        course = await self._get_course(course_id)
        self._require_manager(principal, course)

        async with self._locks.hold(student_id, course_id):
            await self._enrollments.lock_enrollment(student_id, course_id)
            request = await self._certificates.get_request(student_id, course_id)
            if request is None or not request.is_pending:
                raise CertificateRequestNotFound()
            rejected = replace(
                request,
                status=CertificateRequestStatus.REJECTED,
                decided_at=self._clock(),
                decided_by=principal.user_id,
                reason=reason,
            )
            await self._certificates.save_request(rejected)

        CERTIFICATE_DECISIONS.labels(decision="rejected").inc()
        logger.info(
            "Certificate request rejected student=%s course=%s by=%s",
            student_id,
            course_id,
            principal.user_id,
        )
        await self._publisher.publish(
            DomainEvent.new(
                type=EventType.CERTIFICATE_REJECTED,
                student_id=student_id,
                course_id=course_id,
                occurred_at=rejected.decided_at or self._clock(),
                data={"reason": reason} if reason else None,
            )
        )
        return rejected

    async def list_requests(
        self,
        principal: Principal,
        status: CertificateRequestStatus | None = None,
    ) -> list[CertificateRequest]:
        course_ids = await self._managed_course_ids(principal)
        if course_ids is not None and not course_ids:
            return []
        return await self._certificates.list_requests(course_ids, status)

    async def list_course_certificates(
        self, principal: Principal, course_id: UUID
    ) -> list[Certificate]:
        course = await self._get_course(course_id)
        self._require_manager(principal, course)
        return await self._certificates.list_by_courses({course_id})

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _issue(self, student_id: str, course: Course, *, issued_by: str) -> Certificate:
        """Insert a certificate with a fresh code, regenerating on collision."""
        for attempt in range(1, self._max_code_attempts + 1):
            certificate = Certificate.new(
                student_id=student_id,
                course_id=course.id,
                verification_code=self._code_factory(),
                issued_at=self._clock(),
                issued_by=issued_by,
                course_title=course.title,
            )
            try:
                await self._certificates.add(certificate)
            except VerificationCodeCollision:
                CERTIFICATE_CODE_COLLISIONS.inc()
                logger.warning(
                    "Verification code collision attempt=%d/%d student=%s course=%s",
                    attempt,
                    self._max_code_attempts,
                    student_id,
                    course.id,
                )
                continue
            break
        else:
            logger.error(
                "Gave up generating a verification code student=%s course=%s",
                student_id,
                course.id,
            )
            raise CodeGenerationFailed()

        CERTIFICATE_DECISIONS.labels(decision="issued").inc()
        logger.info(
            "Certificate issued student=%s course=%s code=%s by=%s",
            student_id,
            course.id,
            certificate.verification_code,
            issued_by,
        )
        await self._publisher.publish(
            DomainEvent.new(
                type=EventType.CERTIFICATE_ISSUED,
                student_id=student_id,
                course_id=course.id,
                occurred_at=certificate.issued_at,
                data={"verification_code": certificate.verification_code},
            )
        )
        return certificate

    async def _get_course(self, course_id: UUID) -> Course:
        course = await self._catalog.get_course(course_id)
        if course is None:
            raise CourseNotFound()
        return course

    async def _require_completed(self, student_id: str, course_id: UUID) -> None:
        enrollment = await self._enrollments.get_enrollment(student_id, course_id)
        if not enrollment.is_completed:
            logger.warning(
                "Certificate blocked: course not completed student=%s course=%s progress=%d",
                student_id,
                course_id,
                enrollment.progress,
            )
            raise CourseNotCompleted()

    def _require_manager(self, principal: Principal, course: Course) -> None:
        if not principal.can_manage_course(course.instructor_id):
            logger.warning(
                "Rejected certificate decision user=%s course=%s",
                principal.user_id,
                course.id,
            )
            raise NotCourseInstructor()

    async def _managed_course_ids(self, principal: Principal) -> set[UUID] | None:
        if principal.is_admin():
            return None
        courses = await self._catalog.list_courses(instructor_id=principal.user_id)
        return {c.id for c in courses}

    async def _lesson_breakdown(self, student_id: str, course_id: UUID) -> LessonBreakdown:
        progress = await self._calculator.compute_progress(student_id, course_id)
        lessons = {lesson.id: lesson for lesson in await self._catalog.list_lessons(course_id)}
        completions = await self._ledger.list_lesson_completions(student_id, course_id)

        by_type = dict.fromkeys(LessonType, 0)
        for completion in completions:
            lesson = lessons.get(completion.lesson_id)
            if lesson is not None:
                by_type[lesson.type] += 1

        return LessonBreakdown(
            total=progress.total_lessons,
            completed=progress.completed_lessons,
            percentage=progress.percentage,
            by_type=by_type,
        )

    async def _quiz_breakdown(self, student_id: str, course_id: UUID) -> QuizBreakdown:
        quiz_ids = {q.id for q in await self._catalog.list_quizzes(course_id)}
        attempts = [
            a
            for a in await self._ledger.list_quiz_attempts(student_id, course_id=course_id)
            if a.quiz_id in quiz_ids
        ]
        latest: dict[UUID, QuizAttempt] = {}
        for attempt in attempts:
            current = latest.get(attempt.quiz_id)
            if current is None or attempt.attempt_no > current.attempt_no:
                latest[attempt.quiz_id] = attempt

        return QuizBreakdown(
            total=len(quiz_ids),
            attempted=len(latest),
            passed=sum(1 for a in latest.values() if a.passed),
            attempts=len(attempts),
            average_score=_mean([a.score for a in latest.values()]),
        )

    async def _assignment_breakdown(
        self, student_id: str, course_id: UUID
    ) -> AssignmentBreakdown:
        assignment_ids = {a.id for a in await self._catalog.list_assignments(course_id)}
        submissions = [
            s
            for s in await self._ledger.list_submissions(
                student_id=student_id, course_ids={course_id}
            )
            if s.assignment_id in assignment_ids
        ]
        # Most recent graded submission per assignment counts
        graded: dict[UUID, AssignmentSubmission] = {}
        for submission in submissions:
            if not submission.is_graded:
                continue
            current = graded.get(submission.assignment_id)
            if current is None or submission.submitted_at > current.submitted_at:
                graded[submission.assignment_id] = submission

        return AssignmentBreakdown(
            total=len(assignment_ids),
            submitted=len({s.assignment_id for s in submissions}),
            graded=len(graded),
            average_score=_mean([s.score for s in graded.values() if s.score is not None]),
        )
