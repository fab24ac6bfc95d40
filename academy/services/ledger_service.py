"""Completion ledger: lesson completions, quiz attempts, assignment work.

Every write takes the (student, course) lock, then locks the enrollment
row (which also proves the student is enrolled in the course the item
belongs to), records the fact, and lets the enrollment state machine
re-evaluate while both locks are held.  That ordering is what keeps
progress monotonic and completion a one-way ratchet under concurrent
writes, within one process and across processes.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from uuid import UUID

from academy.core.errors import (
    AlreadyGraded,
    AssignmentNotFound,
    AttemptLimitExceeded,
    CourseNotFound,
    InvalidInput,
    InvalidScore,
    LessonNotFound,
    NotCourseInstructor,
    QuizNotFound,
    SubmissionNotFound,
)
from academy.core.metrics import ASSIGNMENT_SUBMISSIONS, LESSONS_COMPLETED, QUIZ_ATTEMPTS
from academy.core.timeutil import utc_now
from academy.models.catalog import Course
from academy.models.ledger import (
    AssignmentSubmission,
    LessonCompletion,
    QuizAttempt,
    SubmissionFile,
    SubmissionStatus,
)
from academy.models.principal import Principal
from academy.models.progress import QuizProgress
from academy.repos.catalog_repo import CatalogRepo
from academy.repos.ledger_repo import LedgerRepo
from academy.services.enrollment_service import EnrollmentService
from academy.services.locks import PairLocks

logger = logging.getLogger(__name__)

MIN_QUIZ_SCORE = 0
MAX_QUIZ_SCORE = 100


class LedgerService:
    def __init__(
        self,
        catalog: CatalogRepo,
        ledger: LedgerRepo,
        enrollments: EnrollmentService,
        locks: PairLocks,
        clock: Callable[[], int] = utc_now,
    ) -> None:
        self._catalog = catalog
        self._ledger = ledger
        self._enrollments = enrollments
        self._locks = locks
        self._clock = clock

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def record_lesson_complete(
        self, principal: Principal, lesson_id: UUID
    ) -> LessonCompletion:
        """Mark a lesson done.  Repeating the call returns the first record."""
        lesson = await self._catalog.get_lesson(lesson_id)
        if lesson is None:
            raise LessonNotFound()
        student_id = principal.user_id
        async with self._locks.hold(student_id, lesson.course_id):
            await self._enrollments.lock_enrollment(student_id, lesson.course_id)
            stored, created = await self._ledger.add_lesson_completion(
                LessonCompletion(
                    student_id=student_id,
                    lesson_id=lesson.id,
                    course_id=lesson.course_id,
                    completed_at=self._clock(),
                )
            )
            if created:
                LESSONS_COMPLETED.inc()
                logger.info(
                    "Lesson completed student=%s lesson=%s course=%s",
                    student_id,
                    lesson.id,
                    lesson.course_id,
                )
            else:
                logger.debug(
                    "Lesson already completed student=%s lesson=%s", student_id, lesson.id
                )
            await self._enrollments.evaluate(student_id, lesson.course_id)
        return stored

    async def record_quiz_attempt(
        self, principal: Principal, quiz_id: UUID, score: int
    ) -> QuizAttempt:
        if not MIN_QUIZ_SCORE <= score <= MAX_QUIZ_SCORE:
            raise InvalidScore(f"Quiz score must be between 0 and 100 (got {score})")
        quiz = await self._catalog.get_quiz(quiz_id)
        if quiz is None:
            raise QuizNotFound()
        student_id = principal.user_id
        async with self._locks.hold(student_id, quiz.course_id):
            await self._enrollments.lock_enrollment(student_id, quiz.course_id)
            prior = await self._ledger.count_quiz_attempts(student_id, quiz.id)
            if quiz.max_attempts is not None and prior >= quiz.max_attempts:
                logger.warning(
                    "Attempt limit reached student=%s quiz=%s attempts=%d max=%d",
                    student_id,
                    quiz.id,
                    prior,
                    quiz.max_attempts,
                )
                raise AttemptLimitExceeded()

            attempt = QuizAttempt.new(
                student_id=student_id,
                quiz_id=quiz.id,
                course_id=quiz.course_id,
                score=score,
                passed=score >= quiz.passing_score,
                attempt_no=prior + 1,
                attempted_at=self._clock(),
            )
            await self._ledger.add_quiz_attempt(attempt)
            QUIZ_ATTEMPTS.labels(outcome="passed" if attempt.passed else "failed").inc()
            logger.info(
                "Quiz attempt student=%s quiz=%s attempt=%d score=%d passed=%s",
                student_id,
                quiz.id,
                attempt.attempt_no,
                score,
                attempt.passed,
            )
            await self._enrollments.evaluate(student_id, quiz.course_id)
        return attempt

    async def record_assignment_submission(
        self,
        principal: Principal,
        assignment_id: UUID,
        files: Sequence[SubmissionFile],
    ) -> AssignmentSubmission:
        if not files:
            raise InvalidInput("A submission needs at least one file")
        assignment = await self._catalog.get_assignment(assignment_id)
        if assignment is None:
            raise AssignmentNotFound()
        student_id = principal.user_id
        async with self._locks.hold(student_id, assignment.course_id):
            await self._enrollments.lock_enrollment(student_id, assignment.course_id)
            submission = AssignmentSubmission.new(
                student_id=student_id,
                assignment_id=assignment.id,
                course_id=assignment.course_id,
                submitted_at=self._clock(),
                files=tuple(files),
            )
            await self._ledger.add_submission(submission)
            ASSIGNMENT_SUBMISSIONS.labels(step="submitted").inc()
            logger.info(
                "Assignment submitted student=%s assignment=%s submission=%s files=%d",
                student_id,
                assignment.id,
                submission.id,
                len(submission.files),
            )
            await self._enrollments.evaluate(student_id, assignment.course_id)
        return submission

    async def grade_assignment(
        self,
        principal: Principal,
        submission_id: UUID,
        score: int,
        feedback: str | None = None,
    ) -> AssignmentSubmission:
        submission = await self._ledger.get_submission(submission_id)
        if submission is None:
            raise SubmissionNotFound()
        assignment = await self._catalog.get_assignment(submission.assignment_id)
        if assignment is None:
            raise AssignmentNotFound()
        await self._require_manager(principal, submission.course_id)

        if submission.is_graded:
            raise AlreadyGraded()
        if not 0 <= score <= assignment.max_score:
            raise InvalidScore(
                f"Score must be between 0 and {assignment.max_score} (got {score})"
            )

        async with self._locks.hold(submission.student_id, submission.course_id):
            await self._enrollments.lock_enrollment(submission.student_id, submission.course_id)
            graded = await self._ledger.grade_submission(
                submission.id,
                score=score,
                feedback=feedback,
                graded_at=self._clock(),
                graded_by=principal.user_id,
            )
            if graded is None:
                # Another grader won between the read above and the update
                raise AlreadyGraded()
            ASSIGNMENT_SUBMISSIONS.labels(step="graded").inc()
            logger.info(
                "Submission graded submission=%s student=%s score=%d/%d grader=%s",
                graded.id,
                graded.student_id,
                score,
                assignment.max_score,
                principal.user_id,
            )
            await self._enrollments.evaluate(graded.student_id, graded.course_id)
        return graded

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_quiz_attempts(
        self, student_id: str, course_id: UUID | None = None
    ) -> list[QuizAttempt]:
        attempts = await self._ledger.list_quiz_attempts(student_id, course_id=course_id)
        return sorted(attempts, key=lambda a: (a.attempted_at, a.attempt_no), reverse=True)

    async def quiz_progress(self, student_id: str, quiz_id: UUID) -> QuizProgress:
        quiz = await self._catalog.get_quiz(quiz_id)
        if quiz is None:
            raise QuizNotFound()
        attempts = await self._ledger.list_quiz_attempts(student_id, quiz_id=quiz_id)
        latest = max(attempts, key=lambda a: a.attempt_no, default=None)
        return QuizProgress(
            student_id=student_id,
            quiz_id=quiz.id,
            attempts=len(attempts),
            max_attempts=quiz.max_attempts,
            best_score=max((a.score for a in attempts), default=None),
            passed=any(a.passed for a in attempts),
            last_attempted_at=latest.attempted_at if latest else None,
        )

    async def list_submissions(
        self, principal: Principal, assignment_id: UUID
    ) -> list[AssignmentSubmission]:
        assignment = await self._catalog.get_assignment(assignment_id)
        if assignment is None:
            raise AssignmentNotFound()
        await self._require_manager(principal, assignment.course_id)
        return await self._ledger.list_submissions(assignment_id=assignment_id)

    async def list_pending_submissions(
        self, principal: Principal
    ) -> list[AssignmentSubmission]:
        """Ungraded work for the caller's courses; every course for admins."""
        course_ids: set[UUID] | None = None
        if not principal.is_admin():
            courses = await self._catalog.list_courses(instructor_id=principal.user_id)
            course_ids = {c.id for c in courses}
            if not course_ids:
                return []
        return await self._ledger.list_submissions(
            course_ids=course_ids, status=SubmissionStatus.PENDING
        )

    async def _require_manager(self, principal: Principal, course_id: UUID) -> Course:
        course = await self._catalog.get_course(course_id)
        if course is None:
            raise CourseNotFound()
        if not principal.can_manage_course(course.instructor_id):
            logger.warning(
                "Rejected course action user=%s course=%s instructor=%s",
                principal.user_id,
                course.id,
                course.instructor_id,
            )
            raise NotCourseInstructor()
        return course
