"""Completion ledger storage.

Append-mostly: lesson completions and quiz attempts are insert-only;
assignment submissions change exactly once (PENDING -> GRADED) through
``grade_submission``, which is a compare-and-set on status.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from academy.core.errors import Conflict, DuplicateSubmission
from academy.models.ledger import (
    AssignmentSubmission,
    LessonCompletion,
    QuizAttempt,
    SubmissionStatus,
)


class LedgerRepo(Protocol):
    async def add_lesson_completion(
        self, completion: LessonCompletion
    ) -> tuple[LessonCompletion, bool]: ...
    async def list_lesson_completions(
        self, student_id: str, course_id: UUID
    ) -> list[LessonCompletion]: ...

    async def add_quiz_attempt(self, attempt: QuizAttempt) -> None: ...
    async def count_quiz_attempts(self, student_id: str, quiz_id: UUID) -> int: ...
    async def list_quiz_attempts(
        self,
        student_id: str,
        *,
        quiz_id: UUID | None = None,
        course_id: UUID | None = None,
    ) -> list[QuizAttempt]: ...

    async def add_submission(self, submission: AssignmentSubmission) -> None: ...
    async def get_submission(self, submission_id: UUID) -> AssignmentSubmission | None: ...
    async def grade_submission(
        self,
        submission_id: UUID,
        *,
        score: int,
        feedback: str | None,
        graded_at: int,
        graded_by: str,
    ) -> AssignmentSubmission | None: ...
    async def list_submissions(
        self,
        *,
        student_id: str | None = None,
        assignment_id: UUID | None = None,
        course_ids: set[UUID] | None = None,
        status: SubmissionStatus | None = None,
    ) -> list[AssignmentSubmission]: ...


class InMemoryLedgerRepo:
    def __init__(self) -> None:
        self._lessons: dict[tuple[str, UUID], LessonCompletion] = {}
        self._attempts: list[QuizAttempt] = []
        self._submissions: dict[UUID, AssignmentSubmission] = {}

    # --- lesson completions ---

    async def add_lesson_completion(
        self, completion: LessonCompletion
    ) -> tuple[LessonCompletion, bool]:
        """Insert if absent.  Returns (stored record, created?)."""
        key = (completion.student_id, completion.lesson_id)
        stored = self._lessons.setdefault(key, completion)
        return stored, stored is completion

    async def list_lesson_completions(
        self, student_id: str, course_id: UUID
    ) -> list[LessonCompletion]:
        return [
            c
            for c in self._lessons.values()
            if c.student_id == student_id and c.course_id == course_id
        ]

    # --- quiz attempts ---

    async def add_quiz_attempt(self, attempt: QuizAttempt) -> None:
        for existing in self._attempts:
            if (
                existing.student_id == attempt.student_id
                and existing.quiz_id == attempt.quiz_id
                and existing.attempt_no == attempt.attempt_no
            ):
                raise Conflict("attempt number already recorded")
        self._attempts.append(attempt)

    async def count_quiz_attempts(self, student_id: str, quiz_id: UUID) -> int:
        return sum(
            1
            for a in self._attempts
            if a.student_id == student_id and a.quiz_id == quiz_id
        )

    async def list_quiz_attempts(
        self,
        student_id: str,
        *,
        quiz_id: UUID | None = None,
        course_id: UUID | None = None,
    ) -> list[QuizAttempt]:
        return [
            a
            for a in self._attempts
            if a.student_id == student_id
            and (quiz_id is None or a.quiz_id == quiz_id)
            and (course_id is None or a.course_id == course_id)
        ]

    # --- assignment submissions ---

    async def add_submission(self, submission: AssignmentSubmission) -> None:
        for existing in self._submissions.values():
            if (
                existing.student_id == submission.student_id
                and existing.assignment_id == submission.assignment_id
                and existing.status is SubmissionStatus.PENDING
            ):
                raise DuplicateSubmission()
        self._submissions[submission.id] = submission

    async def get_submission(self, submission_id: UUID) -> AssignmentSubmission | None:
        return self._submissions.get(submission_id)

    async def grade_submission(
        self,
        submission_id: UUID,
        *,
        score: int,
        feedback: str | None,
        graded_at: int,
        graded_by: str,
    ) -> AssignmentSubmission | None:
        """PENDING -> GRADED.  Returns None if the submission is not pending."""
        current = self._submissions.get(submission_id)
        if current is None or current.status is not SubmissionStatus.PENDING:
            return None
        graded = replace(
            current,
            status=SubmissionStatus.GRADED,
            score=score,
            feedback=feedback,
            graded_at=graded_at,
            graded_by=graded_by,
        )
        self._submissions[submission_id] = graded
        return graded

    async def list_submissions(
        self,
        *,
        student_id: str | None = None,
        assignment_id: UUID | None = None,
        course_ids: set[UUID] | None = None,
        status: SubmissionStatus | None = None,
    ) -> list[AssignmentSubmission]:
        return sorted(
            (
                s
                for s in self._submissions.values()
                if (student_id is None or s.student_id == student_id)
                and (assignment_id is None or s.assignment_id == assignment_id)
                and (course_ids is None or s.course_id in course_ids)
                and (status is None or s.status is status)
            ),
            key=lambda s: s.submitted_at,
            reverse=True,
        )

    def clear(self) -> None:
        self._lessons.clear()
        self._attempts.clear()
        self._submissions.clear()
