"""Completion ledger facts — the record of what a student actually did."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID, uuid4


class ResourceKind(str, Enum):
    PDF = "pdf"
    ZIP = "zip"
    LINK = "link"
    DOC = "doc"


class SubmissionStatus(str, Enum):
    PENDING = "pending"
    GRADED = "graded"


@dataclass(frozen=True, slots=True)
class LessonCompletion:
    student_id: str
    lesson_id: UUID
    course_id: UUID
    completed_at: int


@dataclass(frozen=True, slots=True)
class QuizAttempt:
    id: UUID
    student_id: str
    quiz_id: UUID
    course_id: UUID
    score: int
    passed: bool
    attempt_no: int
    attempted_at: int

    @staticmethod
    def new(
        *,
        student_id: str,
        quiz_id: UUID,
        course_id: UUID,
        score: int,
        passed: bool,
        attempt_no: int,
        attempted_at: int,
    ) -> QuizAttempt:
        return QuizAttempt(
            id=uuid4(),
            student_id=student_id,
            quiz_id=quiz_id,
            course_id=course_id,
            score=score,
            passed=passed,
            attempt_no=attempt_no,
            attempted_at=attempted_at,
        )


@dataclass(frozen=True, slots=True)
class SubmissionFile:
    kind: ResourceKind
    name: str
    url: str


@dataclass(frozen=True, slots=True)
class AssignmentSubmission:
    id: UUID
    student_id: str
    assignment_id: UUID
    course_id: UUID
    submitted_at: int
    files: tuple[SubmissionFile, ...] = ()
    status: SubmissionStatus = SubmissionStatus.PENDING
    score: int | None = None
    feedback: str | None = None
    graded_at: int | None = None
    graded_by: str | None = None

    @staticmethod
    def new(
        *,
        student_id: str,
        assignment_id: UUID,
        course_id: UUID,
        submitted_at: int,
        files: tuple[SubmissionFile, ...],
    ) -> AssignmentSubmission:
        return AssignmentSubmission(
            id=uuid4(),
            student_id=student_id,
            assignment_id=assignment_id,
            course_id=course_id,
            submitted_at=submitted_at,
            files=files,
        )

    @property
    def is_graded(self) -> bool:
        return self.status is SubmissionStatus.GRADED
