"""Read models derived from the ledger.  Never persisted as truth."""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID

from academy.models.catalog import LessonType


@dataclass(frozen=True, slots=True)
class CourseProgress:
    student_id: str
    course_id: UUID
    completed_lessons: int
    total_lessons: int
    percentage: int

    @property
    def is_complete(self) -> bool:
        return self.total_lessons > 0 and self.completed_lessons == self.total_lessons


@dataclass(frozen=True, slots=True)
class LessonBreakdown:
    total: int
    completed: int
    percentage: int
    # Completed lesson count per lesson type
    by_type: dict[LessonType, int] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class QuizBreakdown:
    total: int
    attempted: int
    passed: int
    attempts: int
    average_score: float


@dataclass(frozen=True, slots=True)
class AssignmentBreakdown:
    total: int
    submitted: int
    graded: int
    average_score: float


@dataclass(frozen=True, slots=True)
class PerformanceSummary:
    """What an instructor sees before deciding to issue or reject."""

    student_id: str
    course_id: UUID
    lessons: LessonBreakdown
    quizzes: QuizBreakdown
    assignments: AssignmentBreakdown
    ready_for_certification: bool


@dataclass(frozen=True, slots=True)
class QuizProgress:
    """One student's standing on one quiz."""

    student_id: str
    quiz_id: UUID
    attempts: int
    max_attempts: int | None
    best_score: int | None
    passed: bool
    last_attempted_at: int | None

    @property
    def attempts_remaining(self) -> int | None:
        if self.max_attempts is None:
            return None
        return max(self.max_attempts - self.attempts, 0)
