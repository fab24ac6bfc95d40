"""Quiz attempts, assignment submissions and grading."""

from __future__ import annotations

import asyncio
from uuid import uuid4

import pytest
from prometheus_client import REGISTRY

from academy.core.errors import (
    AlreadyGraded,
    AssignmentNotFound,
    AttemptLimitExceeded,
    DuplicateSubmission,
    EnrollmentNotFound,
    InvalidInput,
    InvalidScore,
    NotCourseInstructor,
    QuizNotFound,
    SubmissionNotFound,
)
from academy.models.ledger import ResourceKind, SubmissionFile, SubmissionStatus
from tests.conftest import build_course

REPORT = [SubmissionFile(kind=ResourceKind.PDF, name="report.pdf", url="https://files.example/r.pdf")]


def _sample(name: str, labels: dict | None = None) -> float:
    value = REGISTRY.get_sample_value(name, labels=labels or {})
    return value if value is not None else 0.0


@pytest.fixture
def enrolled(world, student):
    seeded = build_course(world.catalog, max_attempts=3)
    asyncio.run(world.enrollments.enroll(student, seeded.course.id))
    return seeded


# ---------------------------------------------------------------------------
# Quizzes
# ---------------------------------------------------------------------------


def test_scenario_c_attempt_limit(world, student, enrolled) -> None:
    quiz_id = enrolled.quiz.id
    results = [
        asyncio.run(world.ledger.record_quiz_attempt(student, quiz_id, score))
        for score in (40, 55, 72)
    ]

    assert [a.passed for a in results] == [False, False, True]
    assert [a.attempt_no for a in results] == [1, 2, 3]

    with pytest.raises(AttemptLimitExceeded):
        asyncio.run(world.ledger.record_quiz_attempt(student, quiz_id, 90))

    attempts = asyncio.run(world.ledger_repo.count_quiz_attempts(student.user_id, quiz_id))
    assert attempts == 3


def test_passing_score_boundary_is_inclusive(world, student, enrolled) -> None:
    attempt = asyncio.run(world.ledger.record_quiz_attempt(student, enrolled.quiz.id, 70))
    assert attempt.passed is True


@pytest.mark.parametrize("score", [-1, 101])
def test_quiz_score_out_of_range_rejected(world, student, enrolled, score: int) -> None:
    with pytest.raises(InvalidScore):
        asyncio.run(world.ledger.record_quiz_attempt(student, enrolled.quiz.id, score))
    assert asyncio.run(world.ledger_repo.count_quiz_attempts(student.user_id, enrolled.quiz.id)) == 0


def test_unlimited_attempts_when_no_maximum(world, student) -> None:
    seeded = build_course(world.catalog, max_attempts=None)
    asyncio.run(world.enrollments.enroll(student, seeded.course.id))

    for score in range(10):
        asyncio.run(world.ledger.record_quiz_attempt(student, seeded.quiz.id, score))

    progress = asyncio.run(world.ledger.quiz_progress(student.user_id, seeded.quiz.id))
    assert progress.attempts == 10
    assert progress.attempts_remaining is None


def test_quiz_attempt_requires_enrollment(world, student) -> None:
    seeded = build_course(world.catalog)
    with pytest.raises(EnrollmentNotFound):
        asyncio.run(world.ledger.record_quiz_attempt(student, seeded.quiz.id, 80))


def test_unknown_quiz(world, student) -> None:
    with pytest.raises(QuizNotFound):
        asyncio.run(world.ledger.record_quiz_attempt(student, uuid4(), 80))


def test_quiz_outcome_metric(world, student, enrolled) -> None:
    passed_before = _sample("academy_quiz_attempts_total", {"outcome": "passed"})
    failed_before = _sample("academy_quiz_attempts_total", {"outcome": "failed"})

    asyncio.run(world.ledger.record_quiz_attempt(student, enrolled.quiz.id, 10))
    asyncio.run(world.ledger.record_quiz_attempt(student, enrolled.quiz.id, 95))

    assert _sample("academy_quiz_attempts_total", {"outcome": "passed"}) - passed_before == 1
    assert _sample("academy_quiz_attempts_total", {"outcome": "failed"}) - failed_before == 1


def test_quiz_progress_summary(world, student, enrolled) -> None:
    asyncio.run(world.ledger.record_quiz_attempt(student, enrolled.quiz.id, 50))
    world.clock.advance(120)
    asyncio.run(world.ledger.record_quiz_attempt(student, enrolled.quiz.id, 85))

    progress = asyncio.run(world.ledger.quiz_progress(student.user_id, enrolled.quiz.id))
    assert progress.attempts == 2
    assert progress.attempts_remaining == 1
    assert progress.best_score == 85
    assert progress.passed is True
    assert progress.last_attempted_at == world.clock.now


def test_list_quiz_attempts_newest_first(world, student, enrolled) -> None:
    asyncio.run(world.ledger.record_quiz_attempt(student, enrolled.quiz.id, 50))
    world.clock.advance(5)
    asyncio.run(world.ledger.record_quiz_attempt(student, enrolled.quiz.id, 60))

    attempts = asyncio.run(
        world.ledger.list_quiz_attempts(student.user_id, course_id=enrolled.course.id)
    )
    assert [a.attempt_no for a in attempts] == [2, 1]


# ---------------------------------------------------------------------------
# Assignments
# ---------------------------------------------------------------------------


def test_submission_needs_files(world, student, enrolled) -> None:
    with pytest.raises(InvalidInput):
        asyncio.run(
            world.ledger.record_assignment_submission(student, enrolled.assignment.id, [])
        )


def test_unknown_assignment(world, student) -> None:
    with pytest.raises(AssignmentNotFound):
        asyncio.run(world.ledger.record_assignment_submission(student, uuid4(), REPORT))


def test_second_pending_submission_rejected(world, student, enrolled) -> None:
    asyncio.run(
        world.ledger.record_assignment_submission(student, enrolled.assignment.id, REPORT)
    )
    with pytest.raises(DuplicateSubmission):
        asyncio.run(
            world.ledger.record_assignment_submission(student, enrolled.assignment.id, REPORT)
        )


def test_resubmission_allowed_after_grading(world, student, instructor, enrolled) -> None:
    first = asyncio.run(
        world.ledger.record_assignment_submission(student, enrolled.assignment.id, REPORT)
    )
    asyncio.run(world.ledger.grade_assignment(instructor, first.id, 60))
    world.clock.advance(60)

    second = asyncio.run(
        world.ledger.record_assignment_submission(student, enrolled.assignment.id, REPORT)
    )
    assert second.id != first.id
    assert second.status is SubmissionStatus.PENDING


def test_scenario_d_grade_twice(world, student, instructor, enrolled) -> None:
    submission = asyncio.run(
        world.ledger.record_assignment_submission(student, enrolled.assignment.id, REPORT)
    )
    graded = asyncio.run(
        world.ledger.grade_assignment(instructor, submission.id, 88, "Solid write-up")
    )
    assert graded.status is SubmissionStatus.GRADED
    assert graded.graded_by == instructor.user_id

    with pytest.raises(AlreadyGraded):
        asyncio.run(world.ledger.grade_assignment(instructor, submission.id, 40))

    stored = asyncio.run(world.ledger_repo.get_submission(submission.id))
    assert stored.score == 88
    assert stored.feedback == "Solid write-up"


@pytest.mark.parametrize("score", [-5, 101])
def test_grade_out_of_range(world, student, instructor, enrolled, score: int) -> None:
    submission = asyncio.run(
        world.ledger.record_assignment_submission(student, enrolled.assignment.id, REPORT)
    )
    with pytest.raises(InvalidScore):
        asyncio.run(world.ledger.grade_assignment(instructor, submission.id, score))


def test_only_course_instructor_grades(
    world, student, other_instructor, admin, enrolled
) -> None:
    submission = asyncio.run(
        world.ledger.record_assignment_submission(student, enrolled.assignment.id, REPORT)
    )
    with pytest.raises(NotCourseInstructor):
        asyncio.run(world.ledger.grade_assignment(other_instructor, submission.id, 90))

    graded = asyncio.run(world.ledger.grade_assignment(admin, submission.id, 90))
    assert graded.score == 90


def test_grade_unknown_submission(world, instructor) -> None:
    with pytest.raises(SubmissionNotFound):
        asyncio.run(world.ledger.grade_assignment(instructor, uuid4(), 90))


def test_pending_queue_scoped_to_instructor(
    world, student, instructor, other_instructor, admin
) -> None:
    mine = build_course(world.catalog, slug="mine")
    theirs = build_course(world.catalog, slug="theirs", instructor_id=other_instructor.user_id)
    for seeded in (mine, theirs):
        asyncio.run(world.enrollments.enroll(student, seeded.course.id))
        asyncio.run(
            world.ledger.record_assignment_submission(student, seeded.assignment.id, REPORT)
        )

    queue = asyncio.run(world.ledger.list_pending_submissions(instructor))
    assert [s.course_id for s in queue] == [mine.course.id]
    assert len(asyncio.run(world.ledger.list_pending_submissions(admin))) == 2

    with pytest.raises(NotCourseInstructor):
        asyncio.run(world.ledger.list_submissions(instructor, theirs.assignment.id))
