from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict

from academy.api.dependencies import StudentPrincipal, UserPrincipal
from academy.api.ratelimit import require_rate_limit
from academy.models.ledger import QuizAttempt
from academy.services.registry import open_services

router = APIRouter(prefix="/v1/quizzes", tags=["quizzes"])


class QuizAttemptIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    score: int


class QuizAttemptOut(BaseModel):
    id: UUID
    student_id: str
    quiz_id: UUID
    course_id: UUID
    score: int
    passed: bool
    attempt_no: int
    attempted_at: int


class QuizProgressOut(BaseModel):
    student_id: str
    quiz_id: UUID
    attempts: int
    max_attempts: int | None
    attempts_remaining: int | None
    best_score: int | None
    passed: bool
    last_attempted_at: int | None


def attempt_out(attempt: QuizAttempt) -> QuizAttemptOut:
    return QuizAttemptOut(
        id=attempt.id,
        student_id=attempt.student_id,
        quiz_id=attempt.quiz_id,
        course_id=attempt.course_id,
        score=attempt.score,
        passed=attempt.passed,
        attempt_no=attempt.attempt_no,
        attempted_at=attempt.attempted_at,
    )


@router.post(
    "/{quiz_id}/attempts",
    response_model=QuizAttemptOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_rate_limit())],
)
async def submit_attempt(
    quiz_id: UUID, body: QuizAttemptIn, principal: StudentPrincipal
) -> QuizAttemptOut:
    """Record a scored attempt.  The score is 0-100; pass/fail uses the quiz's threshold."""
    async with open_services() as services:
        attempt = await services.ledger.record_quiz_attempt(principal, quiz_id, body.score)
    return attempt_out(attempt)


@router.get("/{quiz_id}/progress", response_model=QuizProgressOut)
async def quiz_progress(quiz_id: UUID, principal: UserPrincipal) -> QuizProgressOut:
    async with open_services() as services:
        progress = await services.ledger.quiz_progress(principal.user_id, quiz_id)
    return QuizProgressOut(
        student_id=progress.student_id,
        quiz_id=progress.quiz_id,
        attempts=progress.attempts,
        max_attempts=progress.max_attempts,
        attempts_remaining=progress.attempts_remaining,
        best_score=progress.best_score,
        passed=progress.passed,
        last_attempted_at=progress.last_attempted_at,
    )


@router.get("/attempts/mine", response_model=list[QuizAttemptOut])
async def my_attempts(
    principal: UserPrincipal,
    course_id: UUID | None = Query(default=None),
) -> list[QuizAttemptOut]:
    """Caller's attempts, newest first, optionally for one course."""
    async with open_services() as services:
        attempts = await services.ledger.list_quiz_attempts(
            principal.user_id, course_id=course_id
        )
    return [attempt_out(a) for a in attempts]
