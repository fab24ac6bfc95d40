"""PostgreSQL implementation of LedgerRepo.

Unique indexes carry the ledger invariants; inserts that may collide run
inside a SAVEPOINT so a constraint violation does not poison the
request's transaction.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from academy.core.errors import Conflict, DuplicateSubmission
from academy.db.tables import (
    AssignmentSubmissionRow,
    LessonCompletionRow,
    QuizAttemptRow,
)
from academy.models.ledger import (
    AssignmentSubmission,
    LessonCompletion,
    QuizAttempt,
    ResourceKind,
    SubmissionFile,
    SubmissionStatus,
)


class PgLedgerRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    # --- lesson completions ---

    async def add_lesson_completion(
        self, completion: LessonCompletion
    ) -> tuple[LessonCompletion, bool]:
        stmt = (
            insert(LessonCompletionRow)
            .values(
                student_id=completion.student_id,
                lesson_id=completion.lesson_id,
                course_id=completion.course_id,
                completed_at=completion.completed_at,
            )
            .on_conflict_do_nothing(index_elements=["student_id", "lesson_id"])
            .returning(LessonCompletionRow.lesson_id)
        )
        inserted = (await self._session.execute(stmt)).scalar_one_or_none()
        if inserted is not None:
            return completion, True

        existing = await self._session.get(
            LessonCompletionRow, (completion.student_id, completion.lesson_id)
        )
        return _row_to_completion(existing), False

    async def list_lesson_completions(
        self, student_id: str, course_id: UUID
    ) -> list[LessonCompletion]:
        stmt = select(LessonCompletionRow).where(
            LessonCompletionRow.student_id == student_id,
            LessonCompletionRow.course_id == course_id,
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_completion(r) for r in rows]

    # --- quiz attempts ---

    async def add_quiz_attempt(self, attempt: QuizAttempt) -> None:
        row = QuizAttemptRow(
            id=attempt.id,
            student_id=attempt.student_id,
            quiz_id=attempt.quiz_id,
            course_id=attempt.course_id,
            score=attempt.score,
            passed=attempt.passed,
            attempt_no=attempt.attempt_no,
            attempted_at=attempt.attempted_at,
        )
        try:
            async with self._session.begin_nested():
                self._session.add(row)
        except IntegrityError:
            raise Conflict("attempt number already recorded") from None

    async def count_quiz_attempts(self, student_id: str, quiz_id: UUID) -> int:
        stmt = select(func.count()).where(
            QuizAttemptRow.student_id == student_id,
            QuizAttemptRow.quiz_id == quiz_id,
        )
        return (await self._session.execute(stmt)).scalar_one()

    async def list_quiz_attempts(
        self,
        student_id: str,
        *,
        quiz_id: UUID | None = None,
        course_id: UUID | None = None,
    ) -> list[QuizAttempt]:
        stmt = select(QuizAttemptRow).where(QuizAttemptRow.student_id == student_id)
        if quiz_id is not None:
            stmt = stmt.where(QuizAttemptRow.quiz_id == quiz_id)
        if course_id is not None:
            stmt = stmt.where(QuizAttemptRow.course_id == course_id)
        rows = (await self._session.execute(stmt.order_by(QuizAttemptRow.attempt_no))).scalars()
        return [_row_to_attempt(r) for r in rows.all()]

    # --- assignment submissions ---

    async def add_submission(self, submission: AssignmentSubmission) -> None:
        row = AssignmentSubmissionRow(
            id=submission.id,
            student_id=submission.student_id,
            assignment_id=submission.assignment_id,
            course_id=submission.course_id,
            files=[
                {"kind": f.kind.value, "name": f.name, "url": f.url}
                for f in submission.files
            ],
            status=submission.status.value,
            score=submission.score,
            feedback=submission.feedback,
            submitted_at=submission.submitted_at,
            graded_at=submission.graded_at,
            graded_by=submission.graded_by,
        )
        try:
            async with self._session.begin_nested():
                self._session.add(row)
        except IntegrityError:
            raise DuplicateSubmission() from None

    async def get_submission(self, submission_id: UUID) -> AssignmentSubmission | None:
        row = await self._session.get(AssignmentSubmissionRow, submission_id)
        return _row_to_submission(row) if row is not None else None

    async def grade_submission(
        self,
        submission_id: UUID,
        *,
        score: int,
        feedback: str | None,
        graded_at: int,
        graded_by: str,
    ) -> AssignmentSubmission | None:
        stmt = (
            update(AssignmentSubmissionRow)
            .where(
                AssignmentSubmissionRow.id == submission_id,
                AssignmentSubmissionRow.status == SubmissionStatus.PENDING.value,
            )
            .values(
                status=SubmissionStatus.GRADED.value,
                score=score,
                feedback=feedback,
                graded_at=graded_at,
                graded_by=graded_by,
            )
            .returning(AssignmentSubmissionRow)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_submission(row) if row is not None else None

    async def list_submissions(
        self,
        *,
        student_id: str | None = None,
        assignment_id: UUID | None = None,
        course_ids: set[UUID] | None = None,
        status: SubmissionStatus | None = None,
    ) -> list[AssignmentSubmission]:
        stmt = select(AssignmentSubmissionRow)
        if student_id is not None:
            stmt = stmt.where(AssignmentSubmissionRow.student_id == student_id)
        if assignment_id is not None:
            stmt = stmt.where(AssignmentSubmissionRow.assignment_id == assignment_id)
        if course_ids is not None:
            stmt = stmt.where(AssignmentSubmissionRow.course_id.in_(course_ids))
        if status is not None:
            stmt = stmt.where(AssignmentSubmissionRow.status == status.value)
        stmt = stmt.order_by(AssignmentSubmissionRow.submitted_at.desc())
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_submission(r) for r in rows]


def _row_to_completion(row: LessonCompletionRow) -> LessonCompletion:
    return LessonCompletion(
        student_id=row.student_id,
        lesson_id=row.lesson_id,
        course_id=row.course_id,
        completed_at=row.completed_at,
    )


def _row_to_attempt(row: QuizAttemptRow) -> QuizAttempt:
    return QuizAttempt(
        id=row.id,
        student_id=row.student_id,
        quiz_id=row.quiz_id,
        course_id=row.course_id,
        score=row.score,
        passed=row.passed,
        attempt_no=row.attempt_no,
        attempted_at=row.attempted_at,
    )


def _row_to_submission(row: AssignmentSubmissionRow) -> AssignmentSubmission:
    return AssignmentSubmission(
        id=row.id,
        student_id=row.student_id,
        assignment_id=row.assignment_id,
        course_id=row.course_id,
        submitted_at=row.submitted_at,
        files=tuple(
            SubmissionFile(kind=ResourceKind(f["kind"]), name=f["name"], url=f["url"])
            for f in row.files or []
        ),
        status=SubmissionStatus(row.status),
        score=row.score,
        feedback=row.feedback,
        graded_at=row.graded_at,
        graded_by=row.graded_by,
    )
