"""PostgreSQL implementation of CatalogRepo (read-only)."""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from academy.db.tables import (
    AssignmentRow,
    CourseModuleRow,
    CourseRow,
    LessonRow,
    QuizRow,
)
from academy.models.catalog import (
    Assignment,
    Course,
    CourseStatus,
    Lesson,
    LessonType,
    Quiz,
)


class PgCatalogRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_course(self, course_id: UUID) -> Course | None:
        row = await self._session.get(CourseRow, course_id)
        return _row_to_course(row) if row is not None else None

    async def get_lesson(self, lesson_id: UUID) -> Lesson | None:
        row = await self._session.get(LessonRow, lesson_id)
        return _row_to_lesson(row) if row is not None else None

    async def get_quiz(self, quiz_id: UUID) -> Quiz | None:
        row = await self._session.get(QuizRow, quiz_id)
        return _row_to_quiz(row) if row is not None else None

    async def get_assignment(self, assignment_id: UUID) -> Assignment | None:
        row = await self._session.get(AssignmentRow, assignment_id)
        return _row_to_assignment(row) if row is not None else None

    async def list_courses(self, instructor_id: str | None = None) -> list[Course]:
        stmt = select(CourseRow).order_by(CourseRow.slug)
        if instructor_id is not None:
            stmt = stmt.where(CourseRow.instructor_id == instructor_id)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_course(r) for r in rows]

    async def list_lessons(self, course_id: UUID) -> list[Lesson]:
        # Course membership goes through the module, not the denormalised column
        stmt = (
            select(LessonRow)
            .join(CourseModuleRow, LessonRow.module_id == CourseModuleRow.id)
            .where(CourseModuleRow.course_id == course_id)
            .order_by(CourseModuleRow.position, LessonRow.position)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_lesson(r) for r in rows]

    async def list_quizzes(self, course_id: UUID) -> list[Quiz]:
        stmt = select(QuizRow).where(QuizRow.course_id == course_id)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_quiz(r) for r in rows]

    async def list_assignments(self, course_id: UUID) -> list[Assignment]:
        stmt = select(AssignmentRow).where(AssignmentRow.course_id == course_id)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_assignment(r) for r in rows]


def _row_to_course(row: CourseRow) -> Course:
    return Course(
        id=row.id,
        slug=row.slug,
        title=row.title,
        instructor_id=row.instructor_id,
        price=Decimal(row.price) if row.price is not None else Decimal("0"),
        rating=float(row.rating or 0.0),
        status=CourseStatus(row.status),
    )


def _row_to_lesson(row: LessonRow) -> Lesson:
    return Lesson(
        id=row.id,
        module_id=row.module_id,
        course_id=row.course_id,
        title=row.title,
        type=LessonType(row.type),
        position=row.position,
    )


def _row_to_quiz(row: QuizRow) -> Quiz:
    return Quiz(
        id=row.id,
        lesson_id=row.lesson_id,
        course_id=row.course_id,
        title=row.title,
        passing_score=row.passing_score,
        max_attempts=row.max_attempts,
    )


def _row_to_assignment(row: AssignmentRow) -> Assignment:
    return Assignment(
        id=row.id,
        lesson_id=row.lesson_id,
        course_id=row.course_id,
        title=row.title,
        max_score=row.max_score,
    )
