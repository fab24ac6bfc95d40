"""Course catalog read model.

The catalog is owned by another service; this core only reads it.
Lesson and resource types are closed enums so adding a variant is a
visible change at every ``match`` that consumes them.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4


class LessonType(str, Enum):
    VIDEO = "video"
    ARTICLE = "article"
    READING = "reading"
    QUIZ = "quiz"
    ASSIGNMENT = "assignment"


class CourseStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


@dataclass(frozen=True, slots=True)
class Course:
    id: UUID
    slug: str
    title: str
    instructor_id: str
    price: Decimal = Decimal("0")
    rating: float = 0.0
    status: CourseStatus = CourseStatus.PUBLISHED

    @staticmethod
    def new(
        *,
        slug: str,
        title: str,
        instructor_id: str,
        price: Decimal = Decimal("0"),
        rating: float = 0.0,
    ) -> Course:
        return Course(
            id=uuid4(),
            slug=slug,
            title=title,
            instructor_id=instructor_id,
            price=price,
            rating=rating,
        )


@dataclass(frozen=True, slots=True)
class CourseModule:
    id: UUID
    course_id: UUID
    position: int
    title: str

    @staticmethod
    def new(*, course_id: UUID, position: int, title: str) -> CourseModule:
        return CourseModule(
            id=uuid4(), course_id=course_id, position=position, title=title
        )


@dataclass(frozen=True, slots=True)
class Lesson:
    id: UUID
    module_id: UUID
    course_id: UUID
    title: str
    type: LessonType
    position: int

    @staticmethod
    def new(
        *,
        module: CourseModule,
        title: str,
        type: LessonType = LessonType.VIDEO,
        position: int = 0,
    ) -> Lesson:
        return Lesson(
            id=uuid4(),
            module_id=module.id,
            course_id=module.course_id,
            title=title,
            type=type,
            position=position,
        )


@dataclass(frozen=True, slots=True)
class Quiz:
    id: UUID
    lesson_id: UUID
    course_id: UUID
    title: str
    passing_score: int = 70
    max_attempts: int | None = None  # None = unlimited

    @staticmethod
    def new(
        *,
        lesson: Lesson,
        title: str,
        passing_score: int = 70,
        max_attempts: int | None = None,
    ) -> Quiz:
        return Quiz(
            id=uuid4(),
            lesson_id=lesson.id,
            course_id=lesson.course_id,
            title=title,
            passing_score=passing_score,
            max_attempts=max_attempts,
        )


@dataclass(frozen=True, slots=True)
class Assignment:
    id: UUID
    lesson_id: UUID
    course_id: UUID
    title: str
    max_score: int = 100

    @staticmethod
    def new(*, lesson: Lesson, title: str, max_score: int = 100) -> Assignment:
        return Assignment(
            id=uuid4(),
            lesson_id=lesson.id,
            course_id=lesson.course_id,
            title=title,
            max_score=max_score,
        )
