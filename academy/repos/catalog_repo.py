from __future__ import annotations

from typing import Protocol
from uuid import UUID

from academy.models.catalog import Assignment, Course, CourseModule, Lesson, Quiz


class CatalogRepo(Protocol):
    async def get_course(self, course_id: UUID) -> Course | None: ...
    async def get_lesson(self, lesson_id: UUID) -> Lesson | None: ...
    async def get_quiz(self, quiz_id: UUID) -> Quiz | None: ...
    async def get_assignment(self, assignment_id: UUID) -> Assignment | None: ...
    async def list_courses(self, instructor_id: str | None = None) -> list[Course]: ...
    async def list_lessons(self, course_id: UUID) -> list[Lesson]: ...
    async def list_quizzes(self, course_id: UUID) -> list[Quiz]: ...
    async def list_assignments(self, course_id: UUID) -> list[Assignment]: ...


class InMemoryCatalogRepo:
    """Catalog snapshot held in process memory.

    The add_* methods exist for seeding (dev data, tests); the service
    layer only uses the read methods of the Protocol.
    """

    def __init__(self) -> None:
        self._courses: dict[UUID, Course] = {}
        self._modules: dict[UUID, CourseModule] = {}
        self._lessons: dict[UUID, Lesson] = {}
        self._quizzes: dict[UUID, Quiz] = {}
        self._assignments: dict[UUID, Assignment] = {}

    # --- seeding ---

    def add_course(self, course: Course) -> Course:
        if any(c.slug == course.slug for c in self._courses.values()):
            raise ValueError("slug already exists")
        self._courses[course.id] = course
        return course

    def add_module(self, module: CourseModule) -> CourseModule:
        if module.course_id not in self._courses:
            raise KeyError("course not found")
        self._modules[module.id] = module
        return module

    def add_lesson(self, lesson: Lesson) -> Lesson:
        if lesson.module_id not in self._modules:
            raise KeyError("module not found")
        self._lessons[lesson.id] = lesson
        return lesson

    def add_quiz(self, quiz: Quiz) -> Quiz:
        if quiz.lesson_id not in self._lessons:
            raise KeyError("lesson not found")
        self._quizzes[quiz.id] = quiz
        return quiz

    def add_assignment(self, assignment: Assignment) -> Assignment:
        if assignment.lesson_id not in self._lessons:
            raise KeyError("lesson not found")
        self._assignments[assignment.id] = assignment
        return assignment

    def clear(self) -> None:
        self._courses.clear()
        self._modules.clear()
        self._lessons.clear()
        self._quizzes.clear()
        self._assignments.clear()

    # --- reads ---

    async def get_course(self, course_id: UUID) -> Course | None:
        return self._courses.get(course_id)

    async def get_lesson(self, lesson_id: UUID) -> Lesson | None:
        return self._lessons.get(lesson_id)

    async def get_quiz(self, quiz_id: UUID) -> Quiz | None:
        return self._quizzes.get(quiz_id)

    async def get_assignment(self, assignment_id: UUID) -> Assignment | None:
        return self._assignments.get(assignment_id)

    async def list_courses(self, instructor_id: str | None = None) -> list[Course]:
        return [
            c
            for c in self._courses.values()
            if instructor_id is None or c.instructor_id == instructor_id
        ]

    async def list_lessons(self, course_id: UUID) -> list[Lesson]:
        # Lessons belong to a course through its modules
        module_ids = {m.id for m in self._modules.values() if m.course_id == course_id}
        return [
            lesson for lesson in self._lessons.values() if lesson.module_id in module_ids
        ]

    async def list_quizzes(self, course_id: UUID) -> list[Quiz]:
        return [q for q in self._quizzes.values() if q.course_id == course_id]

    async def list_assignments(self, course_id: UUID) -> list[Assignment]:
        return [a for a in self._assignments.values() if a.course_id == course_id]
