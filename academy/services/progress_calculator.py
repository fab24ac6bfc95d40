"""Course progress derived from the lesson ledger.

Progress only counts lessons.  Quiz scores and assignment grades feed the
certificate performance summary instead; they never hold back course
completion.
"""

from __future__ import annotations

from uuid import UUID

from academy.models.progress import CourseProgress
from academy.repos.catalog_repo import CatalogRepo
from academy.repos.ledger_repo import LedgerRepo


def percentage(completed: int, total: int) -> int:
    """Whole-number percentage rounded half up; 0 for an empty course."""
    if total <= 0:
        return 0
    return (completed * 200 + total) // (2 * total)


class ProgressCalculator:
    def __init__(self, catalog: CatalogRepo, ledger: LedgerRepo) -> None:
        self._catalog = catalog
        self._ledger = ledger

    async def compute_progress(self, student_id: str, course_id: UUID) -> CourseProgress:
        lesson_ids = {lesson.id for lesson in await self._catalog.list_lessons(course_id)}
        completions = await self._ledger.list_lesson_completions(student_id, course_id)
        # Completions for lessons that have since left the course do not count
        completed = len({c.lesson_id for c in completions} & lesson_ids)
        total = len(lesson_ids)
        return CourseProgress(
            student_id=student_id,
            course_id=course_id,
            completed_lessons=completed,
            total_lessons=total,
            percentage=percentage(completed, total),
        )

    async def is_course_complete(self, student_id: str, course_id: UUID) -> bool:
        progress = await self.compute_progress(student_id, course_id)
        return progress.is_complete
