from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from academy.core.errors import AlreadyEnrolled
from academy.models.enrollment import Enrollment, EnrollmentStatus


class EnrollmentRepo(Protocol):
    async def get(self, student_id: str, course_id: UUID) -> Enrollment | None: ...
    async def lock(self, student_id: str, course_id: UUID) -> Enrollment | None: ...
    async def add(self, enrollment: Enrollment) -> None: ...
    async def raise_progress(self, enrollment_id: UUID, progress: int) -> None: ...
    async def complete_if_active(
        self,
        enrollment_id: UUID,
        *,
        expected_version: int,
        completed_at: int,
        progress: int,
    ) -> Enrollment | None: ...
    async def list_by_student(self, student_id: str) -> list[Enrollment]: ...
    async def list_by_courses(self, course_ids: set[UUID] | None) -> list[Enrollment]: ...


class InMemoryEnrollmentRepo:
    def __init__(self) -> None:
        self._store: dict[tuple[str, UUID], Enrollment] = {}
        self._by_id: dict[UUID, tuple[str, UUID]] = {}

    async def get(self, student_id: str, course_id: UUID) -> Enrollment | None:
        return self._store.get((student_id, course_id))

    async def lock(self, student_id: str, course_id: UUID) -> Enrollment | None:
        # Writers already run one at a time under PairLocks in a single process
        return self._store.get((student_id, course_id))

    async def add(self, enrollment: Enrollment) -> None:
        key = (enrollment.student_id, enrollment.course_id)
        if key in self._store:
            raise AlreadyEnrolled()
        self._store[key] = enrollment
        self._by_id[enrollment.id] = key

    async def raise_progress(self, enrollment_id: UUID, progress: int) -> None:
        key = self._by_id.get(enrollment_id)
        if key is None:
            raise KeyError("enrollment not found")
        current = self._store[key]
        # High-water mark: progress never moves backwards
        if progress > current.progress:
            self._store[key] = replace(current, progress=progress)

    async def complete_if_active(
        self,
        enrollment_id: UUID,
        *,
        expected_version: int,
        completed_at: int,
        progress: int,
    ) -> Enrollment | None:
        """Compare-and-set ACTIVE -> COMPLETED.

        Returns the updated enrollment, or None when another writer got
        there first (status changed or version moved on).
        """
        key = self._by_id.get(enrollment_id)
        if key is None:
            return None
        current = self._store[key]
        if (
            current.status is not EnrollmentStatus.ACTIVE
            or current.version != expected_version
        ):
            return None
        updated = replace(
            current,
            status=EnrollmentStatus.COMPLETED,
            completed_at=completed_at,
            progress=max(current.progress, progress),
            version=current.version + 1,
        )
        self._store[key] = updated
        return updated

    async def list_by_student(self, student_id: str) -> list[Enrollment]:
        return [e for e in self._store.values() if e.student_id == student_id]

    async def list_by_courses(self, course_ids: set[UUID] | None) -> list[Enrollment]:
        """All enrollments, or only those in ``course_ids`` when given."""
        return [
            e
            for e in self._store.values()
            if course_ids is None or e.course_id in course_ids
        ]

    def clear(self) -> None:
        self._store.clear()
        self._by_id.clear()
