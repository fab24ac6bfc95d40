from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID, uuid4


class EnrollmentStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"


@dataclass(frozen=True, slots=True)
class Enrollment:
    """One student's relationship with one course.

    ``progress`` is an advisory high-water mark written by the state
    machine; the ledger stays the source of truth.  ``version`` backs the
    compare-and-set used for the ACTIVE -> COMPLETED transition.
    """

    id: UUID
    student_id: str
    course_id: UUID
    enrolled_at: int
    status: EnrollmentStatus = EnrollmentStatus.ACTIVE
    progress: int = 0
    completed_at: int | None = None
    version: int = 1

    @staticmethod
    def new(*, student_id: str, course_id: UUID, enrolled_at: int) -> Enrollment:
        return Enrollment(
            id=uuid4(),
            student_id=student_id,
            course_id=course_id,
            enrolled_at=enrolled_at,
        )

    @property
    def is_completed(self) -> bool:
        return self.status is EnrollmentStatus.COMPLETED
