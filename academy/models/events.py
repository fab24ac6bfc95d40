from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from uuid import UUID, uuid4


class EventType(str, Enum):
    COURSE_COMPLETED = "course_completed"
    CERTIFICATE_REQUESTED = "certificate_requested"
    CERTIFICATE_ISSUED = "certificate_issued"
    CERTIFICATE_REJECTED = "certificate_rejected"


@dataclass(frozen=True, slots=True)
class DomainEvent:
    """Outbound notification emitted by the core, fire-and-forget."""

    id: UUID
    type: EventType
    student_id: str
    course_id: UUID
    occurred_at: int
    data: dict[str, str] = field(default_factory=dict)

    @staticmethod
    def new(
        *,
        type: EventType,
        student_id: str,
        course_id: UUID,
        occurred_at: int,
        data: dict[str, str] | None = None,
    ) -> DomainEvent:
        return DomainEvent(
            id=uuid4(),
            type=type,
            student_id=student_id,
            course_id=course_id,
            occurred_at=occurred_at,
            data=data or {},
        )

    def to_payload(self) -> dict:
        return {
            "id": str(self.id),
            "type": self.type.value,
            "student_id": self.student_id,
            "course_id": str(self.course_id),
            "occurred_at": self.occurred_at,
            "data": dict(self.data),
        }
