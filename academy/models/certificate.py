from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID, uuid4


class CertificateRequestStatus(str, Enum):
    PENDING = "pending"
    ISSUED = "issued"
    REJECTED = "rejected"


@dataclass(frozen=True, slots=True)
class Certificate:
    """Issued proof of completion.  Append-only: never updated or deleted."""

    id: UUID
    student_id: str
    course_id: UUID
    verification_code: str
    issued_at: int
    issued_by: str
    course_title: str = ""
    certificate_url: str = ""

    @staticmethod
    def new(
        *,
        student_id: str,
        course_id: UUID,
        verification_code: str,
        issued_at: int,
        issued_by: str,
        course_title: str = "",
    ) -> Certificate:
        return Certificate(
            id=uuid4(),
            student_id=student_id,
            course_id=course_id,
            verification_code=verification_code,
            issued_at=issued_at,
            issued_by=issued_by,
            course_title=course_title,
            certificate_url=f"/certificates/{student_id}-{course_id}.pdf",
        )


@dataclass(frozen=True, slots=True)
class CertificateRequest:
    """A student's ask for instructor review."""

    id: UUID
    student_id: str
    course_id: UUID
    requested_at: int
    status: CertificateRequestStatus = CertificateRequestStatus.PENDING
    decided_at: int | None = None
    decided_by: str | None = None
    reason: str | None = None

    @staticmethod
    def new(*, student_id: str, course_id: UUID, requested_at: int) -> CertificateRequest:
        return CertificateRequest(
            id=uuid4(),
            student_id=student_id,
            course_id=course_id,
            requested_at=requested_at,
        )

    @property
    def is_pending(self) -> bool:
        return self.status is CertificateRequestStatus.PENDING
