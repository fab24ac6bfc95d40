from __future__ import annotations

from typing import Protocol
from uuid import UUID

from academy.core.errors import AlreadyCertified, VerificationCodeCollision
from academy.models.certificate import (
    Certificate,
    CertificateRequest,
    CertificateRequestStatus,
)


class CertificateRepo(Protocol):
    async def get(self, student_id: str, course_id: UUID) -> Certificate | None: ...
    async def get_by_code(self, verification_code: str) -> Certificate | None: ...
    async def add(self, certificate: Certificate) -> None: ...
    async def list_by_student(self, student_id: str) -> list[Certificate]: ...
    async def list_by_courses(self, course_ids: set[UUID] | None) -> list[Certificate]: ...

    async def get_request(
        self, student_id: str, course_id: UUID
    ) -> CertificateRequest | None: ...
    async def save_request(self, request: CertificateRequest) -> None: ...
    async def list_requests(
        self,
        course_ids: set[UUID] | None,
        status: CertificateRequestStatus | None = None,
    ) -> list[CertificateRequest]: ...


class InMemoryCertificateRepo:
    def __init__(self) -> None:
        self._by_pair: dict[tuple[str, UUID], Certificate] = {}
        self._by_code: dict[str, Certificate] = {}
        self._requests: dict[tuple[str, UUID], CertificateRequest] = {}

    async def get(self, student_id: str, course_id: UUID) -> Certificate | None:
        return self._by_pair.get((student_id, course_id))

    async def get_by_code(self, verification_code: str) -> Certificate | None:
        return self._by_code.get(verification_code)

    async def add(self, certificate: Certificate) -> None:
        """Insert both indexes or neither.

        Mirrors the two unique constraints on the certificates table:
        one per (student, course) and one per verification code.
        """
        key = (certificate.student_id, certificate.course_id)
        if key in self._by_pair:
            raise AlreadyCertified()
        if certificate.verification_code in self._by_code:
            raise VerificationCodeCollision()
        self._by_pair[key] = certificate
        self._by_code[certificate.verification_code] = certificate

    async def list_by_student(self, student_id: str) -> list[Certificate]:
        return sorted(
            (c for c in self._by_pair.values() if c.student_id == student_id),
            key=lambda c: c.issued_at,
            reverse=True,
        )

    async def list_by_courses(self, course_ids: set[UUID] | None) -> list[Certificate]:
        return sorted(
            (
                c
                for c in self._by_pair.values()
                if course_ids is None or c.course_id in course_ids
            ),
            key=lambda c: c.issued_at,
            reverse=True,
        )

    # --- review requests ---

    async def get_request(
        self, student_id: str, course_id: UUID
    ) -> CertificateRequest | None:
        return self._requests.get((student_id, course_id))

    async def save_request(self, request: CertificateRequest) -> None:
        # One live request per pair; a newer request replaces a rejected one
        self._requests[(request.student_id, request.course_id)] = request

    async def list_requests(
        self,
        course_ids: set[UUID] | None,
        status: CertificateRequestStatus | None = None,
    ) -> list[CertificateRequest]:
        return sorted(
            (
                r
                for r in self._requests.values()
                if (course_ids is None or r.course_id in course_ids)
                and (status is None or r.status is status)
            ),
            key=lambda r: r.requested_at,
            reverse=True,
        )

    def clear(self) -> None:
        self._by_pair.clear()
        self._by_code.clear()
        self._requests.clear()
