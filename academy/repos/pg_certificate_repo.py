"""PostgreSQL implementation of CertificateRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from academy.core.errors import AlreadyCertified, VerificationCodeCollision
from academy.db.tables import CertificateRequestRow, CertificateRow
from academy.models.certificate import (
    Certificate,
    CertificateRequest,
    CertificateRequestStatus,
)


class PgCertificateRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, student_id: str, course_id: UUID) -> Certificate | None:
        stmt = select(CertificateRow).where(
            CertificateRow.student_id == student_id,
            CertificateRow.course_id == course_id,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_certificate(row) if row is not None else None

    async def get_by_code(self, verification_code: str) -> Certificate | None:
        stmt = select(CertificateRow).where(
            CertificateRow.verification_code == verification_code
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_certificate(row) if row is not None else None

    async def add(self, certificate: Certificate) -> None:
        row = CertificateRow(
            id=certificate.id,
            student_id=certificate.student_id,
            course_id=certificate.course_id,
            verification_code=certificate.verification_code,
            issued_at=certificate.issued_at,
            issued_by=certificate.issued_by,
            course_title=certificate.course_title,
            certificate_url=certificate.certificate_url,
        )
        try:
            async with self._session.begin_nested():
                self._session.add(row)
        except IntegrityError:
            # Two unique constraints can fire; the pair one wins if both did
            if await self.get(certificate.student_id, certificate.course_id) is not None:
                raise AlreadyCertified() from None
            raise VerificationCodeCollision() from None

    async def list_by_student(self, student_id: str) -> list[Certificate]:
        stmt = (
            select(CertificateRow)
            .where(CertificateRow.student_id == student_id)
            .order_by(CertificateRow.issued_at.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_certificate(r) for r in rows]

    async def list_by_courses(self, course_ids: set[UUID] | None) -> list[Certificate]:
        stmt = select(CertificateRow).order_by(CertificateRow.issued_at.desc())
        if course_ids is not None:
            stmt = stmt.where(CertificateRow.course_id.in_(course_ids))
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_certificate(r) for r in rows]

    # --- review requests ---

    async def get_request(
        self, student_id: str, course_id: UUID
    ) -> CertificateRequest | None:
        stmt = select(CertificateRequestRow).where(
            CertificateRequestRow.student_id == student_id,
            CertificateRequestRow.course_id == course_id,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_request(row) if row is not None else None

    async def save_request(self, request: CertificateRequest) -> None:
        values = {
            "id": request.id,
            "student_id": request.student_id,
            "course_id": request.course_id,
            "status": request.status.value,
            "requested_at": request.requested_at,
            "decided_at": request.decided_at,
            "decided_by": request.decided_by,
            "reason": request.reason,
        }
        stmt = insert(CertificateRequestRow).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["student_id", "course_id"],
            set_={k: v for k, v in values.items() if k not in ("student_id", "course_id")},
        )
        await self._session.execute(stmt)

    async def list_requests(
        self,
        course_ids: set[UUID] | None,
        status: CertificateRequestStatus | None = None,
    ) -> list[CertificateRequest]:
        stmt = select(CertificateRequestRow).order_by(
            CertificateRequestRow.requested_at.desc()
        )
        if course_ids is not None:
            stmt = stmt.where(CertificateRequestRow.course_id.in_(course_ids))
        if status is not None:
            stmt = stmt.where(CertificateRequestRow.status == status.value)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_request(r) for r in rows]


def _row_to_certificate(row: CertificateRow) -> Certificate:
    return Certificate(
        id=row.id,
        student_id=row.student_id,
        course_id=row.course_id,
        verification_code=row.verification_code,
        issued_at=row.issued_at,
        issued_by=row.issued_by,
        course_title=row.course_title or "",
        certificate_url=row.certificate_url or "",
    )


def _row_to_request(row: CertificateRequestRow) -> CertificateRequest:
    return CertificateRequest(
        id=row.id,
        student_id=row.student_id,
        course_id=row.course_id,
        requested_at=row.requested_at,
        status=CertificateRequestStatus(row.status),
        decided_at=row.decided_at,
        decided_by=row.decided_by,
        reason=row.reason,
    )
