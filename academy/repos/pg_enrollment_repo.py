"""PostgreSQL implementation of EnrollmentRepo.

The ACTIVE -> COMPLETED transition is a single conditional UPDATE on
``status`` and ``version``.  Under READ COMMITTED a concurrent writer
blocks on the row lock, re-checks the WHERE clause once the first
transaction commits, and matches zero rows.

Writers serialize on the enrollment row through ``lock`` (SELECT ... FOR
UPDATE), which holds until commit.  The in-process PairLocks are released
earlier, when the service call returns.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from academy.core.errors import AlreadyEnrolled
from academy.db.tables import EnrollmentRow
from academy.models.enrollment import Enrollment, EnrollmentStatus


class PgEnrollmentRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, student_id: str, course_id: UUID) -> Enrollment | None:
        stmt = select(EnrollmentRow).where(
            EnrollmentRow.student_id == student_id,
            EnrollmentRow.course_id == course_id,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_enrollment(row) if row is not None else None

    async def lock(self, student_id: str, course_id: UUID) -> Enrollment | None:
        """Read the enrollment with a row lock held until the transaction ends.

        Every ledger write and certificate decision takes this first, so a
        second writer for the same pair waits for the first to commit and
        then sees its rows.
        """
        stmt = (
            select(EnrollmentRow)
            .where(
                EnrollmentRow.student_id == student_id,
                EnrollmentRow.course_id == course_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_enrollment(row) if row is not None else None

    async def add(self, enrollment: Enrollment) -> None:
        row = EnrollmentRow(
            id=enrollment.id,
            student_id=enrollment.student_id,
            course_id=enrollment.course_id,
            status=enrollment.status.value,
            progress=enrollment.progress,
            enrolled_at=enrollment.enrolled_at,
            completed_at=enrollment.completed_at,
            version=enrollment.version,
        )
        try:
            async with self._session.begin_nested():
                self._session.add(row)
        except IntegrityError:
            raise AlreadyEnrolled() from None

    async def raise_progress(self, enrollment_id: UUID, progress: int) -> None:
        stmt = (
            update(EnrollmentRow)
            .where(EnrollmentRow.id == enrollment_id, EnrollmentRow.progress < progress)
            .values(progress=progress)
        )
        await self._session.execute(stmt)

    async def complete_if_active(
        self,
        enrollment_id: UUID,
        *,
        expected_version: int,
        completed_at: int,
        progress: int,
    ) -> Enrollment | None:
        stmt = (
            update(EnrollmentRow)
            .where(
                EnrollmentRow.id == enrollment_id,
                EnrollmentRow.status == EnrollmentStatus.ACTIVE.value,
                EnrollmentRow.version == expected_version,
            )
            .values(
                status=EnrollmentStatus.COMPLETED.value,
                completed_at=completed_at,
                progress=func.greatest(EnrollmentRow.progress, progress),
                version=EnrollmentRow.version + 1,
            )
            .returning(EnrollmentRow)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_enrollment(row) if row is not None else None

    async def list_by_student(self, student_id: str) -> list[Enrollment]:
        stmt = select(EnrollmentRow).where(EnrollmentRow.student_id == student_id)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_enrollment(r) for r in rows]

    async def list_by_courses(self, course_ids: set[UUID] | None) -> list[Enrollment]:
        stmt = select(EnrollmentRow)
        if course_ids is not None:
            stmt = stmt.where(EnrollmentRow.course_id.in_(course_ids))
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_enrollment(r) for r in rows]


def _row_to_enrollment(row: EnrollmentRow) -> Enrollment:
    return Enrollment(
        id=row.id,
        student_id=row.student_id,
        course_id=row.course_id,
        enrolled_at=row.enrolled_at,
        status=EnrollmentStatus(row.status),
        progress=row.progress,
        completed_at=row.completed_at,
        version=row.version,
    )
